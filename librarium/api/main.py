"""
Librarium API

FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import FastAPI, Request
from sqlalchemy import text

from librarium import __version__
from librarium.storage.database import create_tables

from .schemas import HealthResponse
from .routes import auth, users, authors, categories, books, loans, recommendations
from .middleware import (
    setup_cors,
    setup_rate_limiting,
    setup_logging,
    setup_exception_handlers,
    RateLimitConfig,
    LoggingConfig,
    get_cors_config,
)
from .dependencies import (
    get_settings,
    get_engine,
    init_database,
    init_services,
    dispose_database,
    Settings,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Startup: build the engine, create missing tables, build the service
    container. Shutdown: dispose the engine.
    """
    settings: Settings = app.state.settings
    logger.info(f"Starting Librarium in {settings.environment} mode")

    try:
        logger.info("Initializing database...")
        session_factory = init_database(settings)
        await create_tables(get_engine())

        app.state.services = init_services(settings, session_factory)
        logger.info("Librarium started successfully")

        yield

    finally:
        logger.info("Shutting down Librarium...")
        await dispose_database()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Librarium",
        description="Library management: catalog, loans and recommendations.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ==========================================================================
    # Middleware (last added = outermost)
    # ==========================================================================

    setup_exception_handlers(app)

    app.state.login_limiter = setup_rate_limiting(
        app,
        config=RateLimitConfig(
            max_attempts=settings.login_rate_limit,
            enabled=settings.login_rate_limit_enabled,
        ),
    )

    setup_cors(
        app,
        config=get_cors_config(settings.environment, settings.cors_allowed_origins),
    )

    setup_logging(
        app,
        config=LoggingConfig(log_request_body=settings.debug),
        structured=settings.environment != "development",
    )

    # ==========================================================================
    # Routers
    # ==========================================================================

    api_prefix = "/api/v1"

    for module in (auth, users, authors, categories, books, loans, recommendations):
        app.include_router(module.router, prefix=api_prefix)

    # ==========================================================================
    # Root Routes
    # ==========================================================================

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": "Librarium",
            "version": __version__,
            "status": "running",
            "docs": "/docs",
        }

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(request: Request) -> HealthResponse:
        """Health check endpoint. Pings the database."""
        components = {}
        overall_healthy = True

        services = getattr(request.app.state, "services", None)
        if services is None:
            components["database"] = "not_initialized"
            overall_healthy = False
        else:
            try:
                async with services.session_factory() as session:
                    await session.execute(text("SELECT 1"))
                components["database"] = "healthy"
            except Exception as e:
                logger.error(f"Database health check failed: {e}")
                components["database"] = "unhealthy"
                overall_healthy = False

        return HealthResponse(
            status="healthy" if overall_healthy else "degraded",
            version=__version__,
            components=components,
        )

    return app


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    # Login limits are kept in memory, so run a single worker
    uvicorn.run(
        "librarium.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
