"""
Dependency injection for FastAPI routes.

Provides injectable dependencies for:
- Configuration
- Database engine lifecycle
- Service instances (catalog, circulation, recommendations)
- Caller identity and role checks
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from librarium.security import TokenError, decode_access_token
from librarium.storage.database import create_engine, create_session_factory
from librarium.storage.models import UserRole


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./librarium.db"
    database_echo: bool = False

    # Auth
    jwt_secret_key: str = "change-me-in-production"
    jwt_expire_minutes: int = 60 * 24

    # Login attempts per 15 minutes per client IP
    login_rate_limit: int = 5
    login_rate_limit_enabled: bool = True

    # Environment
    environment: str = "development"
    debug: bool = False
    cors_allowed_origins: str = ""

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
            jwt_secret_key=os.getenv("JWT_SECRET_KEY", cls.jwt_secret_key),
            jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", cls.jwt_expire_minutes)),
            login_rate_limit=int(os.getenv("LOGIN_RATE_LIMIT", cls.login_rate_limit)),
            login_rate_limit_enabled=os.getenv("LOGIN_RATE_LIMIT_ENABLED", "true").lower() == "true",
            environment=os.getenv("LIBRARIUM_ENV", cls.environment),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            cors_allowed_origins=os.getenv("CORS_ALLOWED_ORIGINS", ""),
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()


# =============================================================================
# Database
# =============================================================================

# Global engine and session factory (initialized in lifespan)
_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def init_database(settings: Settings) -> async_sessionmaker[AsyncSession]:
    """Initialize database engine and session factory."""
    global _engine, _async_session_factory

    _engine = create_engine(settings.database_url, echo=settings.database_echo)
    _async_session_factory = create_session_factory(_engine)
    return _async_session_factory


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database first.")
    return _engine


async def dispose_database() -> None:
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_factory = None


# =============================================================================
# Service Container
# =============================================================================

class ServiceContainer:
    """
    Container for lazily built service instances.

    All services share one session factory; each operation opens its own
    session from it.
    """

    def __init__(self, settings: Settings, session_factory: async_sessionmaker[AsyncSession]):
        self.settings = settings
        self.session_factory = session_factory
        self._user_service = None
        self._author_service = None
        self._category_service = None
        self._book_service = None
        self._loan_service = None
        self._recommender = None

    @property
    def user_service(self):
        if self._user_service is None:
            from librarium.accounts.service import UserService
            self._user_service = UserService(self.session_factory)
        return self._user_service

    @property
    def author_service(self):
        if self._author_service is None:
            from librarium.catalog.service import AuthorService
            self._author_service = AuthorService(self.session_factory)
        return self._author_service

    @property
    def category_service(self):
        if self._category_service is None:
            from librarium.catalog.service import CategoryService
            self._category_service = CategoryService(self.session_factory)
        return self._category_service

    @property
    def book_service(self):
        if self._book_service is None:
            from librarium.catalog.service import BookService
            self._book_service = BookService(self.session_factory)
        return self._book_service

    @property
    def loan_service(self):
        if self._loan_service is None:
            from librarium.circulation.loans import LoanService
            self._loan_service = LoanService(self.session_factory)
        return self._loan_service

    @property
    def recommender(self):
        """Get recommendation engine instance."""
        if self._recommender is None:
            from librarium.intelligence.recommender import RecommendationEngine
            self._recommender = RecommendationEngine(self.session_factory)
        return self._recommender


# Global service container
_service_container: Optional[ServiceContainer] = None


def init_services(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> ServiceContainer:
    """Initialize service container."""
    global _service_container
    _service_container = ServiceContainer(settings, session_factory)
    return _service_container


def get_service_container(request: Request) -> ServiceContainer:
    """Get the service container of the running application."""
    container = getattr(request.app.state, "services", None) or _service_container
    if container is None:
        raise RuntimeError("Services not initialized. Call init_services first.")
    return container


# =============================================================================
# Individual Service Dependencies
# =============================================================================

def get_user_service(container: ServiceContainer = Depends(get_service_container)):
    return container.user_service


def get_author_service(container: ServiceContainer = Depends(get_service_container)):
    return container.author_service


def get_category_service(container: ServiceContainer = Depends(get_service_container)):
    return container.category_service


def get_book_service(container: ServiceContainer = Depends(get_service_container)):
    return container.book_service


def get_loan_service(container: ServiceContainer = Depends(get_service_container)):
    return container.loan_service


def get_recommender(container: ServiceContainer = Depends(get_service_container)):
    """Dependency for the recommendation engine."""
    return container.recommender


# =============================================================================
# Authentication Dependencies
# =============================================================================

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as seen by the core services."""

    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def get_settings_from_app(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


async def get_current_identity(
    token: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings_from_app),
) -> Identity:
    """
    Resolve the bearer token to an identity.

    Raises:
        HTTPException: 401 if the token is missing or invalid.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception

    try:
        payload = decode_access_token(token, settings.jwt_secret_key)
        return Identity(
            id=int(payload["sub"]),
            role=payload.get("role", UserRole.REGULAR.value),
        )
    except (TokenError, ValueError):
        raise credentials_exception


async def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    """
    Raises:
        HTTPException: 403 for non-admin callers.
    """
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required",
        )
    return identity


# =============================================================================
# Request Context Dependencies
# =============================================================================

async def get_client_ip(request: Request) -> str:
    """Extract client IP from request, considering proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
