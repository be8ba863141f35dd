"""
Pytest configuration and fixtures for Librarium tests.
"""

from datetime import datetime, timedelta
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from librarium.accounts.service import UserService
from librarium.api.dependencies import ServiceContainer, Settings
from librarium.api.main import create_app
from librarium.api.routes.auth import issue_token
from librarium.catalog.service import AuthorService, BookService, CategoryService
from librarium.circulation.loans import LoanService
from librarium.intelligence.recommender import RecommendationEngine
from librarium.storage.database import (
    create_engine,
    create_session_factory,
    create_tables,
    drop_tables,
)


# =============================================================================
# Test Settings
# =============================================================================

def get_test_settings(**overrides) -> Settings:
    """Return settings configured for testing."""
    values = dict(
        database_url="sqlite+aiosqlite:///:memory:",
        database_echo=False,
        jwt_secret_key="test-secret",
        environment="test",
        debug=False,
    )
    values.update(overrides)
    return Settings(**values)


LOAN_DATE = datetime(2024, 3, 1, 10, 0, 0)
DUE_DATE = LOAN_DATE + timedelta(days=14)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """In-memory database shared by every session of one test."""
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)

    yield engine

    await drop_tables(engine)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(async_engine)


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path):
    """File-backed database; each connection is independent, as in production."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'librarium.db'}")
    await create_tables(engine)

    yield create_session_factory(engine)

    await engine.dispose()


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def user_service(session_factory) -> UserService:
    return UserService(session_factory)


@pytest.fixture
def author_service(session_factory) -> AuthorService:
    return AuthorService(session_factory)


@pytest.fixture
def category_service(session_factory) -> CategoryService:
    return CategoryService(session_factory)


@pytest.fixture
def book_service(session_factory) -> BookService:
    return BookService(session_factory)


@pytest.fixture
def loan_service(session_factory) -> LoanService:
    return LoanService(session_factory)


@pytest.fixture
def recommender(session_factory) -> RecommendationEngine:
    return RecommendationEngine(session_factory)


# =============================================================================
# Data Fixtures
# =============================================================================

class LibrarySeeder:
    """Shortcuts for building catalog and loan fixtures through the services."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.users = UserService(session_factory)
        self.authors = AuthorService(session_factory)
        self.categories = CategoryService(session_factory)
        self.books = BookService(session_factory)
        self.loans = LoanService(session_factory)
        self._counter = 0

    async def user(self, name: str = "Reader", role: Optional[str] = None):
        self._counter += 1
        return await self.users.create_user(
            name=name,
            email=f"reader{self._counter}@example.com",
            password="secret123",
            role=role,
        )

    async def author(self, name: str = "Machado de Assis"):
        return await self.authors.create_author(name=name)

    async def category(self, name: str = "Romance"):
        return await self.categories.create_category(name=name)

    async def book(self, title: str, author_id: int, category_id: int, copies: int = 1, year: int = 1900):
        return await self.books.create_book(
            title=title,
            publication_year=year,
            available_copies=copies,
            author_id=author_id,
            category_id=category_id,
        )

    async def loan(self, user_id: int, book_id: int, loan_date: datetime = LOAN_DATE, days: int = 14):
        return await self.loans.create_loan(
            user_id=user_id,
            book_id=book_id,
            loan_date=loan_date,
            expected_return_date=loan_date + timedelta(days=days),
        )


@pytest.fixture
def seed(session_factory) -> LibrarySeeder:
    return LibrarySeeder(session_factory)


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def test_settings() -> Settings:
    return get_test_settings()


@pytest_asyncio.fixture(scope="function")
async def app(test_settings, session_factory):
    """FastAPI application wired to the in-memory database."""
    application = create_app(test_settings)
    application.state.services = ServiceContainer(test_settings, session_factory)

    yield application


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_user(seed):
    return await seed.user(name="Admin", role="admin")


@pytest_asyncio.fixture
async def regular_user(seed):
    return await seed.user(name="Regular Reader")


@pytest.fixture
def admin_headers(admin_user, test_settings) -> dict:
    return {"Authorization": f"Bearer {issue_token(admin_user, test_settings)}"}


@pytest.fixture
def user_headers(regular_user, test_settings) -> dict:
    return {"Authorization": f"Bearer {issue_token(regular_user, test_settings)}"}
