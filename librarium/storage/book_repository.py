"""
Catalog repositories for Librarium.

Structured storage for authors, categories and books:
- SQLite (aiosqlite) for development/testing
- Any async SQLAlchemy URL for production
- Substring search on names and titles
- Pagination through ``ModelRepository.list_page``

Design Decisions:
1. Snapshots out: callers get ``Stored*`` dataclasses, never ORM rows
2. Book rows eager-load author and category so names come for free
3. No commits here; the service layer owns the transaction
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select

from librarium.storage.models import AuthorModel, BookModel, CategoryModel
from librarium.storage.repository import ModelRepository


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class StoredAuthor:
    """Data class for author data transfer."""

    id: int
    name: str
    biography: Optional[str] = None
    birth_date: Optional[date] = None
    nationality: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: AuthorModel) -> "StoredAuthor":
        """Create from SQLAlchemy model."""
        return cls(
            id=model.id,
            name=model.name,
            biography=model.biography,
            birth_date=model.birth_date,
            nationality=model.nationality,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "biography": self.biography,
            "birth_date": _isoformat(self.birth_date),
            "nationality": self.nationality,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


@dataclass
class StoredCategory:
    """Data class for category data transfer."""

    id: int
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: CategoryModel) -> "StoredCategory":
        """Create from SQLAlchemy model."""
        return cls(
            id=model.id,
            name=model.name,
            description=model.description,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


@dataclass
class StoredBook:
    """Data class for book data transfer."""

    id: int
    title: str
    publication_year: int
    available_copies: int
    author_id: int
    category_id: int

    synopsis: Optional[str] = None

    # Denormalized from the eager-loaded relationships
    author_name: Optional[str] = None
    category_name: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: BookModel) -> "StoredBook":
        """Create from SQLAlchemy model."""
        return cls(
            id=model.id,
            title=model.title,
            publication_year=model.publication_year,
            available_copies=model.available_copies,
            author_id=model.author_id,
            category_id=model.category_id,
            synopsis=model.synopsis,
            author_name=model.author.name if model.author else None,
            category_name=model.category.name if model.category else None,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @property
    def is_available(self) -> bool:
        return self.available_copies > 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "synopsis": self.synopsis,
            "publication_year": self.publication_year,
            "available_copies": self.available_copies,
            "author_id": self.author_id,
            "author_name": self.author_name,
            "category_id": self.category_id,
            "category_name": self.category_name,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class AuthorRepository(ModelRepository):
    """Repository for author CRUD operations."""

    model = AuthorModel
    stored = StoredAuthor
    ordering = (AuthorModel.name.asc(), AuthorModel.id.asc())

    async def search(self, term: str) -> list[StoredAuthor]:
        """Authors whose name contains ``term`` (case-insensitive)."""
        return await self._list(AuthorModel.name.ilike(f"%{term}%"))

    async def has_books(self, author_id: int) -> bool:
        stmt = select(BookModel.id).where(BookModel.author_id == author_id).limit(1)
        return (await self.session.execute(stmt)).first() is not None


class CategoryRepository(ModelRepository):
    """Repository for category CRUD operations."""

    model = CategoryModel
    stored = StoredCategory
    ordering = (CategoryModel.name.asc(), CategoryModel.id.asc())

    async def get_by_name(self, name: str) -> Optional[StoredCategory]:
        """Exact, case-sensitive name lookup."""
        stmt = select(CategoryModel).where(CategoryModel.name == name)
        model = (await self.session.execute(stmt)).scalar_one_or_none()
        return StoredCategory.from_model(model) if model else None

    async def search(self, term: str) -> list[StoredCategory]:
        return await self._list(CategoryModel.name.ilike(f"%{term}%"))

    async def has_books(self, category_id: int) -> bool:
        stmt = select(BookModel.id).where(BookModel.category_id == category_id).limit(1)
        return (await self.session.execute(stmt)).first() is not None


class BookRepository(ModelRepository):
    """
    Repository for book CRUD operations.

    ``available_copies`` is written here only on insert. Later changes go
    through ``InventoryController``.

    Usage:
        async with session_factory.begin() as session:
            repo = BookRepository(session)
            book = await repo.create(
                title="Dom Casmurro",
                publication_year=1899,
                available_copies=3,
                author_id=1,
                category_id=2,
            )
            results = await repo.search("casmurro")
    """

    model = BookModel
    stored = StoredBook
    ordering = (BookModel.title.asc(), BookModel.id.asc())

    async def search(self, term: str) -> list[StoredBook]:
        """Books whose title contains ``term`` (case-insensitive)."""
        return await self._list(BookModel.title.ilike(f"%{term}%"))

    async def list_by_author(self, author_id: int) -> list[StoredBook]:
        return await self._list(BookModel.author_id == author_id)

    async def list_by_category(self, category_id: int) -> list[StoredBook]:
        return await self._list(BookModel.category_id == category_id)

    async def list_available(self) -> list[StoredBook]:
        return await self._list(BookModel.available_copies > 0)
