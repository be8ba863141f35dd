"""
Catalog services for Librarium.

Validation and referential checks over authors, categories and books.
Each operation runs in its own transaction.
"""

from datetime import date
from typing import Any, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from librarium.circulation.inventory import InventoryController
from librarium.exceptions import ConflictError, NotFoundError, ValidationError
from librarium.storage.book_repository import (
    AuthorRepository,
    BookRepository,
    CategoryRepository,
    StoredAuthor,
    StoredBook,
    StoredCategory,
)
from librarium.storage.repository import Page

MIN_NAME_LENGTH = 2
MIN_SEARCH_LENGTH = 2


def require_name(value: Optional[str], label: str) -> str:
    """
    Trimmed name of at least two characters.

    Raises:
        ValidationError: missing or too short
    """
    cleaned = (value or "").strip()
    if len(cleaned) < MIN_NAME_LENGTH:
        raise ValidationError(f"{label} must have at least {MIN_NAME_LENGTH} characters")
    return cleaned


def require_search_term(term: Optional[str]) -> str:
    cleaned = (term or "").strip()
    if len(cleaned) < MIN_SEARCH_LENGTH:
        raise ValidationError(f"Search term must have at least {MIN_SEARCH_LENGTH} characters")
    return cleaned


def _present(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


class _CatalogService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory


class AuthorService(_CatalogService):
    """Author management."""

    async def create_author(
        self,
        name: str,
        biography: Optional[str] = None,
        birth_date: Optional[date] = None,
        nationality: Optional[str] = None,
    ) -> StoredAuthor:
        name = require_name(name, "Author name")
        async with self.session_factory.begin() as session:
            author = await AuthorRepository(session).create(
                name=name,
                biography=biography,
                birth_date=birth_date,
                nationality=nationality,
            )
        logger.info(f"Author {author.id} created: {author.name}")
        return author

    async def get_author(self, author_id: int) -> StoredAuthor:
        async with self.session_factory() as session:
            author = await AuthorRepository(session).get(author_id)
        if author is None:
            raise NotFoundError("Author", author_id)
        return author

    async def list_authors(self) -> list[StoredAuthor]:
        async with self.session_factory() as session:
            return await AuthorRepository(session).list_all()

    async def list_authors_page(self, page: int = 1, page_size: int = 10) -> Page:
        async with self.session_factory() as session:
            return await AuthorRepository(session).list_page(page, page_size)

    async def update_author(self, author_id: int, **updates) -> StoredAuthor:
        """
        Partial update; ``None`` values are left unchanged.

        Raises:
            ValidationError: name too short
            NotFoundError: author does not exist
        """
        updates = _present(updates)
        if "name" in updates:
            updates["name"] = require_name(updates["name"], "Author name")

        async with self.session_factory.begin() as session:
            author = await AuthorRepository(session).update(author_id, **updates)
        if author is None:
            raise NotFoundError("Author", author_id)
        return author

    async def delete_author(self, author_id: int) -> None:
        """
        Raises:
            NotFoundError: author does not exist
            ConflictError: books still reference the author
        """
        async with self.session_factory.begin() as session:
            repo = AuthorRepository(session)
            if not await repo.exists(author_id):
                raise NotFoundError("Author", author_id)
            if await repo.has_books(author_id):
                raise ConflictError("Author has books in the catalog")
            await repo.delete(author_id)
        logger.info(f"Author {author_id} deleted")

    async def search_authors(self, term: str) -> list[StoredAuthor]:
        term = require_search_term(term)
        async with self.session_factory() as session:
            return await AuthorRepository(session).search(term)

    async def count_authors(self) -> int:
        async with self.session_factory() as session:
            return await AuthorRepository(session).count()


class CategoryService(_CatalogService):
    """Category management. Names are unique (exact, case-sensitive)."""

    async def create_category(self, name: str, description: Optional[str] = None) -> StoredCategory:
        """
        Raises:
            ValidationError: name too short
            ConflictError: a category with this name exists
        """
        name = require_name(name, "Category name")
        try:
            async with self.session_factory.begin() as session:
                repo = CategoryRepository(session)
                if await repo.get_by_name(name) is not None:
                    raise ConflictError(f"Category '{name}' already exists")
                category = await repo.create(name=name, description=description)
        except IntegrityError as exc:
            # Lost a race with a concurrent create
            raise ConflictError(f"Category '{name}' already exists") from exc
        logger.info(f"Category {category.id} created: {category.name}")
        return category

    async def get_category(self, category_id: int) -> StoredCategory:
        async with self.session_factory() as session:
            category = await CategoryRepository(session).get(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    async def list_categories(self) -> list[StoredCategory]:
        async with self.session_factory() as session:
            return await CategoryRepository(session).list_all()

    async def list_categories_page(self, page: int = 1, page_size: int = 10) -> Page:
        async with self.session_factory() as session:
            return await CategoryRepository(session).list_page(page, page_size)

    async def update_category(self, category_id: int, **updates) -> StoredCategory:
        """
        Raises:
            ValidationError: name too short
            NotFoundError: category does not exist
            ConflictError: new name taken by another category
        """
        updates = _present(updates)
        if "name" in updates:
            updates["name"] = require_name(updates["name"], "Category name")

        try:
            async with self.session_factory.begin() as session:
                repo = CategoryRepository(session)
                if not await repo.exists(category_id):
                    raise NotFoundError("Category", category_id)

                if "name" in updates:
                    existing = await repo.get_by_name(updates["name"])
                    if existing is not None and existing.id != category_id:
                        raise ConflictError(f"Category '{updates['name']}' already exists")

                return await repo.update(category_id, **updates)
        except IntegrityError as exc:
            raise ConflictError(f"Category '{updates.get('name')}' already exists") from exc

    async def delete_category(self, category_id: int) -> None:
        """
        Raises:
            NotFoundError: category does not exist
            ConflictError: books still reference the category
        """
        async with self.session_factory.begin() as session:
            repo = CategoryRepository(session)
            if not await repo.exists(category_id):
                raise NotFoundError("Category", category_id)
            if await repo.has_books(category_id):
                raise ConflictError("Category has books in the catalog")
            await repo.delete(category_id)
        logger.info(f"Category {category_id} deleted")

    async def search_categories(self, term: str) -> list[StoredCategory]:
        term = require_search_term(term)
        async with self.session_factory() as session:
            return await CategoryRepository(session).search(term)

    async def count_categories(self) -> int:
        async with self.session_factory() as session:
            return await CategoryRepository(session).count()


class BookService(_CatalogService):
    """
    Book management.

    Stock edits are routed through ``InventoryController.set_availability``;
    loans adjust stock through the circulation layer only.
    """

    @staticmethod
    def _validate_year(year: Optional[int]) -> int:
        current_year = date.today().year
        if year is None or year < 0 or year > current_year:
            raise ValidationError(f"Publication year must be between 0 and {current_year}")
        return year

    @staticmethod
    def _validate_copies(copies: Optional[int]) -> int:
        if copies is None or copies < 0:
            raise ValidationError("Available copies cannot be negative")
        return copies

    async def _check_references(self, session: AsyncSession, author_id: Optional[int], category_id: Optional[int]) -> None:
        if author_id is not None and not await AuthorRepository(session).exists(author_id):
            raise NotFoundError("Author", author_id)
        if category_id is not None and not await CategoryRepository(session).exists(category_id):
            raise NotFoundError("Category", category_id)

    async def create_book(
        self,
        title: str,
        publication_year: int,
        available_copies: int,
        author_id: int,
        category_id: int,
        synopsis: Optional[str] = None,
    ) -> StoredBook:
        """
        Raises:
            ValidationError: bad title, year or copy count, missing reference
            NotFoundError: author or category does not exist
        """
        title = require_name(title, "Title")
        self._validate_year(publication_year)
        self._validate_copies(available_copies)
        if author_id is None or category_id is None:
            raise ValidationError("Author and category are required")

        async with self.session_factory.begin() as session:
            await self._check_references(session, author_id, category_id)
            book = await BookRepository(session).create(
                title=title,
                synopsis=synopsis,
                publication_year=publication_year,
                available_copies=available_copies,
                author_id=author_id,
                category_id=category_id,
            )
        logger.info(f"Book {book.id} created: {book.title} ({book.available_copies} copies)")
        return book

    async def get_book(self, book_id: int) -> StoredBook:
        async with self.session_factory() as session:
            book = await BookRepository(session).get(book_id)
        if book is None:
            raise NotFoundError("Book", book_id)
        return book

    async def list_books(self) -> list[StoredBook]:
        async with self.session_factory() as session:
            return await BookRepository(session).list_all()

    async def list_books_page(self, page: int = 1, page_size: int = 10) -> Page:
        async with self.session_factory() as session:
            return await BookRepository(session).list_page(page, page_size)

    async def update_book(self, book_id: int, **updates) -> StoredBook:
        """
        Partial update; ``None`` values are left unchanged.

        Raises:
            ValidationError: bad title, year or copy count
            NotFoundError: book, author or category does not exist
        """
        updates = _present(updates)
        if "title" in updates:
            updates["title"] = require_name(updates["title"], "Title")
        if "publication_year" in updates:
            self._validate_year(updates["publication_year"])
        copies = updates.pop("available_copies", None)
        if copies is not None:
            self._validate_copies(copies)

        async with self.session_factory.begin() as session:
            repo = BookRepository(session)
            if not await repo.exists(book_id):
                raise NotFoundError("Book", book_id)
            await self._check_references(session, updates.get("author_id"), updates.get("category_id"))

            if copies is not None:
                await InventoryController(session).set_availability(book_id, copies)
            return await repo.update(book_id, **updates)

    async def delete_book(self, book_id: int) -> None:
        """
        Raises:
            NotFoundError: book does not exist
            ConflictError: an active loan references the book
        """
        async with self.session_factory.begin() as session:
            repo = BookRepository(session)
            if not await repo.exists(book_id):
                raise NotFoundError("Book", book_id)
            if await InventoryController(session).is_book_loaned_out(book_id):
                raise ConflictError("Book has active loans")
            await repo.delete(book_id)
        logger.info(f"Book {book_id} deleted")

    async def search_books(self, term: str) -> list[StoredBook]:
        term = require_search_term(term)
        async with self.session_factory() as session:
            return await BookRepository(session).search(term)

    async def list_by_author(self, author_id: int) -> list[StoredBook]:
        async with self.session_factory() as session:
            return await BookRepository(session).list_by_author(author_id)

    async def list_by_category(self, category_id: int) -> list[StoredBook]:
        async with self.session_factory() as session:
            return await BookRepository(session).list_by_category(category_id)

    async def list_available(self) -> list[StoredBook]:
        async with self.session_factory() as session:
            return await BookRepository(session).list_available()

    async def count_books(self) -> int:
        async with self.session_factory() as session:
            return await BookRepository(session).count()
