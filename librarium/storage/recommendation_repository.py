"""
Read-only aggregation queries behind the recommendation engine.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from librarium.storage.book_repository import StoredBook
from librarium.storage.models import AuthorModel, BookModel, CategoryModel, LoanModel


@dataclass
class FavoriteEntry:
    """A category or author with the number of the user's loans that hit it."""

    id: int
    name: str
    total: int

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "total": self.total}


class RecommendationRepository:
    """
    Aggregations over the loan ledger and catalog.

    Favorites count every loan regardless of status. Ties on the count
    are broken by id ascending.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def has_loan_history(self, user_id: int) -> bool:
        stmt = select(LoanModel.id).where(LoanModel.user_id == user_id).limit(1)
        return (await self.session.execute(stmt)).first() is not None

    async def _favorites(self, user_id: int, target, foreign_key, limit: int) -> list[FavoriteEntry]:
        total = func.count(LoanModel.id)
        stmt = (
            select(target.id, target.name, total.label("total"))
            .select_from(LoanModel)
            .join(BookModel, BookModel.id == LoanModel.book_id)
            .join(target, target.id == foreign_key)
            .where(LoanModel.user_id == user_id)
            .group_by(target.id, target.name)
            .order_by(total.desc(), target.id.asc())
            .limit(limit)
        )
        rows = (await self.session.execute(stmt)).all()
        return [FavoriteEntry(id=row.id, name=row.name, total=row.total) for row in rows]

    async def favorite_categories(self, user_id: int, limit: int = 3) -> list[FavoriteEntry]:
        return await self._favorites(user_id, CategoryModel, BookModel.category_id, limit)

    async def favorite_authors(self, user_id: int, limit: int = 3) -> list[FavoriteEntry]:
        return await self._favorites(user_id, AuthorModel, BookModel.author_id, limit)

    async def available_books(
        self,
        limit: int,
        category_ids: Optional[Iterable[int]] = None,
        author_ids: Optional[Iterable[int]] = None,
        exclude_borrowed_by: Optional[int] = None,
    ) -> list[StoredBook]:
        """
        Books with at least one copy on the shelf, ordered by id ascending.

        Args:
            limit: Max results
            category_ids: Restrict to these categories
            author_ids: Restrict to these authors
            exclude_borrowed_by: Drop every book this user has ever borrowed
        """
        if limit <= 0:
            return []

        stmt = select(BookModel).where(BookModel.available_copies > 0)
        if category_ids is not None:
            stmt = stmt.where(BookModel.category_id.in_(list(category_ids)))
        if author_ids is not None:
            stmt = stmt.where(BookModel.author_id.in_(list(author_ids)))
        if exclude_borrowed_by is not None:
            borrowed = select(LoanModel.book_id).where(LoanModel.user_id == exclude_borrowed_by)
            stmt = stmt.where(BookModel.id.not_in(borrowed))

        stmt = stmt.order_by(BookModel.id.asc()).limit(limit)
        result = await self.session.execute(stmt)
        return [StoredBook.from_model(book) for book in result.scalars().unique()]

    async def newest_available(self, limit: int) -> list[StoredBook]:
        """Most recently added books with copies available."""
        if limit <= 0:
            return []

        stmt = (
            select(BookModel)
            .where(BookModel.available_copies > 0)
            .order_by(BookModel.created_at.desc(), BookModel.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [StoredBook.from_model(book) for book in result.scalars().unique()]
