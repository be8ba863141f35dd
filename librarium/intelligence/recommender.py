"""
Book Recommender for Librarium

Rule-based recommendations from a user's loan history:
- Favorite categories (top 3 by loan count)
- Favorite authors (top 3 by loan count)
- Cold start: newest books on the shelf
- Browse by category or author

Design Decisions:
1. Deterministic: fixed scores, ties broken by id ascending
2. Explainability: every recommendation carries a reason
3. Only books with copies on the shelf are suggested
4. Books the user has ever borrowed are never suggested again
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from librarium.exceptions import NotFoundError
from librarium.storage.book_repository import (
    AuthorRepository,
    CategoryRepository,
    StoredBook,
)
from librarium.storage.recommendation_repository import FavoriteEntry, RecommendationRepository
from librarium.storage.user_repository import UserRepository


class RecommendationType(str, Enum):
    """Types of recommendations."""

    CATEGORY = "category"  # From a favorite or requested category
    AUTHOR = "author"  # More by an author the user reads


# Fixed scores per rule
CATEGORY_SCORE = 100
AUTHOR_SCORE = 90
NEW_ARRIVAL_SCORE = 80

# Share of the limit reserved for category picks
CATEGORY_SHARE = 0.6

FAVORITES_FOR_SCORING = 3
FAVORITES_FOR_PREFERENCES = 5


@dataclass
class Recommendation:
    """A single book recommendation."""

    book: StoredBook
    score: int
    reason: str
    type: RecommendationType

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "book": self.book.to_dict(),
            "score": self.score,
            "reason": self.reason,
            "type": self.type.value,
        }


@dataclass
class UserPreferences:
    """Most borrowed categories and authors of one user."""

    categories: list[FavoriteEntry] = field(default_factory=list)
    authors: list[FavoriteEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "categories": [c.to_dict() for c in self.categories],
            "authors": [a.to_dict() for a in self.authors],
        }


class RecommendationEngine:
    """
    Generate personalized book recommendations.

    Read-only: every call opens its own session and never writes.

    Usage:
        engine = RecommendationEngine(session_factory)
        recs = await engine.recommend_for_user(user_id, limit=10)
        for rec in recs:
            print(f"{rec.book.title}: {rec.reason}")
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def recommend_for_user(self, user_id: int, limit: int = 10) -> list[Recommendation]:
        """
        Personalized recommendations.

        Category picks fill up to 60% of ``limit`` (rounded up), author
        picks fill the rest. Users without loans get the cold-start list.

        Raises:
            NotFoundError: user does not exist
        """
        async with self.session_factory() as session:
            if not await UserRepository(session).exists(user_id):
                raise NotFoundError("User", user_id)

            repo = RecommendationRepository(session)
            if not await repo.has_loan_history(user_id):
                logger.debug(f"User {user_id} has no loans, using new arrivals")
                return await self._new_arrivals(repo, limit)

            results: list[Recommendation] = []
            seen: set[int] = set()

            categories = await repo.favorite_categories(user_id, FAVORITES_FOR_SCORING)
            if categories:
                books = await repo.available_books(
                    limit=math.ceil(limit * CATEGORY_SHARE),
                    category_ids=[c.id for c in categories],
                    exclude_borrowed_by=user_id,
                )
                self._collect(
                    results, seen, books,
                    score=CATEGORY_SCORE,
                    reason=lambda book: f"favorite category: {book.category_name}",
                    rec_type=RecommendationType.CATEGORY,
                )

            remaining = limit - len(results)
            authors = await repo.favorite_authors(user_id, FAVORITES_FOR_SCORING)
            if authors and remaining > 0:
                books = await repo.available_books(
                    limit=remaining,
                    author_ids=[a.id for a in authors],
                    exclude_borrowed_by=user_id,
                )
                self._collect(
                    results, seen, books,
                    score=AUTHOR_SCORE,
                    reason=lambda book: f"favorite author: {book.author_name}",
                    rec_type=RecommendationType.AUTHOR,
                )

        logger.debug(f"User {user_id}: {len(results)} recommendations")
        return results[:limit]

    @staticmethod
    def _collect(results, seen, books, score, reason, rec_type) -> None:
        for book in books:
            if book.id in seen:
                continue
            seen.add(book.id)
            results.append(Recommendation(book=book, score=score, reason=reason(book), type=rec_type))

    async def _new_arrivals(self, repo: RecommendationRepository, limit: int) -> list[Recommendation]:
        books = await repo.newest_available(limit)
        return [
            Recommendation(
                book=book,
                score=NEW_ARRIVAL_SCORE,
                reason="new in the library",
                type=RecommendationType.CATEGORY,
            )
            for book in books
        ]

    async def recommend_for_new_user(self, limit: int = 10) -> list[Recommendation]:
        """The most recently added books with copies available."""
        async with self.session_factory() as session:
            return await self._new_arrivals(RecommendationRepository(session), limit)

    async def recommend_by_category(
        self,
        category_id: int,
        user_id: Optional[int] = None,
        limit: int = 10,
    ) -> list[Recommendation]:
        """Available books in one category; unknown categories give an empty list."""
        async with self.session_factory() as session:
            category = await CategoryRepository(session).get(category_id)
            if category is None:
                return []

            books = await RecommendationRepository(session).available_books(
                limit=limit,
                category_ids=[category_id],
                exclude_borrowed_by=user_id,
            )

        return [
            Recommendation(
                book=book,
                score=CATEGORY_SCORE,
                reason=f"books in category: {category.name}",
                type=RecommendationType.CATEGORY,
            )
            for book in books
        ]

    async def recommend_by_author(
        self,
        author_id: int,
        user_id: Optional[int] = None,
        limit: int = 10,
    ) -> list[Recommendation]:
        """Available books by one author; unknown authors give an empty list."""
        async with self.session_factory() as session:
            author = await AuthorRepository(session).get(author_id)
            if author is None:
                return []

            books = await RecommendationRepository(session).available_books(
                limit=limit,
                author_ids=[author_id],
                exclude_borrowed_by=user_id,
            )

        return [
            Recommendation(
                book=book,
                score=CATEGORY_SCORE,
                reason=f"books by author: {author.name}",
                type=RecommendationType.AUTHOR,
            )
            for book in books
        ]

    async def get_user_preferences(self, user_id: int) -> UserPreferences:
        """Up to five favorite categories and five favorite authors."""
        async with self.session_factory() as session:
            repo = RecommendationRepository(session)
            return UserPreferences(
                categories=await repo.favorite_categories(user_id, FAVORITES_FOR_PREFERENCES),
                authors=await repo.favorite_authors(user_id, FAVORITES_FOR_PREFERENCES),
            )
