"""
Shared repository plumbing.

Repositories wrap one ``AsyncSession`` each and return plain dataclass
snapshots (``Stored*``), never live ORM instances. They do not commit:
the caller owns the transaction.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from librarium.exceptions import ValidationError

T = TypeVar("T")

MAX_PAGE_SIZE = 100


@dataclass
class Page(Generic[T]):
    """One page of a listing."""

    items: list[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 10

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return math.ceil(self.total / self.page_size)

    def to_dict(self, item_serializer: Optional[Callable[[T], Any]] = None) -> dict:
        """Convert to dictionary."""
        serialize = item_serializer or (lambda item: item.to_dict())
        return {
            "items": [serialize(item) for item in self.items],
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
        }


def validate_page(page: int, page_size: int) -> int:
    """
    Check pagination parameters.

    Returns:
        Row offset for the requested page.

    Raises:
        ValidationError: page < 1 or page_size outside 1..MAX_PAGE_SIZE
    """
    if page < 1:
        raise ValidationError("Page must be greater than zero")
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise ValidationError(f"Page size must be between 1 and {MAX_PAGE_SIZE}")
    return (page - 1) * page_size


class ModelRepository:
    """
    CRUD over a single mapped class.

    Subclasses set ``model``, ``stored`` (a dataclass with ``from_model``)
    and ``ordering`` (the default listing order).
    """

    model: Any = None
    stored: Any = None
    ordering: tuple = ()

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_stored(self, rows) -> list:
        return [self.stored.from_model(row) for row in rows]

    async def get(self, entity_id: int):
        """Fetch one entity by id, or None."""
        instance = await self.session.get(self.model, entity_id, populate_existing=True)
        if instance is None:
            return None
        return self.stored.from_model(instance)

    async def exists(self, entity_id: int) -> bool:
        stmt = select(self.model.id).where(self.model.id == entity_id)
        return (await self.session.execute(stmt)).scalar_one_or_none() is not None

    async def create(self, **fields):
        instance = self.model(**fields)
        self.session.add(instance)
        await self.session.flush()
        return await self.get(instance.id)

    async def update(self, entity_id: int, **updates):
        """
        Apply field updates.

        Returns:
            Updated snapshot or None when the entity does not exist
        """
        instance = await self.session.get(self.model, entity_id)
        if instance is None:
            return None

        for key, value in updates.items():
            if hasattr(instance, key):
                setattr(instance, key, value)

        await self.session.flush()
        return await self.get(entity_id)

    async def delete(self, entity_id: int) -> bool:
        stmt = delete(self.model).where(self.model.id == entity_id)
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def count(self) -> int:
        stmt = select(func.count()).select_from(self.model)
        return (await self.session.execute(stmt)).scalar_one()

    async def _list(self, *criteria, order_by=None, limit: Optional[int] = None, offset: int = 0) -> list:
        stmt = select(self.model).where(*criteria).order_by(*(order_by or self.ordering))
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return self._to_stored(result.scalars().unique())

    async def list_all(self) -> list:
        return await self._list()

    async def list_page(self, page: int, page_size: int) -> Page:
        """
        List one page in the default order.

        Raises:
            ValidationError: invalid page parameters
        """
        offset = validate_page(page, page_size)
        items = await self._list(limit=page_size, offset=offset)
        total = await self.count()
        return Page(items=items, total=total, page=page, page_size=page_size)
