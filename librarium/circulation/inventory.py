"""
Inventory Controller.

Keeps ``books.available_copies`` in step with loan transitions. Every
mutator is a single UPDATE statement executed in the caller's session,
so it commits or rolls back with the rest of the caller's transaction.
"""

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from librarium.exceptions import InventoryExhaustedError, NotFoundError, ValidationError
from librarium.storage.models import BookModel, LoanModel, LoanStatus


class InventoryController:
    """
    Availability bookkeeping for one transaction.

    Usage:
        async with session_factory.begin() as session:
            inventory = InventoryController(session)
            await inventory.decrement_availability(book_id)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _book_exists(self, book_id: int) -> bool:
        stmt = select(BookModel.id).where(BookModel.id == book_id)
        return (await self.session.execute(stmt)).scalar_one_or_none() is not None

    async def decrement_availability(self, book_id: int) -> None:
        """
        Take one copy off the shelf.

        The guard and the write are one conditional UPDATE, so two
        concurrent borrowers of the last copy cannot both succeed.

        Raises:
            NotFoundError: book does not exist
            InventoryExhaustedError: no copies left
        """
        stmt = (
            update(BookModel)
            .where(BookModel.id == book_id, BookModel.available_copies > 0)
            .values(available_copies=BookModel.available_copies - 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        if result.rowcount == 1:
            logger.debug(f"Book {book_id}: one copy checked out")
            return

        if not await self._book_exists(book_id):
            raise NotFoundError("Book", book_id)
        raise InventoryExhaustedError(book_id)

    async def increment_availability(self, book_id: int) -> None:
        """
        Put one copy back on the shelf. No upper bound is enforced.

        Raises:
            NotFoundError: book does not exist
        """
        stmt = (
            update(BookModel)
            .where(BookModel.id == book_id)
            .values(available_copies=BookModel.available_copies + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        if result.rowcount != 1:
            raise NotFoundError("Book", book_id)
        logger.debug(f"Book {book_id}: one copy returned")

    async def set_availability(self, book_id: int, copies: int) -> None:
        """
        Overwrite the copy count (catalog edits).

        Raises:
            ValidationError: negative count
            NotFoundError: book does not exist
        """
        if copies is None or copies < 0:
            raise ValidationError("Available copies cannot be negative")

        stmt = (
            update(BookModel)
            .where(BookModel.id == book_id)
            .values(available_copies=copies)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        if result.rowcount != 1:
            raise NotFoundError("Book", book_id)

    async def is_book_loaned_out(self, book_id: int) -> bool:
        """True iff at least one active loan references the book."""
        stmt = (
            select(LoanModel.id)
            .where(
                LoanModel.book_id == book_id,
                LoanModel.status == LoanStatus.ACTIVE.value,
            )
            .limit(1)
        )
        return (await self.session.execute(stmt)).first() is not None
