"""
Loan Lifecycle Manager for Librarium.

Owns the loan state machine and ties every transition to its inventory
effect inside one transaction:

    active --register_return--> returned   (+1 copy)
    active --mark_overdue-----> overdue    (no inventory effect)

``returned`` and ``overdue`` are terminal.

Design Decisions:
1. One session and transaction per operation (``session_factory.begin()``)
2. Status changes are conditional UPDATEs; losing a race is an
   InvalidTransitionError, never a second inventory change
3. Overdue listing is a computed view; ``mark_overdue`` is an explicit,
   externally triggered assignment
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from librarium.circulation.inventory import InventoryController
from librarium.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from librarium.storage.loan_repository import LoanRepository, StoredLoan
from librarium.storage.models import LoanStatus, utcnow
from librarium.storage.repository import Page
from librarium.storage.user_repository import UserRepository


def as_naive_utc(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC; aware inputs are converted."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_status(status: str) -> LoanStatus:
    """
    Raises:
        ValidationError: unknown status
    """
    try:
        return LoanStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in LoanStatus)
        raise ValidationError(f"Invalid status '{status}'", detail=f"Allowed: {allowed}")


class LoanService:
    """
    Loan lifecycle operations.

    Usage:
        loans = LoanService(session_factory)
        loan = await loans.create_loan(user_id, book_id, loan_date, due_date)
        loan = await loans.register_return(loan.id)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            session_factory: Factory for per-operation sessions
            clock: Returns the current naive-UTC time
        """
        self.session_factory = session_factory
        self.clock = clock

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def create_loan(
        self,
        user_id: Optional[int],
        book_id: Optional[int],
        loan_date: Optional[datetime],
        expected_return_date: Optional[datetime],
    ) -> StoredLoan:
        """
        Open a loan and take one copy of the book.

        Raises:
            ValidationError: missing field, or expected return not after loan date
            NotFoundError: user or book does not exist
            InventoryExhaustedError: no copies available
        """
        if user_id is None or book_id is None or loan_date is None or expected_return_date is None:
            raise ValidationError(
                "Missing required fields",
                detail="user_id, book_id, loan_date and expected_return_date are required",
            )

        loan_date = as_naive_utc(loan_date)
        expected_return_date = as_naive_utc(expected_return_date)
        if expected_return_date <= loan_date:
            raise ValidationError("Expected return date must be after the loan date")

        async with self.session_factory.begin() as session:
            if not await UserRepository(session).exists(user_id):
                raise NotFoundError("User", user_id)

            await InventoryController(session).decrement_availability(book_id)

            loan = await LoanRepository(session).create(
                user_id=user_id,
                book_id=book_id,
                loan_date=loan_date,
                expected_return_date=expected_return_date,
                status=LoanStatus.ACTIVE.value,
            )

        logger.info(f"Loan {loan.id} opened: user={user_id} book={book_id}")
        return loan

    async def _transition(self, session: AsyncSession, loan_id: int, target: LoanStatus, **values) -> StoredLoan:
        repo = LoanRepository(session)
        loan = await repo.get(loan_id)
        if loan is None:
            raise NotFoundError("Loan", loan_id)

        if not await repo.transition(loan_id, target, **values):
            current = await repo.get(loan_id)
            raise InvalidTransitionError(loan_id, current.status if current else loan.status, target.value)

        return loan

    async def register_return(self, loan_id: int) -> StoredLoan:
        """
        Close an active loan and put the copy back.

        Raises:
            NotFoundError: loan does not exist
            InvalidTransitionError: loan is not active
        """
        async with self.session_factory.begin() as session:
            loan = await self._transition(
                session,
                loan_id,
                LoanStatus.RETURNED,
                actual_return_date=self.clock(),
            )
            await InventoryController(session).increment_availability(loan.book_id)
            returned = await LoanRepository(session).get(loan_id)

        logger.info(f"Loan {loan_id} returned: book={loan.book_id}")
        return returned

    async def mark_overdue(self, loan_id: int) -> StoredLoan:
        """
        Flag an active loan as overdue. Inventory is untouched.

        Raises:
            NotFoundError: loan does not exist
            InvalidTransitionError: loan is not active
        """
        async with self.session_factory.begin() as session:
            await self._transition(session, loan_id, LoanStatus.OVERDUE)
            overdue = await LoanRepository(session).get(loan_id)

        logger.info(f"Loan {loan_id} marked overdue")
        return overdue

    # =========================================================================
    # Predicates
    # =========================================================================

    async def has_active_loans(self, user_id: int) -> bool:
        async with self.session_factory() as session:
            return await LoanRepository(session).has_active_for_user(user_id)

    async def is_book_on_loan(self, book_id: int) -> bool:
        async with self.session_factory() as session:
            return await InventoryController(session).is_book_loaned_out(book_id)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_loan(self, loan_id: int) -> StoredLoan:
        async with self.session_factory() as session:
            loan = await LoanRepository(session).get(loan_id)
        if loan is None:
            raise NotFoundError("Loan", loan_id)
        return loan

    async def get_loan_details(self, loan_id: int) -> StoredLoan:
        """Loan with user name/email and book title/available copies."""
        async with self.session_factory() as session:
            loan = await LoanRepository(session).get(loan_id, with_details=True)
        if loan is None:
            raise NotFoundError("Loan", loan_id)
        return loan

    async def list_loans(self) -> list[StoredLoan]:
        async with self.session_factory() as session:
            return await LoanRepository(session).list_all()

    async def list_loans_page(self, page: int = 1, page_size: int = 10) -> Page:
        async with self.session_factory() as session:
            return await LoanRepository(session).list_page(page, page_size)

    async def list_loans_with_details(self) -> list[StoredLoan]:
        async with self.session_factory() as session:
            return await LoanRepository(session).list_all(with_details=True)

    async def list_by_user(self, user_id: int) -> list[StoredLoan]:
        async with self.session_factory() as session:
            return await LoanRepository(session).list_by_user(user_id)

    async def list_by_user_with_details(self, user_id: int) -> list[StoredLoan]:
        async with self.session_factory() as session:
            return await LoanRepository(session).list_by_user(user_id, with_details=True)

    async def list_by_book(self, book_id: int) -> list[StoredLoan]:
        async with self.session_factory() as session:
            return await LoanRepository(session).list_by_book(book_id)

    async def list_active(self) -> list[StoredLoan]:
        async with self.session_factory() as session:
            return await LoanRepository(session).list_active()

    async def list_overdue(self) -> list[StoredLoan]:
        """Active loans past their expected return date, soonest due first."""
        async with self.session_factory() as session:
            return await LoanRepository(session).list_overdue(self.clock())

    async def list_by_status(self, status: str) -> list[StoredLoan]:
        """
        Raises:
            ValidationError: unknown status
        """
        loan_status = parse_status(status)
        async with self.session_factory() as session:
            return await LoanRepository(session).list_by_status(loan_status)

    async def get_stats(self) -> dict[str, int]:
        """Totals per status; ``overdue`` counts the computed overdue view."""
        async with self.session_factory() as session:
            repo = LoanRepository(session)
            counts = await repo.count_by_status()
            overdue = await repo.count_overdue(self.clock())

        return {
            "total": sum(counts.values()),
            "active": counts[LoanStatus.ACTIVE.value],
            "returned": counts[LoanStatus.RETURNED.value],
            "overdue": overdue,
        }

    # =========================================================================
    # Maintenance
    # =========================================================================

    async def update_loan(self, loan_id: int, expected_return_date: datetime) -> StoredLoan:
        """
        Move the expected return date. Status is not editable here.

        Raises:
            ValidationError: missing date or not after the loan date
            NotFoundError: loan does not exist
        """
        if expected_return_date is None:
            raise ValidationError("Expected return date is required")
        expected_return_date = as_naive_utc(expected_return_date)

        async with self.session_factory.begin() as session:
            repo = LoanRepository(session)
            loan = await repo.get(loan_id)
            if loan is None:
                raise NotFoundError("Loan", loan_id)
            if expected_return_date <= loan.loan_date:
                raise ValidationError("Expected return date must be after the loan date")

            updated = await repo.update(loan_id, expected_return_date=expected_return_date)

        logger.info(f"Loan {loan_id} due date moved to {expected_return_date.isoformat()}")
        return updated

    async def delete_loan(self, loan_id: int) -> None:
        """
        Raises:
            NotFoundError: loan does not exist
            ConflictError: loan is still active
        """
        async with self.session_factory.begin() as session:
            repo = LoanRepository(session)
            loan = await repo.get(loan_id)
            if loan is None:
                raise NotFoundError("Loan", loan_id)
            if loan.status == LoanStatus.ACTIVE.value:
                raise ConflictError(
                    "Cannot delete an active loan",
                    detail="Register the return before deleting the loan",
                )
            await repo.delete(loan_id)

        logger.info(f"Loan {loan_id} deleted")
