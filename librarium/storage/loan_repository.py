"""
Loan ledger storage for Librarium.

Persists loan records and answers the ledger queries the lifecycle
manager needs:
- Listings by user, book and status, optionally with user/book details
- The computed overdue view (active and past the expected return date)
- Status-guarded transitions (``UPDATE ... WHERE status = 'active'``)
- Per-status counts

Design Decisions:
1. Transitions are conditional UPDATEs so concurrent callers cannot both win
2. Detail rows use explicit joinedload; plain rows never touch relationships
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import joinedload

from librarium.storage.models import LoanModel, LoanStatus
from librarium.storage.repository import ModelRepository, Page, validate_page


@dataclass
class StoredLoan:
    """Data class for loan data transfer."""

    id: int
    user_id: int
    book_id: int
    loan_date: datetime
    expected_return_date: datetime
    status: str
    actual_return_date: Optional[datetime] = None

    # Present only on detail queries
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    book_title: Optional[str] = None
    book_available_copies: Optional[int] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: LoanModel, with_details: bool = False) -> "StoredLoan":
        """Create from SQLAlchemy model. ``with_details`` requires user and book loaded."""
        loan = cls(
            id=model.id,
            user_id=model.user_id,
            book_id=model.book_id,
            loan_date=model.loan_date,
            expected_return_date=model.expected_return_date,
            actual_return_date=model.actual_return_date,
            status=model.status,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
        if with_details:
            loan.user_name = model.user.name
            loan.user_email = model.user.email
            loan.book_title = model.book.title
            loan.book_available_copies = model.book.available_copies
        return loan

    @property
    def has_details(self) -> bool:
        return self.user_name is not None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "loan_date": self.loan_date.isoformat(),
            "expected_return_date": self.expected_return_date.isoformat(),
            "actual_return_date": (
                self.actual_return_date.isoformat() if self.actual_return_date else None
            ),
            "status": self.status,
        }
        if self.has_details:
            data["user"] = {"id": self.user_id, "name": self.user_name, "email": self.user_email}
            data["book"] = {
                "id": self.book_id,
                "title": self.book_title,
                "available_copies": self.book_available_copies,
            }
        return data


class LoanRepository(ModelRepository):
    """
    Repository for the loan ledger.

    Usage:
        async with session_factory.begin() as session:
            loans = LoanRepository(session)
            moved = await loans.transition(loan_id, LoanStatus.RETURNED, actual_return_date=now)
    """

    model = LoanModel
    stored = StoredLoan
    ordering = (LoanModel.loan_date.desc(), LoanModel.id.desc())

    async def get(self, loan_id: int, with_details: bool = False) -> Optional[StoredLoan]:
        if not with_details:
            return await super().get(loan_id)

        stmt = (
            select(LoanModel)
            .options(joinedload(LoanModel.user), joinedload(LoanModel.book))
            .where(LoanModel.id == loan_id)
            .execution_options(populate_existing=True)
        )
        model = (await self.session.execute(stmt)).scalars().unique().one_or_none()
        return StoredLoan.from_model(model, with_details=True) if model else None

    async def _list(
        self,
        *criteria,
        order_by=None,
        limit: Optional[int] = None,
        offset: int = 0,
        with_details: bool = False,
    ) -> list[StoredLoan]:
        stmt = select(LoanModel).where(*criteria).order_by(*(order_by or self.ordering))
        if with_details:
            stmt = stmt.options(joinedload(LoanModel.user), joinedload(LoanModel.book))
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return [
            StoredLoan.from_model(model, with_details=with_details)
            for model in result.scalars().unique()
        ]

    async def list_all(self, with_details: bool = False) -> list[StoredLoan]:
        return await self._list(with_details=with_details)

    async def list_page(self, page: int, page_size: int) -> Page:
        offset = validate_page(page, page_size)
        items = await self._list(limit=page_size, offset=offset)
        return Page(items=items, total=await self.count(), page=page, page_size=page_size)

    async def list_by_user(self, user_id: int, with_details: bool = False) -> list[StoredLoan]:
        return await self._list(LoanModel.user_id == user_id, with_details=with_details)

    async def list_by_book(self, book_id: int) -> list[StoredLoan]:
        return await self._list(LoanModel.book_id == book_id)

    async def list_by_status(self, status: LoanStatus) -> list[StoredLoan]:
        return await self._list(LoanModel.status == status.value)

    async def list_active(self) -> list[StoredLoan]:
        """Active loans, soonest due first."""
        return await self._list(
            LoanModel.status == LoanStatus.ACTIVE.value,
            order_by=(LoanModel.expected_return_date.asc(), LoanModel.id.asc()),
        )

    async def list_overdue(self, now: datetime) -> list[StoredLoan]:
        """Active loans whose expected return date is before ``now``."""
        return await self._list(
            LoanModel.status == LoanStatus.ACTIVE.value,
            LoanModel.expected_return_date < now,
            order_by=(LoanModel.expected_return_date.asc(), LoanModel.id.asc()),
        )

    async def transition(
        self,
        loan_id: int,
        target: LoanStatus,
        actual_return_date: Optional[datetime] = None,
    ) -> bool:
        """
        Move an active loan to ``target``.

        Args:
            loan_id: Loan ID
            target: Terminal status to assign
            actual_return_date: Written together with the status when given

        Returns:
            True if this call performed the transition, False if the loan
            was not active (or does not exist)
        """
        values = {"status": target.value}
        if actual_return_date is not None:
            values["actual_return_date"] = actual_return_date

        stmt = (
            update(LoanModel)
            .where(
                LoanModel.id == loan_id,
                LoanModel.status == LoanStatus.ACTIVE.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def has_active_for_user(self, user_id: int) -> bool:
        stmt = (
            select(LoanModel.id)
            .where(
                LoanModel.user_id == user_id,
                LoanModel.status == LoanStatus.ACTIVE.value,
            )
            .limit(1)
        )
        return (await self.session.execute(stmt)).first() is not None

    async def count_by_status(self) -> dict[str, int]:
        """Loan counts keyed by stored status; missing statuses count 0."""
        stmt = select(LoanModel.status, func.count(LoanModel.id)).group_by(LoanModel.status)
        counts = {status.value: 0 for status in LoanStatus}
        for status, total in (await self.session.execute(stmt)).all():
            counts[status] = total
        return counts

    async def count_overdue(self, now: datetime) -> int:
        stmt = select(func.count(LoanModel.id)).where(
            LoanModel.status == LoanStatus.ACTIVE.value,
            LoanModel.expected_return_date < now,
        )
        return (await self.session.execute(stmt)).scalar_one()
