"""
Unit tests for the loan lifecycle manager.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from librarium.circulation.loans import LoanService, as_naive_utc, parse_status
from librarium.exceptions import (
    ConflictError,
    InvalidTransitionError,
    InventoryExhaustedError,
    NotFoundError,
    ValidationError,
)
from librarium.storage.models import LoanStatus

from tests.conftest import DUE_DATE, LOAN_DATE, LibrarySeeder


@pytest.fixture
async def library(seed):
    """A reader and a single-copy book."""
    user = await seed.user()
    author = await seed.author()
    category = await seed.category()
    book = await seed.book("Memórias Póstumas", author.id, category.id, copies=1)
    return user, book


class TestHelpers:
    """Tests for loan helper functions."""

    def test_as_naive_utc_converts_aware(self):
        aware = datetime(2024, 3, 1, 12, 0, tzinfo=timezone(timedelta(hours=-3)))
        assert as_naive_utc(aware) == datetime(2024, 3, 1, 15, 0)

    def test_as_naive_utc_keeps_naive(self):
        assert as_naive_utc(LOAN_DATE) is LOAN_DATE

    def test_parse_status(self):
        assert parse_status("overdue") is LoanStatus.OVERDUE

        with pytest.raises(ValidationError):
            parse_status("lost")


class TestCreateLoan:
    """Tests for opening loans."""

    async def test_create_loan(self, loan_service, seed, library):
        user, book = library

        loan = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)

        assert loan.status == LoanStatus.ACTIVE.value
        assert loan.loan_date == LOAN_DATE
        assert loan.expected_return_date == DUE_DATE
        assert loan.actual_return_date is None
        assert (await seed.books.get_book(book.id)).available_copies == 0

    @pytest.mark.parametrize("days", [0, -1])
    async def test_return_date_must_follow_loan_date(self, loan_service, seed, library, days):
        user, book = library

        with pytest.raises(ValidationError):
            await loan_service.create_loan(user.id, book.id, LOAN_DATE, LOAN_DATE + timedelta(days=days))

        assert (await seed.books.get_book(book.id)).available_copies == 1

    async def test_missing_fields(self, loan_service, library):
        user, book = library

        with pytest.raises(ValidationError):
            await loan_service.create_loan(user.id, None, LOAN_DATE, DUE_DATE)
        with pytest.raises(ValidationError):
            await loan_service.create_loan(user.id, book.id, LOAN_DATE, None)

    async def test_unknown_user(self, loan_service, seed, library):
        _, book = library

        with pytest.raises(NotFoundError) as exc:
            await loan_service.create_loan(999, book.id, LOAN_DATE, DUE_DATE)

        assert exc.value.resource == "User"
        assert (await seed.books.get_book(book.id)).available_copies == 1

    async def test_unknown_book(self, loan_service, library):
        user, _ = library

        with pytest.raises(NotFoundError) as exc:
            await loan_service.create_loan(user.id, 999, LOAN_DATE, DUE_DATE)

        assert exc.value.resource == "Book"
        assert await loan_service.list_loans() == []

    async def test_exhausted_book(self, loan_service, seed, library):
        user, book = library
        other = await seed.user(name="Another Reader")
        await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)

        with pytest.raises(InventoryExhaustedError):
            await loan_service.create_loan(other.id, book.id, LOAN_DATE, DUE_DATE)

        assert len(await loan_service.list_loans()) == 1


class TestTransitions:
    """Tests for return and overdue transitions."""

    async def test_return_restores_copy(self, loan_service, seed, library):
        user, book = library
        loan = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)

        returned = await loan_service.register_return(loan.id)

        assert returned.status == LoanStatus.RETURNED.value
        assert returned.actual_return_date is not None
        assert (await seed.books.get_book(book.id)).available_copies == 1

    async def test_second_return_rejected(self, loan_service, seed, library):
        user, book = library
        loan = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)
        await loan_service.register_return(loan.id)

        with pytest.raises(InvalidTransitionError) as exc:
            await loan_service.register_return(loan.id)

        assert exc.value.current == LoanStatus.RETURNED.value
        assert exc.value.code == "INVALID_TRANSITION"
        assert (await seed.books.get_book(book.id)).available_copies == 1

    async def test_return_uses_clock(self, session_factory, library):
        user, book = library
        returned_at = datetime(2024, 3, 10, 9, 30)
        loans = LoanService(session_factory, clock=lambda: returned_at)
        loan = await loans.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)

        returned = await loans.register_return(loan.id)

        assert returned.actual_return_date == returned_at

    async def test_mark_overdue_keeps_stock(self, loan_service, seed, library):
        user, book = library
        loan = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)

        overdue = await loan_service.mark_overdue(loan.id)

        assert overdue.status == LoanStatus.OVERDUE.value
        assert (await seed.books.get_book(book.id)).available_copies == 0

    async def test_overdue_is_terminal(self, loan_service, library):
        user, book = library
        loan = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)
        await loan_service.mark_overdue(loan.id)

        with pytest.raises(InvalidTransitionError):
            await loan_service.register_return(loan.id)
        with pytest.raises(InvalidTransitionError):
            await loan_service.mark_overdue(loan.id)

    async def test_unknown_loan(self, loan_service):
        with pytest.raises(NotFoundError):
            await loan_service.register_return(42)
        with pytest.raises(NotFoundError):
            await loan_service.mark_overdue(42)

    async def test_borrow_exhaust_return_reborrow(self, loan_service, seed, library):
        user, book = library
        other = await seed.user(name="Second Reader")

        first = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)
        with pytest.raises(InventoryExhaustedError):
            await loan_service.create_loan(other.id, book.id, LOAN_DATE, DUE_DATE)

        await loan_service.register_return(first.id)
        second = await loan_service.create_loan(other.id, book.id, LOAN_DATE, DUE_DATE)

        assert second.user_id == other.id
        assert (await seed.books.get_book(book.id)).available_copies == 0


class TestQueries:
    """Tests for ledger listings and predicates."""

    async def test_list_overdue_is_computed(self, session_factory, seed, library):
        user, book = library
        spare = await seed.book("Quincas Borba", book.author_id, book.category_id, copies=1)
        now = LOAN_DATE + timedelta(days=10)
        loans = LoanService(session_factory, clock=lambda: now)

        late = await loans.create_loan(user.id, book.id, LOAN_DATE, LOAN_DATE + timedelta(days=7))
        await loans.create_loan(user.id, spare.id, LOAN_DATE, LOAN_DATE + timedelta(days=30))

        overdue = await loans.list_overdue()

        assert [loan.id for loan in overdue] == [late.id]
        assert overdue[0].status == LoanStatus.ACTIVE.value

    async def test_returned_loans_never_overdue(self, session_factory, library):
        user, book = library
        loans = LoanService(session_factory, clock=lambda: LOAN_DATE + timedelta(days=60))
        loan = await loans.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)
        await loans.register_return(loan.id)

        assert await loans.list_overdue() == []

    async def test_stats(self, session_factory, seed, library):
        user, book = library
        more = await seed.book("Helena", book.author_id, book.category_id, copies=5)
        loans = LoanService(session_factory, clock=lambda: LOAN_DATE + timedelta(days=20))

        returned = await loans.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)
        await loans.register_return(returned.id)
        await loans.create_loan(user.id, more.id, LOAN_DATE, DUE_DATE)
        await loans.create_loan(user.id, more.id, LOAN_DATE, LOAN_DATE + timedelta(days=30))

        stats = await loans.get_stats()

        assert stats == {"total": 3, "active": 2, "returned": 1, "overdue": 1}

    async def test_list_by_status(self, loan_service, library):
        user, book = library
        loan = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)
        await loan_service.mark_overdue(loan.id)

        assert [l.id for l in await loan_service.list_by_status("overdue")] == [loan.id]
        assert await loan_service.list_by_status("active") == []

        with pytest.raises(ValidationError):
            await loan_service.list_by_status("missing")

    async def test_details(self, loan_service, library):
        user, book = library
        loan = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)

        details = await loan_service.get_loan_details(loan.id)
        data = details.to_dict()

        assert details.user_email == user.email
        assert details.book_title == book.title
        assert details.book_available_copies == 0
        assert data["user"]["name"] == user.name
        assert data["book"]["title"] == book.title

    async def test_list_by_user_and_book(self, loan_service, seed, library):
        user, book = library
        other = await seed.user(name="Elsewhere")
        loan = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)

        assert [l.id for l in await loan_service.list_by_user(user.id)] == [loan.id]
        assert await loan_service.list_by_user(other.id) == []
        assert [l.id for l in await loan_service.list_by_book(book.id)] == [loan.id]
        assert (await loan_service.list_by_user_with_details(user.id))[0].book_title == book.title

    async def test_predicates(self, loan_service, library):
        user, book = library
        assert await loan_service.has_active_loans(user.id) is False
        assert await loan_service.is_book_on_loan(book.id) is False

        loan = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)
        assert await loan_service.has_active_loans(user.id) is True
        assert await loan_service.is_book_on_loan(book.id) is True

        await loan_service.register_return(loan.id)
        assert await loan_service.has_active_loans(user.id) is False

    async def test_pagination(self, loan_service, seed, library):
        user, book = library
        stock = await seed.book("Iaiá Garcia", book.author_id, book.category_id, copies=5)
        for _ in range(5):
            await loan_service.create_loan(user.id, stock.id, LOAN_DATE, DUE_DATE)

        page = await loan_service.list_loans_page(page=2, page_size=2)

        assert page.total == 5
        assert page.total_pages == 3
        assert len(page.items) == 2

        with pytest.raises(ValidationError):
            await loan_service.list_loans_page(page=0, page_size=10)
        with pytest.raises(ValidationError):
            await loan_service.list_loans_page(page=1, page_size=101)


class TestMaintenance:
    """Tests for editing and deleting loans."""

    async def test_update_expected_return(self, loan_service, library):
        user, book = library
        loan = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)
        new_due = DUE_DATE + timedelta(days=7)

        updated = await loan_service.update_loan(loan.id, new_due)

        assert updated.expected_return_date == new_due
        assert updated.status == LoanStatus.ACTIVE.value

    async def test_update_rejects_early_date(self, loan_service, library):
        user, book = library
        loan = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)

        with pytest.raises(ValidationError):
            await loan_service.update_loan(loan.id, LOAN_DATE - timedelta(days=1))

    async def test_delete_active_loan_conflicts(self, loan_service, library):
        user, book = library
        loan = await loan_service.create_loan(user.id, book.id, LOAN_DATE, DUE_DATE)

        with pytest.raises(ConflictError):
            await loan_service.delete_loan(loan.id)

        await loan_service.register_return(loan.id)
        await loan_service.delete_loan(loan.id)

        with pytest.raises(NotFoundError):
            await loan_service.get_loan(loan.id)


class TestConcurrentTransitions:
    """Racing callers on a file-backed database."""

    async def test_last_copy_single_winner(self, file_session_factory):
        seed = LibrarySeeder(file_session_factory)
        author = await seed.author()
        category = await seed.category()
        book = await seed.book("A Mão e a Luva", author.id, category.id, copies=1)
        first = await seed.user(name="First")
        second = await seed.user(name="Second")

        results = await asyncio.gather(
            seed.loans.create_loan(first.id, book.id, LOAN_DATE, DUE_DATE),
            seed.loans.create_loan(second.id, book.id, LOAN_DATE, DUE_DATE),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], InventoryExhaustedError)
        assert (await seed.books.get_book(book.id)).available_copies == 0

    async def test_concurrent_returns_increment_once(self, file_session_factory):
        seed = LibrarySeeder(file_session_factory)
        author = await seed.author()
        category = await seed.category()
        book = await seed.book("Ressurreição", author.id, category.id, copies=1)
        user = await seed.user()
        loan = await seed.loan(user.id, book.id)

        results = await asyncio.gather(
            *(seed.loans.register_return(loan.id) for _ in range(4)),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        assert len(successes) == 1
        assert all(isinstance(r, InvalidTransitionError) for r in results if isinstance(r, Exception))
        assert (await seed.books.get_book(book.id)).available_copies == 1
