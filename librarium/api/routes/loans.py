"""
Loan API Routes

Loan lifecycle (create, return, mark overdue), ledger listings,
statistics and the availability predicates.
"""

from fastapi import APIRouter, Depends, Query, Response, status

from librarium.api.dependencies import get_current_identity, get_loan_service
from librarium.api.schemas import (
    BookOnLoanResponse,
    ErrorResponse,
    LoanCreate,
    LoanDetailResponse,
    LoanResponse,
    LoanStatsResponse,
    LoanUpdate,
    PageResponse,
    UserActiveLoansResponse,
)
from librarium.circulation.loans import LoanService

router = APIRouter(
    prefix="/loans",
    tags=["loans"],
    dependencies=[Depends(get_current_identity)],
)

TRANSITION_ERRORS = {
    404: {"model": ErrorResponse, "description": "Loan not found"},
    409: {"model": ErrorResponse, "description": "Loan is not active"},
}


# =============================================================================
# Listings
# =============================================================================

@router.get("", response_model=list[LoanResponse])
async def list_loans(loans: LoanService = Depends(get_loan_service)):
    """All loans, newest first."""
    return await loans.list_loans()


@router.get("/page", response_model=PageResponse[LoanResponse], responses={400: {"model": ErrorResponse}})
async def list_loans_page(
    page: int = Query(1),
    page_size: int = Query(10),
    loans: LoanService = Depends(get_loan_service),
):
    return (await loans.list_loans_page(page, page_size)).to_dict()


@router.get("/details", response_model=list[LoanDetailResponse])
async def list_loans_with_details(loans: LoanService = Depends(get_loan_service)):
    return [loan.to_dict() for loan in await loans.list_loans_with_details()]


@router.get("/stats", response_model=LoanStatsResponse)
async def get_loan_stats(loans: LoanService = Depends(get_loan_service)):
    """Totals per status; overdue counts active loans past due."""
    return await loans.get_stats()


@router.get("/active", response_model=list[LoanResponse])
async def list_active_loans(loans: LoanService = Depends(get_loan_service)):
    return await loans.list_active()


@router.get("/overdue", response_model=list[LoanResponse])
async def list_overdue_loans(loans: LoanService = Depends(get_loan_service)):
    """Active loans whose expected return date has passed."""
    return await loans.list_overdue()


@router.get("/status/{loan_status}", response_model=list[LoanResponse], responses={400: {"model": ErrorResponse}})
async def list_loans_by_status(loan_status: str, loans: LoanService = Depends(get_loan_service)):
    return await loans.list_by_status(loan_status)


@router.get("/users/{user_id}", response_model=list[LoanResponse])
async def list_loans_by_user(user_id: int, loans: LoanService = Depends(get_loan_service)):
    return await loans.list_by_user(user_id)


@router.get("/users/{user_id}/details", response_model=list[LoanDetailResponse])
async def list_loans_by_user_with_details(user_id: int, loans: LoanService = Depends(get_loan_service)):
    return [loan.to_dict() for loan in await loans.list_by_user_with_details(user_id)]


@router.get("/books/{book_id}", response_model=list[LoanResponse])
async def list_loans_by_book(book_id: int, loans: LoanService = Depends(get_loan_service)):
    return await loans.list_by_book(book_id)


@router.get("/check/users/{user_id}/active", response_model=UserActiveLoansResponse)
async def check_user_active_loans(user_id: int, loans: LoanService = Depends(get_loan_service)):
    return {"user_id": user_id, "has_active_loans": await loans.has_active_loans(user_id)}


@router.get("/check/books/{book_id}/on-loan", response_model=BookOnLoanResponse)
async def check_book_on_loan(book_id: int, loans: LoanService = Depends(get_loan_service)):
    return {"book_id": book_id, "on_loan": await loans.is_book_on_loan(book_id)}


# =============================================================================
# Single Loan
# =============================================================================

@router.get("/{loan_id}", response_model=LoanResponse, responses={404: {"model": ErrorResponse}})
async def get_loan(loan_id: int, loans: LoanService = Depends(get_loan_service)):
    return await loans.get_loan(loan_id)


@router.get("/{loan_id}/details", response_model=LoanDetailResponse, responses={404: {"model": ErrorResponse}})
async def get_loan_details(loan_id: int, loans: LoanService = Depends(get_loan_service)):
    return (await loans.get_loan_details(loan_id)).to_dict()


@router.post(
    "",
    response_model=LoanResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Missing field or bad dates"},
        404: {"model": ErrorResponse, "description": "User or book not found"},
        409: {"model": ErrorResponse, "description": "No copies available"},
    },
)
async def create_loan(payload: LoanCreate, loans: LoanService = Depends(get_loan_service)):
    """Open a loan; takes one copy of the book."""
    return await loans.create_loan(
        user_id=payload.user_id,
        book_id=payload.book_id,
        loan_date=payload.loan_date,
        expected_return_date=payload.expected_return_date,
    )


@router.put(
    "/{loan_id}",
    response_model=LoanResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_loan(
    loan_id: int,
    payload: LoanUpdate,
    loans: LoanService = Depends(get_loan_service),
):
    """Move the expected return date."""
    return await loans.update_loan(loan_id, payload.expected_return_date)


@router.delete(
    "/{loan_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse, "description": "Loan is active"}},
)
async def delete_loan(loan_id: int, loans: LoanService = Depends(get_loan_service)):
    await loans.delete_loan(loan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{loan_id}/return", response_model=LoanResponse, responses=TRANSITION_ERRORS)
async def register_return(loan_id: int, loans: LoanService = Depends(get_loan_service)):
    """Close an active loan; puts the copy back."""
    return await loans.register_return(loan_id)


@router.post("/{loan_id}/mark-overdue", response_model=LoanResponse, responses=TRANSITION_ERRORS)
async def mark_overdue(loan_id: int, loans: LoanService = Depends(get_loan_service)):
    return await loans.mark_overdue(loan_id)
