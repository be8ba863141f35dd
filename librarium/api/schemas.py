"""
API Schemas for Librarium

Pydantic models for request validation and response serialization:
- User and auth models
- Catalog models (authors, categories, books)
- Loan models
- Recommendation models

Design Decisions:
1. Shape checks here, business rules in the services
2. Separate Request/Response: Clear distinction between inputs and outputs
3. Partial updates: every Update field is optional
"""

from datetime import date, datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from librarium.storage.models import LoanStatus, UserRole

T = TypeVar("T")


# =============================================================================
# Shared
# =============================================================================

class PageResponse(BaseModel, Generic[T]):
    """One page of a listing."""

    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str
    code: str
    detail: Optional[str] = None
    timestamp: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Book not available for loan",
                "code": "INVENTORY_EXHAUSTED",
                "detail": "Book 7 has no available copies",
                "timestamp": "2024-01-15T10:30:00Z",
            }
        }
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# =============================================================================
# User & Auth Schemas
# =============================================================================

class UserCreate(BaseModel):
    """User creation request."""

    name: str = Field(..., max_length=100)
    email: str = Field(..., max_length=100)
    password: str
    role: Optional[UserRole] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Ana Souza",
                "email": "ana@example.com",
                "password": "secret123",
            }
        }
    )


class UserUpdate(BaseModel):
    """User update request (partial)."""

    name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=100)
    password: Optional[str] = None
    role: Optional[UserRole] = None


class UserResponse(BaseModel):
    """User response model. Never carries the password hash."""

    id: int
    name: str
    email: str
    role: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RegisterResponse(TokenResponse):
    user: UserResponse


# =============================================================================
# Catalog Schemas
# =============================================================================

class AuthorCreate(BaseModel):
    """Author creation request."""

    name: str = Field(..., max_length=100)
    biography: Optional[str] = None
    birth_date: Optional[date] = None
    nationality: Optional[str] = Field(None, max_length=50)


class AuthorUpdate(BaseModel):
    """Author update request (partial)."""

    name: Optional[str] = Field(None, max_length=100)
    biography: Optional[str] = None
    birth_date: Optional[date] = None
    nationality: Optional[str] = Field(None, max_length=50)


class AuthorResponse(AuthorCreate):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CategoryCreate(BaseModel):
    """Category creation request."""

    name: str = Field(..., max_length=100)
    description: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None


class CategoryResponse(CategoryCreate):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookCreate(BaseModel):
    """Book creation request."""

    title: str = Field(..., max_length=200)
    synopsis: Optional[str] = None
    publication_year: int
    available_copies: int = 0
    author_id: int
    category_id: int

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Dom Casmurro",
                "synopsis": "Bentinho recalls his life and his jealousy of Capitu.",
                "publication_year": 1899,
                "available_copies": 3,
                "author_id": 1,
                "category_id": 2,
            }
        }
    )


class BookUpdate(BaseModel):
    """Book update request (partial)."""

    title: Optional[str] = Field(None, max_length=200)
    synopsis: Optional[str] = None
    publication_year: Optional[int] = None
    available_copies: Optional[int] = None
    author_id: Optional[int] = None
    category_id: Optional[int] = None


class BookResponse(BaseModel):
    """Book response model."""

    id: int
    title: str
    synopsis: Optional[str] = None
    publication_year: int
    available_copies: int
    author_id: int
    author_name: Optional[str] = None
    category_id: int
    category_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CountResponse(BaseModel):
    total: int


# =============================================================================
# Loan Schemas
# =============================================================================

class LoanCreate(BaseModel):
    """Loan creation request."""

    user_id: int
    book_id: int
    loan_date: datetime
    expected_return_date: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "user_id": 1,
                "book_id": 7,
                "loan_date": "2024-03-01T10:00:00Z",
                "expected_return_date": "2024-03-15T10:00:00Z",
            }
        }
    )


class LoanUpdate(BaseModel):
    """Only the expected return date is editable."""

    expected_return_date: datetime


class LoanResponse(BaseModel):
    """Loan response model."""

    id: int
    user_id: int
    book_id: int
    loan_date: datetime
    expected_return_date: datetime
    actual_return_date: Optional[datetime] = None
    status: LoanStatus

    model_config = ConfigDict(from_attributes=True)


class LoanUserSummary(BaseModel):
    id: int
    name: str
    email: str


class LoanBookSummary(BaseModel):
    id: int
    title: str
    available_copies: int


class LoanDetailResponse(LoanResponse):
    """Loan with the borrower and the book."""

    user: LoanUserSummary
    book: LoanBookSummary


class LoanStatsResponse(BaseModel):
    total: int
    active: int
    returned: int
    overdue: int


class UserActiveLoansResponse(BaseModel):
    user_id: int
    has_active_loans: bool


class BookOnLoanResponse(BaseModel):
    book_id: int
    on_loan: bool


# =============================================================================
# Recommendation Schemas
# =============================================================================

class RecommendationResponse(BaseModel):
    """A single recommendation."""

    book: BookResponse
    score: int
    reason: str
    type: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "book": {
                    "id": 12,
                    "title": "Memórias Póstumas de Brás Cubas",
                    "publication_year": 1881,
                    "available_copies": 2,
                    "author_id": 1,
                    "author_name": "Machado de Assis",
                    "category_id": 2,
                    "category_name": "Romance",
                },
                "score": 100,
                "reason": "favorite category: Romance",
                "type": "category",
            }
        }
    )


class FavoriteResponse(BaseModel):
    id: int
    name: str
    total: int


class PreferencesResponse(BaseModel):
    """Most borrowed categories and authors."""

    categories: list[FavoriteResponse]
    authors: list[FavoriteResponse]
