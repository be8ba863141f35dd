"""
Storage Module for Librarium

Persistent storage for the catalog and the loan ledger:
- SQLAlchemy async ORM models
- Repositories returning dataclass snapshots
- Aggregation queries for recommendations
"""

from librarium.storage.models import (
    Base,
    UserModel,
    AuthorModel,
    CategoryModel,
    BookModel,
    LoanModel,
    LoanStatus,
    UserRole,
)
from librarium.storage.repository import (
    Page,
    ModelRepository,
    validate_page,
)
from librarium.storage.book_repository import (
    AuthorRepository,
    CategoryRepository,
    BookRepository,
    StoredAuthor,
    StoredCategory,
    StoredBook,
)
from librarium.storage.loan_repository import (
    LoanRepository,
    StoredLoan,
)
from librarium.storage.user_repository import (
    UserRepository,
    StoredUser,
)
from librarium.storage.recommendation_repository import (
    RecommendationRepository,
    FavoriteEntry,
)
from librarium.storage.database import (
    create_engine,
    create_session_factory,
    create_tables,
)

__all__ = [
    # Models
    "Base",
    "UserModel",
    "AuthorModel",
    "CategoryModel",
    "BookModel",
    "LoanModel",
    "LoanStatus",
    "UserRole",
    # Repositories
    "Page",
    "ModelRepository",
    "validate_page",
    "AuthorRepository",
    "CategoryRepository",
    "BookRepository",
    "StoredAuthor",
    "StoredCategory",
    "StoredBook",
    "LoanRepository",
    "StoredLoan",
    "UserRepository",
    "StoredUser",
    "RecommendationRepository",
    "FavoriteEntry",
    # Database
    "create_engine",
    "create_session_factory",
    "create_tables",
]
