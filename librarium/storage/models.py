"""
Database models for Librarium.

One table per entity, integer primary keys, created/updated timestamps.
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserRole(str, Enum):
    """Caller roles understood by the access layer."""

    ADMIN = "admin"
    REGULAR = "regular"


class LoanStatus(str, Enum):
    """Loan lifecycle states. ``returned`` and ``overdue`` are terminal."""

    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"


class UserModel(Base):
    """Library user."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.REGULAR.value)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    loans = relationship("LoanModel", back_populates="user")


class AuthorModel(Base):
    """Book author."""

    __tablename__ = "authors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, index=True)
    biography = Column(Text)
    birth_date = Column(Date)
    nationality = Column(String(50))

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    books = relationship("BookModel", back_populates="author")


class CategoryModel(Base):
    """Book category."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    books = relationship("BookModel", back_populates="category")


class BookModel(Base):
    """Catalog book. ``available_copies`` is maintained by the inventory controller."""

    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False, index=True)
    synopsis = Column(Text)
    publication_year = Column(Integer, nullable=False)
    available_copies = Column(Integer, nullable=False, default=0)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("authors.id"), nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Many-to-one, always needed for names in responses
    author = relationship("AuthorModel", back_populates="books", lazy="joined")
    category = relationship("CategoryModel", back_populates="books", lazy="joined")
    loans = relationship("LoanModel", back_populates="book")

    __table_args__ = (
        CheckConstraint("available_copies >= 0", name="ck_books_available_copies"),
        Index("idx_books_created", "created_at"),
    )


class LoanModel(Base):
    """A borrow event of one book by one user."""

    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)

    loan_date = Column(DateTime, nullable=False)
    expected_return_date = Column(DateTime, nullable=False)
    actual_return_date = Column(DateTime)
    status = Column(String(20), nullable=False, default=LoanStatus.ACTIVE.value)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("UserModel", back_populates="loans")
    book = relationship("BookModel", back_populates="loans")

    __table_args__ = (
        CheckConstraint(
            "expected_return_date > loan_date",
            name="ck_loans_return_after_loan",
        ),
        Index("idx_loans_status_due", "status", "expected_return_date"),
    )
