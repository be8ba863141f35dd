"""
Exception taxonomy for Librarium.

Every failed core operation raises exactly one of these. The API layer
translates them into HTTP responses (see ``api.middleware.error_handler``).
"""

from typing import Optional


class LibraryException(Exception):
    """Base exception for Librarium errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class ValidationError(LibraryException):
    """Missing or malformed input."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            detail=detail,
        )


class NotFoundError(LibraryException):
    """Referenced entity does not exist."""

    def __init__(self, resource: str, identifier):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
            detail=f"No {resource} with identifier '{identifier}' exists",
        )


class ConflictError(LibraryException):
    """Uniqueness violation or a state that forbids the operation."""

    def __init__(
        self,
        message: str,
        detail: Optional[str] = None,
        code: str = "CONFLICT",
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=409,
            detail=detail,
        )


class InvalidTransitionError(ConflictError):
    """Loan status change not allowed from the current status."""

    def __init__(self, loan_id: int, current: str, target: str):
        self.loan_id = loan_id
        self.current = current
        self.target = target
        super().__init__(
            message=f"Cannot move loan from '{current}' to '{target}'",
            detail=f"Loan {loan_id} is '{current}'; only active loans can become '{target}'",
            code="INVALID_TRANSITION",
        )


class InventoryExhaustedError(LibraryException):
    """Book has no available copies left."""

    def __init__(self, book_id: int):
        self.book_id = book_id
        super().__init__(
            message="Book not available for loan",
            code="INVENTORY_EXHAUSTED",
            status_code=409,
            detail=f"Book {book_id} has no available copies",
        )
