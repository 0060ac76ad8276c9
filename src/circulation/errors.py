"""Exceptions raised by the circulation managers."""

from typing import Optional


class CirculationError(Exception):
    """Base exception for circulation errors."""

    pass


class NotFoundError(CirculationError):
    """Raised when a user, book or loan id does not resolve."""

    def __init__(self, entity: str, entity_id: str, message: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message or f"{entity.capitalize()} not found: {entity_id}")


class IntegrityFaultError(NotFoundError):
    """Raised when a loan references a book that no longer exists."""

    def __init__(self, loan_id: str, book_id: str):
        self.loan_id = loan_id
        super().__init__(
            "book",
            book_id,
            f"Loan {loan_id} references missing book {book_id}",
        )


class UnavailableError(CirculationError):
    """Raised when a book has no copies left to lend."""

    def __init__(self, book_id: str):
        self.book_id = book_id
        super().__init__(f"No copies available for book {book_id}")


class RenewalLimitReachedError(CirculationError):
    """Raised when a loan has already been renewed the maximum number of times."""

    def __init__(self, loan_id: str, limit: int):
        self.loan_id = loan_id
        self.limit = limit
        super().__init__(f"Loan {loan_id} has already been renewed {limit} times")


class InventoryError(CirculationError):
    """Raised when a catalog change would break the inventory counts."""

    pass


class DuplicateEmailError(CirculationError):
    """Raised when an email address is already registered."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email already registered: {email}")
