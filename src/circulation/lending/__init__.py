"""Book lending module.

Provides functionality for:
- Borrowing books against the available inventory
- Renewing loans up to the renewal limit
- Returning books and restocking inventory
- Loan listings per user and across the library
"""

from .manager import LendingManager
from .models import Loan
from .schemas import LoanResponse, LoanWithBook, LoanWithUserAndBook

__all__ = [
    "LendingManager",
    "Loan",
    "LoanResponse",
    "LoanWithBook",
    "LoanWithUserAndBook",
]
