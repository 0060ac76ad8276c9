"""Database module for local SQLite storage."""

from .models import Base, Book, User
from .schemas import (
    AgeRating,
    BookCreate,
    BookResponse,
    BookUpdate,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from .sqlite import Database, get_db

__all__ = [
    "Base",
    "Book",
    "User",
    "AgeRating",
    "BookCreate",
    "BookResponse",
    "BookUpdate",
    "UserCreate",
    "UserResponse",
    "UserUpdate",
    "Database",
    "get_db",
]
