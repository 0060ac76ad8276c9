"""SQLAlchemy ORM models for the library store.

Tables:
- users: Registered library patrons
- books: Catalog records with their inventory counters
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .schemas import AgeRating


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class User(Base):
    """User model - a patron who can borrow books."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(
        String(32), default=utc_now_iso, onupdate=utc_now_iso
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"


class Book(Base):
    """Book model - catalog data plus the inventory counters."""

    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint("available_quantity >= 0", name="ck_books_available_non_negative"),
        CheckConstraint("total_quantity >= 0", name="ck_books_total_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Core fields
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    publisher: Mapped[str] = mapped_column(String(500), nullable=False)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    age_rating: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AgeRating.GENERAL.value
    )
    cover_image: Mapped[Optional[str]] = mapped_column(String(255))  # upload filename

    # Inventory
    total_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(
        String(32), default=utc_now_iso, onupdate=utc_now_iso
    )

    def __repr__(self) -> str:
        return (
            f"<Book(id={self.id}, title='{self.title}', "
            f"available={self.available_quantity}/{self.total_quantity})>"
        )

    @property
    def on_loan(self) -> int:
        """Copies currently checked out."""
        return self.total_quantity - self.available_quantity

    @property
    def is_available(self) -> bool:
        """Whether at least one copy can be borrowed."""
        return self.available_quantity > 0
