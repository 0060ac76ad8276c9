"""SQLAlchemy models for book lending.

Tables:
- loans: One checked-out copy of a book held by a user
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import Base, Book, User, generate_uuid, utc_now_iso


class Loan(Base):
    """Loan model - a book unit checked out by a user until a due date."""

    __tablename__ = "loans"
    __table_args__ = (
        CheckConstraint(
            "renewal_count >= 0 AND renewal_count <= 2",
            name="ck_loans_renewal_count",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Borrower
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )

    # Book being borrowed
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id"), nullable=False, index=True
    )

    due_date: Mapped[str] = mapped_column(String(32), nullable=False)  # ISO datetime, UTC
    renewal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(
        String(32), default=utc_now_iso, onupdate=utc_now_iso
    )

    # Relationships
    user: Mapped["User"] = relationship("User")
    book: Mapped[Optional["Book"]] = relationship("Book")

    def __repr__(self) -> str:
        return (
            f"<Loan(id={self.id}, book_id={self.book_id}, user_id={self.user_id}, "
            f"renewals={self.renewal_count})>"
        )

    @property
    def due_at(self) -> datetime:
        """Due date as an aware datetime."""
        due = datetime.fromisoformat(self.due_date)
        if due.tzinfo is None:
            due = due.replace(tzinfo=timezone.utc)
        return due
