"""Pydantic schemas for book lending."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from ..db.schemas import BookBrief, BookSummary, UserBrief


class LoanResponse(BaseModel):
    """Schema for loan responses."""

    id: UUID
    user_id: UUID
    book_id: UUID
    due_date: datetime
    renewal_count: int
    created_at: datetime

    model_config = {"from_attributes": True}


class LoanWithBook(LoanResponse):
    """A user's loan joined with the borrowed book's summary."""

    book: Optional[BookSummary] = None


class LoanWithUserAndBook(LoanResponse):
    """A loan joined with reduced borrower and book projections."""

    user: Optional[UserBrief] = None
    book: Optional[BookBrief] = None
