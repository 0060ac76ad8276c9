"""Pydantic schemas for data validation.

These schemas define the structure of book and user data accepted by the
catalog and user managers and returned to callers.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AgeRating(str, Enum):
    """Audience age rating of a book."""

    GENERAL = "general"
    CHILDREN = "children"
    YOUNG_ADULT = "young_adult"
    ADULT = "adult"


def _normalize_email(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = str(v).strip().lower()
    if v and "@" not in v:
        raise ValueError("email must contain '@'")
    return v


# ============================================================================
# Book Schemas
# ============================================================================


class BookBase(BaseModel):
    """Base book fields common to create/response."""

    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Primary author")
    total_quantity: int = Field(..., ge=0, description="Copies owned by the library")
    publisher: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    age_rating: AgeRating = Field(default=AgeRating.GENERAL)


class BookCreate(BookBase):
    """Schema for creating a new book."""

    pass


class BookUpdate(BaseModel):
    """Schema for updating an existing book. All fields optional.

    Empty strings and zero are accepted here; the catalog treats any falsy
    value as "not provided" and keeps the stored value.
    """

    title: Optional[str] = None
    author: Optional[str] = None
    total_quantity: Optional[int] = Field(None, ge=0)
    publisher: Optional[str] = None
    subject: Optional[str] = None
    age_rating: Optional[AgeRating] = None

    @field_validator("age_rating", mode="before")
    @classmethod
    def blank_rating(cls, v):
        """Treat a blank rating as not provided."""
        if v == "":
            return None
        return v


class BookResponse(BookBase):
    """Schema for book responses (includes DB-generated fields)."""

    id: UUID
    available_quantity: int
    cover_image: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookSummary(BaseModel):
    """Book fields joined onto a user's loans."""

    id: UUID
    title: str
    author: str
    publisher: str
    subject: str
    age_rating: AgeRating
    cover_image: Optional[str] = None

    model_config = {"from_attributes": True}


class BookBrief(BaseModel):
    """Reduced book projection for the loan overview."""

    title: str
    author: str

    model_config = {"from_attributes": True}


# ============================================================================
# User Schemas
# ============================================================================


class UserCreate(BaseModel):
    """Schema for registering a user."""

    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=200)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def clean_email(cls, v: str) -> str:
        """Lower-case and sanity check the address."""
        return _normalize_email(v)


class UserUpdate(BaseModel):
    """Schema for updating a user. Falsy values keep the stored value."""

    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

    @field_validator("email")
    @classmethod
    def clean_email(cls, v: Optional[str]) -> Optional[str]:
        """Lower-case and sanity check the address."""
        return _normalize_email(v)


class UserResponse(BaseModel):
    """Schema for user responses. Never includes the credential."""

    id: UUID
    name: str
    email: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserBrief(BaseModel):
    """Reduced user projection for the loan overview."""

    name: str
    email: str

    model_config = {"from_attributes": True}
