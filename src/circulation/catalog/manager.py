"""Catalog manager for book records."""

import logging
from typing import Optional

from ..db.models import Book
from ..db.schemas import BookCreate, BookUpdate
from ..db.sqlite import Database, get_db
from ..errors import InventoryError, NotFoundError
from ..uploads import CoverStorage

logger = logging.getLogger(__name__)

# Fields copied with the "submitted or current" fallback
TEXT_FIELDS = ("title", "author", "publisher", "subject")


class CatalogManager:
    """Manages book records and their cover images."""

    def __init__(
        self,
        db: Optional[Database] = None,
        covers: Optional[CoverStorage] = None,
    ):
        """Initialize catalog manager.

        Args:
            db: Database instance
            covers: Cover image storage
        """
        self.db = db or get_db()
        self.covers = covers or CoverStorage()

    def create_book(
        self,
        data: BookCreate,
        cover: Optional[tuple[bytes, str]] = None,
    ) -> Book:
        """Add a book to the catalog.

        Args:
            data: Book creation data
            cover: Optional (payload, original filename) of a cover image

        Returns:
            Created book with every copy available
        """
        cover_image = self.covers.save(*cover) if cover else None
        book = self.db.create_book(data, cover_image=cover_image)
        logger.info("Added book %s '%s' x%d", book.id, book.title, book.total_quantity)
        return book

    def list_books(self) -> list[Book]:
        """List all books ordered by title."""
        return self.db.list_books()

    def get_book(self, book_id: str) -> Book:
        """Get a book by ID.

        Raises:
            NotFoundError: book does not exist
        """
        book = self.db.get_book(book_id)
        if not book:
            raise NotFoundError("book", book_id)
        return book

    def update_book(
        self,
        book_id: str,
        data: BookUpdate,
        cover: Optional[tuple[bytes, str]] = None,
    ) -> Book:
        """Update a book, keeping the stored value for any falsy field.

        A submitted ``""`` or ``0`` counts as "not provided", the same as an
        omitted field. Changing the total quantity shifts the available
        quantity by the same amount.

        Args:
            book_id: Book ID
            data: Update data
            cover: Optional replacement cover image

        Returns:
            Updated book

        Raises:
            NotFoundError: book does not exist
            InventoryError: new total is below the copies currently on loan
        """
        with self.db.get_session() as session:
            book = self.db.get_book(book_id, session)
            if not book:
                raise NotFoundError("book", book_id)

            values = {
                field: getattr(data, field) or getattr(book, field) for field in TEXT_FIELDS
            }
            values["age_rating"] = (
                data.age_rating.value if data.age_rating else book.age_rating
            )

            total = data.total_quantity or book.total_quantity
            if total != book.total_quantity:
                on_loan = book.total_quantity - book.available_quantity
                if total < on_loan:
                    raise InventoryError(
                        f"Cannot set {total} copies: {on_loan} are on loan"
                    )
                if not self.db.compare_and_set_available(
                    book_id, book.available_quantity, total - on_loan, session
                ):
                    raise InventoryError(
                        f"Inventory of book {book_id} changed during update, try again"
                    )
                values["total_quantity"] = total

            if cover:
                values["cover_image"] = self.covers.save(*cover)

            book = self.db.update_book(book_id, values, session)
            session.refresh(book)
            session.expunge(book)

        logger.info("Updated book %s", book_id)
        return book
