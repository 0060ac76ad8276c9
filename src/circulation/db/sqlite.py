"""SQLite database operations.

Handles database connection, session management, and CRUD operations for
users, books and loans. Inventory and renewal counters are only ever
changed through guarded compare-and-set updates.
"""

import os
import threading
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, delete, func, select, update
from sqlalchemy.orm import Session, joinedload, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base, Book, User, utc_now_iso
from .schemas import BookCreate


class Database:
    """Database connection and operations manager."""

    def __init__(self, db_path: Optional[str] = None, timeout: float = 30.0):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses
                     CIRCULATION_DB_PATH env var or default location.
            timeout: Seconds a writer waits for a locked database.
        """
        if db_path is None:
            db_path = os.environ.get(
                "CIRCULATION_DB_PATH",
                str(Path.home() / ".circulation" / "library.db"),
            )

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        # This ensures all sessions share the same in-memory database
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False, "timeout": timeout},
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        # One shared connection backs :memory:, so only one transaction may run at a time
        self._session_lock = threading.RLock() if self._is_memory else None

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        # Import lending models to register them with Base
        from ..lending.models import Loan  # noqa: F401

        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager.

        The session is one transaction: committed when the block exits
        normally, rolled back when it raises. On an in-memory database sessions are serialised across threads.
        """
        with self._session_lock or nullcontext():
            session = self.SessionLocal()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def _run(self, fn, session: Optional[Session], detach: bool = True):
        """Run fn in the given session or in a fresh one, detaching results."""
        if session is not None:
            return fn(session)
        with self.get_session() as s:
            result = fn(s)
            if detach and result is not None:
                for obj in result if isinstance(result, list) else [result]:
                    if isinstance(obj, Base):
                        s.expunge(obj)
            return result

    # ========================================================================
    # Book Operations
    # ========================================================================

    def create_book(
        self,
        book: BookCreate,
        cover_image: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> Book:
        """Create a new book record with every copy available."""

        def _create(s: Session) -> Book:
            db_book = Book(
                title=book.title,
                author=book.author,
                publisher=book.publisher,
                subject=book.subject,
                age_rating=book.age_rating.value,
                total_quantity=book.total_quantity,
                available_quantity=book.total_quantity,
                cover_image=cover_image,
            )
            s.add(db_book)
            s.flush()
            s.refresh(db_book)
            return db_book

        return self._run(_create, session)

    def get_book(self, book_id: str, session: Optional[Session] = None) -> Optional[Book]:
        """Get a book by ID."""
        return self._run(lambda s: s.get(Book, book_id), session)

    def list_books(self, session: Optional[Session] = None) -> list[Book]:
        """Get all books ordered by title."""

        def _list(s: Session) -> list[Book]:
            stmt = select(Book).order_by(Book.title)
            return list(s.execute(stmt).scalars().all())

        return self._run(_list, session)

    def update_book(
        self, book_id: str, values: dict[str, Any], session: Optional[Session] = None
    ) -> Optional[Book]:
        """Apply already-resolved field values to a book.

        Inventory counters are written as given; callers are responsible
        for keeping them consistent.
        """

        def _update(s: Session) -> Optional[Book]:
            book = s.get(Book, book_id)
            if not book:
                return None
            for field, value in values.items():
                setattr(book, field, value)
            book.updated_at = utc_now_iso()
            s.flush()
            return book

        return self._run(_update, session)

    def get_available_quantity(
        self, book_id: str, session: Optional[Session] = None
    ) -> Optional[int]:
        """Read the current available quantity straight from the table."""

        def _get(s: Session) -> Optional[int]:
            stmt = select(Book.available_quantity).where(Book.id == book_id)
            return s.execute(stmt).scalar_one_or_none()

        return self._run(_get, session)

    def compare_and_set_available(
        self, book_id: str, expected: int, new: int, session: Session
    ) -> bool:
        """Set the available quantity only if it still equals ``expected``.

        Returns:
            True if exactly one row was updated
        """
        stmt = (
            update(Book)
            .where(Book.id == book_id, Book.available_quantity == expected)
            .values(available_quantity=new, updated_at=utc_now_iso())
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    def increment_available(self, book_id: str, session: Session) -> bool:
        """Put one copy back on the shelf.

        Guarded so the available quantity can never exceed the total.
        """
        stmt = (
            update(Book)
            .where(Book.id == book_id, Book.available_quantity < Book.total_quantity)
            .values(
                available_quantity=Book.available_quantity + 1,
                updated_at=utc_now_iso(),
            )
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    # ========================================================================
    # User Operations
    # ========================================================================

    def create_user(
        self,
        name: str,
        email: str,
        password_hash: str,
        session: Optional[Session] = None,
    ) -> User:
        """Create a new user record."""

        def _create(s: Session) -> User:
            user = User(name=name, email=email, password_hash=password_hash)
            s.add(user)
            s.flush()
            s.refresh(user)
            return user

        return self._run(_create, session)

    def get_user(self, user_id: str, session: Optional[Session] = None) -> Optional[User]:
        """Get a user by ID."""
        return self._run(lambda s: s.get(User, user_id), session)

    def get_user_by_email(
        self, email: str, session: Optional[Session] = None
    ) -> Optional[User]:
        """Get a user by email address."""

        def _get(s: Session) -> Optional[User]:
            stmt = select(User).where(User.email == email.strip().lower())
            return s.execute(stmt).scalar_one_or_none()

        return self._run(_get, session)

    def update_user(
        self, user_id: str, values: dict[str, Any], session: Optional[Session] = None
    ) -> Optional[User]:
        """Apply already-resolved field values to a user."""

        def _update(s: Session) -> Optional[User]:
            user = s.get(User, user_id)
            if not user:
                return None
            for field, value in values.items():
                setattr(user, field, value)
            user.updated_at = utc_now_iso()
            s.flush()
            return user

        return self._run(_update, session)

    # ========================================================================
    # Loan Operations
    # ========================================================================

    def create_loan(
        self,
        user_id: str,
        book_id: str,
        due_date: str,
        session: Session,
    ):
        """Insert a loan record. Only the lending engine should call this."""
        from ..lending.models import Loan

        loan = Loan(user_id=user_id, book_id=book_id, due_date=due_date, renewal_count=0)
        session.add(loan)
        session.flush()
        session.refresh(loan)
        return loan

    def get_loan(self, loan_id: str, session: Optional[Session] = None):
        """Get a loan by ID."""
        from ..lending.models import Loan

        return self._run(lambda s: s.get(Loan, loan_id), session)

    def compare_and_set_renewal(
        self,
        loan_id: str,
        expected_count: int,
        new_due_date: str,
        session: Session,
    ) -> bool:
        """Bump the renewal count and due date if the count is unchanged."""
        from ..lending.models import Loan

        stmt = (
            update(Loan)
            .where(Loan.id == loan_id, Loan.renewal_count == expected_count)
            .values(
                renewal_count=expected_count + 1,
                due_date=new_due_date,
                updated_at=utc_now_iso(),
            )
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    def delete_loan(self, loan_id: str, session: Session) -> bool:
        """Delete a loan record.

        Returns:
            True if exactly one row was removed
        """
        from ..lending.models import Loan

        stmt = (
            delete(Loan)
            .where(Loan.id == loan_id)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    def get_loans_for_user(self, user_id: str, session: Optional[Session] = None) -> list:
        """Get a user's loans with their books eagerly loaded."""
        from ..lending.models import Loan

        def _get(s: Session) -> list:
            stmt = (
                select(Loan)
                .options(joinedload(Loan.book))
                .where(Loan.user_id == user_id)
                .order_by(Loan.created_at)
            )
            return list(s.execute(stmt).scalars().all())

        return self._run(_get, session)

    def get_all_loans(self, session: Optional[Session] = None) -> list:
        """Get every loan with its user and book eagerly loaded."""
        from ..lending.models import Loan

        def _get(s: Session) -> list:
            stmt = (
                select(Loan)
                .options(joinedload(Loan.user), joinedload(Loan.book))
                .order_by(Loan.created_at)
            )
            return list(s.execute(stmt).scalars().all())

        return self._run(_get, session)

    def get_loans_due_before(self, until: str, session: Optional[Session] = None) -> list:
        """Get loans due on or before an ISO timestamp, soonest first."""
        from ..lending.models import Loan

        def _get(s: Session) -> list:
            stmt = (
                select(Loan)
                .options(joinedload(Loan.user), joinedload(Loan.book))
                .where(Loan.due_date <= until)
                .order_by(Loan.due_date)
            )
            return list(s.execute(stmt).scalars().all())

        return self._run(_get, session)

    def count_loans_for_book(self, book_id: str, session: Optional[Session] = None) -> int:
        """Count open loans referencing a book."""
        from ..lending.models import Loan

        def _count(s: Session) -> int:
            stmt = select(func.count()).select_from(Loan).where(Loan.book_id == book_id)
            return s.execute(stmt).scalar() or 0

        return self._run(_count, session)


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        from ..config import get_config

        config = get_config()
        _db = Database(db_path or str(config.db_path), timeout=config.db_timeout)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
