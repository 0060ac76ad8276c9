"""Pytest configuration and shared fixtures.

This module provides fixtures for testing the circulation package,
including temporary databases, sample users and books, and a recording
notifier.
"""

import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from circulation.catalog import CatalogManager
from circulation.config import reset_config
from circulation.db.models import Book, User
from circulation.db.schemas import AgeRating, BookCreate, UserCreate
from circulation.db.sqlite import Database, reset_db
from circulation.lending import LendingManager
from circulation.notifications import NoticeKind, NotificationDispatcher
from circulation.uploads import CoverStorage
from circulation.users import UserManager

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a file-backed test database instance."""
    # Reset any global state
    reset_db()
    reset_config()

    os.environ["CIRCULATION_DB_PATH"] = str(temp_db_path)

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    # Cleanup
    database.engine.dispose()
    reset_db()
    reset_config()
    if "CIRCULATION_DB_PATH" in os.environ:
        del os.environ["CIRCULATION_DB_PATH"]


@pytest.fixture(scope="function")
def memory_db() -> Database:
    """Create an in-memory database for fast tests."""
    database = Database(":memory:")
    database.create_tables()
    return database


@pytest.fixture(scope="function")
def session(db: Database) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    with db.get_session() as sess:
        yield sess


# ============================================================================
# Notifier Fixtures
# ============================================================================


class RecordingNotifier:
    """Notifier double that records every send."""

    def __init__(self, succeed: bool = True, explode: bool = False):
        self.succeed = succeed
        self.explode = explode
        self.sent: list[tuple[str, str, NoticeKind]] = []
        self._lock = threading.Lock()

    def send(self, recipient: str, book_title: str, kind: NoticeKind = NoticeKind.DUE_SOON) -> bool:
        with self._lock:
            self.sent.append((recipient, book_title, kind))
        if self.explode:
            raise RuntimeError("mail server on fire")
        return self.succeed


@pytest.fixture
def notifier() -> RecordingNotifier:
    """A notifier that records sends and reports success."""
    return RecordingNotifier()


@pytest.fixture
def refusing_notifier() -> RecordingNotifier:
    """A notifier whose server refuses every message."""
    return RecordingNotifier(succeed=False)


@pytest.fixture
def exploding_notifier() -> RecordingNotifier:
    """A notifier whose send raises."""
    return RecordingNotifier(explode=True)


@pytest.fixture
def dispatcher(notifier: RecordingNotifier) -> NotificationDispatcher:
    """Dispatcher wired to the recording notifier."""
    return NotificationDispatcher(notifier)


# ============================================================================
# Manager Fixtures
# ============================================================================


@pytest.fixture
def covers(tmp_path: Path) -> CoverStorage:
    """Cover storage in a temporary directory."""
    return CoverStorage(tmp_path / "covers")


@pytest.fixture
def catalog(db: Database, covers: CoverStorage) -> CatalogManager:
    """Create a CatalogManager with test database."""
    return CatalogManager(db, covers=covers)


@pytest.fixture
def users(db: Database) -> UserManager:
    """Create a UserManager with test database."""
    return UserManager(db)


@pytest.fixture
def lending(db: Database) -> LendingManager:
    """Create a LendingManager with a fixed clock and no notices."""
    return LendingManager(
        db,
        loan_period_days=7,
        max_renewals=2,
        cas_retries=5,
        clock=lambda: FIXED_NOW,
    )


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_book_data() -> BookCreate:
    """Create sample book data for testing."""
    return BookCreate(
        title="The Hobbit",
        author="J. R. R. Tolkien",
        total_quantity=3,
        publisher="Allen & Unwin",
        subject="Fantasy",
        age_rating=AgeRating.YOUNG_ADULT,
    )


@pytest.fixture
def sample_book(catalog: CatalogManager, sample_book_data: BookCreate) -> Book:
    """Create a book with three copies."""
    return catalog.create_book(sample_book_data)


@pytest.fixture
def single_copy_book(catalog: CatalogManager) -> Book:
    """Create a book with exactly one copy."""
    return catalog.create_book(
        BookCreate(
            title="Rare Edition",
            author="Only Copy",
            total_quantity=1,
            publisher="Small Press",
            subject="Bibliography",
        )
    )


@pytest.fixture
def sample_user(users: UserManager) -> User:
    """Register a sample user."""
    return users.register(
        UserCreate(name="Ada Lovelace", email="ada@example.com", password="analytical")
    )


@pytest.fixture
def other_user(users: UserManager) -> User:
    """Register a second user."""
    return users.register(
        UserCreate(name="Charles Babbage", email="charles@example.com", password="engine")
    )
