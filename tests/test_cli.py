"""Tests for the CLI interface."""

import re

import pytest
from typer.testing import CliRunner

from circulation.cli import app
from circulation.config import reset_config
from circulation.db.sqlite import reset_db

ID_PATTERN = re.compile(r"ID: ([0-9a-f-]{36})")


@pytest.fixture(autouse=True)
def setup_test_db(tmp_path, monkeypatch):
    """Set up a test database for each test."""
    reset_db()
    reset_config()

    monkeypatch.setenv("CIRCULATION_DB_PATH", str(tmp_path / "library.db"))
    monkeypatch.setenv("CIRCULATION_UPLOAD_DIR", str(tmp_path / "covers"))
    monkeypatch.delenv("SMTP_HOST", raising=False)
    monkeypatch.delenv("SMTP_SENDER", raising=False)
    monkeypatch.delenv("SMTP_USER", raising=False)

    yield

    # Cleanup
    reset_db()
    reset_config()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


def extract_id(output: str) -> str:
    match = ID_PATTERN.search(output)
    assert match, output
    return match.group(1)


@pytest.fixture
def book_id(runner: CliRunner) -> str:
    """Add a two-copy book through the CLI."""
    result = runner.invoke(
        app,
        [
            "books", "add",
            "--title", "The Hobbit",
            "--author", "Tolkien",
            "--quantity", "2",
            "--publisher", "Allen & Unwin",
            "--subject", "Fantasy",
        ],
    )
    assert result.exit_code == 0, result.stdout
    return extract_id(result.stdout)


@pytest.fixture
def user_id(runner: CliRunner) -> str:
    """Register a user through the CLI."""
    result = runner.invoke(
        app,
        ["users", "register", "--name", "Ada", "--email", "ada@example.com", "--password", "pw"],
    )
    assert result.exit_code == 0, result.stdout
    return extract_id(result.stdout)


@pytest.fixture
def loan_id(runner: CliRunner, user_id: str, book_id: str) -> str:
    """Borrow the sample book for the sample user."""
    result = runner.invoke(app, ["loans", "borrow", user_id, book_id])
    assert result.exit_code == 0, result.stdout
    return extract_id(result.stdout)


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        """Test that help command works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "books, patrons and loans" in result.stdout

    def test_version(self, runner: CliRunner):
        """Test version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout

    def test_init_db(self, runner: CliRunner, tmp_path):
        """Test the database is created."""
        result = runner.invoke(app, ["init-db"])
        assert result.exit_code == 0
        assert (tmp_path / "library.db").exists()


class TestBookCommands:
    """Tests for the books command group."""

    def test_add_book(self, runner: CliRunner, book_id: str):
        """Test adding a book prints its ID."""
        assert len(book_id) == 36

    def test_add_book_with_cover(self, runner: CliRunner, tmp_path):
        """Test a cover file is copied into the upload directory."""
        cover = tmp_path / "cover.png"
        cover.write_bytes(b"png")
        result = runner.invoke(
            app,
            [
                "books", "add",
                "-t", "Covered", "-a", "A", "-q", "1", "-p", "P", "-s", "S",
                "--cover", str(cover),
            ],
        )
        assert result.exit_code == 0
        assert len(list((tmp_path / "covers").glob("*.png"))) == 1

    def test_add_book_missing_cover(self, runner: CliRunner, tmp_path):
        """Test a missing cover file is an error."""
        result = runner.invoke(
            app,
            [
                "books", "add",
                "-t", "T", "-a", "A", "-q", "1", "-p", "P", "-s", "S",
                "--cover", str(tmp_path / "nope.png"),
            ],
        )
        assert result.exit_code == 1
        assert "File not found" in result.stdout

    def test_add_book_negative_quantity(self, runner: CliRunner):
        """Test validation errors exit non-zero."""
        result = runner.invoke(
            app,
            ["books", "add", "-t", "T", "-a", "A", "--quantity=-1", "-p", "P", "-s", "S"],
        )
        assert result.exit_code == 1

    def test_list_books(self, runner: CliRunner, book_id: str):
        """Test listing shows inventory."""
        result = runner.invoke(app, ["books", "list"])
        assert result.exit_code == 0
        assert "The Hobbit" in result.stdout
        assert "2/2" in result.stdout

    def test_list_books_empty(self, runner: CliRunner):
        """Test listing with no books."""
        result = runner.invoke(app, ["books", "list"])
        assert result.exit_code == 0
        assert "No books found" in result.stdout

    def test_update_book_empty_title_ignored(self, runner: CliRunner, book_id: str):
        """Test an empty title keeps the stored one."""
        result = runner.invoke(app, ["books", "update", book_id, "--title", "", "-a", "JRRT"])
        assert result.exit_code == 0
        assert "Updated: The Hobbit" in result.stdout

    def test_update_book_not_found(self, runner: CliRunner):
        """Test updating an unknown book."""
        result = runner.invoke(app, ["books", "update", "nope", "--title", "X"])
        assert result.exit_code == 1
        assert "Book not found" in result.stdout


class TestUserCommands:
    """Tests for the users command group."""

    def test_register_duplicate(self, runner: CliRunner, user_id: str):
        """Test an email can only be registered once."""
        result = runner.invoke(
            app,
            ["users", "register", "-n", "Ada", "-e", "ada@example.com", "--password", "x"],
        )
        assert result.exit_code == 1
        assert "already registered" in result.stdout

    def test_update_user(self, runner: CliRunner, user_id: str):
        """Test renaming a user."""
        result = runner.invoke(app, ["users", "update", user_id, "--name", "Ada King"])
        assert result.exit_code == 0
        assert "Ada King" in result.stdout

    def test_login(self, runner: CliRunner, user_id: str):
        """Test correct and wrong credentials."""
        ok = runner.invoke(app, ["users", "login", "-e", "ada@example.com", "--password", "pw"])
        bad = runner.invoke(app, ["users", "login", "-e", "ada@example.com", "--password", "no"])

        assert ok.exit_code == 0
        assert "Welcome, Ada" in ok.stdout
        assert bad.exit_code == 1
        assert "Invalid credentials" in bad.stdout


class TestLoanCommands:
    """Tests for the loans command group."""

    def test_borrow(self, runner: CliRunner, loan_id: str, book_id: str):
        """Test borrowing takes a copy off the shelf."""
        result = runner.invoke(app, ["books", "list"])
        assert "1/2" in result.stdout

    def test_borrow_unknown_user(self, runner: CliRunner, book_id: str):
        """Test borrowing for an unknown user fails."""
        result = runner.invoke(app, ["loans", "borrow", "nobody", book_id])
        assert result.exit_code == 1
        assert "User not found" in result.stdout

    def test_borrow_until_unavailable(self, runner: CliRunner, user_id: str, book_id: str):
        """Test the third borrow of a two-copy book fails."""
        for _ in range(2):
            assert runner.invoke(app, ["loans", "borrow", user_id, book_id]).exit_code == 0

        result = runner.invoke(app, ["loans", "borrow", user_id, book_id])
        assert result.exit_code == 1
        assert "No copies available" in result.stdout

    def test_renew_until_limit(self, runner: CliRunner, loan_id: str):
        """Test two renewals succeed and the third is refused."""
        first = runner.invoke(app, ["loans", "renew", loan_id])
        second = runner.invoke(app, ["loans", "renew", loan_id])
        third = runner.invoke(app, ["loans", "renew", loan_id])

        assert "(1/2)" in first.stdout
        assert "(2/2)" in second.stdout
        assert third.exit_code == 1
        assert "Error" in third.stdout

    def test_return(self, runner: CliRunner, loan_id: str):
        """Test returning restocks and a second return fails."""
        first = runner.invoke(app, ["loans", "return", loan_id])
        second = runner.invoke(app, ["loans", "return", loan_id])

        assert first.exit_code == 0
        assert "Book returned" in first.stdout
        assert second.exit_code == 1
        assert "2/2" in runner.invoke(app, ["books", "list"]).stdout

    def test_list_loans(self, runner: CliRunner, loan_id: str):
        """Test the overview shows book and user."""
        result = runner.invoke(app, ["loans", "list"])
        assert result.exit_code == 0
        assert "The Hobbit" in result.stdout
        assert "Ada" in result.stdout

    def test_user_loans(self, runner: CliRunner, loan_id: str, user_id: str):
        """Test a user's loans are listed."""
        result = runner.invoke(app, ["loans", "user", user_id])
        assert result.exit_code == 0
        assert "The Hobbit" in result.stdout

    def test_user_loans_empty(self, runner: CliRunner, user_id: str):
        """Test a user without loans."""
        result = runner.invoke(app, ["loans", "user", user_id])
        assert "No loans found" in result.stdout

    def test_due_soon(self, runner: CliRunner, loan_id: str):
        """Test the look-ahead includes a loan due within it."""
        near = runner.invoke(app, ["loans", "due", "--days", "7"])
        far = runner.invoke(app, ["loans", "due", "--days", "1"])

        assert "The Hobbit" in near.stdout
        assert "No loans due soon" in far.stdout


class TestNotifyCommands:
    """Tests for e-mail commands without an SMTP server."""

    def test_notify_without_smtp(self, runner: CliRunner):
        """Test the notice fails cleanly when SMTP is not configured."""
        result = runner.invoke(app, ["notify", "-e", "ada@example.com", "-t", "The Hobbit"])
        assert result.exit_code == 1
        assert "Failed to send e-mail" in result.stdout

    def test_remind_without_smtp(self, runner: CliRunner):
        """Test reminders refuse to run without SMTP."""
        result = runner.invoke(app, ["loans", "remind"])
        assert result.exit_code == 1
        assert "SMTP is not configured" in result.stdout
