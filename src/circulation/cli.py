"""Command-line interface for circulation.

Built with Typer for commands and Rich for output.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import get_config
from .db import get_db
from .db.schemas import AgeRating, BookCreate, BookUpdate, UserCreate, UserUpdate
from .errors import CirculationError

# Create the main app
app = typer.Typer(
    name="circulation",
    help="Manage a library's books, patrons and loans.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
books_app = typer.Typer(help="Manage the book catalog.")
app.add_typer(books_app, name="books")
users_app = typer.Typer(help="Manage library users.")
app.add_typer(users_app, name="users")
loans_app = typer.Typer(help="Borrow, renew and return books.")
app.add_typer(loans_app, name="loans")

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def fail(error: Exception) -> None:
    """Report a domain error and exit with status 1."""
    print_error(str(error))
    raise typer.Exit(1)


def read_cover(path: Optional[Path]) -> Optional[tuple[bytes, str]]:
    """Load a cover image file for upload."""
    if path is None:
        return None
    if not path.exists():
        print_error(f"File not found: {path}")
        raise typer.Exit(1)
    return path.read_bytes(), path.name


def _lending_manager(with_notices: bool = False):
    from .lending import LendingManager

    dispatcher = None
    if with_notices:
        from .notifications import EmailNotifier, NotificationDispatcher

        dispatcher = NotificationDispatcher(EmailNotifier())
    return LendingManager(get_db(), dispatcher=dispatcher)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Configure logging before any command runs."""
    level = "DEBUG" if verbose else get_config().log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


# ============================================================================
# Setup Commands
# ============================================================================


@app.command("init-db")
def init_db() -> None:
    """Create the database tables and check the configuration."""
    config = get_config()
    for problem in config.validate():
        print_warning(problem)
    get_db()
    print_success(f"Database ready at {config.db_path}")


# ============================================================================
# Book Commands
# ============================================================================


@books_app.command("add")
def books_add(
    title: str = typer.Option(..., "--title", "-t", help="Book title"),
    author: str = typer.Option(..., "--author", "-a", help="Author name"),
    quantity: int = typer.Option(..., "--quantity", "-q", help="Copies owned"),
    publisher: str = typer.Option(..., "--publisher", "-p", help="Publisher"),
    subject: str = typer.Option(..., "--subject", "-s", help="Subject"),
    age_rating: AgeRating = typer.Option(AgeRating.GENERAL, "--age-rating", "-r"),
    cover: Optional[Path] = typer.Option(None, "--cover", "-c", help="Cover image file"),
) -> None:
    """Add a book to the catalog."""
    from .catalog import CatalogManager

    try:
        data = BookCreate(
            title=title,
            author=author,
            total_quantity=quantity,
            publisher=publisher,
            subject=subject,
            age_rating=age_rating,
        )
    except ValueError as e:
        fail(e)

    book = CatalogManager(get_db()).create_book(data, cover=read_cover(cover))
    print_success(f"Added: {book.title} by {book.author}")
    console.print(f"[dim]ID: {book.id}[/dim]")


@books_app.command("list")
def books_list() -> None:
    """List all books with their inventory."""
    from .catalog import CatalogManager

    books = CatalogManager(get_db()).list_books()
    if not books:
        console.print("[dim]No books found[/dim]")
        return

    table = Table(title="Books", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Subject")
    table.add_column("Rating")
    table.add_column("Available", justify="right")

    for book in books:
        available = f"{book.available_quantity}/{book.total_quantity}"
        if not book.is_available:
            available = f"[red]{available}[/red]"
        table.add_row(
            book.id[:8],
            book.title,
            book.author,
            book.subject,
            book.age_rating,
            available,
        )

    console.print(table)


@books_app.command("update")
def books_update(
    book_id: str = typer.Argument(..., help="Book ID"),
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    author: Optional[str] = typer.Option(None, "--author", "-a"),
    quantity: Optional[int] = typer.Option(None, "--quantity", "-q"),
    publisher: Optional[str] = typer.Option(None, "--publisher", "-p"),
    subject: Optional[str] = typer.Option(None, "--subject", "-s"),
    age_rating: Optional[AgeRating] = typer.Option(None, "--age-rating", "-r"),
    cover: Optional[Path] = typer.Option(None, "--cover", "-c", help="New cover image"),
) -> None:
    """Update a book. Options left out (or empty) keep their value."""
    from .catalog import CatalogManager

    try:
        data = BookUpdate(
            title=title,
            author=author,
            total_quantity=quantity,
            publisher=publisher,
            subject=subject,
            age_rating=age_rating,
        )
        book = CatalogManager(get_db()).update_book(book_id, data, cover=read_cover(cover))
    except (CirculationError, ValueError) as e:
        fail(e)

    print_success(f"Updated: {book.title}")
    console.print(f"[dim]Available: {book.available_quantity}/{book.total_quantity}[/dim]")


# ============================================================================
# User Commands
# ============================================================================


@users_app.command("register")
def users_register(
    name: str = typer.Option(..., "--name", "-n"),
    email: str = typer.Option(..., "--email", "-e"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
) -> None:
    """Register a new user."""
    from .users import UserManager

    try:
        user = UserManager(get_db()).register(
            UserCreate(name=name, email=email, password=password)
        )
    except (CirculationError, ValueError) as e:
        fail(e)

    print_success(f"Registered {user.name} <{user.email}>")
    console.print(f"[dim]ID: {user.id}[/dim]")


@users_app.command("update")
def users_update(
    user_id: str = typer.Argument(..., help="User ID"),
    name: Optional[str] = typer.Option(None, "--name", "-n"),
    email: Optional[str] = typer.Option(None, "--email", "-e"),
    password: Optional[str] = typer.Option(None, "--password"),
) -> None:
    """Update a user. Options left out (or empty) keep their value."""
    from .users import UserManager

    try:
        user = UserManager(get_db()).update_user(
            user_id, UserUpdate(name=name, email=email, password=password)
        )
    except (CirculationError, ValueError) as e:
        fail(e)

    print_success(f"Updated {user.name} <{user.email}>")


@users_app.command("login")
def users_login(
    email: str = typer.Option(..., "--email", "-e"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
) -> None:
    """Check a user's credentials."""
    from .users import UserManager

    user = UserManager(get_db()).authenticate(email, password)
    if not user:
        print_error("Invalid credentials")
        raise typer.Exit(1)
    print_success(f"Welcome, {user.name}")
    console.print(f"[dim]ID: {user.id}[/dim]")


# ============================================================================
# Loan Commands
# ============================================================================


@loans_app.command("borrow")
def loans_borrow(
    user_id: str = typer.Argument(..., help="Borrowing user's ID"),
    book_id: str = typer.Argument(..., help="Book ID"),
    notify: bool = typer.Option(False, "--notify", help="E-mail a loan confirmation"),
) -> None:
    """Lend one copy of a book to a user."""
    manager = _lending_manager(with_notices=notify)
    try:
        loan = manager.borrow(user_id, book_id)
    except CirculationError as e:
        fail(e)
    finally:
        if manager.dispatcher:
            manager.dispatcher.wait(timeout=60)

    print_success("Book borrowed")
    console.print(f"[dim]Loan ID: {loan.id}[/dim]")
    console.print(f"[dim]Due: {loan.due_at:%Y-%m-%d %H:%M} UTC[/dim]")


@loans_app.command("renew")
def loans_renew(
    loan_id: str = typer.Argument(..., help="Loan ID"),
) -> None:
    """Extend a loan by one loan period."""
    manager = _lending_manager()
    try:
        loan = manager.renew(loan_id)
    except CirculationError as e:
        fail(e)

    print_success(f"Loan renewed ({loan.renewal_count}/{manager.max_renewals})")
    console.print(f"[dim]Due: {loan.due_at:%Y-%m-%d %H:%M} UTC[/dim]")


@loans_app.command("return")
def loans_return(
    loan_id: str = typer.Argument(..., help="Loan ID"),
) -> None:
    """Return a borrowed book."""
    manager = _lending_manager()
    try:
        manager.return_loan(loan_id)
    except CirculationError as e:
        fail(e)

    print_success("Book returned")


def _loan_table(title: str, loans: list, with_user: bool = True) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Book", style="cyan", max_width=30)
    if with_user:
        table.add_column("User")
    table.add_column("Due")
    table.add_column("Renewals", justify="center")

    for loan in loans:
        row = [str(loan.id)[:8], loan.book.title if loan.book else "[red]missing[/red]"]
        if with_user:
            row.append(f"{loan.user.name} <{loan.user.email}>" if loan.user else "-")
        row.append(f"{loan.due_date:%Y-%m-%d}")
        row.append(str(loan.renewal_count))
        table.add_row(*row)
    return table


@loans_app.command("list")
def loans_list() -> None:
    """List every open loan."""
    loans = _lending_manager().all_loans()
    if not loans:
        console.print("[dim]No loans found[/dim]")
        return
    console.print(_loan_table("Loans", loans))


@loans_app.command("user")
def loans_user(
    user_id: str = typer.Argument(..., help="User ID"),
) -> None:
    """List one user's loans."""
    loans = _lending_manager().loans_for_user(user_id)
    if not loans:
        console.print("[dim]No loans found[/dim]")
        return
    console.print(_loan_table("Loans", loans, with_user=False))


@loans_app.command("due")
def loans_due(
    days: int = typer.Option(2, "--days", "-d", help="Look-ahead in days"),
) -> None:
    """Show loans due soon (overdue included)."""
    loans = _lending_manager().loans_due_soon(days)
    if not loans:
        print_success("No loans due soon")
        return
    console.print(_loan_table(f"Due within {days} days", loans))


@loans_app.command("remind")
def loans_remind(
    days: int = typer.Option(2, "--days", "-d", help="Look-ahead in days"),
) -> None:
    """E-mail a reminder for every loan due soon."""
    if not get_config().has_smtp_config():
        print_error("SMTP is not configured (set SMTP_HOST and SMTP_SENDER)")
        raise typer.Exit(1)

    manager = _lending_manager(with_notices=True)
    count = manager.send_due_reminders(days)
    manager.dispatcher.wait(timeout=120)
    print_success(f"Dispatched {count} reminder(s)")


@app.command()
def notify(
    email: str = typer.Option(..., "--email", "-e", help="Recipient"),
    title: str = typer.Option(..., "--title", "-t", help="Book title"),
) -> None:
    """Send a loan expiry notice to one address."""
    manager = _lending_manager(with_notices=True)
    if manager.notify(email, title):
        print_success(f"Notice sent to {email}")
    else:
        print_error("Failed to send e-mail")
        raise typer.Exit(1)


# ============================================================================
# Version Command
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"circulation version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
