"""Lending manager for book loan operations.

Every operation runs inside a single database session, so an error at any
step rolls the whole operation back. Inventory and renewal counters are
changed with guarded compare-and-set updates; a guard that misses means a
concurrent operation got there first, and the counter is re-read.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..config import get_config
from ..db.sqlite import Database, get_db
from ..errors import (
    InventoryError,
    IntegrityFaultError,
    NotFoundError,
    RenewalLimitReachedError,
    UnavailableError,
)
from ..notifications import NoticeKind, NotificationDispatcher
from .models import Loan
from .schemas import LoanWithBook, LoanWithUserAndBook

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LendingManager:
    """Manages borrowing, renewing and returning books."""

    def __init__(
        self,
        db: Optional[Database] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        loan_period_days: Optional[int] = None,
        max_renewals: Optional[int] = None,
        cas_retries: Optional[int] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """Initialize lending manager.

        Args:
            db: Database instance
            dispatcher: Background notice dispatcher; no notices when None
            loan_period_days: Days per loan and per renewal (config default)
            max_renewals: Renewals allowed per loan (config default)
            cas_retries: Attempts at a contended inventory update (config default)
            clock: Returns the current aware UTC time
        """
        config = get_config()
        self.db = db or get_db()
        self.dispatcher = dispatcher
        self.loan_period = timedelta(days=loan_period_days or config.loan_period_days)
        self.max_renewals = config.max_renewals if max_renewals is None else max_renewals
        self.cas_retries = cas_retries or config.cas_retries
        self.clock = clock

    # -------------------------------------------------------------------------
    # Loan Lifecycle
    # -------------------------------------------------------------------------

    def borrow(self, user_id: str, book_id: str) -> Loan:
        """Check out one copy of a book to a user.

        Args:
            user_id: Borrowing user's ID
            book_id: Book ID

        Returns:
            Created loan, due one loan period from now

        Raises:
            NotFoundError: user or book does not exist
            UnavailableError: no copies left
        """
        with self.db.get_session() as session:
            user = self.db.get_user(user_id, session)
            if not user:
                raise NotFoundError("user", user_id)

            book = self.db.get_book(book_id, session)
            if not book:
                raise NotFoundError("book", book_id)

            self._take_copy(book_id, session)

            due_date = self.clock() + self.loan_period
            loan = self.db.create_loan(user_id, book_id, due_date.isoformat(), session)
            session.expunge(loan)

            recipient, title = user.email, book.title

        logger.info("Book %s lent to user %s as loan %s", book_id, user_id, loan.id)
        self._notify(recipient, title, NoticeKind.LOAN_CREATED)
        return loan

    def _take_copy(self, book_id: str, session) -> None:
        """Decrement the available quantity by one, or raise UnavailableError."""
        for attempt in range(self.cas_retries):
            available = self.db.get_available_quantity(book_id, session)
            if available is None:
                raise NotFoundError("book", book_id)
            if available <= 0:
                logger.info("Borrow refused: book %s has no copies available", book_id)
                raise UnavailableError(book_id)
            if self.db.compare_and_set_available(book_id, available, available - 1, session):
                return
            logger.debug(
                "Inventory of book %s changed during borrow (attempt %d), retrying",
                book_id,
                attempt + 1,
            )

        logger.info("Borrow refused: book %s stayed contended", book_id)
        raise UnavailableError(book_id)

    def renew(self, loan_id: str) -> Loan:
        """Extend a loan's due date by one loan period.

        The extension is added to the current due date, not to today.

        Args:
            loan_id: Loan ID

        Returns:
            Updated loan

        Raises:
            NotFoundError: loan does not exist
            RenewalLimitReachedError: loan already renewed the maximum times
        """
        with self.db.get_session() as session:
            # Each missed guard means someone else renewed, so the count
            # only grows and the loop ends at the limit.
            for _ in range(self.max_renewals + 1):
                loan = self.db.get_loan(loan_id, session)
                if not loan:
                    raise NotFoundError("loan", loan_id)
                session.refresh(loan)

                if loan.renewal_count >= self.max_renewals:
                    logger.info("Renewal refused: loan %s at limit", loan_id)
                    raise RenewalLimitReachedError(loan_id, self.max_renewals)

                new_due = loan.due_at + self.loan_period
                if self.db.compare_and_set_renewal(
                    loan_id, loan.renewal_count, new_due.isoformat(), session
                ):
                    break
            else:
                raise RenewalLimitReachedError(loan_id, self.max_renewals)

            session.refresh(loan)
            session.expunge(loan)

        logger.info(
            "Loan %s renewed (%d/%d), now due %s",
            loan_id,
            loan.renewal_count,
            self.max_renewals,
            loan.due_date,
        )
        return loan

    def return_loan(self, loan_id: str) -> None:
        """Close a loan and put the copy back on the shelf.

        Args:
            loan_id: Loan ID

        Raises:
            NotFoundError: loan does not exist (or was already returned)
            IntegrityFaultError: loan references a book that no longer exists;
                the loan is left in place
        """
        with self.db.get_session() as session:
            loan = self.db.get_loan(loan_id, session)
            if not loan:
                raise NotFoundError("loan", loan_id)
            book_id = loan.book_id

            if not self.db.get_book(book_id, session):
                logger.error("Loan %s references missing book %s", loan_id, book_id)
                raise IntegrityFaultError(loan_id, book_id)

            session.expunge(loan)
            if not self.db.delete_loan(loan_id, session):
                raise NotFoundError("loan", loan_id)

            if not self.db.increment_available(book_id, session):
                raise InventoryError(
                    f"Book {book_id} already has every copy on the shelf"
                )

        logger.info("Loan %s returned, book %s restocked", loan_id, book_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get a loan by ID.

        Args:
            loan_id: Loan ID

        Returns:
            Loan or None
        """
        return self.db.get_loan(loan_id)

    def loans_for_user(self, user_id: str) -> list[LoanWithBook]:
        """List a user's loans joined with their book summaries.

        Args:
            user_id: User ID

        Returns:
            Loans in creation order; empty for an unknown user
        """
        with self.db.get_session() as session:
            loans = self.db.get_loans_for_user(user_id, session)
            return [LoanWithBook.model_validate(loan) for loan in loans]

    def all_loans(self) -> list[LoanWithUserAndBook]:
        """List every open loan with borrower name/email and book title/author."""
        with self.db.get_session() as session:
            loans = self.db.get_all_loans(session)
            return [LoanWithUserAndBook.model_validate(loan) for loan in loans]

    def loans_due_soon(self, days: int = 2) -> list[LoanWithUserAndBook]:
        """Get loans due within the given number of days, overdue ones included.

        Args:
            days: Number of days to look ahead

        Returns:
            Loans ordered by due date
        """
        until = (self.clock() + timedelta(days=days)).isoformat()
        with self.db.get_session() as session:
            loans = self.db.get_loans_due_before(until, session)
            return [LoanWithUserAndBook.model_validate(loan) for loan in loans]

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def _notify(self, recipient: str, book_title: str, kind: NoticeKind) -> None:
        if self.dispatcher is None:
            return
        self.dispatcher.dispatch(recipient, book_title, kind)

    def notify(self, email: str, book_title: str) -> bool:
        """Send a due-date notice right away and report whether it went out."""
        if self.dispatcher is None:
            logger.warning("No notifier configured; notice to %s not sent", email)
            return False
        return self.dispatcher.notifier.send(email, book_title, NoticeKind.DUE_SOON)

    def send_due_reminders(self, days: int = 2) -> int:
        """Queue a reminder for every loan due within ``days``.

        Returns:
            Number of reminders dispatched
        """
        if self.dispatcher is None:
            return 0

        sent = 0
        for loan in self.loans_due_soon(days):
            if loan.user is None or loan.book is None:
                logger.warning("Skipping reminder for loan %s with missing records", loan.id)
                continue
            self.dispatcher.dispatch(loan.user.email, loan.book.title, NoticeKind.DUE_SOON)
            sent += 1

        logger.info("Dispatched %d due-date reminders", sent)
        return sent
