"""Fire-and-forget delivery of loan notices on background threads."""

import logging
import threading
from typing import Optional, Protocol

from .mailer import NoticeKind

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Anything that can deliver a notice and report success."""

    def send(self, recipient: str, book_title: str, kind: NoticeKind = ...) -> bool:
        ...


class NotificationDispatcher:
    """Runs notifier sends on daemon threads.

    Dispatching never blocks the caller and never raises into it; failures
    only reach the log.
    """

    def __init__(self, notifier: Notifier):
        self.notifier = notifier
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    def dispatch(
        self, recipient: str, book_title: str, kind: NoticeKind = NoticeKind.DUE_SOON
    ) -> Optional[threading.Thread]:
        """Start delivering one notice in the background."""

        def _run() -> None:
            try:
                if not self.notifier.send(recipient, book_title, kind):
                    logger.warning("Notice %s to %s was not delivered", kind.value, recipient)
            except Exception:
                logger.exception("Notifier crashed sending %s to %s", kind.value, recipient)

        thread = threading.Thread(
            target=_run, name=f"notice-{kind.value}", daemon=True
        )
        try:
            thread.start()
        except RuntimeError as e:
            logger.warning("Could not start notice thread: %s", e)
            return None

        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        return thread

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until every dispatched notice has finished. Used by the CLI and tests."""
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)
