"""SMTP e-mail notifier for loan notices."""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from enum import Enum
from typing import Optional

from ..config import Config, get_config

logger = logging.getLogger(__name__)


class NoticeKind(str, Enum):
    """Kinds of loan notice a patron can receive."""

    LOAN_CREATED = "loan_created"
    DUE_SOON = "due_soon"


SUBJECTS = {
    NoticeKind.LOAN_CREATED: "Loan confirmation",
    NoticeKind.DUE_SOON: "Loan expiry notice",
}

BODIES = {
    NoticeKind.LOAN_CREATED: (
        'You have borrowed "{title}". Please return it by the due date '
        "or renew the loan before it expires."
    ),
    NoticeKind.DUE_SOON: (
        'The loan of "{title}" is close to its due date. Please return the '
        "book or get in touch to renew it."
    ),
}


class EmailNotifier:
    """Sends loan notices over SMTP.

    ``send`` never raises for delivery problems; it logs them and returns
    False so callers can report the outcome.
    """

    def __init__(self, config: Optional[Config] = None, timeout: float = 30.0):
        self.config = config or get_config()
        self.timeout = timeout

    def build_message(
        self, recipient: str, book_title: str, kind: NoticeKind = NoticeKind.DUE_SOON
    ) -> EmailMessage:
        """Compose the e-mail for a notice."""
        message = EmailMessage()
        message["From"] = self.config.smtp_sender or ""
        message["To"] = recipient
        message["Subject"] = SUBJECTS[kind]
        message.set_content(BODIES[kind].format(title=book_title))
        return message

    def _connect(self) -> smtplib.SMTP:
        host = self.config.smtp_host
        port = self.config.smtp_port
        security = self.config.smtp_security

        if security == "ssl":
            context = ssl.create_default_context()
            server = smtplib.SMTP_SSL(host, port, timeout=self.timeout, context=context)
        else:
            server = smtplib.SMTP(host, port, timeout=self.timeout)
        server.ehlo()

        if security == "starttls":
            server.starttls(context=ssl.create_default_context())
            server.ehlo()

        if self.config.smtp_user and self.config.smtp_password:
            server.login(self.config.smtp_user, self.config.smtp_password)
        return server

    def send(
        self, recipient: str, book_title: str, kind: NoticeKind = NoticeKind.DUE_SOON
    ) -> bool:
        """Deliver one notice.

        Returns:
            True if the SMTP server accepted the message
        """
        if not self.config.has_smtp_config():
            logger.warning("SMTP is not configured; notice to %s not sent", recipient)
            return False

        message = self.build_message(recipient, book_title, kind)
        server = None
        try:
            server = self._connect()
            server.send_message(message)
            logger.info("Sent %s notice to %s for '%s'", kind.value, recipient, book_title)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("Failed to send %s notice to %s: %s", kind.value, recipient, e)
            return False
        finally:
            if server is not None:
                try:
                    server.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.debug("SMTP quit failed: %s", e)
