"""Loan notice delivery.

Provides:
- E-mail delivery over SMTP
- Background dispatch that never blocks loan operations
"""

from .dispatcher import NotificationDispatcher, Notifier
from .mailer import EmailNotifier, NoticeKind

__all__ = [
    "EmailNotifier",
    "NoticeKind",
    "NotificationDispatcher",
    "Notifier",
]
