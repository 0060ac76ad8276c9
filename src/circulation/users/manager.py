"""User manager for patron records."""

import hashlib
import hmac
import logging
from typing import Optional

from ..db.models import User
from ..db.schemas import UserCreate, UserUpdate
from ..db.sqlite import Database, get_db
from ..errors import DuplicateEmailError, NotFoundError

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """SHA-256 hex digest of a password."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class UserManager:
    """Manages registration, profile updates and credential checks."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_db()

    def register(self, data: UserCreate) -> User:
        """Register a new user.

        Raises:
            DuplicateEmailError: email already registered
        """
        with self.db.get_session() as session:
            if self.db.get_user_by_email(data.email, session):
                raise DuplicateEmailError(data.email)
            user = self.db.create_user(
                name=data.name,
                email=data.email,
                password_hash=hash_password(data.password),
                session=session,
            )
            session.expunge(user)

        logger.info("Registered user %s <%s>", user.id, user.email)
        return user

    def get_user(self, user_id: str) -> User:
        """Get a user by ID.

        Raises:
            NotFoundError: user does not exist
        """
        user = self.db.get_user(user_id)
        if not user:
            raise NotFoundError("user", user_id)
        return user

    def update_user(self, user_id: str, data: UserUpdate) -> User:
        """Update a user's profile. Falsy fields keep their stored value.

        Raises:
            NotFoundError: user does not exist
            DuplicateEmailError: new email belongs to another user
        """
        with self.db.get_session() as session:
            user = self.db.get_user(user_id, session)
            if not user:
                raise NotFoundError("user", user_id)

            email = data.email or user.email
            if email != user.email:
                other = self.db.get_user_by_email(email, session)
                if other and other.id != user_id:
                    raise DuplicateEmailError(email)

            values = {
                "name": data.name or user.name,
                "email": email,
                "password_hash": (
                    hash_password(data.password) if data.password else user.password_hash
                ),
            }
            user = self.db.update_user(user_id, values, session)
            session.refresh(user)
            session.expunge(user)

        logger.info("Updated user %s", user_id)
        return user

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Check a user's credentials.

        Returns:
            The user if email and password match, otherwise None
        """
        user = self.db.get_user_by_email(email)
        if user and hmac.compare_digest(user.password_hash, hash_password(password)):
            return user
        logger.info("Failed login for %s", email)
        return None
