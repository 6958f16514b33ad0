"""
User repository.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from convospace.db.repositories.base import BaseRepository
from convospace.models.db import User


def normalize_email(email: str) -> str:
    """Canonical form used for storage and lookup."""
    return email.strip().lower()


class UserRepository(BaseRepository[User]):
    """Repository for User model."""

    def __init__(self, session: Session):
        super().__init__(User, session)

    def get_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email (case-insensitive).

        Args:
            email: Email address

        Returns:
            User instance or None
        """
        return (
            self.session.query(User)
            .filter(User.email == normalize_email(email))
            .first()
        )

    def email_exists(self, email: str) -> bool:
        """Check whether an account is registered for the email."""
        return self.get_by_email(email) is not None

    def create_user(self, email: str, password_hash: str) -> User:
        """
        Create a new active user.

        Args:
            email: Email address (normalized before storage)
            password_hash: bcrypt hash of the password

        Returns:
            Created user

        Raises:
            sqlalchemy.exc.IntegrityError: If the email is already registered
        """
        return self.create(
            email=normalize_email(email),
            password_hash=password_hash,
            is_active=True,
        )

    def set_password(self, user_id: int, password_hash: str) -> Optional[User]:
        """Replace a user's password hash."""
        return self.update(user_id, password_hash=password_hash)

    def record_login(self, user_id: int) -> Optional[User]:
        """Stamp the last successful login time."""
        return self.update(user_id, last_login=datetime.now(timezone.utc))
