"""
User API key repository.
"""

from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from convospace.db.repositories.base import BaseRepository
from convospace.models.db import UserApiKey


class ApiKeyRepository(BaseRepository[UserApiKey]):
    """Repository for UserApiKey model."""

    def __init__(self, session: Session):
        super().__init__(UserApiKey, session)

    def get_for_provider(self, user_id: int, provider: str) -> Optional[UserApiKey]:
        """
        Get a user's key for one provider.

        Args:
            user_id: Owning user
            provider: Provider identifier

        Returns:
            UserApiKey instance or None
        """
        return (
            self.session.query(UserApiKey)
            .filter(UserApiKey.user_id == user_id, UserApiKey.provider == provider)
            .first()
        )

    def list_for_user(self, user_id: int) -> List[UserApiKey]:
        """Get all saved keys for a user, ordered by provider."""
        return (
            self.session.query(UserApiKey)
            .filter(UserApiKey.user_id == user_id)
            .order_by(UserApiKey.provider)
            .all()
        )

    def as_mapping(self, user_id: int) -> Dict[str, str]:
        """Return a user's keys as ``{provider: api_key}``."""
        return {row.provider: row.api_key for row in self.list_for_user(user_id)}

    def upsert(self, user_id: int, provider: str, api_key: str) -> UserApiKey:
        """
        Save a key, replacing any existing key for the same provider.

        Args:
            user_id: Owning user
            provider: Provider identifier
            api_key: Key value

        Returns:
            The stored UserApiKey
        """
        existing = self.get_for_provider(user_id, provider)
        if existing:
            existing.api_key = api_key
            self.session.flush()
            return existing
        return self.create(user_id=user_id, provider=provider, api_key=api_key)

    def delete_for_provider(self, user_id: int, provider: str) -> bool:
        """Delete one provider key. Returns False when none was saved."""
        existing = self.get_for_provider(user_id, provider)
        if not existing:
            return False
        self.session.delete(existing)
        self.session.flush()
        return True
