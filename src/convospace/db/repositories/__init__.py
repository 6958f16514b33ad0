"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from convospace.db.repositories.api_key import ApiKeyRepository
from convospace.db.repositories.base import BaseRepository
from convospace.db.repositories.chat_history import ChatHistoryRepository
from convospace.db.repositories.user import UserRepository

__all__ = [
    "ApiKeyRepository",
    "BaseRepository",
    "ChatHistoryRepository",
    "UserRepository",
]
