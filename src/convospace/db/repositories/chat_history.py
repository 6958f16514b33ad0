"""
Chat history repository.

Server-side storage of saved chats. Each save creates a new conversation
titled after its first message; only the most recent conversations per user
are kept.
"""

import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session, selectinload

from convospace.db.repositories.base import BaseRepository
from convospace.models.db import ChatConversation, ChatMessage

TITLE_LENGTH = 50


def derive_title(first_message: str) -> str:
    """First 50 characters of the opening message, with an ellipsis if cut."""
    if len(first_message) > TITLE_LENGTH:
        return first_message[:TITLE_LENGTH] + "..."
    return first_message


class ChatHistoryRepository(BaseRepository[ChatConversation]):
    """Repository for ChatConversation and its messages."""

    def __init__(self, session: Session):
        super().__init__(ChatConversation, session)

    def save_conversation(
        self,
        user_id: int,
        messages: Iterable[Mapping[str, str]],
        keep: int = 50,
    ) -> ChatConversation:
        """
        Save an ordered list of messages as a new conversation.

        Args:
            user_id: Owning user
            messages: Mappings with ``role`` and ``content`` keys
            keep: Number of conversations to retain for the user

        Returns:
            The created conversation

        Raises:
            ValueError: If ``messages`` is empty
        """
        items = list(messages)
        if not items:
            raise ValueError("Cannot save an empty conversation")

        conversation = ChatConversation(
            id=uuid.uuid4(),
            user_id=user_id,
            title=derive_title(items[0]["content"]),
            created_at=datetime.now(timezone.utc),
        )
        conversation.messages = [
            ChatMessage(position=index, role=item["role"], content=item["content"])
            for index, item in enumerate(items)
        ]
        self.session.add(conversation)
        self.session.flush()

        self.prune(user_id, keep)
        self.session.refresh(conversation)
        return conversation

    def list_for_user(self, user_id: int, limit: Optional[int] = None) -> List[ChatConversation]:
        """Conversations for a user, newest first."""
        query = (
            self.session.query(ChatConversation)
            .filter(ChatConversation.user_id == user_id)
            .order_by(ChatConversation.created_at.desc(), ChatConversation.id)
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def list_with_messages(self, user_id: int) -> List[ChatConversation]:
        """Conversations for a user with messages eagerly loaded, newest first."""
        return (
            self.session.query(ChatConversation)
            .options(selectinload(ChatConversation.messages))
            .filter(ChatConversation.user_id == user_id)
            .order_by(ChatConversation.created_at.desc(), ChatConversation.id)
            .all()
        )

    def get_for_user(
        self, conversation_id: uuid.UUID, user_id: int
    ) -> Optional[ChatConversation]:
        """Get a conversation only if it belongs to the user."""
        return (
            self.session.query(ChatConversation)
            .options(selectinload(ChatConversation.messages))
            .filter(
                ChatConversation.id == conversation_id,
                ChatConversation.user_id == user_id,
            )
            .first()
        )

    def delete_for_user(self, conversation_id: uuid.UUID, user_id: int) -> bool:
        """Delete a conversation owned by the user."""
        conversation = self.get_for_user(conversation_id, user_id)
        if not conversation:
            return False
        self.session.delete(conversation)
        self.session.flush()
        return True

    def prune(self, user_id: int, keep: int) -> int:
        """
        Delete all but the ``keep`` newest conversations for a user.

        Returns:
            Number of conversations deleted
        """
        stale = self.list_for_user(user_id)[keep:]
        for conversation in stale:
            self.session.delete(conversation)
        if stale:
            self.session.flush()
        return len(stale)
