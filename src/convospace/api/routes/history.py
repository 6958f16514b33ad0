"""
Chat history API routes.

Server-side copy of the chats a user saves from the client.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from convospace.api.auth import AuthContext, get_auth_context
from convospace.api.schemas import (
    ChatMessageIn,
    ConversationDetail,
    ConversationSummary,
    HistorySaveRequest,
)
from convospace.config import settings
from convospace.db.connection import get_db
from convospace.db.repositories import ChatHistoryRepository
from convospace.models.db import ChatConversation

logger = logging.getLogger(__name__)

router = APIRouter()

EXPORT_SEPARATOR = "\n\n" + "=" * 50 + "\n\n"


def _summary(conversation: ChatConversation) -> ConversationSummary:
    return ConversationSummary(
        id=str(conversation.id),
        title=conversation.title,
        message_count=len(conversation.messages),
        timestamp=conversation.created_at,
    )


def _detail(conversation: ChatConversation) -> ConversationDetail:
    return ConversationDetail(
        id=str(conversation.id),
        title=conversation.title,
        message_count=len(conversation.messages),
        timestamp=conversation.created_at,
        messages=[ChatMessageIn(role=m.role, content=m.content) for m in conversation.messages],
    )


def format_export(conversations: list[ChatConversation]) -> str:
    """Plain-text export of conversations, newest first."""
    blocks = []
    for conversation in conversations:
        lines = "\n\n".join(
            f"{'You' if message.role == 'user' else 'AI'}: {message.content}"
            for message in conversation.messages
        )
        stamp = conversation.created_at.strftime("%Y-%m-%d %H:%M:%S")
        blocks.append(f"=== {conversation.title} ({stamp}) ===\n\n{lines}")
    return EXPORT_SEPARATOR.join(blocks)


@router.post("", response_model=ConversationSummary, status_code=status.HTTP_201_CREATED)
def save_conversation(
    body: HistorySaveRequest,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> ConversationSummary:
    """Save a chat; the oldest chats beyond the history limit are dropped."""
    if not body.messages:
        raise HTTPException(status_code=400, detail="Messages are required")

    conversation = ChatHistoryRepository(session).save_conversation(
        auth.user_id,
        [m.model_dump() for m in body.messages],
        keep=settings.chat_history_limit,
    )
    session.commit()
    return _summary(conversation)


@router.get("", response_model=list[ConversationSummary])
def list_conversations(
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> list[ConversationSummary]:
    return [_summary(c) for c in ChatHistoryRepository(session).list_with_messages(auth.user_id)]


@router.get("/export", response_class=PlainTextResponse)
def export_conversations(
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> PlainTextResponse:
    conversations = ChatHistoryRepository(session).list_with_messages(auth.user_id)
    return PlainTextResponse(
        format_export(conversations),
        headers={"Content-Disposition": 'attachment; filename="chat_history.txt"'},
    )


@router.get("/{conversation_id}", response_model=ConversationDetail)
def get_conversation(
    conversation_id: uuid.UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> ConversationDetail:
    conversation = ChatHistoryRepository(session).get_for_user(conversation_id, auth.user_id)
    if not conversation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return _detail(conversation)


@router.delete("/{conversation_id}")
def delete_conversation(
    conversation_id: uuid.UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> dict:
    if not ChatHistoryRepository(session).delete_for_user(conversation_id, auth.user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    session.commit()
    return {"success": True}
