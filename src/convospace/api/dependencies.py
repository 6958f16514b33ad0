"""Shared FastAPI dependencies for services."""

from functools import lru_cache

from fastapi import Depends, HTTPException, status

from convospace.chat.service import ChatService
from convospace.code.sessions import SessionStore
from convospace.config import settings
from convospace.exceptions import StorageDisabledError, StorageError
from convospace.providers import get_error_tracker, get_registry
from convospace.providers.errors import ErrorTracker
from convospace.providers.registry import ProviderRegistry
from convospace.storage import StorageBackend, create_storage_service


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    """Process-wide code session store."""
    return SessionStore(
        max_age_seconds=settings.code_session_max_age_seconds,
        cancel_grace_seconds=settings.code_session_cancel_grace_seconds,
    )


def get_chat_service(
    registry: ProviderRegistry = Depends(get_registry),
    error_tracker: ErrorTracker = Depends(get_error_tracker),
) -> ChatService:
    return ChatService(registry, error_tracker)


def get_storage() -> StorageBackend:
    """
    Storage backend for the request.

    Raises:
        HTTPException(503): Storage is disabled
        HTTPException(500): The configured provider is not supported
    """
    try:
        return create_storage_service()
    except StorageDisabledError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
