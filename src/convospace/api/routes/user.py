"""
User profile and API key routes.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from convospace.api.auth import AuthContext, get_auth_context, require_user
from convospace.api.schemas import (
    ApiKeyRequest,
    ApiKeysResponse,
    MessageResponse,
    PasswordChangeRequest,
    PasswordChangeResponse,
    ProfileResponse,
    ProfileUser,
    UserPublic,
)
from convospace.config import settings
from convospace.db.connection import get_db
from convospace.db.repositories import ApiKeyRepository, UserRepository
from convospace.security import hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> ProfileResponse:
    user = UserRepository(session).get(auth.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return ProfileResponse(
        user=ProfileUser(id=user.id, email=user.email, created_at=user.created_at)
    )


@router.put("/profile", response_model=PasswordChangeResponse)
def change_password(
    body: PasswordChangeRequest,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> PasswordChangeResponse:
    """Change the password after checking the current one."""
    if not body.current_password or not body.new_password:
        raise HTTPException(
            status_code=400, detail="Current password and new password are required"
        )

    if len(body.new_password) < settings.password_min_length:
        raise HTTPException(
            status_code=400,
            detail=f"New password must be at least {settings.password_min_length} characters",
        )

    repo = UserRepository(session)
    user = repo.get(auth.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if not verify_password(body.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    repo.set_password(user.id, hash_password(body.new_password))
    session.commit()
    logger.info(f"Password changed for user {user.id}")

    return PasswordChangeResponse(
        message="Password updated successfully",
        user=UserPublic(id=user.id, email=user.email),
    )


@router.post("/keys", response_model=MessageResponse)
def save_api_key(
    body: ApiKeyRequest,
    auth: AuthContext = Depends(require_user),
    session: Session = Depends(get_db),
) -> MessageResponse:
    """Save a provider key, replacing any existing key for that provider."""
    if not body.provider or not body.api_key:
        raise HTTPException(status_code=400, detail="Provider and API key are required")

    ApiKeyRepository(session).upsert(auth.user_id, body.provider, body.api_key)
    session.commit()
    return MessageResponse(message="API key saved successfully")


@router.get("/keys", response_model=ApiKeysResponse)
def list_api_keys(
    auth: AuthContext = Depends(require_user),
    session: Session = Depends(get_db),
) -> ApiKeysResponse:
    return ApiKeysResponse(api_keys=ApiKeyRepository(session).as_mapping(auth.user_id))


@router.delete("/keys/{provider}", response_model=MessageResponse)
def delete_api_key(
    provider: str,
    auth: AuthContext = Depends(require_user),
    session: Session = Depends(get_db),
) -> MessageResponse:
    if not ApiKeyRepository(session).delete_for_provider(auth.user_id, provider):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No API key saved for {provider}",
        )
    session.commit()
    return MessageResponse(message="API key deleted successfully")
