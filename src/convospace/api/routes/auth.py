"""
Authentication API routes.

Endpoints for registration, login, token refresh/validation and password
reset.
"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from convospace.api.auth import AuthContext, get_auth_context
from convospace.api.schemas import (
    CheckEmailResponse,
    CredentialsRequest,
    EmailRequest,
    LoginResponse,
    LogoutResponse,
    MessageResponse,
    RegisterResponse,
    ResetConfirmRequest,
    ResetPasswordResponse,
    TokenResponse,
    UserPublic,
    ValidateResponse,
)
from convospace.config import settings
from convospace.db.connection import get_db
from convospace.db.repositories import UserRepository
from convospace.models.db import User
from convospace.security import (
    RESET_TOKEN_TYPE,
    InvalidTokenError,
    create_access_token,
    create_refresh_token,
    create_reset_token,
    decode_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter()

RESET_MESSAGE = "If an account with that email exists, a password reset link has been sent."


def _public(user: User) -> UserPublic:
    return UserPublic(id=user.id, email=user.email)


def _current_user(auth: AuthContext, session: Session) -> User:
    """Load the token's user, rejecting tokens for deleted or disabled accounts."""
    user = UserRepository(session).get(auth.user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: CredentialsRequest,
    session: Session = Depends(get_db),
) -> RegisterResponse:
    """
    Create an account.

    Returns 400 when email or password is missing or the password is too
    short, 409 when the email is already registered.
    """
    if not body.email or not body.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    if len(body.password) < settings.password_min_length:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {settings.password_min_length} characters",
        )

    repo = UserRepository(session)
    if repo.email_exists(body.email):
        raise HTTPException(status_code=409, detail="User with this email already exists")

    try:
        user = repo.create_user(body.email, hash_password(body.password))
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="User with this email already exists")

    logger.info(f"Registered user {user.id}")
    return RegisterResponse(
        message="User registered successfully",
        user_id=user.id,
        user=_public(user),
    )


@router.post("/login", response_model=LoginResponse)
def login(
    body: CredentialsRequest,
    session: Session = Depends(get_db),
) -> LoginResponse:
    """Exchange credentials for a one-hour access token."""
    if not body.email or not body.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    repo = UserRepository(session)
    user = repo.get_by_email(body.email)
    if not user or not user.is_active or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    repo.record_login(user.id)
    session.commit()

    return LoginResponse(
        message="Login successful",
        token=create_access_token(user.id, user.email),
        user=_public(user),
    )


@router.post("/logout", response_model=LogoutResponse)
def logout(response: Response) -> LogoutResponse:
    """Clear the session cookie. Tokens are stateless and simply expire."""
    response.delete_cookie("session_id", path="/", httponly=True, samesite="lax")
    return LogoutResponse(success=True, message="Logged out successfully")


@router.post("/refresh", response_model=TokenResponse)
def refresh(
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> TokenResponse:
    """Issue a fresh long-lived token for a still-existing user."""
    user = _current_user(auth, session)
    return TokenResponse(token=create_refresh_token(user.id, user.email), user=_public(user))


@router.post("/validate", response_model=ValidateResponse)
def validate(
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> ValidateResponse:
    """Confirm a token is valid and its user still exists."""
    user = _current_user(auth, session)
    return ValidateResponse(valid=True, user=_public(user))


@router.post(
    "/reset-password",
    response_model=ResetPasswordResponse,
    response_model_exclude_none=True,
)
def reset_password(
    body: EmailRequest,
    session: Session = Depends(get_db),
) -> ResetPasswordResponse:
    """
    Start a password reset.

    The response is the same whether or not the account exists. In
    development the token and reset URL are included for testing.
    """
    if not body.email:
        raise HTTPException(status_code=400, detail="Email is required")

    user = UserRepository(session).get_by_email(body.email)
    if not user:
        return ResetPasswordResponse(message=RESET_MESSAGE)

    reset_token = create_reset_token(user.id, user.email)
    reset_url = f"{settings.app_url}/reset-password?{urlencode({'token': reset_token})}"
    # No mail delivery; the link is only logged
    logger.info(f"Password reset requested for user {user.id}: {reset_url}")

    if settings.is_development:
        return ResetPasswordResponse(
            message=RESET_MESSAGE,
            reset_token=reset_token,
            reset_url=reset_url,
        )
    return ResetPasswordResponse(message=RESET_MESSAGE)


@router.post("/reset-password/confirm", response_model=MessageResponse)
def reset_password_confirm(
    body: ResetConfirmRequest,
    session: Session = Depends(get_db),
) -> MessageResponse:
    """Set a new password using a reset token."""
    if not body.token or not body.new_password:
        raise HTTPException(status_code=400, detail="Token and new password are required")

    if len(body.new_password) < settings.password_min_length:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {settings.password_min_length} characters",
        )

    try:
        claims = decode_token(body.token)
        if claims.get("type") != RESET_TOKEN_TYPE:
            raise InvalidTokenError("Not a password reset token")
        user_id = int(claims["userId"])
    except (InvalidTokenError, KeyError, TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    repo = UserRepository(session)
    if repo.set_password(user_id, hash_password(body.new_password)) is None:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    session.commit()

    logger.info(f"Password reset completed for user {user_id}")
    return MessageResponse(message="Password has been reset successfully")


@router.post("/check-email", response_model=CheckEmailResponse)
def check_email(
    body: EmailRequest,
    session: Session = Depends(get_db),
) -> CheckEmailResponse:
    if not body.email:
        raise HTTPException(status_code=400, detail="Email is required")

    exists = UserRepository(session).email_exists(body.email)
    return CheckEmailResponse(exists=exists, available=not exists)
