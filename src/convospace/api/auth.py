"""
Authentication context for API endpoints.

Protected endpoints depend on get_auth_context(), which validates the
``Authorization: Bearer <token>`` header and returns the caller's identity.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, status

from convospace.security import RESET_TOKEN_TYPE, InvalidTokenError, decode_token


@dataclass
class AuthContext:
    """
    Authentication context for API requests.

    Attributes:
        user_id: Primary key of the authenticated user
        email: Email claim carried by the token

    Example:
        >>> @router.get("/profile")
        >>> def profile(
        ...     auth: AuthContext = Depends(get_auth_context),
        ...     session: Session = Depends(get_db),
        ... ):
        ...     user = UserRepository(session).get(auth.user_id)
    """

    user_id: int
    email: str


def get_auth_context(
    authorization: Optional[str] = Header(
        None,
        description="Bearer access token",
    ),
) -> AuthContext:
    """
    FastAPI dependency to extract and validate the bearer token.

    Args:
        authorization: Value of the Authorization header

    Returns:
        AuthContext for the token's user

    Raises:
        HTTPException(401): If the header is missing, or the token is invalid,
            expired or a password-reset token
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authorization header",
        )

    token = authorization[7:]  # Remove "Bearer " prefix

    try:
        claims = decode_token(token)
        if claims.get("type") == RESET_TOKEN_TYPE:
            raise InvalidTokenError("Reset tokens cannot be used for access")
        user_id = int(claims["userId"])
    except (InvalidTokenError, KeyError, TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    return AuthContext(user_id=user_id, email=claims.get("email", ""))


def require_user(
    authorization: Optional[str] = Header(None),
) -> AuthContext:
    """
    Variant of get_auth_context with a generic "Unauthorized" message.

    Used by the storage endpoints, which never reveal why a token failed.
    """
    try:
        return get_auth_context(authorization)
    except HTTPException:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
