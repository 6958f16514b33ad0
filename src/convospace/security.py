"""
Password hashing and signed access tokens.

Passwords are hashed with bcrypt. Tokens are compact HS256 JSON Web Tokens
(``header.payload.signature``) signed with the configured ``jwt_secret``.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Any, Optional

import bcrypt

from convospace.config import settings

RESET_TOKEN_TYPE = "password_reset"

_HEADER = {"alg": "HS256", "typ": "JWT"}


class InvalidTokenError(Exception):
    """Raised when a token is malformed, tampered with or expired."""


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(signing_input: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), signing_input, hashlib.sha256).digest()
    return _b64url_encode(digest)


def create_token(
    user_id: int | str,
    email: str,
    expires_in_seconds: int,
    token_type: Optional[str] = None,
    secret: Optional[str] = None,
) -> str:
    """
    Issue a signed token for a user.

    Args:
        user_id: User primary key (stored as a string claim)
        email: User email
        expires_in_seconds: Lifetime of the token
        token_type: Optional purpose marker (e.g. ``password_reset``)
        secret: Signing secret override (defaults to settings.jwt_secret)

    Returns:
        Encoded token string
    """
    now = int(time.time())
    payload: dict[str, Any] = {
        "userId": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + expires_in_seconds,
    }
    if token_type:
        payload["type"] = token_type

    header_b64 = _b64url_encode(json.dumps(_HEADER, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    signature = _sign(signing_input, secret or settings.jwt_secret)
    return f"{header_b64}.{payload_b64}.{signature}"


def decode_token(token: str, secret: Optional[str] = None) -> dict[str, Any]:
    """
    Verify a token and return its claims.

    Args:
        token: Encoded token
        secret: Signing secret override (defaults to settings.jwt_secret)

    Returns:
        Decoded payload

    Raises:
        InvalidTokenError: On malformed tokens, bad signatures or expiry
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise InvalidTokenError("Malformed token")

    header_b64, payload_b64, signature = parts
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    expected = _sign(signing_input, secret or settings.jwt_secret)
    if not hmac.compare_digest(signature, expected):
        raise InvalidTokenError("Invalid signature")

    try:
        header = json.loads(_b64url_decode(header_b64))
        payload = json.loads(_b64url_decode(payload_b64))
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidTokenError("Malformed token") from e

    if header.get("alg") != "HS256":
        raise InvalidTokenError("Unsupported algorithm")
    if not isinstance(payload, dict):
        raise InvalidTokenError("Malformed token")
    if int(payload.get("exp", 0)) < int(time.time()):
        raise InvalidTokenError("Token expired")

    return payload


def create_access_token(user_id: int | str, email: str) -> str:
    """Short-lived token returned by login."""
    return create_token(user_id, email, settings.access_token_expire_minutes * 60)


def create_refresh_token(user_id: int | str, email: str) -> str:
    """Long-lived token returned by refresh."""
    return create_token(user_id, email, settings.refresh_token_expire_days * 24 * 3600)


def create_reset_token(user_id: int | str, email: str) -> str:
    """Password reset token; never accepted as an access token."""
    return create_token(
        user_id,
        email,
        settings.reset_token_expire_minutes * 60,
        token_type=RESET_TOKEN_TYPE,
    )
