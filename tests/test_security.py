"""Tests for password hashing and tokens."""

import time

import pytest

from convospace.security import (
    RESET_TOKEN_TYPE,
    InvalidTokenError,
    create_access_token,
    create_reset_token,
    create_token,
    decode_token,
    hash_password,
    verify_password,
)


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("s3cret-pass")

        assert hashed != "s3cret-pass"
        assert verify_password("s3cret-pass", hashed)
        assert not verify_password("wrong-pass", hashed)

    def test_non_bcrypt_hash_does_not_verify(self):
        assert not verify_password("anything", "plain-text")


class TestTokens:
    """Tests for token issue and verification."""

    def test_round_trip_claims(self):
        claims = decode_token(create_access_token(7, "a@example.com"))

        assert claims["userId"] == "7"
        assert claims["email"] == "a@example.com"
        assert claims["exp"] > claims["iat"]
        assert "type" not in claims

    def test_reset_token_is_typed(self):
        claims = decode_token(create_reset_token(7, "a@example.com"))

        assert claims["type"] == RESET_TOKEN_TYPE

    def test_tampered_payload_rejected(self):
        header, payload, signature = create_access_token(7, "a@example.com").split(".")
        forged = create_access_token(8, "b@example.com").split(".")[1]

        with pytest.raises(InvalidTokenError):
            decode_token(f"{header}.{forged}.{signature}")

    def test_wrong_secret_rejected(self):
        token = create_token(1, "a@example.com", 60, secret="one")

        with pytest.raises(InvalidTokenError):
            decode_token(token, secret="two")

    def test_expired_token_rejected(self):
        token = create_token(1, "a@example.com", -10)

        with pytest.raises(InvalidTokenError, match="expired"):
            decode_token(token)

    def test_malformed_token_rejected(self):
        with pytest.raises(InvalidTokenError):
            decode_token("not-a-token")

    def test_expiry_uses_lifetime(self):
        before = int(time.time())
        claims = decode_token(create_token(1, "a@example.com", 120))

        assert before + 120 <= claims["exp"] <= int(time.time()) + 120
