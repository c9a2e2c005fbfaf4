"""Comprehensive tests for security utilities.

Tests cover:
- Password hashing and verification
- Access and refresh token creation and decoding
- Token type and secret separation
- Token expiration handling
"""

from datetime import timedelta

import pytest
from jose import jwt

from app.core.config import get_settings
from app.core.security import (
    Principal,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    get_password_hash,
    verify_password,
)


class TestPasswordHashing:
    """Tests for password hashing functions."""

    async def test_password_hash_different_from_plain(self):
        """Test that hashed password differs from plain text."""
        hashed = await get_password_hash("my_secret_password")

        assert hashed != "my_secret_password"
        assert hashed.startswith("$2")

    async def test_password_hash_unique_each_time(self):
        """Test that same password produces different hashes (salting)."""
        hash1 = await get_password_hash("same_password")
        hash2 = await get_password_hash("same_password")

        assert hash1 != hash2

    async def test_verify_password_correct(self):
        hashed = await get_password_hash("correct_password")
        assert await verify_password("correct_password", hashed) is True

    @pytest.mark.parametrize("attempt", ["wrong_password", ""])
    async def test_verify_password_incorrect(self, attempt: str):
        hashed = await get_password_hash("correct_password")
        assert await verify_password(attempt, hashed) is False

    async def test_verify_password_malformed_hash(self):
        """A corrupt stored hash fails verification instead of raising."""
        assert await verify_password("anything", "not-a-bcrypt-hash") is False


class TestAccessTokens:
    """Tests for access token functions."""

    def test_round_trip_principal(self):
        token = create_access_token(7, "student", "Alice Student")

        assert decode_access_token(token) == Principal(id=7, role="student", name="Alice Student")

    def test_claims(self):
        """Test access token carries subject, role, type and timestamps."""
        settings = get_settings()
        token = create_access_token(7, "student", "Alice")

        payload = jwt.decode(token, settings.access_secret_key, algorithms=[settings.jwt_algorithm])

        assert payload["sub"] == "7"
        assert payload["role"] == "student"
        assert payload["type"] == "access"
        assert "exp" in payload
        assert "iat" in payload

    @pytest.mark.parametrize("token", ["invalid.token.here", "", "not-a-jwt-at-all"])
    def test_decode_garbage_returns_none(self, token: str):
        assert decode_access_token(token) is None

    def test_token_without_role_is_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "7", "type": "access"}, settings.access_secret_key, algorithm=settings.jwt_algorithm
        )
        assert decode_access_token(token) is None

    def test_non_numeric_subject_is_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "alice", "role": "student", "type": "access"},
            settings.access_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        assert decode_access_token(token) is None

    def test_admin_flag(self):
        assert decode_access_token(create_access_token(1, "admin")).is_admin is True
        assert decode_access_token(create_access_token(7, "student")).is_admin is False


class TestRefreshTokens:
    """Tests for refresh token functions."""

    def test_round_trip_principal(self):
        token = create_refresh_token(7, "student", "Alice")
        assert decode_refresh_token(token) == Principal(id=7, role="student", name="Alice")

    def test_refresh_token_is_not_an_access_token(self):
        """Refresh tokens are signed with their own secret and type."""
        assert decode_access_token(create_refresh_token(7, "student")) is None

    def test_access_token_is_not_a_refresh_token(self):
        assert decode_refresh_token(create_access_token(7, "student")) is None

    def test_type_claim_is_checked_even_with_the_right_secret(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "7", "role": "student", "type": "access"},
            settings.refresh_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        assert decode_refresh_token(token) is None


class TestTokenExpiration:
    """Tests for token expiration handling."""

    def test_expired_token_returns_none(self):
        """Test that expired token decoding returns None."""
        token = create_access_token(7, "student", expires_delta=timedelta(seconds=-1))

        assert decode_access_token(token) is None

    def test_expired_refresh_token_returns_none(self):
        token = create_refresh_token(7, "student", expires_delta=timedelta(seconds=-1))

        assert decode_refresh_token(token) is None

    def test_future_token_is_valid(self):
        token = create_access_token(7, "student", expires_delta=timedelta(days=30))

        assert decode_access_token(token).id == 7


class TestTokenSecurity:
    """Tests for token security aspects."""

    def test_different_users_get_different_tokens(self):
        assert create_access_token(1, "student") != create_access_token(2, "student")

    def test_token_with_wrong_secret_fails(self):
        """Test that token signed with a different secret cannot be decoded."""
        token = jwt.encode(
            {"sub": "7", "role": "admin", "type": "access"},
            "different-secret-key-12345678901234567890",
            algorithm="HS256",
        )

        assert decode_access_token(token) is None
