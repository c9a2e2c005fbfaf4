"""Security utilities for JWT authentication and password hashing.

Uses bcrypt for password hashing and python-jose for JWT.
Access and refresh tokens are signed with separate secrets; both carry the
principal's id, name and role so request handling never needs a store lookup
to authorize.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from app.core.config import get_settings

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as asserted by a verified token."""

    id: int
    role: str
    name: str | None = None
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password.

    Runs in a thread pool to avoid blocking the event loop.
    """
    loop = asyncio.get_running_loop()

    def _verify() -> bool:
        try:
            return bcrypt.checkpw(
                plain_password.encode("utf-8"), hashed_password.encode("utf-8")
            )
        except ValueError:
            # Malformed stored hash
            return False

    return await loop.run_in_executor(None, _verify)


async def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt.

    Runs in a thread pool to avoid blocking the event loop.
    """
    loop = asyncio.get_running_loop()

    def _hash() -> str:
        hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
        return hashed.decode("utf-8")

    return await loop.run_in_executor(None, _hash)


def _encode(claims: dict[str, Any], secret: str, expires_delta: timedelta) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    to_encode = claims.copy()
    to_encode.update({"exp": now + expires_delta, "iat": now})
    return jwt.encode(to_encode, secret, algorithm=settings.jwt_algorithm)


def _principal_claims(user_id: int, name: str | None, role: str) -> dict[str, Any]:
    return {"sub": str(user_id), "name": name, "role": role}


def create_access_token(
    user_id: int,
    role: str,
    name: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a short-lived access token for a user."""
    settings = get_settings()
    claims = _principal_claims(user_id, name, role)
    claims["type"] = TOKEN_TYPE_ACCESS
    return _encode(
        claims,
        settings.access_secret_key,
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(
    user_id: int,
    role: str,
    name: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a refresh token with extended expiration."""
    settings = get_settings()
    claims = _principal_claims(user_id, name, role)
    claims["type"] = TOKEN_TYPE_REFRESH
    return _encode(
        claims,
        settings.refresh_secret_key,
        expires_delta or timedelta(days=settings.refresh_token_expire_days),
    )


def _decode(token: str, secret: str, expected_type: str) -> Principal | None:
    settings = get_settings()
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    if payload.get("type") != expected_type:
        return None

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None

    role = payload.get("role")
    if not isinstance(role, str) or not role:
        return None

    return Principal(id=user_id, role=role, name=payload.get("name"))


def decode_access_token(token: str) -> Principal | None:
    """Verify an access token and return its principal, or None if invalid."""
    return _decode(token, get_settings().access_secret_key, TOKEN_TYPE_ACCESS)


def decode_refresh_token(token: str) -> Principal | None:
    """Verify a refresh token and return its principal, or None if invalid."""
    return _decode(token, get_settings().refresh_secret_key, TOKEN_TYPE_REFRESH)
