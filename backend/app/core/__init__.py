"""Core module exports."""

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DependencyError,
    InfrastructureError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from app.core.logging import get_logger, setup_logging
from app.core.security import (
    Principal,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    get_password_hash,
    verify_password,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Logging
    "get_logger",
    "setup_logging",
    # Security
    "Principal",
    "create_access_token",
    "create_refresh_token",
    "decode_access_token",
    "decode_refresh_token",
    "get_password_hash",
    "verify_password",
    # Exceptions
    "AppError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "DependencyError",
    "InfrastructureError",
    "NotFoundError",
    "RateLimitError",
    "ValidationError",
]
