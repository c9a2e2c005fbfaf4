"""Tests for app.core.config.Settings."""

from typing import Any

import pytest
from pydantic import ValidationError

from app.core.config import Settings

# Shared kwargs that satisfy required fields
_BASE: dict[str, Any] = {
    "access_secret_key": "a-valid-access-key-that-is-long-enough-for-testing",
    "refresh_secret_key": "a-valid-refresh-key-that-is-long-enough-for-testing",
    "database_url": "postgresql+asyncpg://u:p@localhost/db",
}


class TestSecretValidation:
    """Signing secrets must be long enough."""

    @pytest.mark.parametrize("field", ["access_secret_key", "refresh_secret_key"])
    def test_short_secret_rejected(self, field: str):
        with pytest.raises(ValidationError):
            Settings(**{**_BASE, field: "too-short"})

    def test_valid_secrets_accepted(self):
        s = Settings(**_BASE)
        assert s.access_secret_key != s.refresh_secret_key


class TestCorsOrigins:
    """cors_origins parses comma-separated string."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("http://a,http://b", ["http://a", "http://b"]),
            ("http://a , http://b ", ["http://a", "http://b"]),
            ("http://only", ["http://only"]),
            ("", []),
        ],
        ids=["basic", "whitespace", "single", "empty"],
    )
    def test_cors_parsing(self, raw: str, expected: list[str]):
        s = Settings(**_BASE, CORS_ORIGINS=raw)
        assert s.cors_origins == expected


class TestProcessedDatabaseUrl:
    """processed_database_url transforms connection strings."""

    @pytest.mark.parametrize(
        "input_url, must_contain, must_not_contain",
        [
            (
                "postgresql+asyncpg://u:p@host/db?sslmode=require",
                "ssl=require",
                "sslmode",
            ),
            (
                "postgresql+asyncpg://u:p@host/db?sslmode=verify-full",
                "ssl=verify-full",
                "sslmode",
            ),
            (
                "postgresql+asyncpg://u:p@host/db?sslmode=prefer&application_name=edutube",
                "application_name=edutube",
                "sslmode",
            ),
        ],
        ids=["sslmode-require", "sslmode-verify-full", "keeps-other-params"],
    )
    def test_url_transformation(self, input_url: str, must_contain: str, must_not_contain: str):
        s = Settings(**{**_BASE, "database_url": input_url})
        assert must_contain in s.processed_database_url
        assert must_not_contain not in s.processed_database_url

    def test_sqlite_url_untouched(self):
        s = Settings(**{**_BASE, "database_url": "sqlite+aiosqlite://"})
        assert s.processed_database_url == "sqlite+aiosqlite://"


class TestRedisAvailable:
    """redis_available flag based on credentials."""

    def test_redis_available_when_both_set(self):
        s = Settings(
            **_BASE,
            upstash_redis_rest_url="https://redis.example.com",
            upstash_redis_rest_token="tok",
        )
        assert s.redis_available is True

    @pytest.mark.parametrize(
        "url, token",
        [("", "tok"), ("https://r.io", ""), ("", "")],
        ids=["url-missing", "token-missing", "both-empty"],
    )
    def test_redis_unavailable(self, url: str, token: str):
        s = Settings(**_BASE, upstash_redis_rest_url=url, upstash_redis_rest_token=token)
        assert s.redis_available is False


class TestDefaults:
    """Sensible default values."""

    def test_app_name(self):
        assert Settings(**_BASE).app_name == "EduTube API"

    def test_jwt_algorithm_default(self):
        assert Settings(**_BASE).jwt_algorithm == "HS256"

    def test_token_lifetimes(self):
        s = Settings(**_BASE)
        assert s.access_token_expire_minutes == 15
        assert s.refresh_token_expire_days == 7

    def test_search_limits(self):
        s = Settings(**_BASE)
        assert (s.search_default_limit, s.search_max_limit) == (10, 100)
        assert s.search_max_query_length == 500

    def test_rate_limits(self):
        s = Settings(**_BASE, rate_limit_enabled=True)
        assert s.rate_limit_enabled is True
        assert s.rate_limit_requests_per_minute == 120
        assert s.rate_limit_auth_requests_per_minute == 10

    def test_unknown_environment_rejected(self):
        with pytest.raises(ValidationError):
            Settings(**_BASE, environment="moon")
