"""Sliding-window rate limiting over the Upstash Redis REST pipeline.

General endpoints fail open when the limiter cannot be reached; login fails
closed so an outage never turns into an unthrottled brute-force window.
"""

import time

import httpx
from fastapi import Request

from app.core.config import Settings, get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60


class RateLimitService:
    """Per-identifier request counters kept in sorted sets."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._enabled = settings.rate_limit_enabled and settings.redis_available
        self._url = settings.upstash_redis_rest_url
        self._token = settings.upstash_redis_rest_token
        self._general_limit = settings.rate_limit_requests_per_minute
        self._auth_limit = settings.rate_limit_auth_requests_per_minute
        self._window_seconds = WINDOW_SECONDS

        self._client: httpx.AsyncClient | None = None

        if self._enabled:
            logger.info(
                "Rate limiting initialized",
                general_limit=self._general_limit,
                auth_limit=self._auth_limit,
            )
        else:
            logger.info("Rate limiting disabled")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(5.0, connect=2.0),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                headers={"Authorization": f"Bearer {self._token}"},
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    async def _check_limit(self, key: str, limit: int, *, fail_closed: bool = False) -> tuple[bool, int]:
        """Record one request under ``key`` and report whether it fits the window.

        Returns:
            Tuple of (allowed, remaining_requests); remaining is -1 when unknown.
        """
        if not self._enabled:
            return True, -1

        try:
            current_time = int(time.time())
            window_start = current_time - self._window_seconds
            request_id = f"{current_time}:{time.time_ns()}"

            client = await self._get_client()
            response = await client.post(
                f"{self._url}/pipeline",
                json=[
                    ["ZREMRANGEBYSCORE", key, "0", str(window_start)],
                    ["ZADD", key, str(current_time), request_id],
                    ["EXPIRE", key, str(self._window_seconds * 2)],
                    ["ZCARD", key],
                ],
            )
            response.raise_for_status()
            results = response.json()

            count = results[-1].get("result", 0) if results else 0
            return count <= limit, max(0, limit - count)

        except Exception as e:
            logger.warning("Rate limit check failed", key=key, error=str(e), fail_closed=fail_closed)
            if fail_closed:
                return False, 0
            return True, -1

    async def check_general_limit(self, identifier: str) -> tuple[bool, int]:
        """General API limit (fail-open)."""
        return await self._check_limit(f"ratelimit:general:{identifier}", self._general_limit)

    async def check_auth_limit(self, identifier: str) -> tuple[bool, int]:
        """Login limit (fail-closed)."""
        return await self._check_limit(
            f"ratelimit:auth:{identifier}", self._auth_limit, fail_closed=True
        )


def get_rate_limit_service(request: Request) -> RateLimitService:
    """The limiter owned by the application."""
    return request.app.state.rate_limiter
