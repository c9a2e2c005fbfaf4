"""Base cache operations - low-level Redis primitives.

Every call is bounded by a timeout. A timeout, a connection error or an
unconfigured client all behave the same way: reads report a miss and writes
become no-ops. Nothing raised by the cache client escapes this class.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import orjson
from upstash_redis.asyncio import Redis

from app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 2.0


def is_pattern(key: str) -> bool:
    """Whether a key contains glob metacharacters."""
    return any(ch in key for ch in "*?[")


class BaseCacheOperations:
    """Low-level Redis operations with graceful degradation."""

    def __init__(
        self,
        client: Redis | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._timeout = timeout

    @property
    def is_available(self) -> bool:
        """Check if cache is available."""
        return self._client is not None

    async def _call(self, op: str, call: Callable[[], Awaitable[T]], **context: Any) -> T | None:
        """Run one client call under the timeout; None signals failure."""
        if self._client is None:
            return None
        try:
            return await asyncio.wait_for(call(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Cache operation timed out", op=op, timeout=self._timeout, **context)
            return None
        except Exception as e:
            logger.warning("Cache operation failed", op=op, error=str(e), **context)
            return None

    # ========== String operations ==========

    async def get(self, key: str) -> str | None:
        """Get a value from cache."""
        result = await self._call("get", lambda: self._client.get(key), key=key)  # type: ignore[union-attr]
        return result if isinstance(result, str) else None

    async def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
    ) -> bool:
        """Set a value in cache with optional TTL, overwriting any prior entry."""

        async def _set() -> Any:
            if ttl:
                return await self._client.set(key, value, ex=ttl)  # type: ignore[union-attr]
            return await self._client.set(key, value)  # type: ignore[union-attr]

        result = await self._call("set", _set, key=key)
        return result is not None

    async def delete(self, *keys: str) -> int:
        """Delete keys from cache, returning how many existed."""
        if not keys:
            return 0
        result = await self._call("delete", lambda: self._client.delete(*keys), keys=list(keys))  # type: ignore[union-attr]
        return int(result) if result else 0

    async def keys(self, pattern: str) -> list[str]:
        """List keys matching a glob pattern.

        Upstash's REST API has no cursor-friendly SCAN, so this uses KEYS and
        costs O(total keys). Only invalidation and admin stats call it.
        """
        result = await self._call("keys", lambda: self._client.keys(pattern), pattern=pattern)  # type: ignore[union-attr]
        return list(result) if result else []

    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching a glob pattern."""
        matched = await self.keys(pattern)
        if not matched:
            return 0
        return await self.delete(*matched)

    async def invalidate(self, key_or_pattern: str) -> int:
        """Delete one exact key, or every key matching a glob pattern."""
        if is_pattern(key_or_pattern):
            return await self.delete_pattern(key_or_pattern)
        return await self.delete(key_or_pattern)

    # ========== JSON operations ==========

    async def get_json(self, key: str) -> Any | None:
        """Get and deserialize JSON from cache. Unparseable data is a miss."""
        data = await self.get(key)
        if data is None:
            return None
        try:
            return orjson.loads(data)
        except orjson.JSONDecodeError:
            logger.warning("Cache JSON decode failed, treating as miss", key=key)
            return None

    async def set_json(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> bool:
        """Serialize and store JSON in cache."""
        try:
            payload = orjson.dumps(value, default=str).decode()
        except TypeError as e:
            logger.warning("Cache JSON encode failed", key=key, error=str(e))
            return False
        return await self.set(key, payload, ttl)

    # ========== Read-through helper ==========

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[T]],
        ttl: int | None = None,
    ) -> T:
        """Return the cached value for key, or compute, store and return it.

        Concurrent callers on the same key may both compute; the last fill
        wins. Errors raised by compute propagate and nothing is stored.
        """
        cached = await self.get_json(key)
        if cached is not None:
            logger.debug("Cache hit", key=key)
            return cached  # type: ignore[no-any-return]

        logger.debug("Cache miss", key=key)
        value = await compute()
        if value is not None:
            await self.set_json(key, value, ttl)
        return value

    async def close(self) -> None:
        """Release the HTTP session held by the Upstash client."""
        if self._client is None:
            return
        try:
            await self._client.close()
        except Exception as e:
            logger.debug("Redis client close failed", error=str(e))

    # ========== Health check ==========

    async def check_health(self, timeout: float = 5.0) -> bool:
        """Check Redis connectivity with timeout."""
        if not self.is_available:
            return False

        try:
            result = await asyncio.wait_for(
                self._client.ping(),  # type: ignore[union-attr]
                timeout=timeout,
            )
            return bool(result)
        except asyncio.TimeoutError:
            logger.error("Redis health check timed out", timeout=timeout)
            return False
        except Exception as e:
            logger.error("Redis health check failed", error=str(e))
            return False
