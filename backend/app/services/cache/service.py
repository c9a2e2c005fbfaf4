"""Main CacheService combining all cache operations."""

from fastapi import Request
from upstash_redis.asyncio import Redis

from app.core.config import Settings
from app.core.logging import get_logger
from app.services.cache.constants import TTL_ENTITY, TTL_SEARCH
from app.services.cache.invalidation import InvalidationMixin
from app.services.cache.session import SessionCacheMixin

logger = get_logger(__name__)


class CacheService(SessionCacheMixin, InvalidationMixin):
    """Async Redis caching service with graceful degradation.

    Combines all cache operations through multiple inheritance:
    - BaseCacheOperations: Redis primitives, JSON values, read-through
    - SessionCacheMixin: login session records
    - InvalidationMixin: mutation-driven invalidation
    """

    entity_ttl: int = TTL_ENTITY
    search_ttl: int = TTL_SEARCH


def create_cache_service(settings: Settings) -> CacheService:
    """Build the cache service owned by the application.

    Without Redis credentials the service has no client and every operation
    degrades to a miss or a no-op.
    """
    client: Redis | None = None
    if settings.redis_available:
        try:
            client = Redis(
                url=settings.upstash_redis_rest_url,
                token=settings.upstash_redis_rest_token,
            )
            logger.info("Redis cache initialized")
        except Exception as e:
            logger.warning("Failed to initialize Redis cache", error=str(e))
            client = None
    else:
        logger.info("Redis cache not configured, caching disabled")

    service = CacheService(client, timeout=settings.cache_timeout_seconds)
    service.entity_ttl = settings.cache_ttl_entity
    service.search_ttl = settings.cache_ttl_search
    service.session_ttl = settings.cache_ttl_session
    return service


def get_cache_service(request: Request) -> CacheService:
    """FastAPI dependency returning the application's cache service."""
    return request.app.state.cache
