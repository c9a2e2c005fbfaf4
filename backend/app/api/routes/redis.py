"""Cache administration endpoints."""

from collections import Counter
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from app.api.deps import Cache, require_admin
from app.core.exceptions import AuthorizationError
from app.core.logging import get_logger
from app.services.cache import (
    ADMIN_CLEARABLE_PREFIXES,
    LEGACY_SEARCH,
    LEGACY_STUDENT_DETAILS,
    LEGACY_STUDENT_ENROLLED_COURSES,
    LEGACY_USER_DATA,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/redis", tags=["Cache"], dependencies=[Depends(require_admin)])

# Longest first so "student_enrolled_courses" wins over shorter prefixes
_LEGACY_FAMILIES = sorted(
    (LEGACY_STUDENT_ENROLLED_COURSES, LEGACY_STUDENT_DETAILS, LEGACY_USER_DATA, LEGACY_SEARCH),
    key=len,
    reverse=True,
)
SAMPLE_KEYS = 10


def key_family(key: str) -> str:
    """Group a key by its namespace: ``course:5`` -> ``course``."""
    if ":" in key:
        return key.split(":", 1)[0]
    for family in _LEGACY_FAMILIES:
        if key.startswith(f"{family}_"):
            return family
    return key


@router.get("/health", summary="Cache round-trip check")
async def redis_health(cache: Cache) -> dict[str, Any]:
    healthy = await cache.check_health()
    return {
        "status": "success" if healthy else "degraded",
        "available": cache.is_available,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/stats", summary="Key distribution by namespace")
async def redis_stats(cache: Cache) -> dict[str, Any]:
    all_keys = await cache.keys("*")
    distribution = Counter(key_family(k) for k in all_keys)
    return {
        "status": "success",
        "total_keys": len(all_keys),
        "key_distribution": dict(distribution),
        "sample_keys": sorted(all_keys)[:SAMPLE_KEYS],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.delete("/cache/{pattern:path}", summary="Clear cached keys by pattern")
async def clear_cache_pattern(pattern: str, cache: Cache) -> dict[str, Any]:
    """Only namespaces holding derived data may be cleared; sessions may not."""
    if not pattern.startswith(ADMIN_CLEARABLE_PREFIXES):
        raise AuthorizationError(
            f"Pattern must start with one of: {', '.join(ADMIN_CLEARABLE_PREFIXES)}"
        )
    removed = await cache.invalidate(pattern)
    logger.info("Cache cleared by admin", pattern=pattern, removed=removed)
    return {"status": "success", "pattern": pattern, "deleted_count": removed}
