"""Health check and monitoring endpoints."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.api.deps import Cache
from app.api.schemas import HealthResponse, ServiceHealth
from app.core.config import get_settings
from app.db.session import Database, get_database

router = APIRouter(tags=["Health"])

DB = Annotated[Database, Depends(get_database)]


@router.get(
    "/",
    summary="Root endpoint",
    response_description="API information and basic health status",
)
async def root() -> dict[str, Any]:
    """Basic API metadata: name, version, environment and server time."""
    settings = get_settings()

    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "healthy",
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "documentation": "/docs",
    }


async def _timed_health_check(
    name: str,
    check_fn: Any,
    timeout: float = 5.0,
) -> tuple[str, bool, float, str | None]:
    """Execute a health check and measure its latency with timeout.

    Returns:
        Tuple of (name, healthy, latency_ms, error_message)
    """
    start = time.perf_counter()
    try:
        result = await asyncio.wait_for(check_fn(), timeout=timeout)
        latency = (time.perf_counter() - start) * 1000
        return (name, result, latency, None)
    except asyncio.TimeoutError:
        latency = (time.perf_counter() - start) * 1000
        return (name, False, latency, f"Health check timed out after {timeout}s")
    except Exception as e:
        latency = (time.perf_counter() - start) * 1000
        return (name, False, latency, str(e))


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Comprehensive health check",
    response_description="Detailed health status of all services",
)
async def health_check(db: DB, cache: Cache) -> HealthResponse:
    """
    Check the durable store and the cache.

    The store is required: if it is down the system is unhealthy. The cache
    is optional: if it is down or unconfigured the system is only degraded.
    """
    settings = get_settings()
    services: dict[str, ServiceHealth] = {}
    overall_status = "healthy"

    tasks = [_timed_health_check("database", db.check_health)]
    if cache.is_available:
        tasks.append(_timed_health_check("cache", cache.check_health))

    results = await asyncio.gather(*tasks)

    for name, healthy, latency, error in results:
        if name == "database":
            details: dict[str, Any] = {"type": db.engine.dialect.name}
            if error:
                details["error"] = error
            services["database"] = ServiceHealth(
                status="healthy" if healthy else "unhealthy",
                latency_ms=round(latency, 2),
                details=details,
            )
            if not healthy:
                overall_status = "unhealthy"
        else:
            cache_details: dict[str, Any] = {"type": "redis", "provider": "upstash"}
            if error:
                cache_details["error"] = error
            services["cache"] = ServiceHealth(
                status="healthy" if healthy else "degraded",
                latency_ms=round(latency, 2),
                details=cache_details,
            )
            if not healthy and overall_status == "healthy":
                overall_status = "degraded"

    if "cache" not in services:
        services["cache"] = ServiceHealth(
            status="degraded",
            details={"type": "redis", "provider": "not configured"},
        )
        if overall_status == "healthy":
            overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc),
        version=settings.app_version,
        services=services,
    )


@router.get(
    "/health/live",
    summary="Liveness probe",
    response_description="Simple liveness check for orchestrators",
)
async def liveness() -> dict[str, str]:
    """Returns 200 while the process is running; touches no dependencies."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get(
    "/health/ready",
    summary="Readiness probe",
    response_description="Readiness check for load balancers",
)
async def readiness(db: DB) -> JSONResponse:
    """
    Returns 200 when the durable store answers, 503 otherwise.

    The cache is not checked: requests are served without it.
    """
    if not await db.check_health(timeout=5.0):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
                "message": "Database connection failed",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "status": "ready",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
