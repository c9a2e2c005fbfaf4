"""Health API endpoint tests.

Tests for: root, health, liveness, readiness.
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from app.main import app
from app.services.cache import CacheService
from tests.fakes import FakeRedis

pytestmark = pytest.mark.asyncio


# =============================================================================
# No-auth smoke tests (parametrized)
# =============================================================================


@pytest.mark.parametrize("endpoint", [
    "/",
    "/health",
    "/health/live",
    "/health/ready",
])
async def test_health_no_auth_required(client: AsyncClient, endpoint: str):
    resp = await client.get(endpoint)
    assert resp.status_code == 200


# =============================================================================
# Root
# =============================================================================


async def test_root_status_and_version(client: AsyncClient):
    resp = await client.get("/")
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["name"] == "EduTube API"
    assert "version" in data


# =============================================================================
# Health
# =============================================================================


async def test_health_all_services_up(client: AsyncClient):
    resp = await client.get("/health")
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["services"]["database"]["status"] == "healthy"
    assert data["services"]["database"]["details"]["type"] == "sqlite"
    assert data["services"]["cache"]["status"] == "healthy"


async def test_health_degraded_without_cache(client: AsyncClient):
    app.state.cache = CacheService(None)

    resp = await client.get("/health")

    data = resp.json()
    assert data["status"] == "degraded"
    assert data["services"]["cache"]["details"]["provider"] == "not configured"


async def test_health_degraded_when_cache_fails(client: AsyncClient, fake_redis: FakeRedis):
    fake_redis.fail = True

    resp = await client.get("/health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["services"]["cache"]["status"] == "degraded"
    assert data["services"]["database"]["status"] == "healthy"


async def test_health_unhealthy_when_database_down(client: AsyncClient):
    with patch("app.db.session.Database.check_health", new_callable=AsyncMock, return_value=False):
        resp = await client.get("/health")
    assert resp.json()["status"] == "unhealthy"
    assert resp.json()["services"]["database"]["status"] == "unhealthy"


# =============================================================================
# Liveness
# =============================================================================


async def test_liveness_ok(client: AsyncClient):
    resp = await client.get("/health/live")
    assert resp.json()["status"] == "ok"


# =============================================================================
# Readiness
# =============================================================================


async def test_readiness_success(client: AsyncClient):
    resp = await client.get("/health/ready")
    assert resp.json()["status"] == "ready"


async def test_readiness_ignores_cache(client: AsyncClient, fake_redis: FakeRedis):
    fake_redis.fail = True
    resp = await client.get("/health/ready")
    assert resp.status_code == 200


async def test_readiness_db_failure(client: AsyncClient):
    with patch("app.db.session.Database.check_health", new_callable=AsyncMock, return_value=False):
        resp = await client.get("/health/ready")
    assert resp.status_code == 503
    assert resp.json()["status"] == "not_ready"


# =============================================================================
# Request context
# =============================================================================


async def test_request_id_is_echoed(client: AsyncClient):
    resp = await client.get("/health/live", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"


async def test_request_id_is_generated(client: AsyncClient):
    resp = await client.get("/health/live")
    assert len(resp.headers["X-Request-ID"]) == 32
