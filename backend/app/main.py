"""FastAPI application entry point."""

import asyncio as _asyncio
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from app.api import (
    admin_router,
    auth_router,
    catalog_router,
    enrollment_router,
    health_router,
    redis_router,
    search_router,
    users_router,
    watch_history_router,
)
from app.core.config import get_settings
from app.core.exceptions import (
    AppError,
    app_exception_handler,
    http_exception_handler,
    store_exception_handler,
    unhandled_exception_handler,
)
from app.core.logging import (
    REQUEST_ID_HEADER,
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from app.db.session import Database
from app.services.cache import create_cache_service
from app.services.rate_limit import RateLimitService

# Initialize logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Own the store, cache and rate limiter handles for the app's lifetime.

    Startup:
    - Build the database handle and make sure the schema exists
    - Build the cache service (degrades to no-op without credentials)
    - Build the rate limiter

    Shutdown:
    - Close the rate limiter and cache HTTP clients
    - Dispose database connections
    """
    settings = get_settings()

    logger.info(
        "Starting application",
        app_name=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    db = Database.from_settings(settings)

    # Retry transient connection failures at startup
    for _attempt in range(3):
        try:
            await db.create_all()
            break
        except Exception as exc:
            if _attempt == 2:
                logger.error("Failed to initialize database after 3 attempts", error=str(exc))
                await db.dispose()
                raise
            logger.warning(
                "Database init failed, retrying...",
                attempt=_attempt + 1,
                error=str(exc),
            )
            await _asyncio.sleep(2 ** _attempt)
    logger.info("Database initialized")

    app.state.db = db
    app.state.cache = create_cache_service(settings)
    app.state.rate_limiter = RateLimitService(settings)

    yield

    logger.info("Shutting down application")

    await app.state.rate_limiter.close()
    logger.info("Rate limiter connections closed")

    await app.state.cache.close()
    await db.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Course platform API with cached reads and ranked search",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    # Security headers middleware
    from starlette.middleware.base import BaseHTTPMiddleware

    class SecurityHeadersMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Any, call_next: Any) -> Any:
            response = await call_next(request)
            response.headers["X-Content-Type-Options"] = "nosniff"
            response.headers["X-Frame-Options"] = "DENY"
            response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
            if not settings.debug:
                response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
            return response

    app.add_middleware(SecurityHeadersMiddleware)

    class RequestContextMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Any, call_next: Any) -> Any:
            request_id = bind_request_context(
                request.method,
                request.url.path,
                request.headers.get(REQUEST_ID_HEADER),
            )
            start = time.perf_counter()
            try:
                response = await call_next(request)
                response.headers[REQUEST_ID_HEADER] = request_id
                logger.info(
                    "Request handled",
                    status_code=response.status_code,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                )
                return response
            finally:
                clear_request_context()

    app.add_middleware(RequestContextMiddleware)

    # GZip compression for responses
    from starlette.middleware.gzip import GZipMiddleware
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # Register exception handlers
    app.add_exception_handler(AppError, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, store_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Include routers
    app.include_router(health_router)
    for router in (
        auth_router,
        users_router,
        enrollment_router,
        watch_history_router,
        catalog_router,
        search_router,
        admin_router,
        redis_router,
    ):
        app.include_router(router, prefix="/api/v1")

    return app


# Create application instance
app = create_app()
