"""API module exports."""

from app.api.deps import AdminPrincipal, CurrentPrincipal, DBSession
from app.api.routes import (
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

__all__ = [
    # Routers
    "admin_router",
    "auth_router",
    "catalog_router",
    "enrollment_router",
    "health_router",
    "redis_router",
    "search_router",
    "users_router",
    "watch_history_router",
    # Dependencies
    "AdminPrincipal",
    "CurrentPrincipal",
    "DBSession",
]
