"""Routes module exports."""

from app.api.routes.admin import router as admin_router
from app.api.routes.auth import router as auth_router
from app.api.routes.catalog import router as catalog_router
from app.api.routes.enrollment import router as enrollment_router
from app.api.routes.health import router as health_router
from app.api.routes.redis import router as redis_router
from app.api.routes.search import router as search_router
from app.api.routes.users import router as users_router
from app.api.routes.watch_history import router as watch_history_router

__all__ = [
    "admin_router",
    "auth_router",
    "catalog_router",
    "enrollment_router",
    "health_router",
    "redis_router",
    "search_router",
    "users_router",
    "watch_history_router",
]
