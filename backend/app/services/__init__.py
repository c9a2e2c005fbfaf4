"""Services module exports."""

from app.services.admin import AdminService
from app.services.cache import CacheService, create_cache_service, get_cache_service
from app.services.content import ContentService
from app.services.courses import CourseService
from app.services.enrollment import EnrollmentService
from app.services.rate_limit import RateLimitService, get_rate_limit_service
from app.services.search import SearchEngine
from app.services.teachers import TeacherService
from app.services.users import UserService
from app.services.watch_history import WatchHistoryService

__all__ = [
    # Cache
    "CacheService",
    "create_cache_service",
    "get_cache_service",
    # Domain
    "AdminService",
    "ContentService",
    "CourseService",
    "EnrollmentService",
    "TeacherService",
    "UserService",
    "WatchHistoryService",
    # Search
    "SearchEngine",
    # Rate Limiting
    "RateLimitService",
    "get_rate_limit_service",
]
