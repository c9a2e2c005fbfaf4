"""API dependencies for FastAPI routes."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import RateLimitError
from app.core.logging import bind_principal, get_logger
from app.core.security import Principal, decode_access_token
from app.db.session import get_db
from app.services.admin import AdminService
from app.services.cache import CacheService, get_cache_service
from app.services.content import ContentService
from app.services.courses import CourseService
from app.services.enrollment import EnrollmentService
from app.services.rate_limit import RateLimitService, get_rate_limit_service
from app.services.search import SearchEngine
from app.services.teachers import TeacherService
from app.services.users import UserService
from app.services.watch_history import WatchHistoryService

logger = get_logger(__name__)

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)

DBSession = Annotated[AsyncSession, Depends(get_db)]
Cache = Annotated[CacheService, Depends(get_cache_service)]
RateLimiter = Annotated[RateLimitService, Depends(get_rate_limit_service)]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    cache: Cache,
) -> Principal:
    """Get the authenticated principal from the bearer token.

    The signed token decides authentication. The session record only fills
    in the display name and email; its absence is not an error.

    Raises:
        HTTPException: If the token is missing, invalid or expired
    """
    if not credentials:
        raise _unauthorized("Authentication required")

    principal = decode_access_token(credentials.credentials)
    if principal is None:
        raise _unauthorized("Invalid or expired token")
    bind_principal(principal.id, principal.role)

    session = await cache.get_session(principal.id)
    if session is not None:
        return Principal(
            id=principal.id,
            role=principal.role,
            name=session["name"] or principal.name,
            email=session["email"],
        )
    return principal


async def require_admin(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Allow only administrators through."""
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return principal


def _client_identifier(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


async def check_rate_limit(request: Request, rate_limiter: RateLimiter) -> None:
    """Check general API rate limit by client IP.

    Raises:
        RateLimitError: If rate limit exceeded
    """
    allowed, _ = await rate_limiter.check_general_limit(_client_identifier(request))
    if not allowed:
        raise RateLimitError(retry_after=rate_limiter.window_seconds)


async def check_auth_rate_limit(request: Request, rate_limiter: RateLimiter) -> None:
    """Check login rate limit; denies when the limiter is unreachable.

    Raises:
        RateLimitError: If rate limit exceeded
    """
    allowed, _ = await rate_limiter.check_auth_limit(_client_identifier(request))
    if not allowed:
        logger.warning("Login rate limit hit", client=_client_identifier(request))
        raise RateLimitError(retry_after=rate_limiter.window_seconds)


# ========== Service factories ==========


def get_user_service(db: DBSession, cache: Cache) -> UserService:
    return UserService(db, cache)


def get_admin_service(db: DBSession, cache: Cache) -> AdminService:
    return AdminService(db, cache)


def get_enrollment_service(db: DBSession, cache: Cache) -> EnrollmentService:
    return EnrollmentService(db, cache)


def get_teacher_service(db: DBSession, cache: Cache) -> TeacherService:
    return TeacherService(db, cache)


def get_course_service(db: DBSession, cache: Cache) -> CourseService:
    return CourseService(db, cache)


def get_content_service(db: DBSession, cache: Cache) -> ContentService:
    return ContentService(db, cache)


def get_search_engine(db: DBSession, cache: Cache) -> SearchEngine:
    return SearchEngine(db, cache)


def get_watch_history_service(db: DBSession, cache: Cache) -> WatchHistoryService:
    return WatchHistoryService(db, cache)


# Type aliases for cleaner route signatures
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AdminPrincipal = Annotated[Principal, Depends(require_admin)]
Users = Annotated[UserService, Depends(get_user_service)]
Enrollments = Annotated[EnrollmentService, Depends(get_enrollment_service)]
Teachers = Annotated[TeacherService, Depends(get_teacher_service)]
Courses = Annotated[CourseService, Depends(get_course_service)]
Content = Annotated[ContentService, Depends(get_content_service)]
Accounts = Annotated[AdminService, Depends(get_admin_service)]
Search = Annotated[SearchEngine, Depends(get_search_engine)]
Playback = Annotated[WatchHistoryService, Depends(get_watch_history_service)]
