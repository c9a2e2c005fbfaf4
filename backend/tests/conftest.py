"""Test configuration and fixtures.

Provides isolated test fixtures for:
- An in-memory SQLite database behind the application's Database handle
- An in-memory Redis stand-in behind a real CacheService
- HTTP client with the application state wired to both
- Seeded users, a teacher, a course, a chapter and a tagged lecture
"""

import os
from collections.abc import AsyncGenerator
from types import SimpleNamespace
from typing import Any

# Settings are cached on first use, so the environment must be set before
# anything from the application is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ACCESS_SECRET_KEY", "test-access-secret-key-for-testing-only-32")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret-key-for-testing-only-32")

import bcrypt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.config import Settings, get_settings
from app.core.security import create_access_token
from app.db.models import (
    Chapter,
    CourseInstance,
    CourseTemplate,
    Lecture,
    LectureTag,
    Teacher,
    User,
)
from app.db.session import Database, enable_sqlite_foreign_keys
from app.main import app
from app.services.cache import CacheService
from app.services.rate_limit import RateLimitService
from tests.fakes import FakeRedis

TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEST_PASSWORD = "password123"
# Low work factor keeps the suite fast; verification accepts any cost
TEST_PASSWORD_HASH = bcrypt.hashpw(TEST_PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()

ADMIN_ID = 1
TEACHER_USER_ID = 2
STUDENT_ID = 7
TEACHER_ID = 1
TEMPLATE_ID = 1
COURSE_ID = 3
CHAPTER_ID = 1
LECTURE_ID = 1


# =============================================================================
# Settings
# =============================================================================

@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Settings built from the test environment above."""
    return get_settings()


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def database() -> AsyncGenerator[Database, None]:
    """Fresh in-memory database per test.

    StaticPool keeps one connection so every session sees the same memory
    database.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    db = Database(engine)
    await db.create_all()

    yield db

    await db.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """A session for calling services directly."""
    async with database.session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def statement_counter(database: Database) -> list[str]:
    """Records every SQL statement the engine sends to the driver."""
    statements: list[str] = []

    @event.listens_for(database.engine.sync_engine, "before_cursor_execute")
    def _record(conn: Any, cursor: Any, statement: str, *args: Any) -> None:
        statements.append(statement)

    return statements


# =============================================================================
# Cache Fixtures
# =============================================================================

@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis: FakeRedis) -> CacheService:
    """Cache service over the in-memory Redis stand-in."""
    return CacheService(fake_redis, timeout=0.5)


@pytest.fixture
def disabled_cache() -> CacheService:
    """Cache service with no client; every call is a miss or a no-op."""
    return CacheService(None)


# =============================================================================
# Seed Data
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def seed(database: Database) -> SimpleNamespace:
    """Admin, teacher, student, one course with a tagged lecture."""
    async with database.session_factory() as session:
        session.add_all([
            User(id=ADMIN_ID, name="Ada Admin", email="admin@example.com",
                 password_hash=TEST_PASSWORD_HASH, role="admin"),
            User(id=TEACHER_USER_ID, name="Jane Smith", email="jane@example.com",
                 password_hash=TEST_PASSWORD_HASH, role="teacher"),
            User(id=STUDENT_ID, name="Alice Student", email="alice@example.com",
                 password_hash=TEST_PASSWORD_HASH, role="student"),
        ])
        await session.flush()
        session.add(Teacher(id=TEACHER_ID, user_id=TEACHER_USER_ID))
        session.add(CourseTemplate(
            id=TEMPLATE_ID,
            course_code="WEB101",
            name="Web Development Basics",
            description="HTML, CSS and JavaScript fundamentals",
        ))
        await session.flush()
        session.add(CourseInstance(
            id=COURSE_ID,
            course_template_id=TEMPLATE_ID,
            teacher_id=TEACHER_ID,
            instance_name="Fall cohort",
            is_active=True,
        ))
        await session.flush()
        session.add(Chapter(
            id=CHAPTER_ID,
            course_instance_id=COURSE_ID,
            name="Getting Started",
            description="Setting up",
            number=1,
        ))
        await session.flush()
        session.add(Lecture(
            id=LECTURE_ID,
            chapter_id=CHAPTER_ID,
            title="Introduction to Programming",
            description="First steps with code",
            youtube_url="https://youtu.be/intro",
            duration=600,
            lecture_number=1,
        ))
        await session.flush()
        session.add_all([
            LectureTag(lecture_id=LECTURE_ID, tag="beginner"),
            LectureTag(lecture_id=LECTURE_ID, tag="javascript"),
        ])
        await session.commit()

    return SimpleNamespace(
        admin_id=ADMIN_ID,
        teacher_user_id=TEACHER_USER_ID,
        teacher_id=TEACHER_ID,
        student_id=STUDENT_ID,
        template_id=TEMPLATE_ID,
        course_id=COURSE_ID,
        chapter_id=CHAPTER_ID,
        lecture_id=LECTURE_ID,
    )


# =============================================================================
# HTTP Client Fixtures
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def client(
    database: Database,
    cache: CacheService,
    test_settings: Settings,
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with the application state wired to test handles.

    The ASGI transport does not run the lifespan, so the handles it would
    create are set here instead.
    """
    app.state.db = database
    app.state.cache = cache
    app.state.rate_limiter = RateLimitService(test_settings)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# =============================================================================
# Authentication Fixtures
# =============================================================================

def bearer(user_id: int, role: str, name: str | None = None) -> dict[str, str]:
    """Authorization header carrying a freshly signed access token."""
    return {"Authorization": f"Bearer {create_access_token(user_id, role, name)}"}


@pytest.fixture
def student_headers(seed: SimpleNamespace) -> dict[str, str]:
    return bearer(seed.student_id, "student", "Alice Student")


@pytest.fixture
def admin_headers(seed: SimpleNamespace) -> dict[str, str]:
    return bearer(seed.admin_id, "admin", "Ada Admin")
