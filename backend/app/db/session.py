"""Async database session management with connection pooling.

The engine and session factory are owned by a ``Database`` handle that the
application constructs at startup and stores on ``app.state``; nothing here
holds process-wide connection state.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.core.config import Settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """Turn on foreign key enforcement, which SQLite leaves off by default."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async database engine from settings."""
    url = settings.processed_database_url

    engine_kwargs: dict[str, Any] = {
        "echo": settings.db_echo,
        "pool_pre_ping": True,  # Verify connections before use
    }

    # For SQLite tests, connect_args must be empty.
    if url.startswith("sqlite"):
        connect_args: dict[str, Any] = {}
    else:
        # Disable asyncpg prepared statement cache to survive schema changes
        # and pgbouncer-style poolers.
        connect_args = {
            "statement_cache_size": 0,
            "prepared_statement_cache_size": 0,
            "command_timeout": settings.db_command_timeout,
        }

    if url.startswith("sqlite"):
        # SQLite picks its own pool; sizing options do not apply
        pass
    elif "neon.tech" in url:
        # Serverless: let Neon handle connection pooling
        engine_kwargs["poolclass"] = NullPool
        logger.info("Using NullPool for serverless database")
    else:
        engine_kwargs.update({
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_timeout": settings.db_pool_timeout,
            "pool_recycle": 1800,  # Recycle connections after 30 min
        })
        logger.info(
            "Using connection pool",
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )

    engine = create_async_engine(url, connect_args=connect_args, **engine_kwargs)
    if engine.dialect.name == "sqlite":
        enable_sqlite_foreign_keys(engine)
    logger.info("Database engine created", dialect=engine.dialect.name)
    return engine


class Database:
    """Handle over one engine and its session factory."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(create_engine(settings))

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session scope that commits on success and rolls back on error.

        Services may commit earlier themselves; the trailing commit is then
        a no-op.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create all tables defined in the models if they don't exist.

        For production, use Alembic migrations instead.
        """
        from app.db.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialized")

    async def dispose(self) -> None:
        """Close database connections and dispose of the engine."""
        await self.engine.dispose()
        logger.info("Database connections closed")

    async def check_health(self, timeout: float = 5.0) -> bool:
        """Check database connectivity with timeout."""

        async def _check() -> bool:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True

        try:
            return await asyncio.wait_for(_check(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("Database health check timed out", timeout=timeout)
            return False
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False


def get_database(request: Request) -> Database:
    """FastAPI dependency returning the application's database handle."""
    return request.app.state.db


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that provides an async database session.

    Automatically handles commit on success and rollback on exception.
    """
    async with get_database(request).session() as session:
        yield session
