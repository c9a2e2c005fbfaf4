"""Durable store boundary helpers.

Constraint violations raised by the driver are translated here into the
application error taxonomy, so services surface "already exists" and
"remove dependents first" distinctly from generic store failures.
"""

from collections.abc import AsyncIterator, Iterator, Sequence
from contextlib import asynccontextmanager, contextmanager
from enum import Enum
from typing import Any

from sqlalchemy import insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppError, ConflictError, DependencyError, InfrastructureError
from app.core.logging import get_logger
from app.db.models import Base

logger = get_logger(__name__)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


class ConflictPolicy(str, Enum):
    """What an insert does when a row collides with a unique constraint."""

    RAISE = "raise"
    IGNORE = "ignore"


def _sqlstate(exc: IntegrityError) -> str | None:
    orig = exc.orig
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    return None


def translate_integrity_error(
    exc: IntegrityError,
    conflict_message: str | None = None,
    dependency_message: str | None = None,
) -> AppError:
    """Map a constraint violation to ConflictError or DependencyError."""
    code = _sqlstate(exc)
    text = str(exc.orig).upper()

    if code == UNIQUE_VIOLATION or "UNIQUE" in text or "DUPLICATE KEY" in text:
        return ConflictError(conflict_message) if conflict_message else ConflictError()
    if code == FOREIGN_KEY_VIOLATION or "FOREIGN KEY" in text:
        return DependencyError(dependency_message) if dependency_message else DependencyError()

    logger.error("Unclassified integrity error", error=str(exc.orig), sqlstate=code)
    return InfrastructureError()


@contextmanager
def integrity_errors(
    conflict_message: str | None = None,
    dependency_message: str | None = None,
) -> Iterator[None]:
    """Translate IntegrityError raised inside the block."""
    try:
        yield
    except IntegrityError as exc:
        raise translate_integrity_error(exc, conflict_message, dependency_message) from exc


@asynccontextmanager
async def atomic(
    session: AsyncSession,
    conflict_message: str | None = None,
    dependency_message: str | None = None,
) -> AsyncIterator[AsyncSession]:
    """Commit every write made in the block together, or roll all of them back.

    Cache invalidation belongs after the block, once the commit is durable.
    """
    try:
        with integrity_errors(conflict_message, dependency_message):
            yield session
            await session.commit()
    except Exception:
        await session.rollback()
        raise


def _insert_for(session: AsyncSession, model: type[Base]) -> Any:
    dialect = session.bind.dialect.name if session.bind is not None else ""
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    return insert(model)


async def insert_rows(
    session: AsyncSession,
    model: type[Base],
    rows: Sequence[dict[str, Any]],
    policy: ConflictPolicy = ConflictPolicy.RAISE,
    conflict_columns: Sequence[str] | None = None,
    conflict_message: str | None = None,
) -> int:
    """Insert rows with an explicit policy for unique-constraint collisions.

    RAISE surfaces a collision as ConflictError. IGNORE skips colliding rows
    and reports only how many were actually written.
    """
    if not rows:
        return 0

    stmt = _insert_for(session, model)
    if policy is ConflictPolicy.IGNORE:
        if not hasattr(stmt, "on_conflict_do_nothing"):
            raise InfrastructureError("Conflict-ignoring insert is not supported by this store")
        stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_columns or []) or None)

    inserted = 0
    with integrity_errors(conflict_message):
        for row in rows:
            result = await session.execute(stmt.values(**row))
            inserted += max(result.rowcount or 0, 0)
    logger.debug(
        "Rows inserted",
        table=model.__tablename__,
        requested=len(rows),
        inserted=inserted,
        policy=policy.value,
    )
    return inserted


async def upsert_row(
    session: AsyncSession,
    model: type[Base],
    row: dict[str, Any],
    conflict_columns: Sequence[str],
    update_columns: Sequence[str],
) -> None:
    """Insert a row, or overwrite ``update_columns`` on the row it collides with.

    Runs as one statement, so concurrent writers for the same key never
    produce a duplicate or a ConflictError.
    """
    stmt = _insert_for(session, model)
    if not hasattr(stmt, "on_conflict_do_update"):
        raise InfrastructureError("Upsert is not supported by this store")
    stmt = stmt.values(**row)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(conflict_columns),
        set_={column: stmt.excluded[column] for column in update_columns},
    )
    with integrity_errors():
        await session.execute(stmt)
    logger.debug("Row upserted", table=model.__tablename__, key=[row[c] for c in conflict_columns])
