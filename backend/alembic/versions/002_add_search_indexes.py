"""Add full-text and trigram indexes used by search.

PostgreSQL only; other dialects skip this revision.

Revision ID: 002_add_search_indexes
Revises: 001_initial_schema
Create Date: 2025-01-20

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

FTS_INDEXES = {
    'ix_users_fts': (
        'users',
        "to_tsvector('english', coalesce(name, '') || ' ' || coalesce(email, ''))",
    ),
    'ix_course_templates_fts': (
        'course_templates',
        "to_tsvector('english', coalesce(name, '') || ' ' || coalesce(course_code, '') "
        "|| ' ' || coalesce(description, ''))",
    ),
    'ix_lectures_fts': (
        'lectures',
        "to_tsvector('english', coalesce(title, '') || ' ' || coalesce(description, ''))",
    ),
    'ix_chapters_fts': (
        'chapters',
        "to_tsvector('english', coalesce(name, '') || ' ' || coalesce(description, ''))",
    ),
}

TRGM_INDEXES = {
    'ix_users_name_trgm': ('users', 'name'),
    'ix_course_templates_name_trgm': ('course_templates', 'name'),
    'ix_course_templates_code_trgm': ('course_templates', 'course_code'),
    'ix_lectures_title_trgm': ('lectures', 'title'),
    'ix_chapters_name_trgm': ('chapters', 'name'),
}


def _is_postgres() -> bool:
    return op.get_bind().dialect.name == 'postgresql'


def upgrade() -> None:
    """Create GIN indexes for tsvector matching and ILIKE filters."""
    if not _is_postgres():
        return

    op.execute('CREATE EXTENSION IF NOT EXISTS pg_trgm')
    for name, (table, expression) in FTS_INDEXES.items():
        op.execute(f'CREATE INDEX IF NOT EXISTS {name} ON {table} USING gin(({expression}))')
    for name, (table, column) in TRGM_INDEXES.items():
        op.execute(f'CREATE INDEX IF NOT EXISTS {name} ON {table} USING gin({column} gin_trgm_ops)')
    op.execute(
        'CREATE INDEX IF NOT EXISTS ix_course_instances_active_partial '
        'ON course_instances (is_active) WHERE is_active = true'
    )


def downgrade() -> None:
    """Drop the search indexes; the pg_trgm extension is left installed."""
    if not _is_postgres():
        return

    op.execute('DROP INDEX IF EXISTS ix_course_instances_active_partial')
    for name in [*TRGM_INDEXES, *FTS_INDEXES]:
        op.execute(f'DROP INDEX IF EXISTS {name}')
