"""One watch-history row per (user, lecture).

Duplicate rows left by earlier writers are collapsed to the most recently
watched one before the unique constraint is added.

Revision ID: 003_unique_watch_history
Revises: 002_add_search_indexes
Create Date: 2025-02-03

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '003'
down_revision: Union[str, None] = '002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Deduplicate and replace the plain index with a unique constraint."""
    op.execute(
        'DELETE FROM watch_history WHERE id NOT IN ('
        ' SELECT id FROM ('
        '  SELECT id, row_number() OVER ('
        '   PARTITION BY user_id, lecture_id ORDER BY last_watched DESC, id DESC'
        '  ) AS rn FROM watch_history'
        ' ) ranked WHERE rn = 1'
        ')'
    )
    with op.batch_alter_table('watch_history') as batch:
        batch.drop_index('ix_watch_history_user_lecture')
        batch.create_unique_constraint(
            'uq_watch_history_user_lecture', ['user_id', 'lecture_id']
        )


def downgrade() -> None:
    with op.batch_alter_table('watch_history') as batch:
        batch.drop_constraint('uq_watch_history_user_lecture', type_='unique')
        batch.create_index('ix_watch_history_user_lecture', ['user_id', 'lecture_id'])
