"""Initial schema: users, teachers, courses, content, enrollments and watch history.

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-01-15

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='student'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_created_at', 'users', ['created_at'])

    # Create teachers table
    op.create_table(
        'teachers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )

    # Create course_templates table
    op.create_table(
        'course_templates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('course_code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_course_templates_course_code', 'course_templates', ['course_code'], unique=True)

    # Create course_instances table
    op.create_table(
        'course_instances',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('course_template_id', sa.Integer(), nullable=False),
        sa.Column('teacher_id', sa.Integer(), nullable=False),
        sa.Column('instance_name', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['course_template_id'], ['course_templates.id']),
        sa.ForeignKeyConstraint(['teacher_id'], ['teachers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('teacher_id', 'course_template_id', name='uq_course_instances_teacher_template')
    )
    op.create_index('ix_course_instances_course_template_id', 'course_instances', ['course_template_id'])
    op.create_index('ix_course_instances_teacher_id', 'course_instances', ['teacher_id'])
    op.create_index('ix_course_instances_created_at', 'course_instances', ['created_at'])
    op.create_index('ix_course_instances_is_active', 'course_instances', ['is_active'])

    # Create chapters table
    op.create_table(
        'chapters',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('course_instance_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['course_instance_id'], ['course_instances.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('course_instance_id', 'number', name='uq_chapters_instance_number')
    )
    op.create_index('ix_chapters_course_instance_id', 'chapters', ['course_instance_id'])

    # Create lectures table
    op.create_table(
        'lectures',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chapter_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('youtube_url', sa.String(length=500), nullable=True),
        sa.Column('duration', sa.Integer(), nullable=True),
        sa.Column('lecture_number', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['chapter_id'], ['chapters.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_lectures_chapter_number', 'lectures', ['chapter_id', 'lecture_number'])
    op.create_index('ix_lectures_created_at', 'lectures', ['created_at'])

    # Create lecture_tags table
    op.create_table(
        'lecture_tags',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('lecture_id', sa.Integer(), nullable=False),
        sa.Column('tag', sa.String(length=100), nullable=False),
        sa.ForeignKeyConstraint(['lecture_id'], ['lectures.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('lecture_id', 'tag', name='uq_lecture_tags_lecture_tag')
    )
    op.create_index('ix_lecture_tags_tag', 'lecture_tags', ['tag'])

    # Create enrollments table
    op.create_table(
        'enrollments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('course_instance_id', sa.Integer(), nullable=False),
        sa.Column('enrolled_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['student_id'], ['users.id']),
        sa.ForeignKeyConstraint(['course_instance_id'], ['course_instances.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'course_instance_id', name='uq_enrollments_student_course')
    )
    op.create_index('ix_enrollments_course_instance_id', 'enrollments', ['course_instance_id'])

    # Create watch_history table
    op.create_table(
        'watch_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('lecture_id', sa.Integer(), nullable=False),
        sa.Column('progress', sa.Float(), nullable=False, server_default='0'),
        sa.Column('current_time', sa.Float(), nullable=False, server_default='0'),
        sa.Column('last_watched', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['lecture_id'], ['lectures.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_watch_history_user_lecture', 'watch_history', ['user_id', 'lecture_id'])
    op.create_index('ix_watch_history_lecture_id', 'watch_history', ['lecture_id'])


def downgrade() -> None:
    op.drop_table('watch_history')
    op.drop_table('enrollments')
    op.drop_table('lecture_tags')
    op.drop_table('lectures')
    op.drop_table('chapters')
    op.drop_table('course_instances')
    op.drop_table('course_templates')
    op.drop_table('teachers')
    op.drop_table('users')
