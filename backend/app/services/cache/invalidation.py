"""Mutation-driven cache invalidation.

Each mutation kind maps to every key or pattern that may hold data derived
from the rows it touches. Callers invalidate only after their transaction has
committed. Invalidation is idempotent, so retrying it is always safe.
"""

from enum import Enum

from app.core.logging import get_logger
from app.services.cache import keys
from app.services.cache.base import BaseCacheOperations
from app.services.cache.constants import (
    KEY_PREFIX_COURSE,
    KEY_PREFIX_SEARCH,
    KEY_PREFIX_TEACHER,
    KEY_PREFIX_TEACHERS,
    LEGACY_SEARCH,
    LEGACY_STUDENT_ENROLLED_COURSES,
    LEGACY_USER_DATA,
)

logger = get_logger(__name__)

ALL_SEARCH = (f"{KEY_PREFIX_SEARCH}:*", f"{LEGACY_SEARCH}_*")
ALL_PUBLIC_TEACHERS = f"{KEY_PREFIX_TEACHERS}:public:*"
ALL_ENROLLED_COURSES = f"{LEGACY_STUDENT_ENROLLED_COURSES}_*"
ALL_USER_DATA = f"{LEGACY_USER_DATA}_*"


class Mutation(str, Enum):
    """Kinds of durable writes that affect cached reads."""

    ENROLLMENT = "enrollment"
    PASSWORD_CHANGE = "password_change"
    COURSE_INSTANCE = "course_instance"
    COURSE_CONTENT = "course_content"  # chapters, lectures, lecture tags
    COURSE_TEMPLATE = "course_template"
    USER_ACCOUNT = "user_account"  # account create, update, delete or promotion


def _course_keys(course_id: int | None) -> list[str]:
    course = keys.course_key(course_id) if course_id is not None else f"{KEY_PREFIX_COURSE}:*"
    return [course, keys.COURSES_BROWSE_ALL]


def _teacher_keys(teacher_id: int | None) -> list[str]:
    if teacher_id is None:
        return [f"{KEY_PREFIX_TEACHER}:*"]
    return [keys.teacher_courses_key(teacher_id), keys.teacher_details_key(teacher_id)]


def _account_keys(user_id: int) -> list[str]:
    return [
        keys.user_key(user_id),
        keys.session_key(user_id),
        keys.student_details_key(user_id),
        keys.student_enrolled_courses_key(user_id),
        keys.user_data_key(user_id),
    ]


def patterns_for(
    mutation: Mutation,
    *,
    course_id: int | None = None,
    teacher_id: int | None = None,
    student_id: int | None = None,
    user_id: int | None = None,
) -> list[str]:
    """Keys and glob patterns to clear after a committed mutation.

    A missing id widens the affected family to a pattern rather than
    skipping it.
    """
    if mutation is Mutation.PASSWORD_CHANGE:
        if user_id is None:
            raise ValueError("user_id is required for password change invalidation")
        return [keys.user_key(user_id)]

    if mutation is Mutation.ENROLLMENT:
        patterns = [*_course_keys(course_id), *_teacher_keys(teacher_id), ALL_PUBLIC_TEACHERS]
        if student_id is not None:
            patterns += [
                keys.student_enrolled_courses_key(student_id),
                keys.user_data_key(student_id),
            ]
        else:
            patterns += [ALL_ENROLLED_COURSES, ALL_USER_DATA]
        return patterns + list(ALL_SEARCH)

    if mutation is Mutation.COURSE_INSTANCE:
        return [
            *_course_keys(course_id),
            *_teacher_keys(teacher_id),
            ALL_PUBLIC_TEACHERS,
            ALL_ENROLLED_COURSES,
            ALL_USER_DATA,
            *ALL_SEARCH,
        ]

    if mutation is Mutation.COURSE_CONTENT:
        return [*_course_keys(course_id), *_teacher_keys(teacher_id), *ALL_SEARCH]

    if mutation is Mutation.COURSE_TEMPLATE:
        return [
            *_course_keys(None),
            *_teacher_keys(None),
            ALL_PUBLIC_TEACHERS,
            ALL_ENROLLED_COURSES,
            ALL_USER_DATA,
            *ALL_SEARCH,
        ]

    if mutation is Mutation.USER_ACCOUNT:
        if user_id is None:
            raise ValueError("user_id is required for account invalidation")
        # Names and enrollment counts of any account can appear in course and teacher views
        return [
            *_account_keys(user_id),
            *_course_keys(None),
            *_teacher_keys(teacher_id),
            ALL_PUBLIC_TEACHERS,
            *ALL_SEARCH,
        ]

    raise ValueError(f"Unknown mutation: {mutation}")


class InvalidationMixin(BaseCacheOperations):
    """Clears cached reads made stale by a committed mutation."""

    async def invalidate_for(
        self,
        mutation: Mutation,
        *,
        course_id: int | None = None,
        teacher_id: int | None = None,
        student_id: int | None = None,
        user_id: int | None = None,
    ) -> int:
        """Invalidate every key affected by a mutation; returns keys removed."""
        patterns = patterns_for(
            mutation,
            course_id=course_id,
            teacher_id=teacher_id,
            student_id=student_id,
            user_id=user_id,
        )
        removed = 0
        for pattern in patterns:
            removed += await self.invalidate(pattern)

        logger.info(
            "Cache invalidated",
            mutation=mutation.value,
            patterns=patterns,
            removed=removed,
        )
        return removed
