"""User accounts: login lookup, profiles and password changes."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from app.core.logging import get_logger
from app.core.security import get_password_hash, verify_password
from app.db.models import CourseInstance, CourseTemplate, Enrollment, Teacher, User
from app.db.store import atomic
from app.services.cache import CacheService, Mutation, keys

logger = get_logger(__name__)


def _profile(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


class UserService:
    """User reads are cached per user; writes commit before invalidating."""

    def __init__(self, session: AsyncSession, cache: CacheService):
        self.session = session
        self.cache = cache

    async def _get_user(self, user_id: int) -> User | None:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def authenticate(self, email: str, password: str) -> User:
        """Return the user for valid credentials.

        Unknown email and wrong password fail identically.
        """
        result = await self.session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None or not await verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        return user

    async def get_profile(self, user_id: int) -> dict[str, Any]:
        """Cached account profile (``user:<id>``)."""

        async def _compute() -> dict[str, Any]:
            user = await self._get_user(user_id)
            if user is None:
                raise NotFoundError("User")
            return _profile(user)

        return await self.cache.get_or_compute(
            keys.user_key(user_id), _compute, self.cache.entity_ttl
        )

    async def get_student_details(self, student_id: int) -> dict[str, Any]:
        """Cached student card (``student_details_<id>``)."""

        async def _compute() -> dict[str, Any]:
            user = await self._get_user(student_id)
            if user is None:
                raise NotFoundError("Student")
            if user.role != "student":
                raise AuthorizationError("User is not a student")
            return {"id": user.id, "name": user.name, "email": user.email, "role": user.role}

        return await self.cache.get_or_compute(
            keys.student_details_key(student_id), _compute, self.cache.entity_ttl
        )

    async def _enrolled_courses(self, student_id: int) -> list[dict[str, Any]]:
        result = await self.session.execute(
            select(
                CourseInstance.id,
                CourseInstance.teacher_id,
                CourseTemplate.name,
                CourseTemplate.course_code,
                User.name.label("teacher_name"),
            )
            .join(Enrollment, Enrollment.course_instance_id == CourseInstance.id)
            .join(CourseTemplate, CourseInstance.course_template_id == CourseTemplate.id)
            .join(Teacher, CourseInstance.teacher_id == Teacher.id)
            .join(User, Teacher.user_id == User.id)
            .where(Enrollment.student_id == student_id)
            .order_by(Enrollment.enrolled_at, CourseInstance.id)
        )
        return [
            {
                "course_instance_id": row.id,
                "teacher_id": row.teacher_id,
                "course_name": row.name,
                "course_code": row.course_code,
                "teacher_name": row.teacher_name,
            }
            for row in result.all()
        ]

    async def get_enrolled_courses(self, student_id: int) -> list[dict[str, Any]]:
        """Cached enrollments (``student_enrolled_courses_<id>``); 404 when none."""

        async def _compute() -> list[dict[str, Any]]:
            courses = await self._enrolled_courses(student_id)
            if not courses:
                raise NotFoundError("Enrolled courses")
            return courses

        return await self.cache.get_or_compute(
            keys.student_enrolled_courses_key(student_id), _compute, self.cache.entity_ttl
        )

    async def get_user_data(self, user_id: int) -> dict[str, Any]:
        """Cached profile plus enrollments (``user_data_<id>``)."""

        async def _compute() -> dict[str, Any]:
            user = await self._get_user(user_id)
            if user is None:
                raise NotFoundError("User")
            return {
                "name": user.name,
                "email": user.email,
                "enrolled_courses": await self._enrolled_courses(user_id),
            }

        return await self.cache.get_or_compute(
            keys.user_data_key(user_id), _compute, self.cache.entity_ttl
        )

    async def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        user = await self._get_user(user_id)
        if user is None:
            raise NotFoundError("User")
        if not await verify_password(old_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        new_hash = await get_password_hash(new_password)
        async with atomic(self.session):
            user.password_hash = new_hash

        await self.cache.invalidate_for(Mutation.PASSWORD_CHANGE, user_id=user_id)
        logger.info("Password changed", user_id=user_id)
