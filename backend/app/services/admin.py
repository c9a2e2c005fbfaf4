"""Admin account management and dashboard figures.

Account writes commit first and then invalidate every cached view that can
carry the account's name, email or enrollments.
"""

from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.security import get_password_hash
from app.db.models import (
    Chapter,
    CourseInstance,
    CourseTemplate,
    Enrollment,
    Lecture,
    Teacher,
    User,
    WatchHistory,
)
from app.db.store import atomic
from app.services.cache import CacheService, Mutation
from app.services.content import purge_instances
from app.services.search.backends import contains
from app.services.search.query import Pagination

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 10
RECENT_ITEMS = 3

DUPLICATE_EMAIL = "User already exists"
ALREADY_TEACHER = "User is already a teacher"


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def _user_dict(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "createdAt": _iso(user.created_at),
    }


def _chapter_count():
    return (
        select(func.count(Chapter.id))
        .where(Chapter.course_instance_id == CourseInstance.id)
        .correlate(CourseInstance)
        .scalar_subquery()
    )


def _enrollment_count():
    return (
        select(func.count(Enrollment.id))
        .where(Enrollment.course_instance_id == CourseInstance.id)
        .correlate(CourseInstance)
        .scalar_subquery()
    )


class AdminService:
    def __init__(self, session: AsyncSession, cache: CacheService):
        self.session = session
        self.cache = cache

    async def _get_user(self, user_id: int) -> User:
        user = await self.session.scalar(select(User).where(User.id == user_id))
        if user is None:
            raise NotFoundError("User")
        return user

    async def _teacher_id(self, user_id: int) -> int | None:
        return await self.session.scalar(select(Teacher.id).where(Teacher.user_id == user_id))

    # ========== Dashboard ==========

    async def dashboard_stats(self) -> dict[str, Any]:
        """Row counts plus the newest users and course instances."""
        stats = {}
        for label, model in (
            ("users", User),
            ("teachers", Teacher),
            ("courseInstances", CourseInstance),
            ("lectures", Lecture),
            ("enrollments", Enrollment),
        ):
            stats[label] = await self.session.scalar(select(func.count(model.id)))

        recent_users = await self.session.scalars(
            select(User).order_by(User.created_at.desc(), User.id.desc()).limit(RECENT_ITEMS)
        )
        recent_instances = await self.session.execute(
            select(
                CourseInstance,
                CourseTemplate.course_code,
                CourseTemplate.name,
                User.name.label("teacher_name"),
                _chapter_count().label("chapter_count"),
                _enrollment_count().label("enrollment_count"),
            )
            .join(CourseTemplate, CourseInstance.course_template_id == CourseTemplate.id)
            .join(Teacher, CourseInstance.teacher_id == Teacher.id)
            .join(User, Teacher.user_id == User.id)
            .order_by(CourseInstance.created_at.desc(), CourseInstance.id.desc())
            .limit(RECENT_ITEMS)
        )
        return {
            "stats": stats,
            "recentUsers": [_user_dict(user) for user in recent_users],
            "recentCourseInstances": [
                {
                    "id": instance.id,
                    "courseCode": course_code,
                    "courseName": course_name,
                    "instanceName": instance.instance_name,
                    "teacherName": teacher_name,
                    "isActive": instance.is_active,
                    "chapterCount": chapters or 0,
                    "enrollmentCount": enrollments or 0,
                    "createdAt": _iso(instance.created_at),
                }
                for instance, course_code, course_name, teacher_name, chapters, enrollments in recent_instances
            ],
        }

    # ========== Users ==========

    async def list_users(
        self,
        page: int | None = None,
        limit: int | None = None,
        role: str | None = None,
        search: str | None = None,
    ) -> dict[str, Any]:
        """Newest accounts first; ``role`` of ``all`` or None means any role."""
        pagination = Pagination.clamp(page, limit, default_limit=DEFAULT_PAGE_SIZE)
        predicates = []
        if role and role != "all":
            predicates.append(User.role == role)
        search = " ".join((search or "").split())
        if search:
            predicates.append(or_(contains(User.name, search), contains(User.email, search)))

        users = (
            await self.session.scalars(
                select(User)
                .where(*predicates)
                .order_by(User.created_at.desc(), User.id.desc())
                .limit(pagination.limit)
                .offset(pagination.offset)
            )
        ).all()
        total = await self.session.scalar(select(func.count(User.id)).where(*predicates))
        return {
            "users": [_user_dict(user) for user in users],
            "pagination": pagination.describe(len(users), total),
        }

    async def create_user(self, name: str, email: str, password: str, role: str = "student") -> dict[str, Any]:
        """Create an account; teachers also get their teacher profile."""
        if await self.session.scalar(select(User.id).where(User.email == email)) is not None:
            raise ConflictError(DUPLICATE_EMAIL)

        user = User(name=name, email=email, password_hash=await get_password_hash(password), role=role)
        teacher_id = None
        async with atomic(self.session, conflict_message=DUPLICATE_EMAIL):
            self.session.add(user)
            await self.session.flush()
            if role == "teacher":
                teacher = Teacher(user_id=user.id)
                self.session.add(teacher)
                await self.session.flush()
                teacher_id = teacher.id

        await self.cache.invalidate_for(Mutation.USER_ACCOUNT, user_id=user.id, teacher_id=teacher_id)
        logger.info("User created", user_id=user.id, role=role)
        return _user_dict(user)

    async def update_user(self, user_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply name, email, role and password changes.

        Promoting an account to teacher creates its teacher profile. Demotion
        keeps the profile so existing course instances stay attached.
        """
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            raise ValidationError("No data provided for update")

        user = await self._get_user(user_id)
        teacher_id = await self._teacher_id(user_id)
        password_hash = (
            await get_password_hash(changes["password"]) if "password" in changes else None
        )

        async with atomic(self.session, conflict_message="Email already in use"):
            for field in ("name", "email", "role"):
                if field in changes:
                    setattr(user, field, changes[field])
            if password_hash is not None:
                user.password_hash = password_hash
            if user.role == "teacher" and teacher_id is None:
                teacher = Teacher(user_id=user_id)
                self.session.add(teacher)
                await self.session.flush()
                teacher_id = teacher.id

        await self.cache.invalidate_for(Mutation.USER_ACCOUNT, user_id=user_id, teacher_id=teacher_id)
        logger.info("User updated", user_id=user_id, fields=sorted(changes))
        return _user_dict(user)

    async def delete_user(self, user_id: int) -> None:
        """Delete an account with its enrollments, watch history and any taught courses."""
        await self._get_user(user_id)
        teacher_id = await self._teacher_id(user_id)

        async with atomic(self.session):
            if teacher_id is not None:
                await purge_instances(
                    self.session,
                    select(CourseInstance.id).where(CourseInstance.teacher_id == teacher_id),
                )
                await self.session.execute(delete(Teacher).where(Teacher.id == teacher_id))
            await self.session.execute(delete(Enrollment).where(Enrollment.student_id == user_id))
            await self.session.execute(delete(WatchHistory).where(WatchHistory.user_id == user_id))
            await self.session.execute(delete(User).where(User.id == user_id))

        await self.cache.invalidate_for(Mutation.USER_ACCOUNT, user_id=user_id, teacher_id=teacher_id)
        logger.info("User deleted", user_id=user_id, teacher_id=teacher_id)

    # ========== Teachers ==========

    async def list_teachers(
        self,
        page: int | None = None,
        limit: int | None = None,
        search: str | None = None,
    ) -> dict[str, Any]:
        pagination = Pagination.clamp(page, limit, default_limit=DEFAULT_PAGE_SIZE)
        search = " ".join((search or "").split())
        predicates = (
            [or_(contains(User.name, search), contains(User.email, search))] if search else []
        )
        course_count = (
            select(func.count(CourseInstance.id))
            .where(CourseInstance.teacher_id == Teacher.id)
            .correlate(Teacher)
            .scalar_subquery()
        )

        rows = (
            await self.session.execute(
                select(Teacher.id, User, course_count.label("course_count"))
                .join(User, Teacher.user_id == User.id)
                .where(*predicates)
                .order_by(User.name.asc(), Teacher.id.asc())
                .limit(pagination.limit)
                .offset(pagination.offset)
            )
        ).all()
        total = await self.session.scalar(
            select(func.count(Teacher.id)).join(User, Teacher.user_id == User.id).where(*predicates)
        )
        teachers = [
            {
                "id": teacher_id,
                "userId": user.id,
                "name": user.name,
                "email": user.email,
                "joinedAt": _iso(user.created_at),
                "courseCount": courses or 0,
            }
            for teacher_id, user, courses in rows
        ]
        return {"teachers": teachers, "pagination": pagination.describe(len(teachers), total)}

    async def create_teacher(self, user_id: int) -> dict[str, Any]:
        """Promote an existing account to teacher."""
        user = await self._get_user(user_id)
        if await self._teacher_id(user_id) is not None:
            raise ConflictError(ALREADY_TEACHER)

        teacher = Teacher(user_id=user_id)
        async with atomic(self.session, conflict_message=ALREADY_TEACHER):
            user.role = "teacher"
            self.session.add(teacher)

        await self.cache.invalidate_for(Mutation.USER_ACCOUNT, user_id=user_id, teacher_id=teacher.id)
        logger.info("Teacher created", user_id=user_id, teacher_id=teacher.id)
        return {"id": teacher.id, "user": _user_dict(user)}

    # ========== Dropdowns ==========

    async def teacher_options(self) -> list[dict[str, Any]]:
        rows = await self.session.execute(
            select(Teacher.id, User.id.label("user_id"), User.name, User.email)
            .join(User, Teacher.user_id == User.id)
            .order_by(User.name.asc(), Teacher.id.asc())
        )
        return [
            {"id": row.id, "name": row.name, "email": row.email, "userId": row.user_id}
            for row in rows.all()
        ]

    async def student_options(self) -> list[dict[str, Any]]:
        rows = await self.session.execute(
            select(User.id, User.name, User.email)
            .where(User.role == "student")
            .order_by(User.name.asc(), User.id.asc())
        )
        return [{"id": row.id, "name": row.name, "email": row.email} for row in rows.all()]
