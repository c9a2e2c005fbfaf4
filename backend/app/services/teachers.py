"""Public teacher directory and teacher detail pages."""

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.db.models import Chapter, CourseInstance, CourseTemplate, Enrollment, Lecture, Teacher, User
from app.services.cache import CacheService, keys
from app.services.search.backends import contains
from app.services.search.query import Pagination

logger = get_logger(__name__)

PUBLIC_DEFAULT_LIMIT = 12


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


class TeacherService:
    def __init__(self, session: AsyncSession, cache: CacheService):
        self.session = session
        self.cache = cache

    async def list_public(
        self,
        page: int | None = None,
        limit: int | None = None,
        search: str | None = None,
    ) -> dict[str, Any]:
        """Paginated teacher directory ordered by name, cached per page and search."""
        pagination = Pagination.clamp(page, limit, default_limit=PUBLIC_DEFAULT_LIMIT)
        search = " ".join((search or "").split()) or None

        async def _compute() -> dict[str, Any]:
            predicates = [contains(User.name, search)] if search else []

            active_courses = (
                select(func.count(CourseInstance.id))
                .where(CourseInstance.teacher_id == Teacher.id, CourseInstance.is_active.is_(True))
                .correlate(Teacher)
                .scalar_subquery()
            )
            student_count = (
                select(func.count(Enrollment.id))
                .join(CourseInstance, Enrollment.course_instance_id == CourseInstance.id)
                .where(CourseInstance.teacher_id == Teacher.id)
                .correlate(Teacher)
                .scalar_subquery()
            )

            rows = await self.session.execute(
                select(
                    Teacher.id,
                    User.id.label("user_id"),
                    User.name,
                    User.email,
                    User.created_at,
                    active_courses.label("course_count"),
                    student_count.label("student_count"),
                )
                .join(User, Teacher.user_id == User.id)
                .where(*predicates)
                .order_by(User.name.asc(), Teacher.id.asc())
                .limit(pagination.limit)
                .offset(pagination.offset)
            )
            teachers = [
                {
                    "id": row.id,
                    "userId": row.user_id,
                    "name": row.name,
                    "email": row.email,
                    "joinedAt": _iso(row.created_at),
                    "courseCount": row.course_count or 0,
                    "studentCount": row.student_count or 0,
                }
                for row in rows.all()
            ]
            total = (
                await self.session.execute(
                    select(func.count(Teacher.id))
                    .join(User, Teacher.user_id == User.id)
                    .where(*predicates)
                )
            ).scalar_one()

            return {
                "teachers": teachers,
                "pagination": pagination.describe(len(teachers), total),
            }

        return await self.cache.get_or_compute(
            keys.teachers_public_key(pagination.page, pagination.limit, search),
            _compute,
            self.cache.entity_ttl,
        )

    async def _teacher_row(self, teacher_id: int) -> Any:
        result = await self.session.execute(
            select(Teacher.id, User.id.label("user_id"), User.name, User.email, User.created_at)
            .join(User, Teacher.user_id == User.id)
            .where(Teacher.id == teacher_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Teacher")
        return row

    async def _course_summaries(self, teacher_id: int, active_only: bool) -> list[dict[str, Any]]:
        chapter_count = (
            select(func.count(Chapter.id))
            .where(Chapter.course_instance_id == CourseInstance.id)
            .correlate(CourseInstance)
            .scalar_subquery()
        )
        enrollment_count = (
            select(func.count(Enrollment.id))
            .where(Enrollment.course_instance_id == CourseInstance.id)
            .correlate(CourseInstance)
            .scalar_subquery()
        )
        lecture_stats = (
            select(
                Chapter.course_instance_id.label("course_instance_id"),
                func.count(Lecture.id).label("lecture_count"),
                func.coalesce(func.sum(Lecture.duration), 0).label("total_duration"),
            )
            .join(Lecture, Lecture.chapter_id == Chapter.id)
            .group_by(Chapter.course_instance_id)
            .subquery()
        )

        stmt = (
            select(
                CourseInstance.id,
                CourseInstance.instance_name,
                CourseInstance.is_active,
                CourseInstance.created_at,
                CourseInstance.updated_at,
                CourseTemplate.id.label("template_id"),
                CourseTemplate.name,
                CourseTemplate.course_code,
                CourseTemplate.description,
                chapter_count.label("chapter_count"),
                enrollment_count.label("enrollment_count"),
                func.coalesce(lecture_stats.c.lecture_count, 0).label("lecture_count"),
                func.coalesce(lecture_stats.c.total_duration, 0).label("total_duration"),
            )
            .join(CourseTemplate, CourseInstance.course_template_id == CourseTemplate.id)
            .outerjoin(lecture_stats, lecture_stats.c.course_instance_id == CourseInstance.id)
            .where(CourseInstance.teacher_id == teacher_id)
            .order_by(CourseInstance.created_at.desc(), CourseInstance.id.asc())
        )
        if active_only:
            stmt = stmt.where(CourseInstance.is_active.is_(True))

        rows = await self.session.execute(stmt)
        return [
            {
                "id": row.id,
                "courseTemplateId": row.template_id,
                "courseName": row.name,
                "courseCode": row.course_code,
                "description": row.description,
                "instanceName": row.instance_name,
                "isActive": row.is_active,
                "createdAt": _iso(row.created_at),
                "updatedAt": _iso(row.updated_at),
                "chaptersCount": row.chapter_count or 0,
                "enrollmentsCount": row.enrollment_count or 0,
                "lecturesCount": int(row.lecture_count or 0),
                "totalDuration": int(row.total_duration or 0),
            }
            for row in rows.all()
        ]

    async def get_details(self, teacher_id: int) -> dict[str, Any]:
        """Teacher profile with active courses and totals (``teacher:details:<id>``)."""

        async def _compute() -> dict[str, Any]:
            teacher = await self._teacher_row(teacher_id)
            courses = await self._course_summaries(teacher_id, active_only=True)
            return {
                "id": teacher.id,
                "userId": teacher.user_id,
                "name": teacher.name,
                "email": teacher.email,
                "joinedAt": _iso(teacher.created_at),
                "stats": {
                    "totalCourses": len(courses),
                    "totalStudents": sum(c["enrollmentsCount"] for c in courses),
                    "totalChapters": sum(c["chaptersCount"] for c in courses),
                    "totalLectures": sum(c["lecturesCount"] for c in courses),
                    "totalDuration": sum(c["totalDuration"] for c in courses),
                },
                "courses": courses,
            }

        return await self.cache.get_or_compute(
            keys.teacher_details_key(teacher_id), _compute, self.cache.entity_ttl
        )

    async def get_courses(self, teacher_id: int) -> list[dict[str, Any]]:
        """Every course instance taught by a teacher (``teacher:courses:<id>``)."""

        async def _compute() -> list[dict[str, Any]]:
            await self._teacher_row(teacher_id)
            return await self._course_summaries(teacher_id, active_only=False)

        return await self.cache.get_or_compute(
            keys.teacher_courses_key(teacher_id), _compute, self.cache.entity_ttl
        )
