"""Course catalogue browsing and course detail views."""

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.db.models import Chapter, CourseInstance, CourseTemplate, Enrollment, Lecture, LectureTag, Teacher, User
from app.services.cache import CacheService, keys

logger = get_logger(__name__)


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


class CourseService:
    def __init__(self, session: AsyncSession, cache: CacheService):
        self.session = session
        self.cache = cache

    def _summary_stmt(self) -> Any:
        student_count = (
            select(func.count(Enrollment.id))
            .where(Enrollment.course_instance_id == CourseInstance.id)
            .correlate(CourseInstance)
            .scalar_subquery()
        )
        chapter_count = (
            select(func.count(Chapter.id))
            .where(Chapter.course_instance_id == CourseInstance.id)
            .correlate(CourseInstance)
            .scalar_subquery()
        )
        return (
            select(
                CourseInstance.id,
                CourseInstance.instance_name,
                CourseInstance.is_active,
                CourseInstance.teacher_id,
                CourseInstance.created_at,
                CourseTemplate.id.label("template_id"),
                CourseTemplate.course_code,
                CourseTemplate.name,
                CourseTemplate.description,
                User.name.label("teacher_name"),
                student_count.label("student_count"),
                chapter_count.label("chapter_count"),
            )
            .join(CourseTemplate, CourseInstance.course_template_id == CourseTemplate.id)
            .join(Teacher, CourseInstance.teacher_id == Teacher.id)
            .join(User, Teacher.user_id == User.id)
        )

    @staticmethod
    def _summary(row: Any) -> dict[str, Any]:
        return {
            "id": row.id,
            "courseTemplateId": row.template_id,
            "courseCode": row.course_code,
            "name": row.name,
            "description": row.description,
            "instanceName": row.instance_name,
            "isActive": row.is_active,
            "teacherId": row.teacher_id,
            "teacherName": row.teacher_name,
            "studentCount": row.student_count or 0,
            "chapterCount": row.chapter_count or 0,
            "createdAt": _iso(row.created_at),
        }

    async def browse_all(self) -> list[dict[str, Any]]:
        """Every active course instance (``courses:browse:all``)."""

        async def _compute() -> list[dict[str, Any]]:
            rows = await self.session.execute(
                self._summary_stmt()
                .where(CourseInstance.is_active.is_(True))
                .order_by(CourseTemplate.name.asc(), CourseInstance.id.asc())
            )
            return [self._summary(row) for row in rows.all()]

        return await self.cache.get_or_compute(
            keys.COURSES_BROWSE_ALL, _compute, self.cache.entity_ttl
        )

    async def get_course(self, course_instance_id: int) -> dict[str, Any]:
        """Course instance with its chapters and lectures (``course:<id>``)."""

        async def _compute() -> dict[str, Any]:
            row = (
                await self.session.execute(
                    self._summary_stmt().where(CourseInstance.id == course_instance_id)
                )
            ).first()
            if row is None:
                raise NotFoundError("Course")
            course = self._summary(row)

            chapters = (
                await self.session.execute(
                    select(Chapter)
                    .where(Chapter.course_instance_id == course_instance_id)
                    .order_by(Chapter.number, Chapter.id)
                )
            ).scalars().all()
            lectures = (
                await self.session.execute(
                    select(Lecture)
                    .join(Chapter, Lecture.chapter_id == Chapter.id)
                    .where(Chapter.course_instance_id == course_instance_id)
                    .order_by(Lecture.lecture_number, Lecture.id)
                )
            ).scalars().all()
            tag_rows = (
                await self.session.execute(
                    select(LectureTag.lecture_id, LectureTag.tag)
                    .where(LectureTag.lecture_id.in_([lec.id for lec in lectures]))
                    .order_by(LectureTag.tag)
                )
            ).all() if lectures else []

            tags: dict[int, list[str]] = {}
            for lecture_id, tag in tag_rows:
                tags.setdefault(lecture_id, []).append(tag)

            by_chapter: dict[int, list[dict[str, Any]]] = {}
            for lec in lectures:
                by_chapter.setdefault(lec.chapter_id, []).append(
                    {
                        "id": lec.id,
                        "title": lec.title,
                        "description": lec.description,
                        "youtubeUrl": lec.youtube_url,
                        "duration": lec.duration,
                        "lectureNumber": lec.lecture_number,
                        "tags": tags.get(lec.id, []),
                    }
                )

            course["chapters"] = [
                {
                    "id": ch.id,
                    "name": ch.name,
                    "description": ch.description,
                    "number": ch.number,
                    "lectures": by_chapter.get(ch.id, []),
                }
                for ch in chapters
            ]
            course["lectureCount"] = len(lectures)
            return course

        return await self.cache.get_or_compute(
            keys.course_key(course_instance_id), _compute, self.cache.entity_ttl
        )
