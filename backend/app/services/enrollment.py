"""Student enrollment in course instances."""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.db.models import CourseInstance, Enrollment
from app.db.store import ConflictPolicy, atomic, insert_rows
from app.services.cache import CacheService, Mutation

logger = get_logger(__name__)

ALREADY_ENROLLED = "Already enrolled in this course"


class EnrollmentService:
    """Enroll and unenroll students.

    One enrollment per (student, course instance) is guaranteed by a unique
    constraint, so two racing enroll calls yield one row and one ConflictError.
    """

    def __init__(self, session: AsyncSession, cache: CacheService):
        self.session = session
        self.cache = cache

    async def _get_instance(self, course_instance_id: int) -> CourseInstance:
        result = await self.session.execute(
            select(CourseInstance).where(CourseInstance.id == course_instance_id)
        )
        instance = result.scalar_one_or_none()
        if instance is None:
            raise NotFoundError("Course")
        return instance

    async def enroll(self, student_id: int, course_instance_id: int) -> None:
        instance = await self._get_instance(course_instance_id)
        teacher_id = instance.teacher_id

        async with atomic(self.session, conflict_message=ALREADY_ENROLLED):
            await insert_rows(
                self.session,
                Enrollment,
                [{"student_id": student_id, "course_instance_id": course_instance_id}],
                policy=ConflictPolicy.RAISE,
                conflict_message=ALREADY_ENROLLED,
            )

        await self.cache.invalidate_for(
            Mutation.ENROLLMENT,
            course_id=course_instance_id,
            teacher_id=teacher_id,
            student_id=student_id,
        )
        logger.info("Student enrolled", student_id=student_id, course_instance_id=course_instance_id)

    async def unenroll(self, student_id: int, course_instance_id: int) -> None:
        instance = await self._get_instance(course_instance_id)
        teacher_id = instance.teacher_id

        async with atomic(self.session):
            result = await self.session.execute(
                delete(Enrollment).where(
                    Enrollment.student_id == student_id,
                    Enrollment.course_instance_id == course_instance_id,
                )
            )
            if not result.rowcount:
                raise NotFoundError("Enrollment")

        await self.cache.invalidate_for(
            Mutation.ENROLLMENT,
            course_id=course_instance_id,
            teacher_id=teacher_id,
            student_id=student_id,
        )
        logger.info("Student unenrolled", student_id=student_id, course_instance_id=course_instance_id)

    async def is_enrolled(self, student_id: int, course_instance_id: int) -> bool:
        result = await self.session.execute(
            select(Enrollment.id).where(
                Enrollment.student_id == student_id,
                Enrollment.course_instance_id == course_instance_id,
            )
        )
        return result.first() is not None
