"""Admin content management: course templates, instances, chapters, lectures and tags.

Deletes cascade by hand through every dependent table inside one transaction,
so either the whole subtree disappears or nothing does. Cache invalidation
runs only after the commit.
"""

import re
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.db.models import (
    Chapter,
    CourseInstance,
    CourseTemplate,
    Enrollment,
    Lecture,
    LectureTag,
    Teacher,
    User,
    WatchHistory,
)
from app.db.store import ConflictPolicy, atomic, insert_rows
from app.services.cache import CacheService, Mutation
from app.services.search.backends import contains
from app.services.search.query import Pagination

logger = get_logger(__name__)

COURSE_CODE_PATTERN = re.compile(r"^[A-Za-z0-9]{6,10}$")
MAX_LECTURE_TAGS = 10
ADMIN_PAGE_SIZE = 10
CHAPTER_PAGE_SIZE = 50

DUPLICATE_COURSE_CODE = "Course code already exists"
DUPLICATE_INSTANCE = "Teacher already teaches this course"
DUPLICATE_CHAPTER_NUMBER = "Chapter number already exists for this course instance"
DUPLICATE_LECTURE_NUMBER = "Lecture number already exists in this chapter"


def normalize_tags(tags: list[Any] | None) -> list[str]:
    """Trim, lowercase and dedupe tags, keeping at most ten."""
    result: list[str] = []
    for tag in tags or []:
        if not isinstance(tag, str):
            continue
        cleaned = tag.strip().lower()
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result[:MAX_LECTURE_TAGS]


def _validate_course_code(code: str) -> str:
    if not COURSE_CODE_PATTERN.match(code):
        raise ValidationError("Course code must be 6-10 alphanumeric characters")
    return code.upper()


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def _template_dict(template: CourseTemplate) -> dict[str, Any]:
    return {
        "id": template.id,
        "courseCode": template.course_code,
        "name": template.name,
        "description": template.description,
        "createdAt": _iso(template.created_at),
    }


def _instance_dict(instance: CourseInstance) -> dict[str, Any]:
    return {
        "id": instance.id,
        "courseTemplateId": instance.course_template_id,
        "teacherId": instance.teacher_id,
        "instanceName": instance.instance_name,
        "isActive": instance.is_active,
        "createdAt": _iso(instance.created_at),
        "updatedAt": _iso(instance.updated_at),
    }


def _chapter_dict(chapter: Chapter) -> dict[str, Any]:
    return {
        "id": chapter.id,
        "courseInstanceId": chapter.course_instance_id,
        "name": chapter.name,
        "description": chapter.description,
        "number": chapter.number,
    }


def _lecture_dict(lecture: Lecture, tags: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "id": lecture.id,
        "chapterId": lecture.chapter_id,
        "title": lecture.title,
        "description": lecture.description,
        "youtubeUrl": lecture.youtube_url,
        "duration": lecture.duration,
        "lectureNumber": lecture.lecture_number,
        "createdAt": _iso(lecture.created_at),
        "tags": tags,
    }


# ========== Cascades ==========


async def purge_lectures(session: AsyncSession, lecture_ids: Any) -> None:
    """Delete lectures and everything hanging off them.

    ``lecture_ids`` is a select of lecture ids, evaluated by the store.
    """
    await session.execute(delete(WatchHistory).where(WatchHistory.lecture_id.in_(lecture_ids)))
    await session.execute(delete(LectureTag).where(LectureTag.lecture_id.in_(lecture_ids)))
    await session.execute(delete(Lecture).where(Lecture.id.in_(lecture_ids)))


async def purge_instances(session: AsyncSession, instance_ids: Any) -> None:
    chapter_ids = select(Chapter.id).where(Chapter.course_instance_id.in_(instance_ids))
    await purge_lectures(session, select(Lecture.id).where(Lecture.chapter_id.in_(chapter_ids)))
    await session.execute(delete(Chapter).where(Chapter.course_instance_id.in_(instance_ids)))
    await session.execute(delete(Enrollment).where(Enrollment.course_instance_id.in_(instance_ids)))
    await session.execute(delete(CourseInstance).where(CourseInstance.id.in_(instance_ids)))


class ContentService:
    def __init__(self, session: AsyncSession, cache: CacheService):
        self.session = session
        self.cache = cache

    # ========== Lookups ==========

    async def _get(self, model: Any, entity_id: int, resource: str) -> Any:
        result = await self.session.execute(select(model).where(model.id == entity_id))
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(resource)
        return row

    async def _chapter_owner(self, chapter_id: int) -> tuple[Chapter, CourseInstance]:
        chapter = await self._get(Chapter, chapter_id, "Chapter")
        instance = await self._get(CourseInstance, chapter.course_instance_id, "Course instance")
        return chapter, instance

    async def _lecture_tags(self, lecture_id: int) -> list[dict[str, Any]]:
        result = await self.session.execute(
            select(LectureTag.id, LectureTag.tag)
            .where(LectureTag.lecture_id == lecture_id)
            .order_by(LectureTag.tag)
        )
        return [{"id": row.id, "tag": row.tag} for row in result.all()]

    # ========== Course templates ==========

    async def create_template(
        self, course_code: str, name: str, description: str | None = None
    ) -> dict[str, Any]:
        template = CourseTemplate(
            course_code=_validate_course_code(course_code),
            name=name,
            description=description,
        )
        async with atomic(self.session, conflict_message=DUPLICATE_COURSE_CODE):
            self.session.add(template)

        await self.cache.invalidate_for(Mutation.COURSE_TEMPLATE)
        logger.info("Course template created", template_id=template.id, course_code=template.course_code)
        return _template_dict(template)

    async def update_template(self, template_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        template = await self._get(CourseTemplate, template_id, "Course template")
        async with atomic(self.session, conflict_message=DUPLICATE_COURSE_CODE):
            if changes.get("course_code"):
                template.course_code = _validate_course_code(changes["course_code"])
            if changes.get("name"):
                template.name = changes["name"]
            if "description" in changes:
                template.description = changes["description"]

        await self.cache.invalidate_for(Mutation.COURSE_TEMPLATE)
        logger.info("Course template updated", template_id=template_id)
        return _template_dict(template)

    async def delete_template(self, template_id: int) -> None:
        await self._get(CourseTemplate, template_id, "Course template")
        async with atomic(self.session):
            await purge_instances(
                self.session,
                select(CourseInstance.id).where(CourseInstance.course_template_id == template_id),
            )
            await self.session.execute(delete(CourseTemplate).where(CourseTemplate.id == template_id))

        await self.cache.invalidate_for(Mutation.COURSE_TEMPLATE)
        logger.info("Course template deleted", template_id=template_id)

    # ========== Course instances ==========

    async def create_instance(
        self,
        course_template_id: int,
        teacher_id: int,
        instance_name: str | None = None,
    ) -> dict[str, Any]:
        await self._get(CourseTemplate, course_template_id, "Course template")
        await self._get(Teacher, teacher_id, "Teacher")

        instance = CourseInstance(
            course_template_id=course_template_id,
            teacher_id=teacher_id,
            instance_name=instance_name,
            is_active=True,
        )
        async with atomic(self.session, conflict_message=DUPLICATE_INSTANCE):
            self.session.add(instance)

        await self.cache.invalidate_for(
            Mutation.COURSE_INSTANCE, course_id=instance.id, teacher_id=teacher_id
        )
        logger.info("Course instance created", course_instance_id=instance.id, teacher_id=teacher_id)
        return _instance_dict(instance)

    async def update_instance(self, course_instance_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        instance = await self._get(CourseInstance, course_instance_id, "Course instance")
        old_teacher_id = instance.teacher_id
        new_teacher_id = changes.get("teacher_id")
        if new_teacher_id is not None and new_teacher_id != old_teacher_id:
            await self._get(Teacher, new_teacher_id, "Teacher")

        async with atomic(self.session, conflict_message=DUPLICATE_INSTANCE):
            if "instance_name" in changes:
                instance.instance_name = changes["instance_name"]
            if changes.get("is_active") is not None:
                instance.is_active = changes["is_active"]
            if new_teacher_id is not None:
                instance.teacher_id = new_teacher_id

        await self.cache.invalidate_for(
            Mutation.COURSE_INSTANCE, course_id=course_instance_id, teacher_id=old_teacher_id
        )
        if instance.teacher_id != old_teacher_id:
            await self.cache.invalidate_for(
                Mutation.COURSE_INSTANCE, course_id=course_instance_id, teacher_id=instance.teacher_id
            )
        logger.info("Course instance updated", course_instance_id=course_instance_id)
        return _instance_dict(instance)

    async def delete_instance(self, course_instance_id: int) -> None:
        instance = await self._get(CourseInstance, course_instance_id, "Course instance")
        teacher_id = instance.teacher_id
        async with atomic(self.session):
            await purge_instances(
                self.session,
                select(CourseInstance.id).where(CourseInstance.id == course_instance_id),
            )

        await self.cache.invalidate_for(
            Mutation.COURSE_INSTANCE, course_id=course_instance_id, teacher_id=teacher_id
        )
        logger.info("Course instance deleted", course_instance_id=course_instance_id)

    # ========== Chapters ==========

    async def create_chapter(
        self,
        course_instance_id: int,
        name: str,
        description: str | None = None,
        number: int | None = None,
    ) -> dict[str, Any]:
        instance = await self._get(CourseInstance, course_instance_id, "Course instance")
        if number is None:
            last = await self.session.execute(
                select(func.max(Chapter.number)).where(Chapter.course_instance_id == course_instance_id)
            )
            number = (last.scalar() or 0) + 1

        chapter = Chapter(
            course_instance_id=course_instance_id,
            name=name,
            description=description or "",
            number=number,
        )
        async with atomic(self.session, conflict_message=DUPLICATE_CHAPTER_NUMBER):
            self.session.add(chapter)

        await self.cache.invalidate_for(
            Mutation.COURSE_CONTENT, course_id=course_instance_id, teacher_id=instance.teacher_id
        )
        logger.info("Chapter created", chapter_id=chapter.id, course_instance_id=course_instance_id)
        return _chapter_dict(chapter)

    async def update_chapter(self, chapter_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        if not changes:
            raise ValidationError("No data provided for update")

        chapter, instance = await self._chapter_owner(chapter_id)
        async with atomic(self.session, conflict_message=DUPLICATE_CHAPTER_NUMBER):
            if changes.get("name"):
                chapter.name = changes["name"]
            if "description" in changes:
                chapter.description = changes["description"]
            if changes.get("number") is not None:
                chapter.number = changes["number"]

        await self.cache.invalidate_for(
            Mutation.COURSE_CONTENT, course_id=instance.id, teacher_id=instance.teacher_id
        )
        logger.info("Chapter updated", chapter_id=chapter_id)
        return _chapter_dict(chapter)

    async def delete_chapter(self, chapter_id: int) -> None:
        _, instance = await self._chapter_owner(chapter_id)
        async with atomic(self.session):
            await purge_lectures(self.session, select(Lecture.id).where(Lecture.chapter_id == chapter_id))
            await self.session.execute(delete(Chapter).where(Chapter.id == chapter_id))

        await self.cache.invalidate_for(
            Mutation.COURSE_CONTENT, course_id=instance.id, teacher_id=instance.teacher_id
        )
        logger.info("Chapter deleted", chapter_id=chapter_id)

    # ========== Lectures ==========

    async def _next_lecture_number(self, chapter_id: int, requested: int | None) -> int:
        if requested is None:
            last = await self.session.execute(
                select(func.max(Lecture.lecture_number)).where(Lecture.chapter_id == chapter_id)
            )
            return (last.scalar() or 0) + 1

        taken = await self.session.execute(
            select(Lecture.id).where(
                Lecture.chapter_id == chapter_id, Lecture.lecture_number == requested
            )
        )
        if taken.first() is not None:
            raise ConflictError(DUPLICATE_LECTURE_NUMBER)
        return requested

    async def create_lecture(
        self,
        chapter_id: int,
        title: str,
        youtube_url: str,
        description: str | None = None,
        duration: int | None = None,
        lecture_number: int | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        _, instance = await self._chapter_owner(chapter_id)
        number = await self._next_lecture_number(chapter_id, lecture_number)
        normalized = normalize_tags(tags)

        lecture = Lecture(
            chapter_id=chapter_id,
            title=title,
            description=description or "",
            youtube_url=youtube_url,
            duration=duration or 0,
            lecture_number=number,
        )
        async with atomic(self.session):
            self.session.add(lecture)
            await self.session.flush()
            await insert_rows(
                self.session,
                LectureTag,
                [{"lecture_id": lecture.id, "tag": tag} for tag in normalized],
                policy=ConflictPolicy.IGNORE,
                conflict_columns=["lecture_id", "tag"],
            )

        await self.cache.invalidate_for(
            Mutation.COURSE_CONTENT, course_id=instance.id, teacher_id=instance.teacher_id
        )
        logger.info("Lecture created", lecture_id=lecture.id, chapter_id=chapter_id, tags=len(normalized))
        return _lecture_dict(lecture, await self._lecture_tags(lecture.id))

    async def update_lecture(
        self,
        lecture_id: int,
        changes: dict[str, Any],
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        """Update lecture fields; when ``tags`` is given it replaces the tag set."""
        lecture = await self._get(Lecture, lecture_id, "Lecture")
        _, old_instance = await self._chapter_owner(lecture.chapter_id)

        new_instance = old_instance
        new_chapter_id = changes.get("chapter_id")
        if new_chapter_id is not None and new_chapter_id != lecture.chapter_id:
            _, new_instance = await self._chapter_owner(new_chapter_id)

        async with atomic(self.session):
            for field in ("title", "youtube_url"):
                if changes.get(field):
                    setattr(lecture, field, changes[field])
            for field in ("description", "duration"):
                if field in changes:
                    setattr(lecture, field, changes[field])
            for field in ("chapter_id", "lecture_number"):
                if changes.get(field) is not None:
                    setattr(lecture, field, changes[field])

            if tags is not None:
                await self.session.execute(delete(LectureTag).where(LectureTag.lecture_id == lecture_id))
                await insert_rows(
                    self.session,
                    LectureTag,
                    [{"lecture_id": lecture_id, "tag": tag} for tag in normalize_tags(tags)],
                    policy=ConflictPolicy.IGNORE,
                    conflict_columns=["lecture_id", "tag"],
                )

        for instance in {old_instance.id: old_instance, new_instance.id: new_instance}.values():
            await self.cache.invalidate_for(
                Mutation.COURSE_CONTENT, course_id=instance.id, teacher_id=instance.teacher_id
            )
        logger.info("Lecture updated", lecture_id=lecture_id)
        return _lecture_dict(lecture, await self._lecture_tags(lecture_id))

    async def delete_lecture(self, lecture_id: int) -> None:
        lecture = await self._get(Lecture, lecture_id, "Lecture")
        _, instance = await self._chapter_owner(lecture.chapter_id)
        async with atomic(self.session):
            await purge_lectures(self.session, select(Lecture.id).where(Lecture.id == lecture_id))

        await self.cache.invalidate_for(
            Mutation.COURSE_CONTENT, course_id=instance.id, teacher_id=instance.teacher_id
        )
        logger.info("Lecture deleted", lecture_id=lecture_id)

    # ========== Lecture tags ==========

    async def get_lecture_tags(self, lecture_id: int) -> dict[str, Any]:
        lecture = await self._get(Lecture, lecture_id, "Lecture")
        return {
            "lectureId": lecture.id,
            "title": lecture.title,
            "tags": await self._lecture_tags(lecture_id),
        }

    async def add_tags(self, lecture_id: int, tags: list[str]) -> dict[str, Any]:
        """Attach tags, skipping ones the lecture already has."""
        normalized = normalize_tags(tags)
        if not normalized:
            raise ValidationError("Tags array is required")

        lecture = await self._get(Lecture, lecture_id, "Lecture")
        _, instance = await self._chapter_owner(lecture.chapter_id)
        async with atomic(self.session):
            added = await insert_rows(
                self.session,
                LectureTag,
                [{"lecture_id": lecture_id, "tag": tag} for tag in normalized],
                policy=ConflictPolicy.IGNORE,
                conflict_columns=["lecture_id", "tag"],
            )

        await self.cache.invalidate_for(
            Mutation.COURSE_CONTENT, course_id=instance.id, teacher_id=instance.teacher_id
        )
        logger.info("Lecture tags added", lecture_id=lecture_id, added=added)
        return _lecture_dict(lecture, await self._lecture_tags(lecture_id))

    async def remove_tag(self, lecture_id: int, tag_id: int) -> None:
        lecture = await self._get(Lecture, lecture_id, "Lecture")
        _, instance = await self._chapter_owner(lecture.chapter_id)
        async with atomic(self.session):
            result = await self.session.execute(
                delete(LectureTag).where(LectureTag.id == tag_id, LectureTag.lecture_id == lecture_id)
            )
            if not result.rowcount:
                raise NotFoundError("Tag")

        await self.cache.invalidate_for(
            Mutation.COURSE_CONTENT, course_id=instance.id, teacher_id=instance.teacher_id
        )
        logger.info("Lecture tag removed", lecture_id=lecture_id, tag_id=tag_id)

    async def lectures_by_tags(
        self, tags: list[str], course_instance_id: int | None = None
    ) -> dict[str, Any]:
        """Lectures carrying any of the given tags, in course order."""
        normalized = normalize_tags(tags)
        if not normalized:
            raise ValidationError("Tags parameter is required")

        stmt = (
            select(Lecture, Chapter.course_instance_id, CourseTemplate.course_code, CourseTemplate.name)
            .join(Chapter, Lecture.chapter_id == Chapter.id)
            .join(CourseInstance, Chapter.course_instance_id == CourseInstance.id)
            .join(CourseTemplate, CourseInstance.course_template_id == CourseTemplate.id)
            .where(
                Lecture.id.in_(select(LectureTag.lecture_id).where(LectureTag.tag.in_(normalized)))
            )
            .order_by(Lecture.chapter_id, Lecture.lecture_number, Lecture.id)
        )
        if course_instance_id is not None:
            stmt = stmt.where(Chapter.course_instance_id == course_instance_id)

        rows = (await self.session.execute(stmt)).all()
        tags = await self._tags_for([row[0].id for row in rows])
        lectures = []
        for lecture, instance_id, course_code, course_name in rows:
            item = _lecture_dict(lecture, tags[lecture.id])
            item.update(
                {"courseInstanceId": instance_id, "courseCode": course_code, "courseName": course_name}
            )
            lectures.append(item)

        return {"searchTags": normalized, "total": len(lectures), "lectures": lectures}

    # ========== Admin listings ==========

    async def _tags_for(self, lecture_ids: list[int]) -> dict[int, list[dict[str, Any]]]:
        tags: dict[int, list[dict[str, Any]]] = {lecture_id: [] for lecture_id in lecture_ids}
        if not lecture_ids:
            return tags
        result = await self.session.execute(
            select(LectureTag.id, LectureTag.lecture_id, LectureTag.tag)
            .where(LectureTag.lecture_id.in_(lecture_ids))
            .order_by(LectureTag.tag)
        )
        for row in result.all():
            tags[row.lecture_id].append({"id": row.id, "tag": row.tag})
        return tags

    def _instance_listing(self) -> Any:
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
        return (
            select(
                CourseInstance,
                CourseTemplate,
                User.name.label("teacher_name"),
                User.email.label("teacher_email"),
                chapter_count.label("chapter_count"),
                enrollment_count.label("enrollment_count"),
            )
            .join(CourseTemplate, CourseInstance.course_template_id == CourseTemplate.id)
            .join(Teacher, CourseInstance.teacher_id == Teacher.id)
            .join(User, Teacher.user_id == User.id)
        )

    @staticmethod
    def _instance_summary(row: Any) -> dict[str, Any]:
        instance, template = row[0], row[1]
        return {
            **_instance_dict(instance),
            "courseCode": template.course_code,
            "courseName": template.name,
            "courseDescription": template.description,
            "teacherName": row.teacher_name,
            "teacherEmail": row.teacher_email,
            "chapterCount": row.chapter_count or 0,
            "enrollmentCount": row.enrollment_count or 0,
        }

    async def list_templates(
        self,
        page: int | None = None,
        limit: int | None = None,
        search: str | None = None,
    ) -> dict[str, Any]:
        """Newest templates first, each with its number of course instances."""
        pagination = Pagination.clamp(page, limit, default_limit=ADMIN_PAGE_SIZE)
        search = " ".join((search or "").split())
        predicates = (
            [or_(contains(CourseTemplate.course_code, search), contains(CourseTemplate.name, search))]
            if search
            else []
        )
        instance_count = (
            select(func.count(CourseInstance.id))
            .where(CourseInstance.course_template_id == CourseTemplate.id)
            .correlate(CourseTemplate)
            .scalar_subquery()
        )
        rows = (
            await self.session.execute(
                select(CourseTemplate, instance_count.label("instance_count"))
                .where(*predicates)
                .order_by(CourseTemplate.created_at.desc(), CourseTemplate.id.desc())
                .limit(pagination.limit)
                .offset(pagination.offset)
            )
        ).all()
        total = await self.session.scalar(select(func.count(CourseTemplate.id)).where(*predicates))
        templates = [
            {**_template_dict(template), "instanceCount": count or 0} for template, count in rows
        ]
        return {"templates": templates, "pagination": pagination.describe(len(templates), total)}

    async def list_instances(
        self,
        page: int | None = None,
        limit: int | None = None,
        teacher_id: int | None = None,
        course_template_id: int | None = None,
    ) -> dict[str, Any]:
        pagination = Pagination.clamp(page, limit, default_limit=ADMIN_PAGE_SIZE)
        predicates = []
        if teacher_id is not None:
            predicates.append(CourseInstance.teacher_id == teacher_id)
        if course_template_id is not None:
            predicates.append(CourseInstance.course_template_id == course_template_id)

        rows = (
            await self.session.execute(
                self._instance_listing()
                .where(*predicates)
                .order_by(CourseInstance.created_at.desc(), CourseInstance.id.desc())
                .limit(pagination.limit)
                .offset(pagination.offset)
            )
        ).all()
        total = await self.session.scalar(select(func.count(CourseInstance.id)).where(*predicates))
        instances = [self._instance_summary(row) for row in rows]
        return {"instances": instances, "pagination": pagination.describe(len(instances), total)}

    async def get_instance(self, course_instance_id: int) -> dict[str, Any]:
        row = (
            await self.session.execute(
                self._instance_listing().where(CourseInstance.id == course_instance_id)
            )
        ).first()
        if row is None:
            raise NotFoundError("Course instance")
        return self._instance_summary(row)

    async def instance_chapters(
        self,
        course_instance_id: int,
        page: int | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Chapters in number order, each with its lecture count."""
        await self._get(CourseInstance, course_instance_id, "Course instance")
        pagination = Pagination.clamp(page, limit, default_limit=CHAPTER_PAGE_SIZE)
        lecture_count = (
            select(func.count(Lecture.id))
            .where(Lecture.chapter_id == Chapter.id)
            .correlate(Chapter)
            .scalar_subquery()
        )
        rows = (
            await self.session.execute(
                select(Chapter, lecture_count.label("lecture_count"))
                .where(Chapter.course_instance_id == course_instance_id)
                .order_by(Chapter.number.asc(), Chapter.id.asc())
                .limit(pagination.limit)
                .offset(pagination.offset)
            )
        ).all()
        total = await self.session.scalar(
            select(func.count(Chapter.id)).where(Chapter.course_instance_id == course_instance_id)
        )
        chapters = [{**_chapter_dict(chapter), "lectureCount": count or 0} for chapter, count in rows]
        return {"chapters": chapters, "pagination": pagination.describe(len(chapters), total)}

    async def instance_lectures(
        self,
        course_instance_id: int,
        page: int | None = None,
        limit: int | None = None,
        chapter_id: int | None = None,
    ) -> dict[str, Any]:
        """Lectures in course order, optionally narrowed to one chapter."""
        await self._get(CourseInstance, course_instance_id, "Course instance")
        pagination = Pagination.clamp(page, limit, default_limit=ADMIN_PAGE_SIZE)
        predicates = [Chapter.course_instance_id == course_instance_id]
        if chapter_id is not None:
            predicates.append(Lecture.chapter_id == chapter_id)

        rows = (
            await self.session.execute(
                select(Lecture, Chapter.name, Chapter.number)
                .join(Chapter, Lecture.chapter_id == Chapter.id)
                .where(*predicates)
                .order_by(Chapter.number.asc(), Lecture.lecture_number.asc(), Lecture.id.asc())
                .limit(pagination.limit)
                .offset(pagination.offset)
            )
        ).all()
        total = await self.session.scalar(
            select(func.count(Lecture.id)).join(Chapter, Lecture.chapter_id == Chapter.id).where(*predicates)
        )
        tags = await self._tags_for([lecture.id for lecture, _, _ in rows])
        lectures = [
            {**_lecture_dict(lecture, tags[lecture.id]), "chapterName": name, "chapterNumber": number}
            for lecture, name, number in rows
        ]
        return {"lectures": lectures, "pagination": pagination.describe(len(lectures), total)}

    async def unique_tags(self, course_instance_id: int | None = None) -> dict[str, Any]:
        stmt = select(LectureTag.tag).distinct().order_by(LectureTag.tag)
        if course_instance_id is not None:
            stmt = (
                stmt.join(Lecture, LectureTag.lecture_id == Lecture.id)
                .join(Chapter, Lecture.chapter_id == Chapter.id)
                .where(Chapter.course_instance_id == course_instance_id)
            )
        tags = list((await self.session.scalars(stmt)).all())
        return {"total": len(tags), "tags": tags}

    # ========== Dropdowns ==========

    async def template_options(self) -> list[dict[str, Any]]:
        rows = await self.session.execute(
            select(CourseTemplate.id, CourseTemplate.course_code, CourseTemplate.name)
            .order_by(CourseTemplate.course_code.asc())
        )
        return [{"id": row.id, "courseCode": row.course_code, "name": row.name} for row in rows.all()]

    async def instance_options(self, teacher_id: int | None = None) -> list[dict[str, Any]]:
        """``CODE - Name (Teacher)`` labels, with the instance name appended when set."""
        stmt = (
            select(
                CourseInstance.id,
                CourseInstance.instance_name,
                CourseTemplate.course_code,
                CourseTemplate.name,
                User.name.label("teacher_name"),
            )
            .join(CourseTemplate, CourseInstance.course_template_id == CourseTemplate.id)
            .join(Teacher, CourseInstance.teacher_id == Teacher.id)
            .join(User, Teacher.user_id == User.id)
            .order_by(CourseTemplate.course_code.asc(), CourseInstance.id.asc())
        )
        if teacher_id is not None:
            stmt = stmt.where(CourseInstance.teacher_id == teacher_id)

        options = []
        for row in (await self.session.execute(stmt)).all():
            label = f"{row.course_code} - {row.name} ({row.teacher_name})"
            if row.instance_name:
                label += f" - {row.instance_name}"
            options.append({
                "id": row.id,
                "label": label,
                "courseCode": row.course_code,
                "teacherName": row.teacher_name,
                "instanceName": row.instance_name,
            })
        return options

    async def chapter_options(self, course_instance_id: int) -> list[dict[str, Any]]:
        rows = await self.session.execute(
            select(Chapter.id, Chapter.name, Chapter.number)
            .where(Chapter.course_instance_id == course_instance_id)
            .order_by(Chapter.number.asc())
        )
        return [{"id": row.id, "name": row.name, "number": row.number} for row in rows.all()]
