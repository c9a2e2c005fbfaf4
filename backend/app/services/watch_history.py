"""Per-user lecture playback progress."""

import math
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.db.models import (
    Chapter,
    CourseInstance,
    CourseTemplate,
    Lecture,
    Teacher,
    User,
    WatchHistory,
)
from app.db.store import atomic, upsert_row
from app.services.cache import CacheService

logger = get_logger(__name__)

# Assumed length when a lecture has no recorded duration
FALLBACK_DURATION_SECONDS = 1800
COMPLETED_AT_PERCENT = 95


def format_duration(seconds: int) -> str:
    """``m:ss`` below an hour, ``h:mm:ss`` from an hour up."""
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def resume_position(progress: float, current_time: float, duration: int | None) -> int:
    """Seconds to resume playback at.

    A stored position wins; otherwise it is estimated from the progress
    percentage of the lecture duration.
    """
    if current_time:
        return int(current_time)
    length = duration if duration and duration > 0 else FALLBACK_DURATION_SECONDS
    return math.floor(progress / 100 * length)


def _percent(progress: float) -> int:
    return math.floor(progress + 0.5)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class WatchHistoryService:
    """Records and reports how far a user has watched each lecture.

    One row per (user, lecture), written with a single upsert. Nothing here
    is cached, so writes invalidate nothing.
    """

    def __init__(self, session: AsyncSession, cache: CacheService):
        self.session = session
        self.cache = cache

    async def record(
        self,
        user_id: int,
        lecture_id: int,
        progress: float,
        current_time: float | None = None,
    ) -> None:
        exists = await self.session.scalar(select(Lecture.id).where(Lecture.id == lecture_id))
        if exists is None:
            raise NotFoundError("Lecture")

        async with atomic(self.session):
            await upsert_row(
                self.session,
                WatchHistory,
                {
                    "user_id": user_id,
                    "lecture_id": lecture_id,
                    "progress": progress,
                    "current_time": current_time or 0.0,
                    "last_watched": datetime.now(timezone.utc),
                },
                conflict_columns=["user_id", "lecture_id"],
                update_columns=["progress", "current_time", "last_watched"],
            )
        logger.debug("Watch progress recorded", user_id=user_id, lecture_id=lecture_id, progress=progress)

    async def _entries(self, user_id: int, limit: int | None = None) -> list[Any]:
        stmt = (
            select(WatchHistory, Lecture, Chapter, CourseTemplate, CourseInstance, User.name)
            .join(Lecture, Lecture.id == WatchHistory.lecture_id)
            .join(Chapter, Chapter.id == Lecture.chapter_id)
            .join(CourseInstance, CourseInstance.id == Chapter.course_instance_id)
            .join(CourseTemplate, CourseTemplate.id == CourseInstance.course_template_id)
            .join(Teacher, Teacher.id == CourseInstance.teacher_id)
            .join(User, User.id == Teacher.user_id)
            .where(WatchHistory.user_id == user_id)
            .order_by(WatchHistory.last_watched.desc(), WatchHistory.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list((await self.session.execute(stmt)).all())

    async def history(self, user_id: int) -> list[dict[str, Any]]:
        """Every watched lecture, most recent first, with course context."""
        entries = []
        for entry, lecture, chapter, template, instance, teacher_name in await self._entries(user_id):
            entries.append({
                "id": entry.id,
                "lecture_id": lecture.id,
                "lecture_number": lecture.lecture_number,
                "lecture_title": lecture.title,
                "lecture_description": lecture.description,
                "youtube_url": lecture.youtube_url,
                "duration": lecture.duration,
                "progress": entry.progress,
                "last_watched": _iso(entry.last_watched),
                "chapter_id": chapter.id,
                "chapter_number": chapter.number,
                "chapter_name": chapter.name,
                "course_instance_id": instance.id,
                "course_name": template.name,
                "course_code": template.course_code,
                "course_description": template.description,
                "teacher_id": instance.teacher_id,
                "teacher_name": teacher_name,
                "current_time": resume_position(entry.progress, entry.current_time, lecture.duration),
                "progress_percentage": _percent(entry.progress),
                "is_completed": entry.progress >= COMPLETED_AT_PERCENT,
                "formatted_duration": format_duration(lecture.duration) if lecture.duration else None,
            })
        return entries

    async def recent(self, user_id: int, limit: int = 5) -> list[dict[str, Any]]:
        """Compact dashboard view of the latest ``limit`` lectures."""
        rows = await self._entries(user_id, limit)
        return [
            {
                "id": entry.id,
                "lecture_id": lecture.id,
                "lecture_title": lecture.title,
                "lecture_number": lecture.lecture_number,
                "chapter_number": chapter.number,
                "chapter_name": chapter.name,
                "course_instance_id": instance.id,
                "course_name": template.name,
                "teacher_name": teacher_name,
                "progress": _percent(entry.progress),
                "last_watched": _iso(entry.last_watched),
                "duration": lecture.duration,
                "youtube_url": lecture.youtube_url,
                "current_time": resume_position(entry.progress, entry.current_time, lecture.duration),
            }
            for entry, lecture, chapter, template, instance, teacher_name in rows
        ]

    async def progress(self, user_id: int, lecture_id: int) -> dict[str, float]:
        """Stored progress for one lecture; 0 when never watched."""
        value = await self.session.scalar(
            select(WatchHistory.progress).where(
                WatchHistory.user_id == user_id,
                WatchHistory.lecture_id == lecture_id,
            )
        )
        return {"progress": value if value is not None else 0}
