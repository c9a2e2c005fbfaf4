"""Structured search filters.

The request-level ``SearchFilters`` model rejects unknown keys but quietly
drops malformed values. Each entity kind then receives its own closed filter
type holding only the fields that apply to it.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_FILTER_LENGTH = 100
MAX_FILTER_TAGS = 10


def _clean_text(value: Any) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = " ".join(value.split())
    if not value or len(value) > MAX_FILTER_LENGTH:
        return None
    return value


class SearchFilters(BaseModel):
    """Filters accepted on an advanced search request."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    course_code: str | None = Field(default=None, alias="courseCode")
    teacher_name: str | None = Field(default=None, alias="teacherName")
    chapter_name: str | None = Field(default=None, alias="chapterName")
    is_active: bool | None = Field(default=None, alias="isActive")
    tags: list[str] | None = Field(default=None)

    @field_validator("course_code", "teacher_name", "chapter_name", mode="before")
    @classmethod
    def drop_malformed_text(cls, v: Any) -> str | None:
        return _clean_text(v)

    @field_validator("is_active", mode="before")
    @classmethod
    def drop_malformed_flag(cls, v: Any) -> bool | None:
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            lowered = v.strip().lower()
            if lowered in ("true", "1", "yes"):
                return True
            if lowered in ("false", "0", "no"):
                return False
        return None

    @field_validator("tags", mode="before")
    @classmethod
    def drop_malformed_tags(cls, v: Any) -> list[str] | None:
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, (list, tuple)):
            return None
        tags: list[str] = []
        for item in v:
            tag = _clean_text(item)
            if tag is not None and tag.lower() not in tags:
                tags.append(tag.lower())
        return tags[:MAX_FILTER_TAGS] or None

    @property
    def is_empty(self) -> bool:
        return not self.active_fields()

    def active_fields(self) -> set[str]:
        """Aliases of the filters that carry a usable value."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        return set(data)

    def key_fields(self) -> dict[str, Any]:
        """Alias-keyed values for cache key construction."""
        return self.model_dump(by_alias=True)

    def for_teachers(self) -> "TeacherFilters":
        return TeacherFilters(course_code=self.course_code)

    def for_courses(self) -> "CourseFilters":
        return CourseFilters(
            teacher_name=self.teacher_name,
            course_code=self.course_code,
            is_active=self.is_active,
        )

    def for_lectures(self) -> "LectureFilters":
        return LectureFilters(
            course_code=self.course_code,
            chapter_name=self.chapter_name,
            teacher_name=self.teacher_name,
            tags=tuple(self.tags or ()),
        )

    def for_students(self) -> "StudentFilters":
        return StudentFilters(course_code=self.course_code)


@dataclass(frozen=True)
class TeacherFilters:
    course_code: str | None = None
    teacher_id: int | None = None


@dataclass(frozen=True)
class CourseFilters:
    teacher_name: str | None = None
    course_code: str | None = None
    is_active: bool | None = None
    course_instance_id: int | None = None
    teacher_id: int | None = None


@dataclass(frozen=True)
class LectureFilters:
    course_code: str | None = None
    chapter_name: str | None = None
    teacher_name: str | None = None
    tags: tuple[str, ...] = ()
    course_instance_id: int | None = None
    teacher_id: int | None = None


@dataclass(frozen=True)
class StudentFilters:
    course_code: str | None = None


# Filter aliases each entity kind understands
APPLICABLE_FILTERS: dict[str, frozenset[str]] = {
    "teachers": frozenset({"courseCode"}),
    "courses": frozenset({"teacherName", "courseCode", "isActive"}),
    "lectures": frozenset({"courseCode", "chapterName", "teacherName", "tags"}),
    "students": frozenset({"courseCode"}),
}
