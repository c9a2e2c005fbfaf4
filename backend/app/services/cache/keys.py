"""Cache key registry.

Every cache key in the application is built here. Keys made from optional
arguments use a fixed field order and the ``null`` sentinel for anything
absent, so two logically identical requests always map to the same key and
requests that differ in any result-affecting field never do.
"""

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote

from app.services.cache.constants import (
    KEY_PREFIX_COURSE,
    KEY_PREFIX_COURSES,
    KEY_PREFIX_SEARCH,
    KEY_PREFIX_SESSION,
    KEY_PREFIX_TEACHER,
    KEY_PREFIX_TEACHERS,
    KEY_PREFIX_USER,
    LEGACY_SEARCH,
    LEGACY_STUDENT_DETAILS,
    LEGACY_STUDENT_ENROLLED_COURSES,
    LEGACY_USER_DATA,
    NULL_SENTINEL,
)

# Fixed order of every structured search filter that can appear in a key
SEARCH_FILTER_FIELDS = ("courseCode", "teacherName", "chapterName", "isActive", "tags")

COURSES_BROWSE_ALL = f"{KEY_PREFIX_COURSES}:browse:all"


def normalize_text(value: str | None) -> str:
    """Lowercase and collapse whitespace."""
    if not value:
        return ""
    return " ".join(value.split()).lower()


def _canonical(value: Any) -> str:
    if value is None:
        return NULL_SENTINEL
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        text = normalize_text(value)
        return quote(text, safe="") if text else NULL_SENTINEL
    if isinstance(value, Iterable):
        items = sorted({normalize_text(str(v)) for v in value} - {""})
        if not items:
            return NULL_SENTINEL
        return ",".join(quote(item, safe="") for item in items)
    return quote(str(value), safe="")


def canonical_key(prefix: str, fields: Iterable[tuple[str, Any]]) -> str:
    """Build ``prefix:name=value:...`` from an ordered field sequence."""
    parts = [f"{name}={_canonical(value)}" for name, value in fields]
    return ":".join([prefix, *parts])


# ========== Entity keys ==========


def user_key(user_id: int) -> str:
    return f"{KEY_PREFIX_USER}:{user_id}"


def session_key(user_id: int) -> str:
    return f"{KEY_PREFIX_SESSION}:{user_id}"


def course_key(course_id: int) -> str:
    return f"{KEY_PREFIX_COURSE}:{course_id}"


def teacher_courses_key(teacher_id: int) -> str:
    return f"{KEY_PREFIX_TEACHER}:courses:{teacher_id}"


def teacher_details_key(teacher_id: int) -> str:
    return f"{KEY_PREFIX_TEACHER}:details:{teacher_id}"


def teachers_public_key(page: int, limit: int, search: str | None) -> str:
    return f"{KEY_PREFIX_TEACHERS}:public:{page}:{limit}:{_canonical(search)}"


def student_details_key(student_id: int) -> str:
    return f"{LEGACY_STUDENT_DETAILS}_{student_id}"


def student_enrolled_courses_key(student_id: int) -> str:
    return f"{LEGACY_STUDENT_ENROLLED_COURSES}_{student_id}"


def user_data_key(user_id: int) -> str:
    return f"{LEGACY_USER_DATA}_{user_id}"


# ========== Search keys ==========


def legacy_search_key(
    keyword: str | None,
    search_type: str | None,
    course_id: int | None,
    teacher_id: int | None,
) -> str:
    """``search_<keyword>_<type>_<courseId>_<teacherId>``; absent parts are ``null``."""
    parts = [
        _canonical(keyword),
        search_type or "all",
        NULL_SENTINEL if course_id is None else str(course_id),
        NULL_SENTINEL if teacher_id is None else str(teacher_id),
    ]
    return "_".join([LEGACY_SEARCH, *parts])


def advanced_search_key(
    *,
    query: str | None,
    search_type: str,
    page: int,
    limit: int,
    sort_by: str,
    sort_order: str,
    filters: Mapping[str, Any],
) -> str:
    """Key for a normalized advanced search.

    Pass already-clamped pagination so out-of-range and clamped values
    share an entry.
    """
    fields: list[tuple[str, Any]] = [
        ("q", query),
        ("type", search_type),
        ("page", page),
        ("limit", limit),
        ("sort", sort_by),
        ("order", sort_order),
    ]
    fields.extend((name, filters.get(name)) for name in SEARCH_FILTER_FIELDS)
    return canonical_key(f"{KEY_PREFIX_SEARCH}:advanced", fields)


def quick_search_key(query: str, limit: int) -> str:
    return canonical_key(f"{KEY_PREFIX_SEARCH}:quick", [("q", query), ("limit", limit)])
