"""Database module exports."""

from app.db.models import (
    Base,
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
from app.db.session import Database, create_engine, get_database, get_db
from app.db.store import ConflictPolicy, atomic, insert_rows, translate_integrity_error

__all__ = [
    # Models
    "Base",
    "User",
    "Teacher",
    "CourseTemplate",
    "CourseInstance",
    "Chapter",
    "Lecture",
    "LectureTag",
    "Enrollment",
    "WatchHistory",
    # Session management
    "Database",
    "create_engine",
    "get_database",
    "get_db",
    # Store boundary
    "ConflictPolicy",
    "atomic",
    "insert_rows",
    "translate_integrity_error",
]
