"""SQLAlchemy ORM models for the database."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """Platform account. Students are users with role 'student'."""

    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_role", "role"),
        Index("ix_users_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="student"
    )  # 'student', 'teacher' or 'admin'
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, nullable=False
    )

    # Relationships
    teacher: Mapped["Teacher | None"] = relationship(
        "Teacher", back_populates="user", uselist=False, lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class Teacher(Base):
    """Teacher profile attached 1:1 to a user."""

    __tablename__ = "teachers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), unique=True, nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="teacher", lazy="noload")

    def __repr__(self) -> str:
        return f"<Teacher(id={self.id}, user_id={self.user_id})>"


class CourseTemplate(Base):
    """Catalogue entry shared by every instance of a course."""

    __tablename__ = "course_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_code: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<CourseTemplate(id={self.id}, course_code={self.course_code})>"


class CourseInstance(Base):
    """A template taught by one teacher."""

    __tablename__ = "course_instances"
    __table_args__ = (
        UniqueConstraint(
            "teacher_id", "course_template_id", name="uq_course_instances_teacher_template"
        ),
        Index("ix_course_instances_created_at", "created_at"),
        Index("ix_course_instances_is_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_template_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("course_templates.id"), nullable=False, index=True
    )
    teacher_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("teachers.id"), nullable=False, index=True
    )
    instance_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now, nullable=False
    )

    template: Mapped["CourseTemplate"] = relationship("CourseTemplate", lazy="noload")
    teacher: Mapped["Teacher"] = relationship("Teacher", lazy="noload")

    def __repr__(self) -> str:
        return f"<CourseInstance(id={self.id}, teacher_id={self.teacher_id})>"


class Chapter(Base):
    """Numbered section of a course instance."""

    __tablename__ = "chapters"
    __table_args__ = (
        UniqueConstraint("course_instance_id", "number", name="uq_chapters_instance_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_instance_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("course_instances.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    number: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<Chapter(id={self.id}, number={self.number})>"


class Lecture(Base):
    """Video lecture inside a chapter."""

    __tablename__ = "lectures"
    __table_args__ = (
        Index("ix_lectures_chapter_number", "chapter_id", "lecture_number"),
        Index("ix_lectures_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chapter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("chapters.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    youtube_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # seconds
    lecture_number: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Lecture(id={self.id}, title={self.title})>"


class LectureTag(Base):
    """Normalized (lowercase, trimmed) tag on a lecture."""

    __tablename__ = "lecture_tags"
    __table_args__ = (
        UniqueConstraint("lecture_id", "tag", name="uq_lecture_tags_lecture_tag"),
        Index("ix_lecture_tags_tag", "tag"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lecture_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("lectures.id"), nullable=False
    )
    tag: Mapped[str] = mapped_column(String(100), nullable=False)


class Enrollment(Base):
    """A student's enrollment in a course instance. One per pair."""

    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "course_instance_id", name="uq_enrollments_student_course"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    course_instance_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("course_instances.id"), nullable=False, index=True
    )
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, nullable=False
    )


class WatchHistory(Base):
    """Playback progress of a user on a lecture."""

    __tablename__ = "watch_history"
    __table_args__ = (
        UniqueConstraint("user_id", "lecture_id", name="uq_watch_history_user_lecture"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    lecture_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("lectures.id"), nullable=False, index=True
    )
    progress: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    current_time: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    last_watched: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now, nullable=False
    )
