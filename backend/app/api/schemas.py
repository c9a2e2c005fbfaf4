"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictInt

from app.services.search import SearchFilters, SearchType, SortBy, SortOrder


# ============================================================
# Authentication Schemas
# ============================================================

class UserLogin(BaseModel):
    """Schema for user login."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class UserInfo(BaseModel):
    """Schema for the authenticated user in responses."""

    id: int
    name: str | None = None
    email: str | None = None
    role: str


class TokenResponse(BaseModel):
    """Schema for authentication token response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Token expiration time in seconds")
    user: UserInfo


class ChangePasswordRequest(BaseModel):
    """Schema for changing the current user's password."""

    old_password: str = Field(..., min_length=1, alias="oldPassword")
    new_password: str = Field(..., min_length=8, max_length=100, alias="newPassword")

    model_config = ConfigDict(populate_by_name=True)


# ============================================================
# Enrollment Schemas
# ============================================================

class EnrollmentRequest(BaseModel):
    """Schema for enrolling in or leaving a course instance."""

    course_instance_id: StrictInt = Field(..., gt=0, alias="courseInstanceId")

    model_config = ConfigDict(populate_by_name=True)


# ============================================================
# Watch History Schemas
# ============================================================

class WatchProgressRequest(BaseModel):
    """Schema for recording playback progress on a lecture."""

    lecture_id: StrictInt = Field(..., gt=0)
    progress: float = Field(..., ge=0, le=100)
    current_time: float | None = Field(default=None, ge=0)


# ============================================================
# Search Schemas
# ============================================================

class ScopeField(BaseModel):
    """One ``{field, value}`` pair narrowing a keyword search."""

    field: Literal["courseId", "teacherId"]
    value: StrictInt = Field(..., gt=0)


class KeywordSearchRequest(BaseModel):
    """Schema for the single-list keyword search."""

    keyword: str | None = Field(default=None, max_length=500)
    type: str | None = None
    advanced_fields: list[ScopeField] = Field(
        default_factory=list, alias="advancedFields", max_length=2
    )

    model_config = ConfigDict(populate_by_name=True)

    def scope(self, name: str) -> int | None:
        for item in reversed(self.advanced_fields):
            if item.field == name:
                return item.value
        return None


class AdvancedSearchRequest(BaseModel):
    """Schema for ranked multi-entity search.

    Pagination must be integers; out-of-range values are clamped later.
    """

    query: str | None = Field(default=None, max_length=2000)
    type: SearchType = SearchType.ALL
    page: StrictInt | None = None
    limit: StrictInt | None = None
    filters: SearchFilters = Field(default_factory=SearchFilters)
    sort_by: SortBy = Field(default=SortBy.RELEVANCE, alias="sortBy")
    sort_order: SortOrder = Field(default=SortOrder.DESC, alias="sortOrder")

    model_config = ConfigDict(populate_by_name=True)


class Suggestion(BaseModel):
    type: str
    title: str
    subtitle: str | None = None
    id: int


class QuickSearchResponse(BaseModel):
    suggestions: list[Suggestion]


# ============================================================
# Content Management Schemas
# ============================================================

class CourseTemplateCreate(BaseModel):
    course_code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class CourseTemplateUpdate(BaseModel):
    course_code: str | None = Field(default=None, max_length=50)
    name: str | None = Field(default=None, max_length=255)
    description: str | None = None


class CourseInstanceCreate(BaseModel):
    course_template_id: StrictInt = Field(..., gt=0)
    teacher_id: StrictInt = Field(..., gt=0)
    instance_name: str | None = Field(default=None, max_length=255)


class CourseInstanceUpdate(BaseModel):
    instance_name: str | None = Field(default=None, max_length=255)
    is_active: bool | None = None
    teacher_id: StrictInt | None = Field(default=None, gt=0)


class ChapterCreate(BaseModel):
    course_instance_id: StrictInt = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    number: StrictInt | None = Field(default=None, gt=0)


class ChapterUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    number: StrictInt | None = Field(default=None, gt=0)


class LectureCreate(BaseModel):
    chapter_id: StrictInt = Field(..., gt=0)
    title: str = Field(..., min_length=1, max_length=255)
    youtube_url: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    duration: StrictInt | None = Field(default=None, ge=0)
    lecture_number: StrictInt | None = Field(default=None, gt=0)
    tags: list[str] | None = None


class LectureUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    youtube_url: str | None = Field(default=None, max_length=500)
    description: str | None = None
    duration: StrictInt | None = Field(default=None, ge=0)
    chapter_id: StrictInt | None = Field(default=None, gt=0)
    lecture_number: StrictInt | None = Field(default=None, gt=0)
    tags: list[str] | None = None


class LectureTagsRequest(BaseModel):
    tags: list[str] = Field(..., min_length=1)


# ============================================================
# Account Management Schemas
# ============================================================

Role = Literal["student", "teacher", "admin"]


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    role: Role = "student"


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=8, max_length=100)
    role: Role | None = None


class TeacherCreate(BaseModel):
    """Schema for promoting an existing account to teacher."""

    user_id: StrictInt = Field(..., gt=0, alias="userId")

    model_config = ConfigDict(populate_by_name=True)


# ============================================================
# Common Response Schemas
# ============================================================

class SuccessResponse(BaseModel):
    """Schema for generic success response."""

    success: bool = True
    message: str


class DeleteResponse(BaseModel):
    """Schema for delete operation response."""

    success: bool = True
    message: str
    deleted_count: int | None = None


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    error: dict[str, Any] = Field(
        ...,
        json_schema_extra={"example": {"message": "Error description", "details": {}}},
    )


# ============================================================
# Health Check Schemas
# ============================================================

class ServiceHealth(BaseModel):
    """Schema for individual service health."""

    status: str = Field(..., pattern=r"^(healthy|unhealthy|degraded)$")
    latency_ms: float | None = None
    details: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    """Schema for health check response."""

    status: str = Field(..., pattern=r"^(healthy|unhealthy|degraded)$")
    timestamp: datetime
    version: str
    services: dict[str, ServiceHealth]
