"""Public teacher and course browsing endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Query

from app.api.deps import Courses, Teachers

router = APIRouter(tags=["Catalog"])


@router.get("/teachers", summary="Public teacher directory")
async def list_teachers(
    teachers: Teachers,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 12,
    search: Annotated[str | None, Query(max_length=100)] = None,
) -> dict[str, Any]:
    return await teachers.list_public(page, limit, search)


@router.get("/teachers/{teacher_id}", summary="Teacher profile with active courses")
async def teacher_details(teacher_id: int, teachers: Teachers) -> dict[str, Any]:
    return await teachers.get_details(teacher_id)


@router.get("/teachers/{teacher_id}/courses", summary="All course instances of a teacher")
async def teacher_courses(teacher_id: int, teachers: Teachers) -> list[dict[str, Any]]:
    return await teachers.get_courses(teacher_id)


@router.get("/courses", summary="Browse active courses")
async def browse_courses(courses: Courses) -> list[dict[str, Any]]:
    return await courses.browse_all()


@router.get("/courses/{course_instance_id}", summary="Course with chapters and lectures")
async def course_details(course_instance_id: int, courses: Courses) -> dict[str, Any]:
    return await courses.get_course(course_instance_id)
