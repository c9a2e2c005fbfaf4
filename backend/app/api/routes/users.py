"""Student profile and account endpoints."""

from typing import Any

from fastapi import APIRouter

from app.api.deps import CurrentPrincipal, Users
from app.api.schemas import ChangePasswordRequest, SuccessResponse
from app.core.exceptions import NotFoundError

router = APIRouter(tags=["Users"])


@router.get("/student_details/{student_id}", summary="Student card")
async def student_details(
    student_id: int,
    users: Users,
    principal: CurrentPrincipal,
) -> dict[str, Any]:
    return await users.get_student_details(student_id)


@router.get("/student_enrolled_courses/{student_id}", summary="Courses a student is enrolled in")
async def student_enrolled_courses(
    student_id: int,
    users: Users,
    principal: CurrentPrincipal,
) -> list[dict[str, Any]]:
    return await users.get_enrolled_courses(student_id)


@router.get("/get-user-data", summary="Current user's profile and enrollments")
async def get_user_data(users: Users, principal: CurrentPrincipal) -> dict[str, Any]:
    return await users.get_user_data(principal.id)


@router.post(
    "/change-password",
    response_model=SuccessResponse,
    summary="Change the current user's password",
)
async def change_password(
    payload: ChangePasswordRequest,
    users: Users,
    principal: CurrentPrincipal,
) -> SuccessResponse:
    await users.change_password(principal.id, payload.old_password, payload.new_password)
    return SuccessResponse(message="Password updated successfully")


@router.get("/dashboard", summary="Dashboard for the current user")
async def dashboard(users: Users, principal: CurrentPrincipal) -> dict[str, Any]:
    """Profile plus enrollments; a student with no courses gets an empty list."""
    profile = await users.get_profile(principal.id)
    try:
        courses = await users.get_enrolled_courses(principal.id)
    except NotFoundError:
        courses = []
    return {"user": profile, "enrolledCourses": courses, "totalCourses": len(courses)}
