"""Enrollment endpoints."""

from typing import Any

from fastapi import APIRouter, status

from app.api.deps import CurrentPrincipal, Enrollments
from app.api.schemas import EnrollmentRequest, SuccessResponse

router = APIRouter(tags=["Enrollment"])


@router.post(
    "/enroll_course",
    response_model=SuccessResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll the current user in a course instance",
    responses={409: {"description": "Already enrolled"}},
)
async def enroll_course(
    payload: EnrollmentRequest,
    enrollments: Enrollments,
    principal: CurrentPrincipal,
) -> SuccessResponse:
    await enrollments.enroll(principal.id, payload.course_instance_id)
    return SuccessResponse(message="Enrolled successfully")


@router.delete(
    "/unenroll_course",
    response_model=SuccessResponse,
    summary="Leave a course instance",
)
async def unenroll_course(
    payload: EnrollmentRequest,
    enrollments: Enrollments,
    principal: CurrentPrincipal,
) -> SuccessResponse:
    await enrollments.unenroll(principal.id, payload.course_instance_id)
    return SuccessResponse(message="Unenrolled successfully")


@router.get("/check_enrollment/{course_instance_id}", summary="Is the current user enrolled")
async def check_enrollment(
    course_instance_id: int,
    enrollments: Enrollments,
    principal: CurrentPrincipal,
) -> dict[str, Any]:
    enrolled = await enrollments.is_enrolled(principal.id, course_instance_id)
    return {"isEnrolled": enrolled, "courseInstanceId": course_instance_id}
