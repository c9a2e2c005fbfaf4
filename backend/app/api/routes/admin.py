"""Admin endpoints: dashboard, accounts and course content management.

Static paths such as ``/course-instances/dropdown`` are declared before the
``/{id}`` routes that would otherwise capture them.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import Accounts, Content, require_admin
from app.api.schemas import (
    ChapterCreate,
    ChapterUpdate,
    CourseInstanceCreate,
    CourseInstanceUpdate,
    CourseTemplateCreate,
    CourseTemplateUpdate,
    LectureCreate,
    LectureTagsRequest,
    LectureUpdate,
    SuccessResponse,
    TeacherCreate,
    UserCreate,
    UserUpdate,
)

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])

Page = Annotated[int | None, Query(ge=1)]
Limit = Annotated[int | None, Query(ge=1, le=100)]
SearchText = Annotated[str | None, Query(max_length=100)]


# ========== Dashboard ==========


@router.get("/dashboard/stats")
async def dashboard_stats(accounts: Accounts) -> dict[str, Any]:
    return await accounts.dashboard_stats()


# ========== Users ==========


@router.get("/users")
async def list_users(
    accounts: Accounts,
    page: Page = None,
    limit: Limit = None,
    role: Annotated[str | None, Query(pattern=r"^(all|student|teacher|admin)$")] = None,
    search: SearchText = None,
) -> dict[str, Any]:
    return await accounts.list_users(page, limit, role, search)


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreate, accounts: Accounts) -> dict[str, Any]:
    user = await accounts.create_user(payload.name, payload.email, payload.password, payload.role)
    return {"message": "User created successfully", "user": user}


@router.put("/users/{user_id}")
async def update_user(user_id: int, payload: UserUpdate, accounts: Accounts) -> dict[str, Any]:
    user = await accounts.update_user(user_id, payload.model_dump(exclude_unset=True))
    return {"message": "User updated successfully", "user": user}


@router.delete("/users/{user_id}", response_model=SuccessResponse)
async def delete_user(user_id: int, accounts: Accounts) -> SuccessResponse:
    await accounts.delete_user(user_id)
    return SuccessResponse(message="User deleted successfully")


# ========== Teachers and students ==========


@router.get("/teachers")
async def list_teachers(
    accounts: Accounts, page: Page = None, limit: Limit = None, search: SearchText = None
) -> dict[str, Any]:
    return await accounts.list_teachers(page, limit, search)


@router.post("/teachers", status_code=status.HTTP_201_CREATED)
async def create_teacher(payload: TeacherCreate, accounts: Accounts) -> dict[str, Any]:
    teacher = await accounts.create_teacher(payload.user_id)
    return {"message": "Teacher created successfully", "teacher": teacher}


@router.get("/teachers/dropdown")
async def teacher_options(accounts: Accounts) -> list[dict[str, Any]]:
    return await accounts.teacher_options()


@router.get("/students/dropdown")
async def student_options(accounts: Accounts) -> list[dict[str, Any]]:
    return await accounts.student_options()


# ========== Course templates ==========


@router.get("/course-templates")
async def list_course_templates(
    content: Content, page: Page = None, limit: Limit = None, search: SearchText = None
) -> dict[str, Any]:
    return await content.list_templates(page, limit, search)


@router.get("/course-templates/dropdown")
async def course_template_options(content: Content) -> list[dict[str, Any]]:
    return await content.template_options()


@router.post("/course-templates", status_code=status.HTTP_201_CREATED)
async def create_course_template(payload: CourseTemplateCreate, content: Content) -> dict[str, Any]:
    template = await content.create_template(payload.course_code, payload.name, payload.description)
    return {"message": "Course template created successfully", "template": template}


@router.put("/course-templates/{template_id}")
async def update_course_template(
    template_id: int, payload: CourseTemplateUpdate, content: Content
) -> dict[str, Any]:
    template = await content.update_template(template_id, payload.model_dump(exclude_unset=True))
    return {"message": "Course template updated successfully", "template": template}


@router.delete("/course-templates/{template_id}", response_model=SuccessResponse)
async def delete_course_template(template_id: int, content: Content) -> SuccessResponse:
    await content.delete_template(template_id)
    return SuccessResponse(message="Course template deleted successfully")


# ========== Course instances ==========


@router.get("/course-instances")
async def list_course_instances(
    content: Content,
    page: Page = None,
    limit: Limit = None,
    teacher_id: Annotated[int | None, Query(alias="teacherId")] = None,
    course_template_id: Annotated[int | None, Query(alias="courseTemplateId")] = None,
) -> dict[str, Any]:
    return await content.list_instances(page, limit, teacher_id, course_template_id)


@router.get("/course-instances/dropdown")
async def course_instance_options(
    content: Content,
    teacher_id: Annotated[int | None, Query(alias="teacherId")] = None,
) -> list[dict[str, Any]]:
    return await content.instance_options(teacher_id)


@router.get("/course-instances/{course_instance_id}")
async def get_course_instance(course_instance_id: int, content: Content) -> dict[str, Any]:
    return {"instance": await content.get_instance(course_instance_id)}


@router.get("/course-instances/{course_instance_id}/chapters")
async def list_instance_chapters(
    course_instance_id: int,
    content: Content,
    page: Page = None,
    limit: Limit = None,
) -> dict[str, Any]:
    return await content.instance_chapters(course_instance_id, page, limit)


@router.get("/course-instances/{course_instance_id}/lectures")
async def list_instance_lectures(
    course_instance_id: int,
    content: Content,
    page: Page = None,
    limit: Limit = None,
    chapter_id: Annotated[int | None, Query(alias="chapterId")] = None,
) -> dict[str, Any]:
    return await content.instance_lectures(course_instance_id, page, limit, chapter_id)


@router.post("/course-instances", status_code=status.HTTP_201_CREATED)
async def create_course_instance(payload: CourseInstanceCreate, content: Content) -> dict[str, Any]:
    instance = await content.create_instance(
        payload.course_template_id, payload.teacher_id, payload.instance_name
    )
    return {"message": "Course instance created successfully", "instance": instance}


@router.put("/course-instances/{course_instance_id}")
async def update_course_instance(
    course_instance_id: int, payload: CourseInstanceUpdate, content: Content
) -> dict[str, Any]:
    instance = await content.update_instance(
        course_instance_id, payload.model_dump(exclude_unset=True)
    )
    return {"message": "Course instance updated successfully", "instance": instance}


@router.delete("/course-instances/{course_instance_id}", response_model=SuccessResponse)
async def delete_course_instance(course_instance_id: int, content: Content) -> SuccessResponse:
    await content.delete_instance(course_instance_id)
    return SuccessResponse(message="Course instance deleted successfully")


# ========== Chapters ==========


@router.get("/chapters/dropdown")
async def chapter_options(
    content: Content,
    course_instance_id: Annotated[int, Query(alias="courseInstanceId")],
) -> list[dict[str, Any]]:
    return await content.chapter_options(course_instance_id)


@router.post("/chapters", status_code=status.HTTP_201_CREATED)
async def create_chapter(payload: ChapterCreate, content: Content) -> dict[str, Any]:
    chapter = await content.create_chapter(
        payload.course_instance_id, payload.name, payload.description, payload.number
    )
    return {"message": "Chapter created successfully", "chapter": chapter}


@router.put("/chapters/{chapter_id}")
async def update_chapter(chapter_id: int, payload: ChapterUpdate, content: Content) -> dict[str, Any]:
    chapter = await content.update_chapter(chapter_id, payload.model_dump(exclude_unset=True))
    return {"message": "Chapter updated successfully", "chapter": chapter}


@router.delete("/chapters/{chapter_id}", response_model=SuccessResponse)
async def delete_chapter(chapter_id: int, content: Content) -> SuccessResponse:
    await content.delete_chapter(chapter_id)
    return SuccessResponse(message="Chapter deleted successfully")


# ========== Lectures ==========


@router.post("/lectures", status_code=status.HTTP_201_CREATED)
async def create_lecture(payload: LectureCreate, content: Content) -> dict[str, Any]:
    lecture = await content.create_lecture(
        payload.chapter_id,
        payload.title,
        payload.youtube_url,
        description=payload.description,
        duration=payload.duration,
        lecture_number=payload.lecture_number,
        tags=payload.tags,
    )
    return {"message": "Lecture created successfully", "lecture": lecture}


@router.put("/lectures/{lecture_id}")
@router.put("/lectures/{lecture_id}/with-tags")
async def update_lecture(lecture_id: int, payload: LectureUpdate, content: Content) -> dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True)
    tags = changes.pop("tags", None)
    lecture = await content.update_lecture(lecture_id, changes, tags=tags)
    return {"message": "Lecture updated successfully", "lecture": lecture}


@router.delete("/lectures/{lecture_id}", response_model=SuccessResponse)
async def delete_lecture(lecture_id: int, content: Content) -> SuccessResponse:
    await content.delete_lecture(lecture_id)
    return SuccessResponse(message="Lecture deleted successfully")


# ========== Lecture tags ==========


@router.get("/tags/unique")
async def unique_tags(
    content: Content,
    course_instance_id: Annotated[int | None, Query(alias="courseInstanceId")] = None,
) -> dict[str, Any]:
    return await content.unique_tags(course_instance_id)


@router.get("/lectures/search/by-tags")
async def lectures_by_tags(
    content: Content,
    tags: Annotated[str, Query(min_length=1, description="Comma-separated tags")],
    course_instance_id: Annotated[int | None, Query(alias="courseInstanceId")] = None,
) -> dict[str, Any]:
    return await content.lectures_by_tags(tags.split(","), course_instance_id)


@router.get("/lectures/{lecture_id}/tags")
async def get_lecture_tags(lecture_id: int, content: Content) -> dict[str, Any]:
    return await content.get_lecture_tags(lecture_id)


@router.post("/lectures/{lecture_id}/tags")
async def add_lecture_tags(
    lecture_id: int, payload: LectureTagsRequest, content: Content
) -> dict[str, Any]:
    lecture = await content.add_tags(lecture_id, payload.tags)
    return {"message": "Tags added successfully", "lecture": lecture}


@router.delete("/lectures/{lecture_id}/tags/{tag_id}", response_model=SuccessResponse)
async def remove_lecture_tag(lecture_id: int, tag_id: int, content: Content) -> SuccessResponse:
    await content.remove_tag(lecture_id, tag_id)
    return SuccessResponse(message="Tag removed successfully")
