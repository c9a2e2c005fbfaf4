"""Admin content and cache administration endpoint tests."""

from types import SimpleNamespace

import pytest
from httpx import AsyncClient

from tests.fakes import FakeRedis

pytestmark = pytest.mark.asyncio


# =============================================================================
# Access control
# =============================================================================


@pytest.mark.parametrize(
    "method,url",
    [
        ("POST", "/api/v1/admin/course-templates"),
        ("GET", "/api/v1/admin/dashboard/stats"),
        ("GET", "/api/v1/admin/users"),
        ("DELETE", "/api/v1/admin/users/7"),
        ("GET", "/api/v1/admin/course-instances/dropdown"),
        ("DELETE", "/api/v1/admin/lectures/1"),
        ("GET", "/api/v1/redis/stats"),
        ("DELETE", "/api/v1/redis/cache/search:*"),
    ],
)
async def test_students_are_forbidden(
    client: AsyncClient, student_headers: dict[str, str], method: str, url: str
):
    resp = await client.request(method, url, headers=student_headers, json={})
    assert resp.status_code == 403


async def test_anonymous_is_unauthorized(client: AsyncClient):
    resp = await client.get("/api/v1/redis/stats")
    assert resp.status_code == 401


# =============================================================================
# Content management
# =============================================================================


async def test_create_template_and_duplicate(client: AsyncClient, admin_headers: dict[str, str]):
    body = {"course_code": "cs2020", "name": "Python Programming"}

    resp = await client.post("/api/v1/admin/course-templates", json=body, headers=admin_headers)
    assert resp.status_code == 201
    assert resp.json()["template"]["courseCode"] == "CS2020"

    again = await client.post("/api/v1/admin/course-templates", json=body, headers=admin_headers)
    assert again.status_code == 409
    assert again.json()["error"]["message"] == "Course code already exists"


async def test_build_course_content(
    client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace
):
    chapter = await client.post(
        "/api/v1/admin/chapters",
        json={"course_instance_id": seed.course_id, "name": "Styling"},
        headers=admin_headers,
    )
    assert chapter.status_code == 201
    chapter_id = chapter.json()["chapter"]["id"]
    assert chapter.json()["chapter"]["number"] == 2

    lecture = await client.post(
        "/api/v1/admin/lectures",
        json={
            "chapter_id": chapter_id,
            "title": "Flexbox",
            "youtube_url": "https://youtu.be/flex",
            "tags": ["CSS", "layout", "css"],
        },
        headers=admin_headers,
    )
    assert lecture.status_code == 201
    assert [t["tag"] for t in lecture.json()["lecture"]["tags"]] == ["css", "layout"]

    course = await client.get(f"/api/v1/courses/{seed.course_id}")
    assert [c["name"] for c in course.json()["chapters"]] == ["Getting Started", "Styling"]


async def test_content_change_invalidates_course_view(
    client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace
):
    before = await client.get(f"/api/v1/courses/{seed.course_id}")
    assert before.json()["lectureCount"] == 1

    await client.delete(f"/api/v1/admin/lectures/{seed.lecture_id}", headers=admin_headers)

    after = await client.get(f"/api/v1/courses/{seed.course_id}")
    assert after.json()["lectureCount"] == 0


async def test_empty_chapter_update(
    client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace
):
    resp = await client.put(
        f"/api/v1/admin/chapters/{seed.chapter_id}", json={}, headers=admin_headers
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["message"] == "No data provided for update"


async def test_delete_template_cascades(
    client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace
):
    resp = await client.delete(
        f"/api/v1/admin/course-templates/{seed.template_id}", headers=admin_headers
    )
    assert resp.status_code == 200

    course = await client.get(f"/api/v1/courses/{seed.course_id}")
    assert course.status_code == 404


async def test_lecture_tags(client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace):
    added = await client.post(
        f"/api/v1/admin/lectures/{seed.lecture_id}/tags",
        json={"tags": ["React"]},
        headers=admin_headers,
    )
    assert added.status_code == 200

    by_tags = await client.get(
        "/api/v1/admin/lectures/search/by-tags", params={"tags": "react,css"}, headers=admin_headers
    )
    assert by_tags.json()["total"] == 1

    tags = await client.get(f"/api/v1/admin/lectures/{seed.lecture_id}/tags", headers=admin_headers)
    tag_id = next(t["id"] for t in tags.json()["tags"] if t["tag"] == "react")
    removed = await client.delete(
        f"/api/v1/admin/lectures/{seed.lecture_id}/tags/{tag_id}", headers=admin_headers
    )
    assert removed.status_code == 200


async def test_update_lecture_with_tags_replaces_tag_set(
    client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace
):
    resp = await client.put(
        f"/api/v1/admin/lectures/{seed.lecture_id}/with-tags",
        json={"title": "Intro", "tags": ["React", "hooks"]},
        headers=admin_headers,
    )

    assert resp.status_code == 200
    lecture = resp.json()["lecture"]
    assert lecture["title"] == "Intro"
    assert [t["tag"] for t in lecture["tags"]] == ["hooks", "react"]


async def test_unique_tags(client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace):
    resp = await client.get("/api/v1/admin/tags/unique", headers=admin_headers)
    assert resp.json() == {"total": 2, "tags": ["beginner", "javascript"]}

    other = await client.get(
        "/api/v1/admin/tags/unique", params={"courseInstanceId": 999}, headers=admin_headers
    )
    assert other.json() == {"total": 0, "tags": []}


# =============================================================================
# Content listings and dropdowns
# =============================================================================


async def test_list_course_templates(
    client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace
):
    resp = await client.get("/api/v1/admin/course-templates", headers=admin_headers)

    data = resp.json()
    assert [t["courseCode"] for t in data["templates"]] == ["WEB101"]
    assert data["templates"][0]["instanceCount"] == 1
    assert data["pagination"]["totalCount"] == 1

    none = await client.get(
        "/api/v1/admin/course-templates", params={"search": "python"}, headers=admin_headers
    )
    assert none.json()["templates"] == []


async def test_list_and_get_course_instances(
    client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace
):
    listing = await client.get(
        "/api/v1/admin/course-instances", params={"teacherId": seed.teacher_id}, headers=admin_headers
    )
    [instance] = listing.json()["instances"]
    assert instance["id"] == seed.course_id
    assert instance["teacherName"] == "Jane Smith"
    assert instance["chapterCount"] == 1

    detail = await client.get(f"/api/v1/admin/course-instances/{seed.course_id}", headers=admin_headers)
    assert detail.json()["instance"]["courseName"] == "Web Development Basics"

    missing = await client.get("/api/v1/admin/course-instances/999", headers=admin_headers)
    assert missing.status_code == 404


async def test_instance_chapters_and_lectures(
    client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace
):
    chapters = await client.get(
        f"/api/v1/admin/course-instances/{seed.course_id}/chapters", headers=admin_headers
    )
    [chapter] = chapters.json()["chapters"]
    assert chapter["name"] == "Getting Started"
    assert chapter["lectureCount"] == 1

    lectures = await client.get(
        f"/api/v1/admin/course-instances/{seed.course_id}/lectures",
        params={"chapterId": seed.chapter_id},
        headers=admin_headers,
    )
    [lecture] = lectures.json()["lectures"]
    assert lecture["chapterName"] == "Getting Started"
    assert [t["tag"] for t in lecture["tags"]] == ["beginner", "javascript"]


async def test_dropdowns(client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace):
    instances = await client.get("/api/v1/admin/course-instances/dropdown", headers=admin_headers)
    assert instances.json()[0]["label"] == "WEB101 - Web Development Basics (Jane Smith) - Fall cohort"

    templates = await client.get("/api/v1/admin/course-templates/dropdown", headers=admin_headers)
    assert templates.json() == [
        {"id": seed.template_id, "courseCode": "WEB101", "name": "Web Development Basics"}
    ]

    chapters = await client.get(
        "/api/v1/admin/chapters/dropdown",
        params={"courseInstanceId": seed.course_id},
        headers=admin_headers,
    )
    assert chapters.json() == [{"id": seed.chapter_id, "name": "Getting Started", "number": 1}]

    teachers = await client.get("/api/v1/admin/teachers/dropdown", headers=admin_headers)
    assert teachers.json() == [
        {"id": seed.teacher_id, "name": "Jane Smith", "email": "jane@example.com", "userId": 2}
    ]

    students = await client.get("/api/v1/admin/students/dropdown", headers=admin_headers)
    assert [s["name"] for s in students.json()] == ["Alice Student"]


async def test_chapter_dropdown_requires_instance(client: AsyncClient, admin_headers: dict[str, str]):
    resp = await client.get("/api/v1/admin/chapters/dropdown", headers=admin_headers)
    assert resp.status_code == 422


# =============================================================================
# Dashboard and accounts
# =============================================================================


async def test_dashboard_stats(client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace):
    resp = await client.get("/api/v1/admin/dashboard/stats", headers=admin_headers)

    data = resp.json()
    assert data["stats"] == {
        "users": 3,
        "teachers": 1,
        "courseInstances": 1,
        "lectures": 1,
        "enrollments": 0,
    }
    assert len(data["recentUsers"]) == 3
    assert data["recentCourseInstances"][0]["teacherName"] == "Jane Smith"


async def test_list_users_by_role(client: AsyncClient, admin_headers: dict[str, str]):
    resp = await client.get("/api/v1/admin/users", params={"role": "student"}, headers=admin_headers)

    data = resp.json()
    assert [u["email"] for u in data["users"]] == ["alice@example.com"]
    assert data["pagination"]["totalCount"] == 1

    searched = await client.get("/api/v1/admin/users", params={"search": "JANE"}, headers=admin_headers)
    assert [u["name"] for u in searched.json()["users"]] == ["Jane Smith"]


async def test_create_teacher_account(client: AsyncClient, admin_headers: dict[str, str]):
    body = {"name": "Bob Teacher", "email": "bob@example.com", "password": "password123", "role": "teacher"}

    resp = await client.post("/api/v1/admin/users", json=body, headers=admin_headers)
    assert resp.status_code == 201
    assert resp.json()["user"]["role"] == "teacher"

    teachers = await client.get("/api/v1/admin/teachers", headers=admin_headers)
    assert "Bob Teacher" in [t["name"] for t in teachers.json()["teachers"]]

    login = await client.post(
        "/api/v1/auth/login", json={"email": "bob@example.com", "password": "password123"}
    )
    assert login.status_code == 200

    again = await client.post("/api/v1/admin/users", json=body, headers=admin_headers)
    assert again.status_code == 409
    assert again.json()["error"]["message"] == "User already exists"


async def test_update_user_invalidates_account_views(
    client: AsyncClient, admin_headers: dict[str, str], fake_redis: FakeRedis, seed: SimpleNamespace
):
    fake_redis.store.update({
        "user:7": "{}",
        "student_details_7": "{}",
        "teachers:public:1:12:null": "{}",
        "search:quick:q=al": "{}",
        "search_alice_all_null_null": "[]",
        "user:1": "{}",
        "student_details_8": "{}",
    })

    resp = await client.put(
        f"/api/v1/admin/users/{seed.student_id}", json={"name": "Alice Renamed"}, headers=admin_headers
    )

    assert resp.json()["user"]["name"] == "Alice Renamed"
    assert set(fake_redis.store) == {"user:1", "student_details_8"}


async def test_update_user_rejects_empty_body_and_taken_email(
    client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace
):
    empty = await client.put(f"/api/v1/admin/users/{seed.student_id}", json={}, headers=admin_headers)
    assert empty.status_code == 422

    taken = await client.put(
        f"/api/v1/admin/users/{seed.student_id}",
        json={"email": "jane@example.com"},
        headers=admin_headers,
    )
    assert taken.status_code == 409


async def test_promote_student_to_teacher(
    client: AsyncClient, admin_headers: dict[str, str], seed: SimpleNamespace
):
    resp = await client.post(
        "/api/v1/admin/teachers", json={"userId": seed.student_id}, headers=admin_headers
    )
    assert resp.status_code == 201
    assert resp.json()["teacher"]["user"]["role"] == "teacher"

    again = await client.post(
        "/api/v1/admin/teachers", json={"userId": seed.student_id}, headers=admin_headers
    )
    assert again.status_code == 409

    unknown = await client.post("/api/v1/admin/teachers", json={"userId": 999}, headers=admin_headers)
    assert unknown.status_code == 404


async def test_delete_student_removes_their_records(
    client: AsyncClient,
    admin_headers: dict[str, str],
    student_headers: dict[str, str],
    seed: SimpleNamespace,
):
    await client.post(
        "/api/v1/enroll_course", json={"courseInstanceId": seed.course_id}, headers=student_headers
    )
    await client.post(
        "/api/v1/watch-history",
        json={"lecture_id": seed.lecture_id, "progress": 50},
        headers=student_headers,
    )

    resp = await client.delete(f"/api/v1/admin/users/{seed.student_id}", headers=admin_headers)
    assert resp.status_code == 200

    stats = await client.get("/api/v1/admin/dashboard/stats", headers=admin_headers)
    assert stats.json()["stats"]["users"] == 2
    assert stats.json()["stats"]["enrollments"] == 0

    missing = await client.delete(f"/api/v1/admin/users/{seed.student_id}", headers=admin_headers)
    assert missing.status_code == 404


async def test_delete_teacher_removes_taught_courses(
    client: AsyncClient, admin_headers: dict[str, str], fake_redis: FakeRedis, seed: SimpleNamespace
):
    fake_redis.store["teacher:details:1"] = "{}"

    resp = await client.delete(f"/api/v1/admin/users/{seed.teacher_user_id}", headers=admin_headers)
    assert resp.status_code == 200

    course = await client.get(f"/api/v1/courses/{seed.course_id}")
    assert course.status_code == 404
    assert "teacher:details:1" not in fake_redis.store


# =============================================================================
# Cache administration
# =============================================================================


async def test_redis_health(client: AsyncClient, admin_headers: dict[str, str]):
    resp = await client.get("/api/v1/redis/health", headers=admin_headers)
    assert resp.json()["status"] == "success"


async def test_redis_stats(
    client: AsyncClient, admin_headers: dict[str, str], fake_redis: FakeRedis
):
    for key in ("course:3", "course:4", "search:quick:q=ja", "user_data_7", "student_enrolled_courses_7"):
        fake_redis.store[key] = "{}"

    resp = await client.get("/api/v1/redis/stats", headers=admin_headers)

    data = resp.json()
    assert data["total_keys"] == 5
    assert data["key_distribution"] == {
        "course": 2,
        "search": 1,
        "user_data": 1,
        "student_enrolled_courses": 1,
    }


async def test_clear_allowed_pattern(
    client: AsyncClient, admin_headers: dict[str, str], fake_redis: FakeRedis
):
    fake_redis.store.update({"search:a": "{}", "search:b": "{}", "course:3": "{}"})

    resp = await client.delete("/api/v1/redis/cache/search:*", headers=admin_headers)

    assert resp.json()["deleted_count"] == 2
    assert set(fake_redis.store) == {"course:3"}


@pytest.mark.parametrize(
    "pattern,remaining",
    [
        ("search_*", {"student_details_7", "user_data_7", "course:3"}),
        ("student_details_*", {"search_react_all_null_null", "user_data_7", "course:3"}),
        ("user_data_*", {"search_react_all_null_null", "student_details_7", "course:3"}),
    ],
)
async def test_clear_legacy_family(
    client: AsyncClient,
    admin_headers: dict[str, str],
    fake_redis: FakeRedis,
    pattern: str,
    remaining: set[str],
):
    fake_redis.store.update({
        "search_react_all_null_null": "[]",
        "student_details_7": "{}",
        "user_data_7": "{}",
        "course:3": "{}",
    })

    resp = await client.delete(f"/api/v1/redis/cache/{pattern}", headers=admin_headers)

    assert resp.json()["deleted_count"] == 1
    assert set(fake_redis.store) == remaining


@pytest.mark.parametrize("pattern", ["session:*", "*", "ratelimit:*", "search*", "session_*"])
async def test_clear_protected_pattern(
    client: AsyncClient, admin_headers: dict[str, str], fake_redis: FakeRedis, pattern: str
):
    fake_redis.store["session:7"] = "{}"

    resp = await client.delete(f"/api/v1/redis/cache/{pattern}", headers=admin_headers)

    assert resp.status_code == 403
    assert "session:7" in fake_redis.store
