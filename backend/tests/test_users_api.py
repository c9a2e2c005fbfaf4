"""User profile and account endpoint tests."""

from types import SimpleNamespace

import pytest
from httpx import AsyncClient

from tests.conftest import TEST_PASSWORD, bearer
from tests.fakes import FakeRedis

pytestmark = pytest.mark.asyncio


async def test_user_data_without_enrollments(
    client: AsyncClient, student_headers: dict[str, str], fake_redis: FakeRedis
):
    resp = await client.get("/api/v1/get-user-data", headers=student_headers)

    assert resp.status_code == 200
    assert resp.json() == {
        "name": "Alice Student",
        "email": "alice@example.com",
        "enrolled_courses": [],
    }
    assert "user_data_7" in fake_redis.store


async def test_enrolled_courses_not_found_when_empty(
    client: AsyncClient, student_headers: dict[str, str], seed: SimpleNamespace
):
    resp = await client.get(
        f"/api/v1/student_enrolled_courses/{seed.student_id}", headers=student_headers
    )
    assert resp.status_code == 404


async def test_enrolled_courses_after_enrolling(
    client: AsyncClient, student_headers: dict[str, str], seed: SimpleNamespace
):
    await client.post(
        "/api/v1/enroll_course", json={"courseInstanceId": seed.course_id}, headers=student_headers
    )

    resp = await client.get(
        f"/api/v1/student_enrolled_courses/{seed.student_id}", headers=student_headers
    )

    assert resp.status_code == 200
    assert resp.json() == [
        {
            "course_instance_id": seed.course_id,
            "teacher_id": seed.teacher_id,
            "course_name": "Web Development Basics",
            "course_code": "WEB101",
            "teacher_name": "Jane Smith",
        }
    ]


async def test_student_details_of_teacher_is_forbidden(
    client: AsyncClient, student_headers: dict[str, str], seed: SimpleNamespace
):
    resp = await client.get(
        f"/api/v1/student_details/{seed.teacher_user_id}", headers=student_headers
    )
    assert resp.status_code == 403


async def test_dashboard(client: AsyncClient, student_headers: dict[str, str]):
    resp = await client.get("/api/v1/dashboard", headers=student_headers)

    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["email"] == "alice@example.com"
    assert data["enrolledCourses"] == []
    assert data["totalCourses"] == 0


async def test_change_password(
    client: AsyncClient, student_headers: dict[str, str], fake_redis: FakeRedis
):
    await client.get("/api/v1/dashboard", headers=student_headers)
    assert "user:7" in fake_redis.store

    resp = await client.post(
        "/api/v1/change-password",
        json={"oldPassword": TEST_PASSWORD, "newPassword": "a-new-password"},
        headers=student_headers,
    )
    assert resp.status_code == 200
    assert "user:7" not in fake_redis.store

    login = await client.post(
        "/api/v1/auth/login", json={"email": "alice@example.com", "password": "a-new-password"}
    )
    assert login.status_code == 200


async def test_change_password_wrong_current(client: AsyncClient, student_headers: dict[str, str]):
    resp = await client.post(
        "/api/v1/change-password",
        json={"oldPassword": "nope", "newPassword": "a-new-password"},
        headers=student_headers,
    )
    assert resp.status_code == 401
    assert resp.json()["error"]["message"] == "Current password is incorrect"


async def test_change_password_too_short(client: AsyncClient, student_headers: dict[str, str]):
    resp = await client.post(
        "/api/v1/change-password",
        json={"oldPassword": TEST_PASSWORD, "newPassword": "short"},
        headers=student_headers,
    )
    assert resp.status_code == 422


async def test_unknown_user_token(client: AsyncClient, seed: SimpleNamespace):
    resp = await client.get("/api/v1/get-user-data", headers=bearer(999, "student"))
    assert resp.status_code == 404


async def test_requires_auth(client: AsyncClient):
    resp = await client.get("/api/v1/get-user-data")
    assert resp.status_code == 401
