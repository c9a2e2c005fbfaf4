"""Tests for enrollment: service semantics and HTTP endpoints."""

from types import SimpleNamespace

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.db.models import Enrollment
from app.db.session import Database
from app.services.cache import CacheService
from app.services.enrollment import ALREADY_ENROLLED, EnrollmentService
from app.services.users import UserService

from tests.fakes import FakeRedis


async def _enrollment_count(session: AsyncSession, student_id: int, course_id: int) -> int:
    return await session.scalar(
        select(func.count(Enrollment.id)).where(
            Enrollment.student_id == student_id,
            Enrollment.course_instance_id == course_id,
        )
    )


class TestEnrollmentService:

    async def test_duplicate_enrollment_is_conflict(
        self, db_session: AsyncSession, cache: CacheService, seed: SimpleNamespace
    ):
        service = EnrollmentService(db_session, cache)
        await service.enroll(seed.student_id, seed.course_id)

        with pytest.raises(ConflictError) as exc_info:
            await service.enroll(seed.student_id, seed.course_id)

        assert exc_info.value.message == ALREADY_ENROLLED == "Already enrolled in this course"
        assert await _enrollment_count(db_session, seed.student_id, seed.course_id) == 1

    async def test_second_session_sees_the_constraint(
        self, database: Database, cache: CacheService, seed: SimpleNamespace
    ):
        async with database.session_factory() as first:
            await EnrollmentService(first, cache).enroll(seed.student_id, seed.course_id)

        async with database.session_factory() as second:
            with pytest.raises(ConflictError):
                await EnrollmentService(second, cache).enroll(seed.student_id, seed.course_id)
            assert await _enrollment_count(second, seed.student_id, seed.course_id) == 1

    async def test_unknown_course(
        self, db_session: AsyncSession, cache: CacheService, seed: SimpleNamespace
    ):
        with pytest.raises(NotFoundError, match="Course not found"):
            await EnrollmentService(db_session, cache).enroll(seed.student_id, 999)

    async def test_unenroll(
        self, db_session: AsyncSession, cache: CacheService, seed: SimpleNamespace
    ):
        service = EnrollmentService(db_session, cache)
        await service.enroll(seed.student_id, seed.course_id)
        assert await service.is_enrolled(seed.student_id, seed.course_id) is True

        await service.unenroll(seed.student_id, seed.course_id)
        assert await service.is_enrolled(seed.student_id, seed.course_id) is False

    async def test_unenroll_without_enrollment(
        self, db_session: AsyncSession, cache: CacheService, seed: SimpleNamespace
    ):
        with pytest.raises(NotFoundError, match="Enrollment not found"):
            await EnrollmentService(db_session, cache).unenroll(seed.student_id, seed.course_id)

    async def test_enroll_clears_derived_entries(
        self,
        db_session: AsyncSession,
        cache: CacheService,
        fake_redis: FakeRedis,
        seed: SimpleNamespace,
    ):
        for key in ("course:3", "teacher:courses:1", "user_data_7", "search:advanced:x", "user:7"):
            fake_redis.store[key] = "{}"

        await EnrollmentService(db_session, cache).enroll(seed.student_id, seed.course_id)

        assert set(fake_redis.store) == {"user:7"}

    async def test_cached_user_data_reflects_new_enrollment(
        self, db_session: AsyncSession, cache: CacheService, seed: SimpleNamespace
    ):
        users = UserService(db_session, cache)
        before = await users.get_user_data(seed.student_id)
        assert before["enrolled_courses"] == []

        await EnrollmentService(db_session, cache).enroll(seed.student_id, seed.course_id)

        after = await users.get_user_data(seed.student_id)
        assert [c["course_instance_id"] for c in after["enrolled_courses"]] == [seed.course_id]


class TestEnrollmentAPI:

    async def test_enroll_and_repeat(
        self, client: AsyncClient, student_headers: dict[str, str], seed: SimpleNamespace
    ):
        body = {"courseInstanceId": seed.course_id}

        response = await client.post("/api/v1/enroll_course", json=body, headers=student_headers)
        assert response.status_code == 201
        assert response.json() == {"success": True, "message": "Enrolled successfully"}

        repeat = await client.post("/api/v1/enroll_course", json=body, headers=student_headers)
        assert repeat.status_code == 409
        assert repeat.json()["error"]["message"] == "Already enrolled in this course"

    async def test_requires_authentication(self, client: AsyncClient, seed: SimpleNamespace):
        response = await client.post(
            "/api/v1/enroll_course", json={"courseInstanceId": seed.course_id}
        )
        assert response.status_code == 401

    @pytest.mark.parametrize("value", ["3", 0, -1, 3.5, None])
    async def test_course_id_must_be_positive_integer(
        self, client: AsyncClient, student_headers: dict[str, str], value
    ):
        response = await client.post(
            "/api/v1/enroll_course", json={"courseInstanceId": value}, headers=student_headers
        )
        assert response.status_code == 422

    async def test_check_and_unenroll(
        self, client: AsyncClient, student_headers: dict[str, str], seed: SimpleNamespace
    ):
        body = {"courseInstanceId": seed.course_id}
        await client.post("/api/v1/enroll_course", json=body, headers=student_headers)

        check = await client.get(
            f"/api/v1/check_enrollment/{seed.course_id}", headers=student_headers
        )
        assert check.json() == {"isEnrolled": True, "courseInstanceId": seed.course_id}

        response = await client.request(
            "DELETE", "/api/v1/unenroll_course", json=body, headers=student_headers
        )
        assert response.status_code == 200

        again = await client.request(
            "DELETE", "/api/v1/unenroll_course", json=body, headers=student_headers
        )
        assert again.status_code == 404
