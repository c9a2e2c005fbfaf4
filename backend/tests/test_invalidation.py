"""Tests for mutation-driven cache invalidation."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from app.db.models import Enrollment
from app.db.session import Database
from app.services.cache import CacheService, Mutation, patterns_for
from app.services.enrollment import EnrollmentService

from tests.fakes import FakeRedis

DERIVED_KEYS = [
    "course:3",
    "course:4",
    "courses:browse:all",
    "teacher:courses:1",
    "teacher:details:1",
    "teacher:courses:2",
    "teachers:public:1:12:null",
    "student_details_7",
    "student_enrolled_courses_7",
    "student_enrolled_courses_8",
    "user_data_7",
    "user_data_8",
    "user:7",
    "session:7",
    "search:advanced:q=java",
    "search:quick:q=ja",
    "search_java_all_null_null",
]


def _fill(fake_redis: FakeRedis) -> None:
    for key in DERIVED_KEYS:
        fake_redis.store[key] = "{}"


class TestPatternTable:

    def test_enrollment_is_scoped_to_course_teacher_and_student(self):
        patterns = patterns_for(Mutation.ENROLLMENT, course_id=3, teacher_id=1, student_id=7)
        assert patterns == [
            "course:3",
            "courses:browse:all",
            "teacher:courses:1",
            "teacher:details:1",
            "teachers:public:*",
            "student_enrolled_courses_7",
            "user_data_7",
            "search:*",
            "search_*",
        ]

    def test_missing_ids_widen_to_patterns(self):
        patterns = patterns_for(Mutation.ENROLLMENT)
        assert "course:*" in patterns
        assert "teacher:*" in patterns
        assert "student_enrolled_courses_*" in patterns
        assert "user_data_*" in patterns

    def test_password_change_only_touches_the_user(self):
        assert patterns_for(Mutation.PASSWORD_CHANGE, user_id=5) == ["user:5"]

    def test_password_change_requires_user(self):
        with pytest.raises(ValueError):
            patterns_for(Mutation.PASSWORD_CHANGE)

    @pytest.mark.parametrize(
        "mutation",
        [
            Mutation.ENROLLMENT,
            Mutation.COURSE_INSTANCE,
            Mutation.COURSE_CONTENT,
            Mutation.COURSE_TEMPLATE,
            Mutation.USER_ACCOUNT,
        ],
    )
    def test_every_data_mutation_clears_search(self, mutation: Mutation):
        patterns = patterns_for(mutation, course_id=3, teacher_id=1, student_id=7, user_id=7)
        assert "search:*" in patterns
        assert "search_*" in patterns
        assert "courses:browse:all" in patterns

    def test_content_change_is_scoped_to_owning_teacher(self):
        patterns = patterns_for(Mutation.COURSE_CONTENT, course_id=3, teacher_id=1)
        assert "teacher:courses:1" in patterns
        assert "teacher:details:1" in patterns
        assert "teacher:*" not in patterns

    def test_template_change_clears_every_course_and_teacher(self):
        patterns = patterns_for(Mutation.COURSE_TEMPLATE, course_id=3, teacher_id=1)
        assert "course:*" in patterns
        assert "teacher:*" in patterns
        assert "course:3" not in patterns

    def test_content_mutations_never_clear_sessions(self):
        for mutation in set(Mutation) - {Mutation.USER_ACCOUNT}:
            patterns = patterns_for(mutation, course_id=3, teacher_id=1, student_id=7, user_id=7)
            assert not any(p.startswith("session") for p in patterns)

    def test_account_change_clears_that_users_keys(self):
        patterns = patterns_for(Mutation.USER_ACCOUNT, user_id=7)
        assert patterns[:5] == [
            "user:7",
            "session:7",
            "student_details_7",
            "student_enrolled_courses_7",
            "user_data_7",
        ]
        assert "teachers:public:*" in patterns
        assert "teacher:*" in patterns
        assert "session:*" not in patterns

    def test_account_change_of_teacher_is_scoped(self):
        patterns = patterns_for(Mutation.USER_ACCOUNT, user_id=2, teacher_id=1)
        assert "teacher:details:1" in patterns
        assert "teacher:*" not in patterns

    def test_account_change_requires_user(self):
        with pytest.raises(ValueError):
            patterns_for(Mutation.USER_ACCOUNT, teacher_id=1)


class TestInvalidateFor:

    async def test_enrollment_clears_affected_keys_only(
        self, cache: CacheService, fake_redis: FakeRedis
    ):
        _fill(fake_redis)

        await cache.invalidate_for(Mutation.ENROLLMENT, course_id=3, teacher_id=1, student_id=7)

        assert set(fake_redis.store) == {
            "course:4",
            "teacher:courses:2",
            "student_details_7",
            "student_enrolled_courses_8",
            "user_data_8",
            "user:7",
            "session:7",
        }

    async def test_password_change(self, cache: CacheService, fake_redis: FakeRedis):
        _fill(fake_redis)
        removed = await cache.invalidate_for(Mutation.PASSWORD_CHANGE, user_id=7)
        assert removed == 1
        assert "user:7" not in fake_redis.store
        assert "session:7" in fake_redis.store

    async def test_account_change_leaves_other_users(
        self, cache: CacheService, fake_redis: FakeRedis
    ):
        _fill(fake_redis)

        await cache.invalidate_for(Mutation.USER_ACCOUNT, user_id=7)

        assert set(fake_redis.store) == {"student_enrolled_courses_8", "user_data_8"}

    async def test_repeat_is_safe(self, cache: CacheService, fake_redis: FakeRedis):
        _fill(fake_redis)
        first = await cache.invalidate_for(Mutation.COURSE_CONTENT, course_id=3, teacher_id=1)
        second = await cache.invalidate_for(Mutation.COURSE_CONTENT, course_id=3, teacher_id=1)
        assert first > 0
        assert second == 0

    async def test_unreachable_cache_is_not_an_error(
        self, cache: CacheService, fake_redis: FakeRedis
    ):
        fake_redis.fail = True
        assert await cache.invalidate_for(Mutation.COURSE_TEMPLATE) == 0


class TestWriteThenInvalidate:

    async def test_invalidation_runs_after_commit(
        self, database: Database, cache: CacheService, seed: SimpleNamespace
    ):
        observed: list[tuple[bool, bool]] = []

        async with database.session_factory() as session:

            async def _check_committed(*args, **kwargs):
                async with database.session_factory() as other:
                    row = await other.execute(
                        select(Enrollment.id).where(Enrollment.student_id == seed.student_id)
                    )
                    observed.append((session.in_transaction(), row.first() is not None))
                return 0

            service = EnrollmentService(session, cache)
            with patch.object(cache, "invalidate_for", AsyncMock(side_effect=_check_committed)):
                await service.enroll(seed.student_id, seed.course_id)

        # No open transaction and the row is visible when invalidation starts
        assert observed == [(False, True)]

    async def test_crash_before_invalidation_keeps_the_write(
        self,
        database: Database,
        cache: CacheService,
        fake_redis: FakeRedis,
        seed: SimpleNamespace,
    ):
        fake_redis.store["course:3"] = '{"stale": true}'

        async with database.session_factory() as session:
            service = EnrollmentService(session, cache)
            crash = AsyncMock(side_effect=RuntimeError("process died"))
            with patch.object(cache, "invalidate_for", crash):
                with pytest.raises(RuntimeError):
                    await service.enroll(seed.student_id, seed.course_id)

        # "Restart": a fresh session still sees the committed enrollment
        async with database.session_factory() as session:
            result = await session.execute(
                select(Enrollment).where(
                    Enrollment.student_id == seed.student_id,
                    Enrollment.course_instance_id == seed.course_id,
                )
            )
            assert result.scalar_one_or_none() is not None

        # The stale entry survives until invalidation is retried
        assert "course:3" in fake_redis.store
        await cache.invalidate_for(
            Mutation.ENROLLMENT, course_id=seed.course_id, teacher_id=seed.teacher_id,
            student_id=seed.student_id,
        )
        assert "course:3" not in fake_redis.store
        await cache.invalidate_for(
            Mutation.ENROLLMENT, course_id=seed.course_id, teacher_id=seed.teacher_id,
            student_id=seed.student_id,
        )
