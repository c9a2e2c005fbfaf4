"""Tests for autocomplete suggestions."""

from types import SimpleNamespace

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.cache import CacheService
from app.services.search import SearchEngine

from tests.fakes import FakeRedis


@pytest.fixture
def search_engine(db_session: AsyncSession, cache: CacheService, seed: SimpleNamespace) -> SearchEngine:
    return SearchEngine(db_session, cache)


class TestShortQueries:

    @pytest.mark.parametrize("query", ["a", "", "   ", None])
    async def test_short_query_does_no_work(
        self,
        search_engine: SearchEngine,
        statement_counter: list[str],
        fake_redis: FakeRedis,
        query,
    ):
        result = await search_engine.quick_search(query)

        assert result == {"suggestions": []}
        assert statement_counter == []
        assert fake_redis.calls == []

    async def test_endpoint_short_query(
        self,
        client: AsyncClient,
        seed: SimpleNamespace,
        statement_counter: list[str],
        fake_redis: FakeRedis,
    ):
        response = await client.get("/api/v1/quick-search", params={"query": "a"})

        assert response.status_code == 200
        assert response.json() == {"suggestions": []}
        assert statement_counter == []
        assert fake_redis.calls == []


class TestSuggestions:

    async def test_lecture_suggestion(self, search_engine: SearchEngine):
        result = await search_engine.quick_search("intro")
        assert result["suggestions"] == [
            {
                "type": "lecture",
                "title": "Introduction to Programming",
                "subtitle": "WEB101 - Getting Started",
                "id": 1,
            }
        ]

    async def test_course_suggestion(self, search_engine: SearchEngine):
        result = await search_engine.quick_search("web")
        assert result["suggestions"] == [
            {
                "type": "course",
                "title": "Web Development Basics",
                "subtitle": "WEB101 - Jane Smith",
                "id": 3,
            }
        ]

    async def test_teacher_suggestion(self, search_engine: SearchEngine):
        result = await search_engine.quick_search("jane")
        assert result["suggestions"] == [
            {"type": "teacher", "title": "Jane Smith", "subtitle": "1 courses", "id": 1}
        ]

    async def test_students_are_never_suggested(self, search_engine: SearchEngine):
        result = await search_engine.quick_search("alice")
        assert result["suggestions"] == []

    async def test_limit_truncates(self, search_engine: SearchEngine):
        both = await search_engine.quick_search("intro web")
        assert [s["type"] for s in both["suggestions"]] == ["course", "lecture"]

        one = await search_engine.quick_search("intro web", limit=1)
        assert [s["type"] for s in one["suggestions"]] == ["course"]

    async def test_repeat_is_served_from_cache(
        self, search_engine: SearchEngine, statement_counter: list[str]
    ):
        first = await search_engine.quick_search("intro")
        executed = len(statement_counter)

        second = await search_engine.quick_search("Intro ")
        assert len(statement_counter) == executed
        assert second == first

    async def test_endpoint(self, client: AsyncClient, seed: SimpleNamespace):
        response = await client.get("/api/v1/quick-search", params={"query": "web", "limit": 5})

        assert response.status_code == 200
        suggestions = response.json()["suggestions"]
        assert suggestions[0]["type"] == "course"
        assert suggestions[0]["id"] == 3
