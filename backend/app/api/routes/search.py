"""Search endpoints: legacy keyword search, advanced search and quick-search."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from app.api.deps import CurrentPrincipal, Search, check_rate_limit
from app.api.schemas import AdvancedSearchRequest, KeywordSearchRequest, QuickSearchResponse
from app.services.search import build_search_query

router = APIRouter(tags=["Search"])


@router.post(
    "/search",
    summary="Keyword search scoped by course or teacher",
    responses={422: {"description": "Neither a keyword nor a scope was given"}},
)
async def search(payload: KeywordSearchRequest, engine: Search) -> list[dict[str, Any]]:
    """
    Merged keyword search over courses, lectures and teachers.

    ``advancedFields`` narrows results to one course instance (``courseId``)
    or one teacher (``teacherId``).
    """
    return await engine.legacy_search(
        payload.keyword,
        payload.type,
        course_id=payload.scope("courseId"),
        teacher_id=payload.scope("teacherId"),
    )


@router.post(
    "/advanced-search",
    summary="Ranked search across teachers, courses, students and lectures",
    responses={422: {"description": "Missing criteria or invalid parameters"}},
)
async def advanced_search(
    payload: AdvancedSearchRequest,
    engine: Search,
    principal: CurrentPrincipal,
) -> dict[str, Any]:
    """
    Search one or all entity kinds.

    - **query**: free text; tokens of 3+ characters also match as prefixes
    - **type**: all, teachers, courses, students or lectures
    - **filters**: courseCode, teacherName, chapterName, isActive, tags
    - **sortBy** / **sortOrder**: relevance, name or date; asc or desc

    At least a search term or one filter is required.
    """
    query = build_search_query(
        payload.query,
        payload.type,
        payload.page,
        payload.limit,
        payload.filters,
        payload.sort_by,
        payload.sort_order,
        settings=engine.settings,
    )
    return await engine.advanced_search(query)


@router.get(
    "/quick-search",
    response_model=QuickSearchResponse,
    summary="Autocomplete suggestions",
    dependencies=[Depends(check_rate_limit)],
)
async def quick_search(
    engine: Search,
    query: Annotated[str | None, Query(max_length=200)] = None,
    limit: Annotated[int | None, Query(ge=1, le=50)] = None,
) -> dict[str, Any]:
    return await engine.quick_search(query, limit)
