"""Ranked search over teachers, courses, lectures and students."""

from app.services.search.engine import SearchEngine, build_search_query
from app.services.search.filters import SearchFilters
from app.services.search.query import (
    Pagination,
    SearchQuery,
    SearchType,
    SortBy,
    SortOrder,
    build_tsquery,
    tokenize,
)

__all__ = [
    "SearchEngine",
    "build_search_query",
    "SearchFilters",
    "Pagination",
    "SearchQuery",
    "SearchType",
    "SortBy",
    "SortOrder",
    "build_tsquery",
    "tokenize",
]
