"""Search query normalization: tokens, match expressions and pagination."""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.services.search.filters import SearchFilters

_NON_WORD = re.compile(r"[^\w\s]")

MIN_TOKEN_LENGTH = 2
PREFIX_MIN_LENGTH = 3
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


class SearchType(str, Enum):
    ALL = "all"
    TEACHERS = "teachers"
    COURSES = "courses"
    STUDENTS = "students"
    LECTURES = "lectures"


class SortBy(str, Enum):
    RELEVANCE = "relevance"
    NAME = "name"
    DATE = "date"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Term:
    """One search token; prefix terms also match longer words."""

    text: str
    prefix: bool


def tokenize(query: str | None, min_length: int = MIN_TOKEN_LENGTH) -> list[str]:
    """Split on non-word characters and drop tokens shorter than min_length.

    Tokens are lowercased; order is preserved and duplicates removed.
    """
    if not query:
        return []
    words = _NON_WORD.sub(" ", query).split()
    tokens: list[str] = []
    for word in words:
        token = word.lower()
        if len(token) >= min_length and token not in tokens:
            tokens.append(token)
    return tokens


def build_terms(
    tokens: list[str],
    prefix_min_length: int = PREFIX_MIN_LENGTH,
) -> list[Term]:
    return [Term(text=t, prefix=len(t) >= prefix_min_length) for t in tokens]


def build_tsquery(terms: list[Term]) -> str:
    """Disjunctive tsquery text: ``intro:* | to | programming:*``.

    Tokens only ever contain word characters, so the result is always a
    syntactically valid tsquery. It is still passed as a bound parameter.
    """
    return " | ".join(f"{t.text}:*" if t.prefix else t.text for t in terms)


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def clamp(
        cls,
        page: int | None,
        limit: int | None,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ) -> "Pagination":
        """Clamp page to >= 1 and limit to [1, max_limit]."""
        page = 1 if page is None else max(1, page)
        limit = default_limit if limit is None else min(max_limit, max(1, limit))
        return cls(page=page, limit=limit)

    def has_more(self, returned: int, total: int) -> bool:
        return self.offset + returned < total

    def describe(self, returned: int, total: int) -> dict[str, Any]:
        """Pagination block for list responses."""
        return {
            "currentPage": self.page,
            "totalPages": math.ceil(total / self.limit),
            "totalCount": total,
            "hasMore": self.has_more(returned, total),
        }


@dataclass(frozen=True)
class SearchQuery:
    """A validated, normalized search request."""

    text: str
    terms: list[Term]
    search_type: SearchType
    pagination: Pagination
    filters: SearchFilters = field(default_factory=SearchFilters)
    sort_by: SortBy = SortBy.RELEVANCE
    sort_order: SortOrder = SortOrder.DESC

    @property
    def has_text(self) -> bool:
        return bool(self.terms)

    @property
    def tsquery(self) -> str:
        return build_tsquery(self.terms)
