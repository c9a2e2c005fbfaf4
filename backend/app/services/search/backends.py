"""Relevance ranking backends.

Both backends take structured search terms and produce SQL expressions with
every user-supplied value bound as a parameter:

- ``PostgresFullTextBackend``: weighted ``tsvector`` ranked with ``ts_rank``
  against a disjunctive prefix ``tsquery``.
- ``PatternBackend``: portable ILIKE scoring for stores without full-text
  search (SQLite in tests and local development).
"""

from collections.abc import Sequence
from typing import Protocol

from sqlalchemy import Float, String, case, cast, func, literal
from sqlalchemy.dialects.postgresql import TSQUERY, TSVECTOR
from sqlalchemy.sql.elements import ColumnElement

from app.services.search.query import Term, build_tsquery

TITLE_WEIGHT = 1.0
BODY_WEIGHT = 0.4
TEXT_CONFIG = "english"


def concat_text(columns: Sequence[ColumnElement]) -> ColumnElement:
    """Join columns with single spaces, treating NULL as empty."""
    expr: ColumnElement | None = None
    for col in columns:
        part = func.coalesce(cast(col, String), "")
        expr = part if expr is None else expr + " " + part
    return expr if expr is not None else literal("")


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains(column: ColumnElement, value: str) -> ColumnElement:
    """Case-insensitive substring predicate with escaped input."""
    return column.ilike(f"%{escape_like(value)}%", escape="\\")


class RankingBackend(Protocol):
    name: str

    def score(
        self,
        title: Sequence[ColumnElement],
        body: Sequence[ColumnElement],
        terms: list[Term],
    ) -> ColumnElement: ...

    def matches(
        self,
        title: Sequence[ColumnElement],
        body: Sequence[ColumnElement],
        terms: list[Term],
    ) -> ColumnElement: ...

    def aggregate_text(self, column: ColumnElement) -> ColumnElement: ...


class PostgresFullTextBackend:
    """PostgreSQL ``tsvector``/``tsquery`` ranking."""

    name = "postgres_fts"

    def _vector(
        self,
        title: Sequence[ColumnElement],
        body: Sequence[ColumnElement],
    ) -> ColumnElement:
        title_vec = func.setweight(
            func.to_tsvector(TEXT_CONFIG, concat_text(title), type_=TSVECTOR),
            "A",
            type_=TSVECTOR,
        )
        if not body:
            return title_vec
        body_vec = func.setweight(
            func.to_tsvector(TEXT_CONFIG, concat_text(body), type_=TSVECTOR),
            "B",
            type_=TSVECTOR,
        )
        return title_vec.op("||", return_type=TSVECTOR)(body_vec)

    def _query(self, terms: list[Term]) -> ColumnElement:
        return func.to_tsquery(
            TEXT_CONFIG,
            literal(build_tsquery(terms), type_=String),
            type_=TSQUERY,
        )

    def score(self, title, body, terms):
        return cast(func.ts_rank(self._vector(title, body), self._query(terms)), Float)

    def matches(self, title, body, terms):
        return self._vector(title, body).op("@@", is_comparison=True)(self._query(terms))

    def aggregate_text(self, column):
        return func.string_agg(column, " ")


class PatternBackend:
    """ILIKE scoring: each term adds the title weight or the body weight.

    Prefix terms match anywhere in the text. Short terms must match a whole
    space-delimited word.
    """

    name = "pattern"

    def _hit(self, text: ColumnElement, term: Term) -> ColumnElement:
        if term.prefix:
            return contains(text, term.text)
        padded = " " + text + " "
        return padded.ilike(f"% {escape_like(term.text)} %", escape="\\")

    def score(self, title, body, terms):
        title_text = concat_text(title)
        body_text = concat_text(body) if body else None
        total: ColumnElement = literal(0.0, type_=Float)
        for term in terms:
            total = total + case((self._hit(title_text, term), TITLE_WEIGHT), else_=0.0)
            if body_text is not None:
                total = total + case((self._hit(body_text, term), BODY_WEIGHT), else_=0.0)
        return total

    def matches(self, title, body, terms):
        return self.score(title, body, terms) > 0

    def aggregate_text(self, column):
        return func.group_concat(column, " ")


def backend_for(dialect_name: str) -> RankingBackend:
    """Pick the ranking backend for a SQLAlchemy dialect."""
    if dialect_name == "postgresql":
        return PostgresFullTextBackend()
    return PatternBackend()
