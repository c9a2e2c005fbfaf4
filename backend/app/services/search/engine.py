"""Ranked multi-entity search over the durable store.

Each entity kind (teachers, courses, lectures, students) is searched with the
same pipeline: build the match and score expressions from the query terms,
AND the structured filters on top, order, then fetch one page together with
a count over the same predicate. Results are cached by normalized query.
"""

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Float, Select, distinct, exists, func, literal, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.sql.selectable import FromClause

from app.core.config import Settings, get_settings
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.db.models import (
    Chapter,
    CourseInstance,
    CourseTemplate,
    Enrollment,
    Lecture,
    LectureTag,
    Teacher,
    User,
)
from app.services.cache import CacheService, keys
from app.services.search.backends import RankingBackend, backend_for, contains
from app.services.search.filters import (
    APPLICABLE_FILTERS,
    CourseFilters,
    LectureFilters,
    SearchFilters,
    StudentFilters,
    TeacherFilters,
)
from app.services.search.query import (
    Pagination,
    SearchQuery,
    SearchType,
    SortBy,
    SortOrder,
    Term,
    build_terms,
    tokenize,
)

logger = get_logger(__name__)

KIND_ORDER = (SearchType.TEACHERS, SearchType.COURSES, SearchType.STUDENTS, SearchType.LECTURES)
QUICK_KINDS = (SearchType.COURSES, SearchType.LECTURES, SearchType.TEACHERS)
LEGACY_KINDS = (SearchType.COURSES, SearchType.LECTURES, SearchType.TEACHERS)
LEGACY_LIMIT = 20


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class KindStatement:
    """One entity kind's searchable statement before ordering and paging."""

    columns: list[ColumnElement]
    from_clause: FromClause
    predicates: list[ColumnElement]
    id_col: ColumnElement
    name_col: ColumnElement
    date_col: ColumnElement
    score_col: ColumnElement
    to_item: Callable[[Any], dict[str, Any]]


@dataclass
class KindPage:
    """A page of ranked items for one entity kind."""

    items: list[dict[str, Any]]
    total: int
    pagination: Pagination

    @property
    def has_more(self) -> bool:
        return self.pagination.has_more(len(self.items), self.total)


@dataclass
class SearchResult:
    pages: dict[SearchType, KindPage] = field(default_factory=dict)

    def to_response(self, search_type: SearchType, pagination: Pagination) -> dict[str, Any]:
        response: dict[str, Any] = {
            kind.value: (self.pages[kind].items if kind in self.pages else [])
            for kind in KIND_ORDER
        }
        if search_type is SearchType.ALL:
            # Aggregate over returned page sizes, not a global count
            total_count = sum(len(p.items) for p in self.pages.values())
            has_more = any(p.has_more for p in self.pages.values())
        else:
            page = self.pages[search_type]
            total_count = page.total
            has_more = page.has_more
        response.update(
            totalCount=total_count,
            hasMore=has_more,
            page=pagination.page,
            limit=pagination.limit,
            totals={kind.value: p.total for kind, p in self.pages.items()},
        )
        return response


def build_search_query(
    query: str | None,
    search_type: SearchType | str = SearchType.ALL,
    page: int | None = None,
    limit: int | None = None,
    filters: SearchFilters | None = None,
    sort_by: SortBy | str = SortBy.RELEVANCE,
    sort_order: SortOrder | str = SortOrder.DESC,
    settings: Settings | None = None,
) -> SearchQuery:
    """Validate and normalize raw search parameters.

    Raises ValidationError for an over-long query, an unknown type or sort,
    filters that do not apply to the requested type, or a request with
    neither a usable search term nor a filter.
    """
    settings = settings or get_settings()
    text = " ".join((query or "").split())
    if len(text) > settings.search_max_query_length:
        raise ValidationError(
            f"Query is too long (max {settings.search_max_query_length} characters)"
        )

    try:
        search_type = SearchType(search_type)
        sort_by = SortBy(sort_by)
        sort_order = SortOrder(sort_order)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    filters = filters or SearchFilters()
    if search_type is not SearchType.ALL:
        inapplicable = filters.active_fields() - APPLICABLE_FILTERS[search_type.value]
        if inapplicable:
            raise ValidationError(
                f"Filters not supported for {search_type.value}",
                {"filters": sorted(inapplicable)},
            )

    terms = build_terms(
        tokenize(text, settings.search_min_token_length),
        settings.search_prefix_min_length,
    )
    if not terms and filters.is_empty:
        raise ValidationError(
            "Provide a search term of at least "
            f"{settings.search_min_token_length} characters or at least one filter"
        )

    return SearchQuery(
        text=text,
        terms=terms,
        search_type=search_type,
        pagination=Pagination.clamp(
            page, limit, settings.search_default_limit, settings.search_max_limit
        ),
        filters=filters,
        sort_by=sort_by,
        sort_order=sort_order,
    )


class SearchEngine:
    """Search service bound to one database session and the cache."""

    def __init__(
        self,
        session: AsyncSession,
        cache: CacheService,
        settings: Settings | None = None,
        backend: RankingBackend | None = None,
    ):
        self.session = session
        self.cache = cache
        self.settings = settings or get_settings()
        self.backend = backend or backend_for(session.bind.dialect.name)

    # ========== Entry points ==========

    async def advanced_search(self, query: SearchQuery) -> dict[str, Any]:
        """Ranked search across one or all entity kinds, cached by query."""
        key = keys.advanced_search_key(
            query=query.text,
            search_type=query.search_type.value,
            page=query.pagination.page,
            limit=query.pagination.limit,
            sort_by=query.sort_by.value,
            sort_order=query.sort_order.value,
            filters=query.filters.key_fields(),
        )

        async def _compute() -> dict[str, Any]:
            result = await self.run(query)
            return result.to_response(query.search_type, query.pagination)

        return await self.cache.get_or_compute(key, _compute, self.cache.search_ttl)

    async def run(self, query: SearchQuery) -> SearchResult:
        """Execute a search against the store without caching."""
        kinds = KIND_ORDER if query.search_type is SearchType.ALL else (query.search_type,)
        result = SearchResult()
        active = query.filters.active_fields()
        for kind in kinds:
            # A kind that cannot evaluate every requested filter matches nothing
            if not active <= APPLICABLE_FILTERS[kind.value]:
                result.pages[kind] = KindPage(items=[], total=0, pagination=query.pagination)
                continue
            stmt = self._statement(kind, query.terms, query.filters)
            result.pages[kind] = await self._fetch_page(
                stmt, query.pagination, query.sort_by, query.sort_order, bool(query.terms)
            )

        logger.info(
            "Search executed",
            type=query.search_type.value,
            terms=len(query.terms),
            backend=self.backend.name,
            totals={k.value: p.total for k, p in result.pages.items()},
        )
        return result

    async def quick_search(self, query: str | None, limit: int | None = None) -> dict[str, Any]:
        """Autocomplete suggestions spread across courses, lectures and teachers.

        Queries shorter than the minimum length return no suggestions and
        touch neither the cache nor the store.
        """
        text = " ".join((query or "").split())
        if len(text) < self.settings.quick_search_min_length:
            return {"suggestions": []}

        limit = min(
            self.settings.search_max_limit,
            max(1, limit or self.settings.quick_search_default_limit),
        )
        terms = build_terms(
            tokenize(text, self.settings.search_min_token_length),
            self.settings.search_prefix_min_length,
        )
        if not terms:
            return {"suggestions": []}

        async def _compute() -> dict[str, Any]:
            per_kind = Pagination(page=1, limit=math.ceil(limit / len(QUICK_KINDS)))
            suggestions: list[dict[str, Any]] = []
            for kind in QUICK_KINDS:
                stmt = self._statement(kind, terms, SearchFilters())
                page = await self._fetch_page(
                    stmt, per_kind, SortBy.RELEVANCE, SortOrder.DESC, True, count=False
                )
                suggestions.extend(_suggestion(kind, item) for item in page.items)
            return {"suggestions": suggestions[:limit]}

        return await self.cache.get_or_compute(
            keys.quick_search_key(text, limit), _compute, self.cache.search_ttl
        )

    async def legacy_search(
        self,
        keyword: str | None,
        search_type: str | None = None,
        course_id: int | None = None,
        teacher_id: int | None = None,
    ) -> list[dict[str, Any]]:
        """Single-list keyword search scoped by course instance or teacher.

        Results from every searched kind are merged and ordered by score.
        """
        text = " ".join((keyword or "").split())
        terms = build_terms(
            tokenize(text, self.settings.search_min_token_length),
            self.settings.search_prefix_min_length,
        )
        if not terms and course_id is None and teacher_id is None:
            raise ValidationError("Search keyword or a course/teacher scope is required")

        if search_type in (None, "", SearchType.ALL.value):
            kinds = LEGACY_KINDS
            type_label = SearchType.ALL.value
        else:
            try:
                kind = SearchType(search_type)
            except ValueError as e:
                raise ValidationError(str(e)) from e
            if kind not in LEGACY_KINDS:
                raise ValidationError(f"Unsupported search type: {search_type}")
            kinds = (kind,)
            type_label = kind.value

        key = keys.legacy_search_key(text, type_label, course_id, teacher_id)

        async def _compute() -> list[dict[str, Any]]:
            pagination = Pagination(page=1, limit=LEGACY_LIMIT)
            merged: list[dict[str, Any]] = []
            for kind in kinds:
                stmt = self._statement(
                    kind,
                    terms,
                    SearchFilters(),
                    course_instance_id=course_id,
                    teacher_id=teacher_id,
                )
                page = await self._fetch_page(
                    stmt, pagination, SortBy.RELEVANCE, SortOrder.DESC, bool(terms), count=False
                )
                for item in page.items:
                    merged.append({**item, "type": kind.value, "score": item["relevance_score"]})
            merged.sort(key=lambda item: (-item["score"], item["type"], item["id"]))
            return merged[:LEGACY_LIMIT]

        return await self.cache.get_or_compute(key, _compute, self.cache.search_ttl)

    # ========== Paging ==========

    async def _fetch_page(
        self,
        stmt: KindStatement,
        pagination: Pagination,
        sort_by: SortBy,
        sort_order: SortOrder,
        has_text: bool,
        count: bool = True,
    ) -> KindPage:
        page_stmt: Select = (
            select(*stmt.columns)
            .select_from(stmt.from_clause)
            .where(*stmt.predicates)
            .order_by(*_ordering(stmt, sort_by, sort_order, has_text))
            .limit(pagination.limit)
            .offset(pagination.offset)
        )
        rows = (await self.session.execute(page_stmt)).all()
        items = [stmt.to_item(row) for row in rows]

        if count:
            count_stmt = (
                select(func.count())
                .select_from(stmt.from_clause)
                .where(*stmt.predicates)
            )
            total = (await self.session.execute(count_stmt)).scalar_one()
        else:
            total = pagination.offset + len(items)

        if items and "tags" in items[0]:
            await self._attach_tags(items)

        return KindPage(items=items, total=total, pagination=pagination)

    async def _attach_tags(self, items: list[dict[str, Any]]) -> None:
        ids = [item["id"] for item in items]
        rows = await self.session.execute(
            select(LectureTag.lecture_id, LectureTag.tag)
            .where(LectureTag.lecture_id.in_(ids))
            .order_by(LectureTag.tag)
        )
        by_lecture: dict[int, list[str]] = {}
        for lecture_id, tag in rows.all():
            by_lecture.setdefault(lecture_id, []).append(tag)
        for item in items:
            item["tags"] = by_lecture.get(item["id"], [])

    # ========== Per-kind statements ==========

    def _score(
        self,
        title: list[ColumnElement],
        body: list[ColumnElement],
        terms: list[Term],
    ) -> tuple[ColumnElement, list[ColumnElement]]:
        if not terms:
            return literal(0.0, type_=Float), []
        return (
            self.backend.score(title, body, terms),
            [self.backend.matches(title, body, terms)],
        )

    def _statement(
        self,
        kind: SearchType,
        terms: list[Term],
        filters: SearchFilters,
        course_instance_id: int | None = None,
        teacher_id: int | None = None,
    ) -> KindStatement:
        if kind is SearchType.TEACHERS:
            scoped = filters.for_teachers()
            if teacher_id is not None:
                scoped = TeacherFilters(course_code=scoped.course_code, teacher_id=teacher_id)
            return self._teachers(terms, scoped)
        if kind is SearchType.COURSES:
            scoped_course = filters.for_courses()
            return self._courses(
                terms,
                CourseFilters(
                    teacher_name=scoped_course.teacher_name,
                    course_code=scoped_course.course_code,
                    is_active=scoped_course.is_active,
                    course_instance_id=course_instance_id,
                    teacher_id=teacher_id,
                ),
            )
        if kind is SearchType.LECTURES:
            scoped_lecture = filters.for_lectures()
            return self._lectures(
                terms,
                LectureFilters(
                    course_code=scoped_lecture.course_code,
                    chapter_name=scoped_lecture.chapter_name,
                    teacher_name=scoped_lecture.teacher_name,
                    tags=scoped_lecture.tags,
                    course_instance_id=course_instance_id,
                    teacher_id=teacher_id,
                ),
            )
        if kind is SearchType.STUDENTS:
            return self._students(terms, filters.for_students())
        raise ValidationError(f"Unsupported search type: {kind.value}")

    def _teachers(self, terms: list[Term], filters: TeacherFilters) -> KindStatement:
        score, predicates = self._score([User.name], [User.email], terms)

        course_count = (
            select(func.count(CourseInstance.id))
            .where(CourseInstance.teacher_id == Teacher.id)
            .correlate(Teacher)
            .scalar_subquery()
        )
        student_count = (
            select(func.count(distinct(Enrollment.student_id)))
            .join(CourseInstance, Enrollment.course_instance_id == CourseInstance.id)
            .where(CourseInstance.teacher_id == Teacher.id)
            .correlate(Teacher)
            .scalar_subquery()
        )

        if filters.course_code:
            predicates.append(
                exists()
                .where(
                    CourseInstance.teacher_id == Teacher.id,
                    CourseInstance.course_template_id == CourseTemplate.id,
                    contains(CourseTemplate.course_code, filters.course_code),
                )
                .correlate(Teacher)
            )
        if filters.teacher_id is not None:
            predicates.append(Teacher.id == filters.teacher_id)

        score_col = score.label("relevance_score")

        def to_item(row: Any) -> dict[str, Any]:
            return {
                "id": row.id,
                "userId": row.user_id,
                "name": row.name,
                "email": row.email,
                "courseCount": row.course_count or 0,
                "studentCount": row.student_count or 0,
                "createdAt": _iso(row.created_at),
                "relevance_score": float(row.relevance_score or 0.0),
            }

        return KindStatement(
            columns=[
                Teacher.id,
                Teacher.user_id,
                User.name,
                User.email,
                User.created_at,
                course_count.label("course_count"),
                student_count.label("student_count"),
                score_col,
            ],
            from_clause=Teacher.__table__.join(User.__table__, Teacher.user_id == User.id),
            predicates=predicates,
            id_col=Teacher.id,
            name_col=User.name,
            date_col=User.created_at,
            score_col=score_col,
            to_item=to_item,
        )

    def _courses(self, terms: list[Term], filters: CourseFilters) -> KindStatement:
        teacher_user = User.__table__.alias("teacher_user")
        score, predicates = self._score(
            [CourseTemplate.name, CourseTemplate.course_code],
            [CourseTemplate.description],
            terms,
        )

        chapter_count = (
            select(func.count(Chapter.id))
            .where(Chapter.course_instance_id == CourseInstance.id)
            .correlate(CourseInstance)
            .scalar_subquery()
        )
        student_count = (
            select(func.count(Enrollment.id))
            .where(Enrollment.course_instance_id == CourseInstance.id)
            .correlate(CourseInstance)
            .scalar_subquery()
        )
        lecture_count = (
            select(func.count(Lecture.id))
            .join(Chapter, Lecture.chapter_id == Chapter.id)
            .where(Chapter.course_instance_id == CourseInstance.id)
            .correlate(CourseInstance)
            .scalar_subquery()
        )

        if filters.teacher_name:
            predicates.append(contains(teacher_user.c.name, filters.teacher_name))
        if filters.course_code:
            predicates.append(contains(CourseTemplate.course_code, filters.course_code))
        if filters.is_active is not None:
            predicates.append(CourseInstance.is_active == filters.is_active)
        if filters.course_instance_id is not None:
            predicates.append(CourseInstance.id == filters.course_instance_id)
        if filters.teacher_id is not None:
            predicates.append(CourseInstance.teacher_id == filters.teacher_id)

        score_col = score.label("relevance_score")

        def to_item(row: Any) -> dict[str, Any]:
            return {
                "id": row.id,
                "courseTemplateId": row.course_template_id,
                "courseCode": row.course_code,
                "name": row.name,
                "description": row.description,
                "instanceName": row.instance_name,
                "isActive": row.is_active,
                "teacherId": row.teacher_id,
                "teacherName": row.teacher_name,
                "chapterCount": row.chapter_count or 0,
                "lectureCount": row.lecture_count or 0,
                "studentCount": row.student_count or 0,
                "createdAt": _iso(row.created_at),
                "relevance_score": float(row.relevance_score or 0.0),
            }

        from_clause = (
            CourseInstance.__table__
            .join(CourseTemplate.__table__, CourseInstance.course_template_id == CourseTemplate.id)
            .join(Teacher.__table__, CourseInstance.teacher_id == Teacher.id)
            .join(teacher_user, Teacher.user_id == teacher_user.c.id)
        )
        return KindStatement(
            columns=[
                CourseInstance.id,
                CourseInstance.course_template_id,
                CourseTemplate.course_code,
                CourseTemplate.name,
                CourseTemplate.description,
                CourseInstance.instance_name,
                CourseInstance.is_active,
                CourseInstance.teacher_id,
                teacher_user.c.name.label("teacher_name"),
                CourseInstance.created_at,
                chapter_count.label("chapter_count"),
                lecture_count.label("lecture_count"),
                student_count.label("student_count"),
                score_col,
            ],
            from_clause=from_clause,
            predicates=predicates,
            id_col=CourseInstance.id,
            name_col=CourseTemplate.name,
            date_col=CourseInstance.created_at,
            score_col=score_col,
            to_item=to_item,
        )

    def _lectures(self, terms: list[Term], filters: LectureFilters) -> KindStatement:
        teacher_user = User.__table__.alias("teacher_user")
        tag_text = (
            select(self.backend.aggregate_text(LectureTag.tag))
            .where(LectureTag.lecture_id == Lecture.id)
            .correlate(Lecture)
            .scalar_subquery()
        )
        score, predicates = self._score(
            [Lecture.title],
            [Lecture.description, tag_text],
            terms,
        )

        if filters.course_code:
            predicates.append(contains(CourseTemplate.course_code, filters.course_code))
        if filters.chapter_name:
            predicates.append(contains(Chapter.name, filters.chapter_name))
        if filters.teacher_name:
            predicates.append(contains(teacher_user.c.name, filters.teacher_name))
        if filters.tags:
            predicates.append(
                exists()
                .where(
                    LectureTag.lecture_id == Lecture.id,
                    LectureTag.tag.in_(list(filters.tags)),
                )
                .correlate(Lecture)
            )
        if filters.course_instance_id is not None:
            predicates.append(Chapter.course_instance_id == filters.course_instance_id)
        if filters.teacher_id is not None:
            predicates.append(CourseInstance.teacher_id == filters.teacher_id)

        score_col = score.label("relevance_score")

        def to_item(row: Any) -> dict[str, Any]:
            return {
                "id": row.id,
                "title": row.title,
                "description": row.description,
                "youtubeUrl": row.youtube_url,
                "duration": row.duration,
                "lectureNumber": row.lecture_number,
                "chapterId": row.chapter_id,
                "chapterName": row.chapter_name,
                "courseInstanceId": row.course_instance_id,
                "courseCode": row.course_code,
                "courseName": row.course_name,
                "teacherName": row.teacher_name,
                "tags": [],
                "createdAt": _iso(row.created_at),
                "relevance_score": float(row.relevance_score or 0.0),
            }

        from_clause = (
            Lecture.__table__
            .join(Chapter.__table__, Lecture.chapter_id == Chapter.id)
            .join(CourseInstance.__table__, Chapter.course_instance_id == CourseInstance.id)
            .join(CourseTemplate.__table__, CourseInstance.course_template_id == CourseTemplate.id)
            .join(Teacher.__table__, CourseInstance.teacher_id == Teacher.id)
            .join(teacher_user, Teacher.user_id == teacher_user.c.id)
        )
        return KindStatement(
            columns=[
                Lecture.id,
                Lecture.title,
                Lecture.description,
                Lecture.youtube_url,
                Lecture.duration,
                Lecture.lecture_number,
                Lecture.chapter_id,
                Lecture.created_at,
                Chapter.name.label("chapter_name"),
                Chapter.course_instance_id,
                CourseTemplate.course_code,
                CourseTemplate.name.label("course_name"),
                teacher_user.c.name.label("teacher_name"),
                score_col,
            ],
            from_clause=from_clause,
            predicates=predicates,
            id_col=Lecture.id,
            name_col=Lecture.title,
            date_col=Lecture.created_at,
            score_col=score_col,
            to_item=to_item,
        )

    def _students(self, terms: list[Term], filters: StudentFilters) -> KindStatement:
        score, predicates = self._score([User.name], [User.email], terms)
        predicates.insert(0, User.role == "student")

        enrolled_count = (
            select(func.count(Enrollment.id))
            .where(Enrollment.student_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )

        if filters.course_code:
            predicates.append(
                exists()
                .where(
                    Enrollment.student_id == User.id,
                    Enrollment.course_instance_id == CourseInstance.id,
                    CourseInstance.course_template_id == CourseTemplate.id,
                    contains(CourseTemplate.course_code, filters.course_code),
                )
                .correlate(User)
            )

        score_col = score.label("relevance_score")

        def to_item(row: Any) -> dict[str, Any]:
            return {
                "id": row.id,
                "name": row.name,
                "email": row.email,
                "enrolledCourseCount": row.enrolled_count or 0,
                "createdAt": _iso(row.created_at),
                "relevance_score": float(row.relevance_score or 0.0),
            }

        return KindStatement(
            columns=[
                User.id,
                User.name,
                User.email,
                User.created_at,
                enrolled_count.label("enrolled_count"),
                score_col,
            ],
            from_clause=User.__table__,
            predicates=predicates,
            id_col=User.id,
            name_col=User.name,
            date_col=User.created_at,
            score_col=score_col,
            to_item=to_item,
        )


def _ordering(
    stmt: KindStatement,
    sort_by: SortBy,
    sort_order: SortOrder,
    has_text: bool,
) -> list[ColumnElement]:
    """ORDER BY terms; every ordering ends with id ascending."""
    if sort_by is SortBy.RELEVANCE:
        if has_text:
            return [stmt.score_col.desc(), stmt.id_col.asc()]
        # Without a free-text query relevance is meaningless; newest first
        return [stmt.date_col.desc(), stmt.id_col.asc()]

    column = stmt.name_col if sort_by is SortBy.NAME else stmt.date_col
    direction = column.asc() if sort_order is SortOrder.ASC else column.desc()
    return [direction, stmt.id_col.asc()]


def _suggestion(kind: SearchType, item: dict[str, Any]) -> dict[str, Any]:
    if kind is SearchType.COURSES:
        return {
            "type": "course",
            "title": item["name"],
            "subtitle": f"{item['courseCode']} - {item['teacherName']}",
            "id": item["id"],
        }
    if kind is SearchType.LECTURES:
        return {
            "type": "lecture",
            "title": item["title"],
            "subtitle": f"{item['courseCode']} - {item['chapterName']}",
            "id": item["id"],
        }
    return {
        "type": "teacher",
        "title": item["name"],
        "subtitle": f"{item['courseCount']} courses",
        "id": item["id"],
    }
