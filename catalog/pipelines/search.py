"""Catalog search pipeline: filtered listing, comparison, and parsed-filter search.

All queries eager-load the department so results can be serialized outside
the session.
"""
from __future__ import annotations

import logging
import math
import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Sequence

from sqlalchemy import ColumnElement, Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from catalog import models
from catalog.config import settings

logger = logging.getLogger(__name__)


# Filter keys accepted by search_courses, as produced by the query parser
FILTER_COLUMNS = {
    "level": models.Course.level,
    "delivery_mode": models.Course.delivery_mode,
    "tuition_fee": models.Course.tuition_fee,
    "rating": models.Course.rating,
    "credits": models.Course.credits,
    "duration_weeks": models.Course.duration_weeks,
    "year_offered": models.Course.year_offered,
    "department_id": models.Course.department_id,
}

OPERATORS: dict[str, Callable[[Any, Any], ColumnElement[bool]]] = {
    "eq": operator.eq,
    "lt": operator.lt,
    "lte": operator.le,
    "gt": operator.gt,
    "gte": operator.ge,
}


class SearchError(Exception):
    """Raised when a filter mapping cannot be applied."""
    pass


class CompareError(Exception):
    """Raised when a comparison request is out of bounds."""
    pass


@dataclass
class CourseRecord:
    """Flat course shape returned by every endpoint."""
    course_id: str
    course_name: str
    department: str
    level: str
    delivery_mode: str
    credits: int
    duration_weeks: int
    rating: float
    tuition_fee_inr: float
    year_offered: int

    @classmethod
    def from_model(cls, course: models.Course) -> CourseRecord:
        return cls(
            course_id=course.id,
            course_name=course.name,
            department=course.department.name,
            level=course.level,
            delivery_mode=course.delivery_mode,
            credits=course.credits,
            duration_weeks=course.duration_weeks,
            rating=float(course.rating),
            tuition_fee_inr=float(course.tuition_fee),
            year_offered=course.year_offered,
        )


@dataclass
class CourseQuery:
    """Listing filters and pagination."""
    page: int = 1
    limit: int | None = None
    department: str | None = None
    level: str | None = None
    delivery_mode: str | None = None
    min_rating: float | None = None
    max_fee: float | None = None
    search: str | None = None


@dataclass
class Pagination:
    current_page: int
    page_size: int
    total_courses: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


@dataclass
class CoursePage:
    """One page of listing results."""
    courses: list[CourseRecord]
    pagination: Pagination
    filters: dict[str, Any]


@dataclass
class ComparisonStats:
    requested: int
    found: int
    not_found: list[str] = field(default_factory=list)


@dataclass
class ComparisonSummary:
    departments: list[str]
    levels: list[str]
    delivery_modes: list[str]
    avg_rating: float
    avg_fee: float


@dataclass
class Comparison:
    """Side-by-side view of several courses."""
    courses: list[CourseRecord]
    comparison: ComparisonStats
    summary: ComparisonSummary


def _base_query() -> Select:
    return (
        select(models.Course)
        .join(models.Course.department)
        .options(contains_eager(models.Course.department))
    )


def _contains(value: str) -> str:
    """ILIKE pattern for a literal substring."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _distinct(values: Iterable[str]) -> list[str]:
    """Unique values in first-seen order."""
    return list(dict.fromkeys(values))


def build_conditions(filters: Mapping[str, Any]) -> list[ColumnElement[bool]]:
    """Translate a filter mapping into SQL conditions.

    Values are either exact matches or mappings of operator to bound,
    e.g. ``{"rating": {"gte": 4.5}, "level": "UG"}``.

    Raises:
        SearchError: On an unknown filter key or operator
    """
    conditions: list[ColumnElement[bool]] = []

    for key, constraint in filters.items():
        column = FILTER_COLUMNS.get(key)
        if column is None:
            raise SearchError(f"Unknown filter: {key}")

        if isinstance(constraint, Mapping):
            for op_name, bound in constraint.items():
                op = OPERATORS.get(op_name)
                if op is None:
                    raise SearchError(f"Unknown operator for {key}: {op_name}")
                conditions.append(op(column, bound))
        else:
            conditions.append(column == constraint)

    return conditions


def _listing_conditions(query: CourseQuery) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []

    if query.department:
        conditions.append(models.Department.name.ilike(_contains(query.department), escape="\\"))
    if query.level:
        conditions.append(models.Course.level == query.level.upper())
    if query.delivery_mode:
        conditions.append(models.Course.delivery_mode == query.delivery_mode.lower())
    if query.min_rating is not None:
        conditions.append(models.Course.rating >= query.min_rating)
    if query.max_fee is not None:
        conditions.append(models.Course.tuition_fee <= query.max_fee)
    if query.search:
        pattern = _contains(query.search)
        conditions.append(or_(
            models.Course.name.ilike(pattern, escape="\\"),
            models.Course.id.ilike(pattern, escape="\\"),
        ))

    return conditions


async def get_courses(session: AsyncSession, query: CourseQuery) -> CoursePage:
    """List courses with filters and pagination.

    Ordered by rating (best first), then name.

    Args:
        session: Database session
        query: Filters and page request

    Returns:
        CoursePage with the requested page, pagination info, and applied filters
    """
    conditions = _listing_conditions(query)

    page = max(1, query.page)
    limit = query.limit if query.limit is not None else settings.catalog.default_page_size
    page_size = max(1, min(settings.catalog.max_page_size, limit))
    skip = (page - 1) * page_size

    count_query = (
        select(func.count())
        .select_from(models.Course)
        .join(models.Course.department)
        .where(*conditions)
    )
    total_courses = await session.scalar(count_query) or 0
    total_pages = math.ceil(total_courses / page_size)

    result = await session.execute(
        _base_query()
        .where(*conditions)
        .order_by(models.Course.rating.desc(), models.Course.name.asc())
        .offset(skip)
        .limit(page_size)
    )
    courses = [CourseRecord.from_model(c) for c in result.scalars().all()]

    logger.info(f"Listed {len(courses)} of {total_courses} courses (page {page})")

    return CoursePage(
        courses=courses,
        pagination=Pagination(
            current_page=page,
            page_size=page_size,
            total_courses=total_courses,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
        filters={
            "department": query.department or None,
            "level": query.level or None,
            "delivery_mode": query.delivery_mode or None,
            "min_rating": query.min_rating,
            "max_fee": query.max_fee,
            "search": query.search or None,
        },
    )


async def compare_courses(session: AsyncSession, course_ids: Sequence[str]) -> Comparison:
    """Compare courses by id.

    Blank ids are dropped and repeats collapsed, keeping request order.

    Raises:
        CompareError: If no ids remain or more than the configured maximum
    """
    ids = _distinct(i.strip() for i in course_ids if i and i.strip())
    max_compare = settings.catalog.max_compare

    if not ids:
        raise CompareError("At least one course ID is required")
    if len(ids) > max_compare:
        raise CompareError(f"Maximum {max_compare} courses can be compared at once")

    result = await session.execute(
        _base_query()
        .where(models.Course.id.in_(ids))
        .order_by(models.Course.name.asc())
    )
    courses = [CourseRecord.from_model(c) for c in result.scalars().all()]

    found_ids = {c.course_id for c in courses}
    not_found = [i for i in ids if i not in found_ids]
    if not_found:
        logger.info(f"Compare: {len(not_found)} course ids not found")

    count = len(courses)
    return Comparison(
        courses=courses,
        comparison=ComparisonStats(requested=len(ids), found=count, not_found=not_found),
        summary=ComparisonSummary(
            departments=_distinct(c.department for c in courses),
            levels=_distinct(c.level for c in courses),
            delivery_modes=_distinct(c.delivery_mode for c in courses),
            avg_rating=round(sum(c.rating for c in courses) / count, 2) if count else 0,
            avg_fee=round(sum(c.tuition_fee_inr for c in courses) / count, 2) if count else 0,
        ),
    )


async def search_courses(session: AsyncSession, filters: Mapping[str, Any]) -> list[CourseRecord]:
    """Search courses with a parsed filter mapping.

    Ordered by rating (best first), then fee (cheapest first).

    Raises:
        SearchError: If the mapping uses an unknown key or operator
    """
    conditions = build_conditions(filters)

    result = await session.execute(
        _base_query()
        .where(*conditions)
        .order_by(models.Course.rating.desc(), models.Course.tuition_fee.asc())
    )
    courses = [CourseRecord.from_model(c) for c in result.scalars().all()]

    logger.info(f"Search with {len(filters)} filters matched {len(courses)} courses")
    return courses
