"""FastAPI app for the course catalog: search, compare, ask, and protected ingest.

Handlers stay thin; the work happens in ``catalog.pipelines`` and
``ai.query_parser``.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from http import HTTPStatus
from io import BytesIO
from typing import Any

from fastapi import Depends, FastAPI, File, HTTPException, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from ai.query_parser import parse_natural_language_query

from .config import settings
from .db import check_connection, engine, get_session
from .logging_config import setup_logging
from .parsers import FileType, detect_file_type
from .pipelines.ingest import import_courses, result_payload
from .pipelines.search import (
    CompareError,
    CourseQuery,
    SearchError,
    compare_courses,
    get_courses,
    search_courses,
)
from .security import require_api_token

logger = logging.getLogger(__name__)

NO_FILTERS_DETECTED = "No specific filters detected - showing all courses"
NO_RESULTS_SUGGESTIONS = [
    "Try removing some filters (e.g., fee limits)",
    "Check spelling of department names",
    "Try different keywords (e.g., \"hybrid\" instead of \"mixed\")",
    "Browse all courses with GET /api/courses",
]
ASK_EXAMPLE = {"question": "Find UG computer science courses under 50000"}


# Pydantic response models
class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    message: str
    version: str
    timestamp: str


class ErrorResponse(BaseModel):
    """Error response."""
    success: bool = False
    error: str
    detail: str | None = None
    example: dict | None = None


class CourseDTO(BaseModel):
    """Course data transfer object."""
    model_config = ConfigDict(from_attributes=True)

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


class PaginationDTO(BaseModel):
    """Pagination block of a listing."""
    model_config = ConfigDict(from_attributes=True)

    current_page: int
    page_size: int
    total_courses: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class CoursesResponse(BaseModel):
    """Course listing response."""
    success: bool
    data: list[CourseDTO]
    pagination: PaginationDTO
    filters: dict[str, Any]


class ComparisonStatsDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    requested: int
    found: int
    not_found: list[str]


class ComparisonSummaryDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    departments: list[str]
    levels: list[str]
    delivery_modes: list[str]
    avg_rating: float
    avg_fee: float


class ComparisonDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    courses: list[CourseDTO]
    comparison: ComparisonStatsDTO
    summary: ComparisonSummaryDTO


class CompareResponse(BaseModel):
    """Course comparison response."""
    success: bool
    data: ComparisonDTO


class AskRequest(BaseModel):
    """Natural-language search request."""
    question: str | None = Field(default=None, examples=[ASK_EXAMPLE["question"]])


class AskQueryDTO(BaseModel):
    """How the question was understood."""
    original: str
    understood: list[str]
    filters_applied: int
    filters: dict[str, Any]


class AskResultsDTO(BaseModel):
    count: int
    courses: list[CourseDTO]


class AskResponse(BaseModel):
    """Natural-language search response."""
    success: bool
    query: AskQueryDTO
    results: AskResultsDTO
    message: str
    suggestions: list[str] | None = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    logger.info("Application starting up")

    if settings.db.check_on_startup and not await check_connection():
        logger.warning("Database unreachable at startup; requests will fail until it is available")

    yield

    # Shutdown
    logger.info("Application shutting down")
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Course catalog search, comparison, natural-language queries, and CSV ingestion",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, error: str, detail: str | None, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, **extra).model_dump(exclude_none=True),
    )


def _error_code(status_code: int) -> str:
    """snake_case reason phrase, e.g. 404 -> "not_found"."""
    try:
        return HTTPStatus(status_code).phrase.lower().replace(" ", "_")
    except ValueError:
        return "http_error"


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request, exc: StarletteHTTPException):
    """Render HTTP errors in the common error shape."""
    response = _error(exc.status_code, _error_code(exc.status_code), str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request, exc: RequestValidationError):
    """Handle malformed query parameters and request bodies."""
    problems = [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    ]
    logger.warning(f"Request validation failed: {problems}")
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error", "; ".join(problems))


@app.exception_handler(Exception)
async def unhandled_error_handler(request, exc: Exception):
    """Last resort: unexpected errors still answer in JSON."""
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_server_error", "Internal server error")


@app.exception_handler(CompareError)
async def compare_error_handler(request, exc: CompareError):
    """Handle out-of-bounds comparison requests."""
    logger.warning(f"Compare error: {exc}")
    return _error(status.HTTP_400_BAD_REQUEST, "compare_error", str(exc))


@app.exception_handler(SearchError)
async def search_error_handler(request, exc: SearchError):
    """Handle filters the catalog cannot apply."""
    logger.error(f"Search error: {exc}")
    return _error(status.HTTP_400_BAD_REQUEST, "search_error", str(exc))


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        message=f"{settings.app_name} is running",
        version=settings.version,
        timestamp=_now(),
    )


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "courses": "/api/courses",
            "compare": "/api/compare?ids=CS101,CS102",
            "ask": "/api/ask",
            "ingest": "/api/ingest",
            "docs": "/docs",
        },
    }


@app.get("/api/courses", response_model=CoursesResponse)
async def list_courses(
    page: int = Query(default=1),
    limit: int | None = Query(default=None),
    department: str | None = None,
    level: str | None = None,
    delivery_mode: str | None = Query(default=None, alias="deliveryMode"),
    min_rating: float | None = Query(default=None, alias="minRating"),
    max_fee: float | None = Query(default=None, alias="maxFee"),
    search: str | None = None,
    session: AsyncSession = Depends(get_session),
) -> CoursesResponse:
    """List courses with filters and pagination.

    Out-of-range ``page`` and ``limit`` values are clamped rather than rejected.
    """
    try:
        result = await get_courses(
            session,
            CourseQuery(
                page=page,
                limit=limit,
                department=department,
                level=level,
                delivery_mode=delivery_mode,
                min_rating=min_rating,
                max_fee=max_fee,
                search=search,
            ),
        )
    except Exception as e:
        logger.error(f"Error fetching courses: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error fetching courses: {e}",
        )

    return CoursesResponse(
        success=True,
        data=[CourseDTO.model_validate(c) for c in result.courses],
        pagination=PaginationDTO.model_validate(result.pagination),
        filters=result.filters,
    )


@app.get("/api/compare", response_model=CompareResponse)
async def compare(
    ids: str | None = None,
    session: AsyncSession = Depends(get_session),
) -> CompareResponse:
    """Compare courses given as ``?ids=CS101,CS102,CS103``."""
    if not ids or not ids.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Course IDs are required. Use ?ids=CS101,CS102,CS103",
        )

    course_ids = [i.strip() for i in ids.split(",") if i.strip()]

    try:
        result = await compare_courses(session, course_ids)
    except CompareError:
        raise
    except Exception as e:
        logger.error(f"Error comparing courses: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error comparing courses: {e}",
        )

    return CompareResponse(success=True, data=ComparisonDTO.model_validate(result))


@app.post("/api/ask", response_model=AskResponse, response_model_exclude_none=True)
async def ask(
    request: AskRequest | None = None,
    session: AsyncSession = Depends(get_session),
):
    """Answer a natural-language question with matching courses.

    Body: ``{"question": "Find UG computer science courses under 50000"}``
    """
    question = request.question if request else None
    if not question or not question.strip():
        return _error(
            status.HTTP_400_BAD_REQUEST,
            "bad_request",
            "Question is required",
            example=ASK_EXAMPLE,
        )

    logger.info(f"Ask query: {question!r}")

    try:
        parsed = await parse_natural_language_query(session, question)
        courses = await search_courses(session, parsed.filters)
    except SearchError:
        raise
    except Exception as e:
        logger.error(f"Error processing natural language query: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error processing natural language query: {e}",
        )

    if courses:
        plural = "" if len(courses) == 1 else "s"
        message = f"Found {len(courses)} course{plural} matching your query"
        suggestions = None
    else:
        message = "No matching courses found"
        suggestions = NO_RESULTS_SUGGESTIONS

    return AskResponse(
        success=True,
        query=AskQueryDTO(
            original=parsed.original_question,
            understood=parsed.detected_conditions or [NO_FILTERS_DETECTED],
            filters_applied=len(parsed.filters),
            filters=parsed.filters,
        ),
        results=AskResultsDTO(
            count=len(courses),
            courses=[CourseDTO.model_validate(c) for c in courses],
        ),
        message=message,
        suggestions=suggestions,
    )


@app.post("/api/ingest", dependencies=[Depends(require_api_token)])
async def ingest(
    csv_file: UploadFile | None = File(default=None, alias="csvFile", description="Course catalog (CSV or Excel)"),
    session: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Import a course catalog file. Requires ``Authorization: Bearer <token>``.

    Returns 200 when the import succeeds and 400 when parsing, validation,
    or the database step fails.
    """
    if csv_file is None or not csv_file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='No CSV file provided. Please upload a file with key "csvFile"',
        )

    if detect_file_type(csv_file.filename) == FileType.UNKNOWN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV or Excel files are allowed",
        )

    max_bytes = settings.ingest.max_upload_bytes
    too_large = HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"File size too large. Maximum size is {max_bytes / (1024 * 1024):g}MB.",
    )
    if csv_file.size is not None and csv_file.size > max_bytes:
        raise too_large

    # One byte past the limit is enough to tell the file is too large
    try:
        content = await csv_file.read(max_bytes + 1)
    finally:
        await csv_file.close()

    if len(content) > max_bytes:
        raise too_large

    logger.info(f"Protected ingest: {csv_file.filename} ({len(content)} bytes)")

    result = await import_courses(session, BytesIO(content), csv_file.filename)

    return JSONResponse(
        status_code=status.HTTP_200_OK if result.success else status.HTTP_400_BAD_REQUEST,
        content={**result_payload(result), "ingest_type": "protected", "timestamp": _now()},
    )
