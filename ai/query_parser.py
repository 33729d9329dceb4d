"""Natural-language course questions to structured catalog filters.

Runs an ordered set of independent keyword and regex checks against a fixed
vocabulary (level, delivery mode, fee, rating, credits, year) and the
department list read from the database, with rapidfuzz as a typo fallback
for department names.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Iterable, Sequence

from rapidfuzz import fuzz, process
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog import models
from catalog.config import settings
from catalog.pipelines.normalization import normalize_text, normalize_whitespace
from config.department_aliases import DEPARTMENT_ALIASES, VOCABULARY_VERSION

logger = logging.getLogger(__name__)


# Level keywords. UG is checked before PG because "graduate" is a PG keyword.
UG_PATTERN = re.compile(r"\b(?:ug|undergrad(?:uate)?s?|under[\s-]graduates?)\b")
PG_PATTERN = re.compile(r"\b(?:pg|postgrad(?:uate)?s?|post[\s-]graduates?|graduates?|masters?)\b")

ONLINE_PATTERN = re.compile(r"\b(?:online|remote(?:ly)?|virtual)\b")
OFFLINE_PATTERN = re.compile(r"\b(?:offline|in[\s-]person|on[\s-]campus|campus|classroom)\b")
HYBRID_PATTERN = re.compile(r"\b(?:hybrid|blended)\b")

RATING_PATTERNS = (
    re.compile(
        r"\brat(?:ings?|ed)\s*(?:of\s*)?(?:above|over|greater than|more than|at least|>=?)?\s*"
        r"(\d(?:\.\d+)?)(?!\d|,\d)(?:\s*\+?\s*stars?\b)?"
    ),
    re.compile(r"(?<![\d.])(\d(?:\.\d+)?)\s*\+?\s*stars?\b"),
)

CREDITS_PATTERN = re.compile(
    r"\b(\d{1,2})\s*(?:credits?|cr)\b"
    r"|\bcredits?\s*(?:above|over|more than|at least|of)?\s*(\d{1,2})\b"
)

_AMOUNT = (
    r"(?:₹|rs\.?|inr)?\s*"
    r"(\d{1,3}(?:,\d{2,3})+|\d+(?:\.\d+)?)"
    r"\s*(k|lakhs?|lacs?)?\b"
    r"(?!\s*(?:weeks?|months?|years?|credits?|stars?|%))"
)
FEE_MAX_PATTERN = re.compile(
    r"\b(?:under|below|less than|cheaper than|max(?:imum)?|up\s*to|within|budget(?:\s+of)?)\s*" + _AMOUNT
)
FEE_MIN_PATTERN = re.compile(
    r"\b(?:above|over|more than|greater than|min(?:imum)?|at least|starting(?:\s+(?:from|at))?)\s*" + _AMOUNT
)

YEAR_PATTERN = re.compile(r"\b(20[0-2]\d|2030)\b")

_AMOUNT_MULTIPLIERS = {"k": 1_000, "lakh": 100_000, "lakhs": 100_000, "lac": 100_000, "lacs": 100_000}

MAX_RATING = 5.0
MIN_FUZZY_NAME_LENGTH = 5


@dataclass(frozen=True)
class DepartmentRef:
    """Department id and name as read from the catalog."""
    id: int
    name: str


@dataclass
class DepartmentAlias:
    """Alias vocabulary entry."""
    department: str
    aliases: list[str] = field(default_factory=list)


@dataclass
class ParsedQuery:
    """Filters extracted from a question, with a readable trace."""
    filters: dict[str, Any]
    detected_conditions: list[str]
    original_question: str
    vocabulary_version: str = VOCABULARY_VERSION


def _mask(text: str, match: re.Match) -> str:
    """Blank out a match, keeping offsets stable for later patterns."""
    start, end = match.span()
    return text[:start] + " " * (end - start) + text[end:]


def _to_amount(digits: str, suffix: str | None) -> int | float:
    value = float(digits.replace(",", ""))
    if suffix:
        value *= _AMOUNT_MULTIPLIERS[suffix]
    return int(value) if value.is_integer() else value


def _fmt(value: int | float) -> str:
    return f"{value:g}" if isinstance(value, float) else str(value)


class QueryParser:
    """Keyword/regex query parser with a department alias vocabulary.

    Supports:
    - Level and delivery mode keywords
    - Fee bounds with thousand separators, currency markers and k/lakh suffixes
    - Minimum rating and credits
    - Year offered
    - Department names, aliases, and fuzzy names via rapidfuzz
    """

    def __init__(
        self,
        aliases: list[DepartmentAlias] | None = None,
        *,
        fuzzy: bool | None = None,
        fuzzy_threshold: int | None = None,
    ) -> None:
        """Initialize the parser.

        Args:
            aliases: Alias vocabulary. If None, loads the default vocabulary.
            fuzzy: Enable fuzzy department matching (config default if None)
            fuzzy_threshold: Rapidfuzz ratio cutoff (config default if None)
        """
        self.aliases = aliases if aliases is not None else self._load_default_aliases()
        self.fuzzy = settings.parser.fuzzy_departments if fuzzy is None else fuzzy
        self.fuzzy_threshold = settings.parser.fuzzy_threshold if fuzzy_threshold is None else fuzzy_threshold

        # (pattern, canonical department, case-sensitive)
        self._alias_patterns: list[tuple[re.Pattern, str, bool]] = []
        self._build_indices()

        logger.info(f"Loaded {len(self.aliases)} departments with {len(self._alias_patterns)} aliases")

    @staticmethod
    def _load_default_aliases() -> list[DepartmentAlias]:
        return [DepartmentAlias(entry["department"], list(entry["aliases"])) for entry in DEPARTMENT_ALIASES]

    def _build_indices(self) -> None:
        """Compile alias patterns, longest alias first."""
        entries = [(alias, entry.department) for entry in self.aliases for alias in entry.aliases]
        entries.sort(key=lambda pair: len(pair[0]), reverse=True)

        for alias, canonical in entries:
            case_sensitive = alias.isupper()
            term = alias if case_sensitive else alias.lower()
            pattern = re.compile(r"\b" + re.escape(term) + r"\b")
            self._alias_patterns.append((pattern, canonical, case_sensitive))

    def parse(self, question: str, departments: Sequence[DepartmentRef] = ()) -> ParsedQuery:
        """Extract catalog filters from a question.

        Args:
            question: Free-text question
            departments: Departments present in the catalog

        Returns:
            ParsedQuery; an empty filter mapping means nothing was recognised
        """
        text = normalize_text(question)
        # Capitalisation kept for acronym aliases
        cased = normalize_whitespace(question or "")

        filters: dict[str, Any] = {}
        conditions: list[str] = []

        level = self._detect_level(text)
        if level == models.CourseLevel.UG:
            filters["level"] = level.value
            conditions.append("Level: Undergraduate (UG)")
        elif level == models.CourseLevel.PG:
            filters["level"] = level.value
            conditions.append("Level: Postgraduate (PG)")

        mode = self._detect_delivery_mode(text)
        if mode is not None:
            filters["delivery_mode"] = mode.value
            conditions.append(f"Mode: {mode.value.capitalize()}")

        # Rating and credits consume their numbers before fee and year look
        masked = text
        rating, masked = self._detect_rating(masked)
        credits, masked = self._detect_credits(masked)
        fee, masked = self._detect_fee(masked)
        year = self._detect_year(masked)

        if fee:
            filters["tuition_fee"] = fee
            if "lte" in fee:
                conditions.append(f"Fee: ≤ ₹{fee['lte']:,}")
            if "gte" in fee:
                conditions.append(f"Fee: ≥ ₹{fee['gte']:,}")

        if rating is not None:
            filters["rating"] = {"gte": rating}
            conditions.append(f"Rating: ≥ {_fmt(rating)}⭐")

        if credits is not None:
            filters["credits"] = {"gte": credits}
            conditions.append(f"Credits: ≥ {credits}")

        if year is not None:
            filters["year_offered"] = year
            conditions.append(f"Year: {year}")

        department = self._detect_department(text, cased, departments)
        if department is not None:
            filters["department_id"] = department.id
            conditions.append(f"Department: {department.name}")

        logger.debug(f"Parsed {len(filters)} filters from question of length {len(text)}")
        return ParsedQuery(
            filters=filters,
            detected_conditions=conditions,
            original_question=question,
        )

    @staticmethod
    def _detect_level(text: str) -> models.CourseLevel | None:
        if UG_PATTERN.search(text):
            return models.CourseLevel.UG
        if PG_PATTERN.search(text):
            return models.CourseLevel.PG
        return None

    @staticmethod
    def _detect_delivery_mode(text: str) -> models.DeliveryMode | None:
        if ONLINE_PATTERN.search(text):
            return models.DeliveryMode.ONLINE
        if OFFLINE_PATTERN.search(text):
            return models.DeliveryMode.OFFLINE
        if HYBRID_PATTERN.search(text):
            return models.DeliveryMode.HYBRID
        return None

    @staticmethod
    def _detect_rating(text: str) -> tuple[float | None, str]:
        for pattern in RATING_PATTERNS:
            match = pattern.search(text)
            if match:
                value = float(match.group(1))
                text = _mask(text, match)
                if value <= MAX_RATING:
                    return value, text
        return None, text

    @staticmethod
    def _detect_credits(text: str) -> tuple[int | None, str]:
        match = CREDITS_PATTERN.search(text)
        if not match:
            return None, text
        return int(match.group(1) or match.group(2)), _mask(text, match)

    @staticmethod
    def _detect_fee(text: str) -> tuple[dict[str, int | float], str]:
        fee: dict[str, int | float] = {}

        match = FEE_MAX_PATTERN.search(text)
        if match:
            fee["lte"] = _to_amount(match.group(1), match.group(2))
            text = _mask(text, match)

        match = FEE_MIN_PATTERN.search(text)
        if match:
            fee["gte"] = _to_amount(match.group(1), match.group(2))
            text = _mask(text, match)

        return fee, text

    @staticmethod
    def _detect_year(text: str) -> int | None:
        match = YEAR_PATTERN.search(text)
        return int(match.group(1)) if match else None

    def _detect_department(
        self,
        text: str,
        cased: str,
        departments: Sequence[DepartmentRef],
    ) -> DepartmentRef | None:
        """First match wins: full name, then alias, then fuzzy name."""
        if not departments:
            return None

        by_name = {normalize_text(d.name): d for d in departments}
        ordered = sorted(by_name.items(), key=lambda item: len(item[0]), reverse=True)

        for name, dept in ordered:
            if re.search(r"\b" + re.escape(name) + r"\b", text):
                return dept

        for pattern, canonical, case_sensitive in self._alias_patterns:
            dept = by_name.get(normalize_text(canonical))
            if dept is None:
                continue
            if pattern.search(cased if case_sensitive else text):
                return dept

        if self.fuzzy:
            return self._fuzzy_department(text, ordered)

        return None

    def _fuzzy_department(
        self,
        text: str,
        ordered: Iterable[tuple[str, DepartmentRef]],
    ) -> DepartmentRef | None:
        words = re.findall(r"[a-z&]+", text)
        best: tuple[float, DepartmentRef] | None = None

        for name, dept in ordered:
            if len(name) < MIN_FUZZY_NAME_LENGTH:
                continue
            size = len(name.split())
            ngrams = [" ".join(words[i:i + size]) for i in range(len(words) - size + 1)]
            if not ngrams:
                continue
            match = process.extractOne(name, ngrams, scorer=fuzz.ratio, score_cutoff=self.fuzzy_threshold)
            if match and (best is None or match[1] > best[0]):
                best = (match[1], dept)

        if best:
            logger.info(f"Fuzzy department match: {best[1].name} (score {best[0]:.0f})")
            return best[1]
        return None


@lru_cache(maxsize=1)
def get_query_parser() -> QueryParser:
    """Cached parser built from the default vocabulary."""
    return QueryParser()


async def load_departments(session: AsyncSession) -> list[DepartmentRef]:
    """Read department ids and names from the catalog."""
    result = await session.execute(
        select(models.Department.id, models.Department.name).order_by(models.Department.name)
    )
    return [DepartmentRef(id=row.id, name=row.name) for row in result]


async def parse_natural_language_query(
    session: AsyncSession,
    question: str,
    *,
    parser: QueryParser | None = None,
) -> ParsedQuery:
    """Parse a question against the departments currently in the catalog."""
    departments = await load_departments(session)
    return (parser or get_query_parser()).parse(question, departments)
