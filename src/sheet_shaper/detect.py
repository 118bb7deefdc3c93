"""Column classification — ranked date-column candidates and writer hints."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import date, datetime
from numbers import Real
from typing import Any

from sheet_shaper import DEFAULT_DATE_ORDER
from sheet_shaper.dates import is_plausible_serial, parse_month_year
from sheet_shaper.models import ColumnClassification, DateColumnCandidate, Grid
from sheet_shaper.utils import header_name, is_blank

logger = logging.getLogger(__name__)

DEFAULT_MAX_SAMPLES = 10
MIN_CONFIDENCE = 0.7

MULTI_WORD_CONFIDENCE = 0.95
KEYWORD_CONFIDENCE = 0.8
HIGH_DATA_CONFIDENCE = 0.9
PURE_DATA_CONFIDENCE = 0.7

MULTI_WORD_PATTERNS: tuple[str, ...] = (
    "service date",
    "submission date",
    "created date",
    "visit date",
    "appointment date",
    "due date",
    "expiry date",
    "start date",
    "end date",
    "birth date",
    "date of birth",
    "modified date",
    "updated date",
    "remittance date",
)

# Anywhere in the header.
ANYWHERE_DATE_KEYWORDS: tuple[str, ...] = ("time", "submission", "created", "timestamp")

# A header mentioning any of these is never a date column.
EXCLUDED_KEYWORDS: tuple[str, ...] = (
    "qty", "quantity", "amount", "amt", "code", "id", "number", "no",
    "name", "description", "type", "status", "category", "class",
    "rate", "price", "cost", "fee", "total", "sum", "count",
)
# Short keywords only count as whole words ("no" must not match "notes");
# camel-case humps are word breaks, so "InvoiceNo" and "TimeID" are excluded.
_WHOLE_WORD_EXCLUSIONS = {"qty", "amt", "id", "no", "sum"}

_EXCLUDED_RES = [
    re.compile(rf"(?<![a-z]){kw}(?![a-z])" if kw in _WHOLE_WORD_EXCLUSIONS else re.escape(kw))
    for kw in EXCLUDED_KEYWORDS
]
_DATE_WORD_RE = re.compile(r"(?<![a-z])dates?(?![a-z])|date$")
# lower->upper ("TimeID") and end of an upper run before a word ("IDNumber")
_CAMEL_BREAK_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")

ID_HEADER_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"id$", r"^id", r"no$", r"number$", r"code$",
        r"^bill", r"^file", r"^card", r"^claim", r"^ref",
        r"^account", r"^customer", r"^policy", r"^order", r"^invoice",
    )
)
AMOUNT_HEADER_KEYWORDS: tuple[str, ...] = (
    "amount", "amt", "price", "cost", "fee", "total", "sum", "received", "recieved",
)
DATE_HEADER_KEYWORDS: tuple[str, ...] = ("date", "time", "submission")

_DATE_SHAPE_RE = re.compile(
    r"(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})|(\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2})"
)
_CURRENCY_RE = re.compile(r"^[$€£¥]?\s*\d+(\.\d+)?$")
_GROUPED_NUMBER_RE = re.compile(r"^-?\s*\d{1,3}(,\d{3})*(\.\d+)?$")
CONTENT_SHARE = 0.6


# ── Date-column detection ───────────────────────────────────────


def _normalise(header: str) -> str:
    """Lower-case *header*, treating camel-case humps as word breaks.

    ``"SubmissionID"`` -> ``"submission id"``, ``"CreatedById"`` ->
    ``"created by id"``, ``"ServiceDate"`` -> ``"service date"``.
    """
    spaced = _CAMEL_BREAK_RE.sub(" ", header.strip())
    return re.sub(r"\s+", " ", spaced.lower())


def _is_excluded(header: str) -> bool:
    return any(rx.search(header) for rx in _EXCLUDED_RES)


def _keyword_confidence(header: str) -> tuple[float, str]:
    for pattern in MULTI_WORD_PATTERNS:
        if pattern in header:
            return MULTI_WORD_CONFIDENCE, f'Multi-word pattern: "{pattern}"'
    if _DATE_WORD_RE.search(header):
        return KEYWORD_CONFIDENCE, 'Keyword: "date"'
    for keyword in ANYWHERE_DATE_KEYWORDS:
        if keyword in header:
            return KEYWORD_CONFIDENCE, f'Keyword: "{keyword}"'
    return 0.0, ""


def _sample_parse_rate(
    sample_rows: Sequence[Sequence[Any] | None],
    index: int,
    max_samples: int,
    assumed_order: str,
) -> tuple[int, int]:
    """Return ``(parsed, sampled)`` over the first non-blank cells of a column."""
    parsed = sampled = 0
    for row in sample_rows:
        if sampled >= max_samples:
            break
        if not row or index >= len(row) or is_blank(row[index]):
            continue
        sampled += 1
        if parse_month_year(row[index], assumed_order) is not None:
            parsed += 1
    return parsed, sampled


def detect_date_columns(
    header_row: Sequence[Any],
    sample_rows: Sequence[Sequence[Any] | None] = (),
    max_samples: int = DEFAULT_MAX_SAMPLES,
    assumed_order: str = DEFAULT_DATE_ORDER,
) -> list[DateColumnCandidate]:
    """Rank the columns that most likely hold dates.

    Header keywords give a first guess; sampled cell content then confirms,
    boosts or dampens it. Columns whose header names a quantity, amount, id
    and the like are excluded outright. Only candidates above
    ``MIN_CONFIDENCE`` are returned, best first, ties in column order.
    """
    if not header_row:
        return []

    candidates: list[DateColumnCandidate] = []
    for index, raw_header in enumerate(header_row):
        label = header_name(raw_header)
        if not label:
            continue
        header = _normalise(label)
        if _is_excluded(header):
            logger.debug("Column %d %r skipped: excluded keyword", index, label)
            continue

        confidence, match_type = _keyword_confidence(header)
        parsed, sampled = _sample_parse_rate(sample_rows, index, max_samples, assumed_order)
        if sampled:
            share = parsed / sampled
            if confidence > 0:
                if share > 0.8:
                    confidence = max(confidence, HIGH_DATA_CONFIDENCE)
                    match_type += f" + High data confidence ({parsed}/{sampled})"
                elif share > 0.5:
                    match_type += f" + Moderate data confidence ({parsed}/{sampled})"
                elif share < 0.3:
                    confidence *= 0.3
                    match_type += f" - Poor data match ({parsed}/{sampled})"
            elif share > 0.9:
                confidence = PURE_DATA_CONFIDENCE
                match_type = f"Pure data analysis: {parsed}/{sampled} valid dates"

        if confidence > MIN_CONFIDENCE:
            candidates.append(
                DateColumnCandidate(
                    index=index,
                    header=label,
                    confidence=confidence,
                    match_type=match_type,
                )
            )
            logger.debug("Date column %d %r (%.3f, %s)", index, label, confidence, match_type)
        elif confidence > 0:
            logger.debug("Column %d %r rejected (%.3f, %s)", index, label, confidence, match_type)

    # sorted() is stable: equal confidences keep column order
    return sorted(candidates, key=lambda c: c.confidence, reverse=True)


def best_date_column(
    header_row: Sequence[Any],
    sample_rows: Sequence[Sequence[Any] | None] = (),
    max_samples: int = DEFAULT_MAX_SAMPLES,
    assumed_order: str = DEFAULT_DATE_ORDER,
) -> int:
    """Return the top candidate's index, or ``-1`` when nothing qualifies."""
    ranked = detect_date_columns(header_row, sample_rows, max_samples, assumed_order)
    return ranked[0].index if ranked else -1


# ── Writer classification ───────────────────────────────────────


def _content_share(grid: Grid, index: int, sample_size: int, predicate: Any) -> float:
    hits = seen = 0
    for row in grid[1 : sample_size + 1]:
        if not row or index >= len(row) or is_blank(row[index]):
            continue
        seen += 1
        if predicate(row[index]):
            hits += 1
    return hits / seen if seen else 0.0


def _looks_like_date(cell: Any) -> bool:
    if isinstance(cell, (datetime, date)):
        return True
    if isinstance(cell, str):
        return bool(_DATE_SHAPE_RE.search(cell))
    return is_plausible_serial(cell)


def _looks_like_amount(cell: Any) -> bool:
    if isinstance(cell, bool):
        return False
    if isinstance(cell, Real):
        return True
    if isinstance(cell, str):
        text = cell.strip()
        return bool(_CURRENCY_RE.match(text) or _GROUPED_NUMBER_RE.match(text))
    return False


def classify_columns(grid: Grid, sample_size: int = DEFAULT_MAX_SAMPLES) -> ColumnClassification:
    """Tag columns as id-like, date-like or amount-like for output formatting.

    Header patterns decide first; otherwise more than 60% of the sampled
    cells must look the part. ID columns are never amount columns.
    """
    if not grid or not grid[0]:
        return ColumnClassification()

    headers = [header_name(cell) for cell in grid[0]]
    id_cols = {
        idx for idx, name in enumerate(headers)
        if name and any(rx.search(name) for rx in ID_HEADER_PATTERNS)
    }

    date_cols: set[int] = set()
    amount_cols: set[int] = set()
    for idx, name in enumerate(headers):
        lowered = name.lower()
        if any(kw in lowered for kw in DATE_HEADER_KEYWORDS):
            date_cols.add(idx)
        elif idx not in id_cols and (
            _content_share(grid, idx, sample_size, _looks_like_date) > CONTENT_SHARE
        ):
            date_cols.add(idx)

        if idx in id_cols or idx in date_cols:
            continue
        if any(kw in lowered for kw in AMOUNT_HEADER_KEYWORDS):
            amount_cols.add(idx)
        elif _content_share(grid, idx, sample_size, _looks_like_amount) > CONTENT_SHARE:
            amount_cols.add(idx)

    return ColumnClassification(
        date_columns=frozenset(date_cols),
        amount_columns=frozenset(amount_cols),
        id_columns=frozenset(id_cols),
    )
