"""Data models / typed records used across the package."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from numbers import Integral, Real
from typing import Any

from sheet_shaper import MONTH_NAMES

Grid = list[list[Any]]
ColumnOrderSpec = tuple[int, ...]


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


def _to_unique_strings(values: Sequence[Any] | None, field_name: str) -> tuple[str, ...]:
    return tuple(dict.fromkeys(_to_string_list(values, field_name)))


def _to_index_tuple(values: Sequence[Any] | None, field_name: str) -> ColumnOrderSpec | None:
    if values is None:
        return None
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of integers")
    return tuple(_to_non_negative_int(v, f"{field_name} items") for v in values)


# ── Dates ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MonthYear:
    """A parsed calendar month, zero-padded: ``MonthYear("01", "2024")``."""

    month: str
    year: str

    @property
    def key(self) -> str:
        return f"{self.year}-{self.month}"

    @property
    def display_name(self) -> str:
        return f"{MONTH_NAMES[self.month]} {self.year}"


@dataclass(frozen=True)
class DateColumnCandidate:
    index: int
    header: str
    confidence: float
    match_type: str = ""

    def __post_init__(self) -> None:
        _to_non_negative_int(self.index, "index")
        if isinstance(self.confidence, bool) or not isinstance(self.confidence, Real):
            raise TypeError("confidence must be a number")
        if not 0.0 <= float(self.confidence) <= 1.0:
            raise ValueError("confidence must be within [0, 1]")


@dataclass(frozen=True)
class MonthCount:
    """Row count for one month-year, as shown to the user before filtering."""

    display_name: str
    year: str
    month_code: str
    key: str
    count: int

    def __post_init__(self) -> None:
        _to_non_negative_int(self.count, "count")
        if self.key != f"{self.year}-{self.month_code}":
            raise ValueError("key must equal '{year}-{month_code}'")


@dataclass
class MonthYearBucket:
    key: str
    display_name: str
    year: str
    month_code: str
    rows: list[list[Any]] = field(default_factory=list)


@dataclass
class SplitResult:
    """Rows of a processed grid partitioned by month-year.

    Contract invariant: ``assigned_rows + invalid_date_rows == total_rows``.
    """

    header_row: list[Any]
    buckets: list[MonthYearBucket] = field(default_factory=list)
    total_rows: int = 0
    assigned_rows: int = 0
    invalid_date_rows: int = 0

    def __post_init__(self) -> None:
        self.total_rows = _to_non_negative_int(self.total_rows, "total_rows")
        self.assigned_rows = _to_non_negative_int(self.assigned_rows, "assigned_rows")
        self.invalid_date_rows = _to_non_negative_int(
            self.invalid_date_rows, "invalid_date_rows"
        )
        if self.assigned_rows + self.invalid_date_rows != self.total_rows:
            raise ValueError("assigned_rows + invalid_date_rows must equal total_rows")


# ── Columns ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class ColumnClassification:
    """Column indices the writer should format as dates, amounts or text IDs."""

    date_columns: frozenset[int] = frozenset()
    amount_columns: frozenset[int] = frozenset()
    id_columns: frozenset[int] = frozenset()


@dataclass(frozen=True)
class ProcessingSelection:
    """Snapshot of everything the user asked for in one pipeline run.

    ``column_order`` holds positions into the combined header list
    (original headers followed by ``added_columns``).
    """

    selected_headers: tuple[str, ...] = ()
    selected_months: tuple[str, ...] = ()
    column_order: ColumnOrderSpec | None = None
    added_columns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "selected_headers",
            _to_unique_strings(self.selected_headers, "selected_headers"),
        )
        object.__setattr__(
            self,
            "selected_months",
            _to_unique_strings(self.selected_months, "selected_months"),
        )
        object.__setattr__(
            self, "column_order", _to_index_tuple(self.column_order, "column_order")
        )
        # added names may repeat; uniqueness is the caller's concern
        object.__setattr__(
            self,
            "added_columns",
            tuple(_to_string_list(self.added_columns, "added_columns")),
        )

    @property
    def is_empty(self) -> bool:
        return not (
            self.selected_headers
            or self.selected_months
            or self.column_order
            or self.added_columns
        )


# ── Reports ──────────────────────────────────────────────────────


@dataclass
class FilterReport:
    """What the month filter removed, and why.

    Contract invariant: ``rows_in - rows_out`` equals the sum of the
    blank, unparseable and per-month removals.
    """

    rows_in: int = 0
    rows_out: int = 0
    removed_blank: int = 0
    removed_unparseable: int = 0
    removed_by_month: dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.removed_blank = _to_non_negative_int(self.removed_blank, "removed_blank")
        self.removed_unparseable = _to_non_negative_int(
            self.removed_unparseable, "removed_unparseable"
        )
        self.removed_by_month = {
            str(name): _to_non_negative_int(count, "removed_by_month values")
            for name, count in self.removed_by_month.items()
        }
        if self.rows_out > self.rows_in:
            raise ValueError("rows_out must be <= rows_in")
        if self.rows_in - self.rows_out != self.removed_total:
            raise ValueError("rows_in - rows_out must equal the removed row total")

    @property
    def removed_total(self) -> int:
        return (
            self.removed_blank
            + self.removed_unparseable
            + sum(self.removed_by_month.values())
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "removed_blank": self.removed_blank,
            "removed_unparseable": self.removed_unparseable,
            "removed_by_month": dict(self.removed_by_month),
        }


@dataclass
class ProcessingReport:
    """Report emitted alongside every pipeline run.

    Contract invariant: ``dropped_rows == rows_in - rows_out``.
    """

    rows_in: int = 0
    rows_out: int = 0
    dropped_rows: int = 0
    removed_columns: list[str] = field(default_factory=list)
    unmatched_columns: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.dropped_rows = _to_non_negative_int(self.dropped_rows, "dropped_rows")
        self.removed_columns = _to_string_list(self.removed_columns, "removed_columns")
        self.unmatched_columns = _to_string_list(
            self.unmatched_columns, "unmatched_columns"
        )
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.rows_out > self.rows_in:
            raise ValueError("rows_out must be <= rows_in")
        if self.dropped_rows != self.rows_in - self.rows_out:
            raise ValueError("dropped_rows must equal rows_in - rows_out")

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "dropped_rows": self.dropped_rows,
            "removed_columns": list(self.removed_columns),
            "unmatched_columns": list(self.unmatched_columns),
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single CLI run."""

    tool: str = "sheet-shaper"
    version: str = ""
    input_path: str = ""
    outputs: list[str] = field(default_factory=list)
    created_at_utc: str = ""
    rows_in: int = 0
    rows_out: int = 0
    sha256: str = ""
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.outputs = _to_string_list(self.outputs, "outputs")
        if self.status not in {"success", "failed"}:
            raise ValueError("status must be 'success' or 'failed'")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "input_path": self.input_path,
            "outputs": list(self.outputs),
            "created_at_utc": self.created_at_utc,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "sha256": self.sha256,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
