"""Month-year counting, filtering and splitting over a date column."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Any

from sheet_shaper import DEFAULT_DATE_ORDER
from sheet_shaper.dates import parse_month_year
from sheet_shaper.errors import DateColumnRemovedError
from sheet_shaper.headers import HeaderIndex
from sheet_shaper.models import (
    FilterReport,
    Grid,
    MonthCount,
    MonthYear,
    MonthYearBucket,
    SplitResult,
)
from sheet_shaper.utils import is_blank

logger = logging.getLogger(__name__)


def _cell(row: Sequence[Any] | None, index: int) -> Any:
    if not row or index >= len(row):
        return None
    return row[index]


def _valid_column(grid: Grid, index: int) -> bool:
    return bool(grid) and 0 <= index < len(grid[0])


def _sort_key(month_year: MonthYear) -> tuple[str, str]:
    return month_year.year, month_year.month


# ── Counting ─────────────────────────────────────────────────────


def aggregate_by_month(
    grid: Grid, date_column_index: int, assumed_order: str = DEFAULT_DATE_ORDER
) -> list[MonthCount]:
    """Count data rows per month-year of the date column, oldest first.

    Every data row is examined. Rows whose date does not parse are not
    counted. Returns ``[]`` for an invalid column or when nothing parses.
    """
    if len(grid) < 2 or not _valid_column(grid, date_column_index):
        return []

    counts: Counter[MonthYear] = Counter()
    for row in grid[1:]:
        parsed = parse_month_year(_cell(row, date_column_index), assumed_order)
        if parsed is not None:
            counts[parsed] += 1

    logger.debug(
        "Counted %d of %d rows into %d months (column %d)",
        sum(counts.values()), len(grid) - 1, len(counts), date_column_index,
    )
    return [
        MonthCount(
            display_name=month_year.display_name,
            year=month_year.year,
            month_code=month_year.month,
            key=month_year.key,
            count=count,
        )
        for month_year, count in sorted(counts.items(), key=lambda item: _sort_key(item[0]))
    ]


def calculate_rows_removed(
    selected_months: Iterable[str], month_counts: Sequence[MonthCount]
) -> int:
    """Rows the selected months account for, per the displayed counts."""
    by_name = {mc.display_name: mc.count for mc in month_counts}
    return sum(by_name.get(name, 0) for name in dict.fromkeys(selected_months))


# ── Filtering ────────────────────────────────────────────────────


def filter_rows_by_months_with_report(
    grid: Grid,
    excluded_months: Iterable[str],
    month_counts: Sequence[MonthCount],
    date_column_index: int,
    assumed_order: str = DEFAULT_DATE_ORDER,
) -> tuple[Grid, FilterReport]:
    """Drop rows dated in *excluded_months*; return ``(grid, report)``.

    Once any month is excluded, rows whose date is blank or unparseable are
    dropped as well, since they cannot be attributed to a month.
    """
    if not grid:
        return [], FilterReport()
    rows_in = len(grid) - 1
    excluded = list(dict.fromkeys(excluded_months))

    if not excluded or date_column_index == -1:
        return list(grid), FilterReport(rows_in=rows_in, rows_out=rows_in)
    if not _valid_column(grid, date_column_index):
        logger.warning(
            "Date column %d is outside the header (%d columns); rows left unfiltered",
            date_column_index, len(grid[0]),
        )
        return list(grid), FilterReport(rows_in=rows_in, rows_out=rows_in)

    key_by_name = {mc.display_name: mc.key for mc in month_counts}
    name_by_key: dict[str, str] = {}
    for name in excluded:
        key = key_by_name.get(name)
        if key is None:
            logger.warning("Month %r has no counted rows for this column; ignored", name)
            continue
        name_by_key[key] = name

    removed_by_month = dict.fromkeys(name_by_key.values(), 0)
    blank = unparseable = 0
    kept: Grid = [grid[0]]
    for row in grid[1:]:
        value = _cell(row, date_column_index)
        if is_blank(value):
            blank += 1
            continue
        parsed = parse_month_year(value, assumed_order)
        if parsed is None:
            unparseable += 1
            continue
        name = name_by_key.get(parsed.key)
        if name is not None:
            removed_by_month[name] += 1
            continue
        kept.append(row)

    report = FilterReport(
        rows_in=rows_in,
        rows_out=len(kept) - 1,
        removed_blank=blank,
        removed_unparseable=unparseable,
        removed_by_month=removed_by_month,
    )
    logger.debug("Month filter: %s", report.to_dict())
    return kept, report


def filter_rows_by_months(
    grid: Grid,
    excluded_months: Iterable[str],
    month_counts: Sequence[MonthCount],
    date_column_index: int,
    assumed_order: str = DEFAULT_DATE_ORDER,
) -> Grid:
    """Like :func:`filter_rows_by_months_with_report`, grid only."""
    filtered, _report = filter_rows_by_months_with_report(
        grid, excluded_months, month_counts, date_column_index, assumed_order
    )
    return filtered


def compare_counts_with_filter(
    grid: Grid, date_column_index: int, assumed_order: str = DEFAULT_DATE_ORDER
) -> dict[str, tuple[int, int]]:
    """Return ``{month: (counted, removed)}`` for every month where they differ.

    An empty dict means excluding any single month removes exactly the rows
    that were counted for it.
    """
    month_counts = aggregate_by_month(grid, date_column_index, assumed_order)
    mismatches: dict[str, tuple[int, int]] = {}
    for mc in month_counts:
        _filtered, report = filter_rows_by_months_with_report(
            grid, [mc.display_name], month_counts, date_column_index, assumed_order
        )
        removed = report.removed_by_month.get(mc.display_name, 0)
        if removed != mc.count:
            mismatches[mc.display_name] = (mc.count, removed)
    return mismatches


# ── Splitting ────────────────────────────────────────────────────


def split_by_month(
    final_grid: Grid, date_header: str, assumed_order: str = DEFAULT_DATE_ORDER
) -> SplitResult:
    """Partition the data rows of a processed grid into month-year buckets.

    The date column is located by *date_header*, since processing may have
    moved it. Rows whose date does not parse are counted in
    ``invalid_date_rows`` and left out of every bucket.

    Raises
    ------
    DateColumnRemovedError
        If *date_header* is not in the processed header row.
    """
    header_row = list(final_grid[0]) if final_grid else []
    index = HeaderIndex(header_row).position(date_header)
    if index == -1:
        raise DateColumnRemovedError(
            date_header, "is not in the processed columns (left out of the column order?)"
        )

    buckets: dict[MonthYear, MonthYearBucket] = {}
    invalid = 0
    data_rows = final_grid[1:]
    for row in data_rows:
        parsed = parse_month_year(_cell(row, index), assumed_order)
        if parsed is None:
            invalid += 1
            continue
        bucket = buckets.get(parsed)
        if bucket is None:
            bucket = buckets[parsed] = MonthYearBucket(
                key=parsed.key,
                display_name=parsed.display_name,
                year=parsed.year,
                month_code=parsed.month,
            )
        bucket.rows.append(list(row) if row else [])

    ordered = [buckets[k] for k in sorted(buckets, key=_sort_key)]
    if invalid:
        logger.warning("%d rows have no usable date and were left out of the split", invalid)
    return SplitResult(
        header_row=header_row,
        buckets=ordered,
        total_rows=len(data_rows),
        assigned_rows=len(data_rows) - invalid,
        invalid_date_rows=invalid,
    )
