"""Processing pipeline — filter, add, reorder, remove. Pure functions, no I/O."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sheet_shaper import DEFAULT_DATE_ORDER
from sheet_shaper.columns import (
    add_columns,
    remove_columns,
    reorder_columns,
    resolve_column_order,
)
from sheet_shaper.errors import (
    DateColumnRemovedError,
    InvalidSelectionError,
    NoDateColumnError,
)
from sheet_shaper.headers import HeaderIndex, extract_table, find_duplicate_headers
from sheet_shaper.models import (
    Grid,
    MonthCount,
    ProcessingReport,
    ProcessingSelection,
    SplitResult,
)
from sheet_shaper.months import filter_rows_by_months_with_report, split_by_month

logger = logging.getLogger(__name__)


# ── Main processing function ────────────────────────────────────


def process_with_report(
    grid: Sequence[Sequence[Any] | None],
    header_row_index: int,
    selection: ProcessingSelection,
    date_column_index: int,
    month_counts: Sequence[MonthCount],
    assumed_order: str = DEFAULT_DATE_ORDER,
) -> tuple[Grid, ProcessingReport]:
    """Apply *selection* to the table under *header_row_index*.

    Stages run in a fixed order: month filter (on original column indices),
    added columns, column order (resolved by name over original + added
    headers), and column removal last, by name, so removal wins over order.

    Returns ``(final_grid, report)``.

    Raises
    ------
    EmptyWorkbookError, HeaderNotFoundError
        If the header row cannot be extracted.
    """
    table = extract_table(grid, header_row_index)
    original_headers = list(table[0])
    warnings: list[str] = []

    duplicates = find_duplicate_headers(original_headers)
    if duplicates:
        warnings.append(
            f"Duplicate headers resolve to their first column: {', '.join(duplicates)}"
        )

    # 1. Filter rows by month
    filtered, filter_report = filter_rows_by_months_with_report(
        table, selection.selected_months, month_counts, date_column_index, assumed_order
    )
    if filter_report.removed_blank:
        warnings.append(f"Dropped {filter_report.removed_blank} rows with a blank date")
    if filter_report.removed_unparseable:
        warnings.append(
            f"Dropped {filter_report.removed_unparseable} rows with an unparseable date"
        )
    known_months = {mc.display_name for mc in month_counts}
    unknown_months = [m for m in selection.selected_months if m not in known_months]
    if unknown_months:
        warnings.append(f"Ignored months with no rows: {', '.join(unknown_months)}")

    # 2. Add new columns
    added = add_columns(filtered, selection.added_columns)

    # 3. Reorder, by name over the combined header list
    reordered = added
    if selection.column_order:
        combined = [*original_headers, *selection.added_columns]
        resolved = resolve_column_order(selection.column_order, combined, added[0])
        if len(resolved) < len(selection.column_order):
            warnings.append(
                f"Column order: {len(selection.column_order) - len(resolved)} "
                "entries could not be resolved and were skipped"
            )
        if resolved:
            reordered = reorder_columns(added, resolved)
            if len(resolved) < len(added[0]):
                warnings.append(
                    f"Column order lists {len(resolved)} of {len(added[0])} columns; "
                    "the others were dropped"
                )

    # 4. Remove columns, last
    current = HeaderIndex(reordered[0])
    removed = [name for name in selection.selected_headers if name in current]
    unmatched = [name for name in selection.selected_headers if name not in current]
    if unmatched:
        logger.warning("Columns to remove not found: %s", unmatched)
    final = remove_columns(reordered, removed)

    rows_in = len(table) - 1
    rows_out = len(final) - 1
    report = ProcessingReport(
        rows_in=rows_in,
        rows_out=rows_out,
        dropped_rows=rows_in - rows_out,
        removed_columns=removed,
        unmatched_columns=unmatched,
        warnings=warnings,
    )
    logger.debug("Processed %d -> %d rows, header %s", rows_in, rows_out, final[0])
    return final, report


def process(
    grid: Sequence[Sequence[Any] | None],
    header_row_index: int,
    selection: ProcessingSelection,
    date_column_index: int,
    month_counts: Sequence[MonthCount],
    assumed_order: str = DEFAULT_DATE_ORDER,
) -> Grid:
    """Like :func:`process_with_report`, grid only."""
    final, _report = process_with_report(
        grid, header_row_index, selection, date_column_index, month_counts, assumed_order
    )
    return final


def split_processed(
    grid: Sequence[Sequence[Any] | None],
    header_row_index: int,
    selection: ProcessingSelection,
    date_column_index: int,
    month_counts: Sequence[MonthCount],
    assumed_order: str = DEFAULT_DATE_ORDER,
) -> SplitResult:
    """Process the table, then split the result into one bucket per month.

    Raises
    ------
    NoDateColumnError
        If no date column is selected.
    DateColumnRemovedError
        If the selection removes the date column; checked before processing.
    """
    table = extract_table(grid, header_row_index)
    if not 0 <= date_column_index < len(table[0]):
        raise NoDateColumnError("Cannot split by month: no date column selected")
    date_header = table[0][date_column_index]
    if date_header in selection.selected_headers:
        raise DateColumnRemovedError(date_header)

    final = process(
        grid, header_row_index, selection, date_column_index, month_counts, assumed_order
    )
    return split_by_month(final, date_header, assumed_order)


# ── Selection checks ────────────────────────────────────────────


def validate_selection(
    headers: Sequence[str],
    selection: ProcessingSelection,
    total_rows: int,
    rows_to_remove: int,
) -> tuple[int, int]:
    """Reject selections that leave nothing to export.

    Returns ``(remaining_columns, remaining_rows)``.

    Raises
    ------
    InvalidSelectionError
        If nothing is selected, or every column or every row would go.
    """
    if selection.is_empty:
        raise InvalidSelectionError(
            "Nothing to do: select columns or months to remove, "
            "columns to add, or a column order"
        )

    all_headers = set(headers) | set(selection.added_columns)
    remaining_columns = len(all_headers - set(selection.selected_headers))
    remaining_rows = max(total_rows - rows_to_remove, 0)

    if remaining_columns == 0:
        raise InvalidSelectionError(
            "Cannot remove all columns - at least one column must remain"
        )
    if selection.selected_months and total_rows > 0 and remaining_rows == 0:
        raise InvalidSelectionError(
            "All data rows would be removed - no data would remain"
        )
    return remaining_columns, remaining_rows


def summarize_selection(selection: ProcessingSelection, rows_to_remove: int) -> str:
    """One-line, human-readable description of *selection*."""
    parts: list[str] = []
    if selection.selected_headers:
        parts.append(
            f"Will remove {len(selection.selected_headers)} column(s): "
            f"{', '.join(selection.selected_headers)}."
        )
    if selection.selected_months:
        parts.append(
            f"Will remove {rows_to_remove} row(s) from months: "
            f"{', '.join(selection.selected_months)}."
        )
    if selection.added_columns:
        parts.append(
            f"Will add {len(selection.added_columns)} column(s): "
            f"{', '.join(selection.added_columns)}."
        )
    if selection.column_order:
        parts.append(f"Will reorder {len(selection.column_order)} column(s).")
    return " ".join(parts)
