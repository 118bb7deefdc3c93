"""One loaded workbook and everything derived from it."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sheet_shaper import DEFAULT_DATE_ORDER
from sheet_shaper.detect import detect_date_columns
from sheet_shaper.errors import EmptyWorkbookError, SheetShaperError
from sheet_shaper.headers import extract_table, find_duplicate_headers, locate_header_row
from sheet_shaper.models import (
    DateColumnCandidate,
    Grid,
    MonthCount,
    ProcessingReport,
    ProcessingSelection,
    SplitResult,
)
from sheet_shaper.months import aggregate_by_month, calculate_rows_removed
from sheet_shaper.pipeline import (
    process_with_report,
    split_processed,
    summarize_selection,
    validate_selection,
)

logger = logging.getLogger(__name__)

DETECTION_SAMPLE_ROWS = 5


class WorkbookSession:
    """Derived state for a single workbook plus the user's current choices.

    A session is built once per loaded file; loading another file means
    building a new session, so nothing derived from the previous file
    survives. Changing the date column recomputes the month counts and
    clears the month selection, because month names are only meaningful for
    the column they were counted on.
    """

    def __init__(
        self,
        grid: Sequence[Sequence[Any] | None],
        file_name: str = "",
        assumed_order: str = DEFAULT_DATE_ORDER,
        sample_rows: int = DETECTION_SAMPLE_ROWS,
    ) -> None:
        if not grid:
            raise EmptyWorkbookError("The file appears to be empty")

        self.grid: list[Any] = list(grid)
        self.file_name = file_name
        self.assumed_order = assumed_order

        self.header_row_index = locate_header_row(self.grid)
        self.table: Grid = extract_table(self.grid, self.header_row_index)
        self.headers: list[str] = list(self.table[0])

        self.warnings: list[str] = []
        duplicates = find_duplicate_headers(self.headers)
        if duplicates:
            self.warnings.append(
                f"Duplicate headers resolve to their first column: {', '.join(duplicates)}"
            )

        self.date_candidates: list[DateColumnCandidate] = detect_date_columns(
            self.headers,
            self.table[1 : 1 + sample_rows],
            max_samples=sample_rows,
            assumed_order=assumed_order,
        )
        self.date_column_index = -1
        self.month_counts: list[MonthCount] = []

        self.selected_headers: list[str] = []
        self.selected_months: list[str] = []
        self.added_columns: list[str] = []
        self.column_order: list[int] | None = None

        if self.date_candidates:
            self.select_date_column(self.date_candidates[0].index)
        logger.debug(
            "Loaded %r: header row %d, %d columns, %d data rows, %d date candidates",
            file_name, self.header_row_index, len(self.headers), self.row_count,
            len(self.date_candidates),
        )

    # ── Derived values ───────────────────────────────────────────

    @property
    def row_count(self) -> int:
        return len(self.table) - 1

    @property
    def date_header(self) -> str | None:
        if self.date_column_index == -1:
            return None
        return self.headers[self.date_column_index]

    @property
    def combined_headers(self) -> list[str]:
        return [*self.headers, *self.added_columns]

    @property
    def rows_to_remove(self) -> int:
        return calculate_rows_removed(self.selected_months, self.month_counts)

    # ── Choices ──────────────────────────────────────────────────

    def select_date_column(self, index: int) -> list[MonthCount]:
        """Switch the date column (``-1`` for none) and recount months."""
        if index != -1 and not 0 <= index < len(self.headers):
            raise SheetShaperError(
                f"Date column index {index} is outside the header (0..{len(self.headers) - 1})"
            )
        self.date_column_index = index
        self.month_counts = aggregate_by_month(self.table, index, self.assumed_order)
        self.selected_months = []
        return self.month_counts

    def toggle_header(self, header: str) -> list[str]:
        if header in self.selected_headers:
            self.selected_headers.remove(header)
        else:
            self.selected_headers.append(header)
        return self.selected_headers

    def toggle_month(self, month: str) -> list[str]:
        if month in self.selected_months:
            self.selected_months.remove(month)
        else:
            self.selected_months.append(month)
        return self.selected_months

    def selection(self) -> ProcessingSelection:
        """Immutable snapshot of the current choices."""
        return ProcessingSelection(
            selected_headers=tuple(self.selected_headers),
            selected_months=tuple(self.selected_months),
            column_order=tuple(self.column_order) if self.column_order else None,
            added_columns=tuple(self.added_columns),
        )

    # ── Actions ──────────────────────────────────────────────────

    def summary(self) -> str:
        return summarize_selection(self.selection(), self.rows_to_remove)

    def validate(self) -> tuple[int, int]:
        return validate_selection(
            self.headers, self.selection(), self.row_count, self.rows_to_remove
        )

    def run(self) -> tuple[Grid, ProcessingReport]:
        return process_with_report(
            self.grid,
            self.header_row_index,
            self.selection(),
            self.date_column_index,
            self.month_counts,
            self.assumed_order,
        )

    def split(self) -> SplitResult:
        return split_processed(
            self.grid,
            self.header_row_index,
            self.selection(),
            self.date_column_index,
            self.month_counts,
            self.assumed_order,
        )
