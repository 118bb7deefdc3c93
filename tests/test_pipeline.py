"""Pipeline stage ordering, selection checks and the end-to-end scenario."""

from __future__ import annotations

import pytest

from sheet_shaper.errors import (
    DateColumnRemovedError,
    InvalidSelectionError,
    NoDateColumnError,
)
from sheet_shaper.models import Grid, ProcessingSelection
from sheet_shaper.months import aggregate_by_month
from sheet_shaper.pipeline import (
    process,
    process_with_report,
    split_processed,
    summarize_selection,
    validate_selection,
)


def _scenario() -> Grid:
    return [
        ["Date", "Amount", "Doctor"],
        ["10/01/2024", 100, "A"],
        ["20/02/2024", 200, "B"],
        ["", 300, "C"],
    ]


def test_end_to_end_month_removal_also_drops_blank_dates() -> None:
    grid = _scenario()
    counts = aggregate_by_month(grid, 0)
    selection = ProcessingSelection(selected_months=("January 2024",))

    final, report = process_with_report(grid, 0, selection, 0, counts)

    assert final[0] == ["Date", "Amount", "Doctor"]
    assert final[1:] == [["20/02/2024", 200, "B"]]
    assert report.rows_in == 3
    assert report.rows_out == 1
    assert report.dropped_rows == 2
    assert "Dropped 1 rows with a blank date" in report.warnings


def test_stage_order_filter_add_reorder_remove() -> None:
    grid = [
        ["Report"],
        ["A", "B", "C"],
        ["01/01/2024", "b1", "c1"],
        ["01/02/2024", "b2", "c2"],
    ]
    counts = aggregate_by_month(grid[1:], 0)
    selection = ProcessingSelection(
        selected_headers=("B",),
        selected_months=("February 2024",),
        column_order=(2, 0, 3, 1),
        added_columns=("D",),
    )

    final = process(grid, 1, selection, 0, counts)

    assert final == [["C", "A", "D"], ["c1", "01/01/2024", ""]]


def test_removal_wins_over_column_order() -> None:
    grid = [["A", "B"], [1, 2]]
    selection = ProcessingSelection(selected_headers=("A",), column_order=(0, 1))

    assert process(grid, 0, selection, -1, []) == [["B"], [2]]


def test_unresolved_order_entries_and_unknown_names_are_reported() -> None:
    grid = [["A", "B"], [1, 2]]
    selection = ProcessingSelection(
        selected_headers=("Nope",),
        selected_months=("March 1999",),
        column_order=(1, 7),
    )

    final, report = process_with_report(grid, 0, selection, -1, [])

    assert final == [["B"], [2]]
    assert report.unmatched_columns == ["Nope"]
    assert report.removed_columns == []
    assert any("could not be resolved" in w for w in report.warnings)
    assert any("March 1999" in w for w in report.warnings)


def test_duplicate_headers_warn_and_first_match_wins() -> None:
    grid = [["Name", "Name", "X"], ["a", "b", "x"]]
    selection = ProcessingSelection(selected_headers=("Name",))

    final, report = process_with_report(grid, 0, selection, -1, [])

    assert final == [["Name", "X"], ["b", "x"]]
    assert any("Duplicate headers" in w for w in report.warnings)


def test_partial_column_order_warns_about_dropped_columns() -> None:
    grid = [["A", "B", "C"], [1, 2, 3]]

    final, report = process_with_report(
        grid, 0, ProcessingSelection(column_order=(2,)), -1, []
    )

    assert final == [["C"], [3]]
    assert "Column order lists 1 of 3 columns; the others were dropped" in report.warnings


def test_reorder_keeps_every_blank_header_column() -> None:
    grid = [["A", None, None, "B"], [1, 2, 3, 4]]

    final, report = process_with_report(
        grid, 0, ProcessingSelection(column_order=(0, 1, 2, 3)), -1, []
    )

    assert final == [["A", "", "", "B"], [1, 2, 3, 4]]
    assert report.warnings == []

    reversed_grid = process(grid, 0, ProcessingSelection(column_order=(3, 2, 1, 0)), -1, [])
    assert reversed_grid == [["B", "", "", "A"], [4, 3, 2, 1]]


def test_reorder_keeps_repeated_names_apart() -> None:
    grid = [["Name", "X", "Name"], ["first", "x", "second"]]

    final = process(grid, 0, ProcessingSelection(column_order=(2, 1, 0)), -1, [])

    assert final == [["Name", "X", "Name"], ["second", "x", "first"]]


def test_process_does_not_mutate_input() -> None:
    grid = _scenario()
    snapshot = [list(row) for row in grid]
    selection = ProcessingSelection(
        selected_headers=("Amount",), added_columns=("Notes",), column_order=(3, 0)
    )

    process(grid, 0, selection, 0, aggregate_by_month(grid, 0))

    assert grid == snapshot


def test_split_processed_buckets_final_rows() -> None:
    grid = [
        ["Date", "Amount"],
        ["15/01/2023", 1],
        ["15/01/2024", 2],
        ["16/01/2024", 3],
    ]
    selection = ProcessingSelection(column_order=(1, 0))

    result = split_processed(grid, 0, selection, 0, aggregate_by_month(grid, 0))

    assert result.header_row == ["Amount", "Date"]
    assert [(b.display_name, len(b.rows)) for b in result.buckets] == [
        ("January 2023", 1),
        ("January 2024", 2),
    ]
    assert result.invalid_date_rows == 0


def test_split_processed_detects_removed_date_column() -> None:
    grid = _scenario()
    selection = ProcessingSelection(selected_headers=("Date",))

    with pytest.raises(DateColumnRemovedError, match="selected for removal"):
        split_processed(grid, 0, selection, 0, aggregate_by_month(grid, 0))


def test_split_processed_without_date_column() -> None:
    grid = _scenario()

    with pytest.raises(NoDateColumnError, match="no date column"):
        split_processed(grid, 0, ProcessingSelection(added_columns=("X",)), -1, [])


def test_split_processed_when_order_drops_date_column() -> None:
    grid = _scenario()
    selection = ProcessingSelection(column_order=(1, 2))

    with pytest.raises(DateColumnRemovedError, match="not in the processed columns") as exc_info:
        split_processed(grid, 0, selection, 0, aggregate_by_month(grid, 0))
    assert "selected for removal" not in str(exc_info.value)


def test_validate_selection_rules() -> None:
    headers = ["Date", "Amount"]

    with pytest.raises(InvalidSelectionError, match="Nothing to do"):
        validate_selection(headers, ProcessingSelection(), 3, 0)
    with pytest.raises(InvalidSelectionError, match="Cannot remove all columns"):
        validate_selection(headers, ProcessingSelection(selected_headers=("Date", "Amount")), 3, 0)
    with pytest.raises(InvalidSelectionError, match="All data rows"):
        validate_selection(headers, ProcessingSelection(selected_months=("January 2024",)), 3, 3)

    assert validate_selection(
        headers,
        ProcessingSelection(selected_headers=("Date", "Amount"), added_columns=("Notes",)),
        3,
        0,
    ) == (1, 3)
    assert validate_selection(
        headers, ProcessingSelection(selected_months=("January 2024",)), 3, 1
    ) == (2, 2)


def test_summarize_selection() -> None:
    selection = ProcessingSelection(
        selected_headers=("Mobile", "Card No"),
        selected_months=("January 2024",),
        added_columns=("Reviewer",),
        column_order=(0, 1),
    )

    summary = summarize_selection(selection, 12)

    assert summary == (
        "Will remove 2 column(s): Mobile, Card No. "
        "Will remove 12 row(s) from months: January 2024. "
        "Will add 1 column(s): Reviewer. "
        "Will reorder 2 column(s)."
    )
    assert summarize_selection(ProcessingSelection(), 0) == ""
