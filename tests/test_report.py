"""Tests for Excel workbook writing behavior and formatting contracts."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from openpyxl import load_workbook

from sheet_shaper.models import MonthYearBucket, SplitResult
from sheet_shaper.report import (
    AMOUNT_FMT,
    DATE_FMT,
    TEXT_FMT,
    column_widths,
    output_name,
    split_output_name,
    write_split_workbook,
    write_workbook,
)


def _grid() -> list[list[object]]:
    return [
        ["Claim ID", "Service Date", "Amount", "Doctor"],
        [123456789012, 45000, "$100.50", "=HYPERLINK(\"x\")"],
        [123456789013, datetime(2024, 2, 1), 80, "Dr B"],
    ]


def test_write_workbook_formats_ids_dates_and_amounts(tmp_path: Path) -> None:
    path = write_workbook(tmp_path / "out" / "modified_claims.xlsx", _grid())

    wb = load_workbook(path)
    ws = wb["Sheet1"]

    assert [c.value for c in ws[1]] == ["Claim ID", "Service Date", "Amount", "Doctor"]
    assert ws["A1"].font.bold is True
    assert ws.freeze_panes == "A2"

    assert ws["A2"].value == "123456789012"
    assert ws["A2"].number_format == TEXT_FMT

    assert ws["B2"].value == datetime(2023, 3, 15)
    assert ws["B2"].number_format == DATE_FMT
    assert ws["B3"].number_format == DATE_FMT

    assert ws["C2"].value == pytest.approx(100.5)
    assert ws["C2"].number_format == AMOUNT_FMT
    assert ws["C3"].number_format == AMOUNT_FMT

    assert ws["D2"].value == "'=HYPERLINK(\"x\")"
    assert not path.with_name("modified_claims.tmp.xlsx").exists()


def test_write_workbook_borders_are_optional(tmp_path: Path) -> None:
    plain = load_workbook(write_workbook(tmp_path / "plain.xlsx", _grid()))["Sheet1"]
    boxed = load_workbook(write_workbook(tmp_path / "boxed.xlsx", _grid(), borders=True))["Sheet1"]

    assert plain["B2"].border.left.style is None
    assert boxed["B2"].border.left.style == "thin"
    assert boxed["A1"].border.bottom.style == "thin"


def test_write_workbook_with_empty_grid_writes_placeholder(tmp_path: Path) -> None:
    ws = load_workbook(write_workbook(tmp_path / "empty.xlsx", []))["Sheet1"]

    assert ws["A1"].value == "No data"


def test_write_split_workbook_one_sheet_per_month(tmp_path: Path) -> None:
    header = ["Service Date", "Amount"]
    split = SplitResult(
        header_row=header,
        buckets=[
            MonthYearBucket("2023-01", "January 2023", "2023", "01", [["15/01/2023", 1]]),
            MonthYearBucket(
                "2024-01", "January 2024", "2024", "01",
                [["15/01/2024", 2], ["16/01/2024", 3]],
            ),
        ],
        total_rows=4,
        assigned_rows=3,
        invalid_date_rows=1,
    )

    path = write_split_workbook(tmp_path / split_output_name("claims.xlsx"), split)

    wb = load_workbook(path)
    assert wb.sheetnames == ["January 2023", "January 2024"]
    second = wb["January 2024"]
    assert [c.value for c in second[1]] == header
    assert second.max_row == 3
    assert second["B3"].value == 3


def test_write_split_workbook_without_buckets(tmp_path: Path) -> None:
    split = SplitResult(header_row=["Date"], total_rows=2, invalid_date_rows=2)

    wb = load_workbook(write_split_workbook(tmp_path / "split.xlsx", split))

    assert wb.sheetnames == ["No data"]


def test_output_names() -> None:
    assert output_name("claims.xlsx") == "modified_claims.xlsx"
    assert output_name("claims.csv", ["January 2024", "March 2024"]) == (
        "without_January_2024_March_2024_claims.xlsx"
    )
    assert split_output_name("reports/claims.xlsx") == "separated_by_months_claims.xlsx"


def test_column_widths_are_clamped() -> None:
    widths = column_widths([["A", "x" * 200], ["short", datetime(2024, 1, 1)]])

    assert widths[0] == 8
    assert widths[1] == 50
