"""Excel writer — styled workbooks for processed and month-split grids."""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date, datetime
from numbers import Real
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.cell.cell import Cell
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from sheet_shaper.dates import is_plausible_serial, serial_to_datetime
from sheet_shaper.detect import classify_columns
from sheet_shaper.models import ColumnClassification, Grid, SplitResult
from sheet_shaper.utils import is_blank

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11)
HEADER_FILL = PatternFill(start_color="E0E0E0", end_color="E0E0E0", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

THIN_SIDE = Side(style="thin", color="000000")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)

TEXT_FMT = "@"
DATE_FMT = "dd/mm/yyyy"
AMOUNT_FMT = "#,##0.00"

_WIDTH_SAMPLE_ROWS = 100
_CHAR_WIDTH = 1.2
_MIN_WIDTH = 8
_MAX_WIDTH = 50
_WIDTH_PADDING = 2

_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")
_SHEET_TITLE_BAD_CHARS = re.compile(r"[\[\]:*?/\\]")
_CURRENCY_VALUE_RE = re.compile(r"^[$€£¥]?\s*(\d+(?:\.\d+)?)$")


# ── Helpers ──────────────────────────────────────────────────────


def _style_header(ws: Worksheet, ncols: int) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _display_length(value: Any) -> int:
    if isinstance(value, (datetime, date)):
        return 12
    if isinstance(value, float) and not value.is_integer():
        return max(len(str(value)), len(f"{value:.2f}"))
    return len(str(value))


def column_widths(grid: Grid, max_rows: int = _WIDTH_SAMPLE_ROWS) -> list[int]:
    """Estimate a display width per column from the header and first rows."""
    if not grid:
        return []
    ncols = max(len(row or []) for row in grid[:max_rows])
    widths = [_MIN_WIDTH] * ncols
    for row in grid[:max_rows]:
        for c_idx, value in enumerate(row or []):
            if is_blank(value):
                continue
            width = min(_MAX_WIDTH, int(_display_length(value) * _CHAR_WIDTH + 0.999) + _WIDTH_PADDING)
            widths[c_idx] = max(widths[c_idx], width)
    return widths


def _excel_value(val: Any) -> Any:
    if is_blank(val):
        return None

    if isinstance(val, datetime) and val.tzinfo:
        return val.replace(tzinfo=None)

    if isinstance(val, str):
        if val.startswith("'"):
            return val
        stripped = val.lstrip()
        if stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            return f"'{val}"

    return val


def _format_cell(cell: Cell, value: Any, col: int, classes: ColumnClassification) -> None:
    if value is None:
        return
    if col in classes.id_columns:
        # keep long numeric identifiers exactly as written
        if isinstance(value, Real) and not isinstance(value, bool):
            cell.value = str(int(value)) if float(value).is_integer() else str(value)
        cell.number_format = TEXT_FMT
        return
    if col in classes.date_columns:
        if isinstance(value, (datetime, date)):
            cell.number_format = DATE_FMT
        elif is_plausible_serial(value):
            cell.value = serial_to_datetime(value)
            cell.number_format = DATE_FMT
        elif isinstance(value, str):
            cell.number_format = TEXT_FMT
        return
    if col in classes.amount_columns:
        if isinstance(value, Real) and not isinstance(value, bool):
            cell.number_format = AMOUNT_FMT
        elif isinstance(value, str):
            match = _CURRENCY_VALUE_RE.match(value.strip())
            if match:
                cell.value = float(match.group(1))
                cell.number_format = AMOUNT_FMT


def _grid_to_sheet(
    ws: Worksheet, grid: Grid, classes: ColumnClassification, *, borders: bool
) -> None:
    if not grid or not grid[0]:
        ws.cell(row=1, column=1, value="No data")
        ws.column_dimensions["A"].width = 18
        return

    for r_idx, row in enumerate(grid, 1):
        for c_idx, raw in enumerate(row or []):
            value = _excel_value(raw)
            cell = ws.cell(row=r_idx, column=c_idx + 1, value=value)
            if r_idx > 1:
                _format_cell(cell, value, c_idx, classes)
            if borders:
                cell.border = THIN_BORDER

    _style_header(ws, len(grid[0]))
    ws.freeze_panes = "A2"
    for c_idx, width in enumerate(column_widths(grid), 1):
        ws.column_dimensions[get_column_letter(c_idx)].width = width


def _sheet_title(name: str, taken: set[str]) -> str:
    base = _SHEET_TITLE_BAD_CHARS.sub("_", name).strip() or "Sheet"
    base = base[:31]
    title = base
    suffix = 1
    while title.lower() in taken:
        tail = f" ({suffix})"
        title = f"{base[: 31 - len(tail)]}{tail}"
        suffix += 1
    taken.add(title.lower())
    return title


def _new_workbook() -> Workbook:
    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)
    return wb


def _save(wb: Workbook, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.stem}.tmp{path.suffix}")
    wb.save(tmp_path)
    tmp_path.replace(path)
    return path


# ── Naming ───────────────────────────────────────────────────────


def _stem(file_name: str) -> str:
    return Path(file_name).stem or "workbook"


def output_name(file_name: str, excluded_months: Sequence[str] = ()) -> str:
    """``without_January_2024_claims.xlsx`` or ``modified_claims.xlsx``."""
    if excluded_months:
        months = "_".join(re.sub(r"\s+", "_", m.strip()) for m in excluded_months)
        return f"without_{months}_{_stem(file_name)}.xlsx"
    return f"modified_{_stem(file_name)}.xlsx"


def split_output_name(file_name: str) -> str:
    return f"separated_by_months_{_stem(file_name)}.xlsx"


# ── Public API ───────────────────────────────────────────────────


def write_workbook(
    path: Path, grid: Grid, *, borders: bool = False, sheet_title: str = "Sheet1"
) -> Path:
    """Write *grid* to a single-sheet workbook at *path* and return the path."""
    wb = _new_workbook()
    ws = wb.create_sheet(title=_sheet_title(sheet_title, set()))
    _grid_to_sheet(ws, grid, classify_columns(grid), borders=borders)
    return _save(wb, path)


def write_split_workbook(path: Path, split: SplitResult, *, borders: bool = False) -> Path:
    """Write one sheet per month bucket, each with the shared header row.

    Column formats are classified once, from the first bucket, so every
    sheet is formatted the same way.
    """
    wb = _new_workbook()
    first_rows = split.buckets[0].rows[:10] if split.buckets else []
    classes = classify_columns([split.header_row, *first_rows])

    taken: set[str] = set()
    if not split.buckets:
        ws = wb.create_sheet(title=_sheet_title("No data", taken))
        _grid_to_sheet(ws, [], classes, borders=borders)
    for bucket in split.buckets:
        ws = wb.create_sheet(title=_sheet_title(bucket.display_name, taken))
        _grid_to_sheet(ws, [split.header_row, *bucket.rows], classes, borders=borders)
    return _save(wb, path)
