"""I/O helpers — load a workbook into a raw grid, write JSON artifacts."""

from __future__ import annotations

import csv
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, cast

import pandas as pd

from sheet_shaper.models import Grid
from sheet_shaper.utils import is_blank

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")
SUPPORTED_SUFFIXES = (".csv", ".xls", *EXCEL_SUFFIXES)

_DELIMITERS = ",;\t|"
_SNIFF_CHARS = 64 * 1024

# ── Loading ──────────────────────────────────────────────────────


def _cell_value(value: Any) -> Any:
    if is_blank(value):
        return None
    if isinstance(value, pd.Timestamp):
        dt = value.to_pydatetime()
        return dt.replace(tzinfo=None) if dt.tzinfo else dt
    item = getattr(value, "item", None)
    if callable(item) and not isinstance(value, (str, datetime, date)):
        return item()
    return value


def frame_to_grid(df: pd.DataFrame) -> Grid:
    """Turn a header-less DataFrame into a list of rows of plain Python values.

    Trailing rows with no filled cell are dropped.
    """
    grid: Grid = [
        [_cell_value(v) for v in row] for row in df.itertuples(index=False, name=None)
    ]
    while grid and all(cell is None for cell in grid[-1]):
        grid.pop()
    return grid


def _csv_layout(path: Path, encoding: str, delimiter: str | None) -> tuple[str, int]:
    """Return ``(delimiter, widest_row)`` for a CSV file.

    Title lines above the table make the first line a poor sample, so the
    delimiter is sniffed over the start of the file and every row counts
    towards the width.
    """
    with open(path, newline="", encoding=encoding, errors="strict") as fh:
        text = fh.read()
    if not delimiter:
        try:
            delimiter = csv.Sniffer().sniff(text[:_SNIFF_CHARS], delimiters=_DELIMITERS).delimiter
        except csv.Error:
            delimiter = ","
    width = max((len(row) for row in csv.reader(text.splitlines(), delimiter=delimiter)), default=0)
    return delimiter, width


def _read_csv_frame(path: Path, delimiter: str | None) -> pd.DataFrame:
    last_exc: Exception | None = None
    for encoding in ("utf-8-sig", "utf-8", "latin-1"):
        try:
            sep, width = _csv_layout(path, encoding, delimiter)
            if width == 0:
                return pd.DataFrame()
            return pd.read_csv(
                path,
                header=None,
                names=list(range(width)),
                dtype="string",
                sep=sep,
                engine="python",
                encoding=encoding,
                encoding_errors="strict",
                na_filter=True,
                keep_default_na=True,
                skip_blank_lines=False,
            )
        except (UnicodeDecodeError, pd.errors.ParserError, csv.Error) as exc:
            last_exc = exc
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
    raise ValueError(f"Could not read CSV {path} (decode or parse failed)") from last_exc


def load_grid(path: Path, sheet: str | int | None = None, delimiter: str | None = None) -> Grid:
    """Load the first (or named) sheet of a CSV or Excel file as a raw grid.

    No header is assumed: row 0 of the grid is the first row of the sheet.
    Excel cells keep their native types (numbers, datetimes); CSV cells are
    strings. Blank cells become ``None``.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If *path* is a directory, the extension is not supported, or CSV
        decoding/parsing fails.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    if path.is_dir():
        raise ValueError(f"Input path is a directory, not a file: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        return frame_to_grid(_read_csv_frame(path, delimiter))

    read_excel = cast(Callable[..., pd.DataFrame], getattr(pd, "read_excel"))
    sheet_name = 0 if sheet is None else sheet
    if suffix in EXCEL_SUFFIXES:
        return frame_to_grid(
            read_excel(path, engine="openpyxl", header=None, dtype=object, sheet_name=sheet_name)
        )

    if suffix == ".xls":
        try:
            frame = read_excel(path, engine="xlrd", header=None, dtype=object, sheet_name=sheet_name)
        except ImportError as exc:
            raise ValueError(
                "Unsupported .xls input unless 'xlrd' is installed. "
                "Either convert to .xlsx or add dependency: pip install xlrd"
            ) from exc
        return frame_to_grid(frame)

    raise ValueError(
        f"Unsupported file type: {suffix!r}. Use {', '.join(SUPPORTED_SUFFIXES)}"
    )


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
