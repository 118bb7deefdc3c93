"""Header-row detection and name-based column lookup."""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Any

from sheet_shaper.dates import parse_month_year
from sheet_shaper.errors import EmptyWorkbookError, HeaderNotFoundError
from sheet_shaper.models import Grid
from sheet_shaper.utils import header_name, is_blank

logger = logging.getLogger(__name__)

DEFAULT_MAX_SCAN = 20
MIN_TEXT_SHARE = 0.6

_NUMBER_LIKE_RE = re.compile(r"^[\s$€£¥+-]*[\d.,\s]+%?$")


def _filled(row: Sequence[Any] | None) -> int:
    if not row:
        return 0
    return sum(1 for cell in row if not is_blank(cell))


def _is_label(cell: Any) -> bool:
    if not isinstance(cell, str) or is_blank(cell):
        return False
    text = cell.strip()
    if _NUMBER_LIKE_RE.match(text):
        return False
    return parse_month_year(text) is None


def locate_header_row(grid: Sequence[Sequence[Any] | None], max_scan: int = DEFAULT_MAX_SCAN) -> int:
    """Return the index of the first row that looks like column labels.

    Title and metadata rows above a table are typically short (one or two
    filled cells) while the header row is about as wide as the data under it
    and made of text. Falls back to ``0``; never raises.
    """
    scanned = list(grid[:max_scan]) if grid else []
    widths = [_filled(row) for row in scanned]
    widest = max(widths, default=0)
    if widest == 0:
        return 0

    min_width = max(min(2, widest), (widest + 1) // 2)
    for idx, row in enumerate(scanned):
        filled = widths[idx]
        if filled < min_width or row is None:
            continue
        labels = sum(1 for cell in row if _is_label(cell))
        if labels / filled >= MIN_TEXT_SHARE:
            logger.debug("Header row located at index %d (%d labels)", idx, labels)
            return idx

    logger.debug("No header-like row in the first %d rows; using row 0", len(scanned))
    return 0


def extract_table(grid: Sequence[Sequence[Any] | None], header_row_index: int) -> Grid:
    """Return ``[header, *data_rows]`` with everything above the header dropped.

    Header cells are normalised to stripped strings; data rows are copied
    as-is (``None`` rows become empty lists).

    Raises
    ------
    EmptyWorkbookError
        If *grid* has no rows.
    HeaderNotFoundError
        If *header_row_index* is out of range or the row has no filled cell.
    """
    if not grid:
        raise EmptyWorkbookError("The workbook appears to be empty")
    if not 0 <= header_row_index < len(grid):
        raise HeaderNotFoundError(
            f"Header row index {header_row_index} is outside the sheet (0..{len(grid) - 1})"
        )
    raw_header = grid[header_row_index]
    if _filled(raw_header) == 0:
        raise HeaderNotFoundError("Could not detect headers in the file")

    header = [header_name(cell) for cell in raw_header or []]
    rows = [list(row) if row else [] for row in grid[header_row_index + 1 :]]
    return [header, *rows]


def find_duplicate_headers(header_row: Iterable[Any]) -> list[str]:
    """Return header names that appear more than once, sorted."""
    counts = Counter(header_name(cell) for cell in header_row)
    return sorted(name for name, count in counts.items() if count > 1 and name)


class HeaderIndex:
    """Name -> position map for one header row.

    Name lookups resolve to the first occurrence; :meth:`occurrence` reaches
    the later ones. Rebuild the index after every stage that adds, removes
    or reorders columns.
    """

    def __init__(self, header_row: Sequence[Any]) -> None:
        self.names: list[str] = [header_name(cell) for cell in header_row]
        self._positions: dict[str, int] = {}
        self._occurrences: dict[str, list[int]] = {}
        for idx, name in enumerate(self.names):
            self._positions.setdefault(name, idx)
            self._occurrences.setdefault(name, []).append(idx)

    def __len__(self) -> int:
        return len(self.names)

    def __contains__(self, name: object) -> bool:
        return name in self._positions

    def position(self, name: str) -> int:
        """Return the position of *name*, or ``-1`` when absent."""
        return self._positions.get(name, -1)

    def occurrence(self, name: str, nth: int) -> int:
        """Return the position of the *nth* (0-based) column named *name*, or ``-1``."""
        found = self._occurrences.get(name, [])
        return found[nth] if 0 <= nth < len(found) else -1

    def positions(self, names: Iterable[str]) -> tuple[list[int], list[str]]:
        """Resolve *names*; return ``(positions, unmatched_names)``."""
        found: list[int] = []
        missing: list[str] = []
        for name in names:
            pos = self._positions.get(name)
            if pos is None:
                missing.append(name)
            elif pos not in found:
                found.append(pos)
        return found, missing
