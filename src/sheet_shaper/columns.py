"""Column edits — add, remove and reorder, addressed by header name."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from sheet_shaper.headers import HeaderIndex
from sheet_shaper.models import Grid
from sheet_shaper.utils import header_name

logger = logging.getLogger(__name__)


def add_columns(grid: Grid, new_headers: Sequence[str]) -> Grid:
    """Append *new_headers* to the header and one ``""`` per name to each row."""
    if not grid:
        return []
    names = list(new_headers)
    if not names:
        return list(grid)
    padding = [""] * len(names)
    return [
        [*grid[0], *names],
        *([*(row or []), *padding] for row in grid[1:]),
    ]


def remove_columns(grid: Grid, names_to_remove: Iterable[str]) -> Grid:
    """Drop the columns whose current header matches one of *names_to_remove*.

    Names are matched exactly against the header row as it is now; names
    that match nothing are ignored.
    """
    if not grid:
        return []
    positions, missing = HeaderIndex(grid[0]).positions(names_to_remove)
    if missing:
        logger.debug("Columns not present, nothing to remove: %s", missing)
    if not positions:
        return list(grid)
    drop = set(positions)
    return [
        [cell for idx, cell in enumerate(row or []) if idx not in drop]
        for row in grid
    ]


def reorder_columns(grid: Grid, permutation: Sequence[int]) -> Grid:
    """Rebuild every row as ``[row[i] for i in permutation]``.

    Indices past the end of a (ragged) row yield ``""``. An empty
    permutation leaves the grid as it is.
    """
    if not grid or not permutation:
        return list(grid)
    order = list(permutation)
    return [
        [row[i] if row is not None and 0 <= i < len(row) else "" for i in order]
        for row in grid
    ]


def resolve_column_order(
    column_order: Sequence[int],
    combined_headers: Sequence[Any],
    current_headers: Sequence[Any],
) -> list[int]:
    """Translate positions in *combined_headers* into indices of *current_headers*.

    Each position is looked up by the name it carries, so the result follows
    columns that moved. The k-th column carrying a repeated (or blank) name
    resolves to the k-th column of that name in *current_headers*. Positions
    outside the combined list, names that are no longer present, and
    repeated positions are dropped with a warning.
    """
    current = HeaderIndex(current_headers)
    combined = HeaderIndex(combined_headers).names
    resolved: list[int] = []
    for position in column_order:
        if not 0 <= position < len(combined):
            logger.warning("Column order position %d is outside the header list; skipped", position)
            continue
        name = combined[position]
        index = current.occurrence(name, combined[:position].count(name))
        if index == -1:
            logger.warning("Header %r not found after adding columns; skipped", name)
            continue
        if index in resolved:
            logger.warning("Column %r is listed more than once in the column order; skipped", name)
            continue
        resolved.append(index)
    return resolved


def order_by_headers(
    headers: Sequence[Any],
    desired: Iterable[str],
    rest: Sequence[int] | None = None,
) -> tuple[list[int], list[str]]:
    """Build a complete column order from header names.

    Columns named in *desired* come first, matched case-insensitively; a
    name given twice takes the next column carrying it. Every other column
    follows, in the order of *rest* (default: header order). Returns
    ``(order, unknown_names)``.
    """
    names = [header_name(cell).casefold() for cell in headers]
    order: list[int] = []
    unknown: list[str] = []
    for wanted in desired:
        key = wanted.strip().casefold()
        index = next(
            (i for i, name in enumerate(names) if name == key and i not in order), -1
        )
        if index == -1:
            unknown.append(wanted)
            continue
        order.append(index)
    for index in rest if rest is not None else range(len(names)):
        if index not in order:
            order.append(index)
    return order, unknown


def alphabetical_order(headers: Sequence[Any]) -> list[int]:
    """Column positions sorted by header name, case-insensitively; ties keep header order."""
    names = [header_name(cell).casefold() for cell in headers]
    return sorted(range(len(names)), key=lambda i: names[i])


def validate_column_order(headers: Sequence[Any], column_order: Sequence[int]) -> tuple[bool, str]:
    """Check that *column_order* is a set of valid, distinct positions."""
    for position in column_order:
        if isinstance(position, bool) or not isinstance(position, int):
            return False, f"Invalid column index: {position!r}"
        if not 0 <= position < len(headers):
            return False, (
                f"Invalid column index: {position}. "
                f"Must be between 0 and {len(headers) - 1}"
            )
    if len(set(column_order)) != len(column_order):
        return False, "Column order contains duplicate indices"
    if len(column_order) != len(headers):
        logger.warning(
            "Column order lists %d of %d columns; the rest are dropped",
            len(column_order), len(headers),
        )
    return True, "Valid column order"


def select_matching_headers(
    headers: Sequence[str], wanted: Iterable[str], current_selection: Sequence[str] = ()
) -> list[str]:
    """Extend *current_selection* with the headers matching *wanted*.

    Matching is case-insensitive; the header's own spelling is what gets
    selected.
    """
    selection = list(current_selection)
    by_lower: dict[str, str] = {}
    for header in headers:
        by_lower.setdefault(header.lower(), header)
    for name in wanted:
        match = by_lower.get(name.lower())
        if match is not None and match not in selection:
            selection.append(match)
    return selection
