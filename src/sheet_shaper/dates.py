"""Month/year parsing shared by detection, counting, filtering and splitting.

Every stage that attributes a row to a month calls :func:`parse_month_year`
with the same ``assumed_order``, so the counts shown before filtering always
match the rows the filter removes.
"""

from __future__ import annotations

import re
import warnings
from datetime import date, datetime, timedelta
from numbers import Real
from typing import Any, Literal

import pandas as pd

from sheet_shaper import DEFAULT_DATE_ORDER
from sheet_shaper.models import MonthYear
from sheet_shaper.utils import is_blank

DateOrder = Literal["DD/MM/YYYY", "MM/DD/YYYY"]
DATE_ORDERS: tuple[str, ...] = ("DD/MM/YYYY", "MM/DD/YYYY")

MIN_YEAR = 1900
MAX_YEAR = 2100
# Open interval of plausible spreadsheet serials (roughly 1968 to 2036).
SERIAL_MIN = 25000
SERIAL_MAX = 50000
SPREADSHEET_EPOCH = datetime(1899, 12, 30)

_DAY_MONTH_RE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})(?=$|[\sT])")
_ISO_RE = re.compile(r"^(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})(?=$|[\sT])")
_FOUR_DIGIT_RE = re.compile(r"(?<!\d)\d{4}(?!\d)")
_NUMERIC_RE = re.compile(r"^[+-]?\d+(?:[.,]\d+)?$")


def _validated(month: int, year: int) -> MonthYear | None:
    if 1 <= month <= 12 and MIN_YEAR <= year <= MAX_YEAR:
        return MonthYear(f"{month:02d}", str(year))
    return None


def serial_to_datetime(serial: float) -> datetime:
    """Convert a spreadsheet day serial to a naive datetime."""
    return SPREADSHEET_EPOCH + timedelta(days=float(serial))


def is_plausible_serial(value: Any) -> bool:
    return (
        isinstance(value, Real)
        and not isinstance(value, bool)
        and SERIAL_MIN < value < SERIAL_MAX
    )


def _parse_day_month(text: str, assumed_order: str) -> MonthYear | None:
    match = _DAY_MONTH_RE.match(text)
    if not match:
        return None
    first, second, year = (int(g) for g in match.groups())

    explicit = _validated(first if assumed_order == "MM/DD/YYYY" else second, year)
    if explicit is not None:
        return explicit

    if not MIN_YEAR <= year <= MAX_YEAR:
        return None
    if first > 12 and 1 <= second <= 12:
        return _validated(second, year)
    if second > 12 and 1 <= first <= 12:
        return _validated(first, year)
    if 1 <= first <= 31 and 1 <= second <= 12:
        # neither part disambiguates: day-first
        return _validated(second, year)
    return None


def _parse_iso(text: str) -> MonthYear | None:
    match = _ISO_RE.match(text)
    if not match:
        return None
    year, month, _day = (int(g) for g in match.groups())
    return _validated(month, year)


def _parse_fallback(text: str, assumed_order: str) -> MonthYear | None:
    # Without an explicit year the generic parser fills in the current one.
    if _NUMERIC_RE.match(text) or not _FOUR_DIGIT_RE.search(text):
        return None
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            parsed = pd.to_datetime(
                text, errors="coerce", dayfirst=assumed_order == "DD/MM/YYYY"
            )
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return _validated(parsed.month, parsed.year)


def parse_month_year(
    value: Any, assumed_order: DateOrder | str = DEFAULT_DATE_ORDER
) -> MonthYear | None:
    """Parse a raw cell into its ``MonthYear``, or ``None``.

    Accepts date/datetime objects, spreadsheet serials in
    ``(SERIAL_MIN, SERIAL_MAX)`` and strings (``DD/MM/YYYY`` or
    ``MM/DD/YYYY`` per *assumed_order*, auto-detected day/month, ISO, then a
    generic fallback). Never raises for cell data.

    Raises
    ------
    ValueError
        If *assumed_order* is not one of :data:`DATE_ORDERS`.
    """
    if assumed_order not in DATE_ORDERS:
        raise ValueError(
            f"Invalid date order: {assumed_order!r}. Use {' or '.join(DATE_ORDERS)}."
        )
    if is_blank(value) or isinstance(value, bool):
        return None

    if isinstance(value, (datetime, date)):
        return _validated(value.month, value.year)

    if isinstance(value, Real):
        if not is_plausible_serial(value):
            return None
        try:
            moment = serial_to_datetime(float(value))
        except OverflowError:
            return None
        return _validated(moment.month, moment.year)

    text = str(value).strip()
    # Numeric shapes are decided here; "2024/13/01" must not reach the fallback.
    if _DAY_MONTH_RE.match(text):
        return _parse_day_month(text, assumed_order)
    if _ISO_RE.match(text):
        return _parse_iso(text)
    return _parse_fallback(text, assumed_order)
