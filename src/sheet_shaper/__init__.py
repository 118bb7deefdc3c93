"""sheet-shaper — Trim, reorder and split spreadsheets by month."""

import logging

__version__ = "0.2.0"

DEFAULT_DATE_ORDER = "DD/MM/YYYY"

MONTH_NAMES: dict[str, str] = {
    "01": "January",
    "02": "February",
    "03": "March",
    "04": "April",
    "05": "May",
    "06": "June",
    "07": "July",
    "08": "August",
    "09": "September",
    "10": "October",
    "11": "November",
    "12": "December",
}

logging.getLogger(__name__).addHandler(logging.NullHandler())
