"""Exception types raised by the pipeline."""

from __future__ import annotations


class SheetShaperError(ValueError):
    """Base class for input and selection errors a caller can report."""


class EmptyWorkbookError(SheetShaperError):
    """The workbook has no rows at all."""


class HeaderNotFoundError(SheetShaperError):
    """No usable header row could be found."""


class NoDateColumnError(SheetShaperError):
    """A date-based operation was requested without a date column."""


class DateColumnRemovedError(SheetShaperError):
    """Splitting by month is impossible because the date column is gone.

    *reason* completes the message: the column is either selected for
    removal or absent from the processed header row.
    """

    def __init__(self, header: str, reason: str = "is selected for removal") -> None:
        super().__init__(f"Cannot split by month: date column {header!r} {reason}")
        self.header = header
        self.reason = reason


class InvalidSelectionError(SheetShaperError):
    """The requested selection would produce no meaningful output."""
