"""String processing utilities for the governorate console.

Filtering runs on every list render, so the helpers here lean on the
pre-compiled patterns in utils.patterns.
"""

from datetime import date, datetime

from utils.patterns import ARABIC_MARKS, ISO_DATE, WHITESPACE


def normalize_whitespace(s: str) -> str:
    """Normalize multiple whitespace characters to single spaces.

    Converts tabs, newlines, multiple spaces to single space.

    Example:
        "Monthly   report\\n  north" -> "Monthly report north"
    """
    return WHITESPACE.sub(' ', s).strip()


def fold_text(value) -> str:
    """Return a comparison key for case-insensitive substring matching.

    Applies Unicode casefolding, strips Arabic diacritics and tatweel, and
    collapses whitespace.  ``None`` folds to the empty string.

    Examples:
        fold_text("  Budget  REPORT ") -> "budget report"
        fold_text(None) -> ""
    """
    if value is None:
        return ""
    text = ARABIC_MARKS.sub("", str(value))
    return normalize_whitespace(text).casefold()


def parse_iso_date(value) -> date | None:
    """Parse a ``YYYY-MM-DD`` string (or date/datetime) into a ``date``.

    Returns ``None`` for empty input.  Raises ``ValueError`` when a
    non-empty string is not a valid calendar date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    if not ISO_DATE.match(s):
        raise ValueError(f"Invalid date {s!r}: expected YYYY-MM-DD")
    return date.fromisoformat(s)
