"""Output formatting utilities for the governorate console.

Provides the display helpers registered as Jinja filters and used by the
CSV/XLSX exports:
- Timestamps from Firestore (DatetimeWithNanoseconds) or plain datetimes
- Status labels
- Cell values for tabular export
"""

from datetime import date, datetime
from typing import Any

from utils.status import STATUS_LABELS


def format_timestamp(ts: Any, with_time: bool = True) -> str:
    """Format a timestamp for display in local time.

    Args:
        ts: datetime (aware or naive), date, ISO string, or None
        with_time: Include hours and minutes (default: True)

    Returns:
        "2024-03-31 14:05", "2024-03-31", or "-" for missing values

    Examples:
        format_timestamp(None) -> "-"
        format_timestamp(date(2024, 3, 31)) -> "2024-03-31"
    """
    if ts is None or ts == "":
        return "-"
    if isinstance(ts, datetime):
        if ts.tzinfo is not None:
            ts = ts.astimezone()
        return ts.strftime("%Y-%m-%d %H:%M" if with_time else "%Y-%m-%d")
    if isinstance(ts, date):
        return ts.isoformat()
    return str(ts)


def format_status(value: str | None) -> str:
    """Return the human-readable label for a status code."""
    if not value:
        return "-"
    return STATUS_LABELS.get(value, value)


def export_cell(value: Any) -> Any:
    """Convert a record value into something csv/openpyxl can write.

    Timezone-aware datetimes are rendered as text because openpyxl refuses
    them; lists (status history) collapse to a count.
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, list):
        return len(value)
    return value
