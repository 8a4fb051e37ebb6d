"""Correspondence status values and the append-only status history.

A status change overwrites ``status`` and appends exactly one entry to
``history``.  Any status may follow any other; only membership in the
fixed enumeration is checked.

Usage::

    from utils.status import apply_status_change

    updated = apply_status_change(record, "completed", "Reply sent", actor="uid-1")
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any

# Ordered: this is also the display order in the UI.
STATUSES: tuple[str, ...] = ("new", "in_progress", "pending", "completed", "archived")

STATUS_LABELS: dict[str, str] = {
    "new": "New",
    "in_progress": "In progress",
    "pending": "Pending",
    "completed": "Completed",
    "archived": "Archived",
}

DEFAULT_STATUS = "new"


def validate_status(status: str) -> str:
    """Return *status* unchanged, or raise ``ValueError`` if it is unknown."""
    if status not in STATUSES:
        raise ValueError(
            f"Unknown status {status!r}; expected one of: {', '.join(STATUSES)}"
        )
    return status


def make_history_entry(
    status: str,
    comment: str | None,
    actor: str,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Build one history entry for a status change.

    Args:
        status: New status value (validated).
        comment: Optional free-text comment; blank becomes "".
        actor: uid of the user making the change.
        timestamp: When the change happened (default: now, UTC).

    Returns:
        Dict with keys ``action``, ``comment``, ``timestamp``, ``actor``.
    """
    validate_status(status)
    return {
        "action": status,
        "comment": (comment or "").strip(),
        "timestamp": timestamp or datetime.now(timezone.utc),
        "actor": actor,
    }


def apply_status_change(
    record: dict[str, Any],
    status: str,
    comment: str | None,
    actor: str,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Return a copy of *record* with the new status and one more history entry.

    The input record is not mutated.  Existing history entries are kept in
    order; the new entry goes last.
    """
    entry = make_history_entry(status, comment, actor, timestamp)
    updated = copy.deepcopy(record)
    updated["status"] = status
    updated["history"] = list(updated.get("history") or []) + [entry]
    updated["updated_at"] = entry["timestamp"]
    return updated
