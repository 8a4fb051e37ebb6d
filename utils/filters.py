"""List filtering over an already-fetched listing.

Criteria: free-text substring, exact date, number substring.  Blank
criteria are inactive; every active criterion must match.  With no active
criterion the listing passes through unchanged.

Usage::

    from utils.filters import ListFilters, filter_records

    filters = ListFilters.from_params(q="budget", date="2024-03-31")
    visible = filter_records(records, spec, filters)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from utils.catalog import CollectionSpec
from utils.strings import fold_text, parse_iso_date


@dataclass(frozen=True)
class ListFilters:
    """Active filter criteria for one list view."""

    text: str = ""
    date: date | None = None
    number: str = ""

    @classmethod
    def from_params(
        cls,
        q: str | None = None,
        date: str | None = None,
        number: str | None = None,
    ) -> "ListFilters":
        """Build filters from raw query-string values.

        Raises:
            ValueError: if *date* is non-blank and not ``YYYY-MM-DD``.
        """
        return cls(
            text=fold_text(q),
            date=parse_iso_date(date),
            number=(number or "").strip(),
        )

    @property
    def active(self) -> bool:
        return bool(self.text or self.date or self.number)

    def to_params(self) -> dict[str, str]:
        """Query-string form of the active criteria (for links and exports)."""
        params: dict[str, str] = {}
        if self.text:
            params["q"] = self.text
        if self.date:
            params["date"] = self.date.isoformat()
        if self.number:
            params["number"] = self.number
        return params


def _record_date(record: dict[str, Any], spec: CollectionSpec) -> date | None:
    value = record.get(spec.date_field) if spec.date_field else None
    if not value:
        value = record.get("created_at")
    try:
        return parse_iso_date(value)
    except ValueError:
        return None


def matches(record: dict[str, Any], spec: CollectionSpec, filters: ListFilters) -> bool:
    """Return True if *record* satisfies every active criterion."""
    if filters.text:
        if not any(filters.text in fold_text(record.get(name))
                   for name in spec.text_fields):
            return False
    if filters.date and _record_date(record, spec) != filters.date:
        return False
    if filters.number:
        if not spec.number_field:
            return False
        value = record.get(spec.number_field)
        if value is None or filters.number not in str(value):
            return False
    return True


def filter_records(
    records: Iterable[dict[str, Any]],
    spec: CollectionSpec,
    filters: ListFilters,
) -> list[dict[str, Any]]:
    """Return the records matching all active criteria, in input order."""
    if not filters.active:
        return list(records)
    return [r for r in records if matches(r, spec, filters)]
