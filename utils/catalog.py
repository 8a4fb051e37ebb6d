"""Collection catalog: which lists the console manages and what they hold.

Every collection is a flat Firestore collection of region-scoped documents.
The catalog drives form rendering, payload validation, the list filters
(which field is "the date" and which is "the number") and exports.

Usage::

    from utils.catalog import get_collection

    spec = get_collection("circulars")
    spec.field_names   # ['number', 'title', 'issuer', 'date', 'body']
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from utils.strings import normalize_whitespace, parse_iso_date

FIELD_KINDS = frozenset({"text", "textarea", "date", "number", "select"})

# Keys managed by the console itself, never accepted from a form/payload.
SYSTEM_FIELDS = frozenset({
    "id", "region", "created_at", "created_by", "updated_at", "status", "history",
})


class RecordValidationError(ValueError):
    """Raised when submitted values do not fit the collection's fields.

    ``errors`` maps field name to a human-readable message.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = errors
        summary = "; ".join(f"{k}: {v}" for k, v in errors.items())
        super().__init__(f"Invalid record: {summary}")


@dataclass(frozen=True)
class FieldSpec:
    """One input field of a collection."""

    name: str
    label: str
    kind: str = "text"
    required: bool = False
    options: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind not in FIELD_KINDS:
            raise ValueError(f"Unknown field kind {self.kind!r} for {self.name}")
        if self.kind == "select" and not self.options:
            raise ValueError(f"Select field {self.name} needs options")


@dataclass(frozen=True)
class CollectionSpec:
    """A categorized list managed by the console."""

    key: str
    title: str
    fields: tuple[FieldSpec, ...]
    date_field: str | None = None
    number_field: str | None = None
    has_status: bool = False
    summary_fields: tuple[str, ...] = field(default=())

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def text_fields(self) -> list[str]:
        """Fields searched by the free-text filter."""
        return [f.name for f in self.fields
                if f.kind in ("text", "textarea", "select", "number")]

    @property
    def columns(self) -> list[FieldSpec]:
        """Fields shown as table columns in the list view."""
        if not self.summary_fields:
            return [f for f in self.fields if f.kind != "textarea"]
        by_name = {f.name: f for f in self.fields}
        return [by_name[n] for n in self.summary_fields]

    def get_field(self, name: str) -> FieldSpec | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def clean(self, values: dict[str, Any], partial: bool = False) -> dict[str, Any]:
        """Validate and normalize submitted values for this collection.

        Unknown keys and system keys are dropped.  Text is whitespace-trimmed,
        dates must be ``YYYY-MM-DD`` and select values must be one of the
        declared options.  With ``partial=True`` (updates) missing required
        fields are not reported, but present ones may not be blanked.

        Returns:
            Dict with only catalog fields.

        Raises:
            RecordValidationError: one message per offending field.
        """
        cleaned: dict[str, Any] = {}
        errors: dict[str, str] = {}

        for spec in self.fields:
            if spec.name not in values:
                if spec.required and not partial:
                    errors[spec.name] = f"{spec.label} is required"
                continue

            raw = values[spec.name]
            text = "" if raw is None else str(raw)
            text = text.strip() if spec.kind == "textarea" else normalize_whitespace(text)

            if not text:
                if spec.required:
                    errors[spec.name] = f"{spec.label} is required"
                else:
                    cleaned[spec.name] = ""
                continue

            if spec.kind == "date":
                try:
                    text = parse_iso_date(text).isoformat()
                except ValueError:
                    errors[spec.name] = f"{spec.label} must be a date (YYYY-MM-DD)"
                    continue
            elif spec.kind == "select" and text not in spec.options:
                errors[spec.name] = (
                    f"{spec.label} must be one of: {', '.join(spec.options)}"
                )
                continue

            cleaned[spec.name] = text

        if errors:
            raise RecordValidationError(errors)
        return cleaned


# ── Catalog ──────────────────────────────────────────────────────────────────

COLLECTIONS: dict[str, CollectionSpec] = {
    spec.key: spec for spec in (
        CollectionSpec(
            key="correspondence",
            title="Correspondence",
            fields=(
                FieldSpec("number", "Reference no.", "number", required=True),
                FieldSpec("subject", "Subject", required=True),
                FieldSpec("direction", "Direction", "select", required=True,
                          options=("incoming", "outgoing")),
                FieldSpec("sender", "Sender"),
                FieldSpec("recipient", "Recipient"),
                FieldSpec("date", "Date", "date", required=True),
                FieldSpec("notes", "Notes", "textarea"),
            ),
            date_field="date",
            number_field="number",
            has_status=True,
            summary_fields=("number", "subject", "direction", "sender", "date"),
        ),
        CollectionSpec(
            key="activities",
            title="Activities",
            fields=(
                FieldSpec("title", "Title", required=True),
                FieldSpec("location", "Location"),
                FieldSpec("date", "Date", "date", required=True),
                FieldSpec("participants", "Participants"),
                FieldSpec("description", "Description", "textarea"),
            ),
            date_field="date",
        ),
        CollectionSpec(
            key="reports",
            title="Reports",
            fields=(
                FieldSpec("number", "Report no.", "number"),
                FieldSpec("title", "Title", required=True),
                FieldSpec("period", "Period"),
                FieldSpec("date", "Date", "date", required=True),
                FieldSpec("summary", "Summary", "textarea"),
            ),
            date_field="date",
            number_field="number",
        ),
        CollectionSpec(
            key="circulars",
            title="Circulars",
            fields=(
                FieldSpec("number", "Circular no.", "number", required=True),
                FieldSpec("title", "Title", required=True),
                FieldSpec("issuer", "Issued by"),
                FieldSpec("date", "Date", "date", required=True),
                FieldSpec("body", "Text", "textarea"),
            ),
            date_field="date",
            number_field="number",
        ),
        CollectionSpec(
            key="human_resources",
            title="Human resources",
            fields=(
                FieldSpec("employee_name", "Employee", required=True),
                FieldSpec("employee_number", "Employee no.", "number", required=True),
                FieldSpec("job_title", "Job title"),
                FieldSpec("department", "Department"),
                FieldSpec("record_type", "Record type", "select", required=True,
                          options=("leave", "assignment", "promotion", "appraisal", "other")),
                FieldSpec("date", "Date", "date"),
                FieldSpec("notes", "Notes", "textarea"),
            ),
            date_field="date",
            number_field="employee_number",
        ),
        CollectionSpec(
            key="decisions",
            title="Decisions",
            fields=(
                FieldSpec("number", "Decision no.", "number", required=True),
                FieldSpec("title", "Title", required=True),
                FieldSpec("date", "Date", "date", required=True),
                FieldSpec("body", "Text", "textarea"),
            ),
            date_field="date",
            number_field="number",
        ),
    )
}


def get_collection(key: str) -> CollectionSpec:
    """Return the catalog entry for *key*.

    Raises:
        KeyError: if the collection is not in the catalog.
    """
    try:
        return COLLECTIONS[key]
    except KeyError:
        raise KeyError(f"Unknown collection {key!r}") from None
