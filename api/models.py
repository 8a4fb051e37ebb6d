"""
Pydantic request/response models for the API.

Record field values are free-form per collection (see utils.catalog), so
they travel as a ``fields`` mapping next to the system fields every record
carries.  Optional fields default to None so records written before a field
existed still validate.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from utils.catalog import SYSTEM_FIELDS, CollectionSpec


# ── Reference data models ─────────────────────────────────────────────────────

class RegionOut(BaseModel):
    """A governorate the console partitions records by."""
    code: str = Field(..., description="Region code", examples=["north"])
    name: str = Field(..., description="Display name", examples=["Northern Governorate"])


class StatusOut(BaseModel):
    """One value of the correspondence status enumeration."""
    code: str = Field(..., examples=["in_progress"])
    label: str = Field(..., examples=["In progress"])


class FieldOut(BaseModel):
    """One input field of a collection."""
    name: str = Field(..., examples=["subject"])
    label: str = Field(..., examples=["Subject"])
    kind: str = Field(..., description="text | textarea | date | number | select")
    required: bool = False
    options: list[str] = Field(default_factory=list, description="Allowed values of a select field")


class CollectionOut(BaseModel):
    """A categorized list managed by the console."""
    key: str = Field(..., examples=["correspondence"])
    title: str = Field(..., examples=["Correspondence"])
    fields: list[FieldOut]
    date_field: str | None = Field(None, description="Field matched by the date filter")
    number_field: str | None = Field(None, description="Field matched by the number filter")
    has_status: bool = Field(False, description="Records carry a status and history log")

    @classmethod
    def from_spec(cls, spec: CollectionSpec) -> "CollectionOut":
        return cls(
            key=spec.key,
            title=spec.title,
            fields=[
                FieldOut(name=f.name, label=f.label, kind=f.kind,
                         required=f.required, options=list(f.options))
                for f in spec.fields
            ],
            date_field=spec.date_field,
            number_field=spec.number_field,
            has_status=spec.has_status,
        )


# ── Record models ─────────────────────────────────────────────────────────────

class HistoryEntryOut(BaseModel):
    """One status change on a correspondence record."""
    action: str = Field(..., description="Status set by this change", examples=["completed"])
    comment: str = ""
    timestamp: datetime | None = None
    actor: str = Field("", description="uid of the user who made the change")


class RecordOut(BaseModel):
    """A stored record with its system fields and catalog field values."""
    id: str = Field(..., examples=["8bX0qk2Yh1"])
    collection: str = Field(..., examples=["circulars"])
    region: str = Field(..., examples=["north"])
    fields: dict[str, Any] = Field(default_factory=dict, description="Catalog field values")
    created_at: datetime | None = None
    created_by: str | None = None
    updated_at: datetime | None = None
    status: str | None = Field(None, description="Only on collections with a status")
    history: list[HistoryEntryOut] | None = Field(None, description="Oldest first")

    @classmethod
    def from_record(cls, collection: CollectionSpec, record: dict[str, Any]) -> "RecordOut":
        return cls(
            id=record["id"],
            collection=collection.key,
            region=record.get("region") or "",
            fields={k: v for k, v in record.items() if k not in SYSTEM_FIELDS},
            created_at=record.get("created_at"),
            created_by=record.get("created_by"),
            updated_at=record.get("updated_at"),
            status=record.get("status") if collection.has_status else None,
            history=(record.get("history") or []) if collection.has_status else None,
        )


class RecordListResponse(BaseModel):
    """Response body for GET /api/v1/records/{collection}."""
    collection: str
    region: str
    total: int = Field(..., description="Matching records before pagination", examples=[42])
    limit: int = Field(..., examples=[25])
    offset: int = Field(..., examples=[0])
    filters: dict[str, str] = Field(default_factory=dict, description="Active filter criteria")
    items: list[RecordOut]


class RecordIn(BaseModel):
    """Request body for creating or updating a record."""
    region: str | None = Field(None, description="Target region; scoped users may omit it")
    fields: dict[str, Any] = Field(..., description="Catalog field values")


class StatusChangeIn(BaseModel):
    """Request body for POST /records/{collection}/{id}/status."""
    status: str = Field(..., examples=["in_progress"])
    comment: str | None = Field(None, max_length=2000)


# ── Dashboard ─────────────────────────────────────────────────────────────────

class CollectionCount(BaseModel):
    key: str
    title: str
    total: int


class DashboardOut(BaseModel):
    """Response body for GET /api/v1/dashboard/summary."""
    region: str
    region_name: str
    collections: list[CollectionCount]
    statuses: dict[str, int] = Field(..., description="Correspondence count per status")


# ── Error model ───────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """Standard error response body."""
    error: str = Field(..., description="Short error category", examples=["Bad request"])
    detail: str | None = Field(None, description="Extended error detail")
    status_code: int = Field(..., ge=400, le=599, description="HTTP status code", examples=[400])
    errors: dict[str, str] | None = Field(None, description="Per-field validation messages")
