"""
Record operations shared by the JSON API and the console pages.

RecordService holds the few rules the console has:
- every record belongs to exactly one region and never moves;
- an actor with a region claim only sees and touches that region;
- writes only accept catalog fields (utils.catalog);
- a status change appends one history entry (utils.status).

Errors:
    UnknownCollection / RecordNotFound -> 404
    AccessDenied                      -> 403
    ValueError (incl. RecordValidationError) -> 400
    StoreError (from the store)       -> 502
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends

from api.auth import Actor
from api.live import ListingCache, get_listings
from api.store import DocumentStore, get_store
from utils.catalog import COLLECTIONS, CollectionSpec, get_collection
from utils.config import AppConfig, get_config
from utils.filters import ListFilters, filter_records
from utils.status import DEFAULT_STATUS, STATUSES, apply_status_change

logger = logging.getLogger(__name__)


class RecordNotFound(LookupError):
    """The record (or collection) does not exist."""


class UnknownCollection(RecordNotFound):
    """The collection is not in the catalog."""


class AccessDenied(PermissionError):
    """The actor's region scope does not cover the requested region."""


def paginate(items: list[Any], page: int, page_size: int) -> tuple[list[Any], int, int]:
    """Slice *items* for a 1-based *page*.

    Returns:
        (page_items, page, total_pages); *page* is clamped to the valid range.
    """
    total_pages = max(1, (len(items) + page_size - 1) // page_size)
    page = min(max(1, page), total_pages)
    start = (page - 1) * page_size
    return items[start:start + page_size], page, total_pages


class RecordService:
    """CRUD, filtering and status changes over the document store."""

    def __init__(self, store: DocumentStore, listings: ListingCache, cfg: AppConfig) -> None:
        self.store = store
        self.listings = listings
        self.cfg = cfg

    # ── Lookup helpers ───────────────────────────────────────────────────────

    @staticmethod
    def spec(collection: str) -> CollectionSpec:
        try:
            return get_collection(collection)
        except KeyError as exc:
            raise UnknownCollection(str(exc.args[0])) from None

    def resolve_region(self, actor: Actor, requested: str | None = None) -> str:
        """Return the region an actor works in for this request.

        Scoped actors are pinned to their claim; unscoped actors may pick any
        configured region and default to APP_DEFAULT_REGION.
        """
        requested = (requested or "").strip() or None
        if actor.region:
            if requested and requested != actor.region:
                raise AccessDenied(
                    f"Access to region {requested!r} is not permitted"
                )
            if actor.region not in self.cfg.regions:
                raise AccessDenied(f"Region {actor.region!r} is not configured")
            return actor.region
        region = requested or self.cfg.default_region
        if region not in self.cfg.regions:
            raise ValueError(f"Unknown region {region!r}")
        return region

    def _check_scope(self, actor: Actor, record: dict[str, Any]) -> None:
        if actor.region and record.get("region") != actor.region:
            raise AccessDenied("Record belongs to another region")

    def _load(self, spec: CollectionSpec, record_id: str, actor: Actor) -> dict[str, Any]:
        record = self.store.get_record(spec.key, record_id)
        if record is None:
            raise RecordNotFound(f"{spec.title} record {record_id} not found")
        self._check_scope(actor, record)
        return record

    # ── Reads ────────────────────────────────────────────────────────────────

    def list_records(
        self,
        collection: str,
        actor: Actor,
        region: str | None = None,
        filters: ListFilters | None = None,
    ) -> tuple[str, list[dict[str, Any]]]:
        """Return ``(region, records)``: the region's listing with filters applied."""
        spec = self.spec(collection)
        region = self.resolve_region(actor, region)
        records = self.listings.load(self.store, spec.key, region)
        return region, filter_records(records, spec, filters or ListFilters())

    def get_record(self, collection: str, record_id: str, actor: Actor) -> dict[str, Any]:
        return self._load(self.spec(collection), record_id, actor)

    def dashboard(self, actor: Actor, region: str | None = None) -> dict[str, Any]:
        """Per-collection totals plus the correspondence status breakdown."""
        region = self.resolve_region(actor, region)
        collections = []
        statuses: Counter[str] = Counter()
        for spec in COLLECTIONS.values():
            records = self.listings.load(self.store, spec.key, region)
            collections.append({"key": spec.key, "title": spec.title, "total": len(records)})
            if spec.has_status:
                statuses.update(r.get("status") or DEFAULT_STATUS for r in records)
        return {
            "region": region,
            "region_name": self.cfg.region_name(region),
            "collections": collections,
            "statuses": {s: statuses.get(s, 0) for s in STATUSES},
        }

    # ── Writes ───────────────────────────────────────────────────────────────

    def create_record(
        self,
        collection: str,
        values: dict[str, Any],
        actor: Actor,
        region: str | None = None,
    ) -> dict[str, Any]:
        spec = self.spec(collection)
        region = self.resolve_region(actor, region or values.get("region"))
        data = spec.clean(values)
        data.update({"region": region, "created_by": actor.uid})
        if spec.has_status:
            data.update({"status": DEFAULT_STATUS, "history": []})

        record_id = self.store.add_record(spec.key, data)
        self.listings.invalidate(spec.key, region)
        logger.info("record created collection=%s id=%s region=%s by=%s",
                    spec.key, record_id, region, actor.uid)
        return self.store.get_record(spec.key, record_id) or {**data, "id": record_id}

    def update_record(
        self,
        collection: str,
        record_id: str,
        values: dict[str, Any],
        actor: Actor,
    ) -> dict[str, Any]:
        spec = self.spec(collection)
        record = self._load(spec, record_id, actor)
        new_region = values.get("region")
        if new_region and new_region != record.get("region"):
            raise ValueError("Records cannot be moved to another region")
        changes = spec.clean(values, partial=True)
        if not changes:
            raise ValueError("No fields to update")

        self.store.update_record(spec.key, record_id, changes)
        self.listings.invalidate(spec.key, record["region"])
        logger.info("record updated collection=%s id=%s fields=%s by=%s",
                    spec.key, record_id, ",".join(sorted(changes)), actor.uid)
        return {**record, **changes, "updated_at": datetime.now(timezone.utc)}

    def delete_record(self, collection: str, record_id: str, actor: Actor) -> None:
        spec = self.spec(collection)
        record = self._load(spec, record_id, actor)
        self.store.delete_record(spec.key, record_id)
        self.listings.invalidate(spec.key, record["region"])
        logger.info("record deleted collection=%s id=%s by=%s", spec.key, record_id, actor.uid)

    def change_status(
        self,
        collection: str,
        record_id: str,
        new_status: str,
        comment: str | None,
        actor: Actor,
    ) -> dict[str, Any]:
        """Overwrite the status and append one history entry."""
        spec = self.spec(collection)
        if not spec.has_status:
            raise ValueError(f"{spec.title} records have no status")
        record = self._load(spec, record_id, actor)
        updated = apply_status_change(record, new_status, comment, actor.uid)

        self.store.append_history(spec.key, record_id, new_status, updated["history"][-1])
        self.listings.invalidate(spec.key, record["region"])
        logger.info("status changed collection=%s id=%s %s->%s by=%s",
                    spec.key, record_id, record.get("status"), new_status, actor.uid)
        return updated


def get_service(
    store: DocumentStore = Depends(get_store),
    listings: ListingCache = Depends(get_listings),
    cfg: AppConfig = Depends(get_config),
) -> RecordService:
    """FastAPI dependency: a RecordService bound to the process-wide collaborators."""
    return RecordService(store, listings, cfg)
