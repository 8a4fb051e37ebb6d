"""
Listing cache with live invalidation.

Fetched listings (one collection in one region) are kept in a TTLCache.  The
first time a listing is loaded a Firestore snapshot listener is registered
for it; every later change pushed by the service drops the cached listing
and bumps its version.  Writes made through this process invalidate
directly, without waiting for the listener.

The version feeds the weak ETag on JSON list responses, so clients polling
an unchanged listing get 304 Not Modified.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any

from api.store import DocumentStore, StoreError, Unsubscribe
from utils.cache import TTLCache

logger = logging.getLogger(__name__)

ListingKey = tuple[str, str]


class ListingCache:
    """Per-(collection, region) listing cache fed by snapshot listeners."""

    def __init__(self, ttl_seconds: float = 60.0, maxsize: int = 256) -> None:
        self._cache = TTLCache(maxsize=maxsize, ttl_seconds=ttl_seconds)
        self._versions: dict[ListingKey, int] = {}
        self._watches: dict[ListingKey, Unsubscribe] = {}
        self._lock = threading.RLock()
        # Distinguishes ETags of this process from those of a previous run.
        self._boot = uuid.uuid4().hex[:8]

    def load(self, store: DocumentStore, collection: str, region: str) -> list[dict[str, Any]]:
        """Return the listing, fetching it from *store* on a cache miss.

        Raises:
            StoreError: if the fetch fails.
        """
        key = (collection, region)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        # The listener goes up before the fetch so no change can fall between them.
        watched = self._ensure_watch(store, key)
        with self._lock:
            if not watched:
                # Unwatched listings may have changed unseen; never reuse their ETag.
                self._versions[key] = self._versions.get(key, 0) + 1
            seen = self._versions.get(key, 0)
        records = store.list_records(collection, region)
        with self._lock:
            if self._versions.get(key, 0) == seen:
                self._cache.set(key, records)
        return records

    def _ensure_watch(self, store: DocumentStore, key: ListingKey) -> bool:
        """Register a snapshot listener for *key* once; return True if watched."""
        with self._lock:
            if key in self._watches:
                return True
            try:
                self._watches[key] = store.watch(
                    key[0], key[1], lambda: self.invalidate(*key)
                )
            except StoreError:
                # Listing still works, it just refreshes on TTL expiry only.
                logger.warning("live updates unavailable for %s/%s", *key, exc_info=True)
                return False
            return True

    def invalidate(self, collection: str, region: str) -> None:
        """Drop the cached listing and bump its version."""
        key = (collection, region)
        with self._lock:
            self._cache.delete(key)
            self._versions[key] = self._versions.get(key, 0) + 1
        logger.debug("listing invalidated collection=%s region=%s", collection, region)

    def version(self, collection: str, region: str) -> int:
        with self._lock:
            return self._versions.get((collection, region), 0)

    def etag(self, collection: str, region: str) -> str:
        """Weak ETag identifying the current state of a listing."""
        return f'W/"{self._boot}-{collection}-{region}-{self.version(collection, region)}"'

    def watched(self) -> list[ListingKey]:
        with self._lock:
            return sorted(self._watches)

    def close(self) -> None:
        """Stop every snapshot listener and empty the cache (app shutdown)."""
        with self._lock:
            watches, self._watches = self._watches, {}
        for key, unsubscribe in watches.items():
            try:
                unsubscribe()
            except Exception:
                logger.warning("failed to unsubscribe %s/%s", *key, exc_info=True)
        self._cache.clear()


# ── Process-wide cache ─────────────────────────────────────────────────────────

_listings: ListingCache | None = None


def set_listings(listings: ListingCache | None) -> None:
    global _listings
    _listings = listings


def get_listings() -> ListingCache:
    """FastAPI dependency: return the process-wide ListingCache."""
    global _listings
    if _listings is None:
        _listings = ListingCache()
    return _listings
