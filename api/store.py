"""
Document store access for the API.

All persistence lives in Cloud Firestore; this module is the only place that
talks to it.  ``DocumentStore`` is the seam the rest of the application
depends on, ``FirestoreStore`` is the production implementation on top of
the ``firebase-admin`` SDK.

Provides a get_store() dependency returning the process-wide store.  The
store is created lazily on first use from AppConfig (service-account file
from FIREBASE_CREDENTIALS, otherwise Application Default Credentials), or
injected by create_app(store=...) in tests.

Listing queries filter on ``region`` and order by ``created_at`` descending,
which needs a composite index (region ASC, created_at DESC) per collection.
"""

from __future__ import annotations

import functools
import logging
import threading
from typing import Any, Callable

import firebase_admin
from firebase_admin import credentials, firestore
from firebase_admin.exceptions import FirebaseError
from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore_v1.base_query import FieldFilter

from utils.catalog import COLLECTIONS
from utils.config import AppConfig, get_config

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A call into the document store failed (network, permission, quota...)."""


Unsubscribe = Callable[[], None]


class DocumentStore:
    """Interface to the external document database.

    Records are plain dicts; ``list_records`` and ``get_record`` include the
    document id under ``"id"``.  Implementations raise ``StoreError`` for any
    service-side failure.
    """

    def list_records(self, collection: str, region: str) -> list[dict[str, Any]]:
        """Return the region's records, newest ``created_at`` first."""
        raise NotImplementedError

    def get_record(self, collection: str, record_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def add_record(self, collection: str, data: dict[str, Any]) -> str:
        """Insert *data*, stamping ``created_at``; return the new document id."""
        raise NotImplementedError

    def update_record(self, collection: str, record_id: str, changes: dict[str, Any]) -> None:
        """Overwrite the given fields and stamp ``updated_at``."""
        raise NotImplementedError

    def delete_record(self, collection: str, record_id: str) -> None:
        raise NotImplementedError

    def append_history(
        self, collection: str, record_id: str, status: str, entry: dict[str, Any]
    ) -> None:
        """Set ``status`` and append *entry* to ``history`` in one document update."""
        raise NotImplementedError

    def watch(
        self, collection: str, region: str, on_change: Callable[[], None]
    ) -> Unsubscribe:
        """Call *on_change* whenever the region's listing changes.

        Returns a callable that stops the subscription.
        """
        raise NotImplementedError

    def ping(self) -> None:
        """Raise ``StoreError`` if the store cannot be reached."""
        raise NotImplementedError


def _wrap_errors(action: str):
    """Decorator: translate SDK exceptions into StoreError with context."""
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except (GoogleAPIError, FirebaseError) as exc:
                raise StoreError(f"{action} failed: {exc}") from exc
        return wrapper
    return decorator


class FirestoreStore(DocumentStore):
    """DocumentStore backed by a ``google.cloud.firestore.Client``."""

    def __init__(self, client) -> None:
        self._client = client

    def _listing_query(self, collection: str, region: str):
        return (
            self._client.collection(collection)
            .where(filter=FieldFilter("region", "==", region))
            .order_by("created_at", direction=firestore.Query.DESCENDING)
        )

    @_wrap_errors("Listing records")
    def list_records(self, collection: str, region: str) -> list[dict[str, Any]]:
        records = []
        for snap in self._listing_query(collection, region).stream():
            records.append({**snap.to_dict(), "id": snap.id})
        return records

    @_wrap_errors("Reading record")
    def get_record(self, collection: str, record_id: str) -> dict[str, Any] | None:
        snap = self._client.collection(collection).document(record_id).get()
        if not snap.exists:
            return None
        return {**snap.to_dict(), "id": snap.id}

    @_wrap_errors("Creating record")
    def add_record(self, collection: str, data: dict[str, Any]) -> str:
        _, ref = self._client.collection(collection).add(
            {**data, "created_at": firestore.SERVER_TIMESTAMP}
        )
        return ref.id

    @_wrap_errors("Updating record")
    def update_record(self, collection: str, record_id: str, changes: dict[str, Any]) -> None:
        self._client.collection(collection).document(record_id).update(
            {**changes, "updated_at": firestore.SERVER_TIMESTAMP}
        )

    @_wrap_errors("Deleting record")
    def delete_record(self, collection: str, record_id: str) -> None:
        self._client.collection(collection).document(record_id).delete()

    @_wrap_errors("Updating status")
    def append_history(
        self, collection: str, record_id: str, status: str, entry: dict[str, Any]
    ) -> None:
        # SERVER_TIMESTAMP is not allowed inside arrays; the entry carries its own.
        self._client.collection(collection).document(record_id).update({
            "status": status,
            "history": firestore.ArrayUnion([entry]),
            "updated_at": firestore.SERVER_TIMESTAMP,
        })

    @_wrap_errors("Subscribing to listing")
    def watch(
        self, collection: str, region: str, on_change: Callable[[], None]
    ) -> Unsubscribe:
        def _on_snapshot(docs, changes, read_time):
            # The initial snapshot counts too: it may hold writes a concurrent fetch missed.
            if changes:
                on_change()

        watcher = self._listing_query(collection, region).on_snapshot(_on_snapshot)
        return watcher.unsubscribe

    @_wrap_errors("Store health check")
    def ping(self) -> None:
        first = next(iter(COLLECTIONS))
        self._client.collection(first).limit(1).get()


def init_firebase(cfg: AppConfig) -> None:
    """Initialise the default Firebase app once (shared by Firestore and Auth)."""
    if not firebase_admin._apps:
        if cfg.firebase_credentials:
            cred = credentials.Certificate(cfg.firebase_credentials)
            logger.info("Firebase: initializing from %s", cfg.firebase_credentials)
        else:
            cred = credentials.ApplicationDefault()
            logger.info("Firebase: initializing from application default credentials")
        options = {"projectId": cfg.firebase_project_id} if cfg.firebase_project_id else None
        firebase_admin.initialize_app(cred, options)


def connect_firestore(cfg: AppConfig) -> FirestoreStore:
    """Return a FirestoreStore on the default Firebase app."""
    init_firebase(cfg)
    return FirestoreStore(firestore.client())


# ── Process-wide store ─────────────────────────────────────────────────────────

_store: DocumentStore | None = None
_store_lock = threading.Lock()


def set_store(store: DocumentStore | None) -> None:
    """Replace the process-wide store (create_app(store=...) and tests)."""
    global _store
    with _store_lock:
        _store = store


def get_store() -> DocumentStore:
    """FastAPI dependency: return the process-wide DocumentStore.

    Usage in a route::

        from api.store import get_store
        from fastapi import Depends

        @router.get("/example")
        def example(store=Depends(get_store)):
            ...
    """
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = connect_firestore(get_config())
    return _store
