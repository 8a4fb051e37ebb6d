"""
Pytest fixtures for the governorate console tests.

Provides an in-memory DocumentStore, a token verifier that maps fixed
tokens to claims, an AppConfig with two regions, and a TestClient wired to
all three through create_app().
"""

import copy
import itertools
import sys
import time
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from api.auth import AuthError, TokenVerifier  # noqa: E402
from api.store import DocumentStore, StoreError  # noqa: E402
from utils.config import AppConfig  # noqa: E402


# ── In-memory store ───────────────────────────────────────────────────────────

class MemoryStore(DocumentStore):
    """DocumentStore keeping documents in dicts.

    Writes notify watchers of the affected (collection, region) listing
    synchronously, like a Firestore snapshot listener would.  Set
    ``fail = True`` to make every call raise StoreError.
    """

    def __init__(self) -> None:
        self.docs: dict[str, dict[str, dict]] = {}
        self.watchers: dict[tuple[str, str], list] = {}
        self.list_calls = 0
        self.fail = False
        self._clock = itertools.count()
        self._epoch = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _check(self) -> None:
        if self.fail:
            raise StoreError("store unavailable")

    def _notify(self, collection: str, region: str) -> None:
        for callback in list(self.watchers.get((collection, region), [])):
            callback()

    def seed(self, collection: str, **data) -> str:
        """Insert a document directly, bypassing validation and watchers."""
        record_id = data.pop("id", None) or uuid.uuid4().hex[:12]
        data.setdefault("created_at", self._epoch + timedelta(minutes=next(self._clock)))
        self.docs.setdefault(collection, {})[record_id] = data
        return record_id

    def list_records(self, collection, region):
        self._check()
        self.list_calls += 1
        rows = [
            {**copy.deepcopy(d), "id": rid}
            for rid, d in self.docs.get(collection, {}).items()
            if d.get("region") == region
        ]
        return sorted(rows, key=lambda r: r["created_at"], reverse=True)

    def get_record(self, collection, record_id):
        self._check()
        doc = self.docs.get(collection, {}).get(record_id)
        return None if doc is None else {**copy.deepcopy(doc), "id": record_id}

    def add_record(self, collection, data):
        self._check()
        record_id = self.seed(collection, **copy.deepcopy(data))
        self._notify(collection, data.get("region"))
        return record_id

    def update_record(self, collection, record_id, changes):
        self._check()
        doc = self.docs[collection][record_id]
        doc.update(copy.deepcopy(changes))
        doc["updated_at"] = datetime.now(timezone.utc)
        self._notify(collection, doc.get("region"))

    def delete_record(self, collection, record_id):
        self._check()
        doc = self.docs[collection].pop(record_id)
        self._notify(collection, doc.get("region"))

    def append_history(self, collection, record_id, status, entry):
        self._check()
        doc = self.docs[collection][record_id]
        doc["status"] = status
        doc["history"] = list(doc.get("history") or []) + [copy.deepcopy(entry)]
        doc["updated_at"] = datetime.now(timezone.utc)
        self._notify(collection, doc.get("region"))

    def watch(self, collection, region, on_change):
        self._check()
        callbacks = self.watchers.setdefault((collection, region), [])
        callbacks.append(on_change)
        return lambda: callbacks.remove(on_change)

    def ping(self):
        self._check()


# ── Token verifier ────────────────────────────────────────────────────────────

def make_claims(uid: str, region: str | None = None, provider: str = "password",
                **extra) -> dict:
    claims = {
        "uid": uid,
        "name": extra.pop("name", uid.title()),
        "email": extra.pop("email", f"{uid}@example.org"),
        "auth_time": extra.pop("auth_time", time.time()),
        "firebase": {"sign_in_provider": provider},
        **extra,
    }
    if region:
        claims["region"] = region
    return claims


class FakeVerifier(TokenVerifier):
    """TokenVerifier answering from fixed token→claims maps."""

    def __init__(self, cfg: AppConfig, tokens: dict[str, dict]) -> None:
        super().__init__(cfg)
        self.tokens = tokens
        self.cookies: dict[str, dict] = {}
        self.revoked: list[str] = []

    def verify_id_token(self, token):
        if token not in self.tokens:
            raise AuthError("Invalid ID token")
        return self.tokens[token]

    def verify_session_cookie(self, cookie):
        if cookie not in self.cookies:
            raise AuthError("Invalid session cookie")
        return self.cookies[cookie]

    def create_session_cookie(self, id_token, expires_in):
        cookie = f"cookie-{id_token}"
        self.cookies[cookie] = self.verify_id_token(id_token)
        return cookie

    def revoke(self, uid):
        self.revoked.append(uid)


ADMIN = {"Authorization": "Bearer admin-token"}
NORTH = {"Authorization": "Bearer north-token"}
ANON = {"Authorization": "Bearer anon-token"}


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def cfg(monkeypatch):
    """AppConfig with two regions and no polling, independent of the host env."""
    for name in ("APP_DEFAULT_REGION", "APP_ALLOW_ANONYMOUS", "APP_SESSION_COOKIE",
                 "APP_PAGE_SIZE", "APP_LIST_CACHE_SECONDS", "APP_POLL_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("APP_REGIONS", "north:Northern Governorate,south:Southern Governorate")
    config = AppConfig()
    config.poll_seconds = 0
    return config


@pytest.fixture()
def store():
    return MemoryStore()


@pytest.fixture()
def verifier(cfg):
    return FakeVerifier(cfg, {
        "admin-token": make_claims("admin"),
        "north-token": make_claims("clerk", region="north"),
        "anon-token": make_claims("anon", provider="anonymous"),
    })


@pytest.fixture()
def app(store, cfg, verifier):
    from api.app import create_app
    from api.live import ListingCache

    return create_app(store=store, config=cfg, verifier=verifier,
                      listings=ListingCache(ttl_seconds=60))


@pytest.fixture()
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def seeded(store):
    """A few documents in both regions; returns their ids by name."""
    return {
        "letter_north": store.seed(
            "correspondence", number="2024/117", subject="Water network budget",
            direction="incoming", sender="Ministry of Finance", date="2024-03-31",
            region="north", status="new", history=[], created_by="admin",
        ),
        "letter_north_2": store.seed(
            "correspondence", number="2024/205", subject="School maintenance",
            direction="outgoing", recipient="Education Directorate", date="2024-04-02",
            region="north", status="pending", history=[], created_by="admin",
        ),
        "letter_south": store.seed(
            "correspondence", number="2024/300", subject="Road works",
            direction="incoming", date="2024-03-31",
            region="south", status="new", history=[], created_by="admin",
        ),
        "circular_north": store.seed(
            "circulars", number="12", title="Working hours in Ramadan",
            issuer="Governor", date="2024-03-10", region="north", created_by="admin",
        ),
    }
