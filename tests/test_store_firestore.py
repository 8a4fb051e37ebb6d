"""Tests for api/store.py: FirestoreStore against a mocked client."""
from unittest.mock import MagicMock

import pytest
from firebase_admin import firestore
from google.api_core.exceptions import PermissionDenied, ServiceUnavailable

from api import store as store_module
from api.store import FirestoreStore, StoreError, get_store, set_store
from conftest import MemoryStore


def snapshot(doc_id, data, exists=True):
    snap = MagicMock()
    snap.id = doc_id
    snap.exists = exists
    snap.to_dict.return_value = dict(data)
    return snap


@pytest.fixture()
def client():
    return MagicMock()


@pytest.fixture()
def fs(client):
    return FirestoreStore(client)


class TestListing:
    def test_query_filters_region_and_orders_newest_first(self, fs, client):
        query = client.collection.return_value.where.return_value.order_by.return_value
        query.stream.return_value = [snapshot("a", {"title": "A", "region": "north"})]

        records = fs.list_records("circulars", "north")

        assert records == [{"title": "A", "region": "north", "id": "a"}]
        client.collection.assert_called_with("circulars")
        field_filter = client.collection.return_value.where.call_args.kwargs["filter"]
        assert (field_filter.field_path, field_filter.op_string, field_filter.value) == (
            "region", "==", "north",
        )
        client.collection.return_value.where.return_value.order_by.assert_called_with(
            "created_at", direction=firestore.Query.DESCENDING
        )

    def test_sdk_error_wrapped(self, fs, client):
        query = client.collection.return_value.where.return_value.order_by.return_value
        query.stream.side_effect = ServiceUnavailable("backend down")
        with pytest.raises(StoreError, match="Listing records failed"):
            fs.list_records("circulars", "north")


class TestDocuments:
    def test_get_existing(self, fs, client):
        client.collection.return_value.document.return_value.get.return_value = snapshot(
            "r1", {"title": "T"}
        )
        assert fs.get_record("reports", "r1") == {"title": "T", "id": "r1"}
        client.collection.return_value.document.assert_called_with("r1")

    def test_get_missing(self, fs, client):
        client.collection.return_value.document.return_value.get.return_value = snapshot(
            "r1", {}, exists=False
        )
        assert fs.get_record("reports", "r1") is None

    def test_add_stamps_server_timestamp(self, fs, client):
        ref = MagicMock()
        ref.id = "new-id"
        client.collection.return_value.add.return_value = (None, ref)

        assert fs.add_record("circulars", {"title": "T", "region": "north"}) == "new-id"
        sent = client.collection.return_value.add.call_args.args[0]
        assert sent["title"] == "T"
        assert sent["created_at"] is firestore.SERVER_TIMESTAMP

    def test_update_stamps_updated_at(self, fs, client):
        fs.update_record("circulars", "r1", {"title": "New"})
        doc = client.collection.return_value.document.return_value
        doc.update.assert_called_once_with(
            {"title": "New", "updated_at": firestore.SERVER_TIMESTAMP}
        )

    def test_delete(self, fs, client):
        fs.delete_record("circulars", "r1")
        client.collection.return_value.document.return_value.delete.assert_called_once_with()

    def test_permission_error_wrapped(self, fs, client):
        client.collection.return_value.document.return_value.delete.side_effect = (
            PermissionDenied("rules")
        )
        with pytest.raises(StoreError, match="Deleting record failed"):
            fs.delete_record("circulars", "r1")


class TestAppendHistory:
    def test_single_update_with_array_union(self, fs, client):
        entry = {"action": "completed", "comment": "done", "actor": "u1", "timestamp": "t"}
        fs.append_history("correspondence", "r1", "completed", entry)

        doc = client.collection.return_value.document.return_value
        doc.update.assert_called_once()
        payload = doc.update.call_args.args[0]
        assert payload["status"] == "completed"
        assert isinstance(payload["history"], firestore.ArrayUnion)
        assert payload["history"].values == [entry]
        assert payload["updated_at"] is firestore.SERVER_TIMESTAMP


class TestWatch:
    def test_every_snapshot_with_changes_reported(self, fs, client):
        query = client.collection.return_value.where.return_value.order_by.return_value
        changes = []

        unsubscribe = fs.watch("circulars", "north", lambda: changes.append(1))
        callback = query.on_snapshot.call_args.args[0]

        callback([], ["added"], None)   # initial listing
        callback([], ["modified"], None)
        callback([], [], None)
        assert changes == [1, 1]
        assert unsubscribe is query.on_snapshot.return_value.unsubscribe

    def test_ping(self, fs, client):
        fs.ping()
        client.collection.assert_called_with("correspondence")
        client.collection.return_value.limit.assert_called_with(1)


class TestProcessStore:
    def test_injected_store_used(self):
        memory = MemoryStore()
        set_store(memory)
        try:
            assert get_store() is memory
        finally:
            set_store(None)

    def test_lazy_connect(self, monkeypatch):
        created = MagicMock()
        monkeypatch.setattr(store_module, "connect_firestore", lambda cfg: created)
        set_store(None)
        try:
            assert get_store() is created
            assert get_store() is created
        finally:
            set_store(None)
