"""Tests for utils/status.py: status enumeration and history."""
from datetime import datetime, timezone

import pytest

from utils.status import (
    DEFAULT_STATUS,
    STATUS_LABELS,
    STATUSES,
    apply_status_change,
    make_history_entry,
    validate_status,
)

WHEN = datetime(2024, 4, 1, 10, 30, tzinfo=timezone.utc)


class TestStatuses:
    def test_every_status_has_a_label(self):
        assert set(STATUS_LABELS) == set(STATUSES)

    def test_default_is_first(self):
        assert DEFAULT_STATUS == STATUSES[0] == "new"

    def test_validate_accepts_known(self):
        assert validate_status("archived") == "archived"

    def test_validate_rejects_unknown(self):
        with pytest.raises(ValueError, match="Unknown status"):
            validate_status("closed")


class TestMakeHistoryEntry:
    def test_fields(self):
        entry = make_history_entry("pending", "  waiting for reply ", "uid-1", WHEN)
        assert entry == {
            "action": "pending",
            "comment": "waiting for reply",
            "timestamp": WHEN,
            "actor": "uid-1",
        }

    def test_missing_comment_becomes_empty(self):
        assert make_history_entry("new", None, "uid-1")["comment"] == ""

    def test_default_timestamp_is_aware_utc(self):
        ts = make_history_entry("new", "", "uid-1")["timestamp"]
        assert ts.tzinfo is not None


class TestApplyStatusChange:
    def test_appends_one_entry_and_sets_status(self):
        record = {"id": "r1", "status": "new", "history": []}
        updated = apply_status_change(record, "completed", "done", "uid-2", WHEN)
        assert updated["status"] == "completed"
        assert len(updated["history"]) == 1
        assert updated["history"][0]["action"] == "completed"
        assert updated["updated_at"] == WHEN

    def test_input_not_mutated(self):
        record = {"id": "r1", "status": "new", "history": [{"action": "new"}]}
        apply_status_change(record, "pending", "", "uid-2", WHEN)
        assert record == {"id": "r1", "status": "new", "history": [{"action": "new"}]}

    def test_existing_history_kept_in_order(self):
        record = {"status": "pending", "history": [{"action": "in_progress"}, {"action": "pending"}]}
        updated = apply_status_change(record, "in_progress", "", "uid-2", WHEN)
        assert [h["action"] for h in updated["history"]] == ["in_progress", "pending", "in_progress"]

    def test_any_transition_allowed(self):
        record = {"status": "archived", "history": []}
        assert apply_status_change(record, "new", "", "uid-2")["status"] == "new"

    def test_same_status_still_logged(self):
        record = {"status": "pending", "history": []}
        updated = apply_status_change(record, "pending", "reminder sent", "uid-2")
        assert len(updated["history"]) == 1

    def test_missing_history_starts_list(self):
        updated = apply_status_change({"status": "new"}, "pending", "", "uid-2")
        assert len(updated["history"]) == 1

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            apply_status_change({"status": "new"}, "deleted", "", "uid-2")
