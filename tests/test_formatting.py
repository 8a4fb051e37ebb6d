"""Tests for utils/formatting.py and utils/strings.py."""
from datetime import date, datetime, timezone

import pytest

from utils.formatting import export_cell, format_status, format_timestamp
from utils.strings import fold_text, normalize_whitespace, parse_iso_date


class TestFormatTimestamp:
    def test_none_and_blank(self):
        assert format_timestamp(None) == "-"
        assert format_timestamp("") == "-"

    def test_naive_datetime(self):
        assert format_timestamp(datetime(2024, 3, 31, 14, 5)) == "2024-03-31 14:05"

    def test_date_only(self):
        assert format_timestamp(datetime(2024, 3, 31, 14, 5), with_time=False) == "2024-03-31"
        assert format_timestamp(date(2024, 3, 31)) == "2024-03-31"

    def test_aware_datetime_converted(self):
        text = format_timestamp(datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc))
        assert text == datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc).astimezone().strftime("%Y-%m-%d %H:%M")

    def test_string_passthrough(self):
        assert format_timestamp("2024-03-31") == "2024-03-31"


class TestFormatStatus:
    def test_label(self):
        assert format_status("in_progress") == "In progress"

    def test_unknown_passthrough(self):
        assert format_status("legacy") == "legacy"

    def test_missing(self):
        assert format_status(None) == "-"


class TestExportCell:
    def test_values(self):
        assert export_cell(None) == ""
        assert export_cell("x") == "x"
        assert export_cell(3) == 3
        assert export_cell([{"action": "new"}, {"action": "pending"}]) == 2
        assert export_cell(datetime(2024, 1, 2, 3, 4)) == "2024-01-02 03:04"


class TestStrings:
    def test_normalize_whitespace(self):
        assert normalize_whitespace("  a \t b\n\nc ") == "a b c"

    def test_fold_text(self):
        assert fold_text("  Budget  REPORT ") == "budget report"
        assert fold_text(None) == ""
        assert fold_text(2024) == "2024"
        assert fold_text("مـيـزانـيّة") == "ميزانية"

    def test_parse_iso_date(self):
        assert parse_iso_date("2024-03-31") == date(2024, 3, 31)
        assert parse_iso_date(" ") is None
        assert parse_iso_date(None) is None
        assert parse_iso_date(datetime(2024, 3, 31, 8, 0)) == date(2024, 3, 31)

    @pytest.mark.parametrize("bad", ["31/03/2024", "2024-3-31", "2024-13-01"])
    def test_parse_iso_date_invalid(self, bad):
        with pytest.raises(ValueError):
            parse_iso_date(bad)
