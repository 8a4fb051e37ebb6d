"""Tests for utils/catalog.py: collection catalog and payload validation."""
import pytest

from utils.catalog import (
    COLLECTIONS,
    SYSTEM_FIELDS,
    CollectionSpec,
    FieldSpec,
    RecordValidationError,
    get_collection,
)


class TestCatalog:
    def test_expected_collections(self):
        assert set(COLLECTIONS) == {
            "correspondence", "activities", "reports", "circulars",
            "human_resources", "decisions",
        }

    def test_only_correspondence_has_status(self):
        assert [k for k, s in COLLECTIONS.items() if s.has_status] == ["correspondence"]

    def test_filter_fields_exist(self):
        for spec in COLLECTIONS.values():
            if spec.date_field:
                assert spec.get_field(spec.date_field).kind == "date"
            if spec.number_field:
                assert spec.get_field(spec.number_field) is not None

    def test_no_field_shadows_system_keys(self):
        for spec in COLLECTIONS.values():
            assert not SYSTEM_FIELDS & set(spec.field_names)

    def test_get_collection_unknown(self):
        with pytest.raises(KeyError, match="Unknown collection"):
            get_collection("budgets")

    def test_columns_use_summary_fields(self):
        spec = get_collection("correspondence")
        assert [f.name for f in spec.columns] == ["number", "subject", "direction", "sender", "date"]

    def test_columns_default_skips_textareas(self):
        spec = get_collection("decisions")
        assert [f.name for f in spec.columns] == ["number", "title", "date"]

    def test_text_fields_exclude_dates(self):
        assert "date" not in get_collection("circulars").text_fields


class TestFieldSpec:
    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            FieldSpec("x", "X", kind="blob")

    def test_select_needs_options(self):
        with pytest.raises(ValueError):
            FieldSpec("x", "X", kind="select")


class TestClean:
    spec = get_collection("correspondence")

    def valid(self, **overrides):
        values = {"number": "2024/1", "subject": "Budget", "direction": "incoming",
                  "date": "2024-03-31"}
        values.update(overrides)
        return values

    def test_valid_values_trimmed(self):
        cleaned = self.spec.clean(self.valid(subject="  Annual   budget ", notes="  line one\nline two  "))
        assert cleaned["subject"] == "Annual budget"
        assert cleaned["notes"] == "line one\nline two"

    def test_unknown_and_system_keys_dropped(self):
        cleaned = self.spec.clean(self.valid(region="south", status="completed", colour="red"))
        assert "region" not in cleaned
        assert "status" not in cleaned
        assert "colour" not in cleaned

    def test_missing_required_reported_per_field(self):
        with pytest.raises(RecordValidationError) as exc_info:
            self.spec.clean({"subject": "Budget"})
        assert set(exc_info.value.errors) == {"number", "direction", "date"}

    def test_validation_error_is_value_error(self):
        assert issubclass(RecordValidationError, ValueError)

    def test_bad_date(self):
        with pytest.raises(RecordValidationError) as exc_info:
            self.spec.clean(self.valid(date="2024-02-30"))
        assert "date" in exc_info.value.errors

    def test_select_option_enforced(self):
        with pytest.raises(RecordValidationError) as exc_info:
            self.spec.clean(self.valid(direction="sideways"))
        assert "direction" in exc_info.value.errors

    def test_optional_blank_kept_as_empty(self):
        assert self.spec.clean(self.valid(sender="   "))["sender"] == ""

    def test_partial_skips_missing_required(self):
        assert self.spec.clean({"subject": "New subject"}, partial=True) == {"subject": "New subject"}

    def test_partial_rejects_blanked_required(self):
        with pytest.raises(RecordValidationError):
            self.spec.clean({"subject": " "}, partial=True)

    def test_none_treated_as_blank(self):
        with pytest.raises(RecordValidationError):
            self.spec.clean(self.valid(number=None))

    def test_custom_spec(self):
        spec = CollectionSpec(key="notes", title="Notes",
                              fields=(FieldSpec("title", "Title", required=True),))
        assert spec.clean({"title": "x"}) == {"title": "x"}
        assert spec.columns[0].name == "title"
