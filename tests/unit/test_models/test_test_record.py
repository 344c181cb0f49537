"""Unit tests for TestRecord and TestItem models."""

import pytest

from mes_pipeline.core.models.test_record import TestItem, TestRecord


class TestTestItem:
    """Test TestItem value and result coercion."""

    def test_nested_value_is_stringified(self):
        """Test dict/list values become JSON strings."""
        item = TestItem(name="Config", value={"mode": "fast"})

        assert item.value == '{"mode": "fast"}'

    def test_none_value_becomes_empty_string(self):
        """Test a missing value is stored as an empty string."""
        assert TestItem(name="Voltage", value=None).value == ""

    def test_numeric_value_kept(self):
        """Test numbers are not converted."""
        assert TestItem(name="Voltage", value=3.3).value == 3.3

    @pytest.mark.parametrize("raw,expected", [
        ("pass", "PASS"),
        (" Fail ", "FAIL"),
        ("N/A", "N/A"),
        (None, "UNKNOWN"),
        ("", "UNKNOWN"),
    ])
    def test_result_normalization(self, raw, expected):
        """Test PASS/FAIL spellings are upper-cased and other strings kept."""
        assert TestItem(name="x", result=raw).result == expected

    def test_failed_property(self):
        """Test failed is true only for FAIL."""
        assert TestItem(name="x", result="fail").failed
        assert not TestItem(name="x", result="PASS").failed
        assert not TestItem(name="x").failed


class TestTestRecord:
    """Test TestRecord derivation and serialization."""

    def test_derive_result_no_items_is_pass(self):
        """Test a record without items derives PASS."""
        assert TestRecord.derive_result([]) == "PASS"

    def test_derive_result_any_fail_is_fail(self):
        """Test one failed item makes the record FAIL."""
        items = [TestItem(name="a", result="PASS"), TestItem(name="b", result="FAIL")]

        assert TestRecord.derive_result(items) == "FAIL"

    def test_derive_result_unknown_items_are_pass(self):
        """Test items with non-FAIL results do not fail the record."""
        items = [TestItem(name="a", result="N/A"), TestItem(name="b")]

        assert TestRecord.derive_result(items) == "PASS"

    @pytest.mark.parametrize("raw,expected", [
        ("FAIL", "FAIL"),
        ("fail", "FAIL"),
        ("PASS", "PASS"),
        ("whatever", "PASS"),
        (None, "PASS"),
    ])
    def test_result_coerced_into_enum(self, raw, expected):
        """Test stored result spellings are coerced into PASS/FAIL."""
        assert TestRecord(result=raw).result == expected

    def test_storage_dict_uses_camel_case(self, make_record):
        """Test fallback serialization uses camelCase keys and omits a missing id."""
        record = make_record(work_order="WO-1", items=[{"name": "Voltage", "value": "3.3", "result": "PASS"}])

        data = record.to_storage_dict()

        assert data["serialNumber"] == "CH001"
        assert data["testTime"] == "2025-01-01 08:00:00"
        assert data["workOrder"] == "WO-1"
        assert data["items"] == [{"name": "Voltage", "value": "3.3", "result": "PASS"}]
        assert "id" not in data
        assert "serial_number" not in data

    def test_validate_from_camel_case(self, make_record):
        """Test records written to the fallback store read back unchanged."""
        record = make_record(items=[{"name": "Current", "value": 0.5, "result": "FAIL"}], result="FAIL")

        restored = TestRecord.model_validate(record.to_storage_dict())

        assert restored == record

    def test_failed_item_names(self, make_record):
        """Test failed item names are returned in item order."""
        record = make_record(items=[
            {"name": "B", "result": "FAIL"},
            {"name": "A", "result": "PASS"},
            {"name": "C", "result": "FAIL"},
        ])

        assert record.failed_item_names() == ["B", "C"]
