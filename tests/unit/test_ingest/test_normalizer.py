"""Unit tests for RecordNormalizer."""

import pytest

from mes_pipeline.core.ingest.normalizer import is_valid_mes_data, repair_json, filename_stem
from mes_pipeline.core.models.diagnostics import DiagnosticLevel

NOW_TEXT = "2025-01-15 10:00:00"

SAMPLE = {
    "Serial Number": "CH001",
    "Test Time": "2025-01-01 08:00:00",
    "Station": "ST1",
    "Model": "WA1",
    "Items": [
        {"name": "Voltage", "value": "3.3", "result": "PASS"},
        {"name": "Current", "value": "0.5", "result": "FAIL"},
    ],
}


class TestNormalize:
    """Test normalization of parsed documents."""

    @pytest.mark.parametrize("raw", [
        SAMPLE,
        [SAMPLE, SAMPLE],
        {},
        None,
        [],
        "just a string",
        42,
        [1, "two", None],
    ])
    def test_always_produces_records(self, normalizer, raw):
        """Test every input yields at least one well-formed record."""
        result = normalizer.normalize(raw)

        assert len(result.records) >= 1
        for record in result.records:
            assert record.result in ("PASS", "FAIL")
            assert record.serial_number

    def test_array_yields_one_record_per_element(self, normalizer):
        """Test arrays are normalized element by element."""
        assert len(normalizer.normalize([SAMPLE, {}, SAMPLE]).records) == 3

    def test_full_document(self, normalizer):
        """Test all fields of a regular document."""
        record = normalizer.normalize(SAMPLE).records[0]

        assert record.serial_number == "CH001"
        assert record.station == "ST1"
        assert record.model == "WA1"
        assert record.test_time == "2025-01-01 08:00:00"
        assert record.date == "2025-01-01"
        assert record.time == "08:00:00"
        assert record.result == "FAIL"
        assert [item.name for item in record.items] == ["Voltage", "Current"]

    def test_result_ignores_document_result_field(self, normalizer):
        """Test the result comes from the items only."""
        document = dict(SAMPLE, Items=[{"name": "V", "result": "PASS"}], **{"Test Result": "FAIL"})

        assert normalizer.normalize(document).records[0].result == "PASS"

    def test_no_items_is_pass(self, normalizer):
        """Test a record without items is PASS."""
        document = {"Serial Number": "CH002", "Test Time": "2025-01-01 08:00:00"}

        assert normalizer.normalize(document).records[0].result == "PASS"

    def test_lower_case_fail_item(self, normalizer):
        """Test lower-case item results still fail the record."""
        document = {"Serial": "CH003", "items": [{"Name": "V", "Value": 1, "Result": "fail"}]}

        record = normalizer.normalize(document).records[0]

        assert record.result == "FAIL"
        assert record.items[0].name == "V"
        assert record.items[0].value == 1

    def test_extraction_is_deterministic(self, normalizer):
        """Test normalizing the same document twice gives the same record."""
        first = normalizer.normalize(SAMPLE).records[0]
        second = normalizer.normalize(SAMPLE).records[0]

        assert first == second

    def test_unparseable_time_kept_raw(self, normalizer):
        """Test an unparseable test time is kept for display."""
        document = {"Serial Number": "CH004", "Test Time": "sometime"}

        record = normalizer.normalize(document).records[0]

        assert record.date == ""
        assert record.time == ""
        assert record.test_time == "sometime"

    def test_status_only_document(self, normalizer):
        """Test the Result[0].Name fallback."""
        result = normalizer.normalize({"Result": [{"Name": "CH009", "Value": "PASS"}]})
        record = result.records[0]

        assert record.serial_number == "CH009"
        assert record.station == "Unknown"
        assert record.model == "Unknown"
        assert record.test_time == NOW_TEXT
        assert not result.valid
        assert any(d.level == DiagnosticLevel.WARNING for d in result.diagnostics)

    def test_generic_record_for_empty_document(self, normalizer):
        """Test the last rung of the ladder."""
        record = normalizer.normalize({}).records[0]

        assert record.serial_number == "Unknown"
        assert record.station == "Unknown"
        assert record.test_time == NOW_TEXT
        assert record.result == "PASS"

    def test_date_time_items_are_dropped(self, normalizer):
        """Test metadata items named like dates/times are skipped."""
        document = dict(SAMPLE, Items=[
            {"name": "Date Time", "value": "2025-01-01"},
            {"name": "TEST TIME", "value": "08:00"},
            {"name": "datetime", "value": "x"},
            {"name": "Voltage", "value": "3.3", "result": "PASS"},
            "not an item",
        ])

        record = normalizer.normalize(document).records[0]

        assert [item.name for item in record.items] == ["Voltage"]

    def test_unnamed_item_kept(self, normalizer):
        """Test items without a name are kept as Unknown Test."""
        document = dict(SAMPLE, Items=[{"value": 1, "result": "FAIL"}, {"name": " ", "result": "FAIL"}])

        items = normalizer.normalize(document).records[0].items

        assert [item.name for item in items] == ["Unknown Test", "Unknown Test"]

    def test_empty_array_warns(self, normalizer):
        """Test an empty array produces a generic record and a warning."""
        result = normalizer.normalize([], source="empty.json")

        assert len(result.records) == 1
        assert result.diagnostics[0].source == "empty.json"


class TestParseDocument:
    """Test JSON parsing, repair and placeholders."""

    def test_strict_json(self, normalizer):
        """Test valid JSON is not flagged as repaired."""
        result = normalizer.parse_document('{"Serial": "CH1", "Test Time": "2025-01-01 08:00:00"}', "a.json")

        assert not result.repaired
        assert not result.placeholder
        assert result.valid
        assert result.records[0].serial_number == "CH1"

    def test_byte_order_mark(self, normalizer):
        """Test a leading BOM does not break parsing."""
        result = normalizer.parse_document("\ufeff" + '{"Serial": "CH1"}', "a.json")

        assert not result.repaired
        assert result.records[0].serial_number == "CH1"

    def test_trailing_comma_repaired(self, normalizer):
        """Test trailing commas are repaired."""
        text = '{"Serial Number": "CH1", "Items": [{"name": "V", "result": "FAIL"},],}'

        result = normalizer.parse_document(text, "a.json")

        assert result.repaired
        assert result.records[0].serial_number == "CH1"
        assert result.records[0].result == "FAIL"
        assert result.diagnostics[0].level == DiagnosticLevel.WARNING

    def test_single_quotes_repaired(self, normalizer):
        """Test single-quoted JSON is repaired."""
        result = normalizer.parse_document("{'Serial': 'CH2'}", "b.json")

        assert result.repaired
        assert result.records[0].serial_number == "CH2"

    def test_unparseable_yields_fail_placeholder(self, normalizer):
        """Test garbage text becomes a FAIL placeholder named after the file."""
        result = normalizer.parse_document("{not json at all", "logs/20250101-080000-CH7.json")
        record = result.records[0]

        assert result.placeholder
        assert record.result == "FAIL"
        assert record.serial_number == "20250101-080000-CH7"
        assert record.station == "Unknown"
        assert record.model == "Unknown"
        assert record.test_time == NOW_TEXT
        assert result.diagnostics[0].level == DiagnosticLevel.ERROR

    def test_unclosed_deep_nesting_yields_placeholder(self, normalizer):
        """Test nesting beyond the parser's depth limit does not raise."""
        result = normalizer.parse_document("[" * 100000, "deep.json")

        assert result.placeholder
        assert result.records[0].result == "FAIL"
        assert result.records[0].serial_number == "deep"
        assert result.diagnostics[-1].level == DiagnosticLevel.ERROR

    def test_valid_deep_nesting_yields_placeholder(self, normalizer):
        """Test a well-formed but very deeply nested value degrades to a placeholder."""
        value = "[" * 5000 + "]" * 5000
        text = '{"Serial Number": "X", "Items": [{"name": "a", "value": %s, "result": "PASS"}]}' % value

        result = normalizer.parse_document(text, "nested.json")

        assert result.placeholder
        assert len(result.records) == 1
        assert result.records[0].serial_number == "nested"

    def test_empty_text(self, normalizer):
        """Test empty text is a placeholder, not an exception."""
        result = normalizer.parse_document("", "empty.json")

        assert result.placeholder
        assert len(result.records) == 1


class TestFilenameHints:
    """Test filling empty fields from the file name."""

    def test_all_hints_applied(self, normalizer):
        """Test timestamp, serial, station and model hints."""
        record = normalizer.normalize({"Items": [{"name": "V", "result": "PASS"}], "Tester": "amy"}).records[0]
        # Nothing identifying in the document: the ladder filled serial/station/model
        assert record.serial_number == "Unknown"

        bare = record.model_copy(update={"serial_number": "", "station": "", "model": "", "test_time": ""})
        hinted, diagnostics = normalizer.apply_filename_hints(bare, "20250920-063924-FA_FT01-WA12.json")

        assert hinted.test_time == "2025-09-20 06:39:24"
        assert hinted.date == "2025-09-20"
        assert hinted.time == "06:39:24"
        assert hinted.serial_number == "20250920-063924-FA_FT01-WA12"
        assert hinted.station == "FA_FT01"
        assert hinted.model == "WA12"
        assert hinted.tester == "amy"

    def test_missing_hints_fall_back(self, normalizer):
        """Test Unknown placeholders and now when the filename has no hints."""
        record = normalizer.normalize({"Serial Number": "CH5"}).records[0]

        hinted, diagnostics = normalizer.apply_filename_hints(record, "result.json")

        assert hinted.serial_number == "CH5"
        assert hinted.test_time == NOW_TEXT
        assert hinted.station == "Unknown"
        assert hinted.model == "Unknown"
        assert diagnostics

    def test_complete_record_unchanged(self, normalizer):
        """Test a complete record is returned as is."""
        record = normalizer.normalize(SAMPLE).records[0]

        hinted, diagnostics = normalizer.apply_filename_hints(record, "20250920-063924-X.json")

        assert hinted is record
        assert diagnostics == []


class TestHelpers:
    """Test module-level helpers."""

    def test_is_valid_mes_data(self):
        """Test the advisory validity predicate."""
        assert is_valid_mes_data(SAMPLE)
        assert is_valid_mes_data({"Items": [{"name": "V"}], "FN": "F1"})
        assert not is_valid_mes_data({"Result": [{"Name": "CH1"}]})
        assert not is_valid_mes_data({"Serial": "CH1"})
        assert not is_valid_mes_data([SAMPLE])
        assert not is_valid_mes_data(None)

    def test_repair_json(self):
        """Test the repair pass."""
        assert repair_json("{'a': [1, 2,], }") == '{"a": [1, 2]}'

    def test_filename_stem(self):
        """Test directories and .json/.log extensions are stripped."""
        assert filename_stem("dir/20250101-080000-CH1.JSON") == "20250101-080000-CH1"
        assert filename_stem("notes.txt") == "notes.txt"
