"""Unit tests for LogFileCorrelator."""

import pytest

from mes_pipeline.core.ingest.log_correlator import CorrelationKey, LogFileCorrelator


class TestLogFileCorrelator:
    """Test the shared filename grammar."""

    @pytest.fixture
    def correlator(self):
        return LogFileCorrelator()

    @pytest.mark.parametrize("name", [
        "20250920-063924-CH001.log",
        "20250920-063924-CH001.json",
        "20250920-063924-CH001[retry].log",
        "uploads/20250920-063924-CH001.log",
    ])
    def test_json_and_log_share_key(self, correlator, name):
        """Test both file kinds reduce to the same key."""
        key = correlator.correlate(name)

        assert key == CorrelationKey(timestamp="20250920-063924", serial="CH001")
        assert key.key == "CH001_20250920-063924"

    @pytest.mark.parametrize("name", ["CH001.log", "2025-09-20-CH001.log", "20250920-063924-.log"])
    def test_miss(self, correlator, name):
        """Test names outside the grammar do not correlate."""
        assert correlator.correlate(name) is None

    def test_record_key_and_log_file_name(self, correlator, make_record):
        """Test the mapping key and canonical LOG name."""
        key = correlator.correlate("20250920-063924-CH001.json")
        record = make_record(serial="CH001", station="FA_FT01")

        assert correlator.record_key(record, key.timestamp) == "CH001_20250920-063924_FA_FT01"
        assert correlator.log_file_name(key) == "20250920-063924-CH001.log"
