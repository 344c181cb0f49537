"""Unit tests for StorageEngine."""

import json
import pytest
from unittest.mock import Mock

from mes_pipeline.core.models.log_file import LogMapping
from mes_pipeline.core.models.storage import StorageTarget
from mes_pipeline.core.services.storage_engine import StorageEngine, is_imported_data_key
from mes_pipeline.core.storage.fallback_store import InMemoryFallbackStore


def without_ids(records):
    return [r.model_dump(exclude={"id"}) for r in records]


@pytest.fixture
def mapping():
    return LogMapping(
        record_key="CH001_20250101-080000_ST1",
        serial="CH001",
        file_name="20250101-080000-CH001.log",
        log_id="CH001_1000",
    )


class TestStorageEngineRecords:
    """Test record writes and reads with fallback."""

    def test_primary_round_trip(self, storage_engine, fallback_store, make_record):
        """Test records go to the primary store when it works."""
        records = [make_record(serial="A"), make_record(serial="B", result="FAIL")]

        result = storage_engine.insert_many(records)

        assert result.target == StorageTarget.PRIMARY
        assert result.count == 2
        assert result.durable
        assert without_ids(storage_engine.get_all_records()) == without_ids(records)
        assert fallback_store.keys() == []

    def test_empty_batch(self, storage_engine):
        """Test an empty batch is a no-op."""
        assert storage_engine.insert_many([]).count == 0

    def test_fallback_round_trip_without_primary(self, offline_engine, fallback_store, make_record):
        """Test records survive a missing primary store through the fallback."""
        records = [
            make_record(serial="A", items=[{"name": "V", "value": 1.5, "result": "FAIL"}], result="FAIL"),
            make_record(serial="B"),
        ]

        result = offline_engine.insert_many(records)

        assert result.target == StorageTarget.FALLBACK
        assert result.count == 2
        assert result.diagnostics
        assert offline_engine.get_all_records() == records
        assert json.loads(fallback_store.get_item("mesTestData"))[0]["serialNumber"] == "A"

    def test_fallback_appends(self, offline_engine, make_record):
        """Test successive fallback writes append to the same list."""
        offline_engine.insert_many([make_record(serial="A")])
        offline_engine.insert_many([make_record(serial="B")])

        assert [r.serial_number for r in offline_engine.get_all_records()] == ["A", "B"]
        assert offline_engine.count_records() == 2

    def test_primary_failure_uses_fallback(self, db_connection, fallback_store, clock, make_record):
        """Test a failing primary write falls back instead of raising."""
        engine = StorageEngine(db_connection, fallback_store, clock=clock)
        db_connection.close()

        result = engine.insert_many([make_record(serial="A")])

        assert result.target == StorageTarget.FALLBACK
        assert [r.serial_number for r in engine.get_all_records()] == ["A"]

    def test_oversized_payload_dropped_with_warning(self, clock, make_record):
        """Test payloads above the cap are dropped and reported."""
        engine = StorageEngine(None, InMemoryFallbackStore(max_blob_chars=100), clock=clock)

        result = engine.insert_many([make_record(serial="A" * 200)])

        assert result.target == StorageTarget.DROPPED
        assert result.count == 0
        assert any("size cap" in d.message for d in result.diagnostics)
        assert engine.get_all_records() == []

    def test_reads_prefer_primary_without_merging(self, storage_engine, fallback_store, make_record):
        """Test fallback records are ignored while the primary has records."""
        fallback_store.set_json("mesTestData", [make_record(serial="OLD").to_storage_dict()])
        storage_engine.insert_many([make_record(serial="NEW")])

        assert [r.serial_number for r in storage_engine.get_all_records()] == ["NEW"]

    def test_empty_primary_reads_fallback(self, storage_engine, fallback_store, make_record):
        """Test an empty primary store falls through to the fallback."""
        fallback_store.set_json("mesTestData", [make_record(serial="OLD").to_storage_dict(), "junk", {"result": 5}])

        records = storage_engine.get_all_records()

        assert [r.serial_number for r in records] == ["OLD", ""]

    def test_corrupt_primary_row_reads_fallback(self, storage_engine, db_connection, fallback_store, make_record):
        """Test a primary row that cannot be decoded falls through to the fallback."""
        storage_engine.insert_many([make_record(serial="NEW")])
        db_connection.execute("UPDATE test_records SET items = '{broken'")
        db_connection.commit()
        fallback_store.set_json("mesTestData", [make_record(serial="OLD").to_storage_dict()])

        assert [r.serial_number for r in storage_engine.get_all_records()] == ["OLD"]

    def test_nothing_anywhere(self, offline_engine):
        """Test total failure yields an empty list."""
        assert offline_engine.get_all_records() == []


class TestStorageEngineLogs:
    """Test log files and mappings."""

    def test_log_ids_unique_per_serial(self, storage_engine):
        """Test logs saved within the same millisecond get distinct ids."""
        first = storage_engine.save_log_file("CH001", "a.log", "one", backup_key="CH001_20250101-080000")
        second = storage_engine.save_log_file("CH001", "b.log", "two", backup_key="CH001_20250101-080001")

        assert first.target == StorageTarget.PRIMARY
        assert first.value.startswith("CH001_")
        assert first.value != second.value
        assert storage_engine.get_log_content(second.value) == "two"

    def test_log_fallback(self, offline_engine, fallback_store):
        """Test logs are kept under log_backup_<key> without a primary store."""
        result = offline_engine.save_log_file("CH001", "a.log", "content", backup_key="CH001_20250101-080000")

        assert result.target == StorageTarget.FALLBACK
        assert result.value == "log_backup_CH001_20250101-080000"
        assert fallback_store.get_item("log_backup_CH001_20250101-080000") == "content"
        assert offline_engine.get_log_content(result.value) == "content"

    def test_oversized_log_dropped(self, clock):
        """Test an oversized log is dropped with a warning."""
        engine = StorageEngine(None, InMemoryFallbackStore(max_blob_chars=5), clock=clock)

        result = engine.save_log_file("CH001", "a.log", "0123456789", backup_key="k")

        assert result.target == StorageTarget.DROPPED
        assert result.value is None
        assert result.diagnostics

    def test_log_file_by_serial(self, storage_engine):
        """Test the per-serial lookup."""
        storage_engine.save_log_file("CH001", "a.log", "one", backup_key="k")

        assert storage_engine.get_log_file_by_serial("CH001").content == "one"
        assert storage_engine.get_log_file_by_serial("CH404") is None

    def test_clear_old_logs(self, storage_engine):
        """Test logs imported up to the cutoff are removed."""
        storage_engine.save_log_file("CH001", "a.log", "one", backup_key="k")

        assert storage_engine.clear_old_logs(days_old=1) == 0
        assert storage_engine.clear_old_logs(days_old=0) == 1

    def test_mapping_upsert(self, storage_engine, mapping):
        """Test mappings are upserted by record key."""
        storage_engine.save_log_mapping(mapping)
        storage_engine.save_log_mapping(mapping.model_copy(update={"log_id": "CH001_2000"}))

        assert storage_engine.get_log_mapping(mapping.record_key).log_id == "CH001_2000"
        assert len(storage_engine.get_all_log_mappings()) == 1

    def test_mapping_fallback(self, offline_engine, fallback_store, mapping):
        """Test mappings fall back to mesLogMappings keyed by record key."""
        result = offline_engine.save_log_mapping(mapping)
        offline_engine.save_log_mapping(mapping.model_copy(update={"log_id": "CH001_2000"}))

        assert result.target == StorageTarget.FALLBACK
        assert list(json.loads(fallback_store.get_item("mesLogMappings"))) == [mapping.record_key]
        assert offline_engine.get_log_mapping(mapping.record_key).log_id == "CH001_2000"
        assert offline_engine.get_log_mapping("missing") is None
        assert len(offline_engine.get_all_log_mappings()) == 1


class TestStorageEngineMaintenance:
    """Test clear-all, usage and notifications."""

    def test_clear_all(self, storage_engine, fallback_store, make_record, mapping):
        """Test imported data is removed from both stores and vocabularies survive."""
        storage_engine.insert_many([make_record()])
        storage_engine.save_log_file("CH001", "a.log", "one", backup_key="k")
        storage_engine.save_log_mapping(mapping)
        fallback_store.set_json("mesTestData", [])
        fallback_store.set_item("log_backup_k", "x")
        fallback_store.set_json("mesStations", ["ST1"])
        fallback_store.set_json("mesModels", ["WA1"])
        fallback_store.set_item("theme", "dark")

        result = storage_engine.clear_all()

        assert result.target == StorageTarget.PRIMARY
        assert result.count == 2
        assert storage_engine.get_all_records() == []
        assert storage_engine.get_all_log_mappings() == []
        assert storage_engine.get_log_file_by_serial("CH001") is None
        assert sorted(fallback_store.keys()) == ["mesModels", "mesStations", "theme"]

    def test_clear_all_publishes_once(self, storage_engine):
        """Test exactly one clear notification."""
        listener = Mock()
        storage_engine.subscribe(listener)

        storage_engine.clear_all()

        listener.assert_called_once()
        event = listener.call_args[0][0]
        assert event.action == "clear"
        assert event.total_count == 0

    def test_clear_all_without_primary(self, offline_engine, fallback_store):
        """Test clearing still empties the fallback when there is no primary store."""
        fallback_store.set_json("mesTestData", [{}])

        result = offline_engine.clear_all()

        assert result.target == StorageTarget.FALLBACK
        assert fallback_store.keys() == []

    @pytest.mark.parametrize("key,expected", [
        ("mesTestData", True),
        ("mesLogMappings", True),
        ("log_backup_CH1_20250101-080000", True),
        ("lastTestImport", True),
        ("mesStations", False),
        ("mesModels", False),
        ("theme", False),
    ])
    def test_imported_data_keys(self, key, expected):
        """Test which fallback keys clear_all removes."""
        assert is_imported_data_key(key) is expected

    def test_unsubscribe(self, storage_engine):
        """Test an unsubscribed listener is not called."""
        listener = Mock()
        unsubscribe = storage_engine.subscribe(listener)

        unsubscribe()
        unsubscribe()
        storage_engine.clear_all()

        listener.assert_not_called()

    def test_failing_listener_does_not_block_others(self, storage_engine):
        """Test listener exceptions are contained."""
        broken = Mock(side_effect=RuntimeError("boom"))
        healthy = Mock()
        storage_engine.subscribe(broken)
        storage_engine.subscribe(healthy)

        storage_engine.clear_all()

        healthy.assert_called_once()

    def test_estimate_usage_in_memory(self, storage_engine):
        """Test usage of an in-memory database (no disk quota)."""
        usage = storage_engine.estimate_usage()

        assert usage.used > 0
        assert usage.available == 0

    def test_estimate_usage_file_database(self, tmp_path, fallback_store):
        """Test a file database reports free disk space."""
        from mes_pipeline.database.schema import initialize_database

        conn = initialize_database(tmp_path / "usage.db")
        try:
            usage = StorageEngine(conn, fallback_store).estimate_usage()
        finally:
            conn.close()

        assert usage.used > 0
        assert usage.available > 0

    def test_estimate_usage_without_primary(self, offline_engine, fallback_store):
        """Test usage falls back to the characters in the fallback store."""
        fallback_store.set_item("mesTestData", "[1234]")

        usage = offline_engine.estimate_usage()

        assert usage.used == 6
        assert usage.available == 0
