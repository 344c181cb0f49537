"""Pytest fixtures and configuration."""

import pytest
from datetime import datetime

from mes_pipeline.database.schema import get_in_memory_connection
from mes_pipeline.core.models.test_record import TestItem, TestRecord
from mes_pipeline.core.ingest.normalizer import RecordNormalizer
from mes_pipeline.core.services.storage_engine import StorageEngine
from mes_pipeline.core.storage.fallback_store import InMemoryFallbackStore

FIXED_NOW = datetime(2025, 1, 15, 10, 0, 0)


@pytest.fixture
def db_connection():
    """Provide an in-memory database connection for tests."""
    conn = get_in_memory_connection()
    yield conn
    conn.close()


@pytest.fixture
def clock():
    """Provide a clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def normalizer(clock):
    """Provide a normalizer with a frozen clock."""
    return RecordNormalizer(clock=clock)


@pytest.fixture
def fallback_store():
    """Provide an empty in-memory fallback store."""
    return InMemoryFallbackStore()


@pytest.fixture
def storage_engine(db_connection, fallback_store, clock):
    """Provide a storage engine backed by the in-memory database."""
    return StorageEngine(db_connection, fallback_store, clock=clock)


@pytest.fixture
def offline_engine(fallback_store, clock):
    """Provide a storage engine whose primary store could not be opened."""
    return StorageEngine(None, fallback_store, clock=clock)


@pytest.fixture
def make_record():
    """Provide a factory for canonical records."""
    def factory(
        serial="CH001",
        result="PASS",
        station="ST1",
        model="WA1",
        test_time="2025-01-01 08:00:00",
        items=None,
        **kwargs
    ):
        date_part, _, time_part = test_time.partition(" ")
        return TestRecord(
            serial_number=serial,
            result=result,
            station=station,
            model=model,
            test_time=test_time,
            date=date_part,
            time=time_part,
            items=[TestItem(**item) for item in (items or [])],
            **kwargs
        )
    return factory
