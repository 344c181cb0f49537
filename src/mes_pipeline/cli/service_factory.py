"""
Service factory for creating service instances with dependencies.

This module provides a factory function that creates all service instances
with their dependencies properly injected. It is the single place that owns
the lifecycle of the storage handle: there is no module-level store, and
tests build their own StorageEngine around an in-memory connection.

If the SQLite database cannot be opened, the services are still created;
the StorageEngine then runs on the fallback store alone.
"""

import logging
import sqlite3
from pathlib import Path
from typing import NamedTuple, Optional

from ..core.exceptions import DatabaseError
from ..core.services.dashboard_service import DashboardService
from ..core.services.import_service import ImportService
from ..core.services.storage_engine import StorageEngine
from ..core.services.vocabulary_service import VocabularyService
from ..core.storage.fallback_store import JsonFileFallbackStore
from ..database.schema import get_database_path, get_fallback_store_path, initialize_database

logger = logging.getLogger(__name__)


class Services(NamedTuple):
    """Everything the entry point needs, wired together."""

    storage: StorageEngine
    import_service: ImportService
    dashboard_service: DashboardService
    vocabulary_service: VocabularyService
    connection: Optional[sqlite3.Connection]


def create_services(database_path: Optional[Path] = None, fallback_path: Optional[Path] = None) -> Services:
    """
    Create all service instances with dependencies injected.

    This function:
    1. Opens (or creates) the SQLite database; on failure continues without it
    2. Opens the JSON fallback store
    3. Creates the StorageEngine and the services around it

    Args:
        database_path: Optional path to database file. If None, uses
                      ~/.mes_test_dashboard/mes_test_data.db
        fallback_path: Optional path to the fallback JSON file. If None, uses
                      ~/.mes_test_dashboard/fallback_store.json

    Returns:
        Services tuple; connection is None when the database could not be opened
    """
    database_path = Path(database_path) if database_path else get_database_path()
    fallback_path = Path(fallback_path) if fallback_path else get_fallback_store_path()

    try:
        conn = initialize_database(database_path)
    except DatabaseError as e:
        logger.error(f"Primary store unavailable, continuing with fallback store only: {e}")
        conn = None

    fallback_store = JsonFileFallbackStore(fallback_path)
    storage = StorageEngine(conn, fallback_store)
    vocabulary_service = VocabularyService(fallback_store)

    return Services(
        storage=storage,
        import_service=ImportService(storage),
        dashboard_service=DashboardService(storage, vocabulary_service),
        vocabulary_service=vocabulary_service,
        connection=conn,
    )
