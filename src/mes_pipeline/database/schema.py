"""
Database schema definitions and initialization.

This module provides database schema creation and management for the MES
test-log pipeline. It uses SQLite as the primary (embedded) store and
includes:

- Schema versioning for future migrations
- Table definitions for the three logical tables
- Index creation for the dashboard's lookup columns
- Database path management (stored in user's home directory)

Key tables:
- test_records: Canonical test records (auto-incrementing id, items as JSON)
- log_files: Raw LOG blobs keyed by "serial_epochMillis"
- log_mappings: Record <-> LOG correlation keyed by "serial_timestamp_station"

The key formats of log_files and log_mappings are part of the persisted
layout and must not change, or previously imported data stops correlating.

Database location:
- Default: ~/.mes_test_dashboard/mes_test_data.db
- In-memory: ":memory:" (for testing)
"""

import sqlite3
from pathlib import Path
from typing import Optional

# Current schema version - increment when schema changes
SCHEMA_VERSION = 1

# Application data directory name (under the user's home directory)
DATA_DIR_NAME = ".mes_test_dashboard"


def get_data_directory() -> Path:
    """
    Get the application data directory, creating it if needed.

    Returns:
        Path: ~/.mes_test_dashboard
    """
    data_dir = Path.home() / DATA_DIR_NAME
    data_dir.mkdir(exist_ok=True)
    return data_dir


def get_database_path() -> Path:
    """
    Get the path to the database file in user's home directory.

    Returns:
        Path to database file: ~/.mes_test_dashboard/mes_test_data.db
    """
    return get_data_directory() / "mes_test_data.db"


def get_fallback_store_path() -> Path:
    """
    Get the path of the JSON fallback store.

    Returns:
        Path to fallback file: ~/.mes_test_dashboard/fallback_store.json
    """
    return get_data_directory() / "fallback_store.json"


def create_schema(conn: sqlite3.Connection) -> None:
    """
    Create the database schema.

    Creates all tables, indexes, and schema version tracking. Safe to call on
    an existing database (IF NOT EXISTS everywhere).

    Table structure:
    - schema_version: Tracks current schema version
    - test_records: Canonical records; items stored as JSON TEXT
    - log_files: LOG blobs (TEXT content), indexed by serial and timestamp
    - log_mappings: Correlation records, upserted by record_key

    There are no foreign keys between the tables: a mapping may outlive a
    failed log write, and everything is cleared together anyway.

    Args:
        conn: SQLite connection
    """
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY
        )
    """)

    cursor.execute("""
        INSERT OR REPLACE INTO schema_version (version) VALUES (?)
    """, (SCHEMA_VERSION,))

    # Test records: one row per normalized record, serials may repeat (retests)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS test_records (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            serial_number TEXT NOT NULL DEFAULT '',
            work_order TEXT NOT NULL DEFAULT '',
            station TEXT NOT NULL DEFAULT '',
            model TEXT NOT NULL DEFAULT '',
            result TEXT NOT NULL,
            test_time TEXT NOT NULL DEFAULT '',
            tester TEXT NOT NULL DEFAULT '',
            part_number TEXT NOT NULL DEFAULT '',
            fixture_number TEXT NOT NULL DEFAULT '',
            test_date TEXT NOT NULL DEFAULT '',
            test_clock TEXT NOT NULL DEFAULT '',
            items TEXT NOT NULL DEFAULT '[]',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK(result IN ('PASS', 'FAIL'))
        )
    """)

    # Log files: id is "serial_epochMillis"
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS log_files (
            id TEXT PRIMARY KEY,
            serial TEXT NOT NULL,
            file_name TEXT NOT NULL,
            content TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            size INTEGER NOT NULL DEFAULT 0
        )
    """)

    # Log mappings: record_key is "serial_timestamp_station"
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS log_mappings (
            record_key TEXT PRIMARY KEY,
            serial TEXT NOT NULL,
            file_name TEXT NOT NULL,
            log_id TEXT NOT NULL
        )
    """)

    # Indices for the dashboard's lookup columns
    for column in ("serial_number", "station", "model", "result", "test_time"):
        cursor.execute(
            f"CREATE INDEX IF NOT EXISTS idx_test_records_{column} ON test_records({column})"
        )

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_log_files_serial ON log_files(serial)
    """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_log_files_timestamp ON log_files(timestamp)
    """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_log_mappings_serial ON log_mappings(serial)
    """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_log_mappings_log_id ON log_mappings(log_id)
    """)

    conn.commit()


def initialize_database(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """
    Initialize the database connection and create schema if needed.

    For new databases, creates full schema. For existing databases, checks
    the version: older versions are bumped, newer versions are refused.

    Args:
        db_path: Optional custom database path (for testing or custom locations)
                If None, uses default path in user's home directory

    Returns:
        SQLite connection with row_factory set to sqlite3.Row

    Raises:
        DatabaseError: If database version is newer than application version,
                      or the file cannot be opened as a database
    """
    from ..core.exceptions import DatabaseError

    if db_path is None:
        db_path = get_database_path()

    db_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        conn = sqlite3.connect(str(db_path))
        conn.row_factory = sqlite3.Row

        cursor = conn.cursor()
        cursor.execute("""
            SELECT name FROM sqlite_master
            WHERE type='table' AND name='schema_version'
        """)

        if cursor.fetchone() is None:
            create_schema(conn)
            return conn

        cursor.execute("SELECT version FROM schema_version")
        row = cursor.fetchone()
        current_version = row[0] if row else 0
    except sqlite3.Error as e:
        raise DatabaseError(f"Failed to open database {db_path}: {e}") from e

    if current_version < SCHEMA_VERSION:
        # TODO: Run migrations here when the schema changes
        cursor.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))
        conn.commit()
    elif current_version > SCHEMA_VERSION:
        conn.close()
        raise DatabaseError(
            f"Database schema version ({current_version}) is newer than "
            f"application version ({SCHEMA_VERSION}). Please update the application."
        )

    return conn


def get_in_memory_connection() -> sqlite3.Connection:
    """
    Get an in-memory SQLite connection for testing.

    Returns:
        SQLite connection with row_factory=sqlite3.Row and schema initialized
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    create_schema(conn)
    return conn
