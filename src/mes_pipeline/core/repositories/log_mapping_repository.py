"""
Log mapping repository implementation.

SQLite implementation of IRepository[LogMapping]. Mappings use upsert
semantics (INSERT OR REPLACE): re-importing a record with the same
"serial_timestamp_station" key overwrites the previous mapping instead of
failing.
"""

import sqlite3
from typing import List, Optional

from ..models.log_file import LogMapping
from ..exceptions import DatabaseError
from .base import IRepository


class LogMappingRepository(IRepository[LogMapping, str]):
    """SQLite implementation of the log mapping repository."""

    def __init__(self, connection: sqlite3.Connection):
        self.conn = connection

    def get_by_id(self, id: str) -> Optional[LogMapping]:
        """
        Get a mapping by its record key.

        Args:
            id: Record key "serial_timestamp_station"

        Returns:
            LogMapping if found, None otherwise
        """
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM log_mappings WHERE record_key = ?", (id,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to get log mapping {id}: {e}") from e

        return self._row_to_mapping(row) if row is not None else None

    def get_all(self) -> List[LogMapping]:
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM log_mappings ORDER BY rowid")
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to get log mappings: {e}") from e

        return [self._row_to_mapping(row) for row in rows]

    def get_by_log_id(self, log_id: str) -> List[LogMapping]:
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM log_mappings WHERE log_id = ? ORDER BY rowid", (log_id,))
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to get log mappings for {log_id}: {e}") from e

        return [self._row_to_mapping(row) for row in rows]

    def create(self, mapping: LogMapping) -> LogMapping:
        return self.upsert(mapping)

    def upsert(self, mapping: LogMapping) -> LogMapping:
        """
        Insert or replace a mapping.

        Args:
            mapping: Mapping to store

        Returns:
            The stored mapping (unchanged)

        Raises:
            DatabaseError: If the write fails
        """
        try:
            self.conn.execute(
                """
                INSERT OR REPLACE INTO log_mappings (record_key, serial, file_name, log_id)
                VALUES (?, ?, ?, ?)
                """,
                (mapping.record_key, mapping.serial, mapping.file_name, mapping.log_id)
            )
            self.conn.commit()
            return mapping
        except sqlite3.Error as e:
            try:
                self.conn.rollback()
            except sqlite3.Error:
                pass
            raise DatabaseError(f"Failed to save log mapping {mapping.record_key}: {e}") from e

    def clear(self, commit: bool = True) -> None:
        try:
            self.conn.execute("DELETE FROM log_mappings")
            if commit:
                self.conn.commit()
        except sqlite3.Error as e:
            if commit:
                try:
                    self.conn.rollback()
                except sqlite3.Error:
                    pass
            raise DatabaseError(f"Failed to clear log mappings: {e}") from e

    def _row_to_mapping(self, row: sqlite3.Row) -> LogMapping:
        return LogMapping(
            record_key=row["record_key"],
            serial=row["serial"],
            file_name=row["file_name"],
            log_id=row["log_id"],
        )
