"""
Log file repository implementation.

SQLite implementation of IRepository[LogFile]. Log files are inserted with
"add" semantics: storing an id that already exists is an error, which the
StorageEngine avoids by issuing monotonically increasing ids per serial.
"""

import sqlite3
from datetime import datetime
from typing import List, Optional

from ..models.log_file import LogFile
from ..exceptions import DatabaseError
from .base import IRepository


class LogFileRepository(IRepository[LogFile, str]):
    """SQLite implementation of the log file repository."""

    def __init__(self, connection: sqlite3.Connection):
        self.conn = connection

    def get_by_id(self, id: str) -> Optional[LogFile]:
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM log_files WHERE id = ?", (id,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to get log file {id}: {e}") from e

        return self._row_to_log_file(row) if row is not None else None

    def get_by_serial(self, serial: str) -> Optional[LogFile]:
        """
        Get the oldest log file stored for a serial number.

        Args:
            serial: Serial number

        Returns:
            LogFile if any was stored for this serial, None otherwise
        """
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                "SELECT * FROM log_files WHERE serial = ? ORDER BY timestamp, id LIMIT 1",
                (serial,)
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to get log file for {serial}: {e}") from e

        return self._row_to_log_file(row) if row is not None else None

    def get_all(self) -> List[LogFile]:
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM log_files ORDER BY timestamp, id")
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to get log files: {e}") from e

        return [self._row_to_log_file(row) for row in rows]

    def exists(self, id: str) -> bool:
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT 1 FROM log_files WHERE id = ?", (id,))
            return cursor.fetchone() is not None
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to look up log file {id}: {e}") from e

    def create(self, log_file: LogFile) -> LogFile:
        """
        Insert a log file.

        Args:
            log_file: LogFile with its id already assigned

        Returns:
            The stored LogFile (unchanged)

        Raises:
            DatabaseError: If insertion fails (including duplicate ids)
        """
        try:
            self.conn.execute(
                """
                INSERT INTO log_files (id, serial, file_name, content, timestamp, size)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    log_file.id,
                    log_file.serial,
                    log_file.file_name,
                    log_file.content,
                    log_file.timestamp.isoformat(),
                    log_file.size,
                )
            )
            self.conn.commit()
            return log_file
        except sqlite3.Error as e:
            self._rollback()
            raise DatabaseError(f"Failed to save log file {log_file.file_name}: {e}") from e

    def delete_older_than(self, cutoff: datetime) -> int:
        """
        Delete log files imported at or before a cutoff.

        Args:
            cutoff: Import-time cutoff (inclusive)

        Returns:
            Number of deleted log files
        """
        try:
            cursor = self.conn.cursor()
            cursor.execute("DELETE FROM log_files WHERE timestamp <= ?", (cutoff.isoformat(),))
            self.conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            self._rollback()
            raise DatabaseError(f"Failed to delete old log files: {e}") from e

    def clear(self, commit: bool = True) -> None:
        try:
            self.conn.execute("DELETE FROM log_files")
            if commit:
                self.conn.commit()
        except sqlite3.Error as e:
            if commit:
                self._rollback()
            raise DatabaseError(f"Failed to clear log files: {e}") from e

    def _rollback(self) -> None:
        try:
            self.conn.rollback()
        except sqlite3.Error:
            pass

    def _row_to_log_file(self, row: sqlite3.Row) -> LogFile:
        return LogFile(
            id=row["id"],
            serial=row["serial"],
            file_name=row["file_name"],
            content=row["content"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
            size=row["size"],
        )
