"""
Storage engine.

The StorageEngine is the single owner of persisted pipeline data. It sits on
top of the SQLite repositories (primary store) and a FallbackStore (flat
key -> string store) and implements the degradation policy between them:

- Writes go to the primary store. When it is unavailable or a write fails,
  the same logical collection is serialized into the fallback store, subject
  to its per-blob size cap. Nothing is re-raised: the WriteResult says
  where the data landed and carries the diagnostics.
- Reads prefer the primary store and consult the fallback only when the
  primary yields nothing or fails. Results from both are never merged.

The engine is constructed explicitly (see cli.service_factory) and injected
into the services that need it. It also carries the observer registry used
to announce data changes after imports and clear-alls.
"""

import logging
import shutil
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional
from pydantic import ValidationError as ModelValidationError

from ..constants import (
    FALLBACK_LOG_PREFIX,
    FALLBACK_MAPPINGS_KEY,
    FALLBACK_RECORDS_KEY,
    PRESERVED_KEYS,
)
from ..exceptions import DatabaseError, StorageUnavailableError
from ..models.diagnostics import Diagnostic
from ..models.log_file import LogFile, LogMapping
from ..models.storage import DataChangedEvent, StorageTarget, StorageUsage, WriteResult
from ..models.test_record import TestRecord
from ..repositories.log_file_repository import LogFileRepository
from ..repositories.log_mapping_repository import LogMappingRepository
from ..repositories.test_record_repository import TestRecordRepository
from ..storage.fallback_store import FallbackStore

logger = logging.getLogger(__name__)

DataChangedListener = Callable[[DataChangedEvent], None]


def is_imported_data_key(key: str) -> bool:
    """
    Whether a fallback key holds imported data (removed by clear_all).

    Matches the key families written by imports; the station and model
    vocabularies are configuration and always survive.
    """
    if key in PRESERVED_KEYS:
        return False
    return (
        key.startswith("mes")
        or key.startswith("log_")
        or "test" in key
        or "Test" in key
        or "MES" in key
    )


class StorageEngine:
    """
    Primary store with a size-capped fallback.

    Attributes:
        conn: SQLite connection, or None when the primary store could not be opened
        fallback: Flat key -> string fallback store
    """

    def __init__(
        self,
        connection: Optional[sqlite3.Connection],
        fallback_store: FallbackStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the engine.

        Args:
            connection: Open SQLite connection with the schema created, or None
            fallback_store: Fallback store used when the primary store fails
            clock: Optional callable returning "now" (log ids and timestamps)
        """
        self.conn = connection
        self.fallback = fallback_store
        self.clock = clock or datetime.now

        if connection is not None:
            self.record_repo = TestRecordRepository(connection)
            self.log_file_repo = LogFileRepository(connection)
            self.log_mapping_repo = LogMappingRepository(connection)
        else:
            self.record_repo = None
            self.log_file_repo = None
            self.log_mapping_repo = None

        self._listeners: List[DataChangedListener] = []
        self._last_log_millis: Dict[str, int] = {}

    @property
    def primary_available(self) -> bool:
        return self.conn is not None

    def _require_primary(self) -> None:
        if self.conn is None:
            raise StorageUnavailableError("Primary store is not available")

    # ------------------------------------------------------------------
    # Test records
    # ------------------------------------------------------------------

    def insert_many(self, records: List[TestRecord]) -> WriteResult:
        """
        Store a batch of records.

        The primary write is all-or-nothing. On failure the whole batch is
        appended to the fallback list under "mesTestData".

        Args:
            records: Normalized records

        Returns:
            WriteResult with target PRIMARY, FALLBACK or DROPPED
        """
        if not records:
            return WriteResult(target=StorageTarget.PRIMARY, count=0)

        try:
            self._require_primary()
            stored = self.record_repo.create_many(records)
            logger.info(f"Stored {len(stored)} test records")
            return WriteResult(target=StorageTarget.PRIMARY, count=len(stored))
        except DatabaseError as e:
            logger.error(f"Primary store write failed, using fallback: {e}")
            diagnostics = [Diagnostic.warning(
                "storage", f"Primary store unavailable ({e}); records kept in fallback store"
            )]

        existing = self._fallback_records_payload()
        existing.extend(record.to_storage_dict() for record in records)
        return self._write_fallback(
            FALLBACK_RECORDS_KEY,
            existing,
            count=len(records),
            what=f"{len(records)} test records",
            diagnostics=diagnostics,
        )

    def get_all_records(self) -> List[TestRecord]:
        """
        Read every stored record.

        Returns:
            Primary records when there are any; otherwise the fallback
            records; an empty list when both are empty or unreadable
        """
        try:
            self._require_primary()
            records = self.record_repo.get_all()
            if records:
                return records
        except DatabaseError as e:
            logger.warning(f"Primary store read failed, using fallback: {e}")

        records = []
        for index, data in enumerate(self._fallback_records_payload()):
            try:
                records.append(TestRecord.model_validate(data))
            except ModelValidationError as e:
                logger.warning(f"Skipping unreadable fallback record #{index}: {e}")
        return records

    def count_records(self) -> int:
        try:
            self._require_primary()
            count = self.record_repo.count()
            if count:
                return count
        except DatabaseError as e:
            logger.warning(f"Primary store count failed, using fallback: {e}")
        return len(self._fallback_records_payload())

    def _fallback_records_payload(self) -> List[dict]:
        data = self.fallback.get_json(FALLBACK_RECORDS_KEY, [])
        if not isinstance(data, list):
            logger.warning(f"Fallback key {FALLBACK_RECORDS_KEY} is not a list; ignoring it")
            return []
        return [item for item in data if isinstance(item, dict)]

    # ------------------------------------------------------------------
    # Log files
    # ------------------------------------------------------------------

    def next_log_id(self, serial: str) -> str:
        """
        Allocate a log id "serial_epochMillis".

        Milliseconds are strictly increasing per serial, so two logs of the
        same unit imported within one millisecond still get distinct ids.
        """
        millis = int(self.clock().timestamp() * 1000)
        last = self._last_log_millis.get(serial)
        if last is not None and millis <= last:
            millis = last + 1
        self._last_log_millis[serial] = millis
        return f"{serial}_{millis}"

    def save_log_file(self, serial: str, file_name: str, content: str, backup_key: str) -> WriteResult:
        """
        Store a LOG file.

        Args:
            serial: Serial number from the filename
            file_name: Original filename
            content: LOG text
            backup_key: Correlation key "serial_timestamp", used for the
                fallback key "log_backup_<backup_key>"

        Returns:
            WriteResult whose value is the id to reference from a LogMapping
            (the log id, or the fallback key when the primary store failed)
        """
        try:
            self._require_primary()
            log_id = self.next_log_id(serial)
            while self.log_file_repo.exists(log_id):
                log_id = self.next_log_id(serial)
            self.log_file_repo.create(LogFile(
                id=log_id,
                serial=serial,
                file_name=file_name,
                content=content,
                timestamp=self.clock(),
                size=len(content),
            ))
            return WriteResult(target=StorageTarget.PRIMARY, count=1, value=log_id)
        except DatabaseError as e:
            logger.error(f"Primary store rejected log file {file_name}, using fallback: {e}")
            diagnostics = [Diagnostic.warning(
                file_name, f"Primary store unavailable ({e}); log kept in fallback store"
            )]

        fallback_key = f"{FALLBACK_LOG_PREFIX}{backup_key}"
        try:
            stored = self.fallback.set_item(fallback_key, content)
        except StorageUnavailableError as e:
            logger.error(f"Fallback store rejected log file {file_name}: {e}")
            diagnostics.append(Diagnostic.error(file_name, f"Log file not stored: {e}"))
            return WriteResult(target=StorageTarget.DROPPED, diagnostics=diagnostics)

        if not stored:
            diagnostics.append(Diagnostic.warning(
                file_name,
                f"Log file of {len(content)} characters exceeds the fallback size cap; not stored",
            ))
            return WriteResult(target=StorageTarget.DROPPED, diagnostics=diagnostics)

        return WriteResult(
            target=StorageTarget.FALLBACK, count=1, value=fallback_key, diagnostics=diagnostics
        )

    def get_log_content(self, log_id: str) -> Optional[str]:
        """
        Content of a stored LOG file.

        Args:
            log_id: LogMapping.log_id (a primary log id or a fallback key)

        Returns:
            The LOG text, or None when it is not stored anywhere
        """
        if log_id.startswith(FALLBACK_LOG_PREFIX):
            return self.fallback.get_item(log_id)
        try:
            self._require_primary()
            log_file = self.log_file_repo.get_by_id(log_id)
            return log_file.content if log_file else None
        except DatabaseError as e:
            logger.warning(f"Could not read log file {log_id}: {e}")
            return None

    def get_log_file_by_serial(self, serial: str) -> Optional[LogFile]:
        try:
            self._require_primary()
            return self.log_file_repo.get_by_serial(serial)
        except DatabaseError as e:
            logger.warning(f"Could not read log file for {serial}: {e}")
            return None

    def clear_old_logs(self, days_old: int = 30) -> int:
        """
        Delete LOG files imported more than days_old days ago.

        Returns:
            Number of deleted log files (0 when the primary store is unavailable)
        """
        cutoff = self.clock() - timedelta(days=days_old)
        try:
            self._require_primary()
            deleted = self.log_file_repo.delete_older_than(cutoff)
        except DatabaseError as e:
            logger.error(f"Failed to delete old log files: {e}")
            return 0
        logger.info(f"Deleted {deleted} log files imported before {cutoff:%Y-%m-%d %H:%M:%S}")
        return deleted

    # ------------------------------------------------------------------
    # Log mappings
    # ------------------------------------------------------------------

    def save_log_mapping(self, mapping: LogMapping) -> WriteResult:
        """
        Upsert a record -> LOG mapping.

        Falls back to the "mesLogMappings" object keyed by record key.
        """
        try:
            self._require_primary()
            self.log_mapping_repo.upsert(mapping)
            return WriteResult(target=StorageTarget.PRIMARY, count=1, value=mapping.record_key)
        except DatabaseError as e:
            logger.error(f"Primary store rejected log mapping {mapping.record_key}, using fallback: {e}")
            diagnostics = [Diagnostic.warning(
                mapping.file_name, f"Primary store unavailable ({e}); log mapping kept in fallback store"
            )]

        mappings = self._fallback_mappings_payload()
        mappings[mapping.record_key] = mapping.model_dump(mode="json", by_alias=True)
        return self._write_fallback(
            FALLBACK_MAPPINGS_KEY,
            mappings,
            count=1,
            what=f"log mapping {mapping.record_key}",
            diagnostics=diagnostics,
            value=mapping.record_key,
        )

    def get_log_mapping(self, record_key: str) -> Optional[LogMapping]:
        try:
            self._require_primary()
            mapping = self.log_mapping_repo.get_by_id(record_key)
            if mapping is not None:
                return mapping
        except DatabaseError as e:
            logger.warning(f"Primary store read failed, using fallback: {e}")

        data = self._fallback_mappings_payload().get(record_key)
        return self._parse_mapping(data) if data is not None else None

    def get_all_log_mappings(self) -> List[LogMapping]:
        try:
            self._require_primary()
            mappings = self.log_mapping_repo.get_all()
            if mappings:
                return mappings
        except DatabaseError as e:
            logger.warning(f"Primary store read failed, using fallback: {e}")

        parsed = (self._parse_mapping(data) for data in self._fallback_mappings_payload().values())
        return [mapping for mapping in parsed if mapping is not None]

    def _fallback_mappings_payload(self) -> Dict[str, dict]:
        data = self.fallback.get_json(FALLBACK_MAPPINGS_KEY, {})
        if not isinstance(data, dict):
            logger.warning(f"Fallback key {FALLBACK_MAPPINGS_KEY} is not an object; ignoring it")
            return {}
        return data

    def _parse_mapping(self, data) -> Optional[LogMapping]:
        try:
            return LogMapping.model_validate(data)
        except ModelValidationError as e:
            logger.warning(f"Skipping unreadable fallback log mapping: {e}")
            return None

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear_all(self) -> WriteResult:
        """
        Delete all imported data from both stores.

        The three tables are emptied in one transaction. Fallback keys of
        imported data are removed; the station and model vocabularies are
        kept. Publishes exactly one "clear" DataChangedEvent.

        Returns:
            WriteResult; count is the number of fallback keys removed
        """
        diagnostics = []
        try:
            self._require_primary()
            self.record_repo.clear(commit=False)
            self.log_file_repo.clear(commit=False)
            self.log_mapping_repo.clear(commit=False)
            self.conn.commit()
            target = StorageTarget.PRIMARY
            logger.info("Cleared primary store")
        except (DatabaseError, sqlite3.Error) as e:
            if self.conn is not None:
                try:
                    self.conn.rollback()
                except sqlite3.Error:
                    pass
            logger.error(f"Failed to clear primary store: {e}")
            diagnostics.append(Diagnostic.warning("storage", f"Primary store not cleared ({e})"))
            target = StorageTarget.FALLBACK

        removed = 0
        try:
            for key in self.fallback.keys():
                if is_imported_data_key(key):
                    self.fallback.remove_item(key)
                    removed += 1
        except StorageUnavailableError as e:
            logger.error(f"Failed to clear fallback store: {e}")
            diagnostics.append(Diagnostic.error("storage", f"Fallback store not cleared ({e})"))
        logger.info(f"Removed {removed} fallback keys")

        self.publish(DataChangedEvent(action="clear", record_count=0, total_count=0))
        return WriteResult(target=target, count=removed, diagnostics=diagnostics)

    def estimate_usage(self) -> StorageUsage:
        """
        Best-effort storage estimate.

        used: database pages in use (page_count * page_size) plus the
        characters held by the fallback store; available: free disk space
        next to the database file. Zeros for whatever cannot be determined.
        """
        used = 0
        available = 0

        if self.conn is not None:
            try:
                page_count = self.conn.execute("PRAGMA page_count").fetchone()[0]
                page_size = self.conn.execute("PRAGMA page_size").fetchone()[0]
                used += page_count * page_size
                db_file = self.conn.execute("PRAGMA database_list").fetchone()[2]
                if db_file:
                    available = shutil.disk_usage(Path(db_file).parent).free
            except (sqlite3.Error, OSError) as e:
                logger.warning(f"Could not estimate primary store usage: {e}")

        try:
            used += sum(len(self.fallback.get_item(key) or "") for key in self.fallback.keys())
        except StorageUnavailableError as e:
            logger.warning(f"Could not estimate fallback store usage: {e}")

        return StorageUsage(used=used, available=available)

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, callback: DataChangedListener) -> Callable[[], None]:
        """
        Register a data-changed listener.

        Returns:
            Callable that removes the listener again (idempotent)
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def publish(self, event: DataChangedEvent) -> None:
        """Notify every listener; a failing listener does not stop the others."""
        logger.info(
            f"Data changed: {event.action} ({event.record_count} records, {event.total_count} total)"
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.exception(f"Data-changed listener {listener!r} failed: {e}")

    # ------------------------------------------------------------------

    def _write_fallback(
        self,
        key: str,
        payload,
        count: int,
        what: str,
        diagnostics: List[Diagnostic],
        value: Optional[str] = None,
    ) -> WriteResult:
        try:
            stored = self.fallback.set_json(key, payload)
        except StorageUnavailableError as e:
            logger.error(f"Fallback store rejected {what}: {e}")
            diagnostics.append(Diagnostic.error("storage", f"{what} not stored: {e}"))
            return WriteResult(target=StorageTarget.DROPPED, diagnostics=diagnostics)

        if not stored:
            diagnostics.append(Diagnostic.warning(
                "storage", f"{what}: payload exceeds the fallback size cap; not stored"
            ))
            return WriteResult(target=StorageTarget.DROPPED, diagnostics=diagnostics)

        return WriteResult(
            target=StorageTarget.FALLBACK, count=count, value=value, diagnostics=diagnostics
        )
