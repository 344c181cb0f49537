"""
Import service.

This module provides the ImportService, which runs one upload batch through
the whole ingest pipeline:

1. LOG files are stored first, so the correlation table (correlation key ->
   stored log id) is complete before any JSON file looks into it
2. JSON files are parsed and normalized in upload order, filename hints
   fill still-empty fields, and each record is paired with its LOG file
3. All records of the batch are written with one insert_many
4. Exactly one "import" DataChangedEvent is published

Content problems never abort a batch; they come back as diagnostics on the
ImportReport. The only fatal error of an import is a file whose bytes cannot
be read, which read_source_files raises before the batch starts.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from ..exceptions import FileLoadError
from ..ingest.log_correlator import LogFileCorrelator
from ..ingest.normalizer import RecordNormalizer
from ..models.diagnostics import Diagnostic
from ..models.imports import ImportReport, SourceFile
from ..models.log_file import LogMapping
from ..models.storage import DataChangedEvent
from ..models.test_record import TestRecord
from .storage_engine import StorageEngine

logger = logging.getLogger(__name__)

# (percent complete, file name)
ProgressCallback = Callable[[float, str], None]


def read_source_files(paths: Iterable[Union[str, Path]]) -> List[SourceFile]:
    """
    Read uploaded files from disk.

    Bytes are decoded as UTF-8; undecodable bytes are replaced rather than
    rejected, since the normalizer copes with damaged text.

    Args:
        paths: File paths

    Returns:
        SourceFile per path, in the given order

    Raises:
        FileLoadError: If a file cannot be read
    """
    files = []
    for path in paths:
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise FileLoadError(f"Failed to read {path}: {e}") from e
        files.append(SourceFile(name=path.name, content=data.decode("utf-8", errors="replace")))
    return files


class ImportService:
    """
    Service for importing JSON test results and LOG files.

    Owns nothing persistent itself: records, logs and mappings go through
    the injected StorageEngine.
    """

    def __init__(
        self,
        storage: StorageEngine,
        normalizer: Optional[RecordNormalizer] = None,
        correlator: Optional[LogFileCorrelator] = None,
    ):
        """
        Initialize import service with dependencies.

        Args:
            storage: Storage engine receiving the batch
            normalizer: Optional - creates default if not provided
            correlator: Optional - creates default if not provided
        """
        self.storage = storage
        self.normalizer = normalizer or RecordNormalizer()
        self.correlator = correlator or LogFileCorrelator()

    def import_paths(self, paths: Iterable[Union[str, Path]], progress: Optional[ProgressCallback] = None) -> ImportReport:
        """Read files from disk and import them (FileLoadError if one is unreadable)."""
        return self.import_files(read_source_files(paths), progress=progress)

    def import_files(self, files: List[SourceFile], progress: Optional[ProgressCallback] = None) -> ImportReport:
        """
        Import one batch of uploaded files.

        Args:
            files: Uploaded files (.json and .log; anything else is ignored)
            progress: Optional callback receiving (percent, file name)
                after each processed file

        Returns:
            ImportReport with counts and diagnostics
        """
        log_files = [f for f in files if f.extension == "log"]
        json_files = [f for f in files if f.extension == "json"]
        report = ImportReport(json_count=len(json_files), log_count=len(log_files))

        for f in files:
            if f.extension not in ("json", "log"):
                report.diagnostics.append(Diagnostic.info(f.name, "Not a .json or .log file; ignored"))

        logger.info(f"Importing {len(json_files)} JSON and {len(log_files)} LOG files")

        total_steps = len(log_files) + len(json_files)
        done = 0

        log_index: Dict[str, str] = {}
        for f in log_files:
            self._store_log_file(f, log_index, report)
            done += 1
            self._report_progress(progress, done, total_steps, f.name)

        records: List[TestRecord] = []
        for f in json_files:
            records.extend(self._import_json_file(f, log_index, report))
            done += 1
            self._report_progress(progress, done, total_steps, f.name)

        write = self.storage.insert_many(records)
        report.diagnostics.extend(write.diagnostics)
        report.total_records = len(records)

        total_count = self.storage.count_records()
        self.storage.publish(DataChangedEvent(
            action="import", record_count=len(records), total_count=total_count
        ))

        logger.info(
            f"Imported {len(records)} records ({report.paired_count} paired with LOG files, "
            f"stored in {write.target.value} store); {len(report.warnings)} warnings"
        )
        return report

    def _store_log_file(self, f: SourceFile, log_index: Dict[str, str], report: ImportReport) -> None:
        key = self.correlator.correlate(f.name)
        if key is None:
            report.diagnostics.append(Diagnostic.info(
                f.name, "LOG file name does not contain a timestamp and serial; not stored"
            ))
            return

        result = self.storage.save_log_file(key.serial, f.name, f.content, backup_key=key.key)
        report.diagnostics.extend(result.diagnostics)
        if result.value:
            log_index[key.key] = result.value
            logger.debug(f"Stored LOG {f.name} as {result.value}")

    def _import_json_file(self, f: SourceFile, log_index: Dict[str, str], report: ImportReport) -> List[TestRecord]:
        normalized = self.normalizer.parse_document(f.content, f.name)
        report.diagnostics.extend(normalized.diagnostics)

        key = self.correlator.correlate(f.name)
        log_id = log_index.get(key.key) if key else None

        records = []
        for record in normalized.records:
            record, hints = self.normalizer.apply_filename_hints(record, f.name)
            report.diagnostics.extend(hints)

            if log_id is not None:
                mapping = LogMapping(
                    record_key=self.correlator.record_key(record, key.timestamp),
                    serial=record.serial_number,
                    file_name=self.correlator.log_file_name(key),
                    log_id=log_id,
                )
                result = self.storage.save_log_mapping(mapping)
                report.diagnostics.extend(result.diagnostics)
                report.paired_count += 1

            records.append(record)
        return records

    def _report_progress(self, progress: Optional[ProgressCallback], done: int, total: int, name: str) -> None:
        if progress is None or total == 0:
            return
        progress(done / total * 100, name)
