"""
Record normalizer for uploaded MES test documents.

This module turns arbitrary parsed JSON (one object, an array of objects,
or something else entirely) into canonical TestRecords. It is deliberately
total: every input produces at least one record, and nothing here raises
for malformed content. Degraded results are signaled by placeholder field
values plus Diagnostics, never by exceptions.

Recovery ladder, from best to worst:
1. Field extraction through the alias table (field_aliases.FIELD_ALIASES)
2. Status-only documents ({"Result": [{"Name": ...}]}): the name becomes
   the serial number and "now" the test time
3. Unrecognizable documents: a generic "Unknown" record stamped "now"
4. Unparseable text: a repair pass (trailing commas, single quotes), then
   a FAIL placeholder named after the file

After normalization the import service may fill still-empty fields from
the filename (apply_filename_hints).
"""

import json
import logging
import re
from datetime import datetime
from pathlib import PurePath
from typing import Any, Callable, List, Mapping, Optional, Tuple
from pydantic import BaseModel, Field

from ..constants import RESULT_FAIL, UNKNOWN, UNKNOWN_TEST_NAME
from ..models.diagnostics import Diagnostic
from ..models.test_record import TestItem, TestRecord
from .field_aliases import (
    extract_field,
    extract_fields,
    extract_raw_items,
    is_empty,
    result_entry_name,
)
from .time_parser import parse_test_time

logger = logging.getLogger(__name__)

# Item names that are metadata, not test items
DATE_TIME_ITEM_PATTERN = re.compile(
    r"^(date\s*time|datetime|test\s*time|date|time)$", re.IGNORECASE
)

# Filename hints: "20250920-063924-..." timestamps, station and model codes
FILENAME_TIMESTAMP_PATTERN = re.compile(r"(\d{8})-(\d{6})")
FILENAME_STATION_PATTERN = re.compile(r"(FA_FT\d+|ICT_\d+|FINAL_\d+)", re.IGNORECASE)
FILENAME_MODEL_PATTERN = re.compile(r"(WA\d+|WB\d+|XC\d+)", re.IGNORECASE)

# Extensions stripped when a filename stands in for a serial number
SOURCE_EXTENSION_PATTERN = re.compile(r"\.(json|log)$", re.IGNORECASE)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class NormalizationResult(BaseModel):
    """
    Records produced from one document, plus what went wrong on the way.

    Attributes:
        records: At least one TestRecord
        diagnostics: Non-fatal problems (repairs, placeholders, fallbacks)
        valid: Advisory is_valid_mes_data verdict for the document
        repaired: The JSON text needed the repair pass
        placeholder: The text was unparseable; records holds a placeholder
    """

    records: List[TestRecord] = Field(default_factory=list)
    diagnostics: List[Diagnostic] = Field(default_factory=list)
    valid: bool = False
    repaired: bool = False
    placeholder: bool = False


def is_valid_mes_data(document: Any) -> bool:
    """
    Advisory check whether a parsed document looks like MES test data.

    Used for diagnostics only - invalid documents are still normalized.

    Args:
        document: Parsed JSON value

    Returns:
        True when the document has (serial and test time) or
        (items and (fixture number or station)); False for non-objects and
        for status-only {"Result": [...]} documents without items
    """
    if not isinstance(document, Mapping):
        return False

    if isinstance(document.get("Result"), list) and is_empty(document.get("Items")):
        return False

    has_serial = bool(extract_field(document, "serial_number"))
    has_test_time = bool(extract_field(document, "test_time"))
    has_station = bool(extract_field(document, "station"))
    has_fixture = bool(extract_field(document, "fixture_number"))
    has_items = not is_empty(document.get("Items")) or not is_empty(document.get("items"))

    return (has_serial and has_test_time) or (has_items and (has_fixture or has_station))


def repair_json(text: str) -> str:
    """
    Best-effort repair of common JSON mistakes.

    Removes trailing commas before closing braces/brackets and turns single
    quotes into double quotes. The quote swap is blunt (apostrophes inside
    strings are swapped too); it only runs after strict parsing failed.
    """
    repaired = re.sub(r",\s*}", "}", text)
    repaired = re.sub(r",\s*]", "]", repaired)
    return repaired.replace("'", '"').strip()


def filename_stem(filename: str) -> str:
    """Filename without directories and without a .json/.log extension."""
    return SOURCE_EXTENSION_PATTERN.sub("", PurePath(filename).name)


class RecordNormalizer:
    """
    Normalizer from parsed JSON to canonical TestRecords.

    The clock is injectable so placeholder timestamps are deterministic in
    tests; it defaults to the local wall clock.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize the normalizer.

        Args:
            clock: Optional callable returning "now" (defaults to datetime.now)
        """
        self.clock = clock or datetime.now

    def now_text(self) -> str:
        return self.clock().strftime(TIME_FORMAT)

    def parse_document(self, text: str, filename: str) -> NormalizationResult:
        """
        Parse JSON text and normalize it.

        Strict parsing first; on failure one repair pass and a retry; if
        that fails too, a single FAIL placeholder record named after the
        file. Nesting too deep for the JSON parser counts as unparseable.
        Never raises.

        Args:
            text: File content
            filename: Original filename (used for the placeholder serial)

        Returns:
            NormalizationResult with at least one record
        """
        text = (text or "").lstrip("\ufeff")
        try:
            data = json.loads(text)
        except (ValueError, RecursionError) as parse_error:
            logger.warning(f"JSON parse failed for {filename}, trying repair: {parse_error}")
            try:
                data = json.loads(repair_json(text))
            except (ValueError, RecursionError) as repair_error:
                logger.error(f"JSON repair failed for {filename}: {repair_error}")
                return NormalizationResult(
                    records=[self.placeholder_record(filename)],
                    diagnostics=[Diagnostic.error(
                        filename,
                        f"Unparseable JSON ({repair_error}); stored a FAIL placeholder record",
                    )],
                    placeholder=True,
                )

            result = self.normalize(data, source=filename)
            result.repaired = True
            result.diagnostics.insert(0, Diagnostic.warning(
                filename, "JSON was malformed and has been repaired"
            ))
            return result

        return self.normalize(data, source=filename)

    def normalize(self, raw: Any, source: str = "<document>") -> NormalizationResult:
        """
        Normalize a parsed JSON value into TestRecords.

        Objects and arrays of objects are the expected inputs; scalars,
        None and non-object array elements are treated as empty objects.
        An empty array still yields one generic record so that no upload
        disappears silently.

        Args:
            raw: Parsed JSON value
            source: Label for diagnostics (usually the filename)

        Returns:
            NormalizationResult with at least one record
        """
        elements = raw if isinstance(raw, list) else [raw]
        diagnostics: List[Diagnostic] = []

        if not elements:
            diagnostics.append(Diagnostic.warning(source, "Empty JSON array; stored a generic record"))
            elements = [{}]

        records = []
        valid = True
        for element in elements:
            document = element if isinstance(element, Mapping) else {}
            valid = valid and is_valid_mes_data(document)
            record, warning = self.normalize_record(document)
            if warning:
                diagnostics.append(Diagnostic.warning(source, warning))
            records.append(record)

        if not valid:
            logger.info(f"{source}: document does not look like MES test data")
            diagnostics.append(Diagnostic.info(source, "Document does not look like MES test data"))

        return NormalizationResult(records=records, diagnostics=diagnostics, valid=valid)

    def normalize_record(self, document: Mapping[str, Any]) -> Tuple[TestRecord, Optional[str]]:
        """
        Normalize one JSON object.

        Args:
            document: Parsed JSON object

        Returns:
            Tuple of (TestRecord, warning message or None)
        """
        fields = extract_fields(document)
        warning = None

        if not (fields["serial_number"] or fields["test_time"] or fields["station"]):
            status_name = result_entry_name(document)
            if status_name:
                fields["serial_number"] = status_name
                warning = f"Status-only document; using result name '{status_name}' as serial"
            else:
                fields["serial_number"] = UNKNOWN
                warning = "No serial, test time or station found; stored a generic record"
            fields["test_time"] = self.now_text()
            fields["station"] = UNKNOWN
            fields["model"] = UNKNOWN

        parsed = parse_test_time(fields["test_time"])
        items = self.normalize_items(extract_raw_items(document))

        record = TestRecord(
            serial_number=fields["serial_number"],
            work_order=fields["work_order"],
            station=fields["station"],
            model=fields["model"],
            result=TestRecord.derive_result(items),
            test_time=parsed.display,
            tester=fields["tester"],
            part_number=fields["part_number"],
            fixture_number=fields["fixture_number"],
            date=parsed.date,
            time=parsed.time,
            items=items,
        )
        return record, warning

    def normalize_items(self, raw_items: List[Any]) -> List[TestItem]:
        """
        Convert raw item objects into TestItems.

        Skips non-object entries and date/time metadata items. Unnamed
        items are kept under the name "Unknown Test".
        """
        items = []
        for raw_item in raw_items:
            if not isinstance(raw_item, Mapping):
                continue
            name = raw_item.get("name", raw_item.get("Name"))
            name = "" if name is None else str(name).strip()
            if DATE_TIME_ITEM_PATTERN.match(name):
                continue
            items.append(TestItem(
                name=name or UNKNOWN_TEST_NAME,
                value=raw_item.get("value", raw_item.get("Value")),
                result=raw_item.get("result", raw_item.get("Result")),
            ))
        return items

    def placeholder_record(self, filename: str) -> TestRecord:
        """FAIL placeholder for a file whose text could not be parsed at all."""
        now = self.now_text()
        parsed = parse_test_time(now)
        return TestRecord(
            serial_number=filename_stem(filename) or UNKNOWN,
            station=UNKNOWN,
            model=UNKNOWN,
            result=RESULT_FAIL,
            test_time=now,
            date=parsed.date,
            time=parsed.time,
        )

    def apply_filename_hints(self, record: TestRecord, filename: str) -> Tuple[TestRecord, List[Diagnostic]]:
        """
        Fill fields that are still empty from the source filename.

        - test time: "YYYYMMDD-HHMMSS" in the filename, otherwise now
        - serial: filename stem
        - station: FA_FTnn / ICT_nn / FINAL_nn, otherwise "Unknown"
        - model: WAn / WBn / XCn, otherwise "Unknown"

        Args:
            record: Normalized record
            filename: Original JSON filename

        Returns:
            Tuple of (record copy with hints applied, diagnostics)
        """
        update = {}
        diagnostics = []

        if not record.test_time:
            match = FILENAME_TIMESTAMP_PATTERN.search(filename)
            if match:
                day, clock = match.groups()
                test_time = (
                    f"{day[0:4]}-{day[4:6]}-{day[6:8]} "
                    f"{clock[0:2]}:{clock[2:4]}:{clock[4:6]}"
                )
            else:
                test_time = self.now_text()
                diagnostics.append(Diagnostic.warning(filename, "No test time found; using import time"))
            parsed = parse_test_time(test_time)
            update.update(test_time=parsed.display, date=parsed.date, time=parsed.time)

        if not record.serial_number:
            update["serial_number"] = filename_stem(filename)
            diagnostics.append(Diagnostic.warning(filename, "No serial number found; using file name"))

        if not record.station:
            match = FILENAME_STATION_PATTERN.search(filename)
            update["station"] = match.group(1) if match else UNKNOWN
            if not match:
                diagnostics.append(Diagnostic.warning(filename, "No station found"))

        if not record.model:
            match = FILENAME_MODEL_PATTERN.search(filename)
            update["model"] = match.group(1) if match else UNKNOWN

        if not update:
            return record, diagnostics
        return record.model_copy(update=update), diagnostics
