"""
Record filtering.

apply_filters is the single predicate applied to a record snapshot before
any aggregation. Every FilterSpec dimension is optional and the set ones are
AND-combined:

- start_date / end_date: inclusive; end_date extends to 23:59:59.999
- result: case-insensitive PASS/FAIL; "all" means no restriction
- serial_number / work_order: case-insensitive substring
- station / model: exact match
"""

from datetime import datetime, time
from typing import List, Optional

from ..ingest.time_parser import parse_record_datetime
from ..models.query import FilterSpec
from ..models.test_record import TestRecord

END_OF_DAY = time(23, 59, 59, 999000)


def _contains(haystack: str, needle: Optional[str]) -> bool:
    return needle is None or needle.lower() in (haystack or "").lower()


def apply_filters(records: List[TestRecord], spec: Optional[FilterSpec] = None) -> List[TestRecord]:
    """
    Filter records.

    Records whose test time cannot be parsed are excluded only while a date
    bound is set. With an empty spec the input comes back unchanged (same
    records, same order).

    Args:
        records: Record snapshot
        spec: Filter; None behaves like an empty FilterSpec

    Returns:
        New list of matching records, input order preserved
    """
    if spec is None:
        return list(records)

    start = datetime.combine(spec.start_date, time.min) if spec.start_date else None
    end = datetime.combine(spec.end_date, END_OF_DAY) if spec.end_date else None

    result = spec.result.upper() if spec.result else None
    if result == "ALL":
        result = None

    matched = []
    for record in records:
        if start is not None or end is not None:
            tested_at = parse_record_datetime(record.test_time)
            if tested_at is None:
                continue
            if start is not None and tested_at < start:
                continue
            if end is not None and tested_at > end:
                continue
        if result is not None and record.result != result:
            continue
        if not _contains(record.serial_number, spec.serial_number):
            continue
        if not _contains(record.work_order, spec.work_order):
            continue
        if spec.station is not None and record.station != spec.station:
            continue
        if spec.model is not None and record.model != spec.model:
            continue
        matched.append(record)
    return matched
