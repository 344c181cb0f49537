"""
Aggregation engine.

Pure functions that turn a filtered record snapshot into the structures
rendered by the dashboard:

- KPI summary (compute_kpi)
- Per-station and per-model stats (compute_station_stats, compute_model_stats)
- Daily series and per-station heat-map data (compute_daily_series,
  compute_daily_station_counts, compute_daily_station_pass_rates)
- Failure reasons per test item name (compute_failure_reasons)
- Retest statistics per station and retest groups per serial
  (compute_retest_stats, compute_retest_groups)

No function here mutates its input or keeps state between calls. Grouping
preserves discovery order and every sort is Python's stable sorted(), so
rows that tie on the sort key keep the order in which they were first seen.

Two retest definitions coexist on purpose:
- compute_retest_stats: a serial is retested at a station when it has two
  or more records there, whatever their results
- compute_retest_groups: only FAIL records count, grouped by serial alone
"""

import math
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from ..constants import (
    DAILY_RETEST_RATIO,
    REFERENCE_PASS_RATE,
    RESULT_FAIL,
    UNKNOWN,
    UNKNOWN_TEST_NAME,
)
from ..ingest.time_parser import parse_record_datetime, record_day
from ..models.query import DateRangeInfo
from ..models.stats import (
    DailyBucket,
    DailySeries,
    FailureReason,
    KPISummary,
    ModelStats,
    RetestGroup,
    RetestStationStats,
    StationStats,
)
from ..models.test_record import TestRecord


def percent(part: int, whole: int, digits: int = 1) -> float:
    """part/whole as a percentage rounded to digits decimals (0 when whole is 0)."""
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, digits)


def whole_percent(part: int, whole: int) -> int:
    """part/whole as a whole percentage, halves rounded up (0 when whole is 0)."""
    if whole <= 0:
        return 0
    return int(math.floor(part / whole * 100 + 0.5))


def station_of(record: TestRecord) -> str:
    return record.station.strip() or UNKNOWN


def model_of(record: TestRecord) -> str:
    return record.model.strip() or UNKNOWN


def chronological(records: Iterable[TestRecord]) -> List[TestRecord]:
    """
    Sort records by test time, oldest first.

    Records whose test time cannot be parsed sort first; ties keep input order.
    """
    return sorted(records, key=lambda r: parse_record_datetime(r.test_time) or datetime.min)


def day_labels(date_range: DateRangeInfo) -> List[str]:
    """ISO dates of every day in the range, both ends included."""
    return [
        (date_range.start_date + timedelta(days=offset)).isoformat()
        for offset in range(date_range.diff_days)
    ]


def compute_kpi(records: List[TestRecord], reference_rate: float = REFERENCE_PASS_RATE) -> KPISummary:
    """
    Compute the headline KPI numbers.

    Args:
        records: Filtered records
        reference_rate: Pass rate the trend is classified against

    Returns:
        KPISummary. retest_count counts every record beyond the first per
        serial number; production yield is the share of serials with at
        least one PASS.
    """
    total = len(records)
    passed = sum(1 for r in records if r.passed)
    failed = total - passed

    serials = {r.serial_number for r in records}
    passed_serials = {r.serial_number for r in records if r.passed}
    device_count = len(serials)
    passed_device_count = len(passed_serials)

    pass_rate = percent(passed, total)
    if pass_rate > reference_rate:
        trend = "up"
    elif pass_rate < reference_rate:
        trend = "down"
    else:
        trend = "neutral"

    return KPISummary(
        total=total,
        passed=passed,
        failed=failed,
        pass_rate=pass_rate,
        device_count=device_count,
        passed_device_count=passed_device_count,
        failed_device_count=device_count - passed_device_count,
        production_yield_rate=percent(passed_device_count, device_count),
        retest_count=total - device_count,
        trend=trend,
        trend_value=f"{pass_rate:.1f}%",
    )


def _tally(records: List[TestRecord], configured: List[str], key) -> "OrderedDict[str, List[int]]":
    # name -> [total, passed], configured names first
    counts: "OrderedDict[str, List[int]]" = OrderedDict()
    for name in configured:
        counts.setdefault(name, [0, 0])
    for record in records:
        entry = counts.setdefault(key(record), [0, 0])
        entry[0] += 1
        if record.passed:
            entry[1] += 1
    return counts


def compute_station_stats(records: List[TestRecord], configured_stations: Optional[List[str]] = None) -> List[StationStats]:
    """
    Per-station totals.

    Every configured station is reported, even without records; stations
    found only in the data follow in discovery order. A blank station is
    reported as "Unknown".
    """
    counts = _tally(records, configured_stations or [], station_of)
    return [
        StationStats(
            station=station,
            total=total,
            passed=passed,
            failed=total - passed,
            pass_rate=percent(passed, total),
        )
        for station, (total, passed) in counts.items()
    ]


def compute_model_stats(records: List[TestRecord], configured_models: Optional[List[str]] = None) -> List[ModelStats]:
    """Per-model totals; same completeness rules as compute_station_stats."""
    counts = _tally(records, configured_models or [], model_of)
    return [
        ModelStats(
            model=model,
            total=total,
            passed=passed,
            failed=total - passed,
            pass_rate=percent(passed, total),
        )
        for model, (total, passed) in counts.items()
    ]


def compute_daily_series(records: List[TestRecord], date_range: DateRangeInfo) -> DailySeries:
    """
    One bucket per calendar day of the range.

    Records are matched to buckets by their test time truncated to
    YYYY-MM-DD; records outside the range (or without a usable test time)
    are ignored. The retest count of a bucket is an approximation:
    floor(DAILY_RETEST_RATIO * failed).

    Args:
        records: Filtered records
        date_range: Inclusive day range

    Returns:
        DailySeries with date_range.diff_days buckets
    """
    labels = day_labels(date_range)
    index = {label: i for i, label in enumerate(labels)}
    totals = [0] * len(labels)
    passes = [0] * len(labels)
    devices = [set() for _ in labels]
    passed_devices = [set() for _ in labels]

    for record in records:
        i = index.get(record_day(record.test_time))
        if i is None:
            continue
        totals[i] += 1
        if record.serial_number:
            devices[i].add(record.serial_number)
        if record.passed:
            passes[i] += 1
            if record.serial_number:
                passed_devices[i].add(record.serial_number)

    buckets = []
    for i, label in enumerate(labels):
        failed = totals[i] - passes[i]
        buckets.append(DailyBucket(
            date=label,
            total=totals[i],
            passed=passes[i],
            failed=failed,
            pass_rate=whole_percent(passes[i], totals[i]),
            device_count=len(devices[i]),
            passed_device_count=len(passed_devices[i]),
            production_yield_rate=whole_percent(len(passed_devices[i]), len(devices[i])),
            retest_count=int(math.floor(failed * DAILY_RETEST_RATIO)),
        ))
    return DailySeries(buckets=buckets)


def compute_daily_station_counts(
    records: List[TestRecord],
    date_range: DateRangeInfo,
    configured_stations: Optional[List[str]] = None,
) -> Dict[str, List[int]]:
    """
    Records per station per day (heat-map input).

    Returns:
        station -> list of day counts aligned with day_labels(date_range);
        configured stations first, then stations found in the data
    """
    labels = day_labels(date_range)
    index = {label: i for i, label in enumerate(labels)}
    counts: Dict[str, List[int]] = OrderedDict(
        (station, [0] * len(labels)) for station in (configured_stations or [])
    )
    for record in records:
        row = counts.setdefault(station_of(record), [0] * len(labels))
        i = index.get(record_day(record.test_time))
        if i is not None:
            row[i] += 1
    return counts


def compute_daily_station_pass_rates(
    records: List[TestRecord],
    date_range: DateRangeInfo,
    configured_stations: Optional[List[str]] = None,
) -> Dict[str, List[Optional[int]]]:
    """
    Whole-percent pass rate per station per day.

    Days without records for a station are None rather than 0, so the view
    can tell "no tests" from "all failed".
    """
    labels = day_labels(date_range)
    index = {label: i for i, label in enumerate(labels)}
    tallies: Dict[str, List[List[int]]] = OrderedDict(
        (station, [[0, 0] for _ in labels]) for station in (configured_stations or [])
    )
    for record in records:
        row = tallies.setdefault(station_of(record), [[0, 0] for _ in labels])
        i = index.get(record_day(record.test_time))
        if i is None:
            continue
        row[i][0] += 1
        if record.passed:
            row[i][1] += 1

    return OrderedDict(
        (station, [whole_percent(passed, total) if total else None for total, passed in row])
        for station, row in tallies.items()
    )


def compute_failure_reasons(records: List[TestRecord], limit: Optional[int] = None) -> List[FailureReason]:
    """
    Failure rate per test item name across all records.

    Names that never failed are dropped. Sorted by failure rate, highest
    first; ties keep discovery order.

    Args:
        records: Filtered records
        limit: Optional maximum number of reasons to return

    Returns:
        List of FailureReason
    """
    tallies: "OrderedDict[str, List[int]]" = OrderedDict()
    for record in records:
        for item in record.items:
            entry = tallies.setdefault(item.name or UNKNOWN_TEST_NAME, [0, 0])
            entry[0] += 1
            if item.failed:
                entry[1] += 1

    reasons = [
        FailureReason(reason=name, count=failed, total=total, failure_rate=percent(failed, total))
        for name, (total, failed) in tallies.items()
        if failed > 0
    ]
    reasons = sorted(reasons, key=lambda r: r.failure_rate, reverse=True)
    return reasons[:limit] if limit is not None else reasons


def compute_retest_stats(records: List[TestRecord]) -> List[RetestStationStats]:
    """
    Retest statistics per station.

    Records are grouped by (station, serial). Per station, original_count
    is the number of records seen there and retest_count the number of
    serials with two or more records there. final_pass_count counts the
    retested serials whose chronologically last test passed. Stations
    without retests are omitted. Sorted by retest rate, highest first.
    """
    groups: "OrderedDict[str, OrderedDict[str, List[TestRecord]]]" = OrderedDict()
    for record in records:
        serials = groups.setdefault(station_of(record), OrderedDict())
        serials.setdefault(record.serial_number, []).append(record)

    stats = []
    for station, serials in groups.items():
        original_count = sum(len(group) for group in serials.values())
        retested = [group for group in serials.values() if len(group) >= 2]
        if not retested:
            continue
        final_pass_count = sum(1 for group in retested if chronological(group)[-1].passed)
        stats.append(RetestStationStats(
            station=station,
            original_count=original_count,
            retest_count=len(retested),
            retest_rate=percent(len(retested), original_count),
            final_pass_count=final_pass_count,
            retest_pass_rate=percent(final_pass_count, len(retested)),
        ))

    return sorted(stats, key=lambda s: s.retest_rate, reverse=True)


def compute_retest_groups(records: List[TestRecord]) -> List[RetestGroup]:
    """
    Serial numbers that failed more than once.

    Only FAIL records take part. A serial with a single failure is not a
    group. Each group lists its records chronologically and the sorted
    union of failed item names over every attempt. Sorted by retest count,
    highest first.
    """
    by_serial: "OrderedDict[str, List[TestRecord]]" = OrderedDict()
    for record in records:
        if record.result == RESULT_FAIL:
            by_serial.setdefault(record.serial_number, []).append(record)

    groups = []
    for serial, failures in by_serial.items():
        if len(failures) < 2:
            continue
        ordered = chronological(failures)
        failed_items = sorted({name for r in ordered for name in r.failed_item_names()})
        groups.append(RetestGroup(
            serial_number=serial,
            retest_count=len(ordered),
            first_record=ordered[0],
            last_record=ordered[-1],
            records=ordered,
            failed_items=failed_items,
        ))

    return sorted(groups, key=lambda g: g.retest_count, reverse=True)
