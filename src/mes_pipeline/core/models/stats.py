"""
Aggregation result models.

Plain derived structures returned by the aggregation functions and consumed
directly by the view layer. None of these are persisted; they are recomputed
on every query from the filtered record snapshot.

Rates are percentages (0-100). Unless noted otherwise they are rounded to
one decimal place.
"""

from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field

from .test_record import TestRecord


class KPISummary(BaseModel):
    """Headline numbers for the dashboard cards."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    pass_rate: float = 0.0

    # Distinct serial numbers
    device_count: int = 0
    # Distinct serial numbers with at least one PASS
    passed_device_count: int = 0
    failed_device_count: int = 0
    production_yield_rate: float = 0.0

    # Every record beyond the first per serial
    retest_count: int = 0

    trend: Literal["up", "down", "neutral"] = "neutral"
    trend_value: str = "0.0%"


class StationStats(BaseModel):
    station: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    pass_rate: float = 0.0


class ModelStats(BaseModel):
    model: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    pass_rate: float = 0.0


class DailyBucket(BaseModel):
    """
    One calendar day of the daily series.

    pass_rate and production_yield_rate are whole percentages. retest_count
    is an approximation (a fixed share of the day's failures), not a true
    per-day retest count.
    """

    date: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    pass_rate: int = 0
    device_count: int = 0
    passed_device_count: int = 0
    production_yield_rate: int = 0
    retest_count: int = 0


class DailySeries(BaseModel):
    """Ordered day buckets plus column views for charting."""

    buckets: List[DailyBucket] = Field(default_factory=list)

    @property
    def dates(self) -> List[str]:
        return [b.date for b in self.buckets]

    @property
    def total_tests(self) -> List[int]:
        return [b.total for b in self.buckets]

    @property
    def pass_rates(self) -> List[int]:
        return [b.pass_rate for b in self.buckets]

    @property
    def device_counts(self) -> List[int]:
        return [b.device_count for b in self.buckets]

    @property
    def retest_counts(self) -> List[int]:
        return [b.retest_count for b in self.buckets]


class FailureReason(BaseModel):
    """Failure tally of one test item name across all stations and models."""

    reason: str
    # Number of failed occurrences
    count: int
    # Number of occurrences
    total: int
    failure_rate: float


class RetestStationStats(BaseModel):
    """
    Retest statistics of one station.

    A serial counts as retested at a station when it has two or more
    records there, whatever their results.
    """

    station: str
    # Records seen at this station
    original_count: int
    # Serials retested at this station
    retest_count: int
    retest_rate: float
    # Retested serials whose last test passed
    final_pass_count: int
    retest_pass_rate: float


class RetestGroup(BaseModel):
    """
    Repeated failures of one serial number.

    Only FAIL records take part; a group needs at least two of them.
    """

    serial_number: str
    retest_count: int
    first_record: TestRecord
    last_record: TestRecord
    # Chronological
    records: List[TestRecord]
    # Union of failed item names over all attempts, sorted
    failed_items: List[str] = Field(default_factory=list)

    @property
    def station(self) -> str:
        return self.last_record.station

    @property
    def model(self) -> str:
        return self.last_record.model


class DashboardSnapshot(BaseModel):
    """Everything one dashboard refresh needs, computed from one filtered snapshot."""

    records: List[TestRecord] = Field(default_factory=list)
    kpi: KPISummary
    station_stats: List[StationStats] = Field(default_factory=list)
    model_stats: List[ModelStats] = Field(default_factory=list)
    daily_series: DailySeries
    daily_station_counts: Dict[str, List[int]] = Field(default_factory=dict)
    daily_station_pass_rates: Dict[str, List[Optional[int]]] = Field(default_factory=dict)
    failure_reasons: List[FailureReason] = Field(default_factory=list)
    retest_stats: List[RetestStationStats] = Field(default_factory=list)
    retest_groups: List[RetestGroup] = Field(default_factory=list)
