"""
Dashboard service.

Builds a DashboardSnapshot: reads the stored records once, applies the
filter, and runs every aggregation over that one filtered snapshot, so all
numbers on a refreshed dashboard agree with each other.
"""

import logging
from datetime import date
from typing import Optional

from ..analysis.aggregation import (
    compute_daily_series,
    compute_daily_station_counts,
    compute_daily_station_pass_rates,
    compute_failure_reasons,
    compute_kpi,
    compute_model_stats,
    compute_retest_groups,
    compute_retest_stats,
    compute_station_stats,
)
from ..analysis.date_ranges import date_range_info
from ..analysis.filters import apply_filters
from ..models.query import FilterSpec
from ..models.stats import DashboardSnapshot
from .storage_engine import StorageEngine
from .vocabulary_service import VocabularyService

logger = logging.getLogger(__name__)


class DashboardService:
    """
    Service computing dashboard data from stored records.

    Stateless apart from its dependencies; every call recomputes from the
    current store contents.
    """

    def __init__(self, storage: StorageEngine, vocabulary: VocabularyService, failure_reason_limit: Optional[int] = 10):
        """
        Initialize dashboard service with dependencies.

        Args:
            storage: Storage engine to read records from
            vocabulary: Configured stations and models
            failure_reason_limit: Top-N failure reasons (None for all)
        """
        self.storage = storage
        self.vocabulary = vocabulary
        self.failure_reason_limit = failure_reason_limit

    def build_snapshot(self, spec: Optional[FilterSpec] = None, today: Optional[date] = None) -> DashboardSnapshot:
        """
        Compute every dashboard aggregate for a filter.

        Args:
            spec: Record filter (None for all records)
            today: Reference day for the default date window

        Returns:
            DashboardSnapshot

        Raises:
            ValidationError: If the filter's end date precedes its start date
        """
        spec = spec or FilterSpec()
        date_range = date_range_info(spec, today)
        stations = self.vocabulary.get_stations()
        models = self.vocabulary.get_models()

        records = apply_filters(self.storage.get_all_records(), spec)
        logger.debug(f"Building dashboard for {len(records)} records, {date_range.start_date}..{date_range.end_date}")

        return DashboardSnapshot(
            records=records,
            kpi=compute_kpi(records),
            station_stats=compute_station_stats(records, stations),
            model_stats=compute_model_stats(records, models),
            daily_series=compute_daily_series(records, date_range),
            daily_station_counts=compute_daily_station_counts(records, date_range, stations),
            daily_station_pass_rates=compute_daily_station_pass_rates(records, date_range, stations),
            failure_reasons=compute_failure_reasons(records, self.failure_reason_limit),
            retest_stats=compute_retest_stats(records),
            retest_groups=compute_retest_groups(records),
        )
