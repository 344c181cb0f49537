"""
Quick-filter date ranges.

Translates the dashboard's quick-filter buttons into inclusive calendar-day
ranges. Weeks start on Sunday. All functions take "today" explicitly so
results do not depend on the wall clock.
"""

from datetime import date, timedelta
from typing import Optional

from ..constants import DEFAULT_WINDOW_DAYS
from ..exceptions import ValidationError
from ..ingest.time_parser import parse_record_datetime
from ..models.query import DateRangeInfo, FilterSpec

QUICK_FILTERS = (
    "today",
    "yesterday",
    "last7days",
    "last30days",
    "thisWeek",
    "lastWeek",
    "thisMonth",
    "lastMonth",
    "custom",
)

__all__ = ["QUICK_FILTERS", "quick_filter_range", "date_range_info", "parse_record_datetime"]


def _week_start(day: date) -> date:
    # date.weekday() is Monday=0; shift so that Sunday starts the week
    return day - timedelta(days=(day.weekday() + 1) % 7)


def quick_filter_range(kind: str, today: Optional[date] = None) -> DateRangeInfo:
    """
    Date range of a quick filter.

    Args:
        kind: One of QUICK_FILTERS ("custom" yields today only)
        today: Reference day (defaults to date.today())

    Returns:
        DateRangeInfo with a display label

    Raises:
        ValidationError: If kind is not a known quick filter
    """
    today = today or date.today()

    if kind == "today":
        return DateRangeInfo(start_date=today, end_date=today, label="Today")
    if kind == "yesterday":
        yesterday = today - timedelta(days=1)
        return DateRangeInfo(start_date=yesterday, end_date=yesterday, label="Yesterday")
    if kind == "last7days":
        return DateRangeInfo(start_date=today - timedelta(days=6), end_date=today, label="Last 7 Days")
    if kind == "last30days":
        return DateRangeInfo(start_date=today - timedelta(days=29), end_date=today, label="Last 30 Days")
    if kind == "thisWeek":
        return DateRangeInfo(start_date=_week_start(today), end_date=today, label="This Week")
    if kind == "lastWeek":
        start = _week_start(today) - timedelta(days=7)
        return DateRangeInfo(start_date=start, end_date=start + timedelta(days=6), label="Last Week")
    if kind == "thisMonth":
        return DateRangeInfo(start_date=today.replace(day=1), end_date=today, label="This Month")
    if kind == "lastMonth":
        last_month_end = today.replace(day=1) - timedelta(days=1)
        return DateRangeInfo(
            start_date=last_month_end.replace(day=1), end_date=last_month_end, label="Last Month"
        )
    if kind == "custom":
        return DateRangeInfo(start_date=today, end_date=today, label="Custom")

    raise ValidationError(f"Unknown quick filter '{kind}'. Expected one of: {', '.join(QUICK_FILTERS)}")


def date_range_info(spec: Optional[FilterSpec] = None, today: Optional[date] = None) -> DateRangeInfo:
    """
    Day range covered by a filter, for the daily series.

    Both bounds set: that range. Only one bound: a DEFAULT_WINDOW_DAYS
    window anchored on it. Neither: the last DEFAULT_WINDOW_DAYS days
    ending today.

    Raises:
        ValidationError: If end_date is before start_date
    """
    today = today or date.today()
    window = timedelta(days=DEFAULT_WINDOW_DAYS - 1)
    start = spec.start_date if spec else None
    end = spec.end_date if spec else None

    if start and end:
        if end < start:
            raise ValidationError(f"End date {end} is before start date {start}")
        return DateRangeInfo(start_date=start, end_date=end)
    if start:
        return DateRangeInfo(start_date=start, end_date=start + window)
    if end:
        return DateRangeInfo(start_date=end - window, end_date=end)
    return DateRangeInfo(start_date=today - window, end_date=today, label=f"Last {DEFAULT_WINDOW_DAYS} Days")
