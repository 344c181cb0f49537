"""
Filter and date-range models.

FilterSpec is the uniform predicate applied before any aggregation. Every
dimension is optional; None, an empty string and whitespace all mean
"no restriction" on that dimension.
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel, field_validator, model_validator


class FilterSpec(BaseModel):
    """
    Record filter (all set dimensions are AND-combined).

    Attributes:
        start_date: First included calendar day
        end_date: Last included calendar day (through 23:59:59.999)
        result: "PASS"/"FAIL" in any case; "all" means no restriction
        serial_number: Case-insensitive substring of the serial number
        work_order: Case-insensitive substring of the work order
        station: Exact station name
        model: Exact model name
    """

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    result: Optional[str] = None
    serial_number: Optional[str] = None
    work_order: Optional[str] = None
    station: Optional[str] = None
    model: Optional[str] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def blank_date_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("result", "serial_number", "work_order", "station", "model", mode="before")
    @classmethod
    def blank_text_is_none(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        return text or None


class DateRangeInfo(BaseModel):
    """
    Inclusive calendar-day range used by the daily series.

    Both ends are included, so a range whose start equals its end covers
    exactly one day.
    """

    start_date: date
    end_date: date
    label: str = "Custom"

    @model_validator(mode="after")
    def check_order(self) -> "DateRangeInfo":
        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date ({self.end_date}) is before start_date ({self.start_date})"
            )
        return self

    @property
    def diff_days(self) -> int:
        """Number of calendar days in the range, both ends included."""
        return (self.end_date - self.start_date).days + 1
