"""
Test-time parsing.

Uploaded documents carry their test time in one of three shapes:

    2025-09-20 14:30:00
    2025/09/20 14:30:00
    2025-09-20T14:30:00

A single regex captures year/month/day/hour/minute/second from any of them.
Anything else yields empty date/time components; the raw string is kept so
the view layer can still display something.

Times are local wall-clock values: no timezone conversion is applied.
"""

import re
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

# YYYY[-/]MM[-/]DD[ T-]HH:MM:SS, searched anywhere in the string
TEST_TIME_PATTERN = re.compile(
    r"(\d{4})[/-](\d{2})[/-](\d{2})[ T-](\d{2}):(\d{2}):(\d{2})"
)

# Date-only prefix used when bucketing stored records by day
DATE_PREFIX_PATTERN = re.compile(r"^(\d{4})[/-](\d{2})[/-](\d{2})")


class ParsedTestTime(BaseModel):
    """
    Result of parsing a test-time string.

    Attributes:
        date: "YYYY-MM-DD" or "" when unparseable
        time: "HH:MM:SS" or "" when unparseable
        raw: The stripped input string
    """

    date: str = ""
    time: str = ""
    raw: str = ""

    @property
    def parsed(self) -> bool:
        return bool(self.date and self.time)

    @property
    def display(self) -> str:
        """Canonical "date time" when parsed, otherwise the raw string."""
        if self.parsed:
            return f"{self.date} {self.time}"
        return self.date or self.raw


def parse_test_time(value) -> ParsedTestTime:
    """
    Parse a test-time value.

    Args:
        value: Anything; None and non-strings are converted with str()

    Returns:
        ParsedTestTime with date/time set when the pattern matched
    """
    raw = "" if value is None else str(value).strip()
    match = TEST_TIME_PATTERN.search(raw)
    if not match:
        return ParsedTestTime(raw=raw)
    year, month, day, hour, minute, second = match.groups()
    return ParsedTestTime(
        date=f"{year}-{month}-{day}",
        time=f"{hour}:{minute}:{second}",
        raw=raw,
    )


def parse_record_datetime(test_time: str) -> Optional[datetime]:
    """
    Convert a stored test_time into a naive local datetime.

    Accepts the three upload shapes, date-only strings and full ISO strings
    (with fractional seconds or a UTC offset, as produced for placeholder
    records). Offsets are dropped - stored times are wall-clock values.

    Args:
        test_time: Stored test_time string

    Returns:
        datetime, or None when the string cannot be interpreted
    """
    if not test_time:
        return None
    text = str(test_time).strip()
    parsed = parse_test_time(text)
    if parsed.parsed:
        try:
            return datetime.strptime(parsed.display, "%Y-%m-%d %H:%M:%S")
        except ValueError:
            # Matched the shape but not a real calendar date (e.g. month 13)
            return None
    try:
        value = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        match = DATE_PREFIX_PATTERN.match(text)
        if not match:
            return None
        try:
            return datetime(*(int(part) for part in match.groups()))
        except ValueError:
            return None
    return value.replace(tzinfo=None)


def record_day(test_time: str) -> str:
    """
    Truncate a stored test_time to "YYYY-MM-DD".

    Returns "" when no date can be recovered.
    """
    value = parse_record_datetime(test_time)
    return value.date().isoformat() if value else ""
