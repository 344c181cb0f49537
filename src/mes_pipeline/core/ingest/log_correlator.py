"""
Log file correlator.

Testers write a JSON result and a LOG file per run, both named after the
run's timestamp and the unit's serial number:

    20250920-063924-CH001.json
    20250920-063924-CH001.log
    20250920-063924-CH001[retry].log

The grammar is: 8-digit date, dash, 6-digit time, dash, then the serial up
to the next bracket or dot. Both files reduce to the same correlation key
"serial_timestamp", which is how a JSON record finds its LOG file.

Correlation is purely filename based and independent of normalization; a
record whose filename does not match is stored without a LogMapping.
"""

import re
from pathlib import PurePath
from typing import Optional, Union
from pydantic import BaseModel

from ..models.test_record import TestRecord


class CorrelationKey(BaseModel):
    """
    Serial and timestamp extracted from a filename.

    Attributes:
        timestamp: "YYYYMMDD-HHMMSS" exactly as written in the filename
        serial: Serial number segment
    """

    timestamp: str
    serial: str

    @property
    def key(self) -> str:
        """Correlation key "serial_timestamp"."""
        return f"{self.serial}_{self.timestamp}"


class LogFileCorrelator:
    """
    Filename grammar shared by LOG and JSON files.

    Stateless: the lookup table from correlation key to stored log id is
    owned by the import that builds it.
    """

    # 8-digit date, dash, 6-digit time, dash, serial up to "[", "]" or "."
    FILENAME_PATTERN = re.compile(r"(\d{8}-\d{6})-([^\[\].]+)")

    def correlate(self, file_name: Union[str, PurePath]) -> Optional[CorrelationKey]:
        """
        Extract the correlation key from a filename.

        Args:
            file_name: LOG or JSON filename (directories are ignored)

        Returns:
            CorrelationKey, or None when the filename does not follow the grammar
        """
        name = PurePath(file_name).name
        match = self.FILENAME_PATTERN.search(name)
        if not match:
            return None
        timestamp, serial = match.groups()
        serial = serial.strip()
        if not serial:
            return None
        return CorrelationKey(timestamp=timestamp, serial=serial)

    @staticmethod
    def record_key(record: TestRecord, timestamp: str) -> str:
        """
        LogMapping primary key for a record: "serial_timestamp_station".

        Uses the record's normalized serial and station, so two stations
        testing the same unit at the same second get distinct mappings.
        """
        return f"{record.serial_number}_{timestamp}_{record.station}"

    @staticmethod
    def log_file_name(key: CorrelationKey) -> str:
        """Canonical LOG filename for a key: "timestamp-serial.log"."""
        return f"{key.timestamp}-{key.serial}.log"
