"""
Log file and log mapping models.

A LogFile is the raw text of an uploaded .log file, stored as a blob and
keyed by "serial_epochMillis". A LogMapping links one test record (by its
composite record key "serial_timestamp_station") to a stored LogFile.

A record has zero or one mapping; a log file may in principle be referenced
by several mappings (in practice at most one).
"""

from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


class LogFile(BaseModel):
    """Raw log blob owned by the storage engine until an explicit clear."""

    # "serial_epochMillis"
    id: str

    serial: str
    file_name: str
    content: str

    # Import time (not the test time embedded in the filename)
    timestamp: datetime = Field(default_factory=datetime.now)

    # Size in characters
    size: int = 0

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LogMapping(BaseModel):
    """Correlation between a test record and a stored log file."""

    # "serial_timestamp_station" - primary key, upserted on re-import
    record_key: str

    serial: str
    file_name: str

    # Reference to LogFile.id
    log_id: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
