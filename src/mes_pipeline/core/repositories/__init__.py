"""
Repository implementations for data access.

Repositories provided:
- TestRecordRepository: test_records table
- LogFileRepository: log_files table
- LogMappingRepository: log_mappings table (upsert semantics)
"""

from .base import IRepository
from .test_record_repository import TestRecordRepository
from .log_file_repository import LogFileRepository
from .log_mapping_repository import LogMappingRepository

__all__ = [
    "IRepository",
    "TestRecordRepository",
    "LogFileRepository",
    "LogMappingRepository",
]
