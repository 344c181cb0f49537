"""
Ingestion of uploaded test documents.

- RecordNormalizer: JSON documents -> canonical TestRecords
- LogFileCorrelator: filename grammar that pairs LOG files with records
- parse_test_time: timestamp parsing shared by both
"""

from .time_parser import ParsedTestTime, parse_test_time
from .normalizer import NormalizationResult, RecordNormalizer, is_valid_mes_data
from .log_correlator import CorrelationKey, LogFileCorrelator

__all__ = [
    "ParsedTestTime",
    "parse_test_time",
    "NormalizationResult",
    "RecordNormalizer",
    "is_valid_mes_data",
    "CorrelationKey",
    "LogFileCorrelator",
]
