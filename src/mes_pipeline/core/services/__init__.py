"""Services orchestrating ingest, storage and dashboard computation."""

from .storage_engine import StorageEngine
from .import_service import ImportService, read_source_files
from .dashboard_service import DashboardService
from .vocabulary_service import VocabularyService

__all__ = [
    "StorageEngine",
    "ImportService",
    "read_source_files",
    "DashboardService",
    "VocabularyService",
]
