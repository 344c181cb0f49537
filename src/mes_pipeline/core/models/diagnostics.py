"""
Non-fatal diagnostics.

The pipeline degrades instead of failing: a malformed document becomes a
placeholder record, a failed SQLite write goes to the fallback store. Each
degradation is reported as a Diagnostic so callers can surface warnings
without changing their control flow.
"""

from enum import Enum
from pydantic import BaseModel


class DiagnosticLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Diagnostic(BaseModel):
    """
    One non-fatal event.

    Attributes:
        level: Severity (info, warning, error)
        source: What produced it (usually a file name or a table name)
        message: Human-readable description
    """

    level: DiagnosticLevel
    source: str
    message: str

    @classmethod
    def info(cls, source: str, message: str) -> "Diagnostic":
        return cls(level=DiagnosticLevel.INFO, source=source, message=message)

    @classmethod
    def warning(cls, source: str, message: str) -> "Diagnostic":
        return cls(level=DiagnosticLevel.WARNING, source=source, message=message)

    @classmethod
    def error(cls, source: str, message: str) -> "Diagnostic":
        return cls(level=DiagnosticLevel.ERROR, source=source, message=message)
