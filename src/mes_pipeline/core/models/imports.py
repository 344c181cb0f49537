"""Import input and report models."""

from typing import List
from pydantic import BaseModel, Field

from .diagnostics import Diagnostic, DiagnosticLevel


class SourceFile(BaseModel):
    """An uploaded file: original name plus its UTF-8 text."""

    name: str
    content: str

    @property
    def extension(self) -> str:
        name = self.name.lower()
        return name.rsplit(".", 1)[-1] if "." in name else ""


class ImportReport(BaseModel):
    """
    Summary of one import batch.

    Attributes:
        json_count: JSON files processed
        log_count: LOG files processed
        paired_count: Records that found a correlated LOG file
        total_records: Records produced by the batch
        diagnostics: Degradations (repaired JSON, placeholders, fallback writes)
    """

    json_count: int = 0
    log_count: int = 0
    paired_count: int = 0
    total_records: int = 0
    diagnostics: List[Diagnostic] = Field(default_factory=list)

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.level != DiagnosticLevel.INFO]

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)
