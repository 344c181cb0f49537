"""
Storage result models.

These models are the return values of the StorageEngine. Writes never raise
for storage failures; instead a WriteResult tells the caller where the data
ended up (primary store, fallback store, or nowhere) together with the
diagnostics that explain why.
"""

from enum import Enum
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from .diagnostics import Diagnostic


class StorageTarget(str, Enum):
    """Where a write landed."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    # Both stores failed, or the payload exceeded the fallback cap
    DROPPED = "dropped"


class WriteResult(BaseModel):
    """
    Outcome of a storage write.

    Attributes:
        target: Store that accepted the data
        count: Number of entities written
        value: Identifier produced by the write (log id), if any
        diagnostics: Non-fatal problems encountered on the way
    """

    target: StorageTarget
    count: int = 0
    value: Optional[str] = None
    diagnostics: List[Diagnostic] = Field(default_factory=list)

    @property
    def durable(self) -> bool:
        return self.target == StorageTarget.PRIMARY


class StorageUsage(BaseModel):
    """Best-effort storage estimate in bytes (zeros when unknown)."""

    used: int = 0
    available: int = 0


class DataChangedEvent(BaseModel):
    """
    Notification published after an import batch or a clear-all.

    Attributes:
        action: "import" or "clear"
        record_count: Records added by this batch (0 for clear)
        total_count: Records stored after the change
    """

    action: Literal["import", "clear"]
    record_count: int = 0
    total_count: int = 0
