"""
Fallback key-value stores.

When the SQLite store cannot be opened or a write fails, the storage engine
keeps data in a flat key -> string store, the same layout the browser
dashboard used in localStorage:

    mesTestData            JSON list of records (camelCase keys)
    mesLogMappings         JSON object record_key -> mapping
    log_backup_<key>       raw LOG text
    mesStations/mesModels  configured vocabularies

Every value is capped at FALLBACK_MAX_BLOB_CHARS characters; set_item
reports an overflow by returning False instead of raising, so callers can
turn it into a diagnostic.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from ..constants import FALLBACK_MAX_BLOB_CHARS
from ..exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)


class FallbackStore(ABC):
    """
    Abstract flat string store.

    Implementations only need to provide the raw read/write of the whole
    key space; the size cap is enforced here.
    """

    def __init__(self, max_blob_chars: int = FALLBACK_MAX_BLOB_CHARS):
        self.max_blob_chars = max_blob_chars

    @abstractmethod
    def _load(self) -> Dict[str, str]:
        """Return the current key space."""
        pass

    @abstractmethod
    def _save(self, data: Dict[str, str]) -> None:
        """Persist the whole key space."""
        pass

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> bool:
        """
        Store a value.

        Args:
            key: Flat key
            value: String value

        Returns:
            True if stored, False if the value exceeds the size cap

        Raises:
            StorageUnavailableError: If the backing medium cannot be written
        """
        if len(value) > self.max_blob_chars:
            logger.warning(
                f"Fallback value for {key} is {len(value)} chars "
                f"(cap {self.max_blob_chars}); not stored"
            )
            return False
        data = self._load()
        data[key] = value
        self._save(data)
        return True

    def remove_item(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def keys(self) -> List[str]:
        return list(self._load().keys())

    def get_json(self, key: str, default=None):
        """
        Read and decode a JSON value.

        Corrupt values are logged and treated as missing.
        """
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning(f"Ignoring corrupt fallback value for {key}: {e}")
            return default

    def set_json(self, key: str, value) -> bool:
        return self.set_item(key, json.dumps(value, ensure_ascii=False))


class InMemoryFallbackStore(FallbackStore):
    """Process-local store (tests, and the last resort when no file is writable)."""

    def __init__(self, max_blob_chars: int = FALLBACK_MAX_BLOB_CHARS):
        super().__init__(max_blob_chars)
        self._data: Dict[str, str] = {}

    def _load(self) -> Dict[str, str]:
        return dict(self._data)

    def _save(self, data: Dict[str, str]) -> None:
        self._data = dict(data)


class JsonFileFallbackStore(FallbackStore):
    """
    Store backed by a single JSON object file.

    The file is rewritten on every change; a missing file is an empty store.
    A file that is not a JSON object is logged and treated as empty rather
    than overwritten until the next write.
    """

    def __init__(self, path: Path, max_blob_chars: int = FALLBACK_MAX_BLOB_CHARS):
        super().__init__(max_blob_chars)
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Could not read fallback store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Fallback store {self.path} is not a JSON object; ignoring it")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot write fallback store {self.path}: {e}") from e
