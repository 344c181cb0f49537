"""
Vocabulary service.

Keeps the configured station and model lists. They are configuration rather
than imported data: stored in the fallback store under "mesStations" and
"mesModels" and kept by clear_all. The aggregation functions report every
configured entry even when it has no records.
"""

import logging
from typing import List

from ..constants import MODELS_KEY, STATIONS_KEY
from ..storage.fallback_store import FallbackStore

logger = logging.getLogger(__name__)


class VocabularyService:
    """Service for the configured station and model names."""

    def __init__(self, store: FallbackStore):
        self.store = store

    def get_stations(self) -> List[str]:
        return self._get(STATIONS_KEY)

    def add_station(self, station: str) -> bool:
        return self._add(STATIONS_KEY, station)

    def remove_station(self, station: str) -> bool:
        return self._remove(STATIONS_KEY, station)

    def get_models(self) -> List[str]:
        return self._get(MODELS_KEY)

    def add_model(self, model: str) -> bool:
        return self._add(MODELS_KEY, model)

    def remove_model(self, model: str) -> bool:
        return self._remove(MODELS_KEY, model)

    def _get(self, key: str) -> List[str]:
        values = self.store.get_json(key, [])
        if not isinstance(values, list):
            logger.warning(f"Vocabulary {key} is not a list; ignoring it")
            return []
        return [str(v) for v in values]

    def _add(self, key: str, value: str) -> bool:
        """
        Append a name (stripped).

        Returns:
            True if added; False for blank names, duplicates and lists
            that no longer fit in the fallback store
        """
        value = (value or "").strip()
        values = self._get(key)
        if not value or value in values:
            return False
        values.append(value)
        if not self.store.set_json(key, values):
            logger.warning(f"Could not add '{value}' to {key}: list exceeds the store size cap")
            return False
        logger.info(f"Added '{value}' to {key}")
        return True

    def _remove(self, key: str, value: str) -> bool:
        values = self._get(key)
        if value not in values:
            return False
        values = [v for v in values if v != value]
        if not self.store.set_json(key, values):
            return False
        logger.info(f"Removed '{value}' from {key}")
        return True
