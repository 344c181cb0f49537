"""Flat key -> string stores used when the primary database is unavailable."""

from .fallback_store import FallbackStore, InMemoryFallbackStore, JsonFileFallbackStore

__all__ = ["FallbackStore", "InMemoryFallbackStore", "JsonFileFallbackStore"]
