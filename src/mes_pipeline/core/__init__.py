"""Core pipeline: models, ingestion, storage, services and analysis."""
