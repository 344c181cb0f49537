"""Pydantic models for records, logs, queries and aggregates."""
