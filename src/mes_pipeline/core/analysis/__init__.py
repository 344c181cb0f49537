"""Aggregations, filters and date ranges over test record snapshots."""
