"""SQLite schema and connection management."""
