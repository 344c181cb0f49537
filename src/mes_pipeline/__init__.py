"""MES test-log import, normalization and aggregation pipeline."""

__version__ = "0.1.0"
