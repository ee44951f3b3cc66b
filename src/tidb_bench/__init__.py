"""Concurrent INSERT/SELECT load generator for TiDB-compatible servers."""

__version__ = "0.1.0"
