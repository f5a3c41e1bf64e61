"""
Greenhouse Alert Engine.

Evaluates greenhouse sensor readings against per-greenhouse thresholds,
suppresses repeat alerts within a cooldown window, persists new alerts and
announces them to live dashboards.

This package provides:
- Data models for readings, thresholds and alerts
- Threshold rule set, deduplication engine and reading pipeline
- Configuration management
- Storage clients for Redis and PostgreSQL
- The alert engine service
"""

__version__ = "0.1.0"
