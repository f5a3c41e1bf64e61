"""
Configuration management for the greenhouse alert engine.

This module handles loading and validating configuration from YAML files.
All configuration values are validated using Pydantic models to ensure
type safety and catch configuration errors early.

The configuration system supports:
- Engine settings (store timeout, lookup failure policy, cache refresh)
- Default and per-greenhouse thresholds
- Notification channels and severity routing
- Logging format and level

Configuration is loaded from config/alerts.yaml (directory from CONFIG_PATH).

Environment variables can override connection settings:
    - REDIS_URL: Redis connection URL
    - DATABASE_URL: PostgreSQL connection URL
    - LOG_LEVEL: Application log level

Example:
    >>> from greenhouse_alerts.config import load_config
    >>> config = load_config()
    >>> config.thresholds.get_thresholds("gh-1").humidity_high
    80.0

Modules:
    loader: Configuration file loading utilities
    models: Pydantic models for configuration validation
"""

from greenhouse_alerts.config.loader import ConfigLoadError, ConfigLoader, load_config
from greenhouse_alerts.config.models import (
    # Enums
    LogFormat,
    LogLevel,
    LookupFailurePolicy,
    # Engine and thresholds
    EngineSettings,
    ThresholdsConfig,
    # Notification config
    ChannelConfig,
    RoutingConfig,
    LoggingConfig,
    # Connection config
    PostgresConnectionConfig,
    RedisConnectionConfig,
    # Root config
    AppConfig,
)

__all__: list[str] = [
    # Loader
    "load_config",
    "ConfigLoader",
    "ConfigLoadError",
    # Enums
    "LogFormat",
    "LogLevel",
    "LookupFailurePolicy",
    # Engine and thresholds
    "EngineSettings",
    "ThresholdsConfig",
    # Notification config
    "ChannelConfig",
    "RoutingConfig",
    "LoggingConfig",
    # Connection config
    "RedisConnectionConfig",
    "PostgresConnectionConfig",
    # Root config
    "AppConfig",
]
