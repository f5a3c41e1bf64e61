"""
Storage clients for the greenhouse alert engine.

This module provides clients for Redis (threshold settings and pub/sub) and
PostgreSQL (alerts and sensor reading history).

Components:
    redis_client: Async Redis client for settings and pub/sub
    postgres_client: Async PostgreSQL client for alerts and readings
"""

from greenhouse_alerts.storage.redis_client import (
    RedisClient,
    RedisClientError,
    RedisConnectionException,
    RedisOperationError,
)
from greenhouse_alerts.storage.postgres_client import (
    PostgresClient,
    PostgresClientError,
    PostgresConnectionException,
    PostgresOperationError,
)

__all__: list[str] = [
    # Redis
    "RedisClient",
    "RedisClientError",
    "RedisConnectionException",
    "RedisOperationError",
    # PostgreSQL
    "PostgresClient",
    "PostgresClientError",
    "PostgresConnectionException",
    "PostgresOperationError",
]
