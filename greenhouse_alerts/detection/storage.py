"""
Alert storage backed by PostgreSQL.

This module provides the AlertStore protocol the engine depends on and the
AlertStorage class which implements it over the PostgreSQL client.

Key Features:
    - Active alert lookup by DedupKey within a time window
    - Idempotent alert insert (safe to retry)
    - Sensor reading history

Example:
    >>> storage = AlertStorage(postgres_client)
    >>> existing = await storage.find_active(detection.dedup_key, since)
    >>> if existing is None:
    ...     await storage.insert(alert)
"""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

import structlog

from greenhouse_alerts.models.alerts import Alert, DedupKey
from greenhouse_alerts.models.readings import SensorReading
from greenhouse_alerts.storage.postgres_client import PostgresClient

logger = structlog.get_logger(__name__)


@runtime_checkable
class AlertStore(Protocol):
    """
    Alert persistence boundary used by the engine.

    Implementations must make ``insert`` durable before returning.
    """

    async def find_active(
        self,
        dedup_key: DedupKey,
        since: datetime,
    ) -> Optional[Alert]:
        """Return an unresolved alert for the key created at or after ``since``."""
        ...

    async def insert(self, alert: Alert) -> None:
        """Persist a new alert."""
        ...


class AlertStorage:
    """
    PostgreSQL-backed alert store.

    Attributes:
        postgres_client: PostgreSQL client for the alerts and readings tables.

    Example:
        >>> storage = AlertStorage(postgres_client)
        >>> await storage.insert(alert)
    """

    def __init__(self, postgres_client: PostgresClient) -> None:
        """
        Initialize the alert storage.

        Args:
            postgres_client: Connected PostgreSQL client.
        """
        self.postgres_client = postgres_client

        logger.debug("alert_storage_initialized")

    async def find_active(
        self,
        dedup_key: DedupKey,
        since: datetime,
    ) -> Optional[Alert]:
        """
        Find an unresolved alert for a DedupKey created at or after ``since``.

        Args:
            dedup_key: Greenhouse, condition type and device to look up.
            since: Start of the cooldown window.

        Returns:
            Optional[Alert]: The most recent matching alert, or None.

        Raises:
            PostgresClientError: If the lookup fails.
        """
        try:
            return await self.postgres_client.find_active_alert(
                greenhouse_id=dedup_key.greenhouse_id,
                condition_type=dedup_key.condition_type,
                device_id=dedup_key.device_id,
                since=since,
            )
        except Exception as e:
            logger.error(
                "active_alert_query_failed",
                dedup_key=str(dedup_key),
                error=str(e),
            )
            raise

    async def insert(self, alert: Alert) -> None:
        """
        Insert a new alert.

        Args:
            alert: The Alert to insert.

        Raises:
            PostgresClientError: If the insert fails.
        """
        try:
            await self.postgres_client.insert_alert(alert)

            logger.debug(
                "alert_saved",
                alert_id=alert.alert_id,
                condition_type=alert.condition_type.value,
                severity=alert.severity.value,
            )

        except Exception as e:
            logger.error(
                "alert_save_failed",
                alert_id=alert.alert_id,
                error=str(e),
            )
            raise

    async def save_reading(self, reading: SensorReading) -> None:
        """
        Append a sensor reading to the history table.

        Args:
            reading: The reading to store.

        Raises:
            PostgresClientError: If the insert fails.
        """
        await self.postgres_client.insert_reading(reading)


async def create_alert_storage(postgres_client: PostgresClient) -> AlertStorage:
    """
    Factory function to create an AlertStorage.

    Args:
        postgres_client: Connected PostgreSQL client.

    Returns:
        AlertStorage: A new storage instance.

    Example:
        >>> storage = await create_alert_storage(postgres_client)
    """
    return AlertStorage(postgres_client)
