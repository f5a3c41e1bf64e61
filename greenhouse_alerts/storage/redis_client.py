"""
Async Redis client for greenhouse settings and real-time messaging.

This module provides a Redis client for reading per-greenhouse threshold
settings and for pub/sub: incoming device readings and outgoing
``newAlert`` events for live dashboards.

Key Patterns:
    - Threshold settings: `settings:thresholds:{greenhouse_id}` (JSON string)
    - Pub/Sub channels: `updates:readings` (incoming readings),
      `greenhouse:{greenhouse_id}` (alert events per greenhouse)

Example:
    >>> from greenhouse_alerts.config.models import RedisConnectionConfig
    >>> from greenhouse_alerts.storage.redis_client import RedisClient
    >>>
    >>> config = RedisConnectionConfig(url="redis://localhost:6379")
    >>> client = RedisClient(config)
    >>> await client.connect()
    >>>
    >>> settings = await client.get_threshold_config("gh-1")
    >>> await client.publish_event("gh-1", event.to_message())
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.client import PubSub
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from greenhouse_alerts.config.models import RedisConnectionConfig

logger = structlog.get_logger(__name__)


class RedisClientError(Exception):
    """Base exception for Redis client errors."""

    pass


class RedisConnectionException(RedisClientError):
    """Raised when Redis connection fails."""

    pass


class RedisOperationError(RedisClientError):
    """Raised when a Redis operation fails."""

    pass


class RedisClient:
    """
    Async Redis client for greenhouse settings and pub/sub.

    Attributes:
        config: Redis connection configuration.
        _pool: Connection pool for efficient connection reuse.
        _client: Redis client instance.
        _connected: Whether the client is connected.

    Example:
        >>> client = RedisClient(RedisConnectionConfig())
        >>> await client.connect()
        >>> try:
        ...     await client.publish_event("gh-1", message)
        ... finally:
        ...     await client.disconnect()
    """

    # Key prefixes
    KEY_THRESHOLDS = "settings:thresholds"

    # Pub/sub channels
    CHANNEL_READINGS = "updates:readings"
    CHANNEL_GREENHOUSE_PREFIX = "greenhouse"

    def __init__(self, config: RedisConnectionConfig) -> None:
        """
        Initialize the Redis client.

        Args:
            config: Redis connection configuration containing URL, db, and pool settings.
        """
        self.config = config
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None  # type: ignore[type-arg]
        self._connected: bool = False

        logger.info(
            "redis_client_initialized",
            url=self._sanitize_url(config.url),
            db=config.db,
            max_connections=config.max_connections,
        )

    def _sanitize_url(self, url: str) -> str:
        """Sanitize URL for logging (remove password)."""
        if "@" in url:
            credentials, host = url.rsplit("@", 1)
            if ":" in credentials.split("//", 1)[-1]:
                return f"{credentials.rsplit(':', 1)[0]}:***@{host}"
        return url

    @property
    def is_connected(self) -> bool:
        """
        Check if the client is connected to Redis.

        Returns:
            bool: True if connected, False otherwise.
        """
        return self._connected and self._client is not None

    async def connect(self) -> None:
        """
        Establish connection to Redis.

        Creates a connection pool and initializes the Redis client.

        Raises:
            RedisConnectionException: If connection fails.
        """
        if self._connected:
            logger.warning("redis_already_connected")
            return

        try:
            self._pool = ConnectionPool.from_url(
                self.config.url,
                db=self.config.db,
                max_connections=self.config.max_connections,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_timeout,
                decode_responses=True,
            )
            self._client = Redis(connection_pool=self._pool)

            # Verify connection with ping
            await self._client.ping()
            self._connected = True

            logger.info(
                "redis_connected",
                url=self._sanitize_url(self.config.url),
                db=self.config.db,
            )

        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            self._connected = False
            logger.error(
                "redis_connection_failed",
                url=self._sanitize_url(self.config.url),
                error=str(e),
            )
            raise RedisConnectionException(
                f"Failed to connect to Redis at {self._sanitize_url(self.config.url)}: {e}"
            ) from e

    async def disconnect(self) -> None:
        """
        Close Redis connection and release resources.

        Safe to call multiple times.
        """
        if self._client is not None:
            try:
                await self._client.aclose()
            except RedisError as e:
                logger.warning("redis_close_error", error=str(e))
            finally:
                self._client = None

        if self._pool is not None:
            try:
                await self._pool.aclose()
            except Exception as e:
                logger.warning("redis_pool_close_error", error=str(e))
            finally:
                self._pool = None

        self._connected = False
        logger.info("redis_disconnected")

    async def ping(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            bool: True if Redis responds to PING, False otherwise.
        """
        if not self._client:
            return False

        try:
            await self._client.ping()
            return True
        except RedisError as e:
            logger.warning("redis_ping_failed", error=str(e))
            return False

    def _require_connection(self) -> Redis:  # type: ignore[type-arg]
        """
        Ensure client is connected and return the Redis instance.

        Returns:
            Redis: The Redis client instance.

        Raises:
            RedisConnectionException: If not connected.
        """
        if not self._connected or self._client is None:
            raise RedisConnectionException("Redis client is not connected")
        return self._client

    # =========================================================================
    # THRESHOLD SETTINGS
    # =========================================================================

    def _thresholds_key(self, greenhouse_id: str) -> str:
        """
        Generate Redis key for a greenhouse's threshold settings.

        Args:
            greenhouse_id: Greenhouse identifier.

        Returns:
            str: Redis key in format `settings:thresholds:{greenhouse_id}`.
        """
        return f"{self.KEY_THRESHOLDS}:{greenhouse_id}"

    async def get_threshold_config(self, greenhouse_id: str) -> Optional[Dict[str, Any]]:
        """
        Get stored threshold settings for a greenhouse.

        Args:
            greenhouse_id: Greenhouse identifier.

        Returns:
            Optional[Dict[str, Any]]: Stored settings, or None if unset.

        Raises:
            RedisConnectionException: If not connected.
            RedisOperationError: If the operation fails or the stored value
                is not a JSON object.
        """
        client = self._require_connection()
        key = self._thresholds_key(greenhouse_id)

        try:
            raw = await client.get(key)
        except RedisError as e:
            logger.error(
                "threshold_settings_get_failed",
                greenhouse_id=greenhouse_id,
                error=str(e),
            )
            raise RedisOperationError(
                f"Failed to get threshold settings for {greenhouse_id}: {e}"
            ) from e

        if raw is None:
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise RedisOperationError(
                f"Threshold settings for {greenhouse_id} are not valid JSON: {e}"
            ) from e
        if not isinstance(data, dict):
            raise RedisOperationError(
                f"Threshold settings for {greenhouse_id} must be a JSON object"
            )

        logger.debug("threshold_settings_retrieved", greenhouse_id=greenhouse_id)
        return data

    async def set_threshold_config(
        self,
        greenhouse_id: str,
        settings: Dict[str, Any],
    ) -> None:
        """
        Store threshold settings for a greenhouse.

        Args:
            greenhouse_id: Greenhouse identifier.
            settings: Threshold field names mapped to values.

        Raises:
            RedisConnectionException: If not connected.
            RedisOperationError: If the operation fails.
        """
        client = self._require_connection()

        try:
            await client.set(self._thresholds_key(greenhouse_id), json.dumps(settings))
            logger.info(
                "threshold_settings_stored",
                greenhouse_id=greenhouse_id,
                fields=sorted(settings),
            )

        except RedisError as e:
            logger.error(
                "threshold_settings_set_failed",
                greenhouse_id=greenhouse_id,
                error=str(e),
            )
            raise RedisOperationError(
                f"Failed to store threshold settings for {greenhouse_id}: {e}"
            ) from e

    # =========================================================================
    # PUB/SUB
    # =========================================================================

    def greenhouse_channel(
        self,
        greenhouse_id: str,
        prefix: Optional[str] = None,
    ) -> str:
        """
        Get the pub/sub channel for a greenhouse.

        Args:
            greenhouse_id: Greenhouse identifier.
            prefix: Channel prefix (default: `greenhouse`).

        Returns:
            str: Channel name in format `{prefix}:{greenhouse_id}`.
        """
        return f"{prefix or self.CHANNEL_GREENHOUSE_PREFIX}:{greenhouse_id}"

    async def publish_event(
        self,
        greenhouse_id: str,
        message: Dict[str, Any],
        prefix: Optional[str] = None,
    ) -> int:
        """
        Publish an event to a greenhouse's subscribers.

        Args:
            greenhouse_id: Greenhouse identifier.
            message: JSON-compatible event payload.
            prefix: Optional channel prefix.

        Returns:
            int: Number of subscribers that received the message.

        Raises:
            RedisConnectionException: If not connected.
            RedisOperationError: If the operation fails.

        Example:
            >>> count = await client.publish_event("gh-1", event.to_message())
            >>> print(f"Notified {count} subscribers")
        """
        client = self._require_connection()
        channel = self.greenhouse_channel(greenhouse_id, prefix)

        try:
            count = await client.publish(channel, json.dumps(message, default=str))

            logger.debug(
                "event_published",
                channel=channel,
                event_name=message.get("event"),
                subscribers=count,
            )

            return int(count)

        except RedisError as e:
            logger.error(
                "event_publish_failed",
                channel=channel,
                error=str(e),
            )
            raise RedisOperationError(
                f"Failed to publish event on {channel}: {e}"
            ) from e

    @asynccontextmanager
    async def subscribe(
        self, channels: List[str]
    ) -> AsyncIterator[AsyncIterator[Dict[str, Any]]]:
        """
        Subscribe to Redis pub/sub channels.

        Context manager that yields an async iterator of messages. Messages
        that are not valid JSON are logged and skipped.

        Args:
            channels: List of channel names to subscribe to.

        Yields:
            AsyncIterator[Dict[str, Any]]: Async iterator of
                ``{"channel": ..., "data": ...}`` dicts.

        Raises:
            RedisConnectionException: If not connected.

        Example:
            >>> async with client.subscribe(["updates:readings"]) as messages:
            ...     async for message in messages:
            ...         print(f"Received: {message}")
        """
        client = self._require_connection()
        pubsub: PubSub = client.pubsub()

        try:
            await pubsub.subscribe(*channels)

            logger.info(
                "pubsub_subscribed",
                channels=channels,
            )

            async def message_iterator() -> AsyncIterator[Dict[str, Any]]:
                """Iterate over messages from subscribed channels."""
                async for message in pubsub.listen():
                    if message["type"] != "message":
                        continue
                    try:
                        data = json.loads(message["data"])
                    except (json.JSONDecodeError, TypeError) as e:
                        logger.warning(
                            "pubsub_message_parse_failed",
                            channel=message["channel"],
                            error=str(e),
                        )
                        continue
                    yield {
                        "channel": message["channel"],
                        "data": data,
                    }

            yield message_iterator()

        finally:
            await pubsub.unsubscribe(*channels)
            await pubsub.aclose()

            logger.info(
                "pubsub_unsubscribed",
                channels=channels,
            )
