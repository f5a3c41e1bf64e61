"""
Redis pub/sub notification channel.

Publishes each new alert event on the greenhouse's channel
(``greenhouse:{greenhouse_id}``) so live dashboards can show it.

Message format:
    {"event": "newAlert", "greenhouse_id": "...", "data": {...alert...}}

Example:
    >>> pubsub = PubSubChannel(redis_client)
    >>> await pubsub.dispatch(event)
"""

from typing import Optional

import structlog

from greenhouse_alerts.models.alerts import AlertEvent
from greenhouse_alerts.storage.redis_client import RedisClient

logger = structlog.get_logger(__name__)


class PubSubChannel:
    """
    Alert channel that publishes events over Redis pub/sub.

    Attributes:
        redis_client: Connected Redis client.
        channel_prefix: Channel prefix, ``greenhouse`` unless configured.
    """

    def __init__(
        self,
        redis_client: RedisClient,
        channel_prefix: Optional[str] = None,
    ) -> None:
        self.redis_client = redis_client
        self.channel_prefix = channel_prefix or RedisClient.CHANNEL_GREENHOUSE_PREFIX

    async def dispatch(self, event: AlertEvent) -> None:
        """
        Publish one alert event.

        Raises:
            RedisClientError: If publishing fails.
        """
        subscribers = await self.redis_client.publish_event(
            event.greenhouse_id,
            event.to_message(),
            prefix=self.channel_prefix,
        )

        logger.debug(
            "alert_event_published",
            alert_id=event.alert.alert_id,
            greenhouse_id=event.greenhouse_id,
            subscribers=subscribers,
        )


def create_pubsub_channel(
    redis_client: RedisClient,
    channel_prefix: Optional[str] = None,
) -> PubSubChannel:
    """
    Factory function to create a PubSubChannel.

    Args:
        redis_client: Connected Redis client.
        channel_prefix: Optional channel prefix.

    Returns:
        PubSubChannel: A new channel instance.
    """
    return PubSubChannel(redis_client, channel_prefix)
