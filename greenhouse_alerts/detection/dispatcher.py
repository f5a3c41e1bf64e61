"""
Channel dispatcher for routing alert events to notification channels.

This module provides the ChannelDispatcher class which routes ``newAlert``
events to the appropriate notification channels based on alert severity.

Key Features:
    - Routes events to multiple channels
    - Severity-based channel selection
    - Console and Redis pub/sub channels
    - Channel failures are logged and counted, never raised: a persisted
      alert stays persisted even if nobody was told about it

Example:
    >>> dispatcher = ChannelDispatcher(
    ...     channels={"console": console_channel, "pubsub": pubsub_channel},
    ...     severity_channels={
    ...         AlertSeverity.CRITICAL: ["console", "pubsub"],
    ...         AlertSeverity.LOW: ["console"],
    ...     },
    ... )
    >>> await dispatcher.dispatch(event)
"""

from typing import Dict, Iterable, List, Optional, Protocol, Sequence

import structlog

from greenhouse_alerts.config.models import RoutingConfig
from greenhouse_alerts.models.alerts import AlertEvent, AlertSeverity

logger = structlog.get_logger(__name__)


class AlertChannel(Protocol):
    """
    Protocol for alert notification channels.

    Any channel implementation must support this async method.
    """

    async def dispatch(self, event: AlertEvent) -> None:
        """Deliver an alert event through the channel."""
        ...


# Default severity to channels mapping
DEFAULT_SEVERITY_CHANNELS: Dict[AlertSeverity, List[str]] = {
    AlertSeverity.CRITICAL: ["console", "pubsub"],
    AlertSeverity.HIGH: ["console", "pubsub"],
    AlertSeverity.MEDIUM: ["console", "pubsub"],
    AlertSeverity.LOW: ["console", "pubsub"],
}


def severity_channels_from_routing(
    routing: RoutingConfig,
    available: Optional[Iterable[str]] = None,
) -> Dict[AlertSeverity, List[str]]:
    """
    Build the severity to channels mapping from routing configuration.

    Args:
        routing: Routing section of the application config.
        available: If given, channel names outside this set are dropped
            (e.g. channels disabled in config).

    Returns:
        Dict[AlertSeverity, List[str]]: Channel names per severity.
    """
    allowed = set(available) if available is not None else None
    return {
        severity: [
            name
            for name in routing.channels_for(severity)
            if allowed is None or name in allowed
        ]
        for severity in AlertSeverity
    }


class ChannelDispatcher:
    """
    Routes alert events to notification channels.

    Determines which channels should receive each event based on the
    alert's severity and dispatches to all applicable channels.

    Attributes:
        channels: Dict mapping channel name to channel instance.
        severity_channels: Dict mapping severity to list of channel names.

    Example:
        >>> dispatcher = ChannelDispatcher(
        ...     channels={"console": ConsoleChannel()},
        ...     severity_channels=DEFAULT_SEVERITY_CHANNELS,
        ... )
        >>> await dispatcher.dispatch(event)  # Routes based on severity
    """

    def __init__(
        self,
        channels: Dict[str, AlertChannel],
        severity_channels: Optional[Dict[AlertSeverity, List[str]]] = None,
    ) -> None:
        """
        Initialize the channel dispatcher.

        Args:
            channels: Dict mapping channel name to channel instance.
            severity_channels: Dict mapping severity to list of channel names.
                Defaults to DEFAULT_SEVERITY_CHANNELS.
        """
        self.channels = channels
        self.severity_channels = severity_channels or DEFAULT_SEVERITY_CHANNELS

        logger.info(
            "channel_dispatcher_initialized",
            available_channels=list(channels.keys()),
            severity_config={s.value: ch for s, ch in self.severity_channels.items()},
        )

    async def dispatch(
        self,
        event: AlertEvent,
        channels: Optional[List[str]] = None,
    ) -> int:
        """
        Dispatch an alert event to the appropriate channels.

        If channels is specified, dispatches to those channels.
        Otherwise, dispatches based on alert severity.

        Args:
            event: The AlertEvent to dispatch.
            channels: Optional explicit list of channel names to use.

        Returns:
            int: Number of channels the event was delivered to.

        Example:
            >>> count = await dispatcher.dispatch(event)
            >>> print(f"Dispatched to {count} channels")
        """
        alert = event.alert
        if channels is None:
            channels = self.severity_channels.get(alert.severity, ["console"])

        dispatched_count = 0

        for channel_name in channels:
            channel = self.channels.get(channel_name)
            if channel is None:
                logger.warning(
                    "channel_not_found",
                    channel_name=channel_name,
                    alert_id=alert.alert_id,
                )
                continue

            try:
                await channel.dispatch(event)
                dispatched_count += 1

                logger.debug(
                    "alert_dispatched_to_channel",
                    channel=channel_name,
                    alert_id=alert.alert_id,
                    severity=alert.severity.value,
                )

            except Exception as e:
                logger.error(
                    "channel_dispatch_failed",
                    channel=channel_name,
                    alert_id=alert.alert_id,
                    error=str(e),
                )

        logger.info(
            "alert_dispatch_complete",
            alert_id=alert.alert_id,
            dispatched_to=dispatched_count,
            total_channels=len(channels),
        )

        return dispatched_count

    async def dispatch_all(self, events: Sequence[AlertEvent]) -> int:
        """
        Dispatch several events in order.

        Args:
            events: Events to dispatch, usually ``ProcessResult.events``.

        Returns:
            int: Total number of channel deliveries.
        """
        total = 0
        for event in events:
            total += await self.dispatch(event)
        return total

    def add_channel(self, name: str, channel: AlertChannel) -> None:
        """
        Add a new channel to the dispatcher.

        Args:
            name: Channel name.
            channel: Channel instance.
        """
        self.channels[name] = channel
        logger.info(
            "channel_added",
            channel_name=name,
        )

    def remove_channel(self, name: str) -> bool:
        """
        Remove a channel from the dispatcher.

        Args:
            name: Channel name to remove.

        Returns:
            bool: True if channel was removed, False if not found.
        """
        if name in self.channels:
            del self.channels[name]
            logger.info(
                "channel_removed",
                channel_name=name,
            )
            return True
        return False

    def get_available_channels(self) -> List[str]:
        """
        Get list of available channel names.

        Returns:
            List[str]: Available channel names.
        """
        return list(self.channels.keys())

    def get_channels_for_severity(self, severity: AlertSeverity) -> List[str]:
        """
        Get channel names configured for a severity.

        Args:
            severity: The severity level.

        Returns:
            List[str]: Channel names for the severity.
        """
        return self.severity_channels.get(severity, [])


async def create_dispatcher(
    channels: Dict[str, AlertChannel],
    routing: Optional[RoutingConfig] = None,
) -> ChannelDispatcher:
    """
    Factory function to create a ChannelDispatcher.

    Args:
        channels: Dict mapping channel name to channel instance.
        routing: Optional routing configuration. Defaults to
            DEFAULT_SEVERITY_CHANNELS.

    Returns:
        ChannelDispatcher: A new dispatcher instance.

    Example:
        >>> dispatcher = await create_dispatcher(
        ...     channels={"console": ConsoleChannel()},
        ...     routing=config.routing,
        ... )
    """
    severity_channels = (
        severity_channels_from_routing(routing, available=channels.keys())
        if routing is not None
        else None
    )
    return ChannelDispatcher(channels=channels, severity_channels=severity_channels)
