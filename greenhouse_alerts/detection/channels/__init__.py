"""
Alert notification channels.

This module contains implementations for different alert delivery
mechanisms: console/log output and Redis pub/sub for live dashboards.

Components:
    console: Console/log output for alerts
    pubsub: Redis pub/sub publisher (``greenhouse:{id}`` channels)

Example:
    >>> from greenhouse_alerts.detection.channels import ConsoleChannel, PubSubChannel
    >>>
    >>> console = ConsoleChannel(format=OutputFormat.SIMPLE)
    >>> pubsub = PubSubChannel(redis_client)
    >>>
    >>> await console.dispatch(event)
    >>> await pubsub.dispatch(event)
"""

from greenhouse_alerts.detection.channels.console import (
    AnsiColors,
    ConsoleChannel,
    OutputFormat,
    create_console_channel,
)
from greenhouse_alerts.detection.channels.pubsub import (
    PubSubChannel,
    create_pubsub_channel,
)

__all__ = [
    # Console
    "ConsoleChannel",
    "OutputFormat",
    "AnsiColors",
    "create_console_channel",
    # Pub/sub
    "PubSubChannel",
    "create_pubsub_channel",
]
