"""Tests for the console and pub/sub notification channels."""
import io
from unittest.mock import AsyncMock

from greenhouse_alerts.config.models import RedisConnectionConfig
from greenhouse_alerts.detection.channels.console import (
    AnsiColors,
    ConsoleChannel,
    OutputFormat,
    create_console_channel,
)
from greenhouse_alerts.detection.channels.pubsub import PubSubChannel
from greenhouse_alerts.detection.dispatcher import ChannelDispatcher
from greenhouse_alerts.models.alerts import AlertSeverity
from greenhouse_alerts.storage.redis_client import RedisClient

from tests.test_dispatcher import make_event


class TestConsoleChannel:
    async def test_simple_format_writes_line(self):
        stream = io.StringIO()
        channel = ConsoleChannel(OutputFormat.SIMPLE, use_colors=False, stream=stream)

        await channel.dispatch(make_event(AlertSeverity.HIGH))

        assert stream.getvalue() == (
            "[HIGH] gh-1/ESP32_001 TEMPERATURE_HIGH: Temperature too high: 38°C\n"
        )

    def test_colored_line(self):
        channel = ConsoleChannel(OutputFormat.SIMPLE)

        line = channel.format_line(make_event(AlertSeverity.MEDIUM))

        assert line.startswith(AnsiColors.YELLOW)
        assert line.endswith(AnsiColors.RESET)

    async def test_structured_format_does_not_write_stream(self):
        stream = io.StringIO()
        channel = ConsoleChannel(OutputFormat.STRUCTURED, stream=stream)

        await channel.dispatch(make_event())

        assert stream.getvalue() == ""

    def test_factory_accepts_config_string(self):
        assert create_console_channel("simple").format == OutputFormat.SIMPLE


class TestPubSubChannel:
    async def test_publishes_new_alert_message(self):
        redis_client = AsyncMock()
        redis_client.publish_event.return_value = 2
        event = make_event()

        await PubSubChannel(redis_client).dispatch(event)

        redis_client.publish_event.assert_awaited_once_with(
            "gh-1", event.to_message(), prefix="greenhouse"
        )

    async def test_custom_prefix(self):
        redis_client = AsyncMock()
        redis_client.publish_event.return_value = 0

        await PubSubChannel(redis_client, channel_prefix="gh").dispatch(make_event())

        assert redis_client.publish_event.await_args.kwargs["prefix"] == "gh"

    async def test_publish_through_redis_client_counts_as_delivered(self):
        redis_client = RedisClient(RedisConnectionConfig())
        redis_client._client = AsyncMock()
        redis_client._client.publish.return_value = 1
        redis_client._connected = True
        dispatcher = ChannelDispatcher({"pubsub": PubSubChannel(redis_client)})

        delivered = await dispatcher.dispatch(make_event(AlertSeverity.CRITICAL))

        assert delivered == 1
        channel, _ = redis_client._client.publish.await_args.args
        assert channel == "greenhouse:gh-1"
