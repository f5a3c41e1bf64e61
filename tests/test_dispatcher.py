"""Tests for alert routing to notification channels."""
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from greenhouse_alerts.config import load_config
from greenhouse_alerts.config.models import RoutingConfig
from greenhouse_alerts.detection.dispatcher import (
    ChannelDispatcher,
    create_dispatcher,
    severity_channels_from_routing,
)
from greenhouse_alerts.models.alerts import (
    Alert,
    AlertEvent,
    AlertSeverity,
    ConditionType,
)
from greenhouse_alerts.models.readings import SensorKind

from tests.conftest import NOW


def make_event(severity=AlertSeverity.HIGH):
    alert = Alert(
        greenhouse_id="gh-1",
        device_id="ESP32_001",
        condition_type=ConditionType.TEMPERATURE_HIGH,
        severity=severity,
        value=38.0,
        threshold=35.0,
        sensor_kind=SensorKind.TEMPERATURE,
        sensor_type="DHT11",
        message="Temperature too high: 38°C",
        detected_at=NOW,
        created_at=NOW,
    )
    return AlertEvent(greenhouse_id="gh-1", alert=alert)


@pytest.fixture
def channels():
    return {"console": AsyncMock(), "pubsub": AsyncMock()}


async def test_routes_by_severity(channels):
    dispatcher = ChannelDispatcher(
        channels,
        severity_channels={
            AlertSeverity.LOW: ["console"],
            AlertSeverity.HIGH: ["console", "pubsub"],
        },
    )

    assert await dispatcher.dispatch(make_event(AlertSeverity.LOW)) == 1
    channels["pubsub"].dispatch.assert_not_awaited()

    assert await dispatcher.dispatch(make_event(AlertSeverity.HIGH)) == 2
    channels["pubsub"].dispatch.assert_awaited_once()


async def test_channel_failure_is_isolated(channels):
    channels["console"].dispatch.side_effect = RuntimeError("stdout closed")
    dispatcher = ChannelDispatcher(channels)

    delivered = await dispatcher.dispatch(make_event())

    assert delivered == 1
    channels["pubsub"].dispatch.assert_awaited_once()


async def test_unknown_channel_is_skipped(channels):
    dispatcher = ChannelDispatcher(channels)

    assert await dispatcher.dispatch(make_event(), channels=["slack", "console"]) == 1


async def test_dispatch_all(channels):
    dispatcher = ChannelDispatcher(channels)

    total = await dispatcher.dispatch_all([make_event(), make_event()])

    assert total == 4


def test_routing_drops_unavailable_channels():
    routing = RoutingConfig(low=["console"], critical=["console", "pubsub"])

    mapping = severity_channels_from_routing(routing, available=["console"])

    assert mapping[AlertSeverity.LOW] == ["console"]
    assert mapping[AlertSeverity.CRITICAL] == ["console"]


async def test_create_dispatcher_uses_routing(channels):
    dispatcher = await create_dispatcher(channels, RoutingConfig(low=["pubsub"]))

    assert dispatcher.get_channels_for_severity(AlertSeverity.LOW) == ["pubsub"]
    assert dispatcher.get_available_channels() == ["console", "pubsub"]


def test_add_and_remove_channel(channels):
    dispatcher = ChannelDispatcher(dict(channels))

    dispatcher.add_channel("audit", AsyncMock())
    assert "audit" in dispatcher.get_available_channels()
    assert dispatcher.remove_channel("audit") is True
    assert dispatcher.remove_channel("audit") is False


@pytest.mark.parametrize("severity", list(AlertSeverity))
async def test_repository_routing_publishes_every_severity(channels, severity):
    config = load_config(Path(__file__).resolve().parents[1] / "config")
    dispatcher = await create_dispatcher(channels, config.routing)

    await dispatcher.dispatch(make_event(severity))

    channels["pubsub"].dispatch.assert_awaited_once()
