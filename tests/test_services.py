"""Tests for the service runtime and the alert engine service."""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

import greenhouse_alerts.services
from greenhouse_alerts.config.models import (
    AppConfig,
    ChannelConfig,
    EngineSettings,
    LogFormat,
    LoggingConfig,
    LogLevel,
)
from greenhouse_alerts.detection.channels.console import ConsoleChannel
from greenhouse_alerts.detection.channels.pubsub import PubSubChannel
from greenhouse_alerts.detection.dispatcher import ChannelDispatcher
from greenhouse_alerts.detection.engine import AlertEngine
from greenhouse_alerts.detection.pipeline import create_pipeline
from greenhouse_alerts.detection.thresholds import ThresholdConfigProvider
from greenhouse_alerts.models.alerts import ConditionType
from greenhouse_alerts.services import ServiceRunner
from greenhouse_alerts.services.alert_engine import AlertEngineService
from greenhouse_alerts.storage.postgres_client import PostgresOperationError


class LoopingService(ServiceRunner):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.initialized = False
        self.cleaned_up = False

    @property
    def service_name(self):
        return "looping"

    async def _initialize(self):
        self.initialized = True

    async def _run(self):
        while True:
            await asyncio.sleep(0.01)

    async def _cleanup(self):
        self.cleaned_up = True


@pytest.fixture
def no_storage(monkeypatch):
    monkeypatch.setattr(ServiceRunner, "_connect_storage", AsyncMock())
    monkeypatch.setattr(ServiceRunner, "_disconnect_storage", AsyncMock())
    monkeypatch.setattr("greenhouse_alerts.services.setup_logging", MagicMock())


class TestServiceRunner:
    async def test_shutdown_request_stops_run(self, no_storage):
        service = LoopingService(config=AppConfig())

        async def stop_soon():
            await asyncio.sleep(0.05)
            service.request_shutdown()

        await asyncio.gather(service.run(), stop_soon())

        assert service.initialized
        assert service.cleaned_up
        ServiceRunner._disconnect_storage.assert_awaited_once()

    async def test_cleanup_runs_when_initialize_fails(self, no_storage):
        service = LoopingService(config=AppConfig())
        service._initialize = AsyncMock(side_effect=RuntimeError("no schema"))

        with pytest.raises(RuntimeError):
            await service.run()

        assert service.cleaned_up

    async def test_logging_uses_configured_level(self, no_storage):
        config = AppConfig(logging=LoggingConfig(format=LogFormat.TEXT, level=LogLevel.DEBUG))
        service = LoopingService(config=config)
        service.request_shutdown()

        await service.run()

        setup = greenhouse_alerts.services.setup_logging
        setup.assert_called_once_with("DEBUG", LogFormat.TEXT)


@pytest.fixture
def service(store, rules):
    config = AppConfig(engine=EngineSettings(persist_readings=True))
    service = AlertEngineService(config=config)
    service.engine = AlertEngine(store)
    service.pipeline = create_pipeline(
        rules=rules,
        engine=service.engine,
        thresholds=ThresholdConfigProvider(None, config.thresholds),
    )
    service.storage = AsyncMock()
    service.dispatcher = AsyncMock(spec=ChannelDispatcher)
    return service


def reading_message(**data):
    payload = {"greenhouseId": "gh-1", "deviceId": "ESP32_001"}
    payload.update(data)
    return {"channel": "updates:readings", "data": payload}


class TestHandleMessage:
    async def test_alert_is_dispatched(self, service):
        result = await service.handle_message(reading_message(soilMoisture=50))

        assert [a.condition_type for a in result.alerts] == [ConditionType.SOIL_MOISTURE_LOW]
        service.storage.save_reading.assert_awaited_once()
        service.dispatcher.dispatch_all.assert_awaited_once()

    async def test_repeated_reading_is_published_once(self, service):
        first = await service.handle_message(reading_message(soilMoisture=50))
        second = await service.handle_message(reading_message(soilMoisture=50))

        assert len(first.alerts) == 1
        assert second.alerts == []
        assert second.suppressed == 1
        service.dispatcher.dispatch_all.assert_awaited_once()
        (events,) = service.dispatcher.dispatch_all.await_args.args
        assert [e.alert.alert_id for e in events] == [first.alerts[0].alert_id]

    async def test_in_range_reading_dispatches_nothing(self, service):
        result = await service.handle_message(reading_message(temperature=22))

        assert result.alerts == []
        service.dispatcher.dispatch_all.assert_not_awaited()

    async def test_missing_device_id_is_rejected(self, service):
        message = {"channel": "updates:readings", "data": {"greenhouseId": "gh-1", "humidity": 99}}

        assert await service.handle_message(message) is None
        service.storage.save_reading.assert_not_awaited()

    async def test_non_object_payload_is_rejected(self, service):
        assert await service.handle_message({"channel": "c", "data": [1, 2]}) is None

    async def test_reading_without_values_is_skipped(self, service):
        assert await service.handle_message(reading_message(temperature="n/a")) is None
        service.storage.save_reading.assert_not_awaited()

    async def test_persist_failure_does_not_block_alerts(self, service):
        service.storage.save_reading.side_effect = PostgresOperationError("down")

        result = await service.handle_message(reading_message(waterLevel=3))

        assert len(result.alerts) == 1


class TestBuildChannels:
    def test_enabled_channels_are_built(self):
        service = AlertEngineService(config=AppConfig())
        service.redis_client = AsyncMock()

        channels = service._build_channels()

        assert isinstance(channels["console"], ConsoleChannel)
        assert isinstance(channels["pubsub"], PubSubChannel)
        assert channels["pubsub"].channel_prefix == "greenhouse"

    def test_disabled_channel_is_skipped(self):
        config = AppConfig(
            channels={
                "console": ChannelConfig(format="simple"),
                "pubsub": ChannelConfig(enabled=False),
            }
        )
        service = AlertEngineService(config=config)

        channels = service._build_channels()

        assert list(channels) == ["console"]
