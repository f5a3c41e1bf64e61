"""
Alert Engine Service.

Subscribes to device readings on Redis, evaluates them against the
greenhouse thresholds, persists new alerts to PostgreSQL and notifies the
configured channels.

Flow:
    updates:readings -> SensorReading -> AlertPipeline -> ProcessResult
                     -> ChannelDispatcher (console, greenhouse:{id} pub/sub)

Run with:
    CONFIG_PATH=config python -m greenhouse_alerts.services.alert_engine
"""

from __future__ import annotations

import asyncio
import os
import sys
from typing import Any, Dict, Optional

import structlog
from pydantic import ValidationError

from greenhouse_alerts.detection.channels.console import create_console_channel
from greenhouse_alerts.detection.channels.pubsub import create_pubsub_channel
from greenhouse_alerts.detection.dispatcher import (
    AlertChannel,
    ChannelDispatcher,
    create_dispatcher,
)
from greenhouse_alerts.detection.engine import AlertEngine, create_alert_engine
from greenhouse_alerts.detection.pipeline import AlertPipeline, create_pipeline
from greenhouse_alerts.detection.rules import create_rule_set
from greenhouse_alerts.detection.storage import AlertStorage, create_alert_storage
from greenhouse_alerts.detection.thresholds import ThresholdConfigProvider
from greenhouse_alerts.models.alerts import ProcessResult
from greenhouse_alerts.models.readings import SensorReading
from greenhouse_alerts.services import ServiceRunner, setup_logging

logger = structlog.get_logger(__name__)


class AlertEngineService(ServiceRunner):
    """
    Alert engine service.

    Attributes:
        storage: PostgreSQL-backed alert store.
        engine: Deduplication engine.
        pipeline: Per-reading evaluation pipeline.
        dispatcher: Notification dispatcher.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.storage: Optional[AlertStorage] = None
        self.engine: Optional[AlertEngine] = None
        self.provider: Optional[ThresholdConfigProvider] = None
        self.pipeline: Optional[AlertPipeline] = None
        self.dispatcher: Optional[ChannelDispatcher] = None
        self._readings_seen = 0
        self._readings_rejected = 0

    @property
    def service_name(self) -> str:
        return "alert-engine"

    async def _initialize(self) -> None:
        """Initialize storage, engine, thresholds and channels."""
        if self.config is None or self.postgres_client is None:
            raise RuntimeError("Service not properly initialized")

        self.storage = await create_alert_storage(self.postgres_client)
        await self.postgres_client.ensure_schema()

        self.engine = await create_alert_engine(self.storage, self.config.engine)

        self.provider = ThresholdConfigProvider(
            source=self.redis_client,
            thresholds=self.config.thresholds,
            refresh_seconds=self.config.engine.config_refresh_seconds,
            timeout_seconds=self.config.engine.store_timeout_seconds,
        )

        self.pipeline = create_pipeline(
            rules=create_rule_set(),
            engine=self.engine,
            thresholds=self.provider,
        )

        self.dispatcher = await create_dispatcher(
            channels=self._build_channels(),
            routing=self.config.routing,
        )

        self.logger.info(
            "alert_engine_initialized",
            reading_channel=self.config.engine.reading_channel,
            channels=self.dispatcher.get_available_channels(),
        )

    def _build_channels(self) -> Dict[str, AlertChannel]:
        if self.config is None:
            raise RuntimeError("Configuration not loaded")
        channels: Dict[str, AlertChannel] = {}

        console_config = self.config.get_channel("console")
        if console_config is not None and console_config.enabled:
            channels["console"] = create_console_channel(format=console_config.format)

        pubsub_config = self.config.get_channel("pubsub")
        if pubsub_config is not None and pubsub_config.enabled:
            if self.redis_client is None:
                self.logger.warning("pubsub_channel_skipped", reason="no redis client")
            else:
                channels["pubsub"] = create_pubsub_channel(
                    self.redis_client,
                    channel_prefix=pubsub_config.channel_prefix,
                )

        return channels

    async def _run(self) -> None:
        """Consume readings until shutdown."""
        if self.config is None or self.redis_client is None:
            raise RuntimeError("Service not properly initialized")

        channel = self.config.engine.reading_channel
        async with self.redis_client.subscribe([channel]) as messages:
            async for message in messages:
                if self.shutdown_event.is_set():
                    break
                try:
                    await self.handle_message(message)
                except Exception as e:
                    self.logger.error(
                        "reading_handling_error",
                        channel=message.get("channel"),
                        error=str(e),
                        exc_info=True,
                    )

    async def handle_message(self, message: Dict[str, Any]) -> Optional[ProcessResult]:
        """
        Handle one pub/sub message carrying a device reading.

        Args:
            message: ``{"channel": ..., "data": ...}`` from the subscription.

        Returns:
            Optional[ProcessResult]: The pipeline result, or None if the
                message did not carry a usable reading.
        """
        if self.config is None or self.pipeline is None or self.dispatcher is None:
            raise RuntimeError("Service not properly initialized")

        self._readings_seen += 1
        payload = message.get("data")
        if not isinstance(payload, dict):
            self._readings_rejected += 1
            self.logger.warning(
                "reading_rejected",
                channel=message.get("channel"),
                reason="payload is not a JSON object",
            )
            return None

        try:
            reading = SensorReading.from_payload(payload)
        except ValidationError as e:
            self._readings_rejected += 1
            self.logger.warning(
                "reading_rejected",
                channel=message.get("channel"),
                reason="invalid reading",
                errors=e.error_count(),
                error=str(e),
            )
            return None

        if reading.is_empty:
            self.logger.debug(
                "reading_skipped",
                greenhouse_id=reading.greenhouse_id,
                device_id=reading.device_id,
                reason="no sensor values",
            )
            return None

        if self.config.engine.persist_readings and self.storage is not None:
            try:
                await self.storage.save_reading(reading)
            except Exception as e:
                self.logger.warning(
                    "reading_persist_failed",
                    greenhouse_id=reading.greenhouse_id,
                    device_id=reading.device_id,
                    error=str(e),
                )

        result = await self.pipeline.on_reading(reading)

        if result.alerts:
            await self.dispatcher.dispatch_all(result.events)

        for failure in result.failures:
            self.logger.warning(
                "alert_candidate_failed",
                greenhouse_id=reading.greenhouse_id,
                device_id=reading.device_id,
                condition_type=failure.detection.condition_type.value,
                stage=failure.stage,
                error=failure.error,
            )

        return result

    async def _cleanup(self) -> None:
        """Log final statistics."""
        stats = self.engine.get_stats() if self.engine is not None else {}
        self.logger.info(
            "alert_engine_stopping",
            readings_seen=self._readings_seen,
            readings_rejected=self._readings_rejected,
            **stats,
        )


async def main() -> None:
    """Main entry point for alert engine service."""
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    config_path = os.getenv("CONFIG_PATH", "config")

    logger.info(
        "alert_engine_service_starting",
        config_path=config_path,
    )

    service = AlertEngineService(config_path)

    try:
        await service.run()
    except Exception as e:
        logger.error(
            "service_failed",
            error=str(e),
            exc_info=True,
        )
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    asyncio.run(main())
