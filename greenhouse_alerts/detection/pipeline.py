"""
Reading entry point for the alert engine.

This module provides the AlertPipeline class which runs one sensor reading
through threshold lookup, rule evaluation and deduplication.

Flow:
    reading -> ThresholdConfigProvider.get_config -> ThresholdRuleSet.evaluate
            -> AlertEngine.process -> ProcessResult

Publishing is left to the caller: the returned result carries the
``newAlert`` events for the alerts that were admitted.

Example:
    >>> pipeline = AlertPipeline(rules, engine, provider)
    >>> result = await pipeline.on_reading(reading)
    >>> await dispatcher.dispatch_all(result.events)
"""

from datetime import datetime
from typing import Optional

import structlog

from greenhouse_alerts.detection.engine import AlertEngine
from greenhouse_alerts.detection.rules import ThresholdRuleSet
from greenhouse_alerts.detection.thresholds import ThresholdConfigProvider
from greenhouse_alerts.models.alerts import ProcessResult
from greenhouse_alerts.models.readings import SensorReading

logger = structlog.get_logger(__name__)


class AlertPipeline:
    """
    Evaluates readings and admits the resulting alerts.

    Attributes:
        rules: Threshold rule set.
        engine: Deduplication and emission engine.
        thresholds: Threshold configuration provider.
    """

    def __init__(
        self,
        rules: ThresholdRuleSet,
        engine: AlertEngine,
        thresholds: ThresholdConfigProvider,
    ) -> None:
        self.rules = rules
        self.engine = engine
        self.thresholds = thresholds

    async def on_reading(
        self,
        reading: SensorReading,
        timestamp: Optional[datetime] = None,
    ) -> ProcessResult:
        """
        Process one sensor reading.

        Args:
            reading: Normalized sensor reading.
            timestamp: Current time for deduplication (defaults to now).

        Returns:
            ProcessResult: Admitted alerts (with their events), failures and
                the suppressed count. Store and config trouble is reported
                in the result, never raised.
        """
        config = await self.thresholds.get_config(reading.greenhouse_id)
        detections = self.rules.evaluate(reading, config)

        if not detections:
            return ProcessResult()

        result = await self.engine.process(
            detections,
            greenhouse_id=reading.greenhouse_id,
            timestamp=timestamp,
        )

        logger.debug(
            "reading_processed",
            greenhouse_id=reading.greenhouse_id,
            device_id=reading.device_id,
            detections=len(detections),
            admitted=len(result.alerts),
            suppressed=result.suppressed,
            failed=result.failed_count,
        )

        return result


def create_pipeline(
    rules: ThresholdRuleSet,
    engine: AlertEngine,
    thresholds: ThresholdConfigProvider,
) -> AlertPipeline:
    """
    Factory function to create an AlertPipeline.

    Args:
        rules: Threshold rule set.
        engine: Alert engine.
        thresholds: Threshold configuration provider.

    Returns:
        AlertPipeline: A new pipeline instance.
    """
    return AlertPipeline(rules=rules, engine=engine, thresholds=thresholds)
