"""
Threshold rule set for greenhouse sensor readings.

This module provides the ThresholdRuleSet class which maps one sensor
reading to zero or more candidate detections, given a greenhouse's
ThresholdConfig.

Key Features:
    - Stateless and side-effect free: no I/O, no suspension points
    - Independent detections per sensor kind in one reading
    - Strict inequalities: a value equal to a bound never fires
    - Missing or non-finite values produce no detection and never raise

Per-metric policy:
    - temperature: HIGH/LOW, CRITICAL beyond the critical delta
    - humidity: HIGH/LOW, always MEDIUM
    - soil moisture: LOW only, CRITICAL below half the low bound
    - light: LOW only, severity LIGHT_LEVEL_LOW_SEVERITY
    - water level: LOW only below the fixed floor, always CRITICAL

Example:
    >>> rules = ThresholdRuleSet()
    >>> detections = rules.evaluate(reading, DEFAULT_THRESHOLDS)
    >>> [d.condition_type.value for d in detections]
    ['SOIL_MOISTURE_LOW']
"""

import math
from typing import Callable, Dict, List, Optional

import structlog

from greenhouse_alerts.models.alerts import (
    AlertSeverity,
    CandidateDetection,
    ConditionType,
)
from greenhouse_alerts.models.readings import SensorKind, SensorReading
from greenhouse_alerts.models.thresholds import WATER_LEVEL_FLOOR_CM, ThresholdConfig

logger = structlog.get_logger(__name__)

# Light severity is LOW; older device firmware reported MEDIUM.
LIGHT_LEVEL_LOW_SEVERITY = AlertSeverity.LOW


class ThresholdRuleSet:
    """
    Evaluates sensor readings against per-greenhouse thresholds.

    The rule set holds no state; the same instance can be shared across
    greenhouses and concurrent callers.

    Example:
        >>> rules = ThresholdRuleSet()
        >>> reading = SensorReading(
        ...     greenhouse_id="gh-1",
        ...     device_id="ESP32_001",
        ...     values={SensorKind.TEMPERATURE: 41.0},
        ... )
        >>> detection = rules.evaluate(reading, ThresholdConfig())[0]
        >>> detection.condition_type, detection.severity
        (<ConditionType.TEMPERATURE_HIGH: 'TEMPERATURE_HIGH'>, <AlertSeverity.CRITICAL: 'CRITICAL'>)
    """

    def __init__(self) -> None:
        self._rules: Dict[
            SensorKind,
            Callable[[SensorReading, float, ThresholdConfig], Optional[CandidateDetection]],
        ] = {
            SensorKind.TEMPERATURE: self._evaluate_temperature,
            SensorKind.HUMIDITY: self._evaluate_humidity,
            SensorKind.SOIL_MOISTURE: self._evaluate_soil_moisture,
            SensorKind.LIGHT: self._evaluate_light,
            SensorKind.WATER_LEVEL: self._evaluate_water_level,
        }

    def evaluate(
        self,
        reading: SensorReading,
        config: ThresholdConfig,
    ) -> List[CandidateDetection]:
        """
        Evaluate one reading against a threshold configuration.

        Args:
            reading: The sensor reading to evaluate.
            config: Resolved threshold snapshot for the reading's greenhouse.

        Returns:
            List[CandidateDetection]: Detections in sensor kind order; empty
                if every present value is within bounds.
        """
        detections: List[CandidateDetection] = []

        for kind, rule in self._rules.items():
            value = reading.value(kind)
            if value is None or not math.isfinite(value):
                continue

            detection = rule(reading, value, config)
            if detection is not None:
                detections.append(detection)

        if detections:
            logger.debug(
                "rules_fired",
                greenhouse_id=reading.greenhouse_id,
                device_id=reading.device_id,
                conditions=[d.condition_type.value for d in detections],
            )

        return detections

    def _evaluate_temperature(
        self,
        reading: SensorReading,
        value: float,
        config: ThresholdConfig,
    ) -> Optional[CandidateDetection]:
        high = config.temperature_high
        low = config.temperature_low
        delta = config.temperature_critical_delta

        if value > high:
            severity = AlertSeverity.CRITICAL if value > high + delta else AlertSeverity.HIGH
            return self._detection(
                reading,
                ConditionType.TEMPERATURE_HIGH,
                severity,
                value,
                high,
                f"Temperature too high: {value:g}°C",
            )
        if value < low:
            severity = AlertSeverity.CRITICAL if value < low - delta else AlertSeverity.HIGH
            return self._detection(
                reading,
                ConditionType.TEMPERATURE_LOW,
                severity,
                value,
                low,
                f"Temperature too low: {value:g}°C",
            )
        return None

    def _evaluate_humidity(
        self,
        reading: SensorReading,
        value: float,
        config: ThresholdConfig,
    ) -> Optional[CandidateDetection]:
        if value > config.humidity_high:
            return self._detection(
                reading,
                ConditionType.HUMIDITY_HIGH,
                AlertSeverity.MEDIUM,
                value,
                config.humidity_high,
                f"Humidity too high: {value:g}%",
            )
        if value < config.humidity_low:
            return self._detection(
                reading,
                ConditionType.HUMIDITY_LOW,
                AlertSeverity.MEDIUM,
                value,
                config.humidity_low,
                f"Humidity too low: {value:g}%",
            )
        return None

    def _evaluate_soil_moisture(
        self,
        reading: SensorReading,
        value: float,
        config: ThresholdConfig,
    ) -> Optional[CandidateDetection]:
        low = config.soil_moisture_low
        if value >= low:
            return None

        # Over-saturation is not modeled, only the low side fires
        severity = AlertSeverity.CRITICAL if value < low / 2 else AlertSeverity.HIGH
        return self._detection(
            reading,
            ConditionType.SOIL_MOISTURE_LOW,
            severity,
            value,
            low,
            f"Soil moisture low: {value:g}",
        )

    def _evaluate_light(
        self,
        reading: SensorReading,
        value: float,
        config: ThresholdConfig,
    ) -> Optional[CandidateDetection]:
        if value >= config.light_low:
            return None

        return self._detection(
            reading,
            ConditionType.LIGHT_LEVEL_LOW,
            LIGHT_LEVEL_LOW_SEVERITY,
            value,
            config.light_low,
            f"Light level low: {value:g}",
        )

    def _evaluate_water_level(
        self,
        reading: SensorReading,
        value: float,
        config: ThresholdConfig,
    ) -> Optional[CandidateDetection]:
        if value >= WATER_LEVEL_FLOOR_CM:
            return None

        return self._detection(
            reading,
            ConditionType.WATER_LEVEL_LOW,
            AlertSeverity.CRITICAL,
            value,
            WATER_LEVEL_FLOOR_CM,
            f"Water level critical: {value:g}cm",
        )

    def _detection(
        self,
        reading: SensorReading,
        condition_type: ConditionType,
        severity: AlertSeverity,
        value: float,
        threshold: float,
        message: str,
    ) -> CandidateDetection:
        """Build a candidate detection for the reading."""
        kind = condition_type.sensor_kind
        return CandidateDetection(
            greenhouse_id=reading.greenhouse_id,
            device_id=reading.device_id,
            condition_type=condition_type,
            severity=severity,
            value=value,
            threshold=threshold,
            sensor_kind=kind,
            sensor_type=kind.sensor_type,
            message=message,
            detected_at=reading.timestamp,
        )


def create_rule_set() -> ThresholdRuleSet:
    """
    Factory function to create a ThresholdRuleSet.

    Returns:
        ThresholdRuleSet: A new rule set instance.
    """
    return ThresholdRuleSet()
