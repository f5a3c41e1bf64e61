"""
Shared Pydantic data models for the greenhouse alert engine.

Modules:
    readings: Sensor kinds and sensor readings
    thresholds: Per-greenhouse threshold configuration
    alerts: Detections, alerts, events and engine results

Example:
    >>> from greenhouse_alerts.models import SensorReading, SensorKind
    >>> from greenhouse_alerts.models import Alert, AlertSeverity, ConditionType
"""

# Reading models
from greenhouse_alerts.models.readings import (
    SensorKind,
    SensorReading,
)

# Threshold models
from greenhouse_alerts.models.thresholds import (
    DEFAULT_THRESHOLDS,
    WATER_LEVEL_FLOOR_CM,
    ThresholdConfig,
)

# Alert models
from greenhouse_alerts.models.alerts import (
    NEW_ALERT_EVENT,
    Alert,
    AlertEvent,
    AlertSeverity,
    CandidateDetection,
    CandidateFailure,
    ConditionType,
    DedupKey,
    ProcessResult,
)

__all__ = [
    # Readings
    "SensorKind",
    "SensorReading",
    # Thresholds
    "ThresholdConfig",
    "DEFAULT_THRESHOLDS",
    "WATER_LEVEL_FLOOR_CM",
    # Alerts
    "NEW_ALERT_EVENT",
    "AlertSeverity",
    "ConditionType",
    "DedupKey",
    "CandidateDetection",
    "Alert",
    "AlertEvent",
    "CandidateFailure",
    "ProcessResult",
]
