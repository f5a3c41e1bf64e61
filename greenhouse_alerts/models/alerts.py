"""
Alert data models for the greenhouse alert engine.

This module defines condition types, severities, the in-flight candidate
detection produced by the rule set, the persisted Alert record, and the
result/event types returned by the engine.

Models:
    AlertSeverity: Severity levels (LOW, MEDIUM, HIGH, CRITICAL)
    ConditionType: Enumerated threshold violations (TEMPERATURE_HIGH, ...)
    DedupKey: (greenhouse, condition type, device) identity of an ongoing problem
    CandidateDetection: Not-yet-persisted possible alert
    Alert: Persisted, externally visible alert record
    AlertEvent: Outbound notification for a newly admitted alert
    CandidateFailure: A candidate that could not be admitted
    ProcessResult: Outcome of one engine call
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List
from uuid import uuid4

from pydantic import BaseModel, Field

from greenhouse_alerts.models.readings import SensorKind

# Event name announced to dashboards for a newly created alert
NEW_ALERT_EVENT = "newAlert"


class AlertSeverity(str, Enum):
    """
    Alert severity levels.

    Attributes:
        LOW: Informational, e.g. low light.
        MEDIUM: Out of range, investigate.
        HIGH: Plants at risk.
        CRITICAL: Immediate action required.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def is_critical(self) -> bool:
        """Check if this is the critical severity."""
        return self == AlertSeverity.CRITICAL


class ConditionType(str, Enum):
    """
    Threshold violation types.

    Each condition type belongs to exactly one sensor kind.
    """

    TEMPERATURE_HIGH = "TEMPERATURE_HIGH"
    TEMPERATURE_LOW = "TEMPERATURE_LOW"
    HUMIDITY_HIGH = "HUMIDITY_HIGH"
    HUMIDITY_LOW = "HUMIDITY_LOW"
    SOIL_MOISTURE_LOW = "SOIL_MOISTURE_LOW"
    LIGHT_LEVEL_LOW = "LIGHT_LEVEL_LOW"
    WATER_LEVEL_LOW = "WATER_LEVEL_LOW"

    @property
    def sensor_kind(self) -> SensorKind:
        """The sensor kind this condition is evaluated on."""
        return _CONDITION_KINDS[self]


_CONDITION_KINDS: Dict[ConditionType, SensorKind] = {
    ConditionType.TEMPERATURE_HIGH: SensorKind.TEMPERATURE,
    ConditionType.TEMPERATURE_LOW: SensorKind.TEMPERATURE,
    ConditionType.HUMIDITY_HIGH: SensorKind.HUMIDITY,
    ConditionType.HUMIDITY_LOW: SensorKind.HUMIDITY,
    ConditionType.SOIL_MOISTURE_LOW: SensorKind.SOIL_MOISTURE,
    ConditionType.LIGHT_LEVEL_LOW: SensorKind.LIGHT,
    ConditionType.WATER_LEVEL_LOW: SensorKind.WATER_LEVEL,
}


class DedupKey(BaseModel):
    """
    Identity of "the same ongoing problem".

    Within the cooldown window at most one unresolved Alert may exist per key.

    Example:
        >>> key = DedupKey(
        ...     greenhouse_id="gh-1",
        ...     condition_type=ConditionType.SOIL_MOISTURE_LOW,
        ...     device_id="ESP32_001",
        ... )
        >>> str(key)
        'gh-1:SOIL_MOISTURE_LOW:ESP32_001'
    """

    model_config = {"frozen": True, "extra": "forbid"}

    greenhouse_id: str
    condition_type: ConditionType
    device_id: str

    def __str__(self) -> str:
        return f"{self.greenhouse_id}:{self.condition_type.value}:{self.device_id}"


class CandidateDetection(BaseModel):
    """
    A possible alert produced by the rule set.

    Exists only between rule evaluation and the engine; never persisted as is.

    Attributes:
        greenhouse_id: Greenhouse where the condition was observed.
        device_id: Device that reported the value.
        condition_type: The violated condition.
        severity: Severity assigned by the rule.
        value: Observed sensor value.
        threshold: The bound that was crossed.
        sensor_kind: Sensor kind of the observed value.
        sensor_type: Hardware sensor type (DHT11, LDR, ...).
        message: Human-readable description.
        detected_at: Capture time of the reading that fired the rule.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    greenhouse_id: str = Field(..., description="Greenhouse identifier")
    device_id: str = Field(..., description="Reporting device identifier")
    condition_type: ConditionType = Field(..., description="Violated condition")
    severity: AlertSeverity = Field(..., description="Assigned severity")
    value: float = Field(..., description="Observed sensor value")
    threshold: float = Field(..., description="Bound that was crossed")
    sensor_kind: SensorKind = Field(..., description="Sensor kind of the value")
    sensor_type: str = Field(..., description="Hardware sensor type")
    message: str = Field(..., description="Human-readable description")
    detected_at: datetime = Field(..., description="When the condition was observed")

    @property
    def dedup_key(self) -> DedupKey:
        """The deduplication key of this detection."""
        return DedupKey(
            greenhouse_id=self.greenhouse_id,
            condition_type=self.condition_type,
            device_id=self.device_id,
        )


class Alert(BaseModel):
    """
    Persisted record of a raised condition.

    Carries every CandidateDetection field plus identity and lifecycle
    fields. The engine creates alerts with ``resolved=False`` and never
    changes them afterwards; resolution is done by an external actor.

    Attributes:
        alert_id: Unique identifier for this alert.
        resolved: Whether an operator resolved the alert.
        created_at: When the engine admitted the alert.

    Example:
        >>> alert = Alert.from_detection(detection, created_at=now)
        >>> alert.is_active
        True
    """

    model_config = {"frozen": True, "extra": "forbid"}

    # Identification
    alert_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique identifier for this alert",
    )

    # Detection
    greenhouse_id: str = Field(..., description="Greenhouse identifier")
    device_id: str = Field(..., description="Reporting device identifier")
    condition_type: ConditionType = Field(..., description="Violated condition")
    severity: AlertSeverity = Field(..., description="Assigned severity")
    value: float = Field(..., description="Observed sensor value")
    threshold: float = Field(..., description="Bound that was crossed")
    sensor_kind: SensorKind = Field(..., description="Sensor kind of the value")
    sensor_type: str = Field(..., description="Hardware sensor type")
    message: str = Field(..., description="Human-readable description")
    detected_at: datetime = Field(..., description="When the condition was observed")

    # Lifecycle
    resolved: bool = Field(
        default=False,
        description="Whether the alert was resolved by an operator",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the alert was admitted",
    )

    @property
    def is_active(self) -> bool:
        """Check if the alert is still active (not resolved)."""
        return not self.resolved

    @property
    def dedup_key(self) -> DedupKey:
        """The deduplication key of this alert."""
        return DedupKey(
            greenhouse_id=self.greenhouse_id,
            condition_type=self.condition_type,
            device_id=self.device_id,
        )

    @classmethod
    def from_detection(
        cls,
        detection: CandidateDetection,
        created_at: datetime,
    ) -> "Alert":
        """
        Create a new active alert from a candidate detection.

        Args:
            detection: The admitted candidate.
            created_at: Admission time.

        Returns:
            Alert: New alert with a fresh id and ``resolved=False``.
        """
        return cls(
            **detection.model_dump(),
            resolved=False,
            created_at=created_at,
        )


class AlertEvent(BaseModel):
    """
    Outbound notification for one newly admitted alert.

    The ingestion layer decides how to deliver it (pub/sub, console, ...).
    """

    model_config = {"frozen": True, "extra": "forbid"}

    greenhouse_id: str
    event: str = NEW_ALERT_EVENT
    alert: Alert

    def to_message(self) -> Dict[str, Any]:
        """Build the JSON-compatible message sent to dashboards."""
        return {
            "event": self.event,
            "greenhouse_id": self.greenhouse_id,
            "data": self.alert.model_dump(mode="json"),
        }


class CandidateFailure(BaseModel):
    """
    A candidate that could not be admitted because the store failed.

    Attributes:
        detection: The candidate that failed.
        stage: Which store step failed ("lookup" or "insert").
        error: Error description.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    detection: CandidateDetection
    stage: str
    error: str


class ProcessResult(BaseModel):
    """
    Outcome of one engine call.

    Attributes:
        alerts: Newly admitted alerts, in evaluation order.
        failures: Candidates that failed at lookup or insert.
        suppressed: Number of candidates suppressed as duplicates.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    alerts: List[Alert] = Field(default_factory=list)
    failures: List[CandidateFailure] = Field(default_factory=list)
    suppressed: int = Field(default=0, ge=0)

    @property
    def failed_count(self) -> int:
        """Number of candidates that failed."""
        return len(self.failures)

    @property
    def has_failures(self) -> bool:
        """Check if any candidate failed."""
        return bool(self.failures)

    @property
    def events(self) -> List[AlertEvent]:
        """One ``newAlert`` event per admitted alert."""
        return [
            AlertEvent(greenhouse_id=alert.greenhouse_id, alert=alert)
            for alert in self.alerts
        ]
