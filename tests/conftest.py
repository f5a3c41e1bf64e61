"""Shared fixtures for the greenhouse alert engine tests."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from greenhouse_alerts.detection.rules import ThresholdRuleSet
from greenhouse_alerts.models.alerts import Alert, DedupKey
from greenhouse_alerts.models.readings import SensorKind, SensorReading
from greenhouse_alerts.models.thresholds import ThresholdConfig


NOW = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


class FakeAlertStore:
    """In-memory alert store with failure and delay injection."""

    def __init__(self) -> None:
        self.alerts: List[Alert] = []
        self.find_calls = 0
        self.insert_calls = 0
        self.fail_lookup: Optional[Exception] = None
        self.fail_insert_on: Dict[int, Exception] = {}
        self.lookup_delay = 0.0
        self.insert_delay = 0.0

    async def find_active(self, dedup_key: DedupKey, since: datetime) -> Optional[Alert]:
        self.find_calls += 1
        if self.lookup_delay:
            await asyncio.sleep(self.lookup_delay)
        if self.fail_lookup is not None:
            raise self.fail_lookup

        matches = [
            alert
            for alert in self.alerts
            if alert.dedup_key == dedup_key
            and not alert.resolved
            and alert.created_at >= since
        ]
        if not matches:
            return None
        return max(matches, key=lambda alert: alert.created_at)

    async def insert(self, alert: Alert) -> None:
        self.insert_calls += 1
        if self.insert_delay:
            await asyncio.sleep(self.insert_delay)
        error = self.fail_insert_on.get(self.insert_calls)
        if error is not None:
            raise error
        self.alerts.append(alert)

    def resolve_all(self) -> None:
        self.alerts = [alert.model_copy(update={"resolved": True}) for alert in self.alerts]


def make_reading(
    greenhouse_id: str = "gh-1",
    device_id: str = "ESP32_001",
    timestamp: datetime = NOW,
    **values: Any,
) -> SensorReading:
    """Build a reading from keyword sensor values (temperature=41.0, ...)."""
    return SensorReading(
        greenhouse_id=greenhouse_id,
        device_id=device_id,
        values={SensorKind(name): value for name, value in values.items()},
        timestamp=timestamp,
    )


@pytest.fixture
def store() -> FakeAlertStore:
    return FakeAlertStore()


@pytest.fixture
def rules() -> ThresholdRuleSet:
    return ThresholdRuleSet()


@pytest.fixture
def thresholds() -> ThresholdConfig:
    return ThresholdConfig()
