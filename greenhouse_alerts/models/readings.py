"""
Sensor reading models for greenhouse telemetry.

This module defines the sensor kinds a greenhouse device can report and the
immutable SensorReading passed into threshold evaluation.

Models:
    SensorKind: Enumerated sensor kinds (temperature, humidity, ...)
    SensorReading: One device observation at one instant

Note:
    Values that are missing, NaN, infinite or non-numeric are dropped while the
    reading is built. They never reach the rule set and never raise.

Example:
    >>> reading = SensorReading.from_payload({
    ...     "greenhouseId": "gh-1",
    ...     "deviceId": "ESP32_001",
    ...     "temperature": "36.2",
    ...     "soilMoisture": 250,
    ... })
    >>> reading.value(SensorKind.TEMPERATURE)
    36.2
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, field_validator


class SensorKind(str, Enum):
    """
    Sensor kinds reported by greenhouse devices.

    Attributes:
        TEMPERATURE: Air temperature in degrees Celsius.
        HUMIDITY: Relative humidity in percent.
        SOIL_MOISTURE: Raw soil moisture ADC value.
        LIGHT: Light intensity (LDR, lux-equivalent).
        WATER_LEVEL: Water tank level in centimetres.
    """

    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    SOIL_MOISTURE = "soil_moisture"
    LIGHT = "light"
    WATER_LEVEL = "water_level"

    @property
    def unit(self) -> str:
        """Display unit for values of this kind."""
        return _UNITS[self]

    @property
    def sensor_type(self) -> str:
        """Hardware sensor type that produces this kind."""
        return _SENSOR_TYPES[self]


_UNITS: Dict[SensorKind, str] = {
    SensorKind.TEMPERATURE: "°C",
    SensorKind.HUMIDITY: "%",
    SensorKind.SOIL_MOISTURE: "raw",
    SensorKind.LIGHT: "lux",
    SensorKind.WATER_LEVEL: "cm",
}

_SENSOR_TYPES: Dict[SensorKind, str] = {
    SensorKind.TEMPERATURE: "DHT11",
    SensorKind.HUMIDITY: "DHT11",
    SensorKind.SOIL_MOISTURE: "SOIL_MOISTURE",
    SensorKind.LIGHT: "LDR",
    SensorKind.WATER_LEVEL: "ULTRASONIC",
}

# Device firmware field names, mapped to sensor kinds
PAYLOAD_FIELDS: Dict[str, SensorKind] = {
    "temperature": SensorKind.TEMPERATURE,
    "humidity": SensorKind.HUMIDITY,
    "soilMoisture": SensorKind.SOIL_MOISTURE,
    "soil_moisture": SensorKind.SOIL_MOISTURE,
    "lightIntensity": SensorKind.LIGHT,
    "lightLevel": SensorKind.LIGHT,
    "light": SensorKind.LIGHT,
    "waterLevel": SensorKind.WATER_LEVEL,
    "water_level": SensorKind.WATER_LEVEL,
}


def coerce_finite(value: Any) -> Optional[float]:
    """
    Convert a raw sensor value to a finite float.

    Args:
        value: Raw value from a device payload.

    Returns:
        Optional[float]: The float value, or None if the value is missing,
            boolean, non-numeric, NaN or infinite.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _first_present(*candidates: Any) -> Any:
    """Return the first candidate that is not None (0 is a valid id)."""
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


class SensorReading(BaseModel):
    """
    One timestamped observation from one greenhouse device.

    A single reading may carry several sensor kinds (e.g. a DHT11 payload
    with both temperature and humidity). Each kind is evaluated independently.

    Attributes:
        greenhouse_id: Greenhouse the device belongs to.
        device_id: Reporting device identifier.
        values: Finite sensor values keyed by SensorKind.
        timestamp: Capture time of the reading (UTC).

    Example:
        >>> reading = SensorReading(
        ...     greenhouse_id="gh-1",
        ...     device_id="ESP32_001",
        ...     values={SensorKind.SOIL_MOISTURE: 50},
        ... )
    """

    model_config = {"frozen": True, "extra": "forbid"}

    greenhouse_id: str = Field(
        ...,
        description="Greenhouse the device belongs to",
        min_length=1,
    )
    device_id: str = Field(
        ...,
        description="Reporting device identifier",
        min_length=1,
    )
    values: Dict[SensorKind, float] = Field(
        default_factory=dict,
        description="Finite sensor values keyed by sensor kind",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Capture time of the reading",
    )

    @field_validator("greenhouse_id", "device_id", mode="before")
    @classmethod
    def stringify_ids(cls, raw: Any) -> Any:
        """Accept numeric ids (greenhouses are numbered in the database)."""
        if isinstance(raw, int) and not isinstance(raw, bool):
            return str(raw)
        return raw

    @field_validator("values", mode="before")
    @classmethod
    def drop_invalid_values(cls, raw: Any) -> Dict[SensorKind, float]:
        """Drop unknown kinds and values that are not finite numbers."""
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ValueError("values must be a mapping of sensor kind to number")

        cleaned: Dict[SensorKind, float] = {}
        for key, value in raw.items():
            try:
                kind = SensorKind(key)
            except ValueError:
                continue
            number = coerce_finite(value)
            if number is not None:
                cleaned[kind] = number
        return cleaned

    def value(self, kind: SensorKind) -> Optional[float]:
        """
        Get the value for a sensor kind.

        Args:
            kind: The sensor kind.

        Returns:
            Optional[float]: The value, or None if this reading lacks the kind.
        """
        return self.values.get(kind)

    def has(self, kind: SensorKind) -> bool:
        """Check if the reading carries a value for the kind."""
        return kind in self.values

    @property
    def is_empty(self) -> bool:
        """Check if no usable sensor value survived validation."""
        return not self.values

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        greenhouse_id: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> "SensorReading":
        """
        Build a reading from a device payload.

        Accepts the firmware field names (``soilMoisture``, ``lightIntensity``,
        ``waterLevel``, ...) either at the top level or nested under
        ``sensors``. Numeric strings are accepted; anything that is not a
        finite number is dropped.

        Args:
            payload: Decoded JSON payload from the ingestion layer.
            greenhouse_id: Overrides the greenhouse id found in the payload.
            device_id: Overrides the device id found in the payload.

        Returns:
            SensorReading: The normalized reading.

        Raises:
            pydantic.ValidationError: If greenhouse or device id is missing.

        Example:
            >>> SensorReading.from_payload(
            ...     {"deviceId": "ESP32_001", "sensors": {"waterLevel": 4}},
            ...     greenhouse_id="gh-1",
            ... ).values
            {<SensorKind.WATER_LEVEL: 'water_level'>: 4.0}
        """
        sources = [payload]
        nested = payload.get("sensors")
        if isinstance(nested, Mapping):
            sources.append(nested)

        values: Dict[SensorKind, Any] = {}
        for source in sources:
            for field_name, kind in PAYLOAD_FIELDS.items():
                if field_name in source and source[field_name] is not None:
                    values[kind] = source[field_name]

        fields: Dict[str, Any] = {
            "greenhouse_id": _first_present(
                greenhouse_id, payload.get("greenhouseId"), payload.get("greenhouse_id")
            ),
            "device_id": _first_present(
                device_id, payload.get("deviceId"), payload.get("device_id")
            ),
            "values": values,
        }

        timestamp = payload.get("timestamp")
        if timestamp:
            fields["timestamp"] = timestamp

        return cls(**fields)
