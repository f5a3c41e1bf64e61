"""
Threshold configuration for greenhouse rule evaluation.

ThresholdConfig is a resolved, read-only snapshot of one greenhouse's
bounds. It is owned by the settings collaborator and handed to the rule set
on every evaluation; the rule set never mutates it.

Defaults (used when a greenhouse has no stored configuration):
    - temperature: 15-35 °C, critical beyond ±5 °C
    - humidity: 40-80 %
    - soil moisture: low bound 300 (raw)
    - light: low bound 200 (lux-equivalent)

The water level floor is fixed at WATER_LEVEL_FLOOR_CM and is not part of
the per-greenhouse configuration.
"""

from pydantic import BaseModel, Field, model_validator

# Water tank floor in centimetres. Not configurable per greenhouse.
WATER_LEVEL_FLOOR_CM = 10.0


class ThresholdConfig(BaseModel):
    """
    Per-greenhouse threshold bounds.

    Attributes:
        temperature_low: Temperature low bound (°C).
        temperature_high: Temperature high bound (°C).
        temperature_critical_delta: Distance beyond a temperature bound that
            escalates severity to CRITICAL.
        humidity_low: Humidity low bound (%).
        humidity_high: Humidity high bound (%).
        soil_moisture_low: Soil moisture low bound (raw units).
        light_low: Light intensity low bound (lux-equivalent).

    Example:
        >>> config = ThresholdConfig(temperature_high=30.0)
        >>> config.temperature_low
        15.0
    """

    model_config = {"frozen": True, "extra": "forbid"}

    temperature_low: float = Field(
        default=15.0,
        description="Temperature low bound (°C)",
    )
    temperature_high: float = Field(
        default=35.0,
        description="Temperature high bound (°C)",
    )
    temperature_critical_delta: float = Field(
        default=5.0,
        description="Distance beyond a temperature bound that escalates to CRITICAL",
        ge=0,
    )
    humidity_low: float = Field(
        default=40.0,
        description="Humidity low bound (%)",
    )
    humidity_high: float = Field(
        default=80.0,
        description="Humidity high bound (%)",
    )
    soil_moisture_low: float = Field(
        default=300.0,
        description="Soil moisture low bound (raw units)",
    )
    light_low: float = Field(
        default=200.0,
        description="Light intensity low bound (lux-equivalent)",
    )

    @model_validator(mode="after")
    def validate_bounds(self) -> "ThresholdConfig":
        """High bounds must sit strictly above low bounds."""
        if self.temperature_high <= self.temperature_low:
            raise ValueError(
                f"temperature_high ({self.temperature_high}) must be greater than "
                f"temperature_low ({self.temperature_low})"
            )
        if self.humidity_high <= self.humidity_low:
            raise ValueError(
                f"humidity_high ({self.humidity_high}) must be greater than "
                f"humidity_low ({self.humidity_low})"
            )
        return self


DEFAULT_THRESHOLDS = ThresholdConfig()
