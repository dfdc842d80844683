"""Live telemetry reading model."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import Field

from dashpilot.models._base import DashPilotBaseModel


class TelemetryField(StrEnum):
    RPM = "rpm"
    SPEED = "speed"
    COOLANT_TEMP = "coolant_temp"
    FUEL_LEVEL = "fuel_level"
    ENGINE_LOAD = "engine_load"
    THROTTLE_POSITION = "throttle_position"
    CONTROL_MODULE_VOLTAGE = "control_module_voltage"


class TelemetryReading(DashPilotBaseModel):
    """One poll cycle's worth of decoded values.

    A field is ``None`` while its value is unknown (never decoded, or
    reset after a disconnect).  Units: rpm, km/h, °C, %, %, %, V.
    """

    rpm: float | None = None
    speed: float | None = None
    coolant_temp: float | None = None
    fuel_level: float | None = None
    engine_load: float | None = None
    throttle_position: float | None = None
    control_module_voltage: float | None = None
    observed_at: datetime | None = Field(default=None, description="When the cycle completed (UTC)")

    @classmethod
    def unknown(cls) -> TelemetryReading:
        """A reading with every field unknown."""
        return cls()

    @classmethod
    def from_values(cls, values: dict[TelemetryField, float]) -> TelemetryReading:
        return cls(
            **{str(field): value for field, value in values.items()},
            observed_at=datetime.now(UTC),
        )

    def get(self, field: TelemetryField) -> float | None:
        value: float | None = getattr(self, str(field))
        return value

    @property
    def is_unknown(self) -> bool:
        """``True`` when no field carries a value."""
        return all(self.get(field) is None for field in TelemetryField)
