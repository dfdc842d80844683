"""Data models for dashpilot."""

from dashpilot.models._base import DashPilotBaseModel
from dashpilot.models.connection import ConnectionState
from dashpilot.models.device import Device
from dashpilot.models.preferences import Preferences
from dashpilot.models.telemetry import TelemetryField, TelemetryReading

__all__ = [
    "ConnectionState",
    "DashPilotBaseModel",
    "Device",
    "Preferences",
    "TelemetryField",
    "TelemetryReading",
]
