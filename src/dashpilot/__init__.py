"""dashpilot - Async OBD-II telemetry core for an in-car dashboard."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("dashpilot")
except PackageNotFoundError:
    __version__ = "0+local"

from dashpilot._transport import DriverConfig, PySerialTransport, SerialTransport
from dashpilot.capabilities import Capabilities
from dashpilot.config import DashPilotConfig
from dashpilot.context import DashPilotContext
from dashpilot.dispatcher import CommandDispatcher
from dashpilot.exceptions import (
    BluetoothDisabledError,
    CommandTimeoutError,
    DashPilotConfigError,
    DashPilotError,
    DeviceNotFoundError,
    InvalidResponseFormatError,
    NotConnectedError,
    PreferencesError,
    TransportFailureError,
    UnknownPidError,
)
from dashpilot.models import ConnectionState, Device, Preferences, TelemetryField, TelemetryReading
from dashpilot.pids import PID_TABLE, PidCommand, decode
from dashpilot.poller import PollerState, TelemetryPoller
from dashpilot.preferences import PreferenceStore
from dashpilot.session import ConnectionSession
from dashpilot.state.events import EventChannel, SessionStateChange, TransportEvent, TransportEventKind

__all__ = [
    "__version__",
    "BluetoothDisabledError",
    "Capabilities",
    "CommandDispatcher",
    "CommandTimeoutError",
    "ConnectionSession",
    "ConnectionState",
    "DashPilotConfig",
    "DashPilotConfigError",
    "DashPilotContext",
    "DashPilotError",
    "Device",
    "DeviceNotFoundError",
    "DriverConfig",
    "EventChannel",
    "InvalidResponseFormatError",
    "NotConnectedError",
    "PID_TABLE",
    "PidCommand",
    "PollerState",
    "PreferenceStore",
    "Preferences",
    "PreferencesError",
    "PySerialTransport",
    "SerialTransport",
    "SessionStateChange",
    "TelemetryField",
    "TelemetryPoller",
    "TelemetryReading",
    "TransportEvent",
    "TransportEventKind",
    "TransportFailureError",
    "UnknownPidError",
    "decode",
]
