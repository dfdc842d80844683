"""Custom exception hierarchy for dashpilot."""

from __future__ import annotations


class DashPilotError(Exception):
    """Base exception for all dashpilot errors."""


class DashPilotConfigError(DashPilotError):
    """Invalid or missing configuration."""


class NotConnectedError(DashPilotError):
    """An operation needed an active adapter connection and there was none."""


class CommandTimeoutError(DashPilotError):
    """The adapter did not answer a command within the allowed window."""

    def __init__(self, message: str, *, command: str = "", timeout: float | None = None) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(message)


class InvalidResponseFormatError(DashPilotError):
    """The adapter answered, but not with a usable mode 01 positive response."""

    def __init__(self, message: str, *, command: str = "", response: str = "") -> None:
        self.command = command
        self.response = response
        super().__init__(message)


class UnknownPidError(DashPilotError):
    """No decode rule is registered for the requested PID."""

    def __init__(self, pid: str) -> None:
        self.pid = pid
        super().__init__(f"No decoder registered for PID {pid!r}")


class TransportFailureError(DashPilotError):
    """The serial/Bluetooth driver failed (connect, disconnect, scan, I/O)."""

    def __init__(self, message: str, *, operation: str = "") -> None:
        self.operation = operation
        super().__init__(message)


class BluetoothDisabledError(TransportFailureError):
    """Bluetooth is switched off, was not enabled on request, or is unsupported."""


class DeviceNotFoundError(TransportFailureError):
    """The requested device id is neither paired nor discovered.

    Raised by :meth:`ConnectionSession.connect`.  The one-time startup
    reconnect treats the same situation as a silent no-op instead.
    """

    def __init__(self, device_id: str, *, operation: str = "connect") -> None:
        self.device_id = device_id
        super().__init__(f"Device {device_id!r} is not paired or discovered", operation=operation)


class PreferencesError(DashPilotError):
    """The preference record could not be written."""
