"""Connection session state."""

from __future__ import annotations

from enum import StrEnum


class ConnectionState(StrEnum):
    DISABLED = "disabled"
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
