"""Connection state transition rules."""

from __future__ import annotations

from dashpilot.models.connection import ConnectionState
from dashpilot.state.events import TransportEventKind

_ALLOWED: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.DISABLED: frozenset({ConnectionState.IDLE}),
    ConnectionState.IDLE: frozenset({ConnectionState.CONNECTING, ConnectionState.DISABLED, ConnectionState.ERROR}),
    ConnectionState.CONNECTING: frozenset({ConnectionState.CONNECTED, ConnectionState.IDLE, ConnectionState.ERROR}),
    ConnectionState.CONNECTED: frozenset({ConnectionState.IDLE, ConnectionState.ERROR, ConnectionState.DISABLED}),
    ConnectionState.ERROR: frozenset({ConnectionState.IDLE, ConnectionState.CONNECTING, ConnectionState.DISABLED}),
}


def can_transition(current: ConnectionState, target: ConnectionState) -> bool:
    """Whether moving from *current* to *target* is a legal transition."""
    if current == target:
        return False
    return target in _ALLOWED.get(current, frozenset())


def state_for_event(current: ConnectionState, kind: TransportEventKind) -> ConnectionState | None:
    """Target state for an unsolicited transport event, or ``None`` to ignore it.

    - ``connect`` only completes an attempt that is in progress; the
      session never connects on the driver's say-so alone.
    - ``disconnect`` drops back to ``idle`` from any linked state.
    - ``error`` moves to ``error`` unless Bluetooth is disabled.
    """
    if current == ConnectionState.DISABLED:
        return None
    if kind == TransportEventKind.CONNECT:
        target = ConnectionState.CONNECTED
        if current != ConnectionState.CONNECTING:
            return None
    elif kind == TransportEventKind.DISCONNECT:
        target = ConnectionState.IDLE
    else:
        target = ConnectionState.ERROR
    return target if can_transition(current, target) else None
