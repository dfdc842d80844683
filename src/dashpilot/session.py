"""Connection session for a single paired OBD-II adapter."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable

from dashpilot._redact import redact_for_log
from dashpilot._transport import DriverConfig, SerialTransport
from dashpilot.capabilities import Capabilities
from dashpilot.exceptions import (
    BluetoothDisabledError,
    DeviceNotFoundError,
    NotConnectedError,
    PreferencesError,
    TransportFailureError,
)
from dashpilot.models.connection import ConnectionState
from dashpilot.models.device import Device
from dashpilot.preferences import PreferenceStore
from dashpilot.state.events import EventChannel, SessionStateChange, TransportEvent, TransportEventKind
from dashpilot.state.machine import can_transition, state_for_event

_logger = logging.getLogger(__name__)

StateListener = Callable[[SessionStateChange], None]


class ConnectionSession:
    """Tracks enabled/connected state for one adapter and owns the serial link.

    Usage::

        session = ConnectionSession(transport, preferences)
        await session.start()
        await session.connect("/dev/rfcomm0")
        ...
        await session.close()

    Unsolicited driver notifications are drained from an
    :class:`~dashpilot.state.events.EventChannel` by a background task
    started in :meth:`start`.  Every transition is reported to the
    listeners registered with :meth:`add_listener`.
    """

    def __init__(
        self,
        transport: SerialTransport,
        preferences: PreferenceStore,
        *,
        driver_config: DriverConfig | None = None,
        capabilities: Capabilities | None = None,
        events: EventChannel | None = None,
    ) -> None:
        self._transport = transport
        self._preferences = preferences
        self._driver_config = driver_config or DriverConfig()
        self._capabilities = capabilities or Capabilities.detect()
        self._events = events or EventChannel()
        self._state = ConnectionState.DISABLED
        self._enabled = False
        self._device: Device | None = None
        self._connection_error: str | None = None
        self._paired: list[Device] = []
        self._available: list[Device] = []
        self._listeners: list[StateListener] = []
        self._link_lock = asyncio.Lock()
        self._connect_lock = asyncio.Lock()
        self._consumer: asyncio.Task[None] | None = None
        self._auto_reconnect_attempted = False

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def enabled(self) -> bool:
        """Bluetooth state as of the last enable check."""
        return self._enabled

    @property
    def connected_device(self) -> Device | None:
        return self._device

    @property
    def connection_error(self) -> str | None:
        return self._connection_error

    @property
    def paired_devices(self) -> list[Device]:
        return list(self._paired)

    @property
    def available_devices(self) -> list[Device]:
        return list(self._available)

    @property
    def events(self) -> EventChannel:
        return self._events

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener* for state changes.  Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _remove

    def _transition(self, target: ConnectionState, *, error: str | None = None) -> SessionStateChange | None:
        previous = self._state
        if not can_transition(previous, target):
            if previous != target:
                _logger.debug("Ignoring transition %s -> %s", previous, target)
            return None
        self._state = target
        if target in (ConnectionState.IDLE, ConnectionState.ERROR, ConnectionState.DISABLED):
            self._device = None
        if error is not None:
            self._connection_error = error
        change = SessionStateChange(
            previous=previous,
            current=target,
            device=self._device,
            error=self._connection_error if target == ConnectionState.ERROR else None,
        )
        _logger.debug("Session %s -> %s", previous, target)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                _logger.exception("Session state listener failed")
        return change

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Wire the driver to the event channel and run :meth:`initialize`."""
        if self._events.closed:
            self._events = EventChannel()
        self._events.bind(asyncio.get_running_loop())
        self._transport.set_event_sink(self._events.publish)
        if self._consumer is None:
            self._consumer = asyncio.create_task(self._consume_events(), name="dashpilot-session-events")
        return await self.initialize()

    async def close(self) -> None:
        """Disconnect and stop consuming driver events."""
        try:
            await self.disconnect()
        except TransportFailureError:
            _logger.warning("Disconnect during close failed", exc_info=True)
        self._transport.set_event_sink(None)
        self._events.close()
        consumer = self._consumer
        self._consumer = None
        if consumer is not None:
            await consumer

    async def _consume_events(self) -> None:
        async for event in self._events:
            self.apply_event(event)

    def apply_event(self, event: TransportEvent) -> SessionStateChange | None:
        """Apply one driver notification to the state machine."""
        _logger.debug("Transport event %s %s", event.kind, redact_for_log(event.message))
        target = state_for_event(self._state, event.kind)
        if target is None:
            return None
        error = None
        if event.kind == TransportEventKind.ERROR:
            error = event.message or "Bluetooth error"
            _logger.warning("Bluetooth error: %s", redact_for_log(error))
        return self._transition(target, error=error)

    # ------------------------------------------------------------------
    # Adapter and device discovery
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Check (and request) Bluetooth, then load the paired device list.

        Returns ``True`` when the session is ready to connect.  Failures
        are recorded in :attr:`connection_error` rather than raised, so a
        dashboard can start without a radio.
        """
        if not self._capabilities.bluetooth:
            _logger.debug("Bluetooth unsupported on %s; session stays disabled", self._capabilities.platform)
            return False
        try:
            enabled = await self._transport.is_enabled()
            if not enabled:
                enabled = await self._transport.request_enable()
            self._enabled = enabled
            if not enabled:
                self._connection_error = "Bluetooth is not enabled"
                self._transition(ConnectionState.DISABLED)
                return False
            self._paired = await self._transport.list_paired()
        except TransportFailureError as exc:
            _logger.warning("Failed to initialize Bluetooth: %s", exc)
            self._enabled = False
            self._connection_error = "Failed to initialize Bluetooth"
            self._transition(ConnectionState.DISABLED)
            return False
        self._transition(ConnectionState.IDLE)
        return True

    async def is_enabled(self) -> bool:
        """Ask the driver whether Bluetooth is on, updating :attr:`enabled`."""
        if not self._capabilities.bluetooth:
            return False
        self._enabled = await self._transport.is_enabled()
        if self._enabled:
            if self._state == ConnectionState.DISABLED:
                self._transition(ConnectionState.IDLE)
        else:
            self._transition(ConnectionState.DISABLED)
        return self._enabled

    def _require_enabled(self, operation: str) -> None:
        if not self._capabilities.bluetooth or not self._enabled:
            raise BluetoothDisabledError("Bluetooth is not enabled", operation=operation)

    async def list_paired_devices(self) -> list[Device]:
        self._require_enabled("list")
        self._paired = await self._transport.list_paired()
        return list(self._paired)

    async def discover_devices(self) -> list[Device]:
        """Scan for unpaired adapters, excluding ones already paired."""
        self._require_enabled("discover")
        try:
            found = await self._transport.discover_unpaired()
        except TransportFailureError:
            _logger.warning("Error scanning devices", exc_info=True)
            raise
        paired_ids = {device.id for device in self._paired}
        self._available = [device for device in found if device.id not in paired_ids]
        return list(self._available)

    def _find_device(self, device_id: str) -> Device | None:
        for device in (*self._paired, *self._available):
            if device.id == device_id:
                return device
        return None

    # ------------------------------------------------------------------
    # Connect / disconnect
    # ------------------------------------------------------------------

    async def connect(self, device_id: str) -> Device:
        """Open the serial link to *device_id*.

        An existing connection is closed first.  On success the device id
        is persisted as the last-connected device.

        Raises
        ------
        BluetoothDisabledError
            Bluetooth is off or unsupported.
        DeviceNotFoundError
            *device_id* is neither paired nor discovered.
        TransportFailureError
            The driver could not open the link.
        """
        self._require_enabled("connect")
        async with self._connect_lock:
            if self._state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
                await self.disconnect()

            device = self._find_device(device_id)
            if device is None:
                self._paired = await self._transport.list_paired()
                device = self._find_device(device_id)
            if device is None:
                raise DeviceNotFoundError(device_id)

            self._connection_error = None
            self._device = device
            self._transition(ConnectionState.CONNECTING)
            _logger.debug("Connecting to %s", redact_for_log(device.model_dump()))
            try:
                connected = await self._transport.connect(device.id, self._driver_config)
            except TransportFailureError:
                self._transition(ConnectionState.ERROR, error="Failed to connect to device")
                raise
            if not connected:
                self._transition(ConnectionState.ERROR, error="Failed to connect to device")
                raise TransportFailureError("Failed to connect to device", operation="connect")
            if self._state not in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
                # The session was disconnected while the link was opening;
                # close the port the driver just opened.
                try:
                    await self._transport.disconnect()
                except TransportFailureError:
                    _logger.warning("Closing abandoned link failed", exc_info=True)
                raise TransportFailureError("Link dropped while connecting", operation="connect")

            self._transition(ConnectionState.CONNECTED)

        try:
            self._preferences.set_last_device(device.id)
        except PreferencesError:
            _logger.warning("Could not remember last connected device", exc_info=True)
        return device

    async def disconnect(self) -> None:
        """Close the link.  A no-op when nothing is connected."""
        if self._state not in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            return
        self._transport.clear()
        try:
            disconnected = await self._transport.disconnect()
        except TransportFailureError:
            self._transition(ConnectionState.IDLE)
            raise
        self._transition(ConnectionState.IDLE)
        if not disconnected:
            raise TransportFailureError("Failed to disconnect from device", operation="disconnect")

    async def auto_reconnect(self) -> Device | None:
        """Reconnect to the last device once, if auto-connect is on.

        Does nothing when already attempted, when auto-connect is off,
        when something is already connected, when no device was saved or
        when the saved device is not present.  Connect failures are
        logged, not raised.
        """
        if self._auto_reconnect_attempted:
            return None
        prefs = self._preferences.current
        if not prefs.auto_connect or self.is_connected or not self._enabled:
            return None
        self._auto_reconnect_attempted = True

        last_id = prefs.last_device_id
        if not last_id or self._find_device(last_id) is None:
            _logger.debug("Last device %s not present; skipping auto-connect", redact_for_log(last_id))
            return None
        try:
            return await self.connect(last_id)
        except TransportFailureError:
            _logger.warning("Error connecting to last device", exc_info=True)
            return None

    # ------------------------------------------------------------------
    # Link primitives (used by the command dispatcher)
    # ------------------------------------------------------------------

    def _require_connected(self) -> None:
        if not self.is_connected:
            raise NotConnectedError("No device connected")

    @contextlib.asynccontextmanager
    async def exclusive_link(self) -> AsyncIterator[ConnectionSession]:
        """Hold the single serial link for one request/response exchange."""
        self._require_connected()
        async with self._link_lock:
            self._require_connected()
            yield self

    async def write(self, data: str | bytes) -> None:
        self._require_connected()
        payload = data.encode("ascii") if isinstance(data, str) else data
        _logger.debug("-> %s", redact_for_log(payload))
        await self._transport.write(payload)

    async def read_line(self) -> str:
        self._require_connected()
        line = await self._transport.read_line()
        _logger.debug("<- %s", redact_for_log(line))
        return line

    def clear(self) -> None:
        """Drop any unread input."""
        if self.is_connected:
            self._transport.clear()
