"""Serial-Bluetooth driver interface and a pyserial-backed implementation."""

from __future__ import annotations

import asyncio
import logging
import re
import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import serial
import serial.tools.list_ports
from serial.tools.list_ports_common import ListPortInfo
from bleak import BleakScanner
from bleak.exc import BleakError

from dashpilot._constants import COMMAND_TERMINATOR, DEFAULT_BAUD_RATE, DEFAULT_BUFFER_SIZE, DEFAULT_PROTOCOL, ELM_PROMPT
from dashpilot._redact import redact_for_log
from dashpilot.exceptions import TransportFailureError
from dashpilot.models.device import Device
from dashpilot.state.events import TransportEvent, TransportEventKind

_logger = logging.getLogger(__name__)

EventSink = Callable[[TransportEvent], None]


@dataclass(frozen=True)
class DriverConfig:
    """Link parameters handed to the driver on connect."""

    baud_rate: int = DEFAULT_BAUD_RATE
    protocol: str = DEFAULT_PROTOCOL
    buffer_size: int = DEFAULT_BUFFER_SIZE


class SerialTransport(Protocol):
    """Structural driver interface consumed by the connection session.

    The session only orchestrates these calls; pairing, discovery and the
    RFCOMM link itself belong to the driver.  Drivers report unsolicited
    connect/disconnect/error notifications through the sink installed
    with :meth:`set_event_sink`.
    """

    def set_event_sink(self, sink: EventSink | None) -> None:
        ...

    async def is_enabled(self) -> bool:
        ...

    async def request_enable(self) -> bool:
        ...

    async def list_paired(self) -> list[Device]:
        ...

    async def discover_unpaired(self) -> list[Device]:
        ...

    async def connect(self, device_id: str, config: DriverConfig) -> bool:
        ...

    async def disconnect(self) -> bool:
        ...

    async def write(self, data: bytes) -> None:
        ...

    async def read_line(self) -> str:
        ...

    def clear(self) -> None:
        ...


_MAC_IN_HWID = re.compile(r"([0-9A-Fa-f]{2}(?:[:_-]?[0-9A-Fa-f]{2}){5})")
_BLUETOOTH_HINTS = ("rfcomm", "bluetooth", "bthenum", "obd", "elm")


def _looks_like_bluetooth(port: ListPortInfo) -> bool:
    haystack = " ".join(str(part or "") for part in (port.device, port.description, port.hwid)).lower()
    return any(hint in haystack for hint in _BLUETOOTH_HINTS)


def _address_from_hwid(hwid: str | None) -> str | None:
    if not hwid:
        return None
    match = _MAC_IN_HWID.search(hwid)
    if match is None:
        return None
    digits = re.sub(r"[^0-9A-Fa-f]", "", match.group(1)).upper()
    return ":".join(digits[i : i + 2] for i in range(0, 12, 2))


class PySerialTransport:
    """Driver for adapters bound to a serial port (``/dev/rfcomm0``, ``COM5``...).

    Paired adapters are the Bluetooth serial ports the OS exposes.
    Discovery scans for nearby BLE adapters with bleak so they can be
    paired/bound outside this library.  Blocking pyserial calls run on
    worker threads.
    """

    def __init__(
        self,
        *,
        read_timeout: float = 0.1,
        scan_timeout: float = 5.0,
        sysfs_bluetooth: Path = Path("/sys/class/bluetooth"),
    ) -> None:
        self._read_timeout = read_timeout
        self._scan_timeout = scan_timeout
        self._sysfs_bluetooth = sysfs_bluetooth
        self._port: serial.Serial | None = None
        self._sink: EventSink | None = None
        self._buffer = bytearray()
        self._lock = threading.Lock()
        self._generation = 0
        self._last_command = ""
        self._abandoned_reader: asyncio.Future[str | None] | None = None

    def set_event_sink(self, sink: EventSink | None) -> None:
        self._sink = sink

    def _emit(self, kind: TransportEventKind, message: str = "", device_id: str | None = None) -> None:
        if self._sink is not None:
            self._sink(TransportEvent(kind=kind, message=message, device_id=device_id))

    # ------------------------------------------------------------------
    # Adapter state and device listing
    # ------------------------------------------------------------------

    async def is_enabled(self) -> bool:
        if sys.platform.startswith("linux"):
            return await asyncio.to_thread(self._linux_radio_present)
        return True

    def _linux_radio_present(self) -> bool:
        try:
            return any(self._sysfs_bluetooth.iterdir())
        except OSError:
            return False

    async def request_enable(self) -> bool:
        """Radio power is owned by the OS; report whether it is on now."""
        return await self.is_enabled()

    async def list_paired(self) -> list[Device]:
        ports = await asyncio.to_thread(serial.tools.list_ports.comports)
        devices = [
            Device(
                id=port.device,
                name=port.description if port.description and port.description != "n/a" else port.name or "",
                address=_address_from_hwid(port.hwid),
            )
            for port in ports
            if _looks_like_bluetooth(port)
        ]
        _logger.debug("Paired serial adapters: %s", redact_for_log([d.model_dump() for d in devices]))
        return devices

    async def discover_unpaired(self) -> list[Device]:
        try:
            found = await BleakScanner.discover(timeout=self._scan_timeout)
        except (BleakError, OSError) as exc:
            raise TransportFailureError(f"Bluetooth scan failed: {exc}", operation="discover") from exc
        return [Device(id=dev.address, name=dev.name or "", address=dev.address) for dev in found]

    # ------------------------------------------------------------------
    # Link lifecycle
    # ------------------------------------------------------------------

    async def connect(self, device_id: str, config: DriverConfig) -> bool:
        if self._port is not None:
            await self.disconnect()
        try:
            port = await asyncio.to_thread(
                serial.Serial,
                port=device_id,
                baudrate=config.baud_rate,
                timeout=self._read_timeout,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
            )
        except (OSError, serial.SerialException) as exc:
            raise TransportFailureError(f"Could not open {device_id}: {exc}", operation="connect") from exc
        if hasattr(port, "set_buffer_size"):
            try:
                port.set_buffer_size(rx_size=config.buffer_size)
            except (OSError, serial.SerialException):
                _logger.debug("Driver ignored buffer size %d", config.buffer_size)
        self._port = port
        self.clear()
        _logger.debug("Serial link open on %s (%s baud)", redact_for_log(device_id), config.baud_rate)
        self._emit(TransportEventKind.CONNECT, device_id=device_id)
        return True

    async def disconnect(self) -> bool:
        port = self._port
        self._port = None
        if port is None:
            return True
        self.clear()
        await self._settle_reader()
        try:
            await asyncio.to_thread(port.close)
        except (OSError, serial.SerialException) as exc:
            raise TransportFailureError(f"Could not close serial link: {exc}", operation="disconnect") from exc
        self._emit(TransportEventKind.DISCONNECT, device_id=port.port)
        return True

    def _require_port(self) -> serial.Serial:
        if self._port is None or not self._port.is_open:
            raise TransportFailureError("Serial link is not open", operation="io")
        return self._port

    def _link_lost(self, exc: Exception, operation: str) -> TransportFailureError:
        port = self._port
        self._port = None
        if port is not None:
            try:
                port.close()
            except (OSError, serial.SerialException):
                pass
        self._emit(TransportEventKind.ERROR, message=str(exc))
        return TransportFailureError(f"Serial {operation} failed: {exc}", operation=operation)

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    async def _settle_reader(self) -> None:
        """Wait until an abandoned blocking read has left the port."""
        reader = self._abandoned_reader
        if reader is None:
            return
        await asyncio.wait({reader})
        if self._abandoned_reader is reader:
            self._abandoned_reader = None
        if not reader.cancelled() and reader.exception() is not None:
            _logger.debug("Abandoned read ended with %r", reader.exception())

    def _abandon_reader(self, reader: asyncio.Future[str | None]) -> None:
        # Make the worker thread give up at its next check instead of
        # consuming bytes meant for the next command.
        with self._lock:
            self._generation += 1
            port = self._port
        self._abandoned_reader = reader
        cancel_read = getattr(port, "cancel_read", None)
        if cancel_read is not None:
            try:
                cancel_read()
            except (OSError, serial.SerialException):
                _logger.debug("cancel_read failed", exc_info=True)

    async def write(self, data: bytes) -> None:
        port = self._require_port()
        await self._settle_reader()
        self._last_command = data.decode("ascii", errors="replace").strip()
        try:
            await asyncio.to_thread(port.write, data)
        except (OSError, serial.SerialException) as exc:
            raise self._link_lost(exc, "write") from exc

    async def read_line(self) -> str:
        """Return the next non-empty response line (echo and prompt removed).

        Only one thread reads the port at a time.  When the caller is
        cancelled (a timeout, a stopped poller) the blocking read is told to
        give up, and the next :meth:`write` or :meth:`read_line` waits for
        it to return first.
        """
        port = self._require_port()
        await self._settle_reader()
        generation = self._generation
        reader = asyncio.ensure_future(asyncio.to_thread(self._read_line_blocking, port, generation))
        try:
            line = await asyncio.shield(reader)
        except asyncio.CancelledError:
            self._abandon_reader(reader)
            raise
        except (OSError, serial.SerialException) as exc:
            raise self._link_lost(exc, "read") from exc
        if line is None:
            raise TransportFailureError("Read interrupted", operation="read")
        return line

    def _read_line_blocking(self, port: serial.Serial, generation: int) -> str | None:
        terminator = COMMAND_TERMINATOR.encode("ascii")
        while True:
            with self._lock:
                if generation != self._generation or not port.is_open:
                    return None
                index = self._buffer.find(terminator)
                if index >= 0:
                    raw = bytes(self._buffer[:index])
                    del self._buffer[: index + 1]
                    line = raw.decode("ascii", errors="replace").replace(ELM_PROMPT, "").strip()
                    if line and line != self._last_command:
                        return line
                    continue
            chunk = port.read(max(1, port.in_waiting))
            if chunk:
                with self._lock:
                    if generation != self._generation:
                        return None
                    self._buffer.extend(chunk)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._buffer.clear()
            port = self._port
        if port is not None and port.is_open:
            try:
                port.reset_input_buffer()
            except (OSError, serial.SerialException):
                _logger.debug("reset_input_buffer failed", exc_info=True)
