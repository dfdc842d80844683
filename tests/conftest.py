from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from dashpilot._transport import DriverConfig, EventSink
from dashpilot.capabilities import Capabilities
from dashpilot.exceptions import TransportFailureError
from dashpilot.models.device import Device
from dashpilot.preferences import PreferenceStore
from dashpilot.session import ConnectionSession
from dashpilot.state.events import TransportEvent, TransportEventKind

ADAPTER = Device(id="/dev/rfcomm0", name="OBDII", address="00:1D:A5:68:98:8B")

# A warm engine idling at 60 km/h.
DEFAULT_RESPONSES: dict[str, str | None] = {
    "010C": "41 0C 1A F8",
    "010D": "41 0D 3C",
    "0105": "41 05 50",
    "012F": "41 2F FF",
    "0104": "41 04 80",
    "0111": "41 11 00",
    "0142": "41 42 36 B0",
}


@dataclass
class FakeTransport:
    """In-memory ELM327 driver.

    A response of ``None`` means the adapter never answers that command.
    """

    enabled: bool = True
    enable_on_request: bool = True
    paired: list[Device] = field(default_factory=lambda: [ADAPTER])
    unpaired: list[Device] = field(default_factory=list)
    responses: dict[str, str | None] = field(default_factory=lambda: dict(DEFAULT_RESPONSES))
    connect_result: bool = True
    connect_error: Exception | None = None
    read_delay: float = 0.0
    connect_delay: float = 0.0
    link_open: bool = False
    writes: list[bytes] = field(default_factory=list)
    connect_calls: list[tuple[str, DriverConfig]] = field(default_factory=list)
    disconnect_calls: int = 0
    clear_calls: int = 0
    enable_checks: int = 0
    interleaved: bool = False
    _sink: EventSink | None = None
    _lines: asyncio.Queue[str] | None = None
    _in_flight: int = 0

    def set_event_sink(self, sink: EventSink | None) -> None:
        self._sink = sink

    def emit(self, kind: TransportEventKind, message: str = "") -> None:
        assert self._sink is not None
        self._sink(TransportEvent(kind=kind, message=message))

    def _queue(self) -> asyncio.Queue[str]:
        if self._lines is None:
            self._lines = asyncio.Queue()
        return self._lines

    async def is_enabled(self) -> bool:
        self.enable_checks += 1
        return self.enabled

    async def request_enable(self) -> bool:
        if self.enable_on_request:
            self.enabled = True
        return self.enabled

    async def list_paired(self) -> list[Device]:
        return list(self.paired)

    async def discover_unpaired(self) -> list[Device]:
        return list(self.unpaired)

    async def connect(self, device_id: str, config: DriverConfig) -> bool:
        self.connect_calls.append((device_id, config))
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        self.link_open = self.connect_result
        return self.connect_result

    async def disconnect(self) -> bool:
        self.disconnect_calls += 1
        self.link_open = False
        return True

    async def write(self, data: bytes) -> None:
        if self._in_flight:
            self.interleaved = True
        self._in_flight += 1
        self.writes.append(data)
        code = data.decode("ascii").strip()
        response = self.responses.get(code)
        if response is not None:
            self._queue().put_nowait(response)

    async def read_line(self) -> str:
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        line = await self._queue().get()
        self._in_flight -= 1
        return line

    def clear(self) -> None:
        self.clear_calls += 1
        queue = self._queue()
        while not queue.empty():
            queue.get_nowait()

    @property
    def commands(self) -> list[str]:
        return [w.decode("ascii").strip() for w in self.writes]


class BrokenTransport(FakeTransport):
    async def list_paired(self) -> list[Device]:
        raise TransportFailureError("adapter vanished", operation="list")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def capabilities() -> Capabilities:
    return Capabilities(bluetooth=True, keep_awake=True, platform="linux")


@pytest.fixture
def prefs_path(tmp_path: Path) -> Path:
    return tmp_path / "settings.json"


@pytest.fixture
def preferences(prefs_path: Path) -> PreferenceStore:
    return PreferenceStore(prefs_path)


@pytest.fixture
def session(transport: FakeTransport, preferences: PreferenceStore, capabilities: Capabilities) -> ConnectionSession:
    return ConnectionSession(transport, preferences, capabilities=capabilities)
