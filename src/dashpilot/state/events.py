"""Normalized transport and session events.

The serial driver reports connect, disconnect and error notifications
whenever it likes (often from its own thread).  They are converted into
:class:`TransportEvent` and queued on an :class:`EventChannel`; the
session drains the channel and applies the transitions.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from dashpilot.models.connection import ConnectionState
from dashpilot.models.device import Device


class TransportEventKind(StrEnum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    ERROR = "error"


class TransportEvent(BaseModel):
    """An unsolicited notification from the serial driver."""

    model_config = ConfigDict(frozen=True)

    kind: TransportEventKind
    message: str = ""
    device_id: str | None = None
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SessionStateChange(BaseModel):
    """A transition of the connection session, as seen by listeners."""

    model_config = ConfigDict(frozen=True)

    previous: ConnectionState
    current: ConnectionState
    device: Device | None = None
    error: str | None = None
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class EventChannel:
    """FIFO of transport events, safe to publish into from any thread."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[TransportEvent | None] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._closed = False

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Remember the loop that consumes this channel."""
        self._loop = loop

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: TransportEvent) -> None:
        """Queue *event*.  Callable from driver threads once bound."""
        if self._closed:
            return
        loop = self._loop
        if loop is None or loop.is_closed():
            self._queue.put_nowait(event)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._queue.put_nowait(event)
        else:
            loop.call_soon_threadsafe(self._queue.put_nowait, event)

    async def get(self) -> TransportEvent | None:
        """Next event, or ``None`` once the channel is closed."""
        return await self._queue.get()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[TransportEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event
