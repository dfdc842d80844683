"""Timer-driven telemetry polling for the data and gauge screens."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Iterable
from enum import StrEnum

from dashpilot._constants import DATA_SCREEN_INTERVAL
from dashpilot.dispatcher import CommandDispatcher
from dashpilot.exceptions import DashPilotError, NotConnectedError
from dashpilot.models.connection import ConnectionState
from dashpilot.models.telemetry import TelemetryField, TelemetryReading
from dashpilot.pids import PID_TABLE
from dashpilot.session import ConnectionSession
from dashpilot.state.events import SessionStateChange

_logger = logging.getLogger(__name__)

ReadingListener = Callable[[TelemetryReading], None]
ErrorListener = Callable[[DashPilotError], None]


class PollerState(StrEnum):
    IDLE = "idle"
    POLLING = "polling"


class TelemetryPoller:
    """Polls every configured PID on a fixed interval while connected.

    The poller follows the session: it starts polling as soon as the
    session reports ``connected`` and goes back to ``idle`` (with an
    all-unknown reading) on any other state.  A cycle queries all fields
    concurrently and publishes one :class:`TelemetryReading`; if any field
    fails the whole cycle is dropped and reported to the error listeners.
    """

    def __init__(
        self,
        session: ConnectionSession,
        dispatcher: CommandDispatcher,
        *,
        interval: float = DATA_SCREEN_INTERVAL,
        fields: Iterable[TelemetryField] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._session = session
        self._dispatcher = dispatcher
        self._interval = interval
        self._fields: tuple[TelemetryField, ...] = tuple(fields) if fields is not None else tuple(TelemetryField)
        self._state = PollerState.IDLE
        self._reading = TelemetryReading.unknown()
        self._last_error: DashPilotError | None = None
        self._task: asyncio.Task[None] | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._reading_listeners: list[ReadingListener] = []
        self._error_listeners: list[ErrorListener] = []

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def reading(self) -> TelemetryReading:
        """The most recent complete reading (all unknown when idle)."""
        return self._reading

    @property
    def last_error(self) -> DashPilotError | None:
        """Why the most recent cycle failed, or ``None`` if it succeeded."""
        return self._last_error

    def on_reading(self, listener: ReadingListener) -> None:
        self._reading_listeners.append(listener)

    def on_error(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin following the session.  Polls immediately if already connected."""
        if self._unsubscribe is None:
            self._unsubscribe = self._session.add_listener(self._on_session_change)
        if self._session.is_connected:
            self._begin_polling()

    async def stop(self) -> None:
        """Stop the timer and detach from the session."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self._cancel_task()
        self._state = PollerState.IDLE

    async def __aenter__(self) -> TelemetryPoller:
        self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    def _on_session_change(self, change: SessionStateChange) -> None:
        if change.current == ConnectionState.CONNECTED:
            self._begin_polling()
        else:
            self._go_idle()

    def _begin_polling(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._state = PollerState.POLLING
        self._task = asyncio.create_task(self._run(), name="dashpilot-poller")

    def _go_idle(self) -> None:
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
        self._state = PollerState.IDLE
        self._publish(TelemetryReading.unknown())

    async def _cancel_task(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            await self.poll_once()
            next_tick += self._interval
            now = loop.time()
            if next_tick < now:
                # A slow cycle; skip the ticks it overran.
                missed = int((now - next_tick) // self._interval) + 1
                next_tick += missed * self._interval
            await asyncio.sleep(next_tick - now)

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def poll_once(self) -> TelemetryReading:
        """Run one dispatch+decode cycle and return the resulting reading.

        While disconnected no command is sent and the reading is reset
        to all-unknown.  On failure the previous reading is kept, except
        for a lost connection, which resets it.
        """
        if not self._session.is_connected:
            self._publish(TelemetryReading.unknown())
            return self._reading

        try:
            values = await self._query_all()
        except NotConnectedError as exc:
            self._fail(exc)
            self._publish(TelemetryReading.unknown())
            return self._reading
        except DashPilotError as exc:
            self._fail(exc)
            return self._reading

        self._last_error = None
        self._publish(TelemetryReading.from_values(dict(zip(self._fields, values, strict=True))))
        return self._reading

    async def _query_all(self) -> list[float]:
        tasks = [asyncio.create_task(self._dispatcher.query(PID_TABLE[field].code)) for field in self._fields]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            # Abandon the rest of the cycle; their results are discarded.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _fail(self, exc: DashPilotError) -> None:
        self._last_error = exc
        _logger.warning("Error fetching OBD data: %s", exc)
        for listener in list(self._error_listeners):
            try:
                listener(exc)
            except Exception:
                _logger.exception("Poller error listener failed")

    def _publish(self, reading: TelemetryReading) -> None:
        self._reading = reading
        for listener in list(self._reading_listeners):
            try:
                listener(reading)
            except Exception:
                _logger.exception("Poller reading listener failed")
