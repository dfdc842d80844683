"""Application context: the objects a dashboard shares from start to exit."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from dashpilot._transport import DriverConfig, PySerialTransport, SerialTransport
from dashpilot.capabilities import Capabilities
from dashpilot.config import DashPilotConfig
from dashpilot.dispatcher import CommandDispatcher
from dashpilot.models.telemetry import TelemetryField
from dashpilot.poller import TelemetryPoller
from dashpilot.preferences import PreferenceStore
from dashpilot.session import ConnectionSession

_logger = logging.getLogger(__name__)


class DashPilotContext:
    """Owns configuration, preferences and the adapter session.

    Usage::

        async with DashPilotContext(DashPilotConfig.from_env()) as ctx:
            async with ctx.data_poller() as poller:
                poller.on_reading(render)
                ...

    Entering loads the preference record, initializes Bluetooth and makes
    the one-time auto-connect attempt.  Exiting stops every poller it
    created and disconnects.
    """

    def __init__(
        self,
        config: DashPilotConfig | None = None,
        *,
        transport: SerialTransport | None = None,
        capabilities: Capabilities | None = None,
    ) -> None:
        self._config = config or DashPilotConfig()
        self._capabilities = capabilities or Capabilities.detect(self._config)
        self._transport: SerialTransport = transport or PySerialTransport(read_timeout=self._config.read_timeout)
        self._preferences = PreferenceStore(self._config.preferences_path)
        self._session = ConnectionSession(
            self._transport,
            self._preferences,
            driver_config=DriverConfig(
                baud_rate=self._config.baud_rate,
                protocol=self._config.protocol,
                buffer_size=self._config.buffer_size,
            ),
            capabilities=self._capabilities,
        )
        self._dispatcher = CommandDispatcher(self._session, timeout=self._config.command_timeout)
        self._pollers: list[TelemetryPoller] = []
        self._started = False

    @property
    def config(self) -> DashPilotConfig:
        return self._config

    @property
    def capabilities(self) -> Capabilities:
        return self._capabilities

    @property
    def preferences(self) -> PreferenceStore:
        return self._preferences

    @property
    def session(self) -> ConnectionSession:
        return self._session

    @property
    def dispatcher(self) -> CommandDispatcher:
        return self._dispatcher

    async def __aenter__(self) -> DashPilotContext:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._preferences.load()
        if await self._session.start():
            await self._session.auto_reconnect()

    async def close(self) -> None:
        pollers, self._pollers = self._pollers, []
        for poller in pollers:
            await poller.stop()
        if self._started:
            await self._session.close()
            self._started = False

    def _poller(self, interval: float, fields: Iterable[TelemetryField] | None) -> TelemetryPoller:
        poller = TelemetryPoller(self._session, self._dispatcher, interval=interval, fields=fields)
        self._pollers.append(poller)
        return poller

    def data_poller(self, fields: Iterable[TelemetryField] | None = None) -> TelemetryPoller:
        """Poller for the full data screen (default 1 s cadence)."""
        return self._poller(self._config.data_poll_interval, fields)

    def gauge_poller(self, fields: Iterable[TelemetryField] | None = None) -> TelemetryPoller:
        """Poller for the speedometer gauge (default 100 ms cadence)."""
        return self._poller(self._config.gauge_poll_interval, fields)

    async def release_poller(self, poller: TelemetryPoller) -> None:
        """Stop *poller*, e.g. when its screen is left."""
        await poller.stop()
        if poller in self._pollers:
            self._pollers.remove(poller)
