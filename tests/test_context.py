"""Tests for the application context wiring."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import ADAPTER, FakeTransport

from dashpilot.capabilities import Capabilities
from dashpilot.config import DashPilotConfig
from dashpilot.context import DashPilotContext
from dashpilot.models.connection import ConnectionState
from dashpilot.models.telemetry import TelemetryField
from dashpilot.poller import PollerState


def _context(prefs_path: Path, transport: FakeTransport, capabilities: Capabilities, **config: object) -> DashPilotContext:
    return DashPilotContext(
        DashPilotConfig(preferences_path=prefs_path, **config),  # type: ignore[arg-type]
        transport=transport,
        capabilities=capabilities,
    )


@pytest.mark.asyncio
async def test_start_auto_connects_to_last_device(
    prefs_path: Path, transport: FakeTransport, capabilities: Capabilities
) -> None:
    prefs_path.write_text(
        json.dumps({"autoBluetoothConnect": True, "lastConnectedBluetoothDevice": ADAPTER.id}), encoding="utf-8"
    )

    async with _context(prefs_path, transport, capabilities) as ctx:
        assert ctx.session.state == ConnectionState.CONNECTED
        assert ctx.session.connected_device == ADAPTER
        assert ctx.preferences.current.auto_connect is True

    assert transport.disconnect_calls == 1


@pytest.mark.asyncio
async def test_start_without_auto_connect_stays_idle(
    prefs_path: Path, transport: FakeTransport, capabilities: Capabilities
) -> None:
    async with _context(prefs_path, transport, capabilities) as ctx:
        assert ctx.session.state == ConnectionState.IDLE

    assert transport.connect_calls == []


@pytest.mark.asyncio
async def test_driver_config_comes_from_config(
    prefs_path: Path, transport: FakeTransport, capabilities: Capabilities
) -> None:
    async with _context(prefs_path, transport, capabilities, baud_rate=9600) as ctx:
        await ctx.session.connect(ADAPTER.id)

    _, driver_config = transport.connect_calls[0]
    assert driver_config.baud_rate == 9600
    assert driver_config.protocol == "elm327"
    assert driver_config.buffer_size == 1024


@pytest.mark.asyncio
async def test_poller_presets(prefs_path: Path, transport: FakeTransport, capabilities: Capabilities) -> None:
    async with _context(prefs_path, transport, capabilities) as ctx:
        data = ctx.data_poller()
        gauge = ctx.gauge_poller([TelemetryField.SPEED])

        assert data.interval == 1.0
        assert gauge.interval == 0.1
        assert ctx.dispatcher.timeout == 5.0


@pytest.mark.asyncio
async def test_close_stops_pollers(prefs_path: Path, transport: FakeTransport, capabilities: Capabilities) -> None:
    ctx = _context(prefs_path, transport, capabilities)
    await ctx.start()
    await ctx.session.connect(ADAPTER.id)
    poller = ctx.gauge_poller([TelemetryField.SPEED])
    poller.start()
    assert poller.state == PollerState.POLLING

    await ctx.close()

    assert poller.state == PollerState.IDLE
    assert ctx.session.state == ConnectionState.IDLE


@pytest.mark.asyncio
async def test_release_poller(prefs_path: Path, transport: FakeTransport, capabilities: Capabilities) -> None:
    async with _context(prefs_path, transport, capabilities) as ctx:
        await ctx.session.connect(ADAPTER.id)
        poller = ctx.data_poller()
        poller.start()

        await ctx.release_poller(poller)

        assert poller.state == PollerState.IDLE


@pytest.mark.asyncio
async def test_no_bluetooth_keeps_session_disabled(prefs_path: Path, transport: FakeTransport) -> None:
    caps = Capabilities(bluetooth=False, keep_awake=False, platform="emscripten")
    prefs_path.write_text(
        json.dumps({"autoBluetoothConnect": True, "lastConnectedBluetoothDevice": ADAPTER.id}), encoding="utf-8"
    )

    async with _context(prefs_path, transport, caps) as ctx:
        assert ctx.session.state == ConnectionState.DISABLED

    assert transport.connect_calls == []
    assert transport.enable_checks == 0
