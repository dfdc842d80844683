"""Tests for TelemetryPoller cycles and lifecycle."""

from __future__ import annotations

import asyncio

import pytest
from conftest import ADAPTER, FakeTransport

from dashpilot.dispatcher import CommandDispatcher
from dashpilot.exceptions import CommandTimeoutError, DashPilotError, InvalidResponseFormatError
from dashpilot.models.telemetry import TelemetryField, TelemetryReading
from dashpilot.poller import PollerState, TelemetryPoller
from dashpilot.session import ConnectionSession
from dashpilot.state.events import TransportEventKind


def _poller(session: ConnectionSession, *, interval: float = 1.0, timeout: float = 0.05, **kwargs: object) -> TelemetryPoller:
    return TelemetryPoller(session, CommandDispatcher(session, timeout=timeout), interval=interval, **kwargs)  # type: ignore[arg-type]


async def _wait_for(predicate, timeout: float = 1.0) -> None:  # type: ignore[no-untyped-def]
    async def _spin() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_spin(), timeout)


@pytest.mark.asyncio
async def test_disconnected_poll_sends_nothing(session: ConnectionSession, transport: FakeTransport) -> None:
    await session.start()
    poller = _poller(session)

    reading = await poller.poll_once()

    assert reading.is_unknown
    assert transport.writes == []


@pytest.mark.asyncio
async def test_cycle_reads_all_seven_fields(session: ConnectionSession, transport: FakeTransport) -> None:
    await session.start()
    await session.connect(ADAPTER.id)
    poller = _poller(session)

    reading = await poller.poll_once()

    assert reading.rpm == 1726.0
    assert reading.speed == 60.0
    assert reading.coolant_temp == 40.0
    assert reading.fuel_level == 100.0
    assert reading.engine_load == pytest.approx(50.196, abs=1e-3)
    assert reading.throttle_position == 0.0
    assert reading.control_module_voltage == 14.0
    assert reading.observed_at is not None
    assert sorted(transport.commands) == sorted(["010C", "010D", "0105", "012F", "0104", "0111", "0142"])
    assert not transport.interleaved
    assert poller.last_error is None


@pytest.mark.asyncio
async def test_field_subset(session: ConnectionSession, transport: FakeTransport) -> None:
    await session.start()
    await session.connect(ADAPTER.id)
    poller = _poller(session, fields=[TelemetryField.SPEED, TelemetryField.RPM])

    reading = await poller.poll_once()

    assert (reading.speed, reading.rpm) == (60.0, 1726.0)
    assert reading.coolant_temp is None
    assert sorted(transport.commands) == ["010C", "010D"]


@pytest.mark.asyncio
async def test_failed_cycle_keeps_previous_reading(session: ConnectionSession, transport: FakeTransport) -> None:
    await session.start()
    await session.connect(ADAPTER.id)
    poller = _poller(session)
    errors: list[DashPilotError] = []
    poller.on_error(errors.append)
    first = await poller.poll_once()

    transport.responses["0105"] = "7F 01 12"
    second = await poller.poll_once()

    assert second == first
    assert isinstance(poller.last_error, InvalidResponseFormatError)
    assert errors == [poller.last_error]


@pytest.mark.asyncio
async def test_timeout_aborts_whole_cycle(session: ConnectionSession, transport: FakeTransport) -> None:
    await session.start()
    await session.connect(ADAPTER.id)
    transport.responses["0142"] = None
    poller = _poller(session)

    reading = await poller.poll_once()

    assert reading.is_unknown
    assert isinstance(poller.last_error, CommandTimeoutError)


@pytest.mark.asyncio
async def test_starts_polling_on_connect_and_resets_on_disconnect(
    session: ConnectionSession, transport: FakeTransport
) -> None:
    await session.start()
    poller = _poller(session, interval=0.02)
    readings: list[TelemetryReading] = []
    poller.on_reading(readings.append)
    poller.start()
    assert poller.state == PollerState.IDLE

    await session.connect(ADAPTER.id)
    assert poller.state == PollerState.POLLING
    await _wait_for(lambda: poller.reading.speed == 60.0)

    transport.emit(TransportEventKind.DISCONNECT)
    await _wait_for(lambda: poller.state == PollerState.IDLE)

    assert poller.reading.is_unknown
    assert readings[-1].is_unknown
    await poller.stop()
    await session.close()


@pytest.mark.asyncio
async def test_fires_immediately_when_already_connected(session: ConnectionSession, transport: FakeTransport) -> None:
    await session.start()
    await session.connect(ADAPTER.id)
    poller = _poller(session, interval=10.0)

    async with poller:
        await _wait_for(lambda: not poller.reading.is_unknown)

    assert len(transport.writes) == 7


@pytest.mark.asyncio
async def test_repeats_on_interval(session: ConnectionSession, transport: FakeTransport) -> None:
    await session.start()
    await session.connect(ADAPTER.id)
    poller = _poller(session, interval=0.01, fields=[TelemetryField.SPEED])

    async with poller:
        await _wait_for(lambda: len(transport.writes) >= 3)


@pytest.mark.asyncio
async def test_stop_cancels_timer(session: ConnectionSession, transport: FakeTransport) -> None:
    await session.start()
    await session.connect(ADAPTER.id)
    poller = _poller(session, interval=0.01, fields=[TelemetryField.SPEED])
    poller.start()
    await _wait_for(lambda: len(transport.writes) >= 1)

    await poller.stop()
    sent = len(transport.writes)
    await asyncio.sleep(0.05)

    assert len(transport.writes) == sent
    assert poller.state == PollerState.IDLE


def test_interval_must_be_positive(session: ConnectionSession) -> None:
    with pytest.raises(ValueError):
        _poller(session, interval=0)
