"""Tests for connection transitions and the transport event channel."""

from __future__ import annotations

import asyncio

import pytest

from dashpilot.models.connection import ConnectionState
from dashpilot.state.events import EventChannel, TransportEvent, TransportEventKind
from dashpilot.state.machine import can_transition, state_for_event

S = ConnectionState
K = TransportEventKind


@pytest.mark.parametrize(
    ("current", "kind", "expected"),
    [
        (S.CONNECTING, K.CONNECT, S.CONNECTED),
        (S.IDLE, K.CONNECT, None),
        (S.ERROR, K.CONNECT, None),
        (S.CONNECTED, K.DISCONNECT, S.IDLE),
        (S.CONNECTING, K.DISCONNECT, S.IDLE),
        (S.IDLE, K.DISCONNECT, None),
        (S.CONNECTED, K.ERROR, S.ERROR),
        (S.IDLE, K.ERROR, S.ERROR),
        (S.ERROR, K.ERROR, None),
        (S.DISABLED, K.ERROR, None),
        (S.DISABLED, K.CONNECT, None),
    ],
)
def test_state_for_event(current: ConnectionState, kind: TransportEventKind, expected: ConnectionState | None) -> None:
    assert state_for_event(current, kind) == expected


def test_connected_requires_connecting() -> None:
    assert can_transition(S.CONNECTING, S.CONNECTED)
    assert not can_transition(S.IDLE, S.CONNECTED)
    assert not can_transition(S.DISABLED, S.CONNECTING)


def test_same_state_is_not_a_transition() -> None:
    for state in ConnectionState:
        assert not can_transition(state, state)


class TestEventChannel:
    @pytest.mark.asyncio
    async def test_fifo_order(self) -> None:
        channel = EventChannel()
        channel.bind(asyncio.get_running_loop())

        channel.publish(TransportEvent(kind=K.CONNECT))
        channel.publish(TransportEvent(kind=K.ERROR, message="link lost"))

        first = await channel.get()
        second = await channel.get()
        assert first is not None and first.kind == K.CONNECT
        assert second is not None and second.message == "link lost"

    @pytest.mark.asyncio
    async def test_publish_from_driver_thread(self) -> None:
        channel = EventChannel()
        channel.bind(asyncio.get_running_loop())

        await asyncio.to_thread(channel.publish, TransportEvent(kind=K.DISCONNECT))

        event = await asyncio.wait_for(channel.get(), timeout=1.0)
        assert event is not None
        assert event.kind == K.DISCONNECT

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self) -> None:
        channel = EventChannel()
        channel.bind(asyncio.get_running_loop())
        channel.publish(TransportEvent(kind=K.ERROR))
        channel.close()
        channel.publish(TransportEvent(kind=K.CONNECT))

        seen = [event.kind async for event in channel]

        assert seen == [K.ERROR]
        assert channel.closed
