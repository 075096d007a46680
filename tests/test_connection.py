"""Tests for the receive buffer, send queue and reconnect behaviour."""

import asyncio

import pytest

from fake_bridge import status_frame
from midea_bridge_lib.connection import BridgeConnection, ConnectionState
from midea_bridge_lib.exceptions import TransportError
from midea_bridge_lib.protocol import CommandDefinition, encode_frame


def _collecting_connection(frames, **kwargs):
    return BridgeConnection("127.0.0.1", on_frame=lambda frame, raw: frames.append((frame, raw)), **kwargs)


def test_byte_at_a_time_matches_whole_feed():
    """Feeding one byte at a time dispatches the same frames as feeding the whole buffer."""
    data = encode_frame(CommandDefinition(0x82, [0x02]), sequence=9).buffer + status_frame()

    whole = []
    _collecting_connection(whole).feed(data)

    split = []
    connection = _collecting_connection(split)
    for byte in data:
        connection.feed(bytes([byte]))

    assert [raw for _, raw in split] == [raw for _, raw in whole]
    assert [frame.command for frame, _ in split] == [0x82, 0xAC]
    assert connection.buffered == 0


def test_garbage_before_frame_resynchronises():
    frames = []
    connection = _collecting_connection(frames)
    connection.feed(b"\x00\x13" + status_frame())
    assert [frame.error for frame, _ in frames] == ["Invalid frame header", "Invalid frame header", None]
    assert frames[-1][0].is_push


def test_partial_frame_stays_buffered():
    frames = []
    connection = _collecting_connection(frames)
    raw = status_frame()
    connection.feed(raw[:10])
    assert frames == []
    assert connection.buffered == 10
    connection.feed(raw[10:])
    assert len(frames) == 1


def test_handler_exception_does_not_stop_dispatch():
    seen = []

    def on_frame(frame, raw):
        seen.append(raw)
        raise RuntimeError("boom")

    connection = BridgeConnection("127.0.0.1", on_frame=on_frame)
    connection.feed(status_frame() + status_frame(power=False))
    assert len(seen) == 2


def test_send_while_disconnected_fails():
    async def scenario():
        connection = BridgeConnection("127.0.0.1")
        with pytest.raises(TransportError):
            await connection.send(b"\xAA")

    asyncio.run(scenario())


def test_writes_keep_call_order(fake_bridge):
    async def scenario():
        await fake_bridge.start()
        connection = BridgeConnection("127.0.0.1", fake_bridge.port)
        await connection.connect()
        try:
            frames = [encode_frame(CommandDefinition(0x30, [i]), sequence=i + 1).buffer for i in range(20)]
            await asyncio.gather(*(connection.send(frame) for frame in frames))
            await fake_bridge.wait_for_frames(20)
            return [frame.sequence for frame in fake_bridge.frames]
        finally:
            await connection.disconnect()
            await fake_bridge.stop()

    assert asyncio.run(scenario()) == list(range(1, 21))


def test_reconnects_after_drop(fake_bridge):
    async def scenario():
        await fake_bridge.start()
        lost = []
        connected = []
        connection = BridgeConnection(
            "127.0.0.1",
            fake_bridge.port,
            reconnect_interval=0.05,
            on_connected=lambda: connected.append(True),
            on_connection_lost=lambda error, cause: lost.append(error),
        )
        await connection.connect()
        try:
            await fake_bridge.wait_for_connections(1)
            await fake_bridge.drop_clients()
            await fake_bridge.wait_for_connections(2)
            await asyncio.sleep(0.01)
            return len(connected), lost, connection.state
        finally:
            await connection.disconnect()
            await fake_bridge.stop()

    connected, lost, state = asyncio.run(scenario())
    assert connected == 2
    assert len(lost) == 1
    assert isinstance(lost[0], TransportError)
    assert state is ConnectionState.CONNECTED


def test_failed_connect_arms_one_timer(fake_bridge):
    async def scenario():
        await fake_bridge.start()
        port = fake_bridge.port
        await fake_bridge.stop()

        connection = BridgeConnection("127.0.0.1", port, reconnect_interval=10)
        with pytest.raises(TransportError):
            await connection.connect()
        scheduled = connection.reconnect_scheduled
        await connection.disconnect()
        return scheduled, connection.reconnect_scheduled

    assert asyncio.run(scenario()) == (True, False)


def test_explicit_disconnect_does_not_reconnect(fake_bridge):
    async def scenario():
        await fake_bridge.start()
        lost = []
        connection = BridgeConnection(
            "127.0.0.1",
            fake_bridge.port,
            reconnect_interval=0.01,
            on_connection_lost=lambda error, cause: lost.append(error),
        )
        await connection.connect()
        await connection.disconnect()
        await asyncio.sleep(0.05)
        await fake_bridge.stop()
        return connection.state, connection.reconnect_scheduled, lost, fake_bridge.connections

    state, scheduled, lost, connections = asyncio.run(scenario())
    assert state is ConnectionState.DISCONNECTED
    assert not scheduled
    assert lost == []
    assert connections == 1


def test_concurrent_connect_waits_for_attempt(fake_bridge):
    async def scenario():
        await fake_bridge.start()
        connection = BridgeConnection("127.0.0.1", fake_bridge.port)
        first = asyncio.ensure_future(connection.connect())
        await asyncio.sleep(0)
        state = connection.state
        await connection.connect()
        connected = connection.connected
        await first
        await fake_bridge.wait_for_connections(1)
        await connection.disconnect()
        await fake_bridge.stop()
        return state, connected, fake_bridge.connections

    state, connected, connections = asyncio.run(scenario())
    assert state is ConnectionState.CONNECTING
    assert connected
    assert connections == 1


def test_concurrent_connect_shares_failure(fake_bridge):
    async def scenario():
        await fake_bridge.start()
        port = fake_bridge.port
        await fake_bridge.stop()

        errors = []
        connection = BridgeConnection("127.0.0.1", port, reconnect_interval=10, on_error=errors.append)
        results = await asyncio.gather(connection.connect(), connection.connect(), return_exceptions=True)
        await connection.disconnect()
        return results, errors

    results, errors = asyncio.run(scenario())
    assert all(isinstance(result, TransportError) for result in results)
    assert len(errors) == 1
