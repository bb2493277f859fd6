"""
Tests for the TCP and WebSocket line transports against local servers.
"""

from __future__ import annotations

import asyncio

import pytest
import websockets

from twitch_chat.errors import NetworkError
from twitch_chat.irc import transport as transport_module
from twitch_chat.irc.transport import (
    Priority,
    TcpLineTransport,
    WebSocketLineTransport,
)


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(transport_module, "INITIAL_BACKOFF_SECONDS", 0)


class LineServer:
    """Tiny CRLF line server recording what clients send."""

    def __init__(self) -> None:
        self.received: asyncio.Queue[str] = asyncio.Queue()
        self.writers: list[asyncio.StreamWriter] = []
        self.connections = 0
        self.server: asyncio.base_events.Server | None = None
        self.port = 0

    async def start(self) -> None:
        self.server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self.server.sockets[0].getsockname()[1]

    async def _handle(self, reader, writer) -> None:
        self.connections += 1
        self.writers.append(writer)
        while data := await reader.readline():
            await self.received.put(data.decode().rstrip("\r\n"))

    async def send(self, *lines: str) -> None:
        writer = self.writers[-1]
        for line in lines:
            writer.write(f"{line}\r\n".encode())
        await writer.drain()

    async def drop_clients(self) -> None:
        for writer in self.writers:
            writer.close()
        self.writers.clear()

    async def stop(self) -> None:
        await self.drop_clients()
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()

    async def next_lines(self, count: int) -> list[str]:
        return [
            await asyncio.wait_for(self.received.get(), timeout=2) for _ in range(count)
        ]


@pytest.fixture
async def server():
    srv = LineServer()
    await srv.start()
    yield srv
    await srv.stop()


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


async def test_tcp_round_trip(server):
    transport = TcpLineTransport()
    lines: list[str] = []
    transport.on_line = lines.append
    await transport.connect("127.0.0.1", server.port)
    transport.start_listening()
    assert transport.is_connected

    assert transport.send_line("PING :hello") is True
    assert await server.next_lines(1) == ["PING :hello"]

    await server.send("one", "two")
    await wait_until(lambda: len(lines) == 2)
    assert lines == ["one", "two"]
    await transport.disconnect()
    assert not transport.is_connected


async def test_higher_priority_lines_go_first(server):
    transport = TcpLineTransport()

    def queue_lines():
        transport.send_line("low", Priority.LOW)
        transport.send_line("critical", Priority.CRITICAL)
        transport.send_line("high", Priority.HIGH)
        transport.send_line("high2", Priority.HIGH)

    transport.on_connected = queue_lines
    await transport.connect("127.0.0.1", server.port)
    assert await server.next_lines(4) == ["critical", "high", "high2", "low"]
    await transport.disconnect()


async def test_connect_refused_raises_network_error(server):
    port = server.port
    await server.stop()
    transport = TcpLineTransport()
    with pytest.raises(NetworkError) as excinfo:
        await transport.connect("127.0.0.1", port)
    assert excinfo.value.data["port"] == port
    assert not transport.is_connected


def test_send_before_connect_is_refused():
    assert TcpLineTransport().send_line("PING") is False


async def test_reconnects_and_fires_connected_again(server):
    transport = TcpLineTransport(max_reconnect_attempts=3)
    connected_count = 0

    def on_connected():
        nonlocal connected_count
        connected_count += 1
        transport.start_listening()

    transport.on_connected = on_connected
    await transport.connect("127.0.0.1", server.port)
    await wait_until(lambda: server.connections == 1)

    await server.drop_clients()
    await wait_until(lambda: connected_count == 2)
    assert server.connections == 2
    assert transport.is_connected

    transport.send_line("after reconnect")
    assert await server.next_lines(1) == ["after reconnect"]
    await transport.disconnect()


async def test_gives_up_after_max_attempts(server):
    transport = TcpLineTransport(max_reconnect_attempts=2)
    reasons: list[str] = []
    transport.on_connected = transport.start_listening
    transport.on_disconnected = reasons.append
    await transport.connect("127.0.0.1", server.port)
    await wait_until(lambda: server.connections == 1)

    await server.stop()
    await wait_until(lambda: len(reasons) == 1)
    assert not transport.is_connected
    await transport.disconnect()


async def test_no_auto_reconnect_reports_disconnect(server):
    transport = TcpLineTransport(auto_reconnect=False)
    reasons: list[str] = []
    transport.on_connected = transport.start_listening
    transport.on_disconnected = reasons.append
    await transport.connect("127.0.0.1", server.port)
    await wait_until(lambda: server.connections == 1)

    await server.drop_clients()
    await wait_until(lambda: len(reasons) == 1)
    assert reasons == ["connection closed by server"]
    assert server.connections == 1


async def test_disconnect_from_line_callback_stops_reading(server):
    transport = TcpLineTransport()
    lines: list[str] = []

    async def on_line(line: str) -> None:
        lines.append(line)
        await transport.disconnect()

    transport.on_line = on_line
    await transport.connect("127.0.0.1", server.port)
    transport.start_listening()
    await wait_until(lambda: server.connections == 1)

    await server.send("first", "second")
    await wait_until(lambda: len(lines) >= 1)
    await asyncio.sleep(0.05)
    assert lines == ["first"]
    assert not transport.is_connected
    assert transport.send_line("late") is False


async def test_failing_line_callback_keeps_reading(server):
    transport = TcpLineTransport()
    lines: list[str] = []

    def on_line(line: str) -> None:
        if line == "bad":
            raise RuntimeError("callback failure")
        lines.append(line)

    transport.on_line = on_line
    await transport.connect("127.0.0.1", server.port)
    transport.start_listening()
    await wait_until(lambda: server.connections == 1)
    await server.send("bad", "good")
    await wait_until(lambda: lines == ["good"])
    await transport.disconnect()


def test_websocket_url():
    assert WebSocketLineTransport().url_for("irc-ws.chat.twitch.tv", 443) == (
        "wss://irc-ws.chat.twitch.tv:443"
    )
    assert WebSocketLineTransport(secure=False).url_for("localhost", 80) == (
        "ws://localhost:80"
    )


async def test_websocket_round_trip():
    received: asyncio.Queue[str] = asyncio.Queue()

    async def handler(ws):
        await ws.send("PING :tmi.twitch.tv\r\n:tmi.twitch.tv 001 bot :Welcome\r\n")
        async for frame in ws:
            await received.put(frame)

    async with websockets.serve(handler, "127.0.0.1", 0) as ws_server:
        port = ws_server.sockets[0].getsockname()[1]
        transport = WebSocketLineTransport(secure=False)
        lines: list[str] = []
        transport.on_line = lines.append
        await transport.connect("127.0.0.1", port)
        transport.start_listening()

        await wait_until(lambda: len(lines) == 2)
        assert lines == ["PING :tmi.twitch.tv", ":tmi.twitch.tv 001 bot :Welcome"]

        transport.send_line("PONG :tmi.twitch.tv")
        assert await asyncio.wait_for(received.get(), 2) == "PONG :tmi.twitch.tv"
        await transport.disconnect()
