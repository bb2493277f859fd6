from __future__ import annotations

import pytest

from twitch_chat.config import ClientOptions, ConnectionCredentials
from twitch_chat.errors import NetworkError
from twitch_chat.irc import Event, Priority, TwitchChatClient


class FakeClock:
    """Manually advanced monotonic clock for throttle tests."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """Records sent lines instead of touching a socket."""

    def __init__(self) -> None:
        self.on_connected = None
        self.on_line = None
        self.on_disconnected = None
        self.sent: list[tuple[str, Priority]] = []
        self.connected = False
        self.listening = False
        self.fail_connect = False
        self.refuse_sends = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.host: str | None = None
        self.port: int | None = None

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self, host: str, port: int) -> None:
        self.connect_calls += 1
        if self.fail_connect:
            raise NetworkError("connection refused")
        self.host, self.port = host, port
        self.connected = True
        await self.on_connected()

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False
        self.listening = False

    def send_line(self, text: str, priority: Priority = Priority.MEDIUM) -> bool:
        if not self.connected or self.refuse_sends:
            return False
        self.sent.append((text, priority))
        return True

    def start_listening(self) -> None:
        self.listening = True

    async def feed(self, *lines: str) -> None:
        for line in lines:
            await self.on_line(line)

    @property
    def texts(self) -> list[str]:
        return [text for text, _ in self.sent]


class EventRecorder:
    """Subscribes to every given event type and keeps delivery order."""

    def __init__(self, client: TwitchChatClient, *event_types: type[Event]) -> None:
        self.events: list[Event] = []
        for event_type in event_types:
            client.events.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type[Event]) -> list[Event]:
        return [e for e in self.events if isinstance(e, event_type)]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credentials() -> ConnectionCredentials:
    return ConnectionCredentials(username="Bot", oauth="abc123")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def client(credentials, transport) -> TwitchChatClient:
    options = ClientOptions(
        channel="#Room",
        chat_command_identifiers=["!"],
        whisper_command_identifiers=["!"],
    )
    return TwitchChatClient(credentials, options, transport=transport)
