"""Chat session: connection lifecycle, cached room state, throttled sends."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from ..config.model import ClientOptions, ConnectionCredentials
from ..constants import TWITCH_CAPABILITIES, TWITCH_SERVICE_HOST, WHISPER_RELAY_ROOM
from ..errors.handling import log_error
from ..logs.logger import logger
from ..rate.throttler import MessageThrottler
from .classifier import DispatchContext, LineClassifier
from .emotes import MessageEmoteCollection
from .events import (
    ChannelStateChanged,
    Connected,
    Disconnected,
    Event,
    EventRegistry,
    Handler,
    IncorrectLogin,
    KeepaliveRequested,
    MessageReceived,
    MessageSent,
    MessageThrottled,
    RawLineReceived,
    UserStateChanged,
    WhisperReceived,
    WhisperSent,
)
from .models import ChannelState, ChatMessage, ConnectionState, UserState, WhisperMessage
from .transport import LineTransport, Priority, TcpLineTransport


def prepare_outgoing(text: str) -> str:
    """Flatten line breaks and re-encode so the line survives UTF-8 framing."""
    flat = text.replace("\r", " ").replace("\n", " ")
    return flat.encode("utf-8", "replace").decode("utf-8")


def _validate_identifier(identifier: str) -> str:
    if len(identifier) != 1 or identifier.isspace():
        raise ValueError(
            f"command identifier must be a single character, got {identifier!r}"
        )
    return identifier


class TwitchChatClient:
    """One joined room over one transport.

    Incoming lines are classified and published on the transport's reader
    task, strictly in arrival order. The cached fields are written only
    there and read by callers under a lock.

    Sends are coroutines; from another thread schedule them with
    ``asyncio.run_coroutine_threadsafe`` on the client's loop.
    """

    def __init__(
        self,
        credentials: ConnectionCredentials,
        options: ClientOptions | str,
        *,
        transport: LineTransport | None = None,
        chat_throttler: MessageThrottler | None = None,
        whisper_throttler: MessageThrottler | None = None,
        emotes: MessageEmoteCollection | None = None,
        classifier: LineClassifier | None = None,
    ) -> None:
        if isinstance(options, str):
            options = ClientOptions(channel=options)
        self.credentials = credentials
        self.options = options
        self.transport: LineTransport = transport or TcpLineTransport()
        self.transport.on_connected = self._on_transport_connected
        self.transport.on_line = self._on_line
        self.transport.on_disconnected = self._on_transport_disconnected
        self.chat_throttler = chat_throttler
        self.whisper_throttler = whisper_throttler
        self.emotes = emotes if emotes is not None else MessageEmoteCollection()
        self.classifier = classifier or LineClassifier()
        self.events = EventRegistry(owner=credentials.username)

        self._lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._channel = options.channel
        self._channel_state: ChannelState | None = None
        self._user_state: UserState | None = None
        self._previous_message: ChatMessage | None = None
        self._previous_whisper: WhisperMessage | None = None
        self._chat_identifiers: tuple[str, ...] = tuple(
            options.chat_command_identifiers
        )
        self._whisper_identifiers: tuple[str, ...] = tuple(
            options.whisper_command_identifiers
        )

    # --------------------------- Snapshots --------------------------- #
    @property
    def username(self) -> str:
        return self.credentials.username

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def channel(self) -> str:
        with self._lock:
            return self._channel

    @property
    def channel_state(self) -> ChannelState | None:
        with self._lock:
            return self._channel_state

    @property
    def user_state(self) -> UserState | None:
        with self._lock:
            return self._user_state

    @property
    def previous_message(self) -> ChatMessage | None:
        with self._lock:
            return self._previous_message

    @property
    def previous_whisper(self) -> WhisperMessage | None:
        with self._lock:
            return self._previous_whisper

    @property
    def is_connected(self) -> bool:
        return self.state is not ConnectionState.DISCONNECTED and self.transport.is_connected

    @property
    def chat_command_identifiers(self) -> tuple[str, ...]:
        with self._lock:
            return self._chat_identifiers

    @property
    def whisper_command_identifiers(self) -> tuple[str, ...]:
        with self._lock:
            return self._whisper_identifiers

    # --------------------------- Subscriptions --------------------------- #
    def on(self, event_type: type[Event]) -> Callable[[Handler], Handler]:
        return self.events.on(event_type)

    def add_chat_command_identifier(self, identifier: str) -> None:
        identifier = _validate_identifier(identifier)
        with self._lock:
            if identifier not in self._chat_identifiers:
                self._chat_identifiers = (*self._chat_identifiers, identifier)

    def remove_chat_command_identifier(self, identifier: str) -> bool:
        with self._lock:
            if identifier not in self._chat_identifiers:
                return False
            self._chat_identifiers = tuple(
                i for i in self._chat_identifiers if i != identifier
            )
            return True

    def add_whisper_command_identifier(self, identifier: str) -> None:
        identifier = _validate_identifier(identifier)
        with self._lock:
            if identifier not in self._whisper_identifiers:
                self._whisper_identifiers = (*self._whisper_identifiers, identifier)

    def remove_whisper_command_identifier(self, identifier: str) -> bool:
        with self._lock:
            if identifier not in self._whisper_identifiers:
                return False
            self._whisper_identifiers = tuple(
                i for i in self._whisper_identifiers if i != identifier
            )
            return True

    # --------------------------- Lifecycle --------------------------- #
    def _set_state(self, new_state: ConnectionState) -> ConnectionState:
        with self._lock:
            old_state, self._state = self._state, new_state
        if old_state is not new_state:
            logger.log_event(
                "client",
                "state_change",
                level=logging.DEBUG,
                user=self.username,
                channel=self.channel,
                old_state=old_state.name,
                new_state=new_state.name,
            )
        return old_state

    async def connect(self) -> bool:
        """Open the transport; authentication follows on its connected callback.

        Returns False when the session is already connecting or connected.

        Raises:
            NetworkError: The transport could not reach the server.
        """
        with self._lock:
            if self._state is not ConnectionState.DISCONNECTED:
                logger.log_event(
                    "client",
                    "connect_ignored",
                    level=logging.DEBUG,
                    user=self.username,
                    state=self._state.name,
                )
                return False
        self._set_state(ConnectionState.CONNECTING)
        logger.log_event(
            "client",
            "connecting",
            user=self.username,
            channel=self.channel,
            host=self.credentials.host,
            port=self.credentials.port,
        )
        try:
            await self.transport.connect(self.credentials.host, self.credentials.port)
        except Exception as e:
            self._set_state(ConnectionState.DISCONNECTED)
            log_error("Connecting to chat failed", e, {"user": self.username})
            raise
        return True

    async def disconnect(self, reason: str = "requested") -> None:
        """Valid from any state, including from a handler on the reader task."""
        previous = self._set_state(ConnectionState.DISCONNECTED)
        await self.transport.disconnect()
        if previous is not ConnectionState.DISCONNECTED:
            logger.log_event(
                "client", "disconnected", user=self.username, reason=reason
            )
            await self.events.publish(Disconnected(username=self.username, reason=reason))

    async def reconnect(self) -> bool:
        logger.log_event("client", "reconnecting", level=logging.WARNING, user=self.username)
        await self.disconnect(reason="reconnect")
        return await self.connect()

    async def _on_transport_connected(self) -> None:
        self._set_state(ConnectionState.AUTHENTICATING)
        username = self.username
        send = self.transport.send_line
        send(f"PASS {self.credentials.oauth}", Priority.CRITICAL)
        send(f"NICK {username}", Priority.CRITICAL)
        send(f"USER {username} 8 * :{username}", Priority.CRITICAL)
        for capability in TWITCH_CAPABILITIES:
            send(f"CAP REQ :{capability}", Priority.HIGH)
        send(f"JOIN #{self.channel}", Priority.HIGH)
        logger.log_event(
            "client", "auth_sent", level=logging.DEBUG, user=username, channel=self.channel
        )
        self._set_state(ConnectionState.JOINED_AWAITING_CONFIRMATION)
        self.transport.start_listening()

    async def _on_transport_disconnected(self, reason: str) -> None:
        previous = self._set_state(ConnectionState.DISCONNECTED)
        if previous is not ConnectionState.DISCONNECTED:
            logger.log_event(
                "client", "connection_lost", level=logging.ERROR, user=self.username, reason=reason
            )
            await self.events.publish(Disconnected(username=self.username, reason=reason))

    # --------------------------- Incoming --------------------------- #
    def _dispatch_context(self) -> DispatchContext:
        with self._lock:
            return DispatchContext(
                channel=self._channel,
                username=self.username,
                chat_command_identifiers=frozenset(self._chat_identifiers),
                whisper_command_identifiers=frozenset(self._whisper_identifiers),
                emotes=self.emotes,
                replace_emotes=self.options.replace_emotes,
                auto_pong=self.options.auto_pong,
                channel_state=self._channel_state,
                service_host=TWITCH_SERVICE_HOST,
            )

    async def _on_line(self, line: str) -> None:
        if self.state is ConnectionState.DISCONNECTED:
            return
        await self.process_line(line)

    async def process_line(self, line: str) -> None:
        """Classify one raw line and deliver its events in order."""
        logger.log_event(
            "irc",
            "raw",
            level=logging.INFO if self.options.log_raw_lines else logging.DEBUG,
            user=self.username,
            raw=line,
        )
        await self.events.publish(RawLineReceived(line=line))
        result = self.classifier.classify(line, self._dispatch_context())
        if result.is_unclassified:
            logger.log_event(
                "irc", "unclassified", level=logging.DEBUG, user=self.username, raw=line
            )
            return
        for event in result.events:
            await self._apply(event)
            if self.state is ConnectionState.DISCONNECTED:
                break

    async def _apply(self, event: Event) -> None:
        if isinstance(event, KeepaliveRequested):
            self.transport.send_line(event.reply, Priority.HIGH)
            logger.log_event("irc", "pong", level=logging.DEBUG, user=self.username)
            return
        if isinstance(event, IncorrectLogin):
            await self._handle_login_failure(event)
            return
        if isinstance(event, Connected):
            self._set_state(ConnectionState.LISTENING)
            logger.log_event("client", "connected", user=self.username, channel=event.channel)
        elif isinstance(event, MessageReceived):
            with self._lock:
                self._previous_message = event.chat_message
        elif isinstance(event, WhisperReceived):
            with self._lock:
                self._previous_whisper = event.whisper_message
        elif isinstance(event, ChannelStateChanged):
            with self._lock:
                self._channel_state = event.channel_state
        elif isinstance(event, UserStateChanged):
            with self._lock:
                self._user_state = event.user_state
        await self.events.publish(event)

    async def _handle_login_failure(self, event: IncorrectLogin) -> None:
        self._set_state(ConnectionState.DISCONNECTED)
        log_error(
            "Chat login rejected",
            event.error,
            {"user": self.username, "server_message": event.error.server_message},
        )
        logger.log_event(
            "client",
            "login_failed",
            level=logging.ERROR,
            user=self.username,
            server_message=event.error.server_message,
        )
        await self.transport.disconnect()
        await self.events.publish(event)
        await self.events.publish(
            Disconnected(username=self.username, reason=event.error.server_message)
        )

    # --------------------------- Outgoing --------------------------- #
    def _can_send(self, kind: str) -> bool:
        if self.transport.is_connected:
            return True
        logger.log_event(
            "client", "send_not_connected", level=logging.WARNING, user=self.username, kind=kind
        )
        return False

    async def _admit(
        self, throttler: MessageThrottler | None, message: str, destination: str
    ) -> bool:
        if throttler is None:
            return True
        violation = throttler.check(message)
        if violation is None:
            return True
        await self.events.publish(
            MessageThrottled(message=message, violation=violation, destination=destination)
        )
        return False

    def _transmit(self, line: str, throttler: MessageThrottler | None) -> bool:
        if self.transport.send_line(line, Priority.MEDIUM):
            return True
        if throttler is not None:
            throttler.release()
        return False

    async def send_raw(self, line: str) -> bool:
        """Send ``line`` as-is; gated by the chat throttler only when it applies to raw lines."""
        line = prepare_outgoing(line)
        if not self._can_send("raw"):
            return False
        throttler = self.chat_throttler
        if throttler is not None and not throttler.apply_to_raw_messages:
            throttler = None
        if not await self._admit(throttler, line, "raw"):
            return False
        return self._transmit(line, throttler)

    async def send_message(self, message: str, dry_run: bool = False) -> bool:
        """Send a chat line to the current room. Returns True once queued."""
        username, channel = self.username, self.channel
        body = prepare_outgoing(message)
        line = (
            f":{username}!{username}@{username}.{TWITCH_SERVICE_HOST} "
            f"PRIVMSG #{channel} :{body}"
        )
        if dry_run:
            logger.log_event(
                "client", "dry_run", level=logging.DEBUG, user=username, channel=channel, line=line
            )
            return False
        if not self._can_send("chat"):
            return False
        if not await self._admit(self.chat_throttler, body, "chat"):
            return False
        if not self._transmit(line, self.chat_throttler):
            return False
        await self.events.publish(
            MessageSent(username=username, channel=channel, message=body)
        )
        return True

    async def send_whisper(
        self, receiver: str, message: str, dry_run: bool = False
    ) -> bool:
        """Whisper ``receiver`` through the relay room. Returns True once queued."""
        username = self.username
        receiver = receiver.strip().lower()
        body = prepare_outgoing(message)
        line = (
            f":{username}~{username}@{username}.{TWITCH_SERVICE_HOST} "
            f"PRIVMSG #{WHISPER_RELAY_ROOM} :/w {receiver} {body}"
        )
        if dry_run:
            logger.log_event(
                "client", "dry_run", level=logging.DEBUG, user=username, line=line
            )
            return False
        if not self._can_send("whisper"):
            return False
        if not await self._admit(self.whisper_throttler, body, "whisper"):
            return False
        if not self._transmit(line, self.whisper_throttler):
            return False
        await self.events.publish(
            WhisperSent(username=username, receiver=receiver, message=body)
        )
        return True

    async def join_channel(self, channel: str) -> bool:
        """Join ``channel`` and make it the current room."""
        channel = channel.strip().lstrip("#").lower()
        if not channel:
            raise ValueError("channel must not be empty")
        with self._lock:
            self._channel = channel
            self._channel_state = None
            self._user_state = None
        logger.log_event("client", "join_channel", user=self.username, channel=channel)
        if not self._can_send("join"):
            return False
        return self.transport.send_line(f"JOIN #{channel}", Priority.HIGH)
