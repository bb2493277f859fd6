"""Typed chat events and the per-event-type subscription registry."""

from __future__ import annotations

import inspect
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..errors.internal import LoginError
from ..logs.logger import logger
from ..rate.throttler import ThrottleViolation
from .commands import CommandInvocation
from .models import (
    ChannelState,
    ChatMessage,
    NewSubscriber,
    ReSubscriber,
    UserState,
    WhisperMessage,
)


@dataclass(frozen=True)
class Event:
    """Base class of everything published through an :class:`EventRegistry`."""


@dataclass(frozen=True)
class Connected(Event):
    username: str
    channel: str


@dataclass(frozen=True)
class NewSubscriberReceived(Event):
    subscriber: NewSubscriber
    channel: str


@dataclass(frozen=True)
class ChatCommandReceived(Event):
    chat_message: ChatMessage
    channel: str
    command: CommandInvocation


@dataclass(frozen=True)
class MessageReceived(Event):
    chat_message: ChatMessage


@dataclass(frozen=True)
class ViewerJoined(Event):
    username: str
    channel: str


@dataclass(frozen=True)
class ViewerLeft(Event):
    username: str
    channel: str


@dataclass(frozen=True)
class ModeratorJoined(Event):
    username: str
    channel: str


@dataclass(frozen=True)
class ModeratorLeft(Event):
    username: str
    channel: str


@dataclass(frozen=True)
class IncorrectLogin(Event):
    error: LoginError


@dataclass(frozen=True)
class HostLeft(Event):
    pass


@dataclass(frozen=True)
class ChannelStateChanged(Event):
    channel_state: ChannelState
    channel: str


@dataclass(frozen=True)
class UserStateChanged(Event):
    user_state: UserState


@dataclass(frozen=True)
class ReSubscriberReceived(Event):
    resubscriber: ReSubscriber


@dataclass(frozen=True)
class HostingStopped(Event):
    hosting_channel: str
    viewers: int


@dataclass(frozen=True)
class HostingStarted(Event):
    hosting_channel: str
    target_channel: str
    viewers: int


@dataclass(frozen=True)
class ExistingUsersDetected(Event):
    users: tuple[str, ...]
    channel: str


@dataclass(frozen=True)
class WhisperReceived(Event):
    whisper_message: WhisperMessage


@dataclass(frozen=True)
class WhisperCommandReceived(Event):
    whisper_message: WhisperMessage
    command: CommandInvocation


@dataclass(frozen=True)
class MessageSent(Event):
    username: str
    channel: str
    message: str


@dataclass(frozen=True)
class WhisperSent(Event):
    username: str
    receiver: str
    message: str


@dataclass(frozen=True)
class MessageThrottled(Event):
    message: str
    violation: ThrottleViolation
    destination: str  # "chat", "whisper" or "raw"


@dataclass(frozen=True)
class Disconnected(Event):
    username: str
    reason: str


@dataclass(frozen=True)
class RawLineReceived(Event):
    line: str


@dataclass(frozen=True)
class KeepaliveRequested(Event):
    """Consumed by the session to answer a PING; never published."""

    reply: str


E = TypeVar("E", bound=Event)
Handler = Callable[[Any], Any]


class EventRegistry:
    """Observer lists keyed by event class.

    Handlers may be plain callables or coroutine functions; coroutine results
    are awaited before the next handler runs, so delivery keeps wire order.
    A failing handler is logged and skipped.
    """

    def __init__(self, owner: str | None = None) -> None:
        self.owner = owner
        self._handlers: dict[type[Event], tuple[Handler, ...]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: type[E], handler: Handler) -> Handler:
        with self._lock:
            current = self._handlers.get(event_type, ())
            self._handlers[event_type] = (*current, handler)
        return handler

    def unsubscribe(self, event_type: type[Event], handler: Handler) -> bool:
        with self._lock:
            current = self._handlers.get(event_type, ())
            if handler not in current:
                return False
            remaining = list(current)
            remaining.remove(handler)
            self._handlers[event_type] = tuple(remaining)
            return True

    def on(self, event_type: type[E]) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`subscribe`."""

        def decorator(handler: Handler) -> Handler:
            return self.subscribe(event_type, handler)

        return decorator

    def handlers_for(self, event_type: type[Event]) -> tuple[Handler, ...]:
        with self._lock:
            return self._handlers.get(event_type, ())

    async def publish(self, event: Event) -> None:
        for handler in self.handlers_for(type(event)):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:  # noqa: BLE001
                logger.log_event(
                    "events",
                    "handler_error",
                    level=logging.ERROR,
                    user=self.owner,
                    event=type(event).__name__,
                    error=str(e),
                    error_type=type(e).__name__,
                )
