"""Twitch chat client: line classification, typed events and throttled sends."""

from .config import ClientOptions, ConnectionCredentials  # noqa: F401
from .irc import (  # noqa: F401
    EventRegistry,
    LineClassifier,
    MessageEmoteCollection,
    TcpLineTransport,
    TwitchChatClient,
    WebSocketLineTransport,
)
from .rate import MessageThrottler  # noqa: F401

__version__ = "1.0.0"

__all__ = [
    "ClientOptions",
    "ConnectionCredentials",
    "EventRegistry",
    "LineClassifier",
    "MessageEmoteCollection",
    "MessageThrottler",
    "TcpLineTransport",
    "TwitchChatClient",
    "WebSocketLineTransport",
]
