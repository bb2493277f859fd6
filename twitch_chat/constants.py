"""
Configuration constants for the Twitch chat client

Each constant can be overridden by an environment variable of the same name.
Malformed numeric overrides are reported and the default is kept.
"""

import logging
import os
from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T", int, float)

_log = logging.getLogger(__name__)


def _get_env_number(name: str, default: T, cast: Callable[[str], T]) -> T:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return cast(value)
    except ValueError:
        _log.warning(
            "Invalid %s value for %s=%r, using default %s",
            cast.__name__,
            name,
            value,
            default,
        )
        return default


def _get_env_int(name: str, default: int) -> int:
    return _get_env_number(name, default, int)


def _get_env_float(name: str, default: float) -> float:
    return _get_env_number(name, default, float)


def _get_env_str(name: str, default: str) -> str:
    value = os.getenv(name, "").strip()
    return value or default


# Server endpoints
TWITCH_IRC_HOST = _get_env_str("TWITCH_IRC_HOST", "irc.chat.twitch.tv")
TWITCH_IRC_PORT = _get_env_int("TWITCH_IRC_PORT", 6667)
TWITCH_IRC_WS_HOST = _get_env_str("TWITCH_IRC_WS_HOST", "irc-ws.chat.twitch.tv")
TWITCH_IRC_WS_PORT = _get_env_int("TWITCH_IRC_WS_PORT", 443)
TWITCH_SERVICE_HOST = _get_env_str(
    "TWITCH_SERVICE_HOST", "tmi.twitch.tv"
)  # Host suffix used in outgoing prefixes and PONG replies
WHISPER_RELAY_ROOM = _get_env_str(
    "WHISPER_RELAY_ROOM", "jtv"
)  # Room whispers are relayed through

# Capabilities requested right after authentication
TWITCH_CAPABILITIES = (
    "twitch.tv/membership",
    "twitch.tv/commands",
    "twitch.tv/tags",
)

# Transport timing
TRANSPORT_CONNECT_TIMEOUT_SECONDS = _get_env_float(
    "TRANSPORT_CONNECT_TIMEOUT_SECONDS", 15.0
)  # Timeout for opening the socket
TRANSPORT_READ_LIMIT_BYTES = _get_env_int(
    "TRANSPORT_READ_LIMIT_BYTES", 65536
)  # StreamReader line buffer limit

# Retry/backoff constants
RECONNECT_MAX_ATTEMPTS = _get_env_int(
    "RECONNECT_MAX_ATTEMPTS", 10
)  # Maximum reconnection attempts after an unexpected drop
INITIAL_BACKOFF_SECONDS = _get_env_float(
    "INITIAL_BACKOFF_SECONDS", 1.0
)  # Initial backoff time in seconds
MAX_BACKOFF_SECONDS = _get_env_float(
    "MAX_BACKOFF_SECONDS", 30.0
)  # Maximum backoff time in seconds

# Throttling defaults (Twitch documented limits for regular users)
CHAT_THROTTLE_MESSAGES = _get_env_int("CHAT_THROTTLE_MESSAGES", 20)
CHAT_THROTTLE_PERIOD_SECONDS = _get_env_float("CHAT_THROTTLE_PERIOD_SECONDS", 30.0)
WHISPER_THROTTLE_MESSAGES = _get_env_int("WHISPER_THROTTLE_MESSAGES", 3)
WHISPER_THROTTLE_PERIOD_SECONDS = _get_env_float(
    "WHISPER_THROTTLE_PERIOD_SECONDS", 1.0
)
