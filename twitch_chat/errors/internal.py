"""Centralized internal error hierarchy.

These exceptions provide semantic categories for the chat client. Only the
transport and the public session surface raise them; line parsing and
classification never raise, they degrade to "no event" instead.

Classes:
  InternalError        – Base for all internal errors.
  NetworkError         – Transport/IO issues (connect timeout, refused, closed).
  LoginError           – The server rejected the supplied credentials.
  ParsingError         – Strict parsing helpers rejecting a malformed line.
"""

from __future__ import annotations

from collections.abc import Mapping


class InternalError(Exception):
    """Base class for all internal client errors with metadata support.

    Attributes:
        data: Dictionary containing arbitrary structured context data.

    Args:
        message: Descriptive error message.
        data: Optional mapping of additional context data.
    """

    data: dict[str, object]

    def __init__(
        self, message: str, *, data: Mapping[str, object] | None = None
    ) -> None:
        super().__init__(message)
        # Copy into a plain dict to avoid unexpected mutations from caller.
        self.data = dict(data) if data else {}


class NetworkError(InternalError):
    """Exception raised for network or transport layer errors.

    This includes connection timeouts, refused connections, and attempts to
    send on a transport that is not connected.
    """


class LoginError(InternalError):
    """Authentication failure reported by the chat server.

    The instance is delivered inside an ``IncorrectLogin`` event rather than
    raised, because the failure is detected on the reader task.

    Attributes:
        server_message: The raw diagnostic line received from the server.
        username: The username that attempted to log in.
    """

    def __init__(self, server_message: str, username: str) -> None:
        super().__init__(
            f"Login failed for {username}: {server_message}",
            data={"username": username},
        )
        self.server_message = server_message
        self.username = username


class ParsingError(InternalError):
    """Exception raised when a line cannot be parsed under strict parsing."""


__all__ = [
    "InternalError",
    "NetworkError",
    "LoginError",
    "ParsingError",
]
