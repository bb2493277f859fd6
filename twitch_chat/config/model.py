from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import TWITCH_IRC_HOST, TWITCH_IRC_PORT


class ConnectionCredentials(BaseModel):
    """Credentials and endpoint used to log in to Twitch chat.

    Attributes:
        username: The Twitch login name (lowercased).
        oauth: OAuth chat token, always carrying the ``oauth:`` prefix.
        host: Chat server host name.
        port: Chat server port.
    """

    model_config = ConfigDict(frozen=True)

    username: str = Field(min_length=1, max_length=25)
    oauth: str = Field(min_length=1)
    host: str = TWITCH_IRC_HOST
    port: int = Field(default=TWITCH_IRC_PORT, ge=1, le=65535)

    @field_validator("username", mode="before")
    @classmethod
    def normalize_username(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise ValueError("username must be a string")
        return v.strip().lower()

    @field_validator("oauth", mode="before")
    @classmethod
    def normalize_oauth(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("oauth token must be a non-empty string")
        token = v.strip()
        return token if token.startswith("oauth:") else f"oauth:{token}"

    @classmethod
    def from_env(cls) -> ConnectionCredentials:
        """Build credentials from TWITCH_USERNAME / TWITCH_OAUTH."""
        data: dict[str, Any] = {
            "username": os.environ.get("TWITCH_USERNAME", ""),
            "oauth": os.environ.get("TWITCH_OAUTH", ""),
        }
        return cls.model_validate(data)


class ClientOptions(BaseModel):
    """Behavioural switches for a chat session.

    Attributes:
        channel: Room to join (lowercased, without the leading '#').
        chat_command_identifiers: Prefix characters marking chat commands.
        whisper_command_identifiers: Prefix characters marking whisper commands.
        auto_pong: Answer server PINGs automatically.
        replace_emotes: Substitute emote spans in chat message bodies.
        log_raw_lines: Log every inbound line at INFO instead of DEBUG.
    """

    channel: str = Field(min_length=1)
    chat_command_identifiers: list[str] = Field(default_factory=list)
    whisper_command_identifiers: list[str] = Field(default_factory=list)
    auto_pong: bool = True
    replace_emotes: bool = False
    log_raw_lines: bool = False

    @field_validator("channel", mode="before")
    @classmethod
    def normalize_channel(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise ValueError("channel must be a string")
        return v.strip().lstrip("#").lower()

    @field_validator(
        "chat_command_identifiers", "whisper_command_identifiers", mode="after"
    )
    @classmethod
    def validate_identifiers(cls, v: list[str]) -> list[str]:
        for identifier in v:
            if len(identifier) != 1 or identifier.isspace():
                raise ValueError(
                    f"command identifier must be a single character, got {identifier!r}"
                )
        # Dedup, keep registration order
        return list(dict.fromkeys(v))
