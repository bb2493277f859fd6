#!/usr/bin/env python3
"""
Main entry point for the Twitch chat client
"""

import asyncio
import logging
import os
import sys

from pydantic import ValidationError

from twitch_chat.config import ClientOptions, ConnectionCredentials
from twitch_chat.constants import TWITCH_IRC_WS_HOST, TWITCH_IRC_WS_PORT
from twitch_chat.errors import log_error
from twitch_chat.irc import (
    ChatCommandReceived,
    Disconnected,
    IncorrectLogin,
    MessageReceived,
    TcpLineTransport,
    TwitchChatClient,
    WebSocketLineTransport,
    WhisperReceived,
)
from twitch_chat.logging_config import LoggerConfigurator
from twitch_chat.logs import logger
from twitch_chat.rate import MessageThrottler


def build_client() -> TwitchChatClient:
    """Assemble a client from TWITCH_* environment variables."""
    credentials = ConnectionCredentials.from_env()
    options = ClientOptions(
        channel=os.environ.get("TWITCH_CHANNEL", credentials.username),
        chat_command_identifiers=list(os.environ.get("TWITCH_COMMAND_PREFIXES", "!")),
        whisper_command_identifiers=list(
            os.environ.get("TWITCH_WHISPER_PREFIXES", "!")
        ),
        replace_emotes=os.environ.get("TWITCH_REPLACE_EMOTES", "").lower()
        in ("true", "1", "yes"),
    )
    if os.environ.get("TWITCH_TRANSPORT", "tcp").lower() in ("ws", "websocket"):
        credentials = credentials.model_copy(
            update={"host": TWITCH_IRC_WS_HOST, "port": TWITCH_IRC_WS_PORT}
        )
        transport = WebSocketLineTransport()
    else:
        transport = TcpLineTransport()
    return TwitchChatClient(
        credentials,
        options,
        transport=transport,
        chat_throttler=MessageThrottler.for_chat(),
        whisper_throttler=MessageThrottler.for_whispers(),
    )


async def main():
    """Main function"""
    try:
        client = build_client()
    except ValidationError as e:
        logger.log_event("app", "missing_config", level=logging.ERROR, error=e)
        sys.exit(1)

    user = client.username
    done = asyncio.Event()

    @client.on(MessageReceived)
    def on_message(event: MessageReceived) -> None:
        msg = event.chat_message
        logger.log_event(
            "app",
            "chat",
            user=user,
            channel=msg.channel,
            author=msg.display_name,
            message=msg.message,
        )

    @client.on(ChatCommandReceived)
    def on_command(event: ChatCommandReceived) -> None:
        cmd = event.command
        logger.log_event(
            "app",
            "command",
            user=user,
            channel=event.channel,
            identifier=cmd.identifier,
            command=cmd.command,
            author=event.chat_message.display_name,
            arguments=cmd.arguments_as_string,
        )

    @client.on(WhisperReceived)
    def on_whisper(event: WhisperReceived) -> None:
        msg = event.whisper_message
        logger.log_event(
            "app", "whisper", user=user, author=msg.display_name, message=msg.message
        )

    @client.on(IncorrectLogin)
    @client.on(Disconnected)
    def on_stop(_event) -> None:
        done.set()

    logger.log_event("app", "start", user=user, channel=client.channel)
    try:
        await client.connect()
        await done.wait()
    finally:
        await client.disconnect(reason="shutdown")
        logger.log_event("app", "shutdown", user=user)


if __name__ == "__main__":
    LoggerConfigurator().configure()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.log_event("app", "shutdown")
        sys.exit(0)
    except Exception as e:
        log_error("Top-level error", e)
        sys.exit(1)
