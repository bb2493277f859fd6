"""Structured chat-client logger.

Every line is ``[user#channel] human text``; the human text is rendered from
the event-template catalog. With ``DEBUG`` set, the event name leads the line
and the leftover context is appended in parentheses.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from collections.abc import Mapping

from ..logging_config import build_console_formatter

PREFIX_WIDTH = 24
EVENT_NAME_WIDTH = 32
_OAUTH_TOKEN = re.compile(r"oauth:[A-Za-z0-9_]+")


def _debug_enabled() -> bool:
    return os.environ.get("DEBUG", "false").lower() in ("true", "1", "yes")


def redact(text: str) -> str:
    """Mask chat OAuth tokens."""
    return _OAUTH_TOKEN.sub("oauth:***", text)


def render_event(
    domain: str, action: str, context: Mapping[str, object]
) -> tuple[str, bool]:
    """Human text for ``(domain, action)`` and whether it had to be derived."""
    # Local import avoids a cycle during package init.
    from .event_catalog import EVENT_TEMPLATES

    template = EVENT_TEMPLATES.get((domain, action))
    if template is None:
        return f"{domain.replace('_', ' ')}: {action.replace('_', ' ')}", True
    try:
        return template.format(**context), False
    except (KeyError, IndexError, ValueError):
        return template, False


def format_prefix(user: str | None, channel: str | None) -> str:
    label = user or "system"
    core = f"{label}#{channel}" if channel else label
    return f"[{core.ljust(PREFIX_WIDTH)[:PREFIX_WIDTH]}]"


def _event_column(event_name: str) -> str:
    if len(event_name) <= EVENT_NAME_WIDTH:
        return event_name.ljust(EVENT_NAME_WIDTH)
    return event_name[: EVENT_NAME_WIDTH - 1] + "…"


class ChatLogger:
    def __init__(self, name: str = "twitch_chat", log_file: str | None = None) -> None:
        self.logger = logging.getLogger(name)
        self.log_file = log_file
        self.logger.handlers.clear()
        self.logger.setLevel(logging.DEBUG if _debug_enabled() else logging.INFO)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(
            build_console_formatter(
                "%(log_color)s%(levelname)-8s%(reset)s %(message)s", stream=sys.stdout
            )
        )
        self.logger.addHandler(console_handler)
        # Root handlers installed by LoggerConfigurator would print twice.
        self.logger.propagate = False

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            self.logger.addHandler(file_handler)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

    def log_event(
        self,
        domain: str,
        action: str,
        level: int = logging.INFO,
        human: str | None = None,
        *,
        exc_info: bool = False,
        **context: object,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        user = context.pop("user", None)
        channel = context.pop("channel", None)
        if human is None:
            human, derived = render_event(
                domain, action, {**context, "user": user, "channel": channel}
            )
            if derived:
                context["derived"] = True
        prefix = format_prefix(
            user if isinstance(user, str) else None,
            channel if isinstance(channel, str) else None,
        )
        if _debug_enabled():
            line = f"{_event_column(f'{domain}_{action}'.lower())} {prefix} {human}"
            if context:
                line += " (" + ", ".join(f"{k}={v}" for k, v in context.items()) + ")"
        else:
            line = f"{prefix} {human}"
        self.logger.log(level, redact(line), exc_info=exc_info)


logger = ChatLogger()
