"""Ordered line classification: one raw line in, zero or more events out.

Rules are evaluated top to bottom. The first rule that matches stops
evaluation unless it is declared ``fall_through``, which is how a command
line also produces the plain chat event (and a whisper command also
produces the plain whisper event) in a fixed order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import cached_property

from ..constants import TWITCH_SERVICE_HOST
from ..errors.internal import LoginError
from ..logs.logger import logger
from . import builders
from .commands import parse_command, starts_with_identifier
from .emotes import MessageEmoteCollection
from .events import (
    ChannelStateChanged,
    ChatCommandReceived,
    Connected,
    Event,
    HostLeft,
    IncorrectLogin,
    KeepaliveRequested,
    MessageReceived,
    ModeratorJoined,
    ModeratorLeft,
    NewSubscriberReceived,
    ReSubscriberReceived,
    UserStateChanged,
    ViewerJoined,
    ViewerLeft,
    WhisperCommandReceived,
    WhisperReceived,
)
from .models import ChannelState, ChatMessage, WhisperMessage
from .parser import IRCMessage, parse_irc_message, split_tokens, token_at

WHISPER_MARKER = "WHISPER"
LEGACY_NOTIFY_NICK = "twitchnotify"
LOGIN_FAILURE_TEXTS = (
    "Login authentication failed",
    "Login unsuccessful",
    "Improperly formatted auth",
)
HOST_OFFLINE_MSG_ID = "host_target_went_offline"
HOST_OFFLINE_TEXT = "has gone offline. Exiting host mode"


@dataclass(frozen=True)
class DispatchContext:
    """Session facts a rule may consult; a fresh snapshot per line."""

    channel: str
    username: str
    chat_command_identifiers: frozenset[str] = frozenset()
    whisper_command_identifiers: frozenset[str] = frozenset()
    emotes: MessageEmoteCollection | None = None
    replace_emotes: bool = False
    auto_pong: bool = True
    channel_state: ChannelState | None = None
    service_host: str = TWITCH_SERVICE_HOST


class LineView:
    """A parsed line plus lazily built objects shared by every rule."""

    def __init__(self, raw: str, context: DispatchContext) -> None:
        self.raw = raw
        self.context = context
        self.msg: IRCMessage = parse_irc_message(raw)
        self.tokens = split_tokens(raw)

    @property
    def command(self) -> str:
        return self.msg.command or ""

    @property
    def in_room(self) -> bool:
        return self.msg.target_channel == self.context.channel

    @property
    def msg_id(self) -> str:
        return self.msg.tags.get("msg-id", "")

    @property
    def text(self) -> str:
        return self.msg.trailing or ""

    @cached_property
    def body(self) -> str:
        return builders.split_action(self.text)[0]

    @cached_property
    def is_whisper(self) -> bool:
        return WHISPER_MARKER in (token_at(self.tokens, 1), token_at(self.tokens, 2))

    @cached_property
    def chat_message(self) -> ChatMessage:
        return builders.build_chat_message(
            self.msg, self.context.emotes, self.context.replace_emotes
        )

    @cached_property
    def whisper_message(self) -> WhisperMessage:
        return builders.build_whisper_message(self.msg, self.context.username)


@dataclass(frozen=True)
class Rule:
    name: str
    matches: Callable[[LineView], bool]
    emit: Callable[[LineView], Iterable[Event]]
    fall_through: bool = False


@dataclass(frozen=True)
class Classification:
    events: tuple[Event, ...]
    matched: tuple[str, ...]

    @property
    def is_unclassified(self) -> bool:
        return not self.matched


# --------------------------- Predicates --------------------------- #
def _is_room_privmsg(v: LineView) -> bool:
    return v.command == "PRIVMSG" and v.in_room


def _is_new_subscriber(v: LineView) -> bool:
    if v.command == "USERNOTICE":
        return v.in_room and v.msg_id == "sub"
    return (
        _is_room_privmsg(v)
        and (v.msg.nick or "").lower() == LEGACY_NOTIFY_NICK
        and "just subscribed" in v.text
    )


def _is_chat_command(v: LineView) -> bool:
    return _is_room_privmsg(v) and starts_with_identifier(
        v.body, v.context.chat_command_identifiers
    )


def _is_mode_change(sign: str) -> Callable[[LineView], bool]:
    def predicate(v: LineView) -> bool:
        return (
            v.command == "MODE"
            and v.in_room
            and token_at(list(v.msg.params), 1) == sign
            and bool(token_at(list(v.msg.params), 2))
        )

    return predicate


def _is_login_failure(v: LineView) -> bool:
    return v.command == "NOTICE" and any(t in v.text for t in LOGIN_FAILURE_TEXTS)


def _is_host_left(v: LineView) -> bool:
    return v.command == "NOTICE" and (
        v.msg_id == HOST_OFFLINE_MSG_ID or HOST_OFFLINE_TEXT in v.text
    )


def _is_hosting_stopped(v: LineView) -> bool:
    return v.command == "HOSTTARGET" and token_at(v.text.split(), 0) == "-"


def _names_reply_room(v: LineView) -> str | None:
    for param in v.msg.params[1:]:
        if param.startswith("#"):
            return param[1:].lower()
    return None


def _is_existing_users(v: LineView) -> bool:
    return (
        v.command == "353"
        and token_at(list(v.msg.params), 0).lower() == v.context.username
        and _names_reply_room(v) == v.context.channel
    )


def _is_whisper_to_me(v: LineView) -> bool:
    return (v.msg.target or "").lower() == v.context.username


def _is_whisper_command(v: LineView) -> bool:
    return _is_whisper_to_me(v) and starts_with_identifier(
        v.text, v.context.whisper_command_identifiers
    )


# --------------------------- Emitters --------------------------- #
def _emit_connected(v: LineView) -> Iterable[Event]:
    return (Connected(username=v.context.username, channel=v.context.channel),)


def _emit_new_subscriber(v: LineView) -> Iterable[Event]:
    return (
        NewSubscriberReceived(
            subscriber=builders.build_new_subscriber(v.msg), channel=v.context.channel
        ),
    )


def _emit_chat_command(v: LineView) -> Iterable[Event]:
    return (
        ChatCommandReceived(
            chat_message=v.chat_message,
            channel=v.context.channel,
            command=parse_command(v.body),
        ),
    )


def _emit_chat_message(v: LineView) -> Iterable[Event]:
    return (MessageReceived(chat_message=v.chat_message),)


def _emit_membership(event_type: type) -> Callable[[LineView], Iterable[Event]]:
    def emit(v: LineView) -> Iterable[Event]:
        return (event_type(username=(v.msg.nick or "").lower(), channel=v.context.channel),)

    return emit


def _emit_moderator(event_type: type) -> Callable[[LineView], Iterable[Event]]:
    def emit(v: LineView) -> Iterable[Event]:
        username = token_at(list(v.msg.params), 2).lower()
        return (event_type(username=username, channel=v.context.channel),)

    return emit


def _emit_login_failure(v: LineView) -> Iterable[Event]:
    return (IncorrectLogin(error=LoginError(v.text, v.context.username)),)


def _emit_host_left(v: LineView) -> Iterable[Event]:
    return (HostLeft(),)


def _emit_channel_state(v: LineView) -> Iterable[Event]:
    state = builders.build_channel_state(v.msg, v.context.channel_state)
    return (ChannelStateChanged(channel_state=state, channel=v.context.channel),)


def _emit_user_state(v: LineView) -> Iterable[Event]:
    return (UserStateChanged(user_state=builders.build_user_state(v.msg)),)


def _emit_resubscriber(v: LineView) -> Iterable[Event]:
    return (ReSubscriberReceived(resubscriber=builders.build_resubscriber(v.msg)),)


def _emit_keepalive(v: LineView) -> Iterable[Event]:
    if not v.context.auto_pong:
        return ()
    return (KeepaliveRequested(reply=f"PONG :{v.context.service_host}"),)


def _emit_hosting_stopped(v: LineView) -> Iterable[Event]:
    return (builders.build_hosting_stopped(v.msg),)


def _emit_hosting_started(v: LineView) -> Iterable[Event]:
    return (builders.build_hosting_started(v.msg),)


def _emit_existing_users(v: LineView) -> Iterable[Event]:
    return (builders.build_existing_users(v.msg, v.context.channel),)


def _emit_whisper(v: LineView) -> Iterable[Event]:
    return (WhisperReceived(whisper_message=v.whisper_message),)


def _emit_whisper_command(v: LineView) -> Iterable[Event]:
    return (
        WhisperCommandReceived(
            whisper_message=v.whisper_message, command=parse_command(v.text)
        ),
    )


CHAT_RULES: tuple[Rule, ...] = (
    Rule("connected", lambda v: v.command == "001", _emit_connected),
    Rule("new_subscriber", _is_new_subscriber, _emit_new_subscriber),
    Rule("chat_command", _is_chat_command, _emit_chat_command, fall_through=True),
    Rule("chat_message", _is_room_privmsg, _emit_chat_message),
    Rule(
        "viewer_joined",
        lambda v: v.command == "JOIN" and v.in_room,
        _emit_membership(ViewerJoined),
    ),
    Rule(
        "viewer_left",
        lambda v: v.command == "PART" and v.in_room,
        _emit_membership(ViewerLeft),
    ),
    Rule("moderator_joined", _is_mode_change("+o"), _emit_moderator(ModeratorJoined)),
    Rule("moderator_left", _is_mode_change("-o"), _emit_moderator(ModeratorLeft)),
    Rule("incorrect_login", _is_login_failure, _emit_login_failure),
    Rule("host_left", _is_host_left, _emit_host_left),
    Rule(
        "channel_state",
        lambda v: v.command == "ROOMSTATE" and v.in_room,
        _emit_channel_state,
    ),
    Rule(
        "user_state",
        lambda v: v.command == "USERSTATE" and v.in_room,
        _emit_user_state,
    ),
    Rule(
        "resubscriber",
        lambda v: v.command == "USERNOTICE" and v.in_room and v.msg_id == "resub",
        _emit_resubscriber,
    ),
    Rule("keepalive", lambda v: v.command == "PING", _emit_keepalive),
    Rule("hosting_stopped", _is_hosting_stopped, _emit_hosting_stopped),
    Rule(
        "hosting_started",
        lambda v: v.command == "HOSTTARGET",
        _emit_hosting_started,
    ),
    Rule("existing_users", _is_existing_users, _emit_existing_users),
)

WHISPER_RULES: tuple[Rule, ...] = (
    Rule("whisper", _is_whisper_to_me, _emit_whisper, fall_through=True),
    Rule("whisper_command", _is_whisper_command, _emit_whisper_command),
)


def _run_rules(
    rules: tuple[Rule, ...],
    view: LineView,
    events: list[Event],
    matched: list[str],
) -> None:
    for rule in rules:
        try:
            if not rule.matches(view):
                continue
            emitted = tuple(rule.emit(view))
        except Exception as e:  # noqa: BLE001
            logger.log_event(
                "irc",
                "rule_error",
                level=logging.ERROR,
                user=view.context.username,
                channel=view.context.channel,
                rule=rule.name,
                error=str(e),
                error_type=type(e).__name__,
                raw=view.raw,
            )
            continue
        events.extend(emitted)
        matched.append(rule.name)
        if not rule.fall_through:
            return


class LineClassifier:
    """Stateless; every call works only from the line and the context."""

    def __init__(
        self,
        chat_rules: tuple[Rule, ...] = CHAT_RULES,
        whisper_rules: tuple[Rule, ...] = WHISPER_RULES,
    ) -> None:
        self.chat_rules = chat_rules
        self.whisper_rules = whisper_rules

    def classify(self, raw: str, context: DispatchContext) -> Classification:
        view = LineView(raw, context)
        events: list[Event] = []
        matched: list[str] = []
        if view.is_whisper:
            _run_rules(self.whisper_rules, view, events, matched)
        else:
            _run_rules(self.chat_rules, view, events, matched)
        return Classification(events=tuple(events), matched=tuple(matched))
