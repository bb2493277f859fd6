"""Pure builders turning one parsed line into one typed object."""

from __future__ import annotations

from .emotes import EmoteSet, MessageEmoteCollection, UserTier
from .events import ExistingUsersDetected, HostingStarted, HostingStopped
from .models import (
    ChannelState,
    ChatMessage,
    NewSubscriber,
    ReSubscriber,
    SubscriptionPlan,
    UserState,
    WhisperMessage,
    parse_badges,
    tier_from_badges,
)
from .parser import IRCMessage, int_or_zero, token_at

_ACTION_PREFIX = "\x01ACTION "
_ACTION_SUFFIX = "\x01"


def split_action(body: str) -> tuple[str, bool]:
    """Strip a CTCP ACTION (``/me``) wrapper, reporting whether one was present."""
    if body.startswith(_ACTION_PREFIX):
        text = body[len(_ACTION_PREFIX):]
        if text.endswith(_ACTION_SUFFIX):
            text = text[: -len(_ACTION_SUFFIX)]
        return text, True
    return body, False


def _optional_int(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def build_chat_message(
    msg: IRCMessage,
    emotes: MessageEmoteCollection | None = None,
    replace_emotes: bool = False,
) -> ChatMessage:
    tags = msg.tags
    username = (msg.nick or "").lower()
    channel = msg.target_channel or ""
    body, is_me = split_action(msg.trailing or "")
    badges = parse_badges(tags.get("badges"))
    badge_names = {b.name for b in badges}
    is_broadcaster = "broadcaster" in badge_names or (
        bool(username) and username == channel
    )
    tier = UserTier.BROADCASTER if is_broadcaster else tier_from_badges(badges, tags)
    emote_set = EmoteSet.parse(tags.get("emotes"))
    if replace_emotes and emotes is not None:
        body = emotes.replace_emotes(body, emote_set, tier)
    return ChatMessage(
        username=username,
        display_name=tags.get("display-name") or username,
        channel=channel,
        message=body,
        user_id=tags.get("user-id", ""),
        color_hex=tags.get("color", ""),
        user_type=tags.get("user-type", ""),
        badges=badges,
        bits=_optional_int(tags.get("bits")),
        is_me=is_me,
        is_subscriber=tags.get("subscriber") == "1" or "subscriber" in badge_names,
        is_turbo=tags.get("turbo") == "1" or "turbo" in badge_names,
        is_moderator=tags.get("mod") == "1" or "moderator" in badge_names,
        is_broadcaster=is_broadcaster,
        emote_set=emote_set,
        tags=tags,
        raw=msg.raw,
    )


def build_whisper_message(msg: IRCMessage, session_username: str) -> WhisperMessage:
    tags = msg.tags
    username = (msg.nick or "").lower()
    return WhisperMessage(
        username=username,
        display_name=tags.get("display-name") or username,
        recipient=(msg.target or session_username).lower(),
        message=msg.trailing or "",
        user_id=tags.get("user-id", ""),
        color_hex=tags.get("color", ""),
        badges=parse_badges(tags.get("badges")),
        emote_set=EmoteSet.parse(tags.get("emotes")),
        tags=tags,
        raw=msg.raw,
    )


def build_channel_state(msg: IRCMessage, previous: ChannelState | None) -> ChannelState:
    channel = msg.target_channel or ""
    if previous is None or previous.channel != channel:
        previous = ChannelState(channel=channel)
    return previous.overlay(msg.tags)


def build_user_state(msg: IRCMessage) -> UserState:
    tags = msg.tags
    badges = parse_badges(tags.get("badges"))
    badge_names = {b.name for b in badges}
    emote_sets = tuple(s for s in tags.get("emote-sets", "").split(",") if s)
    return UserState(
        channel=msg.target_channel or "",
        display_name=tags.get("display-name", ""),
        color_hex=tags.get("color", ""),
        user_type=tags.get("user-type", ""),
        badges=badges,
        emote_sets=emote_sets,
        is_moderator=tags.get("mod") == "1" or "moderator" in badge_names,
        is_subscriber=tags.get("subscriber") == "1" or "subscriber" in badge_names,
        tags=tags,
    )


def _legacy_subscriber(msg: IRCMessage) -> NewSubscriber:
    # ":twitchnotify!... PRIVMSG #room :name just subscribed with Twitch Prime!"
    text = msg.trailing or ""
    name = token_at(text.split(), 0)
    plan = SubscriptionPlan.NOT_SET
    if "twitch prime" in text.lower():
        plan = SubscriptionPlan.PRIME
    return NewSubscriber(
        name=name.lower(),
        display_name=name,
        channel=msg.target_channel or "",
        plan=plan,
        system_message=text,
        tags=msg.tags,
    )


def build_new_subscriber(msg: IRCMessage) -> NewSubscriber:
    if msg.command == "PRIVMSG":
        return _legacy_subscriber(msg)
    tags = msg.tags
    login = tags.get("login", "")
    return NewSubscriber(
        name=login,
        display_name=tags.get("display-name") or login,
        channel=msg.target_channel or "",
        plan=SubscriptionPlan.parse(tags.get("msg-param-sub-plan")),
        plan_name=tags.get("msg-param-sub-plan-name", ""),
        system_message=tags.get("system-msg", ""),
        message=msg.trailing or None,
        user_id=tags.get("user-id", ""),
        tags=tags,
    )


def build_resubscriber(msg: IRCMessage) -> ReSubscriber:
    tags = msg.tags
    login = tags.get("login", "")
    months = int_or_zero(
        tags.get("msg-param-cumulative-months") or tags.get("msg-param-months")
    )
    return ReSubscriber(
        name=login,
        display_name=tags.get("display-name") or login,
        channel=msg.target_channel or "",
        plan=SubscriptionPlan.parse(tags.get("msg-param-sub-plan")),
        plan_name=tags.get("msg-param-sub-plan-name", ""),
        system_message=tags.get("system-msg", ""),
        message=msg.trailing or None,
        user_id=tags.get("user-id", ""),
        tags=tags,
        months=months,
    )


def _host_tokens(msg: IRCMessage) -> list[str]:
    return (msg.trailing or "").split()


def build_hosting_stopped(msg: IRCMessage) -> HostingStopped:
    # ":tmi.twitch.tv HOSTTARGET #hosting :- 0"
    tokens = _host_tokens(msg)
    return HostingStopped(
        hosting_channel=msg.target_channel or "",
        viewers=int_or_zero(token_at(tokens, 1)),
    )


def build_hosting_started(msg: IRCMessage) -> HostingStarted:
    # ":tmi.twitch.tv HOSTTARGET #hosting :target 12"
    tokens = _host_tokens(msg)
    return HostingStarted(
        hosting_channel=msg.target_channel or "",
        target_channel=token_at(tokens, 0).lstrip("#").lower(),
        viewers=int_or_zero(token_at(tokens, 1)),
    )


def build_existing_users(msg: IRCMessage, channel: str) -> ExistingUsersDetected:
    # ":me.tmi.twitch.tv 353 me = #room :alice bob carol"
    return ExistingUsersDetected(
        users=tuple((msg.trailing or "").split()),
        channel=channel,
    )
