"""Typed chat objects built from tagged IRC lines."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from types import MappingProxyType

from .emotes import EmoteSet, UserTier


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    AUTHENTICATING = auto()
    JOINED_AWAITING_CONFIRMATION = auto()
    LISTENING = auto()


class SubscriptionPlan(Enum):
    NOT_SET = "NotSet"
    PRIME = "Prime"
    TIER1 = "1000"
    TIER2 = "2000"
    TIER3 = "3000"

    @classmethod
    def parse(cls, value: str | None) -> SubscriptionPlan:
        if not value:
            return cls.NOT_SET
        for plan in cls:
            if plan.value.lower() == value.strip().lower():
                return plan
        return cls.NOT_SET


@dataclass(frozen=True)
class Badge:
    name: str
    version: str


def _freeze(tags: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(tags))


def parse_badges(value: str | None) -> tuple[Badge, ...]:
    """Parse ``name/version,name/version`` into badges, skipping blanks."""
    if not value:
        return ()
    badges = []
    for entry in value.split(","):
        if not entry:
            continue
        name, _, version = entry.partition("/")
        badges.append(Badge(name=name, version=version))
    return tuple(badges)


def tier_from_badges(badges: tuple[Badge, ...], tags: Mapping[str, str]) -> UserTier:
    names = {b.name for b in badges}
    if "broadcaster" in names:
        return UserTier.BROADCASTER
    if "moderator" in names or tags.get("mod") == "1":
        return UserTier.MODERATOR
    if "subscriber" in names or "founder" in names or tags.get("subscriber") == "1":
        return UserTier.SUBSCRIBER
    return UserTier.VIEWER


@dataclass(frozen=True)
class ChatMessage:
    """A room-scoped chat line, built once and never mutated."""

    username: str
    display_name: str
    channel: str
    message: str
    user_id: str = ""
    color_hex: str = ""
    user_type: str = ""
    badges: tuple[Badge, ...] = ()
    bits: int | None = None
    is_me: bool = False
    is_subscriber: bool = False
    is_turbo: bool = False
    is_moderator: bool = False
    is_broadcaster: bool = False
    emote_set: EmoteSet = field(default_factory=EmoteSet)
    tags: Mapping[str, str] = field(default_factory=dict)
    raw: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _freeze(self.tags))

    @property
    def tier(self) -> UserTier:
        if self.is_broadcaster:
            return UserTier.BROADCASTER
        return tier_from_badges(self.badges, self.tags)


@dataclass(frozen=True)
class WhisperMessage:
    username: str
    display_name: str
    recipient: str
    message: str
    user_id: str = ""
    color_hex: str = ""
    badges: tuple[Badge, ...] = ()
    emote_set: EmoteSet = field(default_factory=EmoteSet)
    tags: Mapping[str, str] = field(default_factory=dict)
    raw: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _freeze(self.tags))


def _flag(value: str, previous: bool) -> bool:
    value = value.strip()
    if value in ("1", "true"):
        return True
    if value in ("0", "false"):
        return False
    return previous


def _int_or(value: str, previous: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return previous


@dataclass(frozen=True)
class ChannelState:
    """Room modes; partial updates overlay onto the previous value."""

    channel: str
    room_id: str = ""
    broadcaster_language: str = ""
    subscriber_only: bool = False
    slow_mode: int = 0
    emote_only: bool = False
    followers_only: int = -1  # minutes, -1 when disabled
    r9k: bool = False

    def overlay(self, tags: Mapping[str, str]) -> ChannelState:
        """Return a copy with only the flags present in ``tags`` replaced."""
        changes: dict[str, object] = {}
        if "room-id" in tags:
            changes["room_id"] = tags["room-id"]
        if "broadcaster-lang" in tags:
            changes["broadcaster_language"] = tags["broadcaster-lang"]
        if "subs-only" in tags:
            changes["subscriber_only"] = _flag(tags["subs-only"], self.subscriber_only)
        if "slow" in tags:
            changes["slow_mode"] = _int_or(tags["slow"], self.slow_mode)
        if "emote-only" in tags:
            changes["emote_only"] = _flag(tags["emote-only"], self.emote_only)
        if "followers-only" in tags:
            changes["followers_only"] = _int_or(
                tags["followers-only"], self.followers_only
            )
        if "r9k" in tags:
            changes["r9k"] = _flag(tags["r9k"], self.r9k)
        if not changes:
            return self
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class UserState:
    """The session user's standing in the current room; replaced wholesale."""

    channel: str
    display_name: str = ""
    color_hex: str = ""
    user_type: str = ""
    badges: tuple[Badge, ...] = ()
    emote_sets: tuple[str, ...] = ()
    is_moderator: bool = False
    is_subscriber: bool = False
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _freeze(self.tags))


@dataclass(frozen=True)
class NewSubscriber:
    name: str
    display_name: str
    channel: str
    plan: SubscriptionPlan = SubscriptionPlan.NOT_SET
    plan_name: str = ""
    system_message: str = ""
    message: str | None = None
    user_id: str = ""
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _freeze(self.tags))


@dataclass(frozen=True)
class ReSubscriber(NewSubscriber):
    months: int = 0
