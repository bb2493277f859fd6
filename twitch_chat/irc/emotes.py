"""Emote spans and the emote collection consulted during substitution.

Span offsets in the ``emotes`` tag are UTF-16 code units with an inclusive
end, e.g. ``25:0-4,12-16/1902:6-10``. Python strings index by code point, so
substitution maps offsets through :func:`utf16_index_map` first.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum, IntEnum

TWITCH_EMOTE_URL = "https://static-cdn.jtvnw.net/emoticons/v1/{id}/1.0"


class UserTier(IntEnum):
    """Permission tier of a chatter, ordered from least to most privileged."""

    VIEWER = 0
    SUBSCRIBER = 1
    MODERATOR = 2
    BROADCASTER = 3


class EmoteSource(Enum):
    TWITCH = "twitch"
    FRANKERFACEZ = "ffz"
    BETTERTTV = "bttv"


@dataclass(frozen=True, order=True)
class EmoteSpan:
    start: int
    end: int
    emote_id: str


@dataclass(frozen=True)
class EmoteSet:
    """Non-overlapping emote spans of one message, sorted by start offset."""

    spans: tuple[EmoteSpan, ...] = ()

    @classmethod
    def parse(cls, value: str | None) -> EmoteSet:
        """Parse an ``emotes`` tag value; malformed entries are skipped."""
        if not value:
            return cls()
        spans: list[EmoteSpan] = []
        for group in value.split("/"):
            emote_id, sep, ranges = group.partition(":")
            if not sep or not emote_id:
                continue
            for rng in ranges.split(","):
                start_s, _, end_s = rng.partition("-")
                try:
                    start, end = int(start_s), int(end_s)
                except ValueError:
                    continue
                if start < 0 or end < start:
                    continue
                spans.append(EmoteSpan(start=start, end=end, emote_id=emote_id))
        spans.sort()
        kept: list[EmoteSpan] = []
        for span in spans:
            if kept and span.start <= kept[-1].end:
                continue
            kept.append(span)
        return cls(spans=tuple(kept))

    def to_tag(self) -> str:
        """Serialize back to the ``emotes`` tag format."""
        grouped: dict[str, list[str]] = {}
        for span in self.spans:
            grouped.setdefault(span.emote_id, []).append(f"{span.start}-{span.end}")
        return "/".join(f"{eid}:{','.join(ranges)}" for eid, ranges in grouped.items())

    @property
    def emote_ids(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(span.emote_id for span in self.spans))

    def __iter__(self) -> Iterator[EmoteSpan]:
        return iter(self.spans)

    def __len__(self) -> int:
        return len(self.spans)


@dataclass(frozen=True)
class MessageEmote:
    """Display and permission metadata for one emote."""

    id: str
    text: str = ""
    source: EmoteSource = EmoteSource.TWITCH
    replacement_string: str | None = None
    required_tier: UserTier = UserTier.VIEWER

    @property
    def replacement(self) -> str:
        if self.replacement_string is not None:
            return self.replacement_string
        return TWITCH_EMOTE_URL.format(id=self.id)


def utf16_index_map(text: str) -> list[int]:
    """Map every UTF-16 code unit offset of ``text`` to its str index."""
    mapping: list[int] = []
    for index, ch in enumerate(text):
        mapping.append(index)
        if ord(ch) > 0xFFFF:
            # Astral characters occupy a surrogate pair
            mapping.append(index)
    return mapping


EmoteFilter = Callable[[MessageEmote], bool]


class MessageEmoteCollection:
    """Emote id -> metadata lookup.

    Writers swap in a new dict so concurrent readers always see a complete
    mapping. Emote ids found in a message tag but never registered resolve to
    a default Twitch emote, since the server only tags emotes the sender owns.
    """

    def __init__(
        self,
        emotes: list[MessageEmote] | None = None,
        emote_filter: EmoteFilter | None = None,
    ) -> None:
        self._emotes: dict[str, MessageEmote] = {e.id: e for e in emotes or []}
        self.emote_filter = emote_filter

    def add(self, emote: MessageEmote) -> None:
        self._emotes = {**self._emotes, emote.id: emote}

    def remove(self, emote_id: str) -> None:
        if emote_id in self._emotes:
            emotes = dict(self._emotes)
            del emotes[emote_id]
            self._emotes = emotes

    def get(self, emote_id: str) -> MessageEmote | None:
        return self._emotes.get(emote_id)

    def __contains__(self, emote_id: object) -> bool:
        return emote_id in self._emotes

    def __len__(self) -> int:
        return len(self._emotes)

    def resolve(self, emote_id: str, text: str, tier: UserTier) -> str | None:
        """Replacement for one span, or ``None`` when the span must be kept."""
        emote = self._emotes.get(emote_id) or MessageEmote(id=emote_id, text=text)
        if tier < emote.required_tier:
            return None
        if self.emote_filter is not None and not self.emote_filter(emote):
            return None
        return emote.replacement

    def replace_emotes(
        self, message: str, emote_set: EmoteSet, tier: UserTier = UserTier.VIEWER
    ) -> str:
        """Substitute every permitted span, working right to left."""
        if not emote_set:
            return message
        index = utf16_index_map(message)
        result = message
        for span in reversed(emote_set.spans):
            if span.end >= len(index):
                continue
            start = index[span.start]
            stop = index[span.end] + 1
            replacement = self.resolve(span.emote_id, message[start:stop], tier)
            if replacement is None:
                continue
            result = result[:start] + replacement + result[stop:]
        return result
