"""IRC message parsing utilities."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..errors.internal import ParsingError

_TAG_ESCAPES = {":": ";", "s": " ", "\\": "\\", "r": "\r", "n": "\n"}

# Commands whose last parameter is free text, keyed by its position.
# Servers and relays sometimes send that text without the leading ":".
_TEXT_PARAM_COUNTS = {
    "PRIVMSG": 2,
    "WHISPER": 2,
    "NOTICE": 2,
    "USERNOTICE": 2,
    "HOSTTARGET": 2,
    "PING": 1,
}


@dataclass(frozen=True)
class IRCMessage:
    raw: str
    prefix: str | None
    command: str | None
    params: tuple[str, ...] = ()
    trailing: str | None = None
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def nick(self) -> str | None:
        """Nickname part of a ``nick!user@host`` prefix."""
        if not self.prefix:
            return None
        return self.prefix.split("!", 1)[0]

    @property
    def target(self) -> str | None:
        """First middle parameter (usually ``#room`` or a username)."""
        return self.params[0] if self.params else None

    @property
    def target_channel(self) -> str | None:
        target = self.target
        if target and target.startswith("#"):
            return target[1:].lower()
        return None


def parse_irc_message(raw_line: str) -> IRCMessage:
    """Split one raw line into tags, prefix, command and parameters.

    Never raises: malformed input yields a message whose missing parts are
    empty or ``None``.
    """
    tags: dict[str, str] = {}
    prefix: str | None = None
    trailing: str | None = None
    command: str | None = None
    params: tuple[str, ...] = ()

    original = raw_line
    line = raw_line.rstrip("\r\n")

    if line.startswith("@"):
        tags_part, _, line = line.partition(" ")
        tags = parse_tags(tags_part[1:])

    line = line.lstrip(" ")
    if line.startswith(":"):
        # Malformed lines may omit the space after the prefix
        prefix, _, line = line[1:].partition(" ")

    if line.startswith(":"):
        trailing = line[1:]
        line = ""
    elif " :" in line:
        line, trailing = line.split(" :", 1)

    parts = line.split()
    if parts:
        command = parts[0].upper()
        params = tuple(parts[1:])
        needed = _TEXT_PARAM_COUNTS.get(command)
        if trailing is None and needed is not None and len(params) >= needed:
            params, trailing = params[: needed - 1], " ".join(params[needed - 1 :])

    return IRCMessage(
        raw=original,
        prefix=prefix,
        command=command,
        params=params,
        trailing=trailing,
        tags=tags,
    )


def parse_tags(raw_tags: str) -> dict[str, str]:
    """Parse a ``key=value;key=value`` tag block (without the leading '@').

    An entry without '=' or with an empty value maps to an empty string.
    """
    tags: dict[str, str] = {}
    for tag in raw_tags.split(";"):
        if not tag:
            continue
        k, _, v = tag.partition("=")
        tags[k] = unescape_tag_value(v)
    return tags


def unescape_tag_value(value: str) -> str:
    if "\\" not in value:
        return value
    out: list[str] = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt is None:
            break
        out.append(_TAG_ESCAPES.get(nxt, nxt))
    return "".join(out)


def split_tokens(raw_line: str) -> list[str]:
    """Whitespace tokenizer used for positional fields."""
    return raw_line.split()


def token_at(tokens: list[str], index: int, default: str = "") -> str:
    """Return ``tokens[index]`` or ``default`` when the token is missing."""
    if 0 <= index < len(tokens):
        return tokens[index]
    return default


def int_or_zero(value: str | None) -> int:
    """Parse an integer field, degrading to zero instead of failing."""
    if value is None:
        return 0
    try:
        return int(value.strip().lstrip(":"))
    except ValueError:
        return 0


def parse_irc_message_strict(raw_line: str) -> IRCMessage:
    """Like :func:`parse_irc_message`, but reject a line with no command.

    Raises:
        ParsingError: The line is blank or carries only tags/prefix.
    """
    msg = parse_irc_message(raw_line)
    if not msg.command:
        raise ParsingError("IRC line has no command", data={"raw": raw_line})
    return msg
