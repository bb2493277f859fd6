"""Prefix-command extraction shared by chat and whisper commands."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass


@dataclass(frozen=True)
class CommandInvocation:
    identifier: str
    command: str
    arguments_as_list: tuple[str, ...] = ()
    arguments_as_string: str = ""


def starts_with_identifier(body: str, identifiers: Collection[str]) -> bool:
    return bool(body) and body[0] in identifiers


def parse_command(body: str, identifier: str | None = None) -> CommandInvocation:
    """Split ``!give bob 5 gold`` into command ``give`` and its arguments.

    The first whitespace-delimited token minus its prefix character is the
    command; the remaining tokens form the argument list, and the same tokens
    rejoined with single spaces form the argument string.
    """
    identifier = identifier if identifier is not None else body[:1]
    tokens = body.split()
    if not tokens:
        return CommandInvocation(identifier=identifier, command="")
    head, *arguments = tokens
    command = head[len(identifier):] if head.startswith(identifier) else head
    return CommandInvocation(
        identifier=identifier,
        command=command,
        arguments_as_list=tuple(arguments),
        arguments_as_string=" ".join(arguments),
    )
