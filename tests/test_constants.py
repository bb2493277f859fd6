from __future__ import annotations

import logging

from twitch_chat import constants


def test_numeric_overrides(monkeypatch):
    monkeypatch.setenv("SOME_LIMIT", "42")
    monkeypatch.setenv("SOME_PERIOD", "2.5")
    assert constants._get_env_int("SOME_LIMIT", 1) == 42
    assert constants._get_env_float("SOME_PERIOD", 1.0) == 2.5


def test_malformed_override_keeps_default(monkeypatch):
    records: list[logging.LogRecord] = []
    handler = logging.Handler()
    handler.emit = records.append
    target = logging.getLogger(constants.__name__)
    target.addHandler(handler)
    try:
        monkeypatch.setenv("SOME_LIMIT", "many")
        assert constants._get_env_int("SOME_LIMIT", 7) == 7
    finally:
        target.removeHandler(handler)
    assert records[0].levelno == logging.WARNING
    assert "SOME_LIMIT" in records[0].getMessage()


def test_string_override_ignores_blank(monkeypatch):
    monkeypatch.setenv("SOME_HOST", "   ")
    assert constants._get_env_str("SOME_HOST", "irc.chat.twitch.tv") == "irc.chat.twitch.tv"
    monkeypatch.setenv("SOME_HOST", " example.org ")
    assert constants._get_env_str("SOME_HOST", "x") == "example.org"


def test_default_endpoints():
    assert constants.TWITCH_CAPABILITIES == (
        "twitch.tv/membership",
        "twitch.tv/commands",
        "twitch.tv/tags",
    )
    assert constants.WHISPER_RELAY_ROOM == "jtv"
