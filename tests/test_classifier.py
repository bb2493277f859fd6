from __future__ import annotations

import dataclasses

import pytest

from twitch_chat.irc.classifier import (
    CHAT_RULES,
    DispatchContext,
    LineClassifier,
    Rule,
)
from twitch_chat.irc.emotes import MessageEmote, MessageEmoteCollection
from twitch_chat.irc.events import (
    ChannelStateChanged,
    ChatCommandReceived,
    Connected,
    ExistingUsersDetected,
    HostingStarted,
    HostingStopped,
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
from twitch_chat.irc.models import ChannelState

CONTEXT = DispatchContext(
    channel="room",
    username="bot",
    chat_command_identifiers=frozenset("!"),
    whisper_command_identifiers=frozenset("!"),
)

ALICE = ":alice!alice@alice.tmi.twitch.tv"


def classify(raw: str, **overrides):
    context = dataclasses.replace(CONTEXT, **overrides)
    return LineClassifier().classify(raw, context)


def kinds(raw: str, **overrides) -> list[type]:
    return [type(e) for e in classify(raw, **overrides).events]


@pytest.mark.parametrize(
    "raw,expected",
    [
        (":tmi.twitch.tv 001 bot :Welcome, GLHF!", [Connected]),
        (
            "@login=alice;msg-id=sub;msg-param-sub-plan=1000 "
            ":tmi.twitch.tv USERNOTICE #room",
            [NewSubscriberReceived],
        ),
        (
            ":twitchnotify!twitchnotify@twitchnotify.tmi.twitch.tv PRIVMSG #room "
            ":Alice just subscribed!",
            [NewSubscriberReceived],
        ),
        (f"{ALICE} PRIVMSG #room :!give bob 5 gold", [ChatCommandReceived, MessageReceived]),
        (f"{ALICE} PRIVMSG #room :hello everyone", [MessageReceived]),
        (f"{ALICE} JOIN #room", [ViewerJoined]),
        (f"{ALICE} PART #room", [ViewerLeft]),
        (":jtv MODE #room +o alice", [ModeratorJoined]),
        (":jtv MODE #room -o alice", [ModeratorLeft]),
        (":tmi.twitch.tv NOTICE * :Login authentication failed", [IncorrectLogin]),
        (":tmi.twitch.tv NOTICE * :Improperly formatted auth", [IncorrectLogin]),
        (
            "@msg-id=host_target_went_offline :tmi.twitch.tv NOTICE #room "
            ":other has gone offline. Exiting host mode.",
            [HostLeft],
        ),
        (
            "@emote-only=0;followers-only=-1;r9k=0;room-id=1;slow=0;subs-only=0 "
            ":tmi.twitch.tv ROOMSTATE #room",
            [ChannelStateChanged],
        ),
        (
            "@badges=moderator/1;display-name=Bot;emote-sets=0;mod=1 "
            ":tmi.twitch.tv USERSTATE #room",
            [UserStateChanged],
        ),
        (
            "@login=alice;msg-id=resub;msg-param-cumulative-months=6 "
            ":tmi.twitch.tv USERNOTICE #room :six months!",
            [ReSubscriberReceived],
        ),
        ("PING :tmi.twitch.tv", [KeepaliveRequested]),
        (":tmi.twitch.tv HOSTTARGET #room :- 0", [HostingStopped]),
        (":tmi.twitch.tv HOSTTARGET #room :other 10", [HostingStarted]),
        (":bot.tmi.twitch.tv 353 bot = #room :alice bob", [ExistingUsersDetected]),
        (f"{ALICE} WHISPER bot :psst", [WhisperReceived]),
        (f"{ALICE} WHISPER bot :!roll 2 d6", [WhisperReceived, WhisperCommandReceived]),
    ],
)
def test_each_category_emits_its_events(raw, expected):
    assert kinds(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        ":tmi.twitch.tv CAP * ACK :twitch.tv/tags",
        f"{ALICE} PRIVMSG #other :wrong room",
        f"{ALICE} JOIN #other",
        ":jtv MODE #room +v alice",
        ":tmi.twitch.tv NOTICE #room :This room is in slow mode.",
        ":someone.tmi.twitch.tv 353 someone = #room :alice",
        ":bot.tmi.twitch.tv 353 bot = #other :alice",
        f"{ALICE} WHISPER someone_else :not for us",
        "",
        "garbage without structure",
    ],
)
def test_unmatched_lines_are_unclassified(raw):
    result = classify(raw)
    assert result.events == ()
    assert result.is_unclassified


def test_command_event_precedes_message_event():
    result = classify(f"{ALICE} PRIVMSG #room :!give bob 5 gold")
    command, message = result.events
    assert result.matched == ("chat_command", "chat_message")
    assert command.command.command == "give"
    assert command.command.arguments_as_list == ("bob", "5", "gold")
    assert command.command.arguments_as_string == "bob 5 gold"
    assert command.channel == "room"
    # Both events carry the same message object
    assert command.chat_message is message.chat_message


def test_single_word_command_without_colon():
    result = classify(f"{ALICE} PRIVMSG #room !hello")
    command, message = result.events
    assert result.matched == ("chat_command", "chat_message")
    assert command.command.command == "hello"
    assert command.command.arguments_as_list == ()
    assert message.chat_message.message == "!hello"


def test_whisper_text_without_colon():
    (received,) = classify(f"{ALICE} WHISPER bot hi").events
    assert isinstance(received, WhisperReceived)
    assert received.whisper_message.message == "hi"


def test_unregistered_prefix_is_not_a_command():
    assert kinds(f"{ALICE} PRIVMSG #room :?help") == [MessageReceived]
    assert kinds(
        f"{ALICE} PRIVMSG #room :?help", chat_command_identifiers=frozenset("!?")
    ) == [ChatCommandReceived, MessageReceived]


def test_action_body_can_carry_a_command():
    result = classify(f"{ALICE} PRIVMSG #room :\x01ACTION !dance\x01")
    command, message = result.events
    assert command.command.command == "dance"
    assert message.chat_message.is_me is True


def test_whisper_command_order_and_arguments():
    result = classify(f"@display-name=Alice {ALICE} WHISPER bot :!roll 2 d6")
    received, command = result.events
    assert result.matched == ("whisper", "whisper_command")
    assert received.whisper_message.message == "!roll 2 d6"
    assert command.command.command == "roll"
    assert command.command.arguments_as_list == ("2", "d6")
    assert command.whisper_message is received.whisper_message


def test_whisper_without_registered_prefix():
    assert kinds(
        f"{ALICE} WHISPER bot :!roll", whisper_command_identifiers=frozenset()
    ) == [WhisperReceived]


def test_legacy_subscription_is_not_also_chat():
    result = classify(
        ":twitchnotify!twitchnotify@twitchnotify.tmi.twitch.tv PRIVMSG #room "
        ":Alice just subscribed!"
    )
    assert result.matched == ("new_subscriber",)


def test_connected_event_carries_session_identity():
    (event,) = classify(":tmi.twitch.tv 001 bot :Welcome").events
    assert event == Connected(username="bot", channel="room")


def test_login_failure_carries_text_and_username():
    (event,) = classify(":tmi.twitch.tv NOTICE * :Login authentication failed").events
    assert event.error.server_message == "Login authentication failed"
    assert event.error.username == "bot"


def test_membership_and_moderator_usernames():
    (joined,) = classify(f"{ALICE} JOIN #room").events
    assert joined == ViewerJoined(username="alice", channel="room")
    (modded,) = classify(":jtv MODE #room +o Alice").events
    assert modded == ModeratorJoined(username="alice", channel="room")


def test_room_state_overlays_context_state():
    prior = ChannelState(channel="room", subscriber_only=True)
    (event,) = classify(
        "@slow=5 :tmi.twitch.tv ROOMSTATE #room", channel_state=prior
    ).events
    assert event.channel_state.subscriber_only is True
    assert event.channel_state.slow_mode == 5
    assert event.channel == "room"


def test_keepalive_reply_and_opt_out():
    (event,) = classify("PING :tmi.twitch.tv").events
    assert event.reply == "PONG :tmi.twitch.tv"

    silent = classify("PING :tmi.twitch.tv", auto_pong=False)
    assert silent.events == ()
    assert silent.matched == ("keepalive",)
    assert not silent.is_unclassified


def test_hosting_with_non_numeric_viewers_defaults_to_zero():
    (stopped,) = classify(":tmi.twitch.tv HOSTTARGET #room :- lots").events
    assert stopped == HostingStopped(hosting_channel="room", viewers=0)
    (started,) = classify(":tmi.twitch.tv HOSTTARGET #room :other many").events
    assert started == HostingStarted(
        hosting_channel="room", target_channel="other", viewers=0
    )


def test_existing_users_list():
    (event,) = classify(":bot.tmi.twitch.tv 353 bot = #room :alice bob carol").events
    assert event == ExistingUsersDetected(users=("alice", "bob", "carol"), channel="room")


def test_emotes_replaced_when_enabled():
    emotes = MessageEmoteCollection([MessageEmote("25", replacement_string="<K>")])
    raw = f"@emotes=25:0-4 {ALICE} PRIVMSG #room :Kappa hi"
    (plain,) = classify(raw, emotes=emotes).events
    assert plain.chat_message.message == "Kappa hi"
    (replaced,) = classify(raw, emotes=emotes, replace_emotes=True).events
    assert replaced.chat_message.message == "<K> hi"


def test_command_uses_unreplaced_body():
    emotes = MessageEmoteCollection([MessageEmote("25", replacement_string="<K>")])
    raw = f"@emotes=25:7-11 {ALICE} PRIVMSG #room :!emote Kappa"
    command, message = classify(raw, emotes=emotes, replace_emotes=True).events
    assert command.command.arguments_as_list == ("Kappa",)
    assert message.chat_message.message == "!emote <K>"


def test_failing_rule_is_logged_and_skipped():
    def explode(_view):
        raise RuntimeError("rule bug")

    classifier = LineClassifier(chat_rules=(Rule("broken", explode, explode), *CHAT_RULES))
    result = classifier.classify(f"{ALICE} PRIVMSG #room :hi", CONTEXT)
    assert result.matched == ("chat_message",)
    assert [type(e) for e in result.events] == [MessageReceived]
