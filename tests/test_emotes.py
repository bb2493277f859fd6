from __future__ import annotations

from twitch_chat.irc.emotes import (
    TWITCH_EMOTE_URL,
    EmoteSet,
    EmoteSpan,
    MessageEmote,
    MessageEmoteCollection,
    UserTier,
    utf16_index_map,
)


def _collection(**kwargs) -> MessageEmoteCollection:
    return MessageEmoteCollection(
        [
            MessageEmote("25", "Kappa", replacement_string="<K>"),
            MessageEmote("1902", "Keepo", replacement_string="<P>"),
        ],
        **kwargs,
    )


def test_parse_sorts_spans_by_start():
    emote_set = EmoteSet.parse("25:0-4,12-16/1902:6-10")
    assert [(s.start, s.end, s.emote_id) for s in emote_set] == [
        (0, 4, "25"),
        (6, 10, "1902"),
        (12, 16, "25"),
    ]
    assert emote_set.emote_ids == ("25", "1902")
    assert emote_set.to_tag() == "25:0-4,12-16/1902:6-10"


def test_parse_skips_malformed_and_overlapping_entries():
    emote_set = EmoteSet.parse("x:a-b/25:0-4/:1-2/99:5-3/7:3-6")
    assert emote_set.spans == (EmoteSpan(0, 4, "25"),)
    assert len(EmoteSet.parse("")) == 0
    assert len(EmoteSet.parse(None)) == 0


def test_replace_emotes_right_to_left():
    emote_set = EmoteSet.parse("25:0-4,12-16/1902:6-10")
    result = _collection().replace_emotes("Kappa Keepo Kappa", emote_set)
    assert result == "<K> <P> <K>"


def test_replace_matches_left_to_right_with_remapping():
    message = "Kappa Keepo Kappa"
    emote_set = EmoteSet.parse("25:0-4,12-16/1902:6-10")
    collection = _collection()

    # Forward pass, shifting later offsets by the accumulated length change
    forward, shift = message, 0
    for span in emote_set:
        replacement = collection.resolve(
            span.emote_id, message[span.start : span.end + 1], UserTier.VIEWER
        )
        start, stop = span.start + shift, span.end + 1 + shift
        forward = forward[:start] + replacement + forward[stop:]
        shift += len(replacement) - (span.end + 1 - span.start)

    assert collection.replace_emotes(message, emote_set) == forward


def test_offsets_are_utf16_code_units():
    message = "\U0001f600 Kappa"
    assert utf16_index_map(message) == [0, 0, 1, 2, 3, 4, 5, 6]
    emote_set = EmoteSet.parse("25:3-7")
    assert _collection().replace_emotes(message, emote_set) == "\U0001f600 <K>"


def test_spans_survive_replacement_and_tag_reparse():
    message = "\U0001f600 Kappa Keepo Kappa"
    tag = "25:3-7,15-19/1902:9-13"
    emote_set = EmoteSet.parse(tag)

    assert _collection().replace_emotes(message, emote_set) == "\U0001f600 <K> <P> <K>"

    reparsed = EmoteSet.parse(emote_set.to_tag())
    assert reparsed.spans == emote_set.spans
    index = utf16_index_map(message)
    names = {"25": "Kappa", "1902": "Keepo"}
    for span in reparsed:
        text = message[index[span.start] : index[span.end] + 1]
        assert text == names[span.emote_id]


def test_span_outside_message_is_ignored():
    emote_set = EmoteSet.parse("25:0-50")
    assert _collection().replace_emotes("short", emote_set) == "short"


def test_unregistered_emote_uses_default_url():
    collection = MessageEmoteCollection()
    result = collection.replace_emotes("HeyGuys", EmoteSet.parse("30259:0-6"))
    assert result == TWITCH_EMOTE_URL.format(id="30259")


def test_spans_above_callers_tier_are_skipped():
    collection = MessageEmoteCollection(
        [
            MessageEmote(
                "25",
                "Kappa",
                replacement_string="<K>",
                required_tier=UserTier.SUBSCRIBER,
            )
        ]
    )
    emote_set = EmoteSet.parse("25:0-4")
    assert collection.replace_emotes("Kappa", emote_set, UserTier.VIEWER) == "Kappa"
    assert collection.replace_emotes("Kappa", emote_set, UserTier.SUBSCRIBER) == "<K>"
    assert collection.replace_emotes("Kappa", emote_set, UserTier.BROADCASTER) == "<K>"


def test_filter_rejects_emotes():
    collection = _collection(emote_filter=lambda emote: emote.id != "25")
    emote_set = EmoteSet.parse("25:0-4/1902:6-10")
    assert collection.replace_emotes("Kappa Keepo", emote_set) == "Kappa <P>"


def test_add_and_remove_swap_the_mapping():
    collection = MessageEmoteCollection()
    collection.add(MessageEmote("1", "A"))
    assert "1" in collection
    assert len(collection) == 1
    assert collection.get("1").text == "A"
    collection.remove("1")
    collection.remove("missing")
    assert "1" not in collection
    assert collection.get("1") is None
