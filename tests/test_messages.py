from __future__ import annotations

from datetime import datetime, timezone

from comms.messages.matchers import (
    MAX_PREFIX_LEN,
    clean_content,
    infer_channel,
    match_plain,
    match_prefix_tokens,
    match_structured_prefix,
    parse_prefix,
)
from comms.messages.shapes import MessageShape, classify_shape, normalize_messages

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _norm(raw, last_contacted=None):
    return normalize_messages(raw, candidate_id="c1", last_contacted=last_contacted, now=NOW)


def test_structured_prefix():
    m = match_structured_prefix("Candidate - LinkedIn : hello")
    assert (m.sender, m.channel, m.content.strip(), m.follow_up) == ("Candidate", "linkedin", "hello", False)

    m = match_structured_prefix("Recruiter - Mail - Follow Up : Hi there")
    assert (m.sender, m.channel, m.content.strip(), m.follow_up) == ("Recruiter", "mail", "Hi there", True)

    assert match_structured_prefix("hello there") is None


def test_prefix_tokens():
    m = match_prefix_tokens("Candidate via WhatsApp: see you")
    assert (m.sender, m.channel, m.content.strip()) == ("Candidate", "whatsapp", "see you")

    m = match_prefix_tokens("Recruiter: ping")
    assert (m.sender, m.channel) == ("Recruiter", None)

    # No known token before the colon: not a prefix
    assert match_prefix_tokens("Meeting at 10: works for me") is None
    # Colon too far into the text
    assert match_prefix_tokens("candidate " + "x" * MAX_PREFIX_LEN + ": text") is None


def test_wa_is_a_whole_word():
    assert infer_channel("sent on wa yesterday") == "whatsapp"
    assert infer_channel("I was away") == "linkedin"
    assert infer_channel("check your email") == "mail"


def test_plain_and_chain_order():
    assert match_plain("anything").content == "anything"
    assert parse_prefix("Recruiter - WhatsApp : yo").channel == "whatsapp"
    assert parse_prefix("no prefix").sender is None


def test_clean_content():
    assert clean_content("line1\\nline2") == "line1\nline2"
    assert clean_content("a<br/>b &amp; c") == "a\nb & c"
    assert clean_content("x\n\n\n\ny   ") == "x\n\ny"


def test_classify_shape():
    assert classify_shape("hi") is MessageShape.TEXT
    assert classify_shape("  ") is MessageShape.EMPTY
    assert classify_shape(["a"]) is MessageShape.LIST
    assert classify_shape({"Recruiter": "a"}) is MessageShape.BY_SENDER
    assert classify_shape({"mail": "a"}) is MessageShape.BY_CHANNEL
    assert classify_shape({"content": "a"}) is MessageShape.OBJECT
    assert classify_shape({"foo": "a"}) is MessageShape.EMPTY
    assert classify_shape(42) is MessageShape.EMPTY


def test_single_structured_string():
    msgs = _norm("Candidate - LinkedIn : hello")
    assert len(msgs) == 1
    m = msgs[0]
    assert (m.sender, m.channel, m.content, m.follow_up) == ("Candidate", "linkedin", "hello", False)
    assert m.id == "c1-0"
    assert m.read is False


def test_follow_up_string():
    m = _norm("Recruiter - Mail - Follow Up : Hi there")[0]
    assert (m.sender, m.channel, m.content, m.follow_up) == ("Recruiter", "mail", "Hi there", True)
    assert m.follow_up_label == "mail follow up"


def test_nested_by_sender_then_channel():
    msgs = _norm({"Recruiter": {"mail": ["Hi"], "linkedin": "Hello"}, "Candidate": "Thanks"})
    assert [(m.sender, m.channel, m.content) for m in msgs] == [
        ("Recruiter", "mail", "Hi"),
        ("Recruiter", "linkedin", "Hello"),
        ("Candidate", "linkedin", "Thanks"),
    ]
    assert [m.id for m in msgs] == ["c1-0", "c1-1", "c1-2"]


def test_branch_context_beats_parsed_prefix():
    msgs = _norm({"Candidate": {"whatsapp": ["Recruiter - Mail : hi"]}})
    assert (msgs[0].sender, msgs[0].channel, msgs[0].content) == ("Candidate", "whatsapp", "hi")


def test_list_of_mixed_items():
    msgs = _norm(
        [
            "Recruiter - LinkedIn : first",
            {"sender": "candidate", "channel": "email", "text": "second", "timestamp": "2024-03-05T10:00:00Z"},
            {"message": "   "},
            None,
            "third, on whatsapp",
        ]
    )
    assert [m.content for m in msgs] == ["first", "second", "third, on whatsapp"]
    assert (msgs[1].sender, msgs[1].channel, msgs[1].timestamp) == ("Candidate", "mail", "2024-03-05T10:00:00Z")
    assert msgs[2].channel == "whatsapp"


def test_top_level_channel_map():
    msgs = _norm({"email": "Candidate: thanks for reaching out", "whatsapp": ["ok"]})
    assert [(m.sender, m.channel) for m in msgs] == [("Candidate", "mail"), ("Recruiter", "whatsapp")]


def test_timestamp_fallback_chain():
    explicit = _norm([{"content": "a", "ts": "2024-01-02T03:04:05Z"}], last_contacted="05/03/2024")[0]
    assert explicit.timestamp == "2024-01-02T03:04:05Z"

    contacted = _norm("hello", last_contacted="05/03/2024")[0]
    assert contacted.timestamp == "2024-03-05T00:00:00Z"

    unparseable = _norm([{"content": "a", "date": "soon"}], last_contacted="")[0]
    assert unparseable.timestamp == "2025-06-01T12:00:00Z"


def test_read_flag_overrides_default():
    msgs = _norm([{"sender": "Candidate", "content": "seen", "read": True}, "Candidate - Mail : unseen"])
    assert [m.read for m in msgs] == [True, False]


def test_never_throws_on_odd_input():
    assert _norm(None) == []
    assert _norm("") == []
    assert _norm({}) == []
    assert _norm(12345) == []
    assert _norm([[], {}, [None]]) == []
    deep = "bottom"
    for _ in range(50):
        deep = [deep]
    assert _norm(deep) == []


def test_channel_map_of_message_objects():
    msgs = _norm({"linkedin": {"content": "hi"}})
    assert [(m.sender, m.channel, m.content) for m in msgs] == [("Recruiter", "linkedin", "hi")]

    nested = _norm({"content": {"mail": ["Candidate: got it"]}})
    assert [(m.sender, m.channel, m.content) for m in nested] == [("Candidate", "mail", "got it")]


def test_entities_decoded_once():
    assert _norm("use &amp;lt;br&amp;gt; literally")[0].content == "use &lt;br&gt; literally"
    assert _norm("Candidate - Mail : Tom &amp; Jerry")[0].content == "Tom & Jerry"
