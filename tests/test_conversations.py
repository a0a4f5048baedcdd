from __future__ import annotations

from datetime import datetime, timezone

import pytest

from comms.normalize.fields import normalize_candidate
from comms.pipeline.assemble import NO_HISTORY, append_message, assemble_conversation, build_conversations
from comms.pipeline.sort_filter import (
    clamp_limit,
    clamp_page,
    client_filter,
    compute_stats,
    paginate,
    server_filter,
    sort_conversations,
)
from comms.schemas.models import Conversation, Message

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _cand(cid: str, **extra):
    return normalize_candidate({"candidate_id": cid, "candidate_name": f"Name {cid}", **extra}, now=NOW)


def _conv(cid: str, **extra) -> Conversation:
    cand = _cand(cid, **extra)
    return build_conversations([cand], now=NOW)[0][1]


def test_assemble_with_messages():
    conv = _conv(
        "a",
        phone_number="+1 555",
        overall_messages=["Recruiter - LinkedIn : hi", "Candidate - LinkedIn : hello back"],
        last_contacted_on="2024-03-05T14:30:00Z",
    )
    assert conv.has_messages is True
    assert conv.message_count == 2
    assert conv.last_message == "hello back"
    assert conv.last_message_time == "Mar 05, 2024 02:30 PM"
    assert conv.unread_count == 1
    assert conv.contact == "+1 555"


def test_assemble_without_messages():
    cand = _cand("b", candidate_email="b@example.com", created_at="2024-01-10T08:00:00Z")
    conv = assemble_conversation(cand, [])
    assert conv.has_messages is False
    assert conv.message_count == 0
    assert conv.last_message == NO_HISTORY
    assert conv.last_message_time == "Jan 10, 2024 08:00 AM"
    assert conv.unread_count == 0
    assert conv.contact == "b@example.com"


def test_conversation_rejects_inconsistent_counts():
    with pytest.raises(ValueError):
        Conversation(candidate_id="x", display_name="X", has_messages=True, message_count=0)


def test_append_message_recomputes_summary():
    conv = _conv("c")
    msg = Message(id="c-0", content="new", timestamp="2025-06-01T12:00:00Z", sender="Candidate", read=False)
    updated = append_message(conv, msg)
    assert updated.message_count == 1
    assert updated.has_messages is True
    assert updated.last_message == "new"
    assert updated.unread_count == 1
    assert conv.message_count == 0


def test_sort_messages_first_then_recent():
    older_with = _conv("a", overall_messages="hi", last_contacted_on="2024-01-01T00:00:00Z")
    newer_with = _conv("b", overall_messages="hi", last_contacted_on="2024-06-01T00:00:00Z")
    newest_without = _conv("c", created_at="2025-05-01T00:00:00Z")
    undated_without = _conv("d")
    ordered = sort_conversations([undated_without, newest_without, older_with, newer_with])
    assert [c.candidate_id for c in ordered] == ["b", "a", "c", "d"]


def test_paginate_slices_and_counts():
    items = list(range(25))
    page, info = paginate(items, 3, 10)
    assert page == [20, 21, 22, 23, 24]
    assert (info.page, info.total_pages, info.total_count, info.page_size) == (3, 3, 25, 10)

    empty, info = paginate([], 1, 10)
    assert empty == []
    assert info.total_pages == 0


def test_clamping():
    assert clamp_page(0) == 1
    assert clamp_page(None) == 1
    assert clamp_page(4) == 4
    assert clamp_limit(None) == 10
    assert clamp_limit(500) == 100
    assert clamp_limit(-3) == 10
    assert clamp_limit("25") == 25


def test_server_and_client_filters_compose():
    pairs = build_conversations(
        [
            _cand("a1", current_employer="Acme"),
            _cand("b2", candidate_email="someone@acme.io"),
            _cand("c3", current_job_title="Chef"),
        ],
        now=NOW,
    )
    narrowed = server_filter(pairs, "ACME")
    assert [c.id for c, _ in narrowed] == ["a1", "b2"]
    assert len(pairs) == 3

    convs = [conv for _, conv in narrowed]
    assert [c.candidate_id for c in client_filter(convs, "name b")] == ["b2"]
    assert [c.candidate_id for c in client_filter(convs, "A1")] == ["a1"]
    assert client_filter(convs, "") == convs


def test_stats_over_full_set():
    convs = [_conv("a", overall_messages="hi"), _conv("b"), _conv("c")]
    stats = compute_stats(convs)
    assert (stats.total, stats.with_messages, stats.without_messages) == (3, 1, 2)
