from __future__ import annotations

import math
from typing import Iterable, List, Sequence, Tuple, TypeVar

from ..normalize.dates import epoch_seconds
from ..schemas.models import CanonicalCandidate, Conversation, ConversationStats, PageInfo

T = TypeVar("T")

SERVER_QUERY_FIELDS = ("candidate_name", "email", "phone_number", "current_job_title", "current_employer")


def activity_time(conversation: Conversation) -> float:
    return max(epoch_seconds(conversation.last_contacted_date), epoch_seconds(conversation.created_at))


def sort_key(conversation: Conversation) -> Tuple[int, float]:
    # Conversations with messages first, then most recent activity first
    return (0 if conversation.has_messages else 1, -activity_time(conversation))


def sort_conversations(conversations: Iterable[Conversation]) -> List[Conversation]:
    return sorted(conversations, key=sort_key)


def sort_pairs(pairs: Iterable[Tuple[CanonicalCandidate, Conversation]]) -> List[Tuple[CanonicalCandidate, Conversation]]:
    return sorted(pairs, key=lambda pair: sort_key(pair[1]))


def matches_server_query(candidate: CanonicalCandidate, query: str) -> bool:
    q = (query or "").strip().lower()
    if not q:
        return True
    return any(q in str(getattr(candidate, field) or "").lower() for field in SERVER_QUERY_FIELDS)


def server_filter(
    pairs: Sequence[Tuple[CanonicalCandidate, Conversation]],
    query: str,
) -> List[Tuple[CanonicalCandidate, Conversation]]:
    """
    Narrow the aggregated set by a substring query over candidate contact/job fields.
    """
    return [pair for pair in pairs if matches_server_query(pair[0], query)]


def client_filter(conversations: Sequence[Conversation], text: str) -> List[Conversation]:
    """
    Narrow an already-fetched page by display name or candidate id.
    """
    q = (text or "").strip().lower()
    if not q:
        return list(conversations)
    return [c for c in conversations if q in c.display_name.lower() or q in c.candidate_id.lower()]


def clamp_page(page: int | None) -> int:
    try:
        p = int(page or 1)
    except (TypeError, ValueError):
        return 1
    return p if p >= 1 else 1


def clamp_limit(limit: int | None, default: int = 10, maximum: int = 100) -> int:
    try:
        value = int(limit) if limit is not None else default
    except (TypeError, ValueError):
        return default
    if value < 1:
        return default
    return min(value, maximum)


def paginate(records: Sequence[T], page: int, page_size: int) -> Tuple[List[T], PageInfo]:
    start = (page - 1) * page_size
    sliced = list(records[start : start + page_size])
    info = PageInfo(
        page=page,
        total_pages=math.ceil(len(records) / page_size) if page_size else 0,
        total_count=len(records),
        page_size=page_size,
    )
    return sliced, info


def compute_stats(conversations: Iterable[Conversation]) -> ConversationStats:
    total = 0
    with_messages = 0
    for conv in conversations:
        total += 1
        if conv.has_messages:
            with_messages += 1
    return ConversationStats(total=total, with_messages=with_messages, without_messages=total - with_messages)
