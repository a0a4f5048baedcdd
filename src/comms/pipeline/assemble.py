from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from ..messages.shapes import normalize_messages
from ..normalize.dates import format_display_time, utc_now
from ..schemas.models import CanonicalCandidate, Conversation, Message

NO_HISTORY = "No communication history"


def _contact(candidate: CanonicalCandidate) -> str:
    return candidate.phone_number or candidate.email


def assemble_conversation(candidate: CanonicalCandidate, messages: List[Message]) -> Conversation:
    """
    Summarize one candidate's normalized messages into a conversation.
    """
    last: Optional[Message] = messages[-1] if messages else None
    if last is not None:
        last_message = last.content
        last_time = format_display_time(last.timestamp)
    else:
        last_message = NO_HISTORY
        last_time = format_display_time(candidate.created_at_iso or candidate.created_at)
    return Conversation(
        candidate_id=candidate.id,
        display_name=candidate.candidate_name,
        contact=_contact(candidate),
        job_title=candidate.job.title or candidate.current_job_title,
        messages=list(messages),
        last_message=last_message,
        last_message_time=last_time,
        unread_count=sum(1 for m in messages if m.sender == "Candidate" and not m.read),
        has_messages=bool(messages),
        message_count=len(messages),
        last_contacted_date=candidate.last_contacted_at or candidate.last_contacted_date,
        created_at=candidate.created_at_iso or candidate.created_at,
    )


def append_message(conversation: Conversation, message: Message) -> Conversation:
    """
    New conversation with `message` appended and summary fields recomputed.
    """
    messages = [*conversation.messages, message]
    return conversation.model_copy(
        update={
            "messages": messages,
            "last_message": message.content,
            "last_message_time": format_display_time(message.timestamp),
            "unread_count": sum(1 for m in messages if m.sender == "Candidate" and not m.read),
            "has_messages": True,
            "message_count": len(messages),
        }
    )


def build_conversations(
    candidates: List[CanonicalCandidate],
    now: Optional[datetime] = None,
) -> List[Tuple[CanonicalCandidate, Conversation]]:
    now = now or utc_now()
    out: List[Tuple[CanonicalCandidate, Conversation]] = []
    for candidate in candidates:
        messages = normalize_messages(
            candidate.overall_messages,
            candidate_id=candidate.id,
            last_contacted=candidate.last_contacted_at or candidate.last_contacted_date,
            now=now,
        )
        out.append((candidate, assemble_conversation(candidate, messages)))
    return out
