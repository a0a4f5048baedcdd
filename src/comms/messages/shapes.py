from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from rich.console import Console

from ..normalize.dates import parse_date, to_iso, utc_now
from ..schemas.models import Message
from .matchers import DEFAULT_SENDER, clean_content, infer_channel, parse_prefix

console = Console()

SENDER_KEYS = {"recruiter": "Recruiter", "candidate": "Candidate"}
CHANNEL_KEYS = {"mail": "mail", "email": "mail", "linkedin": "linkedin", "whatsapp": "whatsapp"}
CONTENT_KEYS = ("content", "message", "text", "body", "value")
TIMESTAMP_KEYS = ("timestamp", "ts", "date", "time", "created_at")
MAX_DEPTH = 16


class MessageShape(str, Enum):
    TEXT = "text"
    LIST = "list"
    BY_SENDER = "by_sender"
    BY_CHANNEL = "by_channel"
    OBJECT = "object"
    EMPTY = "empty"


@dataclass(frozen=True)
class BranchContext:
    sender: Optional[str] = None
    channel: Optional[str] = None


@dataclass
class DraftMessage:
    content: str
    sender: str
    channel: str
    follow_up: bool = False
    timestamp: Any = None
    read: Optional[bool] = None


def _dict_keys_lower(value: Dict[str, Any]) -> List[str]:
    return [str(k).strip().lower() for k in value.keys()]


def classify_shape(value: Any) -> MessageShape:
    """
    Decide once which of the known encodings a raw messages value uses.
    """
    if isinstance(value, str):
        return MessageShape.TEXT if value.strip() else MessageShape.EMPTY
    if isinstance(value, (list, tuple)):
        return MessageShape.LIST if value else MessageShape.EMPTY
    if isinstance(value, dict) and value:
        keys = _dict_keys_lower(value)
        if any(k in SENDER_KEYS for k in keys):
            return MessageShape.BY_SENDER
        if any(k in CHANNEL_KEYS for k in keys):
            return MessageShape.BY_CHANNEL
        if any(k in CONTENT_KEYS for k in keys):
            return MessageShape.OBJECT
    return MessageShape.EMPTY


def _from_text(text: str, ctx: BranchContext, overrides: Optional[Dict[str, Any]] = None) -> List[DraftMessage]:
    overrides = overrides or {}
    # Entities are decoded once, on the extracted content
    match = parse_prefix(str(text).strip())
    content = clean_content(match.content)
    if not content:
        return []
    sender = overrides.get("sender") or ctx.sender or match.sender or DEFAULT_SENDER
    channel = overrides.get("channel") or ctx.channel or match.channel or infer_channel(content)
    return [
        DraftMessage(
            content=content,
            sender=sender,
            channel=channel,
            follow_up=bool(overrides.get("follow_up")) or match.follow_up,
            timestamp=overrides.get("timestamp"),
            read=overrides.get("read"),
        )
    ]


def _first_of(obj: Dict[str, Any], keys) -> Any:
    for key in keys:
        value = obj.get(key)
        if value is not None and value != "":
            return value
    return None


def _object_overrides(obj: Dict[str, Any]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    sender = obj.get("sender")
    if isinstance(sender, str) and sender.strip().lower() in SENDER_KEYS:
        overrides["sender"] = SENDER_KEYS[sender.strip().lower()]
    channel = obj.get("channel")
    if isinstance(channel, str) and channel.strip().lower() in CHANNEL_KEYS:
        overrides["channel"] = CHANNEL_KEYS[channel.strip().lower()]
    overrides["timestamp"] = _first_of(obj, TIMESTAMP_KEYS)
    read = obj.get("read", obj.get("isRead"))
    if isinstance(read, bool):
        overrides["read"] = read
    follow_up = obj.get("followUp", obj.get("follow_up"))
    if isinstance(follow_up, bool):
        overrides["follow_up"] = follow_up
    return overrides


def _from_object(obj: Dict[str, Any], ctx: BranchContext, depth: int) -> List[DraftMessage]:
    content = _first_of(obj, CONTENT_KEYS)
    overrides = _object_overrides(obj)
    if isinstance(content, str):
        return _from_text(content, ctx, overrides)
    if content is None:
        return []
    # Nested value under a content key: recurse with the object's sender/channel as context
    nested_ctx = BranchContext(
        sender=overrides.get("sender") or ctx.sender,
        channel=overrides.get("channel") or ctx.channel,
    )
    drafts = _dispatch(content, nested_ctx, depth + 1)
    if overrides.get("timestamp") is not None:
        drafts = [d if d.timestamp is not None else replace(d, timestamp=overrides["timestamp"]) for d in drafts]
    return drafts


def _from_list(items: Any, ctx: BranchContext, depth: int) -> List[DraftMessage]:
    out: List[DraftMessage] = []
    for item in items:
        out.extend(_dispatch(item, ctx, depth + 1))
    return out


def _from_by_sender(obj: Dict[str, Any], ctx: BranchContext, depth: int) -> List[DraftMessage]:
    out: List[DraftMessage] = []
    for key, branch in obj.items():
        sender = SENDER_KEYS.get(str(key).strip().lower())
        if sender is None:
            continue
        out.extend(_dispatch(branch, replace(ctx, sender=sender), depth + 1))
    return out


def _from_by_channel(obj: Dict[str, Any], ctx: BranchContext, depth: int) -> List[DraftMessage]:
    out: List[DraftMessage] = []
    for key, branch in obj.items():
        channel = CHANNEL_KEYS.get(str(key).strip().lower())
        if channel is None:
            continue
        out.extend(_dispatch(branch, replace(ctx, channel=channel), depth + 1))
    return out


_HANDLERS: Dict[MessageShape, Callable[[Any, BranchContext, int], List[DraftMessage]]] = {
    MessageShape.TEXT: lambda v, ctx, depth: _from_text(v, ctx),
    MessageShape.LIST: _from_list,
    MessageShape.BY_SENDER: _from_by_sender,
    MessageShape.BY_CHANNEL: _from_by_channel,
    MessageShape.OBJECT: _from_object,
    MessageShape.EMPTY: lambda v, ctx, depth: [],
}


def _dispatch(value: Any, ctx: BranchContext, depth: int) -> List[DraftMessage]:
    if depth > MAX_DEPTH:
        return []
    return _HANDLERS[classify_shape(value)](value, ctx, depth)


def resolve_timestamp(explicit: Any, last_contacted: Any, now: datetime) -> str:
    """
    explicit per-message timestamp -> candidate last-contacted date -> now
    """
    for value in (explicit, last_contacted):
        dt = parse_date(value)
        if dt is not None:
            return to_iso(dt)
    return to_iso(now)


def normalize_messages(
    raw: Any,
    candidate_id: str = "",
    last_contacted: Any = None,
    now: Optional[datetime] = None,
) -> List[Message]:
    """
    Convert any known raw messages encoding into an ordered list of messages.

    Never raises: an unexpected value yields an empty list.
    """
    if classify_shape(raw) is MessageShape.EMPTY:
        return []
    now = now or utc_now()
    try:
        drafts = _dispatch(raw, BranchContext(), 0)
    except Exception as e:  # malformed upstream data must not break the batch
        console.print(f"[yellow]Could not normalize messages for {candidate_id or 'unknown'}:[/yellow] {e}")
        return []
    messages: List[Message] = []
    for position, draft in enumerate(drafts):
        read = draft.read if draft.read is not None else draft.sender != "Candidate"
        messages.append(
            Message(
                id=f"{candidate_id}-{position}",
                content=draft.content,
                timestamp=resolve_timestamp(draft.timestamp, last_contacted, now),
                sender=draft.sender,
                channel=draft.channel,
                follow_up=draft.follow_up,
                read=read,
            )
        )
    return messages
