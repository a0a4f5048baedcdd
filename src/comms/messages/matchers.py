from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..normalize.html_text import collapse_newlines

DEFAULT_SENDER = "Recruiter"
DEFAULT_CHANNEL = "linkedin"

# A colon further out than this is part of the message, not a sender/channel prefix
MAX_PREFIX_LEN = 80

_STRUCTURED_RE = re.compile(
    r"^\s*(recruiter|candidate)\s*-\s*(linkedin|mail|whatsapp)(\s*-\s*follow[\s_-]*up)?\s*:\s*(.*)$",
    re.IGNORECASE | re.DOTALL,
)
_FOLLOW_UP_RE = re.compile(r"follow[\s_-]*up", re.IGNORECASE)
_WA_RE = re.compile(r"\bwa\b", re.IGNORECASE)
_BR_RE = re.compile(r"<\s*br\s*/?\s*>", re.IGNORECASE)
_TRAILING_WS_RE = re.compile(r"[ \t]+$", re.MULTILINE)


@dataclass(frozen=True)
class PrefixMatch:
    content: str
    sender: Optional[str] = None
    channel: Optional[str] = None
    follow_up: bool = False


def clean_content(text: str) -> str:
    s = str(text or "")
    s = s.replace("\\r\\n", "\n").replace("\\n", "\n").replace("\\t", "\t")
    s = s.replace("\r\n", "\n")
    s = _BR_RE.sub("\n", s)
    s = html.unescape(s).replace("\u00a0", " ")
    s = _TRAILING_WS_RE.sub("", s)
    s = collapse_newlines(s)
    return s.strip()


def sender_from_text(text: str) -> Optional[str]:
    s = text.lower()
    if "candidate" in s:
        return "Candidate"
    if "recruiter" in s:
        return "Recruiter"
    return None


def channel_from_tokens(text: str) -> Optional[str]:
    s = text.lower()
    if "mail" in s:
        return "mail"
    if "whatsapp" in s or _WA_RE.search(s):
        return "whatsapp"
    if "linkedin" in s:
        return "linkedin"
    return None


def infer_channel(content: str) -> str:
    """
    Channel guess from message content when nothing explicit is known.
    """
    s = content.lower()
    if "mail" in s:
        return "mail"
    if "whatsapp" in s or _WA_RE.search(s):
        return "whatsapp"
    return DEFAULT_CHANNEL


def match_structured_prefix(text: str) -> Optional[PrefixMatch]:
    """
    "<Sender> - <Channel>[ - Follow Up] : <text>"
    """
    m = _STRUCTURED_RE.match(text)
    if not m:
        return None
    sender, channel, follow_up, content = m.groups()
    return PrefixMatch(
        content=content,
        sender=sender.capitalize(),
        channel=channel.lower(),
        follow_up=bool(follow_up),
    )


def match_prefix_tokens(text: str) -> Optional[PrefixMatch]:
    if ":" not in text:
        return None
    prefix, _, rest = text.partition(":")
    if len(prefix) > MAX_PREFIX_LEN:
        return None
    sender = sender_from_text(prefix)
    channel = channel_from_tokens(prefix)
    if sender is None and channel is None:
        return None
    return PrefixMatch(
        content=rest,
        sender=sender,
        channel=channel,
        follow_up=bool(_FOLLOW_UP_RE.search(prefix)),
    )


def match_plain(text: str) -> Optional[PrefixMatch]:
    return PrefixMatch(content=text)


PREFIX_MATCHERS: List[Callable[[str], Optional[PrefixMatch]]] = [
    match_structured_prefix,
    match_prefix_tokens,
    match_plain,
]


def parse_prefix(text: str) -> PrefixMatch:
    for matcher in PREFIX_MATCHERS:
        result = matcher(text)
        if result is not None:
            return result
    return PrefixMatch(content=text)
