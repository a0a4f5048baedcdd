from __future__ import annotations

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, List, Optional

_EPOCH_RE = re.compile(r"^\d{10}(\d{3})?$")
_DAY_FIRST_RE = re.compile(
    r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4}|\d{2})(?:[ T](\d{1,2}):(\d{2})(?::(\d{2}))?)?$"
)
_YEAR_FIRST_RE = re.compile(
    r"^(\d{4})[/.-](\d{1,2})[/.-](\d{1,2})(?:[ T](\d{1,2}):(\d{2})(?::(\d{2}))?)?$"
)
_TEXT_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%d %B %Y", "%d %b %Y")


def _aware(dt: datetime) -> datetime:
    # Naive values are taken as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _expand_year(year: str) -> int:
    y = int(year)
    if len(year) == 2:
        return 2000 + y if y < 70 else 1900 + y
    return y


def _build(year: int, month: int, day: int, hh: Optional[str], mm: Optional[str], ss: Optional[str]) -> Optional[datetime]:
    try:
        return datetime(year, month, day, int(hh or 0), int(mm or 0), int(ss or 0), tzinfo=timezone.utc)
    except ValueError:
        return None


def _from_iso(s: str) -> Optional[datetime]:
    if s.isdigit():
        return None
    try:
        if s.endswith("Z") or s.endswith("z"):
            s = s[:-1] + "+00:00"
        return _aware(datetime.fromisoformat(s))
    except ValueError:
        return None


def _from_epoch(s: str) -> Optional[datetime]:
    if not _EPOCH_RE.match(s):
        return None
    seconds = int(s) / 1000 if len(s) == 13 else int(s)
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _from_day_month(s: str) -> Optional[datetime]:
    m = _DAY_FIRST_RE.match(s)
    if not m:
        return None
    a, b, year, hh, mm, ss = m.groups()
    first, second = int(a), int(b)
    y = _expand_year(year)
    # D/M/Y unless the second part cannot be a month, then M/D/Y
    if second <= 12:
        dt = _build(y, second, first, hh, mm, ss)
        if dt is not None:
            return dt
    return _build(y, first, second, hh, mm, ss)


def _from_year_first(s: str) -> Optional[datetime]:
    m = _YEAR_FIRST_RE.match(s)
    if not m:
        return None
    year, month, day, hh, mm, ss = m.groups()
    return _build(int(year), int(month), int(day), hh, mm, ss)


def _from_text(s: str) -> Optional[datetime]:
    for fmt in _TEXT_FORMATS:
        try:
            return _aware(datetime.strptime(s, fmt))
        except ValueError:
            continue
    try:
        return _aware(parsedate_to_datetime(s))
    except (TypeError, ValueError, IndexError):
        return None


DATE_PARSERS: List[Callable[[str], Optional[datetime]]] = [
    _from_iso,
    _from_epoch,
    _from_day_month,
    _from_year_first,
    _from_text,
]


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a free-form date; None when empty or unparseable. Result is timezone-aware.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _aware(value)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    s = str(value).strip()
    if not s:
        return None
    for parser in DATE_PARSERS:
        dt = parser(s)
        if dt is not None:
            return dt
    return None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_date_or_now(value: Any, now: Optional[datetime] = None) -> datetime:
    """
    Lossy variant: an unparseable value becomes `now` (the current time by default).
    """
    dt = parse_date(value)
    if dt is not None:
        return dt
    return now if now is not None else utc_now()


def to_iso(dt: datetime) -> str:
    return _aware(dt).astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def normalize_date_field(value: Any, now: Optional[datetime] = None) -> str:
    """
    ISO string for a record date field; empty input stays empty.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return ""
    return to_iso(parse_date_or_now(value, now))


def epoch_seconds(value: Any) -> float:
    # Missing or unparseable dates order as the epoch
    dt = parse_date(value)
    return dt.timestamp() if dt is not None else 0.0


def format_display_time(value: Any) -> str:
    dt = parse_date(value)
    if dt is None:
        return ""
    return dt.astimezone(timezone.utc).strftime("%b %d, %Y %I:%M %p")
