"""Shared date parsing and synthetic timestamp helpers."""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Any

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_EPOCH_RE = re.compile(r"^\d{10}(?:\d{3})?$")
_FALLBACK_FORMATS = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M%p",
    "%m/%d/%Y %I:%M %p",
)

TURN_SPACING = timedelta(minutes=1)
TOOL_SPACING = timedelta(seconds=30)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_datetime_utc(value: datetime) -> str:
    dt = as_utc(value).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")


def _parse_datetime_token(token: str) -> datetime | None:
    cleaned = token.strip()
    if not cleaned:
        return None
    if _EPOCH_RE.match(cleaned):
        seconds = int(cleaned) / (1000 if len(cleaned) == 13 else 1)
        return datetime.fromtimestamp(seconds, timezone.utc)
    if _DATE_ONLY_RE.match(cleaned):
        try:
            return datetime.combine(date.fromisoformat(cleaned), datetime.min.time(), timezone.utc)
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(cleaned.upper() if "%p" in fmt else cleaned, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def parse_datetime(value: Any) -> datetime | None:
    """Convert mixed date inputs into an aware UTC datetime, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time(), timezone.utc)
    if isinstance(value, (int, float)):
        try:
            seconds = value / 1000 if value > 1e11 else value
            return datetime.fromtimestamp(seconds, timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        parsed = _parse_datetime_token(value)
        return as_utc(parsed) if parsed else None
    return None


def synthetic_timestamp(index: int, count: int, step: timedelta, now: datetime) -> datetime:
    """Timestamp for item `index` of `count`, stepping backward from `now`."""
    return now - (count - index) * step


def clamp_monotonic(values: list[datetime]) -> list[datetime]:
    """Never let a timestamp go backwards relative to its predecessor."""
    result: list[datetime] = []
    for value in values:
        if result and value < result[-1]:
            value = result[-1]
        result.append(value)
    return result
