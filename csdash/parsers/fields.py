"""Map loosely named spreadsheet columns onto the fixed Session schema."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Mapping

from csdash.date_utils import now_utc, parse_datetime
from csdash.errors import MalformedCell
from csdash.models import Session
from csdash.parsers.conversation import parse_tools, parse_turns
from csdash.parsers.values import coerce_text, parse_boolean

logger = logging.getLogger("csdash.parsers")

# Candidate headers per attribute, tried in order; first non-empty cell wins.
SESSION_ID_ALIASES = ("Session ID", "ID")
CUSTOMER_ALIASES = ("Customer ID", "Customer", "Name")
CREATED_ALIASES = ("Created", "Date", "Timestamp")
STATUS_ALIASES = ("Status", "State")
ESCALATION_ALIASES = ("Escalation Recommended", "Escalate")
TAGS_ALIASES = ("Tags", "Categories")
SENTIMENT_ALIASES = ("Sentiment", "Mood")
CONVERSATION_ALIASES = ("Conversation", "Messages", "Chat")
TOOLS_ALIASES = ("Tools Used", "Actions")

# HTML/JSON-derived records use lowercase API keys as a last resort.
_RECORD_EXTRA_ALIASES: dict[tuple[str, ...], tuple[str, ...]] = {
    SESSION_ID_ALIASES: ("id",),
    CUSTOMER_ALIASES: ("customer",),
}

_RESOLVED_MARKERS = ("resolved", "closed")
_ESCALATED_MARKERS = ("escalated", "escalate")
_POSITIVE_MARKERS = ("positive", "happy", "satisfied")
_FRUSTRATED_MARKERS = ("negative", "frustrated", "angry")


def map_status(value: Any) -> str:
    normalized = coerce_text(value).lower()
    if any(marker in normalized for marker in _RESOLVED_MARKERS):
        return "resolved"
    if any(marker in normalized for marker in _ESCALATED_MARKERS):
        return "escalated"
    return "open"


def map_sentiment(value: Any) -> str:
    normalized = coerce_text(value).lower()
    if any(marker in normalized for marker in _POSITIVE_MARKERS):
        return "positive"
    if any(marker in normalized for marker in _FRUSTRATED_MARKERS):
        return "frustrated"
    return "neutral"


def _split_tags(text: str) -> list[str]:
    return [tag.strip() for tag in text.split(",") if tag.strip()]


def parse_tags(value: Any) -> list[str]:
    """Parse a JSON array literal or comma-separated tag list."""
    if isinstance(value, list):
        return [str(tag).strip() for tag in value if str(tag).strip()]
    text = coerce_text(value)
    if not text:
        return []
    if text.startswith("["):
        try:
            parsed = json.loads(text)
            if not isinstance(parsed, list):
                raise MalformedCell("tags", text, "not a JSON array")
            return [str(tag).strip() for tag in parsed if str(tag).strip()]
        except (ValueError, RecursionError, MalformedCell) as exc:
            logger.debug("Tags cell fell back to comma splitting: %s", exc)
    return _split_tags(text)


def parse_created_at(value: Any, *, now: datetime | None = None) -> datetime:
    parsed = parse_datetime(value)
    if parsed is None:
        if coerce_text(value):
            logger.debug("%s", MalformedCell("createdAt", value, "unrecognized date"))
        return now or now_utc()
    return parsed


def pick_field(row: Mapping[str, Any], aliases: tuple[str, ...]) -> str:
    """Return the first non-empty cell among `aliases` (exact header match)."""
    for alias in aliases:
        if alias not in row:
            continue
        text = coerce_text(row[alias])
        if text:
            return text
    return ""


def _trimmed_keys(row: Mapping[str, Any]) -> dict[str, Any]:
    return {str(key).strip(): value for key, value in row.items()}


def normalize_row(
    row: Mapping[str, Any],
    row_index: int,
    *,
    now: datetime | None = None,
    html_record: bool = False,
) -> Session:
    """Build one Session from a header->cell mapping; never raises on bad cells.

    `row_index` is 1-based and only used to synthesize a missing session ID.
    """
    cells = _trimmed_keys(row)
    anchor = now or now_utc()

    def aliases(base: tuple[str, ...]) -> tuple[str, ...]:
        if html_record:
            return base + _RECORD_EXTRA_ALIASES.get(base, ())
        return base

    session_id = pick_field(cells, aliases(SESSION_ID_ALIASES)) or f"session_{row_index}"
    customer_id = pick_field(cells, aliases(CUSTOMER_ALIASES)) or "Unknown"
    return Session(
        sessionId=session_id,
        customerId=customer_id,
        createdAt=parse_created_at(pick_field(cells, CREATED_ALIASES), now=anchor),
        status=map_status(pick_field(cells, STATUS_ALIASES)),
        escalationRecommended=parse_boolean(pick_field(cells, ESCALATION_ALIASES)),
        tags=parse_tags(pick_field(cells, TAGS_ALIASES)),
        sentiment=map_sentiment(pick_field(cells, SENTIMENT_ALIASES)),
        turns=parse_turns(pick_field(cells, CONVERSATION_ALIASES), now=anchor),
        tools=parse_tools(pick_field(cells, TOOLS_ALIASES), now=anchor),
    )


def sessions_from_rows(
    rows: list[Mapping[str, Any]],
    *,
    now: datetime | None = None,
    html_record: bool = False,
) -> list[Session]:
    anchor = now or now_utc()
    return [
        normalize_row(row, idx, now=anchor, html_record=html_record)
        for idx, row in enumerate(rows, start=1)
    ]
