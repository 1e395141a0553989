"""Parse free-text or JSON conversation and tool-usage cells."""
from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import Any

from csdash.date_utils import (
    TOOL_SPACING,
    TURN_SPACING,
    clamp_monotonic,
    now_utc,
    parse_datetime,
    synthetic_timestamp,
)
from csdash.models import ToolCall, Turn
from csdash.parsers.values import normalize_tool_name, parse_boolean

logger = logging.getLogger("csdash.parsers")

_ROLE_PREFIX_RE = re.compile(r"^\s*(user:|agent:|support:|customer:)", re.IGNORECASE)
_AGENT_MARKERS = ("agent:", "support:")
_AGENT_SPEAKERS = {"agent", "support", "assistant", "bot"}


def _speaker_for_line(line: str) -> str:
    lowered = line.lower()
    return "agent" if any(marker in lowered for marker in _AGENT_MARKERS) else "user"


def _normalize_speaker(raw: Any) -> str:
    token = str(raw or "").strip().lower()
    return "agent" if token in _AGENT_SPEAKERS else "user"


def _load_json_array(raw: str) -> list[Any] | None:
    try:
        parsed = json.loads(raw)
    except (ValueError, RecursionError):
        return None
    return parsed if isinstance(parsed, list) else None


def _turns_from_json(items: list[Any], now: datetime) -> list[Turn]:
    entries = [item for item in items if isinstance(item, dict)]
    count = len(entries)
    stamps = clamp_monotonic(
        [
            parse_datetime(entry.get("timestamp")) or synthetic_timestamp(idx, count, TURN_SPACING, now)
            for idx, entry in enumerate(entries)
        ]
    )
    turns: list[Turn] = []
    for entry, stamp in zip(entries, stamps):
        text = entry.get("text")
        if text is None:
            text = entry.get("content", "")
        turns.append(
            Turn(
                speaker=_normalize_speaker(entry.get("speaker") or entry.get("role")),
                text=str(text).strip(),
                timestamp=stamp,
            )
        )
    return turns


def _turns_from_lines(raw: str, now: datetime) -> list[Turn]:
    lines = [line for line in raw.split("\n") if line.strip()]
    count = len(lines)
    return [
        Turn(
            speaker=_speaker_for_line(line),
            text=_ROLE_PREFIX_RE.sub("", line, count=1).strip(),
            timestamp=synthetic_timestamp(idx, count, TURN_SPACING, now),
        )
        for idx, line in enumerate(lines)
    ]


def parse_turns(raw: str | None, *, now: datetime | None = None) -> list[Turn]:
    """Parse a conversation cell into ordered turns.

    Empty cells yield no turns. A JSON array is used when it parses; anything
    else is read line by line with `agent:`/`support:` lines attributed to
    the agent.
    """
    text = (raw or "").strip()
    if not text:
        return []
    anchor = now or now_utc()
    try:
        if text.startswith("["):
            items = _load_json_array(text)
            if items is not None:
                return _turns_from_json(items, anchor)
            logger.debug("Conversation cell is not valid JSON; reading it line by line")
        return _turns_from_lines(text, anchor)
    except Exception:  # noqa: BLE001
        logger.debug("Conversation cell could not be parsed; keeping it verbatim", exc_info=True)
        return [Turn(speaker="user", text=raw or "", timestamp=anchor)]


def _tool_payload(raw: Any) -> dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        token = raw.strip()
        if not token:
            return {}
        if token.startswith("{"):
            try:
                parsed = json.loads(token)
            except (ValueError, RecursionError):
                return {"value": token}
            if isinstance(parsed, dict):
                return parsed
        return {"value": token}
    return {"value": raw}


def _tool_success(raw: Any) -> bool:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return True
    return parse_boolean(raw)


def _tools_from_json(items: list[Any], now: datetime) -> list[ToolCall]:
    entries = [
        item for item in items
        if isinstance(item, dict) and str(item.get("name") or item.get("tool") or "").strip()
    ]
    count = len(entries)
    stamps = clamp_monotonic(
        [
            parse_datetime(entry.get("timestamp")) or synthetic_timestamp(idx, count, TOOL_SPACING, now)
            for idx, entry in enumerate(entries)
        ]
    )
    return [
        ToolCall(
            name=normalize_tool_name(str(entry.get("name") or entry.get("tool"))),
            payload=_tool_payload(entry.get("payload", entry.get("args"))),
            timestamp=stamp,
            success=_tool_success(entry.get("success")),
        )
        for entry, stamp in zip(entries, stamps)
    ]


def parse_tools(raw: str | None, *, now: datetime | None = None) -> list[ToolCall]:
    """Parse a "tools used" cell into tool calls; unparseable input yields none."""
    text = (raw or "").strip()
    if not text:
        return []
    anchor = now or now_utc()
    try:
        if text.startswith("["):
            items = _load_json_array(text)
            if items is not None:
                return _tools_from_json(items, anchor)
        names = [normalize_tool_name(part) for part in text.split(",") if part.strip()]
        count = len(names)
        return [
            ToolCall(
                name=name,
                payload={},
                timestamp=synthetic_timestamp(idx, count, TOOL_SPACING, anchor),
                success=True,
            )
            for idx, name in enumerate(names)
        ]
    except Exception:  # noqa: BLE001
        logger.debug("Tools cell could not be parsed", exc_info=True)
        return []
