"""Scalar coercions shared by the field normalizer and sub-parsers."""
from __future__ import annotations

import json
from typing import Any

TRUTHY_TOKENS = frozenset({"true", "1", "yes", "on"})


def parse_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY_TOKENS


def coerce_text(value: Any) -> str:
    """Render a cell value from CSV, HTML or JSON sources as trimmed text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        if all(isinstance(item, (str, int, float)) and not isinstance(item, bool) for item in value):
            return ", ".join(str(item).strip() for item in value if str(item).strip())
        return json.dumps(value, default=str)
    if isinstance(value, dict):
        # Linked-record / collaborator cells carry a display name.
        for key in ("name", "text", "value", "email"):
            inner = value.get(key)
            if isinstance(inner, str) and inner.strip():
                return inner.strip()
        return json.dumps(value, default=str)
    return str(value).strip()


def normalize_tool_name(raw: str) -> str:
    return "_".join(raw.strip().lower().split())
