"""Pull tabular records out of a shared-view HTML page.

Each helper here is pure and swallows its own parse failures, returning an
empty/None result so the caller can move on to the next approach. The
network follow-ups (CSV re-fetch, API replay) live in
`csdash.services.acquisition`.
"""
from __future__ import annotations

import html as html_lib
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterator

logger = logging.getLogger("csdash.parsers.html")

MAX_RECORDS = 10

_INIT_DATA_RE = re.compile(r"window\.initData\s*=\s*")
_STATE_BLOB_RE = re.compile(r"window\.__[A-Z_]+__\s*=\s*")
_API_URL_RE = re.compile(r'["\']?urlWithParams["\']?\s*:\s*"((?:[^"\\]|\\.)+)"')
_APP_ID_RE = re.compile(r"\b(app[A-Za-z0-9]{14})\b")
_TABLE_ID_RE = re.compile(r"\b(tbl[A-Za-z0-9]{14})\b")
_SHARE_ID_RE = re.compile(r"\b(shr[A-Za-z0-9]{14})\b")
_CSV_ALLOWED_RE = re.compile(r'"downloadCsv"')
_FLAT_OBJECT_RE = re.compile(r'\{[^{}]*"[^"]*":\s*"[^"]*"[^{}]*\}')
_TABLE_RE = re.compile(r"<table[^>]*>(.*?)</table>", re.IGNORECASE | re.DOTALL)
_ROW_RE = re.compile(r"<tr[^>]*>(.*?)</tr>", re.IGNORECASE | re.DOTALL)
_HEADER_CELL_RE = re.compile(r"<th[^>]*>(.*?)</th>", re.IGNORECASE | re.DOTALL)
_DATA_CELL_RE = re.compile(r"<td[^>]*>(.*?)</td>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")

_ID_KEYS = {
    "app_id": ("applicationId", "appId"),
    "table_id": ("tableId",),
    "share_id": ("shareId", "sharedViewId"),
}


@dataclass(frozen=True)
class ShareIdentifiers:
    app_id: str | None = None
    table_id: str | None = None
    share_id: str | None = None
    csv_download_allowed: bool = False


def _decode_json_at(text: str, start: int) -> Any:
    """Decode the JSON value that begins at `start`, ignoring trailing text."""
    decoder = json.JSONDecoder()
    value, _ = decoder.raw_decode(text, start)
    return value


def _decode_assignment(html: str, pattern: re.Pattern[str]) -> Iterator[Any]:
    for match in pattern.finditer(html):
        try:
            yield _decode_json_at(html, match.end())
        except (ValueError, RecursionError):
            logger.debug("Script assignment at %s is not valid JSON", match.start())


def find_init_data(html: str) -> dict[str, Any] | None:
    """Return the parsed `window.initData = {...};` blob, if any."""
    for value in _decode_assignment(html or "", _INIT_DATA_RE):
        if isinstance(value, dict):
            return value
    return None


def _walk(node: Any) -> Iterator[tuple[str, Any]]:
    stack: list[Any] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            for key, value in current.items():
                yield str(key), value
                if isinstance(value, (dict, list)):
                    stack.append(value)
        elif isinstance(current, list):
            stack.extend(item for item in current if isinstance(item, (dict, list)))


def _id_from_structure(data: Any, keys: tuple[str, ...], pattern: re.Pattern[str]) -> str | None:
    for key, value in _walk(data):
        if key in keys and isinstance(value, str) and pattern.fullmatch(value):
            return value
    for _, value in _walk(data):
        if isinstance(value, str) and pattern.fullmatch(value):
            return value
    return None


def find_identifiers(html: str, init_data: dict[str, Any] | None = None) -> ShareIdentifiers:
    """Locate application/table/share IDs, preferring the init-data structure."""
    html = html or ""
    found: dict[str, str | None] = {}
    patterns = {"app_id": _APP_ID_RE, "table_id": _TABLE_ID_RE, "share_id": _SHARE_ID_RE}
    for name, pattern in patterns.items():
        value = _id_from_structure(init_data, _ID_KEYS[name], pattern) if init_data else None
        if not value:
            match = pattern.search(html)
            value = match.group(1) if match else None
        found[name] = value
    return ShareIdentifiers(
        app_id=found["app_id"],
        table_id=found["table_id"],
        share_id=found["share_id"],
        csv_download_allowed=bool(_CSV_ALLOWED_RE.search(html)),
    )


def find_api_url(html: str) -> str | None:
    """Return the embedded read API path with escaped separators decoded."""
    match = _API_URL_RE.search(html or "")
    if not match:
        return None
    raw = match.group(1)
    decoded = re.sub(r"\\u002[Ff]", "/", raw).replace("\\/", "/")
    decoded = decoded.replace("\\u0026", "&").replace("\\\\", "\\")
    return decoded or None


def _rows_container(value: Any) -> list[Any]:
    if isinstance(value, dict):
        return list(value.values())
    if isinstance(value, list):
        return list(value)
    return []


def _rows_from_tables(tables: Any) -> list[Any]:
    rows: list[Any] = []
    for table in _rows_container(tables):
        if isinstance(table, dict) and "rows" in table:
            rows.extend(_rows_container(table["rows"]))
    return rows


def flatten_record(record: Any) -> dict[str, Any] | None:
    if not isinstance(record, dict):
        return None
    fields = record.get("fields")
    if isinstance(fields, dict):
        return dict(fields)
    cells = record.get("cellValuesByFieldId")
    if isinstance(cells, dict):
        return {f"field_{field_id}": value for field_id, value in cells.items()}
    return dict(record)


def records_from_api_payload(payload: Any, *, limit: int = MAX_RECORDS) -> list[dict[str, Any]]:
    """Find the record list in a read-API response and flatten each record."""
    if not isinstance(payload, dict):
        return []
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}

    rows: list[Any] = []
    if data.get("tables"):
        rows = _rows_from_tables(data["tables"])
    elif payload.get("tables"):
        rows = _rows_from_tables(payload["tables"])
    elif payload.get("rows"):
        rows = _rows_container(payload["rows"])
    elif data.get("rows"):
        rows = _rows_container(data["rows"])

    records = [flat for flat in (flatten_record(row) for row in rows) if flat]
    return records[:limit]


def records_from_state_blobs(html: str, *, limit: int = MAX_RECORDS) -> list[dict[str, Any]]:
    """Look for `records`/`rows` lists inside `window.__STATE__`-style blobs."""
    for blob in _decode_assignment(html or "", _STATE_BLOB_RE):
        records = records_from_api_payload(blob, limit=limit)
        if records:
            return records
        for key, value in _walk(blob):
            if key in ("records", "rows") and isinstance(value, list):
                flattened = [flat for flat in (flatten_record(item) for item in value) if flat]
                if flattened:
                    return flattened[:limit]
    return []


def _looks_like_data_object(candidate: dict[str, Any]) -> bool:
    for key, value in candidate.items():
        if key.startswith("_") or "Config" in key or "Token" in key:
            continue
        if isinstance(value, str) and 0 < len(value) < 200:
            return True
    return False


def sniff_json_records(html: str, *, limit: int = MAX_RECORDS) -> list[dict[str, Any]]:
    """Accept small flat JSON object literals that look like data rows."""
    records: list[dict[str, Any]] = []
    for literal in _FLAT_OBJECT_RE.findall(html or ""):
        try:
            candidate = json.loads(literal)
        except (ValueError, RecursionError):
            continue
        if not isinstance(candidate, dict) or len(candidate) < 3:
            continue
        if _looks_like_data_object(candidate):
            records.append(candidate)
            if len(records) >= limit:
                break
    return records


def _cell_text(cell_html: str) -> str:
    return html_lib.unescape(_TAG_RE.sub("", cell_html)).strip()


def parse_html_table(html: str) -> list[dict[str, str]]:
    """Parse the first `<table>` into header->cell records."""
    table_match = _TABLE_RE.search(html or "")
    if not table_match:
        return []
    rows = _ROW_RE.findall(table_match.group(1))
    if len(rows) < 2:
        return []

    header_cells = _HEADER_CELL_RE.findall(rows[0]) or _DATA_CELL_RE.findall(rows[0])
    headers = [_cell_text(cell) for cell in header_cells]
    if not headers:
        return []

    records: list[dict[str, str]] = []
    for row in rows[1:]:
        values = [_cell_text(cell) for cell in _DATA_CELL_RE.findall(row)]
        if not values:
            continue
        records.append(
            {header: values[idx] if idx < len(values) else "" for idx, header in enumerate(headers)}
        )
    return records
