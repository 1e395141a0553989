"""Tolerant line-oriented CSV parsing for shared-view exports."""
from __future__ import annotations


def parse_csv_line(line: str) -> list[str]:
    """Split one CSV line into trimmed fields.

    A double quote toggles the in-quotes state and is dropped; doubled quotes
    are not treated as an escape. An unbalanced quote swallows the rest of the
    line into the current field.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    fields.append("".join(current).strip())
    return fields


def split_csv_lines(text: str) -> list[str]:
    return [line.rstrip("\r") for line in (text or "").strip().split("\n")]


def rows_from_csv(text: str) -> tuple[list[str], list[dict[str, str]]]:
    """Return the header row and one header->cell mapping per data line."""
    lines = split_csv_lines(text)
    if not lines or not lines[0].strip():
        return [], []

    headers = parse_csv_line(lines[0])
    rows: list[dict[str, str]] = []
    for line in lines[1:]:
        if not line.strip():
            continue
        values = parse_csv_line(line)
        rows.append(
            {
                header: values[idx] if idx < len(values) else ""
                for idx, header in enumerate(headers)
            }
        )
    return headers, rows
