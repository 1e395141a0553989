"""Content-shape predicates used to accept or reject fetched bodies."""
from __future__ import annotations


def looks_like_html(body: str | None) -> bool:
    return bool(body) and "<html" in body.lower()


def looks_like_csv(body: str | None, *, min_length: int = 0) -> bool:
    """Plausible tabular text: has a comma and a newline and is not an HTML page."""
    if not body:
        return False
    if len(body) <= min_length:
        return False
    if "," not in body or "\n" not in body:
        return False
    return not looks_like_html(body)


def looks_like_json(body: str | None) -> bool:
    if not body:
        return False
    head = body.lstrip()[:1]
    return head in ("{", "[")
