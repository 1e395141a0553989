"""Ordered acquisition strategies for a shared spreadsheet view.

Given a viewable link, try the known export surfaces one after another and
stop at the first body that looks like CSV (or, as a last resort, at the
first non-empty set of records scraped from the HTML page). Every request is
sequential, carries an explicit timeout, and a failed request only ends its
own attempt.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from csdash.config import FetchSettings
from csdash.errors import InvalidLinkFormat
from csdash.models import SourceKind
from csdash.observability import record_fetch_attempt, start_span
from csdash.parsers import html_extract
from csdash.parsers.sniffing import looks_like_csv, looks_like_json

logger = logging.getLogger("csdash.acquisition")

SHARE_ID_PREFIX = "shr"
_SHARE_SEGMENT_RE = re.compile(r"/shr([a-zA-Z0-9]+)")
_SHARE_ANYWHERE_RE = re.compile(r"shr([a-zA-Z0-9]+)")
_LAST_SEGMENT_RE = re.compile(r"/([a-zA-Z0-9]+)$")
_SHARE_TOKEN_RE = re.compile(r"shr[a-zA-Z0-9]+")

CSV_ACCEPT = "text/csv, application/csv, text/plain, */*"
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
JSON_ACCEPT = "application/json, text/javascript, */*; q=0.01"
_PREVIEW_CHARS = 200

# Strategy names, in chain order.
DIRECT_CSV = "direct_csv"
ALTERNATE_URLS = "alternate_urls"
DIRECT_DOWNLOAD = "direct_download"
HTML_PAGE = "html_page"
HTML_CSV_DOWNLOAD = "html_csv_download"
HTML_API_REPLAY = "html_api_replay"


@dataclass
class FetchAttempt:
    strategy: str
    url: str
    status: Optional[int] = None
    contentType: Optional[str] = None
    length: int = 0
    accepted: bool = False
    error: Optional[str] = None
    preview: str = ""

    @property
    def result(self) -> str:
        if self.accepted:
            return "accepted"
        if self.error:
            return "error"
        if self.status is not None and not 200 <= self.status < 300:
            return "http_error"
        return "rejected"

    def as_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "url": self.url,
            "status": self.status,
            "contentType": self.contentType,
            "length": self.length,
            "accepted": self.accepted,
            "result": self.result,
            "error": self.error,
            "preview": self.preview,
        }


@dataclass
class AcquisitionResult:
    share_id: str
    source_kind: SourceKind = "none"
    content: str = ""
    source_url: Optional[str] = None
    strategy: Optional[str] = None
    records: list[dict[str, Any]] = field(default_factory=list)
    attempts: list[FetchAttempt] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return self.source_kind == "none"


@dataclass
class HtmlExtraction:
    csv_text: str = ""
    csv_url: Optional[str] = None
    records: list[dict[str, Any]] = field(default_factory=list)
    method: Optional[str] = None


# ── Share ID extraction ─────────────────────────────────────────────

def _share_from_segment(link: str) -> str | None:
    match = _SHARE_SEGMENT_RE.search(link)
    return SHARE_ID_PREFIX + match.group(1) if match else None


def _share_from_anywhere(link: str) -> str | None:
    match = _SHARE_ANYWHERE_RE.search(link)
    return SHARE_ID_PREFIX + match.group(1) if match else None


def _share_from_last_segment(link: str) -> str | None:
    match = _LAST_SEGMENT_RE.search(link)
    if match and match.group(1).startswith(SHARE_ID_PREFIX):
        return match.group(1)
    return None


def _share_direct(link: str) -> str | None:
    match = _SHARE_TOKEN_RE.search(link)
    return match.group(0) if match else None


_SHARE_ID_VARIANTS: tuple[Callable[[str], str | None], ...] = (
    _share_from_segment,
    _share_from_anywhere,
    _share_from_last_segment,
    _share_direct,
)


def extract_share_id(link: str) -> str:
    """Return the `shr…` token of a viewable link or raise InvalidLinkFormat."""
    candidate = (link or "").strip()
    for variant in _SHARE_ID_VARIANTS:
        share_id = variant(candidate)
        if share_id:
            return share_id
    raise InvalidLinkFormat(candidate)


# ── Candidate URLs and headers ──────────────────────────────────────

def direct_csv_urls(share_id: str, base_url: str) -> list[str]:
    return [
        f"{base_url}/{share_id}.csv",
        f"{base_url}/v0/{share_id}.csv",
        f"{base_url}/embed/{share_id}.csv",
    ]


def alternate_csv_urls(link: str) -> list[str]:
    trimmed = link.strip().rstrip("/")
    separator = "&" if "?" in trimmed else "?"
    candidates = [
        f"{trimmed}/csv",
        f"{trimmed}.csv",
        trimmed.replace("/shr", "/csv/shr", 1),
        f"{trimmed}{separator}csv=1",
        f"{trimmed}/export?format=csv",
    ]
    urls: list[str] = []
    for url in candidates:
        if url != trimmed and url not in urls:
            urls.append(url)
    return urls


def direct_download_urls(share_id: str, base_url: str) -> list[str]:
    return [
        f"{base_url}/{share_id}.csv",
        f"{base_url}/v0/{share_id}/downloadCsv",
        f"{base_url}/v0.3/view/{share_id}/downloadCsv",
    ]


def browser_csv_headers(settings: FetchSettings) -> dict[str, str]:
    return {"User-Agent": settings.user_agent, "Accept": CSV_ACCEPT}


def share_download_headers(settings: FetchSettings, link: str, app_id: str | None = None) -> dict[str, str]:
    headers = {**browser_csv_headers(settings), "Referer": link}
    if app_id:
        headers["x-airtable-application-id"] = app_id
        headers["x-airtable-user-id"] = "anonymous"
    return headers


def browser_html_headers(settings: FetchSettings) -> dict[str, str]:
    return {
        "User-Agent": settings.user_agent,
        "Accept": HTML_ACCEPT,
        "Accept-Language": "en-US,en;q=0.5",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
    }


def api_replay_headers(settings: FetchSettings, link: str, app_id: str | None) -> dict[str, str]:
    headers = {
        "User-Agent": settings.user_agent,
        "Referer": link,
        "Accept": JSON_ACCEPT,
        "X-Requested-With": "XMLHttpRequest",
        "x-time-zone": "UTC",
    }
    if app_id:
        headers["x-airtable-application-id"] = app_id
    return headers


def new_client(settings: FetchSettings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.timeout_seconds),
        follow_redirects=True,
    )


# ── Fetching ────────────────────────────────────────────────────────

async def fetch_text(
    client: httpx.AsyncClient,
    url: str,
    *,
    strategy: str,
    settings: FetchSettings,
    attempts: list[FetchAttempt],
    headers: dict[str, str] | None = None,
) -> tuple[FetchAttempt, str | None]:
    """GET `url`; return the attempt record and the body on a 2xx response.

    Transport errors, timeouts and non-2xx statuses end only this attempt.
    """
    attempt = FetchAttempt(strategy=strategy, url=url)
    attempts.append(attempt)
    try:
        response = await client.get(url, headers=headers, timeout=settings.timeout_seconds)
        attempt.status = response.status_code
        attempt.contentType = response.headers.get("content-type")
        response.raise_for_status()
        body = response.text
    except httpx.TimeoutException as exc:
        attempt.error = f"timeout: {exc.__class__.__name__}"
        logger.info("[%s] %s timed out", strategy, url)
    except httpx.HTTPStatusError as exc:
        attempt.error = f"HTTP {exc.response.status_code}"
        logger.info("[%s] %s failed with %s", strategy, url, exc.response.status_code)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        attempt.error = f"{exc.__class__.__name__}: {exc}"
        logger.info("[%s] %s failed: %s", strategy, url, exc)
    else:
        attempt.length = len(body)
        attempt.preview = body[:_PREVIEW_CHARS]
        return attempt, body
    finally:
        if attempt.error:
            record_fetch_attempt(strategy, attempt.result)
    return attempt, None


async def _first_csv(
    client: httpx.AsyncClient,
    urls: list[str],
    *,
    strategy: str,
    settings: FetchSettings,
    attempts: list[FetchAttempt],
    headers: dict[str, str] | None = None,
    min_length: int = 0,
) -> tuple[str, str] | None:
    for url in urls:
        attempt, body = await fetch_text(
            client, url, strategy=strategy, settings=settings, attempts=attempts, headers=headers
        )
        if body is None:
            continue
        if body and looks_like_csv(body, min_length=min_length):
            attempt.accepted = True
            record_fetch_attempt(strategy, attempt.result)
            logger.info("[%s] accepted CSV from %s (%d chars)", strategy, url, len(body))
            return url, body
        record_fetch_attempt(strategy, attempt.result)
        logger.info("[%s] %s returned %d chars that do not look like CSV", strategy, url, len(body))
    return None


# ── HTML follow-ups ─────────────────────────────────────────────────

async def _csv_from_init_data(
    client: httpx.AsyncClient,
    html: str,
    link: str,
    share_id: str,
    *,
    settings: FetchSettings,
    attempts: list[FetchAttempt],
) -> tuple[str, str] | None:
    init_data = html_extract.find_init_data(html)
    if init_data is None:
        return None
    ids = html_extract.find_identifiers(html, init_data)
    if not (ids.csv_download_allowed and ids.app_id):
        logger.debug("Init data found but CSV download is not advertised (app=%s)", ids.app_id)
        return None
    target_share = ids.share_id or share_id
    url = f"{settings.base_url}/v0.3/view/{target_share}/downloadCsv"
    return await _first_csv(
        client,
        [url],
        strategy=HTML_CSV_DOWNLOAD,
        settings=settings,
        attempts=attempts,
        headers=share_download_headers(settings, link, ids.app_id),
        min_length=settings.direct_download_min_length,
    )


async def _records_from_api(
    client: httpx.AsyncClient,
    html: str,
    link: str,
    *,
    settings: FetchSettings,
    attempts: list[FetchAttempt],
) -> list[dict[str, Any]]:
    api_path = html_extract.find_api_url(html)
    if not api_path:
        return []
    url = api_path if api_path.startswith("http") else f"{settings.base_url}{api_path}"
    ids = html_extract.find_identifiers(html, html_extract.find_init_data(html))
    attempt, body = await fetch_text(
        client,
        url,
        strategy=HTML_API_REPLAY,
        settings=settings,
        attempts=attempts,
        headers=api_replay_headers(settings, link, ids.app_id),
    )
    if body is None:
        return []
    if not looks_like_json(body):
        record_fetch_attempt(HTML_API_REPLAY, attempt.result)
        logger.info("[%s] %s did not return JSON", HTML_API_REPLAY, url)
        return []
    try:
        payload = json.loads(body)
    except (ValueError, RecursionError):
        record_fetch_attempt(HTML_API_REPLAY, attempt.result)
        logger.info("[%s] %s did not return JSON", HTML_API_REPLAY, url)
        return []
    records = html_extract.records_from_api_payload(payload, limit=settings.max_html_records)
    attempt.accepted = bool(records)
    record_fetch_attempt(HTML_API_REPLAY, attempt.result)
    logger.info("[%s] %s yielded %d records", HTML_API_REPLAY, url, len(records))
    return records


async def extract_from_html(
    client: httpx.AsyncClient,
    html: str,
    link: str,
    share_id: str,
    *,
    settings: FetchSettings,
    attempts: list[FetchAttempt],
) -> HtmlExtraction:
    """Run the HTML sub-strategies in order; the first non-empty result wins."""
    csv_hit = await _csv_from_init_data(
        client, html, link, share_id, settings=settings, attempts=attempts
    )
    if csv_hit:
        url, body = csv_hit
        return HtmlExtraction(csv_text=body, csv_url=url, method=HTML_CSV_DOWNLOAD)

    records = await _records_from_api(client, html, link, settings=settings, attempts=attempts)
    if records:
        return HtmlExtraction(records=records, method=HTML_API_REPLAY)

    limit = settings.max_html_records
    pure_steps: list[tuple[str, Callable[[str], list[dict[str, Any]]]]] = [
        ("state_blob", lambda text: html_extract.records_from_state_blobs(text, limit=limit)),
        ("json_sniff", lambda text: html_extract.sniff_json_records(text, limit=limit)),
        ("html_table", html_extract.parse_html_table),
    ]
    for method, step in pure_steps:
        records = step(html)
        if records:
            logger.info("HTML extraction via %s found %d records", method, len(records))
            return HtmlExtraction(records=records, method=method)
    return HtmlExtraction()


# ── Chain ───────────────────────────────────────────────────────────

async def acquire(
    link: str,
    *,
    client: httpx.AsyncClient,
    settings: FetchSettings,
    share_id: str | None = None,
) -> AcquisitionResult:
    """Try every strategy in priority order; `source_kind == "none"` means exhausted."""
    share_id = share_id or extract_share_id(link)
    link = link.strip()
    result = AcquisitionResult(share_id=share_id)
    attempts = result.attempts

    with start_span("csdash.acquire", {"share_id": share_id}):
        csv_steps = [
            (DIRECT_CSV, direct_csv_urls(share_id, settings.base_url), None, 0),
            (ALTERNATE_URLS, alternate_csv_urls(link), browser_csv_headers(settings), 0),
            (
                DIRECT_DOWNLOAD,
                direct_download_urls(share_id, settings.base_url),
                share_download_headers(settings, link),
                settings.direct_download_min_length,
            ),
        ]
        for strategy, urls, headers, min_length in csv_steps:
            hit = await _first_csv(
                client,
                urls,
                strategy=strategy,
                settings=settings,
                attempts=attempts,
                headers=headers,
                min_length=min_length,
            )
            if hit:
                result.source_url, result.content = hit
                result.source_kind = "csv"
                result.strategy = strategy
                return result
            logger.info("Strategy %s exhausted for %s", strategy, share_id)

        page_attempt, html = await fetch_text(
            client,
            link,
            strategy=HTML_PAGE,
            settings=settings,
            attempts=attempts,
            headers=browser_html_headers(settings),
        )
        if html is None:
            return result

        extraction = await extract_from_html(
            client, html, link, share_id, settings=settings, attempts=attempts
        )
        if extraction.csv_text:
            result.source_kind = "csv"
            result.content = extraction.csv_text
            result.source_url = extraction.csv_url
            result.strategy = HTML_CSV_DOWNLOAD
        elif extraction.records:
            page_attempt.accepted = True
            result.source_kind = "html"
            result.content = html
            result.source_url = link
            result.records = extraction.records
            result.strategy = extraction.method
        else:
            logger.info("HTML page for %s yielded no records", share_id)
        record_fetch_attempt(HTML_PAGE, page_attempt.result)
        return result
