"""Probe every export surface of a shared view and report what each returned."""
from __future__ import annotations

import re
from typing import Any

import httpx

from csdash.config import FetchSettings, fetch_settings
from csdash.date_utils import format_datetime_utc, now_utc
from csdash.parsers import html_extract
from csdash.parsers.sniffing import looks_like_csv
from csdash.services import acquisition

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_CSV_LINK_RE = re.compile(r'href="[^"]*csv[^"]*"', re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)


def summarize_page(html: str) -> dict[str, Any]:
    """Describe what a shared-view page offers to the HTML extractor."""
    title_match = _TITLE_RE.search(html)
    lowered = html.lower()
    ids = html_extract.find_identifiers(html, html_extract.find_init_data(html))
    return {
        "contentLength": len(html),
        "title": title_match.group(1).strip() if title_match else "No title found",
        "containsAirtable": "airtable" in lowered,
        "csvLinksFound": _CSV_LINK_RE.findall(html),
        "hasDownloadButton": "download" in lowered or "export" in lowered,
        "hasCSVMention": "csv" in lowered,
        "scriptTagCount": len(_SCRIPT_RE.findall(html)),
        "tableStructure": {
            "tables": lowered.count("<table"),
            "rows": lowered.count("<tr"),
            "cells": lowered.count("<td"),
        },
        "hasInitData": html_extract.find_init_data(html) is not None,
        "apiUrl": html_extract.find_api_url(html),
        "identifiers": {
            "applicationId": ids.app_id,
            "tableId": ids.table_id,
            "shareId": ids.share_id,
            "csvDownloadAllowed": ids.csv_download_allowed,
        },
    }


async def diagnose(
    link: str,
    *,
    client: httpx.AsyncClient,
    settings: FetchSettings | None = None,
) -> dict[str, Any]:
    """Fetch every CSV candidate and the page itself; never stops early."""
    settings = settings or fetch_settings()
    share_id = acquisition.extract_share_id(link)
    attempts: list[acquisition.FetchAttempt] = []
    report: dict[str, Any] = {
        "originalLink": link,
        "shareId": share_id,
        "timestamp": format_datetime_utc(now_utc()),
        "workingUrl": None,
    }

    probes = [
        (acquisition.DIRECT_CSV, url) for url in acquisition.direct_csv_urls(share_id, settings.base_url)
    ] + [
        (acquisition.ALTERNATE_URLS, url) for url in acquisition.alternate_csv_urls(link)
    ]
    for strategy, url in probes:
        attempt, body = await acquisition.fetch_text(
            client, url, strategy=strategy, settings=settings, attempts=attempts,
            headers=acquisition.browser_csv_headers(settings),
        )
        if body is not None and looks_like_csv(body):
            attempt.accepted = True
            if report["workingUrl"] is None:
                report["workingUrl"] = url
                report["csvPreview"] = body[:500]

    page_attempt, html = await acquisition.fetch_text(
        client, link.strip(), strategy=acquisition.HTML_PAGE, settings=settings, attempts=attempts,
        headers=acquisition.browser_html_headers(settings),
    )
    main_page: dict[str, Any] = {
        "status": page_attempt.status,
        "contentType": page_attempt.contentType,
    }
    if html is not None:
        main_page.update(summarize_page(html))
    else:
        main_page["error"] = page_attempt.error
    report["mainPage"] = main_page
    report["attempts"] = [attempt.as_dict() for attempt in attempts]
    return report
