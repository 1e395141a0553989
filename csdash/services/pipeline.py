"""Turn a viewable link into a sessions payload, degrading to sample data."""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Mapping

import httpx

from csdash.config import FetchSettings, fetch_settings
from csdash.date_utils import now_utc
from csdash.errors import AcquisitionExhausted
from csdash.models import Session, SessionsResponse, TableInfo
from csdash.observability import record_extraction, record_fallback
from csdash.parsers.csv_line import rows_from_csv
from csdash.parsers.fields import sessions_from_rows
from csdash.services import acquisition
from csdash.services.sample_data import SAMPLE_NOTE, SAMPLE_SOURCE, sample_sessions

logger = logging.getLogger("csdash.pipeline")

CSV_SOURCE = "Airtable CSV"
HTML_SOURCE = "Airtable HTML Extraction"
HTML_NOTE = "Data extracted from Airtable shared view"
EMPTY_CSV_NOTE = "No data found in CSV"


def sessions_from_csv(text: str, *, now: datetime | None = None) -> list[Session]:
    """One session per data line, in file order."""
    _, rows = rows_from_csv(text)
    return sessions_from_rows(rows, now=now)


def sessions_from_records(records: list[Mapping[str, Any]], *, now: datetime | None = None) -> list[Session]:
    return sessions_from_rows(records, now=now, html_record=True)


def sample_response() -> SessionsResponse:
    sessions = sample_sessions()
    return SessionsResponse(
        success=True,
        sessions=sessions,
        count=len(sessions),
        source=SAMPLE_SOURCE,
        note=SAMPLE_NOTE,
        isSample=True,
    )


@asynccontextmanager
async def _client_scope(
    client: httpx.AsyncClient | None, settings: FetchSettings
) -> AsyncIterator[httpx.AsyncClient]:
    if client is not None:
        yield client
        return
    async with acquisition.new_client(settings) as owned:
        yield owned


def _response_for(result: acquisition.AcquisitionResult) -> SessionsResponse:
    anchor = now_utc()
    if result.source_kind == "csv":
        sessions = sessions_from_csv(result.content, now=anchor)
        return SessionsResponse(
            success=True,
            sessions=sessions,
            count=len(sessions),
            source=CSV_SOURCE,
            note=None if sessions else EMPTY_CSV_NOTE,
            dataUrl=result.source_url,
        )
    sessions = sessions_from_records(result.records, now=anchor)
    return SessionsResponse(
        success=True,
        sessions=sessions,
        count=len(sessions),
        source=HTML_SOURCE,
        note=HTML_NOTE,
        dataUrl=result.source_url,
    )


async def load_sessions(
    link: str,
    *,
    client: httpx.AsyncClient | None = None,
    settings: FetchSettings | None = None,
) -> SessionsResponse:
    """Extract sessions for `link`.

    Raises InvalidLinkFormat before any network call when the link has no
    share ID. Every other failure is answered with the flagged sample set.
    """
    settings = settings or fetch_settings()
    share_id = acquisition.extract_share_id(link)
    started = time.monotonic()

    async with _client_scope(client, settings) as http:
        result = await acquisition.acquire(link, client=http, settings=settings, share_id=share_id)

    duration_ms = (time.monotonic() - started) * 1000
    if result.exhausted:
        logger.warning(
            "All acquisition strategies failed for %s after %d attempts; serving sample data",
            share_id,
            len(result.attempts),
        )
        record_fallback("acquisition_exhausted")
        record_extraction(SAMPLE_SOURCE, 0, duration_ms)
        return sample_response()

    response = _response_for(result)
    logger.info(
        "Extracted %d sessions for %s via %s (%s)",
        response.count,
        share_id,
        result.strategy,
        result.source_url,
    )
    record_extraction(result.source_kind, response.count, duration_ms)
    return response


async def describe_table(
    link: str,
    *,
    client: httpx.AsyncClient | None = None,
    settings: FetchSettings | None = None,
) -> tuple[TableInfo, dict[str, Any]]:
    """Header fields and row count of the shared view, plus a debug block.

    Raises InvalidLinkFormat for unusable links and AcquisitionExhausted when
    no strategy produces data.
    """
    settings = settings or fetch_settings()
    share_id = acquisition.extract_share_id(link)

    async with _client_scope(client, settings) as http:
        result = await acquisition.acquire(link, client=http, settings=settings, share_id=share_id)

    if result.exhausted:
        raise AcquisitionExhausted(share_id, [attempt.as_dict() for attempt in result.attempts])

    if result.source_kind == "csv":
        headers, rows = rows_from_csv(result.content)
        info = TableInfo(name="Shared View", recordCount=len(rows), fields=headers)
    else:
        first = result.records[0] if result.records else {}
        info = TableInfo(name="Shared View", recordCount=len(result.records), fields=[str(key) for key in first])

    debug = {
        "workingUrl": result.source_url,
        "strategy": result.strategy,
        "shareId": share_id,
        "contentLength": len(result.content),
    }
    return info, debug
