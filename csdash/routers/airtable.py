"""Shared-view extraction API."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from csdash.config import fetch_settings
from csdash.connection_manager import get_connection_manager
from csdash.date_utils import format_datetime_utc, now_utc
from csdash.errors import AcquisitionExhausted, InvalidLinkFormat
from csdash.models import (
    ConnectionTestResponse,
    SyncResponse,
    TableInfo,
    TableInfoResponse,
    ViewableLinkRequest,
)
from csdash.services import acquisition, diagnostics, pipeline

logger = logging.getLogger("csdash.airtable")

airtable_router = APIRouter(prefix="/api/airtable", tags=["airtable"])

MISSING_LINK = "Missing required field: viewableLink"
NO_DATA_GUIDANCE = (
    "Unable to access data from this shared view. To fix this: 1) Open your Airtable "
    "base, 2) Click Share view, 3) Enable 'Allow viewers to download CSV', "
    "4) Copy the new viewable link."
)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _link_from(body: Optional[ViewableLinkRequest]) -> str:
    return (body.viewableLink if body else "").strip()


@airtable_router.post("/sessions")
async def get_sessions(body: Optional[ViewableLinkRequest] = None):
    """Extract sessions from a shared view, degrading to sample data."""
    link = _link_from(body)
    if not link:
        return _error(400, MISSING_LINK)
    try:
        return await pipeline.load_sessions(link)
    except InvalidLinkFormat as e:
        return _error(400, str(e))
    except Exception:
        logger.exception("Failed to fetch session data")
        return _error(500, "Failed to fetch session data")


@airtable_router.post("/test")
async def test_connection(body: Optional[ViewableLinkRequest] = None):
    """Report header fields, row count and the URL that produced data."""
    link = _link_from(body)
    if not link:
        return _error(400, MISSING_LINK)
    try:
        info, debug = await pipeline.describe_table(link)
    except InvalidLinkFormat as e:
        return _error(400, str(e))
    except AcquisitionExhausted as e:
        logger.warning("Connection test found no data for %s", e.share_id)
        return _error(400, NO_DATA_GUIDANCE, shareId=e.share_id, attempts=e.attempts)
    except Exception:
        logger.exception("Connection test failed")
        return _error(500, "Failed to connect to Airtable")
    return ConnectionTestResponse(tableInfo=info, debug=debug)


@airtable_router.post("/info")
async def get_table_info(body: Optional[ViewableLinkRequest] = None):
    """Field names and record count of the normalized sessions."""
    link = _link_from(body)
    if not link:
        return _error(400, MISSING_LINK)
    try:
        loaded = await pipeline.load_sessions(link)
    except InvalidLinkFormat as e:
        return _error(400, str(e))
    except Exception:
        logger.exception("Failed to get table info")
        return _error(500, "Failed to get table info")

    fields = list(loaded.sessions[0].model_dump().keys()) if loaded.sessions else []
    return TableInfoResponse(tableInfo=TableInfo(recordCount=loaded.count, fields=fields))


@airtable_router.post("/debug")
async def debug_link(body: Optional[ViewableLinkRequest] = None):
    """Probe every export surface of the shared view."""
    link = _link_from(body)
    if not link:
        return _error(400, MISSING_LINK)
    settings = fetch_settings()
    try:
        async with acquisition.new_client(settings) as client:
            report = await diagnostics.diagnose(link, client=client, settings=settings)
    except InvalidLinkFormat as e:
        return _error(400, str(e))
    except Exception:
        logger.exception("Debug probe failed")
        return _error(500, "Debug probe failed")
    return {"success": True, "debug": report}


@airtable_router.post("/sync")
async def sync_sessions(request: Request, body: Optional[ViewableLinkRequest] = None):
    """Re-run extraction for the given or saved link and notify listeners."""
    connection_manager = get_connection_manager(request)
    link = _link_from(body) or connection_manager.get_settings().viewableLink.strip()
    if not link:
        return _error(400, "No viewable link configured")
    try:
        loaded = await pipeline.load_sessions(link)
    except InvalidLinkFormat as e:
        return _error(400, str(e))
    except Exception:
        logger.exception("Data sync failed")
        return _error(500, "Failed to sync data")

    connection_manager.mark_synced(link)
    result = SyncResponse(
        count=loaded.count,
        isSample=loaded.isSample,
        timestamp=format_datetime_utc(now_utc()),
    )
    await connection_manager.notify_refresh(result)
    return result
