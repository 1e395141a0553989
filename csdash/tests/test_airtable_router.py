import json
import tempfile
import types
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

from fastapi import HTTPException

from csdash.connection_manager import ConnectionManager
from csdash.errors import AcquisitionExhausted
from csdash.models import (
    ConnectionSettings,
    ConnectionTestResponse,
    SessionsResponse,
    SyncResponse,
    TableInfo,
    TableInfoResponse,
    ViewableLinkRequest,
)
from csdash.routers import airtable as airtable_router
from csdash.services import pipeline

LINK = "https://airtable.com/appRouter12345/shrRouter12345"


def _request(manager: ConnectionManager | None):
    return types.SimpleNamespace(app=types.SimpleNamespace(state=types.SimpleNamespace(connection_manager=manager)))


def _body(response) -> dict:
    return json.loads(response.body)


class AirtableSessionsRouterTests(unittest.IsolatedAsyncioTestCase):
    async def test_missing_link_is_rejected(self) -> None:
        for body in (None, ViewableLinkRequest(), ViewableLinkRequest(viewableLink="   ")):
            response = await airtable_router.get_sessions(body)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(_body(response), {"error": "Missing required field: viewableLink"})

    async def test_malformed_link_returns_guidance(self) -> None:
        response = await airtable_router.get_sessions(ViewableLinkRequest(viewableLink="https://example.com/x"))
        self.assertEqual(response.status_code, 400)
        self.assertIn("Invalid Airtable share link format", _body(response)["error"])
        self.assertIn("https://example.com/x", _body(response)["error"])

    async def test_unexpected_failure_is_500(self) -> None:
        with patch.object(airtable_router.pipeline, "load_sessions", new=AsyncMock(side_effect=RuntimeError("boom"))):
            response = await airtable_router.get_sessions(ViewableLinkRequest(viewableLink=LINK))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(_body(response), {"error": "Failed to fetch session data"})

    async def test_payload_passes_through(self) -> None:
        loaded = pipeline.sample_response()
        mocked = AsyncMock(return_value=loaded)
        with patch.object(airtable_router.pipeline, "load_sessions", new=mocked):
            response = await airtable_router.get_sessions(ViewableLinkRequest(viewableLink=f"  {LINK}  "))
        self.assertIs(response, loaded)
        mocked.assert_awaited_once_with(LINK)


class AirtableDiagnosticsRouterTests(unittest.IsolatedAsyncioTestCase):
    async def test_connection_test_reports_table(self) -> None:
        info = TableInfo(recordCount=2, fields=["Session ID", "Status"])
        with patch.object(
            airtable_router.pipeline,
            "describe_table",
            new=AsyncMock(return_value=(info, {"workingUrl": "u"})),
        ):
            response = await airtable_router.test_connection(ViewableLinkRequest(viewableLink=LINK))
        self.assertIsInstance(response, ConnectionTestResponse)
        self.assertEqual(response.tableInfo.fields, ["Session ID", "Status"])
        self.assertEqual(response.debug, {"workingUrl": "u"})

    async def test_connection_test_without_data_gives_guidance(self) -> None:
        with patch.object(
            airtable_router.pipeline,
            "describe_table",
            new=AsyncMock(side_effect=AcquisitionExhausted("shrRouter12345", [{"url": "u"}])),
        ):
            with self.assertLogs("csdash.airtable", level="WARNING") as logs:
                response = await airtable_router.test_connection(ViewableLinkRequest(viewableLink=LINK))
        self.assertIn("no data for shrRouter12345", logs.output[0])
        self.assertEqual(response.status_code, 400)
        payload = _body(response)
        self.assertIn("Allow viewers to download CSV", payload["error"])
        self.assertEqual(payload["shareId"], "shrRouter12345")

    async def test_info_uses_normalized_session_keys(self) -> None:
        with patch.object(
            airtable_router.pipeline,
            "load_sessions",
            new=AsyncMock(return_value=pipeline.sample_response()),
        ):
            response = await airtable_router.get_table_info(ViewableLinkRequest(viewableLink=LINK))
        self.assertIsInstance(response, TableInfoResponse)
        self.assertEqual(response.tableInfo.recordCount, 3)
        self.assertIn("sessionId", response.tableInfo.fields)
        self.assertIn("turns", response.tableInfo.fields)

    async def test_info_for_empty_sheet(self) -> None:
        with patch.object(
            airtable_router.pipeline,
            "load_sessions",
            new=AsyncMock(return_value=SessionsResponse(sessions=[], count=0)),
        ):
            response = await airtable_router.get_table_info(ViewableLinkRequest(viewableLink=LINK))
        self.assertEqual(response.tableInfo.fields, [])

    async def test_debug_wraps_report(self) -> None:
        with patch.object(
            airtable_router.diagnostics,
            "diagnose",
            new=AsyncMock(return_value={"shareId": "shrRouter12345"}),
        ):
            response = await airtable_router.debug_link(ViewableLinkRequest(viewableLink=LINK))
        self.assertEqual(response, {"success": True, "debug": {"shareId": "shrRouter12345"}})


class AirtableSyncRouterTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.manager = ConnectionManager(Path(tmpdir.name) / "connection.json")

    async def test_sync_uses_saved_link_and_notifies(self) -> None:
        self.manager.save_settings(ConnectionSettings(viewableLink=LINK, connected=True))
        seen: list[SyncResponse] = []
        self.manager.subscribe(seen.append)
        mocked = AsyncMock(return_value=pipeline.sample_response())

        with patch.object(airtable_router.pipeline, "load_sessions", new=mocked):
            response = await airtable_router.sync_sessions(_request(self.manager), None)

        mocked.assert_awaited_once_with(LINK)
        self.assertEqual(response.count, 3)
        self.assertTrue(response.isSample)
        self.assertEqual(seen, [response])
        self.assertIsNotNone(self.manager.get_settings().lastSync)

    async def test_sync_without_any_link(self) -> None:
        response = await airtable_router.sync_sessions(_request(self.manager), ViewableLinkRequest())
        self.assertEqual(response.status_code, 400)

    async def test_sync_before_startup_is_503(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await airtable_router.sync_sessions(_request(None), ViewableLinkRequest(viewableLink=LINK))
        self.assertEqual(ctx.exception.status_code, 503)


if __name__ == "__main__":
    unittest.main()
