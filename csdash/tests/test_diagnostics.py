import unittest

import httpx

from csdash.config import FetchSettings
from csdash.services import diagnostics

BASE = "https://airtable.com"
SHARE_ID = "shrDiagnose1234"
LINK = f"{BASE}/appDiagnose1234/{SHARE_ID}"
PAGE = (
    "<html><head><title> Support Log </title></head><body>"
    '<a href="/export.csv">Download</a><script>var x = 1;</script>'
    "<table><tr><td>a</td></tr></table></body></html>"
)


class SummarizePageTests(unittest.TestCase):
    def test_page_summary(self) -> None:
        summary = diagnostics.summarize_page(PAGE)
        self.assertEqual(summary["title"], "Support Log")
        self.assertEqual(summary["csvLinksFound"], ['href="/export.csv"'])
        self.assertTrue(summary["hasDownloadButton"])
        self.assertEqual(summary["scriptTagCount"], 1)
        self.assertEqual(summary["tableStructure"], {"tables": 1, "rows": 1, "cells": 1})
        self.assertFalse(summary["hasInitData"])
        self.assertIsNone(summary["apiUrl"])


class DiagnoseTests(unittest.IsolatedAsyncioTestCase):
    async def test_every_candidate_is_probed(self) -> None:
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            calls.append(url)
            if url == f"{BASE}/v0/{SHARE_ID}.csv":
                return httpx.Response(200, text="a,b\n1,2\n")
            if url == LINK:
                return httpx.Response(200, text=PAGE, headers={"content-type": "text/html"})
            return httpx.Response(403)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            report = await diagnostics.diagnose(LINK, client=client, settings=FetchSettings(base_url=BASE))

        self.assertEqual(len(calls), 9)
        self.assertEqual(report["shareId"], SHARE_ID)
        self.assertEqual(report["workingUrl"], f"{BASE}/v0/{SHARE_ID}.csv")
        self.assertEqual(report["csvPreview"], "a,b\n1,2\n")
        self.assertEqual(report["mainPage"]["status"], 200)
        self.assertEqual(report["mainPage"]["title"], "Support Log")
        results = [attempt["result"] for attempt in report["attempts"]]
        self.assertEqual(results.count("accepted"), 1)
        self.assertEqual(results.count("error"), 7)


if __name__ == "__main__":
    unittest.main()
