import unittest
from datetime import datetime, timezone

from csdash.parsers.fields import (
    map_sentiment,
    map_status,
    normalize_row,
    parse_created_at,
    parse_tags,
    sessions_from_rows,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FieldMappingTests(unittest.TestCase):
    def test_status_markers(self) -> None:
        self.assertEqual(map_status("Closed"), "resolved")
        self.assertEqual(map_status("Escalate to tier 2"), "escalated")
        self.assertEqual(map_status("In progress"), "open")
        self.assertEqual(map_status(None), "open")

    def test_sentiment_markers(self) -> None:
        self.assertEqual(map_sentiment("Happy customer"), "positive")
        self.assertEqual(map_sentiment("ANGRY"), "frustrated")
        self.assertEqual(map_sentiment("meh"), "neutral")

    def test_mappings_are_total_and_idempotent(self) -> None:
        for raw in ("", "random text", "RESOLVED", "escalated!", "frustrated", "Positive", "open"):
            status = map_status(raw)
            sentiment = map_sentiment(raw)
            self.assertIn(status, ("open", "resolved", "escalated"))
            self.assertIn(sentiment, ("positive", "neutral", "frustrated"))
            self.assertEqual(map_status(status), status)
            self.assertEqual(map_sentiment(sentiment), sentiment)

    def test_tags_from_json_or_commas(self) -> None:
        self.assertEqual(parse_tags('["billing", " refund "]'), ["billing", "refund"])
        self.assertEqual(parse_tags("billing, refund ,"), ["billing", "refund"])
        self.assertEqual(parse_tags(""), [])
        self.assertEqual(parse_tags(["a", ""]), ["a"])

    def test_deeply_nested_tags_fall_back_to_splitting(self) -> None:
        cell = "[" * 100000
        self.assertEqual(parse_tags(cell), [cell])
        session = normalize_row({"Session ID": "s1", "Tags": cell}, 1)
        self.assertEqual(session.tags, [cell])

    def test_unparseable_created_falls_back_to_now(self) -> None:
        self.assertEqual(parse_created_at("not a date", now=NOW), NOW)
        self.assertEqual(
            parse_created_at("2024-03-01T10:00:00Z", now=NOW),
            datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc),
        )


class NormalizeRowTests(unittest.TestCase):
    def test_aliases_and_coercions(self) -> None:
        session = normalize_row(
            {
                "Session ID": "s-9",
                "Customer": "acme",
                " Status ": "Closed",
                "Mood": "Happy customer",
                "Escalate": "yes",
                "Categories": '["a", "b"]',
                "Date": "2024-03-01T10:00:00Z",
                "Tools Used": "Account Lookup",
            },
            1,
            now=NOW,
        )
        self.assertEqual(session.sessionId, "s-9")
        self.assertEqual(session.customerId, "acme")
        self.assertEqual(session.status, "resolved")
        self.assertEqual(session.sentiment, "positive")
        self.assertTrue(session.escalationRecommended)
        self.assertEqual(session.tags, ["a", "b"])
        self.assertEqual(session.createdAt, datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc))
        self.assertEqual([tool.name for tool in session.tools], ["account_lookup"])
        self.assertEqual(session.turns, [])

    def test_empty_row_gets_defaults(self) -> None:
        session = normalize_row({}, 4, now=NOW)
        self.assertEqual(session.sessionId, "session_4")
        self.assertEqual(session.customerId, "Unknown")
        self.assertEqual(session.createdAt, NOW)
        self.assertEqual(session.status, "open")
        self.assertEqual(session.sentiment, "neutral")
        self.assertFalse(session.escalationRecommended)
        self.assertEqual(session.tags, [])

    def test_empty_primary_alias_falls_through(self) -> None:
        session = normalize_row({"Session ID": "", "ID": "rec1"}, 1, now=NOW)
        self.assertEqual(session.sessionId, "rec1")

    def test_lowercase_keys_only_count_for_html_records(self) -> None:
        row = {"id": "rec9", "customer": "bob"}
        html_session = normalize_row(row, 1, now=NOW, html_record=True)
        csv_session = normalize_row(row, 1, now=NOW)
        self.assertEqual((html_session.sessionId, html_session.customerId), ("rec9", "bob"))
        self.assertEqual((csv_session.sessionId, csv_session.customerId), ("session_1", "Unknown"))

    def test_rows_are_numbered_from_one(self) -> None:
        sessions = sessions_from_rows([{}, {"Name": "x"}], now=NOW)
        self.assertEqual([s.sessionId for s in sessions], ["session_1", "session_2"])
        self.assertEqual(sessions[1].customerId, "x")


if __name__ == "__main__":
    unittest.main()
