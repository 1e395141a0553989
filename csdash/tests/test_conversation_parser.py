import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from csdash.parsers import conversation
from csdash.parsers.conversation import parse_tools, parse_turns

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class ParseTurnsTests(unittest.TestCase):
    def test_empty_cell_has_no_turns(self) -> None:
        self.assertEqual(parse_turns("", now=NOW), [])
        self.assertEqual(parse_turns(None, now=NOW), [])

    def test_line_mode_attributes_speakers_and_spaces_timestamps(self) -> None:
        turns = parse_turns("User: hi\nAgent: hello\n\nsupport: more\nno prefix", now=NOW)
        self.assertEqual([t.speaker for t in turns], ["user", "agent", "agent", "user"])
        self.assertEqual([t.text for t in turns], ["hi", "hello", "more", "no prefix"])
        self.assertEqual(
            [t.timestamp for t in turns],
            [NOW - timedelta(minutes=n) for n in (4, 3, 2, 1)],
        )

    def test_json_array_uses_role_and_content_keys(self) -> None:
        raw = (
            '[{"role": "assistant", "content": "Hi"},'
            ' {"speaker": "customer", "text": "Help", "timestamp": "2024-01-01T00:00:00Z"},'
            ' "not a turn"]'
        )
        turns = parse_turns(raw, now=NOW)
        self.assertEqual([t.speaker for t in turns], ["agent", "user"])
        self.assertEqual([t.text for t in turns], ["Hi", "Help"])
        self.assertLessEqual(turns[0].timestamp, turns[1].timestamp)

    def test_deeply_nested_json_is_read_as_lines(self) -> None:
        cell = "[" * 100000
        turns = parse_turns(cell, now=NOW)
        self.assertEqual(len(turns), 1)
        self.assertEqual(turns[0].text, cell)

    def test_unexpected_failure_keeps_cell_verbatim(self) -> None:
        raw = "Agent: hello\nUser: it broke"
        with patch.object(conversation, "_turns_from_lines", side_effect=RuntimeError("boom")):
            turns = parse_turns(raw, now=NOW)
        self.assertEqual(len(turns), 1)
        self.assertEqual(turns[0].speaker, "user")
        self.assertEqual(turns[0].text, raw)
        self.assertEqual(turns[0].timestamp, NOW)

    def test_invalid_json_is_read_as_lines(self) -> None:
        turns = parse_turns("[not json", now=NOW)
        self.assertEqual(len(turns), 1)
        self.assertEqual(turns[0].speaker, "user")
        self.assertEqual(turns[0].text, "[not json")


class ParseToolsTests(unittest.TestCase):
    def test_comma_list_becomes_successful_calls(self) -> None:
        tools = parse_tools("Account Lookup, refund", now=NOW)
        self.assertEqual([t.name for t in tools], ["account_lookup", "refund"])
        self.assertTrue(all(t.success and t.payload == {} for t in tools))
        self.assertEqual(
            [t.timestamp for t in tools],
            [NOW - timedelta(seconds=60), NOW - timedelta(seconds=30)],
        )

    def test_json_array_payloads_and_success(self) -> None:
        raw = (
            '[{"name": "Refund", "args": {"amount": 5}, "success": "false"},'
            ' {"tool": "lookup", "payload": "abc"},'
            ' {"noname": 1}]'
        )
        tools = parse_tools(raw, now=NOW)
        self.assertEqual([t.name for t in tools], ["refund", "lookup"])
        self.assertEqual(tools[0].payload, {"amount": 5})
        self.assertFalse(tools[0].success)
        self.assertEqual(tools[1].payload, {"value": "abc"})
        self.assertTrue(tools[1].success)

    def test_unexpected_failure_yields_no_tools(self) -> None:
        with patch.object(conversation, "_tools_from_json", side_effect=RuntimeError("boom")):
            self.assertEqual(parse_tools('[{"name": "refund"}]', now=NOW), [])

    def test_deeply_nested_json_does_not_raise(self) -> None:
        tools = parse_tools("[" * 100000, now=NOW)
        self.assertEqual(len(tools), 1)

    def test_empty_cell_has_no_tools(self) -> None:
        self.assertEqual(parse_tools("  ", now=NOW), [])


if __name__ == "__main__":
    unittest.main()
