import unittest
from datetime import date, datetime, timedelta, timezone

from csdash.date_utils import (
    clamp_monotonic,
    format_datetime_utc,
    parse_datetime,
    synthetic_timestamp,
)


class ParseDatetimeTests(unittest.TestCase):
    def test_iso_with_zulu(self) -> None:
        self.assertEqual(
            parse_datetime("2024-05-02T08:30:00Z"),
            datetime(2024, 5, 2, 8, 30, tzinfo=timezone.utc),
        )

    def test_offset_is_converted_to_utc(self) -> None:
        self.assertEqual(
            parse_datetime("2024-05-02T10:30:00+02:00"),
            datetime(2024, 5, 2, 8, 30, tzinfo=timezone.utc),
        )

    def test_date_only_and_date_objects(self) -> None:
        expected = datetime(2024, 5, 2, tzinfo=timezone.utc)
        self.assertEqual(parse_datetime("2024-05-02"), expected)
        self.assertEqual(parse_datetime(date(2024, 5, 2)), expected)

    def test_us_style_and_epoch(self) -> None:
        self.assertEqual(parse_datetime("05/02/2024"), datetime(2024, 5, 2, tzinfo=timezone.utc))
        self.assertEqual(parse_datetime("1700000000"), datetime.fromtimestamp(1700000000, timezone.utc))
        self.assertEqual(parse_datetime(1700000000000), datetime.fromtimestamp(1700000000, timezone.utc))

    def test_garbage_is_none(self) -> None:
        self.assertIsNone(parse_datetime("yesterday-ish"))
        self.assertIsNone(parse_datetime(""))
        self.assertIsNone(parse_datetime(True))


class TimestampHelperTests(unittest.TestCase):
    def test_format_uses_z_suffix(self) -> None:
        value = datetime(2024, 1, 2, 3, 4, 5, 678, tzinfo=timezone.utc)
        self.assertEqual(format_datetime_utc(value), "2024-01-02T03:04:05Z")

    def test_synthetic_timestamps_step_back_from_now(self) -> None:
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        step = timedelta(minutes=1)
        self.assertEqual(synthetic_timestamp(0, 3, step, now), now - timedelta(minutes=3))
        self.assertEqual(synthetic_timestamp(2, 3, step, now), now - timedelta(minutes=1))

    def test_clamp_monotonic(self) -> None:
        a = datetime(2025, 1, 1, 10, tzinfo=timezone.utc)
        b = datetime(2025, 1, 1, 9, tzinfo=timezone.utc)
        c = datetime(2025, 1, 1, 11, tzinfo=timezone.utc)
        self.assertEqual(clamp_monotonic([a, b, c]), [a, a, c])


if __name__ == "__main__":
    unittest.main()
