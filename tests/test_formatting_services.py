from datetime import date, datetime, timedelta, timezone

import pytest

from app.services.formatting import (
    format_bytes,
    format_duration,
    format_minutes,
    isoformat,
    progress_percentage,
    time_ago,
)

START = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestFormatBytes:
    @pytest.mark.parametrize(
        "size,expected",
        [
            (None, "0 B"),
            (0, "0 B"),
            (512, "512 B"),
            (1024, "1 KB"),
            (1536, "1.5 KB"),
            (1024 * 1024 * 3, "3 MB"),
        ],
    )
    def test_units(self, size, expected) -> None:
        assert format_bytes(size) == expected

    def test_two_decimals_max(self) -> None:
        assert format_bytes(1100) == "1.07 KB"


class TestFormatDuration:
    def test_days_collapse_seconds(self) -> None:
        end = START + timedelta(days=2, hours=3, minutes=5, seconds=9)
        assert format_duration(START, end) == "2 days, 3 hours, 5 minutes"

    def test_hours(self) -> None:
        end = START + timedelta(hours=3, minutes=5)
        assert format_duration(START, end) == "3 hours, 5 minutes"

    def test_minutes(self) -> None:
        end = START + timedelta(minutes=5, seconds=10)
        assert format_duration(START, end) == "5 minutes, 10 seconds"

    def test_seconds_singular(self) -> None:
        assert format_duration(START, START + timedelta(seconds=1)) == "1 second"

    def test_missing_start(self) -> None:
        assert format_duration(None, START) is None

    def test_naive_datetimes_are_utc(self) -> None:
        naive = START.replace(tzinfo=None)
        assert format_duration(naive, START + timedelta(seconds=10)) == "10 seconds"


class TestFormatMinutes:
    @pytest.mark.parametrize(
        "minutes,expected",
        [(None, "0m"), (0, "0m"), (45, "45m"), (90, "1h 30m"), (120, "2h")],
    )
    def test_values(self, minutes, expected) -> None:
        assert format_minutes(minutes) == expected


class TestProgressAndTime:
    def test_progress_percentage(self) -> None:
        assert progress_percentage(1, 3) == 33.33
        assert progress_percentage(5, 0) == 0.0

    def test_time_ago(self) -> None:
        assert time_ago(START - timedelta(hours=2), START) == "2 hours ago"
        assert time_ago(START + timedelta(days=1), START) == "1 day from now"
        assert time_ago(START, START) == "just now"

    def test_isoformat(self) -> None:
        assert isoformat(START.replace(tzinfo=None)) == "2024-03-01T12:00:00+00:00"
        assert isoformat(date(2024, 3, 1)) == "2024-03-01"
        assert isoformat(None) is None
