from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from app.models.planning import Frequency
from app.services.recurrence import (
    advance,
    days_of_week_labels,
    is_due,
    next_due_date,
    recurrence_summary,
)

NOW = datetime(2024, 5, 10, 9, 0, tzinfo=timezone.utc)


def _recurring(**overrides):
    values = {
        "is_active": True,
        "next_due_date": datetime(2024, 5, 10, 8, 0, tzinfo=timezone.utc),
        "end_date": None,
        "frequency": Frequency.daily,
        "interval": 1,
        "day_of_month": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestNextDueDate:
    def test_daily_and_weekly(self) -> None:
        assert next_due_date(date(2024, 1, 1), Frequency.daily, 3) == date(2024, 1, 4)
        assert next_due_date(date(2024, 1, 1), "weekly", 2) == date(2024, 1, 15)

    def test_month_end_clamps_in_leap_year(self) -> None:
        assert next_due_date(date(2024, 1, 31), Frequency.monthly) == date(2024, 2, 29)

    def test_month_end_clamps_in_common_year(self) -> None:
        assert next_due_date(date(2023, 1, 31), Frequency.monthly) == date(2023, 2, 28)

    def test_month_rolls_over_year(self) -> None:
        assert next_due_date(date(2024, 11, 15), Frequency.monthly, 3) == date(
            2025, 2, 15
        )

    def test_pinned_day_of_month_is_clamped(self) -> None:
        result = next_due_date(date(2024, 3, 31), Frequency.monthly, 1, day_of_month=31)
        assert result == date(2024, 4, 30)

    def test_pinned_day_31_into_leap_february(self) -> None:
        result = next_due_date(date(2024, 1, 31), Frequency.monthly, 1, day_of_month=31)
        assert result == date(2024, 2, 29)

    def test_yearly_from_leap_day(self) -> None:
        assert next_due_date(date(2024, 2, 29), Frequency.yearly) == date(2025, 2, 28)

    def test_keeps_time_of_day(self) -> None:
        current = datetime(2024, 1, 31, 14, 30, tzinfo=timezone.utc)
        assert next_due_date(current, Frequency.monthly) == datetime(
            2024, 2, 29, 14, 30, tzinfo=timezone.utc
        )

    @pytest.mark.parametrize("interval", [0, -1])
    def test_rejects_interval_below_one(self, interval) -> None:
        with pytest.raises(ValueError):
            next_due_date(date(2024, 1, 1), Frequency.daily, interval)

    def test_rejects_day_of_month_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            next_due_date(date(2024, 1, 1), Frequency.monthly, 1, day_of_month=32)


class TestIsDue:
    def test_due_when_past(self) -> None:
        assert is_due(_recurring(), NOW)

    def test_not_due_in_future(self) -> None:
        future = datetime(2024, 5, 11, tzinfo=timezone.utc)
        assert not is_due(_recurring(next_due_date=future), NOW)

    def test_inactive_is_never_due(self) -> None:
        assert not is_due(_recurring(is_active=False), NOW)

    def test_ended_recurrence_is_not_due(self) -> None:
        ended = datetime(2024, 5, 9, tzinfo=timezone.utc)
        assert not is_due(_recurring(end_date=ended), NOW)

    def test_naive_stored_dates(self) -> None:
        naive = datetime(2024, 5, 10, 8, 0)
        assert is_due(_recurring(next_due_date=naive), NOW)


class TestAdvance:
    def test_moves_next_due_date(self) -> None:
        recurring = _recurring(
            frequency=Frequency.monthly,
            next_due_date=datetime(2024, 1, 31, tzinfo=timezone.utc),
        )
        advance(recurring)
        assert recurring.next_due_date == datetime(2024, 2, 29, tzinfo=timezone.utc)


class TestLabels:
    def test_days_of_week_labels(self) -> None:
        assert days_of_week_labels([1, 5]) == ["Monday", "Friday"]
        assert days_of_week_labels(None) is None
        assert days_of_week_labels([]) is None

    def test_summary(self) -> None:
        assert recurrence_summary(Frequency.daily) == "Every day"
        assert (
            recurrence_summary(Frequency.weekly, 2, [1, 5])
            == "Every 2 weeks on Monday, Friday"
        )
        assert (
            recurrence_summary(Frequency.monthly, 1, None, 15)
            == "Every month on the 15th"
        )
        assert (
            recurrence_summary(Frequency.monthly, 1, None, 22)
            == "Every month on the 22nd"
        )
        assert recurrence_summary(Frequency.yearly, 3) == "Every 3 years"
