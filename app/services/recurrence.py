"""Recurrence calculator for recurring tasks.

Month and year steps clamp to the last day of a shorter target month, so
Jan 31 + 1 month is Feb 29 in a leap year rather than an overflow into
March. A pinned ``day_of_month`` is clamped the same way.
"""

import calendar
from datetime import date, datetime, timedelta

from app.models.planning import Frequency
from app.services.common import ensure_utc, utcnow

DAY_LABELS = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}


def _clamped(value, year: int, month: int, day: int):
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(day, last_day))


def add_months(value: date | datetime, months: int):
    index = value.month - 1 + months
    year = value.year + index // 12
    month = index % 12 + 1
    return _clamped(value, year, month, value.day)


def next_due_date(
    current: date | datetime,
    frequency: Frequency | str,
    interval: int = 1,
    day_of_month: int | None = None,
):
    if not isinstance(frequency, Frequency):
        frequency = Frequency(frequency)
    if interval < 1:
        raise ValueError("interval must be at least 1")
    if day_of_month is not None and not 1 <= day_of_month <= 31:
        raise ValueError("day_of_month must be between 1 and 31")

    if frequency == Frequency.daily:
        return current + timedelta(days=interval)
    if frequency == Frequency.weekly:
        return current + timedelta(weeks=interval)
    if frequency == Frequency.monthly:
        result = add_months(current, interval)
        if day_of_month is not None:
            result = _clamped(result, result.year, result.month, day_of_month)
        return result
    return add_months(current, 12 * interval)


def is_due(recurring, now: datetime | None = None) -> bool:
    now = ensure_utc(now) if now is not None else utcnow()
    if not recurring.is_active:
        return False
    if ensure_utc(recurring.next_due_date) > now:
        return False
    return recurring.end_date is None or ensure_utc(recurring.end_date) >= now


def advance(recurring) -> datetime:
    recurring.next_due_date = next_due_date(
        ensure_utc(recurring.next_due_date),
        recurring.frequency,
        recurring.interval or 1,
        recurring.day_of_month,
    )
    return recurring.next_due_date


def days_of_week_labels(days: list[int] | None) -> list[str] | None:
    if not days:
        return None
    return [DAY_LABELS.get(day, str(day)) for day in days]


def _ordinal(day: int) -> str:
    if 11 <= day <= 13:
        return f"{day}th"
    return f"{day}{({1: 'st', 2: 'nd', 3: 'rd'}).get(day % 10, 'th')}"


_UNITS = {
    Frequency.daily: ("day", "Every day"),
    Frequency.weekly: ("week", "Every week"),
    Frequency.monthly: ("month", "Every month"),
    Frequency.yearly: ("year", "Every year"),
}


def recurrence_summary(
    frequency: Frequency,
    interval: int = 1,
    days_of_week: list[int] | None = None,
    day_of_month: int | None = None,
) -> str:
    unit, single = _UNITS[frequency]
    summary = single if interval == 1 else f"Every {interval} {unit}s"
    if frequency == Frequency.weekly and days_of_week:
        summary += " on " + ", ".join(days_of_week_labels(days_of_week))
    if frequency == Frequency.monthly and day_of_month:
        summary += f" on the {_ordinal(day_of_month)}"
    return summary
