from datetime import datetime

from app.services.common import ensure_utc, utcnow

BYTE_UNITS = ("B", "KB", "MB", "GB", "TB")


def _trim(value: float) -> str:
    text = f"{round(value, 2):.2f}"
    return text.rstrip("0").rstrip(".")


def format_bytes(size: int | None) -> str:
    """Base-1024 size with up to two decimals: ``1536 -> "1.5 KB"``."""
    if not size or size <= 0:
        return "0 B"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(BYTE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{_trim(value)} {BYTE_UNITS[unit]}"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def format_duration(start: datetime | None, end: datetime | None = None) -> str | None:
    """Elapsed time collapsed to its coarsest non-zero unit.

    ``2 days, 3 hours, 5 minutes`` / ``3 hours, 5 minutes`` /
    ``5 minutes, 10 seconds`` / ``10 seconds``. ``end`` defaults to now.
    """
    if start is None:
        return None
    start = ensure_utc(start)
    end = ensure_utc(end) if end is not None else utcnow()
    total = max(int((end - start).total_seconds()), 0)
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)
    if days > 0:
        return ", ".join(
            [_plural(days, "day"), _plural(hours, "hour"), _plural(minutes, "minute")]
        )
    if hours > 0:
        return f"{_plural(hours, 'hour')}, {_plural(minutes, 'minute')}"
    if minutes > 0:
        return f"{_plural(minutes, 'minute')}, {_plural(seconds, 'second')}"
    return _plural(seconds, "second")


def format_minutes(minutes: int | None) -> str:
    if not minutes:
        return "0m"
    hours, rest = divmod(int(minutes), 60)
    if hours > 0:
        return f"{hours}h {rest}m" if rest > 0 else f"{hours}h"
    return f"{rest}m"


def progress_percentage(done: float | None, total: float | None) -> float:
    if not total or total <= 0:
        return 0.0
    return round((done or 0) / total * 100, 2)


_AGO_UNITS = (
    ("year", 365 * 86400),
    ("month", 30 * 86400),
    ("week", 7 * 86400),
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)


def time_ago(value: datetime | None, now: datetime | None = None) -> str | None:
    if value is None:
        return None
    now = ensure_utc(now) if now is not None else utcnow()
    delta = int((now - ensure_utc(value)).total_seconds())
    if abs(delta) < 1:
        return "just now"
    suffix = "ago" if delta > 0 else "from now"
    seconds = abs(delta)
    for unit, size in _AGO_UNITS:
        if seconds >= size:
            return f"{_plural(seconds // size, unit)} {suffix}"
    return "just now"


def isoformat(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    return value.isoformat()
