"""Date arithmetic shared by the analytics engines.

Every "days" metric goes through :func:`ceil_days` so that rounding happens on
exact ``timedelta`` arithmetic rather than on floating-point day counts.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

DAY = timedelta(days=1)


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_datetime(value: date | datetime) -> datetime:
    """Return *value* as an aware datetime; calendar dates map to midnight UTC."""
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    return datetime(value.year, value.month, value.day, tzinfo=UTC)


def as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return as_datetime(value).astimezone(UTC).date()
    return value


def days_between(start: date | datetime, end: date | datetime) -> float:
    return (as_datetime(end) - as_datetime(start)) / DAY


def ceil_days(start: date | datetime, end: date | datetime) -> int:
    """Whole days from *start* to *end*, rounded up (negative spans round toward zero)."""
    delta = as_datetime(end) - as_datetime(start)
    return -((-delta) // DAY)


def round_days(start: date | datetime, end: date | datetime) -> int:
    """Whole days from *start* to *end*, rounded half up."""
    return round_half_up(days_between(start, end))


def round_half_up(value: float, digits: int = 0) -> float | int:
    factor = 10**digits
    scaled = value * factor
    rounded = int(scaled // 1 + (1 if scaled % 1 >= 0.5 else 0))
    if digits == 0:
        return rounded
    return rounded / factor


def calculate_working_days(start: date | datetime | None, end: date | datetime | None) -> int:
    """Count Monday-Friday days in the inclusive range; 10 when either bound is missing."""
    if start is None or end is None:
        return 10
    current = as_date(start)
    last = as_date(end)
    count = 0
    while current <= last:
        if current.weekday() < 5:
            count += 1
        current += DAY
    return count
