from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from .models import BusinessComponents

# Business days are always Florida days, whatever the host is configured with.
BUSINESS_TZ = ZoneInfo("America/New_York")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize a timezone-aware datetime to UTC for storage."""
    if value.tzinfo is None:
        raise ValueError("Datetime must be timezone-aware")
    return value.astimezone(timezone.utc)


def to_business_components(instant: datetime) -> BusinessComponents:
    local = to_utc(instant).astimezone(BUSINESS_TZ)
    return BusinessComponents(
        year=local.year,
        month=local.month,
        day=local.day,
        hour=local.hour,
        minute=local.minute,
    )


def business_date_of(instant: datetime) -> date:
    return to_business_components(instant).date


def business_datetime_as_utc(day: date, hour: int, minute: int = 0) -> datetime:
    if isinstance(day, datetime):
        raise TypeError("Expected a calendar date, got a datetime")
    local = datetime.combine(day, time(hour, minute), tzinfo=BUSINESS_TZ)
    return local.astimezone(timezone.utc)


def business_midnight_as_utc(year: int, month: int, day: int) -> datetime:
    """UTC instant of 00:00 Florida time on the given calendar date."""
    return business_datetime_as_utc(date(year, month, day), 0)


def parse_business_datetime(value: str) -> datetime:
    """Parse user-typed ``YYYY-MM-DD HH:MM`` as Florida wall time.

    Text carrying an explicit UTC offset is taken at face value.
    """
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=BUSINESS_TZ)
    return parsed.astimezone(timezone.utc)
