import time
from datetime import date, datetime, timedelta, timezone

import pytest

from hourbook.businesstime import (
    business_date_of,
    business_datetime_as_utc,
    business_midnight_as_utc,
    parse_business_datetime,
    to_business_components,
    to_utc,
)
from hourbook.models import BusinessComponents


def test_components_in_standard_time() -> None:
    instant = datetime(2026, 1, 15, 4, 59, tzinfo=timezone.utc)

    assert to_business_components(instant) == BusinessComponents(2026, 1, 14, 23, 59)


def test_components_in_daylight_time() -> None:
    instant = datetime(2026, 7, 1, 3, 30, tzinfo=timezone.utc)

    assert to_business_components(instant) == BusinessComponents(2026, 6, 30, 23, 30)


def test_utc_monday_is_still_sunday_in_florida() -> None:
    instant = datetime(2026, 2, 23, 3, 0, tzinfo=timezone.utc)

    assert business_date_of(instant) == date(2026, 2, 22)


def test_business_midnight_offsets_follow_dst() -> None:
    assert business_midnight_as_utc(2026, 1, 15) == datetime(2026, 1, 15, 5, 0, tzinfo=timezone.utc)
    assert business_midnight_as_utc(2026, 7, 15) == datetime(2026, 7, 15, 4, 0, tzinfo=timezone.utc)
    # Transition days: the clocks change at 02:00, after midnight.
    assert business_midnight_as_utc(2026, 3, 8) == datetime(2026, 3, 8, 5, 0, tzinfo=timezone.utc)
    assert business_midnight_as_utc(2026, 11, 1) == datetime(2026, 11, 1, 4, 0, tzinfo=timezone.utc)


def test_business_midnight_round_trip() -> None:
    day = date(2025, 12, 20)
    while day <= date(2027, 1, 10):
        components = to_business_components(business_midnight_as_utc(day.year, day.month, day.day))
        assert components == BusinessComponents(day.year, day.month, day.day, 0, 0)
        day += timedelta(days=1)


def test_components_ignore_host_timezone(monkeypatch) -> None:
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")

    instant = datetime(2026, 2, 23, 3, 0, tzinfo=timezone.utc)
    monkeypatch.setenv("TZ", "Asia/Tokyo")
    time.tzset()
    try:
        assert to_business_components(instant) == BusinessComponents(2026, 2, 22, 22, 0)
    finally:
        monkeypatch.undo()
        time.tzset()


def test_business_datetime_as_utc() -> None:
    assert business_datetime_as_utc(date(2026, 2, 23), 17) == datetime(2026, 2, 23, 22, 0, tzinfo=timezone.utc)

    with pytest.raises(TypeError):
        business_datetime_as_utc(datetime(2026, 2, 23, 12, 0, tzinfo=timezone.utc), 17)


def test_parse_business_datetime() -> None:
    assert parse_business_datetime("2026-02-23 09:30") == datetime(2026, 2, 23, 14, 30, tzinfo=timezone.utc)
    assert parse_business_datetime(" 2026-07-04 09:30 ") == datetime(2026, 7, 4, 13, 30, tzinfo=timezone.utc)
    assert parse_business_datetime("2026-02-23T09:30+00:00") == datetime(2026, 2, 23, 9, 30, tzinfo=timezone.utc)

    with pytest.raises(ValueError):
        parse_business_datetime("yesterday")


def test_naive_datetimes_are_rejected() -> None:
    with pytest.raises(ValueError):
        to_utc(datetime(2026, 2, 23, 12, 0))
    with pytest.raises(ValueError):
        to_business_components(datetime(2026, 2, 23, 12, 0))
