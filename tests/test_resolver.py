from datetime import date, datetime, timezone

from hourbook.models import HOURLY, BucketKey, WorkSession
from hourbook.resolver import (
    attribute_date,
    resolve_bucket_key,
    resolve_from_calendar_date,
    resolve_from_instant,
)

from .conftest import florida


def test_instant_resolves_through_florida_date() -> None:
    # 03:00 UTC Monday is 22:00 Sunday in Florida.
    key = resolve_from_instant(datetime(2026, 2, 23, 3, 0, tzinfo=timezone.utc))

    assert key == BucketKey(week_number=8, week_year=2026, calendar_date=date(2026, 2, 22))


def test_calendar_date_resolves_without_conversion() -> None:
    assert resolve_from_calendar_date(date(2026, 2, 23)) == BucketKey(9, 2026, date(2026, 2, 23))
    assert resolve_from_calendar_date(date(2025, 12, 31)) == BucketKey(1, 2026, date(2025, 12, 31))


def test_explicit_date_wins_over_start_instant() -> None:
    start = florida(2026, 2, 22, 23, 30)

    assert attribute_date(start) == date(2026, 2, 22)
    assert attribute_date(start, date(2026, 2, 23)) == date(2026, 2, 23)


def test_stored_date_is_not_converted_again() -> None:
    # Early-morning Florida Monday; its UTC-midnight reading must stay Monday.
    start = florida(2026, 2, 23, 0, 30)
    session = WorkSession(
        id="s1",
        user_id="100",
        mode=HOURLY,
        start_utc=start.astimezone(timezone.utc),
        attributed_date=attribute_date(start),
    )

    key = resolve_bucket_key(session)

    assert key.calendar_date == date(2026, 2, 23)
    assert (key.week_number, key.week_year) == (9, 2026)


def test_manual_attribution_overrides_start_instant() -> None:
    # Synthesized start lands on the previous Florida day; the picked date rules.
    session = WorkSession(
        id="s2",
        user_id="100",
        mode=HOURLY,
        start_utc=florida(2026, 2, 22, 21, 0).astimezone(timezone.utc),
        attributed_date=date(2026, 2, 23),
    )

    assert resolve_bucket_key(session) == BucketKey(9, 2026, date(2026, 2, 23))
