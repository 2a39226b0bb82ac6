from __future__ import annotations

from datetime import date, datetime

from .businesstime import business_date_of
from .isoweek import iso_week_of
from .models import BucketKey, WorkSession


def attribute_date(start_utc: datetime, explicit_date: date | None = None) -> date:
    """Business day a session counts toward.

    A date the user picked wins; otherwise the Florida date of the start.
    """
    if explicit_date is not None:
        return explicit_date
    return business_date_of(start_utc)


def resolve_from_calendar_date(day: date) -> BucketKey:
    # No timezone conversion here: the date already is the business day.
    week = iso_week_of(day)
    return BucketKey(week_number=week.week_number, week_year=week.week_year, calendar_date=day)


def resolve_from_instant(instant: datetime) -> BucketKey:
    return resolve_from_calendar_date(business_date_of(instant))


def resolve_bucket_key(session: WorkSession) -> BucketKey:
    if session.attributed_date is not None:
        return resolve_from_calendar_date(session.attributed_date)
    return resolve_from_instant(session.start_utc)
