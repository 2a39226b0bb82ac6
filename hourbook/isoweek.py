"""ISO-8601 week arithmetic on calendar dates.

Weeks start on Monday and week 1 is the week holding the year's first
Thursday. Both directions shift to the Thursday (or Monday) of a date's own
week, so year-boundary weeks need no special cases. Inputs are plain dates;
a datetime is refused because its components may belong to a different
timezone than the business day it is meant to denote.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from .models import IsoWeek, WeekRange


def _require_calendar_date(day: date) -> None:
    if isinstance(day, datetime):
        raise TypeError("Expected a calendar date, got a datetime")


def iso_weekday(day: date) -> int:
    """Monday is 1, Sunday is 7."""
    return day.weekday() + 1


def _thursday_of_week(day: date) -> date:
    return day + timedelta(days=4 - iso_weekday(day))


def iso_week_of(day: date) -> IsoWeek:
    _require_calendar_date(day)
    thursday = _thursday_of_week(day)
    week_year = thursday.year
    first_thursday = _thursday_of_week(date(week_year, 1, 4))
    week_number = 1 + round((thursday - first_thursday).days / 7)
    return IsoWeek(week_number=week_number, week_year=week_year)


def weeks_in_year(week_year: int) -> int:
    # December 28 always falls in the last ISO week of its year.
    return iso_week_of(date(week_year, 12, 28)).week_number


def date_range_of_iso_week(week_number: int, week_year: int) -> WeekRange:
    if not 1 <= week_number <= weeks_in_year(week_year):
        raise ValueError(f"Week {week_number} does not exist in ISO year {week_year}")

    jan4 = date(week_year, 1, 4)
    first_monday = jan4 - timedelta(days=iso_weekday(jan4) - 1)
    start = first_monday + timedelta(weeks=week_number - 1)
    return WeekRange(start_date=start, end_date=start + timedelta(days=6))
