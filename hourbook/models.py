from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

HOURLY = "hourly"
PAYMENT = "payment"
MODES = (HOURLY, PAYMENT)


def effective_hourly_rate(amount: float, duration_seconds: int) -> float:
    """Rate earned per hour for a paid job; 0 when no time was recorded."""
    if duration_seconds <= 0:
        return 0.0
    return amount / (duration_seconds / 3600)


@dataclass(frozen=True, slots=True)
class User:
    user_id: str
    hourly_rate: float


@dataclass(frozen=True, slots=True)
class BusinessComponents:
    year: int
    month: int
    day: int
    hour: int
    minute: int

    @property
    def date(self) -> date:
        return date(self.year, self.month, self.day)


@dataclass(frozen=True, slots=True)
class IsoWeek:
    week_number: int
    week_year: int


@dataclass(frozen=True, slots=True)
class WeekRange:
    start_date: date
    end_date: date

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True, slots=True)
class BucketKey:
    week_number: int
    week_year: int
    calendar_date: date


@dataclass(frozen=True, slots=True)
class WorkSession:
    id: str
    user_id: str
    mode: str
    start_utc: datetime
    attributed_date: date
    end_utc: datetime | None = None
    duration_seconds: int | None = None
    week_id: int | None = None
    amount: float | None = None
    hourly_rate: float | None = None
    job_number: str | None = None

    @property
    def is_open(self) -> bool:
        return self.end_utc is None

    @property
    def is_completed(self) -> bool:
        return self.duration_seconds is not None

    @property
    def hours(self) -> float:
        return (self.duration_seconds or 0) / 3600


@dataclass(frozen=True, slots=True)
class WeekBucket:
    id: int
    user_id: str
    week_number: int
    week_year: int
    start_date: date
    end_date: date
    month_year: int
    month: int
    total_hours: float = 0.0
    total_earnings: float = 0.0
    company_paid: float | None = None


@dataclass(frozen=True, slots=True)
class MonthSummary:
    user_id: str
    year: int
    month: int
    total_hours: float = 0.0
    total_earnings: float = 0.0
    company_paid: float | None = None


@dataclass(frozen=True, slots=True)
class Totals:
    total_hours: float
    total_earnings: float


@dataclass(frozen=True, slots=True)
class WeekSummary:
    week_number: int
    week_year: int
    start_date: date
    end_date: date
    session_count: int
    total_hours: float
    total_earnings: float
    company_paid: float | None = None
    bucket_id: int | None = None

    @property
    def difference(self) -> float | None:
        # Positive when the company paid more than the tracked earnings.
        if self.company_paid is None:
            return None
        return self.company_paid - self.total_earnings

    @property
    def difference_percentage(self) -> float | None:
        difference = self.difference
        if difference is None:
            return None
        if self.total_earnings <= 0:
            return 0.0
        return difference / self.total_earnings * 100

    @property
    def average_hourly_rate(self) -> float:
        if self.total_hours <= 0:
            return 0.0
        return self.total_earnings / self.total_hours
