from __future__ import annotations

import logging
import math
import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta

from .aggregation import Aggregator
from .businesstime import business_datetime_as_utc, to_utc
from .db import Database
from .errors import (
    AlreadyRunning,
    BucketNotFound,
    InvalidAmount,
    InvalidRange,
    NonPositiveDuration,
    NotRunning,
    SessionNotFound,
    UserNotFound,
)
from .isoweek import date_range_of_iso_week
from .models import (
    MODES,
    PAYMENT,
    MonthSummary,
    User,
    WeekBucket,
    WeekSummary,
    WorkSession,
    effective_hourly_rate,
)
from .resolver import attribute_date, resolve_from_calendar_date, resolve_from_instant

# Manual entries carry only a date and a duration; they are laid out so they
# end at this Florida hour on that date.
MANUAL_ENTRY_END_HOUR = 17


def _elapsed_seconds(start_utc: datetime, end_utc: datetime) -> int:
    return math.floor((to_utc(end_utc) - to_utc(start_utc)).total_seconds())


def _require_mode(mode: str) -> None:
    if mode not in MODES:
        raise ValueError(f"Unknown mode {mode!r}; expected one of {', '.join(MODES)}")


def _require_positive_amount(amount: float | None) -> float:
    if amount is None or isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount <= 0:
        raise InvalidAmount(amount)
    return float(amount)


class WorkTracker:
    """Start/stop/edit/delete work sessions and keep their buckets consistent.

    Callers pass every instant explicitly; nothing here reads the clock.
    """

    def __init__(self, db: Database, logger: logging.Logger | None = None) -> None:
        self.db = db
        self.logger = logger or logging.getLogger(__name__)
        self.aggregator = Aggregator(db, logger=self.logger)

    def register_user(self, user_id: str, hourly_rate: float) -> User:
        if hourly_rate <= 0:
            raise ValueError("Hourly rate must be positive")
        previous = self.db.get_user(user_id)
        user = self.db.upsert_user(user_id, float(hourly_rate))

        # Stored hourly earnings were computed with the old rate.
        if previous is not None and previous.hourly_rate != user.hourly_rate:
            buckets = self.db.list_weeks_for_user(user_id)
            for bucket in buckets:
                self.aggregator.refresh(bucket)
            self.logger.info(
                "Hourly rate changed: user=%s rate=%s refreshed_weeks=%s",
                user_id,
                user.hourly_rate,
                len(buckets),
            )
        return user

    def _require_user(self, user_id: str) -> User:
        user = self.db.get_user(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    def _get_owned_session(self, session_id: str, user_id: str | None) -> WorkSession:
        session = self.db.get_session(session_id)
        # Another user's session is reported exactly like a missing one.
        if session is None or (user_id is not None and session.user_id != user_id):
            raise SessionNotFound(session_id)
        return session

    def _bucket_of(self, session: WorkSession) -> WeekBucket | None:
        if session.week_id is None:
            return None
        return self.db.get_week_bucket(session.week_id)

    # Lifecycle

    def start_session(
        self,
        user_id: str,
        mode: str,
        started_at_utc: datetime,
        job_number: str | None = None,
    ) -> WorkSession:
        _require_mode(mode)
        if self.db.find_open_session(user_id, mode) is not None:
            raise AlreadyRunning(user_id, mode)
        self._require_user(user_id)

        started = to_utc(started_at_utc)
        key = resolve_from_instant(started)
        bucket = self.aggregator.ensure_week_bucket(user_id, key)

        session = WorkSession(
            id=uuid.uuid4().hex,
            user_id=user_id,
            mode=mode,
            start_utc=started,
            attributed_date=key.calendar_date,
            week_id=bucket.id,
            job_number=job_number or None,
        )
        try:
            self.db.insert_session(session)
        except AlreadyRunning:
            # A concurrent start won; drop the bucket if it was created just for us.
            self.aggregator.refresh(bucket)
            raise
        self.logger.info(
            "Session started: user=%s mode=%s week=%s/%s",
            user_id,
            mode,
            key.week_number,
            key.week_year,
        )
        return session

    def stop_session(
        self,
        user_id: str,
        mode: str,
        ended_at_utc: datetime,
        amount: float | None = None,
        job_number: str | None = None,
    ) -> WorkSession:
        _require_mode(mode)
        session = self.db.find_open_session(user_id, mode)
        if session is None:
            raise NotRunning(user_id, mode)

        ended = to_utc(ended_at_utc)
        duration = _elapsed_seconds(session.start_utc, ended)
        if duration <= 0:
            raise NonPositiveDuration(duration)

        paid = None
        rate = None
        if mode == PAYMENT:
            paid = _require_positive_amount(amount)
            rate = effective_hourly_rate(paid, duration)

        bucket = self._bucket_of(session)
        if bucket is None:
            bucket = self.aggregator.ensure_week_bucket(
                user_id, resolve_from_calendar_date(session.attributed_date)
            )

        stopped = replace(
            session,
            end_utc=ended,
            duration_seconds=duration,
            week_id=bucket.id,
            amount=paid,
            hourly_rate=rate,
            job_number=job_number or session.job_number,
        )
        self.db.update_session(stopped)
        self.aggregator.refresh(bucket)
        self.logger.info("Session stopped: user=%s mode=%s tracked=%ss", user_id, mode, duration)
        return stopped

    def edit_session(
        self,
        session_id: str,
        started_at_utc: datetime,
        ended_at_utc: datetime,
        *,
        attributed_date: date | None = None,
        amount: float | None = None,
        job_number: str | None = None,
        user_id: str | None = None,
    ) -> WorkSession:
        session = self._get_owned_session(session_id, user_id)

        started = to_utc(started_at_utc)
        ended = to_utc(ended_at_utc)
        if ended <= started:
            raise InvalidRange(started, ended)
        duration = _elapsed_seconds(started, ended)
        if duration <= 0:
            raise NonPositiveDuration(duration)

        paid = None
        rate = None
        if session.mode == PAYMENT:
            paid = _require_positive_amount(session.amount if amount is None else amount)
            rate = effective_hourly_rate(paid, duration)

        # An explicitly chosen date wins over the Florida date of the new start.
        day = attribute_date(started, attributed_date)
        key = resolve_from_calendar_date(day)
        new_bucket = self.aggregator.ensure_week_bucket(session.user_id, key)
        old_bucket = self._bucket_of(session)

        edited = replace(
            session,
            start_utc=started,
            end_utc=ended,
            duration_seconds=duration,
            attributed_date=day,
            week_id=new_bucket.id,
            amount=paid,
            hourly_rate=rate,
            job_number=session.job_number if job_number is None else (job_number or None),
        )
        self.db.update_session(edited)

        if old_bucket is not None and old_bucket.id != new_bucket.id:
            self.logger.info(
                "Session %s moved from week %s/%s to %s/%s",
                session_id,
                old_bucket.week_number,
                old_bucket.week_year,
                new_bucket.week_number,
                new_bucket.week_year,
            )
            self.aggregator.refresh(old_bucket)
        self.aggregator.refresh(new_bucket)
        return edited

    def delete_session(self, session_id: str, user_id: str | None = None) -> WorkSession:
        session = self._get_owned_session(session_id, user_id)
        bucket = self._bucket_of(session)

        self.db.delete_session(session_id)
        self.logger.info("Session deleted: user=%s id=%s", session.user_id, session_id)

        if bucket is not None:
            self.aggregator.refresh(bucket)
        return session

    def log_manual_session(
        self,
        user_id: str,
        mode: str,
        day: date,
        duration_seconds: int,
        amount: float | None = None,
        job_number: str | None = None,
    ) -> WorkSession:
        """Record a finished session from a calendar date and a duration only.

        The clock times are synthesized to end at MANUAL_ENTRY_END_HOUR on
        ``day``. The bucket is resolved from ``day`` itself and not from the
        synthesized start, which may fall on the previous Florida day for
        long durations.
        """
        _require_mode(mode)
        self._require_user(user_id)

        duration = int(duration_seconds)
        if duration <= 0:
            raise NonPositiveDuration(duration)

        paid = None
        rate = None
        if mode == PAYMENT:
            paid = _require_positive_amount(amount)
            rate = effective_hourly_rate(paid, duration)

        ended = business_datetime_as_utc(day, MANUAL_ENTRY_END_HOUR)
        started = ended - timedelta(seconds=duration)
        key = resolve_from_calendar_date(day)
        bucket = self.aggregator.ensure_week_bucket(user_id, key)

        session = WorkSession(
            id=uuid.uuid4().hex,
            user_id=user_id,
            mode=mode,
            start_utc=started,
            attributed_date=day,
            end_utc=ended,
            duration_seconds=duration,
            week_id=bucket.id,
            amount=paid,
            hourly_rate=rate,
            job_number=job_number or None,
        )
        self.db.insert_session(session)
        self.aggregator.refresh(bucket)
        self.logger.info("Manual session logged: user=%s mode=%s day=%s tracked=%ss", user_id, mode, day, duration)
        return session

    def set_job_number(self, user_id: str, mode: str, job_number: str | None) -> WorkSession:
        _require_mode(mode)
        session = self.db.find_open_session(user_id, mode)
        if session is None:
            raise NotRunning(user_id, mode)
        return self.db.update_session(replace(session, job_number=job_number or None))

    # Queries

    def get_active_session(self, user_id: str, mode: str) -> WorkSession | None:
        _require_mode(mode)
        return self.db.find_open_session(user_id, mode)

    def elapsed_seconds(self, session: WorkSession, now_utc: datetime) -> int:
        if session.duration_seconds is not None:
            return session.duration_seconds
        return max(0, _elapsed_seconds(session.start_utc, now_utc))

    def _summarize(self, bucket: WeekBucket) -> WeekSummary:
        return WeekSummary(
            week_number=bucket.week_number,
            week_year=bucket.week_year,
            start_date=bucket.start_date,
            end_date=bucket.end_date,
            session_count=self.db.count_completed_in_bucket(bucket.id),
            total_hours=bucket.total_hours,
            total_earnings=bucket.total_earnings,
            company_paid=bucket.company_paid,
            bucket_id=bucket.id,
        )

    def current_week(self, user_id: str, now_utc: datetime) -> WeekSummary:
        key = resolve_from_instant(now_utc)
        bucket = self.db.find_week_bucket(user_id, key.week_number, key.week_year)
        if bucket is not None:
            return self._summarize(bucket)

        week_range = date_range_of_iso_week(key.week_number, key.week_year)
        return WeekSummary(
            week_number=key.week_number,
            week_year=key.week_year,
            start_date=week_range.start_date,
            end_date=week_range.end_date,
            session_count=0,
            total_hours=0.0,
            total_earnings=0.0,
        )

    def month_summary(self, user_id: str, year: int, month: int) -> MonthSummary:
        summary = self.db.find_month_summary(user_id, year, month)
        if summary is None:
            return MonthSummary(user_id=user_id, year=year, month=month)
        return summary

    def weeks_for_month(self, user_id: str, year: int, month: int) -> list[WeekSummary]:
        return [self._summarize(bucket) for bucket in self.db.list_weeks_for_month(user_id, year, month)]

    def weekly_summaries(self, user_id: str, start_date: date, end_date: date) -> list[WeekSummary]:
        """Per-week totals for every week overlapping the date range, newest first."""
        if end_date < start_date:
            raise InvalidRange(start_date, end_date)
        return [self._summarize(bucket) for bucket in self.db.list_weeks_between(user_id, start_date, end_date)]

    def sessions_for_week(self, bucket_id: int) -> list[WorkSession]:
        return self.db.list_sessions_in_bucket(bucket_id)

    # Company payments

    def record_week_company_payment(
        self,
        user_id: str,
        week_number: int,
        week_year: int,
        amount: float | None,
    ) -> WeekSummary:
        if amount is not None and amount < 0:
            raise InvalidAmount(amount)
        bucket = self.db.find_week_bucket(user_id, week_number, week_year)
        if bucket is None:
            raise BucketNotFound(user_id, week_number, week_year)

        self.db.set_week_company_paid(bucket.id, amount)
        return self._summarize(replace(bucket, company_paid=amount))

    def record_month_company_payment(
        self,
        user_id: str,
        year: int,
        month: int,
        amount: float | None,
    ) -> MonthSummary:
        if not 1 <= month <= 12:
            raise ValueError("month must be between 1 and 12")
        if amount is not None and amount < 0:
            raise InvalidAmount(amount)
        return self.db.set_month_company_paid(user_id, year, month, amount)
