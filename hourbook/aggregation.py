from __future__ import annotations

import logging

from .db import Database
from .errors import BucketRaceLoser, UserNotFound
from .isoweek import date_range_of_iso_week
from .models import HOURLY, PAYMENT, BucketKey, Totals, WeekBucket

ZERO_TOTALS = Totals(total_hours=0.0, total_earnings=0.0)


class Aggregator:
    """Keeps week and month totals equal to the sum of their sessions.

    Totals are always recomputed from the persisted sessions rather than
    adjusted by deltas, so running a recompute again (or concurrently) is
    harmless. Empty week buckets and empty months are deleted.
    """

    def __init__(self, db: Database, logger: logging.Logger | None = None) -> None:
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    def ensure_week_bucket(self, user_id: str, key: BucketKey) -> WeekBucket:
        bucket = self.db.find_week_bucket(user_id, key.week_number, key.week_year)
        if bucket is not None:
            return bucket

        if self.db.get_user(user_id) is None:
            raise UserNotFound(user_id)

        week_range = date_range_of_iso_week(key.week_number, key.week_year)
        try:
            bucket = self.db.create_week_bucket(
                user_id,
                key.week_number,
                key.week_year,
                week_range.start_date,
                week_range.end_date,
            )
        except BucketRaceLoser:
            # Another writer created the row between our lookup and insert.
            self.logger.debug(
                "Lost bucket creation race: user=%s week=%s/%s",
                user_id,
                key.week_number,
                key.week_year,
            )
            bucket = self.db.find_week_bucket(user_id, key.week_number, key.week_year)
            if bucket is None:
                raise
            return bucket

        self.logger.info("Week bucket created: user=%s week=%s/%s", user_id, key.week_number, key.week_year)
        return bucket

    def recompute_week_totals(self, bucket_id: int) -> Totals:
        bucket = self.db.get_week_bucket(bucket_id)
        if bucket is None:
            return ZERO_TOTALS

        sessions = self.db.list_sessions_in_bucket(bucket_id)
        if not sessions:
            self.db.delete_week_bucket(bucket_id)
            self.logger.info(
                "Week bucket removed: user=%s week=%s/%s",
                bucket.user_id,
                bucket.week_number,
                bucket.week_year,
            )
            return ZERO_TOTALS

        user = self.db.get_user(bucket.user_id)
        if user is None:
            raise UserNotFound(bucket.user_id)

        total_seconds = 0
        hourly_seconds = 0
        paid_amount = 0.0
        for session in sessions:
            if session.duration_seconds is None:
                continue
            total_seconds += session.duration_seconds
            # Payment amounts are authoritative; hourly earnings come from the rate.
            if session.mode == PAYMENT:
                paid_amount += session.amount or 0.0
            elif session.mode == HOURLY:
                hourly_seconds += session.duration_seconds

        totals = Totals(
            total_hours=total_seconds / 3600,
            total_earnings=hourly_seconds / 3600 * user.hourly_rate + paid_amount,
        )
        self.db.update_week_totals(bucket_id, totals.total_hours, totals.total_earnings)
        return totals

    def recompute_month_totals(self, user_id: str, year: int, month: int) -> Totals:
        weeks = self.db.list_weeks_for_month(user_id, year, month)
        if not weeks:
            summary = self.db.find_month_summary(user_id, year, month)
            if summary is not None and summary.company_paid is not None:
                # The recorded company payment outlives the tracked weeks.
                self.db.upsert_month_summary(user_id, year, month, 0.0, 0.0)
            else:
                self.db.delete_month_summary(user_id, year, month)
            return ZERO_TOTALS

        totals = Totals(
            total_hours=sum(week.total_hours for week in weeks),
            total_earnings=sum(week.total_earnings for week in weeks),
        )
        self.db.upsert_month_summary(user_id, year, month, totals.total_hours, totals.total_earnings)
        return totals

    def refresh(self, bucket: WeekBucket) -> tuple[Totals, Totals]:
        """Recompute a week bucket and then the month it is attributed to."""
        week_totals = self.recompute_week_totals(bucket.id)
        month_totals = self.recompute_month_totals(bucket.user_id, bucket.month_year, bucket.month)
        return week_totals, month_totals
