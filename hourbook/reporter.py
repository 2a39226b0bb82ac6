from __future__ import annotations

import calendar
from datetime import date, datetime

from .errors import (
    AlreadyRunning,
    BucketNotFound,
    InvalidAmount,
    InvalidRange,
    NonPositiveDuration,
    NotRunning,
    SessionNotFound,
    TrackerError,
    UserNotFound,
)
from .models import PAYMENT, MonthSummary, WeekSummary, WorkSession
from .tracker import WorkTracker


def format_seconds(total_seconds: int) -> str:
    """Render a duration as HH:MM:SS for consistent report output."""
    safe_seconds = max(0, int(total_seconds))
    hours, remainder = divmod(safe_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}"


def format_currency(amount: float) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_week_range(summary: WeekSummary) -> str:
    return f"{summary.start_date:%b %d} - {summary.end_date:%b %d, %Y}"


def build_week_line(summary: WeekSummary) -> str:
    line = (
        f"- Week {summary.week_number}/{summary.week_year} ({format_week_range(summary)}): "
        f"`{summary.total_hours:.2f} h` | {format_currency(summary.total_earnings)} "
        f"| {summary.session_count} sessions"
    )
    if summary.company_paid is not None:
        # Difference is company payment minus tracked earnings.
        line += (
            f" | paid {format_currency(summary.company_paid)} "
            f"({format_currency(summary.difference)}, {summary.difference_percentage:+.1f}%)"
        )
    return line


def build_session_line(session: WorkSession) -> str:
    if session.is_open:
        return f"- `{session.id}` {session.attributed_date.isoformat()} running"

    line = f"- `{session.id}` {session.attributed_date.isoformat()} `{format_seconds(session.duration_seconds or 0)}`"
    if session.mode == PAYMENT and session.amount is not None:
        line += f" {format_currency(session.amount)} ({format_currency(session.hourly_rate or 0.0)}/h)"
    if session.job_number:
        line += f" job {session.job_number}"
    return line


def describe_error(exc: TrackerError) -> str:
    """User-facing message for a tracker failure."""
    if isinstance(exc, AlreadyRunning):
        return f"A {exc.mode} timer is already running. Stop it first."
    if isinstance(exc, NotRunning):
        return f"No {exc.mode} timer is running."
    if isinstance(exc, NonPositiveDuration):
        return "The session must last at least one second."
    if isinstance(exc, InvalidRange):
        return "The end time must be after the start time."
    if isinstance(exc, InvalidAmount):
        return "Enter a payment amount greater than zero."
    if isinstance(exc, UserNotFound):
        return "You are not registered yet. Use /register first."
    if isinstance(exc, SessionNotFound):
        return f"Session `{exc.session_id}` was not found."
    if isinstance(exc, BucketNotFound):
        return f"No sessions recorded for week {exc.week_number}/{exc.week_year}."
    return str(exc)


class Reporter:
    def __init__(self, tracker: WorkTracker) -> None:
        self.tracker = tracker

    def build_week_report(self, user_id: str, now_utc: datetime) -> str:
        summary = self.tracker.current_week(user_id, now_utc)
        header = f"**Week {summary.week_number}/{summary.week_year}** ({format_week_range(summary)})"
        if summary.session_count == 0:
            return f"{header}\nNo completed sessions this week."

        lines = [
            header,
            f"Hours: `{summary.total_hours:.2f}`",
            f"Earnings: {format_currency(summary.total_earnings)}",
            f"Average rate: {format_currency(summary.average_hourly_rate)}/h",
        ]
        if summary.bucket_id is not None:
            lines.extend(build_session_line(session) for session in self.tracker.sessions_for_week(summary.bucket_id))
        return "\n".join(lines)

    def build_month_report(self, user_id: str, year: int, month: int) -> str:
        summary = self.tracker.month_summary(user_id, year, month)
        weeks = self.tracker.weeks_for_month(user_id, year, month)
        header = f"**{calendar.month_name[month]} {year}**"

        if not weeks:
            return f"{header}\nNo tracked activity for {calendar.month_name[month]} {year}."

        return "\n".join([header, _month_totals_line(summary), *(build_week_line(week) for week in weeks)])

    def build_summary_report(self, user_id: str, start_date: date, end_date: date) -> str:
        rows = self.tracker.weekly_summaries(user_id, start_date, end_date)
        header = f"**Weekly summary {start_date.isoformat()} to {end_date.isoformat()}**"
        if not rows:
            return f"{header}\nNo tracked weeks in this range."
        return "\n".join([header, *(build_week_line(row) for row in rows)])


def _month_totals_line(summary: MonthSummary) -> str:
    line = f"Total: `{summary.total_hours:.2f} h` | {format_currency(summary.total_earnings)}"
    if summary.company_paid is not None:
        line += f" | company paid {format_currency(summary.company_paid)}"
    return line
