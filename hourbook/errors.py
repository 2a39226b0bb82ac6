"""Typed failures raised by the tracker core.

Every business-rule violation derives from TrackerError so the command layer
can catch one type and turn it into a message.
"""

from __future__ import annotations

from datetime import date


class TrackerError(Exception):
    """Base exception for tracker business-rule failures."""


class AlreadyRunning(TrackerError):
    def __init__(self, user_id: str, mode: str) -> None:
        self.user_id = user_id
        self.mode = mode
        super().__init__(f"A {mode} session is already running for user {user_id}")


class NotRunning(TrackerError):
    def __init__(self, user_id: str, mode: str) -> None:
        self.user_id = user_id
        self.mode = mode
        super().__init__(f"No {mode} session is running for user {user_id}")


class NonPositiveDuration(TrackerError):
    def __init__(self, duration_seconds: int) -> None:
        self.duration_seconds = duration_seconds
        super().__init__(f"Session duration must be positive, got {duration_seconds}s")


class InvalidRange(TrackerError):
    """Raised when an edited session does not end after it starts."""

    def __init__(self, start: date, end: date) -> None:
        self.start = start
        self.end = end
        super().__init__(f"End {end} must be after start {start}")


class InvalidAmount(TrackerError):
    def __init__(self, amount: float | None) -> None:
        self.amount = amount
        super().__init__(f"Invalid payment amount: {amount!r}")


class UserNotFound(TrackerError):
    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class SessionNotFound(TrackerError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class BucketNotFound(TrackerError):
    def __init__(self, user_id: str, week_number: int, week_year: int) -> None:
        self.user_id = user_id
        self.week_number = week_number
        self.week_year = week_year
        super().__init__(f"No week {week_number}/{week_year} recorded for user {user_id}")


class BucketRaceLoser(TrackerError):
    """Raised by the store when another writer created the same week bucket first.

    Internal: Aggregator.ensure_week_bucket absorbs it by re-fetching.
    """

    def __init__(self, user_id: str, week_number: int, week_year: int) -> None:
        self.user_id = user_id
        self.week_number = week_number
        self.week_year = week_year
        super().__init__(f"Week {week_number}/{week_year} for user {user_id} already exists")
