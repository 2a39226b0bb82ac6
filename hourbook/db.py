from __future__ import annotations

import sqlite3
from datetime import date, datetime
from pathlib import Path

from .businesstime import to_utc
from .errors import AlreadyRunning, BucketRaceLoser
from .models import MonthSummary, User, WeekBucket, WorkSession

_SESSION_COLUMNS = (
    "id, user_id, mode, start_utc, end_utc, attributed_date, duration_seconds, "
    "week_id, amount, hourly_rate, job_number"
)


class Database:
    """Thin SQLite access layer for users, sessions, week buckets and month summaries."""

    def __init__(self, db_path: str | Path) -> None:
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._closed = False

    def close(self) -> None:
        if self._closed:
            return
        self._conn.close()
        self._closed = True

    def initialize(self) -> None:
        # week_buckets: one row per (user, ISO week); month_* is the month of the Monday.
        # work_sessions: at most one open row per (user, mode), enforced by a partial index.
        # Dates are ISO "YYYY-MM-DD" text, instants are ISO UTC text.
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS users (
              user_id TEXT PRIMARY KEY,
              hourly_rate REAL NOT NULL
            );

            CREATE TABLE IF NOT EXISTS week_buckets (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              user_id TEXT NOT NULL,
              week_number INTEGER NOT NULL,
              week_year INTEGER NOT NULL,
              start_date TEXT NOT NULL,
              end_date TEXT NOT NULL,
              month_year INTEGER NOT NULL,
              month INTEGER NOT NULL,
              total_hours REAL NOT NULL DEFAULT 0,
              total_earnings REAL NOT NULL DEFAULT 0,
              company_paid REAL,
              UNIQUE (user_id, week_number, week_year)
            );

            CREATE INDEX IF NOT EXISTS week_buckets_by_month
              ON week_buckets (user_id, month_year, month);

            CREATE TABLE IF NOT EXISTS month_summaries (
              user_id TEXT NOT NULL,
              year INTEGER NOT NULL,
              month INTEGER NOT NULL,
              total_hours REAL NOT NULL DEFAULT 0,
              total_earnings REAL NOT NULL DEFAULT 0,
              company_paid REAL,
              PRIMARY KEY (user_id, year, month)
            );

            CREATE TABLE IF NOT EXISTS work_sessions (
              id TEXT PRIMARY KEY,
              user_id TEXT NOT NULL,
              mode TEXT NOT NULL,
              start_utc TEXT NOT NULL,
              end_utc TEXT,
              attributed_date TEXT NOT NULL,
              duration_seconds INTEGER,
              week_id INTEGER REFERENCES week_buckets (id),
              amount REAL,
              hourly_rate REAL,
              job_number TEXT
            );

            CREATE UNIQUE INDEX IF NOT EXISTS one_open_session_per_mode
              ON work_sessions (user_id, mode) WHERE end_utc IS NULL;

            CREATE INDEX IF NOT EXISTS work_sessions_by_week
              ON work_sessions (week_id);
            """
        )
        self._conn.commit()

    # Users

    def get_user(self, user_id: str) -> User | None:
        row = self._conn.execute(
            "SELECT user_id, hourly_rate FROM users WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        if row is None:
            return None
        return User(user_id=row["user_id"], hourly_rate=row["hourly_rate"])

    def upsert_user(self, user_id: str, hourly_rate: float) -> User:
        self._conn.execute(
            """
            INSERT INTO users (user_id, hourly_rate)
            VALUES (?, ?)
            ON CONFLICT(user_id)
            DO UPDATE SET hourly_rate=excluded.hourly_rate
            """,
            (user_id, hourly_rate),
        )
        self._conn.commit()
        return User(user_id=user_id, hourly_rate=hourly_rate)

    # Week buckets

    def find_week_bucket(self, user_id: str, week_number: int, week_year: int) -> WeekBucket | None:
        row = self._conn.execute(
            "SELECT * FROM week_buckets WHERE user_id = ? AND week_number = ? AND week_year = ?",
            (user_id, week_number, week_year),
        ).fetchone()
        return _bucket_from_row(row) if row is not None else None

    def get_week_bucket(self, bucket_id: int) -> WeekBucket | None:
        row = self._conn.execute("SELECT * FROM week_buckets WHERE id = ?", (bucket_id,)).fetchone()
        return _bucket_from_row(row) if row is not None else None

    def create_week_bucket(
        self,
        user_id: str,
        week_number: int,
        week_year: int,
        start_date: date,
        end_date: date,
    ) -> WeekBucket:
        # A week belongs entirely to the month of its Monday.
        try:
            cursor = self._conn.execute(
                """
                INSERT INTO week_buckets
                  (user_id, week_number, week_year, start_date, end_date, month_year, month)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    week_number,
                    week_year,
                    start_date.isoformat(),
                    end_date.isoformat(),
                    start_date.year,
                    start_date.month,
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise BucketRaceLoser(user_id, week_number, week_year) from exc

        return WeekBucket(
            id=cursor.lastrowid,
            user_id=user_id,
            week_number=week_number,
            week_year=week_year,
            start_date=start_date,
            end_date=end_date,
            month_year=start_date.year,
            month=start_date.month,
        )

    def update_week_totals(self, bucket_id: int, total_hours: float, total_earnings: float) -> None:
        self._conn.execute(
            "UPDATE week_buckets SET total_hours = ?, total_earnings = ? WHERE id = ?",
            (total_hours, total_earnings, bucket_id),
        )
        self._conn.commit()

    def set_week_company_paid(self, bucket_id: int, company_paid: float | None) -> None:
        self._conn.execute(
            "UPDATE week_buckets SET company_paid = ? WHERE id = ?",
            (company_paid, bucket_id),
        )
        self._conn.commit()

    def delete_week_bucket(self, bucket_id: int) -> None:
        self._conn.execute("DELETE FROM week_buckets WHERE id = ?", (bucket_id,))
        self._conn.commit()

    def list_weeks_for_month(self, user_id: str, year: int, month: int) -> list[WeekBucket]:
        rows = self._conn.execute(
            """
            SELECT * FROM week_buckets
            WHERE user_id = ? AND month_year = ? AND month = ?
            ORDER BY start_date ASC
            """,
            (user_id, year, month),
        ).fetchall()
        return [_bucket_from_row(row) for row in rows]

    def list_weeks_for_user(self, user_id: str) -> list[WeekBucket]:
        rows = self._conn.execute(
            "SELECT * FROM week_buckets WHERE user_id = ? ORDER BY start_date ASC",
            (user_id,),
        ).fetchall()
        return [_bucket_from_row(row) for row in rows]

    def list_weeks_between(self, user_id: str, start_date: date, end_date: date) -> list[WeekBucket]:
        """Buckets whose Monday..Sunday range overlaps [start_date, end_date], newest first."""
        rows = self._conn.execute(
            """
            SELECT * FROM week_buckets
            WHERE user_id = ? AND start_date <= ? AND end_date >= ?
            ORDER BY start_date DESC
            """,
            (user_id, end_date.isoformat(), start_date.isoformat()),
        ).fetchall()
        return [_bucket_from_row(row) for row in rows]

    # Month summaries

    def find_month_summary(self, user_id: str, year: int, month: int) -> MonthSummary | None:
        row = self._conn.execute(
            "SELECT * FROM month_summaries WHERE user_id = ? AND year = ? AND month = ?",
            (user_id, year, month),
        ).fetchone()
        return _summary_from_row(row) if row is not None else None

    def upsert_month_summary(
        self,
        user_id: str,
        year: int,
        month: int,
        total_hours: float,
        total_earnings: float,
    ) -> MonthSummary:
        self._conn.execute(
            """
            INSERT INTO month_summaries (user_id, year, month, total_hours, total_earnings)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(user_id, year, month)
            DO UPDATE SET total_hours=excluded.total_hours, total_earnings=excluded.total_earnings
            """,
            (user_id, year, month, total_hours, total_earnings),
        )
        self._conn.commit()
        return self.find_month_summary(user_id, year, month)

    def set_month_company_paid(
        self,
        user_id: str,
        year: int,
        month: int,
        company_paid: float | None,
    ) -> MonthSummary:
        self._conn.execute(
            """
            INSERT INTO month_summaries (user_id, year, month, company_paid)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, year, month)
            DO UPDATE SET company_paid=excluded.company_paid
            """,
            (user_id, year, month, company_paid),
        )
        self._conn.commit()
        return self.find_month_summary(user_id, year, month)

    def delete_month_summary(self, user_id: str, year: int, month: int) -> None:
        self._conn.execute(
            "DELETE FROM month_summaries WHERE user_id = ? AND year = ? AND month = ?",
            (user_id, year, month),
        )
        self._conn.commit()

    # Work sessions

    def insert_session(self, session: WorkSession) -> WorkSession:
        try:
            self._conn.execute(
                f"INSERT INTO work_sessions ({_SESSION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                _session_params(session),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            if session.end_utc is None and "UNIQUE" in str(exc):
                raise AlreadyRunning(session.user_id, session.mode) from exc
            raise
        return session

    def update_session(self, session: WorkSession) -> WorkSession:
        params = _session_params(session)
        self._conn.execute(
            """
            UPDATE work_sessions
            SET user_id = ?, mode = ?, start_utc = ?, end_utc = ?, attributed_date = ?,
                duration_seconds = ?, week_id = ?, amount = ?, hourly_rate = ?, job_number = ?
            WHERE id = ?
            """,
            (*params[1:], params[0]),
        )
        self._conn.commit()
        return session

    def get_session(self, session_id: str) -> WorkSession | None:
        row = self._conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM work_sessions WHERE id = ?",
            (session_id,),
        ).fetchone()
        return _session_from_row(row) if row is not None else None

    def delete_session(self, session_id: str) -> None:
        self._conn.execute("DELETE FROM work_sessions WHERE id = ?", (session_id,))
        self._conn.commit()

    def find_open_session(self, user_id: str, mode: str) -> WorkSession | None:
        row = self._conn.execute(
            f"""
            SELECT {_SESSION_COLUMNS} FROM work_sessions
            WHERE user_id = ? AND mode = ? AND end_utc IS NULL
            """,
            (user_id, mode),
        ).fetchone()
        return _session_from_row(row) if row is not None else None

    def list_sessions_in_bucket(self, bucket_id: int) -> list[WorkSession]:
        rows = self._conn.execute(
            f"""
            SELECT {_SESSION_COLUMNS} FROM work_sessions
            WHERE week_id = ?
            ORDER BY start_utc DESC
            """,
            (bucket_id,),
        ).fetchall()
        return [_session_from_row(row) for row in rows]

    def count_completed_in_bucket(self, bucket_id: int) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) AS n FROM work_sessions WHERE week_id = ? AND duration_seconds IS NOT NULL",
            (bucket_id,),
        ).fetchone()
        return int(row["n"])

    def list_sessions(
        self,
        user_id: str,
        *,
        mode: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        completed: bool | None = None,
    ) -> list[WorkSession]:
        clauses = ["user_id = ?"]
        params: list[object] = [user_id]

        if mode is not None:
            clauses.append("mode = ?")
            params.append(mode)
        if start_date is not None:
            clauses.append("attributed_date >= ?")
            params.append(start_date.isoformat())
        if end_date is not None:
            clauses.append("attributed_date <= ?")
            params.append(end_date.isoformat())
        if completed is True:
            clauses.append("duration_seconds IS NOT NULL")
        elif completed is False:
            clauses.append("duration_seconds IS NULL")

        rows = self._conn.execute(
            f"""
            SELECT {_SESSION_COLUMNS} FROM work_sessions
            WHERE {" AND ".join(clauses)}
            ORDER BY start_utc DESC
            """,
            params,
        ).fetchall()
        return [_session_from_row(row) for row in rows]


def _session_params(session: WorkSession) -> tuple:
    return (
        session.id,
        session.user_id,
        session.mode,
        to_utc(session.start_utc).isoformat(),
        to_utc(session.end_utc).isoformat() if session.end_utc is not None else None,
        session.attributed_date.isoformat(),
        session.duration_seconds,
        session.week_id,
        session.amount,
        session.hourly_rate,
        session.job_number,
    )


def _session_from_row(row: sqlite3.Row) -> WorkSession:
    # attributed_date is read back as a bare calendar date, never through a timezone.
    end_utc = row["end_utc"]
    return WorkSession(
        id=row["id"],
        user_id=row["user_id"],
        mode=row["mode"],
        start_utc=datetime.fromisoformat(row["start_utc"]),
        end_utc=datetime.fromisoformat(end_utc) if end_utc is not None else None,
        attributed_date=date.fromisoformat(row["attributed_date"]),
        duration_seconds=row["duration_seconds"],
        week_id=row["week_id"],
        amount=row["amount"],
        hourly_rate=row["hourly_rate"],
        job_number=row["job_number"],
    )


def _bucket_from_row(row: sqlite3.Row) -> WeekBucket:
    return WeekBucket(
        id=row["id"],
        user_id=row["user_id"],
        week_number=row["week_number"],
        week_year=row["week_year"],
        start_date=date.fromisoformat(row["start_date"]),
        end_date=date.fromisoformat(row["end_date"]),
        month_year=row["month_year"],
        month=row["month"],
        total_hours=row["total_hours"],
        total_earnings=row["total_earnings"],
        company_paid=row["company_paid"],
    )


def _summary_from_row(row: sqlite3.Row) -> MonthSummary:
    return MonthSummary(
        user_id=row["user_id"],
        year=row["year"],
        month=row["month"],
        total_hours=row["total_hours"],
        total_earnings=row["total_earnings"],
        company_paid=row["company_paid"],
    )
