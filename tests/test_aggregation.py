import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from hourbook.aggregation import Aggregator
from hourbook.db import Database
from hourbook.errors import UserNotFound
from hourbook.models import HOURLY, PAYMENT, BucketKey, Totals, WorkSession
from hourbook.resolver import resolve_from_calendar_date

from .conftest import RATE, USER


def _completed(session_id: str, bucket_id: int, seconds: int, mode: str = HOURLY, amount=None) -> WorkSession:
    start = datetime(2026, 2, 24, 14, 0, tzinfo=timezone.utc)
    return WorkSession(
        id=session_id,
        user_id=USER,
        mode=mode,
        start_utc=start,
        attributed_date=date(2026, 2, 24),
        end_utc=start + timedelta(seconds=seconds),
        duration_seconds=seconds,
        week_id=bucket_id,
        amount=amount,
    )


@pytest.fixture
def aggregator(db) -> Aggregator:
    db.upsert_user(USER, RATE)
    return Aggregator(db)


@pytest.fixture
def week9(aggregator):
    return aggregator.ensure_week_bucket(USER, resolve_from_calendar_date(date(2026, 2, 24)))


def test_ensure_week_bucket_creates_once(aggregator, week9) -> None:
    again = aggregator.ensure_week_bucket(USER, resolve_from_calendar_date(date(2026, 3, 1)))

    assert again.id == week9.id
    assert (week9.start_date, week9.end_date) == (date(2026, 2, 23), date(2026, 3, 1))


def test_ensure_week_bucket_requires_user(db) -> None:
    aggregator = Aggregator(db)

    with pytest.raises(UserNotFound):
        aggregator.ensure_week_bucket("ghost", BucketKey(9, 2026, date(2026, 2, 24)))


def test_hourly_totals_use_user_rate(db, aggregator, week9) -> None:
    db.insert_session(_completed("a", week9.id, 3661))

    totals = aggregator.recompute_week_totals(week9.id)

    assert totals.total_hours == pytest.approx(3661 / 3600)
    assert totals.total_earnings == pytest.approx(25.42, abs=0.005)
    assert db.get_week_bucket(week9.id).total_earnings == pytest.approx(totals.total_earnings)


def test_payment_totals_use_recorded_amount(db, aggregator, week9) -> None:
    db.insert_session(_completed("a", week9.id, 7200, mode=PAYMENT, amount=100.0))

    totals = aggregator.recompute_week_totals(week9.id)

    assert totals == Totals(total_hours=2.0, total_earnings=100.0)


def test_mixed_mode_bucket(db, aggregator, week9) -> None:
    db.insert_session(_completed("a", week9.id, 3600))
    db.insert_session(_completed("b", week9.id, 1800, mode=PAYMENT, amount=40.0))

    totals = aggregator.recompute_week_totals(week9.id)

    assert totals.total_hours == pytest.approx(1.5)
    assert totals.total_earnings == pytest.approx(RATE + 40.0)


def test_recompute_is_idempotent(db, aggregator, week9) -> None:
    db.insert_session(_completed("a", week9.id, 5400))

    first = aggregator.recompute_week_totals(week9.id)
    second = aggregator.recompute_week_totals(week9.id)
    month_first = aggregator.recompute_month_totals(USER, 2026, 2)
    month_second = aggregator.recompute_month_totals(USER, 2026, 2)

    assert first == second
    assert month_first == month_second == first


def test_open_sessions_keep_bucket_without_totals(db, aggregator, week9) -> None:
    db.insert_session(
        WorkSession(
            id="open",
            user_id=USER,
            mode=HOURLY,
            start_utc=datetime(2026, 2, 24, 14, 0, tzinfo=timezone.utc),
            attributed_date=date(2026, 2, 24),
            week_id=week9.id,
        )
    )

    assert aggregator.recompute_week_totals(week9.id) == Totals(0.0, 0.0)
    assert db.get_week_bucket(week9.id) is not None


def test_empty_bucket_and_month_are_removed(db, aggregator, week9) -> None:
    db.insert_session(_completed("a", week9.id, 3600))
    aggregator.refresh(week9)
    assert db.find_month_summary(USER, 2026, 2) is not None

    db.delete_session("a")
    week_totals, month_totals = aggregator.refresh(week9)

    assert week_totals == month_totals == Totals(0.0, 0.0)
    assert db.get_week_bucket(week9.id) is None
    assert db.find_month_summary(USER, 2026, 2) is None
    assert aggregator.recompute_week_totals(week9.id) == Totals(0.0, 0.0)


def test_month_sums_weeks_attributed_by_monday(db, aggregator, week9) -> None:
    week10 = aggregator.ensure_week_bucket(USER, resolve_from_calendar_date(date(2026, 3, 4)))
    db.insert_session(_completed("a", week9.id, 3600))
    db.insert_session(_completed("b", week10.id, 7200))
    aggregator.refresh(week9)
    aggregator.refresh(week10)

    february = db.find_month_summary(USER, 2026, 2)
    march = db.find_month_summary(USER, 2026, 3)

    # Week 9 runs Feb 23 - Mar 1 and counts entirely toward February.
    assert february.total_hours == pytest.approx(1.0)
    assert march.total_hours == pytest.approx(2.0)
    assert march.total_earnings == pytest.approx(2 * RATE)


def test_lost_creation_race_returns_winner_row(tmp_path) -> None:
    path = tmp_path / "race.db"
    first = Database(path)
    first.initialize()
    first.upsert_user(USER, RATE)
    second = Database(path)

    key = resolve_from_calendar_date(date(2026, 2, 24))
    winner = Aggregator(first).ensure_week_bucket(USER, key)

    # The loser looked before the winner committed, then tries to insert.
    lookups = []
    real_find = second.find_week_bucket

    def stale_find(*args):
        lookups.append(args)
        return None if len(lookups) == 1 else real_find(*args)

    second.find_week_bucket = stale_find
    loser = Aggregator(second).ensure_week_bucket(USER, key)

    assert loser.id == winner.id
    assert len(first.list_weeks_for_month(USER, 2026, 2)) == 1
    first.close()
    second.close()


def test_concurrent_bucket_creation_yields_one_row(tmp_path) -> None:
    path = tmp_path / "concurrent.db"
    setup = Database(path)
    setup.initialize()
    setup.upsert_user(USER, RATE)

    key = resolve_from_calendar_date(date(2026, 2, 24))
    barrier = threading.Barrier(4)
    results = []
    errors = []

    def worker() -> None:
        database = Database(path)
        try:
            barrier.wait()
            results.append(Aggregator(database).ensure_week_bucket(USER, key).id)
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)
        finally:
            database.close()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(set(results)) == 1
    assert len(setup.list_weeks_for_month(USER, 2026, 2)) == 1
    setup.close()


def test_month_with_company_payment_is_kept_at_zero(db, aggregator, week9) -> None:
    db.insert_session(_completed("a", week9.id, 3600))
    aggregator.refresh(week9)
    db.set_month_company_paid(USER, 2026, 2, 120.0)

    db.delete_session("a")
    assert aggregator.refresh(week9) == (Totals(0.0, 0.0), Totals(0.0, 0.0))

    summary = db.find_month_summary(USER, 2026, 2)
    assert (summary.total_hours, summary.total_earnings, summary.company_paid) == (0.0, 0.0, 120.0)
