from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from hourbook.db import Database
from hourbook.tracker import WorkTracker

FLORIDA = ZoneInfo("America/New_York")
USER = "100"
RATE = 25.0


def florida(*args: int) -> datetime:
    """Aware datetime on Florida wall-clock time."""
    return datetime(*args, tzinfo=FLORIDA)


@pytest.fixture
def db():
    database = Database(":memory:")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def tracker(db) -> WorkTracker:
    work_tracker = WorkTracker(db=db)
    work_tracker.register_user(USER, RATE)
    return work_tracker
