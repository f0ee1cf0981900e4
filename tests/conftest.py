"""
Shared fixtures: an in-memory MongoDB (mongomock), a pinned clock and an
engine wired to both.
"""

from datetime import datetime, timezone

import mongomock
import pytest

from mistake_srs import Card, DocumentStore, FixedClock, SrsConfig, build_engine, init_db
from mistake_srs.constants import CardStatus
from mistake_srs.schemas import card_id_for

# Noon in Hong Kong, so the day key is unambiguous
NOW = datetime(2026, 1, 1, 4, 0, tzinfo=timezone.utc)
DAY0 = "2026-01-01"


@pytest.fixture
def db():
    client = mongomock.MongoClient()
    database = client["test_practice_platform"]
    init_db(database)
    yield database
    client.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def config():
    # mongomock has no transactions; commits go through snapshot/rollback
    return SrsConfig(use_transactions=False)


@pytest.fixture
def store(db, config):
    return DocumentStore(db, use_transactions=config.use_transactions)


@pytest.fixture
def engine(db, clock, config):
    return build_engine(config=config, database=db, clock=clock)


@pytest.fixture
def make_card():
    """Build a Card with sensible defaults; keyword arguments override fields."""

    def _make(question_id="q1", user_id="u1", **fields):
        values = {
            "id": card_id_for(user_id, question_id),
            "user_id": user_id,
            "question_id": question_id,
            "status": CardStatus.NEW,
            "next_review_date": "2026-01-02",
            "created_at": NOW,
            "updated_at": NOW,
        }
        values.update(fields)
        return Card(**values)

    return _make
