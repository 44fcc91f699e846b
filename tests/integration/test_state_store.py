"""
Integration Tests for the SQLAlchemy state store.

Runs against SQLite (in-memory and on-disk), so no external database is
required.
"""

from datetime import UTC, datetime, timedelta

import pytest

from course_engine.db.database import create_db_engine
from course_engine.delivery.memory_state import MemoryState, Phase, Rating
from course_engine.delivery.scheduler import FSRSScheduler
from course_engine.delivery.state_store import InMemoryStateStore, SqlStateStore

pytestmark = pytest.mark.integration


@pytest.fixture
def sql_store():
    return SqlStateStore(create_db_engine("sqlite:///:memory:", echo=False))


@pytest.fixture(params=["memory", "sql"])
def store(request, sql_store):
    """Both implementations must behave identically."""
    return InMemoryStateStore() if request.param == "memory" else sql_store


def sample_state(card_id="a1"):
    return MemoryState(
        card_id=card_id,
        stability=3.7145123456789,
        difficulty=5.161800000001,
        due=datetime(2024, 3, 1, 9, 10, 0, 123456, tzinfo=UTC),
        last_reviewed=datetime(2024, 3, 1, 9, 0, 0, 654321, tzinfo=UTC),
        repetitions=1,
        lapses=0,
        phase=Phase.LEARNING,
    )


class TestLearnerRegistry:
    def test_add_is_idempotent(self, store):
        assert store.add_learner("alice") is True
        assert store.add_learner("alice") is False
        assert store.has_learner("alice")
        assert store.list_learners() == ["alice"]

    def test_remove_deletes_states(self, store):
        store.add_learner("alice")
        store.save_state("alice", sample_state())
        assert store.remove_learner("alice") is True
        assert not store.has_learner("alice")
        assert store.load_states("alice") == {}
        assert store.remove_learner("alice") is False


class TestMemoryStates:
    def test_round_trip_is_exact(self, store):
        store.add_learner("alice")
        state = sample_state()
        store.save_state("alice", state)
        assert store.get_state("alice", "a1") == state
        assert store.load_states("alice") == {"a1": state}

    def test_save_overwrites(self, store):
        store.add_learner("alice")
        scheduler = FSRSScheduler()
        first = sample_state()
        second = scheduler.review(first, Rating.GOOD, first.due)
        store.save_state("alice", first)
        store.save_state("alice", second)
        assert store.get_state("alice", "a1") == second
        assert len(store.load_states("alice")) == 1

    def test_states_are_per_learner(self, store):
        store.add_learner("alice")
        store.add_learner("bob")
        store.save_state("alice", sample_state("a1"))
        assert store.get_state("bob", "a1") is None

    def test_missing_state(self, store):
        store.add_learner("alice")
        assert store.get_state("alice", "zzz") is None


class TestDurability:
    def test_file_database_survives_reopen(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'nested' / 'state.db'}"
        state = sample_state()

        first = SqlStateStore(create_db_engine(url, echo=False))
        first.add_learner("alice")
        first.save_state("alice", state)

        reopened = SqlStateStore(create_db_engine(url, echo=False))
        assert reopened.get_state("alice", "a1") == state

    def test_naive_timestamps_stored_as_utc(self, sql_store):
        sql_store.add_learner("alice")
        naive = sample_state()
        naive = MemoryState(**{**vars(naive), "due": naive.due.replace(tzinfo=None) + timedelta(hours=1)})
        sql_store.save_state("alice", naive)
        loaded = sql_store.get_state("alice", "a1")
        assert loaded.due.tzinfo is UTC
        assert loaded.due == naive.due.replace(tzinfo=UTC)
