"""
Unit tests for PlaybackPositionStore.
"""

import os
import tempfile
from datetime import datetime, timedelta

import pytest

from ytapp.database import Database, KeyValueRepository
from ytapp.errors import ErrorManager
from ytapp.positions import POSITIONS_KEY, PlaybackPositionStore


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    db = Database(db_path=path)
    yield db
    db.close()
    os.unlink(path)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 1, 12, 0, 0))


@pytest.fixture
def store(temp_db, clock):
    return PlaybackPositionStore(temp_db, clock=clock)


def test_save_and_get(store):
    assert store.save_position("abc123", 42.5, 300.0)

    record = store.get_position("abc123")
    assert record.position == 42.5
    assert record.duration == 300.0
    assert store.has_position("abc123")
    assert store.get_watch_progress("abc123") == pytest.approx(0.1417, abs=1e-4)


def test_save_overwrites(store):
    store.save_position("abc123", 10.0, 300.0)
    store.save_position("abc123", 20.0, 300.0)

    assert store.get_position("abc123").position == 20.0
    assert len(store.get_all()) == 1


def test_persists_across_instances(temp_db, clock):
    PlaybackPositionStore(temp_db, clock=clock).save_position("abc123", 42.5, 300.0)

    reloaded = PlaybackPositionStore(temp_db, clock=clock)
    record = reloaded.get_position("abc123")
    assert record.position == 42.5
    assert record.last_updated == clock.now


@pytest.mark.parametrize(
    "position,duration",
    [(float("nan"), 300.0), (-1.0, 300.0), (10.0, float("inf")), (10.0, -5.0), (None, 300.0)],
)
def test_rejects_invalid_values(store, position, duration):
    assert not store.save_position("abc123", position, duration)
    assert not store.has_position("abc123")


def test_unknown_video(store):
    assert store.get_position("nope") is None
    assert store.get_watch_progress("nope") == 0.0
    assert not store.is_partially_watched("nope")


def test_clear_position(store):
    store.save_position("abc123", 42.5, 300.0)

    assert store.clear_position("abc123")
    assert store.get_position("abc123") is None
    assert not store.clear_position("abc123")


def test_partially_watched(store):
    store.save_position("early", 10.0, 300.0)
    store.save_position("middle", 120.0, 300.0)
    store.save_position("ending", 285.0, 300.0)

    assert not store.is_partially_watched("early")
    assert store.is_partially_watched("middle")
    assert not store.is_partially_watched("ending")


def test_progress_without_duration(store):
    store.save_position("abc123", 42.5, 0.0)
    assert store.get_watch_progress("abc123") == 0.0


def test_progress_is_clamped(store):
    store.save_position("abc123", 400.0, 300.0)
    assert store.get_watch_progress("abc123") == 1.0


def test_prune_older_than(temp_db, clock):
    store = PlaybackPositionStore(temp_db, clock=clock)
    store.save_position("old", 10.0, 100.0)

    clock.now = clock.now + timedelta(days=31)
    store.save_position("recent", 10.0, 100.0)

    assert store.prune_older_than(30) == 1
    assert store.get_position("old") is None
    assert store.get_position("recent") is not None

    # Pruned state is persisted
    reloaded = PlaybackPositionStore(temp_db, clock=clock)
    assert set(reloaded.get_all()) == {"recent"}


def test_prune_nothing_to_remove(store):
    store.save_position("abc123", 10.0, 100.0)
    assert store.prune_older_than(30) == 0


def test_corrupt_blob_loads_empty(temp_db):
    KeyValueRepository(temp_db).save(POSITIONS_KEY, "{not json")
    errors = ErrorManager()

    store = PlaybackPositionStore(temp_db, error_manager=errors)

    assert store.get_all() == {}
    assert errors.current_error is not None
    assert errors.current_error.category == "data"
