"""
Unit tests for ChannelsStore.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from ytapp.channels import ChannelsStore, clamp_lookback_days
from ytapp.database import Database
from ytapp.errors import ErrorManager
from ytapp.models import Channel, ChannelVideo
from ytapp.youtube import QuotaExceeded

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    db = Database(db_path=path)
    yield db
    db.close()
    os.unlink(path)


def make_video(video_id, channel_id="UC1", days=0):
    return ChannelVideo(
        id=video_id,
        title=f"Video {video_id}",
        channel_id=channel_id,
        channel_name=f"Channel {channel_id}",
        published_at=BASE_TIME + timedelta(days=days),
    )


@pytest.fixture
def youtube_client():
    client = Mock()
    client.get_channel_videos.side_effect = lambda channel_id, lookback_days, max_results: {
        "UC1": [make_video("v1", "UC1", days=1), make_video("v2", "UC1", days=0)],
        "UC2": [make_video("w1", "UC2", days=2)],
    }.get(channel_id, [])
    return client


@pytest.fixture
def error_manager():
    return ErrorManager()


@pytest.fixture
def store(temp_db, youtube_client, error_manager):
    return ChannelsStore(temp_db, youtube_client=youtube_client, error_manager=error_manager)


class TestChannelManagement:
    """Subscribing and editing channels."""

    def test_add_channel(self, store):
        assert store.add_channel(Channel(id="UC1", name="One"))
        assert store.add_channel(Channel(id="UC2", name="Two"))

        assert [c.id for c in store.channels()] == ["UC2", "UC1"]
        assert store.get_channel("UC1").date_added is not None

    def test_duplicate_rejected(self, store, error_manager):
        store.add_channel(Channel(id="UC1", name="One"))

        assert not store.add_channel(Channel(id="UC1", name="One again"))
        assert len(store.channels()) == 1
        assert error_manager.current_error.category == "channel"

    def test_remove_channel_drops_videos(self, store):
        channel = Channel(id="UC1", name="One")
        store.add_channel(channel)
        store.refresh_channel(channel)

        assert store.remove_channel("UC1")
        assert store.get_videos("UC1") == []
        assert not store.remove_channel("UC1")

    def test_update_channel(self, store):
        store.add_channel(Channel(id="UC1", name="One"))

        assert store.update_channel(Channel(id="UC1", name="Renamed"))
        assert store.get_channel("UC1").name == "Renamed"
        assert not store.update_channel(Channel(id="UC9", name="Unknown"))

    def test_toggle_channel_active(self, store):
        store.add_channel(Channel(id="UC1", name="One"))

        assert store.toggle_channel_active("UC1") is False
        assert store.toggle_channel_active("UC1") is True
        assert store.toggle_channel_active("UC9") is None

    def test_update_lookback_refreshes(self, store, youtube_client):
        store.add_channel(Channel(id="UC1", name="One"))

        assert store.update_channel_lookback("UC1", 14)

        assert store.get_channel("UC1").lookback_days == 14
        youtube_client.get_channel_videos.assert_called_once_with(
            "UC1", lookback_days=14, max_results=50
        )
        assert len(store.get_videos("UC1")) == 2

    @pytest.mark.parametrize("days", [0, 31, -1])
    def test_update_lookback_validated(self, store, days):
        store.add_channel(Channel(id="UC1", name="One"))
        with pytest.raises(ValueError):
            store.update_channel_lookback("UC1", days)

    @pytest.mark.parametrize("days", [0, 31, 90])
    def test_add_channel_lookback_validated(self, store, days):
        with pytest.raises(ValueError):
            store.add_channel(Channel(id="UC1", name="One", lookback_days=days))

        assert store.channels() == []

    def test_update_channel_lookback_validated(self, store):
        store.add_channel(Channel(id="UC1", name="One"))

        with pytest.raises(ValueError):
            store.update_channel(Channel(id="UC1", name="One", lookback_days=0))
        assert store.get_channel("UC1").lookback_days == 7


@pytest.mark.parametrize("days,expected", [(0, 1), (1, 1), (14, 14), (30, 30), (90, 30)])
def test_clamp_lookback_days(days, expected):
    assert clamp_lookback_days(days) == expected


class TestChannelStorage:
    """Persistence and bulk clearing."""

    def test_persists_across_instances(self, temp_db, store):
        channel = Channel(id="UC1", name="One", lookback_days=3)
        store.add_channel(channel)
        store.refresh_channel(channel)
        store.mark_video_watched("v1")

        reloaded = ChannelsStore(temp_db)
        assert reloaded.get_channel("UC1").lookback_days == 3
        assert reloaded.get_unwatched_count("UC1") == 1

    def test_clear_all_channels(self, store):
        channel = Channel(id="UC1", name="One")
        store.add_channel(channel)
        store.refresh_channel(channel)

        store.clear_all_channels()

        assert store.channels() == []
        assert store.get_total_unwatched_count() == 0

    def test_clear_all_channel_videos_keeps_channels(self, store):
        channel = Channel(id="UC1", name="One")
        store.add_channel(channel)
        store.refresh_channel(channel)

        store.clear_all_channel_videos()

        assert len(store.channels()) == 1
        assert store.get_videos("UC1") == []


class TestChannelVideos:
    """Watched state and refresh."""

    @pytest.fixture
    def populated(self, store):
        for channel in (Channel(id="UC1", name="One"), Channel(id="UC2", name="Two")):
            store.add_channel(channel)
            store.refresh_channel(channel)
        return store

    def test_unwatched_counts(self, populated):
        assert populated.get_unwatched_count("UC1") == 2
        assert populated.get_unwatched_count("UC2") == 1
        assert populated.get_total_unwatched_count() == 3

    def test_all_unwatched_newest_first(self, populated):
        assert [v.id for v in populated.get_all_unwatched_videos()] == ["w1", "v1", "v2"]

    def test_mark_video_watched(self, populated):
        assert populated.mark_video_watched("v1")

        assert populated.get_unwatched_count("UC1") == 1
        assert [v.id for v in populated.get_all_unwatched_videos()] == ["w1", "v2"]
        assert not populated.mark_video_watched("unknown")

    def test_mark_watched_is_idempotent(self, temp_db, youtube_client):
        now = [datetime(2024, 6, 1)]
        store = ChannelsStore(temp_db, youtube_client=youtube_client, clock=lambda: now[0])
        channel = Channel(id="UC1", name="One")
        store.add_channel(channel)
        store.refresh_channel(channel)

        store.mark_video_watched("v1")
        now[0] = datetime(2024, 6, 2)
        store.mark_video_watched("v1")

        video = next(v for v in store.get_videos("UC1") if v.id == "v1")
        assert video.is_watched
        assert video.watched_at == datetime(2024, 6, 1)

    def test_refresh_preserves_watched_state(self, populated):
        populated.mark_video_watched("v1")

        populated.refresh_channel(populated.get_channel("UC1"))

        assert populated.get_unwatched_count("UC1") == 1

    def test_refresh_error_leaves_videos(self, populated, youtube_client):
        youtube_client.get_channel_videos.side_effect = QuotaExceeded()

        with pytest.raises(QuotaExceeded):
            populated.refresh_channel(populated.get_channel("UC1"))
        assert len(populated.get_videos("UC1")) == 2

    def test_refresh_all_skips_inactive(self, populated, youtube_client):
        populated.toggle_channel_active("UC2")
        youtube_client.get_channel_videos.reset_mock()

        assert populated.refresh_all_channels() == 1
        called = [c.args[0] for c in youtube_client.get_channel_videos.call_args_list]
        assert called == ["UC1"]

    def test_refresh_all_continues_after_failure(self, populated, youtube_client, error_manager):
        def fetch(channel_id, lookback_days, max_results):
            if channel_id == "UC2":
                raise QuotaExceeded()
            return [make_video("v3", "UC1", days=5)]

        youtube_client.get_channel_videos.side_effect = fetch

        assert populated.refresh_all_channels() == 1
        assert [v.id for v in populated.get_videos("UC1")] == ["v3"]
        assert error_manager.current_error.category == "channel"

    def test_refresh_for_removed_channel_is_discarded(self, populated):
        channel = populated.get_channel("UC1")
        populated.remove_channel("UC1")

        assert populated.refresh_channel(channel) == []
        assert populated.get_videos("UC1") == []
