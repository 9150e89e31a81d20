"""
Unit tests for the key-value repository and the persisted-state codecs.
"""

import json
import os
import tempfile
from datetime import datetime, timezone

import pytest

from ytapp.database import Database, KeyValueRepository
from ytapp.models import Channel, ChannelVideo, HistoryEntry, PlaybackPosition
from ytapp.serialization import (
    ChannelsCodec,
    ChannelVideosCodec,
    Codec,
    DecodeError,
    FavoritesCodec,
    HistoryCodec,
    PositionMapCodec,
)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    db = Database(db_path=path)
    yield db
    db.close()
    os.unlink(path)


class TestKeyValueRepository:
    """Blob storage."""

    def test_missing_key(self, temp_db):
        assert KeyValueRepository(temp_db).load("nothing") is None

    def test_save_replaces(self, temp_db):
        repo = KeyValueRepository(temp_db)
        repo.save("key", "one")
        repo.save("key", "two")

        assert repo.load("key") == "two"

    def test_delete(self, temp_db):
        repo = KeyValueRepository(temp_db)
        repo.save("key", "value")

        assert repo.delete("key")
        assert not repo.delete("key")
        assert repo.load("key") is None


class TestCodecs:
    """Decoding of stored blobs."""

    def test_position_map(self):
        codec = PositionMapCodec()
        positions = {
            "abc123": PlaybackPosition("abc123", 42.5, 300.0, datetime(2024, 1, 1, 12, 0))
        }

        assert codec.decode(codec.encode(positions)) == positions

    def test_integer_seconds_accepted(self):
        blob = json.dumps(
            {
                "abc": {
                    "video_id": "abc",
                    "position": 10,
                    "duration": 300,
                    "last_updated": "2024-01-01T00:00:00",
                }
            }
        )
        record = PositionMapCodec().decode(blob)["abc"]
        assert record.position == 10.0
        assert isinstance(record.position, float)

    def test_channel_video_keeps_timezone(self):
        codec = ChannelVideosCodec()
        video = ChannelVideo(
            id="v1",
            title="Video",
            channel_id="UC1",
            channel_name="Channel",
            published_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            duration="10:30",
        )

        decoded = codec.decode(codec.encode({"UC1": [video]}))

        assert decoded["UC1"][0] == video

    def test_channel_defaults_survive(self):
        codec = ChannelsCodec()
        channel = Channel(id="UC1", name="One")

        assert codec.decode(codec.encode([channel])) == [channel]

    @pytest.mark.parametrize(
        "codec,blob",
        [
            (HistoryCodec(), "not json"),
            (HistoryCodec(), "{}"),
            (HistoryCodec(), '[{"id": "a", "title": "t"}]'),
            (HistoryCodec(), '[{"id": "a", "title": "t", "watched_at": "yesterday"}]'),
            (FavoritesCodec(), "[1, 2]"),
            (PositionMapCodec(), "[]"),
            (
                PositionMapCodec(),
                '{"a": {"video_id": "a", "position": true, "duration": 1.0, "last_updated": "2024-01-01T00:00:00"}}',
            ),
            (ChannelsCodec(), '[{"id": "UC1", "name": "One", "lookback_days": "7", "is_active": true}]'),
            (ChannelVideosCodec(), '{"UC1": "nope"}'),
        ],
    )
    def test_malformed_blobs_raise(self, codec, blob):
        with pytest.raises(DecodeError):
            codec.decode(blob)

    def test_history_order_preserved(self):
        codec = HistoryCodec()
        entries = [
            HistoryEntry("b", "B", datetime(2024, 1, 2)),
            HistoryEntry("a", "A", datetime(2024, 1, 1)),
        ]
        assert [e.id for e in codec.decode(codec.encode(entries))] == ["b", "a"]

    def test_codec_requires_encode_and_decode(self):
        class EncodeOnly(Codec):
            def encode(self, value):
                return json.dumps(value)

        with pytest.raises(TypeError):
            EncodeOnly()
