"""
JSON codecs for persisted store state.

Each stored type has an explicit encode/decode pair. Decoding raises
DecodeError on malformed input so callers can tell "absent" from "corrupt"
even though the stores treat both the same way.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from .models import Channel, ChannelVideo, FavoriteEntry, HistoryEntry, PlaybackPosition

T = TypeVar("T")


class DecodeError(Exception):
    """Raised when a persisted blob cannot be decoded."""

    pass


def _encode_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _decode_datetime(value: Any, field: str) -> datetime:
    if not isinstance(value, str):
        raise DecodeError(f"Expected ISO timestamp for {field}, got {value!r}")
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise DecodeError(f"Invalid timestamp for {field}: {value!r}") from e


def _decode_optional_datetime(value: Any, field: str) -> Optional[datetime]:
    if value is None:
        return None
    return _decode_datetime(value, field)


def _require(data: Dict[str, Any], field: str, kind: type) -> Any:
    if field not in data:
        raise DecodeError(f"Missing field: {field}")
    value = data[field]
    if kind is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if not isinstance(value, kind) or (kind is not bool and isinstance(value, bool)):
        raise DecodeError(f"Field {field} should be {kind.__name__}, got {value!r}")
    return value


def _loads(blob: str) -> Any:
    try:
        return json.loads(blob)
    except (json.JSONDecodeError, TypeError) as e:
        raise DecodeError(f"Invalid JSON: {e}") from e


class Codec(ABC, Generic[T]):
    """Encode/decode pair for one stored type."""

    @abstractmethod
    def encode(self, value: T) -> str:
        """Serialize value to a JSON string."""
        ...

    @abstractmethod
    def decode(self, blob: str) -> T:
        """
        Raises:
            DecodeError: If blob is malformed
        """
        ...


# Item-level converters


def position_to_dict(record: PlaybackPosition) -> Dict[str, Any]:
    return {
        "video_id": record.video_id,
        "position": record.position,
        "duration": record.duration,
        "last_updated": _encode_datetime(record.last_updated),
    }


def position_from_dict(data: Dict[str, Any]) -> PlaybackPosition:
    return PlaybackPosition(
        video_id=_require(data, "video_id", str),
        position=_require(data, "position", float),
        duration=_require(data, "duration", float),
        last_updated=_decode_datetime(data.get("last_updated"), "last_updated"),
    )


def history_entry_to_dict(entry: HistoryEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "title": entry.title,
        "watched_at": _encode_datetime(entry.watched_at),
    }


def history_entry_from_dict(data: Dict[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        id=_require(data, "id", str),
        title=_require(data, "title", str),
        watched_at=_decode_datetime(data.get("watched_at"), "watched_at"),
    )


def favorite_entry_to_dict(entry: FavoriteEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "title": entry.title,
        "favorited_at": _encode_datetime(entry.favorited_at),
    }


def favorite_entry_from_dict(data: Dict[str, Any]) -> FavoriteEntry:
    return FavoriteEntry(
        id=_require(data, "id", str),
        title=_require(data, "title", str),
        favorited_at=_decode_datetime(data.get("favorited_at"), "favorited_at"),
    )


def channel_to_dict(channel: Channel) -> Dict[str, Any]:
    return {
        "id": channel.id,
        "name": channel.name,
        "handle": channel.handle,
        "thumbnail_url": channel.thumbnail_url,
        "subscriber_count": channel.subscriber_count,
        "description": channel.description,
        "lookback_days": channel.lookback_days,
        "is_active": channel.is_active,
        "date_added": _encode_datetime(channel.date_added),
        "last_updated": _encode_datetime(channel.last_updated),
    }


def channel_from_dict(data: Dict[str, Any]) -> Channel:
    return Channel(
        id=_require(data, "id", str),
        name=_require(data, "name", str),
        handle=data.get("handle"),
        thumbnail_url=data.get("thumbnail_url"),
        subscriber_count=data.get("subscriber_count"),
        description=data.get("description"),
        lookback_days=_require(data, "lookback_days", int),
        is_active=_require(data, "is_active", bool),
        date_added=_decode_optional_datetime(data.get("date_added"), "date_added"),
        last_updated=_decode_optional_datetime(data.get("last_updated"), "last_updated"),
    )


def channel_video_to_dict(video: ChannelVideo) -> Dict[str, Any]:
    return {
        "id": video.id,
        "title": video.title,
        "channel_id": video.channel_id,
        "channel_name": video.channel_name,
        "published_at": _encode_datetime(video.published_at),
        "thumbnail_url": video.thumbnail_url,
        "duration": video.duration,
        "view_count": video.view_count,
        "is_watched": video.is_watched,
        "watched_at": _encode_datetime(video.watched_at),
    }


def channel_video_from_dict(data: Dict[str, Any]) -> ChannelVideo:
    return ChannelVideo(
        id=_require(data, "id", str),
        title=_require(data, "title", str),
        channel_id=_require(data, "channel_id", str),
        channel_name=_require(data, "channel_name", str),
        published_at=_decode_datetime(data.get("published_at"), "published_at"),
        thumbnail_url=data.get("thumbnail_url"),
        duration=data.get("duration"),
        view_count=data.get("view_count"),
        is_watched=_require(data, "is_watched", bool),
        watched_at=_decode_optional_datetime(data.get("watched_at"), "watched_at"),
    )


# Store-level codecs


class PositionMapCodec(Codec[Dict[str, PlaybackPosition]]):
    """video_id -> PlaybackPosition"""

    def encode(self, value: Dict[str, PlaybackPosition]) -> str:
        return json.dumps({video_id: position_to_dict(r) for video_id, r in value.items()})

    def decode(self, blob: str) -> Dict[str, PlaybackPosition]:
        data = _loads(blob)
        if not isinstance(data, dict):
            raise DecodeError("Playback positions must be a JSON object")
        positions = {}
        for video_id, item in data.items():
            if not isinstance(item, dict):
                raise DecodeError(f"Invalid position record for {video_id}")
            positions[video_id] = position_from_dict(item)
        return positions


class _ListCodec(Codec[List[T]]):
    """Ordered list of entries."""

    def __init__(self, to_dict, from_dict, label: str):
        self._to_dict = to_dict
        self._from_dict = from_dict
        self._label = label

    def encode(self, value: List[T]) -> str:
        return json.dumps([self._to_dict(item) for item in value])

    def decode(self, blob: str) -> List[T]:
        data = _loads(blob)
        if not isinstance(data, list):
            raise DecodeError(f"{self._label} must be a JSON array")
        items = []
        for item in data:
            if not isinstance(item, dict):
                raise DecodeError(f"Invalid {self._label} entry: {item!r}")
            items.append(self._from_dict(item))
        return items


class HistoryCodec(_ListCodec[HistoryEntry]):
    def __init__(self):
        super().__init__(history_entry_to_dict, history_entry_from_dict, "History")


class FavoritesCodec(_ListCodec[FavoriteEntry]):
    def __init__(self):
        super().__init__(favorite_entry_to_dict, favorite_entry_from_dict, "Favorites")


class ChannelsCodec(_ListCodec[Channel]):
    def __init__(self):
        super().__init__(channel_to_dict, channel_from_dict, "Channels")


class ChannelVideosCodec(Codec[Dict[str, List[ChannelVideo]]]):
    """channel_id -> list of ChannelVideo"""

    def encode(self, value: Dict[str, List[ChannelVideo]]) -> str:
        return json.dumps(
            {
                channel_id: [channel_video_to_dict(v) for v in videos]
                for channel_id, videos in value.items()
            }
        )

    def decode(self, blob: str) -> Dict[str, List[ChannelVideo]]:
        data = _loads(blob)
        if not isinstance(data, dict):
            raise DecodeError("Channel videos must be a JSON object")
        result = {}
        for channel_id, videos in data.items():
            if not isinstance(videos, list):
                raise DecodeError(f"Invalid video list for channel {channel_id}")
            decoded = []
            for item in videos:
                if not isinstance(item, dict):
                    raise DecodeError(f"Invalid channel video entry: {item!r}")
                decoded.append(channel_video_from_dict(item))
            result[channel_id] = decoded
        return result
