"""
Data models for ytapp.

Defines typed dataclasses for all entities used throughout the application.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

# Title shown until the oEmbed lookup fills in the real one
HISTORY_PLACEHOLDER_TITLE = "Loading..."
FAVORITE_PLACEHOLDER_TITLE = "YouTube Video"
PLACEHOLDER_TITLES = frozenset({HISTORY_PLACEHOLDER_TITLE, FAVORITE_PLACEHOLDER_TITLE})

# Default "partially watched" window in seconds at either end of a video
DEFAULT_PARTIAL_WATCH_THRESHOLD = 30.0


def is_placeholder_title(title: Optional[str]) -> bool:
    """True if title is empty or one of the provisional display strings."""
    return not title or title in PLACEHOLDER_TITLES


def format_time(seconds: float) -> str:
    """Format seconds as M:SS, or H:MM:SS when an hour or longer."""
    total_seconds = int(seconds)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    secs = total_seconds % 60
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


@dataclass
class ClipboardObservation:
    """A detected pasteboard change. Never persisted."""

    raw_text: str
    extracted_id: Optional[str]
    observed_at: datetime


@dataclass
class PlaybackPosition:
    """Last known playback offset for a video."""

    video_id: str
    position: float  # Seconds
    duration: float  # Seconds, 0 means not reported yet
    last_updated: datetime

    def is_partially_watched(self, threshold: float = DEFAULT_PARTIAL_WATCH_THRESHOLD) -> bool:
        """At least threshold seconds in, and not within threshold of the end."""
        return self.position > threshold and self.position < (self.duration - threshold)

    @property
    def watch_progress(self) -> float:
        if self.duration <= 0:
            return 0.0
        return max(0.0, min(self.position / self.duration, 1.0))

    @property
    def formatted_position(self) -> str:
        return format_time(self.position)

    @property
    def formatted_duration(self) -> str:
        return format_time(self.duration)


@dataclass
class HistoryEntry:
    """A watched video, most recent first in the history ledger."""

    id: str
    title: str
    watched_at: datetime


@dataclass
class FavoriteEntry:
    """A starred video."""

    id: str
    title: str
    favorited_at: datetime


@dataclass
class Channel:
    """A subscribed YouTube channel."""

    id: str  # Channel ID from YouTube
    name: str
    handle: Optional[str] = None  # @channelhandle
    thumbnail_url: Optional[str] = None
    subscriber_count: Optional[str] = None  # Display string, e.g. "1.2M subscribers"
    description: Optional[str] = None
    lookback_days: int = 7
    is_active: bool = True
    date_added: Optional[datetime] = None
    last_updated: Optional[datetime] = None


@dataclass
class ChannelVideo:
    """A recent upload of a subscribed channel."""

    id: str  # Video ID, globally unique
    title: str
    channel_id: str
    channel_name: str
    published_at: datetime
    thumbnail_url: Optional[str] = None
    duration: Optional[str] = None  # Display string, e.g. "10:30"
    view_count: Optional[str] = None  # Display string, e.g. "1.2K views"
    is_watched: bool = False
    watched_at: Optional[datetime] = None


@dataclass
class ConfigEntry:
    """Configuration entry."""

    key: str
    value: str
    updated_at: Optional[datetime] = None
