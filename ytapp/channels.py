"""
Channel subscriptions and their recent uploads.

Channels are stored as an ordered list (newest subscription first) and
their fetched videos as a map keyed by channel ID. Watched state survives
refreshes.
"""

from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .database import Database
from .models import Channel, ChannelVideo
from .serialization import ChannelsCodec, ChannelVideosCodec
from .store import PersistentStore
from .youtube import YouTubeAPIError, YouTubeClient

CHANNELS_KEY = "subscribedChannels"
CHANNEL_VIDEOS_KEY = "channelVideos"

MIN_LOOKBACK_DAYS = 1
MAX_LOOKBACK_DAYS = 30


def check_lookback_days(days: int) -> None:
    """
    Raises:
        ValueError: If days is outside MIN_LOOKBACK_DAYS..MAX_LOOKBACK_DAYS
    """
    if not MIN_LOOKBACK_DAYS <= days <= MAX_LOOKBACK_DAYS:
        raise ValueError(
            f"Lookback must be between {MIN_LOOKBACK_DAYS} and {MAX_LOOKBACK_DAYS} days"
        )


def clamp_lookback_days(days: int) -> int:
    return max(MIN_LOOKBACK_DAYS, min(days, MAX_LOOKBACK_DAYS))


class ChannelsStore(PersistentStore):
    """Subscribed channels plus the per-channel video lists."""

    def __init__(
        self,
        database: Database,
        youtube_client: Optional[YouTubeClient] = None,
        error_manager=None,
        max_videos_per_channel: int = 50,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize ChannelsStore.

        Args:
            database: Database instance for persistence
            youtube_client: Client used by refresh (refresh is unavailable if None)
            error_manager: ErrorManager for channel and persistence errors
            max_videos_per_channel: Result limit passed to the API per refresh
            clock: Source of the current time
        """
        super().__init__(database, error_manager)
        self.youtube_client = youtube_client
        self.max_videos_per_channel = max_videos_per_channel
        self._clock = clock
        self._channels_codec = ChannelsCodec()
        self._videos_codec = ChannelVideosCodec()
        self._channels: List[Channel] = self._load_state(CHANNELS_KEY, self._channels_codec, list)
        self._videos: Dict[str, List[ChannelVideo]] = self._load_state(
            CHANNEL_VIDEOS_KEY, self._videos_codec, dict
        )
        self.logger.info(
            "Loaded %s channels with %s videos",
            len(self._channels),
            sum(len(videos) for videos in self._videos.values()),
        )

    def _save_channels(self) -> None:
        self._save_state(CHANNELS_KEY, self._channels_codec, self._channels)

    def _save_videos(self) -> None:
        self._save_state(CHANNEL_VIDEOS_KEY, self._videos_codec, self._videos)

    def _index_of(self, channel_id: str) -> Optional[int]:
        for index, channel in enumerate(self._channels):
            if channel.id == channel_id:
                return index
        return None

    def _report_channel_error(self, message: str, context: Optional[str] = None) -> None:
        if self.error_manager is not None:
            self.error_manager.report_channel_error(message, context=context)

    # =========================================================================
    # Channels
    # =========================================================================

    def add_channel(self, channel: Channel) -> bool:
        """
        Subscribe to a channel.

        Returns:
            False if a channel with the same ID is already subscribed

        Raises:
            ValueError: If the channel's lookback is outside 1..30 days
        """
        check_lookback_days(channel.lookback_days)
        with self.lock:
            if self._index_of(channel.id) is not None:
                duplicate = True
            else:
                duplicate = False
                if channel.date_added is None:
                    channel.date_added = self._clock()
                self._channels.insert(0, channel)
                self._save_channels()

        if duplicate:
            self.logger.warning("Channel already exists: %s", channel.name)
            self._report_channel_error(f"Channel '{channel.name}' is already added")
            return False

        self.logger.info("Added channel %s (%s)", channel.name, channel.id)
        return True

    def remove_channel(self, channel_id: str) -> bool:
        """Unsubscribe from a channel and drop its videos."""
        with self.lock:
            index = self._index_of(channel_id)
            if index is None:
                return False
            channel = self._channels.pop(index)
            self._videos.pop(channel_id, None)
            self._save_channels()
            self._save_videos()
        self.logger.info("Removed channel %s", channel.name)
        return True

    def update_channel(self, channel: Channel) -> bool:
        check_lookback_days(channel.lookback_days)
        with self.lock:
            index = self._index_of(channel.id)
            if index is None:
                return False
            self._channels[index] = channel
            self._save_channels()
        return True

    def toggle_channel_active(self, channel_id: str) -> Optional[bool]:
        """
        Flip whether a channel takes part in refresh-all.

        Returns:
            The new active flag, or None if the channel is unknown
        """
        with self.lock:
            index = self._index_of(channel_id)
            if index is None:
                return None
            channel = self._channels[index]
            channel.is_active = not channel.is_active
            self._save_channels()
            return channel.is_active

    def update_channel_lookback(self, channel_id: str, days: int) -> bool:
        """
        Change a channel's lookback window and refetch its videos.

        Raises:
            ValueError: If days is outside 1..30
        """
        check_lookback_days(days)

        with self.lock:
            index = self._index_of(channel_id)
            if index is None:
                return False
            channel = self._channels[index]
            channel.lookback_days = days
            channel.last_updated = self._clock()
            self._save_channels()
            snapshot = replace(channel)

        if self.youtube_client is not None:
            try:
                self.refresh_channel(snapshot)
            except YouTubeAPIError as e:
                self._report_channel_error(str(e), context=f"refresh {channel_id}")
        return True

    def get_channel(self, channel_id: str) -> Optional[Channel]:
        with self.lock:
            index = self._index_of(channel_id)
            return self._channels[index] if index is not None else None

    def channels(self) -> List[Channel]:
        with self.lock:
            return list(self._channels)

    # =========================================================================
    # Videos
    # =========================================================================

    def mark_video_watched(self, video_id: str) -> bool:
        """
        Mark a channel video as watched.

        Marking an already-watched video keeps its original watched_at.

        Returns:
            True if the video belongs to a subscribed channel's list
        """
        with self.lock:
            for videos in self._videos.values():
                for video in videos:
                    if video.id != video_id:
                        continue
                    if not video.is_watched:
                        video.is_watched = True
                        video.watched_at = self._clock()
                        self._save_videos()
                        self.logger.info("Marked video as watched: %s", video_id)
                    return True
        return False

    def get_videos(self, channel_id: str) -> List[ChannelVideo]:
        with self.lock:
            return list(self._videos.get(channel_id, []))

    def get_unwatched_count(self, channel_id: str) -> int:
        with self.lock:
            return sum(1 for video in self._videos.get(channel_id, []) if not video.is_watched)

    def get_total_unwatched_count(self) -> int:
        with self.lock:
            return sum(
                1 for videos in self._videos.values() for video in videos if not video.is_watched
            )

    def get_all_unwatched_videos(self) -> List[ChannelVideo]:
        """Unwatched videos across all channels, newest first."""
        with self.lock:
            unwatched = [
                video for videos in self._videos.values() for video in videos if not video.is_watched
            ]
        unwatched.sort(key=lambda video: video.published_at, reverse=True)
        return unwatched

    def refresh_channel(self, channel: Channel) -> List[ChannelVideo]:
        """
        Refetch a channel's videos within its lookback window.

        Raises:
            YouTubeAPIError: If the fetch fails (stored videos are left alone)
        """
        if self.youtube_client is None:
            raise RuntimeError("No YouTube client configured")

        fetched = self.youtube_client.get_channel_videos(
            channel.id,
            lookback_days=channel.lookback_days,
            max_results=self.max_videos_per_channel,
        )

        with self.lock:
            if self._index_of(channel.id) is None:
                # Unsubscribed while the fetch was in flight
                self.logger.debug("Discarding refresh for removed channel %s", channel.id)
                return []

            known = {video.id: video for video in self._videos.get(channel.id, [])}
            for video in fetched:
                previous = known.get(video.id)
                if previous is not None and previous.is_watched:
                    video.is_watched = True
                    video.watched_at = previous.watched_at
            self._videos[channel.id] = fetched

            stored = self._channels[self._index_of(channel.id)]
            stored.last_updated = self._clock()
            self._save_videos()
            self._save_channels()

        self.logger.info("Refreshed channel %s: %s videos", channel.name, len(fetched))
        return list(fetched)

    def refresh_all_channels(self) -> int:
        """
        Refresh every active channel.

        A failing channel is reported and skipped; the rest still refresh.

        Returns:
            Number of channels refreshed successfully
        """
        refreshed = 0
        for channel in self.channels():
            if not channel.is_active:
                continue
            try:
                self.refresh_channel(channel)
                refreshed += 1
            except YouTubeAPIError as e:
                self.logger.error("Failed to refresh channel %s: %s", channel.name, e)
                self._report_channel_error(str(e), context=f"refresh {channel.id}")
        return refreshed

    def clear_all_channels(self) -> None:
        with self.lock:
            self._channels = []
            self._videos = {}
            self._save_channels()
            self._save_videos()
        self.logger.info("All channels cleared")

    def clear_all_channel_videos(self) -> None:
        with self.lock:
            self._videos = {}
            self._save_videos()
        self.logger.info("All channel videos cleared")
