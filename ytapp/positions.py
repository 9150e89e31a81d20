"""
Playback position bookmarks.

Remembers where playback left off for each video so it can resume on reopen.
"""

import math
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from .database import Database
from .models import DEFAULT_PARTIAL_WATCH_THRESHOLD, PlaybackPosition
from .serialization import PositionMapCodec
from .store import PersistentStore

POSITIONS_KEY = "videoPlaybackPositions"
DEFAULT_RETENTION_DAYS = 30


def _valid_seconds(value) -> bool:
    try:
        return math.isfinite(value) and value >= 0
    except TypeError:
        return False


class PlaybackPositionStore(PersistentStore):
    """
    Keyed map from video ID to last playback offset.

    At most one record per video; saving overwrites in place.
    """

    def __init__(
        self,
        database: Database,
        error_manager=None,
        partial_watch_threshold: float = DEFAULT_PARTIAL_WATCH_THRESHOLD,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize PlaybackPositionStore.

        Args:
            database: Database instance for persistence
            error_manager: ErrorManager for persistence failures (optional)
            partial_watch_threshold: Seconds from either end that don't count as partial
            clock: Source of the current time
        """
        super().__init__(database, error_manager)
        self.partial_watch_threshold = partial_watch_threshold
        self._clock = clock
        self._codec = PositionMapCodec()
        self._positions: Dict[str, PlaybackPosition] = self._load_state(
            POSITIONS_KEY, self._codec, dict
        )
        self.logger.info("Loaded %s playback positions", len(self._positions))

    def _persist(self) -> None:
        self._save_state(POSITIONS_KEY, self._codec, self._positions)

    def save_position(self, video_id: str, position: float, duration: float) -> bool:
        """
        Record the current offset for a video.

        Args:
            video_id: Video ID
            position: Offset in seconds
            duration: Total duration in seconds (0 if not known yet)

        Returns:
            True if saved, False if the values were rejected
        """
        if not video_id:
            return False
        if not _valid_seconds(position) or not _valid_seconds(duration):
            # Unready players report NaN or negative offsets
            self.logger.debug(
                "Ignoring invalid position for %s: %s/%s", video_id, position, duration
            )
            return False

        with self.lock:
            self._positions[video_id] = PlaybackPosition(
                video_id=video_id,
                position=float(position),
                duration=float(duration),
                last_updated=self._clock(),
            )
            self._persist()
        self.logger.debug("Saved playback position for %s: %.1f/%.1f", video_id, position, duration)
        return True

    def get_position(self, video_id: str) -> Optional[PlaybackPosition]:
        with self.lock:
            return self._positions.get(video_id)

    def has_position(self, video_id: str) -> bool:
        with self.lock:
            return video_id in self._positions

    def clear_position(self, video_id: str) -> bool:
        """
        Forget the saved offset for a video ("play from beginning").

        Returns:
            True if a record was removed
        """
        with self.lock:
            if self._positions.pop(video_id, None) is None:
                return False
            self._persist()
        self.logger.info("Cleared playback position for %s", video_id)
        return True

    def is_partially_watched(self, video_id: str) -> bool:
        record = self.get_position(video_id)
        if record is None:
            return False
        return record.is_partially_watched(self.partial_watch_threshold)

    def get_watch_progress(self, video_id: str) -> float:
        record = self.get_position(video_id)
        return record.watch_progress if record else 0.0

    def get_all(self) -> Dict[str, PlaybackPosition]:
        with self.lock:
            return dict(self._positions)

    def prune_older_than(self, days: int = DEFAULT_RETENTION_DAYS) -> int:
        """
        Delete records not updated within the last `days` days.

        Returns:
            Number of records removed
        """
        cutoff = self._clock() - timedelta(days=days)
        with self.lock:
            old_count = len(self._positions)
            self._positions = {
                video_id: record
                for video_id, record in self._positions.items()
                if record.last_updated > cutoff
            }
            removed = old_count - len(self._positions)
            if removed:
                self._persist()

        if removed:
            self.logger.info("Cleaned up %s old playback positions", removed)
        return removed
