"""
Playback session tracking for ytapp.

The player itself runs in the browser; it reports readiness, periodic
positions and errors here, and gets back the offset to seek to on start.
"""

import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .positions import PlaybackPositionStore


class PlaybackState(Enum):
    """Playback state enumeration."""

    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    ERROR = "error"


class PlaybackSession:
    """Tracks the one active player session and bookmarks its position."""

    def __init__(
        self,
        position_store: PlaybackPositionStore,
        error_manager=None,
        save_interval: float = 5.0,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize PlaybackSession.

        Args:
            position_store: Where positions are saved and read back
            error_manager: ErrorManager for player errors (optional)
            save_interval: Minimum seconds between saved positions
            monotonic: Clock used for save throttling
        """
        self.position_store = position_store
        self.error_manager = error_manager
        self.save_interval = save_interval
        self._monotonic = monotonic

        self.logger = logging.getLogger(__name__)
        self.state = PlaybackState.IDLE
        self.video_id: Optional[str] = None
        self.start_from_beginning = False
        self.last_error: Optional[str] = None
        self._last_save_at: Optional[float] = None
        self.lock = threading.Lock()

    def _is_current(self, video_id: str) -> bool:
        if video_id != self.video_id:
            self.logger.debug("Ignoring player report for inactive video %s", video_id)
            return False
        return True

    def start(self, video_id: str, start_from_beginning: bool = False) -> None:
        """Begin a new session for video_id, replacing any current one."""
        with self.lock:
            self.video_id = video_id
            self.start_from_beginning = start_from_beginning
            self.state = PlaybackState.LOADING
            self.last_error = None
            self._last_save_at = None
        self.logger.info(
            "Started playback session for %s%s",
            video_id,
            " (from beginning)" if start_from_beginning else "",
        )

    def on_player_ready(self, video_id: str) -> Optional[float]:
        """
        Player finished loading.

        Returns:
            Offset to seek to, or None to start at 0
        """
        with self.lock:
            if not self._is_current(video_id):
                return None
            self.state = PlaybackState.PLAYING
            if self.start_from_beginning:
                return None

        record = self.position_store.get_position(video_id)
        if record is None:
            return None
        self.logger.info("Resuming %s from %s", video_id, record.formatted_position)
        return record.position

    def on_position_update(
        self, video_id: str, position: float, duration: float, force: bool = False
    ) -> bool:
        """
        Player reported its current offset.

        Saves at most once per save_interval; force bypasses the throttle
        (pause and close).

        Returns:
            True if the position was saved
        """
        with self.lock:
            if not self._is_current(video_id):
                return False
            now = self._monotonic()
            if (
                not force
                and self._last_save_at is not None
                and now - self._last_save_at < self.save_interval
            ):
                return False
            if self.state == PlaybackState.LOADING:
                self.state = PlaybackState.PLAYING

            saved = self.position_store.save_position(video_id, position, duration)
            if saved:
                self._last_save_at = now
            return saved

    def on_player_error(self, video_id: str, message: str) -> None:
        with self.lock:
            if not self._is_current(video_id):
                return
            self.state = PlaybackState.ERROR
            self.last_error = message

        self.logger.error("Player error for %s: %s", video_id, message)
        if self.error_manager is not None:
            self.error_manager.report_video_load_error(message, context=video_id)

    def restart(self) -> Optional[float]:
        """
        Restart the current video from the beginning.

        Returns:
            0.0 as the seek target, or None if nothing is playing
        """
        with self.lock:
            video_id = self.video_id
            if video_id is None:
                return None
            self.start_from_beginning = True
            self._last_save_at = None
        self.position_store.clear_position(video_id)
        self.logger.info("Restarted %s from the beginning", video_id)
        return 0.0

    def stop(self) -> None:
        with self.lock:
            video_id = self.video_id
            self.video_id = None
            self.start_from_beginning = False
            self.state = PlaybackState.IDLE
            self._last_save_at = None
        if video_id:
            self.logger.info("Ended playback session for %s", video_id)

    def get_status(self) -> Dict[str, Any]:
        """
        Get current playback status.

        Returns:
            Dictionary with state, video, resume position and progress
        """
        with self.lock:
            video_id = self.video_id
            status = {
                "state": self.state.value,
                "video_id": video_id,
                "start_from_beginning": self.start_from_beginning,
                "error": self.last_error,
                "position": None,
                "duration": None,
                "progress": 0.0,
            }

        if video_id:
            record = self.position_store.get_position(video_id)
            if record is not None:
                status["position"] = record.position
                status["duration"] = record.duration
                status["progress"] = record.watch_progress
        return status
