"""
Active video selection.

Every way a video can be opened (clipboard, history, favorites, a channel
feed, the web API) funnels through VideoIntakeController, which keeps the
history and favorites ledgers and the playback session in step.
"""

import logging
import threading
from typing import Any, Dict, Optional

from .channels import ChannelsStore
from .clipboard import ClipboardWatcher
from .ledger import FavoritesLedger, HistoryLedger
from .playback import PlaybackSession
from .positions import PlaybackPositionStore

SOURCES = ("clipboard", "history", "favorites", "channel", "api")


class VideoIntakeController:
    """Owns the single active video slot."""

    def __init__(
        self,
        history: HistoryLedger,
        favorites: FavoritesLedger,
        positions: PlaybackPositionStore,
        playback: PlaybackSession,
        channels: Optional[ChannelsStore] = None,
        clipboard_watcher: Optional[ClipboardWatcher] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.history = history
        self.favorites = favorites
        self.positions = positions
        self.playback = playback
        self.channels = channels
        self.clipboard_watcher = clipboard_watcher

        self.active_video_id: Optional[str] = None
        self.active_source: Optional[str] = None
        self.lock = threading.Lock()

    @staticmethod
    def _validate(candidate: str, source: str) -> None:
        if not candidate:
            raise ValueError("Video ID must not be empty")
        if source not in SOURCES:
            raise ValueError(f"Unknown source: {source}")

    def _activate(
        self, candidate: str, source: str, title: Optional[str], from_beginning: bool
    ) -> None:
        """Caller holds self.lock."""
        self.active_video_id = candidate
        self.active_source = source

        # History before favorites promotion
        self.history.add(candidate, title)
        if self.favorites.contains(candidate):
            self.favorites.promote_to_top(candidate, title)
        if source == "channel" and self.channels is not None:
            self.channels.mark_video_watched(candidate)

        self.playback.start(candidate, start_from_beginning=from_beginning)

    def set_active(self, candidate: str, source: str = "clipboard", title: Optional[str] = None) -> bool:
        """
        Make candidate the active video.

        Args:
            candidate: Video ID
            source: Where the request came from (one of SOURCES)
            title: Known title, if the source has one

        Returns:
            False if candidate was already active (nothing changes)

        Raises:
            ValueError: If candidate is empty or source is unknown
        """
        self._validate(candidate, source)
        with self.lock:
            if candidate == self.active_video_id:
                self.logger.debug("Video %s already active", candidate)
                return False
            self._activate(candidate, source, title, from_beginning=False)
        self.logger.info("Active video set to %s (from %s)", candidate, source)
        return True

    def play_from_beginning(
        self, candidate: str, source: str = "history", title: Optional[str] = None
    ) -> bool:
        """
        Open candidate ignoring any saved position.

        The saved position is cleared even if candidate is already active,
        in which case its session restarts.
        """
        self._validate(candidate, source)
        self.positions.clear_position(candidate)
        with self.lock:
            if candidate == self.active_video_id:
                self.playback.start(candidate, start_from_beginning=True)
            else:
                self._activate(candidate, source, title, from_beginning=True)
        self.logger.info("Playing %s from the beginning (from %s)", candidate, source)
        return True

    def accept_clipboard(self) -> Optional[str]:
        """
        Open the video waiting in the clipboard slot, if any.

        Returns:
            The video ID taken from the clipboard, or None if the slot was empty
        """
        if self.clipboard_watcher is None:
            return None
        video_id = self.clipboard_watcher.consume()
        if video_id is None:
            return None
        self.set_active(video_id, source="clipboard")
        return video_id

    def clear_active(self) -> None:
        """Player closed."""
        with self.lock:
            video_id = self.active_video_id
            self.active_video_id = None
            self.active_source = None
            self.playback.stop()
        if video_id:
            self.logger.info("Closed video %s", video_id)

    def get_status(self) -> Dict[str, Any]:
        with self.lock:
            video_id = self.active_video_id
            source = self.active_source
        entry = self.history.get(video_id) if video_id else None
        return {
            "video_id": video_id,
            "source": source,
            "title": entry.title if entry else None,
            "is_favorite": self.favorites.contains(video_id) if video_id else False,
        }
