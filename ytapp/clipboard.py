"""
Clipboard watching for ytapp.

Polls a pasteboard, detects changes, and extracts a YouTube video ID from
whatever text was copied. Detection never raises: unreadable or unrelated
clipboard content simply yields no video.
"""

import logging
import re
import threading
from datetime import datetime
from typing import Callable, Optional

from .models import ClipboardObservation
from .platform import Pasteboard

logger = logging.getLogger(__name__)

# Ordered: first match wins
VIDEO_ID_PATTERNS = [
    # Standard watch URL, v= anywhere in the query string
    re.compile(
        r"(?:https?://)?(?:www\.|m\.|music\.)?youtube\.com/watch\?(?:[^\s#]*?&)?v=([A-Za-z0-9_\-]+)",
        re.IGNORECASE,
    ),
    # Short URL
    re.compile(r"(?:https?://)?(?:www\.)?youtu\.be/([A-Za-z0-9_\-]+)", re.IGNORECASE),
    # Embed URL
    re.compile(
        r"(?:https?://)?(?:www\.)?youtube(?:-nocookie)?\.com/embed/([A-Za-z0-9_\-]+)",
        re.IGNORECASE,
    ),
    # Legacy /v/ URL
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/v/([A-Za-z0-9_\-]+)", re.IGNORECASE),
]


def extract_video_id(text: Optional[str]) -> Optional[str]:
    """
    Extract a YouTube video ID from arbitrary text.

    Args:
        text: Text that may contain a YouTube URL

    Returns:
        Video ID from the first recognized URL form, or None
    """
    if not text:
        return None
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def watch_url(video_id: str) -> str:
    """Canonical watch URL for a video ID."""
    return f"https://www.youtube.com/watch?v={video_id}"


class ClipboardWatcher:
    """
    Publishes the most recently copied YouTube video ID.

    The detected ID sits in a single slot; a later detection replaces an
    earlier one that nobody consumed.
    """

    def __init__(
        self,
        pasteboard: Pasteboard,
        poll_interval: float = 1.0,
        on_detect: Optional[Callable[[ClipboardObservation], None]] = None,
    ):
        """
        Initialize ClipboardWatcher.

        Args:
            pasteboard: Pasteboard to poll
            poll_interval: Seconds between polls when running in the background
            on_detect: Called with each new observation that carries a video ID
        """
        self.logger = logging.getLogger(__name__)
        self.pasteboard = pasteboard
        self.poll_interval = poll_interval
        self.on_detect = on_detect

        self.current_video_id: Optional[str] = None
        self.last_observation: Optional[ClipboardObservation] = None

        self._lock = threading.Lock()
        self._last_change_count: Optional[int] = None
        self._last_raw_text: Optional[str] = None

        self._monitor_thread: Optional[threading.Thread] = None
        self._monitoring = False
        self._stop_event = threading.Event()

    @property
    def has_video(self) -> bool:
        return self.current_video_id is not None

    def poll(self) -> Optional[ClipboardObservation]:
        """
        Check the pasteboard once.

        Returns:
            The new observation if the clipboard changed to different text, else None
        """
        try:
            change_count = self.pasteboard.change_count()
        except Exception as e:
            self.logger.debug("Pasteboard change count unavailable: %s", e)
            return None

        with self._lock:
            if change_count == self._last_change_count:
                return None
            self._last_change_count = change_count

            try:
                text = self.pasteboard.read_text()
            except Exception as e:
                self.logger.debug("Pasteboard read failed: %s", e)
                text = None

            if text is None:
                # No string content is not an error, there is just nothing to play
                self._last_raw_text = None
                self.current_video_id = None
                return None

            if text == self._last_raw_text:
                return None
            self._last_raw_text = text

            video_id = extract_video_id(text)
            observation = ClipboardObservation(
                raw_text=text, extracted_id=video_id, observed_at=datetime.now()
            )
            self.last_observation = observation
            self.current_video_id = video_id

        if video_id:
            self.logger.info("Detected YouTube video on clipboard: %s", video_id)
            if self.on_detect:
                try:
                    self.on_detect(observation)
                except Exception as e:
                    self.logger.error("Error in clipboard detect callback: %s", e, exc_info=True)
        return observation

    def consume(self) -> Optional[str]:
        """Take the detected video ID, leaving the slot empty."""
        with self._lock:
            video_id = self.current_video_id
            self.current_video_id = None
            return video_id

    # =========================================================================
    # Background polling
    # =========================================================================

    def start(self):
        """Start background thread that polls the pasteboard."""
        if self._monitoring:
            return

        self._monitoring = True
        self._stop_event.clear()

        def monitor():
            while self._monitoring:
                try:
                    self.poll()
                    # Sleep before next check (wakes immediately if stop_event is set)
                    self._stop_event.wait(self.poll_interval)
                except Exception as e:
                    self.logger.error("Error in clipboard monitor: %s", e, exc_info=True)
                    self._stop_event.wait(5.0)

        self._monitor_thread = threading.Thread(target=monitor, daemon=True, name="ClipboardMonitor")
        self._monitor_thread.start()
        self.logger.info("Clipboard monitor started (every %ss)", self.poll_interval)

    def stop(self):
        """Stop the clipboard monitor thread."""
        if not self._monitoring:
            return

        self.logger.info("Stopping clipboard monitor...")
        self._monitoring = False
        self._stop_event.set()  # Wake the thread if it's sleeping

        if self._monitor_thread and self._monitor_thread.is_alive():
            self._monitor_thread.join(timeout=0.5)
            if self._monitor_thread.is_alive():
                self.logger.warning("Clipboard monitor thread did not stop within timeout")

        self.logger.info("Clipboard monitor stopped")

    @property
    def is_running(self) -> bool:
        return self._monitoring
