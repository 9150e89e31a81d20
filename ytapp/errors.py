"""
Error taxonomy and error reporting for ytapp.

Every user-facing failure is an AppError with a severity tier. The
ErrorManager keeps a single "current error" slot plus a bounded log of
recent errors for later inspection.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

DEFAULT_ERROR_HISTORY_LIMIT = 50


class ErrorSeverity(Enum):
    """Governs presentation only: toast vs. persistent alert."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AppError(Exception):
    """Base class for errors surfaced to the user."""

    category = "unknown"
    label = "Unknown Error"
    severity = ErrorSeverity.ERROR
    recovery_suggestion = "An unexpected error occurred. Please try again."

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def description(self) -> str:
        return f"{self.label}: {self.message}"

    @property
    def auto_dismiss(self) -> bool:
        """Info and warning errors are shown as transient toasts."""
        return self.severity != ErrorSeverity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "message": self.message,
            "description": self.description,
            "severity": self.severity.value,
            "recovery_suggestion": self.recovery_suggestion,
            "auto_dismiss": self.auto_dismiss,
        }


class NetworkError(AppError):
    category = "network"
    label = "Network Error"
    severity = ErrorSeverity.WARNING
    recovery_suggestion = "Please check your internet connection and try again."


class VideoLoadError(AppError):
    category = "video_load"
    label = "Video Loading Error"
    severity = ErrorSeverity.WARNING
    recovery_suggestion = "The video may be unavailable. Try a different video or check the URL."


class DataError(AppError):
    category = "data"
    label = "Data Error"
    severity = ErrorSeverity.ERROR
    recovery_suggestion = "There was a problem with your data. Try restarting the app."


class ClipboardError(AppError):
    category = "clipboard"
    label = "Clipboard Error"
    severity = ErrorSeverity.INFO
    recovery_suggestion = "Please copy a valid YouTube URL to your clipboard."


class ChannelError(AppError):
    category = "channel"
    label = "Channel Error"
    severity = ErrorSeverity.WARNING
    recovery_suggestion = "Unable to load channel information. Please try again later."


class PlaybackError(AppError):
    category = "playback"
    label = "Playback Error"
    severity = ErrorSeverity.WARNING
    recovery_suggestion = "There was a problem playing the video. Please try again."


class UnknownError(AppError):
    pass


@dataclass
class ErrorLogEntry:
    """An error as recorded in the error log."""

    error: AppError
    timestamp: datetime
    context: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.error.to_dict()
        data["timestamp"] = self.timestamp.isoformat()
        data["context"] = self.context
        return data


class ErrorManager:
    """Collects reported errors for presentation."""

    def __init__(self, max_history: int = DEFAULT_ERROR_HISTORY_LIMIT):
        """
        Initialize ErrorManager.

        Args:
            max_history: Number of log entries kept; the oldest are evicted first
        """
        self.logger = logging.getLogger(__name__)
        self.current_error: Optional[AppError] = None
        self._history: deque = deque(maxlen=max(1, max_history))
        self._lock = threading.Lock()

    def report(self, error: AppError, context: Optional[str] = None) -> None:
        """Make error the current error and prepend it to the log."""
        if context:
            self.logger.warning("%s (context: %s)", error.description, context)
        else:
            self.logger.warning("%s", error.description)

        with self._lock:
            self.current_error = error
            self._history.appendleft(ErrorLogEntry(error, datetime.now(), context))

    def clear_current(self) -> None:
        with self._lock:
            self.current_error = None

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()

    def history(self) -> List[ErrorLogEntry]:
        """Most recent first."""
        with self._lock:
            return list(self._history)

    # Convenience methods for common errors

    def report_network_error(self, message: str, context: Optional[str] = None) -> None:
        self.report(NetworkError(message), context=context)

    def report_video_load_error(self, message: str, context: Optional[str] = None) -> None:
        self.report(VideoLoadError(message), context=context)

    def report_data_error(self, message: str, context: Optional[str] = None) -> None:
        self.report(DataError(message), context=context)

    def report_clipboard_error(self, message: str, context: Optional[str] = None) -> None:
        self.report(ClipboardError(message), context=context)

    def report_channel_error(self, message: str, context: Optional[str] = None) -> None:
        self.report(ChannelError(message), context=context)

    def report_playback_error(self, message: str, context: Optional[str] = None) -> None:
        self.report(PlaybackError(message), context=context)
