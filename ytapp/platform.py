"""
Platform-specific code for macOS, Linux and Windows.

This module isolates platform-specific functionality to keep the main codebase
platform-agnostic. Includes pasteboard access for the clipboard watcher.
"""

import logging
import os
import shutil
import subprocess
import sys
import threading
from abc import ABC, abstractmethod
from typing import List, Optional

logger = logging.getLogger(__name__)


class PasteboardUnavailable(Exception):
    """Raised when no way to read the system clipboard exists on this host."""

    pass


class Pasteboard(ABC):
    """Read-only view of a clipboard."""

    @abstractmethod
    def change_count(self) -> int:
        """Monotonic counter that increases whenever the clipboard changes."""
        ...

    @abstractmethod
    def read_text(self) -> Optional[str]:
        """Current text content, or None if the clipboard holds no text."""
        ...


class MemoryPasteboard(Pasteboard):
    """In-process pasteboard, used when running headless and in tests."""

    def __init__(self, text: Optional[str] = None):
        self._lock = threading.Lock()
        self._text = text
        self._change_count = 0 if text is None else 1

    def set_text(self, text: Optional[str]) -> None:
        """Replace the content, bumping the change count like a real copy does."""
        with self._lock:
            self._text = text
            self._change_count += 1

    def change_count(self) -> int:
        with self._lock:
            return self._change_count

    def read_text(self) -> Optional[str]:
        with self._lock:
            return self._text


def _paste_command() -> Optional[List[str]]:
    """Find the command that prints the clipboard text on this platform."""
    if sys.platform == "darwin":
        return ["pbpaste"]
    if sys.platform == "win32":
        return ["powershell", "-NoProfile", "-Command", "Get-Clipboard"]
    if sys.platform.startswith("linux"):
        if os.environ.get("WAYLAND_DISPLAY") and shutil.which("wl-paste"):
            return ["wl-paste", "--no-newline"]
        if shutil.which("xclip"):
            return ["xclip", "-selection", "clipboard", "-o"]
        if shutil.which("xsel"):
            return ["xsel", "--clipboard", "--output"]
    return None


class SystemPasteboard(Pasteboard):
    """
    The desktop clipboard, read through the platform's paste command.

    None of the paste commands expose a change counter, so the counter is
    derived here: it increments whenever the fetched text differs from the
    previous fetch.
    """

    def __init__(self, command: Optional[List[str]] = None, timeout: float = 1.0):
        """
        Initialize SystemPasteboard.

        Args:
            command: Paste command to run (auto-detected if None)
            timeout: Seconds to wait for the paste command

        Raises:
            PasteboardUnavailable: If no paste command is available
        """
        self.command = command or _paste_command()
        if not self.command:
            raise PasteboardUnavailable(f"No clipboard command available on {sys.platform}")
        self.timeout = timeout
        self._lock = threading.Lock()
        self._last_text: Optional[str] = None
        self._change_count = 0
        logger.info("Using system pasteboard via %s", self.command[0])

    def _fetch(self) -> Optional[str]:
        try:
            result = subprocess.run(
                self.command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("Clipboard read failed: %s", e)
            return None

        if result.returncode != 0:
            # xclip/wl-paste exit non-zero when the clipboard holds no text
            return None
        return result.stdout

    def change_count(self) -> int:
        text = self._fetch()
        with self._lock:
            if text != self._last_text:
                self._last_text = text
                self._change_count += 1
            return self._change_count

    def read_text(self) -> Optional[str]:
        with self._lock:
            return self._last_text


def create_pasteboard(headless: bool = False) -> Pasteboard:
    """
    Create the pasteboard to watch.

    Falls back to an in-memory pasteboard when no system clipboard is reachable.
    """
    if headless:
        return MemoryPasteboard()
    try:
        return SystemPasteboard()
    except PasteboardUnavailable as e:
        logger.warning("%s; clipboard detection limited to the web API", e)
        return MemoryPasteboard()
