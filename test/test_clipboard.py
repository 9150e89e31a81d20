"""
Unit tests for video ID extraction and ClipboardWatcher.
"""

from unittest.mock import Mock

import pytest

from ytapp.clipboard import ClipboardWatcher, extract_video_id, watch_url
from ytapp.platform import MemoryPasteboard, SystemPasteboard


class TestExtractVideoId:
    """Tests for extract_video_id."""

    @pytest.mark.parametrize(
        "text",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://youtube.com/watch?v=dQw4w9WgXcQ&t=42s",
            "https://m.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
            "youtube.com/watch?v=dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ?si=abcdef",
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
            "https://www.youtube-nocookie.com/embed/dQw4w9WgXcQ",
        ],
    )
    def test_recognized_forms(self, text):
        assert extract_video_id(text) == "dQw4w9WgXcQ"

    def test_link_inside_text(self):
        text = "check this out https://youtu.be/dQw4w9WgXcQ please"
        assert extract_video_id(text) == "dQw4w9WgXcQ"

    @pytest.mark.parametrize(
        "text",
        [None, "", "hello world", "https://vimeo.com/12345", "https://www.youtube.com/@somechannel"],
    )
    def test_no_video(self, text):
        assert extract_video_id(text) is None

    def test_first_match_wins(self):
        text = "https://www.youtube.com/watch?v=firstID123 and https://youtu.be/secondID45"
        assert extract_video_id(text) == "firstID123"

    def test_watch_url(self):
        assert watch_url("abc123") == "https://www.youtube.com/watch?v=abc123"


class TestClipboardWatcher:
    """Tests for polling behavior."""

    def test_detects_video(self):
        pasteboard = MemoryPasteboard()
        watcher = ClipboardWatcher(pasteboard)

        pasteboard.set_text("https://youtu.be/dQw4w9WgXcQ")
        observation = watcher.poll()

        assert observation is not None
        assert observation.extracted_id == "dQw4w9WgXcQ"
        assert watcher.current_video_id == "dQw4w9WgXcQ"
        assert watcher.has_video

    def test_unchanged_count_does_not_read(self):
        pasteboard = Mock()
        pasteboard.change_count.return_value = 3
        pasteboard.read_text.return_value = "https://youtu.be/dQw4w9WgXcQ"
        watcher = ClipboardWatcher(pasteboard)

        watcher.poll()
        watcher.poll()

        assert pasteboard.read_text.call_count == 1

    def test_same_text_short_circuits(self):
        pasteboard = MemoryPasteboard()
        on_detect = Mock()
        watcher = ClipboardWatcher(pasteboard, on_detect=on_detect)

        pasteboard.set_text("https://youtu.be/dQw4w9WgXcQ")
        watcher.poll()
        # Counter bumps without a content change
        pasteboard.set_text("https://youtu.be/dQw4w9WgXcQ")
        assert watcher.poll() is None

        on_detect.assert_called_once()

    def test_non_youtube_text_clears_slot(self):
        pasteboard = MemoryPasteboard()
        watcher = ClipboardWatcher(pasteboard)

        pasteboard.set_text("https://youtu.be/dQw4w9WgXcQ")
        watcher.poll()
        pasteboard.set_text("just some notes")
        observation = watcher.poll()

        assert observation.extracted_id is None
        assert watcher.current_video_id is None

    def test_no_text_clears_slot(self):
        pasteboard = MemoryPasteboard()
        watcher = ClipboardWatcher(pasteboard)

        pasteboard.set_text("https://youtu.be/dQw4w9WgXcQ")
        watcher.poll()
        pasteboard.set_text(None)

        assert watcher.poll() is None
        assert watcher.current_video_id is None

    def test_later_detection_supersedes(self):
        pasteboard = MemoryPasteboard()
        watcher = ClipboardWatcher(pasteboard)

        pasteboard.set_text("https://youtu.be/firstID123")
        watcher.poll()
        pasteboard.set_text("https://youtu.be/secondID45")
        watcher.poll()

        assert watcher.current_video_id == "secondID45"

    def test_consume_empties_slot(self):
        pasteboard = MemoryPasteboard()
        watcher = ClipboardWatcher(pasteboard)
        pasteboard.set_text("https://youtu.be/dQw4w9WgXcQ")
        watcher.poll()

        assert watcher.consume() == "dQw4w9WgXcQ"
        assert watcher.consume() is None
        assert not watcher.has_video

    def test_pasteboard_failure_is_silent(self):
        pasteboard = Mock()
        pasteboard.change_count.side_effect = OSError("no clipboard")
        watcher = ClipboardWatcher(pasteboard)

        assert watcher.poll() is None
        assert watcher.current_video_id is None

    def test_read_failure_is_silent(self):
        pasteboard = Mock()
        pasteboard.change_count.return_value = 1
        pasteboard.read_text.side_effect = RuntimeError("denied")
        watcher = ClipboardWatcher(pasteboard)

        assert watcher.poll() is None

    def test_callback_errors_are_contained(self):
        pasteboard = MemoryPasteboard()
        watcher = ClipboardWatcher(pasteboard, on_detect=Mock(side_effect=RuntimeError("boom")))
        pasteboard.set_text("https://youtu.be/dQw4w9WgXcQ")

        observation = watcher.poll()

        assert observation.extracted_id == "dQw4w9WgXcQ"

    def test_start_and_stop(self):
        pasteboard = MemoryPasteboard("https://youtu.be/dQw4w9WgXcQ")
        detected = []
        watcher = ClipboardWatcher(pasteboard, poll_interval=0.01, on_detect=detected.append)

        watcher.start()
        assert watcher.is_running
        watcher._monitor_thread.join(timeout=0.2)
        watcher.stop()

        assert not watcher.is_running
        assert detected and detected[0].extracted_id == "dQw4w9WgXcQ"


class TestSystemPasteboard:
    """Tests for the command-backed pasteboard."""

    def test_change_count_follows_content(self, monkeypatch):
        pasteboard = SystemPasteboard(command=["fake-paste"])
        outputs = iter(["one", "one", "two"])
        monkeypatch.setattr(pasteboard, "_fetch", lambda: next(outputs))

        first = pasteboard.change_count()
        second = pasteboard.change_count()
        third = pasteboard.change_count()

        assert first == second
        assert third == first + 1
        assert pasteboard.read_text() == "two"

    @pytest.mark.system_clipboard
    def test_reads_real_clipboard(self):
        pasteboard = SystemPasteboard()
        assert isinstance(pasteboard.change_count(), int)
