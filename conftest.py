"""
Pytest configuration for ytapp tests.

Provides:
- @pytest.mark.system_clipboard marker for tests that read the real clipboard
- Auto-skip of those tests when no clipboard command is available
"""

import pytest

from ytapp.platform import _paste_command


def _is_system_clipboard_available():
    """Check if a paste command exists on this host."""
    return _paste_command() is not None


SYSTEM_CLIPBOARD_AVAILABLE = _is_system_clipboard_available()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "system_clipboard: marks tests as reading the system clipboard (skipped if unavailable)",
    )


def pytest_collection_modifyitems(config, items):
    """Auto-skip system clipboard tests when no paste command is available."""
    if SYSTEM_CLIPBOARD_AVAILABLE:
        return

    skip_clipboard = pytest.mark.skip(reason="No clipboard command available (pbpaste/xclip/...)")
    for item in items:
        if "system_clipboard" in item.keywords:
            item.add_marker(skip_clipboard)
