"""
Configuration management using database storage.

Provides access to configuration values with defaults and type conversion.
The CONFIG_SCHEMA provides rich metadata for building user-friendly configuration UIs.
"""

import logging
import os
from typing import Any, Dict, Optional

from .database import ConfigRepository, Database

# Environment variable that overrides the stored YouTube API key
API_KEY_ENV_VAR = "YTAPP_YOUTUBE_API_KEY"

# Configuration groups define the logical sections in the config UI
CONFIG_GROUPS = {
    "clipboard": {"label": "Clipboard", "order": 1},
    "playback": {"label": "Playback & Resume", "order": 2},
    "channels": {"label": "Channels", "order": 3},
    "api": {"label": "API & Storage", "order": 4},
}

# Schema defining metadata for each editable configuration key
# This drives the configuration UI - the frontend reads this to render appropriate controls
CONFIG_SCHEMA = {
    # Clipboard
    "clipboard_poll_interval_seconds": {
        "group": "clipboard",
        "label": "Clipboard Check Interval",
        "description": "How often the clipboard is checked for a new YouTube link.",
        "control": "slider",
        "min": 0.5,
        "max": 5,
        "step": 0.5,
        "display_format": "seconds",
    },
    "clipboard_auto_play": {
        "group": "clipboard",
        "label": "Play Copied Links Automatically",
        "description": "Start playing as soon as a YouTube link is copied, instead of waiting for 'Play from Clipboard'.",
        "control": "toggle",
    },
    # Playback & Resume
    "position_save_interval_seconds": {
        "group": "playback",
        "label": "Position Save Interval",
        "description": "How often the playback position is saved while a video plays.",
        "control": "slider",
        "min": 1,
        "max": 30,
        "step": 1,
        "display_format": "seconds",
    },
    "partial_watch_threshold_seconds": {
        "group": "playback",
        "label": "Resume Threshold",
        "description": "A video counts as partially watched once you are this far in and this far from the end.",
        "control": "slider",
        "min": 5,
        "max": 120,
        "step": 5,
        "display_format": "seconds",
    },
    "position_retention_days": {
        "group": "playback",
        "label": "Forget Positions After",
        "description": "Saved positions not updated for this many days are removed.",
        "control": "slider",
        "min": 1,
        "max": 365,
        "step": 1,
        "display_format": "days",
    },
    # Channels
    "default_lookback_days": {
        "group": "channels",
        "label": "Default Lookback",
        "description": "How many days of uploads to fetch for a newly added channel.",
        "control": "slider",
        "min": 1,
        "max": 30,
        "step": 1,
        "display_format": "days",
    },
    "max_videos_per_channel": {
        "group": "channels",
        "label": "Videos per Channel",
        "description": "Maximum number of recent uploads fetched per channel.",
        "control": "slider",
        "min": 5,
        "max": 50,
        "step": 5,
    },
    # API & Storage
    "youtube_api_key": {
        "group": "api",
        "label": "YouTube API Key",
        "description": "Your YouTube Data API v3 key for channel search and uploads. Get one from Google Cloud Console.",
        "control": "password",
    },
    "history_max_entries": {
        "group": "api",
        "label": "History Size",
        "description": "Maximum number of videos kept in watch history.",
        "control": "slider",
        "min": 50,
        "max": 5000,
        "step": 50,
    },
}


class ConfigManager:
    """Manages configuration stored in database."""

    # Default configuration values
    DEFAULTS = {
        "youtube_api_key": None,
        "clipboard_poll_interval_seconds": "1.0",
        "clipboard_auto_play": "false",
        "position_save_interval_seconds": "5",
        "position_retention_days": "30",
        "partial_watch_threshold_seconds": "30",
        "default_lookback_days": "7",
        "max_videos_per_channel": "50",
        "max_channel_search_results": "10",
        "error_history_limit": "50",
        "history_max_entries": "500",
        "oembed_timeout_seconds": "10",
    }

    # Editable keys are derived from CONFIG_SCHEMA
    # Keys not in CONFIG_SCHEMA are internal/system config (not shown in UI)

    def __init__(self, database: Database):
        """
        Initialize ConfigManager.

        Args:
            database: Database instance
        """
        self.database = database
        self.repository = ConfigRepository(database)
        self.logger = logging.getLogger(__name__)
        self.repository.initialize_defaults(self.DEFAULTS)

    def get(self, key: str, default: Any = None) -> Optional[str]:
        """
        Get a configuration value.

        Args:
            key: Configuration key
            default: Default value if not found (uses DEFAULTS if None)

        Returns:
            Configuration value as string, or None if not found
        """
        if key == "youtube_api_key":
            env_key = os.environ.get(API_KEY_ENV_VAR)
            if env_key:
                return env_key

        if default is None:
            default = self.DEFAULTS.get(key)

        entry = self.repository.get(key)
        if entry:
            return entry.value if entry.value else default
        return default

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """Get configuration value as integer."""
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            self.logger.warning("Invalid integer value for %s: %s", key, value)
            return default

    def get_float(self, key: str, default: Optional[float] = None) -> Optional[float]:
        """Get configuration value as float."""
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except ValueError:
            self.logger.warning("Invalid float value for %s: %s", key, value)
            return default

    def get_bool(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        """Get configuration value as boolean."""
        value = self.get(key)
        if value is None or value == "":
            return default
        return value.lower() in ("true", "1", "yes", "on")

    def set(self, key: str, value: Any) -> bool:
        """
        Set a configuration value.

        Args:
            key: Configuration key
            value: Value to set (will be converted to string)

        Returns:
            True if successful
        """
        if isinstance(value, bool):
            value = "true" if value else "false"
        return self.repository.set(key, str(value))

    def get_all(self) -> dict:
        """
        Get all configuration values.

        The API key is masked so it never leaves the process in clear text.

        Returns:
            Dictionary of all configuration key-value pairs
        """
        entries = self.repository.get_all()
        config = {entry.key: entry.value for entry in entries}

        # Merge with defaults to ensure all keys are present
        result = self.DEFAULTS.copy()
        result.update(config)
        if self.get("youtube_api_key"):
            result["youtube_api_key"] = "********"
        return result

    def get_config_schema(self) -> Dict[str, dict]:
        """Get the configuration schema for the settings UI."""
        return {key: dict(key_def) for key, key_def in CONFIG_SCHEMA.items()}

    def get_config_groups(self) -> Dict[str, dict]:
        """
        Get the configuration group definitions.

        Returns:
            Dictionary mapping group IDs to their display metadata.
        """
        return CONFIG_GROUPS.copy()

    def get_full_config(self) -> dict:
        """
        Get complete configuration data for the UI.

        Returns:
            Dictionary with 'values', 'schema', and 'groups' keys.
        """
        return {
            "values": self.get_all(),
            "schema": self.get_config_schema(),
            "groups": self.get_config_groups(),
        }
