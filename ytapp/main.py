"""
Main entry point for ytapp.

Initializes all components and starts the server.
"""

import argparse
import logging
from typing import Optional

import uvicorn

from .channels import ChannelsStore
from .clipboard import ClipboardWatcher
from .config_manager import ConfigManager
from .database import Database
from .errors import ErrorManager
from .intake import VideoIntakeController
from .ledger import FavoritesLedger, HistoryLedger, TitleBackfill
from .metadata import MetadataClient
from .models import ClipboardObservation
from .platform import create_pasteboard
from .playback import PlaybackSession
from .positions import PlaybackPositionStore
from .web.server import create_app
from .youtube import YouTubeClient

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


class YTApp:
    """Main application class that owns and wires all components."""

    def __init__(self, db_path: Optional[str] = None, headless: bool = False):
        """
        Initialize all components.

        Args:
            db_path: SQLite database path (defaults to ~/.ytapp/ytapp.db)
            headless: Use an in-memory pasteboard instead of the system clipboard
        """
        logger.info("Initializing ytapp...")

        self.database = Database(db_path)
        self.config_manager = ConfigManager(self.database)
        config = self.config_manager

        self.error_manager = ErrorManager(max_history=config.get_int("error_history_limit", 50))

        self.metadata_client = MetadataClient(timeout=config.get_float("oembed_timeout_seconds", 10.0))
        self.title_backfill = TitleBackfill(self.metadata_client)

        self.positions = PlaybackPositionStore(
            self.database,
            error_manager=self.error_manager,
            partial_watch_threshold=config.get_float("partial_watch_threshold_seconds", 30.0),
        )
        self.history = HistoryLedger(
            self.database,
            backfill=self.title_backfill,
            error_manager=self.error_manager,
            max_entries=config.get_int("history_max_entries", 500),
        )
        self.favorites = FavoritesLedger(
            self.database,
            backfill=self.title_backfill,
            error_manager=self.error_manager,
        )

        self.youtube_client = YouTubeClient(config)
        if not self.youtube_client.is_configured():
            logger.warning(
                "YouTube API key not configured. Channel features will be unavailable. "
                "Set it with configure_api_key.py or the web UI."
            )
        self.channels = ChannelsStore(
            self.database,
            youtube_client=self.youtube_client,
            error_manager=self.error_manager,
            max_videos_per_channel=config.get_int("max_videos_per_channel", 50),
        )

        self.playback_session = PlaybackSession(
            self.positions,
            error_manager=self.error_manager,
            save_interval=config.get_float("position_save_interval_seconds", 5.0),
        )

        self.pasteboard = create_pasteboard(headless=headless)
        self.clipboard_watcher = ClipboardWatcher(
            self.pasteboard,
            poll_interval=config.get_float("clipboard_poll_interval_seconds", 1.0),
            on_detect=self._on_clipboard_detect,
        )

        self.intake = VideoIntakeController(
            self.history,
            self.favorites,
            self.positions,
            self.playback_session,
            channels=self.channels,
            clipboard_watcher=self.clipboard_watcher,
        )

        # Stale bookmarks are dropped once per launch
        self.positions.prune_older_than(config.get_int("position_retention_days", 30))

        # Web server
        self.web_app = create_app(
            self.intake,
            self.playback_session,
            self.clipboard_watcher,
            self.history,
            self.favorites,
            self.positions,
            self.channels,
            self.youtube_client,
            self.error_manager,
            self.config_manager,
        )

        # Uvicorn server instance (will be created in run())
        self.uvicorn_server = None

        logger.info("ytapp initialized")

    def _on_clipboard_detect(self, observation: ClipboardObservation) -> None:
        """Auto-play copied links when enabled; otherwise the page offers them."""
        if self.config_manager.get_bool("clipboard_auto_play", False):
            self.intake.accept_clipboard()

    def run(self, host: str = "127.0.0.1", port: int = 8000, monitor_clipboard: bool = True):
        """Start the clipboard monitor and the web server (blocking)."""
        logger.info("Starting ytapp...")

        if monitor_clipboard:
            self.clipboard_watcher.start()

        logger.info("=" * 60)
        logger.info("ytapp is running!")
        logger.info("Player: http://%s:%s/", host, port)
        logger.info("API: http://%s:%s/api", host, port)
        logger.info("=" * 60)

        # Use uvicorn Server API for better control over shutdown
        config = uvicorn.Config(self.web_app, host=host, port=port, log_level="info")
        self.uvicorn_server = uvicorn.Server(config)
        self.uvicorn_server.run()

    def stop(self):
        """Stop all components."""
        logger.info("Stopping ytapp...")

        if self.uvicorn_server:
            self.uvicorn_server.should_exit = True

        self.clipboard_watcher.stop()
        self.title_backfill.shutdown()
        self.metadata_client.close()
        self.database.close()

        logger.info("ytapp stopped")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="ytapp - clipboard-driven YouTube player")
    parser.add_argument("--host", default="127.0.0.1", help="Address to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    parser.add_argument("--db", default=None, help="SQLite database path (default: ~/.ytapp/ytapp.db)")
    parser.add_argument(
        "--no-clipboard",
        action="store_true",
        help="Don't watch the system clipboard; videos arrive only through the web API",
    )
    args = parser.parse_args()

    app = YTApp(db_path=args.db, headless=args.no_clipboard)
    try:
        app.run(host=args.host, port=args.port, monitor_clipboard=not args.no_clipboard)
    except KeyboardInterrupt:
        pass
    finally:
        app.stop()


if __name__ == "__main__":
    main()
