"""
FastAPI web server for ytapp.

Provides the REST API used by the browser player page, plus the page itself.
"""

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from ..channels import ChannelsStore, clamp_lookback_days
from ..clipboard import ClipboardWatcher
from ..config_manager import ConfigManager
from ..errors import ErrorManager
from ..intake import VideoIntakeController
from ..ledger import FavoritesLedger, HistoryLedger
from ..playback import PlaybackSession
from ..positions import PlaybackPositionStore
from ..youtube import (
    ApiKeyMissing,
    ChannelNotFound,
    InvalidChannelURL,
    NetworkError,
    QuotaExceeded,
    YouTubeAPIError,
    YouTubeClient,
)

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"


# Request models
class ActivateRequest(BaseModel):
    video_id: str
    source: str = "api"
    title: Optional[str] = None
    from_beginning: bool = False


class PlayerReadyRequest(BaseModel):
    video_id: str


class PositionRequest(BaseModel):
    video_id: str
    position: float
    duration: float
    force: bool = False  # Pause and close bypass the save throttle


class PlayerErrorRequest(BaseModel):
    video_id: str
    message: str


class LedgerAddRequest(BaseModel):
    video_id: str
    title: Optional[str] = None


class PromoteRequest(BaseModel):
    title: Optional[str] = None


class PruneRequest(BaseModel):
    days: Optional[int] = None


class AddChannelRequest(BaseModel):
    """Either a channel ID or a channel URL."""

    channel_id: Optional[str] = None
    url: Optional[str] = None


class UpdateChannelRequest(BaseModel):
    is_active: Optional[bool] = None
    lookback_days: Optional[int] = None


class ConfigUpdateRequest(BaseModel):
    key: str
    value: str


# Dependency to get components
def get_intake(request: Request) -> VideoIntakeController:
    """Get VideoIntakeController from app state."""
    return request.app.state.intake


def get_playback_session(request: Request) -> PlaybackSession:
    """Get PlaybackSession from app state."""
    return request.app.state.playback_session


def get_clipboard_watcher(request: Request) -> ClipboardWatcher:
    """Get ClipboardWatcher from app state."""
    return request.app.state.clipboard_watcher


def get_history(request: Request) -> HistoryLedger:
    return request.app.state.history


def get_favorites(request: Request) -> FavoritesLedger:
    return request.app.state.favorites


def get_positions(request: Request) -> PlaybackPositionStore:
    return request.app.state.positions


def get_channels_store(request: Request) -> ChannelsStore:
    return request.app.state.channels_store


def get_youtube_client(request: Request) -> YouTubeClient:
    return request.app.state.youtube_client


def get_error_manager(request: Request) -> ErrorManager:
    return request.app.state.error_manager


def get_config_manager(request: Request) -> ConfigManager:
    """Get ConfigManager from app state."""
    return request.app.state.config_manager


def _youtube_http_error(e: YouTubeAPIError, errors: ErrorManager) -> HTTPException:
    """Map a YouTube API failure to an HTTP error and report it."""
    if isinstance(e, NetworkError):
        errors.report_network_error(str(e))
    else:
        errors.report_channel_error(str(e))

    if isinstance(e, ApiKeyMissing):
        status_code = 503
    elif isinstance(e, ChannelNotFound):
        status_code = 404
    elif isinstance(e, InvalidChannelURL):
        status_code = 400
    elif isinstance(e, QuotaExceeded):
        status_code = 429
    else:
        status_code = 502
    return HTTPException(status_code=status_code, detail=str(e))


def _channel_dict(channel, channels: ChannelsStore) -> dict:
    data = asdict(channel)
    data["unwatched_count"] = channels.get_unwatched_count(channel.id)
    return data


def create_app(
    intake: VideoIntakeController,
    playback_session: PlaybackSession,
    clipboard_watcher: ClipboardWatcher,
    history: HistoryLedger,
    favorites: FavoritesLedger,
    positions: PlaybackPositionStore,
    channels_store: ChannelsStore,
    youtube_client: YouTubeClient,
    error_manager: ErrorManager,
    config_manager: ConfigManager,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(title="ytapp", version="1.0.0")

    # Store components in app state
    app.state.intake = intake
    app.state.playback_session = playback_session
    app.state.clipboard_watcher = clipboard_watcher
    app.state.history = history
    app.state.favorites = favorites
    app.state.positions = positions
    app.state.channels_store = channels_store
    app.state.youtube_client = youtube_client
    app.state.error_manager = error_manager
    app.state.config_manager = config_manager

    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    # App endpoints
    @app.get("/api/status")
    async def get_status(
        intake_ctl: VideoIntakeController = Depends(get_intake),
        session: PlaybackSession = Depends(get_playback_session),
        watcher: ClipboardWatcher = Depends(get_clipboard_watcher),
        channels: ChannelsStore = Depends(get_channels_store),
        errors: ErrorManager = Depends(get_error_manager),
    ):
        """Everything the player page polls for."""
        current_error = errors.current_error
        return {
            "active": intake_ctl.get_status(),
            "playback": session.get_status(),
            "clipboard": {
                "video_id": watcher.current_video_id,
                "monitoring": watcher.is_running,
            },
            "unwatched_count": channels.get_total_unwatched_count(),
            "current_error": current_error.to_dict() if current_error else None,
        }

    @app.post("/api/app/foreground")
    def app_foreground(
        watcher: ClipboardWatcher = Depends(get_clipboard_watcher),
        store: PlaybackPositionStore = Depends(get_positions),
        config: ConfigManager = Depends(get_config_manager),
    ):
        """Page became visible: re-check the clipboard and prune stale positions."""
        watcher.poll()
        retention_days = config.get_int("position_retention_days", 30)
        pruned = store.prune_older_than(retention_days)
        return {"clipboard_video_id": watcher.current_video_id, "pruned": pruned}

    # Clipboard endpoints
    @app.get("/api/clipboard")
    async def get_clipboard(watcher: ClipboardWatcher = Depends(get_clipboard_watcher)):
        observation = watcher.last_observation
        return {
            "video_id": watcher.current_video_id,
            "observed_at": observation.observed_at if observation else None,
        }

    @app.post("/api/clipboard/accept")
    async def accept_clipboard(intake_ctl: VideoIntakeController = Depends(get_intake)):
        """Open the video waiting on the clipboard."""
        video_id = intake_ctl.accept_clipboard()
        if video_id is None:
            raise HTTPException(status_code=404, detail="No YouTube video on the clipboard")
        return {"status": "playing", "video_id": video_id}

    # Active video endpoints
    @app.get("/api/active")
    async def get_active(intake_ctl: VideoIntakeController = Depends(get_intake)):
        return intake_ctl.get_status()

    @app.post("/api/active")
    async def set_active(
        request_data: ActivateRequest,
        intake_ctl: VideoIntakeController = Depends(get_intake),
    ):
        """Open a video from history, favorites, a channel feed or a pasted ID."""
        try:
            if request_data.from_beginning:
                changed = intake_ctl.play_from_beginning(
                    request_data.video_id, request_data.source, request_data.title
                )
            else:
                changed = intake_ctl.set_active(
                    request_data.video_id, request_data.source, request_data.title
                )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"status": "playing" if changed else "unchanged", **intake_ctl.get_status()}

    @app.delete("/api/active")
    async def clear_active(intake_ctl: VideoIntakeController = Depends(get_intake)):
        intake_ctl.clear_active()
        return {"status": "closed"}

    # Player bridge endpoints
    @app.post("/api/player/ready")
    async def player_ready(
        request_data: PlayerReadyRequest,
        session: PlaybackSession = Depends(get_playback_session),
    ):
        """Player loaded; reply with the offset to resume from."""
        return {"seek_to": session.on_player_ready(request_data.video_id)}

    @app.post("/api/player/position")
    async def player_position(
        request_data: PositionRequest,
        session: PlaybackSession = Depends(get_playback_session),
    ):
        saved = session.on_position_update(
            request_data.video_id,
            request_data.position,
            request_data.duration,
            force=request_data.force,
        )
        return {"saved": saved}

    @app.post("/api/player/error")
    async def player_error(
        request_data: PlayerErrorRequest,
        session: PlaybackSession = Depends(get_playback_session),
    ):
        session.on_player_error(request_data.video_id, request_data.message)
        return {"status": "reported"}

    @app.post("/api/player/restart")
    async def player_restart(session: PlaybackSession = Depends(get_playback_session)):
        seek_to = session.restart()
        if seek_to is None:
            raise HTTPException(status_code=409, detail="Nothing is playing")
        return {"seek_to": seek_to}

    # History endpoints
    @app.get("/api/history")
    async def get_history_entries(ledger: HistoryLedger = Depends(get_history)):
        return {"history": [asdict(entry) for entry in ledger.entries()]}

    @app.post("/api/history")
    async def add_history_entry(
        request_data: LedgerAddRequest, ledger: HistoryLedger = Depends(get_history)
    ):
        try:
            entry = ledger.add(request_data.video_id, request_data.title)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"status": "added", "entry": asdict(entry)}

    @app.delete("/api/history")
    async def clear_history(ledger: HistoryLedger = Depends(get_history)):
        count = ledger.clear_all()
        return {"status": "cleared", "items_removed": count}

    @app.delete("/api/history/at/{index}")
    async def remove_history_at(index: int, ledger: HistoryLedger = Depends(get_history)):
        if not ledger.remove_at(index):
            raise HTTPException(status_code=404, detail="History entry not found")
        return {"status": "removed"}

    @app.delete("/api/history/{video_id}")
    async def remove_history_entry(video_id: str, ledger: HistoryLedger = Depends(get_history)):
        if not ledger.remove(video_id):
            raise HTTPException(status_code=404, detail="History entry not found")
        return {"status": "removed"}

    # Favorites endpoints
    @app.get("/api/favorites")
    async def get_favorite_entries(ledger: FavoritesLedger = Depends(get_favorites)):
        return {"favorites": [asdict(entry) for entry in ledger.entries()]}

    @app.post("/api/favorites")
    async def add_favorite(
        request_data: LedgerAddRequest, ledger: FavoritesLedger = Depends(get_favorites)
    ):
        try:
            entry = ledger.add(request_data.video_id, request_data.title)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"status": "added", "entry": asdict(entry)}

    @app.delete("/api/favorites")
    async def clear_favorites(ledger: FavoritesLedger = Depends(get_favorites)):
        count = ledger.clear_all()
        return {"status": "cleared", "items_removed": count}

    @app.delete("/api/favorites/at/{index}")
    async def remove_favorite_at(index: int, ledger: FavoritesLedger = Depends(get_favorites)):
        if not ledger.remove_at(index):
            raise HTTPException(status_code=404, detail="Favorite not found")
        return {"status": "removed"}

    @app.delete("/api/favorites/{video_id}")
    async def remove_favorite(video_id: str, ledger: FavoritesLedger = Depends(get_favorites)):
        if not ledger.remove(video_id):
            raise HTTPException(status_code=404, detail="Favorite not found")
        return {"status": "removed"}

    @app.post("/api/favorites/{video_id}/promote")
    async def promote_favorite(
        video_id: str,
        request_data: Optional[PromoteRequest] = None,
        ledger: FavoritesLedger = Depends(get_favorites),
    ):
        title = request_data.title if request_data else None
        if not ledger.promote_to_top(video_id, title):
            raise HTTPException(status_code=404, detail="Favorite not found")
        return {"status": "promoted"}

    # Playback position endpoints
    @app.get("/api/positions")
    async def get_all_positions(store: PlaybackPositionStore = Depends(get_positions)):
        return {
            "positions": {
                video_id: {
                    **asdict(record),
                    "progress": record.watch_progress,
                    "partially_watched": store.is_partially_watched(video_id),
                }
                for video_id, record in store.get_all().items()
            }
        }

    @app.post("/api/positions/prune")
    async def prune_positions(
        request_data: Optional[PruneRequest] = None,
        store: PlaybackPositionStore = Depends(get_positions),
        config: ConfigManager = Depends(get_config_manager),
    ):
        days = request_data.days if request_data and request_data.days is not None else None
        if days is None:
            days = config.get_int("position_retention_days", 30)
        return {"status": "pruned", "items_removed": store.prune_older_than(days)}

    @app.get("/api/positions/{video_id}")
    async def get_position(video_id: str, store: PlaybackPositionStore = Depends(get_positions)):
        record = store.get_position(video_id)
        if record is None:
            raise HTTPException(status_code=404, detail="No saved position")
        return {
            **asdict(record),
            "progress": record.watch_progress,
            "partially_watched": store.is_partially_watched(video_id),
        }

    @app.delete("/api/positions/{video_id}")
    async def clear_position(video_id: str, store: PlaybackPositionStore = Depends(get_positions)):
        if not store.clear_position(video_id):
            raise HTTPException(status_code=404, detail="No saved position")
        return {"status": "cleared"}

    # Channel endpoints (plain def: these may call the YouTube API)
    @app.get("/api/channels")
    def list_channels(channels: ChannelsStore = Depends(get_channels_store)):
        return {"channels": [_channel_dict(c, channels) for c in channels.channels()]}

    @app.get("/api/channels/search")
    def search_channels(
        q: str,
        youtube: YouTubeClient = Depends(get_youtube_client),
        errors: ErrorManager = Depends(get_error_manager),
    ):
        try:
            results = youtube.search_channels(q)
        except YouTubeAPIError as e:
            raise _youtube_http_error(e, errors)
        return {"results": [asdict(channel) for channel in results]}

    @app.post("/api/channels")
    def add_channel(
        request_data: AddChannelRequest,
        channels: ChannelsStore = Depends(get_channels_store),
        youtube: YouTubeClient = Depends(get_youtube_client),
        errors: ErrorManager = Depends(get_error_manager),
        config: ConfigManager = Depends(get_config_manager),
    ):
        """Subscribe by channel ID or channel URL, then fetch its recent videos."""
        if not request_data.channel_id and not request_data.url:
            raise HTTPException(status_code=400, detail="channel_id or url is required")
        try:
            if request_data.channel_id:
                channel = youtube.get_channel_by_id(request_data.channel_id)
            else:
                channel = youtube.get_channel_from_url(request_data.url)
        except YouTubeAPIError as e:
            raise _youtube_http_error(e, errors)

        default_lookback = config.get_int("default_lookback_days", 7)
        channel.lookback_days = clamp_lookback_days(default_lookback)
        if channel.lookback_days != default_lookback:
            logger.warning(
                "default_lookback_days=%s out of range, using %s",
                default_lookback,
                channel.lookback_days,
            )
        try:
            added = channels.add_channel(channel)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if not added:
            raise HTTPException(status_code=409, detail=f"Channel '{channel.name}' is already added")

        try:
            channels.refresh_channel(channel)
        except YouTubeAPIError as e:
            # Subscription stands; videos arrive on the next refresh
            errors.report_channel_error(str(e), context=f"refresh {channel.id}")
        return {"status": "added", "channel": _channel_dict(channel, channels)}

    @app.post("/api/channels/refresh")
    def refresh_all_channels(channels: ChannelsStore = Depends(get_channels_store)):
        refreshed = channels.refresh_all_channels()
        return {"status": "refreshed", "channels_refreshed": refreshed}

    @app.get("/api/channels/videos/unwatched")
    def get_unwatched_videos(channels: ChannelsStore = Depends(get_channels_store)):
        videos = channels.get_all_unwatched_videos()
        return {"videos": [asdict(video) for video in videos], "count": len(videos)}

    @app.post("/api/channels/videos/{video_id}/watched")
    def mark_video_watched(video_id: str, channels: ChannelsStore = Depends(get_channels_store)):
        if not channels.mark_video_watched(video_id):
            raise HTTPException(status_code=404, detail="Channel video not found")
        return {"status": "watched"}

    @app.delete("/api/channels/videos")
    def clear_channel_videos(channels: ChannelsStore = Depends(get_channels_store)):
        channels.clear_all_channel_videos()
        return {"status": "cleared"}

    @app.delete("/api/channels")
    def clear_channels(channels: ChannelsStore = Depends(get_channels_store)):
        channels.clear_all_channels()
        return {"status": "cleared"}

    @app.get("/api/channels/{channel_id}")
    def get_channel(channel_id: str, channels: ChannelsStore = Depends(get_channels_store)):
        channel = channels.get_channel(channel_id)
        if channel is None:
            raise HTTPException(status_code=404, detail="Channel not found")
        return _channel_dict(channel, channels)

    @app.patch("/api/channels/{channel_id}")
    def update_channel(
        channel_id: str,
        request_data: UpdateChannelRequest,
        channels: ChannelsStore = Depends(get_channels_store),
    ):
        channel = channels.get_channel(channel_id)
        if channel is None:
            raise HTTPException(status_code=404, detail="Channel not found")

        if request_data.is_active is not None and request_data.is_active != channel.is_active:
            channels.toggle_channel_active(channel_id)
        if request_data.lookback_days is not None:
            try:
                channels.update_channel_lookback(channel_id, request_data.lookback_days)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
        return {"status": "updated", "channel": _channel_dict(channels.get_channel(channel_id), channels)}

    @app.delete("/api/channels/{channel_id}")
    def remove_channel(channel_id: str, channels: ChannelsStore = Depends(get_channels_store)):
        if not channels.remove_channel(channel_id):
            raise HTTPException(status_code=404, detail="Channel not found")
        return {"status": "removed"}

    @app.post("/api/channels/{channel_id}/refresh")
    def refresh_channel(
        channel_id: str,
        channels: ChannelsStore = Depends(get_channels_store),
        errors: ErrorManager = Depends(get_error_manager),
    ):
        channel = channels.get_channel(channel_id)
        if channel is None:
            raise HTTPException(status_code=404, detail="Channel not found")
        try:
            videos = channels.refresh_channel(channel)
        except YouTubeAPIError as e:
            raise _youtube_http_error(e, errors)
        return {"status": "refreshed", "videos": [asdict(video) for video in videos]}

    @app.get("/api/channels/{channel_id}/videos")
    def get_channel_videos(channel_id: str, channels: ChannelsStore = Depends(get_channels_store)):
        if channels.get_channel(channel_id) is None:
            raise HTTPException(status_code=404, detail="Channel not found")
        return {"videos": [asdict(video) for video in channels.get_videos(channel_id)]}

    # Error endpoints
    @app.get("/api/errors")
    async def get_errors(errors: ErrorManager = Depends(get_error_manager)):
        current_error = errors.current_error
        return {
            "current": current_error.to_dict() if current_error else None,
            "history": [entry.to_dict() for entry in errors.history()],
        }

    @app.delete("/api/errors")
    async def clear_error_history(errors: ErrorManager = Depends(get_error_manager)):
        errors.clear_history()
        return {"status": "cleared"}

    @app.delete("/api/errors/current")
    async def dismiss_current_error(errors: ErrorManager = Depends(get_error_manager)):
        errors.clear_current()
        return {"status": "dismissed"}

    # Configuration endpoints
    @app.get("/api/config")
    async def get_config(config: ConfigManager = Depends(get_config_manager)):
        """
        Get all configuration with rich schema metadata.

        Returns:
            - values: Current configuration values
            - schema: Metadata for each editable key (control type, options, description)
            - groups: Group definitions for organizing the config UI
        """
        return config.get_full_config()

    @app.patch("/api/config")
    async def update_config(
        request_data: ConfigUpdateRequest,
        config: ConfigManager = Depends(get_config_manager),
    ):
        if request_data.key not in ConfigManager.DEFAULTS:
            raise HTTPException(status_code=400, detail=f"Unknown config key: {request_data.key}")
        if not config.set(request_data.key, request_data.value):
            raise HTTPException(status_code=500, detail="Failed to save configuration")
        return {"status": "updated", "key": request_data.key}

    # Web UI
    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request):
        """Serve the player page."""
        return templates.TemplateResponse(request, "index.html")

    return app
