"""
YouTube Data API v3 client for ytapp.

Channel lookup and recent-upload listing for subscribed channels. Failures
propagate as YouTubeAPIError subclasses; nothing here retries.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from urllib.parse import unquote, urlparse

import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .models import Channel, ChannelVideo

if TYPE_CHECKING:
    from .config_manager import ConfigManager


class YouTubeAPIError(Exception):
    """Base class for YouTube Data API failures."""

    message = "YouTube API error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class ApiKeyMissing(YouTubeAPIError):
    message = "YouTube API key is missing"


class ChannelNotFound(YouTubeAPIError):
    message = "Channel not found"


class InvalidChannelURL(YouTubeAPIError):
    message = "Invalid YouTube channel URL"


class QuotaExceeded(YouTubeAPIError):
    message = "YouTube API quota exceeded"


class InvalidResponse(YouTubeAPIError):
    message = "Invalid response from YouTube API"


class NetworkError(YouTubeAPIError):
    message = "Network error"


# Largest maxResults the search endpoint accepts
MAX_RESULTS_LIMIT = 50

_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")


def parse_duration(duration_str: Optional[str]) -> Optional[int]:
    """
    Parse ISO 8601 duration string to seconds.

    Args:
        duration_str: ISO 8601 duration (e.g., "PT4M13S")

    Returns:
        Duration in seconds, or None if parsing fails
    """
    if not duration_str:
        return None
    match = _DURATION_RE.match(duration_str)
    if not match or duration_str == "PT":
        return None
    hours, minutes, seconds = (int(part) if part else 0 for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def format_duration(seconds: Optional[int]) -> Optional[str]:
    """Format seconds as M:SS, or H:MM:SS for an hour or longer."""
    if seconds is None:
        return None
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_count(value: Optional[str], unit: str) -> Optional[str]:
    """
    Abbreviate a count for display.

    format_count("1234567", "views") -> "1.2M views"
    """
    if value is None:
        return None
    try:
        count = int(value)
    except (TypeError, ValueError):
        return value
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M {unit}"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K {unit}"
    return f"{count} {unit}"


def parse_published_at(value: Optional[str]) -> Optional[datetime]:
    """Parse an API timestamp such as 2024-05-01T12:00:00Z."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _thumbnail_url(snippet: Dict[str, Any]) -> Optional[str]:
    thumbnails = snippet.get("thumbnails", {})
    for size in ("medium", "default", "high"):
        url = thumbnails.get(size, {}).get("url")
        if url:
            return url
    return None


def _handle(snippet: Dict[str, Any]) -> Optional[str]:
    custom_url = snippet.get("customUrl")
    if not custom_url:
        return None
    return custom_url if custom_url.startswith("@") else f"@{custom_url}"


class YouTubeClient:
    """Thin wrapper around the YouTube Data API for channel features."""

    def __init__(self, config_manager: "ConfigManager"):
        """
        Initialize YouTubeClient.

        Args:
            config_manager: ConfigManager for the API key and result limits
        """
        self.logger = logging.getLogger(__name__)
        self.config_manager = config_manager

        # Lazy-initialized YouTube API client
        self._youtube = None
        self._last_api_key: Optional[str] = None

    def _get_youtube_client(self):
        """
        Get or create YouTube API client.

        Reinitializes client if API key has changed (allowing runtime updates).

        Raises:
            ApiKeyMissing: If no API key is configured
        """
        api_key = self.config_manager.get("youtube_api_key")

        if not api_key:
            self._youtube = None
            self._last_api_key = None
            raise ApiKeyMissing()

        if api_key != self._last_api_key:
            try:
                self._youtube = build("youtube", "v3", developerKey=api_key)
                self._last_api_key = api_key
                self.logger.info("YouTube API client initialized")
            except Exception as e:
                self.logger.error("Failed to initialize YouTube API client: %s", e)
                self._youtube = None
                self._last_api_key = None
                raise NetworkError(f"Could not initialize YouTube API client: {e}") from e

        return self._youtube

    def is_configured(self) -> bool:
        return bool(self.config_manager.get("youtube_api_key"))

    def _execute(self, request, what: str) -> Dict[str, Any]:
        """Execute an API request, translating transport and HTTP failures."""
        try:
            response = request.execute()
        except HttpError as e:
            status = getattr(e.resp, "status", None)
            if status == 403 and "quota" in str(e).lower():
                self.logger.error("YouTube API quota exceeded during %s", what)
                raise QuotaExceeded() from e
            self.logger.error("YouTube API error during %s: %s", what, e)
            raise InvalidResponse(f"YouTube API returned HTTP {status} for {what}") from e
        except (httplib2.HttpLib2Error, OSError) as e:
            self.logger.error("Network error during %s: %s", what, e)
            raise NetworkError(f"Network error: {e}") from e

        if not isinstance(response, dict):
            raise InvalidResponse(f"Unexpected response for {what}")
        return response

    # =========================================================================
    # Channels
    # =========================================================================

    def search_channels(self, name: str, max_results: Optional[int] = None) -> List[Channel]:
        """
        Search for channels by name.

        Args:
            name: Free-text channel name or handle
            max_results: Result limit (max_channel_search_results if None)

        Returns:
            Matching channels, most relevant first
        """
        youtube = self._get_youtube_client()
        if max_results is None:
            max_results = self.config_manager.get_int("max_channel_search_results", 10)
        max_results = min(max_results, MAX_RESULTS_LIMIT)
        self.logger.debug("Searching YouTube channels: %s", name)

        response = self._execute(
            youtube.search().list(part="snippet", q=name, type="channel", maxResults=max_results),
            "channel search",
        )

        channels = []
        for item in response.get("items", []):
            try:
                channel_id = item["id"]["channelId"]
                snippet = item["snippet"]
            except (KeyError, TypeError):
                self.logger.warning("Skipping malformed channel search result: %s", item)
                continue
            channels.append(
                Channel(
                    id=channel_id,
                    name=snippet.get("title", ""),
                    handle=_handle(snippet),
                    thumbnail_url=_thumbnail_url(snippet),
                    description=snippet.get("description"),
                )
            )

        self.logger.info("Found %s channels for query: %s", len(channels), name)
        return channels

    def get_channel_by_id(self, channel_id: str) -> Channel:
        """
        Fetch a channel's details.

        Raises:
            ChannelNotFound: If no channel has this ID
        """
        youtube = self._get_youtube_client()
        response = self._execute(
            youtube.channels().list(part="snippet,statistics", id=channel_id),
            "channel lookup",
        )

        items = response.get("items") or []
        if not items:
            raise ChannelNotFound(f"Channel not found: {channel_id}")

        item = items[0]
        snippet = item.get("snippet", {})
        statistics = item.get("statistics") or {}
        return Channel(
            id=item.get("id", channel_id),
            name=snippet.get("title", ""),
            handle=_handle(snippet),
            thumbnail_url=_thumbnail_url(snippet),
            subscriber_count=format_count(statistics.get("subscriberCount"), "subscribers"),
            description=snippet.get("description"),
        )

    def get_channel_from_url(self, url: str) -> Channel:
        """
        Resolve a channel from a YouTube URL.

        /channel/<id> is looked up directly; /@handle, /c/<name> and
        /user/<name> are resolved by search, taking the first match.

        Raises:
            InvalidChannelURL: If no channel identifier can be extracted
            ChannelNotFound: If the search finds nothing
        """
        path = urlparse(url.strip()).path
        if not path:
            raise InvalidChannelURL(f"Invalid YouTube channel URL: {url}")

        if "/channel/" in path:
            channel_id = path.split("/channel/", 1)[1].split("/")[0]
            if channel_id:
                return self.get_channel_by_id(channel_id)

        query = None
        for marker in ("/@", "/c/", "/user/"):
            if marker in path:
                query = unquote(path.split(marker, 1)[1].split("/")[0])
                break

        if not query:
            raise InvalidChannelURL(f"Invalid YouTube channel URL: {url}")

        self.logger.debug("Resolving channel URL via search: %s", query)
        channels = self.search_channels(query)
        if not channels:
            raise ChannelNotFound(f"No channel found for {query}")
        return channels[0]

    # =========================================================================
    # Videos
    # =========================================================================

    def get_channel_videos(
        self,
        channel_id: str,
        lookback_days: int = 7,
        max_results: Optional[int] = None,
    ) -> List[ChannelVideo]:
        """
        List a channel's uploads published within the lookback window.

        Args:
            channel_id: Channel ID
            lookback_days: How many days back to look
            max_results: Result limit (max_videos_per_channel if None)

        Returns:
            Videos, newest first
        """
        youtube = self._get_youtube_client()
        if max_results is None:
            max_results = self.config_manager.get_int("max_videos_per_channel", 50)
        max_results = min(max_results, MAX_RESULTS_LIMIT)

        published_after = datetime.now(timezone.utc) - timedelta(days=lookback_days)
        response = self._execute(
            youtube.search().list(
                part="snippet",
                channelId=channel_id,
                type="video",
                order="date",
                publishedAfter=published_after.strftime("%Y-%m-%dT%H:%M:%SZ"),
                maxResults=max_results,
            ),
            "channel video search",
        )

        search_items = []
        for item in response.get("items", []):
            video_id = (item.get("id") or {}).get("videoId")
            if video_id and item.get("snippet"):
                search_items.append((video_id, item["snippet"]))

        if not search_items:
            self.logger.info("No recent videos for channel %s", channel_id)
            return []

        # Duration and view count need a second, batched request
        details_response = self._execute(
            youtube.videos().list(
                part="contentDetails,statistics",
                id=",".join(video_id for video_id, _ in search_items),
            ),
            "video details",
        )
        details = {item.get("id"): item for item in details_response.get("items", [])}

        videos = []
        for video_id, snippet in search_items:
            detail = details.get(video_id, {})
            duration = parse_duration((detail.get("contentDetails") or {}).get("duration"))
            view_count = (detail.get("statistics") or {}).get("viewCount")
            videos.append(
                ChannelVideo(
                    id=video_id,
                    title=snippet.get("title", ""),
                    channel_id=snippet.get("channelId", channel_id),
                    channel_name=snippet.get("channelTitle", ""),
                    published_at=parse_published_at(snippet.get("publishedAt"))
                    or datetime.now(timezone.utc),
                    thumbnail_url=_thumbnail_url(snippet),
                    duration=format_duration(duration),
                    view_count=format_count(view_count, "views"),
                )
            )

        videos.sort(key=lambda video: video.published_at, reverse=True)
        self.logger.info("Fetched %s videos for channel %s", len(videos), channel_id)
        return videos
