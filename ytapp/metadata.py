"""
Video title lookup via YouTube's oEmbed endpoint.

Used only to backfill placeholder titles in history and favorites, so every
failure degrades to None rather than raising.
"""

import logging
from typing import Optional

import httpx

from .clipboard import watch_url

OEMBED_URL = "https://www.youtube.com/oembed"


class MetadataClient:
    """Looks up video titles by video ID."""

    def __init__(self, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        """
        Initialize MetadataClient.

        Args:
            timeout: Request timeout in seconds
            client: HTTP client to use (a new one is created if None)
        """
        self.logger = logging.getLogger(__name__)
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def fetch_title(self, video_id: str) -> Optional[str]:
        """
        Fetch the title of a video.

        Args:
            video_id: YouTube video ID

        Returns:
            Title string, or None if the lookup failed
        """
        params = {"url": watch_url(video_id), "format": "json"}
        try:
            response = self.client.get(OEMBED_URL, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            self.logger.warning(
                "oEmbed lookup for %s returned HTTP %s", video_id, e.response.status_code
            )
            return None
        except httpx.HTTPError as e:
            self.logger.warning("oEmbed lookup for %s failed: %s", video_id, e)
            return None
        except ValueError as e:
            self.logger.warning("oEmbed response for %s was not JSON: %s", video_id, e)
            return None

        title = data.get("title") if isinstance(data, dict) else None
        if not title:
            self.logger.debug("oEmbed response for %s had no title", video_id)
            return None
        return title

    def close(self) -> None:
        self.client.close()
