"""
YouTube Data API service for finding playable music videos.
"""
import logging
from typing import Any

import httpx

from musicard.config import settings
from musicard.errors import ProviderUnavailableError

logger = logging.getLogger(__name__)

MUSIC_CATEGORY_ID = "10"
PREVIEW_SECONDS = 30


def embed_url(video_id: str) -> str:
    return f"https://www.youtube.com/embed/{video_id}?autoplay=1&start=0&end={PREVIEW_SECONDS}"


class YouTubeService:
    """Search the music category of YouTube."""

    API_BASE = "https://www.googleapis.com/youtube/v3"

    def __init__(self, api_key: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self._api_key = api_key
        self._transport = transport

    @property
    def api_key(self) -> str:
        return self._api_key if self._api_key is not None else settings.youtube_api_key

    async def search(self, query: str, max_results: int = 5) -> list[dict[str, Any]]:
        """
        Search YouTube for videos matching query.

        " music audio" is appended to the query and results are limited to the
        Music category. Each result carries an embed URL that stops after 30s.

        Raises:
            ProviderUnavailableError: no API key configured
            httpx.HTTPStatusError: the API rejected the request
        """
        if not self.api_key:
            raise ProviderUnavailableError("YouTube API key not configured")

        params = {
            "part": "snippet",
            "type": "video",
            "videoCategoryId": MUSIC_CATEGORY_ID,
            "q": f"{query} music audio",
            "maxResults": max_results,
            "key": self.api_key,
        }
        async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
            response = await client.get(f"{self.API_BASE}/search", params=params)
            response.raise_for_status()
            data = response.json()

        videos = []
        for item in data.get("items", []):
            video_id = item.get("id", {}).get("videoId")
            if not video_id:
                continue
            snippet = item.get("snippet", {})
            thumbnails = snippet.get("thumbnails", {})
            thumbnail = (thumbnails.get("medium") or thumbnails.get("default") or {}).get("url")
            videos.append({
                "id": video_id,
                "video_id": video_id,
                "title": snippet.get("title", ""),
                "channel_title": snippet.get("channelTitle", ""),
                "thumbnail": thumbnail,
                "duration": "Unknown",
                "embed_url": embed_url(video_id),
            })
        logger.info("YouTube search %r -> %d videos", query, len(videos))
        return videos


# Singleton instance
youtube_service = YouTubeService()
