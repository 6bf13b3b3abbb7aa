"""
Last.fm API service for track and album search.
"""
import logging
import secrets
from typing import Any

import httpx

from musicard.schemas import SearchResult

logger = logging.getLogger(__name__)

PLACEHOLDER_API_KEY = "YOUR_LASTFM_API_KEY"
# Last.fm serves this star image when it has no artwork
NO_IMAGE_HASH = "2a96cbd8b46e442fc41c2b86b821562f"


def has_valid_api_key(api_key: str | None) -> bool:
    return bool(api_key) and api_key != PLACEHOLDER_API_KEY


def is_valid_image_url(url: str | None) -> bool:
    return bool(url and url.strip() and NO_IMAGE_HASH not in url)


def placeholder_image() -> str:
    return f"https://picsum.photos/300/300?random={secrets.randbelow(1000)}"


def _largest_image(images: Any) -> str:
    """Largest artwork URL (Last.fm lists small to extralarge)."""
    if isinstance(images, dict):
        images = [images]
    if not isinstance(images, list):
        return ""
    for index in (3, 2, 1):
        if index < len(images) and isinstance(images[index], dict):
            url = (images[index].get("#text") or "").strip()
            if url:
                return url
    return ""


def _as_list(matches: Any) -> list[dict[str, Any]]:
    """Last.fm returns a bare object instead of a list for a single match."""
    if isinstance(matches, dict):
        return [matches]
    return matches if isinstance(matches, list) else []


class LastfmService:
    """Last.fm client; every call needs an API key."""

    API_BASE = "https://ws.audioscrobbler.com/2.0/"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    async def _request(self, api_key: str, method: str, **params) -> dict[str, Any]:
        async with httpx.AsyncClient(transport=self._transport, timeout=5.0) as client:
            response = await client.get(
                self.API_BASE,
                params={"method": method, "api_key": api_key, "format": "json", "limit": 10, **params},
            )
            response.raise_for_status()
            data = response.json()
        if "error" in data:
            raise httpx.HTTPError(f"Last.fm error {data['error']}: {data.get('message', '')}")
        return data

    @staticmethod
    def _to_result(item: dict[str, Any], kind: str) -> SearchResult:
        image = _largest_image(item.get("image"))
        valid = is_valid_image_url(image)
        return SearchResult(
            name=item.get("name", ""),
            artist=item.get("artist", ""),
            image=image if valid else placeholder_image(),
            url=item.get("url"),
            is_generated_image=not valid,
            provider="lastfm",
            kind=kind,
        )

    async def search_tracks(self, query: str, api_key: str) -> list[SearchResult]:
        data = await self._request(api_key, "track.search", track=query)
        tracks = _as_list(data.get("results", {}).get("trackmatches", {}).get("track"))
        logger.debug("Last.fm track.search %r -> %d results", query, len(tracks))
        return [self._to_result(t, "track") for t in tracks]

    async def search_albums(self, query: str, api_key: str) -> list[SearchResult]:
        data = await self._request(api_key, "album.search", album=query)
        albums = _as_list(data.get("results", {}).get("albummatches", {}).get("album"))
        logger.debug("Last.fm album.search %r -> %d results", query, len(albums))
        return [self._to_result(a, "album") for a in albums]


# Singleton instance
lastfm_service = LastfmService()
