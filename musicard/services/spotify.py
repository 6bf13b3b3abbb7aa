"""
Spotify Web API service for track and album search.
Requests are made with a user access token obtained through the PKCE flow.
"""
import re
from typing import Any

import httpx

from musicard.errors import ProviderUnavailableError
from musicard.schemas import SearchResult

_JAPANESE = re.compile(r"[぀-ゟ゠-ヿ一-龯]")


def has_japanese(text: str) -> bool:
    return bool(_JAPANESE.search(text))


class SpotifyService:
    """Spotify API client bound to a caller-supplied access token."""

    API_BASE = "https://api.spotify.com/v1"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    async def _request(self, token: str, endpoint: str, **kwargs) -> dict[str, Any]:
        """
        Make authenticated request to Spotify API.

        Raises:
            ProviderUnavailableError: token expired or revoked (401)
            httpx.HTTPStatusError: any other error status
        """
        async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
            response = await client.get(
                f"{self.API_BASE}{endpoint}",
                headers={"Authorization": f"Bearer {token}"},
                **kwargs,
            )
            if response.status_code == 401:
                raise ProviderUnavailableError("Spotify access token expired or invalid")
            response.raise_for_status()
            return response.json()

    async def _search(self, query: str, token: str, kind: str, limit: int) -> dict[str, Any]:
        params: dict[str, Any] = {"q": query.strip(), "type": kind, "limit": limit}
        # Japanese titles are far better covered in the JP catalogue
        if has_japanese(query):
            params["market"] = "JP"
        return await self._request(token, "/search", params=params)

    async def search_albums(self, query: str, token: str, limit: int = 10) -> list[SearchResult]:
        data = await self._search(query, token, "album", limit)
        results = []
        for album in data.get("albums", {}).get("items", []):
            images = album.get("images") or []
            artists = album.get("artists") or []
            results.append(SearchResult(
                name=album["name"],
                artist=artists[0]["name"] if artists else "Unknown Artist",
                image=images[0]["url"] if images else None,
                url=album.get("external_urls", {}).get("spotify"),
                provider="spotify",
                kind="album",
                spotify_id=album["id"],
                release_date=album.get("release_date"),
            ))
        return results

    async def search_tracks(self, query: str, token: str, limit: int = 10) -> list[SearchResult]:
        data = await self._search(query, token, "track", limit)
        return [self._track_result(item) for item in data.get("tracks", {}).get("items", [])]

    async def get_current_user(self, token: str) -> dict[str, Any]:
        data = await self._request(token, "/me")
        return {
            "id": data.get("id"),
            "display_name": data.get("display_name"),
            "country": data.get("country"),
            "product": data.get("product"),
        }

    @staticmethod
    def _track_result(item: dict[str, Any]) -> SearchResult:
        album = item.get("album") or {}
        images = album.get("images") or []
        artists = item.get("artists") or []
        return SearchResult(
            name=item["name"],
            artist=artists[0]["name"] if artists else "Unknown Artist",
            album=album.get("name") or "Unknown Album",
            image=images[0]["url"] if images else None,
            url=item.get("external_urls", {}).get("spotify"),
            provider="spotify",
            kind="track",
            spotify_id=item["id"],
            preview_url=item.get("preview_url"),
            release_date=album.get("release_date"),
        )


# Singleton instance
spotify_service = SpotifyService()
