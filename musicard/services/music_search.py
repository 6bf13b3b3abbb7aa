"""
Provider-based music search with failover.

Order of attempts: the context's current provider (when available), then the
remaining available providers, then a fixed mock catalogue filtered by the
query. Provider state lives in an explicit SearchContext.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Literal

from musicard.config import settings
from musicard.errors import ProviderUnavailableError
from musicard.schemas import SearchAttempt, SearchResult, utcnow
from musicard.services.lastfm import LastfmService, has_valid_api_key, lastfm_service
from musicard.services.spotify import SpotifyService, spotify_service

logger = logging.getLogger(__name__)

Provider = Literal["spotify", "lastfm"]
PROVIDER_ORDER: tuple[Provider, ...] = ("spotify", "lastfm")

MAX_RESULTS = 10
SPOTIFY_ALBUM_LIMIT = 5
MOCK_DELAY_SECONDS = 0.3

MOCK_RESULTS = [
    SearchResult(
        name=name,
        artist=artist,
        image=f"https://picsum.photos/300/300?random={i}",
        is_generated_image=True,
        provider="mock",
    )
    for i, (name, artist) in enumerate([
        ("Bohemian Rhapsody", "Queen"),
        ("Hotel California", "Eagles"),
        ("Imagine", "John Lennon"),
        ("Stairway to Heaven", "Led Zeppelin"),
        ("Yesterday", "The Beatles"),
        ("Smells Like Teen Spirit", "Nirvana"),
        ("Like a Rolling Stone", "Bob Dylan"),
        ("I Want to Hold Your Hand", "The Beatles"),
        ("Johnny B. Goode", "Chuck Berry"),
        ("Good Vibrations", "The Beach Boys"),
    ], start=1)
]


@dataclass
class SearchContext:
    """Which provider to try first and the credentials each provider needs."""
    current_provider: Provider = "spotify"
    spotify_token: str | None = None
    lastfm_api_key: str | None = None
    last_search_status: dict = field(default_factory=dict)
    # Set when Spotify rejected the token; the owner of the persisted token clears it
    spotify_rejected: bool = False

    @classmethod
    def from_settings(cls) -> "SearchContext":
        return cls(lastfm_api_key=settings.lastfm_api_key or None)

    def is_available(self, provider: Provider) -> bool:
        if provider == "spotify":
            return bool(self.spotify_token)
        return has_valid_api_key(self.lastfm_api_key)

    def set_spotify_token(self, token: str | None) -> None:
        self.spotify_token = token
        if token:
            logger.info("Spotify token set; Spotify search enabled")

    def set_provider(self, provider: Provider) -> None:
        self.current_provider = provider
        logger.info("Search provider set to %s", provider)


def get_available_providers(ctx: SearchContext) -> list[Provider]:
    return [p for p in PROVIDER_ORDER if ctx.is_available(p)]


def filter_mock_results(query: str) -> list[SearchResult]:
    q = query.lower()
    return [r for r in MOCK_RESULTS if q in r.name.lower() or q in r.artist.lower()]


class MusicSearch:
    """Dispatches searches across providers."""

    def __init__(
        self,
        spotify: SpotifyService | None = None,
        lastfm: LastfmService | None = None,
        mock_delay: float = MOCK_DELAY_SECONDS,
    ):
        self.spotify = spotify or spotify_service
        self.lastfm = lastfm or lastfm_service
        self.mock_delay = mock_delay

    async def _mock(self, query: str) -> list[SearchResult]:
        results = filter_mock_results(query)
        await asyncio.sleep(self.mock_delay)
        return results

    def _candidates(self, ctx: SearchContext) -> list[Provider]:
        available = get_available_providers(ctx)
        if ctx.current_provider in available:
            available.remove(ctx.current_provider)
            available.insert(0, ctx.current_provider)
        return available

    async def _dispatch(
        self,
        query: str,
        ctx: SearchContext,
        calls: dict[Provider, Callable[[], Awaitable[list[SearchResult]]]],
    ) -> list[SearchResult]:
        attempts: list[SearchAttempt] = []
        results: list[SearchResult] | None = None
        used = "mock"

        for provider in self._candidates(ctx):
            try:
                results = await calls[provider]()
            except ProviderUnavailableError as e:
                if provider == "spotify":
                    ctx.set_spotify_token(None)
                    ctx.spotify_rejected = True
                logger.warning("%s unavailable, trying next provider: %s", provider, e)
                attempts.append(SearchAttempt(provider=provider, success=False, error=str(e)))
                continue
            except Exception as e:
                logger.warning("%s search failed, trying next provider: %s", provider, e)
                attempts.append(SearchAttempt(provider=provider, success=False, error=str(e)))
                continue
            attempts.append(SearchAttempt(provider=provider, success=True, result_count=len(results)))
            used = provider
            break

        if results is None:
            logger.info("No search provider succeeded, using mock results for %r", query)
            results = await self._mock(query)
            attempts.append(SearchAttempt(provider="mock", success=True, result_count=len(results)))

        ctx.last_search_status = {
            "query": query,
            "provider_used": used,
            "attempts": [a.model_dump() for a in attempts],
            "timestamp": utcnow().isoformat(),
        }
        return results

    async def _spotify_music(self, query: str, token: str) -> list[SearchResult]:
        albums = await self.spotify.search_albums(query, token, limit=SPOTIFY_ALBUM_LIMIT)
        tracks = await self.spotify.search_tracks(query, token, limit=MAX_RESULTS)
        return (albums + tracks)[:MAX_RESULTS]

    async def _lastfm_music(self, query: str, api_key: str) -> list[SearchResult]:
        albums = await self.lastfm.search_albums(query, api_key)
        if albums:
            return albums
        return await self.lastfm.search_tracks(query, api_key)

    async def search_music(self, query: str, ctx: SearchContext) -> list[SearchResult]:
        """Albums and tracks matching the query, from the first provider that answers."""
        return await self._dispatch(query, ctx, {
            "spotify": lambda: self._spotify_music(query, ctx.spotify_token),
            "lastfm": lambda: self._lastfm_music(query, ctx.lastfm_api_key),
        })

    async def search_album(self, query: str, ctx: SearchContext) -> list[SearchResult]:
        return await self._dispatch(query, ctx, {
            "spotify": lambda: self.spotify.search_albums(query, ctx.spotify_token, limit=MAX_RESULTS),
            "lastfm": lambda: self.lastfm.search_albums(query, ctx.lastfm_api_key),
        })


# Process-wide context and search service used by the API
search_context = SearchContext.from_settings()
music_search = MusicSearch()
