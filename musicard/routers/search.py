"""
Music search routes with provider failover.
"""
import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from musicard.schemas import SearchResult
from musicard.services.music_search import (
    SearchContext,
    get_available_providers,
    music_search,
    search_context,
)
from musicard.services.spotify_auth import spotify_auth

logger = logging.getLogger(__name__)

router = APIRouter()


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResult]
    count: int
    provider: str


class ProviderUpdate(BaseModel):
    provider: Literal["spotify", "lastfm"]


async def get_search_context() -> SearchContext:
    """Shared search context, picking up a persisted Spotify token when none is set."""
    if not search_context.spotify_token:
        try:
            token = await spotify_auth.get_stored_token()
        except Exception as e:
            logger.warning("Could not read stored Spotify token: %s", e)
            token = None
        if token:
            search_context.set_spotify_token(token)
    return search_context


async def _forget_rejected_token(ctx: SearchContext) -> None:
    """Drop the persisted Spotify token once Spotify has rejected it."""
    if not ctx.spotify_rejected:
        return
    ctx.spotify_rejected = False
    try:
        await spotify_auth.clear_token()
    except Exception as e:
        logger.warning("Could not clear rejected Spotify token: %s", e)


def _response(query: str, results: list[SearchResult], ctx: SearchContext) -> SearchResponse:
    return SearchResponse(
        query=query,
        results=results,
        count=len(results),
        provider=ctx.last_search_status.get("provider_used", "mock"),
    )


@router.get("/music", response_model=SearchResponse)
async def search_music(
    q: str = Query(..., min_length=1, description="Search query"),
    ctx: SearchContext = Depends(get_search_context),
):
    """
    Search albums and tracks.

    Tries the current provider, then the other available one, then a fixed
    mock catalogue filtered by the query.
    """
    results = await music_search.search_music(q, ctx)
    await _forget_rejected_token(ctx)
    return _response(q, results, ctx)


@router.get("/albums", response_model=SearchResponse)
async def search_albums(
    q: str = Query(..., min_length=1, description="Search query"),
    ctx: SearchContext = Depends(get_search_context),
):
    results = await music_search.search_album(q, ctx)
    await _forget_rejected_token(ctx)
    return _response(q, results, ctx)


@router.get("/provider")
async def get_provider(ctx: SearchContext = Depends(get_search_context)):
    return {
        "current": ctx.current_provider,
        "available": get_available_providers(ctx),
        "last_search_status": ctx.last_search_status,
    }


@router.put("/provider")
async def set_provider(body: ProviderUpdate, ctx: SearchContext = Depends(get_search_context)):
    ctx.set_provider(body.provider)
    return {
        "current": ctx.current_provider,
        "available": get_available_providers(ctx),
    }
