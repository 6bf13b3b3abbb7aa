"""
YouTube search proxy.
"""
import logging

from fastapi import APIRouter, HTTPException, Query

from musicard.errors import ProviderUnavailableError
from musicard.services.youtube import youtube_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/search")
async def search_youtube(
    query: str = Query(..., min_length=1, description="Song title and artist"),
    max_results: int = Query(5, ge=1, le=25, alias="maxResults"),
):
    """Music-category videos for the query, each with a 30s embed URL."""
    try:
        results = await youtube_service.search(query, max_results)
    except ProviderUnavailableError as e:
        raise HTTPException(status_code=500, detail=e.message)
    except Exception as e:
        logger.error("YouTube search failed: %s", e)
        raise HTTPException(status_code=500, detail=f"YouTube search failed: {e}")
    return {"results": results}
