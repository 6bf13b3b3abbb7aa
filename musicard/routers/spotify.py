"""
Spotify PKCE authorization routes.
"""
import logging

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import RedirectResponse

from musicard.config import settings
from musicard.errors import ProviderUnavailableError, TokenExchangeError, VerifierNotFoundError
from musicard.services.spotify import spotify_service
from musicard.services.spotify_auth import spotify_auth

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/authorize")
async def authorize(redirect: bool = Query(False, description="Redirect instead of returning the URL")):
    """Start the PKCE flow and return (or redirect to) the Spotify authorize URL."""
    if not settings.spotify_client_id:
        raise HTTPException(status_code=500, detail="Spotify client ID not configured")
    url = await spotify_auth.start_authorization()
    if redirect:
        return RedirectResponse(url)
    return {"authorize_url": url}


@router.get("/callback")
async def callback(
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
):
    if error:
        raise HTTPException(status_code=400, detail=f"Spotify authorization error: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Authorization code not found")

    try:
        token = await spotify_auth.exchange_code(code, state)
    except (VerifierNotFoundError, TokenExchangeError) as e:
        logger.warning("Spotify callback failed: %s", e.message)
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return {
        "success": True,
        "provider": "spotify",
        "expires_in": token.get("expires_in"),
    }


@router.get("/status")
async def status():
    """Whether a usable Spotify token is held, and whose it is."""
    token = await spotify_auth.get_stored_token()
    if not token:
        return {"authenticated": False}
    try:
        profile = await spotify_service.get_current_user(token)
    except ProviderUnavailableError:
        await spotify_auth.clear_token()
        return {"authenticated": False}
    except Exception as e:
        logger.warning("Spotify profile lookup failed: %s", e)
        profile = None
    return {"authenticated": True, "user": profile}


@router.post("/logout")
async def logout():
    await spotify_auth.clear_token()
    return {"success": True}
