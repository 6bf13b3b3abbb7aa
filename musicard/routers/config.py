"""
Runtime configuration routes for the frontend.
"""
from typing import Literal

from fastapi import APIRouter, Query

from musicard.config import settings

router = APIRouter()


def _feature_flags() -> dict:
    return {
        "enable_debug_panels": settings.feature_enabled(settings.enable_debug_panels),
        "enable_data_migration": settings.feature_enabled(settings.enable_data_migration),
        "enable_admin_panel": settings.feature_enabled(settings.enable_admin_panel),
        "enable_data_source_indicator": settings.feature_enabled(settings.enable_data_source_indicator),
    }


@router.api_route("", methods=["GET", "POST"])
async def get_config(type: Literal["admin", "spotify"] | None = Query(None)):
    """
    Feature flags and admin list by default; `type=admin` returns only the
    admin view, `type=spotify` the public search provider settings.
    """
    if type == "admin":
        return {
            "admin_users": settings.admin_user_list,
            "is_production": settings.is_production,
        }
    if type == "spotify":
        return {
            "client_id": settings.spotify_client_id,
            "redirect_uri": settings.spotify_redirect_uri,
            "lastfm_enabled": bool(settings.lastfm_api_key),
            "environment": settings.environment,
            "is_production": settings.is_production,
        }
    return {
        **_feature_flags(),
        "admin_users": settings.admin_user_list,
        "storage_provider": settings.storage_provider,
        "environment": settings.environment,
        "is_production": settings.is_production,
    }
