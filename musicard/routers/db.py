"""
Database administration routes: bootstrap, migration, reads and usage stats.
"""
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import ValidationError

from musicard.config import settings
from musicard.schemas import UserProfile
from musicard.services.database import init_db
from musicard.services.profile_stats import estimate_free_tier_usage
from musicard.services.remote_profiles import remote_profile_store

logger = logging.getLogger(__name__)

router = APIRouter()

_METHODS: dict[str, str] = {
    "init": "POST",
    "migrate": "POST",
    "users": "GET",
    "stats": "GET",
}


def _profile_from_export(username: str, data: dict[str, Any]) -> UserProfile:
    """Build a profile from a client export, accepting legacy song fields."""
    data = {**data, "username": data.get("username") or username}
    data.setdefault("displayName", username)
    songs = []
    for song in data.get("songs") or []:
        if isinstance(song, dict) and "coverUrl" in song and not song.get("jacket"):
            song = {**song, "jacket": song["coverUrl"] or None}
        songs.append(song)
    data["songs"] = songs
    return UserProfile.model_validate(data)


async def _migrate(body: dict[str, Any]) -> dict:
    if isinstance(body.get("data"), list):
        entries = [(d.get("username", ""), d) for d in body["data"] if isinstance(d, dict)]
        source = "data"
    elif isinstance(body.get("localStorageData"), dict):
        entries = [(k, v) for k, v in body["localStorageData"].items() if isinstance(v, dict)]
        source = "localStorage"
    else:
        raise HTTPException(status_code=400, detail="Invalid data format")

    migrated_users = migrated_songs = errors = 0
    for username, data in entries:
        try:
            profile = _profile_from_export(username, data)
            await remote_profile_store.save_user(profile)
        except ValidationError as e:
            logger.warning("Skipping invalid profile %s: %s", username, e)
            errors += 1
            continue
        except Exception as e:
            logger.error("Migration failed for %s: %s", username, e)
            errors += 1
            continue
        migrated_users += 1
        migrated_songs += len(profile.songs)

    logger.info(
        "Migration from %s: %d users, %d songs, %d errors",
        source, migrated_users, migrated_songs, errors,
    )
    return {
        "success": True,
        "message": f"Migration complete: {migrated_users} succeeded, {errors} failed",
        "migrated": {"users": migrated_users, "songs": migrated_songs},
        "migrated_count": migrated_users,
        "error_count": errors,
        "sources": [source],
    }


@router.api_route("", methods=["GET", "POST"])
async def db_action(request: Request, action: str | None = Query(None)):
    """Dispatch on `action`: init, migrate (POST) or users, stats (GET)."""
    if action not in _METHODS:
        raise HTTPException(status_code=400, detail="Invalid action")
    if request.method != _METHODS[action]:
        raise HTTPException(status_code=405, detail="Method not allowed")

    if action == "migrate" and not settings.feature_enabled(settings.enable_data_migration):
        raise HTTPException(status_code=403, detail="Data migration is disabled in production")

    try:
        if action == "init":
            await init_db()
            return {
                "success": True,
                "message": "Database initialized",
                "stats": await remote_profile_store.count_rows(),
            }

        if action == "migrate":
            try:
                body = await request.json()
            except ValueError:
                raise HTTPException(status_code=400, detail="Invalid JSON body")
            if not isinstance(body, dict):
                raise HTTPException(status_code=400, detail="Invalid data format")
            result = await _migrate(body)
            result["stats"] = await remote_profile_store.count_rows()
            return result

        if action == "users":
            username = request.query_params.get("username")
            if username:
                profile = await remote_profile_store.load_user(username)
                if profile is None:
                    raise HTTPException(status_code=404, detail="User not found")
                return {"user": profile.model_dump(mode="json")}
            users = await remote_profile_store.get_user_list()
            return {"users": [u.model_dump(mode="json") for u in users]}

        counts = await remote_profile_store.count_rows()
        stats = estimate_free_tier_usage(counts)
        logger.info(
            "DB stats: %d users, %d songs, %d%% storage",
            counts["users"], counts["songs"], stats["usage"]["storage"]["percentage"],
        )
        return stats
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Database action %s failed: %s", action, e)
        raise HTTPException(status_code=500, detail=str(e))
