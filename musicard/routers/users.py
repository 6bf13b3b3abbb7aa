"""
Profile routes backed by the storage facade.
Every response carries `source`: remote, fallback or local.
"""
from fastapi import APIRouter, Depends, HTTPException, Path

from musicard.auth import AuthenticatedUser, require_auth
from musicard.schemas import USERNAME_PATTERN, UserProfile
from musicard.services.profile_stats import compute_user_stats
from musicard.services.profile_storage import storage_service

router = APIRouter()

UsernamePath = Path(..., pattern=USERNAME_PATTERN)


def _check_owner(user: AuthenticatedUser, username: str) -> None:
    if user.username != username.lower() and not user.is_admin:
        raise HTTPException(status_code=403, detail="forbidden")


async def _load_or_404(username: str):
    result = await storage_service.load_user(username)
    if result.value is None:
        raise HTTPException(status_code=404, detail=f"User '{username}' not found")
    return result


@router.get("")
async def list_users():
    """Summaries of every profile, most recently updated first."""
    result = await storage_service.get_user_list()
    users = sorted(result.value, key=lambda s: s.updated_at, reverse=True)
    return {
        "source": result.source,
        "users": [u.model_dump(mode="json") for u in users],
        "count": len(users),
    }


@router.get("/{username}")
async def get_user(username: str = UsernamePath):
    result = await _load_or_404(username)
    return {"source": result.source, "profile": result.value.model_dump(mode="json")}


@router.get("/{username}/stats")
async def get_user_stats(username: str = UsernamePath):
    result = await _load_or_404(username)
    return {"source": result.source, "stats": compute_user_stats(result.value).model_dump()}


@router.put("/{username}")
async def save_user(
    profile: UserProfile,
    username: str = UsernamePath,
    user: AuthenticatedUser = Depends(require_auth),
):
    """Create or fully replace a profile (last write wins)."""
    _check_owner(user, username)
    if profile.username != username:
        raise HTTPException(status_code=400, detail="Username cannot be changed")

    result = await storage_service.save_user(profile)
    if not result.value:
        raise HTTPException(status_code=500, detail="Failed to save profile")
    return {"source": result.source, "success": True}


@router.delete("/{username}")
async def delete_user(
    username: str = UsernamePath,
    user: AuthenticatedUser = Depends(require_auth),
):
    _check_owner(user, username)
    result = await storage_service.delete_user(username)
    if not result.value:
        raise HTTPException(status_code=404, detail=f"User '{username}' not found")
    return {"source": result.source, "success": True}


@router.post("/{username}/view")
async def record_view(username: str = UsernamePath):
    result = await storage_service.increment_view_count(username)
    if not result.value:
        raise HTTPException(status_code=404, detail=f"User '{username}' not found")
    return {"source": result.source, "success": True}
