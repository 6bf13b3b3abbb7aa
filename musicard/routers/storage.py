"""
Admin routes for profile storage: provider info, backup slot and import/export.

Backup, restore and import/export act on the key/value profile store, which
is also the fallback target of the remote backend.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from musicard.auth import AuthenticatedUser, require_admin
from musicard.services.local_profiles import local_profile_store
from musicard.services.profile_storage import provider_info, storage_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/info")
async def storage_info(user: AuthenticatedUser = Depends(require_admin)):
    """Active provider plus size and counts of the local profile store."""
    return {
        **provider_info(storage_service),
        "local": await local_profile_store.get_storage_stats(),
    }


@router.get("/backup")
async def get_backup(user: AuthenticatedUser = Depends(require_admin)):
    backup = await local_profile_store.get_backup()
    if not backup:
        raise HTTPException(status_code=404, detail="No backup found")
    return {"timestamp": backup.get("timestamp"), "user_count": backup.get("user_count")}


@router.post("/backup")
async def create_backup(user: AuthenticatedUser = Depends(require_admin)):
    if not await local_profile_store.create_backup():
        raise HTTPException(status_code=500, detail="Failed to create backup")
    return {"success": True}


@router.post("/restore")
async def restore_backup(user: AuthenticatedUser = Depends(require_admin)):
    """Replace every local profile with the backup slot."""
    if not await local_profile_store.get_backup():
        raise HTTPException(status_code=404, detail="No backup found")
    if not await local_profile_store.restore_from_backup():
        raise HTTPException(status_code=500, detail="Failed to restore backup")
    logger.info("Local profiles restored from backup by %s", user.username)
    return {"success": True}


@router.get("/export")
async def export_profiles(user: AuthenticatedUser = Depends(require_admin)):
    exported = await local_profile_store.export_user_data()
    if not exported:
        raise HTTPException(status_code=500, detail="Failed to export profiles")
    return Response(
        content=exported,
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="musicard-export.json"'},
    )


@router.post("/import")
async def import_profiles(request: Request, user: AuthenticatedUser = Depends(require_admin)):
    """Replace every local profile with an exported document; a backup is taken first."""
    body = (await request.body()).decode("utf-8", errors="replace")
    if not await local_profile_store.import_user_data(body):
        raise HTTPException(status_code=400, detail="Invalid export format")
    logger.info("Local profiles imported by %s", user.username)
    return {"success": True}
