"""
Image lifecycle routes: upload, relocate, delete, stats and cleanup.
"""
import base64
import binascii
import logging
import re
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from starlette.datastructures import UploadFile

from musicard.auth import AuthenticatedUser, require_admin, require_auth
from musicard.errors import ImageValidationError
from musicard.schemas import USERNAME_PATTERN, ImageKind, ImageSource
from musicard.services.blob_store import blob_store
from musicard.services.image_cache import external_image_cache
from musicard.services.image_relay import image_relay
from musicard.services.profile_storage import storage_service

logger = logging.getLogger(__name__)

router = APIRouter()

_DATA_URL_PREFIX = re.compile(r"^data:(image/[\w.+-]+);base64,")
_USERNAME = re.compile(USERNAME_PATTERN)


class Base64Upload(BaseModel):
    image: str
    username: str = Field(pattern=USERNAME_PATTERN)
    type: ImageKind
    content_type: str = "image/jpeg"
    filename: str = "image.jpg"


class RelocateRequest(BaseModel):
    url: str
    username: str = Field(pattern=USERNAME_PATTERN)
    type: ImageKind
    source: ImageSource = "manual"
    fallback_url: str | None = None


class DeleteRequest(BaseModel):
    url: str


def _check_owner(user: AuthenticatedUser, username: str) -> None:
    if user.username != username.lower() and not user.is_admin:
        raise HTTPException(status_code=403, detail="forbidden")


def _require_blob_store() -> None:
    if not blob_store.configured:
        raise HTTPException(status_code=500, detail="Blob storage not configured")


async def _read_upload(request: Request) -> tuple[bytes, str, str, str, str]:
    """(data, content_type, username, kind, filename) from multipart or base64 JSON."""
    if request.headers.get("content-type", "").startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        username = form.get("username")
        kind = form.get("type")
        if not isinstance(upload, UploadFile):
            raise HTTPException(status_code=400, detail="Missing image file")
        if not _USERNAME.match(str(username or "")) or kind not in ("icon", "album"):
            raise HTTPException(status_code=400, detail="Missing required fields")
        data = await upload.read()
        return data, upload.content_type or "", str(username), str(kind), upload.filename or "image.jpg"

    try:
        body = Base64Upload.model_validate(await request.json())
    except ValueError:
        raise HTTPException(status_code=400, detail="Missing required fields")

    content_type = body.content_type
    raw = body.image
    match = _DATA_URL_PREFIX.match(raw)
    if match:
        content_type = match.group(1)
        raw = raw[match.end():]
    try:
        data = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Invalid base64 image data")
    return data, content_type, body.username, body.type, body.filename


@router.post("/upload/image")
async def upload_image(request: Request, user: AuthenticatedUser = Depends(require_auth)):
    """
    Upload an icon or album cover (multipart `file` or base64 JSON `image`).

    Goes through the storage facade when the backend handles images. When
    the blob store is unavailable the response carries a data URL and
    `stored: false`.
    """
    data, content_type, username, kind, filename = await _read_upload(request)
    _check_owner(user, username)
    try:
        if storage_service.supports_image_upload:
            tagged = await storage_service.upload_image(
                data, content_type, username, kind, original_name=filename,
            )
            result, source = tagged.value, tagged.source
        else:
            result = await image_relay.upload(data, content_type, username, kind, original_name=filename)
            source = "local"
    except ImageValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return {**result.model_dump(), "source": source}


@router.post("/upload/image-url")
async def relocate_image(body: RelocateRequest, user: AuthenticatedUser = Depends(require_auth)):
    """Relocate a provider-hosted image into owned storage (cached for 30 days)."""
    _check_owner(user, body.username)
    url = await external_image_cache.get_provider_image(
        body.url, body.username, body.type, body.source, fallback_url=body.fallback_url,
    )
    return {"url": url}


@router.delete("/delete/image")
async def delete_image(body: DeleteRequest, user: AuthenticatedUser = Depends(require_auth)):
    _require_blob_store()
    if not body.url:
        raise HTTPException(status_code=400, detail="URL is required")
    if not user.is_admin and not urlparse(body.url).path.lstrip("/").startswith(f"{user.username}/"):
        raise HTTPException(status_code=403, detail="forbidden")
    if not await image_relay.delete(body.url):
        raise HTTPException(status_code=500, detail="Failed to delete image")
    return {"success": True}


@router.post("/cleanup/images")
async def cleanup_images(
    days: int = 30,
    user: AuthenticatedUser = Depends(require_admin),
):
    """Delete stored images older than `days` (default 30)."""
    _require_blob_store()
    try:
        result = await image_relay.cleanup_older_than(days)
    except Exception as e:
        logger.error("Image cleanup failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return result.model_dump()


@router.get("/stats/images")
async def image_stats():
    _require_blob_store()
    try:
        return await image_relay.get_storage_stats()
    except Exception as e:
        logger.error("Image stats failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/images/{username}")
async def user_images(username: str, user: AuthenticatedUser = Depends(require_auth)):
    _check_owner(user, username)
    return {"urls": await image_relay.get_user_images(username)}


@router.post("/cleanup/image-cache")
async def cleanup_image_cache(user: AuthenticatedUser = Depends(require_admin)):
    """Purge relocated-image cache entries older than 60 days."""
    return {"deleted_count": await external_image_cache.cleanup_old_cache()}


@router.get("/stats/image-cache")
async def image_cache_stats():
    return await external_image_cache.get_cache_stats()
