"""
Image relay: validates images and forwards them to the blob store.

Uploads that cannot reach the blob store come back as data URLs; relocations
of external URLs come back unchanged. Neither case raises.
"""
import base64
import logging
import secrets
import string
import time
from datetime import datetime, timedelta, timezone

import httpx

from musicard.errors import ImageValidationError
from musicard.schemas import CleanupResult, ImageKind, ImageUploadResult
from musicard.services.blob_store import BlobStore, blob_store

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
MAX_IMAGE_BYTES = 5 * 1024 * 1024
CLEANUP_AGE_DAYS = 30

_FETCH_TIMEOUT = 15.0
_ID_ALPHABET = string.ascii_lowercase + string.digits


def validate_image_format(mime_type: str) -> bool:
    return mime_type.lower() in ALLOWED_MIME_TYPES


def validate_image_size(data: bytes, max_bytes: int = MAX_IMAGE_BYTES) -> bool:
    return len(data) <= max_bytes


def generate_safe_file_name(original_name: str, username: str, kind: ImageKind) -> str:
    """`{username}/{kind}/{timestamp_ms}-{random}.{ext}`"""
    timestamp = int(time.time() * 1000)
    random_id = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    extension = original_name.rsplit(".", 1)[-1].lower() if "." in original_name else ""
    if not extension.isalnum():
        extension = "jpg"
    return f"{username}/{kind}/{timestamp}-{random_id}.{extension}"


def image_format(mime_type: str) -> str:
    return mime_type.split("/", 1)[-1] or "jpeg"


def to_data_url(data: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


class ImageRelay:
    """Upload, relocate, list and purge profile images."""

    def __init__(self, store: BlobStore | None = None, http_client: httpx.AsyncClient | None = None):
        self.store = store or blob_store
        self._http_client = http_client

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(follow_redirects=True)
        return self._http_client

    async def close(self):
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def upload(
        self,
        data: bytes,
        content_type: str,
        username: str,
        kind: ImageKind,
        original_name: str = "image.jpg",
    ) -> ImageUploadResult:
        """
        Validate and store an image.

        Raises:
            ImageValidationError: unsupported MIME type or payload over 5 MB
        """
        if not validate_image_format(content_type):
            raise ImageValidationError(f"Unsupported image format: {content_type}")
        if not validate_image_size(data):
            raise ImageValidationError("File too large (max 5MB)")

        fmt = image_format(content_type)
        pathname = generate_safe_file_name(original_name, username, kind)
        try:
            url = await self.store.put(pathname, data, content_type)
        except Exception as e:
            logger.warning("Blob upload failed for %s, returning data URL: %s", pathname, e)
            return ImageUploadResult(
                url=to_data_url(data, content_type), size=len(data), format=fmt, stored=False,
            )

        logger.info("Stored image for %s/%s: %s (%d bytes)", username, kind, pathname, len(data))
        return ImageUploadResult(url=url, size=len(data), format=fmt, pathname=pathname)

    async def upload_from_url(self, image_url: str, username: str, kind: ImageKind) -> ImageUploadResult:
        """Fetch an external image server-side and relocate it into the blob store."""
        try:
            response = await self._client().get(image_url, timeout=_FETCH_TIMEOUT)
            response.raise_for_status()
            data = response.content
            content_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip()
            if not validate_image_format(content_type):
                content_type = "image/jpeg"
            if not validate_image_size(data):
                raise ImageValidationError("File too large (max 5MB)")

            pathname = generate_safe_file_name(f"external-{int(time.time() * 1000)}.jpg", username, kind)
            url = await self.store.put(pathname, data, content_type)
        except Exception as e:
            logger.warning("Relocating %s failed, keeping original URL: %s", image_url, e)
            return ImageUploadResult(url=image_url, size=0, format="jpeg", stored=False)

        logger.info("Relocated external image for %s/%s (%d bytes)", username, kind, len(data))
        return ImageUploadResult(url=url, size=len(data), format=image_format(content_type), pathname=pathname)

    async def delete(self, url: str) -> bool:
        try:
            await self.store.delete([url])
        except Exception as e:
            logger.error("Image delete failed for %s: %s", url, e)
            return False
        logger.info("Deleted image %s", url)
        return True

    async def get_user_images(self, username: str) -> list[str]:
        try:
            blobs = await self.store.list(prefix=f"{username}/")
        except Exception as e:
            logger.error("Listing images for %s failed: %s", username, e)
            return []
        return [b.url for b in blobs]

    async def get_storage_stats(self) -> dict:
        """Totals over every stored object. Raises when the store is unreachable."""
        blobs = await self.store.list()
        return {
            "total_files": len(blobs),
            "total_size": sum(b.size for b in blobs),
            "user_icons": sum(1 for b in blobs if "/icon/" in b.pathname),
            "album_covers": sum(1 for b in blobs if "/album/" in b.pathname),
        }

    async def cleanup_older_than(self, days: int = CLEANUP_AGE_DAYS) -> CleanupResult:
        """
        Delete objects uploaded more than `days` ago.

        Objects are deleted one by one; a failed delete is counted and the
        scan continues.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        blobs = await self.store.list()

        result = CleanupResult()
        for blob in blobs:
            if blob.uploaded_at >= cutoff:
                continue
            try:
                await self.store.delete([blob.url])
                result.deleted_count += 1
                logger.info("Deleted old image %s (uploaded %s)", blob.url, blob.uploaded_at.isoformat())
            except Exception as e:
                result.error_count += 1
                logger.error("Failed to delete old image %s: %s", blob.url, e)

        logger.info(
            "Image cleanup done: %d deleted, %d failed", result.deleted_count, result.error_count,
        )
        return result


image_relay = ImageRelay()
