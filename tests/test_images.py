"""
Tests for image validation, the blob relay, the external image cache and image routes.
"""
import base64
import json
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from conftest import auth_header
from musicard.errors import ImageValidationError
from musicard.schemas import CachedImageInfo, CleanupResult, ImageUploadResult, utcnow
from musicard.services.blob_store import BlobStore
from musicard.services.image_cache import (
    CACHE_KEY,
    DEFAULT_IMAGES,
    ExternalImageCache,
    cache_key,
)
from musicard.services.image_relay import (
    MAX_IMAGE_BYTES,
    ImageRelay,
    generate_safe_file_name,
    validate_image_format,
    validate_image_size,
)
from musicard.services.profile_storage import RemoteStorageService

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _blob_transport(handler) -> BlobStore:
    return BlobStore(token="rw-token", base_url="https://blob.test", transport=httpx.MockTransport(handler))


def _iso(days_ago: int) -> str:
    return (utcnow() - timedelta(days=days_ago)).isoformat().replace("+00:00", "Z")


# ── Validation ──────────────────────────────────────────────────────────────

def test_validate_image_format():
    assert validate_image_format("image/png") is True
    assert validate_image_format("image/JPEG") is True
    assert validate_image_format("image/webp") is True
    assert validate_image_format("image/gif") is False
    assert validate_image_format("application/pdf") is False


def test_validate_image_size():
    assert validate_image_size(b"x" * MAX_IMAGE_BYTES) is True
    assert validate_image_size(b"x" * (MAX_IMAGE_BYTES + 1)) is False


def test_generate_safe_file_name():
    name = generate_safe_file_name("cover.PNG", "alice", "album")
    prefix, _, rest = name.rpartition("/")
    assert prefix == "alice/album"
    stem, ext = rest.split(".")
    assert ext == "png"
    timestamp, random_id = stem.split("-")
    assert timestamp.isdigit()
    assert len(random_id) == 6


def test_generate_safe_file_name_sanitizes_extension():
    assert generate_safe_file_name("x./../etc", "alice", "icon").endswith(".jpg")
    assert generate_safe_file_name("noext", "alice", "icon").endswith(".jpg")


# ── Relay ───────────────────────────────────────────────────────────────────

async def test_upload_stores_blob():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PUT"
        assert request.headers["Authorization"] == "Bearer rw-token"
        assert request.headers["x-content-type"] == "image/png"
        return httpx.Response(200, json={"url": f"https://cdn.test{request.url.path}"})

    relay = ImageRelay(store=_blob_transport(handler))
    result = await relay.upload(PNG_BYTES, "image/png", "alice", "icon", original_name="me.png")

    assert result.stored is True
    assert result.url.startswith("https://cdn.test/alice/icon/")
    assert result.format == "png"
    assert result.size == len(PNG_BYTES)


async def test_upload_rejects_gif():
    relay = ImageRelay(store=_blob_transport(lambda r: httpx.Response(500)))
    with pytest.raises(ImageValidationError):
        await relay.upload(b"GIF89a", "image/gif", "alice", "icon")


async def test_upload_rejects_oversized_payload():
    relay = ImageRelay(store=_blob_transport(lambda r: httpx.Response(500)))
    with pytest.raises(ImageValidationError):
        await relay.upload(b"x" * (MAX_IMAGE_BYTES + 1), "image/png", "alice", "icon")


async def test_upload_falls_back_to_data_url():
    relay = ImageRelay(store=_blob_transport(lambda r: httpx.Response(503, text="unavailable")))
    result = await relay.upload(PNG_BYTES, "image/png", "alice", "album")

    assert result.stored is False
    assert result.url == "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


async def test_upload_without_token_falls_back_to_data_url():
    relay = ImageRelay(store=BlobStore(token="", base_url="https://blob.test"))
    result = await relay.upload(PNG_BYTES, "image/png", "alice", "icon")
    assert result.url.startswith("data:image/png;base64,")


async def test_upload_from_url_keeps_original_on_failure():
    relay = ImageRelay(
        store=_blob_transport(lambda r: httpx.Response(500)),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404))),
    )
    result = await relay.upload_from_url("https://i.scdn.co/image/abc", "alice", "album")

    assert result.url == "https://i.scdn.co/image/abc"
    assert result.stored is False
    assert result.size == 0


async def test_upload_from_url_relocates():
    fetch = httpx.MockTransport(
        lambda r: httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})
    )
    store = _blob_transport(lambda r: httpx.Response(200, json={"url": "https://cdn.test/stored.png"}))
    relay = ImageRelay(store=store, http_client=httpx.AsyncClient(transport=fetch))

    result = await relay.upload_from_url("https://i.scdn.co/image/abc", "alice", "album")
    assert result.url == "https://cdn.test/stored.png"
    assert result.size == len(PNG_BYTES)


async def test_cleanup_counts_deleted_and_failed():
    listing = {
        "blobs": [
            {"url": "https://cdn.test/old-ok", "pathname": "alice/icon/1.png", "size": 10, "uploadedAt": _iso(45)},
            {"url": "https://cdn.test/old-bad", "pathname": "alice/album/2.png", "size": 10, "uploadedAt": _iso(40)},
            {"url": "https://cdn.test/new", "pathname": "bob/icon/3.png", "size": 10, "uploadedAt": _iso(1)},
        ],
        "hasMore": False,
    }
    deleted = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json=listing)
        urls = json.loads(request.content)["urls"]
        if urls == ["https://cdn.test/old-bad"]:
            return httpx.Response(500, text="nope")
        deleted.extend(urls)
        return httpx.Response(200, json={})

    relay = ImageRelay(store=_blob_transport(handler))
    result = await relay.cleanup_older_than(30)

    assert result.deleted_count == 1
    assert result.error_count == 1
    assert deleted == ["https://cdn.test/old-ok"]


async def test_storage_stats_follow_pagination():
    pages = [
        {"blobs": [{"url": "u1", "pathname": "alice/icon/1.png", "size": 5, "uploadedAt": _iso(1)}],
         "hasMore": True, "cursor": "next"},
        {"blobs": [{"url": "u2", "pathname": "alice/album/2.png", "size": 7, "uploadedAt": _iso(1)}],
         "hasMore": False},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        page = 1 if request.url.params.get("cursor") == "next" else 0
        return httpx.Response(200, json=pages[page])

    stats = await ImageRelay(store=_blob_transport(handler)).get_storage_stats()
    assert stats == {"total_files": 2, "total_size": 12, "user_icons": 1, "album_covers": 1}


# ── External image cache ────────────────────────────────────────────────────

async def test_cache_reuses_fresh_entry(kv):
    relay = AsyncMock()
    relay.upload_from_url.return_value = ImageUploadResult(url="https://cdn.test/a.jpg", size=3)
    cache = ExternalImageCache(store=kv, relay=relay)

    first = await cache.get_provider_image("https://i.scdn.co/a", "alice", "album", "spotify")
    second = await cache.get_provider_image("https://i.scdn.co/a", "alice", "album", "spotify")

    assert first == second == "https://cdn.test/a.jpg"
    relay.upload_from_url.assert_called_once()


async def test_cache_uses_default_image_when_everything_fails(kv):
    relay = AsyncMock()
    relay.upload_from_url.side_effect = RuntimeError("boom")
    cache = ExternalImageCache(store=kv, relay=relay)

    url = await cache.get_provider_image(
        "https://i.scdn.co/a", "alice", "icon", "spotify", fallback_url="https://i.scdn.co/b",
    )
    assert url == DEFAULT_IMAGES["icon"]
    assert relay.upload_from_url.call_count == 2


async def test_cleanup_old_cache_removes_entries_past_sixty_days(kv):
    now = utcnow()
    entries = {
        cache_key("https://old", "alice", "album"): CachedImageInfo(
            url="https://cdn.test/old", cached_at=now - timedelta(days=61), size=1, source="spotify"),
        cache_key("https://stale", "alice", "album"): CachedImageInfo(
            url="https://cdn.test/stale", cached_at=now - timedelta(days=45), size=1, source="lastfm"),
        cache_key("https://new", "alice", "icon"): CachedImageInfo(
            url="https://cdn.test/new", cached_at=now, size=1, source="manual"),
    }
    await kv.set_json(CACHE_KEY, {k: v.model_dump(mode="json") for k, v in entries.items()})
    cache = ExternalImageCache(store=kv, relay=AsyncMock())

    assert await cache.cleanup_old_cache() == 1
    stats = await cache.get_cache_stats()
    assert stats["total_cached"] == 2
    assert stats["spotify_images"] == 0
    # 45 days old is kept but no longer served
    assert await cache.get_cached_image("https://stale", "alice", "album") is None


def test_cache_key_is_alphanumeric():
    key = cache_key("https://i.scdn.co/image/ab67616d?x=1", "alice", "album")
    prefix, _, url_hash = key.rpartition("/")
    assert prefix == "alice/album"
    assert url_hash.isalnum()


# ── Routes ──────────────────────────────────────────────────────────────────

async def test_upload_route_requires_auth(client):
    resp = await client.post("/api/upload/image", json={"image": "", "username": "alice", "type": "icon"})
    assert resp.status_code == 401


async def test_upload_route_base64(client, user_token):
    client.mock_image_relay.upload.return_value = ImageUploadResult(url="https://cdn.test/x.png", size=40)
    body = {
        "image": "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode(),
        "username": "alice",
        "type": "icon",
    }
    resp = await client.post("/api/upload/image", json=body, headers=auth_header(user_token))

    assert resp.status_code == 200
    assert resp.json()["url"] == "https://cdn.test/x.png"
    args = client.mock_image_relay.upload.call_args
    assert args.args[:4] == (PNG_BYTES, "image/png", "alice", "icon")


async def test_upload_route_multipart(client, user_token):
    client.mock_image_relay.upload.return_value = ImageUploadResult(url="https://cdn.test/y.png", size=40)
    resp = await client.post(
        "/api/upload/image",
        files={"file": ("me.png", PNG_BYTES, "image/png")},
        data={"username": "alice", "type": "album"},
        headers=auth_header(user_token),
    )
    assert resp.status_code == 200
    assert client.mock_image_relay.upload.call_args.args[3] == "album"


async def test_upload_route_validation_error_is_400(client, user_token):
    client.mock_image_relay.upload.side_effect = ImageValidationError("Unsupported image format: image/gif")
    body = {"image": base64.b64encode(b"GIF89a").decode(), "username": "alice", "type": "icon",
            "content_type": "image/gif"}
    resp = await client.post("/api/upload/image", json=body, headers=auth_header(user_token))
    assert resp.status_code == 400
    assert "image/gif" in resp.json()["detail"]


async def test_upload_route_for_other_user_forbidden(client, user_token):
    body = {"image": base64.b64encode(PNG_BYTES).decode(), "username": "bob", "type": "icon"}
    resp = await client.post("/api/upload/image", json=body, headers=auth_header(user_token))
    assert resp.status_code == 403


async def test_delete_route_without_blob_store(client, user_token):
    with patch("musicard.routers.images.blob_store", BlobStore(token="", base_url="https://blob.test")):
        resp = await client.request(
            "DELETE", "/api/delete/image", json={"url": "https://cdn.test/x"}, headers=auth_header(user_token),
        )
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Blob storage not configured"


async def test_cleanup_route_admin(client, admin_token):
    client.mock_image_relay.cleanup_older_than.return_value = CleanupResult(deleted_count=3)
    with patch("musicard.routers.images.blob_store", BlobStore(token="rw", base_url="https://blob.test")):
        resp = await client.post("/api/cleanup/images?days=7", headers=auth_header(admin_token))
    assert resp.status_code == 200
    assert resp.json() == {"deleted_count": 3, "error_count": 0}
    client.mock_image_relay.cleanup_older_than.assert_called_once_with(7)


async def test_upload_route_reports_local_source(client, user_token):
    client.mock_image_relay.upload.return_value = ImageUploadResult(url="https://cdn.test/z.png", size=40)
    body = {"image": base64.b64encode(PNG_BYTES).decode(), "username": "alice", "type": "icon",
            "content_type": "image/png", "filename": "me.png"}
    resp = await client.post("/api/upload/image", json=body, headers=auth_header(user_token))

    assert resp.status_code == 200
    assert resp.json()["source"] == "local"
    assert client.mock_image_relay.upload.call_args.kwargs["original_name"] == "me.png"


async def test_upload_route_goes_through_remote_storage(client, user_token):
    relay = AsyncMock()
    relay.upload.return_value = ImageUploadResult(url="data:image/png;base64,AA==", size=1, stored=False)
    service = RemoteStorageService(remote=AsyncMock(), fallback=client.storage, relay=relay)

    with patch("musicard.routers.images.storage_service", service):
        resp = await client.post(
            "/api/upload/image",
            files={"file": ("cover.png", PNG_BYTES, "image/png")},
            data={"username": "alice", "type": "album"},
            headers=auth_header(user_token),
        )

    assert resp.status_code == 200
    assert resp.json()["source"] == "fallback"
    assert resp.json()["stored"] is False
    relay.upload.assert_called_once_with(PNG_BYTES, "image/png", "alice", "album", original_name="cover.png")
    client.mock_image_relay.upload.assert_not_called()


async def test_upload_route_multipart_file_as_text_is_400(client, user_token):
    resp = await client.post(
        "/api/upload/image",
        files={"note": ("note.txt", b"hello", "text/plain")},
        data={"file": "not-a-file", "username": "alice", "type": "icon"},
        headers=auth_header(user_token),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Missing image file"


async def test_delete_route_rejects_other_users_blob(client, user_token):
    with patch("musicard.routers.images.blob_store", BlobStore(token="rw", base_url="https://blob.test")):
        resp = await client.request(
            "DELETE", "/api/delete/image",
            json={"url": "https://cdn.test/bob/icon/1.png"},
            headers=auth_header(user_token),
        )
    assert resp.status_code == 403
    client.mock_image_relay.delete.assert_not_called()


async def test_delete_route_own_blob(client, user_token):
    client.mock_image_relay.delete.return_value = True
    with patch("musicard.routers.images.blob_store", BlobStore(token="rw", base_url="https://blob.test")):
        resp = await client.request(
            "DELETE", "/api/delete/image",
            json={"url": "https://cdn.test/alice/icon/1.png"},
            headers=auth_header(user_token),
        )
    assert resp.status_code == 200
    client.mock_image_relay.delete.assert_called_once_with("https://cdn.test/alice/icon/1.png")


async def test_delete_route_admin_may_delete_any_blob(client, admin_token):
    client.mock_image_relay.delete.return_value = True
    with patch("musicard.routers.images.blob_store", BlobStore(token="rw", base_url="https://blob.test")):
        resp = await client.request(
            "DELETE", "/api/delete/image",
            json={"url": "https://cdn.test/bob/album/2.png"},
            headers=auth_header(admin_token),
        )
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
