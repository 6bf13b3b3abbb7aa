"""
Cache of provider-hosted images relocated into the blob store.

Entries live in one JSON map under CACHE_KEY in the key/value store, keyed by
`{username}/{kind}/{url-hash}`. Entries younger than 30 days are reused;
cleanup_old_cache() purges entries older than 60 days.
"""
import base64
import logging
import re
from datetime import datetime, timedelta

from musicard.schemas import CachedImageInfo, ImageKind, ImageSource, utcnow
from musicard.services.image_relay import ImageRelay, image_relay
from musicard.services.kv_store import KeyValueStore, kv_store

logger = logging.getLogger(__name__)

CACHE_KEY = "external_image_cache"
FRESH_DAYS = 30
PURGE_DAYS = 60

DEFAULT_IMAGES = {
    "icon": "/default-user-icon.png",
    "album": "/default-album-cover.png",
}

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def cache_key(image_url: str, username: str, kind: ImageKind) -> str:
    url_hash = _NON_ALNUM.sub("", base64.b64encode(image_url.encode("utf-8")).decode("ascii"))
    return f"{username}/{kind}/{url_hash}"


def _age(info: CachedImageInfo, now: datetime) -> timedelta:
    return now - info.cached_at


class ExternalImageCache:
    """Relocates external images once and remembers where they went."""

    def __init__(self, store: KeyValueStore | None = None, relay: ImageRelay | None = None):
        self.store = store or kv_store
        self.relay = relay or image_relay

    async def _load(self) -> dict[str, CachedImageInfo]:
        raw = await self.store.get_json(CACHE_KEY) or {}
        entries = {}
        for key, value in raw.items():
            try:
                entries[key] = CachedImageInfo.model_validate(value)
            except ValueError:
                logger.warning("Dropping malformed image cache entry %s", key)
        return entries

    async def _save(self, entries: dict[str, CachedImageInfo]) -> None:
        await self.store.set_json(
            CACHE_KEY, {k: v.model_dump(mode="json") for k, v in entries.items()}
        )

    async def get_cached_image(self, image_url: str, username: str, kind: ImageKind) -> str | None:
        """Relocated URL when a fresh entry exists."""
        entries = await self._load()
        info = entries.get(cache_key(image_url, username, kind))
        if info and _age(info, utcnow()) < timedelta(days=FRESH_DAYS):
            logger.debug("Image cache hit: %s", image_url)
            return info.url
        return None

    async def cache_external_image(
        self, image_url: str, username: str, kind: ImageKind, source: ImageSource,
    ) -> str:
        cached = await self.get_cached_image(image_url, username, kind)
        if cached:
            return cached

        result = await self.relay.upload_from_url(image_url, username, kind)
        entries = await self._load()
        entries[cache_key(image_url, username, kind)] = CachedImageInfo(
            url=result.url, cached_at=utcnow(), size=result.size, source=source,
        )
        await self._save(entries)
        logger.info("Cached external image %s -> %s", image_url, result.url)
        return result.url

    async def get_provider_image(
        self,
        image_url: str,
        username: str,
        kind: ImageKind,
        source: ImageSource,
        fallback_url: str | None = None,
    ) -> str:
        """
        Cached or freshly relocated URL for a provider image.

        On failure the fallback URL is tried once, then the default image
        for the kind is returned.
        """
        try:
            return await self.cache_external_image(image_url, username, kind, source)
        except Exception as e:
            logger.warning("Image cache failed for %s: %s", image_url, e)

        if fallback_url and fallback_url != image_url:
            try:
                return await self.cache_external_image(fallback_url, username, kind, source)
            except Exception as e:
                logger.error("Fallback image also failed for %s: %s", fallback_url, e)

        return DEFAULT_IMAGES[kind]

    async def cleanup_old_cache(self) -> int:
        """Remove entries older than 60 days, returns how many were removed."""
        entries = await self._load()
        now = utcnow()
        keep = {k: v for k, v in entries.items() if _age(v, now) <= timedelta(days=PURGE_DAYS)}
        deleted = len(entries) - len(keep)
        if deleted:
            await self._save(keep)
            logger.info("Removed %d old image cache entries", deleted)
        return deleted

    async def get_cache_stats(self) -> dict:
        entries = await self._load()
        by_source = {"spotify": 0, "lastfm": 0, "manual": 0}
        for info in entries.values():
            by_source[info.source] += 1
        return {
            "total_cached": len(entries),
            "spotify_images": by_source["spotify"],
            "lastfm_images": by_source["lastfm"],
            "manual_images": by_source["manual"],
            "total_size": sum(info.size for info in entries.values()),
        }


external_image_cache = ExternalImageCache()
