"""
Redis-backed key/value store.

Plays the part of the browser-local persistent store: profiles, the backup
slot, OAuth state and the external image cache live here as JSON documents
under fixed keys.
"""
import json
from typing import Any

import redis.asyncio as redis

from musicard.config import settings


class KeyValueStore:
    """Async Redis client holding JSON documents."""

    def __init__(self, url: str | None = None):
        self._url = url or settings.redis_url
        self._client: redis.Redis | None = None

    async def get_client(self) -> redis.Redis:
        """Get or create Redis connection with connection pooling."""
        if self._client is None:
            self._client = redis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
                socket_connect_timeout=5,
                socket_keepalive=True,
            )
        return self._client

    async def close(self):
        """Close Redis connection."""
        if self._client:
            await self._client.close()
            self._client = None

    async def get_json(self, key: str) -> Any | None:
        client = await self.get_client()
        data = await client.get(key)
        if data is None:
            return None
        return json.loads(data)

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a JSON document, optionally expiring after ttl seconds."""
        client = await self.get_client()
        payload = json.dumps(value, ensure_ascii=False)
        if ttl:
            await client.setex(key, ttl, payload)
        else:
            await client.set(key, payload)

    async def delete(self, *keys: str) -> None:
        client = await self.get_client()
        await client.delete(*keys)


# Singleton instance
kv_store = KeyValueStore()
