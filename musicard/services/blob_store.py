"""
Client for the blob object store.

HTTP API (Vercel Blob compatible):
  PUT  {base}/{pathname}   upload raw bytes, returns {url, pathname, contentType}
  GET  {base}?prefix=...   list objects, paginated by cursor
  POST {base}/delete       delete by URL list (JSON body)

Uses a persistent connection pool. Single attempt per call: callers
decide how to fall back.
"""
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime

import httpx

from musicard.config import settings
from musicard.errors import BlobStoreError, BlobStoreNotConfiguredError

logger = logging.getLogger(__name__)

_UPLOAD_TIMEOUT = 30.0
_DELETE_TIMEOUT = 10.0
_LIST_TIMEOUT = 10.0
_LIST_PAGE_SIZE = 1000
_API_VERSION = "7"

_MAX_CONNECTIONS = 10
_MAX_KEEPALIVE = 5


@dataclass
class BlobObject:
    url: str
    pathname: str
    size: int
    uploaded_at: datetime


class BlobStore:
    """Async HTTP client for the blob store."""

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = settings.blob_read_write_token if token is None else token
        self.base_url = (base_url or settings.blob_api_url).rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        key_fp = hashlib.sha256(self.token.encode("utf-8")).hexdigest()[:10] if self.token else "missing"
        logger.info("Blob store configured: base_url=%s token_fp=%s", self.base_url, key_fp)

    @property
    def configured(self) -> bool:
        return bool(self.token)

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the persistent HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                follow_redirects=True,
                limits=httpx.Limits(
                    max_connections=_MAX_CONNECTIONS,
                    max_keepalive_connections=_MAX_KEEPALIVE,
                ),
            )
        return self._client

    async def close(self):
        """Close the persistent HTTP client (call on app shutdown)."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.info("Blob store connection pool closed")

    def _auth_headers(self) -> dict:
        if not self.configured:
            raise BlobStoreNotConfiguredError()
        return {"Authorization": f"Bearer {self.token}", "x-api-version": _API_VERSION}

    @staticmethod
    def _check(response: httpx.Response, action: str) -> None:
        if response.status_code >= 400:
            raise BlobStoreError(
                f"Blob {action} failed: {response.status_code} - {response.text[:200]}"
            )

    async def put(self, pathname: str, data: bytes, content_type: str) -> str:
        """Upload bytes under pathname, returns the public URL."""
        headers = {
            **self._auth_headers(),
            "x-content-type": content_type,
            "x-add-random-suffix": "0",
        }
        try:
            response = await self._get_client().put(
                f"{self.base_url}/{pathname}",
                content=data,
                headers=headers,
                timeout=_UPLOAD_TIMEOUT,
            )
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Blob upload failed: {e}") from e
        self._check(response, "upload")
        url = response.json()["url"]
        logger.info("Blob upload OK: %s (%d bytes)", pathname, len(data))
        return url

    async def delete(self, urls: list[str]) -> None:
        headers = {**self._auth_headers(), "Content-Type": "application/json"}
        try:
            response = await self._get_client().post(
                f"{self.base_url}/delete",
                json={"urls": urls},
                headers=headers,
                timeout=_DELETE_TIMEOUT,
            )
        except httpx.HTTPError as e:
            raise BlobStoreError(f"Blob delete failed: {e}") from e
        self._check(response, "delete")
        logger.debug("Blob delete OK: %d object(s)", len(urls))

    async def list(self, prefix: str = "") -> list[BlobObject]:
        """All objects under prefix, following pagination."""
        headers = self._auth_headers()
        objects: list[BlobObject] = []
        cursor: str | None = None
        while True:
            params: dict = {"limit": _LIST_PAGE_SIZE}
            if prefix:
                params["prefix"] = prefix
            if cursor:
                params["cursor"] = cursor
            try:
                response = await self._get_client().get(
                    self.base_url, params=params, headers=headers, timeout=_LIST_TIMEOUT,
                )
            except httpx.HTTPError as e:
                raise BlobStoreError(f"Blob list failed: {e}") from e
            self._check(response, "list")
            payload = response.json()
            for blob in payload.get("blobs", []):
                objects.append(BlobObject(
                    url=blob["url"],
                    pathname=blob["pathname"],
                    size=blob.get("size", 0),
                    uploaded_at=datetime.fromisoformat(blob["uploadedAt"].replace("Z", "+00:00")),
                ))
            cursor = payload.get("cursor")
            if not payload.get("hasMore") or not cursor:
                return objects


# Singleton instance
blob_store = BlobStore()
