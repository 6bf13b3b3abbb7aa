"""
Storage facade over the profile backends.

The backend is picked from settings.storage_provider. The remote backend
falls back to the local store once per call on any error. Every call returns
a StorageResult tagged with where the value actually came from.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Literal, TypeVar

from musicard.config import Settings, settings
from musicard.schemas import ImageKind, ImageUploadResult, UserProfile, UserSummary
from musicard.services.image_relay import ImageRelay, image_relay
from musicard.services.local_profiles import LocalProfileStore, local_profile_store
from musicard.services.remote_profiles import RemoteProfileStore, remote_profile_store

logger = logging.getLogger(__name__)

T = TypeVar("T")
Source = Literal["remote", "fallback", "local"]

PROVIDERS = ("local", "remote")


@dataclass
class StorageResult(Generic[T]):
    source: Source
    value: T

    @property
    def degraded(self) -> bool:
        return self.source == "fallback"


class StorageService(ABC):
    """Profile storage contract."""

    name: str

    @abstractmethod
    async def load_all_users(self) -> StorageResult[dict[str, UserProfile]]: ...

    @abstractmethod
    async def load_user(self, username: str) -> StorageResult[UserProfile | None]: ...

    @abstractmethod
    async def save_user(self, profile: UserProfile) -> StorageResult[bool]: ...

    @abstractmethod
    async def increment_view_count(self, username: str) -> StorageResult[bool]: ...

    @abstractmethod
    async def delete_user(self, username: str) -> StorageResult[bool]: ...

    @abstractmethod
    async def get_user_list(self) -> StorageResult[list[UserSummary]]: ...

    @property
    def supports_image_upload(self) -> bool:
        return False


class LocalStorageService(StorageService):
    """Key/value store backend. Never raises."""

    name = "local"

    def __init__(self, store: LocalProfileStore | None = None):
        self.store = store or local_profile_store

    async def load_all_users(self):
        return StorageResult("local", await self.store.load_all_users())

    async def load_user(self, username):
        return StorageResult("local", await self.store.load_user(username))

    async def save_user(self, profile):
        return StorageResult("local", await self.store.save_user(profile))

    async def increment_view_count(self, username):
        return StorageResult("local", await self.store.increment_view_count(username))

    async def delete_user(self, username):
        return StorageResult("local", await self.store.delete_user(username))

    async def get_user_list(self):
        return StorageResult("local", await self.store.get_user_list())


class RemoteStorageService(StorageService):
    """Postgres backend with a single fallback to the local store."""

    name = "remote"

    def __init__(
        self,
        remote: RemoteProfileStore | None = None,
        fallback: LocalStorageService | None = None,
        relay: ImageRelay | None = None,
    ):
        self.remote = remote or remote_profile_store
        self.fallback = fallback or LocalStorageService()
        self.relay = relay or image_relay

    async def _call(
        self,
        operation: str,
        remote_call: Callable[[], Awaitable[T]],
        local_call: Callable[[], Awaitable[StorageResult[T]]],
    ) -> StorageResult[T]:
        try:
            return StorageResult("remote", await remote_call())
        except Exception as e:
            logger.warning("Remote %s failed, falling back to local store: %s", operation, e)
            result = await local_call()
            return StorageResult("fallback", result.value)

    async def load_all_users(self):
        return await self._call(
            "load_all_users",
            self.remote.load_all_users,
            self.fallback.load_all_users,
        )

    async def load_user(self, username):
        return await self._call(
            "load_user",
            lambda: self.remote.load_user(username),
            lambda: self.fallback.load_user(username),
        )

    async def save_user(self, profile):
        return await self._call(
            "save_user",
            lambda: self.remote.save_user(profile),
            lambda: self.fallback.save_user(profile),
        )

    async def increment_view_count(self, username):
        return await self._call(
            "increment_view_count",
            lambda: self.remote.increment_view_count(username),
            lambda: self.fallback.increment_view_count(username),
        )

    async def delete_user(self, username):
        return await self._call(
            "delete_user",
            lambda: self.remote.delete_user(username),
            lambda: self.fallback.delete_user(username),
        )

    async def get_user_list(self):
        return await self._call(
            "get_user_list",
            self.remote.get_user_list,
            self.fallback.get_user_list,
        )

    @property
    def supports_image_upload(self) -> bool:
        return True

    async def upload_image(
        self,
        data: bytes,
        content_type: str,
        username: str,
        kind: ImageKind,
        original_name: str = "image.jpg",
    ) -> StorageResult[ImageUploadResult]:
        """Forward to the image relay; a data-URL result is tagged as fallback."""
        result = await self.relay.upload(data, content_type, username, kind, original_name=original_name)
        return StorageResult("remote" if result.stored else "fallback", result)


def create_storage_service(config: Settings | None = None) -> StorageService:
    config = config or settings
    provider = config.storage_provider
    if provider == "remote":
        logger.info("Using remote profile storage (with local fallback)")
        return RemoteStorageService()
    if provider != "local":
        logger.warning("Unknown storage provider %r, using local", provider)
    logger.info("Using local profile storage")
    return LocalStorageService()


def provider_info(service: StorageService | None = None) -> dict[str, Any]:
    service = service or storage_service
    return {
        "current": service.name,
        "available": list(PROVIDERS),
        "configured": settings.storage_provider,
        "supports_image_upload": service.supports_image_upload,
    }


# Singleton instance
storage_service = create_storage_service()
