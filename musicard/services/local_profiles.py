"""
Profile store over the key/value store.

All profiles live in one JSON map (username -> profile) under STORAGE_KEY.
Every write first snapshots the previous map into a single backup slot.
Failures are logged and reported as False / empty results, never raised.
"""
import json
import logging
from typing import Any

from pydantic import ValidationError

from musicard.schemas import UserProfile, UserSummary, utcnow
from musicard.services.kv_store import KeyValueStore, kv_store

logger = logging.getLogger(__name__)

STORAGE_KEY = "musicard_users"
BACKUP_KEY = "musicard_users_backup"
EXPORT_VERSION = "1.0"

_REQUIRED_FIELDS = ("username", "displayName", "songs", "createdAt")


def _has_required_fields(data: Any) -> bool:
    """Structural check on a stored document (accepts snake_case or camelCase keys)."""
    if not isinstance(data, dict):
        return False
    for camel in _REQUIRED_FIELDS:
        snake = "".join("_" + c.lower() if c.isupper() else c for c in camel)
        if camel not in data and snake not in data:
            return False
    return True


def _needs_migration(data: dict) -> bool:
    base_color = data.get("base_color", data.get("baseColor"))
    grid_layout = data.get("grid_layout", data.get("gridLayout"))
    if not base_color or isinstance(base_color, dict):
        return True
    if not grid_layout or isinstance(grid_layout, dict):
        return True
    return False


class LocalProfileStore:
    """Profiles persisted as a single JSON document in the key/value store."""

    def __init__(self, store: KeyValueStore | None = None):
        self.store = store or kv_store

    async def _read_raw(self) -> dict[str, Any]:
        data = await self.store.get_json(STORAGE_KEY)
        return data if isinstance(data, dict) else {}

    async def _write_raw(self, users: dict[str, Any]) -> None:
        await self.store.set_json(STORAGE_KEY, users)

    @staticmethod
    def _dump(profile: UserProfile) -> dict:
        return profile.model_dump(mode="json")

    async def load_all_users(self) -> dict[str, UserProfile]:
        """Load every valid profile; invalid entries are skipped with a warning."""
        try:
            raw = await self._read_raw()
        except Exception as e:
            logger.error("Failed to read profiles: %s", e)
            return {}

        users: dict[str, UserProfile] = {}
        for username, data in raw.items():
            if not _has_required_fields(data):
                logger.warning("Skipping invalid profile entry: %s", username)
                continue
            try:
                users[username] = UserProfile.model_validate(data)
            except ValidationError as e:
                logger.warning("Skipping invalid profile entry %s: %s", username, e.error_count())
        logger.debug("Loaded %d profiles", len(users))
        return users

    async def load_user(self, username: str) -> UserProfile | None:
        """Load one profile, upgrading legacy colour/layout fields in place."""
        try:
            raw = await self._read_raw()
            data = raw.get(username)
            if not _has_required_fields(data):
                return None
            profile = UserProfile.model_validate(data)
        except Exception as e:
            logger.error("Failed to load profile %s: %s", username, e)
            return None

        if _needs_migration(data):
            logger.info("Migrating legacy profile fields for %s", username)
            await self.save_user(profile)
        return profile

    async def save_user(self, profile: UserProfile) -> bool:
        """Insert or replace a profile; updated_at is set to now."""
        try:
            raw = await self._read_raw()
            await self.create_backup(raw)
            saved = profile.model_copy(update={"updated_at": utcnow()})
            raw[profile.username] = self._dump(saved)
            await self._write_raw(raw)
            logger.info("Saved profile %s (%d users total)", profile.username, len(raw))
            return True
        except Exception as e:
            logger.error("Failed to save profile %s: %s", profile.username, e)
            return False

    async def delete_user(self, username: str) -> bool:
        try:
            raw = await self._read_raw()
            if username not in raw:
                logger.warning("Profile %s does not exist", username)
                return False
            await self.create_backup(raw)
            del raw[username]
            await self._write_raw(raw)
            logger.info("Deleted profile %s (%d users total)", username, len(raw))
            return True
        except Exception as e:
            logger.error("Failed to delete profile %s: %s", username, e)
            return False

    async def increment_view_count(self, username: str) -> bool:
        try:
            raw = await self._read_raw()
            data = raw.get(username)
            if not isinstance(data, dict):
                logger.warning("Profile %s does not exist", username)
                return False
            profile = UserProfile.model_validate(data)
            updated = profile.model_copy(
                update={"view_count": profile.view_count + 1, "updated_at": utcnow()}
            )
            raw[username] = self._dump(updated)
            await self._write_raw(raw)
            return True
        except Exception as e:
            logger.error("Failed to increment view count for %s: %s", username, e)
            return False

    async def get_user_list(self) -> list[UserSummary]:
        users = await self.load_all_users()
        summaries = [
            UserSummary(
                username=username,
                display_name=profile.display_name or username,
                song_count=len(profile.songs),
                view_count=profile.view_count,
                updated_at=profile.updated_at,
            )
            for username, profile in users.items()
        ]
        return sorted(summaries, key=lambda s: s.updated_at, reverse=True)

    # ── Backup slot ─────────────────────────────────────────────────────────

    async def create_backup(self, data: dict[str, Any] | None = None) -> bool:
        """Overwrite the single backup slot with the given (or current) dataset."""
        try:
            if data is None:
                data = await self._read_raw()
            await self.store.set_json(BACKUP_KEY, {
                "data": data,
                "timestamp": utcnow().isoformat(),
                "user_count": len(data),
            })
            return True
        except Exception as e:
            logger.error("Failed to create backup: %s", e)
            return False

    async def get_backup(self) -> dict | None:
        try:
            return await self.store.get_json(BACKUP_KEY)
        except Exception as e:
            logger.error("Failed to read backup: %s", e)
            return None

    async def restore_from_backup(self) -> bool:
        backup = await self.get_backup()
        if not backup:
            logger.warning("No backup found")
            return False
        try:
            await self._write_raw(backup.get("data") or {})
            logger.info(
                "Restored %s users from backup taken at %s",
                backup.get("user_count"), backup.get("timestamp"),
            )
            return True
        except Exception as e:
            logger.error("Failed to restore backup: %s", e)
            return False

    # ── Import / export ─────────────────────────────────────────────────────

    async def export_user_data(self) -> str:
        try:
            raw = await self._read_raw()
            return json.dumps({
                "version": EXPORT_VERSION,
                "export_date": utcnow().isoformat(),
                "user_count": len(raw),
                "users": raw,
            }, ensure_ascii=False, indent=2)
        except Exception as e:
            logger.error("Failed to export profiles: %s", e)
            return ""

    async def import_user_data(self, json_data: str) -> bool:
        """Replace all profiles with an exported document (backup taken first)."""
        try:
            payload = json.loads(json_data)
            users = payload.get("users")
            if not isinstance(users, dict):
                raise ValueError("Invalid export format")
            await self.create_backup()
            await self._write_raw(users)
            logger.info("Imported %d profiles", len(users))
            return True
        except Exception as e:
            logger.error("Failed to import profiles: %s", e)
            return False

    async def get_storage_stats(self) -> dict:
        try:
            raw = await self._read_raw()
            users = await self.load_all_users()
            size = len(json.dumps(raw, ensure_ascii=False).encode("utf-8"))
            return {
                "total_users": len(users),
                "total_songs": sum(len(p.songs) for p in users.values()),
                "total_views": sum(p.view_count for p in users.values()),
                "storage_size_bytes": size,
                "storage_size_kb": round(size / 1024, 2),
            }
        except Exception as e:
            logger.error("Failed to compute storage stats: %s", e)
            return {
                "total_users": 0,
                "total_songs": 0,
                "total_views": 0,
                "storage_size_bytes": 0,
                "storage_size_kb": 0,
            }


local_profile_store = LocalProfileStore()
