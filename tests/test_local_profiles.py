"""
Tests for the key/value profile store and its backup slot.
"""
import json

from conftest import FailingRedisClient, make_profile
from musicard.schemas import Song, UserProfile
from musicard.services.local_profiles import BACKUP_KEY, STORAGE_KEY, LocalProfileStore


async def test_save_then_load_single_song(profile_store):
    """A saved profile loads back with exactly the songs it was saved with."""
    profile = UserProfile(username="alice", songs=[Song(title="A", artist="B")])

    assert await profile_store.save_user(profile) is True
    loaded = await profile_store.load_user("alice")

    assert loaded is not None
    assert len(loaded.songs) == 1
    assert loaded.songs[0].title == "A"
    assert loaded.songs[0].artist == "B"


async def test_load_missing_user_returns_none(profile_store):
    assert await profile_store.load_user("nobody") is None


async def test_round_trip_keeps_fields(profile_store):
    profile = make_profile(
        "bob",
        bio="Hi there",
        base_color="dark",
        theme_color="teal",
        grid_layout="3x3",
        favorite_genres=["Jazz"],
        location="Osaka",
    )
    await profile_store.save_user(profile)
    loaded = await profile_store.load_user("bob")

    expected = profile.model_dump(exclude={"updated_at"})
    assert loaded.model_dump(exclude={"updated_at"}) == expected


async def test_updated_at_is_non_decreasing(profile_store):
    profile = make_profile()
    await profile_store.save_user(profile)
    first = (await profile_store.load_user("alice")).updated_at

    await profile_store.save_user(profile)
    second = (await profile_store.load_user("alice")).updated_at

    assert second >= first


async def test_save_overwrites_backup_slot(profile_store, kv):
    await profile_store.save_user(make_profile("alice"))
    await profile_store.save_user(make_profile("bob"))

    backup = await kv.get_json(BACKUP_KEY)
    assert backup["user_count"] == 1
    assert set(backup["data"]) == {"alice"}


async def test_restore_from_backup(profile_store):
    await profile_store.save_user(make_profile("alice"))
    await profile_store.save_user(make_profile("bob"))

    assert await profile_store.restore_from_backup() is True
    users = await profile_store.load_all_users()
    assert set(users) == {"alice"}


async def test_restore_without_backup(profile_store):
    assert await profile_store.restore_from_backup() is False


async def test_invalid_entries_are_skipped(profile_store, kv):
    await profile_store.save_user(make_profile("alice"))
    raw = await kv.get_json(STORAGE_KEY)
    raw["broken"] = {"username": "broken"}
    await kv.set_json(STORAGE_KEY, raw)

    users = await profile_store.load_all_users()
    assert set(users) == {"alice"}


async def test_legacy_profile_is_migrated_on_load(profile_store, kv):
    """Object-valued colour and layout fields are replaced by ids and re-saved."""
    await kv.set_json(STORAGE_KEY, {
        "carol": {
            "username": "carol",
            "displayName": "Carol",
            "songs": [],
            "createdAt": "2024-01-01T00:00:00+00:00",
            "baseColor": {"id": "dark", "name": "Dark"},
            "gridLayout": {"id": "old", "size": 5, "centerPosition": 12},
        },
    })

    loaded = await profile_store.load_user("carol")
    assert loaded.base_color == "dark"
    assert loaded.grid_layout == "5x5"

    stored = (await kv.get_json(STORAGE_KEY))["carol"]
    assert stored["base_color"] == "dark"
    assert stored["grid_layout"] == "5x5"


async def test_delete_user(profile_store):
    await profile_store.save_user(make_profile("alice"))
    assert await profile_store.delete_user("alice") is True
    assert await profile_store.delete_user("alice") is False
    assert await profile_store.load_user("alice") is None


async def test_increment_view_count(profile_store):
    await profile_store.save_user(make_profile("alice"))
    assert await profile_store.increment_view_count("alice") is True
    assert await profile_store.increment_view_count("alice") is True
    assert (await profile_store.load_user("alice")).view_count == 2
    assert await profile_store.increment_view_count("ghost") is False


async def test_user_list_most_recent_first(profile_store):
    await profile_store.save_user(make_profile("alice"))
    await profile_store.save_user(make_profile("bob"))

    summaries = await profile_store.get_user_list()
    assert {s.username for s in summaries} == {"alice", "bob"}
    assert summaries[0].updated_at >= summaries[1].updated_at
    assert summaries[0].song_count == 2


async def test_export_then_import(profile_store):
    await profile_store.save_user(make_profile("alice"))
    exported = await profile_store.export_user_data()
    assert json.loads(exported)["user_count"] == 1

    await profile_store.delete_user("alice")
    assert await profile_store.import_user_data(exported) is True
    assert await profile_store.load_user("alice") is not None


async def test_import_rejects_bad_document(profile_store):
    assert await profile_store.import_user_data('{"users": []}') is False
    assert await profile_store.import_user_data("not json") is False


async def test_failures_are_reported_not_raised(kv):
    kv._client = FailingRedisClient()
    store = LocalProfileStore(kv)

    assert await store.save_user(make_profile()) is False
    assert await store.load_all_users() == {}
    assert await store.load_user("alice") is None
    stats = await store.get_storage_stats()
    assert stats["total_users"] == 0
