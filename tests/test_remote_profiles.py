"""
Tests for the Postgres row mapping used by the remote profile store.
"""
from conftest import make_profile
from musicard.models import Song as SongRow, User
from musicard.schemas import Song, SpotifyPreview
from musicard.services.remote_profiles import profile_from_row, song_values, user_values


def _as_rows(profile, user_id: int = 1) -> User:
    user = User(id=user_id, username=profile.username, created_at=profile.created_at, **user_values(profile))
    user.songs = [
        SongRow(id=100 + i, **song_values(song, user_id, i))
        for i, song in enumerate(profile.songs)
    ]
    return user


def test_song_ids_survive_the_row_mapping():
    profile = make_profile(
        "erin",
        songs=[
            Song(title="A", artist="B"),
            Song(id="abc", title="C", artist="D", spotify=SpotifyPreview(id="sp1")),
        ],
        location="Osaka",
    )

    loaded = profile_from_row(_as_rows(profile))

    # The row's primary key never leaks into the song id
    assert loaded.songs[0].id is None
    assert loaded.songs[1].id == "abc"
    assert loaded.songs[1].spotify == SpotifyPreview(id="sp1")
    assert loaded.model_dump(exclude={"updated_at"}) == profile.model_dump(exclude={"updated_at"})


def test_user_values_keep_visibility_and_extras():
    profile = make_profile("frank", is_public=False, view_count=7, favorite_genres=["Jazz"])
    values = user_values(profile)

    assert values["is_public"] is False
    assert values["view_count"] == 7
    assert values["extra"]["favorite_genres"] == ["Jazz"]

    loaded = profile_from_row(_as_rows(profile))
    assert loaded.is_public is False
    assert loaded.favorite_genres == ["Jazz"]
