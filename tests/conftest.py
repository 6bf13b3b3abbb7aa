"""
Test fixtures for the MusiCard backend.

Provides:
- Mock Redis (in-memory dict-based) behind a real KeyValueStore
- Profile store and storage facade over the mock
- FastAPI test client (httpx AsyncClient) with singletons patched
- Bearer tokens for a regular user and an admin
"""
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient, ASGITransport

from musicard.auth import create_access_token
from musicard.main import app
from musicard.schemas import SearchResult, Song, UserProfile
from musicard.services.kv_store import KeyValueStore
from musicard.services.local_profiles import LocalProfileStore
from musicard.services.music_search import MusicSearch, SearchContext
from musicard.services.profile_storage import LocalStorageService


# ============================================
# Sample data
# ============================================

SAMPLE_SPOTIFY_ALBUM = SearchResult(
    name="A Night at the Opera",
    artist="Queen",
    image="https://i.scdn.co/image/opera",
    url="https://open.spotify.com/album/1GbtB4zTqAsyfZEsm1RZfx",
    provider="spotify",
    kind="album",
    spotify_id="1GbtB4zTqAsyfZEsm1RZfx",
)

SAMPLE_SPOTIFY_TRACK = SearchResult(
    name="Bohemian Rhapsody",
    artist="Queen",
    album="A Night at the Opera",
    image="https://i.scdn.co/image/opera",
    provider="spotify",
    kind="track",
    spotify_id="4u7EnebtmKWzUH433cf5Qv",
)


def make_profile(username: str = "alice", **overrides) -> UserProfile:
    data = {
        "username": username,
        "display_name": username.title(),
        "bio": "",
        "songs": [
            Song(title="Bohemian Rhapsody", artist="Queen", genre="Rock", release_year=1975),
            Song(title="Yesterday", artist="The Beatles", genre="Pop", release_year=1965),
        ],
    }
    data.update(overrides)
    return UserProfile(**data)


# ============================================
# Mock Redis (in-memory)
# ============================================

class MockRedisClient:
    """In-memory Redis mock for testing."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self._ttls: dict[str, int] = {}

    async def ping(self):
        return True

    async def close(self):
        pass

    async def get(self, key):
        return self._store.get(key)

    async def set(self, key, value):
        self._store[key] = value
        self._ttls.pop(key, None)

    async def setex(self, key, ttl, value):
        self._store[key] = value
        self._ttls[key] = ttl

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._store.pop(key, None) is not None:
                removed += 1
            self._ttls.pop(key, None)
        return removed


class FailingRedisClient(MockRedisClient):
    """Every call fails as if Redis were down."""

    async def ping(self):
        raise ConnectionError("redis down")

    async def get(self, key):
        raise ConnectionError("redis down")

    async def set(self, key, value):
        raise ConnectionError("redis down")

    async def setex(self, key, ttl, value):
        raise ConnectionError("redis down")


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def mock_redis():
    """Provide an in-memory Redis mock."""
    return MockRedisClient()


@pytest.fixture
def kv(mock_redis):
    """KeyValueStore wired to the in-memory Redis mock."""
    store = KeyValueStore(url="redis://test")
    store._client = mock_redis
    return store


@pytest.fixture
def profile_store(kv):
    return LocalProfileStore(kv)


@pytest.fixture
def local_storage(profile_store):
    return LocalStorageService(profile_store)


@pytest.fixture
def search_ctx():
    return SearchContext()


@pytest.fixture
def mock_spotify():
    """Mock Spotify service."""
    service = AsyncMock()
    service.search_albums.return_value = [SAMPLE_SPOTIFY_ALBUM]
    service.search_tracks.return_value = [SAMPLE_SPOTIFY_TRACK]
    return service


@pytest.fixture
def mock_lastfm():
    """Mock Last.fm service."""
    service = AsyncMock()
    service.search_albums.return_value = []
    service.search_tracks.return_value = []
    return service


@pytest.fixture
def searcher(mock_spotify, mock_lastfm):
    return MusicSearch(spotify=mock_spotify, lastfm=mock_lastfm, mock_delay=0)


@pytest.fixture
def mock_remote_store():
    """Mock Postgres profile store."""
    store = AsyncMock()
    store.record_session.return_value = None
    return store


@pytest.fixture
def mock_image_relay():
    """Mock image relay."""
    return AsyncMock()


@pytest.fixture
def user_token():
    token, _ = create_access_token("alice")
    return token


@pytest.fixture
def admin_token():
    token, _ = create_access_token("admin")
    return token


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(
    kv,
    profile_store,
    local_storage,
    search_ctx,
    searcher,
    mock_remote_store,
    mock_image_relay,
):
    """
    Async test client with all services mocked.

    Patches singleton services so routes use mocks instead of real connections.
    """
    mock_spotify_auth = AsyncMock()
    mock_spotify_auth.get_stored_token.return_value = None

    with (
        patch("musicard.services.kv_store.kv_store", kv),
        patch("musicard.routers.users.storage_service", local_storage),
        patch("musicard.routers.images.storage_service", local_storage),
        patch("musicard.routers.storage.storage_service", local_storage),
        patch("musicard.routers.storage.local_profile_store", profile_store),
        patch("musicard.routers.search.music_search", searcher),
        patch("musicard.routers.search.search_context", search_ctx),
        patch("musicard.routers.search.spotify_auth", mock_spotify_auth),
        patch("musicard.routers.auth.remote_profile_store", mock_remote_store),
        patch("musicard.routers.db.remote_profile_store", mock_remote_store),
        patch("musicard.routers.images.image_relay", mock_image_relay),
    ):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            # Expose mocks on client for assertions
            ac.storage = local_storage  # type: ignore
            ac.search_ctx = search_ctx  # type: ignore
            ac.mock_remote_store = mock_remote_store  # type: ignore
            ac.mock_image_relay = mock_image_relay  # type: ignore
            ac.mock_spotify_auth = mock_spotify_auth  # type: ignore
            yield ac
