"""
Pydantic models for profiles, songs and search results.

Field names are snake_case; camelCase aliases are accepted on input so that
documents exported by the browser client can be imported as-is.
"""
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from musicard.palette import (
    DEFAULT_BASE_COLOR,
    DEFAULT_GRID_LAYOUT,
    DEFAULT_THEME_COLOR,
    get_base_color,
    get_grid_layout,
    get_theme_color,
    grid_layout_for_size,
)

MAX_SONGS = 20
USERNAME_PATTERN = r"^[a-zA-Z0-9_-]{3,50}$"

ImageKind = Literal["icon", "album"]
ImageSource = Literal["spotify", "lastfm", "manual"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SpotifyPreview(_CamelModel):
    id: str
    preview_url: str | None = None
    spotify_url: str | None = None


class YouTubePreview(_CamelModel):
    video_id: str
    title: str = ""
    channel_title: str = ""
    embed_url: str = ""


class Song(_CamelModel):
    """One grid cell: a song with optional artwork and cached previews."""
    id: str | None = None
    title: str
    artist: str
    jacket: str | None = None
    is_generated_image: bool = False
    preview_url: str | None = None
    added_at: datetime | None = None
    spotify: SpotifyPreview | None = None
    youtube: YouTubePreview | None = None
    genre: str | None = None
    release_year: int | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.title.strip()) and bool(self.artist.strip())


class SocialLinks(_CamelModel):
    twitter: str | None = None
    instagram: str | None = None
    tiktok: str | None = None
    youtube: str | None = None
    spotify: str | None = None
    website: str | None = None


class UserProfile(_CamelModel):
    """A user's music card. The username is the immutable identity."""
    username: str = Field(pattern=USERNAME_PATTERN)
    display_name: str = ""
    bio: str = ""
    icon: str | None = None
    base_color: str = DEFAULT_BASE_COLOR
    theme_color: str = DEFAULT_THEME_COLOR
    social_links: SocialLinks = Field(default_factory=SocialLinks)
    location: str | None = None
    occupation: str | None = None
    birthdate: str | None = None
    favorite_genres: list[str] = Field(default_factory=list)
    songs: list[Song] = Field(default_factory=list, max_length=MAX_SONGS)
    grid_layout: str = DEFAULT_GRID_LAYOUT
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    view_count: int = Field(default=0, ge=0)
    is_public: bool = True

    @field_validator("base_color", mode="before")
    @classmethod
    def _coerce_base_color(cls, value: Any) -> str:
        # Older documents embed the whole colour definition
        if isinstance(value, dict):
            value = value.get("id")
        if not value or get_base_color(value) is None:
            return DEFAULT_BASE_COLOR
        return value

    @field_validator("theme_color", mode="before")
    @classmethod
    def _coerce_theme_color(cls, value: Any) -> str:
        if isinstance(value, dict):
            value = value.get("id")
        if not value or get_theme_color(value) is None:
            return DEFAULT_THEME_COLOR
        return value

    @field_validator("grid_layout", mode="before")
    @classmethod
    def _coerce_grid_layout(cls, value: Any) -> str:
        if isinstance(value, dict):
            layout = get_grid_layout(value.get("id", ""))
            if layout is None or "centerPosition" in value:
                layout = grid_layout_for_size(value.get("size"))
            return layout.id
        if not value or get_grid_layout(value) is None:
            return DEFAULT_GRID_LAYOUT
        return value

    @property
    def complete_songs(self) -> list[Song]:
        return [s for s in self.songs if s.is_complete]


class UserSummary(BaseModel):
    username: str
    display_name: str
    song_count: int
    view_count: int
    updated_at: datetime


class UserStats(BaseModel):
    total_songs: int
    genre_distribution: dict[str, int]
    artist_distribution: dict[str, int]
    decade_distribution: dict[str, int]
    average_release_year: int


class SearchResult(BaseModel):
    """Track or album hit from a search provider."""
    name: str
    artist: str
    image: str | None = None
    url: str | None = None
    is_generated_image: bool = False
    provider: Literal["spotify", "lastfm", "mock"] = "mock"
    kind: Literal["track", "album"] = "track"
    album: str | None = None
    spotify_id: str | None = None
    preview_url: str | None = None
    release_date: str | None = None


class SearchAttempt(BaseModel):
    provider: str
    success: bool
    error: str | None = None
    result_count: int = 0


class ImageUploadResult(BaseModel):
    url: str
    size: int
    format: str = "jpeg"
    pathname: str | None = None
    stored: bool = True


class CachedImageInfo(BaseModel):
    url: str
    cached_at: datetime
    size: int
    source: ImageSource


class CleanupResult(BaseModel):
    deleted_count: int = 0
    error_count: int = 0
