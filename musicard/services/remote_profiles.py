"""
Profile store over PostgreSQL (users + songs tables).

Same contract as LocalProfileStore, but failures propagate: the storage
facade decides what to do with them.
"""
import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert

from musicard.models import LoginSession, Song as SongRow, User
from musicard.schemas import (
    SocialLinks,
    Song,
    SpotifyPreview,
    UserProfile,
    UserSummary,
    YouTubePreview,
    utcnow,
)
from musicard.services.database import get_db

logger = logging.getLogger(__name__)

_EXTRA_FIELDS = ("location", "occupation", "birthdate", "favorite_genres")


def song_from_row(row: SongRow) -> Song:
    return Song(
        id=row.client_id,
        title=row.title,
        artist=row.artist,
        jacket=row.cover_url,
        is_generated_image=bool(row.is_generated_image),
        preview_url=row.preview_url,
        added_at=row.added_at,
        spotify=SpotifyPreview.model_validate(row.spotify) if row.spotify else None,
        youtube=YouTubePreview.model_validate(row.youtube) if row.youtube else None,
        genre=row.genre,
        release_year=row.release_year,
    )


def profile_from_row(user: User) -> UserProfile:
    extra = user.extra or {}
    return UserProfile(
        username=user.username,
        display_name=user.display_name or "",
        bio=user.bio or "",
        icon=user.icon_url,
        base_color=user.base_color,
        theme_color=user.theme_color,
        grid_layout=user.grid_layout,
        social_links=SocialLinks.model_validate(user.social_links or {}),
        location=extra.get("location"),
        occupation=extra.get("occupation"),
        birthdate=extra.get("birthdate"),
        favorite_genres=extra.get("favorite_genres") or [],
        songs=[song_from_row(s) for s in user.songs],
        created_at=user.created_at or utcnow(),
        updated_at=user.updated_at or utcnow(),
        view_count=user.view_count or 0,
        is_public=user.is_public,
    )


def user_values(profile: UserProfile) -> dict:
    """Column values for the users row, excluding username and created_at."""
    return {
        "display_name": profile.display_name,
        "bio": profile.bio,
        "icon_url": profile.icon,
        "base_color": profile.base_color,
        "theme_color": profile.theme_color,
        "grid_layout": profile.grid_layout,
        "social_links": profile.social_links.model_dump(mode="json", exclude_none=True),
        "extra": profile.model_dump(mode="json", include=set(_EXTRA_FIELDS)),
        "view_count": profile.view_count,
        "is_public": profile.is_public,
        "updated_at": utcnow(),
    }


def song_values(song: Song, user_id: int, position: int) -> dict:
    return {
        "user_id": user_id,
        "position": position,
        "client_id": song.id,
        "title": song.title,
        "artist": song.artist,
        "cover_url": song.jacket,
        "is_generated_image": int(song.is_generated_image),
        "preview_url": song.preview_url,
        "genre": song.genre,
        "release_year": song.release_year,
        "spotify": song.spotify.model_dump(mode="json") if song.spotify else None,
        "youtube": song.youtube.model_dump(mode="json") if song.youtube else None,
        "added_at": song.added_at,
    }


class RemoteProfileStore:
    """CRUD for profiles in Postgres. Every method may raise."""

    async def load_all_users(self) -> dict[str, UserProfile]:
        async with get_db() as session:
            result = await session.execute(select(User).order_by(User.updated_at.desc()))
            users = result.scalars().all()
            return {u.username: profile_from_row(u) for u in users}

    async def load_user(self, username: str) -> UserProfile | None:
        async with get_db() as session:
            result = await session.execute(select(User).where(User.username == username))
            user = result.scalar_one_or_none()
            return profile_from_row(user) if user else None

    async def save_user(self, profile: UserProfile) -> bool:
        """
        Full-document replace: upsert the user row, then rewrite its songs
        in grid order.
        """
        values = user_values(profile)
        async with get_db() as session:
            stmt = (
                insert(User)
                .values(username=profile.username, created_at=profile.created_at, **values)
                .on_conflict_do_update(index_elements=["username"], set_=values)
                .returning(User.id)
            )
            user_id = (await session.execute(stmt)).scalar_one()

            await session.execute(delete(SongRow).where(SongRow.user_id == user_id))
            if profile.songs:
                await session.execute(
                    insert(SongRow),
                    [song_values(s, user_id, i) for i, s in enumerate(profile.songs)],
                )

        logger.info("Saved profile %s (%d songs)", profile.username, len(profile.songs))
        return True

    async def delete_user(self, username: str) -> bool:
        async with get_db() as session:
            result = await session.execute(delete(User).where(User.username == username))
            return result.rowcount > 0

    async def increment_view_count(self, username: str) -> bool:
        async with get_db() as session:
            result = await session.execute(
                update(User)
                .where(User.username == username)
                .values(view_count=User.view_count + 1)
            )
            return result.rowcount > 0

    async def get_user_list(self) -> list[UserSummary]:
        users = await self.load_all_users()
        return [
            UserSummary(
                username=username,
                display_name=profile.display_name or username,
                song_count=len(profile.songs),
                view_count=profile.view_count,
                updated_at=profile.updated_at,
            )
            for username, profile in users.items()
        ]

    async def count_rows(self) -> dict[str, int]:
        """Row counts per table."""
        counts = {}
        async with get_db() as session:
            for name, model in (("users", User), ("songs", SongRow), ("sessions", LoginSession)):
                counts[name] = (await session.execute(select(func.count()).select_from(model))).scalar_one()
        return counts

    async def record_session(self, username: str, token_id: str, expires_at) -> None:
        async with get_db() as session:
            session.add(LoginSession(username=username, token_id=token_id, expires_at=expires_at))


remote_profile_store = RemoteProfileStore()
