"""
SQLAlchemy model for user profiles.
One row per card; songs live in their own table, ordered by position.
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from musicard.models.base import Base


class User(Base):
    """A MusiCard profile, keyed by its immutable username."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=False, default="")
    bio = Column(Text, nullable=False, default="")
    icon_url = Column(Text)
    spotify_id = Column(String(64))
    base_color = Column(String(32), nullable=False, default="light")
    theme_color = Column(String(32), nullable=False, default="blue")
    grid_layout = Column(String(8), nullable=False, default="4x4")
    social_links = Column(JSONB, nullable=False, default=dict)
    # location, occupation, birthdate, favorite_genres
    extra = Column(JSONB, nullable=False, default=dict)
    view_count = Column(Integer, nullable=False, default=0)
    is_public = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    songs = relationship(
        "Song",
        back_populates="user",
        order_by="Song.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(username={self.username}, songs={len(self.songs)})>"
