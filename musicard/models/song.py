"""
SQLAlchemy model for songs on a profile grid.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from musicard.models.base import Base


class Song(Base):
    """
    A song cell. `position` preserves grid order; `spotify` / `youtube` hold
    cached preview references from the search providers.
    """
    __tablename__ = "songs"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    client_id = Column(String(64))
    title = Column(String(255), nullable=False)
    artist = Column(String(255), nullable=False)
    album = Column(String(255))
    cover_url = Column(Text)
    is_generated_image = Column(Integer, nullable=False, default=0)
    preview_url = Column(Text)
    genre = Column(String(64))
    release_year = Column(Integer)
    spotify = Column(JSONB)
    youtube = Column(JSONB)
    listen_count = Column(Integer, nullable=False, default=0)
    added_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    user = relationship("User", back_populates="songs")

    __table_args__ = (
        Index("idx_songs_user_position", "user_id", "position"),
    )

    def __repr__(self) -> str:
        return f"<Song(title={self.title}, artist={self.artist})>"
