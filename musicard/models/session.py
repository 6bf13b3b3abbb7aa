"""
SQLAlchemy model for login sessions issued by the auth gate.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from musicard.models.base import Base


class LoginSession(Base):
    """Record of an issued bearer token (username + login time)."""
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True)
    username = Column(String(50), index=True, nullable=False)
    token_id = Column(String(64), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    expires_at = Column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<LoginSession(username={self.username}, created={self.created_at})>"
