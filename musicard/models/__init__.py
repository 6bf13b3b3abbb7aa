"""Database models."""
from musicard.models.base import Base
from musicard.models.user import User
from musicard.models.song import Song
from musicard.models.session import LoginSession

__all__ = ["Base", "User", "Song", "LoginSession"]
