"""Initial schema: users, songs, sessions.

Revision ID: 001
Revises: None
Create Date: 2026-10-01
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # users
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("bio", sa.Text(), nullable=False, server_default=""),
        sa.Column("icon_url", sa.Text(), nullable=True),
        sa.Column("spotify_id", sa.String(64), nullable=True),
        sa.Column("base_color", sa.String(32), nullable=False, server_default="light"),
        sa.Column("theme_color", sa.String(32), nullable=False, server_default="blue"),
        sa.Column("grid_layout", sa.String(8), nullable=False, server_default="4x4"),
        sa.Column("social_links", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("extra", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # songs
    op.create_table(
        "songs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("client_id", sa.String(64), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("artist", sa.String(255), nullable=False),
        sa.Column("album", sa.String(255), nullable=True),
        sa.Column("cover_url", sa.Text(), nullable=True),
        sa.Column("is_generated_image", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("preview_url", sa.Text(), nullable=True),
        sa.Column("genre", sa.String(64), nullable=True),
        sa.Column("release_year", sa.Integer(), nullable=True),
        sa.Column("spotify", postgresql.JSONB(), nullable=True),
        sa.Column("youtube", postgresql.JSONB(), nullable=True),
        sa.Column("listen_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_songs_user_position", "songs", ["user_id", "position"])

    # sessions
    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("token_id", sa.String(64), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sessions_username", "sessions", ["username"])


def downgrade() -> None:
    op.drop_table("sessions")
    op.drop_table("songs")
    op.drop_table("users")
