"""Create users, tracks and journal_entries tables

Revision ID: 001
Revises: None
Create Date: 2024-03-01 00:00:00.000000+00:00

What:  Initial schema for the music journal.
How:   Portable column types (SQLite and PostgreSQL). Encrypted fields are
       TEXT holding "hex(iv):hex(ciphertext)" blobs.

Rollback: downgrade() drops all three tables (destructive, all data lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(255), nullable=False, comment="Spotify user id"),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "tracks",
        sa.Column("spotify_track_id", sa.String(255), nullable=False),
        sa.Column("track_title", sa.String(512), nullable=False),
        sa.Column("artist", sa.String(512), nullable=False),
        sa.Column("album", sa.String(512), nullable=False),
        sa.PrimaryKeyConstraint("spotify_track_id"),
    )

    op.create_table(
        "journal_entries",
        # Insertion sequence; default order of entry reads
        sa.Column("seq", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entry_id", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("track_id", sa.String(255), nullable=False),
        # Encrypted columns hold "iv:ciphertext" blobs
        sa.Column("journal_cover", sa.Text(), nullable=True),
        sa.Column("entry_title", sa.Text(), nullable=False),
        sa.Column("entry_text", sa.Text(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("seq"),
        sa.UniqueConstraint("entry_id", name="uq_journal_entries_entry_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"]),
        sa.ForeignKeyConstraint(["track_id"], ["tracks.spotify_track_id"]),
    )

    # Serves both "entries for a track" and "all entries for a user"
    op.create_index(
        "idx_journal_entries_user_track",
        "journal_entries",
        ["user_id", "track_id"],
    )


def downgrade() -> None:
    """Drop all tables, children first."""
    op.drop_index("idx_journal_entries_user_track", table_name="journal_entries")
    op.drop_table("journal_entries")
    op.drop_table("tracks")
    op.drop_table("users")
