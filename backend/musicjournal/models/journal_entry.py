"""
Music Journal Backend — JournalEntry SQLAlchemy Model
=======================================================

What:  ORM model for the `journal_entries` table.
Why:   The one table holding user-authored content.
Who:   Read and written exclusively by JournalStore.

Table Design Rationale:
    - seq: INTEGER autoincrement primary key, internal only. It records
      insertion order, which is the default order of every entry read;
      created_at is caller-supplied and may be backdated.
    - entry_id: caller-supplied token (uuid4 from the route layer), UNIQUE
      and NOT NULL. It is the only id that leaves the store.
    - user_id / track_id: NOT NULL foreign keys. An entry for an unknown
      user or track is rejected by the database, not by application code.
    - journal_cover, entry_title, entry_text, image_url: TEXT holding
      "hex(iv):hex(ciphertext)" blobs from musicjournal.crypto. The columns
      never see plaintext. image_url and journal_cover are nullable; NULL
      means "not set" and is stored as NULL, not as an encrypted marker.
    - created_at: set once on insert. updated_at: set on every update.

Query Patterns:
    - Entries for a track:  WHERE track_id = :t AND user_id = :u
    - All entries for user: WHERE user_id = :u ORDER BY seq
    - Update / delete:      WHERE entry_id = :e AND user_id = :u
    The (user_id, track_id) index serves the first two.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from musicjournal.database import Base


class JournalEntry(Base):
    """
    A user's journal entry about a track.

    Lifecycle:
        1. Created by POST /api/journal (created_at == updated_at)
        2. Updated 0..n times with any subset of the encrypted fields
        3. Deleted by its owner
    """

    __tablename__ = "journal_entries"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    entry_id: Mapped[str] = mapped_column(String(255), nullable=False)

    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.user_id"),
        nullable=False,
    )

    track_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("tracks.spotify_track_id"),
        nullable=False,
    )

    # ── Encrypted Fields ──────────────────────────────────────────────────
    journal_cover: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Encrypted cover image reference",
    )
    entry_title: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Encrypted title",
    )
    entry_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Encrypted body",
    )
    image_url: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Encrypted image URL; NULL when the entry has no image",
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    # Supplied by the caller; SQLite hands them back naive, the store
    # re-attaches UTC on read.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("entry_id", name="uq_journal_entries_entry_id"),
        Index("idx_journal_entries_user_track", "user_id", "track_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<JournalEntry(entry_id='{self.entry_id}', user_id='{self.user_id}', "
            f"track_id='{self.track_id}')>"
        )
