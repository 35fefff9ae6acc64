"""
Music Journal Backend — Track SQLAlchemy Model
================================================

What:  ORM model for the `tracks` table.
Why:   Journal entries reference a track; the row is created lazily the
       first time a user writes about it.
How:   Inserts use ON CONFLICT DO NOTHING, so adding a known track is a no-op.
       Track metadata is public Spotify data and is stored in plaintext.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from musicjournal.database import Base


class Track(Base):
    """A Spotify track. Immutable once created."""

    __tablename__ = "tracks"

    spotify_track_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Spotify track id",
    )

    track_title: Mapped[str] = mapped_column(String(512), nullable=False)
    artist: Mapped[str] = mapped_column(String(512), nullable=False)
    album: Mapped[str] = mapped_column(String(512), nullable=False)

    def __repr__(self) -> str:
        return f"<Track(spotify_track_id='{self.spotify_track_id}', title='{self.track_title}')>"
