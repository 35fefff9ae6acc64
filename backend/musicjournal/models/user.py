"""
Music Journal Backend — User SQLAlchemy Model
===============================================

What:  ORM model for the `users` table.
Why:   Every journal entry belongs to exactly one user; the FK from
       journal_entries.user_id points here.
Who:   Written only by IdentityService (via JournalStore.add_user) on first login.

Table Design Rationale:
    - user_id is the Spotify user id, not a generated key. The auth layer
      resolves an access token to that id, so no mapping table is needed.
    - email is UNIQUE: identity reconciliation keys on it, and the
      constraint is what rejects the loser of a concurrent first login.
    - No timestamps or update path: a user row is immutable once created.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from musicjournal.database import Base


class User(Base):
    """A Spotify account that has logged in at least once."""

    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Spotify user id",
    )

    username: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Spotify display name at first login",
    )

    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        comment="Spotify account email; unique across users",
    )

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )

    def __repr__(self) -> str:
        return f"<User(user_id='{self.user_id}', username='{self.username}')>"
