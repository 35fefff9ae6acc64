"""
Music Journal Backend — Journal Store (Record Store)
=====================================================

What:  All reads and writes of users, tracks, and journal entries.
Why:   Single owner of persisted state. Nothing else in the application
       builds SQL, so the ownership predicate and the encryption boundary
       live in exactly one place.
How:   Async SQLAlchemy Core statements over the owned Database handle.
       One statement per operation, each in its own committed session.
       Sensitive fields pass through musicjournal.crypto on the way in
       and on the way out.
Who:   Called by IdentityService and the route handlers.

Encryption boundary:
    journal_cover, entry_title, entry_text, image_url
        write: plaintext ──encrypt──▶ "iv:ciphertext"  (None stays NULL)
        read:  "iv:ciphertext" ──decrypt──▶ plaintext  (NULL stays None)
    Users and tracks are stored in plaintext.

Ownership scoping:
    Every entry query takes the caller's user_id and puts it in the WHERE
    clause next to entry_id / track_id. An entry_id alone never selects,
    updates, or deletes a row.

Error translation:
    IntegrityError (unique)       → DuplicateEmailError / DuplicateUserError /
                                    DuplicateEntryError
    IntegrityError (foreign key)  → ForeignKeyError
    zero rows on update/delete    → JournalEntryNotFoundError
    other SQLAlchemyError         → DatabaseError
    bad ciphertext on read        → DecryptionError
    Nothing is retried.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Insert, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from musicjournal.crypto import decrypt, decrypt_optional, encrypt, encrypt_optional
from musicjournal.database import Database
from musicjournal.exceptions import (
    ConstraintViolationError,
    DatabaseError,
    DecryptionError,
    DuplicateEmailError,
    DuplicateEntryError,
    DuplicateUserError,
    ForeignKeyError,
    JournalEntryNotFoundError,
    ValidationError,
)
from musicjournal.models.journal_entry import JournalEntry
from musicjournal.models.track import Track
from musicjournal.models.user import User
from musicjournal.schemas.journal import (
    PATCHABLE_FIELDS,
    JournalEntryCreate,
    JournalEntryPatch,
    JournalEntryResponse,
    TrackCreate,
    TrackResponse,
    UserCreate,
    UserResponse,
)

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

def _engine_message(exc: IntegrityError) -> str:
    """The driver's own message, e.g. 'UNIQUE constraint failed: users.email'."""
    return str(exc.orig) if exc.orig is not None else str(exc)


def _is_unique_violation(exc: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed: ..."
    # PostgreSQL: "duplicate key value violates unique constraint ..."
    message = _engine_message(exc).lower()
    return "unique" in message or "duplicate key" in message


def _is_foreign_key_violation(exc: IntegrityError) -> bool:
    return "foreign key" in _engine_message(exc).lower()


def _to_utc(value: Optional[datetime]) -> datetime:
    """Normalize a caller-supplied timestamp to aware UTC; None means now."""
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_storage(value: datetime) -> datetime:
    # SQLite returns naive datetimes; everything written was UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ══════════════════════════════════════════════════════════════════════════
# Store
# ══════════════════════════════════════════════════════════════════════════

class JournalStore:
    """
    Persistence API for the music journal.

    Constructed once at startup with the owned Database handle and the
    32-byte field encryption key (see crypto.load_key). Holds no other
    state, so concurrent requests can share one instance.
    """

    def __init__(self, db: Database, key: bytes):
        self.db = db
        self._key = key

    # ── Users ─────────────────────────────────────────────────────────────

    async def add_user(self, user: UserCreate) -> str:
        """
        Insert a user row.

        Returns:
            The new user's id.

        Raises:
            DuplicateEmailError: email already registered.
            DuplicateUserError: user_id already registered.
            DatabaseError: any other storage failure.
        """
        stmt = insert(User).values(
            user_id=user.user_id,
            username=user.username,
            email=user.email,
        )
        try:
            async with self.db.session() as session:
                await session.execute(stmt)
        except IntegrityError as e:
            detail = _engine_message(e)
            logger.error("Database error adding user %s: %s", user.user_id, detail)
            if _is_unique_violation(e) and "email" in detail.lower():
                raise DuplicateEmailError(detail=detail) from e
            if _is_unique_violation(e):
                raise DuplicateUserError(detail=detail) from e
            raise ConstraintViolationError(detail=detail) from e
        except SQLAlchemyError as e:
            raise self._database_error("add_user", e, user_id=user.user_id) from e

        logger.info("A new user has been added with ID: %s", user.user_id)
        return user.user_id

    async def get_user_by_external_id(self, user_id: str) -> Optional[UserResponse]:
        """Point lookup by Spotify id. A miss returns None, not an error."""
        try:
            async with self.db.session() as session:
                result = await session.execute(select(User).where(User.user_id == user_id))
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._database_error("get_user_by_external_id", e, user_id=user_id) from e

        if row is None:
            return None
        return UserResponse.model_validate(row)

    async def check_user_exists(self, email: str) -> bool:
        """Existence predicate on the unique email column."""
        stmt = select(func.count()).select_from(User).where(User.email == email)
        try:
            async with self.db.session() as session:
                count = (await session.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            raise self._database_error("check_user_exists", e) from e

        logger.debug("User looked up by email: exists=%s", count > 0)
        return count > 0

    async def count_users(self) -> int:
        try:
            async with self.db.session() as session:
                return (await session.execute(select(func.count()).select_from(User))).scalar_one()
        except SQLAlchemyError as e:
            raise self._database_error("count_users", e) from e

    # ── Tracks ────────────────────────────────────────────────────────────

    async def add_track(self, track: TrackCreate) -> str:
        """
        Insert a track, or do nothing if the id is already known.

        The existing row is never modified; both calls return the same id.
        """
        values = track.model_dump()
        stmt = self._insert_ignore_track(values)
        try:
            async with self.db.session() as session:
                await session.execute(stmt)
        except IntegrityError as e:
            # Only reached on dialects without ON CONFLICT support,
            # where a primary-key clash is the "already exists" branch.
            if not _is_unique_violation(e):
                raise ConstraintViolationError(detail=_engine_message(e)) from e
        except SQLAlchemyError as e:
            raise self._database_error(
                "add_track", e, spotify_track_id=track.spotify_track_id
            ) from e

        logger.info(
            "A track has been added (or already existed) with ID: %s",
            track.spotify_track_id,
        )
        return track.spotify_track_id

    async def get_track(self, spotify_track_id: str) -> Optional[TrackResponse]:
        try:
            async with self.db.session() as session:
                result = await session.execute(
                    select(Track).where(Track.spotify_track_id == spotify_track_id)
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._database_error(
                "get_track", e, spotify_track_id=spotify_track_id
            ) from e

        if row is None:
            return None
        return TrackResponse.model_validate(row)

    def _insert_ignore_track(self, values: Dict[str, Any]) -> Insert:
        dialect = self.db.dialect_name
        if dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as dialect_insert
        elif dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as dialect_insert
        else:
            return insert(Track).values(**values)
        return (
            dialect_insert(Track)
            .values(**values)
            .on_conflict_do_nothing(index_elements=[Track.spotify_track_id])
        )

    # ── Journal Entries: Create ───────────────────────────────────────────

    async def add_journal_entry(self, entry: JournalEntryCreate) -> str:
        """
        Encrypt the sensitive fields and insert the entry.

        created_at and updated_at are both set to entry.created_at
        (current UTC time when omitted).

        Raises:
            DuplicateEntryError: entry_id already exists.
            ForeignKeyError: user_id or track_id does not exist.
            DatabaseError: any other storage failure.
        """
        timestamp = _to_utc(entry.created_at)
        stmt = insert(JournalEntry).values(
            entry_id=entry.entry_id,
            user_id=entry.user_id,
            track_id=entry.track_id,
            journal_cover=encrypt_optional(entry.journal_cover, self._key),
            entry_title=encrypt(entry.entry_title, self._key),
            entry_text=encrypt(entry.entry_text, self._key),
            image_url=encrypt_optional(entry.image_url, self._key),
            created_at=timestamp,
            updated_at=timestamp,
        )
        try:
            async with self.db.session() as session:
                await session.execute(stmt)
        except IntegrityError as e:
            detail = _engine_message(e)
            logger.error("Database error adding journal entry %s: %s", entry.entry_id, detail)
            context = {"entry_id": entry.entry_id}
            if _is_foreign_key_violation(e):
                raise ForeignKeyError(detail=detail, context=context) from e
            if _is_unique_violation(e):
                raise DuplicateEntryError(detail=detail, context=context) from e
            raise ConstraintViolationError(detail=detail, context=context) from e
        except SQLAlchemyError as e:
            raise self._database_error("add_journal_entry", e, entry_id=entry.entry_id) from e

        logger.info("A journal entry has been added with ID: %s", entry.entry_id)
        return entry.entry_id

    # ── Journal Entries: Read ─────────────────────────────────────────────

    async def get_journal_entries_by_track(
        self, track_id: str, user_id: str
    ) -> List[JournalEntryResponse]:
        """
        Entries the user wrote about one track, decrypted, in insertion order.

        Unknown track or user → empty list.
        """
        stmt = (
            select(JournalEntry)
            .where(JournalEntry.track_id == track_id, JournalEntry.user_id == user_id)
            .order_by(JournalEntry.seq)
        )
        rows = await self._fetch_entries("get_journal_entries_by_track", stmt)
        logger.info("Journal entries retrieved for track ID: %s (%d)", track_id, len(rows))
        return [self._decrypt_row(row) for row in rows]

    async def get_all_journal_entries(
        self, user_id: str, newest_first: bool = False
    ) -> List[JournalEntryResponse]:
        """
        All of a user's entries, decrypted, in insertion order.

        newest_first reverses it. created_at is not used for ordering;
        a backdated entry still sorts where it was added.
        """
        order = JournalEntry.seq.desc() if newest_first else JournalEntry.seq.asc()
        stmt = select(JournalEntry).where(JournalEntry.user_id == user_id).order_by(order)
        rows = await self._fetch_entries("get_all_journal_entries", stmt)
        logger.info("Journal entries retrieved for user ID: %s (%d)", user_id, len(rows))
        return [self._decrypt_row(row) for row in rows]

    async def _fetch_entries(self, operation: str, stmt) -> List[JournalEntry]:
        try:
            async with self.db.session() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._database_error(operation, e) from e

    def _decrypt_row(self, row: JournalEntry) -> JournalEntryResponse:
        try:
            return JournalEntryResponse(
                entry_id=row.entry_id,
                user_id=row.user_id,
                track_id=row.track_id,
                journal_cover=decrypt_optional(row.journal_cover, self._key),
                entry_title=decrypt(row.entry_title, self._key),
                entry_text=decrypt(row.entry_text, self._key),
                image_url=decrypt_optional(row.image_url, self._key),
                created_at=_from_storage(row.created_at),
                updated_at=_from_storage(row.updated_at),
            )
        except DecryptionError as e:
            e.context["entry_id"] = row.entry_id
            logger.error("Could not decrypt journal entry %s: %s", row.entry_id, e.message)
            raise

    # ── Journal Entries: Update ───────────────────────────────────────────

    def build_change_set(
        self, patch: JournalEntryPatch, updated_at: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Column → stored value for a sparse update.

        Each field present in the patch contributes one encrypted value
        (or NULL for a cleared optional field). updated_at is always added.

        Raises:
            ValidationError: the patch names none of the patchable fields.
        """
        present = patch.present_fields()
        if not present:
            raise ValidationError(
                message=(
                    "Provide at least one of: " + ", ".join(PATCHABLE_FIELDS)
                ),
            )

        changes: Dict[str, Any] = {}
        for name, value in present.items():
            changes[name] = encrypt_optional(value, self._key)
        changes["updated_at"] = _to_utc(updated_at)
        return changes

    async def update_journal_entry(
        self,
        entry_id: str,
        user_id: str,
        patch: JournalEntryPatch,
        updated_at: Optional[datetime] = None,
    ) -> str:
        """
        Apply a sparse update to an entry owned by user_id.

        Fields absent from the patch keep their stored ciphertext.

        Raises:
            ValidationError: empty patch.
            JournalEntryNotFoundError: no row matches (entry_id, user_id).
        """
        changes = self.build_change_set(patch, updated_at)
        stmt = (
            update(JournalEntry)
            .where(JournalEntry.entry_id == entry_id, JournalEntry.user_id == user_id)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.db.session() as session:
                result = await session.execute(stmt)
                affected = result.rowcount
        except IntegrityError as e:
            raise ConstraintViolationError(
                detail=_engine_message(e), context={"entry_id": entry_id}
            ) from e
        except SQLAlchemyError as e:
            raise self._database_error("update_journal_entry", e, entry_id=entry_id) from e

        if affected == 0:
            logger.info("No journal entry found with ID %s for this user.", entry_id)
            raise JournalEntryNotFoundError(entry_id=entry_id)

        logger.info(
            "A journal entry has been updated with ID: %s (fields: %s)",
            entry_id,
            ", ".join(name for name in changes if name != "updated_at"),
        )
        return entry_id

    # ── Journal Entries: Delete ───────────────────────────────────────────

    async def delete_journal_entry(self, entry_id: str, user_id: str) -> None:
        """
        Delete an entry owned by user_id.

        Raises:
            JournalEntryNotFoundError: no row matches (entry_id, user_id).
        """
        stmt = (
            delete(JournalEntry)
            .where(JournalEntry.entry_id == entry_id, JournalEntry.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.db.session() as session:
                result = await session.execute(stmt)
                affected = result.rowcount
        except SQLAlchemyError as e:
            raise self._database_error("delete_journal_entry", e, entry_id=entry_id) from e

        if affected == 0:
            logger.info("No journal entry found with ID %s for this user.", entry_id)
            raise JournalEntryNotFoundError(entry_id=entry_id)

        logger.info("A journal entry has been deleted with ID: %s", entry_id)

    # ── Errors ────────────────────────────────────────────────────────────

    @staticmethod
    def _database_error(operation: str, exc: SQLAlchemyError, **context: Any) -> DatabaseError:
        logger.error("Database error in %s: %s", operation, str(exc), exc_info=True)
        return DatabaseError(
            context={"operation": operation, "error_type": type(exc).__name__, **context},
        )
