"""
Music Journal Backend — Identity Reconciliation
=================================================

What:  Makes sure a local user row exists for a Spotify-authenticated identity.
Why:   Journal entries need a users row to point at, and the first login is
       the only moment the backend sees the user's email and display name.
How:   Check by email; insert only when absent. Never inserts a second row
       for the same email.
Who:   Called by POST /auth/sync after the client finishes the OAuth flow.

Race window:
    check_user_exists() and add_user() are two statements, not one
    transaction. Two concurrent first logins can both see "absent"; the
    UNIQUE(email) constraint rejects the second insert and its
    DuplicateEmailError propagates to that caller. No retry.
"""

import logging

from musicjournal.schemas.journal import SpotifyProfile, UserCreate
from musicjournal.services.journal_store import JournalStore

logger = logging.getLogger(__name__)


class IdentityService:
    """Find-or-create of local users keyed by Spotify email."""

    def __init__(self, store: JournalStore):
        self.store = store

    async def reconcile(self, identity: SpotifyProfile) -> SpotifyProfile:
        """
        Ensure a users row exists for this identity.

        The identity is returned unchanged in both branches; the stored
        row is not re-read. Callers that need it use
        JournalStore.get_user_by_external_id().

        Raises:
            DatabaseError: the existence check failed (no insert attempted).
            DuplicateEmailError / DuplicateUserError: the insert lost a race
                or the Spotify id is already bound to another email.
        """
        exists = await self.store.check_user_exists(identity.email)

        if exists:
            logger.info("User %s already exists in the database.", identity.id)
            return identity

        # Spotify allows an empty display name; username is NOT NULL.
        username = identity.display_name or identity.id
        await self.store.add_user(
            UserCreate(
                user_id=identity.id,
                username=username,
                email=identity.email,
            )
        )
        logger.info("User %s added after Spotify authentication.", identity.id)
        return identity
