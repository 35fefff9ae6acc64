"""
Music Journal Backend — Journal Store Tests
=============================================

What:  Tests for JournalStore against a real SQLite database.
How:   Each test gets a fresh temp database (see conftest.database).
       Raw SQL is used where a test must look at what is actually stored.

What we test:
    ✅ Unique email, count unchanged after a rejected insert
    ✅ Idempotent track insert
    ✅ Foreign keys enforced, nothing inserted on failure
    ✅ Sensitive fields are ciphertext at rest; NULLs stay NULL
    ✅ Reads scoped to (track, user) and to user
    ✅ Sparse update touches only the sent fields, always bumps updated_at
    ✅ Update/delete by another user → JournalEntryNotFoundError
    ✅ Unreadable ciphertext → DecryptionError naming the entry
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from musicjournal.crypto import decrypt
from musicjournal.database import Database
from musicjournal.exceptions import (
    DecryptionError,
    DuplicateEmailError,
    DuplicateEntryError,
    DuplicateUserError,
    ForeignKeyError,
    JournalEntryNotFoundError,
    ValidationError,
)
from musicjournal.schemas.journal import (
    JournalEntryCreate,
    JournalEntryPatch,
    TrackCreate,
    UserCreate,
)
from musicjournal.services.journal_store import JournalStore

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_entry(entry_id="e1", user_id="alice", track_id="4uLU6hMCjMI75M1A2tKUQC", **overrides):
    data = {
        "entry_id": entry_id,
        "user_id": user_id,
        "track_id": track_id,
        "journal_cover": "cover.png",
        "entry_title": "First listen",
        "entry_text": "hello",
        "image_url": "https://img.example.com/1.jpg",
        "created_at": T0,
    }
    data.update(overrides)
    return JournalEntryCreate(**data)


async def fetch_raw_entry(database, entry_id):
    async with database.engine.connect() as conn:
        result = await conn.execute(
            text(
                "SELECT journal_cover, entry_title, entry_text, image_url "
                "FROM journal_entries WHERE entry_id = :entry_id"
            ),
            {"entry_id": entry_id},
        )
        return result.one_or_none()


async def count_entries(database):
    async with database.engine.connect() as conn:
        return (await conn.execute(text("SELECT COUNT(*) FROM journal_entries"))).scalar_one()


class TestUsers:

    @pytest.mark.asyncio
    async def test_add_and_get_user(self, store):
        user_id = await store.add_user(
            UserCreate(user_id="u1", username="alice", email="a@x.com")
        )
        assert user_id == "u1"

        user = await store.get_user_by_external_id("u1")
        assert user.username == "alice"
        assert user.email == "a@x.com"

    @pytest.mark.asyncio
    async def test_get_unknown_user_returns_none(self, store):
        assert await store.get_user_by_external_id("nobody") is None

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected_and_count_unchanged(self, store, alice):
        before = await store.count_users()

        with pytest.raises(DuplicateEmailError):
            await store.add_user(
                UserCreate(user_id="someone-else", username="Imposter", email=alice.email)
            )

        assert await store.count_users() == before

    @pytest.mark.asyncio
    async def test_same_user_twice_rejected(self, store, alice):
        with pytest.raises(DuplicateUserError):
            await store.add_user(
                UserCreate(user_id=alice.user_id, username=alice.username, email=alice.email)
            )
        assert await store.count_users() == 1

    @pytest.mark.asyncio
    async def test_check_user_exists(self, store, alice):
        assert await store.check_user_exists(alice.email) is True
        assert await store.check_user_exists("nobody@example.com") is False


class TestTracks:

    @pytest.mark.asyncio
    async def test_add_track_is_idempotent(self, store, database, track):
        again = TrackCreate(
            spotify_track_id=track.spotify_track_id,
            track_title="Different Title",
            artist="Different Artist",
            album="Different Album",
        )
        assert await store.add_track(again) == track.spotify_track_id

        async with database.engine.connect() as conn:
            count = (
                await conn.execute(
                    text("SELECT COUNT(*) FROM tracks WHERE spotify_track_id = :id"),
                    {"id": track.spotify_track_id},
                )
            ).scalar_one()
        assert count == 1

        # The first insert wins; the existing row is not modified
        stored = await store.get_track(track.spotify_track_id)
        assert stored.track_title == track.track_title

    @pytest.mark.asyncio
    async def test_get_unknown_track_returns_none(self, store):
        assert await store.get_track("missing") is None


class TestAddJournalEntry:

    @pytest.mark.asyncio
    async def test_fields_are_encrypted_at_rest(self, store, database, key, alice, track):
        await store.add_journal_entry(make_entry())

        row = await fetch_raw_entry(database, "e1")
        assert row.entry_text != "hello"
        assert row.entry_title != "First listen"
        for blob in row:
            assert ":" in blob
        assert decrypt(row.entry_text, key) == "hello"
        assert decrypt(row.image_url, key) == "https://img.example.com/1.jpg"

    @pytest.mark.asyncio
    async def test_absent_optional_fields_stay_null(self, store, database, alice, track):
        await store.add_journal_entry(make_entry(journal_cover=None, image_url=None))

        row = await fetch_raw_entry(database, "e1")
        assert row.journal_cover is None
        assert row.image_url is None

        [entry] = await store.get_all_journal_entries("alice")
        assert entry.image_url is None
        assert entry.journal_cover is None

    @pytest.mark.asyncio
    async def test_empty_text_round_trips(self, store, alice, track):
        await store.add_journal_entry(make_entry(entry_text=""))
        [entry] = await store.get_all_journal_entries("alice")
        assert entry.entry_text == ""

    @pytest.mark.asyncio
    async def test_created_and_updated_at_match_on_insert(self, store, alice, track):
        await store.add_journal_entry(make_entry())
        [entry] = await store.get_all_journal_entries("alice")
        assert entry.created_at == T0
        assert entry.updated_at == T0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [{"user_id": "ghost"}, {"track_id": "no-such-track"}],
    )
    async def test_unknown_user_or_track_rejected(self, store, database, alice, track, overrides):
        with pytest.raises(ForeignKeyError):
            await store.add_journal_entry(make_entry(**overrides))
        assert await count_entries(database) == 0

    @pytest.mark.asyncio
    async def test_duplicate_entry_id_rejected(self, store, alice, track):
        await store.add_journal_entry(make_entry())
        with pytest.raises(DuplicateEntryError):
            await store.add_journal_entry(make_entry(entry_text="second"))


class TestQueries:

    @pytest.mark.asyncio
    async def test_by_track_scoped_to_user(self, store, alice, bob, track):
        other = TrackCreate(spotify_track_id="t2", track_title="B", artist="B", album="B")
        await store.add_track(other)

        await store.add_journal_entry(make_entry("a1"))
        await store.add_journal_entry(make_entry("a2", track_id="t2"))
        await store.add_journal_entry(make_entry("b1", user_id="bob"))

        entries = await store.get_journal_entries_by_track(track.spotify_track_id, "alice")
        assert [e.entry_id for e in entries] == ["a1"]

        entries = await store.get_journal_entries_by_track(track.spotify_track_id, "bob")
        assert [e.entry_id for e in entries] == ["b1"]

    @pytest.mark.asyncio
    async def test_unknown_track_or_user_gives_empty_list(self, store, alice, track):
        await store.add_journal_entry(make_entry())
        assert await store.get_journal_entries_by_track("unknown", "alice") == []
        assert await store.get_journal_entries_by_track(track.spotify_track_id, "unknown") == []
        assert await store.get_all_journal_entries("unknown") == []

    @pytest.mark.asyncio
    async def test_all_entries_ordering(self, store, alice, track):
        await store.add_journal_entry(make_entry("old", created_at=T0))
        await store.add_journal_entry(make_entry("new", created_at=T0 + timedelta(days=1)))

        oldest_first = await store.get_all_journal_entries("alice")
        assert [e.entry_id for e in oldest_first] == ["old", "new"]

        newest_first = await store.get_all_journal_entries("alice", newest_first=True)
        assert [e.entry_id for e in newest_first] == ["new", "old"]

    @pytest.mark.asyncio
    async def test_equal_timestamps_keep_insertion_order_across_tracks(self, store, alice):
        # Track ids sort opposite to insertion, so index order would flip them
        for track_id in ("zz", "aa"):
            await store.add_track(
                TrackCreate(spotify_track_id=track_id, track_title="T", artist="A", album="L")
            )
        await store.add_journal_entry(make_entry("first", track_id="zz", created_at=T0))
        await store.add_journal_entry(make_entry("second", track_id="aa", created_at=T0))

        entries = await store.get_all_journal_entries("alice")
        assert [e.entry_id for e in entries] == ["first", "second"]

        entries = await store.get_all_journal_entries("alice", newest_first=True)
        assert [e.entry_id for e in entries] == ["second", "first"]

    @pytest.mark.asyncio
    async def test_backdated_entry_sorts_where_it_was_added(self, store, alice, track):
        await store.add_journal_entry(make_entry("first", created_at=datetime(2024, 5, 1, tzinfo=timezone.utc)))
        await store.add_journal_entry(make_entry("second", created_at=datetime(2024, 3, 1, tzinfo=timezone.utc)))

        entries = await store.get_all_journal_entries("alice")
        assert [e.entry_id for e in entries] == ["first", "second"]

        entries = await store.get_journal_entries_by_track(track.spotify_track_id, "alice")
        assert [e.entry_id for e in entries] == ["first", "second"]


class TestUpdateJournalEntry:

    @pytest.mark.asyncio
    async def test_only_sent_fields_change(self, store, database, alice, track):
        await store.add_journal_entry(make_entry())
        before = await fetch_raw_entry(database, "e1")

        later = T0 + timedelta(hours=1)
        await store.update_journal_entry(
            "e1", "alice", JournalEntryPatch(image_url="https://img.example.com/2.jpg"), updated_at=later
        )

        after = await fetch_raw_entry(database, "e1")
        # Untouched columns keep their exact ciphertext
        assert after.entry_text == before.entry_text
        assert after.entry_title == before.entry_title
        assert after.journal_cover == before.journal_cover
        assert after.image_url != before.image_url

        [entry] = await store.get_all_journal_entries("alice")
        assert entry.entry_text == "hello"
        assert entry.image_url == "https://img.example.com/2.jpg"
        assert entry.created_at == T0
        assert entry.updated_at == later

    @pytest.mark.asyncio
    async def test_null_clears_optional_field(self, store, alice, track):
        await store.add_journal_entry(make_entry())
        await store.update_journal_entry("e1", "alice", JournalEntryPatch(image_url=None))

        [entry] = await store.get_all_journal_entries("alice")
        assert entry.image_url is None
        assert entry.journal_cover == "cover.png"

    @pytest.mark.asyncio
    async def test_updated_at_always_advances(self, store, alice, track):
        await store.add_journal_entry(make_entry())
        await store.update_journal_entry("e1", "alice", JournalEntryPatch(entry_text="hi"))

        [entry] = await store.get_all_journal_entries("alice")
        assert entry.updated_at > T0

    @pytest.mark.asyncio
    async def test_empty_patch_rejected(self, store, alice, track):
        await store.add_journal_entry(make_entry())
        with pytest.raises(ValidationError):
            await store.update_journal_entry("e1", "alice", JournalEntryPatch())

    @pytest.mark.asyncio
    async def test_other_users_entry_not_found(self, store, alice, bob, track):
        await store.add_journal_entry(make_entry())

        with pytest.raises(JournalEntryNotFoundError) as exc_info:
            await store.update_journal_entry("e1", "bob", JournalEntryPatch(entry_text="mine now"))
        assert exc_info.value.message == "No journal entry found with that ID"

        [entry] = await store.get_all_journal_entries("alice")
        assert entry.entry_text == "hello"

    @pytest.mark.asyncio
    async def test_unknown_entry_not_found(self, store, alice):
        with pytest.raises(JournalEntryNotFoundError):
            await store.update_journal_entry("nope", "alice", JournalEntryPatch(entry_text="x"))


class TestChangeSet:
    """build_change_set() is pure; the handle is never connected."""

    def test_contains_only_present_fields_plus_updated_at(self, key):
        store = JournalStore(Database("sqlite+aiosqlite://"), key)
        changes = store.build_change_set(
            JournalEntryPatch(entry_title="t", image_url=None), updated_at=T0
        )
        assert set(changes) == {"entry_title", "image_url", "updated_at"}
        assert decrypt(changes["entry_title"], key) == "t"
        assert changes["image_url"] is None
        assert changes["updated_at"] == T0

    def test_null_required_field_rejected_by_patch(self):
        with pytest.raises(ValueError):
            JournalEntryPatch(entry_title=None)


class TestDeleteJournalEntry:

    @pytest.mark.asyncio
    async def test_other_users_entry_not_deleted(self, store, database, alice, bob, track):
        await store.add_journal_entry(make_entry())

        with pytest.raises(JournalEntryNotFoundError):
            await store.delete_journal_entry("e1", "bob")
        assert await count_entries(database) == 1

    @pytest.mark.asyncio
    async def test_delete_twice(self, store, alice, track):
        await store.add_journal_entry(make_entry())
        await store.delete_journal_entry("e1", "alice")
        with pytest.raises(JournalEntryNotFoundError):
            await store.delete_journal_entry("e1", "alice")


class TestDecryptionErrors:

    @pytest.mark.asyncio
    async def test_corrupt_blob_reported_with_entry_id(self, store, database, alice, track):
        await store.add_journal_entry(make_entry())
        async with database.engine.begin() as conn:
            await conn.execute(
                text("UPDATE journal_entries SET entry_text = 'garbage' WHERE entry_id = 'e1'")
            )

        with pytest.raises(DecryptionError) as exc_info:
            await store.get_all_journal_entries("alice")
        assert exc_info.value.context["entry_id"] == "e1"


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, store):
        await store.add_user(UserCreate(user_id="u1", username="alice", email="a@x.com"))
        await store.add_track(
            TrackCreate(spotify_track_id="t1", track_title="Song", artist="Band", album="LP")
        )
        await store.add_journal_entry(
            JournalEntryCreate(
                entry_id="e1",
                user_id="u1",
                track_id="t1",
                entry_title="Title",
                entry_text="hello",
            )
        )

        [entry] = await store.get_all_journal_entries("u1")
        assert entry.entry_text == "hello"

        await store.update_journal_entry("e1", "u1", JournalEntryPatch(entry_text="hi"))
        [entry] = await store.get_all_journal_entries("u1")
        assert entry.entry_text == "hi"
        assert entry.entry_title == "Title"

        await store.delete_journal_entry("e1", "u1")
        assert await store.get_all_journal_entries("u1") == []

        with pytest.raises(JournalEntryNotFoundError):
            await store.delete_journal_entry("e1", "u1")
