"""
Music Journal Backend — Test Configuration (conftest.py)
=========================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   The store is exercised against a real SQLite file (aiosqlite), so
       constraint, foreign-key and ciphertext-at-rest behavior is the real
       thing rather than a mock's idea of it.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── key:            32-byte field encryption key
    ├── database:       connected Database on a temp SQLite file, tables created
    ├── store:          JournalStore over `database`
    ├── alice / bob:    users already inserted
    ├── track:          a track already inserted
    ├── app:            FastAPI app with get_store / get_current_user overridden
    └── test_client:    HTTPX AsyncClient for API endpoint testing
"""

import os

# Override settings for testing BEFORE any musicjournal imports.
# `settings` and the tenacity decorator read these at import time.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["ENCRYPTION_KEY"] = "00112233445566778899aabbccddeeff" * 2
os.environ["RETRY_MAX_ATTEMPTS"] = "2"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "1"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from musicjournal.crypto import load_key
from musicjournal.database import Database
from musicjournal.dependencies import get_current_user, get_store
from musicjournal.schemas.journal import TrackCreate, UserCreate, UserResponse
from musicjournal.services.journal_store import JournalStore


# ══════════════════════════════════════════════════════════════════════════
# Storage Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def key() -> bytes:
    return load_key(os.environ["ENCRYPTION_KEY"])


@pytest_asyncio.fixture
async def database(tmp_path):
    """
    A connected Database on a throwaway SQLite file.

    A file (not :memory:) so every pooled connection sees the same tables.
    """
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'journal.db'}")
    await db.connect()
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def store(database, key) -> JournalStore:
    return JournalStore(database, key)


@pytest_asyncio.fixture
async def alice(store) -> UserResponse:
    user = UserCreate(user_id="alice", username="Alice", email="alice@example.com")
    await store.add_user(user)
    return UserResponse(**user.model_dump())


@pytest_asyncio.fixture
async def bob(store) -> UserResponse:
    user = UserCreate(user_id="bob", username="Bob", email="bob@example.com")
    await store.add_user(user)
    return UserResponse(**user.model_dump())


@pytest_asyncio.fixture
async def track(store) -> TrackCreate:
    t = TrackCreate(
        spotify_track_id="4uLU6hMCjMI75M1A2tKUQC",
        track_title="Never Gonna Give You Up",
        artist="Rick Astley",
        album="Whenever You Need Somebody",
    )
    await store.add_track(t)
    return t


# ══════════════════════════════════════════════════════════════════════════
# API Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app(store, alice):
    """
    A fresh app whose routes talk to the test store as `alice`.

    The lifespan does not run under ASGITransport, so nothing here touches
    the configured DATABASE_URL or Spotify. Switch users with:

        app.dependency_overrides[get_current_user] = lambda: bob
    """
    from musicjournal.main import create_app

    application = create_app()
    application.dependency_overrides[get_store] = lambda: store
    application.dependency_overrides[get_current_user] = lambda: alice
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
