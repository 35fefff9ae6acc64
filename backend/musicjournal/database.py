"""
Music Journal Backend — Database Handle
=========================================

What:  The owned async SQLAlchemy engine + session factory, and the ORM Base.
Why:   One handle is opened at startup and passed to the JournalStore. Its
       lifetime is explicit (connect/dispose) instead of living in a
       module-global engine created at import time.
How:   Database wraps create_async_engine() and async_sessionmaker().
       On SQLite, every new DBAPI connection gets PRAGMA foreign_keys=ON;
       without it SQLite accepts entries pointing at unknown users/tracks.
Who:   Created by the app lifespan (main.py), by Alembic, and by test fixtures.

Connection strategy:
    SQLite (default, aiosqlite driver):
        Local file, no pool tuning. FK enforcement switched on per connection.
    PostgreSQL (asyncpg driver):
        Pooled with pool_size / max_overflow / pre_ping from settings.
        FKs are enforced natively.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from musicjournal.config import settings
from musicjournal.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares one metadata object between the models, Alembic, and
    Database.create_all() used by the tests.
    """
    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    """Connect-event hook: SQLite ships with FK enforcement off."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL with backend-appropriate options.

    SQLite gets the foreign-key hook; anything else gets the pool settings.
    """
    kwargs: Dict[str, Any] = {"echo": echo}
    is_sqlite = database_url.startswith("sqlite")
    if not is_sqlite:
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )

    engine = create_async_engine(database_url, **kwargs)

    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    return engine


class Database:
    """
    Lifetime-scoped storage handle.

    Usage:
        db = Database(settings.database_url)
        await db.connect()
        ...
        await db.dispose()

    or:
        async with Database(url) as db:
            store = JournalStore(db, key)

    Sessions come from `session()`; each store operation opens one,
    runs a single statement, and commits.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StorageUnavailableError(message="Database handle is not connected")
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    async def connect(self) -> "Database":
        """
        Create the engine and verify the database answers a trivial query.

        Raises:
            StorageUnavailableError: the database cannot be opened or reached.
        """
        if self._engine is not None:
            return self

        engine = build_engine(self.database_url, echo=self.echo)
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            await engine.dispose()
            logger.error("Could not open database: %s", type(e).__name__)
            raise StorageUnavailableError(
                context={"error_type": type(e).__name__},
            ) from e

        self._engine = engine
        # expire_on_commit=False: rows stay readable after the session commits
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("Connected to the %s database.", engine.dialect.name)
        return self

    async def create_all(self) -> None:
        """Create any missing tables from Base.metadata (used by tests and first run)."""
        # Imported for their side effect of registering tables on Base.metadata
        from musicjournal.models import journal_entry, track, user  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """Lightweight connectivity probe for the health endpoint."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError, StorageUnavailableError) as e:
            logger.warning("Database ping failed: %s", str(e))
            return False

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session that commits on success and rolls back on error.

        Same contract as a per-request session: partial writes never persist.
        """
        if self._session_factory is None:
            raise StorageUnavailableError(message="Database handle is not connected")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def dispose(self) -> None:
        """Close all pooled connections. Safe to call more than once."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Closed the database connection.")

    async def __aenter__(self) -> "Database":
        return await self.connect()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()
