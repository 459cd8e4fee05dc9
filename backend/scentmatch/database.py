"""
ScentMatch Backend — Database Session Management
==================================================

What:  Async SQLAlchemy engine wrapper, declarative base, and FastAPI dependency.
Why:   Centralizes all database connection logic in one place.
How:   A `Database` object owns one async engine and its session factory.
       The app factory constructs it (or receives one from tests), stores it on
       `app.state.database`, and the lifespan handler disposes it on shutdown.
Who:   Route dependencies obtain per-request sessions through `get_db_session`.
When:  One Database per process; one AsyncSession per request.

Architecture Decision:
    There is no module-level engine. Whoever starts the process (uvicorn via
    `create_app()`, the seed script, or a test fixture) decides which database
    to open and is responsible for closing it.

Connection Pooling Strategy (PostgreSQL):
    pool_size / max_overflow come from settings.
    pool_pre_ping:     Validates connections before use (catches stale connections)
    pool_recycle=3600: Recycles connections every hour
"""

import logging
from typing import Any, AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from scentmatch.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class so that they share a single metadata
    object (used by Alembic and by `Database.create_all` in tests).
    """
    pass


class Database:
    """
    Owns an async engine and the session factory bound to it.

    Usage:
        database = Database.from_settings(settings)
        async with database.session() as session:
            ...
        await database.dispose()
    """

    def __init__(self, url: str, **engine_kwargs: Any):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)

        if self.engine.dialect.name == "sqlite":
            # SQLite ignores ON DELETE CASCADE unless foreign keys are enabled per connection
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        # expire_on_commit=False: attributes stay readable after the auth flow commits
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Build the process database from configuration."""
        kwargs: dict = {"echo": settings.log_level == "DEBUG"}
        if not settings.database_url.startswith("sqlite"):
            kwargs.update(
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_pre_ping=settings.db_pool_pre_ping,
                pool_recycle=3600,
            )
        return cls(settings.database_url, **kwargs)

    def session(self) -> AsyncSession:
        """Open a new session; use as `async with database.session() as s:`."""
        return self.session_factory()

    async def create_all(self) -> None:
        """
        Create every table registered on Base.metadata.

        Used by tests and local SQLite setups. Deployed databases are managed
        by Alembic migrations instead.
        """
        # Importing the models package registers all tables with Base.metadata
        import scentmatch.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """Lightweight connectivity check used by the health endpoint."""
        from sqlalchemy import text

        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database ping failed: %s", str(e))
            return False

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_database(request: Request) -> Database:
    """FastAPI dependency returning the Database owned by the running app."""
    database: Optional[Database] = getattr(request.app.state, "database", None)
    if database is None:
        raise RuntimeError("Database has not been initialized for this application")
    return database


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the app's Database
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back the transaction
        5. Always: closes the session (returns connection to pool)

    Services that must persist state before the response is produced (the
    auth flow) commit explicitly; the commit here then has nothing to flush.
    """
    database = get_database(request)
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
