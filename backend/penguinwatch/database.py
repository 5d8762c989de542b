"""
PenguinWatch Backend - Database Handle & Session Management
=============================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI session dependency.
How:   A `Database` object owns one async engine and its session factory.
       create_app() builds it from Settings and stores it on `app.state.db`;
       the `get_db_session` dependency opens one session per request from the
       handle attached to the running application.
Who:   Route handlers receive sessions via Depends(get_db_session); services
       receive them as explicit arguments.

There is no module-level engine: every application instance (and every test)
owns its own handle, so isolated databases never share connections.

Connection Pooling (PostgreSQL):
    pool_size=20:      Persistent connections for normal load
    max_overflow=10:   Temporary connections for traffic spikes
    pool_pre_ping:     Validates connections before use
    pool_recycle=3600: Recycles connections every hour
    SQLite URLs skip the pool arguments (SQLAlchemy picks its own pool).
"""

import logging
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from penguinwatch.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Registers models with a shared metadata object, which Alembic reads
    for migrations and Database.create_all() uses for bootstrapping.
    """
    pass


class Database:
    """
    Explicit database handle: engine + session factory.

    Lifecycle:
        1. Built by create_app() (engine creation does not connect)
        2. Sessions opened per request via session()
        3. dispose() on application shutdown closes pooled connections
    """

    def __init__(self, settings: Settings):
        engine_kwargs = {
            # SQL echo only when debugging; it is very noisy otherwise
            "echo": settings.log_level == "DEBUG",
        }
        if not settings.is_sqlite:
            engine_kwargs.update(
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_pre_ping=settings.db_pool_pre_ping,
                pool_recycle=3600,
            )

        self.engine: AsyncEngine = create_async_engine(settings.database_url, **engine_kwargs)

        # expire_on_commit=False keeps attributes readable after commit,
        # outside of a lazy-load context
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def session(self) -> AsyncSession:
        """Open a new session; use as `async with db.session() as session:`."""
        return self.session_factory()

    async def create_all(self) -> None:
        """Create every table registered on Base.metadata (no-op for existing tables)."""
        # Model modules register themselves on import
        from penguinwatch.models import observation  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured")

    async def ping(self) -> bool:
        """Run SELECT 1; True when the database answered."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database ping failed: %s", str(e))
            return False

    async def dispose(self) -> None:
        """Close all connections in the pool."""
        await self.engine.dispose()


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Opens a session from the Database attached to the application
        2. Yields it to the route handler
        3. On success: commits anything the handler left pending
        4. On error: rolls back and re-raises for the global error handler
        5. Always: closes the session (returns connection to pool)

    Services commit their own writes explicitly, so file cleanup that must
    follow a committed write can happen inside the request.
    """
    db: Database = request.app.state.db
    async with db.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
