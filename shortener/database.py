"""Database engine and session management for the short link service.

This module provides SQLAlchemy async engine setup and session handling.
The engine is built once at process start and handed to whoever needs it,
instead of living in a module-level global.

Flow Diagram — Database Operations
=================================
::
    ┌─────────────┐
    │  lifespan() │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Database(   │
    │ settings)   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ session()    │
    │ per request │
    │ or click    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Auto-close   │
    │ (async with) │
    └─────────────┘

How to Use
===========
**Step 1 — Build on startup**::
    database = Database(settings)
    await database.create_all()

**Step 2 — Open a session**::
    async with database.session() as session:
        result = await session.execute(select(Link))

**Step 3 — Cleanup on shutdown**::
    await database.dispose()

Key Behaviours
===============
- Sessions never expire attributes on commit, so records stay readable
  after the transaction ends.
- Connection pooling options only apply to server databases; SQLite
  (used by the test suite) keeps SQLAlchemy's default pool and takes its
  write lock at BEGIN.

Classes:
    Base:  SQLAlchemy declarative base for all models.
    Database:  Owns the async engine and the session factory.
"""

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortener.config import Settings

__all__ = ["Base", "Database"]


class Base(DeclarativeBase):
    pass


def _take_write_lock_on_begin(engine: AsyncEngine) -> None:
    # SQLite upgrades a read lock to a write lock mid-transaction and fails
    # with "database is locked" when two writers do it at once. Taking the
    # write lock at BEGIN makes concurrent transactions queue instead.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    def __init__(self, settings: Settings) -> None:
        engine_options: dict = {"echo": False}
        if not settings.DATABASE_URL.startswith("sqlite"):
            engine_options.update(
                pool_size=settings.DATABASE_POOL_SIZE,
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
                pool_pre_ping=True,
            )
        self.engine: AsyncEngine = create_async_engine(settings.DATABASE_URL, **engine_options)
        if self.engine.dialect.name == "sqlite":
            _take_write_lock_on_begin(self.engine)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        await self.engine.dispose()
