"""Database base and session setup."""
from datetime import datetime, timezone

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

import config


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite stores datetimes without tz)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine. SQLite connections get foreign keys enabled."""
    eng = create_async_engine(url, echo=False, **kwargs)
    if url.startswith("sqlite"):
        @event.listens_for(eng.sync_engine, "connect")
        def _enable_sqlite_fks(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    return eng


def make_session_factory(eng: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        eng,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = create_engine(config.DATABASE_URL)

async_session_factory = make_session_factory(engine)


async def init_db(eng: AsyncEngine | None = None) -> None:
    """Create all tables."""
    # Import models so they register on Base.metadata
    import bot.models  # noqa: F401

    async with (eng or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
