"""Async engine and session factory for the lead automation tables.

``engine`` and ``AsyncSessionLocal`` are module globals so request
dependencies and scripts share one pool; tests swap both for an engine
on a throwaway SQLite file.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import get_settings


def create_db_engine(url: Optional[str] = None) -> AsyncEngine:
    """Engine for ``url`` (defaults to DATABASE_URL).

    An in-memory SQLite database lives only as long as its connection, so
    it is pinned to a single shared one.
    """
    settings = get_settings()
    url = url or settings.DATABASE_URL
    options = {"echo": settings.SQLALCHEMY_ECHO}
    if url.startswith("sqlite"):
        if ":memory:" in url:
            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_pre_ping"] = True
    return create_async_engine(url, **options)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    # Rows stay readable after commit; routes serialize them afterwards.
    return async_sessionmaker(bind, expire_on_commit=False, autoflush=False)


engine = create_db_engine()
AsyncSessionLocal = create_session_factory(engine)


async def init_db() -> None:
    """Create any missing tables."""
    from db.base import Base
    import db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
