"""Async SQLAlchemy engine and session factory.

Production uses psycopg3 (``postgresql+psycopg://``).  SQLite URLs
(``sqlite+aiosqlite://``) are accepted for local development and tests.
"""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine


def create_engine(database_url: str, **kwargs: object) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    PostgreSQL gets a small pool with pre-ping and hourly recycling:

    - **pool_size=5** / **max_overflow=10**: baseline and burst capacity.
    - **pool_pre_ping=True**: survive server restarts and idle disconnects.
    - **pool_recycle=3600**: avoid stale TCP connections behind proxies.

    SQLite ignores pool sizing, so only ``echo`` is defaulted there.  All
    defaults can be overridden via *kwargs*.
    """
    if database_url.startswith("sqlite"):
        defaults: dict[str, object] = {"echo": False}
    else:
        defaults = {
            "echo": False,
            "pool_size": 5,
            "max_overflow": 10,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        }
    defaults.update(kwargs)
    return create_async_engine(database_url, **defaults)  # type: ignore[arg-type]


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to *engine*.

    ``expire_on_commit=False`` keeps ORM rows readable after commit, which
    matters because rows are broadcast to sockets after the write lands.
    """
    return async_sessionmaker(engine, expire_on_commit=False)


async def commit_or_rollback(db: AsyncSession) -> None:
    """Commit *db*, rolling back before re-raising if the commit fails.

    After a failed commit the session is usable again, so a retried write
    can run on the same session.
    """
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise
