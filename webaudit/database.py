"""
WebAudit — Async SQLAlchemy engine and sessions.

Audit records are written from many runs at once, including runs detached
from their client, so SQLite gets a generous lock timeout and server
databases get a recycled connection pool.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from webaudit.config import settings

SQLITE_LOCK_TIMEOUT_SECS = 30


def engine_options(url: str) -> dict:
    """Driver-specific keyword arguments for ``create_async_engine``."""
    if url.startswith("sqlite"):
        return {"connect_args": {"timeout": SQLITE_LOCK_TIMEOUT_SECS}}
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }


def make_engine(url: str) -> AsyncEngine:
    return create_async_engine(url, echo=False, **engine_options(url))


engine = make_engine(settings.database_url)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """FastAPI dependency: one session per request."""
    async with async_session() as session:
        yield session


async def init_db() -> None:
    """Create the ``audits`` and ``user_profiles`` tables if missing."""
    import webaudit.models  # noqa: F401  (registers tables on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
