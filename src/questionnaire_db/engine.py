"""Connection pool for draft and submission storage.

``DatabasePersistence`` and the console runner draw sessions from
:func:`get_session_factory`.  The first call builds the pool from the
``DATABASE_URL`` and ``PG_*`` settings; :func:`dispose_engine` closes it so
the next call starts over.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from questionnaire_db.config import get_async_url, get_pool_settings
from questionnaire_db.models.base import Base

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        pool_size, max_overflow = get_pool_settings()
        _engine = create_async_engine(
            get_async_url(),
            echo=False,
            pool_size=pool_size,
            max_overflow=max_overflow,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded rows readable after commit."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def create_schema(engine: AsyncEngine | None = None) -> None:
    """Create the submissions table if it is missing."""
    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
