"""Async SQLAlchemy engine and session factory for the survey store.

Every API request borrows one ``AsyncSession`` from this factory and holds
it for the whole request, including the model calls made while answering
or generating reports.  Those calls take seconds, so the pool is sized by
concurrent model calls rather than by query load; tune ``PG_POOL_SIZE`` and
``PG_MAX_OVERFLOW`` together with the server's worker count.

The engine is built on first use and shared by the process.
``dispose_engine()`` closes the pool when the server shuts down.
"""

import os

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from survey_db.config import get_async_url

_POOL_SIZE = int(os.getenv("PG_POOL_SIZE", "5"))
_MAX_OVERFLOW = int(os.getenv("PG_MAX_OVERFLOW", "10"))
# Shows up in pg_stat_activity next to each connection.
_APPLICATION_NAME = os.getenv("PG_APPLICATION_NAME", "adaptive-survey")

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            get_async_url(),
            pool_size=_POOL_SIZE,
            max_overflow=_MAX_OVERFLOW,
            # Connections may sit idle for a whole model call; check before reuse.
            pool_pre_ping=True,
            connect_args={"server_settings": {"application_name": _APPLICATION_NAME}},
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded attributes after commit.

    Aggregate report generation commits its ``generating`` row mid-request
    and keeps using the same ORM object afterwards.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
