"""Database configuration — reads connection parameters from environment.

``DATABASE_URL`` wins when set; otherwise the URL is assembled from
``PG_HOST``, ``PG_PORT``, ``PG_USER``, ``PG_PASSWORD`` and ``PG_DATABASE``.

Alembic migrates through the synchronous (psycopg2) URL; the application
runs on the asyncpg URL.
"""

import os

_ASYNC_PREFIX = "postgresql+asyncpg://"
_SYNC_PREFIX = "postgresql://"


def _build_url_from_parts() -> str:
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    user = os.getenv("PG_USER", "survey")
    password = os.getenv("PG_PASSWORD", "survey")
    database = os.getenv("PG_DATABASE", "survey")
    return f"{_SYNC_PREFIX}{user}:{password}@{host}:{port}/{database}"


def get_sync_url() -> str:
    """Connection URL for Alembic."""
    url = os.getenv("DATABASE_URL") or _build_url_from_parts()
    return url.replace(_ASYNC_PREFIX, _SYNC_PREFIX, 1)


def get_async_url() -> str:
    """Connection URL for the async engine (asyncpg driver)."""
    url = os.getenv("DATABASE_URL") or _build_url_from_parts()
    if url.startswith(_SYNC_PREFIX):
        return url.replace(_SYNC_PREFIX, _ASYNC_PREFIX, 1)
    return url
