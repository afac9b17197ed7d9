"""Alembic environment for the survey schema.

Covers the seven survey tables (presets, sessions, questions, answers,
analyses, personal reports, aggregate reports).  Their unique
constraints carry the engine's concurrency rules.  Autogenerate also
compares column types and server defaults.

Alembic runs synchronously and connects through the psycopg2 URL from
``get_sync_url()``, not the server's asyncpg URL.

    alembic upgrade head
    alembic revision --autogenerate -m "add column"
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from survey_db.config import get_sync_url
from survey_db.models import Base  # registers every survey table on Base.metadata

config = context.config
config.set_main_option("sqlalchemy.url", get_sync_url())

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

_COMPARE = {"compare_type": True, "compare_server_default": True}


def run_migrations_offline() -> None:
    """Emit the survey DDL as SQL without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_COMPARE,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, **_COMPARE)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
