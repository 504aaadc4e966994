"""Alembic environment for the gumsync schema.

``upgrade_head`` hands over an open connection through
``config.attributes["connection"]``; the alembic CLI falls back to
``sqlalchemy.url`` or the configured ``DATABASE_URI``.
"""

from __future__ import annotations

from alembic import context
from sqlalchemy import create_engine, pool

from gumsync.adapters.sqlalchemy import mapper_registry, start_mappers
from gumsync.config import get_database_config

config = context.config

start_mappers()

target_metadata = mapper_registry.metadata

# SQLite cannot ALTER most constraints in place, so every migration runs in batch mode.
_COMMON_OPTIONS: dict[str, object] = {
    "target_metadata": target_metadata,
    "render_as_batch": True,
    "compare_type": True,
}


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_database_config().uri


def _migrate(**options: object) -> None:
    context.configure(**_COMMON_OPTIONS, **options)  # type: ignore[arg-type]
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    _migrate(url=_database_url(), literal_binds=True)


def run_migrations_online() -> None:
    connection = config.attributes.get("connection")
    if connection is not None:
        _migrate(connection=connection)
        return

    engine = create_engine(_database_url(), poolclass=pool.NullPool, future=True)
    try:
        with engine.connect() as owned_connection:
            _migrate(connection=owned_connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
