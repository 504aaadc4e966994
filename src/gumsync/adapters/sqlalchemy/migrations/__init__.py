"""Run the bundled alembic migrations without an ``alembic.ini``."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config

from gumsync.common.storage import get_database_uri

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent
# Only present in a source checkout; installed wheels use alembic's defaults.
PYPROJECT_PATH: Final[Path] = MIGRATIONS_PATH.parents[4] / "pyproject.toml"
_RESERVED_OPTIONS: Final[frozenset[str]] = frozenset({"script_location", "sqlalchemy.url"})


def _tool_options() -> dict[str, str]:
    if not PYPROJECT_PATH.is_file():
        return {}
    with PYPROJECT_PATH.open("rb") as handle:
        section = tomllib.load(handle).get("tool", {}).get("alembic", {})
    return {str(key): str(value) for key, value in section.items()}


def alembic_config(database_uri: str | None = None) -> Config:
    """Return a Config for the bundled scripts, e.g. for ``command.revision``."""

    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    for key, value in _tool_options().items():
        if key not in _RESERVED_OPTIONS:
            config.set_main_option(key, value)
    if database_uri is not None:
        config.set_main_option("sqlalchemy.url", database_uri)
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Bring the schema up to the newest revision, on ``engine`` if one is given."""

    if engine is None:
        command.upgrade(alembic_config(database_uri or get_database_uri()), "head")
        return

    config = alembic_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")
