"""Data storage helpers."""

from __future__ import annotations

from gumsync.config.storage import get_database_config


def get_database_uri() -> str:
    """Compute the database URI, respecting overrides."""

    return get_database_config().uri
