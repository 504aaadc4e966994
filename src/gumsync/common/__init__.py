from __future__ import annotations

from .clock import Clock, utcnow
from .logging import configure_logging
from .storage import get_database_uri

__all__ = [
    "Clock",
    "configure_logging",
    "get_database_uri",
    "utcnow",
]
