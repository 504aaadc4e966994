"""Process logging for the CLI and the long-running poller."""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "GUMSYNC_LOG_LEVEL"
# Client libraries that log every request at INFO or DEBUG.
_CHATTY_LOGGERS = ("httpx", "httpcore", "hishel", "httpx_retries")


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Set up the root logger with timestamps suitable for a long-running process.

    ``GUMSYNC_LOG_LEVEL`` (a level name such as ``DEBUG``) overrides ``level``.
    HTTP client libraries stay at WARNING so the audit trail is not drowned out.
    """

    override = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
    if override:
        level = logging.getLevelNamesMapping().get(override, level)

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=force,
    )
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
