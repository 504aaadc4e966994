"""SMTP configuration for welcome notifications."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_flag, optional_env_var, require_env_vars
from .errors import ConfigurationError

DEFAULT_SMTP_PORT = 587
SMTP_TIMEOUT_SECONDS = 20.0


@dataclass(frozen=True, slots=True)
class SmtpConfig:
    host: str
    from_address: str
    port: int = DEFAULT_SMTP_PORT
    username: str | None = None
    password: str | None = None
    starttls: bool = True
    timeout_seconds: float = SMTP_TIMEOUT_SECONDS


def get_smtp_config() -> SmtpConfig | None:
    """Return SMTP settings, or ``None`` when no SMTP host is configured."""

    if optional_env_var("SMTP_HOST") is None:
        return None
    values = require_env_vars(("SMTP_HOST", "SMTP_FROM_ADDRESS"))
    raw_port = optional_env_var("SMTP_PORT")
    try:
        port = int(raw_port) if raw_port else DEFAULT_SMTP_PORT
    except ValueError as exc:
        raise ConfigurationError(f"Invalid SMTP_PORT: {raw_port!r}") from exc
    return SmtpConfig(
        host=values["SMTP_HOST"].strip(),
        from_address=values["SMTP_FROM_ADDRESS"].strip(),
        port=port,
        username=optional_env_var("SMTP_USERNAME"),
        password=optional_env_var("SMTP_PASSWORD"),
        starttls=env_flag("SMTP_STARTTLS", default=True),
    )
