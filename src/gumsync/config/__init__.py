"""Application configuration helpers."""

from __future__ import annotations

from .env import env_flag, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .gumroad import GumroadConfig, get_access_token_override, get_gumroad_config
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .notification import SmtpConfig, get_smtp_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "GumroadConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SmtpConfig",
    "StorageConfig",
    "env_flag",
    "get_access_token_override",
    "get_database_config",
    "get_gumroad_config",
    "get_smtp_config",
    "get_storage_config",
    "optional_env_var",
    "require_env_vars",
]
