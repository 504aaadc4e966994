"""Gumroad API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from gumsync import __version__

from .env import optional_env_var
from .http_resilience import (
    NO_RETRY,
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    ShouldCacheHook,
)

GUMROAD_BASE_URL = "https://api.gumroad.com/v2/"
GUMROAD_SALES_TIMEOUT_SECONDS = 20.0
GUMROAD_CATALOG_TIMEOUT_SECONDS = 10.0
GUMROAD_CATALOG_CACHE_TTL_SECONDS = 300.0
GUMROAD_ACCESS_TOKEN_ENV = "GUMROAD_ACCESS_TOKEN"
USER_AGENT = f"gumsync/{__version__}"


@dataclass(frozen=True, slots=True)
class GumroadConfig:
    """HTTP settings for the two kinds of Gumroad calls.

    Sales polling never retries inside a pass and is never cached; a failed
    fetch is simply attempted again on the next tick. Catalogue and account
    lookups are operator-driven and tolerate retries and short-lived caching.
    """

    sales: ResilienceConfig
    catalog: ResilienceConfig


def get_gumroad_config(*, cache_predicate: ShouldCacheHook | None = None) -> GumroadConfig:
    return GumroadConfig(
        sales=ResilienceConfig(
            name="gumroad-sales",
            base_url=GUMROAD_BASE_URL,
            timeout_seconds=GUMROAD_SALES_TIMEOUT_SECONDS,
            retry=NO_RETRY,
            user_agent=USER_AGENT,
        ),
        catalog=ResilienceConfig(
            name="gumroad-catalog",
            base_url=GUMROAD_BASE_URL,
            timeout_seconds=GUMROAD_CATALOG_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=3),
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
            cache=CacheConfig(
                ttl_seconds=GUMROAD_CATALOG_CACHE_TTL_SECONDS,
                should_cache=cache_predicate,
            ),
            user_agent=USER_AGENT,
        ),
    )


def get_access_token_override() -> str | None:
    """Return the access token from the environment, if one is set."""

    return optional_env_var(GUMROAD_ACCESS_TOKEN_ENV)
