"""Async HTTP client with retries, rate limiting and an in-memory response cache."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import RetryTransport

from gumsync.config.http_resilience import (
    NO_RETRY,
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    ShouldCacheHook,
)

if TYPE_CHECKING:
    from types import TracebackType

__all__ = [
    "NO_RETRY",
    "CacheConfig",
    "RateLimit",
    "ResilienceConfig",
    "ResilientClient",
    "RetryPolicy",
]

log = getLogger(__name__)


class ResilientClient:
    """``httpx.AsyncClient`` built from a :class:`ResilienceConfig`.

    Retries live in the transport, so a cached response never counts as an
    attempt. The limiter wraps each logical request, not each retry.
    """

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit is not None
            else None
        )

        headers = {"User-Agent": config.user_agent} if config.user_agent else None
        transport = RetryTransport(retry=config.retry.build())
        base_url = config.base_url or ""

        self._client: httpx.AsyncClient
        if config.cache is None:
            self._client = httpx.AsyncClient(
                base_url=base_url,
                timeout=config.timeout_seconds,
                headers=headers,
                transport=transport,
            )
        else:
            storage, policy = _cache_components(config.cache)
            self._client = AsyncCacheClient(
                base_url=base_url,
                timeout=config.timeout_seconds,
                headers=headers,
                transport=transport,
                storage=storage,
                policy=policy,
            )

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, url: str, *, params: httpx.QueryParams | None = None) -> httpx.Response:
        if self._limiter is None:
            return await self._get(url, params)
        async with self._limiter:
            return await self._get(url, params)

    async def _get(self, url: str, params: httpx.QueryParams | None) -> httpx.Response:
        response = await self._client.get(url, params=params)
        log.debug("%s GET %s -> %s", self.config.name, url, response.status_code)
        return response


class _JsonPredicateFilter(BaseFilter[HishelCacheResponse]):
    """Stores a response only when ``predicate`` accepts its JSON body."""

    def __init__(self, predicate: ShouldCacheHook) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: HishelCacheResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if body is None:
            return False
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return False
        return bool(self._predicate(payload))


def _cache_components(config: CacheConfig) -> tuple[AsyncSqliteStorage, FilterPolicy | None]:
    # Access tokens travel in the query string, so cached entries never leave the process.
    storage = AsyncSqliteStorage(database_path=":memory:", default_ttl=config.ttl_seconds)
    policy = (
        FilterPolicy(response_filters=[_JsonPredicateFilter(config.should_cache)])
        if config.should_cache is not None
        else None
    )
    return storage, policy
