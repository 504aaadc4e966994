"""HTTP client for the Gumroad v2 API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import BaseModel, ValidationError

from gumsync.adapters.http_resilience import ResilienceConfig, ResilientClient
from gumsync.config.gumroad import GumroadConfig, get_gumroad_config
from gumsync.domain.errors import TransportError
from gumsync.domain.model import Product
from gumsync.domain.ports import CatalogSource, SaleEventSource

from .schema import ErrorResponse, ProductsResponse, SalesResponse, UserResponse
from .translator import parse_sale_event

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from gumsync.domain.model import SaleEvent

log = getLogger(__name__)


def _is_successful_payload(payload: object) -> bool:
    return isinstance(payload, dict) and payload.get("success") is True


def _error_message(payload: object, status_code: int) -> str:
    fallback = f"Unexpected Gumroad response (HTTP {status_code})"
    if not isinstance(payload, dict):
        return fallback
    try:
        message = ErrorResponse.model_validate(payload).message
    except ValidationError:
        return fallback
    return message or fallback


def _default_config() -> GumroadConfig:
    return get_gumroad_config(cache_predicate=_is_successful_payload)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class GumroadAPIError(TransportError):
    """Raised when Gumroad answers with ``success: false`` or an unreadable payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class GumroadClient:
    """Reads sales, products and the token owner from Gumroad.

    Every failure, including timeouts, surfaces as :class:`TransportError`;
    an empty list always means Gumroad really returned nothing.
    """

    config: GumroadConfig = field(default_factory=_default_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def fetch_recent_sales(self, credential: str, limit: int) -> list[SaleEvent]:
        if limit < 1:
            return []
        return _run("sales fetch", self._fetch_recent_sales_async(credential, limit))

    def fetch_products(self, credential: str) -> list[Product]:
        return _run("product listing", self._fetch_products_async(credential))

    def verify_credential(self, credential: str) -> str:
        """Return the display name of the Gumroad account owning ``credential``."""

        return _run("credential check", self._verify_credential_async(credential))

    async def _fetch_recent_sales_async(self, credential: str, limit: int) -> list[SaleEvent]:
        events: list[SaleEvent] = []
        page_key: str | None = None

        async with self.client_factory(self.config.sales) as client:
            while True:
                params: dict[str, str] = {"access_token": credential}
                if page_key is not None:
                    params["page_key"] = page_key
                page = await self._perform_request(client, "sales", params, SalesResponse)

                for sale in page.sales:
                    try:
                        events.append(parse_sale_event(sale))
                    except ValidationError as exc:
                        raise GumroadAPIError(f"Malformed Gumroad sale: {exc}") from exc
                    if len(events) >= limit:
                        return events

                if page.next_page_key is None or not page.sales:
                    break
                page_key = page.next_page_key

        log.debug("Fetched %s sales from Gumroad", len(events))
        return events

    async def _fetch_products_async(self, credential: str) -> list[Product]:
        async with self.client_factory(self.config.catalog) as client:
            response = await self._perform_request(
                client, "products", {"access_token": credential}, ProductsResponse
            )
        return [
            Product(id=product.id, name=product.name, published=product.published)
            for product in response.products
        ]

    async def _verify_credential_async(self, credential: str) -> str:
        async with self.client_factory(self.config.catalog) as client:
            response = await self._perform_request(
                client, "user", {"access_token": credential}, UserResponse
            )
        return response.user.name or response.user.email or "Unknown"

    async def _perform_request[TModel: BaseModel](
        self,
        client: ResilientClient,
        path: str,
        params: dict[str, str],
        model: type[TModel],
    ) -> TModel:
        response = await client.get(path, params=httpx.QueryParams(params))

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error or not _is_successful_payload(payload):
            message = _error_message(payload, response.status_code)
            log.error(f"Gumroad API error on {path}: {message}")
            raise GumroadAPIError(message, status_code=response.status_code)

        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise GumroadAPIError(f"Malformed Gumroad {path} payload: {exc}") from exc


def _run[T](operation: str, coroutine: Coroutine[object, object, T]) -> T:
    try:
        return asyncio.run(coroutine)
    except httpx.TimeoutException as exc:
        raise TransportError(f"Gumroad {operation} timed out") from exc
    except httpx.HTTPError as exc:
        raise TransportError(f"Gumroad {operation} failed: {exc}") from exc


if TYPE_CHECKING:
    _source_check: SaleEventSource = GumroadClient()
    _catalog_check: CatalogSource = GumroadClient()
