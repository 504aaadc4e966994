"""Ports for fetching data from the upstream commerce platform."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gumsync.domain.model import Product, SaleEvent


@runtime_checkable
class SaleEventSource(Protocol):
    """Port for retrieving a bounded page of recent sales.

    Implementations raise ``TransportError`` on any failure so that a failed
    fetch is never confused with an empty page.
    """

    def fetch_recent_sales(self, credential: str, limit: int) -> Sequence[SaleEvent]: ...


@runtime_checkable
class CatalogSource(Protocol):
    """Port used by operator tooling rather than by the reconciliation pass."""

    def fetch_products(self, credential: str) -> Sequence[Product]: ...

    def verify_credential(self, credential: str) -> str: ...


__all__ = ["CatalogSource", "SaleEventSource"]
