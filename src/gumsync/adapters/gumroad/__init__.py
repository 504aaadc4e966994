"""Public interface for the Gumroad adapter."""

from __future__ import annotations

from .client import GumroadAPIError, GumroadClient
from .schema import SalePayload, SalePayloadInput, SalesResponse
from .translator import parse_sale_event

__all__ = [
    "GumroadAPIError",
    "GumroadClient",
    "SalePayload",
    "SalePayloadInput",
    "SalesResponse",
    "parse_sale_event",
]
