"""Translate Gumroad sale payloads into domain sale events."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC
from types import MappingProxyType

from gumsync.domain.model import SaleEvent

from .schema import SalePayload, SalePayloadInput


def parse_sale_event(sale: SalePayloadInput) -> SaleEvent:
    """Return a :class:`SaleEvent`, keeping the payload verbatim in ``raw``."""

    if isinstance(sale, SalePayload):
        payload = sale
        raw: Mapping[str, object] = sale.model_dump(mode="json", by_alias=True)
    else:
        payload = SalePayload.model_validate(sale)
        raw = dict(sale)

    created_at = payload.created_at
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)

    return SaleEvent(
        sale_id=payload.id,
        email=payload.email,
        product_id=payload.product_id,
        product_name=payload.product_name,
        refunded=payload.refunded,
        partially_refunded=payload.partially_refunded,
        charged_back=payload.charged_back,
        subscription_id=payload.subscription_id,
        cancelled=payload.cancelled,
        ended=payload.ended,
        created_at=created_at,
        raw=MappingProxyType(raw),
    )
