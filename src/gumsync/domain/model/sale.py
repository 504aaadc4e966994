"""Sale events as observed on the upstream ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


def _empty_payload() -> Mapping[str, object]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True, kw_only=True)
class SaleEvent:
    """One upstream record: a purchase, a refund, or a subscription status change.

    ``raw`` keeps the payload exactly as received so it can be stored for audit.
    """

    sale_id: str
    email: str
    product_id: str = ""
    product_name: str = ""
    refunded: bool = False
    partially_refunded: bool = False
    charged_back: bool = False
    subscription_id: str | None = None
    cancelled: bool = False
    ended: bool = False
    created_at: datetime | None = None
    raw: Mapping[str, object] = field(default_factory=_empty_payload, compare=False)

    @property
    def is_refund(self) -> bool:
        return self.refunded or self.partially_refunded or self.charged_back

    @property
    def is_subscription_termination(self) -> bool:
        return bool(self.subscription_id) and (self.cancelled or self.ended)

    def summary(self) -> dict[str, object]:
        """Compact payload used in audit entries."""

        return {
            "sale_id": self.sale_id,
            "email": self.email,
            "product_id": self.product_id,
            "product": self.product_name,
        }
