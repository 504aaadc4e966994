"""Local accounts and the provisioning state attached to them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from gumsync.common.clock import utcnow
from gumsync.domain.model.enums import SubscriptionStatus

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from gumsync.domain.model.sale import SaleEvent


@dataclass(frozen=True, slots=True, kw_only=True)
class PurchaseRecord:
    """One later purchase that changed an existing account's roles."""

    purchased_at: datetime
    product_id: str
    product_name: str
    sale_id: str
    roles_added: tuple[str, ...]


@dataclass(eq=False, kw_only=True)
class ProvisioningRecord:
    """Metadata linking an account to the sales that provisioned it.

    ``assigned_roles`` lists the roles this system granted; remediation only
    ever removes those. ``None`` means the record predates that bookkeeping and
    the granted roles are unknown.

    ``refunded_sale_ids`` and ``ended_subscription_ids`` name the reversals
    already remediated; each one is acted on at most once.
    """

    origin_sale_id: str
    origin_product_id: str = ""
    origin_product_name: str = ""
    created_at: datetime = field(default_factory=utcnow)
    raw_payload: dict[str, object] = field(default_factory=dict[str, object], repr=False)
    assigned_roles: tuple[str, ...] | None = ()
    linked_sale_ids: tuple[str, ...] = ()
    purchase_history: tuple[PurchaseRecord, ...] = ()

    welcome_sent: bool | None = None
    welcome_sent_at: datetime | None = None

    refunded: bool = False
    refunded_at: datetime | None = None
    refunded_sale_ids: tuple[str, ...] = ()

    subscription_id: str | None = None
    subscription_status: SubscriptionStatus | None = None
    subscription_ended_at: datetime | None = None
    ended_subscription_ids: tuple[str, ...] = ()

    last_purchase_at: datetime | None = None
    last_purchase_product: str | None = None
    last_sale_id: str | None = None

    id: UUID = field(default_factory=uuid4)

    @classmethod
    def from_sale(
        cls,
        event: SaleEvent,
        *,
        assigned_roles: Iterable[str],
        at: datetime,
    ) -> ProvisioningRecord:
        record = cls(
            origin_sale_id=event.sale_id,
            origin_product_id=event.product_id,
            origin_product_name=event.product_name,
            created_at=at,
            raw_payload=dict(event.raw),
            assigned_roles=tuple(assigned_roles),
            linked_sale_ids=(event.sale_id,),
            last_purchase_at=at,
            last_purchase_product=event.product_name,
            last_sale_id=event.sale_id,
        )
        if event.subscription_id:
            record.subscription_id = event.subscription_id
            record.subscription_status = SubscriptionStatus.ACTIVE
        return record

    def links_sale(self, sale_id: str) -> bool:
        return sale_id == self.origin_sale_id or sale_id in self.linked_sale_ids

    def link_sale(self, sale_id: str) -> None:
        # Tuples are reassigned, never mutated, so the ORM sees every change.
        if sale_id not in self.linked_sale_ids:
            self.linked_sale_ids = (*self.linked_sale_ids, sale_id)

    def record_purchase(
        self,
        event: SaleEvent,
        *,
        roles_added: tuple[str, ...],
        at: datetime,
    ) -> PurchaseRecord:
        entry = PurchaseRecord(
            purchased_at=at,
            product_id=event.product_id,
            product_name=event.product_name,
            sale_id=event.sale_id,
            roles_added=roles_added,
        )
        self.purchase_history = (*self.purchase_history, entry)
        known = self.assigned_roles or ()
        self.assigned_roles = (*known, *(role for role in roles_added if role not in known))
        self.last_purchase_at = at
        self.last_purchase_product = event.product_name
        self.last_sale_id = event.sale_id
        self.link_sale(event.sale_id)
        if event.subscription_id and self.subscription_id != event.subscription_id:
            self.subscription_id = event.subscription_id
            self.subscription_status = SubscriptionStatus.ACTIVE
            self.subscription_ended_at = None
        return entry

    def record_welcome(self, *, sent: bool, at: datetime) -> None:
        self.welcome_sent = sent
        self.welcome_sent_at = at

    def concerns(self, event: SaleEvent) -> bool:
        """Whether ``event`` is one of this record's sales or its subscription."""

        if self.links_sale(event.sale_id):
            return True
        return bool(event.subscription_id) and event.subscription_id == self.subscription_id

    def mark_refunded(self, sale_id: str, at: datetime) -> bool:
        """Stamp the refund of ``sale_id``; returns False when it was already handled."""

        if sale_id in self.refunded_sale_ids:
            return False
        self.refunded_sale_ids = (*self.refunded_sale_ids, sale_id)
        self.refunded = True
        self.refunded_at = at
        return True

    def mark_subscription_ended(self, subscription_id: str, at: datetime) -> bool:
        if subscription_id in self.ended_subscription_ids:
            return False
        self.ended_subscription_ids = (*self.ended_subscription_ids, subscription_id)
        if self.subscription_id in (None, subscription_id):
            self.subscription_id = subscription_id
            self.subscription_status = SubscriptionStatus.CANCELLED
            self.subscription_ended_at = at
        return True


@dataclass(eq=False, kw_only=True)
class Account:
    """A local account identified by its email address.

    ``roles[0]`` is the primary role.
    """

    username: str
    email: str
    display_name: str = ""
    password_hash: str = field(default="", repr=False)
    roles: tuple[str, ...] = ()
    created_at: datetime = field(default_factory=utcnow)
    provisioning: ProvisioningRecord | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def primary_role(self) -> str | None:
        return self.roles[0] if self.roles else None

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def set_primary_role(self, role: str) -> None:
        """Replace all roles with ``role``."""

        self.roles = (role,)

    def add_role(self, role: str) -> bool:
        if role in self.roles:
            return False
        self.roles = (*self.roles, role)
        return True

    def remove_role(self, role: str) -> bool:
        if role not in self.roles:
            return False
        self.roles = tuple(existing for existing in self.roles if existing != role)
        return True

    def missing_roles(self, wanted: Iterable[str]) -> tuple[str, ...]:
        """Roles from ``wanted`` the account lacks, in ``wanted`` order."""

        missing: list[str] = []
        for role in wanted:
            if role not in self.roles and role not in missing:
                missing.append(role)
        return tuple(missing)
