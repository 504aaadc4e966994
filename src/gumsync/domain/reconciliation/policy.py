"""Maps products to provisioning decisions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gumsync.domain.model import NOT_PROVISIONABLE, ProvisioningDecision

if TYPE_CHECKING:
    from gumsync.domain.reconciliation.settings import ReconciliationConfig


class PolicyResolver:
    def __init__(self, config: ReconciliationConfig) -> None:
        self._products = config.products
        self._default_roles = config.default_roles

    def resolve(self, product_id: str | None) -> ProvisioningDecision:
        """Return the decision for ``product_id``.

        Unknown or disabled products are never provisionable. Enabled products
        fall back to the default roles when they name none; the result may
        still carry no roles, which callers report separately.
        """

        if not product_id:
            return NOT_PROVISIONABLE
        policy = self._products.get(product_id)
        if policy is None or not policy.auto_provision:
            return NOT_PROVISIONABLE
        roles = policy.roles or self._default_roles
        return ProvisioningDecision(auto_provision=True, roles=tuple(roles))
