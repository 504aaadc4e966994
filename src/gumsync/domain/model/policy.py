"""Provisioning policy values."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ProductPolicy:
    """Per-product configuration: whether a sale provisions, and with which roles."""

    auto_provision: bool = False
    roles: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ProvisioningDecision:
    auto_provision: bool
    roles: tuple[str, ...] = ()

    @property
    def provisionable(self) -> bool:
        return self.auto_provision and bool(self.roles)


NOT_PROVISIONABLE = ProvisioningDecision(auto_provision=False)
