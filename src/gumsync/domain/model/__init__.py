"""Domain model for sale reconciliation."""

from __future__ import annotations

from .account import Account, ProvisioningRecord, PurchaseRecord
from .audit import AuditLogEntry
from .catalog import Product
from .enums import AuditEventType, LedgerDecision, RemediationAction, SubscriptionStatus
from .policy import NOT_PROVISIONABLE, ProductPolicy, ProvisioningDecision
from .sale import SaleEvent

__all__ = [
    "NOT_PROVISIONABLE",
    "Account",
    "AuditEventType",
    "AuditLogEntry",
    "LedgerDecision",
    "Product",
    "ProductPolicy",
    "ProvisioningDecision",
    "ProvisioningRecord",
    "PurchaseRecord",
    "RemediationAction",
    "SaleEvent",
    "SubscriptionStatus",
]
