"""Sale reconciliation and account lifecycle.

One pass runs these steps in order:
1) fetch the most recent page of sales
2) route refunds and ended subscriptions to the lifecycle handler
3) check every other sale against the dedup ledger
4) resolve the product's provisioning policy
5) create or augment the buyer's account
6) record the sale and append to the audit log
"""

from __future__ import annotations

from .audit import AuditLog
from .engine import EventOutcome, PassSummary, ReconciliationPass, reconcile_sales
from .ledger import DedupLedger
from .lifecycle import LifecycleHandler, RemediationOutcome
from .policy import PolicyResolver
from .provisioner import (
    AccountProvisioner,
    ProvisionOutcome,
    derive_display_name,
    generate_credential,
    normalize_email,
)
from .settings import (
    DEFAULT_CRON_INTERVAL_SECONDS,
    DEFAULT_LOG_LIMIT,
    DEFAULT_LOG_ROTATION_DAYS,
    DEFAULT_ROLES,
    DEFAULT_SALES_LIMIT,
    LEDGER_CAPACITY,
    ReconciliationConfig,
)

__all__ = [
    "DEFAULT_CRON_INTERVAL_SECONDS",
    "DEFAULT_LOG_LIMIT",
    "DEFAULT_LOG_ROTATION_DAYS",
    "DEFAULT_ROLES",
    "DEFAULT_SALES_LIMIT",
    "LEDGER_CAPACITY",
    "AccountProvisioner",
    "AuditLog",
    "DedupLedger",
    "EventOutcome",
    "LifecycleHandler",
    "PassSummary",
    "PolicyResolver",
    "ProvisionOutcome",
    "ReconciliationConfig",
    "ReconciliationPass",
    "RemediationOutcome",
    "derive_display_name",
    "generate_credential",
    "normalize_email",
    "reconcile_sales",
]
