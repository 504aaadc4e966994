"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class RemediationAction(StrEnum):
    """What to do with an account whose purchase was reversed or ended."""

    REMOVE_ROLES = "remove_roles"
    DELETE_ACCOUNT = "delete_account"


class SubscriptionStatus(StrEnum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class LedgerDecision(StrEnum):
    """Outcome of checking a sale against the dedup ledger."""

    PROCESS = "process"
    SKIP = "skip"
    REPROCESS = "reprocess"


class AuditEventType(StrEnum):
    """Tags written to the audit log; values are what operators read."""

    USER_CREATED = "User created"
    ROLES_UPDATED = "User role updated"
    SALE_SKIPPED = "Sale skipped"
    SALE_REPROCESSED = "Sale re-processed"
    SALE_ERROR = "Sale error"
    REFUND_PROCESSED = "Refund processed"
    SUBSCRIPTION_ENDED = "Subscription cancelled"
    LIFECYCLE_ERROR = "Lifecycle error"
    LIFECYCLE_WARNING = "Lifecycle warning"
    FETCH_ERROR = "Cron API error"
    PASS_ERROR = "Cron error"
    PASS_COMPLETED = "Cron completed"
