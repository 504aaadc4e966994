"""Errors raised while reconciling sales.

Each error carries a stable ``reason`` code. The reconciliation pass writes it
into the audit log; nothing here is ever fatal to the process.
"""

from __future__ import annotations

from typing import ClassVar


class ReconciliationError(RuntimeError):
    """Base class for failures surfaced through the audit log."""

    reason: ClassVar[str] = "ReconciliationError"


class TransportError(ReconciliationError):
    """An upstream call (fetch or notify) failed or timed out."""

    reason = "TransportError"


class InvalidEmailError(ReconciliationError):
    reason = "InvalidEmail"


class PolicyDisabledError(ReconciliationError):
    """The product is not configured for automatic provisioning."""

    reason = "PolicyDisabled"


class NoRolesConfiguredError(ReconciliationError):
    """Provisioning is enabled but neither the product nor the defaults name a role."""

    reason = "NoRolesConfigured"


class AccountNotFoundError(ReconciliationError):
    """A refund or termination referenced an email with no local account."""

    reason = "AccountNotFound"


class AccountCreateConflictError(ReconciliationError):
    """No free username could be derived for a new account."""

    reason = "AccountCreateConflict"


class PersistenceError(ReconciliationError):
    """The store rejected a write; only the current event is abandoned."""

    reason = "PersistenceError"


class ConfirmationError(ValueError):
    """Raised when a destructive operator action is not confirmed."""
