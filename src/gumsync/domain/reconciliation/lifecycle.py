"""Remediation for refunded sales and terminated subscriptions."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from gumsync.common.clock import utcnow
from gumsync.domain.errors import AccountNotFoundError
from gumsync.domain.model import ProvisioningRecord, RemediationAction
from gumsync.domain.reconciliation.provisioner import normalize_email

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from gumsync.common.clock import Clock
    from gumsync.domain.model import Account, SaleEvent
    from gumsync.domain.ports import AccountRepository
    from gumsync.domain.reconciliation.settings import ReconciliationConfig

log = getLogger(__name__)

MISSING_ASSIGNED_ROLES = "no record of roles assigned by this system; nothing removed"

type _Stamp = Callable[[ProvisioningRecord, str, datetime], bool]


@dataclass(slots=True)
class RemediationOutcome:
    action: RemediationAction
    email: str
    changed: bool
    account_id: UUID | None = None
    roles_removed: tuple[str, ...] = ()
    warning: str | None = None


class LifecycleHandler:
    """Applies the configured action when a purchase is reversed or ends.

    Upstream keeps listing a reversed sale on every poll. The provisioning
    record remembers each refunded sale and each ended subscription, so the
    action runs once and roles granted by later purchases survive.
    """

    def __init__(
        self,
        accounts: AccountRepository,
        config: ReconciliationConfig,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._accounts = accounts
        self._config = config
        self._clock = clock

    def handle_refund(self, event: SaleEvent) -> RemediationOutcome:
        return self._remediate(
            event,
            action=self._config.refund_action,
            key=event.sale_id,
            stamp=ProvisioningRecord.mark_refunded,
        )

    def handle_subscription_end(self, event: SaleEvent) -> RemediationOutcome:
        return self._remediate(
            event,
            action=self._config.subscription_cancellation_action,
            key=event.subscription_id or event.sale_id,
            stamp=ProvisioningRecord.mark_subscription_ended,
        )

    def _remediate(
        self,
        event: SaleEvent,
        *,
        action: RemediationAction,
        key: str,
        stamp: _Stamp,
    ) -> RemediationOutcome:
        email = normalize_email(event.email)
        account = self._accounts.get_by_email(email)
        if account is None:
            if action is RemediationAction.DELETE_ACCOUNT:
                return RemediationOutcome(action=action, email=email, changed=False)
            raise AccountNotFoundError(f"No account for {email} (sale {event.sale_id})")

        if action is RemediationAction.DELETE_ACCOUNT:
            return self._delete(account, event)
        return self._remove_assigned_roles(account, event, key, stamp)

    def _delete(self, account: Account, event: SaleEvent) -> RemediationOutcome:
        record = account.provisioning
        if record is not None and not record.concerns(event):
            # A later purchase created this account after the original was deleted.
            log.debug("Sale %s does not belong to account %s", event.sale_id, account.username)
            return RemediationOutcome(
                action=RemediationAction.DELETE_ACCOUNT,
                email=account.email,
                changed=False,
                account_id=account.id,
            )

        self._accounts.delete(account)
        log.info("Deleted account %s after sale %s", account.username, event.sale_id)
        return RemediationOutcome(
            action=RemediationAction.DELETE_ACCOUNT,
            email=account.email,
            changed=True,
            account_id=account.id,
            roles_removed=tuple(account.roles),
        )

    def _remove_assigned_roles(
        self,
        account: Account,
        event: SaleEvent,
        key: str,
        stamp: _Stamp,
    ) -> RemediationOutcome:
        now = self._clock()
        record = account.provisioning
        if record is None:
            # Remember the remediation so later polls see it as already handled.
            record = ProvisioningRecord.from_sale(event, assigned_roles=(), at=now)
            record.assigned_roles = None
            account.provisioning = record

        if not stamp(record, key, now):
            return RemediationOutcome(
                action=RemediationAction.REMOVE_ROLES,
                email=account.email,
                changed=False,
                account_id=account.id,
            )

        warning: str | None = None
        removed: tuple[str, ...] = ()
        if record.assigned_roles is None:
            warning = MISSING_ASSIGNED_ROLES
            log.warning("Sale %s for %s: %s", event.sale_id, account.email, warning)
        else:
            removed = tuple(role for role in record.assigned_roles if account.remove_role(role))
        self._accounts.save(account)
        return RemediationOutcome(
            action=RemediationAction.REMOVE_ROLES,
            email=account.email,
            changed=True,
            account_id=account.id,
            roles_removed=removed,
            warning=warning,
        )
