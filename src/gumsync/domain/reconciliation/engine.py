"""One reconciliation pass: fetch, dispatch every event, summarize."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from gumsync.common.clock import utcnow
from gumsync.domain.errors import (
    NoRolesConfiguredError,
    PersistenceError,
    PolicyDisabledError,
    ReconciliationError,
    TransportError,
)
from gumsync.domain.model import AuditEventType, LedgerDecision
from gumsync.domain.reconciliation.audit import AuditLog
from gumsync.domain.reconciliation.ledger import DedupLedger
from gumsync.domain.reconciliation.lifecycle import LifecycleHandler, RemediationOutcome
from gumsync.domain.reconciliation.policy import PolicyResolver
from gumsync.domain.reconciliation.provisioner import AccountProvisioner, ProvisionOutcome

if TYPE_CHECKING:
    from gumsync.common.clock import Clock
    from gumsync.domain.model import Account, SaleEvent
    from gumsync.domain.ports import (
        ReconciliationUnitOfWork,
        SaleEventSource,
        WelcomeNotifier,
    )
    from gumsync.domain.reconciliation.settings import ReconciliationConfig

log = getLogger(__name__)

ACCOUNT_NO_LONGER_EXISTS = "account no longer exists"
ACCESS_TOKEN_NOT_SET = "Access token not set"


class EventOutcome(StrEnum):
    CREATED = "created"
    ROLES_UPDATED = "roles_updated"
    UNCHANGED = "unchanged"
    DUPLICATE = "duplicate"
    REFUNDED = "refunded"
    SUBSCRIPTION_ENDED = "subscription_ended"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class PassSummary:
    """Counters for one pass; ``fetch_error`` is set when nothing was dispatched."""

    total: int = 0
    created: int = 0
    roles_updated: int = 0
    refunds: int = 0
    subscriptions: int = 0
    skipped: int = 0
    errors: int = 0
    fetch_error: str | None = None

    def count(self, outcome: EventOutcome) -> None:
        self.total += 1
        match outcome:
            case EventOutcome.CREATED:
                self.created += 1
            case EventOutcome.ROLES_UPDATED:
                self.roles_updated += 1
            case EventOutcome.REFUNDED:
                self.refunds += 1
            case EventOutcome.SUBSCRIPTION_ENDED:
                self.subscriptions += 1
            case EventOutcome.SKIPPED | EventOutcome.DUPLICATE:
                self.skipped += 1
            case EventOutcome.FAILED:
                self.errors += 1
            case EventOutcome.UNCHANGED:
                pass

    def as_payload(self) -> dict[str, object]:
        return {
            "total_sales_checked": self.total,
            "new_users_created": self.created,
            "roles_updated": self.roles_updated,
            "refunds_processed": self.refunds,
            "subscriptions_updated": self.subscriptions,
            "skipped": self.skipped,
            "errors": self.errors,
        }


class ReconciliationPass:
    """Processes one fetched batch inside an already-entered unit of work.

    Each event is committed on its own. A failing event is rolled back,
    audited, and the batch carries on with the next one. Welcome messages
    go out only after the event that created the account has committed.
    """

    def __init__(
        self,
        *,
        uow: ReconciliationUnitOfWork,
        source: SaleEventSource,
        config: ReconciliationConfig,
        notifier: WelcomeNotifier | None = None,
        clock: Clock = utcnow,
    ) -> None:
        repositories = uow.repositories
        self._uow = uow
        self._source = source
        self._config = config
        self._accounts = repositories.accounts
        self._notifier = notifier if config.send_welcome_email else None
        self._clock = clock
        self._pending_welcome: tuple[Account, str] | None = None
        self.audit = AuditLog(
            repositories.audit_log,
            limit=config.log_limit,
            rotation_days=config.log_rotation_days,
            clock=clock,
        )
        self.ledger = DedupLedger(repositories.ledger, repositories.accounts)
        self.policies = PolicyResolver(config)
        self.provisioner = AccountProvisioner(repositories.accounts, clock=clock)
        self.lifecycle = LifecycleHandler(repositories.accounts, config, clock=clock)

    def run(self) -> PassSummary:
        summary = PassSummary()
        if not self._config.access_token:
            summary.fetch_error = ACCESS_TOKEN_NOT_SET
            self.audit.append(AuditEventType.PASS_ERROR, {"error": ACCESS_TOKEN_NOT_SET})
            self._uow.commit()
            return summary

        try:
            events = list(
                self._source.fetch_recent_sales(self._config.access_token, self._config.sales_limit)
            )
        except TransportError as exc:
            summary.fetch_error = str(exc)
            self.audit.append(AuditEventType.FETCH_ERROR, {"error": str(exc)})
            self._uow.commit()
            return summary

        for event in events:
            summary.count(self._process(event))

        self.audit.append(AuditEventType.PASS_COMPLETED, summary.as_payload())
        self._uow.commit()
        log.info("Pass finished: %s", summary.as_payload())
        return summary

    def _process(self, event: SaleEvent) -> EventOutcome:
        self._pending_welcome = None
        try:
            outcome = self.dispatch(event)
            self._uow.commit()
        except ReconciliationError as exc:
            self._uow.rollback()
            outcome = self._record_failure(event, exc)
            self._uow.commit()
            return outcome

        if self._pending_welcome is not None:
            account, credential = self._pending_welcome
            self._pending_welcome = None
            self._deliver_welcome(event, account, credential)
        return outcome

    def _deliver_welcome(self, event: SaleEvent, account: Account, credential: str) -> None:
        if self._notifier is None:
            return
        sent = self._notifier.send_welcome(account, credential, event.product_name)
        if not sent:
            log.warning("Welcome message to %s was not delivered", account.email)
        if account.provisioning is None:
            return
        account.provisioning.record_welcome(sent=sent, at=self._clock())
        try:
            self._accounts.save(account)
            self._uow.commit()
        except PersistenceError:
            # The account itself is already committed; only the delivery stamp is lost.
            self._uow.rollback()
            log.exception("Could not record the welcome message for %s", account.email)

    def dispatch(self, event: SaleEvent) -> EventOutcome:
        """Route one event; refunds win over subscription ends, which win over sales."""

        if event.is_refund:
            if not self._config.handle_refunds:
                log.debug("Ignoring refunded sale %s; refund handling is off", event.sale_id)
                return EventOutcome.SKIPPED
            return self._remediated(
                event,
                self.lifecycle.handle_refund(event),
                AuditEventType.REFUND_PROCESSED,
                EventOutcome.REFUNDED,
            )
        if event.is_subscription_termination:
            if not self._config.handle_subscriptions:
                log.debug("Ignoring ended subscription %s", event.subscription_id)
                return EventOutcome.SKIPPED
            return self._remediated(
                event,
                self.lifecycle.handle_subscription_end(event),
                AuditEventType.SUBSCRIPTION_ENDED,
                EventOutcome.SUBSCRIPTION_ENDED,
            )
        return self._provision(event)

    def _provision(self, event: SaleEvent) -> EventOutcome:
        decision = self.ledger.should_process(event.sale_id, event.email)
        if decision is LedgerDecision.SKIP:
            return EventOutcome.DUPLICATE
        if decision is LedgerDecision.REPROCESS:
            self.audit.append(
                AuditEventType.SALE_REPROCESSED,
                {**event.summary(), "reason": ACCOUNT_NO_LONGER_EXISTS},
            )
            self._uow.commit()

        policy = self.policies.resolve(event.product_id)
        if not policy.auto_provision:
            raise PolicyDisabledError(f"Product {event.product_id!r} is not auto-provisioned")
        if not policy.roles:
            raise NoRolesConfiguredError(f"No roles configured for product {event.product_id!r}")

        result = self.provisioner.provision(event, policy)
        self.ledger.record(event.sale_id)
        return self._provisioned(event, result)

    def _provisioned(self, event: SaleEvent, result: ProvisionOutcome) -> EventOutcome:
        account = result.account
        if result.created:
            self.audit.append(
                AuditEventType.USER_CREATED,
                {
                    **event.summary(),
                    "user_id": str(account.id),
                    "username": account.username,
                    "email": account.email,
                    "roles": list(account.roles),
                },
            )
            if self._notifier is not None and result.credential is not None:
                self._pending_welcome = (account, result.credential)
            return EventOutcome.CREATED
        if result.roles_added:
            self.audit.append(
                AuditEventType.ROLES_UPDATED,
                {
                    **event.summary(),
                    "user_id": str(account.id),
                    "email": account.email,
                    "roles_added": list(result.roles_added),
                    "roles": list(account.roles),
                },
            )
            return EventOutcome.ROLES_UPDATED
        return EventOutcome.UNCHANGED

    def _remediated(
        self,
        event: SaleEvent,
        result: RemediationOutcome,
        event_type: AuditEventType,
        outcome: EventOutcome,
    ) -> EventOutcome:
        if not result.changed:
            return EventOutcome.UNCHANGED
        payload: dict[str, object] = {
            **event.summary(),
            "email": result.email,
            "action": str(result.action),
            "user_id": str(result.account_id) if result.account_id else None,
            "roles_removed": list(result.roles_removed),
        }
        if event.subscription_id:
            payload["subscription_id"] = event.subscription_id
        self.audit.append(event_type, payload)
        if result.warning is not None:
            self.audit.append(
                AuditEventType.LIFECYCLE_WARNING,
                {**event.summary(), "email": result.email, "warning": result.warning},
            )
        return outcome

    def _record_failure(self, event: SaleEvent, exc: ReconciliationError) -> EventOutcome:
        payload = {**event.summary(), "reason": exc.reason, "error": str(exc)}
        if isinstance(exc, PolicyDisabledError | NoRolesConfiguredError):
            self.audit.append(AuditEventType.SALE_SKIPPED, payload)
            return EventOutcome.SKIPPED
        if event.is_refund or event.is_subscription_termination:
            payload["trigger"] = "refund" if event.is_refund else "subscription"
            self.audit.append(AuditEventType.LIFECYCLE_ERROR, payload)
        else:
            self.audit.append(AuditEventType.SALE_ERROR, payload)
        return EventOutcome.FAILED


def reconcile_sales(
    *,
    uow: ReconciliationUnitOfWork,
    source: SaleEventSource,
    config: ReconciliationConfig,
    notifier: WelcomeNotifier | None = None,
    clock: Clock = utcnow,
) -> PassSummary:
    """Run one pass against an entered unit of work and return its counters."""

    return ReconciliationPass(
        uow=uow,
        source=source,
        config=config,
        notifier=notifier,
        clock=clock,
    ).run()
