"""Application orchestration entry points."""

from __future__ import annotations

import math
import threading
from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from gumsync.adapters.gumroad import GumroadClient
from gumsync.adapters.smtp import build_welcome_notifier
from gumsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyReconciliationUnitOfWork,
    is_started,
    startup,
)
from gumsync.common.clock import utcnow
from gumsync.config.errors import ConfigurationError
from gumsync.config.reconciliation import (
    SettingsDocument,
    load_reconciliation_config,
    load_settings,
)
from gumsync.domain.errors import ConfirmationError
from gumsync.domain.model import AuditEventType
from gumsync.domain.ports import AccountFilter, ReconciliationUnitOfWork, WelcomeNotifier
from gumsync.domain.reconciliation import (
    DEFAULT_CRON_INTERVAL_SECONDS,
    AuditLog,
    PassSummary,
    reconcile_sales,
)
from gumsync.domain.welcome import WelcomeTemplate
from gumsync.scheduler import PassScheduler

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gumsync.common.clock import Clock
    from gumsync.domain.model import Account, AuditLogEntry, Product
    from gumsync.domain.ports import CatalogSource, SaleEventSource

UnitOfWorkFactory = Callable[[], ReconciliationUnitOfWork]
NotifierFactory = Callable[[WelcomeTemplate], WelcomeNotifier | None]

PURGE_CONFIRMATION = "DELETE ALL GUMROAD DATA"
DEFAULT_PAGE_SIZE = 20

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Page[T]:
    items: Sequence[T]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))


@dataclass(frozen=True, slots=True)
class PurgeResult:
    ledger_entries: int
    audit_entries: int
    provisioning_records: int


def _page_bounds(page: int, per_page: int) -> tuple[int, int]:
    if page < 1 or per_page < 1:
        raise ValueError("page and per_page must be positive")
    return (page - 1) * per_page, per_page


class ReconciliationService:
    """Runs passes and operator actions against one store.

    A single lock serializes everything that writes. A scheduled tick that
    finds the lock taken is dropped rather than queued; operator actions wait
    for the pass in flight to finish.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        source: SaleEventSource,
        notifier_factory: NotifierFactory | None = build_welcome_notifier,
        clock: Clock = utcnow,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._source = source
        self._notifier_factory = notifier_factory
        self._clock = clock
        self._lock = threading.Lock()

    def run_pass(self) -> PassSummary | None:
        """Run one pass now; return ``None`` when another pass is in flight."""

        if not self._lock.acquire(blocking=False):
            log.info("Reconciliation pass already running; skipping this tick")
            return None
        try:
            return self._run_pass()
        finally:
            self._lock.release()

    def poll_interval(self) -> float:
        with self._uow_factory() as uow:
            try:
                return float(load_settings(uow.repositories.settings).cron_interval)
            except ConfigurationError:
                log.warning(
                    "Stored settings are invalid; polling every %s seconds",
                    DEFAULT_CRON_INTERVAL_SECONDS,
                )
                return float(DEFAULT_CRON_INTERVAL_SECONDS)

    def clear_audit_log(self) -> int:
        with self._lock, self._uow_factory() as uow:
            removed = AuditLog(uow.repositories.audit_log, clock=self._clock).clear()
            uow.commit()
        return removed

    def read_audit_log(
        self,
        *,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> Page[AuditLogEntry]:
        offset, limit = _page_bounds(page, per_page)
        with self._uow_factory() as uow:
            repository = uow.repositories.audit_log
            items = list(repository.newest(offset=offset, limit=limit))
            total = repository.count()
        return Page(items=items, total=total, page=page, per_page=per_page)

    def read_provisioned_accounts(
        self,
        filters: AccountFilter | None = None,
        *,
        page: int = 1,
        per_page: int = DEFAULT_PAGE_SIZE,
    ) -> Page[Account]:
        offset, limit = _page_bounds(page, per_page)
        with self._uow_factory() as uow:
            items, total = uow.repositories.accounts.query_provisioned(
                filters or AccountFilter(), offset=offset, limit=limit
            )
            items = list(items)
        return Page(items=items, total=total, page=page, per_page=per_page)

    def purge_plugin_state(self, confirmation: str) -> PurgeResult:
        """Forget every sale, log entry, setting and provisioning record.

        Accounts themselves are kept. ``confirmation`` must equal
        :data:`PURGE_CONFIRMATION` exactly.
        """

        if confirmation != PURGE_CONFIRMATION:
            raise ConfirmationError(f"Type {PURGE_CONFIRMATION!r} to confirm the purge")
        with self._lock, self._uow_factory() as uow:
            repositories = uow.repositories
            result = PurgeResult(
                ledger_entries=repositories.ledger.clear(),
                audit_entries=repositories.audit_log.clear(),
                provisioning_records=repositories.accounts.clear_provisioning(),
            )
            repositories.settings.clear()
            uow.commit()
        log.warning("Purged reconciliation state: %s", result)
        return result

    def load_settings(self) -> SettingsDocument:
        with self._uow_factory() as uow:
            return load_settings(uow.repositories.settings)

    def save_settings(self, document: SettingsDocument) -> None:
        with self._lock, self._uow_factory() as uow:
            uow.repositories.settings.save(document.model_dump(mode="json"))
            uow.commit()
        log.info("Saved reconciliation settings")

    def access_token(self) -> str:
        with self._uow_factory() as uow:
            return load_reconciliation_config(uow.repositories.settings).access_token

    def _run_pass(self) -> PassSummary:
        with self._uow_factory() as uow:
            try:
                config = load_reconciliation_config(uow.repositories.settings)
            except ConfigurationError as exc:
                AuditLog(uow.repositories.audit_log, clock=self._clock).append(
                    AuditEventType.PASS_ERROR, {"error": str(exc)}
                )
                uow.commit()
                return PassSummary(fetch_error=str(exc))

            notifier: WelcomeNotifier | None = None
            if config.send_welcome_email and self._notifier_factory is not None:
                notifier = self._notifier_factory(config.welcome)
            return reconcile_sales(
                uow=uow,
                source=self._source,
                config=config,
                notifier=notifier,
                clock=self._clock,
            )


def _ensure_started() -> None:
    if not is_started():
        startup()


def build_service(
    *,
    source: SaleEventSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    notifier_factory: NotifierFactory | None = build_welcome_notifier,
) -> ReconciliationService:
    """Wire the service to the configured database and Gumroad."""

    if unit_of_work_factory is None:
        _ensure_started()
    return ReconciliationService(
        unit_of_work_factory=unit_of_work_factory or SqlAlchemyReconciliationUnitOfWork,
        source=source or GumroadClient(),
        notifier_factory=notifier_factory,
    )


def run_reconciliation_pass(service: ReconciliationService | None = None) -> PassSummary | None:
    """Run a single pass, as the operator's "check now" action does."""

    effective = service or build_service()
    log.info("Starting reconciliation pass")
    summary = effective.run_pass()
    if summary is not None and summary.fetch_error:
        log.warning("Reconciliation pass aborted: %s", summary.fetch_error)
    return summary


trigger_pass_now = run_reconciliation_pass


def serve(service: ReconciliationService | None = None) -> None:
    """Poll Gumroad until interrupted."""

    effective = service or build_service()
    scheduler = PassScheduler(effective.run_pass, interval=effective.poll_interval)
    scheduler.start()
    try:
        scheduler.wait()
    finally:
        scheduler.stop()


def verify_credential(
    credential: str | None = None,
    *,
    catalog: CatalogSource | None = None,
    service: ReconciliationService | None = None,
) -> str:
    """Return the Gumroad account name for ``credential`` (or the configured token)."""

    token = credential or (service or build_service()).access_token()
    if not token:
        raise ConfigurationError("Access token not set")
    return (catalog or GumroadClient()).verify_credential(token)


def list_products(
    credential: str | None = None,
    *,
    catalog: CatalogSource | None = None,
    service: ReconciliationService | None = None,
) -> list[Product]:
    token = credential or (service or build_service()).access_token()
    if not token:
        raise ConfigurationError("Access token not set")
    return list((catalog or GumroadClient()).fetch_products(token))
