"""Bounded record of sales that already produced an account."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from gumsync.domain.model import LedgerDecision
from gumsync.domain.reconciliation.settings import LEDGER_CAPACITY

if TYPE_CHECKING:
    from gumsync.domain.ports import AccountRepository, LedgerRepository

log = getLogger(__name__)


class DedupLedger:
    """Suppresses re-provisioning of sales seen in earlier passes.

    Membership is only trusted while some account still links the sale. When
    the account has vanished (deleted by hand, for instance) the entry is
    evicted and the sale is handled again.
    """

    def __init__(
        self,
        entries: LedgerRepository,
        accounts: AccountRepository,
        *,
        capacity: int = LEDGER_CAPACITY,
    ) -> None:
        if capacity < 1:
            raise ValueError("Ledger capacity must be positive")
        self._entries = entries
        self._accounts = accounts
        self.capacity = capacity

    def should_process(self, sale_id: str, email: str) -> LedgerDecision:
        if not self._entries.contains(sale_id):
            return LedgerDecision.PROCESS
        if self._has_linked_account(sale_id, email):
            return LedgerDecision.SKIP
        log.info("Sale %s is recorded but its account is gone; reprocessing", sale_id)
        self._entries.remove(sale_id)
        return LedgerDecision.REPROCESS

    def record(self, sale_id: str) -> None:
        if self._entries.contains(sale_id):
            return
        self._entries.append(sale_id)
        evicted = self._entries.trim(self.capacity)
        if evicted:
            log.debug("Evicted %s oldest ledger entries", evicted)

    def _has_linked_account(self, sale_id: str, email: str) -> bool:
        email = email.strip().lower()
        account = self._accounts.get_by_email(email) if email else None
        if account is not None and account.provisioning is not None:
            if account.provisioning.links_sale(sale_id):
                return True
        return self._accounts.get_by_sale(sale_id) is not None
