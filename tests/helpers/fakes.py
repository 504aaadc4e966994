"""In-memory stand-ins for the reconciliation ports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from types import MappingProxyType
from typing import TYPE_CHECKING

from gumsync.domain.errors import PersistenceError, TransportError
from gumsync.domain.model import Account, SaleEvent
from gumsync.domain.ports import ReconciliationRepositories

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from types import TracebackType

    from gumsync.domain.model import AuditLogEntry
    from gumsync.domain.ports import AccountFilter

BASE_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_sale(
    sale_id: str = "sale-1",
    *,
    email: str = "jane.doe@example.com",
    product_id: str = "P1",
    product_name: str = "Course",
    **flags: object,
) -> SaleEvent:
    raw = {"id": sale_id, "email": email, "product_id": product_id, "product_name": product_name}
    raw.update({key: value for key, value in flags.items() if key != "created_at"})
    return SaleEvent(
        sale_id=sale_id,
        email=email,
        product_id=product_id,
        product_name=product_name,
        raw=MappingProxyType(raw),
        **flags,  # type: ignore[arg-type]
    )


class InMemoryAccountRepository:
    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.saves = 0

    def get_by_email(self, email: str) -> Account | None:
        return self.accounts.get(email)

    def get_by_sale(self, sale_id: str) -> Account | None:
        for account in self.accounts.values():
            if account.provisioning is not None and account.provisioning.links_sale(sale_id):
                return account
        return None

    def username_exists(self, username: str) -> bool:
        return any(account.username == username for account in self.accounts.values())

    def create(
        self,
        *,
        username: str,
        credential: str,
        email: str,
        display_name: str,
        created_at: datetime,
    ) -> Account:
        account = Account(
            username=username,
            email=email,
            display_name=display_name,
            password_hash=f"hashed:{credential}",
            created_at=created_at,
        )
        self.accounts[email] = account
        return account

    def add_existing(
        self,
        email: str,
        *,
        username: str | None = None,
        roles: Sequence[str] = (),
    ) -> Account:
        account = Account(username=username or email, email=email, roles=tuple(roles))
        self.accounts[email] = account
        return account

    def save(self, account: Account) -> None:
        self.saves += 1
        self.accounts[account.email] = account

    def delete(self, account: Account) -> None:
        self.accounts.pop(account.email, None)

    def query_provisioned(
        self,
        filters: AccountFilter,
        *,
        offset: int,
        limit: int,
    ) -> tuple[Sequence[Account], int]:
        matches = [
            account
            for account in self.accounts.values()
            if account.provisioning is not None
            and (not filters.email or filters.email.lower() in account.email)
            and (not filters.role or filters.role in account.roles)
        ]
        return matches[offset : offset + limit], len(matches)

    def clear_provisioning(self) -> int:
        cleared = 0
        for account in self.accounts.values():
            if account.provisioning is not None:
                account.provisioning = None
                cleared += 1
        return cleared


class InMemoryLedgerRepository:
    def __init__(self) -> None:
        self.entries: list[str] = []
        self.failing_appends = 0

    def contains(self, sale_id: str) -> bool:
        return sale_id in self.entries

    def append(self, sale_id: str) -> None:
        if self.failing_appends:
            self.failing_appends -= 1
            raise PersistenceError(f"Ledger write failed for {sale_id}")
        self.entries.append(sale_id)

    def remove(self, sale_id: str) -> None:
        if sale_id in self.entries:
            self.entries.remove(sale_id)

    def trim(self, keep: int) -> int:
        excess = max(len(self.entries) - keep, 0)
        del self.entries[:excess]
        return excess

    def sale_ids(self) -> Sequence[str]:
        return tuple(self.entries)

    def clear(self) -> int:
        removed = len(self.entries)
        self.entries.clear()
        return removed


class InMemoryAuditLogRepository:
    def __init__(self) -> None:
        self.entries: list[AuditLogEntry] = []

    def add(self, entry: AuditLogEntry) -> None:
        entry.id = len(self.entries) + 1
        self.entries.append(entry)

    def prune_older_than(self, cutoff: datetime) -> int:
        kept = [entry for entry in self.entries if entry.created_at >= cutoff]
        removed = len(self.entries) - len(kept)
        self.entries = kept
        return removed

    def prune_beyond(self, limit: int) -> int:
        removed = max(len(self.entries) - limit, 0)
        del self.entries[:removed]
        return removed

    def newest(self, *, offset: int, limit: int) -> Sequence[AuditLogEntry]:
        return list(reversed(self.entries))[offset : offset + limit]

    def count(self) -> int:
        return len(self.entries)

    def clear(self) -> int:
        removed = len(self.entries)
        self.entries.clear()
        return removed

    def types(self) -> list[str]:
        return [entry.event_type for entry in self.entries]

    def of_type(self, event_type: str) -> list[AuditLogEntry]:
        return [entry for entry in self.entries if entry.event_type == event_type]


class InMemorySettingsRepository:
    def __init__(self, document: Mapping[str, object] | None = None) -> None:
        self.document = dict(document) if document is not None else None

    def load(self) -> Mapping[str, object] | None:
        return self.document

    def save(self, document: Mapping[str, object]) -> None:
        self.document = dict(document)

    def clear(self) -> None:
        self.document = None


class FakeUnitOfWork:
    """Keeps its repositories across ``with`` blocks, like a shared database."""

    def __init__(self, settings: Mapping[str, object] | None = None) -> None:
        self.accounts = InMemoryAccountRepository()
        self.ledger = InMemoryLedgerRepository()
        self.audit_log = InMemoryAuditLogRepository()
        self.settings = InMemorySettingsRepository(settings)
        self._repositories = ReconciliationRepositories(
            accounts=self.accounts,
            ledger=self.ledger,
            audit_log=self.audit_log,
            settings=self.settings,
        )
        self.commits = 0
        self.rollbacks = 0

    @property
    def repositories(self) -> ReconciliationRepositories:
        return self._repositories

    def __enter__(self) -> FakeUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool:
        return False

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


@dataclass
class FakeSaleSource:
    """Returns the same batch on every fetch unless told to fail."""

    sales: list[SaleEvent] = field(default_factory=list[SaleEvent])
    error: str | None = None
    calls: list[tuple[str, int]] = field(default_factory=list[tuple[str, int]])

    def fetch_recent_sales(self, credential: str, limit: int) -> Sequence[SaleEvent]:
        self.calls.append((credential, limit))
        if self.error is not None:
            raise TransportError(self.error)
        return self.sales[:limit]


@dataclass
class RecordingNotifier:
    delivered: bool = True
    sent: list[tuple[str, str, str]] = field(default_factory=list[tuple[str, str, str]])

    def send_welcome(self, account: Account, credential: str, product_name: str) -> bool:
        self.sent.append((account.email, credential, product_name))
        return self.delivered
