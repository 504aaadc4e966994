"""Ports for persisting accounts and reconciliation bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from gumsync.domain.model import Account, AuditLogEntry


@dataclass(frozen=True, slots=True)
class AccountFilter:
    """Substring and range filters over provisioned accounts."""

    email: str | None = None
    product: str | None = None
    sale_id: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    role: str | None = None


@runtime_checkable
class AccountRepository(Protocol):
    """Identity store contract.

    Writes are visible to subsequent reads in the same unit of work.
    """

    def get_by_email(self, email: str) -> Account | None: ...

    def get_by_sale(self, sale_id: str) -> Account | None: ...

    def username_exists(self, username: str) -> bool: ...

    def create(
        self,
        *,
        username: str,
        credential: str,
        email: str,
        display_name: str,
        created_at: datetime,
    ) -> Account: ...

    def save(self, account: Account) -> None: ...

    def delete(self, account: Account) -> None: ...

    def query_provisioned(
        self,
        filters: AccountFilter,
        *,
        offset: int,
        limit: int,
    ) -> tuple[Sequence[Account], int]: ...

    def clear_provisioning(self) -> int: ...


@runtime_checkable
class LedgerRepository(Protocol):
    """Ordered set of handled sale ids, oldest first."""

    def contains(self, sale_id: str) -> bool: ...

    def append(self, sale_id: str) -> None: ...

    def remove(self, sale_id: str) -> None: ...

    def trim(self, keep: int) -> int: ...

    def sale_ids(self) -> Sequence[str]: ...

    def clear(self) -> int: ...


@runtime_checkable
class AuditLogRepository(Protocol):
    def add(self, entry: AuditLogEntry) -> None: ...

    def prune_older_than(self, cutoff: datetime) -> int: ...

    def prune_beyond(self, limit: int) -> int: ...

    def newest(self, *, offset: int, limit: int) -> Sequence[AuditLogEntry]: ...

    def count(self) -> int: ...

    def clear(self) -> int: ...


@runtime_checkable
class SettingsRepository(Protocol):
    def load(self) -> Mapping[str, object] | None: ...

    def save(self, document: Mapping[str, object]) -> None: ...

    def clear(self) -> None: ...
