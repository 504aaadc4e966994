"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import CatalogSource, SaleEventSource
from .notification import WelcomeNotifier
from .persistence import (
    AccountFilter,
    AccountRepository,
    AuditLogRepository,
    LedgerRepository,
    SettingsRepository,
)
from .unit_of_work import (
    ReconciliationRepositories,
    ReconciliationUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "AccountFilter",
    "AccountRepository",
    "AuditLogRepository",
    "CatalogSource",
    "LedgerRepository",
    "ReconciliationRepositories",
    "ReconciliationUnitOfWork",
    "RepositoryCollection",
    "SaleEventSource",
    "SettingsRepository",
    "UnitOfWork",
    "WelcomeNotifier",
]
