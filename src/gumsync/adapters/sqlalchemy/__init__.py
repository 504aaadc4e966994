"""SQLAlchemy adapter package for gumsync."""

from __future__ import annotations

from .mappings import (
    create_all_tables,
    mapper_registry,
    start_mappers,
)
from .repositories import (
    SqlAlchemyAccountRepository,
    SqlAlchemyAuditLogRepository,
    SqlAlchemyLedgerRepository,
    SqlAlchemySettingsRepository,
)
from .unit_of_work import (
    SqlAlchemyReconciliationUnitOfWork,
    StartupError,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyAccountRepository",
    "SqlAlchemyAuditLogRepository",
    "SqlAlchemyLedgerRepository",
    "SqlAlchemyReconciliationUnitOfWork",
    "SqlAlchemySettingsRepository",
    "StartupError",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "start_mappers",
]
