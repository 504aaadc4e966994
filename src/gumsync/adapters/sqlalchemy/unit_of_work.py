"""Database lifecycle and the unit of work wrapped around reconciliation work."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from gumsync.adapters.sqlalchemy.mappings import start_mappers
from gumsync.adapters.sqlalchemy.migrations import upgrade_head
from gumsync.adapters.sqlalchemy.repositories import (
    SqlAlchemyAccountRepository,
    SqlAlchemyAuditLogRepository,
    SqlAlchemyLedgerRepository,
    SqlAlchemySettingsRepository,
)
from gumsync.common.storage import get_database_uri
from gumsync.domain.errors import PersistenceError
from gumsync.domain.ports import ReconciliationRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine
    from sqlalchemy.engine.interfaces import DBAPIConnection
    from sqlalchemy.pool import ConnectionPoolEntry

log = getLogger(__name__)

SQLITE_BUSY_TIMEOUT_MS = 5000

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


class StartupError(RuntimeError):
    """Raised when the database is used before :func:`startup` or configured twice."""


def _apply_sqlite_pragmas(
    dbapi_connection: DBAPIConnection, _connection_record: ConnectionPoolEntry
) -> None:
    # The scheduler and operator commands may open the same file concurrently.
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
    finally:
        cursor.close()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> Engine:
    """Open the database, migrate it to the latest schema and map the domain model.

    Call once per process. ``force=True`` replaces an engine configured earlier,
    which tests use to point each case at a fresh in-memory database.
    """

    global _engine, _session_factory  # noqa: PLW0603

    if _engine is not None and not force:
        raise StartupError("Database already initialised. Pass force=True to reconfigure.")

    resolved = engine or create_engine(database_uri or get_database_uri(), future=True)
    if resolved.dialect.name == "sqlite" and not event.contains(
        resolved, "connect", _apply_sqlite_pragmas
    ):
        event.listen(resolved, "connect", _apply_sqlite_pragmas)

    start_mappers()
    upgrade_head(engine=resolved)
    _engine = resolved
    _session_factory = sessionmaker(bind=resolved, expire_on_commit=False)
    log.debug("Database ready at %s", resolved.url.render_as_string(hide_password=True))
    return resolved


def configured_engine() -> Engine | None:
    return _engine


def is_started() -> bool:
    return _engine is not None


def shutdown() -> None:
    """Dispose the engine; :func:`startup` must run again before the next unit of work."""

    global _engine, _session_factory  # noqa: PLW0603

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


class SqlAlchemyReconciliationUnitOfWork:
    """One database transaction over the account, ledger, audit and settings tables.

    Leaving the ``with`` block after an exception rolls back; nothing is ever
    committed implicitly.
    """

    def __init__(self) -> None:
        if _session_factory is None:
            raise StartupError(
                "Database not initialised. Call "
                "gumsync.adapters.sqlalchemy.unit_of_work.startup() first."
            )
        self._session_factory = _session_factory
        self._session: Session | None = None
        self._repositories: ReconciliationRepositories | None = None

    def __enter__(self) -> SqlAlchemyReconciliationUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        session = self._session_factory()
        self._session = session
        self._repositories = ReconciliationRepositories(
            accounts=SqlAlchemyAccountRepository(session),
            ledger=SqlAlchemyLedgerRepository(session),
            audit_log=SqlAlchemyAuditLogRepository(session),
            settings=SqlAlchemySettingsRepository(session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self._open_session()
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def repositories(self) -> ReconciliationRepositories:
        if self._repositories is None:
            raise StartupError("Repositories are only available inside the 'with' block")
        return self._repositories

    def commit(self) -> None:
        try:
            self._open_session().commit()
        except SQLAlchemyError as exc:
            self._open_session().rollback()
            raise PersistenceError(f"Commit failed: {exc}") from exc

    def rollback(self) -> None:
        self._open_session().rollback()

    def _open_session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work is not open")
        return self._session


if TYPE_CHECKING:
    from gumsync.domain.ports import ReconciliationUnitOfWork

    _uow_check: ReconciliationUnitOfWork = SqlAlchemyReconciliationUnitOfWork()
