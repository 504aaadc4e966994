"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import bcrypt
from sqlalchemy import String, and_, delete, func, insert, or_, select, type_coerce, update
from sqlalchemy.exc import SQLAlchemyError

from gumsync.adapters.sqlalchemy.mappings import (
    account_table,
    audit_log_entry_table,
    processed_sale_table,
    provisioning_record_table,
    setting_table,
)
from gumsync.common.clock import utcnow
from gumsync.domain.errors import PersistenceError
from gumsync.domain.model import Account, AuditLogEntry
from gumsync.domain.ports import (
    AccountRepository,
    AuditLogRepository,
    LedgerRepository,
    SettingsRepository,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy.engine import Result
    from sqlalchemy.orm import Session
    from sqlalchemy.sql import ColumnElement, Executable

    from gumsync.domain.ports import AccountFilter

SETTINGS_KEY = "reconciliation"


def hash_credential(credential: str) -> str:
    return bcrypt.hashpw(credential.encode("utf-8"), bcrypt.gensalt()).decode("ascii")


def verify_credential(credential: str, password_hash: str) -> bool:
    return bcrypt.checkpw(credential.encode("utf-8"), password_hash.encode("ascii"))


def _flush(session: Session) -> None:
    try:
        session.flush()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Database write failed: {exc}") from exc


def _as_text(column: ColumnElement[object]) -> ColumnElement[str]:
    return type_coerce(column, String)


class SqlAlchemyAccountRepository(AccountRepository):
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_email(self, email: str) -> Account | None:
        stmt = select(Account).where(account_table.c.email == email)
        return self.session.execute(stmt).unique().scalar_one_or_none()

    def get_by_sale(self, sale_id: str) -> Account | None:
        record = provisioning_record_table.c
        # linked_sale_ids is a JSON array; match the quoted id to avoid prefix hits.
        stmt = (
            select(Account)
            .join(provisioning_record_table, record.account_id == account_table.c.id)
            .where(
                or_(
                    record.origin_sale_id == sale_id,
                    _as_text(record.linked_sale_ids).contains(f'"{sale_id}"'),
                )
            )
            .limit(1)
        )
        return self.session.execute(stmt).unique().scalar_one_or_none()

    def username_exists(self, username: str) -> bool:
        stmt = select(account_table.c.id).where(account_table.c.username == username)
        return self.session.execute(stmt).first() is not None

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
            password_hash=hash_credential(credential),
            created_at=created_at,
        )
        self.session.add(account)
        _flush(self.session)
        return account

    def save(self, account: Account) -> None:
        self.session.add(account)
        _flush(self.session)

    def delete(self, account: Account) -> None:
        self.session.delete(account)
        _flush(self.session)

    def query_provisioned(
        self,
        filters: AccountFilter,
        *,
        offset: int,
        limit: int,
    ) -> tuple[Sequence[Account], int]:
        record = provisioning_record_table.c
        conditions: list[ColumnElement[bool]] = []
        if filters.email:
            conditions.append(account_table.c.email.icontains(filters.email))
        if filters.product:
            conditions.append(
                or_(
                    record.origin_product_id.icontains(filters.product),
                    record.origin_product_name.icontains(filters.product),
                    record.last_purchase_product.icontains(filters.product),
                )
            )
        if filters.sale_id:
            conditions.append(
                or_(
                    record.origin_sale_id.icontains(filters.sale_id),
                    _as_text(record.linked_sale_ids).icontains(filters.sale_id),
                )
            )
        if filters.created_from is not None:
            conditions.append(record.created_at >= filters.created_from)
        if filters.created_to is not None:
            conditions.append(record.created_at <= filters.created_to)
        if filters.role:
            conditions.append(
                _as_text(account_table.c.roles).contains(f'"{filters.role}"')
            )

        joined = account_table.join(
            provisioning_record_table, record.account_id == account_table.c.id
        )
        total = self.session.execute(
            select(func.count()).select_from(joined).where(*conditions)
        ).scalar_one()
        stmt = (
            select(Account)
            .join(provisioning_record_table, record.account_id == account_table.c.id)
            .where(*conditions)
            .order_by(record.created_at.desc(), account_table.c.email)
            .offset(offset)
            .limit(limit)
        )
        items = self.session.execute(stmt).unique().scalars().all()
        return items, total

    def clear_provisioning(self) -> int:
        try:
            result = self.session.execute(delete(provisioning_record_table))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Database write failed: {exc}") from exc
        self.session.expire_all()
        return _rowcount(result)


class SqlAlchemyLedgerRepository(LedgerRepository):
    """Sale ids ordered by insertion position."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def contains(self, sale_id: str) -> bool:
        stmt = select(processed_sale_table.c.position).where(
            processed_sale_table.c.sale_id == sale_id
        )
        return self.session.execute(stmt).first() is not None

    def append(self, sale_id: str) -> None:
        self._write(insert(processed_sale_table).values(sale_id=sale_id))

    def remove(self, sale_id: str) -> None:
        self._write(delete(processed_sale_table).where(processed_sale_table.c.sale_id == sale_id))

    def trim(self, keep: int) -> int:
        position = processed_sale_table.c.position
        oldest_kept = self.session.execute(
            select(position).order_by(position.desc()).offset(keep - 1).limit(1)
        ).scalar_one_or_none()
        if oldest_kept is None:
            return 0
        return self._write(delete(processed_sale_table).where(position < oldest_kept))

    def sale_ids(self) -> Sequence[str]:
        stmt = select(processed_sale_table.c.sale_id).order_by(processed_sale_table.c.position)
        return self.session.execute(stmt).scalars().all()

    def clear(self) -> int:
        return self._write(delete(processed_sale_table))

    def _write(self, stmt: Executable) -> int:
        try:
            result = self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Ledger write failed: {exc}") from exc
        return _rowcount(result)


class SqlAlchemyAuditLogRepository(AuditLogRepository):
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entry: AuditLogEntry) -> None:
        self.session.add(entry)
        _flush(self.session)

    def prune_older_than(self, cutoff: datetime) -> int:
        return self._delete(audit_log_entry_table.c.created_at < cutoff)

    def prune_beyond(self, limit: int) -> int:
        entry_id = audit_log_entry_table.c.id
        created_at = audit_log_entry_table.c.created_at
        oldest_kept = self.session.execute(
            select(entry_id, created_at)
            .order_by(created_at.desc(), entry_id.desc())
            .offset(limit - 1)
            .limit(1)
        ).first()
        if oldest_kept is None:
            return 0
        kept_id, kept_at = oldest_kept
        return self._delete(
            or_(created_at < kept_at, and_(created_at == kept_at, entry_id < kept_id))
        )

    def newest(self, *, offset: int, limit: int) -> Sequence[AuditLogEntry]:
        stmt = (
            select(AuditLogEntry)
            .order_by(audit_log_entry_table.c.created_at.desc(), audit_log_entry_table.c.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return self.session.execute(stmt).scalars().all()

    def count(self) -> int:
        return self.session.execute(
            select(func.count()).select_from(audit_log_entry_table)
        ).scalar_one()

    def clear(self) -> int:
        return self._delete(None)

    def _delete(self, condition: ColumnElement[bool] | None) -> int:
        stmt = delete(audit_log_entry_table)
        if condition is not None:
            stmt = stmt.where(condition)
        try:
            result = self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Audit log write failed: {exc}") from exc
        return _rowcount(result)


class SqlAlchemySettingsRepository(SettingsRepository):
    """Stores the reconciliation settings as a single JSON document."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def load(self) -> Mapping[str, object] | None:
        stmt = select(setting_table.c.document).where(setting_table.c.key == SETTINGS_KEY)
        return self.session.execute(stmt).scalar_one_or_none()

    def save(self, document: Mapping[str, object]) -> None:
        values = {"document": dict(document), "updated_at": utcnow()}
        exists = self.load() is not None
        stmt = (
            update(setting_table).where(setting_table.c.key == SETTINGS_KEY).values(**values)
            if exists
            else insert(setting_table).values(key=SETTINGS_KEY, **values)
        )
        try:
            self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Settings write failed: {exc}") from exc

    def clear(self) -> None:
        try:
            self.session.execute(delete(setting_table))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Settings write failed: {exc}") from exc


def _rowcount(result: Result[Any]) -> int:
    return max(getattr(result, "rowcount", 0) or 0, 0)
