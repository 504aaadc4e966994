"""SQLAlchemy mapping metadata for the gumsync domain model."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers, relationship

from gumsync.domain.model import (
    Account,
    AuditLogEntry,
    ProvisioningRecord,
    PurchaseRecord,
    SubscriptionStatus,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class StringTupleType(TypeDecorator[tuple[str, ...]]):
    """Ordered strings stored as a JSON array; NULL loads as an empty tuple."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: tuple[str, ...] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(list(value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> tuple[str, ...]:
        _ = dialect
        return _load_strings(value) or ()


class OptionalStringTupleType(TypeDecorator[tuple[str, ...] | None]):
    """Like :class:`StringTupleType` but NULL round-trips as ``None``."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: tuple[str, ...] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(list(value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> tuple[str, ...] | None:
        _ = dialect
        return _load_strings(value)


class JsonObjectType(TypeDecorator[dict[str, object]]):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: dict[str, object] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(value, default=str, sort_keys=True)

    def process_result_value(self, value: str | None, dialect: Dialect) -> dict[str, object]:
        _ = dialect
        if value is None:
            return {}
        loaded = json.loads(value)
        if not isinstance(loaded, dict):
            return {}
        return cast(dict[str, object], loaded)


class PurchaseHistoryType(TypeDecorator[tuple[PurchaseRecord, ...]]):
    impl = Text
    cache_ok = True

    def process_bind_param(
        self, value: tuple[PurchaseRecord, ...] | None, dialect: Dialect
    ) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(
            [
                {
                    "purchased_at": record.purchased_at.astimezone(UTC).isoformat(),
                    "product_id": record.product_id,
                    "product_name": record.product_name,
                    "sale_id": record.sale_id,
                    "roles_added": list(record.roles_added),
                }
                for record in value
            ]
        )

    def process_result_value(
        self, value: str | None, dialect: Dialect
    ) -> tuple[PurchaseRecord, ...]:
        _ = dialect
        if value is None:
            return ()
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return ()
        items = cast(list[dict[str, Any]], loaded)
        return tuple(
            PurchaseRecord(
                purchased_at=datetime.fromisoformat(item["purchased_at"]),
                product_id=str(item.get("product_id", "")),
                product_name=str(item.get("product_name", "")),
                sale_id=str(item.get("sale_id", "")),
                roles_added=tuple(str(role) for role in item.get("roles_added", ())),
            )
            for item in items
        )


def _load_strings(value: str | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    loaded = json.loads(value)
    if not isinstance(loaded, list):
        return ()
    items = cast(list[Any], loaded)
    return tuple(str(item) for item in items)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Identity store --------------------------------------------------------------

account_table = Table(
    "account",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("display_name", String(255), nullable=False, default=""),
    Column("password_hash", String(255), nullable=False, default=""),
    Column("roles", StringTupleType, nullable=False),
    Column("created_at", UTCDateTime, nullable=False),
)

provisioning_record_table = Table(
    "provisioning_record",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "account_id",
        UUIDColumnType,
        ForeignKey("account.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("origin_sale_id", String(64), nullable=False, index=True),
    Column("origin_product_id", String(64), nullable=False, default=""),
    Column("origin_product_name", String(255), nullable=False, default=""),
    Column("created_at", UTCDateTime, nullable=False, index=True),
    Column("raw_payload", JsonObjectType, nullable=False),
    Column("assigned_roles", OptionalStringTupleType, nullable=True),
    Column("linked_sale_ids", StringTupleType, nullable=False),
    Column("purchase_history", PurchaseHistoryType, nullable=False),
    Column("welcome_sent", Boolean, nullable=True),
    Column("welcome_sent_at", UTCDateTime, nullable=True),
    Column("refunded", Boolean, nullable=False, default=False),
    Column("refunded_at", UTCDateTime, nullable=True),
    Column("refunded_sale_ids", StringTupleType, nullable=False, server_default="[]"),
    Column("subscription_id", String(64), nullable=True),
    Column("subscription_status", Enum(SubscriptionStatus, native_enum=False), nullable=True),
    Column("subscription_ended_at", UTCDateTime, nullable=True),
    Column("ended_subscription_ids", StringTupleType, nullable=False, server_default="[]"),
    Column("last_purchase_at", UTCDateTime, nullable=True),
    Column("last_purchase_product", String(255), nullable=True),
    Column("last_sale_id", String(64), nullable=True),
)

# Reconciliation bookkeeping --------------------------------------------------

processed_sale_table = Table(
    "processed_sale",
    mapper_registry.metadata,
    Column("position", Integer, primary_key=True, autoincrement=True),
    Column("sale_id", String(64), nullable=False, unique=True),
)

audit_log_entry_table = Table(
    "audit_log_entry",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("event_type", String(64), nullable=False),
    Column("created_at", UTCDateTime, nullable=False, index=True),
    Column("payload", JsonObjectType, nullable=False),
)

setting_table = Table(
    "setting",
    mapper_registry.metadata,
    Column("key", String(64), primary_key=True),
    Column("document", JsonObjectType, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        ProvisioningRecord,
        provisioning_record_table,
    )

    mapper_registry.map_imperatively(
        Account,
        account_table,
        properties={
            "provisioning": relationship(
                ProvisioningRecord,
                uselist=False,
                lazy="joined",
                cascade="all, delete-orphan",
            ),
        },
    )

    mapper_registry.map_imperatively(
        AuditLogEntry,
        audit_log_entry_table,
    )

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
