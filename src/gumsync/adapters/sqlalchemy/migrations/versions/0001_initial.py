"""Initial schema: accounts, provisioning records, ledger, audit log, settings.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from gumsync.adapters.sqlalchemy.mappings import (
    JsonObjectType,
    OptionalStringTupleType,
    PurchaseHistoryType,
    StringTupleType,
    UTCDateTime,
)

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "account",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("roles", StringTupleType(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_account")),
        sa.UniqueConstraint("email", name=op.f("uq_account_email")),
        sa.UniqueConstraint("username", name=op.f("uq_account_username")),
    )
    op.create_table(
        "provisioning_record",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("origin_sale_id", sa.String(length=64), nullable=False),
        sa.Column("origin_product_id", sa.String(length=64), nullable=False),
        sa.Column("origin_product_name", sa.String(length=255), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("raw_payload", JsonObjectType(), nullable=False),
        sa.Column("assigned_roles", OptionalStringTupleType(), nullable=True),
        sa.Column("linked_sale_ids", StringTupleType(), nullable=False),
        sa.Column("purchase_history", PurchaseHistoryType(), nullable=False),
        sa.Column("welcome_sent", sa.Boolean(), nullable=True),
        sa.Column("welcome_sent_at", UTCDateTime(), nullable=True),
        sa.Column("refunded", sa.Boolean(), nullable=False),
        sa.Column("refunded_at", UTCDateTime(), nullable=True),
        sa.Column("subscription_id", sa.String(length=64), nullable=True),
        sa.Column(
            "subscription_status",
            sa.Enum("ACTIVE", "CANCELLED", name="subscriptionstatus", native_enum=False),
            nullable=True,
        ),
        sa.Column("subscription_ended_at", UTCDateTime(), nullable=True),
        sa.Column("last_purchase_at", UTCDateTime(), nullable=True),
        sa.Column("last_purchase_product", sa.String(length=255), nullable=True),
        sa.Column("last_sale_id", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["account.id"],
            name=op.f("fk_provisioning_record_account_id_account"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_provisioning_record")),
        sa.UniqueConstraint("account_id", name=op.f("uq_provisioning_record_account_id")),
    )
    op.create_index(
        op.f("ix_provisioning_record_origin_sale_id"), "provisioning_record", ["origin_sale_id"]
    )
    op.create_index(
        op.f("ix_provisioning_record_created_at"), "provisioning_record", ["created_at"]
    )

    op.create_table(
        "processed_sale",
        sa.Column("position", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("sale_id", sa.String(length=64), nullable=False),
        sa.PrimaryKeyConstraint("position", name=op.f("pk_processed_sale")),
        sa.UniqueConstraint("sale_id", name=op.f("uq_processed_sale_sale_id")),
    )
    op.create_table(
        "audit_log_entry",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("payload", JsonObjectType(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_audit_log_entry")),
    )
    op.create_index(op.f("ix_audit_log_entry_created_at"), "audit_log_entry", ["created_at"])

    op.create_table(
        "setting",
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("document", JsonObjectType(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("key", name=op.f("pk_setting")),
    )


def downgrade() -> None:
    op.drop_table("setting")
    op.drop_index(op.f("ix_audit_log_entry_created_at"), table_name="audit_log_entry")
    op.drop_table("audit_log_entry")
    op.drop_table("processed_sale")
    op.drop_index(op.f("ix_provisioning_record_created_at"), table_name="provisioning_record")
    op.drop_index(
        op.f("ix_provisioning_record_origin_sale_id"), table_name="provisioning_record"
    )
    op.drop_table("provisioning_record")
    op.drop_table("account")
