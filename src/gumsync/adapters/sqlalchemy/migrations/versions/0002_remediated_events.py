"""Remember which refunded sales and ended subscriptions were remediated.

Revision ID: 0002_remediated_events
Revises: 0001_initial
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from gumsync.adapters.sqlalchemy.mappings import StringTupleType

revision = "0002_remediated_events"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("provisioning_record") as batch_op:
        batch_op.add_column(
            sa.Column("refunded_sale_ids", StringTupleType(), nullable=False, server_default="[]")
        )
        batch_op.add_column(
            sa.Column(
                "ended_subscription_ids", StringTupleType(), nullable=False, server_default="[]"
            )
        )


def downgrade() -> None:
    with op.batch_alter_table("provisioning_record") as batch_op:
        batch_op.drop_column("ended_subscription_ids")
        batch_op.drop_column("refunded_sale_ids")
