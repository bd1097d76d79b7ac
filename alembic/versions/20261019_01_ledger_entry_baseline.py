"""Ledger entry and settlement record baseline

Revision ID: 20261019_01
Revises: None
Create Date: 2026-10-19
"""
# pylint: disable=no-member,invalid-name,wrong-import-order

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "ledger_entry",
        sa.Column("entry_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("group_id", sa.Text(), nullable=False),
        sa.Column("source_account_id", sa.Text(), nullable=False),
        sa.Column("dest_account_id", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(20, 4), nullable=False),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("related_entry_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("settlement_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("clock_timestamp()")),
        sa.ForeignKeyConstraint(["related_entry_id"], ["ledger_entry.entry_id"], ondelete="RESTRICT"),
        sa.CheckConstraint("amount > 0", name="ck_ledger_entry_amount_positive"),
        sa.CheckConstraint("source_account_id <> dest_account_id", name="ck_ledger_entry_distinct_accounts"),
        sa.CheckConstraint(
            "kind in ('issuance', 'transfer', 'loan', 'win', 'buy_in', 'cash_out', 'return')",
            name="ck_ledger_entry_kind",
        ),
        sa.CheckConstraint("related_entry_id is null or kind = 'return'", name="ck_ledger_entry_related_only_on_return"),
        sa.CheckConstraint("settlement_id is null or kind = 'transfer'", name="ck_ledger_entry_settlement_only_on_transfer"),
    )
    op.create_index(
        "ix_ledger_entry_group_created_entry",
        "ledger_entry",
        ["group_id", "created_at_utc", "entry_id"],
    )
    op.create_index("ix_ledger_entry_settlement_id", "ledger_entry", ["settlement_id"])

    op.create_table(
        "settlement_record",
        sa.Column("settlement_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("group_id", sa.Text(), nullable=False),
        sa.Column("initiator_account_id", sa.Text(), nullable=True),
        sa.Column("transfer_count", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(20, 4), nullable=False),
        sa.Column("raw_transaction_count", sa.Integer(), nullable=False),
        sa.Column("reduction_rate", sa.Numeric(6, 4), nullable=False),
        sa.Column("net_amounts", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("transfer_count >= 1", name="ck_settlement_record_transfer_count_positive"),
        sa.CheckConstraint("raw_transaction_count >= 0", name="ck_settlement_record_raw_count_non_negative"),
        sa.CheckConstraint("reduction_rate >= 0 and reduction_rate <= 1", name="ck_settlement_record_reduction_rate_range"),
    )
    op.create_index("ix_settlement_record_group_created", "settlement_record", ["group_id", "created_at_utc"])


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index("ix_settlement_record_group_created", table_name="settlement_record")
    op.drop_table("settlement_record")

    op.drop_index("ix_ledger_entry_settlement_id", table_name="ledger_entry")
    op.drop_index("ix_ledger_entry_group_created_entry", table_name="ledger_entry")
    op.drop_table("ledger_entry")
