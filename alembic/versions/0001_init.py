"""init tables

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


UTC_NOW = sa.text("now()")


def upgrade() -> None:
    op.create_table(
        "chats",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("tg_chat_id", sa.BigInteger(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.UniqueConstraint("tg_chat_id", name="uq_chats_tg_chat_id"),
    )
    op.create_index("ix_chats_tg_chat_id", "chats", ["tg_chat_id"])

    op.create_table(
        "groups",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("chat_id", sa.BigInteger(), sa.ForeignKey("chats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("total_expenses", sa.Numeric(12, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("dashboard_message_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
    )
    op.create_index("ix_groups_chat_id", "groups", ["chat_id"])

    op.create_table(
        "group_members",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("group_id", sa.BigInteger(), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.UniqueConstraint("group_id", "name", name="uq_group_members_group_name"),
    )
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])

    # Created explicitly so table DDL does not emit CREATE TYPE a second time.
    tx_type = postgresql.ENUM("expense", "settlement", name="transaction_type", create_type=False)
    tx_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("group_id", sa.BigInteger(), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", tx_type, nullable=False),
        sa.Column("description", sa.Text(), server_default="", nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("paid_by", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_group_id", "transactions", ["group_id"])
    op.create_index("ix_transactions_group_created_at", "transactions", ["group_id", "created_at"])

    op.create_table(
        "transaction_participants",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "transaction_id",
            sa.BigInteger(),
            sa.ForeignKey("transactions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("member_name", sa.String(length=64), nullable=False),
        sa.UniqueConstraint("transaction_id", "member_name", name="uq_tx_participant"),
    )
    op.create_index("ix_tx_participants_tx_id", "transaction_participants", ["transaction_id"])


def downgrade() -> None:
    op.drop_index("ix_tx_participants_tx_id", table_name="transaction_participants")
    op.drop_table("transaction_participants")

    op.drop_index("ix_transactions_group_created_at", table_name="transactions")
    op.drop_index("ix_transactions_group_id", table_name="transactions")
    op.drop_table("transactions")

    tx_type = postgresql.ENUM("expense", "settlement", name="transaction_type", create_type=False)
    tx_type.drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_group_members_group_id", table_name="group_members")
    op.drop_table("group_members")

    op.drop_index("ix_groups_chat_id", table_name="groups")
    op.drop_table("groups")

    op.drop_index("ix_chats_tg_chat_id", table_name="chats")
    op.drop_table("chats")
