from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


UTC_NOW = sa.func.now()

# SQLite only autoincrements INTEGER PRIMARY KEY.
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


class Chat(Base):
    __tablename__ = "chats"
    __table_args__ = (
        UniqueConstraint("tg_chat_id", name="uq_chats_tg_chat_id"),
        Index("ix_chats_tg_chat_id", "tg_chat_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    # Telegram chat id (group id) is a signed 64-bit integer.
    tg_chat_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)

    groups: Mapped[list[Group]] = relationship(back_populates="chat", cascade="all, delete-orphan")


class Group(Base):
    __tablename__ = "groups"
    __table_args__ = (Index("ix_groups_chat_id", "chat_id"),)
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("chats.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Running sum of transaction amounts, adjusted on every ledger write.
    total_expenses: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default=sa.text("0"))
    dashboard_message_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)

    chat: Mapped[Chat] = relationship(back_populates="groups")
    members: Mapped[list[GroupMember]] = relationship(
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="GroupMember.position",
        lazy="selectin",
    )
    transactions: Mapped[list[Transaction]] = relationship(
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def member_names(self) -> list[str]:
        return [m.name for m in self.members]


class GroupMember(Base):
    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "name", name="uq_group_members_group_name"),
        Index("ix_group_members_group_id", "group_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    group: Mapped[Group] = relationship(back_populates="members")


class TransactionType(str, enum.Enum):
    EXPENSE = "expense"
    SETTLEMENT = "settlement"


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_group_id", "group_id"),
        Index("ix_transactions_group_created_at", "group_id", "created_at"),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, name="transaction_type", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # Members are referenced by name, like the roster.
    paid_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)

    group: Mapped[Group] = relationship(back_populates="transactions")

    participants: Mapped[list[TransactionParticipant]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionParticipant.id",
        lazy="selectin",
    )

    @property
    def split_between(self) -> tuple[str, ...]:
        return tuple(p.member_name for p in self.participants)


class TransactionParticipant(Base):
    __tablename__ = "transaction_participants"
    __table_args__ = (
        UniqueConstraint("transaction_id", "member_name", name="uq_tx_participant"),
        Index("ix_tx_participants_tx_id", "transaction_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    transaction_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
    )
    member_name: Mapped[str] = mapped_column(String(64), nullable=False)

    transaction: Mapped[Transaction] = relationship(back_populates="participants")
