from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from group_expense_bot.db.models import Group, Transaction, TransactionParticipant, TransactionType
from group_expense_bot.services.errors import InvalidTransaction, TransactionNotFound
from group_expense_bot.services.ledger import LedgerTransaction, to_decimal

logger = logging.getLogger(__name__)

MAX_AMOUNT = Decimal("9999999999.99")
CENT = Decimal("0.01")


def validate_transaction(
    *,
    type: TransactionType,
    amount,
    paid_by: str,
    split_between: Iterable[str],
    members: Sequence[str],
) -> tuple[Decimal, tuple[str, ...]]:
    """
    Single validation step in front of the ledger.

    Returns the normalized amount and the de-duplicated split list. Every
    check the balance computation relies on happens here, so a stored ledger
    is always computable.
    """
    try:
        amt = to_decimal(amount)
    except (InvalidOperation, ValueError):
        raise InvalidTransaction(f"Not a valid amount: {amount}.") from None
    if not amt.is_finite() or amt <= 0:
        raise InvalidTransaction("Amount must be a positive number.")
    if amt > MAX_AMOUNT:
        raise InvalidTransaction("Amount is too large.")
    if amt != amt.quantize(CENT):
        raise InvalidTransaction("Amount can have at most two decimal places.")

    split: list[str] = []
    for m in split_between:
        if m not in split:
            split.append(m)
    if not split:
        raise InvalidTransaction("Split list must not be empty.")

    roster = set(members)
    if paid_by not in roster:
        raise InvalidTransaction(f"{paid_by} is not a member of this group.")
    strangers = [m for m in split if m not in roster]
    if strangers:
        raise InvalidTransaction(f"Not group members: {', '.join(strangers)}.")

    if type == TransactionType.SETTLEMENT:
        if len(split) != 1:
            raise InvalidTransaction("A settlement goes to exactly one member.")
        if split[0] == paid_by:
            raise InvalidTransaction("Payer and receiver must be different members.")

    return amt.quantize(CENT), tuple(split)


def _adjust_total(group: Group, delta: Decimal) -> None:
    # total_expenses shares the Numeric(12, 2) column limit with single amounts.
    total = to_decimal(group.total_expenses) + delta
    if total > MAX_AMOUNT:
        raise InvalidTransaction("Group total would exceed the largest supported amount.")
    group.total_expenses = total


def to_ledger_transaction(tx: Transaction) -> LedgerTransaction:
    return LedgerTransaction(
        id=tx.id,
        group_id=tx.group_id,
        description=tx.description,
        amount=to_decimal(tx.amount),
        paid_by=tx.paid_by,
        split_between=tx.split_between,
        type=tx.type,
        created_at=tx.created_at,
    )


async def create_transaction(
    session: AsyncSession,
    *,
    group: Group,
    type: TransactionType,
    amount,
    paid_by: str,
    split_between: Iterable[str],
    description: Optional[str] = None,
) -> Transaction:
    amt, split = validate_transaction(
        type=type,
        amount=amount,
        paid_by=paid_by,
        split_between=split_between,
        members=group.member_names,
    )
    _adjust_total(group, amt)
    tx = Transaction(
        group_id=group.id,
        type=type,
        amount=amt,
        paid_by=paid_by,
        description=(description or "").strip(),
        participants=[TransactionParticipant(member_name=m) for m in split],
    )
    session.add(tx)
    await session.flush()
    logger.info("Added %s id=%s group_id=%s amount=%s", type.value, tx.id, group.id, amt)
    return tx


async def get_transaction(session: AsyncSession, *, group_id: int, transaction_id: int) -> Optional[Transaction]:
    return await session.scalar(
        select(Transaction).where(Transaction.group_id == group_id, Transaction.id == transaction_id)
    )


async def update_transaction(
    session: AsyncSession,
    *,
    group: Group,
    transaction_id: int,
    amount,
    paid_by: str,
    split_between: Iterable[str],
    description: Optional[str] = None,
) -> Transaction:
    tx = await get_transaction(session, group_id=group.id, transaction_id=transaction_id)
    if tx is None:
        raise TransactionNotFound(transaction_id)
    amt, split = validate_transaction(
        type=tx.type,
        amount=amount,
        paid_by=paid_by,
        split_between=split_between,
        members=group.member_names,
    )

    old_amount = to_decimal(tx.amount)
    _adjust_total(group, amt - old_amount)
    existing = {p.member_name: p for p in tx.participants}
    tx.participants = [existing.get(m) or TransactionParticipant(member_name=m) for m in split]
    tx.amount = amt
    tx.paid_by = paid_by
    if description is not None:
        tx.description = description.strip()
    await session.flush()
    logger.info("Updated %s id=%s group_id=%s amount=%s->%s", tx.type.value, tx.id, group.id, old_amount, amt)
    return tx


async def delete_transaction(session: AsyncSession, *, group: Group, transaction_id: int) -> None:
    tx = await get_transaction(session, group_id=group.id, transaction_id=transaction_id)
    if tx is None:
        raise TransactionNotFound(transaction_id)
    _adjust_total(group, -to_decimal(tx.amount))
    await session.delete(tx)
    await session.flush()
    logger.info("Deleted %s id=%s group_id=%s", tx.type.value, transaction_id, group.id)


async def list_transactions(session: AsyncSession, *, group_id: int) -> list[LedgerTransaction]:
    res = await session.scalars(
        select(Transaction)
        .where(Transaction.group_id == group_id)
        .order_by(Transaction.created_at.asc(), Transaction.id.asc())
    )
    return [to_ledger_transaction(tx) for tx in res]


async def get_last_transactions(session: AsyncSession, *, group_id: int, limit: int = 5) -> list[Transaction]:
    res = await session.scalars(
        select(Transaction)
        .where(Transaction.group_id == group_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
    )
    return list(res)
