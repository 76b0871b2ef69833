from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from group_expense_bot.db.models import Group
from group_expense_bot.services.ledger import (
    MemberBalance,
    SettlementPlan,
    compute_balances,
    suggest_settlements,
    to_decimal,
)
from group_expense_bot.services.transactions import list_transactions


@dataclass(frozen=True)
class GroupReport:
    group_id: int
    name: str
    members: list[str]
    total_expenses: Decimal
    transaction_count: int
    balances: list[MemberBalance]
    plan: SettlementPlan


async def build_group_report(session: AsyncSession, *, group: Group) -> GroupReport:
    # Recomputed from the current ledger snapshot on every call.
    transactions = await list_transactions(session, group_id=group.id)
    members = group.member_names
    balances = compute_balances(transactions, members)
    return GroupReport(
        group_id=group.id,
        name=group.name,
        members=members,
        total_expenses=to_decimal(group.total_expenses),
        transaction_count=len(transactions),
        balances=balances,
        plan=suggest_settlements(balances),
    )
