from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from group_expense_bot.db.models import TransactionType
from group_expense_bot.services.errors import InvalidTransaction, UnbalancedLedger

logger = logging.getLogger(__name__)

# Remaining balances below this are considered settled.
EPSILON = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))


@dataclass(frozen=True)
class LedgerTransaction:
    id: Optional[int]
    group_id: Optional[int]
    description: str
    amount: Decimal
    paid_by: str
    split_between: tuple[str, ...]
    type: TransactionType = TransactionType.EXPENSE
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class MemberBalance:
    member: str
    paid: Decimal
    owes: Decimal

    @property
    def net_balance(self) -> Decimal:
        # positive is owed money, negative owes money
        return self.paid - self.owes


@dataclass(frozen=True)
class Transfer:
    from_member: str  # debtor
    to_member: str  # creditor
    amount: Decimal


@dataclass(frozen=True)
class Residual:
    member: str
    remaining: Decimal  # signed like net_balance


@dataclass(frozen=True)
class SettlementPlan:
    transfers: list[Transfer]
    residuals: list[Residual] = field(default_factory=list)
    # Sum of the input net balances; zero for a consistent ledger.
    imbalance: Decimal = ZERO

    @property
    def is_balanced(self) -> bool:
        return abs(self.imbalance) < EPSILON

    @property
    def unbalanced(self) -> Optional[UnbalancedLedger]:
        if self.is_balanced:
            return None
        debt = sum((-r.remaining for r in self.residuals if r.remaining < 0), ZERO)
        credit = sum((r.remaining for r in self.residuals if r.remaining > 0), ZERO)
        return UnbalancedLedger(debt, credit)

    def raise_if_unbalanced(self) -> None:
        err = self.unbalanced
        if err is not None:
            raise err


def compute_balances(transactions: Iterable[LedgerTransaction], members: Sequence[str]) -> list[MemberBalance]:
    """
    Net position of every roster member over the whole ledger.

    paid: sum of amounts the member fronted.
    owes: equal share of every transaction the member is split into.
          A settlement has a single recipient who therefore "owes" the full
          amount, which cancels the debt it pays off.

    Output follows roster order. Raises InvalidTransaction for entries that
    could only produce NaN/Infinity or silently lose money.
    """
    roster = list(members)
    known = set(roster)
    paid: dict[str, Decimal] = {m: ZERO for m in roster}
    owes: dict[str, Decimal] = {m: ZERO for m in roster}

    for tx in transactions:
        amount = to_decimal(tx.amount)
        split = list(tx.split_between)
        if amount <= 0:
            raise InvalidTransaction(f"Amount must be positive, got {amount}.", transaction_id=tx.id)
        if not split:
            raise InvalidTransaction("Transaction must be split between at least one member.", transaction_id=tx.id)
        if tx.paid_by not in known:
            raise InvalidTransaction(f"{tx.paid_by} is not a member of this group.", transaction_id=tx.id)
        strangers = [m for m in split if m not in known]
        if strangers:
            raise InvalidTransaction(f"Not group members: {', '.join(strangers)}.", transaction_id=tx.id)

        paid[tx.paid_by] += amount
        share = amount / len(split)
        for m in split:
            owes[m] += share

    return [MemberBalance(member=m, paid=paid[m], owes=owes[m]) for m in roster]


def suggest_settlements(balances: Sequence[MemberBalance]) -> SettlementPlan:
    """
    Greedy settle-up: the largest debtor pays the largest creditor until one
    side is exhausted.

    Not an exact minimum-transfer solver; it keeps the number of partial
    matches low in the common case. Ties keep the input order.

    Sub-cent remainders are left behind when a pointer advances. They only
    count as a problem when the input balances themselves do not sum to zero.
    """
    debtors: list[list] = []  # [member, remaining_to_pay, position]
    creditors: list[list] = []  # [member, remaining_to_receive, position]
    imbalance = ZERO
    for pos, b in enumerate(balances):
        net = b.net_balance
        imbalance += net
        if net < 0:
            debtors.append([b.member, -net, pos])
        elif net > 0:
            creditors.append([b.member, net, pos])

    debtors.sort(key=lambda x: (-x[1], x[2]))
    creditors.sort(key=lambda x: (-x[1], x[2]))

    out: list[Transfer] = []
    i = 0
    j = 0
    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]
        amount = min(debtor[1], creditor[1])
        if amount > 0:
            out.append(Transfer(from_member=debtor[0], to_member=creditor[0], amount=amount))
        debtor[1] -= amount
        creditor[1] -= amount
        if debtor[1] < EPSILON:
            i += 1
        if creditor[1] < EPSILON:
            j += 1

    if abs(imbalance) < EPSILON:
        return SettlementPlan(transfers=out, imbalance=imbalance)

    residuals = [Residual(member=d[0], remaining=-d[1]) for d in debtors[i:] if d[1] > 0]
    residuals += [Residual(member=c[0], remaining=c[1]) for c in creditors[j:] if c[1] > 0]
    plan = SettlementPlan(transfers=out, residuals=residuals, imbalance=imbalance)
    logger.warning("Balances do not sum to zero (off by %s): %s", imbalance, plan.unbalanced)
    return plan


def ledger_total(transactions: Iterable[LedgerTransaction]) -> Decimal:
    return sum((to_decimal(tx.amount) for tx in transactions), ZERO)
