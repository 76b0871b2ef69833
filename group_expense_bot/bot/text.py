from __future__ import annotations

import html
from decimal import ROUND_HALF_UP, Decimal

from group_expense_bot.db.models import Transaction, TransactionType

CENT = Decimal("0.01")


def esc(s: str) -> str:
    return html.escape(s, quote=False)


def round_money(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal, symbol: str = "₹") -> str:
    # Display only; ledger math keeps full precision.
    value = round_money(amount)
    if value == 0:
        value = abs(value)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def format_net(amount: Decimal, symbol: str = "₹") -> str:
    value = round_money(amount)
    if value > 0:
        return "+" + format_money(value, symbol)
    return format_money(value, symbol)


def to_cents(amount: Decimal) -> int:
    return int(round_money(amount) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def transaction_line(tx: Transaction, symbol: str = "₹") -> str:
    amount = format_money(tx.amount, symbol)
    if tx.type == TransactionType.SETTLEMENT:
        line = f"#{tx.id} {tx.paid_by} → {', '.join(tx.split_between)}: {amount}"
    else:
        line = f"#{tx.id} {tx.paid_by} paid {amount} for {', '.join(tx.split_between)}"
    if tx.description:
        line += f" ({tx.description})"
    return line
