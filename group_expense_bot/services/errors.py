from __future__ import annotations

from decimal import Decimal
from typing import Optional


class LedgerError(ValueError):
    """Base for domain errors. Handlers report the message as-is."""


class InvalidTransaction(LedgerError):
    def __init__(self, message: str, *, transaction_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.transaction_id = transaction_id


class InvalidGroup(LedgerError):
    pass


class GroupNotFound(LedgerError):
    def __init__(self, group_id: int) -> None:
        super().__init__(f"Group #{group_id} not found.")
        self.group_id = group_id


class TransactionNotFound(LedgerError):
    def __init__(self, transaction_id: int) -> None:
        super().__init__(f"Transaction #{transaction_id} not found.")
        self.transaction_id = transaction_id


class MemberInUse(LedgerError):
    def __init__(self, members: list[str]) -> None:
        super().__init__(f"Cannot remove members that are part of expenses: {', '.join(members)}")
        self.members = members


class UnbalancedLedger(LedgerError):
    # Returned on SettlementPlan, raised only on request.
    def __init__(self, residual_debt: Decimal, residual_credit: Decimal) -> None:
        super().__init__(
            f"Ledger does not balance: {residual_debt} left to pay, {residual_credit} left to receive."
        )
        self.residual_debt = residual_debt
        self.residual_credit = residual_credit
