from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

# "/settleup 1 500 Mike -> John" accepts any of these between the two names.
_ARROW_RE = re.compile(r"\s*(?:->|→|>)\s*")


@dataclass(frozen=True)
class GroupDefinition:
    name: str
    members: list[str]


@dataclass(frozen=True)
class ExpenseInput:
    amount: Decimal
    paid_by: str
    split_between: list[str]
    description: str


@dataclass(frozen=True)
class SettlementInput:
    amount: Decimal
    paid_by: str
    receiver: str
    description: str


def parse_int(token: str, what: str) -> int:
    token = token.strip().lstrip("#")
    if not token.isdigit():
        raise ValueError(f"Expected {what}, got {token or 'nothing'}.")
    return int(token)


def parse_amount(token: str) -> Decimal:
    cleaned = token.strip().replace(",", "")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Not a valid amount: {token}.") from None
    if not amount.is_finite() or amount <= 0:
        raise ValueError("Amount must be a positive number.")
    return amount


def split_head(args: Optional[str], what: str = "group id") -> tuple[int, str]:
    """Splits a leading numeric id off the command arguments."""
    parts = (args or "").strip().split(maxsplit=1)
    if not parts:
        raise ValueError(f"Missing {what}.")
    return parse_int(parts[0], what), (parts[1] if len(parts) > 1 else "")


def resolve_member(name: str, roster: Sequence[str]) -> str:
    # Case-insensitive match against the roster; unknown names are left for the validator.
    name = " ".join(name.split())
    for m in roster:
        if m.casefold() == name.casefold():
            return m
    return name


def parse_members(text: str, roster: Sequence[str]) -> list[str]:
    text = text.strip()
    if text in ("*", "all"):
        return list(roster)
    return [resolve_member(n, roster) for n in text.split(",") if n.strip()]


def parse_group_definition(text: Optional[str]) -> GroupDefinition:
    """`Weekend Trip: John, Sarah, Mike`"""
    text = (text or "").strip()
    if ":" not in text:
        raise ValueError("Use: Name: member1, member2, ...")
    name, _, members = text.partition(":")
    name = name.strip()
    if not name:
        raise ValueError("Group name must not be empty.")
    return GroupDefinition(name=name, members=[m.strip() for m in members.split(",") if m.strip()])


def parse_expense(body: str, roster: Sequence[str]) -> ExpenseInput:
    """`<amount> <payer> | <members or *> | <description>`"""
    segments = [s.strip() for s in body.split("|")]
    if len(segments) < 2:
        raise ValueError("Use: <amount> <payer> | <members or *> | <description>")
    head = segments[0].split(maxsplit=1)
    if len(head) < 2:
        raise ValueError("Expected an amount followed by the payer.")
    return ExpenseInput(
        amount=parse_amount(head[0]),
        paid_by=resolve_member(head[1], roster),
        split_between=parse_members(segments[1], roster),
        description=" | ".join(segments[2:]).strip(),
    )


def parse_settlement(body: str, roster: Sequence[str]) -> SettlementInput:
    """`<amount> <from> -> <to> | <note>`"""
    main, _, note = body.partition("|")
    head = main.strip().split(maxsplit=1)
    if len(head) < 2:
        raise ValueError("Use: <amount> <from> -> <to> | <note>")
    amount = parse_amount(head[0])
    names = _ARROW_RE.split(head[1], maxsplit=1)
    if len(names) != 2 or not names[0].strip() or not names[1].strip():
        raise ValueError("Separate payer and receiver with ->")
    return SettlementInput(
        amount=amount,
        paid_by=resolve_member(names[0], roster),
        receiver=resolve_member(names[1], roster),
        description=note.strip(),
    )
