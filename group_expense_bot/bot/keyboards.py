from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from group_expense_bot.bot.callbacks import CloseCb, DeleteGroupCb, RecordTransferCb
from group_expense_bot.bot.text import format_money, from_cents, to_cents
from group_expense_bot.db.models import GroupMember
from group_expense_bot.services.ledger import Transfer


def close_keyboard(*, initiator_user_id: int, text: str = "Close") -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.row(
        InlineKeyboardButton(text=text, callback_data=CloseCb(initiator=initiator_user_id).pack()),
        width=1,
    )
    return kb.as_markup()


def delete_group_keyboard(*, initiator_user_id: int, group_id: int) -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.row(
        InlineKeyboardButton(
            text="Delete",
            callback_data=DeleteGroupCb(initiator=initiator_user_id, group_id=group_id, action="confirm").pack(),
        ),
        InlineKeyboardButton(
            text="Cancel",
            callback_data=DeleteGroupCb(initiator=initiator_user_id, group_id=group_id, action="cancel").pack(),
        ),
        width=2,
    )
    return kb.as_markup()


def settle_keyboard(
    *,
    initiator_user_id: int,
    group_id: int,
    member_ids: Mapping[str, int],
    transfers: list[Transfer],
    currency_symbol: str,
    limit: int = 8,
) -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    payable = [t for t in transfers if to_cents(t.amount) > 0]
    for t in payable[:limit]:
        if t.from_member not in member_ids or t.to_member not in member_ids:
            continue
        kb.row(
            InlineKeyboardButton(
                text=f"✅ {t.from_member} → {t.to_member}: {format_money(t.amount, currency_symbol)}",
                callback_data=RecordTransferCb(
                    initiator=initiator_user_id,
                    group_id=group_id,
                    frm=member_ids[t.from_member],
                    to=member_ids[t.to_member],
                    cents=to_cents(t.amount),
                ).pack(),
            )
        )
    kb.row(
        InlineKeyboardButton(text="Close", callback_data=CloseCb(initiator=initiator_user_id).pack()),
        width=1,
    )
    return kb.as_markup()


def resolve_transfer(callback_data: RecordTransferCb, members: Iterable[GroupMember]) -> tuple[str, str, Decimal]:
    """Payer, receiver and amount behind a record button, checked against the current roster."""
    names = {m.id: m.name for m in members}
    if callback_data.frm not in names or callback_data.to not in names:
        raise ValueError("Members changed since this suggestion. Run /balance again.")
    return names[callback_data.frm], names[callback_data.to], from_cents(callback_data.cents)
