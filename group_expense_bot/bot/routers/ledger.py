from __future__ import annotations

from typing import Optional

from aiogram import Bot, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from group_expense_bot.bot.dashboard import DashboardManager
from group_expense_bot.bot.keyboards import close_keyboard
from group_expense_bot.bot.parsing import parse_expense, parse_settlement, split_head
from group_expense_bot.bot.text import esc, transaction_line
from group_expense_bot.bot.utils import ERROR_TTL_SECONDS, reply_temporary, safe_delete_message
from group_expense_bot.config import Settings
from group_expense_bot.db.models import Chat, TransactionType
from group_expense_bot.services.groups import require_group
from group_expense_bot.services.transactions import (
    create_transaction,
    delete_transaction,
    get_last_transactions,
    update_transaction,
)

router = Router(name=__name__)


@router.message(Command("expense"))
async def expense_cmd(
    message: Message,
    command: CommandObject,
    bot: Bot,
    session: AsyncSession,
    settings: Settings,
    dashboard: DashboardManager,
    chat_db: Optional[Chat] = None,
) -> None:
    if chat_db is None:
        return
    try:
        group_id, body = split_head(command.args)
        group = await require_group(session, chat_id=chat_db.id, group_id=group_id)
        inp = parse_expense(body, group.member_names)
        tx = await create_transaction(
            session,
            group=group,
            type=TransactionType.EXPENSE,
            amount=inp.amount,
            paid_by=inp.paid_by,
            split_between=inp.split_between,
            description=inp.description,
        )
    except ValueError as e:
        await reply_temporary(message, bot, esc(str(e)), ttl_seconds=ERROR_TTL_SECONDS)
        return

    await reply_temporary(
        message,
        bot,
        "Saved: " + esc(transaction_line(tx, settings.currency_symbol)),
        ttl_seconds=settings.reply_ttl_seconds,
    )
    dashboard.schedule_after_commit(session, group.id)


@router.message(Command("editexpense"))
async def edit_expense_cmd(
    message: Message,
    command: CommandObject,
    bot: Bot,
    session: AsyncSession,
    settings: Settings,
    dashboard: DashboardManager,
    chat_db: Optional[Chat] = None,
) -> None:
    if chat_db is None:
        return
    try:
        group_id, rest = split_head(command.args)
        tx_id, body = split_head(rest, "transaction id")
        group = await require_group(session, chat_id=chat_db.id, group_id=group_id)
        inp = parse_expense(body, group.member_names)
        tx = await update_transaction(
            session,
            group=group,
            transaction_id=tx_id,
            amount=inp.amount,
            paid_by=inp.paid_by,
            split_between=inp.split_between,
            description=inp.description,
        )
    except ValueError as e:
        await reply_temporary(message, bot, esc(str(e)), ttl_seconds=ERROR_TTL_SECONDS)
        return

    await reply_temporary(
        message,
        bot,
        "Updated: " + esc(transaction_line(tx, settings.currency_symbol)),
        ttl_seconds=settings.reply_ttl_seconds,
    )
    dashboard.schedule_after_commit(session, group.id)


@router.message(Command("delexpense"))
async def delete_expense_cmd(
    message: Message,
    command: CommandObject,
    bot: Bot,
    session: AsyncSession,
    settings: Settings,
    dashboard: DashboardManager,
    chat_db: Optional[Chat] = None,
) -> None:
    if chat_db is None:
        return
    try:
        group_id, rest = split_head(command.args)
        tx_id, _ = split_head(rest, "transaction id")
        group = await require_group(session, chat_id=chat_db.id, group_id=group_id)
        await delete_transaction(session, group=group, transaction_id=tx_id)
    except ValueError as e:
        await reply_temporary(message, bot, esc(str(e)), ttl_seconds=ERROR_TTL_SECONDS)
        return

    await reply_temporary(message, bot, f"Deleted #{tx_id}.", ttl_seconds=settings.reply_ttl_seconds)
    dashboard.schedule_after_commit(session, group.id)


@router.message(Command("settleup"))
async def settle_up_cmd(
    message: Message,
    command: CommandObject,
    bot: Bot,
    session: AsyncSession,
    settings: Settings,
    dashboard: DashboardManager,
    chat_db: Optional[Chat] = None,
) -> None:
    if chat_db is None:
        return
    try:
        group_id, body = split_head(command.args)
        group = await require_group(session, chat_id=chat_db.id, group_id=group_id)
        inp = parse_settlement(body, group.member_names)
        # The receiver is the single participant; the ledger math cancels the debt.
        tx = await create_transaction(
            session,
            group=group,
            type=TransactionType.SETTLEMENT,
            amount=inp.amount,
            paid_by=inp.paid_by,
            split_between=[inp.receiver],
            description=inp.description or f"Settlement from {inp.paid_by} to {inp.receiver}",
        )
    except ValueError as e:
        await reply_temporary(message, bot, esc(str(e)), ttl_seconds=ERROR_TTL_SECONDS)
        return

    await reply_temporary(
        message,
        bot,
        "Saved: " + esc(transaction_line(tx, settings.currency_symbol)),
        ttl_seconds=settings.reply_ttl_seconds,
    )
    dashboard.schedule_after_commit(session, group.id)


@router.message(Command("history"))
async def history_cmd(
    message: Message,
    command: CommandObject,
    bot: Bot,
    session: AsyncSession,
    settings: Settings,
    chat_db: Optional[Chat] = None,
) -> None:
    if chat_db is None:
        return
    await safe_delete_message(bot, chat_id=message.chat.id, message_id=message.message_id)
    try:
        group_id, _ = split_head(command.args)
        group = await require_group(session, chat_id=chat_db.id, group_id=group_id)
    except ValueError as e:
        await reply_temporary(message, bot, esc(str(e)), ttl_seconds=ERROR_TTL_SECONDS)
        return

    recent = await get_last_transactions(session, group_id=group.id, limit=settings.history_limit)
    lines = [
        f"{tx.created_at:%b %d} " + esc(transaction_line(tx, settings.currency_symbol)) for tx in recent
    ] or ["No expenses yet."]
    await reply_temporary(
        message,
        bot,
        f"<b>{esc(group.name)}: last {len(recent)} entries</b>\n" + "\n".join(lines),
        ttl_seconds=settings.reply_ttl_seconds,
        reply_markup=close_keyboard(initiator_user_id=message.from_user.id),
    )
