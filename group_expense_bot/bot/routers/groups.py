from __future__ import annotations

from typing import Optional

from aiogram import Bot, F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message
from sqlalchemy.ext.asyncio import AsyncSession

from group_expense_bot.bot.callbacks import DeleteGroupCb
from group_expense_bot.bot.dashboard import DashboardManager
from group_expense_bot.bot.keyboards import close_keyboard, delete_group_keyboard
from group_expense_bot.bot.parsing import parse_group_definition, split_head
from group_expense_bot.bot.text import esc, format_money, transaction_line
from group_expense_bot.bot.utils import ERROR_TTL_SECONDS, reply_temporary, safe_delete_message
from group_expense_bot.config import Settings
from group_expense_bot.db.models import Chat
from group_expense_bot.services.groups import create_group, delete_group, edit_group, list_groups, require_group
from group_expense_bot.services.transactions import get_last_transactions

router = Router(name=__name__)


@router.message(Command("newgroup"))
async def new_group_cmd(
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
        definition = parse_group_definition(command.args)
        group = await create_group(session, chat_id=chat_db.id, name=definition.name, members=definition.members)
    except ValueError as e:
        await reply_temporary(message, bot, esc(str(e)), ttl_seconds=ERROR_TTL_SECONDS)
        return

    await reply_temporary(
        message,
        bot,
        f"Created <b>{esc(group.name)}</b> (#{group.id}) with {esc(', '.join(group.member_names))}.",
        ttl_seconds=settings.reply_ttl_seconds,
    )
    dashboard.schedule_after_commit(session, group.id)


@router.message(Command("groups"))
async def groups_cmd(message: Message, bot: Bot, session: AsyncSession, settings: Settings, chat_db: Optional[Chat] = None) -> None:
    if chat_db is None:
        return
    await safe_delete_message(bot, chat_id=message.chat.id, message_id=message.message_id)

    groups = await list_groups(session, chat_id=chat_db.id)
    lines = [
        f"#{g.id} <b>{esc(g.name)}</b>: {esc(', '.join(g.member_names))}"
        f" ({format_money(g.total_expenses, settings.currency_symbol)})"
        for g in groups
    ]
    if not lines:
        lines = ["No groups yet. Create one with /newgroup Name: member1, member2"]
    await reply_temporary(
        message,
        bot,
        "<b>Groups</b>\n" + "\n".join(lines),
        ttl_seconds=settings.reply_ttl_seconds,
        reply_markup=close_keyboard(initiator_user_id=message.from_user.id),
    )


@router.message(Command("group"))
async def group_cmd(
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
    lines = [esc(transaction_line(tx, settings.currency_symbol)) for tx in recent] or ["No expenses yet."]
    await reply_temporary(
        message,
        bot,
        f"<b>{esc(group.name)}</b> (#{group.id})\n"
        f"Members: {esc(', '.join(group.member_names))}\n"
        f"Total expenses: {format_money(group.total_expenses, settings.currency_symbol)}\n\n"
        "<b>Recent:</b>\n" + "\n".join(lines),
        ttl_seconds=settings.reply_ttl_seconds,
        reply_markup=close_keyboard(initiator_user_id=message.from_user.id),
    )


@router.message(Command("editgroup"))
async def edit_group_cmd(
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
        definition = parse_group_definition(rest)
        group = await edit_group(
            session,
            chat_id=chat_db.id,
            group_id=group_id,
            name=definition.name,
            members=definition.members,
        )
    except ValueError as e:
        await reply_temporary(message, bot, esc(str(e)), ttl_seconds=ERROR_TTL_SECONDS)
        return

    await reply_temporary(
        message,
        bot,
        f"Updated <b>{esc(group.name)}</b> (#{group.id}): {esc(', '.join(group.member_names))}.",
        ttl_seconds=settings.reply_ttl_seconds,
    )
    dashboard.schedule_after_commit(session, group.id)


@router.message(Command("delgroup"))
async def delete_group_cmd(
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

    await reply_temporary(
        message,
        bot,
        f"Delete <b>{esc(group.name)}</b> (#{group.id}) and its whole ledger?",
        ttl_seconds=settings.reply_ttl_seconds,
        reply_markup=delete_group_keyboard(initiator_user_id=message.from_user.id, group_id=group.id),
    )


@router.callback_query(DeleteGroupCb.filter(F.action == "confirm"))
async def delete_group_cb(
    callback: CallbackQuery,
    callback_data: DeleteGroupCb,
    bot: Bot,
    session: AsyncSession,
    dashboard: DashboardManager,
    chat_db: Optional[Chat] = None,
) -> None:
    if chat_db is None:
        return
    if callback.from_user.id != callback_data.initiator:
        await callback.answer("This button is not for you.", show_alert=True)
        return

    try:
        group = await require_group(session, chat_id=chat_db.id, group_id=callback_data.group_id)
        dashboard_message_id = group.dashboard_message_id
        await delete_group(session, chat_id=chat_db.id, group_id=callback_data.group_id)
    except ValueError as e:
        await callback.answer(str(e), show_alert=True)
        return
    dashboard.forget(callback_data.group_id)
    if dashboard_message_id:
        await safe_delete_message(bot, chat_id=callback.message.chat.id, message_id=dashboard_message_id)
    await callback.answer("Group deleted.")

    if callback.message:
        await safe_delete_message(bot, chat_id=callback.message.chat.id, message_id=callback.message.message_id)
