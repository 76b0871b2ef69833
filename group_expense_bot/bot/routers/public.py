from __future__ import annotations

from typing import Optional

from aiogram import Bot, Router
from aiogram.enums import ParseMode
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.types import CallbackQuery, Message
from sqlalchemy.ext.asyncio import AsyncSession

from group_expense_bot.bot.callbacks import RecordTransferCb
from group_expense_bot.bot.dashboard import DashboardManager
from group_expense_bot.bot.dashboard_render import render_report
from group_expense_bot.bot.keyboards import resolve_transfer, settle_keyboard
from group_expense_bot.bot.parsing import split_head
from group_expense_bot.bot.text import esc, format_money
from group_expense_bot.bot.utils import ERROR_TTL_SECONDS, reply_temporary, safe_delete_message
from group_expense_bot.config import Settings
from group_expense_bot.db.models import Chat, TransactionType
from group_expense_bot.services.groups import require_group
from group_expense_bot.services.reports import build_group_report
from group_expense_bot.services.transactions import create_transaction

router = Router(name=__name__)

HELP_TEXT = (
    "<b>Group expenses</b>\n\n"
    "/newgroup Name: A, B, C - create a group\n"
    "/groups - list groups\n"
    "/group &lt;id&gt; - members and recent entries\n"
    "/editgroup &lt;id&gt; Name: A, B - rename or change members\n"
    "/delgroup &lt;id&gt; - delete a group\n"
    "/expense &lt;id&gt; &lt;amount&gt; &lt;payer&gt; | &lt;members or *&gt; | &lt;description&gt;\n"
    "/editexpense &lt;id&gt; &lt;entry&gt; &lt;amount&gt; &lt;payer&gt; | &lt;members or *&gt; | &lt;description&gt;\n"
    "/delexpense &lt;id&gt; &lt;entry&gt;\n"
    "/settleup &lt;id&gt; &lt;amount&gt; &lt;from&gt; -&gt; &lt;to&gt; | &lt;note&gt;\n"
    "/balance &lt;id&gt; - balances and suggested payments\n"
    "/history &lt;id&gt; - latest entries"
)


@router.message(CommandStart())
@router.message(Command("help"))
async def help_cmd(message: Message) -> None:
    await message.answer(HELP_TEXT, parse_mode=ParseMode.HTML)


@router.message(Command("balance"))
async def balance_cmd(
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
        report = await build_group_report(session, group=group)
    except ValueError as e:
        await reply_temporary(message, bot, esc(str(e)), ttl_seconds=ERROR_TTL_SECONDS)
        return

    await reply_temporary(
        message,
        bot,
        render_report(report, currency_symbol=settings.currency_symbol),
        ttl_seconds=settings.reply_ttl_seconds,
        reply_markup=settle_keyboard(
            initiator_user_id=message.from_user.id,
            group_id=group.id,
            member_ids={m.name: m.id for m in group.members},
            transfers=report.plan.transfers,
            currency_symbol=settings.currency_symbol,
        ),
    )


@router.callback_query(RecordTransferCb.filter())
async def record_transfer_cb(
    callback: CallbackQuery,
    callback_data: RecordTransferCb,
    bot: Bot,
    session: AsyncSession,
    settings: Settings,
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
        payer, receiver, amount = resolve_transfer(callback_data, group.members)
        await create_transaction(
            session,
            group=group,
            type=TransactionType.SETTLEMENT,
            amount=amount,
            paid_by=payer,
            split_between=[receiver],
            description=f"Settlement from {payer} to {receiver}",
        )
    except ValueError as e:
        await callback.answer(str(e), show_alert=True)
        return

    if callback.message:
        await safe_delete_message(bot, chat_id=callback.message.chat.id, message_id=callback.message.message_id)
    dashboard.schedule_after_commit(session, group.id)
    await callback.answer(f"Recorded {payer} → {receiver}: {format_money(amount, settings.currency_symbol)}")
