from __future__ import annotations

from typing import Optional

from aiogram import F, Router
from aiogram.types import CallbackQuery

from group_expense_bot.bot.callbacks import CloseCb, DeleteGroupCb
from group_expense_bot.bot.utils import safe_delete_message

router = Router(name=__name__)


async def _dismiss(callback: CallbackQuery, initiator: int, answer: Optional[str] = None) -> None:
    if callback.from_user.id != initiator:
        await callback.answer("This button is not for you.", show_alert=True)
        return
    if callback.message:
        await safe_delete_message(callback.bot, chat_id=callback.message.chat.id, message_id=callback.message.message_id)
    await callback.answer(answer)


@router.callback_query(CloseCb.filter())
async def close_cb(callback: CallbackQuery, callback_data: CloseCb) -> None:
    await _dismiss(callback, callback_data.initiator)


@router.callback_query(DeleteGroupCb.filter(F.action == "cancel"))
async def cancel_delete_group_cb(callback: CallbackQuery, callback_data: DeleteGroupCb) -> None:
    await _dismiss(callback, callback_data.initiator, "Cancelled.")
