from __future__ import annotations

from aiogram.filters.callback_data import CallbackData


class CloseCb(CallbackData, prefix="close"):
    initiator: int


class DeleteGroupCb(CallbackData, prefix="delg"):
    initiator: int
    group_id: int
    action: str  # confirm | cancel


class RecordTransferCb(CallbackData, prefix="rec"):
    # GroupMember ids keep the payload under 64 bytes and survive roster edits.
    initiator: int
    group_id: int
    frm: int
    to: int
    cents: int
