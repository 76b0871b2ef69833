from __future__ import annotations

from aiogram import Router

from group_expense_bot.bot.routers.common_callbacks import router as common_callbacks_router
from group_expense_bot.bot.routers.groups import router as groups_router
from group_expense_bot.bot.routers.ledger import router as ledger_router
from group_expense_bot.bot.routers.public import router as public_router


def all_routers() -> list[Router]:
    return [
        common_callbacks_router,
        groups_router,
        ledger_router,
        public_router,
    ]
