from __future__ import annotations

import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramUnauthorizedError
from aiogram.types import BotCommand

from group_expense_bot.bot.dashboard import DashboardManager
from group_expense_bot.bot.middlewares import ChatScopeMiddleware, DbSessionMiddleware
from group_expense_bot.bot.routers import all_routers
from group_expense_bot.config import get_settings
from group_expense_bot.db.session import create_all, create_engine, make_sessionmaker
from group_expense_bot.logging import configure_logging

logger = logging.getLogger(__name__)

BOT_COMMANDS = [
    BotCommand(command="newgroup", description="Create a group"),
    BotCommand(command="groups", description="List groups"),
    BotCommand(command="expense", description="Add a shared expense"),
    BotCommand(command="settleup", description="Record a payment"),
    BotCommand(command="balance", description="Balances and suggested payments"),
    BotCommand(command="history", description="Latest entries"),
    BotCommand(command="help", description="All commands"),
]


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)

    engine = create_engine(settings.database_url, echo=settings.sql_echo)
    if settings.auto_create_tables:
        await create_all(engine)
    sessionmaker = make_sessionmaker(engine)

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    try:
        try:
            me = await bot.get_me()
        except TelegramUnauthorizedError as e:
            logger.error("Telegram Unauthorized. Check BOT_TOKEN in .env (BotFather token). %s", e)
            raise

        dp = Dispatcher()

        dp.update.middleware(DbSessionMiddleware(sessionmaker))
        dp.message.middleware(ChatScopeMiddleware())
        dp.callback_query.middleware(ChatScopeMiddleware())

        dashboard = DashboardManager(
            bot=bot,
            sessionmaker=sessionmaker,
            debounce_seconds=settings.dashboard_debounce_seconds,
            currency_symbol=settings.currency_symbol,
        )

        dp.workflow_data.update({"dashboard": dashboard, "settings": settings})

        for r in all_routers():
            dp.include_router(r)

        await bot.set_my_commands(BOT_COMMANDS)
        logger.info("Starting bot as @%s", me.username)
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        await bot.session.close()
        await engine.dispose()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
