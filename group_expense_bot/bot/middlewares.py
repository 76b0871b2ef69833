from __future__ import annotations

from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware
from aiogram.enums import ChatType
from aiogram.types import CallbackQuery, Message, TelegramObject
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from group_expense_bot.services.chats import ensure_chat

GROUP_CHAT_TYPES = (ChatType.GROUP, ChatType.SUPERGROUP)


class DbSessionMiddleware(BaseMiddleware):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        super().__init__()
        self._sessionmaker = sessionmaker

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        # One unit of work per update; handlers only flush.
        async with self._sessionmaker() as session:
            data["session"] = session
            try:
                result = await handler(event, data)
            except Exception:
                await session.rollback()
                raise
            await session.commit()
            dashboard = data.get("dashboard")
            if dashboard is not None:
                dashboard.schedule_committed(session)
            return result


class ChatScopeMiddleware(BaseMiddleware):
    """Resolves the chat row that owns the groups; private chats are ignored."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        session: AsyncSession = data["session"]

        tg_chat = None
        tg_user = None
        if isinstance(event, Message):
            tg_chat = event.chat
            tg_user = event.from_user
        elif isinstance(event, CallbackQuery) and event.message:
            tg_chat = event.message.chat
            tg_user = event.from_user

        if tg_chat is None or tg_chat.type not in GROUP_CHAT_TYPES:
            return await handler(event, data)
        # Anonymous admins and channels have no user to attribute buttons to.
        if tg_user is None or tg_user.is_bot:
            return await handler(event, data)

        data["chat_db"] = await ensure_chat(session, tg_chat_id=tg_chat.id, title=tg_chat.title)
        return await handler(event, data)
