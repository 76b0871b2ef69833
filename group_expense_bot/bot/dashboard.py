from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from group_expense_bot.bot.dashboard_render import render_dashboard
from group_expense_bot.db.models import Chat, Group
from group_expense_bot.services.reports import build_group_report

logger = logging.getLogger(__name__)

PENDING_GROUPS_KEY = "dashboard_pending_groups"


@dataclass
class _GroupDashState:
    lock: asyncio.Lock
    pending: Optional[asyncio.Task]
    dirty: bool
    last_edit_monotonic: float


class DashboardManager:
    """Keeps one pinned summary message per group, refreshed with a debounce."""

    def __init__(
        self,
        *,
        bot: Bot,
        sessionmaker: async_sessionmaker[AsyncSession],
        debounce_seconds: float,
        currency_symbol: str,
    ) -> None:
        self._bot = bot
        self._sessionmaker = sessionmaker
        self._debounce = debounce_seconds
        self._currency_symbol = currency_symbol
        self._states: dict[int, _GroupDashState] = {}

    def schedule(self, group_id: int) -> None:
        state = self._states.get(group_id)
        if state is None:
            state = _GroupDashState(lock=asyncio.Lock(), pending=None, dirty=False, last_edit_monotonic=0.0)
            self._states[group_id] = state

        state.dirty = True
        if state.pending is None or state.pending.done():
            state.pending = asyncio.create_task(self._worker(group_id))

    def schedule_after_commit(self, session: AsyncSession, group_id: int) -> None:
        # The worker reads through its own session, so it must not start before this one commits.
        session.info.setdefault(PENDING_GROUPS_KEY, set()).add(group_id)

    def schedule_committed(self, session: AsyncSession) -> None:
        for group_id in sorted(session.info.pop(PENDING_GROUPS_KEY, ())):
            self.schedule(group_id)

    def forget(self, group_id: int) -> None:
        state = self._states.pop(group_id, None)
        if state is not None and state.pending is not None and not state.pending.done():
            state.pending.cancel()

    async def _worker(self, group_id: int) -> None:
        try:
            while True:
                state = self._states.get(group_id)
                if state is None:
                    return

                wait_s = max(0.0, self._debounce - (time.monotonic() - state.last_edit_monotonic))
                await asyncio.sleep(wait_s)

                async with state.lock:
                    if not state.dirty:
                        return
                    state.dirty = False

                await self._update(group_id)

                async with state.lock:
                    state.last_edit_monotonic = time.monotonic()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Dashboard worker crashed for group_id=%s", group_id)

    async def _update(self, group_id: int) -> None:
        async with self._sessionmaker() as session:
            row = (
                await session.execute(
                    select(Group, Chat.tg_chat_id).join(Chat, Chat.id == Group.chat_id).where(Group.id == group_id)
                )
            ).first()
            if row is None:
                # Group deleted before the debounce fired.
                self._states.pop(group_id, None)
                return
            group, tg_chat_id = row

            report = await build_group_report(session, group=group)
            text = render_dashboard(report, currency_symbol=self._currency_symbol)

            if group.dashboard_message_id is not None:
                try:
                    await self._bot.edit_message_text(
                        chat_id=tg_chat_id,
                        message_id=group.dashboard_message_id,
                        text=text,
                        parse_mode=ParseMode.HTML,
                    )
                    return
                except TelegramBadRequest as e:
                    if "message is not modified" in str(e).lower():
                        return
                    logger.info("Dashboard message for group_id=%s is gone, sending a new one", group_id)

            old_id = group.dashboard_message_id
            msg = await self._bot.send_message(chat_id=tg_chat_id, text=text, parse_mode=ParseMode.HTML)
            group.dashboard_message_id = msg.message_id
            await session.commit()
            try:
                if old_id and old_id != msg.message_id:
                    await self._bot.unpin_chat_message(chat_id=tg_chat_id, message_id=old_id)
                await self._bot.pin_chat_message(chat_id=tg_chat_id, message_id=msg.message_id, disable_notification=True)
            except TelegramAPIError as e:
                # Pinning needs admin rights.
                logger.debug("Could not pin dashboard for group_id=%s: %s", group_id, e)
