from __future__ import annotations

from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from group_expense_bot.db.models import Chat


def _upsert_insert(session: AsyncSession):
    if session.get_bind().dialect.name == "sqlite":
        return sqlite.insert
    return postgresql.insert


async def ensure_chat(session: AsyncSession, *, tg_chat_id: int, title: Optional[str]) -> Chat:
    """
    Insert the Telegram chat or refresh its title, returning the row.

    A message without a title (service updates, some callbacks) keeps the
    stored one.
    """
    values = _upsert_insert(session)(Chat).values(tg_chat_id=tg_chat_id, title=title)
    stmt = (
        values.on_conflict_do_update(
            index_elements=[Chat.tg_chat_id],
            set_={"title": sa.func.coalesce(values.excluded.title, Chat.title)},
        )
        .returning(Chat)
        .execution_options(populate_existing=True)
    )
    res = await session.execute(stmt)
    return res.scalar_one()
