from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from group_expense_bot.db.models import Group, GroupMember, Transaction, TransactionParticipant
from group_expense_bot.services.errors import GroupNotFound, InvalidGroup, MemberInUse
from group_expense_bot.services.ledger import ZERO

logger = logging.getLogger(__name__)

MAX_NAME_LEN = 64
MAX_GROUP_NAME_LEN = 255


def normalize_roster(members: Iterable[str]) -> list[str]:
    roster: list[str] = []
    for raw in members:
        name = " ".join(str(raw).split())
        if not name:
            continue
        if len(name) > MAX_NAME_LEN:
            raise InvalidGroup(f"Member name is too long: {name[:16]}...")
        if name in roster:
            raise InvalidGroup(f"Member {name} is listed twice.")
        roster.append(name)
    if not roster:
        raise InvalidGroup("A group needs at least one member.")
    return roster


def _normalize_name(name: str) -> str:
    name = " ".join(name.split())
    if not name:
        raise InvalidGroup("Group name must not be empty.")
    if len(name) > MAX_GROUP_NAME_LEN:
        raise InvalidGroup("Group name is too long.")
    return name


async def create_group(session: AsyncSession, *, chat_id: int, name: str, members: Iterable[str]) -> Group:
    roster = normalize_roster(members)
    group = Group(
        chat_id=chat_id,
        name=_normalize_name(name),
        total_expenses=ZERO,
        members=[GroupMember(name=m, position=i) for i, m in enumerate(roster)],
    )
    session.add(group)
    await session.flush()
    logger.info("Created group id=%s chat_id=%s members=%d", group.id, chat_id, len(roster))
    return group


async def list_groups(session: AsyncSession, *, chat_id: int) -> list[Group]:
    res = await session.scalars(select(Group).where(Group.chat_id == chat_id).order_by(Group.id.asc()))
    return list(res)


async def get_group(session: AsyncSession, *, chat_id: int, group_id: int) -> Optional[Group]:
    return await session.scalar(select(Group).where(Group.chat_id == chat_id, Group.id == group_id))


async def require_group(session: AsyncSession, *, chat_id: int, group_id: int) -> Group:
    group = await get_group(session, chat_id=chat_id, group_id=group_id)
    if group is None:
        raise GroupNotFound(group_id)
    return group


async def is_member_in_group_transactions(session: AsyncSession, *, group_id: int, member: str) -> bool:
    as_payer = select(Transaction.id).where(Transaction.group_id == group_id, Transaction.paid_by == member)
    as_participant = (
        select(TransactionParticipant.id)
        .join(Transaction, Transaction.id == TransactionParticipant.transaction_id)
        .where(Transaction.group_id == group_id, TransactionParticipant.member_name == member)
    )
    found = await session.scalar(select(sa.or_(as_payer.exists(), as_participant.exists())))
    return bool(found)


async def edit_group(
    session: AsyncSession,
    *,
    chat_id: int,
    group_id: int,
    name: str,
    members: Iterable[str],
) -> Group:
    group = await require_group(session, chat_id=chat_id, group_id=group_id)
    roster = normalize_roster(members)
    new_name = _normalize_name(name)

    removed = [m for m in group.member_names if m not in roster]
    in_use = [m for m in removed if await is_member_in_group_transactions(session, group_id=group.id, member=m)]
    if in_use:
        raise MemberInUse(in_use)

    # Keep rows of members that stay so the (group_id, name) constraint never sees a duplicate.
    existing = {m.name: m for m in group.members}
    rows: list[GroupMember] = []
    for pos, member in enumerate(roster):
        row = existing.get(member)
        if row is None:
            row = GroupMember(name=member, position=pos)
        row.position = pos
        rows.append(row)

    group.name = new_name
    group.members = rows
    await session.flush()
    logger.info("Edited group id=%s removed=%s", group.id, removed)
    return group


async def delete_group(session: AsyncSession, *, chat_id: int, group_id: int) -> None:
    group = await require_group(session, chat_id=chat_id, group_id=group_id)
    tx_ids = select(Transaction.id).where(Transaction.group_id == group.id)
    await session.execute(
        sa.delete(TransactionParticipant)
        .where(TransactionParticipant.transaction_id.in_(tx_ids))
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        sa.delete(Transaction).where(Transaction.group_id == group.id).execution_options(synchronize_session=False)
    )
    await session.delete(group)
    await session.flush()
    logger.info("Deleted group id=%s chat_id=%s", group_id, chat_id)
