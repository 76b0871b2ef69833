from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import TRIP_MEMBERS
from group_expense_bot.bot.callbacks import RecordTransferCb
from group_expense_bot.bot.keyboards import resolve_transfer, settle_keyboard
from group_expense_bot.db.models import Chat, TransactionType
from group_expense_bot.services.chats import ensure_chat
from group_expense_bot.services.errors import (
    GroupNotFound,
    InvalidGroup,
    InvalidTransaction,
    MemberInUse,
    TransactionNotFound,
)
from group_expense_bot.services.groups import (
    create_group,
    delete_group,
    edit_group,
    get_group,
    is_member_in_group_transactions,
    list_groups,
    normalize_roster,
    require_group,
)
from group_expense_bot.services.ledger import Transfer
from group_expense_bot.services.reports import build_group_report
from group_expense_bot.services.transactions import (
    MAX_AMOUNT,
    create_transaction,
    delete_transaction,
    get_last_transactions,
    list_transactions,
    update_transaction,
    validate_transaction,
)


async def _trip(session, chat):
    group = await create_group(session, chat_id=chat.id, name="Weekend Trip", members=TRIP_MEMBERS)
    await create_transaction(
        session,
        group=group,
        type=TransactionType.EXPENSE,
        amount=Decimal("2500"),
        paid_by="John",
        split_between=TRIP_MEMBERS,
        description="Dinner",
    )
    await create_transaction(
        session,
        group=group,
        type=TransactionType.EXPENSE,
        amount=Decimal("800"),
        paid_by="Sarah",
        split_between=["Sarah", "Mike"],
        description="Taxi",
    )
    await create_transaction(
        session,
        group=group,
        type=TransactionType.SETTLEMENT,
        amount=Decimal("500"),
        paid_by="Mike",
        split_between=["John"],
    )
    return group


def test_normalize_roster():
    assert normalize_roster([" John ", "", "Anna  Lee"]) == ["John", "Anna Lee"]
    with pytest.raises(InvalidGroup, match="twice"):
        normalize_roster(["John", "John"])
    with pytest.raises(InvalidGroup, match="at least one"):
        normalize_roster(["  "])


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"amount": "0"}, "positive"),
        ({"amount": "abc"}, "valid amount"),
        ({"amount": "1.005"}, "two decimal places"),
        ({"amount": "99999999999"}, "too large"),
        ({"split_between": []}, "must not be empty"),
        ({"paid_by": "Zoe"}, "Zoe"),
        ({"split_between": ["John", "Zoe"]}, "Zoe"),
        ({"type": TransactionType.SETTLEMENT, "split_between": ["John", "Anna"]}, "exactly one"),
        ({"type": TransactionType.SETTLEMENT, "split_between": ["Mike"]}, "different"),
    ],
)
def test_validate_transaction_rejects(kwargs, message):
    args = {
        "type": TransactionType.EXPENSE,
        "amount": "10",
        "paid_by": "Mike",
        "split_between": ["John"],
        "members": TRIP_MEMBERS,
    }
    args.update(kwargs)
    with pytest.raises(InvalidTransaction, match=message):
        validate_transaction(**args)


def test_validate_transaction_normalizes():
    amount, split = validate_transaction(
        type=TransactionType.EXPENSE,
        amount=12.5,
        paid_by="John",
        split_between=["John", "Anna", "John"],
        members=TRIP_MEMBERS,
    )
    assert amount == Decimal("12.50")
    assert split == ("John", "Anna")


async def test_group_report_matches_ledger(session, chat):
    group = await _trip(session, chat)

    assert group.total_expenses == Decimal("3800")

    report = await build_group_report(session, group=group)
    assert report.members == TRIP_MEMBERS
    assert report.transaction_count == 3
    assert [b.net_balance for b in report.balances] == [
        Decimal("1375"),
        Decimal("-225"),
        Decimal("-525"),
        Decimal("-625"),
    ]
    assert [(t.from_member, t.to_member, t.amount) for t in report.plan.transfers] == [
        ("Anna", "John", Decimal("625")),
        ("Mike", "John", Decimal("525")),
        ("Sarah", "John", Decimal("225")),
    ]


async def test_list_transactions_returns_ledger_entries(session, chat):
    group = await _trip(session, chat)

    ledger = await list_transactions(session, group_id=group.id)
    assert [tx.description for tx in ledger] == ["Dinner", "Taxi", ""]
    assert ledger[0].split_between == tuple(TRIP_MEMBERS)
    assert ledger[2].type == TransactionType.SETTLEMENT
    assert ledger[2].split_between == ("John",)

    recent = await get_last_transactions(session, group_id=group.id, limit=2)
    assert [tx.id for tx in recent] == [ledger[2].id, ledger[1].id]


async def test_update_and_delete_adjust_total(session, chat):
    group = await _trip(session, chat)
    ledger = await list_transactions(session, group_id=group.id)
    taxi_id = ledger[1].id

    tx = await update_transaction(
        session,
        group=group,
        transaction_id=taxi_id,
        amount=Decimal("900"),
        paid_by="Sarah",
        split_between=["Sarah", "Mike", "Anna"],
        description="Taxi + tip",
    )
    assert tx.split_between[0:2] == ("Sarah", "Mike")
    assert set(tx.split_between) == {"Sarah", "Mike", "Anna"}
    assert tx.type == TransactionType.EXPENSE
    assert group.total_expenses == Decimal("3900")

    await delete_transaction(session, group=group, transaction_id=taxi_id)
    assert group.total_expenses == Decimal("3000")
    assert len(await list_transactions(session, group_id=group.id)) == 2

    with pytest.raises(TransactionNotFound):
        await delete_transaction(session, group=group, transaction_id=taxi_id)


async def test_update_keeps_settlement_rules(session, chat):
    group = await _trip(session, chat)
    settlement_id = (await list_transactions(session, group_id=group.id))[2].id

    with pytest.raises(InvalidTransaction, match="exactly one"):
        await update_transaction(
            session,
            group=group,
            transaction_id=settlement_id,
            amount=Decimal("500"),
            paid_by="Mike",
            split_between=["John", "Anna"],
        )
    assert group.total_expenses == Decimal("3800")


async def test_create_transaction_rejects_outsiders(session, chat):
    group = await create_group(session, chat_id=chat.id, name="Flat", members=["A", "B"])
    with pytest.raises(InvalidTransaction):
        await create_transaction(
            session,
            group=group,
            type=TransactionType.EXPENSE,
            amount=Decimal("10"),
            paid_by="A",
            split_between=["A", "C"],
        )
    assert group.total_expenses == Decimal("0")


async def test_edit_group_protects_members_in_ledger(session, chat):
    group = await _trip(session, chat)
    assert await is_member_in_group_transactions(session, group_id=group.id, member="Mike")
    assert not await is_member_in_group_transactions(session, group_id=group.id, member="Zoe")

    with pytest.raises(MemberInUse) as exc_info:
        await edit_group(session, chat_id=chat.id, group_id=group.id, name="Trip", members=["John", "Sarah"])
    assert exc_info.value.members == ["Mike", "Anna"]


async def test_edit_group_renames_and_reorders(session, chat):
    group = await create_group(session, chat_id=chat.id, name="Flat", members=["A", "B", "C"])
    await create_transaction(
        session,
        group=group,
        type=TransactionType.EXPENSE,
        amount=Decimal("30"),
        paid_by="A",
        split_between=["A", "B"],
    )

    edited = await edit_group(session, chat_id=chat.id, group_id=group.id, name=" Flat  2 ", members=["B", "D", "A"])
    assert edited.name == "Flat 2"
    assert edited.member_names == ["B", "D", "A"]
    assert [m.position for m in edited.members] == [0, 1, 2]


async def test_groups_are_scoped_to_chat(session, chat):
    other = Chat(tg_chat_id=-1009999, title="Other")
    session.add(other)
    await session.flush()

    group = await create_group(session, chat_id=chat.id, name="Flat", members=["A", "B"])
    await create_group(session, chat_id=other.id, name="Elsewhere", members=["X"])

    assert [g.name for g in await list_groups(session, chat_id=chat.id)] == ["Flat"]
    assert await get_group(session, chat_id=other.id, group_id=group.id) is None
    with pytest.raises(GroupNotFound):
        await require_group(session, chat_id=other.id, group_id=group.id)


async def test_delete_group_removes_ledger(session, chat):
    group = await _trip(session, chat)
    group_id = group.id

    await delete_group(session, chat_id=chat.id, group_id=group_id)

    assert await get_group(session, chat_id=chat.id, group_id=group_id) is None
    assert await list_transactions(session, group_id=group_id) == []
    with pytest.raises(GroupNotFound):
        await delete_group(session, chat_id=chat.id, group_id=group_id)


async def test_ensure_chat_upserts_and_keeps_known_title(session):
    created = await ensure_chat(session, tg_chat_id=-100555, title="Flatmates")
    again = await ensure_chat(session, tg_chat_id=-100555, title=None)
    assert again.id == created.id
    assert again.title == "Flatmates"

    renamed = await ensure_chat(session, tg_chat_id=-100555, title="Flat 4B")
    assert renamed.id == created.id
    assert renamed.title == "Flat 4B"


async def test_record_button_follows_members_across_roster_edits(session, chat):
    group = await create_group(session, chat_id=chat.id, name="Flat", members=["Anna", "John", "Mike"])
    markup = settle_keyboard(
        initiator_user_id=1,
        group_id=group.id,
        member_ids={m.name: m.id for m in group.members},
        transfers=[Transfer(from_member="Anna", to_member="John", amount=Decimal("12.5"))],
        currency_symbol="₹",
    )
    data = RecordTransferCb.unpack(markup.inline_keyboard[0][0].callback_data)

    group = await edit_group(session, chat_id=chat.id, group_id=group.id, name="Flat", members=["Mike", "Anna", "John"])
    assert resolve_transfer(data, group.members) == ("Anna", "John", Decimal("12.50"))

    group = await edit_group(session, chat_id=chat.id, group_id=group.id, name="Flat", members=["Mike", "Anna", "Zoe"])
    with pytest.raises(ValueError, match="Members changed"):
        resolve_transfer(data, group.members)


async def test_group_total_stays_within_column_limit(session, chat):
    group = await create_group(session, chat_id=chat.id, name="Flat", members=["A", "B"])
    tx = await create_transaction(
        session,
        group=group,
        type=TransactionType.EXPENSE,
        amount=MAX_AMOUNT,
        paid_by="A",
        split_between=["A", "B"],
    )

    with pytest.raises(InvalidTransaction, match="Group total"):
        await create_transaction(
            session,
            group=group,
            type=TransactionType.SETTLEMENT,
            amount=Decimal("0.01"),
            paid_by="B",
            split_between=["A"],
        )
    assert group.total_expenses == MAX_AMOUNT

    await update_transaction(
        session,
        group=group,
        transaction_id=tx.id,
        amount=Decimal("10"),
        paid_by="A",
        split_between=["A", "B"],
    )
    assert group.total_expenses == Decimal("10")
