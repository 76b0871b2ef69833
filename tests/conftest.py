from __future__ import annotations

from decimal import Decimal

import pytest

from group_expense_bot.db.models import Chat, TransactionType
from group_expense_bot.db.session import create_all, create_engine, make_sessionmaker
from group_expense_bot.services.ledger import LedgerTransaction

TRIP_MEMBERS = ["John", "Sarah", "Mike", "Anna"]


def expense(amount, paid_by, split, *, id=None, description="") -> LedgerTransaction:
    return LedgerTransaction(
        id=id,
        group_id=1,
        description=description,
        amount=Decimal(str(amount)),
        paid_by=paid_by,
        split_between=tuple(split),
        type=TransactionType.EXPENSE,
    )


def settlement(amount, paid_by, receiver, *, id=None) -> LedgerTransaction:
    return LedgerTransaction(
        id=id,
        group_id=1,
        description=f"Settlement from {paid_by} to {receiver}",
        amount=Decimal(str(amount)),
        paid_by=paid_by,
        split_between=(receiver,),
        type=TransactionType.SETTLEMENT,
    )


@pytest.fixture
def trip_ledger() -> list[LedgerTransaction]:
    return [
        expense(2500, "John", TRIP_MEMBERS, id=1, description="Dinner"),
        expense(800, "Sarah", ["Sarah", "Mike"], id=2, description="Taxi"),
        settlement(500, "Mike", "John", id=3),
    ]


@pytest.fixture
async def engine():
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    async with make_sessionmaker(engine)() as session:
        yield session


@pytest.fixture
async def chat(session) -> Chat:
    chat = Chat(tg_chat_id=-1001234567890, title="Weekend")
    session.add(chat)
    await session.flush()
    return chat
