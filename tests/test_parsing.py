from __future__ import annotations

from decimal import Decimal

import pytest

from group_expense_bot.bot.parsing import (
    parse_amount,
    parse_expense,
    parse_group_definition,
    parse_settlement,
    split_head,
)

ROSTER = ["John", "Sarah", "Mike", "Anna Lee"]


def test_group_definition():
    d = parse_group_definition(" Weekend Trip: John, Sarah ,Mike,, ")
    assert d.name == "Weekend Trip"
    assert d.members == ["John", "Sarah", "Mike"]


@pytest.mark.parametrize("text", [None, "", "Trip John Sarah", ": John"])
def test_group_definition_rejects(text):
    with pytest.raises(ValueError):
        parse_group_definition(text)


def test_split_head():
    assert split_head("12 2500 John | *") == (12, "2500 John | *")
    assert split_head("#7") == (7, "")
    with pytest.raises(ValueError, match="Missing group id"):
        split_head(None)
    with pytest.raises(ValueError, match="transaction id"):
        split_head("abc", "transaction id")


@pytest.mark.parametrize(
    "token, expected",
    [("2500", Decimal("2500")), ("1,250.50", Decimal("1250.50")), ("0.5", Decimal("0.5"))],
)
def test_parse_amount(token, expected):
    assert parse_amount(token) == expected


@pytest.mark.parametrize("token", ["abc", "0", "-3", "NaN", "Infinity"])
def test_parse_amount_rejects(token):
    with pytest.raises(ValueError):
        parse_amount(token)


def test_parse_expense_resolves_names_case_insensitively():
    inp = parse_expense("800 sarah | SARAH, mike | Taxi to the airport", ROSTER)
    assert inp.amount == Decimal("800")
    assert inp.paid_by == "Sarah"
    assert inp.split_between == ["Sarah", "Mike"]
    assert inp.description == "Taxi to the airport"


def test_parse_expense_star_means_everyone():
    inp = parse_expense("2500 anna  lee | *", ROSTER)
    assert inp.paid_by == "Anna Lee"
    assert inp.split_between == ROSTER
    assert inp.description == ""


def test_parse_expense_keeps_unknown_names_for_validation():
    inp = parse_expense("10 Zoe | John", ROSTER)
    assert inp.paid_by == "Zoe"


@pytest.mark.parametrize("body", ["2500 John", "2500 | John", "abc John | *"])
def test_parse_expense_rejects(body):
    with pytest.raises(ValueError):
        parse_expense(body, ROSTER)


@pytest.mark.parametrize("body", ["500 Mike -> John", "500 mike → john", "500 Mike>John"])
def test_parse_settlement_arrows(body):
    inp = parse_settlement(body, ROSTER)
    assert (inp.amount, inp.paid_by, inp.receiver) == (Decimal("500"), "Mike", "John")
    assert inp.description == ""


def test_parse_settlement_note_and_spaces():
    inp = parse_settlement("99.90 Anna Lee -> Sarah | cash", ROSTER)
    assert inp.paid_by == "Anna Lee"
    assert inp.receiver == "Sarah"
    assert inp.description == "cash"


@pytest.mark.parametrize("body", ["500 Mike John", "500", "500 -> John"])
def test_parse_settlement_rejects(body):
    with pytest.raises(ValueError):
        parse_settlement(body, ROSTER)
