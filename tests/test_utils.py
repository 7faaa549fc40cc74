from __future__ import annotations

from decimal import Decimal

import pytest

from errors import ValidationError
from splitter import compute_net_positions
from utils import (
    Period,
    explain_all_persons,
    explain_person_position,
    format_currency,
    round_money,
    to_decimal,
)


def test_period_key_and_next() -> None:
    assert Period(3, 2026).key == "2026-03"
    assert Period(3, 2026).next() == Period(4, 2026)
    assert Period(12, 2026).next().key == "2027-01"


def test_period_ordering_and_hashing() -> None:
    assert Period(12, 2025) < Period(1, 2026)
    assert Period(1, 2026) <= Period(1, 2026)
    assert len({Period(1, 2026), Period(1, 2026), Period(2, 2026)}) == 2
    assert Period(1, 2026) != "2026-01"


def test_period_contains_and_conversions() -> None:
    march = Period(3, 2026)

    assert march.contains("2026-03-31")
    assert not march.contains("2026-04-01")
    assert Period.from_key("2026-03") == march
    assert Period.of_date("2026-03-15") == march
    assert Period.from_dict(march.to_dict()) == march


@pytest.mark.parametrize("month, year", [(0, 2026), (13, 2026), (1, 99), (True, 2026), ("3", 2026)])
def test_period_rejects_bad_values(month, year) -> None:
    with pytest.raises(ValidationError):
        Period(month, year)


def test_period_from_bad_key() -> None:
    with pytest.raises(ValidationError):
        Period.from_key("March 2026")


def test_money_helpers() -> None:
    assert to_decimal(0.1) == Decimal("0.1")
    assert round_money(Decimal("2.005")) == 2.01
    assert format_currency(1234.5, symbol="$") == "$1,234.50"
    with pytest.raises(ValidationError):
        to_decimal("ten")
    with pytest.raises(ValidationError):
        to_decimal(True)


def test_currency_symbol_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("LEDGER_CURRENCY_SYMBOL", "€")
    assert format_currency(5) == "€5.00"


def test_explanation_lists_only_involved_expenses() -> None:
    expenses = [
        {
            "expense_id": "E001",
            "date": "2026-03-01",
            "category": "Food",
            "amount": 90,
            "givers": [{"person_id": "U001", "amount": 90}],
            "takers": [{"person_id": "U001", "amount": 30}, {"person_id": "U002", "amount": 60}],
        },
        {
            "expense_id": "E002",
            "date": "2026-03-02",
            "category": "Rent",
            "amount": 20,
            "givers": [{"person_id": "U002", "amount": 20}],
            "takers": [{"person_id": "U003", "amount": 20}],
        },
    ]
    positions = compute_net_positions(expenses, settlements=[])

    first = explain_person_position("U001", expenses, positions)

    assert [line["expense_id"] for line in first["expense_lines"]] == ["E001"]
    assert first["expense_lines"][0]["effect"] == 60.0
    assert first["net"] == 60.0

    everyone = explain_all_persons(expenses, positions)
    assert [e["person_id"] for e in everyone] == ["U001", "U002", "U003"]
    assert everyone[1]["net"] == -40.0
