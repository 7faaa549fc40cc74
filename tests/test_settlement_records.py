from __future__ import annotations

import pytest

from errors import NotFoundError, ValidationError
from expenses import add_expense, equal_split
from ledger import compute_period_positions, get_period_dues
from settlement_records import (
    clear_settlement_history,
    delete_settlement,
    get_settlements,
    record_settlement,
)
from utils import Period

LEDGER = "home"
MARCH = Period(3, 2026)


@pytest.fixture
def ledger(people):
    """A pays 300 for A, B and C in March 2026."""
    a, b, c = people["A"], people["B"], people["C"]
    add_expense(
        LEDGER,
        date="2026-03-05",
        amount=300,
        category="Food",
        givers=[{"person_id": a, "amount": 300}],
        takers=equal_split(300, [a, b, c]),
        split_type="equal",
    )
    return people


def _nets() -> dict[str, float]:
    return {p: v["net"] for p, v in compute_period_positions(LEDGER, MARCH).items()}


def test_expense_alone_gives_expected_dues(ledger) -> None:
    a, b, c = ledger["A"], ledger["B"], ledger["C"]

    assert _nets() == {a: 200.0, b: -100.0, c: -100.0}
    assert {(d["from"], d["to"], d["amount"]) for d in get_period_dues(LEDGER, MARCH)} == {
        (b, a, 100.0),
        (c, a, 100.0),
    }


def test_settlement_reduces_dues(ledger) -> None:
    a, b, c = ledger["A"], ledger["B"], ledger["C"]

    settlement = record_settlement(LEDGER, b, a, 100, MARCH, note=" cash ")

    assert settlement.settlement_id == "S001"
    assert settlement.note == "cash"
    assert _nets() == {a: 100.0, b: 0.0, c: -100.0}
    assert get_period_dues(LEDGER, MARCH) == [{"from": c, "to": a, "amount": 100.0}]


def test_delete_restores_previous_positions_exactly(ledger) -> None:
    a, b = ledger["A"], ledger["B"]
    before = compute_period_positions(LEDGER, MARCH)

    settlement = record_settlement(LEDGER, a, b, 50, MARCH)
    assert compute_period_positions(LEDGER, MARCH) != before

    delete_settlement(LEDGER, settlement.settlement_id)

    assert compute_period_positions(LEDGER, MARCH) == before


def test_overpayment_flips_the_pair(ledger) -> None:
    a, c = ledger["A"], ledger["C"]

    record_settlement(LEDGER, c, a, 250, MARCH)

    nets = _nets()
    assert nets[c] == 150.0
    assert nets[a] == -50.0


def test_settlement_only_counts_in_its_period(ledger) -> None:
    a, b = ledger["A"], ledger["B"]

    record_settlement(LEDGER, b, a, 100, Period(4, 2026))

    assert _nets()[b] == -100.0
    assert len(get_settlements(LEDGER, Period(4, 2026))) == 1
    assert get_settlements(LEDGER, MARCH) == []


@pytest.mark.parametrize("amount", [0, -10, "abc", float("nan"), 0.001])
def test_non_positive_amount_is_rejected(ledger, amount) -> None:
    with pytest.raises(ValidationError):
        record_settlement(LEDGER, ledger["B"], ledger["A"], amount, MARCH)


def test_self_settlement_is_rejected(ledger) -> None:
    with pytest.raises(ValidationError):
        record_settlement(LEDGER, ledger["A"], ledger["A"], 10, MARCH)


def test_unknown_person_is_not_found(ledger) -> None:
    with pytest.raises(NotFoundError):
        record_settlement(LEDGER, "U999", ledger["A"], 10, MARCH)


def test_delete_unknown_settlement(ledger) -> None:
    with pytest.raises(NotFoundError):
        delete_settlement(LEDGER, "S404")


def test_clear_history_removes_only_settlements(ledger, db) -> None:
    a, b, c = ledger["A"], ledger["B"], ledger["C"]
    record_settlement(LEDGER, b, a, 100, MARCH)
    record_settlement(LEDGER, c, a, 30, MARCH)

    removed = clear_settlement_history(LEDGER)

    assert removed == 2
    assert get_settlements(LEDGER) == []
    assert len(db.documents_in("ledgers", LEDGER, "expenses")) == 1
    # Balances are recomputed without the removed settlements
    assert _nets() == {a: 200.0, b: -100.0, c: -100.0}
