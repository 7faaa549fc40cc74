from __future__ import annotations

import random

import pytest

from settlement import compute_dues
from splitter import compute_net_positions


def _apply(nets: dict[str, float], dues: list[dict]) -> dict[str, float]:
    """Apply every due as a settlement and return the resulting nets."""
    out = {p: round(n, 2) for p, n in nets.items()}
    for due in dues:
        out[due["from"]] = round(out[due["from"]] + due["amount"], 2)
        out[due["to"]] = round(out[due["to"]] - due["amount"], 2)
    return out


def test_three_person_scenario() -> None:
    dues = compute_dues({"A": 200, "B": -100, "C": -100})

    assert {(d["from"], d["to"], d["amount"]) for d in dues} == {
        ("B", "A", 100.0),
        ("C", "A", 100.0),
    }


def test_after_partial_settlement_only_one_due_remains() -> None:
    dues = compute_dues({"A": 100, "B": 0, "C": -100})

    assert dues == [{"from": "C", "to": "A", "amount": 100.0}]


def test_accepts_positions_from_compute_net_positions() -> None:
    positions = compute_net_positions(
        [{
            "givers": [{"person_id": "A", "amount": 90}],
            "takers": [{"person_id": "A", "amount": 30}, {"person_id": "B", "amount": 60}],
        }],
        settlements=[],
    )

    assert compute_dues(positions) == [{"from": "B", "to": "A", "amount": 60.0}]


def test_largest_debtor_is_matched_with_largest_creditor_first() -> None:
    dues = compute_dues({"A": 50, "B": 150, "C": -20, "D": -180})

    assert dues[0] == {"from": "D", "to": "B", "amount": 150.0}
    assert dues[1] == {"from": "D", "to": "A", "amount": 30.0}
    assert dues[2] == {"from": "C", "to": "A", "amount": 20.0}


def test_ties_break_on_person_id() -> None:
    nets = {"Z": 50, "Y": 50, "C": -50, "B": -50}

    dues = compute_dues(nets)

    assert dues == [
        {"from": "B", "to": "Y", "amount": 50.0},
        {"from": "C", "to": "Z", "amount": 50.0},
    ]


def test_output_does_not_depend_on_input_order() -> None:
    items = [("U001", 30), ("U002", 30), ("U003", -20), ("U004", -20), ("U005", -20)]
    expected = compute_dues(dict(items))

    shuffled = items[:]
    random.Random(7).shuffle(shuffled)

    assert compute_dues(dict(shuffled)) == expected


def test_near_zero_balances_are_ignored() -> None:
    assert compute_dues({"A": 0.004, "B": -0.004}) == []
    assert compute_dues({}) == []


def test_unbalanced_input_stops_when_one_side_is_empty() -> None:
    # A carry-forward that does not sum to zero leaves creditor money unmatched
    dues = compute_dues({"A": 100, "B": -30})

    assert dues == [{"from": "B", "to": "A", "amount": 30.0}]


def test_input_is_not_modified() -> None:
    nets = {"A": 10.0, "B": -10.0}
    compute_dues(nets)
    assert nets == {"A": 10.0, "B": -10.0}


@pytest.mark.parametrize("seed", range(20))
def test_minimality_and_zeroing(seed: int) -> None:
    rng = random.Random(seed)
    size = rng.randint(2, 9)
    # Multiples of 5 cents keep every party clear of the 0.01 threshold
    cents = [rng.randint(-10_000, 10_000) * 5 for _ in range(size - 1)]
    cents.append(-sum(cents))
    nets = {f"U{i:03d}": c / 100 for i, c in enumerate(cents, start=1)}

    dues = compute_dues(nets)

    unsettled = sum(1 for n in nets.values() if abs(n) > 0.01)
    assert len(dues) <= max(unsettled - 1, 0)
    assert all(d["amount"] > 0 for d in dues)
    assert all(abs(n) <= 0.01 for n in _apply(nets, dues).values())
