from __future__ import annotations

import pytest

from errors import NotFoundError, ValidationError
from expenses import (
    add_expense,
    delete_expense,
    equal_split,
    get_expense,
    get_expenses,
    update_expense,
)
from ledger import compute_period_positions, get_period_dues
from utils import Period

LEDGER = "home"
MARCH = Period(3, 2026)


def _shares(**amounts: float) -> list[dict]:
    return [{"person_id": p, "amount": a} for p, a in amounts.items()]


def _add(people: dict[str, str], **overrides):
    a, b, c = people["A"], people["B"], people["C"]
    fields = dict(
        date="2026-03-05",
        amount=300,
        category="Food",
        givers=[{"person_id": a, "amount": 300}],
        takers=equal_split(300, [a, b, c]),
        reason="Groceries",
    )
    fields.update(overrides)
    return add_expense(LEDGER, **fields)


def test_add_expense_assigns_sequential_ids(people, db) -> None:
    first = _add(people)
    second = _add(people, date="2026-03-06")

    assert (first.expense_id, second.expense_id) == ("E001", "E002")
    stored = db.documents_in("ledgers", LEDGER, "expenses")
    assert stored["E001"]["givers"] == [{"person_id": people["A"], "amount": 300.0}]
    assert stored["E001"]["reason"] == "Groceries"
    assert stored["E001"]["created_at"]


def test_giver_sum_mismatch_is_rejected(people, db) -> None:
    with pytest.raises(ValidationError, match="givers"):
        _add(people, givers=[{"person_id": people["A"], "amount": 299.5}])

    assert db.documents_in("ledgers", LEDGER, "expenses") == {}


def test_taker_sum_mismatch_is_rejected(people) -> None:
    with pytest.raises(ValidationError, match="takers"):
        _add(people, takers=[{"person_id": people["B"], "amount": 301}])


def test_sums_within_a_cent_are_accepted(people) -> None:
    expense = _add(
        people,
        amount=100,
        givers=[{"person_id": people["A"], "amount": 100}],
        takers=[
            {"person_id": people["A"], "amount": 33.33},
            {"person_id": people["B"], "amount": 33.33},
            {"person_id": people["C"], "amount": 33.33},
        ],
    )
    assert expense.amount == 100.0
    # The cent the takers were short goes to the largest (earliest) share
    assert [t["amount"] for t in expense.takers] == [33.34, 33.33, 33.33]


def test_stored_shares_keep_the_ledger_balanced(people) -> None:
    a, b, c = people["A"], people["B"], people["C"]
    for _ in range(5):
        _add(
            people,
            amount=10,
            givers=_shares(**{a: 10.01}),
            takers=_shares(**{b: 9.99}),
        )
    mixed = _add(
        people,
        amount=30,
        givers=_shares(**{a: 15.01, b: 15}),
        takers=_shares(**{a: 10, b: 10, c: 9.99}),
    )

    assert mixed.givers == [{"person_id": a, "amount": 15.0}, {"person_id": b, "amount": 15.0}]
    assert mixed.takers[0] == {"person_id": a, "amount": 10.01}

    nets = {p: v["net"] for p, v in compute_period_positions(LEDGER, MARCH).items()}
    assert abs(sum(nets.values())) <= 0.01

    for due in get_period_dues(LEDGER, MARCH):
        nets[due["from"]] = round(nets[due["from"]] + due["amount"], 2)
        nets[due["to"]] = round(nets[due["to"]] - due["amount"], 2)
    assert all(abs(n) <= 0.01 for n in nets.values())


@pytest.mark.parametrize("field", ["givers", "takers"])
def test_empty_participant_sets_are_rejected(people, field) -> None:
    with pytest.raises(ValidationError):
        _add(people, **{field: []})


def test_duplicate_participants_are_rejected(people) -> None:
    a = people["A"]
    with pytest.raises(ValidationError, match="more than once"):
        _add(people, givers=[{"person_id": a, "amount": 150}, {"person_id": a, "amount": 150}])


def test_negative_share_is_rejected(people) -> None:
    a, b = people["A"], people["B"]
    with pytest.raises(ValidationError):
        _add(people, takers=[{"person_id": a, "amount": 350}, {"person_id": b, "amount": -50}])


@pytest.mark.parametrize(
    "overrides",
    [
        {"amount": 0},
        {"amount": -5},
        {"category": "Travel"},
        {"date": "05/03/2026"},
        {"split_type": "weird"},
    ],
)
def test_field_validation(people, overrides) -> None:
    with pytest.raises(ValidationError):
        _add(people, **overrides)


def test_unknown_person_is_not_found(people) -> None:
    with pytest.raises(NotFoundError):
        _add(people, givers=[{"person_id": "U999", "amount": 300}])


def test_update_replaces_participant_sets(people) -> None:
    a, b = people["A"], people["B"]
    expense = _add(people)

    updated = update_expense(
        LEDGER,
        expense.expense_id,
        amount=50,
        givers=_shares(**{b: 50}),
        takers=_shares(**{a: 50}),
    )

    assert updated.givers == [{"person_id": b, "amount": 50.0}]
    assert updated.takers == [{"person_id": a, "amount": 50.0}]
    assert updated.created_at == expense.created_at
    assert get_expense(LEDGER, expense.expense_id).amount == 50.0


def test_update_revalidates_sums(people) -> None:
    expense = _add(people)

    # Changing only the amount leaves the old 300-sum shares behind
    with pytest.raises(ValidationError):
        update_expense(LEDGER, expense.expense_id, amount=120)

    assert get_expense(LEDGER, expense.expense_id).amount == 300.0


def test_update_rejects_unknown_fields(people) -> None:
    expense = _add(people)
    with pytest.raises(ValidationError):
        update_expense(LEDGER, expense.expense_id, payer="U001")


def test_delete_expense(people) -> None:
    expense = _add(people)

    delete_expense(LEDGER, expense.expense_id)

    with pytest.raises(NotFoundError):
        get_expense(LEDGER, expense.expense_id)
    with pytest.raises(NotFoundError):
        delete_expense(LEDGER, expense.expense_id)


def test_get_expenses_filters_by_period_and_category(people) -> None:
    _add(people, date="2026-03-31")
    _add(people, date="2026-04-01", category="Rent")
    _add(people, date="2026-03-01", category="Rent")

    march = get_expenses(LEDGER, period=Period(3, 2026))
    assert [e.date for e in march] == ["2026-03-01", "2026-03-31"]

    rent = get_expenses(LEDGER, category="Rent")
    assert [e.date for e in rent] == ["2026-03-01", "2026-04-01"]

    with pytest.raises(ValidationError):
        get_expenses(LEDGER, category="Nope")


def test_equal_split_keeps_cents_exact() -> None:
    shares = equal_split(100, ["U001", "U002", "U003"])

    assert [s["amount"] for s in shares] == [33.34, 33.33, 33.33]
    assert round(sum(s["amount"] for s in shares), 2) == 100.0


def test_equal_split_rejects_bad_input() -> None:
    with pytest.raises(ValidationError):
        equal_split(10, [])
    with pytest.raises(ValidationError):
        equal_split(10, ["U001", "U001"])
    with pytest.raises(ValidationError):
        equal_split(0, ["U001"])


def test_store_unavailable_raises_runtime_error(no_db) -> None:
    with pytest.raises(RuntimeError, match="Firestore is not available"):
        get_expenses(LEDGER)
