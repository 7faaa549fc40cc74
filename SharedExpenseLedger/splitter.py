"""
Splitter Module

This module turns expense and settlement records into per-person net
positions for the shared expense ledger.

Features:
    - Weighted many-to-many splits (each giver/taker carries its own amount)
    - Settlements folded into the position
    - Carry-forward opening balances from a rollover
    - Decimal-safe arithmetic and rounding

Data Model:
    Input - expenses (list of dicts):
        - givers: list of {person_id, amount}
        - takers: list of {person_id, amount}

    Input - settlements (list of dicts):
        - from_person: string (who handed over money)
        - to_person: string (who received it)
        - amount: float

    Input - carry_forward (dict): person_id -> opening balance

    Output - positions (dict keyed by person_id):
        - paid: float (sum of contributions)
        - consumed: float (sum of benefits)
        - settled_paid: float (settlements this person paid)
        - settled_received: float (settlements this person received)
        - carried_forward: float (opening balance)
        - net: float (paid - consumed + settled_paid - settled_received + carried_forward)
            - Positive = others owe this person
            - Negative = this person owes others

Functions:
    compute_net_positions: Calculate per-person positions.
    compute_user_stats: Combine positions and dues into per-person stats.
"""

from decimal import Decimal
from typing import Optional

from utils import round_money, to_decimal


_FIELDS = ("paid", "consumed", "settled_paid", "settled_received", "carried_forward")


def _person_id_of(person) -> str:
    if isinstance(person, str):
        return person
    if isinstance(person, dict):
        return person["person_id"]
    return person.person_id


def compute_net_positions(
    expenses: list[dict],
    settlements: list[dict],
    carry_forward: Optional[dict] = None,
    persons: Optional[list] = None
) -> dict:
    """
    Calculate per-person net positions.

    For each expense:
        1. Every giver's ``paid`` increases by their contribution
        2. Every taker's ``consumed`` increases by their benefit

    For each settlement:
        net[from] += amount; net[to] -= amount

    Finally each person's carry-forward (default 0) is added.

    Args:
        expenses: Expense dicts with givers and takers.
        settlements: Settlement dicts with from_person, to_person, amount.
        carry_forward: Optional person_id -> opening balance map.
        persons: Optional known persons (ids, dicts or Person objects);
            they appear in the output even with no activity.

    Returns:
        dict: Positions keyed by person_id (see module docstring).

    Notes:
        - With an empty or zero-sum carry-forward the nets sum to 0
        - Does NOT read or write Firestore
    """
    totals = {}

    def _account(person_id: str) -> dict:
        if person_id not in totals:
            totals[person_id] = {field: Decimal("0") for field in _FIELDS}
        return totals[person_id]

    for person in persons or []:
        _account(_person_id_of(person))

    for expense in expenses:
        for giver in expense.get("givers", []):
            _account(giver["person_id"])["paid"] += to_decimal(giver["amount"])
        for taker in expense.get("takers", []):
            _account(taker["person_id"])["consumed"] += to_decimal(taker["amount"])

    for settlement in settlements:
        amount = to_decimal(settlement["amount"])
        _account(settlement["from_person"])["settled_paid"] += amount
        _account(settlement["to_person"])["settled_received"] += amount

    for person_id, opening in (carry_forward or {}).items():
        _account(person_id)["carried_forward"] += to_decimal(opening)

    positions = {}
    for person_id in sorted(totals):
        account = totals[person_id]
        net = (
            account["paid"]
            - account["consumed"]
            + account["settled_paid"]
            - account["settled_received"]
            + account["carried_forward"]
        )
        positions[person_id] = {field: round_money(account[field]) for field in _FIELDS}
        positions[person_id]["net"] = round_money(net)

    return positions


def compute_user_stats(
    positions: dict,
    dues: list[dict],
    persons: Optional[list] = None
) -> list[dict]:
    """
    Build the per-person stats shown next to the dues list.

    Args:
        positions: Output from compute_net_positions().
        dues: Output from settlement.compute_dues().
        persons: Optional person dicts/objects used to attach display names.

    Returns:
        list[dict]: One entry per person, ordered by person_id:
            - person_id, name
            - paid, consumed: from positions
            - settled_amount: settlements paid minus settlements received
            - owes: total of dues this person must pay
            - owed: total of dues this person will receive
            - net: from positions
    """
    names = {}
    for person in persons or []:
        if isinstance(person, dict):
            names[person["person_id"]] = person.get("name")
        elif not isinstance(person, str):
            names[person.person_id] = person.name

    owes = {}
    owed = {}
    for due in dues:
        amount = to_decimal(due["amount"])
        owes[due["from"]] = owes.get(due["from"], Decimal("0")) + amount
        owed[due["to"]] = owed.get(due["to"], Decimal("0")) + amount

    stats = []
    for person_id in sorted(positions):
        position = positions[person_id]
        settled = to_decimal(position["settled_paid"]) - to_decimal(position["settled_received"])
        stats.append({
            "person_id": person_id,
            "name": names.get(person_id, person_id),
            "paid": position["paid"],
            "consumed": position["consumed"],
            "settled_amount": round_money(settled),
            "owes": round_money(owes.get(person_id, Decimal("0"))),
            "owed": round_money(owed.get(person_id, Decimal("0"))),
            "net": position["net"]
        })

    return stats
