"""
Settlement Module

This module turns net positions into the minimal list of pairwise dues for
the shared expense ledger.

Features:
    - Convert net positions into "who owes whom" transfers
    - Minimize number of transfers using a greedy algorithm
    - Deterministic output for identical input
    - Handle rounding safely

Data Model:
    Input - positions (dict keyed by person_id), either:
        - person_id -> net (float), or
        - person_id -> {"net": float, ...} as produced by compute_net_positions()

    Output - list of dues:
        - from: string (debtor who pays)
        - to: string (creditor who receives)
        - amount: float (rounded to 2 decimal places)

Functions:
    compute_dues: Convert net positions into minimal transfers.
"""

from decimal import Decimal

from utils import EPSILON, round_money, to_decimal


def _net_of(position) -> Decimal:
    if isinstance(position, dict):
        return to_decimal(position["net"])
    return to_decimal(position)


def _pick_largest(parties: dict) -> str:
    """Person with the largest remaining amount; ties go to the smallest id."""
    return min(parties, key=lambda person_id: (-parties[person_id], person_id))


def compute_dues(positions: dict) -> list[dict]:
    """
    Convert net positions into minimal settlement transfers.

    Uses a greedy algorithm:
        1. Separate persons into debtors (net < 0) and creditors (net > 0),
           each with a remaining amount of abs(net)
        2. Pick the debtor with the largest remaining amount and the creditor
           with the largest remaining amount (ties: smallest person_id)
        3. Transfer the minimum of the two, record it, reduce both
        4. Drop anyone whose remaining amount is below 0.01
        5. Repeat until no debtors or no creditors remain

    Every step clears at least one party, so n unsettled persons need at
    most n - 1 transfers.

    Args:
        positions: person_id -> net, or person_id -> {"net": ...}.

    Returns:
        list[dict]: Dues in the order they were produced, each with
            from, to and amount.

    Notes:
        - Persons within 0.01 of zero are ignored
        - Does NOT modify input positions
        - Does NOT write to Firestore
    """
    debtors = {}
    creditors = {}

    for person_id, position in positions.items():
        net = _net_of(position)
        if net < -EPSILON:
            debtors[person_id] = -net
        elif net > EPSILON:
            creditors[person_id] = net

    dues = []

    while debtors and creditors:
        debtor_id = _pick_largest(debtors)
        creditor_id = _pick_largest(creditors)

        amount = min(debtors[debtor_id], creditors[creditor_id])
        dues.append({
            "from": debtor_id,
            "to": creditor_id,
            "amount": round_money(amount)
        })

        debtors[debtor_id] -= amount
        creditors[creditor_id] -= amount

        if debtors[debtor_id] < EPSILON:
            del debtors[debtor_id]
        if creditors[creditor_id] < EPSILON:
            del creditors[creditor_id]

    return dues
