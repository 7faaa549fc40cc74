"""
Rollover Module

This module carries a period's closing net positions forward as the next
period's opening balances.

Every rollover is a recorded event with a deterministic ID built from the
period pair, so applying the same rollover twice is detected instead of
doubling the carry-forward. Each period is also rolled out of at most once
and into at most once.

Data Model:
    Rollover stored at: ledgers/{ledger_id}/rollovers/{rollover_id}
    Fields:
        - rollover_id: string ("2026-09_2026-10")
        - from_period / to_period: {month, year}
        - from_key / to_key: string ("2026-09")
        - carry_forward: dict person_id -> float (non-zero nets only)
        - created_at: ISO timestamp

Functions:
    rollover_balances: Write the carry-forward of one period into another.
    get_carry_forward: Opening balances of a period.
    reset_carry_forward: Remove every rollover into a period.
"""

from decimal import Decimal
from typing import Optional

from google.api_core.exceptions import AlreadyExists

from activity_log import ClearDetails, ClearEntry, RolloverDetails, RolloverEntry, record_activity
from cache import snapshot_cache
from errors import ConflictError, ValidationError
from expenses import get_expenses
from firebase_store import ROLLOVERS, get_timestamp, ledger_collection, require_db, validate_ledger_id
from logging_setup import get_logger
from persons import get_persons
from settlement_records import get_settlements
from splitter import compute_net_positions
from utils import Period, round_money, to_decimal


_logger = get_logger("shared_expense_ledger.rollover")


def rollover_id(from_period: Period, to_period: Period) -> str:
    return f"{from_period.key}_{to_period.key}"


def get_carry_forward(ledger_id: str, period: Period) -> dict:
    """
    Get the opening balances of a period.

    Sums the carry-forward maps of every rollover whose target is ``period``
    (normally at most one).

    Returns:
        dict: person_id -> opening balance (float).
    """
    validate_ledger_id(ledger_id)
    db = require_db()

    totals = {}
    for doc in ledger_collection(db, ledger_id, ROLLOVERS).stream():
        data = doc.to_dict()
        if data.get("to_key") != period.key:
            continue
        for person_id, amount in data.get("carry_forward", {}).items():
            totals[person_id] = totals.get(person_id, Decimal("0")) + to_decimal(amount)

    return {person_id: round_money(amount) for person_id, amount in sorted(totals.items())}


def rollover_balances(
    ledger_id: str,
    from_period: Period,
    to_period: Optional[Period] = None,
    actor: Optional[str] = None
) -> dict:
    """
    Carry the net positions of ``from_period`` into ``to_period``.

    Request flow:
        1. Refuse if from_period was already rolled out of, or to_period
           already received a carry-forward
        2. Compute nets for from_period, including its own carry-forward
        3. Write the rollover record and its activity entry in one batch

    Args:
        ledger_id: The ID of the ledger.
        from_period: Period being closed.
        to_period: Period receiving the balances (default: the next month).
        actor: Optional person ID of whoever triggered the rollover.

    Returns:
        dict: The stored rollover record.

    Raises:
        ValidationError: If to_period is not after from_period.
        ConflictError: If from_period was already rolled over, or to_period
            already has a carry-forward.
        RuntimeError: If Firestore is not available.
    """
    validate_ledger_id(ledger_id)
    if to_period is None:
        to_period = from_period.next()
    if to_period <= from_period:
        raise ValidationError(
            f"to_period {to_period.key} must come after from_period {from_period.key}"
        )

    db = require_db()
    record_id = rollover_id(from_period, to_period)
    doc_ref = ledger_collection(db, ledger_id, ROLLOVERS).document(record_id)

    if doc_ref.get().exists:
        _logger.warning("Rollover %s already applied to ledger %s", record_id, ledger_id)
        raise ConflictError(f"Balances of {from_period.key} were already rolled over to {to_period.key}")

    # A period is carried out of once and into once, so no balance is counted twice
    for doc in ledger_collection(db, ledger_id, ROLLOVERS).stream():
        data = doc.to_dict()
        if data.get("from_key") == from_period.key:
            _logger.warning("Ledger %s already rolled %s over as %s", ledger_id, from_period.key, doc.id)
            raise ConflictError(f"Balances of {from_period.key} were already rolled over to {data.get('to_key')}")
        if data.get("to_key") == to_period.key:
            _logger.warning("Ledger %s already has a carry-forward into %s (%s)", ledger_id, to_period.key, doc.id)
            raise ConflictError(f"{to_period.key} already has a carry-forward from {data.get('from_key')}")

    positions = compute_net_positions(
        expenses=[e.to_dict() for e in get_expenses(ledger_id, period=from_period)],
        settlements=[s.to_dict() for s in get_settlements(ledger_id, period=from_period)],
        carry_forward=get_carry_forward(ledger_id, from_period),
        persons=get_persons(ledger_id)
    )
    carry_forward = {
        person_id: position["net"]
        for person_id, position in positions.items()
        if position["net"] != 0
    }

    record = {
        "rollover_id": record_id,
        "from_period": from_period.to_dict(),
        "to_period": to_period.to_dict(),
        "from_key": from_period.key,
        "to_key": to_period.key,
        "carry_forward": carry_forward,
        "created_at": get_timestamp()
    }

    batch = db.batch()
    # create() fails the whole batch if another caller got there first
    batch.create(doc_ref, record)
    record_activity(ledger_id, RolloverEntry(details=RolloverDetails(
        from_period=from_period.key,
        to_period=to_period.key,
        carry_forward=carry_forward
    )), actor=actor, batch=batch)

    try:
        batch.commit()
    except AlreadyExists:
        raise ConflictError(f"Balances of {from_period.key} were already rolled over to {to_period.key}")

    snapshot_cache.invalidate(ledger_id, to_period.key)
    _logger.info(
        "Rolled over %d balances of ledger %s from %s to %s",
        len(carry_forward), ledger_id, from_period.key, to_period.key
    )
    return record


def reset_carry_forward(ledger_id: str, period: Period, actor: Optional[str] = None) -> int:
    """
    Remove every rollover into ``period``.

    Afterwards the period has no opening balances and can be rolled into
    again. The deletes and a CLEAR activity entry land in one batch.

    Returns:
        int: Number of rollover records removed.
    """
    validate_ledger_id(ledger_id)
    db = require_db()

    batch = db.batch()
    removed = 0
    for doc in ledger_collection(db, ledger_id, ROLLOVERS).stream():
        if doc.to_dict().get("to_key") == period.key:
            batch.delete(doc.reference)
            removed += 1
    record_activity(ledger_id, ClearEntry(details=ClearDetails(
        scope="carry_forward",
        removed={ROLLOVERS: removed}
    )), actor=actor, batch=batch)
    batch.commit()

    snapshot_cache.invalidate(ledger_id, period.key)
    _logger.info("Reset %d carry-forward records into %s for ledger %s", removed, period.key, ledger_id)
    return removed
