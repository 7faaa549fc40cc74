"""
Settlement Records Module

This module stores the real-world payments ("mark as paid") made against
pairwise dues.

Features:
    - Record a settlement for a (month, year) period
    - Delete a settlement (its effect disappears on the next computation)
    - Bulk-delete the whole settlement history

Data Model:
    Settlement stored at: ledgers/{ledger_id}/settlements/{settlement_id}
    Fields:
        - settlement_id: string (S001, S002, ... format)
        - from_person: string (who paid)
        - to_person: string (who received)
        - amount: float (> 0)
        - month / year: int (period the settlement is booked against)
        - timestamp: ISO timestamp
        - note: string or None

Functions:
    record_settlement: Append a settlement.
    delete_settlement: Remove one settlement.
    get_settlements: List settlements, optionally for one period.
    clear_settlement_history: Remove every settlement.
"""

from typing import Optional

from activity_log import (
    ClearDetails,
    ClearEntry,
    DeleteEntry,
    EntityDetails,
    SettleDetails,
    SettleEntry,
    record_activity
)
from cache import snapshot_cache
from errors import NotFoundError, ValidationError
from firebase_store import (
    SETTLEMENTS,
    delete_documents,
    get_timestamp,
    ledger_collection,
    next_sequential_id,
    require_db,
    validate_ledger_id
)
from logging_setup import get_logger
from persons import get_person_ids
from utils import Period, round_money, to_decimal, validate_non_empty_string


_logger = get_logger("shared_expense_ledger.settlements")


class Settlement:
    """
    Represents a payment from one person to another.

    Attributes:
        settlement_id (str): Unique identifier in S### format.
        from_person (str): Person ID of the payer.
        to_person (str): Person ID of the payee.
        amount (float): Amount paid (> 0).
        month (int), year (int): Period the payment is booked against.
        timestamp (str): When it was recorded (ISO, UTC).
        note (str | None): Optional note.
    """

    def __init__(
        self,
        settlement_id: str,
        from_person: str,
        to_person: str,
        amount: float,
        month: int,
        year: int,
        timestamp: Optional[str] = None,
        note: Optional[str] = None
    ):
        self.settlement_id = settlement_id
        self.from_person = from_person
        self.to_person = to_person
        self.amount = amount
        self.month = month
        self.year = year
        self.timestamp = timestamp
        self.note = note

    @property
    def period(self) -> Period:
        return Period(self.month, self.year)

    def to_dict(self) -> dict:
        """Convert settlement to dictionary for Firestore storage."""
        return {
            "settlement_id": self.settlement_id,
            "from_person": self.from_person,
            "to_person": self.to_person,
            "amount": self.amount,
            "month": self.month,
            "year": self.year,
            "timestamp": self.timestamp,
            "note": self.note
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Settlement":
        """Create a Settlement instance from a dictionary."""
        return cls(
            settlement_id=data.get("settlement_id"),
            from_person=data.get("from_person"),
            to_person=data.get("to_person"),
            amount=data.get("amount"),
            month=data.get("month"),
            year=data.get("year"),
            timestamp=data.get("timestamp"),
            note=data.get("note")
        )

    def __repr__(self) -> str:
        return (
            f"Settlement(id='{self.settlement_id}', from='{self.from_person}', "
            f"to='{self.to_person}', amount={self.amount}, period='{self.period.key}')"
        )


def record_settlement(
    ledger_id: str,
    from_person: str,
    to_person: str,
    amount: float,
    period: Period,
    note: Optional[str] = None,
    actor: Optional[str] = None
) -> Settlement:
    """
    Record a payment from ``from_person`` to ``to_person``.

    Args:
        ledger_id: The ID of the ledger.
        from_person: Person ID of the payer.
        to_person: Person ID of the payee.
        amount: Amount paid (must be > 0).
        period: Period the payment is booked against.
        note: Optional note.
        actor: Optional person ID of whoever recorded it.

    Returns:
        Settlement: The stored settlement.

    Raises:
        ValidationError: Non-positive amount or from_person == to_person.
        NotFoundError: If either person does not exist.
        RuntimeError: If Firestore is not available.

    Notes:
        - Overpaying is allowed; the pair's balance simply flips sign
    """
    validate_ledger_id(ledger_id)
    from_person = validate_non_empty_string(from_person, "from_person")
    to_person = validate_non_empty_string(to_person, "to_person")
    if not isinstance(period, Period):
        raise ValidationError("period must be a Period")

    value = to_decimal(amount)
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"amount must be a positive number, got: {amount}")
    if round_money(value) <= 0:
        raise ValidationError(f"amount rounds to zero: {amount}")
    if from_person == to_person:
        raise ValidationError("a person cannot settle with themselves")

    known = get_person_ids(ledger_id)
    for person_id in (from_person, to_person):
        if person_id not in known:
            raise NotFoundError(f"Person '{person_id}' does not exist in ledger {ledger_id}")

    db = require_db()
    settlements_ref = ledger_collection(db, ledger_id, SETTLEMENTS)

    settlement = Settlement(
        settlement_id=next_sequential_id(settlements_ref, "S"),
        from_person=from_person,
        to_person=to_person,
        amount=round_money(value),
        month=period.month,
        year=period.year,
        timestamp=get_timestamp(),
        note=note.strip() if note else None
    )
    settlements_ref.document(settlement.settlement_id).set(settlement.to_dict())
    snapshot_cache.invalidate(ledger_id, period.key)

    record_activity(ledger_id, SettleEntry(details=SettleDetails(
        settlement_id=settlement.settlement_id,
        from_person=from_person,
        to_person=to_person,
        amount=settlement.amount,
        period=period.key
    )), actor=actor)

    _logger.info(
        "Recorded settlement %s: %s -> %s %.2f (%s)",
        settlement.settlement_id, from_person, to_person, settlement.amount, period.key
    )
    return settlement


def delete_settlement(ledger_id: str, settlement_id: str, actor: Optional[str] = None) -> Settlement:
    """
    Delete a settlement.

    Nothing is reversed explicitly: later computations simply no longer see
    the record, which restores the balance it had reduced.

    Returns:
        Settlement: The deleted settlement.

    Raises:
        NotFoundError: If the settlement does not exist.
    """
    validate_ledger_id(ledger_id)
    settlement_id = validate_non_empty_string(settlement_id, "settlement_id")
    db = require_db()

    doc_ref = ledger_collection(db, ledger_id, SETTLEMENTS).document(settlement_id)
    doc = doc_ref.get()
    if not doc.exists:
        raise NotFoundError(f"Settlement {settlement_id} not found in ledger {ledger_id}")

    settlement = Settlement.from_dict(doc.to_dict())
    doc_ref.delete()
    snapshot_cache.invalidate(ledger_id, settlement.period.key)

    record_activity(ledger_id, DeleteEntry(details=EntityDetails(
        entity="settlement",
        entity_id=settlement_id,
        summary=f"{settlement.from_person} -> {settlement.to_person} {settlement.amount:.2f}"
    )), actor=actor)

    _logger.info("Deleted settlement %s from ledger %s", settlement_id, ledger_id)
    return settlement


def get_settlements(ledger_id: str, period: Optional[Period] = None) -> list[Settlement]:
    """
    Get settlements of a ledger, ordered by timestamp then settlement_id.

    Args:
        ledger_id: The ID of the ledger.
        period: Only settlements booked against this period when given.
    """
    validate_ledger_id(ledger_id)
    db = require_db()

    settlements = []
    for doc in ledger_collection(db, ledger_id, SETTLEMENTS).stream():
        settlement = Settlement.from_dict(doc.to_dict())
        if period is not None and settlement.period != period:
            continue
        settlements.append(settlement)

    settlements.sort(key=lambda s: (s.timestamp or "", s.settlement_id))
    return settlements


def clear_settlement_history(ledger_id: str, actor: Optional[str] = None) -> int:
    """
    Delete every settlement record of a ledger.

    Expense records are untouched. Because settlements are part of the net
    computation, balances recomputed afterwards no longer include them.

    Returns:
        int: Number of settlements removed.
    """
    validate_ledger_id(ledger_id)
    db = require_db()

    batch = db.batch()
    removed = delete_documents(batch, {
        SETTLEMENTS: ledger_collection(db, ledger_id, SETTLEMENTS)
    })
    record_activity(ledger_id, ClearEntry(details=ClearDetails(
        scope="settlement_history",
        removed=removed
    )), actor=actor, batch=batch)
    batch.commit()

    snapshot_cache.invalidate(ledger_id)
    _logger.warning("Cleared settlement history of ledger %s (%d records)", ledger_id, removed[SETTLEMENTS])
    return removed[SETTLEMENTS]
