"""
Activity Log Module

Records what happened to a ledger as typed entries.

Each entry is one variant of a tagged union keyed by ``action``; the
``details`` payload shape is fixed per action, so readers never have to
guess what an entry carries.

    CREATE / UPDATE / DELETE  -> EntityDetails   (expense, person or settlement)
    SETTLE                    -> SettleDetails   (a recorded settlement)
    CLEAR                     -> ClearDetails    (ledger, settlement history or carry-forward)
    ROLLOVER                  -> RolloverDetails (carry-forward written)

Data Model:
    Entry stored at: ledgers/{ledger_id}/activity_logs/{log_id}
    Fields: log_id (L0001, ...), action, details, actor, timestamp

Functions:
    record_activity: Persist an entry (optionally as part of a batch).
    get_activity_logs: Read entries back, newest first.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from firebase_store import (
    ACTIVITY_LOGS,
    get_timestamp,
    ledger_collection,
    next_sequential_id,
    require_db,
    validate_ledger_id
)
from logging_setup import get_logger


_logger = get_logger("shared_expense_ledger.activity_log")


class EntityDetails(BaseModel):
    entity: Literal["expense", "person", "settlement"]
    entity_id: str
    summary: str = ""


class SettleDetails(BaseModel):
    settlement_id: str
    from_person: str
    to_person: str
    amount: float
    period: str


class ClearDetails(BaseModel):
    scope: Literal["ledger", "settlement_history", "carry_forward"]
    removed: dict[str, int] = Field(default_factory=dict)


class RolloverDetails(BaseModel):
    from_period: str
    to_period: str
    carry_forward: dict[str, float] = Field(default_factory=dict)


class _EntryBase(BaseModel):
    log_id: Optional[str] = None
    actor: Optional[str] = None
    timestamp: Optional[str] = None


class CreateEntry(_EntryBase):
    action: Literal["CREATE"] = "CREATE"
    details: EntityDetails


class UpdateEntry(_EntryBase):
    action: Literal["UPDATE"] = "UPDATE"
    details: EntityDetails


class DeleteEntry(_EntryBase):
    action: Literal["DELETE"] = "DELETE"
    details: EntityDetails


class SettleEntry(_EntryBase):
    action: Literal["SETTLE"] = "SETTLE"
    details: SettleDetails


class ClearEntry(_EntryBase):
    action: Literal["CLEAR"] = "CLEAR"
    details: ClearDetails


class RolloverEntry(_EntryBase):
    action: Literal["ROLLOVER"] = "ROLLOVER"
    details: RolloverDetails


ActivityEntry = Annotated[
    Union[CreateEntry, UpdateEntry, DeleteEntry, SettleEntry, ClearEntry, RolloverEntry],
    Field(discriminator="action")
]

_entry_adapter = TypeAdapter(ActivityEntry)


def parse_entry(data: dict):
    """Turn a stored document back into its typed entry."""
    return _entry_adapter.validate_python(data)


def record_activity(ledger_id: str, entry, actor: Optional[str] = None, batch=None):
    """
    Persist an activity entry.

    Args:
        ledger_id: The ID of the ledger.
        entry: One of the *Entry models.
        actor: Optional person id of whoever triggered the action.
        batch: Optional WriteBatch; when given the write is only queued and
            lands together with the caller's other writes.

    Returns:
        The entry with log_id, actor and timestamp filled in.
    """
    validate_ledger_id(ledger_id)
    db = require_db()
    logs_ref = ledger_collection(db, ledger_id, ACTIVITY_LOGS)

    stored = entry.model_copy(update={
        "log_id": next_sequential_id(logs_ref, "L", width=4),
        "actor": actor if actor is not None else entry.actor,
        "timestamp": get_timestamp()
    })
    doc_ref = logs_ref.document(stored.log_id)

    if batch is not None:
        batch.set(doc_ref, stored.model_dump())
    else:
        doc_ref.set(stored.model_dump())

    _logger.debug("Activity %s %s on ledger %s", stored.log_id, stored.action, ledger_id)
    return stored


def get_activity_logs(ledger_id: str, limit: int = 50) -> list:
    """
    Get the most recent activity entries, newest first.

    Documents that no longer parse (written by an older schema) are skipped
    with a warning rather than failing the whole listing.
    """
    validate_ledger_id(ledger_id)
    db = require_db()

    entries = []
    for doc in ledger_collection(db, ledger_id, ACTIVITY_LOGS).stream():
        try:
            entries.append(parse_entry(doc.to_dict()))
        except ValueError as e:
            _logger.warning("Skipping unreadable activity log %s: %s", doc.id, e)

    # L9999 < L10000 once the counter outgrows its padding
    entries.sort(key=lambda e: (len(e.log_id or ""), e.log_id or ""), reverse=True)
    return entries[:max(limit, 0)]
