"""
Firebase Store Module

This module holds the Firestore plumbing shared by the record modules of the
shared expense ledger.

Features:
    - One place that turns "no client" into RuntimeError
    - Ledger-scoped collection references
    - Sequential document IDs (E001, S001, U001, ...)
    - Batched deletes for the administrative clear operations

Firestore Structure:
    ledgers/{ledger_id}/persons/{person_id}
    ledgers/{ledger_id}/expenses/{expense_id}
    ledgers/{ledger_id}/settlements/{settlement_id}
    ledgers/{ledger_id}/rollovers/{rollover_id}
    ledgers/{ledger_id}/activity_logs/{log_id}

Functions:
    require_db: Return the Firestore client or raise RuntimeError.
    ledger_collection: Collection reference scoped to a ledger.
    next_sequential_id: Next free ID for a prefix inside a collection.
    delete_documents: Queue deletion of every document in some collections.
"""

import re
from datetime import datetime, timezone

from config import firebase_config
from errors import ValidationError


PERSONS = "persons"
EXPENSES = "expenses"
SETTLEMENTS = "settlements"
ROLLOVERS = "rollovers"
ACTIVITY_LOGS = "activity_logs"

# Firestore rejects batches with more than 500 writes
MAX_BATCH_WRITES = 500


def get_timestamp() -> str:
    """
    Get current UTC timestamp in ISO format.

    Returns:
        str: ISO formatted timestamp.
    """
    return datetime.now(timezone.utc).isoformat()


def validate_ledger_id(ledger_id: str) -> None:
    """
    Validate that ledger_id is a non-empty string.

    Raises:
        ValidationError: If ledger_id is invalid.
    """
    if not isinstance(ledger_id, str) or not ledger_id.strip():
        raise ValidationError("ledger_id must be a non-empty string")


def require_db():
    """
    Return the Firestore client.

    Raises:
        RuntimeError: If Firestore is not available.
    """
    db = firebase_config.get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")
    return db


def ledger_collection(db, ledger_id: str, name: str):
    """Return the ``ledgers/{ledger_id}/{name}`` collection reference."""
    return db.collection("ledgers").document(ledger_id).collection(name)


def next_sequential_id(collection_ref, prefix: str, width: int = 3) -> str:
    """
    Generate the next sequential ID inside a collection.

    Logic:
        1. Stream all existing document IDs
        2. Extract the numeric suffix of IDs matching {prefix}### (E001 -> 1)
        3. Return the highest number plus one, zero padded to ``width``

    IDs that do not follow the pattern are ignored, so legacy documents with
    auto-generated IDs never block new ones.

    Args:
        collection_ref: Firestore collection reference.
        prefix: ID prefix such as "E" or "S".
        width: Minimum number of digits.

    Returns:
        str: Next ID, e.g. "E004".
    """
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    max_num = 0

    for doc in collection_ref.stream():
        match = pattern.match(doc.id)
        if match:
            max_num = max(max_num, int(match.group(1)))

    return f"{prefix}{max_num + 1:0{width}d}"


def delete_documents(batch, collection_refs) -> dict:
    """
    Queue deletion of every document in the given collections on ``batch``.

    Nothing is deleted until the caller commits the batch, so a failure
    before commit leaves the store untouched.

    Args:
        batch: Firestore WriteBatch.
        collection_refs: Mapping of collection name -> collection reference.

    Returns:
        dict: Number of documents queued per collection name.

    Raises:
        RuntimeError: If the deletes would not fit in a single batch.
    """
    removed = {}
    total = 0

    for name, collection_ref in collection_refs.items():
        count = 0
        for doc in collection_ref.stream():
            batch.delete(doc.reference)
            count += 1
        removed[name] = count
        total += count

    if total > MAX_BATCH_WRITES - 1:
        raise RuntimeError(
            f"Refusing to clear {total} documents in one batch (limit {MAX_BATCH_WRITES})"
        )

    return removed
