"""
Ledger Module

Facade over the record modules and the balance computation.

Loads a period snapshot (through the snapshot cache), computes positions and
dues from it, and hosts the ledger-wide administrative clear.

Functions:
    load_snapshot: Records of one period, read through the cache.
    compute_period_positions: Net positions of a period.
    get_period_dues: Minimal pairwise dues of a period.
    get_period_stats: Per-person stats of a period.
    get_period_report: Dues, stats and positions in one pass.
    clear_ledger: Remove all expenses, settlements and rollovers.
"""

from typing import Optional

from activity_log import ClearDetails, ClearEntry, record_activity
from cache import LedgerSnapshot, snapshot_cache
from expenses import get_expenses
from firebase_store import (
    EXPENSES,
    ROLLOVERS,
    SETTLEMENTS,
    delete_documents,
    ledger_collection,
    require_db,
    validate_ledger_id
)
from logging_setup import get_logger
from persons import get_persons
from rollover import get_carry_forward
from settlement import compute_dues
from settlement_records import get_settlements
from splitter import compute_net_positions, compute_user_stats
from utils import Period


_logger = get_logger("shared_expense_ledger.ledger")


def load_snapshot(ledger_id: str, period: Period) -> LedgerSnapshot:
    """Return the period's records, served from the cache when possible."""
    validate_ledger_id(ledger_id)

    def _load() -> LedgerSnapshot:
        return LedgerSnapshot(
            persons=[p.to_dict() for p in get_persons(ledger_id)],
            expenses=[e.to_dict() for e in get_expenses(ledger_id, period=period)],
            settlements=[s.to_dict() for s in get_settlements(ledger_id, period=period)],
            carry_forward=get_carry_forward(ledger_id, period)
        )

    return snapshot_cache.get(ledger_id, period.key, _load)


def compute_period_positions(ledger_id: str, period: Period) -> dict:
    snapshot = load_snapshot(ledger_id, period)
    return compute_net_positions(
        expenses=list(snapshot.expenses),
        settlements=list(snapshot.settlements),
        carry_forward=snapshot.carry_forward,
        persons=list(snapshot.persons)
    )


def get_period_dues(ledger_id: str, period: Period) -> list[dict]:
    return compute_dues(compute_period_positions(ledger_id, period))


def get_period_stats(ledger_id: str, period: Period) -> list[dict]:
    return get_period_report(ledger_id, period)["stats"]


def get_period_report(ledger_id: str, period: Period) -> dict:
    """
    Compute everything the dues view needs for one period.

    Returns:
        dict: period key, positions, dues, stats and the snapshot used.
    """
    snapshot = load_snapshot(ledger_id, period)
    positions = compute_net_positions(
        expenses=list(snapshot.expenses),
        settlements=list(snapshot.settlements),
        carry_forward=snapshot.carry_forward,
        persons=list(snapshot.persons)
    )
    dues = compute_dues(positions)

    return {
        "period": period.key,
        "positions": positions,
        "dues": dues,
        "stats": compute_user_stats(positions, dues, list(snapshot.persons)),
        "snapshot": snapshot
    }


def clear_ledger(ledger_id: str, actor: Optional[str] = None) -> dict:
    """
    Remove every expense, settlement and rollover of a ledger.

    Persons and the activity log survive. All deletes and the CLEAR activity
    entry are committed as one batch.

    Returns:
        dict: Number of documents removed per collection.
    """
    validate_ledger_id(ledger_id)
    db = require_db()

    batch = db.batch()
    removed = delete_documents(batch, {
        name: ledger_collection(db, ledger_id, name)
        for name in (EXPENSES, SETTLEMENTS, ROLLOVERS)
    })
    record_activity(ledger_id, ClearEntry(details=ClearDetails(
        scope="ledger",
        removed=removed
    )), actor=actor, batch=batch)
    batch.commit()

    snapshot_cache.invalidate(ledger_id)
    _logger.warning("Cleared ledger %s: %s", ledger_id, removed)
    return removed
