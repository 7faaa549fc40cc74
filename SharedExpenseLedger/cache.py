"""
Cache Module

Read-through cache of per-period ledger snapshots.

A snapshot is everything the balance computation needs for one period:
persons, the period's expenses and settlements, and the carry-forward that
rolled into it. Reads go through ``SnapshotCache.get``; every write path
calls ``invalidate`` for the period it touched (or for the whole ledger when
the write is not period-scoped, e.g. a new person or a clear).

Functions / classes:
    LedgerSnapshot: Immutable bundle of records for one (ledger, period).
    SnapshotCache: Thread-safe read-through cache with invalidate-on-write.
    snapshot_cache: Process-wide instance used by the record modules.
"""

import threading
from typing import Callable, Optional

from config.settings import cache_enabled
from logging_setup import get_logger


_logger = get_logger("shared_expense_ledger.cache")


class LedgerSnapshot:
    """
    Records for one ledger period.

    Attributes:
        persons (list[dict]): person dicts
        expenses (list[dict]): expense dicts dated inside the period
        settlements (list[dict]): settlement dicts booked in the period
        carry_forward (dict[str, float]): opening balance per person_id
    """

    def __init__(
        self,
        persons: list[dict],
        expenses: list[dict],
        settlements: list[dict],
        carry_forward: dict
    ):
        self.persons = tuple(persons)
        self.expenses = tuple(expenses)
        self.settlements = tuple(settlements)
        self.carry_forward = dict(carry_forward)

    def __repr__(self) -> str:
        return (
            f"LedgerSnapshot(persons={len(self.persons)}, expenses={len(self.expenses)}, "
            f"settlements={len(self.settlements)})"
        )


class SnapshotCache:
    """Read-through cache keyed by (ledger_id, period key)."""

    def __init__(self, enabled: Optional[bool] = None):
        self._enabled = cache_enabled() if enabled is None else enabled
        self._entries: dict[tuple[str, str], LedgerSnapshot] = {}
        # Bumped on every invalidation so an in-flight load cannot store stale data
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(
        self,
        ledger_id: str,
        period_key: str,
        loader: Callable[[], LedgerSnapshot]
    ) -> LedgerSnapshot:
        """
        Return the cached snapshot, loading and storing it on a miss.

        The loader runs outside the lock; if an invalidation lands while it
        runs, the freshly loaded snapshot is returned but not stored.
        """
        key = (ledger_id, period_key)
        if not self._enabled:
            return loader()

        with self._lock:
            snapshot = self._entries.get(key)
            generation = self._generation(ledger_id)
        if snapshot is not None:
            _logger.debug("Snapshot cache hit %s/%s", ledger_id, period_key)
            return snapshot

        _logger.debug("Snapshot cache miss %s/%s", ledger_id, period_key)
        snapshot = loader()

        with self._lock:
            if self._generation(ledger_id) == generation:
                self._entries[key] = snapshot
        return snapshot

    def invalidate(self, ledger_id: str, period_key: Optional[str] = None) -> None:
        """
        Drop cached snapshots.

        Args:
            ledger_id: Ledger whose snapshots are dropped.
            period_key: Only this period when given, every period otherwise.
        """
        with self._lock:
            self._generations[ledger_id] = self._generation(ledger_id) + 1
            if period_key is None:
                for key in [k for k in self._entries if k[0] == ledger_id]:
                    del self._entries[key]
            else:
                self._entries.pop((ledger_id, period_key), None)
        _logger.debug("Snapshot cache invalidated %s/%s", ledger_id, period_key or "*")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()

    def _generation(self, ledger_id: str) -> int:
        return self._generations.get(ledger_id, 0)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


snapshot_cache = SnapshotCache()
