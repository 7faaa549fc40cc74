"""Pytest configuration for test isolation.

Every record module reaches Firestore through ``config.firebase_config.get_db``.
An autouse fixture swaps that for a fresh in-memory fake per test and empties
the process-wide snapshot cache, so no test sees another test's ledger.
"""

from __future__ import annotations

import pytest

from cache import snapshot_cache
from config import firebase_config
from tests.helpers.firestore_stub import FakeFirestore

LEDGER = "home"


@pytest.fixture(autouse=True)
def db(monkeypatch: pytest.MonkeyPatch) -> FakeFirestore:
    """Install a fresh FakeFirestore as the ledger's database."""
    fake = FakeFirestore()
    monkeypatch.setattr(firebase_config, "get_db", lambda: fake)
    snapshot_cache.clear()
    yield fake
    snapshot_cache.clear()


@pytest.fixture
def no_db(monkeypatch: pytest.MonkeyPatch) -> None:
    """Simulate Firestore being unreachable."""
    monkeypatch.setattr(firebase_config, "get_db", lambda: None)


@pytest.fixture
def people(db: FakeFirestore) -> dict[str, str]:
    """Three persons A, B, C; returns display name -> person_id."""
    from persons import add_person

    return {name: add_person(LEDGER, name).person_id for name in ("A", "B", "C")}
