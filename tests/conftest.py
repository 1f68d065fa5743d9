"""Shared fixtures for murmur tests."""
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from murmur.audit import AuditTrail
from murmur.engine import TrustEngine, nullifier
from murmur.storage import MemoryStore, SQLiteStore

ADMIN_KEY = "test-admin-key"
ADMIN_HEADERS = {"X-Admin-Key": ADMIN_KEY}


def voter_id(n) -> str:
    return nullifier(f"voter-{n}")


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def sqlite_store(tmp_path):
    store = SQLiteStore(str(tmp_path / "murmur.db"))
    yield store
    store.close()


ALL_STORES = ["memory_store", "sqlite_store"]


@pytest.fixture
def store(request):
    """Indirectly parametrized with ALL_STORES; defaults to memory."""
    name = getattr(request, "param", "memory_store")
    return request.getfixturevalue(name)


@pytest.fixture
def audit():
    return AuditTrail()


@pytest.fixture
def engine(store, audit):
    return TrustEngine(store, audit=audit)


@pytest.fixture
def make_voters(engine):
    """make_voters(n, reputation=None) -> list of registered voter ids."""
    counter = {"next": 0}

    def _make(n, reputation=None):
        ids = []
        for _ in range(n):
            vid = voter_id(counter["next"])
            counter["next"] += 1
            engine.register_voter(vid, reputation=reputation)
            ids.append(vid)
        return ids

    return _make
