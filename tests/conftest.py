"""
Pytest Configuration for SecureProctor Tests
"""
import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

from secureproctor.proctor.manager import SessionManager
from secureproctor.proctor.session import ProctorSession
from secureproctor.proctor.store import InMemorySessionStore


class ManualClock:
    """Clock that only moves when told to"""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    """Manual clock starting at 2026-03-02 09:00:00 UTC"""
    return ManualClock()


@pytest.fixture
def store():
    """Empty in-memory store"""
    return InMemorySessionStore()


@pytest.fixture
def manager(store, clock):
    """Session manager on the in-memory store and manual clock"""
    return SessionManager(store, clock=clock, ingest_timeout=0.5)


@pytest.fixture
def candidate(manager):
    """Registered candidate"""
    return manager.create_candidate(
        name="Ada Lovelace",
        email="ada@example.com",
        position="Backend Engineer"
    )


@pytest.fixture
def proctor(store, clock, candidate):
    """Pending state machine persisted in the store"""
    return ProctorSession.create(candidate.id, store=store, clock=clock)


@pytest.fixture
def client(manager):
    """API test client wired to the fixture manager"""
    from secureproctor.main import app
    from secureproctor.proctor.api import get_manager

    app.dependency_overrides[get_manager] = lambda: manager
    yield TestClient(app)
    app.dependency_overrides.clear()
