"""
Tests for Session Stores

The Redis store runs against a small in-process stand-in for the Redis
client that supports the commands the store uses.
"""
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from secureproctor.proctor.exceptions import InvalidTransition, NotFound, StoreUnavailable
from secureproctor.proctor.models import (
    Candidate,
    DetectionLogEntry,
    DetectionResult,
    Session,
    SessionStatus,
    Severity,
    Violation,
    ViolationType,
)
from secureproctor.proctor.report import ReportGenerator
from secureproctor.proctor.scoring import IntegrityScorer
from secureproctor.proctor.session import ProctorSession
from secureproctor.proctor.store import InMemorySessionStore, RedisSessionStore, build_store


class FakePipeline:
    """WATCH/MULTI/EXEC pipeline over FakeRedis"""

    def __init__(self, client):
        self.client = client
        self.watched = {}
        self.queue = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.watched = {}
        self.queue = None
        return False

    def watch(self, *keys):
        for key in keys:
            self.watched[key] = self.client.versions.get(key, 0)

    def get(self, key):
        return self.client.get(key)

    def multi(self):
        self.queue = []

    def set(self, key, value):
        self.queue.append((key, value))

    def execute(self):
        if self.client.interfere > 0:
            self.client.interfere -= 1
            raise WatchError("Watched variable changed.")
        for key, version in self.watched.items():
            if self.client.versions.get(key, 0) != version:
                raise WatchError("Watched variable changed.")
        for key, value in self.queue:
            self.client.set(key, value)
        return [True] * len(self.queue)


class FakeRedis:
    """Dict-backed Redis client double"""

    def __init__(self):
        self.data = {}
        self.sets = {}
        self.versions = {}
        self.interfere = 0

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, nx=False):
        if nx and key in self.data:
            return None
        self.data[key] = value
        self.versions[key] = self.versions.get(key, 0) + 1
        return True

    def sadd(self, key, *members):
        self.sets.setdefault(key, set()).update(members)
        return len(members)

    def smembers(self, key):
        return set(self.sets.get(key, set()))

    def mget(self, keys):
        return [self.data.get(k) for k in keys]

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None or self.sets.pop(key, None) is not None:
                removed += 1
        return removed

    def pipeline(self):
        return FakePipeline(self)


def make_violation(session_id: str, session_time: int = 1) -> Violation:
    return Violation(
        session_id=session_id,
        session_time=session_time,
        type=ViolationType.FACE_NOT_DETECTED,
        severity=Severity.HIGH,
        description="No face detected in frame",
        confidence=0.9
    )


@pytest.fixture(params=["memory", "redis"])
def any_store(request):
    """Each store implementation in turn"""
    if request.param == "memory":
        return InMemorySessionStore()
    return RedisSessionStore(client=FakeRedis(), prefix="test:")


@pytest.fixture
def stored_candidate(any_store):
    return any_store.create_candidate(
        Candidate(name="Alan Turing", email="alan@example.com", position="Researcher")
    )


@pytest.fixture
def stored_session(any_store, stored_candidate):
    return any_store.create_session(Session(candidate_id=stored_candidate.id))


class TestStoreContract:
    """Behaviour shared by every store"""

    def test_candidate_round_trip(self, any_store, stored_candidate):
        loaded = any_store.get_candidate(stored_candidate.id)

        assert loaded == stored_candidate

    def test_unknown_candidate(self, any_store):
        with pytest.raises(NotFound):
            any_store.get_candidate("missing")

    def test_unknown_session(self, any_store):
        with pytest.raises(NotFound):
            any_store.get_session("missing")

    def test_reads_are_snapshots(self, any_store, stored_session):
        snapshot = any_store.get_session(stored_session.id)
        snapshot.integrity_score = 0
        snapshot.violations.append(make_violation(stored_session.id))

        fresh = any_store.get_session(stored_session.id)
        assert fresh.integrity_score == 100
        assert fresh.violations == []

    def test_add_violation_and_log(self, any_store, stored_session):
        violation = make_violation(stored_session.id, 4)
        entry = DetectionLogEntry(session_id=stored_session.id, session_time=4, message="No face detected in frame")

        any_store.add_violation(stored_session.id, violation)
        any_store.add_detection_log(stored_session.id, entry)

        loaded = any_store.get_session(stored_session.id)
        assert loaded.violations == [violation]
        assert loaded.violations[0].id == violation.id
        assert loaded.detection_logs == [entry]

    def test_add_to_unknown_session_is_not_found(self, any_store):
        with pytest.raises(NotFound):
            any_store.add_violation("missing", make_violation("missing"))
        with pytest.raises(NotFound):
            any_store.add_detection_log("missing", DetectionLogEntry("missing", 0, "x"))

    def test_records_cannot_change_sessions(self, any_store, stored_session):
        with pytest.raises(ValueError):
            any_store.add_violation(stored_session.id, make_violation("other-session"))

    def test_no_violations_after_terminal(self, any_store, stored_session):
        any_store.update_session(stored_session.id, status=SessionStatus.COMPLETED)

        with pytest.raises(InvalidTransition):
            any_store.add_violation(stored_session.id, make_violation(stored_session.id))
        assert any_store.get_session(stored_session.id).violations == []

    def test_only_top_level_fields_are_mutable(self, any_store, stored_session):
        with pytest.raises(ValueError):
            any_store.update_session(stored_session.id, violations=[])
        with pytest.raises(ValueError):
            any_store.update_session(stored_session.id, candidate_id="someone-else")

    def test_field_update_cannot_append_records(self, any_store, stored_session):
        """Violations and logs only arrive through the append operations"""
        any_store.update_session(stored_session.id, status=SessionStatus.ACTIVE)

        with pytest.raises(ValueError):
            any_store.update_session(stored_session.id, violations=[make_violation(stored_session.id)])
        with pytest.raises(ValueError):
            any_store.update_session(
                stored_session.id,
                logs=[DetectionLogEntry(stored_session.id, 1, "No face detected in frame")]
            )

        loaded = any_store.get_session(stored_session.id)
        assert loaded.violations == []
        assert loaded.detection_logs == []
        assert loaded.integrity_score == 100

    def test_score_cannot_be_written(self, any_store, stored_session):
        with pytest.raises(ValueError):
            any_store.update_session(stored_session.id, integrity_score=5)

        assert any_store.get_session(stored_session.id).integrity_score == 100

    def test_add_violation_rescores(self, any_store, stored_session):
        any_store.add_violation(stored_session.id, make_violation(stored_session.id, 1))
        updated = any_store.add_violation(stored_session.id, make_violation(stored_session.id, 2))

        assert updated.integrity_score == 80
        assert any_store.get_session(stored_session.id).integrity_score == 80

    def test_created_session_is_rescored(self, any_store, stored_candidate):
        session = Session(candidate_id=stored_candidate.id, integrity_score=100)
        session.violations.append(make_violation(session.id))

        created = any_store.create_session(session)

        assert created.integrity_score == 90
        assert any_store.get_session(session.id).integrity_score == 90

    def test_update_session_fields(self, any_store, stored_session):
        updated = any_store.update_session(stored_session.id, status="active", duration_seconds=4)

        assert updated.status is SessionStatus.ACTIVE
        assert any_store.get_session(stored_session.id).duration_seconds == 4

    def test_list_sessions_by_candidate(self, any_store, stored_candidate, stored_session):
        other = any_store.create_candidate(Candidate(name="B", email="b@example.com", position="QA"))
        any_store.create_session(Session(candidate_id=other.id))

        assert len(any_store.list_sessions()) == 2
        mine = any_store.list_sessions(stored_candidate.id)
        assert [s.id for s in mine] == [stored_session.id]

    def test_duplicate_session_rejected(self, any_store, stored_session):
        with pytest.raises(ValueError):
            any_store.create_session(stored_session)

    def test_export_and_clear(self, any_store, stored_candidate, stored_session):
        data = any_store.export_data()

        assert [s["id"] for s in data["sessions"]] == [stored_session.id]
        assert [c["id"] for c in data["candidates"]] == [stored_candidate.id]

        any_store.clear()
        assert any_store.list_sessions() == []
        assert any_store.list_candidates() == []

    def test_state_machine_write_through(self, any_store, stored_candidate):
        """A full lifecycle lands in the store and reports deterministically"""
        proctor = ProctorSession.create(stored_candidate.id, store=any_store)
        proctor.start()
        proctor.ingest(DetectionResult(face_detected=False))
        proctor.stop()

        stored = any_store.get_session(proctor.id)
        assert stored.status is SessionStatus.COMPLETED
        assert stored.integrity_score == 90
        assert stored.violations == proctor.snapshot().violations

        generator = ReportGenerator()
        first = generator.generate(stored_candidate, any_store.get_session(proctor.id))
        second = generator.generate(stored_candidate, any_store.get_session(proctor.id))
        strip = lambda text: [l for l in text.splitlines() if not l.startswith("Report generated on")]
        assert strip(first) == strip(second)


class TestRedisSessionStore:
    """Redis-specific behaviour"""

    def test_keys_use_prefix(self):
        client = FakeRedis()
        store = RedisSessionStore(client=client, prefix="exam:")
        session = store.create_session(Session(candidate_id="c1"))

        assert f"exam:session:{session.id}" in client.data
        assert session.id in client.sets["exam:sessions"]

    def test_retries_on_write_conflict(self):
        client = FakeRedis()
        store = RedisSessionStore(client=client, max_retries=5)
        session = store.create_session(Session(candidate_id="c1"))
        client.interfere = 3

        store.add_violation(session.id, make_violation(session.id))

        assert len(store.get_session(session.id).violations) == 1

    def test_gives_up_after_max_retries(self):
        client = FakeRedis()
        store = RedisSessionStore(client=client, max_retries=2)
        session = store.create_session(Session(candidate_id="c1"))
        client.interfere = 2

        with pytest.raises(StoreUnavailable):
            store.add_violation(session.id, make_violation(session.id))
        assert store.get_session(session.id).violations == []

    def test_connection_error_is_store_unavailable(self):
        client = MagicMock()
        client.get.side_effect = RedisConnectionError("Connection refused")
        store = RedisSessionStore(client=client)

        with pytest.raises(StoreUnavailable) as exc_info:
            store.get_session("any")
        assert not isinstance(exc_info.value, NotFound)

    def test_write_failure_is_store_unavailable(self):
        client = MagicMock()
        client.set.side_effect = RedisConnectionError("Connection refused")
        store = RedisSessionStore(client=client)

        with pytest.raises(StoreUnavailable):
            store.create_candidate(Candidate(name="A", email="a@example.com", position="Dev"))


def test_build_store():
    assert isinstance(build_store("memory"), InMemorySessionStore)
    assert isinstance(build_store("redis", client=FakeRedis()), RedisSessionStore)
    with pytest.raises(ValueError):
        build_store("sqlite")


def test_store_applies_its_scoring_policy():
    store = InMemorySessionStore(scorer=IntegrityScorer({"high": 25}))
    session = store.create_session(Session(candidate_id="c1"))

    assert store.add_violation(session.id, make_violation(session.id)).integrity_score == 75
    assert isinstance(build_store("memory", scorer=store.scorer).scorer, IntegrityScorer)
