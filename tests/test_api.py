"""
Tests for the Proctoring API

Drives the full candidate -> session -> report flow over HTTP.
"""
import pytest

from secureproctor.proctor.exceptions import StoreUnavailable

API = "/api/proctor"


@pytest.fixture
def candidate_id(client):
    response = client.post(f"{API}/candidates", json={
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "position": "Backend Engineer"
    })
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def session_id(client, candidate_id):
    response = client.post(f"{API}/sessions", json={"candidateId": candidate_id})
    assert response.status_code == 201
    return response.json()["id"]


class TestCandidates:
    """Candidate endpoints"""

    def test_create_and_get(self, client, candidate_id):
        response = client.get(f"{API}/candidates/{candidate_id}")

        assert response.status_code == 200
        assert response.json()["name"] == "Ada Lovelace"

    def test_blank_name_rejected(self, client):
        response = client.post(f"{API}/candidates", json={
            "name": "   ",
            "email": "ada@example.com",
            "position": "Backend Engineer"
        })

        assert response.status_code == 422

    def test_missing_field_rejected(self, client):
        response = client.post(f"{API}/candidates", json={"name": "Ada"})

        assert response.status_code == 422

    def test_unknown_candidate(self, client):
        assert client.get(f"{API}/candidates/nope").status_code == 404


class TestSessionLifecycle:
    """Session endpoints"""

    def test_new_session_is_pending(self, client, session_id, candidate_id):
        data = client.get(f"{API}/sessions/{session_id}").json()

        assert data["status"] == "pending"
        assert data["candidateId"] == candidate_id
        assert data["integrityScore"] == 100

    def test_session_for_unknown_candidate(self, client):
        response = client.post(f"{API}/sessions", json={"candidateId": "nope"})

        assert response.status_code == 404

    def test_full_flow(self, client, session_id, clock):
        assert client.post(f"{API}/sessions/{session_id}/start").json()["status"] == "active"

        clock.advance(3)
        response = client.post(f"{API}/sessions/{session_id}/detections", json={"faceDetected": False})
        assert response.status_code == 200
        data = response.json()
        assert data["accepted"] is True
        assert data["session_time"] == 3
        assert data["integrity_score"] == 90
        assert [v["type"] for v in data["violations"]] == ["face_not_detected"]

        clock.advance(7)
        stopped = client.post(f"{API}/sessions/{session_id}/stop")
        assert stopped.status_code == 200
        assert stopped.json()["status"] == "completed"
        assert stopped.json()["durationSeconds"] == 10

        summary = client.get(f"{API}/sessions/{session_id}/summary").json()
        assert summary["integrityScore"] == 90
        assert summary["durationSeconds"] == 10
        assert len(summary["violations"]) == 1

        report = client.get(f"{API}/sessions/{session_id}/report")
        assert report.status_code == 200
        assert report.headers["content-type"].startswith("text/plain")
        disposition = report.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="proctoring-report-Ada-Lovelace-')
        assert disposition.endswith('.txt"')
        assert "1. [00:03] No face detected in frame (HIGH)" in report.text
        assert "Integrity Score: 90%" in report.text

    def test_terminate(self, client, session_id):
        client.post(f"{API}/sessions/{session_id}/start")

        response = client.post(f"{API}/sessions/{session_id}/stop", json={"reason": "terminated"})

        assert response.status_code == 200
        assert response.json()["status"] == "terminated"

    def test_non_terminal_stop_reason_rejected(self, client, session_id):
        client.post(f"{API}/sessions/{session_id}/start")

        response = client.post(f"{API}/sessions/{session_id}/stop", json={"reason": "active"})

        assert response.status_code == 422

    def test_start_twice_conflicts(self, client, session_id):
        client.post(f"{API}/sessions/{session_id}/start")

        assert client.post(f"{API}/sessions/{session_id}/start").status_code == 409

    def test_stop_twice_conflicts(self, client, session_id):
        client.post(f"{API}/sessions/{session_id}/start")
        client.post(f"{API}/sessions/{session_id}/stop")

        assert client.post(f"{API}/sessions/{session_id}/stop").status_code == 409

    def test_stop_pending_conflicts(self, client, session_id):
        assert client.post(f"{API}/sessions/{session_id}/stop").status_code == 409

    def test_report_before_stop_conflicts(self, client, session_id):
        client.post(f"{API}/sessions/{session_id}/start")

        assert client.get(f"{API}/sessions/{session_id}/report").status_code == 409

    def test_unknown_session(self, client):
        assert client.get(f"{API}/sessions/nope").status_code == 404
        assert client.post(f"{API}/sessions/nope/start").status_code == 404
        assert client.get(f"{API}/sessions/nope/report").status_code == 404

    def test_list_sessions_by_candidate(self, client, candidate_id, session_id):
        client.post(f"{API}/sessions", json={"candidateId": candidate_id})

        sessions = client.get(f"{API}/sessions", params={"candidate_id": candidate_id}).json()

        assert len(sessions) == 2
        assert session_id in {s["id"] for s in sessions}


class TestDetections:
    """Detection endpoint"""

    def test_pending_session_accepts_and_drops(self, client, session_id):
        response = client.post(f"{API}/sessions/{session_id}/detections", json={"faceDetected": False})

        assert response.status_code == 200
        assert response.json()["violations"] == []
        assert response.json()["status"] == "pending"
        assert response.json()["accepted"] is False
        assert client.get(f"{API}/sessions/{session_id}").json()["violations"] == []

    def test_stopped_session_accepts_and_drops(self, client, session_id):
        client.post(f"{API}/sessions/{session_id}/start")
        client.post(f"{API}/sessions/{session_id}/stop")

        response = client.post(f"{API}/sessions/{session_id}/detections", json={"multipleFaces": True})

        assert response.status_code == 200
        assert response.json()["violations"] == []
        assert client.get(f"{API}/sessions/{session_id}").json()["integrityScore"] == 100

    def test_objects_each_become_a_violation(self, client, session_id):
        client.post(f"{API}/sessions/{session_id}/start")

        response = client.post(
            f"{API}/sessions/{session_id}/detections",
            json={"objectsDetected": ["phone", "book"], "eyeGaze": "focused"}
        )

        assert len(response.json()["violations"]) == 2
        assert response.json()["integrity_score"] == 80

    def test_null_fields_are_neutral(self, client, session_id):
        client.post(f"{API}/sessions/{session_id}/start")

        response = client.post(
            f"{API}/sessions/{session_id}/detections",
            json={
                "faceDetected": None,
                "eyeGaze": None,
                "objectsDetected": None,
                "multipleFaces": None,
                "confidence": None
            }
        )

        assert response.status_code == 200
        assert response.json()["accepted"] is True
        assert response.json()["violations"] == []
        assert response.json()["integrity_score"] == 100

    def test_unknown_gaze_is_neutral(self, client, session_id):
        client.post(f"{API}/sessions/{session_id}/start")

        response = client.post(f"{API}/sessions/{session_id}/detections", json={"eyeGaze": "sideways"})

        assert response.status_code == 200
        assert response.json()["violations"] == []

    def test_busy_session_is_not_accepted(self, client, manager, session_id):
        client.post(f"{API}/sessions/{session_id}/start")
        proctor = manager.get(session_id)
        proctor.ingest_timeout = 0.01

        proctor._lock.acquire()
        try:
            response = client.post(f"{API}/sessions/{session_id}/detections", json={"faceDetected": False})
        finally:
            proctor._lock.release()

        assert response.status_code == 200
        assert response.json()["accepted"] is False
        assert response.json()["violations"] == []
        assert client.get(f"{API}/sessions/{session_id}").json()["violations"] == []

    def test_session_time_stops_with_session(self, client, session_id, clock):
        client.post(f"{API}/sessions/{session_id}/start")
        clock.advance(10)
        client.post(f"{API}/sessions/{session_id}/stop")
        clock.advance(500)

        response = client.post(f"{API}/sessions/{session_id}/detections", json={})

        assert response.json()["accepted"] is False
        assert response.json()["session_time"] == 10

    def test_unknown_session(self, client):
        response = client.post(f"{API}/sessions/nope/detections", json={})

        assert response.status_code == 404


def test_store_outage_is_503(client, manager, session_id, monkeypatch):
    def unavailable(*args, **kwargs):
        raise StoreUnavailable("Redis get session failed")

    monkeypatch.setattr(manager.store, "get_session", unavailable)

    assert client.get(f"{API}/sessions/{session_id}").status_code == 503
