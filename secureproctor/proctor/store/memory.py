"""
In-memory session store
"""

import copy
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from ..exceptions import NotFound
from ..models import Candidate, DetectionLogEntry, Session, Violation
from ..scoring import IntegrityScorer
from .base import SessionStore, apply_changes

logger = logging.getLogger(__name__)


class InMemorySessionStore(SessionStore):
    """
    Dict-backed store for tests and single-process deployments.

    Each session has its own lock so updates to different sessions
    never wait on each other.
    """

    def __init__(self, scorer: Optional[IntegrityScorer] = None):
        super().__init__(scorer)
        self._sessions: Dict[str, Session] = {}
        self._candidates: Dict[str, Candidate] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def create_candidate(self, candidate: Candidate) -> Candidate:
        with self._registry_lock:
            if candidate.id in self._candidates:
                raise ValueError(f"Candidate already exists: {candidate.id}")
            self._candidates[candidate.id] = candidate
        logger.info(f"[STORE] Created candidate: {candidate.id[:8]}...")
        return candidate

    def get_candidate(self, candidate_id: str) -> Candidate:
        candidate = self._candidates.get(candidate_id)
        if candidate is None:
            raise NotFound("candidate", candidate_id)
        return candidate

    def list_candidates(self) -> List[Candidate]:
        with self._registry_lock:
            return list(self._candidates.values())

    def create_session(self, session: Session) -> Session:
        with self._registry_lock:
            if session.id in self._sessions:
                raise ValueError(f"Session already exists: {session.id}")
            stored = copy.deepcopy(session)
            stored.integrity_score = self.scorer.compute(stored.violations)
            self._sessions[session.id] = stored
            self._locks[session.id] = threading.Lock()
        logger.info(f"[STORE] Created session: {session.id[:8]}...")
        return copy.deepcopy(stored)

    def get_session(self, session_id: str) -> Session:
        lock = self._lock_for(session_id)
        with lock:
            return copy.deepcopy(self._stored(session_id))

    def list_sessions(self, candidate_id: Optional[str] = None) -> List[Session]:
        with self._registry_lock:
            ids = list(self._sessions)
        sessions = [self.get_session(session_id) for session_id in ids]
        if candidate_id is not None:
            sessions = [s for s in sessions if s.candidate_id == candidate_id]
        return sessions

    def apply_update(
        self,
        session_id: str,
        violations: Iterable[Violation] = (),
        logs: Iterable[DetectionLogEntry] = (),
        fields: Optional[Dict[str, Any]] = None
    ) -> Session:
        lock = self._lock_for(session_id)
        with lock:
            # Work on a copy so a rejected update leaves nothing behind
            updated = apply_changes(
                copy.deepcopy(self._stored(session_id)),
                self.scorer,
                violations,
                logs,
                fields
            )
            self._sessions[session_id] = updated
            return copy.deepcopy(updated)

    def clear(self) -> None:
        with self._registry_lock:
            self._sessions.clear()
            self._candidates.clear()
            self._locks.clear()
        logger.info("[STORE] Cleared all sessions and candidates")

    def _stored(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFound("session", session_id)
        return session

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(session_id)
        if lock is None:
            raise NotFound("session", session_id)
        return lock
