"""
Session Manager - Registry of live proctoring sessions

Single entry point for the API: creates candidates and sessions through
the store and routes lifecycle calls to the owning state machine.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .models import Candidate, DetectionResult, Session, SessionStatus, Violation, utcnow
from .report import ReportGenerator
from .scoring import IntegrityScorer
from .session import ProctorSession
from .store import SessionStore

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Keeps one ProctorSession per session id.

    Sessions for different ids never share a lock, so their detection
    streams are processed independently.
    """

    def __init__(
        self,
        store: SessionStore,
        scorer: Optional[IntegrityScorer] = None,
        clock: Optional[Callable[[], datetime]] = None,
        ingest_timeout: Optional[float] = None
    ):
        self.store = store
        self.scorer = scorer or store.scorer
        self._clock = clock or utcnow
        self.ingest_timeout = ingest_timeout
        self.reports = ReportGenerator(scorer=self.scorer, clock=self._clock)
        self._sessions: Dict[str, ProctorSession] = {}
        self._lock = threading.Lock()

    # ========================================================================
    # Candidates
    # ========================================================================

    def create_candidate(self, name: str, email: str, position: str) -> Candidate:
        candidate = Candidate(name=name, email=email, position=position, created_at=self._clock())
        return self.store.create_candidate(candidate)

    def get_candidate(self, candidate_id: str) -> Candidate:
        return self.store.get_candidate(candidate_id)

    # ========================================================================
    # Sessions
    # ========================================================================

    def create_session(self, candidate_id: str) -> Session:
        """
        Allocate a pending session for an existing candidate.

        Raises:
            NotFound: if the candidate does not exist
        """
        self.store.get_candidate(candidate_id)

        proctor = ProctorSession.create(
            candidate_id,
            store=self.store,
            scorer=self.scorer,
            clock=self._clock,
            ingest_timeout=self.ingest_timeout,
        )
        with self._lock:
            self._sessions[proctor.id] = proctor
        return proctor.snapshot()

    def get(self, session_id: str) -> ProctorSession:
        """
        State machine for a session id.

        Sessions known to the store but not to this process (e.g. after a
        restart against Redis) are rebuilt from their stored record.
        """
        with self._lock:
            proctor = self._sessions.get(session_id)
            if proctor is None:
                stored = self.store.get_session(session_id)
                proctor = ProctorSession(
                    stored,
                    store=self.store,
                    scorer=self.scorer,
                    clock=self._clock,
                    ingest_timeout=self.ingest_timeout,
                )
                self._sessions[session_id] = proctor
                logger.info(f"Rehydrated session {session_id} ({stored.status.value})")
            return proctor

    def start(self, session_id: str) -> Session:
        return self.get(session_id).start()

    def ingest(self, session_id: str, result: DetectionResult) -> List[Violation]:
        return self.get(session_id).ingest(result)

    def stop(self, session_id: str, reason: SessionStatus = SessionStatus.COMPLETED) -> Session:
        return self.get(session_id).stop(reason)

    def read(self, session_id: str) -> Session:
        """Stored snapshot of a session"""
        return self.store.get_session(session_id)

    def list_sessions(self, candidate_id: Optional[str] = None) -> List[Session]:
        return self.store.list_sessions(candidate_id)

    def release(self, session_id: str) -> bool:
        """Forget a finished state machine; the stored record stays"""
        with self._lock:
            proctor = self._sessions.get(session_id)
            if proctor is None or not proctor.status.is_terminal:
                return False
            del self._sessions[session_id]
        logger.info(f"Released session {session_id}")
        return True

    @property
    def active_count(self) -> int:
        with self._lock:
            return sum(1 for p in self._sessions.values() if p.status is SessionStatus.ACTIVE)

    # ========================================================================
    # Reports
    # ========================================================================

    def report(self, session_id: str, generated_at: Optional[datetime] = None) -> str:
        """
        Text report for a finished session.

        Raises:
            NotFound: unknown session or candidate
            SessionNotFinal: session still pending or active
        """
        session = self.store.get_session(session_id)
        candidate = self.store.get_candidate(session.candidate_id)
        return self.reports.generate(candidate, session, generated_at)

    def report_data(self, session_id: str, generated_at: Optional[datetime] = None) -> dict:
        session = self.store.get_session(session_id)
        candidate = self.store.get_candidate(session.candidate_id)
        return self.reports.generate_structured(candidate, session, generated_at)
