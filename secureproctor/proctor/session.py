"""
Proctor Session - Lifecycle state machine for a single proctoring session
"""

import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from ..config import settings
from .classifier import ViolationClassifier
from .exceptions import InvalidTransition
from .models import (
    DetectionLogEntry,
    DetectionResult,
    LogLevel,
    Session,
    SessionStatus,
    Violation,
    utcnow,
)
from .scoring import IntegrityScorer
from .store import SessionStore
from .utils.logging import (
    log_event_dropped,
    log_session_created,
    log_session_end,
    log_session_start,
    log_violation,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass
class IngestResult:
    """Outcome of one detection event"""
    accepted: bool
    violations: List[Violation] = field(default_factory=list)
    reason: Optional[str] = None


class ProctorSession:
    """
    Owns one session's lifecycle.

        Pending -> Active -> Completed | Terminated

    ``ingest`` and ``stop`` are serialized by a per-session lock. Ingest
    waits at most ``ingest_timeout`` seconds for it and drops the event
    otherwise, so a slow session never builds a backlog. Every mutation is
    written through to the store before it becomes visible here.
    """

    STOP_MESSAGES = {
        SessionStatus.COMPLETED: ("Session completed", LogLevel.INFO),
        SessionStatus.TERMINATED: ("Session terminated", LogLevel.WARNING),
    }

    def __init__(
        self,
        session: Session,
        store: Optional[SessionStore] = None,
        classifier: Optional[ViolationClassifier] = None,
        scorer: Optional[IntegrityScorer] = None,
        clock: Optional[Clock] = None,
        ingest_timeout: Optional[float] = None
    ):
        """
        Wrap an existing session record.

        Args:
            session: Session to drive (copied, never shared)
            store: Optional store receiving every mutation
            classifier: Violation classifier (shares ``clock`` by default)
            scorer: Scoring policy (the store's own policy by default)
            clock: Wall clock returning aware datetimes
            ingest_timeout: Seconds ingest may wait for the session lock
        """
        self._session = session.copy()
        self.store = store
        self._clock = clock or utcnow
        self.classifier = classifier or ViolationClassifier(clock=self._clock)
        self.scorer = scorer or (store.scorer if store is not None else IntegrityScorer())
        self.ingest_timeout = (
            settings.INGEST_TIMEOUT_SECONDS if ingest_timeout is None else ingest_timeout
        )
        self._lock = threading.Lock()

    @classmethod
    def create(cls, candidate_id: str, store: Optional[SessionStore] = None, **kwargs) -> "ProctorSession":
        """
        Allocate a new pending session.

        Every call creates a distinct session, even for the same candidate.
        """
        session = Session(candidate_id=candidate_id)
        if store is not None:
            store.create_session(session)
        log_session_created(session.id, candidate_id)
        return cls(session, store=store, **kwargs)

    @property
    def id(self) -> str:
        return self._session.id

    @property
    def candidate_id(self) -> str:
        return self._session.candidate_id

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    @property
    def integrity_score(self) -> int:
        return self._session.integrity_score

    def snapshot(self) -> Session:
        """Copy of the current session record"""
        with self._lock:
            return self._session.copy()

    def session_time(self, now: Optional[datetime] = None) -> int:
        """Whole seconds elapsed since start (0 before start, frozen after stop)"""
        if self._session.start_time is None:
            return 0
        if self._session.status.is_terminal:
            return self._session.duration_seconds
        elapsed = ((now or self._clock()) - self._session.start_time).total_seconds()
        return max(0, math.floor(elapsed))

    # ========================================================================
    # Transitions
    # ========================================================================

    def start(self) -> Session:
        """
        Begin recording.

        Raises:
            InvalidTransition: if the session is not pending
        """
        with self._lock:
            self._require(SessionStatus.PENDING, "start")

            now = self._clock()
            entry = DetectionLogEntry(
                session_id=self.id,
                session_time=0,
                message="Session started",
                level=LogLevel.INFO,
                timestamp=now.isoformat(),
            )
            self._persist(logs=[entry], status=SessionStatus.ACTIVE, start_time=now)

            self._session.start_time = now
            self._session.status = SessionStatus.ACTIVE
            self._session.detection_logs.append(entry)

            log_session_start(self.id, self.candidate_id)
            return self._session.copy()

    def ingest(self, result: DetectionResult) -> List[Violation]:
        """Violations recorded for one detection result (empty when none or dropped)"""
        return self.process(result).violations

    def process(self, result: DetectionResult) -> IngestResult:
        """
        Process one detection result.

        Events arriving while the session is not active, or while the lock
        is held past ``ingest_timeout``, are discarded without error and
        reported as not accepted.
        """
        if not self._lock.acquire(timeout=self.ingest_timeout):
            log_event_dropped(self.id, "busy")
            return IngestResult(accepted=False, reason="busy")

        try:
            if self._session.status is not SessionStatus.ACTIVE:
                log_event_dropped(self.id, f"status={self._session.status.value}")
                return IngestResult(accepted=False, reason=self._session.status.value)

            session_time = self.session_time()
            violations = self.classifier.classify(result, session_time, self.id)
            if not violations:
                return IngestResult(accepted=True)

            logs = [
                DetectionLogEntry(
                    session_id=self.id,
                    session_time=session_time,
                    message=v.description,
                    level=LogLevel.WARNING,
                    timestamp=v.timestamp,
                )
                for v in violations
            ]
            stored = self._persist(violations=violations, logs=logs)
            if stored is not None:
                score = stored.integrity_score
            else:
                score = self.scorer.compute(self._session.violations + violations)

            self._session.violations.extend(violations)
            self._session.detection_logs.extend(logs)
            self._session.integrity_score = score

            for v in violations:
                log_violation(self.id, v.type.value, v.severity.value, session_time, score)
            return IngestResult(accepted=True, violations=violations)
        finally:
            self._lock.release()

    def stop(self, reason: SessionStatus = SessionStatus.COMPLETED) -> Session:
        """
        End the session.

        Waits for any in-flight ingest, so nothing is appended afterwards.

        Args:
            reason: COMPLETED for a normal stop, TERMINATED for a forced one

        Raises:
            InvalidTransition: if the session is not active
        """
        reason = SessionStatus(reason)
        if not reason.is_terminal:
            raise ValueError(f"Stop reason must be completed or terminated, got {reason.value}")

        with self._lock:
            self._require(SessionStatus.ACTIVE, "stop")

            now = self._clock()
            duration = self.session_time(now)
            message, level = self.STOP_MESSAGES[reason]
            entry = DetectionLogEntry(
                session_id=self.id,
                session_time=duration,
                message=message,
                level=level,
                timestamp=now.isoformat(),
            )
            self._persist(
                logs=[entry],
                status=reason,
                end_time=now,
                duration_seconds=duration,
            )

            self._session.detection_logs.append(entry)
            self._session.status = reason
            self._session.end_time = now
            self._session.duration_seconds = duration

            log_session_end(
                self.id,
                reason.value,
                self._session.integrity_score,
                len(self._session.violations),
                duration
            )
            return self._session.copy()

    # ========================================================================
    # Helpers
    # ========================================================================

    def _require(self, expected: SessionStatus, operation: str):
        if self._session.status is not expected:
            raise InvalidTransition(self.id, self._session.status.value, operation)

    def _persist(self, violations=(), logs=(), **fields) -> Optional[Session]:
        if self.store is None:
            return None
        return self.store.apply_update(self.id, violations=violations, logs=logs, fields=fields)
