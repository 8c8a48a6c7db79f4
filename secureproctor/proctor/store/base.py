"""
Session Store - Keyed persistence contract for sessions and candidates

Sessions are mutable only through ``update_session`` (top-level fields)
and the append-only ``add_violation`` / ``add_detection_log``. Every read
returns a copy so callers cannot reach stored state directly. The stored
integrity score is always rescored from the stored violations, never
written by callers.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from ..exceptions import InvalidTransition
from ..models import Candidate, DetectionLogEntry, Session, SessionStatus, Violation
from ..scoring import IntegrityScorer

# Top-level session fields that may be rewritten after creation
MUTABLE_SESSION_FIELDS = frozenset({
    "status",
    "start_time",
    "end_time",
    "duration_seconds",
})


def apply_changes(
    session: Session,
    scorer: IntegrityScorer,
    violations: Iterable[Violation] = (),
    logs: Iterable[DetectionLogEntry] = (),
    fields: Optional[Dict[str, Any]] = None
) -> Session:
    """
    Apply appends and field updates to a stored session in place.

    Violations are refused once the stored session is terminal, and no
    record may be filed under another session's id. The score is
    recomputed from the resulting violation list.
    """
    violations = list(violations)
    logs = list(logs)
    fields = dict(fields or {})

    unknown = set(fields) - MUTABLE_SESSION_FIELDS
    if unknown:
        raise ValueError(f"Session fields cannot be updated: {', '.join(sorted(unknown))}")

    for record in (*violations, *logs):
        if record.session_id != session.id:
            raise ValueError(
                f"Record {record.id} belongs to session {record.session_id}, not {session.id}"
            )

    if violations and session.status.is_terminal:
        raise InvalidTransition(session.id, session.status.value, "add violations to")

    session.violations.extend(violations)
    session.detection_logs.extend(logs)
    for name, value in fields.items():
        if name == "status":
            value = SessionStatus(value)
        setattr(session, name, value)
    session.integrity_score = scorer.compute(session.violations)
    return session


class SessionStore(ABC):
    """
    Keyed storage for sessions and candidates.

    Implementations must make ``apply_update`` atomic per session id.
    Unknown ids raise NotFound; an unreachable backend raises
    StoreUnavailable.
    """

    def __init__(self, scorer: Optional[IntegrityScorer] = None):
        self.scorer = scorer or IntegrityScorer()

    # ========================================================================
    # Candidates
    # ========================================================================

    @abstractmethod
    def create_candidate(self, candidate: Candidate) -> Candidate:
        """Persist a new candidate"""

    @abstractmethod
    def get_candidate(self, candidate_id: str) -> Candidate:
        """Load a candidate or raise NotFound"""

    @abstractmethod
    def list_candidates(self) -> List[Candidate]:
        """All stored candidates"""

    # ========================================================================
    # Sessions
    # ========================================================================

    @abstractmethod
    def create_session(self, session: Session) -> Session:
        """Persist a new session and return a snapshot"""

    @abstractmethod
    def get_session(self, session_id: str) -> Session:
        """Snapshot of a session or NotFound"""

    @abstractmethod
    def list_sessions(self, candidate_id: Optional[str] = None) -> List[Session]:
        """Snapshots of all sessions, optionally for one candidate"""

    @abstractmethod
    def apply_update(
        self,
        session_id: str,
        violations: Iterable[Violation] = (),
        logs: Iterable[DetectionLogEntry] = (),
        fields: Optional[Dict[str, Any]] = None
    ) -> Session:
        """Atomically append records, rewrite top-level fields and rescore"""

    def update_session(self, session_id: str, **fields: Any) -> Session:
        """Rewrite top-level session fields"""
        return self.apply_update(session_id, fields=fields)

    def add_violation(self, session_id: str, violation: Violation) -> Session:
        """Append a violation to an existing session"""
        return self.apply_update(session_id, violations=[violation])

    def add_detection_log(self, session_id: str, entry: DetectionLogEntry) -> Session:
        """Append a detection log entry to an existing session"""
        return self.apply_update(session_id, logs=[entry])

    # ========================================================================
    # Maintenance
    # ========================================================================

    def export_data(self) -> Dict[str, List[Dict[str, Any]]]:
        """Dump every session and candidate as plain dicts"""
        return {
            "sessions": [s.to_dict() for s in self.list_sessions()],
            "candidates": [c.to_dict() for c in self.list_candidates()],
        }

    @abstractmethod
    def clear(self) -> None:
        """Remove all sessions and candidates"""
