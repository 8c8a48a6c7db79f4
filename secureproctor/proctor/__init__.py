"""
SecureProctor Session Integrity Engine

Turns a stream of detection results into:
- Typed violations (face missing, looking away, multiple faces, objects)
- A monotonic session timeline and detection log
- An integrity score (0-100) derived from the violations
- A text report once the session has finished
"""

from .api import router
from .classifier import ViolationClassifier, classify
from .exceptions import (
    InvalidTransition,
    NotFound,
    ProctorError,
    SessionNotFinal,
    StoreUnavailable,
)
from .manager import SessionManager
from .models import (
    Candidate,
    DetectionLogEntry,
    DetectionResult,
    GazeDirection,
    LogLevel,
    Session,
    SessionStatus,
    Severity,
    Violation,
    ViolationType,
)
from .report import ReportGenerator
from .scoring import IntegrityScorer, score
from .session import IngestResult, ProctorSession
from .sources import DetectionPump, DetectionSource, FixtureSource, RandomMockSource
from .store import InMemorySessionStore, RedisSessionStore, SessionStore

__all__ = [
    "router",
    "Candidate",
    "DetectionLogEntry",
    "DetectionPump",
    "DetectionResult",
    "DetectionSource",
    "FixtureSource",
    "IngestResult",
    "GazeDirection",
    "InMemorySessionStore",
    "IntegrityScorer",
    "InvalidTransition",
    "LogLevel",
    "NotFound",
    "ProctorError",
    "ProctorSession",
    "RandomMockSource",
    "RedisSessionStore",
    "ReportGenerator",
    "Session",
    "SessionManager",
    "SessionNotFinal",
    "SessionStatus",
    "SessionStore",
    "Severity",
    "StoreUnavailable",
    "Violation",
    "ViolationClassifier",
    "ViolationType",
    "classify",
    "score",
]
