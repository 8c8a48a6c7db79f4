"""
Proctoring Models - Typed records for detections, violations and sessions

The session state machine is the only component that mutates a Session;
everything else receives copies.
"""

import copy
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional


class GazeDirection(str, Enum):
    """Eye gaze reported by the detector"""
    FOCUSED = "focused"
    LOOKING_AWAY = "looking_away"
    UNKNOWN = "unknown"


class ViolationType(str, Enum):
    """Kind of integrity violation"""
    FACE_NOT_DETECTED = "face_not_detected"
    LOOKING_AWAY = "looking_away"
    MULTIPLE_FACES = "multiple_faces"
    UNAUTHORIZED_OBJECT = "unauthorized_object"


class Severity(str, Enum):
    """Violation severity"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LogLevel(str, Enum):
    """Detection log entry level"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class SessionStatus(str, Enum):
    """Session lifecycle state"""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    TERMINATED = "terminated"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.TERMINATED)


def new_id() -> str:
    """Random 128-bit identifier"""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# ============== Detection Input ==============

@dataclass(frozen=True)
class DetectionResult:
    """
    One sample from an external detector.

    Every field defaults to its neutral value, so a partially filled
    result never produces a violation for the missing parts.
    """

    face_detected: bool = True
    eye_gaze: GazeDirection = GazeDirection.UNKNOWN
    objects_detected: FrozenSet[str] = frozenset()
    multiple_faces: bool = False
    confidence: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "face_detected", bool(self.face_detected))
        object.__setattr__(self, "multiple_faces", bool(self.multiple_faces))
        object.__setattr__(self, "eye_gaze", _coerce_gaze(self.eye_gaze))
        objects = self.objects_detected or ()
        if isinstance(objects, str):
            objects = (objects,)
        object.__setattr__(
            self,
            "objects_detected",
            frozenset(str(o).strip() for o in objects if str(o).strip())
        )
        object.__setattr__(self, "confidence", _clamp_confidence(self.confidence))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionResult":
        """
        Build a result from a detector payload.

        Accepts both camelCase (``faceDetected``) and snake_case keys.
        """
        def pick(camel: str, snake: str, default: Any) -> Any:
            if camel in data and data[camel] is not None:
                return data[camel]
            if snake in data and data[snake] is not None:
                return data[snake]
            return default

        return cls(
            face_detected=pick("faceDetected", "face_detected", True),
            eye_gaze=pick("eyeGaze", "eye_gaze", GazeDirection.UNKNOWN),
            objects_detected=pick("objectsDetected", "objects_detected", ()),
            multiple_faces=pick("multipleFaces", "multiple_faces", False),
            confidence=pick("confidence", "confidence", 1.0),
        )

    @property
    def is_clear(self) -> bool:
        """True when nothing suspicious was reported"""
        return (
            self.face_detected
            and self.eye_gaze is not GazeDirection.LOOKING_AWAY
            and not self.multiple_faces
            and not self.objects_detected
        )


def _coerce_gaze(value: Any) -> GazeDirection:
    if isinstance(value, GazeDirection):
        return value
    try:
        return GazeDirection(str(value).strip().lower())
    except ValueError:
        return GazeDirection.UNKNOWN


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(confidence):
        return 0.0
    return max(0.0, min(1.0, confidence))


# ============== Timeline Records ==============

@dataclass(frozen=True)
class Violation:
    """An immutable integrity violation; id and timestamp do not take part in equality"""

    session_id: str
    session_time: int
    type: ViolationType
    severity: Severity
    description: str
    confidence: float
    id: str = field(default_factory=new_id, compare=False)
    timestamp: str = field(default_factory=lambda: utcnow().isoformat(), compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "timestamp": self.timestamp,
            "sessionTime": self.session_time,
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Violation":
        return cls(
            id=data["id"],
            session_id=data["sessionId"],
            timestamp=data["timestamp"],
            session_time=int(data["sessionTime"]),
            type=ViolationType(data["type"]),
            severity=Severity(data["severity"]),
            description=data["description"],
            confidence=float(data["confidence"]),
        )


@dataclass(frozen=True)
class DetectionLogEntry:
    """Lifecycle or violation message on the session timeline"""

    session_id: str
    session_time: int
    message: str
    level: LogLevel = LogLevel.INFO
    id: str = field(default_factory=new_id, compare=False)
    timestamp: str = field(default_factory=lambda: utcnow().isoformat(), compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "timestamp": self.timestamp,
            "sessionTime": self.session_time,
            "message": self.message,
            "level": self.level.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionLogEntry":
        return cls(
            id=data["id"],
            session_id=data["sessionId"],
            timestamp=data["timestamp"],
            session_time=int(data["sessionTime"]),
            message=data["message"],
            level=LogLevel(data["level"]),
        )


# ============== Candidate & Session ==============

@dataclass(frozen=True)
class Candidate:
    """Person being assessed. Immutable after creation."""

    name: str
    email: str
    position: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        for attr in ("name", "email", "position"):
            value = getattr(self, attr)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Candidate {attr} is required")
            object.__setattr__(self, attr, value.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "position": self.position,
            "createdAt": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candidate":
        return cls(
            id=data["id"],
            name=data["name"],
            email=data["email"],
            position=data["position"],
            created_at=_parse_iso(data["createdAt"]),
        )


@dataclass
class Session:
    """
    One proctored assessment.

    ``integrity_score`` always equals the scoring policy replayed over
    ``violations``; only the session state machine writes to it.
    """

    candidate_id: str
    id: str = field(default_factory=new_id)
    status: SessionStatus = SessionStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_seconds: int = 0
    integrity_score: int = 100
    violations: List[Violation] = field(default_factory=list)
    detection_logs: List[DetectionLogEntry] = field(default_factory=list)

    def copy(self) -> "Session":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "candidateId": self.candidate_id,
            "status": self.status.value,
            "startTime": _iso(self.start_time),
            "endTime": _iso(self.end_time),
            "durationSeconds": self.duration_seconds,
            "integrityScore": self.integrity_score,
            "violations": [v.to_dict() for v in self.violations],
            "detectionLogs": [log.to_dict() for log in self.detection_logs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            id=data["id"],
            candidate_id=data["candidateId"],
            status=SessionStatus(data["status"]),
            start_time=_parse_iso(data.get("startTime")),
            end_time=_parse_iso(data.get("endTime")),
            duration_seconds=int(data.get("durationSeconds", 0)),
            integrity_score=int(data.get("integrityScore", 100)),
            violations=[Violation.from_dict(v) for v in data.get("violations", [])],
            detection_logs=[DetectionLogEntry.from_dict(log) for log in data.get("detectionLogs", [])],
        )

    def to_summary(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Session summary handed to report consumers"""
        timestamp = self.end_time or now or utcnow()
        return {
            "durationSeconds": self.duration_seconds,
            "violations": [v.to_dict() for v in self.violations],
            "detectionLogs": [log.to_dict() for log in self.detection_logs],
            "integrityScore": self.integrity_score,
            "timestamp": timestamp.isoformat(),
        }


def violations_by_type(violations: Iterable[Violation]) -> Dict[str, int]:
    """Count violations per type, in first-seen order"""
    counts: Dict[str, int] = {}
    for violation in violations:
        counts[violation.type.value] = counts.get(violation.type.value, 0) + 1
    return counts
