"""
Violation Classifier - Maps a detection result to typed violations
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple
from datetime import datetime

from .models import (
    DetectionResult,
    GazeDirection,
    Severity,
    Violation,
    ViolationType,
    utcnow,
)

logger = logging.getLogger(__name__)


class ViolationClassifier:
    """
    Turns one DetectionResult into zero or more violations.

    Rules are evaluated independently, so a single frame can yield
    several violations (e.g. no face and a phone in view).
    """

    RULES: Dict[ViolationType, Tuple[Severity, str]] = {
        ViolationType.FACE_NOT_DETECTED: (Severity.HIGH, "No face detected in frame"),
        ViolationType.LOOKING_AWAY: (Severity.MEDIUM, "Candidate looking away from screen"),
        ViolationType.MULTIPLE_FACES: (Severity.HIGH, "Multiple faces detected"),
        ViolationType.UNAUTHORIZED_OBJECT: (Severity.HIGH, "Unauthorized object detected: {object}"),
    }

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            clock: Wall clock used to stamp violations (UTC now by default)
        """
        self._clock = clock or utcnow

    def classify(
        self,
        result: DetectionResult,
        session_time: int,
        session_id: str = ""
    ) -> List[Violation]:
        """
        Classify a detection result.

        Args:
            result: Detector output for one sampling tick
            session_time: Whole seconds since the session started
            session_id: Owning session

        Returns:
            Violations in rule order; objects are reported alphabetically
        """
        triggered: List[Tuple[ViolationType, str]] = []

        if not result.face_detected:
            triggered.append((ViolationType.FACE_NOT_DETECTED, ""))

        if result.eye_gaze is GazeDirection.LOOKING_AWAY:
            triggered.append((ViolationType.LOOKING_AWAY, ""))

        if result.multiple_faces:
            triggered.append((ViolationType.MULTIPLE_FACES, ""))

        for obj in sorted(result.objects_detected):
            triggered.append((ViolationType.UNAUTHORIZED_OBJECT, obj))

        if not triggered:
            return []

        timestamp = self._clock().isoformat()
        violations = []
        for violation_type, obj in triggered:
            severity, template = self.RULES[violation_type]
            violations.append(Violation(
                session_id=session_id,
                session_time=session_time,
                type=violation_type,
                severity=severity,
                description=template.format(object=obj),
                confidence=result.confidence,
                timestamp=timestamp,
            ))

        logger.debug(f"Classified {len(violations)} violation(s) at t={session_time}s")
        return violations


_default_classifier = ViolationClassifier()


def classify(result: DetectionResult, session_time: int, session_id: str = "") -> List[Violation]:
    """Classify with the default wall-clock classifier"""
    return _default_classifier.classify(result, session_time, session_id)
