"""
Proctoring Logger - Logs proctoring events and results
"""

import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def log_proctor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a proctoring event.

    Args:
        session_id: Proctoring session ID
        event_type: Type of event (start, violation, drop, stop, etc.)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[PROCTOR] session={session_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    if level == "debug":
        logger.debug(message)
    elif level == "warning":
        logger.warning(message)
    elif level == "error":
        logger.error(message)
    else:
        logger.info(message)


def log_session_created(session_id: str, candidate_id: str):
    """Log session creation"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_created",
        details={"candidate_id": candidate_id}
    )


def log_session_start(session_id: str, candidate_id: str):
    """Log session start event"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_start",
        details={"candidate_id": candidate_id}
    )


def log_session_end(session_id: str, status: str, integrity_score: int, violations: int, duration: int):
    """Log session end event"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_end",
        details={
            "status": status,
            "integrity_score": integrity_score,
            "violations": violations,
            "duration_seconds": duration
        }
    )


def log_violation(session_id: str, violation_type: str, severity: str, session_time: int, score: int):
    """Log when a violation is recorded"""
    log_proctor_event(
        session_id=session_id,
        event_type="violation",
        details={
            "type": violation_type,
            "severity": severity,
            "session_time": session_time,
            "integrity_score": score
        },
        level="warning"
    )


def log_event_dropped(session_id: str, reason: str):
    """Log a detection event that was discarded"""
    log_proctor_event(
        session_id=session_id,
        event_type="detection_dropped",
        details={"reason": reason},
        level="debug"
    )
