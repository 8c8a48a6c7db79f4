"""
Report Generator - Text assessment report for a finished session
"""

import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..config import settings
from .exceptions import SessionNotFinal
from .models import Candidate, Session, utcnow, violations_by_type
from .scoring import IntegrityBand, IntegrityScorer

logger = logging.getLogger(__name__)


CONCLUSIONS = {
    IntegrityBand.HIGH: "The candidate demonstrated high integrity throughout the assessment.",
    IntegrityBand.MODERATE: "The candidate showed moderate integrity with some concerns noted.",
    IntegrityBand.LOW: "The candidate's assessment raised significant integrity concerns.",
}

NO_VIOLATIONS = "No violations detected during the assessment."


def format_elapsed(seconds: int) -> str:
    """Format elapsed seconds as MM:SS"""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def _section(title: str) -> str:
    return f"{title}\n{'-' * len(title)}"


def report_filename(candidate: Candidate, generated_at: datetime) -> str:
    """Download name: proctoring-report-<name>-<epoch ms>.txt"""
    name = re.sub(r"\s+", "-", candidate.name.strip())
    return f"proctoring-report-{name}-{int(generated_at.timestamp() * 1000)}.txt"


class ReportGenerator:
    """
    Projects a completed or terminated session into a report.

    Output is deterministic for the same inputs apart from the
    "Report generated on" line.
    """

    TITLE = "PROCTORING ASSESSMENT REPORT"

    def __init__(
        self,
        scorer: Optional[IntegrityScorer] = None,
        clock: Optional[Callable[[], datetime]] = None,
        system_name: Optional[str] = None
    ):
        self.scorer = scorer or IntegrityScorer()
        self._clock = clock or utcnow
        self.system_name = system_name or f"{settings.APP_NAME} v{settings.APP_VERSION}"

    def _check(self, candidate: Candidate, session: Session):
        if not session.status.is_terminal:
            raise SessionNotFinal(session.id, session.status.value)
        if candidate.id != session.candidate_id:
            raise ValueError(
                f"Session {session.id} belongs to candidate {session.candidate_id}, not {candidate.id}"
            )

    def conclusion(self, score: int) -> str:
        return CONCLUSIONS[self.scorer.get_grade(score)]

    def generate(
        self,
        candidate: Candidate,
        session: Session,
        generated_at: Optional[datetime] = None
    ) -> str:
        """
        Render the text report.

        Raises:
            SessionNotFinal: if the session is pending or active
        """
        self._check(candidate, session)
        generated_at = generated_at or self._clock()

        if session.violations:
            violation_lines = [
                f"{i}. [{format_elapsed(v.session_time)}] {v.description} ({v.severity.value.upper()})"
                for i, v in enumerate(session.violations, start=1)
            ]
        else:
            violation_lines = [NO_VIOLATIONS]

        log_lines = [
            f"{i}. [{format_elapsed(log.session_time)}] {log.message}"
            for i, log in enumerate(session.detection_logs, start=1)
        ]

        parts = [
            f"{self.TITLE}\n{'=' * len(self.TITLE)}",
            "\n".join([
                _section("CANDIDATE INFORMATION"),
                f"Name: {candidate.name}",
                f"Position: {candidate.position}",
                f"Email: {candidate.email}",
                f"Assessment Date: {format_date(session.end_time)}",
            ]),
            "\n".join([
                _section("SESSION SUMMARY"),
                f"Duration: {format_elapsed(session.duration_seconds)}",
                f"Integrity Score: {session.integrity_score}%",
                f"Total Violations: {len(session.violations)}",
            ]),
            "\n".join([_section("VIOLATION DETAILS"), *violation_lines]),
            "\n".join([_section("DETECTION LOG"), *log_lines]),
            "\n".join([_section("ASSESSMENT CONCLUSION"), self.conclusion(session.integrity_score)]),
            "\n".join([
                f"Report generated on: {format_date(generated_at)}",
                f"System: {self.system_name}",
            ]),
        ]

        logger.info(f"Generated report for session {session.id}")
        return "\n\n".join(parts)

    def generate_structured(
        self,
        candidate: Candidate,
        session: Session,
        generated_at: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Same content as ``generate`` as plain data"""
        self._check(candidate, session)
        generated_at = generated_at or self._clock()
        band = self.scorer.get_grade(session.integrity_score)

        return {
            "candidate": candidate.to_dict(),
            "session": session.to_summary(),
            "status": session.status.value,
            "violationCounts": violations_by_type(session.violations),
            "breakdown": self.scorer.compute_breakdown(session.violations),
            "conclusion": {"band": band.value, "text": CONCLUSIONS[band]},
            "generatedAt": generated_at.isoformat(),
            "system": self.system_name,
        }
