"""
Integrity Scorer - Computes integrity score from a session's violations
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional

from ..models import Severity, Violation

logger = logging.getLogger(__name__)


class IntegrityBand(str, Enum):
    """Conclusion bucket for a final score"""
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"


class IntegrityScorer:
    """
    Computes integrity score from violations.

    Formula:
        score = 100
        for each violation in timeline order:
            score = max(0, score - weight[violation.severity])

    The fold is written step by step (clamping after every violation)
    so a non-commutative policy can replace it without touching callers.
    """

    MAX_SCORE = 100
    MIN_SCORE = 0

    # Penalty per violation severity
    WEIGHTS: Dict[Severity, int] = {
        Severity.HIGH: 10,
        Severity.MEDIUM: 5,
        Severity.LOW: 2,
    }

    # Inclusive lower bounds of the conclusion bands
    HIGH_INTEGRITY_THRESHOLD = 80
    MODERATE_INTEGRITY_THRESHOLD = 60

    def __init__(self, weights: Optional[Mapping[Any, int]] = None):
        """
        Initialize scorer with optional custom weights.

        Args:
            weights: Optional mapping of severity (enum or value) to penalty
        """
        self.weights = self.WEIGHTS.copy()
        if weights:
            for severity, penalty in weights.items():
                if penalty < 0:
                    raise ValueError(f"Penalty for {severity} must not be negative")
                self.weights[Severity(severity)] = int(penalty)

    def penalty(self, severity: Severity) -> int:
        return self.weights[Severity(severity)]

    def apply(self, score: int, violation: Violation) -> int:
        """One step of the fold: deduct and clamp"""
        return max(self.MIN_SCORE, score - self.penalty(violation.severity))

    def compute(self, violations: Iterable[Violation]) -> int:
        """
        Compute integrity score from violations.

        Args:
            violations: Violations in timeline order

        Returns:
            Integrity score (0-100, higher is better)
        """
        score = self.MAX_SCORE
        for violation in violations:
            score = self.apply(score, violation)

        logger.debug(f"Computed integrity score: {score}")
        return score

    def compute_breakdown(self, violations: Iterable[Violation]) -> Dict[str, Any]:
        """
        Compute integrity score with a per-severity breakdown.

        Returns:
            Dict with score, counts and penalties per severity
        """
        violations = list(violations)
        counts = {severity.value: 0 for severity in Severity}
        for violation in violations:
            counts[violation.severity.value] += 1

        penalties = {
            severity.value: {
                "count": counts[severity.value],
                "weight": self.weights[severity],
                "penalty": counts[severity.value] * self.weights[severity],
            }
            for severity in Severity
        }
        total_penalty = sum(p["penalty"] for p in penalties.values())

        return {
            "integrity_score": self.compute(violations),
            "penalties": penalties,
            "total_penalty": total_penalty,
        }

    def get_grade(self, score: int) -> IntegrityBand:
        """
        Convert score to a conclusion band.

        Args:
            score: Integrity score (0-100)

        Returns:
            HIGH (>= 80), MODERATE (60-79) or LOW (< 60)
        """
        if score >= self.HIGH_INTEGRITY_THRESHOLD:
            return IntegrityBand.HIGH
        elif score >= self.MODERATE_INTEGRITY_THRESHOLD:
            return IntegrityBand.MODERATE
        else:
            return IntegrityBand.LOW


_default_scorer = IntegrityScorer()


def score(violations: Iterable[Violation]) -> int:
    """Score with the default severity weights"""
    return _default_scorer.compute(violations)
