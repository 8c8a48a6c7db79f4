"""Scoring modules"""

from .integrity_scorer import IntegrityBand, IntegrityScorer, score

__all__ = ["IntegrityBand", "IntegrityScorer", "score"]
