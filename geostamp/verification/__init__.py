# Verification package for GeoStamp
"""
Concurrent stamp verification and evaluation.
"""

from .evaluator import EvaluationBatch, Evaluator
from .runner import CallOutcome, run_bounded
from .verifier import StampVerifier, VerificationBatch, VerifiedStamp

__all__ = [
    "CallOutcome",
    "EvaluationBatch",
    "Evaluator",
    "StampVerifier",
    "VerificationBatch",
    "VerifiedStamp",
    "run_bounded",
]
