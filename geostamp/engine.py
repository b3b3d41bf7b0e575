"""
Assessment Engine for GeoStamp.

Ties the stages together into a single execution flow:

    1. Plugin resolution + verification (concurrent, per stamp)
    2. Evaluation of surviving stamps against the claim (concurrent)
    3. Credibility aggregation (pure reduction after the barrier)
    4. Attestation encoding (on request)

Every stamp either contributes to the credibility vector or appears in the
rejections with a reason. An assessment always completes: each plugin call
is bounded by the call timeout.
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from .attestation.builder import build_attestation
from .attestation.codec import EncodedAttestation, encode_attestation
from .attestation.schemas import SchemaId
from .config import Settings
from .credibility.scorer import CredibilityVector, ScoringWeights, aggregate
from .domain import LocationClaim, Rejection
from .evidence import LocationStamp, StampResult, StampVerificationResult
from .plugins import PluginRegistry, default_registry
from .verification.evaluator import Evaluator
from .verification.runner import (
    DEFAULT_CALL_TIMEOUT_SECONDS,
    DEFAULT_MAX_IN_FLIGHT,
    run_bounded,
)
from .verification.verifier import StampVerifier

logger = logging.getLogger(__name__)


# =============================================================================
# ASSESSMENT RESULT
# =============================================================================

@dataclass
class Assessment:
    """
    Complete result of assessing one claim.

    Exposes:
    - The credibility vector and policy outcome
    - Every verified and evaluated stamp (for audit)
    - Every rejection, ordered by stamp index
    """
    claim: LocationClaim
    credibility: CredibilityVector
    stamp_results: list[StampResult] = field(default_factory=list)
    rejections: list[Rejection] = field(default_factory=list)

    @property
    def outcome(self):
        return self.credibility.outcome

    def to_dict(self) -> dict[str, Any]:
        return {
            "claim": self.claim.to_dict(),
            "credibility": self.credibility.to_dict(),
            "stamps": [
                {
                    "stampIndex": r.stamp_index,
                    "plugin": r.plugin,
                    "stampHash": "0x" + r.stamp_hash.hex(),
                    "distanceMeters": r.evaluation.distance_meters,
                    "temporalOverlap": r.evaluation.temporal_overlap,
                    "withinRadius": r.evaluation.within_radius,
                    "details": r.evaluation.details,
                }
                for r in self.stamp_results
            ],
            "rejections": [r.to_dict() for r in self.rejections],
        }


def _submitted_positions(stamp_count: int, extra: Sequence[Rejection]) -> list[int]:
    """
    Map positions in the parsed stamp list back to positions in the
    submitted document, skipping the slots of pre-rejected stamps.
    """
    skipped = {r.stamp_index for r in extra}
    positions = [i for i in range(stamp_count + len(skipped)) if i not in skipped]
    return positions[:stamp_count]


# =============================================================================
# ENGINE
# =============================================================================

class AssessmentEngine:
    """
    Runs claims and stamps through verification, evaluation and aggregation.

    The engine owns no plugin state: plugins live in the registry, which
    may be shared between engines.
    """

    def __init__(
        self,
        registry: Optional[PluginRegistry] = None,
        weights: Optional[ScoringWeights] = None,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
        call_timeout: Optional[float] = DEFAULT_CALL_TIMEOUT_SECONDS,
    ):
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be >= 1, got {max_in_flight}")
        self.registry = registry if registry is not None else default_registry()
        self.weights = weights or ScoringWeights()
        self.max_in_flight = max_in_flight
        self.call_timeout = call_timeout

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        registry: Optional[PluginRegistry] = None,
    ) -> AssessmentEngine:
        if registry is None:
            registry = default_registry(settings.clock_skew_seconds)
        return cls(
            registry=registry,
            weights=settings.scoring_weights(),
            max_in_flight=settings.max_in_flight,
            call_timeout=settings.call_timeout,
        )

    async def assess_async(
        self,
        claim: LocationClaim,
        stamps: Sequence[LocationStamp],
        evaluated_at: Optional[int] = None,
        extra_rejections: Iterable[Rejection] = (),
    ) -> Assessment:
        """
        Assess a claim against its stamps.

        Args:
            claim: The claim being checked
            stamps: Submitted stamps (order is kept for diagnostics only)
            evaluated_at: Unix seconds recorded on the result (now if None)
            extra_rejections: Stamps rejected before reaching the engine,
                e.g. documents that failed to parse; they count as submitted
        """
        extra = list(extra_rejections)
        verifier = StampVerifier(self.registry, self.max_in_flight, self.call_timeout)
        evaluator = Evaluator(self.max_in_flight, self.call_timeout)

        # ======================================================================
        # STAGE 1: Verification
        # ======================================================================
        verification = await verifier.verify_all(stamps)

        # ======================================================================
        # STAGE 2: Evaluation
        # ======================================================================
        evaluation = await evaluator.evaluate_all(verification.verified, claim)

        # ======================================================================
        # STAGE 3: Aggregation
        # ======================================================================
        positions = _submitted_positions(len(stamps), extra)
        results = sorted(
            (dataclasses.replace(r, stamp_index=positions[r.stamp_index]) for r in evaluation.results),
            key=lambda r: r.stamp_index,
        )
        measurements = [(r.plugin, r.evaluation) for r in results]
        submitted = len(stamps) + len(extra)

        vector = aggregate(
            claim,
            measurements,
            submitted_count=submitted,
            weights=self.weights,
            evaluated_at=evaluated_at,
            verifications=verification.checks,
        )

        rejections = sorted(
            extra + [
                dataclasses.replace(r, stamp_index=positions[r.stamp_index])
                for r in verification.rejected + evaluation.rejected
            ],
            key=lambda r: r.stamp_index,
        )

        logger.info(
            "assessed %s claim: %d/%d stamps verified, overall=%.3f outcome=%s",
            claim.operation.value, vector.verified_count, submitted,
            vector.overall_score, vector.outcome.value,
        )

        return Assessment(
            claim=claim,
            credibility=vector,
            stamp_results=results,
            rejections=rejections,
        )

    def assess(
        self,
        claim: LocationClaim,
        stamps: Sequence[LocationStamp],
        evaluated_at: Optional[int] = None,
        extra_rejections: Iterable[Rejection] = (),
    ) -> Assessment:
        """Synchronous wrapper around ``assess_async``."""
        return asyncio.run(
            self.assess_async(claim, stamps, evaluated_at, extra_rejections)
        )

    def verify_stamp(self, stamp: LocationStamp) -> StampVerificationResult:
        """
        Run one stamp's plugin verification, bounded by the call timeout.

        Raises:
            PluginNotFound: If the stamp names an unregistered plugin
        """
        plugin = self.registry.resolve(stamp.plugin)

        async def run() -> StampVerificationResult:
            (outcome,) = await run_bounded(
                [functools.partial(plugin.verify, stamp)],
                max_in_flight=1,
                timeout=self.call_timeout,
            )
            if outcome.timed_out:
                return StampVerificationResult(valid=False, reason="timeout")
            if outcome.error is not None:
                return StampVerificationResult(
                    valid=False,
                    reason=f"plugin error: {type(outcome.error).__name__}: {outcome.error}",
                )
            return outcome.value

        return asyncio.run(run())

    @staticmethod
    def attest(
        assessment: Assessment,
        schema: Optional[SchemaId] = None,
        timestamp: Optional[int] = None,
        credibility_uri: str = "",
    ) -> EncodedAttestation:
        """
        Encode an assessment into its attestation schema.

        Raises:
            UnverifiableAttestation: If an unverifiable assessment is
                encoded into a policy schema
        """
        record = build_attestation(
            assessment,
            schema=schema,
            timestamp=timestamp,
            credibility_uri=credibility_uri,
        )
        return encode_attestation(record)

