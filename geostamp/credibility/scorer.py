"""
Credibility Aggregator for the GeoStamp engine.

Folds per-stamp measurements into one CredibilityVector and a policy
outcome.

Core principle:
    Every score must be decomposable into human-readable reasons.
    Weights are explicit constants, overridable only through configuration.

Score composition:
    overall = 0.5 * spatial + 0.3 * temporal + 0.2 * source_diversity

Policy:
    - Boolean operations: TRUE iff overall >= threshold, else FALSE
    - Distance: MEASURED, with the mean distance of verified stamps
    - No verified stamps: UNVERIFIABLE (never FALSE)

Aggregation is a pure reduction over content-sorted measurements, so the
same multiset of measurements gives the same vector in any order.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence, Union

from ..domain import LocationClaim, Operation
from ..evidence import StampVerificationResult
from .components import (
    DimensionScore,
    IndependenceStats,
    Measurement,
    SpatialStats,
    TemporalStats,
    ValidityStats,
    compute_independence_stats,
    compute_source_diversity,
    compute_spatial_confidence,
    compute_spatial_stats,
    compute_temporal_confidence,
    compute_temporal_stats,
    compute_validity_stats,
)

logger = logging.getLogger(__name__)


# =============================================================================
# WEIGHTS & THRESHOLD
# =============================================================================

DEFAULT_SPATIAL_WEIGHT = 0.5
DEFAULT_TEMPORAL_WEIGHT = 0.3
DEFAULT_SOURCE_WEIGHT = 0.2
DEFAULT_THRESHOLD = 0.6

_WEIGHT_TOLERANCE = 1e-9


@dataclass(frozen=True)
class ScoringWeights:
    """
    Dimension weights and the boolean policy threshold.

    Weights must each lie in [0, 1] and sum to 1, so the overall score
    stays in [0, 1].
    """
    spatial: float = DEFAULT_SPATIAL_WEIGHT
    temporal: float = DEFAULT_TEMPORAL_WEIGHT
    source: float = DEFAULT_SOURCE_WEIGHT
    threshold: float = DEFAULT_THRESHOLD

    def __post_init__(self):
        for name in ("spatial", "temporal", "source", "threshold"):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        total = self.spatial + self.temporal + self.source
        if abs(total - 1.0) > _WEIGHT_TOLERANCE:
            raise ValueError(f"weights must sum to 1, got {total}")

    def to_dict(self) -> dict[str, float]:
        return {
            "spatial": self.spatial,
            "temporal": self.temporal,
            "source": self.source,
            "threshold": self.threshold,
        }


# =============================================================================
# POLICY OUTCOME
# =============================================================================

class PolicyOutcome(Enum):
    """
    Final decision for a claim.

    UNVERIFIABLE is a result in its own right: no stamp survived
    verification, so the claim was neither confirmed nor refuted.
    """
    TRUE = "true"
    FALSE = "false"
    MEASURED = "measured"
    UNVERIFIABLE = "unverifiable"


# =============================================================================
# CREDIBILITY VECTOR
# =============================================================================

@dataclass(frozen=True)
class CredibilityVector:
    """
    Aggregate assessment of a claim across all verified stamps.

    Exposes:
    - All dimension scores and the weighted overall score
    - Verified vs. submitted stamp counts
    - The policy outcome (and the measured value for numeric operations)
    - Descriptive statistics for audit
    """
    operation: Operation
    spatial: DimensionScore
    temporal: DimensionScore
    source_diversity: DimensionScore
    overall_score: float
    verified_count: int
    submitted_count: int
    outcome: PolicyOutcome
    spatial_stats: SpatialStats
    temporal_stats: TemporalStats
    independence_stats: IndependenceStats
    weights: ScoringWeights
    evaluated_at: int
    result_value: Optional[float] = None
    validity_stats: ValidityStats = ValidityStats(0.0, 0.0, 0.0)

    @property
    def is_unverifiable(self) -> bool:
        return self.outcome is PolicyOutcome.UNVERIFIABLE

    @property
    def rejected_count(self) -> int:
        return self.submitted_count - self.verified_count

    @property
    def dimensions(self) -> list[DimensionScore]:
        return [self.spatial, self.temporal, self.source_diversity]

    @property
    def result(self) -> Union[bool, float, None]:
        """Policy result: bool for boolean operations, float for numeric, None if unverifiable."""
        if self.outcome is PolicyOutcome.TRUE:
            return True
        if self.outcome is PolicyOutcome.FALSE:
            return False
        return self.result_value

    def contribution(self, dimension: DimensionScore) -> float:
        weight = {
            "spatial_confidence": self.weights.spatial,
            "temporal_confidence": self.weights.temporal,
            "source_diversity": self.weights.source,
        }[dimension.name]
        return weight * dimension.score

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation.value,
            "outcome": self.outcome.value,
            "result": self.result,
            "overallScore": self.overall_score,
            "dimensions": {
                d.name: {"score": d.score, "plugins": list(d.plugins), "reason": d.reason}
                for d in self.dimensions
            },
            "spatial": {
                "meanDistanceMeters": self.spatial_stats.mean_distance_meters,
                "maxDistanceMeters": self.spatial_stats.max_distance_meters,
                "withinRadiusFraction": self.spatial_stats.within_radius_fraction,
            },
            "temporal": {
                "meanOverlap": self.temporal_stats.mean_overlap,
                "minOverlap": self.temporal_stats.min_overlap,
                "fullyOverlappingFraction": self.temporal_stats.fully_overlapping_fraction,
            },
            "independence": {
                "uniquePluginRatio": self.independence_stats.unique_plugin_ratio,
                "spatialAgreement": self.independence_stats.spatial_agreement,
                "pluginNames": list(self.independence_stats.plugin_names),
            },
            "validity": {
                "signaturesValidFraction": self.validity_stats.signatures_valid_fraction,
                "structureValidFraction": self.validity_stats.structure_valid_fraction,
                "signalsConsistentFraction": self.validity_stats.signals_consistent_fraction,
            },
            "verifiedCount": self.verified_count,
            "submittedCount": self.submitted_count,
            "weights": self.weights.to_dict(),
            "evaluatedAt": self.evaluated_at,
        }


# =============================================================================
# AGGREGATION
# =============================================================================

def _decide(
    operation: Operation,
    overall: float,
    spatial_stats: SpatialStats,
    has_evidence: bool,
    weights: ScoringWeights,
) -> tuple[PolicyOutcome, Optional[float]]:
    if not has_evidence:
        return PolicyOutcome.UNVERIFIABLE, None

    if operation.is_boolean:
        if overall >= weights.threshold:
            return PolicyOutcome.TRUE, None
        return PolicyOutcome.FALSE, None

    if operation is Operation.DISTANCE:
        mean = spatial_stats.mean_distance_meters
        if mean is None or not math.isfinite(mean):
            return PolicyOutcome.UNVERIFIABLE, None
        return PolicyOutcome.MEASURED, mean

    raise ValueError(f"operation {operation.value} cannot be assessed from stamps")


def aggregate(
    claim: LocationClaim,
    measurements: Sequence[Measurement],
    submitted_count: int,
    weights: Optional[ScoringWeights] = None,
    evaluated_at: Optional[int] = None,
    verifications: Optional[Sequence[StampVerificationResult]] = None,
) -> CredibilityVector:
    """
    Fold verified stamp measurements into a CredibilityVector.

    Args:
        claim: The claim being assessed
        measurements: (plugin name, evaluation) of every verified stamp
        submitted_count: Number of stamps submitted, including rejected ones
        weights: Dimension weights and threshold (defaults if None)
        evaluated_at: Unix seconds recorded on the vector (now if None)
        verifications: Every result a plugin returned from ``verify``,
            passing or not (validity stats only). Defaults to one passing
            result per measurement.
    """
    if submitted_count < len(measurements):
        raise ValueError(
            f"submitted_count ({submitted_count}) is less than verified "
            f"measurements ({len(measurements)})"
        )
    if weights is None:
        weights = ScoringWeights()
    if evaluated_at is None:
        evaluated_at = int(time.time())
    if verifications is None:
        verifications = [StampVerificationResult(valid=True)] * len(measurements)
    elif len(verifications) > submitted_count:
        raise ValueError(
            f"submitted_count ({submitted_count}) is less than verification "
            f"results ({len(verifications)})"
        )

    spatial = compute_spatial_confidence(measurements, claim.radius)
    temporal = compute_temporal_confidence(measurements)
    diversity = compute_source_diversity(measurements, submitted_count)

    if measurements:
        overall = (
            weights.spatial * spatial.score
            + weights.temporal * temporal.score
            + weights.source * diversity.score
        )
        overall = min(1.0, max(0.0, overall))
    else:
        overall = 0.0

    spatial_stats = compute_spatial_stats(measurements)
    outcome, value = _decide(claim.operation, overall, spatial_stats, bool(measurements), weights)

    logger.debug(
        "aggregated %d/%d stamps: overall=%.4f outcome=%s",
        len(measurements), submitted_count, overall, outcome.value,
    )

    return CredibilityVector(
        operation=claim.operation,
        spatial=spatial,
        temporal=temporal,
        source_diversity=diversity,
        overall_score=overall,
        verified_count=len(measurements),
        submitted_count=submitted_count,
        outcome=outcome,
        spatial_stats=spatial_stats,
        temporal_stats=compute_temporal_stats(measurements),
        independence_stats=compute_independence_stats(measurements),
        validity_stats=compute_validity_stats(verifications, submitted_count),
        weights=weights,
        evaluated_at=evaluated_at,
        result_value=value,
    )


# =============================================================================
# EXPLANATION GENERATION
# =============================================================================

def generate_explanation(vector: CredibilityVector) -> str:
    """
    Plain-text explanation of the assessment.

    This answers: "Why did the claim resolve this way?"
    """
    lines = [
        f"Operation: {vector.operation.value}",
        f"Outcome: {vector.outcome.value.upper()}",
        f"Overall score: {vector.overall_score:.3f} (threshold {vector.weights.threshold:.2f})",
        f"Stamps: {vector.verified_count} verified of {vector.submitted_count} submitted",
        (
            f"Validity: signatures {vector.validity_stats.signatures_valid_fraction:.2f}, "
            f"structure {vector.validity_stats.structure_valid_fraction:.2f}, "
            f"signals {vector.validity_stats.signals_consistent_fraction:.2f}"
        ),
        "",
        "Score Breakdown:",
    ]

    for dimension in vector.dimensions:
        lines.append(
            f"- {dimension.name}: {dimension.score:.3f} "
            f"(+{vector.contribution(dimension):.3f}) — {dimension.reason}"
        )

    lines.append("")
    if vector.is_unverifiable:
        lines.append("Summary: No stamp survived verification; the claim is unverifiable.")
    elif vector.outcome is PolicyOutcome.TRUE:
        lines.append("Summary: Evidence supports the claim.")
    elif vector.outcome is PolicyOutcome.FALSE:
        lines.append("Summary: Evidence is insufficient to support the claim.")
    else:
        lines.append(f"Summary: Measured value {vector.result_value:.2f} meters.")

    return "\n".join(lines)


def generate_short_explanation(vector: CredibilityVector) -> str:
    """One-line explanation for quick scanning."""
    if vector.is_unverifiable:
        return f"UNVERIFIABLE — 0 of {vector.submitted_count} stamps verified"
    strongest = max(vector.dimensions, key=vector.contribution)
    return f"{vector.outcome.value.upper()} ({vector.overall_score:.2f}) — {strongest.reason}"
