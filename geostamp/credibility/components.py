"""
Credibility Dimensions for the GeoStamp engine.

Each dimension is independently computable from the per-stamp measurements
with no hidden weights. Weights are applied by the scorer.

Dimensions:
    - Spatial Confidence: within-radius indicator, weighted by closeness
    - Temporal Confidence: mean temporal overlap
    - Source Diversity: distinct corroborating plugins vs. submitted stamps

Descriptive statistics (distance, overlap, validity and independence
summaries) are computed alongside for audit output and the verify attestation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from ..evidence import StampEvaluation, StampVerificationResult


# A (plugin name, evaluation) pair from one verified stamp
Measurement = tuple[str, StampEvaluation]

# Far-away stamps still count against a claim, just less
MIN_SPATIAL_WEIGHT = 0.1


# =============================================================================
# HELPERS
# =============================================================================

def _measurement_key(measurement: Measurement) -> tuple:
    plugin, ev = measurement
    return (plugin, ev.distance_meters, ev.temporal_overlap, ev.within_radius)


def sort_measurements(measurements: Sequence[Measurement]) -> list[Measurement]:
    """
    Content order, so every reduction is independent of arrival order.
    """
    return sorted(measurements, key=_measurement_key)


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def distance_ratio(distance_meters: float, claim_radius: float) -> float:
    """Distance relative to the claim radius (inf when it cannot be scaled)."""
    if claim_radius > 0:
        return distance_meters / claim_radius
    return 0.0 if distance_meters == 0 else math.inf


def spatial_weight(distance_meters: float, claim_radius: float) -> float:
    """1 for stamps inside the claim radius, decaying as 1/ratio beyond it."""
    ratio = distance_ratio(distance_meters, claim_radius)
    return max(MIN_SPATIAL_WEIGHT, 1.0 / max(1.0, ratio))


# =============================================================================
# DIMENSION SCORE
# =============================================================================

@dataclass(frozen=True)
class DimensionScore:
    """
    A single credibility dimension with full transparency.

    Every dimension exposes:
    - name: What this dimension measures
    - score: Value in [0, 1]
    - plugins: Which plugins' evidence supports it
    - reason: Human-readable explanation
    """
    name: str
    score: float
    plugins: tuple[str, ...]
    reason: str


# =============================================================================
# SPATIAL CONFIDENCE
# =============================================================================

def compute_spatial_confidence(
    measurements: Sequence[Measurement],
    claim_radius: float,
) -> DimensionScore:
    """
    Weighted mean of the within-radius indicator.

    Each stamp's weight is 1 / max(1, distance / claim_radius), floored at
    MIN_SPATIAL_WEIGHT. A within-radius stamp no farther than the claim
    radius contributes full weight.
    """
    ordered = sort_measurements(measurements)
    if not ordered:
        return DimensionScore(
            name="spatial_confidence",
            score=0.0,
            plugins=(),
            reason="No verified stamps for spatial analysis",
        )

    total_weight = 0.0
    within_weight = 0.0
    within_count = 0
    for _, ev in ordered:
        weight = spatial_weight(ev.distance_meters, claim_radius)
        total_weight += weight
        if ev.within_radius:
            within_weight += weight
            within_count += 1

    score = _clamp(within_weight / total_weight) if total_weight > 0 else 0.0

    return DimensionScore(
        name="spatial_confidence",
        score=score,
        plugins=tuple(sorted({p for p, _ in ordered})),
        reason=f"{within_count} of {len(ordered)} stamps within radius (spatial {score:.2f})",
    )


# =============================================================================
# TEMPORAL CONFIDENCE
# =============================================================================

def compute_temporal_confidence(measurements: Sequence[Measurement]) -> DimensionScore:
    """Mean temporal overlap across verified stamps."""
    ordered = sort_measurements(measurements)
    if not ordered:
        return DimensionScore(
            name="temporal_confidence",
            score=0.0,
            plugins=(),
            reason="No verified stamps for temporal analysis",
        )

    score = _clamp(sum(ev.temporal_overlap for _, ev in ordered) / len(ordered))
    full = sum(1 for _, ev in ordered if ev.temporal_overlap >= 1.0)

    return DimensionScore(
        name="temporal_confidence",
        score=score,
        plugins=tuple(sorted({p for p, _ in ordered})),
        reason=f"Mean overlap {score:.2f}, {full} of {len(ordered)} fully overlapping",
    )


# =============================================================================
# SOURCE DIVERSITY
# =============================================================================

def compute_source_diversity(
    measurements: Sequence[Measurement],
    submitted_count: int,
) -> DimensionScore:
    """
    Independent corroboration.

    score = d / (d + 1) * min(1, d / submitted)

    where d is the number of distinct plugins among verified stamps. The
    first factor caps a single source at 0.5; the second discounts claims
    whose submitted evidence mostly failed or repeats one source.
    """
    plugins = tuple(sorted({p for p, _ in measurements}))
    distinct = len(plugins)

    if distinct == 0 or submitted_count <= 0:
        return DimensionScore(
            name="source_diversity",
            score=0.0,
            plugins=(),
            reason="No verified sources",
        )

    corroboration = distinct / (distinct + 1)
    coverage = min(1.0, distinct / submitted_count)
    score = _clamp(corroboration * coverage)

    if distinct == 1:
        reason = f"Single source ({plugins[0]}), capped (diversity {score:.2f})"
    else:
        reason = (
            f"{distinct} independent sources across {submitted_count} "
            f"submitted stamps (diversity {score:.2f})"
        )

    return DimensionScore(
        name="source_diversity",
        score=score,
        plugins=plugins,
        reason=reason,
    )


# =============================================================================
# DESCRIPTIVE STATISTICS
# =============================================================================

@dataclass(frozen=True)
class SpatialStats:
    mean_distance_meters: Optional[float]
    max_distance_meters: Optional[float]
    within_radius_fraction: float


@dataclass(frozen=True)
class TemporalStats:
    mean_overlap: float
    min_overlap: float
    fully_overlapping_fraction: float


@dataclass(frozen=True)
class IndependenceStats:
    unique_plugin_ratio: float
    spatial_agreement: float
    plugin_names: tuple[str, ...]


@dataclass(frozen=True)
class ValidityStats:
    signatures_valid_fraction: float
    structure_valid_fraction: float
    signals_consistent_fraction: float


def compute_spatial_stats(measurements: Sequence[Measurement]) -> SpatialStats:
    """Distance statistics over stamps with a finite distance."""
    ordered = sort_measurements(measurements)
    if not ordered:
        return SpatialStats(None, None, 0.0)
    distances = sorted(ev.distance_meters for _, ev in ordered if math.isfinite(ev.distance_meters))
    within = sum(1 for _, ev in ordered if ev.within_radius)
    return SpatialStats(
        mean_distance_meters=sum(distances) / len(distances) if distances else None,
        max_distance_meters=distances[-1] if distances else None,
        within_radius_fraction=within / len(ordered),
    )


def compute_temporal_stats(measurements: Sequence[Measurement]) -> TemporalStats:
    ordered = sort_measurements(measurements)
    if not ordered:
        return TemporalStats(0.0, 0.0, 0.0)
    overlaps = sorted(ev.temporal_overlap for _, ev in ordered)
    return TemporalStats(
        mean_overlap=sum(overlaps) / len(overlaps),
        min_overlap=overlaps[0],
        fully_overlapping_fraction=sum(1 for o in overlaps if o >= 1.0) / len(overlaps),
    )


def compute_independence_stats(measurements: Sequence[Measurement]) -> IndependenceStats:
    """Plugin diversity and agreement on the within-radius verdict."""
    if not measurements:
        return IndependenceStats(0.0, 0.0, ())
    plugins = tuple(sorted({p for p, _ in measurements}))
    within = sum(1 for _, ev in measurements if ev.within_radius)
    outside = len(measurements) - within
    return IndependenceStats(
        unique_plugin_ratio=len(plugins) / len(measurements),
        spatial_agreement=max(within, outside) / len(measurements),
        plugin_names=plugins,
    )


def compute_validity_stats(
    verifications: Sequence[StampVerificationResult],
    submitted_count: int,
) -> ValidityStats:
    """
    Share of submitted stamps passing each verification sub-check.

    Stamps that never produced a result (unknown plugin, timeout, parse
    failure) count as failing every sub-check.
    """
    if submitted_count <= 0:
        return ValidityStats(0.0, 0.0, 0.0)
    return ValidityStats(
        signatures_valid_fraction=sum(1 for v in verifications if v.signatures_valid) / submitted_count,
        structure_valid_fraction=sum(1 for v in verifications if v.structure_valid) / submitted_count,
        signals_consistent_fraction=sum(1 for v in verifications if v.signals_consistent) / submitted_count,
    )
