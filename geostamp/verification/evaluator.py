"""
Evaluator: measure every verified stamp against the claim.

The evaluator orchestrates and bounds ``plugin.evaluate``; it never
recomputes distance itself. It does enforce the measurement invariants,
so a plugin cannot push an out-of-range value into aggregation:
    - distance_meters is a non-negative number (not NaN)
    - temporal_overlap is in [0, 1]
    - within_radius is a boolean
"""

from __future__ import annotations

import functools
import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..domain import EvaluationError, LocationClaim, Rejection, StampRejected
from ..evidence import StampEvaluation, StampResult
from .runner import (
    DEFAULT_CALL_TIMEOUT_SECONDS,
    DEFAULT_MAX_IN_FLIGHT,
    CallOutcome,
    run_bounded,
)
from .verifier import VerifiedStamp

logger = logging.getLogger(__name__)


@dataclass
class EvaluationBatch:
    """Stamp results ordered by stamp index, plus evaluation rejections."""
    results: list[StampResult] = field(default_factory=list)
    rejected: list[Rejection] = field(default_factory=list)


def check_measurements(evaluation: StampEvaluation) -> None:
    """
    Raises:
        EvaluationError: If a measurement is out of range
    """
    distance = evaluation.distance_meters
    if isinstance(distance, bool) or not isinstance(distance, (int, float)) or math.isnan(distance):
        raise EvaluationError(f"invalid distance: {distance!r}")
    if distance < 0:
        raise EvaluationError(f"negative distance: {distance}")

    overlap = evaluation.temporal_overlap
    if isinstance(overlap, bool) or not isinstance(overlap, (int, float)) or not (0.0 <= overlap <= 1.0):
        raise EvaluationError(f"temporal overlap out of range: {overlap!r}")

    if not isinstance(evaluation.within_radius, bool):
        raise EvaluationError(f"within_radius must be boolean, got {evaluation.within_radius!r}")


def _outcome_to_evaluation(outcome: CallOutcome) -> StampEvaluation:
    if outcome.timed_out:
        raise EvaluationError("timeout")
    if outcome.error is not None:
        raise EvaluationError(
            f"plugin error: {type(outcome.error).__name__}: {outcome.error}"
        )
    evaluation = outcome.value
    if not isinstance(evaluation, StampEvaluation):
        raise EvaluationError(
            f"plugin returned {type(evaluation).__name__}, expected StampEvaluation"
        )
    check_measurements(evaluation)
    return evaluation


class Evaluator:
    """Runs ``plugin.evaluate`` for verified stamps concurrently."""

    def __init__(
        self,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
        call_timeout: Optional[float] = DEFAULT_CALL_TIMEOUT_SECONDS,
    ):
        self.max_in_flight = max_in_flight
        self.call_timeout = call_timeout

    async def evaluate_all(
        self,
        verified: Sequence[VerifiedStamp],
        claim: LocationClaim,
    ) -> EvaluationBatch:
        outcomes = await run_bounded(
            [functools.partial(v.plugin.evaluate, v.stamp, claim) for v in verified],
            max_in_flight=self.max_in_flight,
            timeout=self.call_timeout,
        )

        batch = EvaluationBatch()
        for item, outcome in zip(verified, outcomes):
            try:
                evaluation = _outcome_to_evaluation(outcome)
            except StampRejected as e:
                rejection = Rejection.from_error(e, stamp_index=item.index, plugin=item.stamp.plugin)
                logger.warning(
                    "stamp %d (%s) evaluation dropped: %s",
                    item.index, item.stamp.plugin, rejection.reason,
                )
                batch.rejected.append(rejection)
                continue

            batch.results.append(
                StampResult(
                    stamp_index=item.index,
                    plugin=item.stamp.plugin,
                    stamp=item.stamp,
                    verification=item.verification,
                    evaluation=evaluation,
                )
            )

        return batch
