"""
Stamp Verifier: filter stamps down to those their plugin vouches for.

For every stamp, independently:
    1. Resolve the plugin by name (unknown plugin → rejected)
    2. Run ``plugin.verify`` under the bounded runner
    3. Keep the stamp only if the result is ``valid``

Timeouts, plugin exceptions and invalid results are all rejections with an
auditable reason. No stamp's outcome depends on another's.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..domain import PluginNotFound, Rejection, StampRejected, VerificationFailed
from ..evidence import LocationStamp, StampVerificationResult
from ..plugins.interface import LocationProofPlugin
from ..plugins.registry import PluginRegistry
from .runner import (
    DEFAULT_CALL_TIMEOUT_SECONDS,
    DEFAULT_MAX_IN_FLIGHT,
    CallOutcome,
    run_bounded,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedStamp:
    """A stamp that passed verification, paired with its plugin."""
    index: int
    stamp: LocationStamp
    plugin: LocationProofPlugin
    verification: StampVerificationResult


@dataclass
class VerificationBatch:
    """
    Partitioned verification outcome.

    ``verified`` and ``rejected`` are both ordered by stamp index.
    ``checks`` holds every result a plugin returned, passing or not.
    """
    verified: list[VerifiedStamp] = field(default_factory=list)
    rejected: list[Rejection] = field(default_factory=list)
    checks: list[StampVerificationResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.verified) + len(self.rejected)


def _outcome_to_result(outcome: CallOutcome) -> StampVerificationResult:
    """Turn a runner outcome into a valid result or raise VerificationFailed."""
    if outcome.timed_out:
        raise VerificationFailed("timeout")
    if outcome.error is not None:
        raise VerificationFailed(
            f"plugin error: {type(outcome.error).__name__}: {outcome.error}"
        )
    result = outcome.value
    if not isinstance(result, StampVerificationResult):
        raise VerificationFailed(
            f"plugin returned {type(result).__name__}, expected StampVerificationResult"
        )
    if not result.valid:
        raise VerificationFailed(result.reason or "verification failed")
    return result


class StampVerifier:
    """Runs each stamp's plugin ``verify`` concurrently."""

    def __init__(
        self,
        registry: PluginRegistry,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
        call_timeout: Optional[float] = DEFAULT_CALL_TIMEOUT_SECONDS,
    ):
        self.registry = registry
        self.max_in_flight = max_in_flight
        self.call_timeout = call_timeout

    async def verify_all(
        self,
        stamps: Sequence[LocationStamp],
    ) -> VerificationBatch:
        batch = VerificationBatch()

        resolved: list[tuple[int, LocationStamp, LocationProofPlugin]] = []
        for index, stamp in enumerate(stamps):
            try:
                plugin = self.registry.resolve(stamp.plugin)
            except PluginNotFound as e:
                self._reject(batch, e, index, stamp.plugin)
                continue
            resolved.append((index, stamp, plugin))

        outcomes = await run_bounded(
            [functools.partial(plugin.verify, stamp) for _, stamp, plugin in resolved],
            max_in_flight=self.max_in_flight,
            timeout=self.call_timeout,
        )

        for (index, stamp, plugin), outcome in zip(resolved, outcomes):
            if isinstance(outcome.value, StampVerificationResult):
                batch.checks.append(outcome.value)
            try:
                result = _outcome_to_result(outcome)
            except StampRejected as e:
                self._reject(batch, e, index, stamp.plugin)
                continue
            batch.verified.append(
                VerifiedStamp(index=index, stamp=stamp, plugin=plugin, verification=result)
            )

        batch.rejected.sort(key=lambda r: r.stamp_index)
        return batch

    @staticmethod
    def _reject(batch: VerificationBatch, error: StampRejected, index: int, plugin: str) -> None:
        rejection = Rejection.from_error(error, stamp_index=index, plugin=plugin)
        logger.warning(
            "stamp %d (%s) rejected: [%s] %s",
            index, plugin, rejection.rule.value, rejection.reason,
        )
        batch.rejected.append(rejection)
