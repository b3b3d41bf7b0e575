"""
ProofMode plugin: device-based location attestation.

Stamps come from a mobile device that captured GPS/sensor data and signed
it. Signatures are ASCII-armored PGP or 0x-prefixed wallet signatures; only
their format and signer identity are checked here, against an optional
trusted-signer list supplied at construction.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Iterable

from ..domain import LocationClaim
from ..evidence import LocationStamp, StampEvaluation, StampVerificationResult
from ..geometry import measure_point_stamp
from ..validation import (
    DEFAULT_CLOCK_SKEW_SECONDS,
    MAX_ACCURACY_METERS,
    check_accuracy,
    check_not_in_future,
    check_signature_fields,
    check_structure,
    check_trusted_signers,
    normalize_trust_anchors,
)


class ProofModePlugin:
    name = "proofmode"
    version = "0.1.0"
    environments = ("mobile", "server")
    description = "Device-based location attestation with hardware attestation"

    def __init__(
        self,
        trusted_signers: Iterable[str] = (),
        clock_skew_seconds: int = DEFAULT_CLOCK_SKEW_SECONDS,
        max_accuracy_meters: float = MAX_ACCURACY_METERS,
        clock: Callable[[], float] = time.time,
    ):
        self.trusted_signers = normalize_trust_anchors(trusted_signers)
        self.clock_skew_seconds = clock_skew_seconds
        self.max_accuracy_meters = max_accuracy_meters
        self._clock = clock

    def verify(self, stamp: LocationStamp) -> StampVerificationResult:
        try:
            return self._verify(stamp)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            return StampVerificationResult.unparseable(e)

    def _verify(self, stamp: LocationStamp) -> StampVerificationResult:
        details: dict[str, Any] = {}

        structure_valid = check_structure(stamp, details, expected_plugin=self.name)

        signatures_valid = check_signature_fields(stamp, details)
        if signatures_valid:
            signatures_valid = check_trusted_signers(
                (sig.signer.value for sig in stamp.signatures),
                self.trusted_signers,
                details,
            )

        signals_consistent = isinstance(stamp.signals, dict)
        signals_consistent = check_accuracy(stamp, details, self.max_accuracy_meters) and signals_consistent
        signals_consistent = check_not_in_future(
            stamp, details, self.clock_skew_seconds, now=self._clock()
        ) and signals_consistent

        return StampVerificationResult.from_checks(
            signatures_valid=signatures_valid,
            structure_valid=structure_valid,
            signals_consistent=signals_consistent,
            details=details,
        )

    def evaluate(self, stamp: LocationStamp, claim: LocationClaim) -> StampEvaluation:
        details = {}
        device = stamp.signals.get("deviceModel")
        if device:
            details["deviceModel"] = device
        return measure_point_stamp(stamp, claim, details=details)
