"""
WitnessChain plugin: network-witnessed proof of location.

A challenger node measures a prover's location through network latency and
IP geolocation, then signs the challenge result with its Ethereum key.

Verification:
    1. Structure: LP fields, plugin name, challenge data present
    2. Signatures: EIP-191 recovery of the challenge signature against the
       challenger address, and of any stamp-level signature against the
       canonical stamp payload
    3. Signals: coordinates in range, consolidated result well-typed

Evaluation uses the challenge's location uncertainty (km) as the stamp
accuracy and records the multi-source agreement in the details.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from ..domain import LocationClaim
from ..evidence import LocationStamp, StampEvaluation, StampVerificationResult
from ..geometry import measure_point_stamp
from ..validation import (
    ETH_ADDRESS_PATTERN,
    check_structure,
    check_trusted_signers,
    normalize_trust_anchors,
)

logger = logging.getLogger(__name__)


DEFAULT_UNCERTAINTY_KM = 50.0
IP_GEOLOCATION_SOURCES = ("ipapi.co", "ipregistry", "maxmind")
CHALLENGE_FAILED_PENALTY = 0.3


def recover_signer(message: str, signature: str) -> str:
    """Address that produced an EIP-191 personal-sign signature."""
    return Account.recover_message(encode_defunct(text=message), signature=signature)


class WitnessChainPlugin:
    name = "witnesschain"
    version = "0.1.0"
    environments = ("server",)
    description = "Network-witnessed location challenges with ECDSA-signed results"

    def __init__(self, trusted_challengers: Iterable[str] = ()):
        self.trusted_challengers = normalize_trust_anchors(trusted_challengers)

    # -------------------------------------------------------------------------
    # verify
    # -------------------------------------------------------------------------

    def verify(self, stamp: LocationStamp) -> StampVerificationResult:
        try:
            return self._verify(stamp)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            return StampVerificationResult.unparseable(e)

    def _verify(self, stamp: LocationStamp) -> StampVerificationResult:
        details: dict[str, Any] = {}
        signals = stamp.signals

        structure_valid = check_structure(stamp, details, expected_plugin=self.name)

        challenge = signals.get("challengeResult")
        if challenge is None:
            if signals.get("challengeId") is None or signals.get("challengeSucceeded") is None:
                structure_valid = False
                details["missingChallengeData"] = True
        elif not isinstance(challenge, dict):
            raise TypeError("challengeResult must be an object")

        signatures_valid = True

        if challenge is not None:
            signatures_valid = self._check_challenge_signature(challenge, details)

        if stamp.signatures:
            signatures_valid = self._check_stamp_signatures(stamp, details) and signatures_valid
        elif challenge is None:
            signatures_valid = False
            details["noSignatures"] = True

        signals_consistent = self._check_signals(signals, details)

        if signals.get("challengeSucceeded") is False:
            details["challengeFailed"] = True

        return StampVerificationResult.from_checks(
            signatures_valid=signatures_valid,
            structure_valid=structure_valid,
            signals_consistent=signals_consistent,
            details=details,
        )

    def _check_challenge_signature(self, challenge: dict[str, Any], details: dict[str, Any]) -> bool:
        message = challenge["message"]
        signature = challenge["signature"]
        challenger = str(challenge["challenger"])

        if not ETH_ADDRESS_PATTERN.match(challenger):
            details["invalidChallenger"] = challenger
            return False

        recovered = self._recover(str(message), str(signature), details, "challengeSignatureError")
        if recovered is None:
            return False

        if recovered.lower() != challenger.lower():
            details["challengeSignatureMismatch"] = {
                "expected": challenger,
                "recovered": recovered,
            }
            return False

        details["challengeSignerVerified"] = True
        details["recoveredAddress"] = recovered
        return check_trusted_signers([challenger], self.trusted_challengers, details)

    def _check_stamp_signatures(self, stamp: LocationStamp, details: dict[str, Any]) -> bool:
        message = stamp.signing_payload()
        for sig in stamp.signatures:
            recovered = self._recover(message, sig.value, details, "stampSignatureError")
            if recovered is None:
                return False
            if recovered.lower() != sig.signer.value.lower():
                details["stampSignatureMismatch"] = {
                    "expected": sig.signer.value,
                    "recovered": recovered,
                }
                return False
        return True

    @staticmethod
    def _recover(
        message: str, signature: str, details: dict[str, Any], error_key: str
    ) -> Optional[str]:
        # eth-account raises several unrelated types for bad signatures
        try:
            return recover_signer(message, signature)
        except Exception as e:
            logger.debug("signature recovery failed: %s", e)
            details[error_key] = str(e)
            return None

    @staticmethod
    def _check_signals(signals: dict[str, Any], details: dict[str, Any]) -> bool:
        ok = True

        consolidated = signals.get("consolidatedResult")
        if consolidated is not None:
            if not isinstance(consolidated, dict):
                details["invalidConsolidatedResult"] = "consolidatedResult must be an object"
                ok = False
            elif not isinstance(consolidated.get("KnowLoc"), bool):
                details["invalidConsolidatedResult"] = "KnowLoc must be boolean"
                ok = False

        uncertainty = signals.get("knowLocUncertaintyKm")
        if uncertainty is not None:
            if isinstance(uncertainty, bool) or not isinstance(uncertainty, (int, float)) or uncertainty < 0:
                details["invalidUncertainty"] = uncertainty
                ok = False

        return ok

    # -------------------------------------------------------------------------
    # evaluate
    # -------------------------------------------------------------------------

    def evaluate(self, stamp: LocationStamp, claim: LocationClaim) -> StampEvaluation:
        signals = stamp.signals
        details: dict[str, Any] = {}

        uncertainty_km = signals.get("knowLocUncertaintyKm")
        if uncertainty_km is None:
            uncertainty_km = DEFAULT_UNCERTAINTY_KM
        accuracy = max(stamp.accuracy_meters, float(uncertainty_km) * 1000.0)

        evaluation = measure_point_stamp(stamp, claim, accuracy_meters=accuracy, details=details)
        details = dict(evaluation.details)

        effective_radius = claim.radius + accuracy
        distance = evaluation.distance_meters
        if effective_radius > 0 and distance <= effective_radius:
            spatial = 1.0 - distance / effective_radius
        elif effective_radius > 0:
            spatial = max(0.0, 1.0 - distance / (effective_radius * 3))
        else:
            spatial = 1.0 if distance == 0 else 0.0

        consolidated = signals.get("consolidatedResult")
        if isinstance(consolidated, dict):
            agreed = sum(1 for key in IP_GEOLOCATION_SOURCES if consolidated.get(key) is True)
            total = sum(1 for key in IP_GEOLOCATION_SOURCES if key in consolidated)
            if total:
                spatial = min(1.0, spatial + (agreed / total) * 0.1)
                details["ipSourcesAgreed"] = agreed
                details["ipSourcesTotal"] = total
            if consolidated.get("KnowLoc") is True:
                spatial = min(1.0, spatial + 0.05)
            if consolidated.get("verified") is True:
                spatial = min(1.0, spatial + 0.05)

        if signals.get("challengeSucceeded") is False:
            details["challengeFailedPenalty"] = CHALLENGE_FAILED_PENALTY

        details["spatialScore"] = round(spatial, 4)

        return StampEvaluation(
            distance_meters=evaluation.distance_meters,
            temporal_overlap=evaluation.temporal_overlap,
            within_radius=evaluation.within_radius,
            details=details,
        )
