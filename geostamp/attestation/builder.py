"""
Attestation builders: map an assessment onto its schema.

    within / contains / intersects  -> BooleanPolicyAttestation
    distance                        -> NumericPolicyAttestation (centimeters)
    any outcome                     -> VerifyAttestation (on request)

Input refs are the claim hash followed by the verified stamp hashes in
sorted order, so the same evidence always yields the same record.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from eth_utils import keccak

from ..credibility.scorer import PolicyOutcome
from ..domain import UnverifiableAttestation, claim_hash
from .schemas import (
    UNITS_BY_OPERATION,
    Attestation,
    BooleanPolicyAttestation,
    NumericPolicyAttestation,
    SchemaId,
    VerifyAttestation,
)
from .codec import scale_to_fixed_point

if TYPE_CHECKING:
    from ..engine import Assessment


def input_refs(assessment: Assessment) -> tuple[bytes, ...]:
    stamp_hashes = sorted(r.stamp_hash for r in assessment.stamp_results)
    return (claim_hash(assessment.claim), *stamp_hashes)


def proof_hash(assessment: Assessment) -> bytes:
    """keccak-256 over the sorted verified stamp hashes."""
    return keccak(b"".join(sorted(r.stamp_hash for r in assessment.stamp_results)))


def _require_verifiable(assessment: Assessment, schema: str) -> None:
    if assessment.credibility.is_unverifiable:
        raise UnverifiableAttestation(
            f"cannot encode an unverifiable assessment into the {schema} schema "
            f"(0 of {assessment.credibility.submitted_count} stamps verified)"
        )


def build_boolean_attestation(
    assessment: Assessment,
    timestamp: Optional[int] = None,
) -> BooleanPolicyAttestation:
    """
    Raises:
        UnverifiableAttestation: If no stamp survived verification
        ValueError: If the claim operation is not boolean
    """
    _require_verifiable(assessment, "boolean")
    vector = assessment.credibility
    if not vector.operation.is_boolean:
        raise ValueError(f"operation {vector.operation.value} is not boolean")
    return BooleanPolicyAttestation(
        result=vector.outcome is PolicyOutcome.TRUE,
        input_refs=input_refs(assessment),
        timestamp=vector.evaluated_at if timestamp is None else timestamp,
        operation=vector.operation.value,
    )


def build_numeric_attestation(
    assessment: Assessment,
    timestamp: Optional[int] = None,
) -> NumericPolicyAttestation:
    """
    Raises:
        UnverifiableAttestation: If no measured value is available
        ValueError: If the claim operation is not numeric
    """
    _require_verifiable(assessment, "numeric")
    vector = assessment.credibility
    operation = vector.operation
    if operation.is_boolean:
        raise ValueError(f"operation {operation.value} is not numeric")
    if vector.result_value is None:
        raise UnverifiableAttestation(f"no measured {operation.value} to encode")
    return NumericPolicyAttestation(
        result=scale_to_fixed_point(vector.result_value, operation),
        units=UNITS_BY_OPERATION[operation],
        input_refs=input_refs(assessment),
        timestamp=vector.evaluated_at if timestamp is None else timestamp,
        operation=operation.value,
    )


def build_verify_attestation(
    assessment: Assessment,
    credibility_uri: str = "",
) -> VerifyAttestation:
    """Unverifiable assessments encode with confidence 0."""
    vector = assessment.credibility
    confidence = 0 if vector.is_unverifiable else int(round(vector.overall_score * 100))
    return VerifyAttestation(
        claim_hash=claim_hash(assessment.claim),
        proof_hash=proof_hash(assessment),
        confidence=min(100, max(0, confidence)),
        credibility_uri=credibility_uri,
    )


def build_attestation(
    assessment: Assessment,
    schema: Optional[SchemaId] = None,
    timestamp: Optional[int] = None,
    credibility_uri: str = "",
) -> Attestation:
    """
    Build the record for ``schema``, or for the claim operation's policy
    schema when no schema is given.
    """
    if schema is None:
        schema = SchemaId.BOOLEAN if assessment.claim.operation.is_boolean else SchemaId.NUMERIC

    if schema is SchemaId.BOOLEAN:
        return build_boolean_attestation(assessment, timestamp)
    if schema is SchemaId.NUMERIC:
        return build_numeric_attestation(assessment, timestamp)
    return build_verify_attestation(assessment, credibility_uri)
