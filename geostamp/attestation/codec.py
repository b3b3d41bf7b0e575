"""
ABI codec for the attestation schemas.

Encoding is standard Ethereum ABI (head/tail layout, 32-byte words) via
eth-abi, so the bytes are what an EAS resolver contract decodes with
``abi.decode``. Decoding is strict: the input must be the canonical
encoding of the requested schema, byte for byte. Truncated data, trailing
bytes, dirty padding and non-canonical offsets all raise SchemaMismatch.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError

from ..domain import Operation, SchemaMismatch
from .schemas import (
    ABI_TYPES,
    SCALE_FACTORS,
    UINT256_MAX,
    Attestation,
    BooleanPolicyAttestation,
    NumericPolicyAttestation,
    SchemaId,
    VerifyAttestation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodedAttestation:
    """ABI-encoded attestation data tagged with its schema."""
    schema_id: SchemaId
    data: bytes

    @property
    def hex(self) -> str:
        return "0x" + self.data.hex()

    def to_dict(self) -> dict[str, str]:
        return {"schema": self.schema_id.value, "data": self.hex}


# =============================================================================
# FIXED-POINT SCALING
# =============================================================================

def scale_to_fixed_point(value: float, operation: Operation) -> int:
    """
    Scale a measurement in meters (or square meters) to its integer unit.

    Rounds half away from zero. Raises ValueError for operations without a
    numeric scale, and for negative or non-finite values.
    """
    if operation not in SCALE_FACTORS:
        raise ValueError(f"operation {operation.value} has no numeric scale")
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"cannot scale {value!r}: must be finite and >= 0")
    scaled = int((Decimal(repr(value)) * SCALE_FACTORS[operation]).to_integral_value(ROUND_HALF_UP))
    if scaled > UINT256_MAX:
        raise ValueError(f"scaled value {scaled} overflows uint256")
    return scaled


def from_fixed_point(value: int, operation: Operation) -> float:
    if operation not in SCALE_FACTORS:
        raise ValueError(f"operation {operation.value} has no numeric scale")
    return value / SCALE_FACTORS[operation]


# =============================================================================
# ENCODE
# =============================================================================

def encode_attestation(attestation: Attestation) -> EncodedAttestation:
    """
    ABI-encode an attestation record.

    Raises:
        TypeError: If the object is not an attestation record
        ValueError: If a field does not fit its ABI type
    """
    if not isinstance(
        attestation, (BooleanPolicyAttestation, NumericPolicyAttestation, VerifyAttestation)
    ):
        raise TypeError(f"not an attestation record: {type(attestation).__name__}")

    schema_id = attestation.schema_id
    try:
        data = encode(list(ABI_TYPES[schema_id]), list(attestation.as_abi_values()))
    except EncodingError as e:
        raise ValueError(f"cannot encode {schema_id.value} attestation: {e}") from e

    logger.debug("encoded %s attestation (%d bytes)", schema_id.value, len(data))
    return EncodedAttestation(schema_id=schema_id, data=data)


# =============================================================================
# DECODE
# =============================================================================

def _as_bytes(data: Union[bytes, bytearray, str]) -> bytes:
    if isinstance(data, str):
        text = data[2:] if data.startswith(("0x", "0X")) else data
        try:
            return bytes.fromhex(text)
        except ValueError as e:
            raise SchemaMismatch(f"invalid hex data: {e}") from e
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    raise SchemaMismatch(f"attestation data must be bytes or hex, got {type(data).__name__}")


def _build_record(schema_id: SchemaId, values: tuple) -> Attestation:
    if schema_id is SchemaId.BOOLEAN:
        result, refs, timestamp, operation = values
        return BooleanPolicyAttestation(
            result=result,
            input_refs=tuple(bytes(r) for r in refs),
            timestamp=timestamp,
            operation=operation,
        )
    if schema_id is SchemaId.NUMERIC:
        result, units, refs, timestamp, operation = values
        return NumericPolicyAttestation(
            result=result,
            units=units,
            input_refs=tuple(bytes(r) for r in refs),
            timestamp=timestamp,
            operation=operation,
        )
    claim, proof, confidence, uri = values
    return VerifyAttestation(
        claim_hash=bytes(claim),
        proof_hash=bytes(proof),
        confidence=confidence,
        credibility_uri=uri,
    )


def decode_attestation(
    schema_id: Union[SchemaId, str],
    data: Union[bytes, bytearray, str],
) -> Attestation:
    """
    Decode attestation bytes under a named schema.

    Args:
        schema_id: SchemaId or its string value ("boolean", "numeric", "verify")
        data: Raw bytes, or a hex string with or without 0x prefix

    Raises:
        SchemaMismatch: If the bytes are not the canonical encoding of a
            valid record of that schema
    """
    try:
        schema_id = SchemaId(schema_id)
    except ValueError as e:
        raise SchemaMismatch(f"unknown schema: {schema_id!r}") from e

    raw = _as_bytes(data)
    types = list(ABI_TYPES[schema_id])

    try:
        values = decode(types, raw)
        record = _build_record(schema_id, values)
    except (DecodingError, ValueError, TypeError, OverflowError) as e:
        raise SchemaMismatch(f"data does not decode as {schema_id.value}: {e}") from e

    # eth-abi tolerates trailing bytes and some non-canonical layouts
    if encode(types, list(record.as_abi_values())) != raw:
        raise SchemaMismatch(f"data is not the canonical {schema_id.value} encoding")

    return record


def decode_encoded(encoded: EncodedAttestation) -> Attestation:
    return decode_attestation(encoded.schema_id, encoded.data)
