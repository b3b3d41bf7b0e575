"""
Canonical attestation schemas.

Three fixed ABI tuples, registered as EAS schemas and decoded by on-chain
resolvers:

    BOOLEAN  bool result, bytes32[] inputRefs, uint256 timestamp, string operation
    NUMERIC  uint256 result, string units, bytes32[] inputRefs, uint256 timestamp, string operation
    VERIFY   bytes32 claim_hash, bytes32 proof_hash, uint8 confidence, string credibility_uri

Numeric results are fixed-point integers so consumers never compare
floating-point values: distance and length in centimeters (x100), area in
square centimeters (x10000).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from eth_utils import keccak

from ..domain import Operation


# =============================================================================
# SCHEMA IDENTIFIERS
# =============================================================================

class SchemaId(Enum):
    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    VERIFY = "verify"


SCHEMA_STRINGS: dict[SchemaId, str] = {
    SchemaId.BOOLEAN: "bool result, bytes32[] inputRefs, uint256 timestamp, string operation",
    SchemaId.NUMERIC: (
        "uint256 result, string units, bytes32[] inputRefs, uint256 timestamp, string operation"
    ),
    SchemaId.VERIFY: (
        "bytes32 claim_hash, bytes32 proof_hash, uint8 confidence, string credibility_uri"
    ),
}

ABI_TYPES: dict[SchemaId, tuple[str, ...]] = {
    SchemaId.BOOLEAN: ("bool", "bytes32[]", "uint256", "string"),
    SchemaId.NUMERIC: ("uint256", "string", "bytes32[]", "uint256", "string"),
    SchemaId.VERIFY: ("bytes32", "bytes32", "uint8", "string"),
}

ZERO_ADDRESS = "0x" + "00" * 20


def schema_uid(
    schema: Union[SchemaId, str],
    resolver: str = ZERO_ADDRESS,
    revocable: bool = True,
) -> bytes:
    """
    EAS schema UID: keccak256(abi.encodePacked(schema, resolver, revocable)).
    """
    text = SCHEMA_STRINGS[schema] if isinstance(schema, SchemaId) else schema
    resolver_hex = resolver[2:] if resolver.startswith("0x") else resolver
    resolver_bytes = bytes.fromhex(resolver_hex)
    if len(resolver_bytes) != 20:
        raise ValueError(f"resolver must be a 20-byte address, got {resolver!r}")
    return keccak(text.encode("utf-8") + resolver_bytes + (b"\x01" if revocable else b"\x00"))


# =============================================================================
# UNITS & SCALING
# =============================================================================

class Units:
    CENTIMETERS = "centimeters"
    SQUARE_CENTIMETERS = "square_centimeters"


SCALE_FACTORS: dict[Operation, int] = {
    Operation.DISTANCE: 100,
    Operation.LENGTH: 100,
    Operation.AREA: 10_000,
}

UNITS_BY_OPERATION: dict[Operation, str] = {
    Operation.DISTANCE: Units.CENTIMETERS,
    Operation.LENGTH: Units.CENTIMETERS,
    Operation.AREA: Units.SQUARE_CENTIMETERS,
}


# =============================================================================
# ATTESTATION RECORDS
# =============================================================================

UINT256_MAX = 2**256 - 1
UINT8_MAX = 2**8 - 1
MAX_CONFIDENCE = 100


def _check_uint(name: str, value: int, maximum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")
    if not (0 <= value <= maximum):
        raise ValueError(f"{name} out of range: {value}")


def _check_bytes32(name: str, value: bytes) -> None:
    if not isinstance(value, bytes) or len(value) != 32:
        raise ValueError(f"{name} must be exactly 32 bytes")


def _check_refs(refs: tuple[bytes, ...]) -> None:
    if not isinstance(refs, tuple):
        raise TypeError("input_refs must be a tuple")
    for i, ref in enumerate(refs):
        _check_bytes32(f"input_refs[{i}]", ref)


@dataclass(frozen=True)
class BooleanPolicyAttestation:
    result: bool
    input_refs: tuple[bytes, ...]
    timestamp: int
    operation: str

    schema_id = SchemaId.BOOLEAN

    def __post_init__(self):
        if not isinstance(self.result, bool):
            raise TypeError("result must be bool")
        _check_refs(self.input_refs)
        _check_uint("timestamp", self.timestamp, UINT256_MAX)

    def as_abi_values(self) -> tuple:
        return (self.result, list(self.input_refs), self.timestamp, self.operation)


@dataclass(frozen=True)
class NumericPolicyAttestation:
    """``result`` is already scaled to ``units`` (see SCALE_FACTORS)."""
    result: int
    units: str
    input_refs: tuple[bytes, ...]
    timestamp: int
    operation: str

    schema_id = SchemaId.NUMERIC

    def __post_init__(self):
        _check_uint("result", self.result, UINT256_MAX)
        _check_refs(self.input_refs)
        _check_uint("timestamp", self.timestamp, UINT256_MAX)

    def as_abi_values(self) -> tuple:
        return (self.result, self.units, list(self.input_refs), self.timestamp, self.operation)


@dataclass(frozen=True)
class VerifyAttestation:
    """``confidence`` is the overall credibility score in percent (0-100)."""
    claim_hash: bytes
    proof_hash: bytes
    confidence: int
    credibility_uri: str

    schema_id = SchemaId.VERIFY

    def __post_init__(self):
        _check_bytes32("claim_hash", self.claim_hash)
        _check_bytes32("proof_hash", self.proof_hash)
        _check_uint("confidence", self.confidence, MAX_CONFIDENCE)

    def as_abi_values(self) -> tuple:
        return (self.claim_hash, self.proof_hash, self.confidence, self.credibility_uri)


Attestation = Union[BooleanPolicyAttestation, NumericPolicyAttestation, VerifyAttestation]

ATTESTATION_TYPES: dict[SchemaId, type] = {
    SchemaId.BOOLEAN: BooleanPolicyAttestation,
    SchemaId.NUMERIC: NumericPolicyAttestation,
    SchemaId.VERIFY: VerifyAttestation,
}
