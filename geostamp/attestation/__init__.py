# Attestation package for GeoStamp
"""
EAS-style attestation schemas and their ABI codec.
"""

from .builder import (
    build_attestation,
    build_boolean_attestation,
    build_numeric_attestation,
    build_verify_attestation,
)
from .codec import (
    EncodedAttestation,
    decode_attestation,
    encode_attestation,
    from_fixed_point,
    scale_to_fixed_point,
)
from .schemas import (
    SCALE_FACTORS,
    SCHEMA_STRINGS,
    BooleanPolicyAttestation,
    NumericPolicyAttestation,
    SchemaId,
    Units,
    VerifyAttestation,
    schema_uid,
)

__all__ = [
    "SCALE_FACTORS",
    "SCHEMA_STRINGS",
    "BooleanPolicyAttestation",
    "EncodedAttestation",
    "NumericPolicyAttestation",
    "SchemaId",
    "Units",
    "VerifyAttestation",
    "build_attestation",
    "build_boolean_attestation",
    "build_numeric_attestation",
    "build_verify_attestation",
    "decode_attestation",
    "encode_attestation",
    "from_fixed_point",
    "scale_to_fixed_point",
    "schema_uid",
]
