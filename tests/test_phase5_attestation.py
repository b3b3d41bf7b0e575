"""
Tests for Phase 5: Attestation Schemas & ABI Codec.

These tests verify:
1. decode(encode(x)) == x for all three schemas
2. Strict decoding: truncation, trailing bytes and wrong schemas fail
3. Fixed-point scaling with half-up rounding
4. Builders map assessments onto the right schema
5. Unverifiable assessments never become policy records
"""

import pytest
from eth_abi import encode

from geostamp.attestation import (
    SCALE_FACTORS,
    SCHEMA_STRINGS,
    BooleanPolicyAttestation,
    EncodedAttestation,
    NumericPolicyAttestation,
    SchemaId,
    Units,
    VerifyAttestation,
    build_attestation,
    build_boolean_attestation,
    build_numeric_attestation,
    build_verify_attestation,
    decode_attestation,
    encode_attestation,
    from_fixed_point,
    scale_to_fixed_point,
    schema_uid,
)
from geostamp.attestation.builder import input_refs, proof_hash
from geostamp.credibility.scorer import aggregate
from geostamp.domain import (
    LocationClaim,
    Operation,
    SchemaMismatch,
    UnverifiableAttestation,
    claim_hash,
)
from geostamp.engine import Assessment
from geostamp.evidence import (
    GeoPoint,
    LocationStamp,
    StampEvaluation,
    StampResult,
    StampVerificationResult,
    TimeBounds,
    stamp_hash,
)


# =============================================================================
# TEST FIXTURES
# =============================================================================

T = 1_700_000_000

REF_A = bytes.fromhex("aa" * 32)
REF_B = bytes.fromhex("bb" * 32)


def make_boolean(result: bool = True, refs=(REF_A, REF_B)) -> BooleanPolicyAttestation:
    """Helper to create a boolean record for testing."""
    return BooleanPolicyAttestation(result=result, input_refs=refs, timestamp=T, operation="within")


def make_numeric(result: int = 5390) -> NumericPolicyAttestation:
    """Helper to create a numeric record for testing."""
    return NumericPolicyAttestation(
        result=result,
        units=Units.CENTIMETERS,
        input_refs=(REF_A,),
        timestamp=T,
        operation="distance",
    )


def make_verify(confidence: int = 90) -> VerifyAttestation:
    """Helper to create a verify record for testing."""
    return VerifyAttestation(
        claim_hash=REF_A,
        proof_hash=REF_B,
        confidence=confidence,
        credibility_uri="ipfs://bafy-credibility",
    )


def make_stamp_result(index: int, plugin: str, distance: float, lon: float = -122.42) -> StampResult:
    """Helper to create a verified, evaluated stamp."""
    stamp = LocationStamp(
        plugin=plugin,
        plugin_version="1.0.0",
        location=GeoPoint(lon=lon, lat=37.775),
        temporal_footprint=TimeBounds(start=T, end=T),
        accuracy_meters=50.0,
    )
    return StampResult(
        stamp_index=index,
        plugin=plugin,
        stamp=stamp,
        verification=StampVerificationResult(valid=True),
        evaluation=StampEvaluation(distance_meters=distance, temporal_overlap=1.0, within_radius=True),
    )


def make_assessment(
    results=None,
    operation: Operation = Operation.WITHIN,
    submitted: int = None,
) -> Assessment:
    """Helper to create an Assessment from stamp results."""
    if results is None:
        results = [make_stamp_result(0, "gps", 50.0), make_stamp_result(1, "wifi", 70.0, lon=-122.4201)]
    claim = LocationClaim(
        location=GeoPoint(lon=-122.4194, lat=37.7749),
        time=TimeBounds(start=T, end=T),
        radius=5000.0,
        operation=operation,
    )
    vector = aggregate(
        claim,
        [(r.plugin, r.evaluation) for r in results],
        submitted_count=len(results) if submitted is None else submitted,
        evaluated_at=T,
    )
    return Assessment(claim=claim, credibility=vector, stamp_results=list(results))


# =============================================================================
# SCHEMA TESTS
# =============================================================================

class TestSchemas:
    """Test schema definitions and record validation."""

    def test_schema_strings(self):
        assert SCHEMA_STRINGS[SchemaId.BOOLEAN] == (
            "bool result, bytes32[] inputRefs, uint256 timestamp, string operation"
        )
        assert SCHEMA_STRINGS[SchemaId.VERIFY] == (
            "bytes32 claim_hash, bytes32 proof_hash, uint8 confidence, string credibility_uri"
        )

    def test_scale_factors(self):
        assert SCALE_FACTORS[Operation.DISTANCE] == 100
        assert SCALE_FACTORS[Operation.LENGTH] == 100
        assert SCALE_FACTORS[Operation.AREA] == 10_000

    def test_input_ref_must_be_32_bytes(self):
        with pytest.raises(ValueError):
            make_boolean(refs=(b"\x01" * 31,))

    def test_result_must_be_bool(self):
        with pytest.raises(TypeError):
            BooleanPolicyAttestation(result=1, input_refs=(), timestamp=T, operation="within")

    def test_numeric_result_must_be_non_negative_int(self):
        with pytest.raises(ValueError):
            make_numeric(result=-1)
        with pytest.raises(TypeError):
            make_numeric(result=53.9)

    def test_confidence_bounds(self):
        make_verify(confidence=0)
        make_verify(confidence=100)
        with pytest.raises(ValueError):
            make_verify(confidence=101)

    def test_schema_uid(self):
        uid = schema_uid(SchemaId.BOOLEAN)
        assert len(uid) == 32
        assert uid == schema_uid(SCHEMA_STRINGS[SchemaId.BOOLEAN])
        assert uid != schema_uid(SchemaId.BOOLEAN, revocable=False)
        assert uid != schema_uid(SchemaId.NUMERIC)

    def test_schema_uid_rejects_bad_resolver(self):
        with pytest.raises(ValueError):
            schema_uid(SchemaId.BOOLEAN, resolver="0x1234")


# =============================================================================
# ROUND-TRIP TESTS
# =============================================================================

class TestRoundTrip:
    """decode(encode(x)) == x."""

    def test_boolean(self):
        record = make_boolean()
        encoded = encode_attestation(record)
        assert encoded.schema_id is SchemaId.BOOLEAN
        assert decode_attestation(SchemaId.BOOLEAN, encoded.data) == record

    def test_boolean_with_no_refs(self):
        record = make_boolean(result=False, refs=())
        assert decode_attestation("boolean", encode_attestation(record).data) == record

    def test_numeric(self):
        record = make_numeric()
        assert decode_attestation(SchemaId.NUMERIC, encode_attestation(record).data) == record

    def test_verify(self):
        record = make_verify()
        assert decode_attestation(SchemaId.VERIFY, encode_attestation(record).data) == record

    def test_hex_input(self):
        encoded = encode_attestation(make_verify())
        assert encoded.hex.startswith("0x")
        assert decode_attestation("verify", encoded.hex) == make_verify()
        assert decode_attestation("verify", encoded.hex[2:]) == make_verify()

    def test_matches_standard_abi_layout(self):
        record = make_boolean()
        expected = encode(
            ["bool", "bytes32[]", "uint256", "string"],
            [True, [REF_A, REF_B], T, "within"],
        )
        assert encode_attestation(record).data == expected

    def test_encoded_to_dict(self):
        encoded = encode_attestation(make_numeric())
        assert encoded.to_dict() == {"schema": "numeric", "data": encoded.hex}
        assert isinstance(encoded, EncodedAttestation)

    def test_encode_rejects_non_record(self):
        with pytest.raises(TypeError):
            encode_attestation({"result": True})


# =============================================================================
# STRICT DECODING TESTS
# =============================================================================

class TestStrictDecoding:
    """Malformed bytes raise SchemaMismatch, never zero-fill."""

    def test_truncated_uint256(self):
        data = encode_attestation(make_boolean()).data
        # Head words: bool, refs offset, timestamp, operation offset
        with pytest.raises(SchemaMismatch):
            decode_attestation(SchemaId.BOOLEAN, data[:80])

    def test_truncated_tail(self):
        data = encode_attestation(make_numeric()).data
        with pytest.raises(SchemaMismatch):
            decode_attestation(SchemaId.NUMERIC, data[:-1])

    def test_trailing_bytes(self):
        data = encode_attestation(make_boolean()).data
        with pytest.raises(SchemaMismatch):
            decode_attestation(SchemaId.BOOLEAN, data + b"\x00" * 32)

    def test_empty_data(self):
        with pytest.raises(SchemaMismatch):
            decode_attestation(SchemaId.VERIFY, b"")

    def test_wrong_schema(self):
        data = encode_attestation(make_verify()).data
        with pytest.raises(SchemaMismatch):
            decode_attestation(SchemaId.BOOLEAN, data)

    def test_invalid_bool_word(self):
        data = bytearray(encode_attestation(make_boolean()).data)
        data[31] = 2
        with pytest.raises(SchemaMismatch):
            decode_attestation(SchemaId.BOOLEAN, bytes(data))

    def test_confidence_over_100(self):
        data = encode(
            ["bytes32", "bytes32", "uint8", "string"],
            [REF_A, REF_B, 200, ""],
        )
        with pytest.raises(SchemaMismatch):
            decode_attestation(SchemaId.VERIFY, data)

    def test_invalid_hex(self):
        with pytest.raises(SchemaMismatch):
            decode_attestation(SchemaId.VERIFY, "0xnothex")

    def test_unknown_schema(self):
        with pytest.raises(SchemaMismatch):
            decode_attestation("polygon", b"")


# =============================================================================
# FIXED-POINT TESTS
# =============================================================================

class TestFixedPoint:
    """Test fixed-point scaling."""

    def test_distance_to_centimeters(self):
        assert scale_to_fixed_point(53.9, Operation.DISTANCE) == 5390

    def test_half_up_rounding(self):
        assert scale_to_fixed_point(0.125, Operation.DISTANCE) == 13
        assert scale_to_fixed_point(0.005, Operation.LENGTH) == 1

    def test_area_to_square_centimeters(self):
        assert scale_to_fixed_point(1.23456, Operation.AREA) == 12346

    def test_zero(self):
        assert scale_to_fixed_point(0.0, Operation.DISTANCE) == 0

    @pytest.mark.parametrize("value", [-1.0, float("nan"), float("inf")])
    def test_invalid_values(self, value):
        with pytest.raises(ValueError):
            scale_to_fixed_point(value, Operation.DISTANCE)

    def test_boolean_operation_has_no_scale(self):
        with pytest.raises(ValueError):
            scale_to_fixed_point(1.0, Operation.WITHIN)

    def test_from_fixed_point(self):
        assert from_fixed_point(5390, Operation.DISTANCE) == pytest.approx(53.9)
        assert from_fixed_point(12346, Operation.AREA) == pytest.approx(1.2346)


# =============================================================================
# BUILDER TESTS
# =============================================================================

class TestBuilders:
    """Test mapping assessments onto schemas."""

    def test_input_refs_are_claim_then_sorted_stamps(self):
        assessment = make_assessment()
        refs = input_refs(assessment)
        assert refs[0] == claim_hash(assessment.claim)
        stamp_hashes = [stamp_hash(r.stamp) for r in assessment.stamp_results]
        assert list(refs[1:]) == sorted(stamp_hashes)

    def test_input_refs_independent_of_result_order(self):
        assessment = make_assessment()
        reversed_assessment = Assessment(
            claim=assessment.claim,
            credibility=assessment.credibility,
            stamp_results=list(reversed(assessment.stamp_results)),
        )
        assert input_refs(assessment) == input_refs(reversed_assessment)
        assert proof_hash(assessment) == proof_hash(reversed_assessment)

    def test_boolean_true(self):
        record = build_boolean_attestation(make_assessment())
        assert record.result is True
        assert record.timestamp == T
        assert record.operation == "within"
        assert len(record.input_refs) == 3

    def test_boolean_timestamp_override(self):
        record = build_boolean_attestation(make_assessment(), timestamp=T + 5)
        assert record.timestamp == T + 5

    def test_unverifiable_cannot_be_policy_record(self):
        assessment = make_assessment(results=[], submitted=1)
        with pytest.raises(UnverifiableAttestation):
            build_boolean_attestation(assessment)
        with pytest.raises(UnverifiableAttestation):
            build_attestation(assessment)

    def test_unverifiable_verify_record_has_zero_confidence(self):
        record = build_verify_attestation(make_assessment(results=[], submitted=1))
        assert record.confidence == 0

    def test_numeric_distance(self):
        assessment = make_assessment(operation=Operation.DISTANCE)
        record = build_numeric_attestation(assessment)
        assert record.result == 6000
        assert record.units == "centimeters"
        assert record.operation == "distance"

    def test_numeric_rejects_boolean_claim(self):
        with pytest.raises(ValueError):
            build_numeric_attestation(make_assessment())

    def test_boolean_rejects_numeric_claim(self):
        with pytest.raises(ValueError):
            build_boolean_attestation(make_assessment(operation=Operation.DISTANCE))

    def test_verify_confidence_is_percent(self):
        assessment = make_assessment()
        record = build_verify_attestation(assessment, credibility_uri="ipfs://x")
        assert record.confidence == round(assessment.credibility.overall_score * 100)
        assert record.claim_hash == claim_hash(assessment.claim)
        assert record.credibility_uri == "ipfs://x"

    def test_dispatch_by_operation(self):
        assert isinstance(build_attestation(make_assessment()), BooleanPolicyAttestation)
        assert isinstance(
            build_attestation(make_assessment(operation=Operation.DISTANCE)),
            NumericPolicyAttestation,
        )
        assert isinstance(
            build_attestation(make_assessment(), schema=SchemaId.VERIFY),
            VerifyAttestation,
        )

    def test_built_records_round_trip(self):
        for schema in SchemaId:
            operation = Operation.DISTANCE if schema is SchemaId.NUMERIC else Operation.WITHIN
            record = build_attestation(make_assessment(operation=operation), schema=schema)
            encoded = encode_attestation(record)
            assert decode_attestation(schema, encoded.data) == record
