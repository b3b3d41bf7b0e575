"""
Tests for Phase 0: Evidence Ledger & Core Domain Model.

These tests verify:
1. Value objects validate at construction and are immutable
2. Location Protocol documents parse into claims and stamps
3. Canonical hashing is deterministic
4. Rejections carry an auditable rule and reason
"""

import dataclasses

import pytest

from geostamp.domain import (
    BOOLEAN_OPERATIONS,
    CLAIM_OPERATIONS,
    ClaimValidationError,
    DuplicatePlugin,
    GeoRegion,
    GeoStampError,
    LocationClaim,
    MalformedStamp,
    Operation,
    PluginNotFound,
    Rejection,
    RejectionRule,
    StampRejected,
    VerificationFailed,
    claim_from_dict,
    claim_hash,
)
from geostamp.evidence import (
    LP_VERSION,
    GeoPoint,
    LocationStamp,
    Signature,
    StampParseError,
    StampVerificationResult,
    SubjectIdentifier,
    TimeBounds,
    canonical_json,
    stamp_from_dict,
    stamp_hash,
)


# =============================================================================
# TEST FIXTURES
# =============================================================================

T = 1_700_000_000


def make_claim_doc(**overrides) -> dict:
    """Helper to create a claim document for testing."""
    doc = {
        "lpVersion": "0.2",
        "locationType": "geojson-point",
        "location": {"type": "Point", "coordinates": [-122.4194, 37.7749]},
        "srs": "http://www.opengis.net/def/crs/OGC/1.3/CRS84",
        "subject": {"scheme": "eth-address", "value": "0xabc"},
        "radius": 5000,
        "time": {"start": T, "end": T + 3600},
        "eventType": "presence",
    }
    doc.update(overrides)
    return doc


def make_stamp_doc(**overrides) -> dict:
    """Helper to create a stamp document for testing."""
    doc = {
        "lpVersion": "0.2",
        "locationType": "geojson-point",
        "location": {"type": "Point", "coordinates": [-122.42, 37.775]},
        "srs": "http://www.opengis.net/def/crs/OGC/1.3/CRS84",
        "temporalFootprint": {"start": T, "end": T},
        "accuracyMeters": 50,
        "plugin": "proofmode",
        "pluginVersion": "0.1.0",
        "signals": {"deviceModel": "Pixel 8"},
        "signatures": [
            {
                "signer": {"scheme": "device-pubkey", "value": "0xdead"},
                "algorithm": "secp256k1",
                "value": "0x" + "11" * 65,
                "timestamp": T,
            }
        ],
    }
    doc.update(overrides)
    return doc


# =============================================================================
# VALUE OBJECT TESTS
# =============================================================================

class TestGeoPoint:
    """Test coordinate validation."""

    def test_valid_point(self):
        point = GeoPoint(lon=-122.4194, lat=37.7749)
        assert point.to_geojson() == {"type": "Point", "coordinates": [-122.4194, 37.7749]}

    def test_longitude_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            GeoPoint(lon=180.5, lat=0.0)

    def test_latitude_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            GeoPoint(lon=0.0, lat=-90.1)

    def test_nan_rejected(self):
        with pytest.raises(ValueError):
            GeoPoint(lon=float("nan"), lat=0.0)

    def test_point_is_immutable(self):
        point = GeoPoint(lon=1.0, lat=2.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            point.lon = 3.0


class TestTimeBounds:
    """Test time window validation."""

    def test_instant(self):
        window = TimeBounds(start=T, end=T)
        assert window.is_instant
        assert window.duration == 0

    def test_range(self):
        window = TimeBounds(start=T, end=T + 60)
        assert not window.is_instant
        assert window.duration == 60

    def test_reversed_window_rejected(self):
        with pytest.raises(ValueError):
            TimeBounds(start=T + 1, end=T)


# =============================================================================
# LOCATION STAMP TESTS
# =============================================================================

class TestLocationStamp:
    """Test stamp construction and parsing."""

    def test_parse_stamp_document(self):
        stamp = stamp_from_dict(make_stamp_doc())
        assert stamp.plugin == "proofmode"
        assert stamp.location == GeoPoint(lon=-122.42, lat=37.775)
        assert stamp.captured_at == T
        assert stamp.accuracy_meters == 50.0
        assert len(stamp.signatures) == 1
        assert stamp.signatures[0].signer.value == "0xdead"
        assert stamp.lp_version == LP_VERSION

    def test_missing_plugin_is_parse_error(self):
        doc = make_stamp_doc()
        del doc["plugin"]
        with pytest.raises(StampParseError):
            stamp_from_dict(doc)

    def test_missing_location_is_parse_error(self):
        doc = make_stamp_doc()
        del doc["location"]
        with pytest.raises(StampParseError):
            stamp_from_dict(doc)

    def test_out_of_range_coordinates_is_parse_error(self):
        doc = make_stamp_doc(location={"type": "Point", "coordinates": [200.0, 0.0]})
        with pytest.raises(StampParseError):
            stamp_from_dict(doc)

    def test_negative_accuracy_rejected(self):
        with pytest.raises(StampParseError):
            LocationStamp(
                plugin="proofmode",
                plugin_version="0.1.0",
                location=GeoPoint(lon=0.0, lat=0.0),
                temporal_footprint=TimeBounds(start=T, end=T),
                accuracy_meters=-1.0,
            )

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan"), 1e400])
    def test_non_finite_time_is_parse_error(self, value):
        doc = make_stamp_doc(temporalFootprint={"start": value, "end": T})
        with pytest.raises(StampParseError):
            stamp_from_dict(doc)

    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_non_finite_signature_timestamp_is_parse_error(self, value):
        doc = make_stamp_doc()
        doc["signatures"][0]["timestamp"] = value
        with pytest.raises(StampParseError):
            stamp_from_dict(doc)

    def test_non_object_is_parse_error(self):
        with pytest.raises(StampParseError):
            stamp_from_dict(["not", "a", "stamp"])

    def test_document_round_trip(self):
        doc = make_stamp_doc()
        stamp = stamp_from_dict(doc)
        assert stamp_from_dict(stamp.to_dict()) == stamp

    def test_signing_payload_excludes_signatures(self):
        stamp = stamp_from_dict(make_stamp_doc())
        assert "signatures" not in stamp.signing_payload()
        assert "proofmode" in stamp.signing_payload()


class TestStampHash:
    """Test canonical stamp hashing."""

    def test_hash_is_32_bytes(self):
        assert len(stamp_hash(stamp_from_dict(make_stamp_doc()))) == 32

    def test_hash_is_independent_of_key_order(self):
        doc = make_stamp_doc()
        reordered = dict(reversed(list(doc.items())))
        assert stamp_hash(stamp_from_dict(doc)) == stamp_hash(stamp_from_dict(reordered))

    def test_different_stamps_hash_differently(self):
        a = stamp_from_dict(make_stamp_doc())
        b = stamp_from_dict(make_stamp_doc(accuracyMeters=51))
        assert stamp_hash(a) != stamp_hash(b)

    def test_canonical_json_is_compact_and_sorted(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'


# =============================================================================
# CLAIM TESTS
# =============================================================================

class TestLocationClaim:
    """Test claim validation and parsing."""

    def test_parse_point_claim(self):
        claim = claim_from_dict(make_claim_doc())
        assert claim.location == GeoPoint(lon=-122.4194, lat=37.7749)
        assert claim.radius == 5000.0
        assert claim.operation is Operation.WITHIN
        assert claim.subject == SubjectIdentifier(scheme="eth-address", value="0xabc")
        assert claim.event_type == "presence"

    def test_parse_polygon_claim(self):
        ring = [[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0], [0.0, 0.0]]
        claim = claim_from_dict(
            make_claim_doc(location={"type": "Polygon", "coordinates": [ring]})
        )
        assert isinstance(claim.location, GeoRegion)
        assert len(claim.location.ring) == 4
        assert claim.location_type == "geojson-polygon"

    def test_degenerate_polygon_rejected(self):
        ring = [[0.0, 0.0], [1.0, 0.0], [0.0, 0.0]]
        with pytest.raises(ClaimValidationError):
            claim_from_dict(make_claim_doc(location={"type": "Polygon", "coordinates": [ring]}))

    def test_negative_radius_rejected(self):
        with pytest.raises(ClaimValidationError):
            claim_from_dict(make_claim_doc(radius=-1))

    def test_unknown_operation_rejected(self):
        with pytest.raises(ClaimValidationError):
            claim_from_dict(make_claim_doc(operation="teleport"))

    def test_area_is_not_a_claim_operation(self):
        with pytest.raises(ClaimValidationError):
            claim_from_dict(make_claim_doc(operation="area"))

    def test_distance_is_a_claim_operation(self):
        claim = claim_from_dict(make_claim_doc(operation="distance"))
        assert claim.operation is Operation.DISTANCE
        assert not claim.operation.is_boolean

    def test_missing_time_rejected(self):
        doc = make_claim_doc()
        del doc["time"]
        with pytest.raises(ClaimValidationError):
            claim_from_dict(doc)

    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_non_finite_time_rejected(self, value):
        with pytest.raises(ClaimValidationError):
            claim_from_dict(make_claim_doc(time={"start": T, "end": value}))

    def test_claim_hash_is_deterministic(self):
        assert claim_hash(claim_from_dict(make_claim_doc())) == claim_hash(
            claim_from_dict(make_claim_doc())
        )
        assert len(claim_hash(claim_from_dict(make_claim_doc()))) == 32

    def test_claim_hash_covers_operation(self):
        within = claim_from_dict(make_claim_doc())
        distance = claim_from_dict(make_claim_doc(operation="distance"))
        assert claim_hash(within) != claim_hash(distance)

    def test_claim_is_immutable(self):
        claim = LocationClaim(location=GeoPoint(0.0, 0.0), time=TimeBounds(T, T))
        with pytest.raises(dataclasses.FrozenInstanceError):
            claim.radius = 10.0


class TestOperations:
    """Test operation classification."""

    def test_boolean_operations(self):
        assert BOOLEAN_OPERATIONS == {Operation.WITHIN, Operation.CONTAINS, Operation.INTERSECTS}
        assert all(op.is_boolean for op in BOOLEAN_OPERATIONS)

    def test_claim_operations_exclude_length_and_area(self):
        assert Operation.LENGTH not in CLAIM_OPERATIONS
        assert Operation.AREA not in CLAIM_OPERATIONS


# =============================================================================
# ERRORS & REJECTIONS
# =============================================================================

class TestRejections:
    """Test the error taxonomy and rejection records."""

    def test_plugin_not_found_reason(self):
        error = PluginNotFound("unknownproto", stamp_index=3)
        assert error.reason == "plugin not found: unknownproto"
        assert error.rule is RejectionRule.PLUGIN_NOT_FOUND

    def test_rejection_from_error(self):
        error = VerificationFailed("timeout", stamp_index=2, plugin="proofmode")
        rejection = Rejection.from_error(error)
        assert rejection == Rejection(
            stamp_index=2,
            plugin="proofmode",
            rule=RejectionRule.VERIFICATION_FAILED,
            reason="timeout",
        )

    def test_rejection_falls_back_to_context(self):
        rejection = Rejection.from_error(MalformedStamp("bad"), stamp_index=5, plugin="x")
        assert rejection.stamp_index == 5
        assert rejection.plugin == "x"
        assert rejection.rule is RejectionRule.MALFORMED_STAMP

    def test_rejection_to_dict(self):
        rejection = Rejection.from_error(PluginNotFound("gps", stamp_index=0))
        assert rejection.to_dict() == {
            "stampIndex": 0,
            "plugin": "gps",
            "rule": "plugin_not_found",
            "reason": "plugin not found: gps",
        }

    def test_hierarchy(self):
        assert issubclass(StampRejected, GeoStampError)
        assert issubclass(DuplicatePlugin, GeoStampError)
        assert issubclass(PluginNotFound, StampRejected)


class TestVerificationResult:
    """Test verification result construction."""

    def test_from_checks_all_pass(self):
        result = StampVerificationResult.from_checks(True, True, True)
        assert result.valid
        assert result.reason is None

    def test_from_checks_names_failures(self):
        result = StampVerificationResult.from_checks(
            signatures_valid=False, structure_valid=True, signals_consistent=False
        )
        assert not result.valid
        assert result.reason == "invalid signatures, signals"

    def test_unparseable(self):
        result = StampVerificationResult.unparseable(KeyError("message"))
        assert not result.valid
        assert not result.structure_valid
        assert result.reason.startswith("parse error")

    def test_signature_to_dict(self):
        sig = Signature(
            signer=SubjectIdentifier("eth-address", "0x1"),
            algorithm="eip191",
            value="0xab",
            timestamp=T,
        )
        assert sig.to_dict()["signer"] == {"scheme": "eth-address", "value": "0x1"}
