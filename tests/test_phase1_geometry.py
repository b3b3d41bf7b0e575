"""
Tests for Phase 1: Geospatial & Temporal Primitives.

These tests verify:
1. Haversine distance against known values
2. Temporal overlap rules for instants and ranges
3. Point-to-region distance
4. The default stamp measurement
"""

import math
import random

import pytest

from geostamp.domain import GeoRegion, LocationClaim
from geostamp.evidence import GeoPoint, LocationStamp, TimeBounds
from geostamp.geometry import (
    EARTH_RADIUS_M,
    distance_to_claim,
    distance_to_region,
    haversine_distance,
    measure_point_stamp,
    point_in_region,
    temporal_overlap,
)


# =============================================================================
# TEST FIXTURES
# =============================================================================

T = 1_700_000_000

SF_CLAIM_POINT = GeoPoint(lon=-122.4194, lat=37.7749)
SF_STAMP_POINT = GeoPoint(lon=-122.42, lat=37.775)


def make_stamp(
    lon: float = -122.42,
    lat: float = 37.775,
    start: int = T,
    end: int = T,
    accuracy: float = 50.0,
) -> LocationStamp:
    """Helper to create a LocationStamp for testing."""
    return LocationStamp(
        plugin="gps",
        plugin_version="1.0.0",
        location=GeoPoint(lon=lon, lat=lat),
        temporal_footprint=TimeBounds(start=start, end=end),
        accuracy_meters=accuracy,
    )


def make_square(lon0: float = 0.0, lat0: float = 0.0, size: float = 1.0) -> GeoRegion:
    """Helper to create a square region for testing."""
    return GeoRegion(ring=(
        GeoPoint(lon0, lat0),
        GeoPoint(lon0 + size, lat0),
        GeoPoint(lon0 + size, lat0 + size),
        GeoPoint(lon0, lat0 + size),
    ))


# =============================================================================
# DISTANCE TESTS
# =============================================================================

class TestHaversine:
    """Test great-circle distance."""

    def test_same_point_is_zero(self):
        assert haversine_distance(SF_CLAIM_POINT, SF_CLAIM_POINT) == 0.0

    def test_san_francisco_pair(self):
        """The two downtown SF points are about 54 m apart."""
        distance = haversine_distance(SF_CLAIM_POINT, SF_STAMP_POINT)
        assert distance == pytest.approx(53.9, abs=2.0)

    def test_symmetric(self):
        a = GeoPoint(lon=2.3522, lat=48.8566)
        b = GeoPoint(lon=-0.1276, lat=51.5072)
        assert haversine_distance(a, b) == pytest.approx(haversine_distance(b, a))

    def test_paris_london(self):
        a = GeoPoint(lon=2.3522, lat=48.8566)
        b = GeoPoint(lon=-0.1276, lat=51.5072)
        assert haversine_distance(a, b) == pytest.approx(343_500, rel=0.01)

    def test_one_degree_of_latitude(self):
        distance = haversine_distance(GeoPoint(0.0, 0.0), GeoPoint(0.0, 1.0))
        assert distance == pytest.approx(EARTH_RADIUS_M * math.pi / 180)

    def test_antipodal_points_are_finite(self):
        distance = haversine_distance(GeoPoint(0.0, 0.0), GeoPoint(180.0, 0.0))
        assert distance == pytest.approx(math.pi * EARTH_RADIUS_M)

    def test_random_points_are_finite_and_non_negative(self):
        rng = random.Random(7)
        for _ in range(500):
            a = GeoPoint(rng.uniform(-180, 180), rng.uniform(-90, 90))
            b = GeoPoint(rng.uniform(-180, 180), rng.uniform(-90, 90))
            d = haversine_distance(a, b)
            assert math.isfinite(d)
            assert 0.0 <= d <= math.pi * EARTH_RADIUS_M + 1e-6


class TestRegionDistance:
    """Test point-to-region distance."""

    def test_point_inside_region(self):
        region = make_square()
        assert point_in_region(GeoPoint(0.5, 0.5), region)
        assert distance_to_region(GeoPoint(0.5, 0.5), region) == 0.0

    def test_point_outside_region(self):
        region = make_square()
        point = GeoPoint(0.5, 2.0)
        assert not point_in_region(point, region)
        expected = haversine_distance(point, GeoPoint(0.5, 1.0))
        assert distance_to_region(point, region) == pytest.approx(expected, rel=1e-3)

    def test_nearest_vertex(self):
        region = make_square()
        point = GeoPoint(2.0, 2.0)
        expected = haversine_distance(point, GeoPoint(1.0, 1.0))
        assert distance_to_region(point, region) == pytest.approx(expected, rel=1e-3)

    def test_distance_to_claim_dispatches(self):
        assert distance_to_claim(GeoPoint(0.5, 0.5), make_square()) == 0.0
        assert distance_to_claim(SF_STAMP_POINT, SF_CLAIM_POINT) == pytest.approx(
            haversine_distance(SF_CLAIM_POINT, SF_STAMP_POINT)
        )


# =============================================================================
# TEMPORAL OVERLAP TESTS
# =============================================================================

class TestTemporalOverlap:
    """Test temporal overlap rules."""

    def test_equal_instants(self):
        assert temporal_overlap(TimeBounds(T, T), TimeBounds(T, T)) == 1.0

    def test_different_instants(self):
        assert temporal_overlap(TimeBounds(T, T), TimeBounds(T + 1, T + 1)) == 0.0

    def test_instant_inside_window(self):
        assert temporal_overlap(TimeBounds(T + 10, T + 10), TimeBounds(T, T + 60)) == 1.0

    def test_instant_on_window_edge(self):
        assert temporal_overlap(TimeBounds(T + 60, T + 60), TimeBounds(T, T + 60)) == 1.0

    def test_instant_outside_window(self):
        assert temporal_overlap(TimeBounds(T + 61, T + 61), TimeBounds(T, T + 60)) == 0.0

    def test_window_containing_instant_claim(self):
        assert temporal_overlap(TimeBounds(T, T + 60), TimeBounds(T + 30, T + 30)) == 1.0

    def test_identical_ranges(self):
        assert temporal_overlap(TimeBounds(T, T + 60), TimeBounds(T, T + 60)) == 1.0

    def test_half_overlap(self):
        # Intersection 30s, union 90s
        overlap = temporal_overlap(TimeBounds(T, T + 60), TimeBounds(T + 30, T + 90))
        assert overlap == pytest.approx(1 / 3)

    def test_disjoint_ranges(self):
        assert temporal_overlap(TimeBounds(T, T + 10), TimeBounds(T + 20, T + 30)) == 0.0

    def test_always_in_unit_interval(self):
        rng = random.Random(11)
        for _ in range(500):
            a = sorted(rng.randint(0, 1000) for _ in range(2))
            b = sorted(rng.randint(0, 1000) for _ in range(2))
            overlap = temporal_overlap(TimeBounds(*a), TimeBounds(*b))
            assert 0.0 <= overlap <= 1.0


# =============================================================================
# DEFAULT MEASUREMENT TESTS
# =============================================================================

class TestMeasurePointStamp:
    """Test the shared stamp measurement."""

    def test_san_francisco_scenario(self):
        claim = LocationClaim(location=SF_CLAIM_POINT, time=TimeBounds(T, T), radius=5000)
        evaluation = measure_point_stamp(make_stamp(), claim)

        assert evaluation.distance_meters == pytest.approx(53.9, abs=2.0)
        assert evaluation.within_radius is True
        assert evaluation.temporal_overlap == 1.0
        assert evaluation.details["effectiveRadiusMeters"] == 5050.0

    def test_accuracy_extends_radius(self):
        claim = LocationClaim(location=SF_CLAIM_POINT, time=TimeBounds(T, T), radius=10)
        assert measure_point_stamp(make_stamp(accuracy=50.0), claim).within_radius
        assert not measure_point_stamp(make_stamp(accuracy=0.0), claim).within_radius

    def test_accuracy_override(self):
        claim = LocationClaim(location=SF_CLAIM_POINT, time=TimeBounds(T, T), radius=0)
        evaluation = measure_point_stamp(make_stamp(accuracy=0.0), claim, accuracy_meters=100.0)
        assert evaluation.within_radius

    def test_extra_details_are_kept(self):
        claim = LocationClaim(location=SF_CLAIM_POINT, time=TimeBounds(T, T), radius=5000)
        evaluation = measure_point_stamp(make_stamp(), claim, details={"deviceModel": "Pixel"})
        assert evaluation.details["deviceModel"] == "Pixel"
        assert "distanceMeters" in evaluation.details
