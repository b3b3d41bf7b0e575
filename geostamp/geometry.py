"""
Geospatial and temporal primitives.

Every plugin evaluation is built from these measurements:
    - Haversine great-circle distance (WGS-84, mean Earth radius)
    - Distance from a point to a claim region
    - Temporal overlap fraction of two time windows

All functions are pure. Floating point is used throughout; conversion to
fixed-point integers happens only when an attestation is encoded.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from .domain import ClaimGeometry, GeoRegion, LocationClaim
from .evidence import GeoPoint, LocationStamp, StampEvaluation, TimeBounds


# Mean Earth radius in meters
EARTH_RADIUS_M = 6_371_000.0


# =============================================================================
# DISTANCE
# =============================================================================

def haversine_distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in meters."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.lon - a.lon)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push h a hair above 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def point_in_region(point: GeoPoint, region: GeoRegion) -> bool:
    """
    Ray-casting point-in-polygon test on (lon, lat) as planar coordinates.

    Adequate for regions that do not cross the antimeridian.
    """
    inside = False
    ring = region.ring
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i].lon, ring[i].lat
        xj, yj = ring[j].lon, ring[j].lat
        if (yi > point.lat) != (yj > point.lat):
            x_cross = (xj - xi) * (point.lat - yi) / (yj - yi) + xi
            if point.lon < x_cross:
                inside = not inside
        j = i
    return inside


def _nearest_on_segment(point: GeoPoint, a: GeoPoint, b: GeoPoint) -> GeoPoint:
    """Planar projection of point onto segment ab (equirectangular)."""
    scale = math.cos(math.radians(point.lat))
    ax, ay = a.lon * scale, a.lat
    bx, by = b.lon * scale, b.lat
    px, py = point.lon * scale, point.lat
    dx, dy = bx - ax, by - ay
    seg_len_sq = dx * dx + dy * dy
    if seg_len_sq == 0:
        return a
    t = ((px - ax) * dx + (py - ay) * dy) / seg_len_sq
    t = min(1.0, max(0.0, t))
    lon = a.lon + t * (b.lon - a.lon)
    lat = a.lat + t * (b.lat - a.lat)
    return GeoPoint(lon=lon, lat=lat)


def distance_to_region(point: GeoPoint, region: GeoRegion) -> float:
    """0 if the point lies inside the region, else meters to its boundary."""
    if point_in_region(point, region):
        return 0.0
    ring = region.ring
    best = math.inf
    for i in range(len(ring)):
        a = ring[i]
        b = ring[(i + 1) % len(ring)]
        nearest = _nearest_on_segment(point, a, b)
        best = min(best, haversine_distance(point, nearest))
    return best


def distance_to_claim(point: GeoPoint, location: ClaimGeometry) -> float:
    """Distance from a point to a claim's geometry in meters."""
    if isinstance(location, GeoRegion):
        return distance_to_region(point, location)
    return haversine_distance(location, point)


# =============================================================================
# TIME
# =============================================================================

def _contains_instant(window: TimeBounds, instant: int) -> bool:
    return window.start <= instant <= window.end


def temporal_overlap(stamp_window: TimeBounds, claim_window: TimeBounds) -> float:
    """
    Fraction in [0, 1] of two time windows that overlap.

    Rules:
    - Both instants: 1.0 if they coincide, else 0.0
    - One instant: 1.0 if it falls inside the other window, else 0.0
    - Both ranges: intersection length / union length
    """
    if stamp_window.is_instant and claim_window.is_instant:
        return 1.0 if stamp_window.start == claim_window.start else 0.0

    if stamp_window.is_instant:
        return 1.0 if _contains_instant(claim_window, stamp_window.start) else 0.0

    if claim_window.is_instant:
        return 1.0 if _contains_instant(stamp_window, claim_window.start) else 0.0

    intersection = max(
        0,
        min(stamp_window.end, claim_window.end) - max(stamp_window.start, claim_window.start),
    )
    union = max(stamp_window.end, claim_window.end) - min(stamp_window.start, claim_window.start)
    if union <= 0:
        return 0.0
    return min(1.0, max(0.0, intersection / union))


# =============================================================================
# DEFAULT STAMP MEASUREMENT
# =============================================================================

def measure_point_stamp(
    stamp: LocationStamp,
    claim: LocationClaim,
    accuracy_meters: Optional[float] = None,
    details: Optional[dict[str, Any]] = None,
) -> StampEvaluation:
    """
    Default measurement of a point stamp against a claim.

    Plugins call this from ``evaluate`` unless they own different distance
    semantics. ``accuracy_meters`` overrides the stamp's own accuracy radius.
    """
    details = dict(details or {})
    accuracy = stamp.accuracy_meters if accuracy_meters is None else accuracy_meters

    distance = distance_to_claim(stamp.location, claim.location)
    overlap = temporal_overlap(stamp.temporal_footprint, claim.time)
    effective_radius = claim.radius + accuracy
    within = distance <= effective_radius

    details.setdefault("distanceMeters", round(distance, 2))
    details.setdefault("effectiveRadiusMeters", effective_radius)
    details.setdefault("claimRadius", claim.radius)
    details.setdefault("temporalOverlap", overlap)

    return StampEvaluation(
        distance_meters=distance,
        temporal_overlap=overlap,
        within_radius=within,
        details=details,
    )
