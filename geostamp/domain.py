"""
Core Domain Objects for the GeoStamp verification engine.

All domain objects are built on the Evidence Ledger foundation.

Domain Objects:
    LocationClaim   — The geospatial/temporal predicate being checked
    Operation       — What the claim asks (boolean or numeric)
    Rejection       — An explicit, auditable drop of one stamp

Error taxonomy:
    DuplicatePlugin         — Registration conflict (fatal to startup)
    PluginNotFound          — Stamp names an unknown plugin (per stamp)
    VerificationFailed      — Stamp failed its plugin's checks (per stamp)
    EvaluationError         — Evaluation failed or timed out (per stamp)
    MalformedStamp          — Stamp document could not be parsed (per stamp)
    SchemaMismatch          — Attestation bytes do not match a schema
    UnverifiableAttestation — Unverifiable outcome cannot be a policy record
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from eth_utils import keccak

from .evidence import (
    DEFAULT_SRS,
    LP_VERSION,
    GeoPoint,
    StampParseError,
    SubjectIdentifier,
    TimeBounds,
    canonical_json,
    parse_point,
    parse_time_bounds,
)


# =============================================================================
# ERRORS
# =============================================================================

class GeoStampError(Exception):
    """Base class for all engine errors."""
    pass


class ClaimValidationError(GeoStampError):
    """Raised when a claim fails validation checks."""
    pass


class DuplicatePlugin(GeoStampError):
    """Raised when a plugin name is registered twice."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"plugin already registered: {name}")


class RejectionRule(Enum):
    """
    Reasons a stamp is dropped from an assessment.

    Every rule is per-stamp and recoverable: the stamp is dropped and
    recorded, the assessment continues.
    """
    PLUGIN_NOT_FOUND = "plugin_not_found"
    VERIFICATION_FAILED = "verification_failed"
    EVALUATION_ERROR = "evaluation_error"
    MALFORMED_STAMP = "malformed_stamp"


class StampRejected(GeoStampError):
    """Raised when a single stamp must be dropped from processing."""

    rule: RejectionRule = RejectionRule.VERIFICATION_FAILED

    def __init__(
        self,
        reason: str,
        stamp_index: Optional[int] = None,
        plugin: Optional[str] = None,
    ):
        self.reason = reason
        self.stamp_index = stamp_index
        self.plugin = plugin
        super().__init__(f"[{self.rule.value}] {reason}")


class PluginNotFound(StampRejected):
    rule = RejectionRule.PLUGIN_NOT_FOUND

    def __init__(self, name: str, stamp_index: Optional[int] = None):
        self.name = name
        super().__init__(f"plugin not found: {name}", stamp_index, name)


class VerificationFailed(StampRejected):
    rule = RejectionRule.VERIFICATION_FAILED


class EvaluationError(StampRejected):
    rule = RejectionRule.EVALUATION_ERROR


class MalformedStamp(StampRejected):
    rule = RejectionRule.MALFORMED_STAMP


class SchemaMismatch(GeoStampError):
    """Raised when attestation bytes do not decode to the requested schema."""
    pass


class UnverifiableAttestation(GeoStampError):
    """Raised when an unverifiable outcome is encoded into a policy schema."""
    pass


# =============================================================================
# REJECTION RECORD
# =============================================================================

@dataclass(frozen=True)
class Rejection:
    """
    An explicit rejection with auditable reason.

    Rejected stamps never contribute to aggregation. They are kept on the
    assessment so callers can see exactly what was dropped and why.
    """
    stamp_index: int
    plugin: str
    rule: RejectionRule
    reason: str

    @classmethod
    def from_error(
        cls,
        error: StampRejected,
        stamp_index: Optional[int] = None,
        plugin: Optional[str] = None,
    ) -> Rejection:
        """Create a Rejection from a StampRejected error."""
        index = error.stamp_index if error.stamp_index is not None else stamp_index
        return cls(
            stamp_index=index if index is not None else -1,
            plugin=error.plugin or plugin or "unknown",
            rule=error.rule,
            reason=error.reason,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "stampIndex": self.stamp_index,
            "plugin": self.plugin,
            "rule": self.rule.value,
            "reason": self.reason,
        }


# =============================================================================
# OPERATIONS
# =============================================================================

class Operation(Enum):
    """
    Claim operations.

    Boolean operations resolve to true/false through the policy threshold
    and are attested with the boolean schema. Numeric operations resolve to
    a measurement and are attested with the numeric schema.
    """
    WITHIN = "within"
    CONTAINS = "contains"
    INTERSECTS = "intersects"
    DISTANCE = "distance"
    LENGTH = "length"
    AREA = "area"

    @property
    def is_boolean(self) -> bool:
        return self in BOOLEAN_OPERATIONS


BOOLEAN_OPERATIONS = frozenset({Operation.WITHIN, Operation.CONTAINS, Operation.INTERSECTS})
NUMERIC_OPERATIONS = frozenset({Operation.DISTANCE, Operation.LENGTH, Operation.AREA})

# Operations a claim can request; length and area are attested from
# geometry computed elsewhere, not from location stamps
CLAIM_OPERATIONS = BOOLEAN_OPERATIONS | {Operation.DISTANCE}


# =============================================================================
# CLAIM GEOMETRY
# =============================================================================

@dataclass(frozen=True)
class GeoRegion:
    """
    A polygon given by its exterior ring (closing vertex optional).
    """
    ring: tuple[GeoPoint, ...]

    def __post_init__(self):
        if len(set(self.ring)) < 3:
            raise ClaimValidationError("region needs at least 3 distinct vertices")

    def to_geojson(self) -> dict[str, Any]:
        coords = [[p.lon, p.lat] for p in self.ring]
        if coords[0] != coords[-1]:
            coords.append(coords[0])
        return {"type": "Polygon", "coordinates": [coords]}


ClaimGeometry = Union[GeoPoint, GeoRegion]


# =============================================================================
# LOCATION CLAIM
# =============================================================================

@dataclass(frozen=True)
class LocationClaim:
    """
    An assertion about where and when something happened.

    Required:
        - location (point with radius, or region)
        - time window
        - operation

    The radius is the claim's spatial uncertainty in meters. For regions it
    acts as a tolerance around the polygon boundary.
    """
    location: ClaimGeometry
    time: TimeBounds
    radius: float = 0.0
    operation: Operation = Operation.WITHIN
    subject: SubjectIdentifier = field(
        default_factory=lambda: SubjectIdentifier(scheme="unknown", value="")
    )
    event_type: Optional[str] = None

    lp_version: str = LP_VERSION
    srs: str = DEFAULT_SRS

    def __post_init__(self):
        if not isinstance(self.location, (GeoPoint, GeoRegion)):
            raise ClaimValidationError(
                f"location must be GeoPoint or GeoRegion, got {type(self.location).__name__}"
            )
        if not isinstance(self.operation, Operation):
            raise ClaimValidationError(
                f"operation must be Operation, got {type(self.operation).__name__}"
            )
        if self.operation not in CLAIM_OPERATIONS:
            raise ClaimValidationError(
                f"operation {self.operation.value} is not supported for location claims"
            )
        if not math.isfinite(self.radius) or self.radius < 0:
            raise ClaimValidationError(f"radius must be finite and >= 0, got {self.radius}")

    @property
    def location_type(self) -> str:
        if isinstance(self.location, GeoPoint):
            return "geojson-point"
        return "geojson-polygon"

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "lpVersion": self.lp_version,
            "locationType": self.location_type,
            "location": self.location.to_geojson(),
            "srs": self.srs,
            "subject": self.subject.to_dict(),
            "radius": self.radius,
            "time": self.time.to_dict(),
            "operation": self.operation.value,
        }
        if self.event_type:
            doc["eventType"] = self.event_type
        return doc


def claim_hash(claim: LocationClaim) -> bytes:
    """keccak-256 of the claim's canonical document (32 bytes)."""
    return keccak(text=canonical_json(claim.to_dict()))


def _parse_claim_geometry(geometry: Any) -> ClaimGeometry:
    if isinstance(geometry, dict) and geometry.get("type") == "Polygon":
        rings = geometry.get("coordinates") or []
        if not rings or not isinstance(rings[0], list):
            raise ClaimValidationError("Polygon needs an exterior ring")
        try:
            ring = tuple(GeoPoint(lon=float(c[0]), lat=float(c[1])) for c in rings[0])
        except (TypeError, ValueError, IndexError) as e:
            raise ClaimValidationError(f"invalid Polygon coordinates: {e}") from e
        if len(ring) > 1 and ring[0] == ring[-1]:
            ring = ring[:-1]
        return GeoRegion(ring=ring)
    try:
        return parse_point(geometry)
    except StampParseError as e:
        raise ClaimValidationError(str(e)) from e


def claim_from_dict(doc: Any) -> LocationClaim:
    """
    Build a LocationClaim from a Location Protocol claim document.

    Raises:
        ClaimValidationError: If the document is not a valid claim
    """
    if not isinstance(doc, dict):
        raise ClaimValidationError(f"claim must be an object, got {type(doc).__name__}")

    for required in ("location", "time"):
        if required not in doc:
            raise ClaimValidationError(f"claim is missing {required}")

    try:
        time_bounds = parse_time_bounds(doc["time"])
    except (StampParseError, ValueError) as e:
        raise ClaimValidationError(str(e)) from e

    raw_operation = doc.get("operation", Operation.WITHIN.value)
    try:
        operation = Operation(raw_operation)
    except ValueError as e:
        raise ClaimValidationError(f"unknown operation: {raw_operation!r}") from e

    subject = doc.get("subject") or {}
    try:
        radius = float(doc.get("radius", 0.0))
    except (TypeError, ValueError) as e:
        raise ClaimValidationError(f"invalid radius: {e}") from e

    return LocationClaim(
        location=_parse_claim_geometry(doc["location"]),
        time=time_bounds,
        radius=radius,
        operation=operation,
        subject=SubjectIdentifier(
            scheme=str(subject.get("scheme", "unknown")),
            value=str(subject.get("value", "")),
        ),
        event_type=doc.get("eventType"),
        lp_version=str(doc.get("lpVersion", LP_VERSION)),
        srs=str(doc.get("srs", DEFAULT_SRS)),
    )
