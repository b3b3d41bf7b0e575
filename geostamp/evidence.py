"""
Evidence Ledger — Location Stamps and per-stamp results.

SYSTEM INVARIANT:
    A stamp is immutable evidence produced by an external source. It is
    validated at construction time and never modified afterwards. Results
    derived from a stamp (verification, evaluation) are frozen as well.

Evidence shapes:
    LocationStamp            — Signed location evidence from one plugin
    StampVerificationResult  — Outcome of a plugin's internal validity check
    StampEvaluation          — Raw measurements of a stamp against a claim
    StampResult              — A verified stamp with its measurements (audit)

Stamps follow the Location Protocol v0.2 document layout so they can be
loaded from, and hashed as, canonical JSON.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Optional

from eth_utils import keccak


LP_VERSION = "0.2"
DEFAULT_SRS = "http://www.opengis.net/def/crs/OGC/1.3/CRS84"


class StampParseError(Exception):
    """Raised when a stamp document cannot be turned into a LocationStamp."""
    pass


# =============================================================================
# PRIMITIVE VALUE OBJECTS
# =============================================================================

@dataclass(frozen=True)
class GeoPoint:
    """
    A WGS-84 position in (longitude, latitude) order, degrees.
    """
    lon: float
    lat: float

    def __post_init__(self):
        if not (math.isfinite(self.lon) and math.isfinite(self.lat)):
            raise ValueError(f"coordinates must be finite, got ({self.lon}, {self.lat})")
        if not (-180.0 <= self.lon <= 180.0):
            raise ValueError(f"longitude must be in [-180, 180], got {self.lon}")
        if not (-90.0 <= self.lat <= 90.0):
            raise ValueError(f"latitude must be in [-90, 90], got {self.lat}")

    def to_geojson(self) -> dict[str, Any]:
        return {"type": "Point", "coordinates": [self.lon, self.lat]}


@dataclass(frozen=True)
class TimeBounds:
    """
    A closed time window in Unix seconds. start == end is an instant.
    """
    start: int
    end: int

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(
                f"time window start ({self.start}) must not be after end ({self.end})"
            )

    @property
    def is_instant(self) -> bool:
        return self.start == self.end

    @property
    def duration(self) -> int:
        return self.end - self.start

    def to_dict(self) -> dict[str, int]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class SubjectIdentifier:
    """DID-style identifier: ``scheme:value`` (e.g. eth-address, device-pubkey)."""
    scheme: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"scheme": self.scheme, "value": self.value}


@dataclass(frozen=True)
class Signature:
    """Cryptographic binding of a stamp to a signer."""
    signer: SubjectIdentifier
    algorithm: str
    value: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "signer": self.signer.to_dict(),
            "algorithm": self.algorithm,
            "value": self.value,
            "timestamp": self.timestamp,
        }


# =============================================================================
# LOCATION STAMP
# =============================================================================

@dataclass(frozen=True)
class LocationStamp:
    """
    The canonical evidence object: one signed location observation.

    Invariants enforced at construction:
    1. plugin name must be present
    2. accuracy radius must be finite and non-negative
    3. location and temporal footprint must be well-formed (enforced by
       GeoPoint and TimeBounds)

    Everything else (signature validity, plugin-specific signal checks) is
    the owning plugin's responsibility and happens in ``verify``.
    """
    plugin: str
    plugin_version: str
    location: GeoPoint
    temporal_footprint: TimeBounds
    accuracy_meters: float = 0.0
    signatures: tuple[Signature, ...] = field(default_factory=tuple)
    signals: dict[str, Any] = field(default_factory=dict)

    # Location Protocol metadata
    lp_version: str = LP_VERSION
    location_type: str = "geojson-point"
    srs: str = DEFAULT_SRS

    def __post_init__(self):
        if not self.plugin:
            raise StampParseError("plugin is required")
        if not math.isfinite(self.accuracy_meters) or self.accuracy_meters < 0:
            raise StampParseError(
                f"accuracy_meters must be finite and >= 0, got {self.accuracy_meters}"
            )

    @property
    def captured_at(self) -> int:
        """Capture timestamp (start of the temporal footprint)."""
        return self.temporal_footprint.start

    def to_dict(self, include_signatures: bool = True) -> dict[str, Any]:
        """Location Protocol document form of this stamp."""
        doc: dict[str, Any] = {
            "lpVersion": self.lp_version,
            "locationType": self.location_type,
            "location": self.location.to_geojson(),
            "srs": self.srs,
            "temporalFootprint": self.temporal_footprint.to_dict(),
            "accuracyMeters": self.accuracy_meters,
            "plugin": self.plugin,
            "pluginVersion": self.plugin_version,
            "signals": self.signals,
        }
        if include_signatures:
            doc["signatures"] = [sig.to_dict() for sig in self.signatures]
        return doc

    def signing_payload(self) -> str:
        """Canonical message covered by stamp-level signatures."""
        return canonical_json(self.to_dict(include_signatures=False))


# =============================================================================
# PER-STAMP RESULTS
# =============================================================================

@dataclass(frozen=True)
class StampVerificationResult:
    """
    Outcome of a plugin's internal validity check for one stamp.

    ``valid`` is the conjunction of the three sub-checks. ``reason`` is set
    whenever ``valid`` is False.
    """
    valid: bool
    signatures_valid: bool = True
    structure_valid: bool = True
    signals_consistent: bool = True
    reason: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_checks(
        cls,
        signatures_valid: bool,
        structure_valid: bool,
        signals_consistent: bool,
        details: Optional[dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> StampVerificationResult:
        """Combine sub-check outcomes, deriving a reason for failures."""
        valid = signatures_valid and structure_valid and signals_consistent
        if not valid and reason is None:
            failed = [
                name for name, ok in (
                    ("structure", structure_valid),
                    ("signatures", signatures_valid),
                    ("signals", signals_consistent),
                )
                if not ok
            ]
            reason = "invalid " + ", ".join(failed)
        return cls(
            valid=valid,
            signatures_valid=signatures_valid,
            structure_valid=structure_valid,
            signals_consistent=signals_consistent,
            reason=None if valid else reason,
            details=details or {},
        )

    @classmethod
    def unparseable(cls, error: Exception) -> StampVerificationResult:
        """Result for a stamp whose payload could not even be parsed."""
        return cls(
            valid=False,
            structure_valid=False,
            reason=f"parse error: {error}",
            details={"parseError": str(error)},
        )


@dataclass(frozen=True)
class StampEvaluation:
    """
    Raw measurements of one stamp against one claim. No scores.
    """
    distance_meters: float
    temporal_overlap: float
    within_radius: bool
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StampResult:
    """A verified and evaluated stamp, kept for diagnostics and audit."""
    stamp_index: int
    plugin: str
    stamp: LocationStamp
    verification: StampVerificationResult
    evaluation: StampEvaluation

    @property
    def stamp_hash(self) -> bytes:
        return stamp_hash(self.stamp)


# =============================================================================
# PARSING & HASHING
# =============================================================================

def canonical_json(document: Any) -> str:
    """Deterministic JSON: sorted keys, no insignificant whitespace."""
    return json.dumps(document, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def stamp_hash(stamp: LocationStamp) -> bytes:
    """keccak-256 of the stamp's canonical document (32 bytes)."""
    return keccak(text=canonical_json(stamp.to_dict()))


def parse_point(geometry: Any) -> GeoPoint:
    """Parse a GeoJSON Point into a GeoPoint."""
    if not isinstance(geometry, dict) or geometry.get("type") != "Point":
        raise StampParseError(f"expected GeoJSON Point, got {geometry!r}")
    coords = geometry.get("coordinates")
    if not isinstance(coords, (list, tuple)) or len(coords) < 2:
        raise StampParseError(f"Point coordinates must be [lon, lat], got {coords!r}")
    try:
        return GeoPoint(lon=float(coords[0]), lat=float(coords[1]))
    except (TypeError, ValueError) as e:
        raise StampParseError(f"invalid Point coordinates: {e}") from e


def parse_time_bounds(raw: Any) -> TimeBounds:
    if not isinstance(raw, dict):
        raise StampParseError(f"expected time bounds object, got {raw!r}")
    try:
        return TimeBounds(start=int(raw["start"]), end=int(raw["end"]))
    except KeyError as e:
        raise StampParseError(f"time bounds missing {e}") from e
    except (TypeError, ValueError, OverflowError) as e:
        raise StampParseError(f"invalid time bounds: {e}") from e


def parse_signature(raw: Any) -> Signature:
    if not isinstance(raw, dict):
        raise StampParseError(f"expected signature object, got {raw!r}")
    signer = raw.get("signer") or {}
    if not isinstance(signer, dict):
        raise StampParseError(f"signature signer must be an object, got {signer!r}")
    try:
        timestamp = int(raw.get("timestamp", 0))
    except (TypeError, ValueError, OverflowError) as e:
        raise StampParseError(f"invalid signature timestamp: {e}") from e
    return Signature(
        signer=SubjectIdentifier(
            scheme=str(signer.get("scheme", "")),
            value=str(signer.get("value", "")),
        ),
        algorithm=str(raw.get("algorithm", "")),
        value=str(raw.get("value", "")),
        timestamp=timestamp,
    )


def stamp_from_dict(doc: Any) -> LocationStamp:
    """
    Build a LocationStamp from a Location Protocol stamp document.

    Raises:
        StampParseError: If the document cannot be parsed
    """
    if not isinstance(doc, dict):
        raise StampParseError(f"stamp must be an object, got {type(doc).__name__}")

    if "location" not in doc:
        raise StampParseError("stamp is missing location")
    if "temporalFootprint" not in doc:
        raise StampParseError("stamp is missing temporalFootprint")

    signals = doc.get("signals", {})
    if not isinstance(signals, dict):
        raise StampParseError("stamp signals must be an object")

    raw_signatures = doc.get("signatures", [])
    if not isinstance(raw_signatures, list):
        raise StampParseError("stamp signatures must be a list")

    try:
        accuracy = float(doc.get("accuracyMeters", 0.0))
    except (TypeError, ValueError) as e:
        raise StampParseError(f"invalid accuracyMeters: {e}") from e

    return LocationStamp(
        plugin=str(doc.get("plugin", "")),
        plugin_version=str(doc.get("pluginVersion", "")),
        location=parse_point(doc["location"]),
        temporal_footprint=parse_time_bounds(doc["temporalFootprint"]),
        accuracy_meters=accuracy,
        signatures=tuple(parse_signature(s) for s in raw_signatures),
        signals=signals,
        lp_version=str(doc.get("lpVersion", "")),
        location_type=str(doc.get("locationType", "geojson-point")),
        srs=str(doc.get("srs", DEFAULT_SRS)),
    )
