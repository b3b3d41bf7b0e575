"""
Proof loading and assessment runs for the GeoStamp CLI.

A proof file is a JSON document:

    {"claim": {...LP v0.2 claim...}, "stamps": [{...LP v0.2 stamp...}, ...]}

Stamps that cannot be parsed do not abort the run: each becomes a
``malformed_stamp`` rejection and still counts as submitted.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from ..config import Settings
from ..domain import (
    ClaimValidationError,
    LocationClaim,
    MalformedStamp,
    Rejection,
    claim_from_dict,
)
from ..engine import Assessment, AssessmentEngine
from ..evidence import LocationStamp, StampParseError, stamp_from_dict

logger = logging.getLogger(__name__)


class ProofLoadError(Exception):
    """Raised when a proof document is unusable as a whole."""
    pass


@dataclass
class ProofBundle:
    """A parsed proof document."""
    claim: LocationClaim
    stamps: list[LocationStamp] = field(default_factory=list)
    rejections: list[Rejection] = field(default_factory=list)

    @property
    def submitted_count(self) -> int:
        return len(self.stamps) + len(self.rejections)


# =============================================================================
# SAMPLE DATA (For Demo Purposes)
# =============================================================================

SAMPLE_PROOF: dict[str, Any] = {
    "claim": {
        "lpVersion": "0.2",
        "locationType": "geojson-point",
        "location": {"type": "Point", "coordinates": [-122.4194, 37.7749]},
        "srs": "http://www.opengis.net/def/crs/OGC/1.3/CRS84",
        "subject": {"scheme": "eth-address", "value": "0x" + "ab" * 20},
        "radius": 5000,
        "time": {"start": 1700000000, "end": 1700003600},
        "eventType": "presence",
        "operation": "within",
    },
    "stamps": [
        {
            "lpVersion": "0.2",
            "locationType": "geojson-point",
            "location": {"type": "Point", "coordinates": [-122.4190, 37.7751]},
            "srs": "http://www.opengis.net/def/crs/OGC/1.3/CRS84",
            "temporalFootprint": {"start": 1700001800, "end": 1700001800},
            "accuracyMeters": 12,
            "plugin": "proofmode",
            "pluginVersion": "0.1.0",
            "signals": {"deviceModel": "Pixel 8"},
            "signatures": [
                {
                    "signer": {"scheme": "device-pubkey", "value": "0x" + "cd" * 32},
                    "algorithm": "secp256k1",
                    "value": "0x" + "11" * 65,
                    "timestamp": 1700001800,
                }
            ],
        },
        {
            "lpVersion": "0.2",
            "locationType": "geojson-point",
            "location": {"type": "Point", "coordinates": [-122.4180, 37.7760]},
            "srs": "http://www.opengis.net/def/crs/OGC/1.3/CRS84",
            "temporalFootprint": {"start": 1700001000, "end": 1700002000},
            "accuracyMeters": 50,
            "plugin": "unknownproto",
            "pluginVersion": "1.0.0",
            "signals": {},
            "signatures": [],
        },
    ],
}


# =============================================================================
# LOADING
# =============================================================================

def parse_proof(document: Any) -> ProofBundle:
    """
    Turn a proof document into a claim and its stamps.

    Raises:
        ProofLoadError: If the document or its claim is invalid
    """
    if not isinstance(document, dict):
        raise ProofLoadError("proof must be a JSON object")
    if "claim" not in document:
        raise ProofLoadError("proof is missing claim")

    try:
        claim = claim_from_dict(document["claim"])
    except (ClaimValidationError, ValueError) as e:
        raise ProofLoadError(f"invalid claim: {e}") from e

    raw_stamps = document.get("stamps", [])
    if not isinstance(raw_stamps, list):
        raise ProofLoadError("proof stamps must be a list")

    bundle = ProofBundle(claim=claim)
    for index, raw in enumerate(raw_stamps):
        try:
            bundle.stamps.append(stamp_from_dict(raw))
        except StampParseError as e:
            plugin = raw.get("plugin") if isinstance(raw, dict) else None
            error = MalformedStamp(str(e), stamp_index=index, plugin=str(plugin or "unknown"))
            logger.warning("stamp %d is malformed: %s", index, e)
            bundle.rejections.append(Rejection.from_error(error))

    return bundle


def load_proof(source: Union[str, Path, None] = None) -> ProofBundle:
    """
    Load a proof from a JSON file (the built-in sample if None).

    Raises:
        ProofLoadError: If the file cannot be read or parsed
    """
    if source is None:
        return parse_proof(SAMPLE_PROOF)

    path = Path(source)
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ProofLoadError(f"cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ProofLoadError(f"{path} is not valid JSON: {e}") from e
    return parse_proof(document)


def load_stamp(source: Union[str, Path]) -> LocationStamp:
    """
    Raises:
        ProofLoadError: If the file is unreadable or not a valid stamp
    """
    path = Path(source)
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
        return stamp_from_dict(document)
    except OSError as e:
        raise ProofLoadError(f"cannot read {path}: {e}") from e
    except (json.JSONDecodeError, StampParseError) as e:
        raise ProofLoadError(f"invalid stamp in {path}: {e}") from e


# =============================================================================
# EXECUTION
# =============================================================================

def run_assessment(
    bundle: ProofBundle,
    settings: Optional[Settings] = None,
    engine: Optional[AssessmentEngine] = None,
    evaluated_at: Optional[int] = None,
) -> Assessment:
    """Assess a loaded proof with an engine built from settings."""
    if engine is None:
        engine = AssessmentEngine.from_settings(settings or Settings())
    return engine.assess(
        bundle.claim,
        bundle.stamps,
        evaluated_at=evaluated_at,
        extra_rejections=bundle.rejections,
    )
