"""
Structural and signal validation helpers for stamp plugins.

Plugins compose these checks inside ``verify``. Each check returns a
boolean and writes what it saw into a shared ``details`` dict, so a failed
verification can always be explained field by field.

There is no "maybe" state: a check passes or it fails.
"""

from __future__ import annotations

import re
import time
from typing import Any, Iterable, Optional

from .evidence import LP_VERSION, LocationStamp


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

# Accuracy radii above this are treated as absurd for a location proof
MAX_ACCURACY_METERS = 100_000.0

# Tolerated clock drift between the evidence source and this verifier
DEFAULT_CLOCK_SKEW_SECONDS = 300

SUPPORTED_SIGNATURE_ALGORITHMS = frozenset({
    "secp256k1",
    "eip191",
    "eip712",
    "ed25519",
    "pgp",
})

HEX_SIGNATURE_PATTERN = re.compile(r"^0x[0-9a-fA-F]{2,}$")
ETH_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


# =============================================================================
# STRUCTURE
# =============================================================================

def check_structure(
    stamp: LocationStamp,
    details: dict[str, Any],
    expected_plugin: Optional[str] = None,
) -> bool:
    """
    Required Location Protocol fields are present and well-formed.
    """
    ok = True

    if stamp.lp_version != LP_VERSION:
        details["lpVersionError"] = f"Expected '{LP_VERSION}', got '{stamp.lp_version}'"
        ok = False

    if not stamp.location_type:
        details["missingLocationType"] = True
        ok = False

    if not stamp.srs:
        details["missingSrs"] = True
        ok = False

    if not stamp.plugin_version:
        details["missingPluginVersion"] = True
        ok = False

    if expected_plugin is not None and stamp.plugin != expected_plugin:
        details["pluginMismatch"] = f"Expected '{expected_plugin}', got '{stamp.plugin}'"
        ok = False

    return ok


# =============================================================================
# SIGNATURES
# =============================================================================

def check_signature_fields(stamp: LocationStamp, details: dict[str, Any]) -> bool:
    """
    Every signature names a signer, a supported algorithm and a value.

    This is a format check only; cryptographic verification is up to the
    plugin that understands the algorithm.
    """
    details["signatureCount"] = len(stamp.signatures)
    if not stamp.signatures:
        details["noSignatures"] = True
        return False

    for i, sig in enumerate(stamp.signatures):
        if not sig.value or not sig.value.strip():
            details["emptySignature"] = i
            return False
        if not sig.signer.scheme or not sig.signer.value:
            details["missingSigner"] = i
            return False
        if sig.algorithm not in SUPPORTED_SIGNATURE_ALGORITHMS:
            details["unsupportedAlgorithm"] = sig.algorithm
            return False
        if sig.algorithm in ("secp256k1", "eip191", "eip712"):
            if not HEX_SIGNATURE_PATTERN.match(sig.value):
                details["malformedSignature"] = i
                return False
    return True


def check_trusted_signers(
    signers: Iterable[str],
    trusted: frozenset[str],
    details: dict[str, Any],
) -> bool:
    """
    Every signer appears in the trust anchor list (case-insensitive).

    An empty trust anchor list accepts any signer.
    """
    if not trusted:
        return True
    untrusted = [s for s in signers if s.lower() not in trusted]
    if untrusted:
        details["untrustedSigners"] = untrusted
        return False
    return True


def normalize_trust_anchors(anchors: Iterable[str]) -> frozenset[str]:
    return frozenset(a.lower() for a in anchors)


# =============================================================================
# SIGNAL CONSISTENCY
# =============================================================================

def check_accuracy(
    stamp: LocationStamp,
    details: dict[str, Any],
    max_accuracy_meters: float = MAX_ACCURACY_METERS,
) -> bool:
    """Accuracy radius is not absurdly large."""
    if stamp.accuracy_meters > max_accuracy_meters:
        details["accuracyTooLarge"] = stamp.accuracy_meters
        return False
    return True


def check_not_in_future(
    stamp: LocationStamp,
    details: dict[str, Any],
    clock_skew_seconds: int = DEFAULT_CLOCK_SKEW_SECONDS,
    now: Optional[float] = None,
) -> bool:
    """Capture time is not later than now plus the tolerated skew."""
    if now is None:
        now = time.time()
    if stamp.captured_at > now + clock_skew_seconds:
        details["timestampInFuture"] = stamp.captured_at
        return False
    return True
