# CLI package for GeoStamp
"""
Command-line interface for assessing location proofs locally.

Commands:
    geostamp assess       — Assess a claim against its stamps
    geostamp explain      — Show the score breakdown
    geostamp verify-stamp — Verify a single stamp
    geostamp plugins      — List registered plugins
    geostamp decode       — Decode attestation bytes
"""
