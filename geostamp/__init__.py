# GeoStamp Engine
# Location proof verification and credibility assessment

"""
Core invariant: every stamp either contributes to the credibility vector
or is recorded as a rejection with an auditable reason.

This package implements plugin-based stamp verification, deterministic
credibility aggregation, and the ABI codec for EAS-style attestations.
"""

__version__ = "0.1.0"
