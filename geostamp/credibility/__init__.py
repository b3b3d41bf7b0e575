# Credibility package for GeoStamp
"""
Deterministic credibility aggregation.

Provides explainable scoring where every dimension is
decomposable into human-readable reasons.
"""
