# Plugins package for GeoStamp
"""
Evidence-source adapters and the registry that dispatches to them.
"""

from ..validation import DEFAULT_CLOCK_SKEW_SECONDS
from .interface import LocationProofPlugin, PluginMetadata, get_plugin_metadata
from .proofmode import ProofModePlugin
from .registry import PluginRegistry
from .witnesschain import WitnessChainPlugin


def default_registry(clock_skew_seconds: int = DEFAULT_CLOCK_SKEW_SECONDS) -> PluginRegistry:
    """Registry holding the built-in reference plugins."""
    return PluginRegistry([
        ProofModePlugin(clock_skew_seconds=clock_skew_seconds),
        WitnessChainPlugin(),
    ])


__all__ = [
    "LocationProofPlugin",
    "PluginMetadata",
    "PluginRegistry",
    "ProofModePlugin",
    "WitnessChainPlugin",
    "default_registry",
    "get_plugin_metadata",
]
