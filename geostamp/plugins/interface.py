"""
Plugin contract for location evidence sources.

A plugin is anything that carries the identity fields below and implements
``verify`` and ``evaluate``. There is no base class: the registry dispatches
by name and the engine only relies on this structural contract.

Both methods may be plain functions or coroutines. Plugins that need
network access or heavy cryptography can be async; the runner awaits them
on the event loop and moves synchronous ones onto worker threads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Protocol, Sequence, Union, runtime_checkable

from ..domain import LocationClaim
from ..evidence import LocationStamp, StampEvaluation, StampVerificationResult


@runtime_checkable
class LocationProofPlugin(Protocol):
    """
    Service-side plugin interface.

    verify(stamp):
        Internal validity only — signatures, structure, signal consistency.
        Must not raise for malformed-but-parseable input; return
        ``valid=False`` with a reason instead.

    evaluate(stamp, claim):
        Raw measurements of the stamp against the claim. Only called after
        ``verify`` returned ``valid=True`` for the same stamp.
    """

    name: str
    version: str
    environments: Sequence[str]
    description: str

    def verify(
        self, stamp: LocationStamp
    ) -> Union[StampVerificationResult, Awaitable[StampVerificationResult]]:
        ...

    def evaluate(
        self, stamp: LocationStamp, claim: LocationClaim
    ) -> Union[StampEvaluation, Awaitable[StampEvaluation]]:
        ...


@dataclass(frozen=True)
class PluginMetadata:
    """Static identity of a plugin, for listings and audit trails."""
    name: str
    version: str
    environments: tuple[str, ...]
    description: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "environments": list(self.environments),
            "description": self.description,
        }


def get_plugin_metadata(plugin: LocationProofPlugin) -> PluginMetadata:
    """Extract metadata from a plugin instance."""
    return PluginMetadata(
        name=plugin.name,
        version=plugin.version,
        environments=tuple(plugin.environments),
        description=plugin.description,
    )
