"""
Plugin Registry: one plugin per unique name.

Registration happens at startup. A duplicate name is a configuration
error and is rejected; a trust-relevant adapter is never silently
replaced. Resolution is safe to call from many evaluation tasks at once.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional

from ..domain import DuplicatePlugin, PluginNotFound
from .interface import LocationProofPlugin, PluginMetadata, get_plugin_metadata

logger = logging.getLogger(__name__)


class PluginRegistry:
    """Name-keyed lookup table of plugin instances."""

    def __init__(self, plugins: Optional[Iterable[LocationProofPlugin]] = None):
        self._plugins: dict[str, LocationProofPlugin] = {}
        self._lock = threading.Lock()
        for plugin in plugins or ():
            self.register(plugin)

    def register(self, plugin: LocationProofPlugin) -> None:
        """
        Add a plugin under its name.

        Raises:
            TypeError: If the object does not satisfy the plugin contract
            DuplicatePlugin: If the name is already registered
        """
        if not isinstance(plugin, LocationProofPlugin):
            raise TypeError(
                f"{type(plugin).__name__} does not implement the plugin contract"
            )
        if not plugin.name:
            raise TypeError("plugin name must be non-empty")

        with self._lock:
            if plugin.name in self._plugins:
                raise DuplicatePlugin(plugin.name)
            self._plugins[plugin.name] = plugin

        logger.info("registered plugin %s v%s", plugin.name, plugin.version)

    def unregister(self, name: str) -> None:
        with self._lock:
            if name not in self._plugins:
                raise PluginNotFound(name)
            del self._plugins[name]

    def resolve(self, name: str) -> LocationProofPlugin:
        """
        Look up the plugin for a stamp.

        Raises:
            PluginNotFound: If no plugin is registered under ``name``
        """
        with self._lock:
            plugin = self._plugins.get(name)
        if plugin is None:
            raise PluginNotFound(name)
        return plugin

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._plugins

    def list_plugins(self) -> list[PluginMetadata]:
        """Metadata for every registered plugin, sorted by name."""
        with self._lock:
            plugins = list(self._plugins.values())
        return sorted((get_plugin_metadata(p) for p in plugins), key=lambda m: m.name)

    def clear(self) -> None:
        with self._lock:
            self._plugins.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._plugins)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)
