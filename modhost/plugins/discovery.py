# modhost/plugins/discovery.py
from __future__ import annotations

import logging
from collections.abc import Iterable

from modhost.core.errors import InvalidManifestError
from modhost.plugins.types import BuiltinPlugin, ExtensionInfo
from modhost.store.layout import RepositoryStore, isSkippedEntry
from modhost.store.manifest import PLUGIN_MANIFEST, PluginManifest, loadPluginManifest

logger = logging.getLogger(__name__)

__all__ = ["PluginDiscovery"]



class PluginDiscovery:
    def __init__(self, store: RepositoryStore, builtins: Iterable[BuiltinPlugin] = ()):
        self.store = store
        self._builtins: dict[str, BuiltinPlugin] = {plugin.id: plugin for plugin in builtins}

    def registerBuiltin(self, plugin: BuiltinPlugin) -> None:
        self._builtins[plugin.id] = plugin

    def getBuiltin(self, pluginId: str) -> BuiltinPlugin | None:
        return self._builtins.get(pluginId)

    def builtinExtensions(self) -> list[ExtensionInfo]:
        return [
            ExtensionInfo.fromManifest(
                PluginManifest(id=plugin.id, name=plugin.name, description=plugin.description),
                None,
                isBuiltin=True,
            )
            for plugin in self._builtins.values()
        ]

    def discoverExtensions(self) -> list[ExtensionInfo]:
        """Built-ins first, then everything installed under extensions/."""
        extensions = self.builtinExtensions()
        builtinIds = {extension.id for extension in extensions}
        for extension in self.scanInstalledPlugins():
            if extension.id in builtinIds:
                logger.warning("Installed plugin '%s' shadows a built-in plugin; skipping", extension.id)
                continue
            extensions.append(extension)
        return extensions

    def scanInstalledPlugins(self) -> list[ExtensionInfo]:
        root = self.store.extensionsDir
        if not root.is_dir():
            logger.debug("Extensions directory '%s' does not exist", root)
            return []

        found: list[ExtensionInfo] = []
        for pluginDir in sorted(root.iterdir()):
            if not pluginDir.is_dir() or isSkippedEntry(pluginDir.name):
                continue
            if not (pluginDir / PLUGIN_MANIFEST).is_file():
                logger.warning("No %s in '%s'", PLUGIN_MANIFEST, pluginDir.name)
                continue
            try:
                manifest = loadPluginManifest(pluginDir)
            except InvalidManifestError as err:
                logger.warning("Skipping plugin '%s': %s", pluginDir.name, err)
                continue
            found.append(ExtensionInfo.fromManifest(manifest, pluginDir))
            logger.debug("Found installed plugin %s (%s)", manifest.name, manifest.id)
        return found
