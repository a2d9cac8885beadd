# modhost/plugins/management.py
from __future__ import annotations

import logging
import shutil

from modhost.core.errors import InvalidInputError
from modhost.plugins.types import ExtensionInfo
from modhost.store.layout import RepositoryStore

logger = logging.getLogger(__name__)

__all__ = ["PluginManagement"]



class PluginManagement:
    """Built-in plugins are hidden, installed ones are deleted from disk."""

    def __init__(self, store: RepositoryStore):
        self.store = store
        self._hidden = store.hiddenPluginsFile()

    def hiddenPluginIds(self) -> list[str]:
        data = self._hidden.data
        return [str(item) for item in data] if isinstance(data, list) else []

    def isPluginHidden(self, pluginId: str) -> bool:
        return pluginId in self.hiddenPluginIds()

    def hidePlugin(self, pluginId: str) -> None:
        hidden = self.hiddenPluginIds()
        if pluginId not in hidden:
            hidden.append(pluginId)
            self._hidden.data = hidden

    def showHiddenPlugins(self) -> None:
        self._hidden.data = []

    def removeExtension(self, extension: ExtensionInfo) -> None:
        if extension.isBuiltin:
            self.hidePlugin(extension.id)
            logger.info("Hid built-in plugin '%s'", extension.id)
            return

        if extension.path is None:
            raise InvalidInputError(f"Plugin '{extension.id}' has no install path")
        root = self.store.extensionsDir.resolve()
        target = extension.path.resolve()
        if target == root or not target.is_relative_to(root):
            raise InvalidInputError(f"Refusing to delete '{target}' outside {root}")
        if target.exists():
            shutil.rmtree(target)
        logger.info("Removed plugin '%s' from '%s'", extension.id, target)
