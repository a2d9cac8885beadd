# modhost/plugins/loader.py
from __future__ import annotations

import logging

from modhost.core.errors import PackageNotFound
from modhost.plugins.discovery import PluginDiscovery
from modhost.plugins.types import ExtensionInfo, PluginCode

logger = logging.getLogger(__name__)

__all__ = ["PluginLoader"]



class PluginLoader:
    def __init__(self, discovery: PluginDiscovery):
        self.discovery = discovery

    def getPluginCode(self, extension: ExtensionInfo) -> PluginCode:
        """Built-ins yield their registered code, installed plugins the text of their entry file."""
        if extension.isBuiltin:
            builtin = self.discovery.getBuiltin(extension.id)
            if builtin is None:
                raise PackageNotFound(extension.id, "built-in plugins")
            return builtin.code

        entry = extension.entryPath
        if entry is None or not entry.is_file():
            raise PackageNotFound(extension.id, str(extension.path))
        code = entry.read_text(encoding="utf-8")
        logger.debug("Loaded %d characters of code for '%s'", len(code), extension.id)
        return code
