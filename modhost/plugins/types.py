# modhost/plugins/types.py
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from modhost.store.manifest import PluginManifest

__all__ = ["PLUGIN_ENTRY", "SCRIPT_TYPE_ALIASES", "PluginCode", "PluginType", "BuiltinPlugin", "ExtensionInfo"]



PLUGIN_ENTRY = "main.py"
SCRIPT_TYPE_ALIASES = frozenset({"external-script", "python", "python-script"})

# Source text, or a callable taking the plugin context
PluginCode = str | Callable[[Any], Any]



class PluginType(str, Enum):
    STANDARD = "standard"               # runs in-process through the executor
    EXTERNAL_SCRIPT = "external-script" # runs as a child process through the script bridge

    @classmethod
    def fromManifest(cls, raw: str | None) -> PluginType:
        return cls.EXTERNAL_SCRIPT if (raw or "").lower() in SCRIPT_TYPE_ALIASES else cls.STANDARD



@dataclass(frozen=True)
class BuiltinPlugin:
    """A plugin shipped by the embedding application rather than downloaded."""
    id: str
    name: str
    code: str | Callable[[Any], Any]
    description: str | None = None



@dataclass(frozen=True)
class ExtensionInfo:
    id: str
    name: str
    manifest: PluginManifest
    path: Path | None = None
    isBuiltin: bool = False
    description: str | None = None
    type: PluginType = PluginType.STANDARD

    @classmethod
    def fromManifest(cls, manifest: PluginManifest, path: Path | None, *, isBuiltin: bool = False) -> ExtensionInfo:
        return cls(
            id=manifest.id,
            name=manifest.name,
            manifest=manifest,
            path=path,
            isBuiltin=isBuiltin,
            description=manifest.description,
            type=PluginType.fromManifest(manifest.type),
        )

    @property
    def entryPath(self) -> Path | None:
        return self.path / PLUGIN_ENTRY if self.path is not None else None
