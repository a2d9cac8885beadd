# modhost/runner/manifest_type.py
from __future__ import annotations

from pathlib import Path

from modhost.core.errors import InvalidManifestError
from modhost.runner.base import ModContext, ModType
from modhost.runner.module_runner import ModuleModRunner
from modhost.store.manifest import readPackageManifest

__all__ = ["DEFAULT_ENTRY", "ManifestModType"]



DEFAULT_ENTRY = "main.py"



class ManifestModType(ModType):
    """`v2` packages: mod.json with type "v2"; entry file from `entryPoint`."""

    typeName = "v2"

    def isType(self, path: Path) -> bool:
        manifest = readPackageManifest(path) if path.is_dir() else None
        return manifest is not None and manifest.type == self.typeName

    def findEntryPoint(self, path: Path) -> Path | None:
        manifest = readPackageManifest(path)
        if manifest is None:
            return None
        entry = (path / (manifest.entryPoint or DEFAULT_ENTRY)).resolve()
        if not entry.is_relative_to(path.resolve()) or not entry.is_file():
            return None
        return entry

    def createRunner(self, path: Path, context: ModContext) -> ModuleModRunner:
        entry = self.findEntryPoint(path)
        if entry is None:
            raise InvalidManifestError(path, "manifest missing or entry file not found")
        return ModuleModRunner(entry, context)
