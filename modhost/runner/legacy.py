# modhost/runner/legacy.py
from __future__ import annotations

import logging
from pathlib import Path

from modhost.core.errors import InvalidManifestError
from modhost.runner.base import ModContext, ModType
from modhost.runner.module_runner import ModuleModRunner
from modhost.store.manifest import LEGACY_TYPE, PACKAGE_MANIFEST
from modhost.store.shared_deps import pipInstall, readRequirementsFile

logger = logging.getLogger(__name__)

__all__ = ["LEGACY_ENTRY_NAMES", "REQUIREMENTS_NAME", "PRIVATE_DEPS_DIRNAME", "LegacyModType"]



LEGACY_ENTRY_NAMES = ("index.py", "main.py")
REQUIREMENTS_NAME = "req.txt"
PRIVATE_DEPS_DIRNAME = ".deps"



def _implementationFiles(path: Path) -> list[Path]:
    return sorted(child for child in path.glob("*.py") if child.is_file())



class LegacyModType(ModType):
    """
    `v1` packages: no mod.json, at least one .py file. The entry is
    index.py, else main.py, else the single implementation file.
    """

    typeName = LEGACY_TYPE

    def isType(self, path: Path) -> bool:
        return path.is_dir() and not (path / PACKAGE_MANIFEST).exists() and bool(_implementationFiles(path))

    def findEntryPoint(self, path: Path) -> Path | None:
        if path.is_file():
            return path if path.suffix == ".py" else None
        for name in LEGACY_ENTRY_NAMES:
            candidate = path / name
            if candidate.is_file():
                return candidate
        files = _implementationFiles(path)
        return files[0] if len(files) == 1 else None

    def validateStructure(self, path: Path) -> None:
        if (path / PACKAGE_MANIFEST).exists():
            raise InvalidManifestError(path, "legacy package must not contain mod.json")
        if not _implementationFiles(path):
            raise InvalidManifestError(path, "legacy package has no implementation files")
        if self.findEntryPoint(path) is None:
            raise InvalidManifestError(path, f"no entry file ({', '.join(LEGACY_ENTRY_NAMES)})")

    def createRunner(self, path: Path, context: ModContext) -> ModuleModRunner:
        self.validateStructure(path)
        return ModuleModRunner(self.findEntryPoint(path), context)

    async def postInstall(self, targetPath: Path) -> None:
        requirements = readRequirementsFile(targetPath / REQUIREMENTS_NAME)
        if requirements:
            await pipInstall(requirements, targetPath / PRIVATE_DEPS_DIRNAME)
