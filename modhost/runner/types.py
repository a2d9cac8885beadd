# modhost/runner/types.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from modhost.core.errors import NotFoundError
from modhost.core.logging import getModLogger
from modhost.runner.base import ModContext, ModRunner, ModType
from modhost.runner.legacy import LegacyModType
from modhost.runner.manifest_type import ManifestModType
from modhost.store.manifest import readPackageManifest

if TYPE_CHECKING:
    from modhost.store.layout import RepositoryStore
    from modhost.store.package import ModPackage

logger = logging.getLogger(__name__)

__all__ = [
    "MOD_TYPES", "registerModType", "getModType", "getModTypeByName",
    "createModRunnerByPath", "createModRunner",
]



MOD_TYPES: dict[str, ModType] = {}



def registerModType(modType: ModType) -> None:
    MOD_TYPES[modType.typeName] = modType



registerModType(LegacyModType())
registerModType(ManifestModType())



def getModTypeByName(typeName: str) -> ModType | None:
    return MOD_TYPES.get(typeName)



def getModType(path: Path) -> ModType | None:
    """
    A declared manifest `type` wins; a manifest naming an unknown type
    resolves to None. Without a manifest the detection predicates decide.
    """
    manifest = readPackageManifest(path) if path.is_dir() else None
    if manifest is not None:
        modType = MOD_TYPES.get(manifest.type)
        if modType is None:
            logger.warning("No runner for mod type '%s' ('%s')", manifest.type, path)
        return modType
    for modType in MOD_TYPES.values():
        if modType.isType(path):
            return modType
    return None



def createModRunnerByPath(path: Path, context: ModContext | None = None) -> ModRunner:
    modType = getModType(path)
    if modType is None:
        raise NotFoundError(f"Cannot determine mod type of '{path}'")
    if context is None:
        context = ModContext(name=path.name, path=path, logger=getModLogger(path.name))
    return modType.createRunner(path, context)



def createModRunner(pkg: ModPackage, store: RepositoryStore, context: ModContext | None = None) -> ModRunner:
    """Runner for an installed package; a linked package runs from its source path."""
    path = Path(pkg.sourcePath) if pkg.sourcePath else store.packagePath(pkg.name)
    if context is None:
        context = ModContext(name=pkg.name, path=path, logger=getModLogger(pkg.name))
    return createModRunnerByPath(path, context)
