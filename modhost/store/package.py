# modhost/store/package.py
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from modhost.core.errors import (
    InvalidManifestError, ModHostError, NotFoundError, PackageAlreadyInstalled,
    PackageNotFound, ReservedNameError,
)
from modhost.core.logging import logContext
from modhost.runner.legacy import LegacyModType
from modhost.runner.types import getModType
from modhost.semver.dotted import versionDiff as _versionDiff
from modhost.store.manifest import LEGACY_TYPE, PACKAGE_MANIFEST, loadPackageManifest

if TYPE_CHECKING:
    from modhost.store.bucket import ModBucket
    from modhost.store.layout import RepositoryStore

logger = logging.getLogger(__name__)

__all__ = ["LEGACY_VERSION", "COPY_IGNORE", "ModPackage"]



LEGACY_VERSION = "1.0.0"
COPY_IGNORE = shutil.ignore_patterns(".git")

_legacyType = LegacyModType()



def _copyTree(source: Path, target: Path, *, inPlace: bool = False) -> None:
    shutil.copytree(source, target, ignore=COPY_IGNORE, dirs_exist_ok=inPlace, symlinks=True)



@dataclass
class ModPackage:
    """An installed (or installable) mod unit."""
    name: str
    type: str
    version: str
    entryPoint: str | None = None
    description: str | None = None
    sourcePath: str | None = None
    store: RepositoryStore | None = field(default=None, repr=False, compare=False)

    def isLegacy(self) -> bool:
        return self.type == LEGACY_TYPE

    @property
    def installPath(self) -> Path:
        if self.store is None:
            raise RuntimeError(f"Package '{self.name}' is not attached to a repository store")
        return self.store.packagePath(self.name)

    @property
    def isInstalled(self) -> bool:
        return self.store is not None and self.installPath.is_dir()

    # ---------- Construction ----------

    @classmethod
    def fromDirectory(
        cls,
        path: Path,
        name: str | None = None,
        store: RepositoryStore | None = None,
        sourcePath: str | None = None,
    ) -> ModPackage:
        """
        Build a descriptor from on-disk content. Legacy packages (no mod.json,
        has .py files) get version 1.0.0. Raises InvalidManifestError when the
        directory is neither.
        """
        name = name or path.name
        if (path / PACKAGE_MANIFEST).exists():
            manifest = loadPackageManifest(path)
            return cls(
                name=name,
                type=manifest.type,
                version=manifest.version,
                entryPoint=manifest.entryPoint,
                description=manifest.description,
                sourcePath=sourcePath,
                store=store,
            )
        if _legacyType.isType(path):
            entry = _legacyType.findEntryPoint(path)
            return cls(
                name=name,
                type=LEGACY_TYPE,
                version=LEGACY_VERSION,
                entryPoint=entry.name if entry is not None else None,
                description="",
                sourcePath=sourcePath,
                store=store,
            )
        raise InvalidManifestError(path, "no mod.json and no implementation files")

    @classmethod
    def load(cls, store: RepositoryStore, name: str) -> ModPackage:
        """Installed package by name, honouring the link table."""
        path = store.packagePath(name)
        sourcePath = store.linkTable.getValue(name) or None
        if not path.is_dir():
            if sourcePath and Path(sourcePath).is_dir():
                return cls.fromDirectory(Path(sourcePath), name, store, sourcePath)
            raise PackageNotFound(name, str(store.pkgsDir))
        return cls.fromDirectory(path, name, store, sourcePath)

    # ---------- Lifecycle ----------

    @classmethod
    async def install(cls, bucket: ModBucket, name: str) -> ModPackage | None:
        """
        Copy `name` out of `bucket` into pkgs/. Returns None on any failure;
        a partially copied target is removed again.
        """
        store = bucket.store
        with logContext(packageName=name, bucket=bucket.name):
            try:
                if store.isReservedName(name):
                    raise ReservedNameError(name)
                source = bucket.packagePath(name)
                if source is None:
                    raise PackageNotFound(name, f"bucket '{bucket.name}'")
                target = store.packagePath(name)
                if target.exists():
                    raise PackageAlreadyInstalled(name)
                modType = getModType(source)
                if modType is None:
                    raise NotFoundError(f"No mod type understands '{source}'")
            except ModHostError as err:
                logger.warning("Install of '%s' refused: %s", name, err)
                return None

            try:
                await modType.preInstall(target)
                _copyTree(source, target)
                await modType.postInstall(target)
                pkg = cls.fromDirectory(target, name, store, store.linkTable.getValue(name) or None)
            except Exception:
                logger.exception("Install of '%s' failed; rolling back '%s'", name, target)
                shutil.rmtree(target, ignore_errors=True)
                return None

        logger.info("Installed '%s@%s' (%s) from '%s'", pkg.name, pkg.version, pkg.type, bucket.name)
        return pkg

    def versionDiff(self, bucket: ModBucket) -> int | None:
        """>0 when the bucket has a newer version, <0 older, 0 same; None when unknown."""
        source = bucket.packagePath(self.name)
        if source is None:
            return None
        try:
            upstream = ModPackage.fromDirectory(source, self.name)
            return _versionDiff(self.version, upstream.version)
        except (InvalidManifestError, ValueError) as err:
            logger.warning("Cannot compare versions of '%s': %s", self.name, err)
            return None

    async def update(self, bucket: ModBucket, forceInstall: bool = False) -> bool:
        with logContext(packageName=self.name, bucket=bucket.name):
            if not self.isInstalled:
                logger.warning("Cannot update '%s': not installed", self.name)
                return False
            source = bucket.packagePath(self.name)
            if source is None:
                logger.warning("Cannot update '%s': not present in bucket '%s'", self.name, bucket.name)
                return False
            diff = self.versionDiff(bucket)
            if diff is None:
                return False
            if diff <= 0 and not forceInstall:
                logger.info("'%s' is up to date (diff=%d)", self.name, diff)
                return False

            target = self.installPath
            modType = getModType(source)
            if modType is None:
                logger.warning("Cannot update '%s': unknown mod type at '%s'", self.name, source)
                return False
            try:
                await modType.preInstall(target)
                _copyTree(source, target, inPlace=True)
                await modType.postInstall(target)
                refreshed = ModPackage.fromDirectory(target, self.name)
            except Exception:
                logger.exception("Update of '%s' failed", self.name)
                return False

        self.type = refreshed.type
        self.version = refreshed.version
        self.entryPoint = refreshed.entryPoint
        self.description = refreshed.description
        logger.info("Updated '%s' to %s", self.name, self.version)
        return True

    async def uninstall(self) -> bool:
        target = self.installPath
        if not target.is_dir():
            return False

        with logContext(packageName=self.name):
            modType = getModType(target)
            if modType is not None:
                try:
                    await modType.preUninstall(target)
                except Exception:
                    logger.exception("preUninstall hook of '%s' failed; deleting anyway", self.name)
            try:
                shutil.rmtree(target)
            except OSError:
                logger.exception("Could not delete '%s'", target)
                return False
            if modType is not None:
                try:
                    await modType.postUninstall(target)
                except Exception:
                    logger.exception("postUninstall hook of '%s' failed", self.name)

        logger.info("Uninstalled '%s'", self.name)
        return True

    # ---------- Local override ----------

    def link(self, path: Path | str) -> bool:
        source = Path(path).expanduser()
        if not source.exists():
            logger.warning("Cannot link '%s': '%s' does not exist", self.name, source)
            return False
        if self.store is None:
            return False
        self.sourcePath = str(source.resolve())
        self.store.linkTable.setValue(self.name, self.sourcePath)
        return True

    def unlink(self) -> bool:
        if self.store is not None:
            self.store.linkTable.deleteValue(self.name)
        self.sourcePath = None
        return True
