# modhost/store/registry.py
from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from collections.abc import Mapping

from modhost.core.errors import DuplicateBucket, ModHostError
from modhost.store import git
from modhost.store.bucket import ModBucket, bucketFolderName
from modhost.store.layout import RepositoryStore
from modhost.store.manifest import readPackageManifest
from modhost.store.package import ModPackage
from modhost.store.shared_deps import SharedDependencies, readRequirementsFile

logger = logging.getLogger(__name__)

__all__ = ["SHARED_REQUIREMENTS_NAME", "ModRegistry"]



SHARED_REQUIREMENTS_NAME = "requirements.txt"



class ModRegistry:
    """
    Catalog of buckets and installed packages.

    Both maps are private; every mutation goes through a method that first
    performs the disk operation and only touches the catalog when it
    succeeded. Public operations never raise for expected failures: they
    return None/False and log why.
    """

    def __init__(self, store: RepositoryStore | None = None, *, autoLoad: bool = True):
        self.store = store if store is not None else RepositoryStore()
        self.sharedDeps = SharedDependencies(self.store)
        self._buckets: dict[str, ModBucket] = {}
        self._packages: dict[str, ModPackage] = {}
        if autoLoad:
            self.load()

    def __repr__(self) -> str:
        return f"ModRegistry(buckets={len(self._buckets)}, packages={len(self._packages)})"

    # ---------- Loading ----------

    def load(self) -> None:
        self._buckets.clear()
        self._packages.clear()

        for folderName in self.store.listBucketFolders():
            try:
                self._buckets[folderName] = ModBucket.loadExisting(self.store, folderName)
            except ModHostError as err:
                logger.warning("Skipping bucket '%s': %s", folderName, err)

        for name in self.store.listPackageFolders():
            try:
                self._packages[name] = ModPackage.load(self.store, name)
            except ModHostError as err:
                logger.warning("Skipping package '%s': %s", name, err)

        # Linked packages that were never installed still run from their source
        for name, sourcePath in (self.store.linkTable.data or {}).items():
            if name in self._packages or not sourcePath or not Path(sourcePath).is_dir():
                continue
            try:
                self._packages[name] = ModPackage.load(self.store, name)
            except ModHostError as err:
                logger.warning("Skipping linked package '%s': %s", name, err)

        logger.info("Registry loaded %d bucket(s), %d package(s)", len(self._buckets), len(self._packages))

    # ---------- Read access ----------

    @property
    def buckets(self) -> Mapping[str, ModBucket]:
        return MappingProxyType(self._buckets)

    @property
    def packages(self) -> Mapping[str, ModPackage]:
        return MappingProxyType(self._packages)

    def getBucket(self, name: str) -> ModBucket | None:
        return self._buckets.get(name)

    def getPackage(self, name: str) -> ModPackage | None:
        return self._packages.get(name)

    def listBuckets(self) -> list[ModBucket]:
        return list(self._buckets.values())

    def listPackages(self) -> list[ModPackage]:
        return list(self._packages.values())

    def bucketExists(self, url: str) -> bool:
        parsed = git.parseGitUrl(url)
        return parsed is not None and bucketFolderName(*parsed) in self._buckets

    def getModName(self, name: str) -> str:
        """Display name from the package's manifest, else the package name."""
        pkg = self._packages.get(name)
        path = Path(pkg.sourcePath) if pkg is not None and pkg.sourcePath else self.store.packagePath(name)
        manifest = readPackageManifest(path) if path.is_dir() else None
        return manifest.name if manifest is not None and manifest.name else name

    # ---------- Buckets ----------

    async def addBucket(self, url: str) -> ModBucket | None:
        try:
            bucket = await ModBucket.addFromSourceURL(self.store, url)
        except ModHostError as err:
            logger.warning("Cannot add bucket from '%s': %s", url, err)
            return None
        self._buckets[bucket.name] = bucket
        return bucket

    def removeBucket(self, name: str) -> bool:
        bucket = self._buckets.get(name)
        if bucket is None:
            return False
        if not bucket.remove():
            return False
        del self._buckets[name]
        return True

    async def updateBucket(self, name: str) -> bool:
        bucket = self._buckets.get(name)
        if bucket is None:
            return False
        return await bucket.update()

    async def updateAllBuckets(self) -> dict[str, bool]:
        results: dict[str, bool] = {}
        for name, bucket in list(self._buckets.items()):
            try:
                results[name] = await bucket.update()
            except Exception:
                logger.exception("Updating bucket '%s' failed", name)
                results[name] = False
        return results

    async def _ensureRemoteBucket(self, url: str) -> ModBucket | None:
        """Bucket for a remote pointer: reuse a known one, else clone it."""
        parsed = git.parseGitUrl(url)
        if parsed is None:
            logger.warning("Remote pointer '%s' is not a usable source URL", url)
            return None
        folderName = bucketFolderName(*parsed)
        if folderName in self._buckets:
            return self._buckets[folderName]
        try:
            bucket = await ModBucket.addFromSourceURL(self.store, url)
        except DuplicateBucket:
            bucket = ModBucket.loadExisting(self.store, folderName)
        except ModHostError as err:
            logger.warning("Cannot fetch remote bucket '%s': %s", url, err)
            return None
        self._buckets[bucket.name] = bucket
        return bucket

    # ---------- Packages ----------

    def _resolveBucket(self, bucket: ModBucket | str | None) -> ModBucket | None:
        if bucket is None or isinstance(bucket, ModBucket):
            return bucket
        return self._buckets.get(bucket)

    def findBucketFor(self, name: str) -> ModBucket | None:
        for bucket in list(self._buckets.values()):
            if bucket.hasPackage(name):
                return bucket
        return None

    async def _installFrom(self, bucket: ModBucket, name: str) -> ModPackage | None:
        remote = bucket.getRemoteLink(name)
        if remote:
            remoteBucket = await self._ensureRemoteBucket(remote)
            if remoteBucket is not None:
                pkg = await ModPackage.install(remoteBucket, name)
                if pkg is not None:
                    return pkg
        return await ModPackage.install(bucket, name)

    def _register(self, pkg: ModPackage) -> ModPackage:
        self._packages[pkg.name] = pkg
        requirements = readRequirementsFile(pkg.installPath / SHARED_REQUIREMENTS_NAME)
        if requirements:
            self.sharedDeps.updateSharedDependencies(pkg.name, requirements)
        return pkg

    async def installPkg(self, name: str, bucket: ModBucket | str | None = None) -> ModPackage | None:
        """
        With a bucket: a remote pointer is followed first, falling back to the
        bucket's own content. Without one: every bucket is tried in order.
        """
        if bucket is not None:
            target = self._resolveBucket(bucket)
            if target is None:
                logger.warning("Cannot install '%s': unknown bucket '%s'", name, bucket)
                return None
            pkg = await self._installFrom(target, name)
            return self._register(pkg) if pkg is not None else None

        for candidate in list(self._buckets.values()):
            pkg = await self._installFrom(candidate, name)
            if pkg is not None:
                return self._register(pkg)
        logger.warning("Package '%s' not installable from any bucket", name)
        return None

    async def uninstallPkg(self, name: str) -> bool:
        pkg = self._packages.get(name)
        if pkg is None:
            return False
        if not await pkg.uninstall():
            return False
        del self._packages[name]
        return True

    async def resetPkg(self, name: str, bucket: ModBucket | str | None = None) -> ModPackage | None:
        """Uninstall and reinstall; aborts (catalog untouched) when the uninstall fails."""
        if name not in self._packages:
            return None
        source = self._resolveBucket(bucket) or self.findBucketFor(name)
        if not await self.uninstallPkg(name):
            logger.warning("Reset of '%s' aborted: uninstall failed", name)
            return None
        return await self.installPkg(name, source)

    async def updatePkg(self, name: str, bucket: ModBucket | str | None = None) -> ModPackage | None:
        """Reinstall from the bucket to pick up its latest content."""
        return await self.resetPkg(name, bucket)

    async def upgradePkg(self, name: str, bucket: ModBucket | str | None = None, forceInstall: bool = False) -> bool:
        """In-place update that only proceeds when the bucket carries a newer version."""
        pkg = self._packages.get(name)
        source = self._resolveBucket(bucket) or self.findBucketFor(name)
        if pkg is None or source is None:
            return False
        return await pkg.update(source, forceInstall)

    async def reset(self) -> bool:
        """Remove every bucket and package, and forget every local link."""
        ok = True
        for name in list(self._buckets):
            if not self.removeBucket(name):
                ok = False
        for name, pkg in list(self._packages.items()):
            if pkg.sourcePath:
                pkg.unlink()
            if not pkg.isInstalled:
                # Link-only package: nothing on disk under pkgs/
                del self._packages[name]
                continue
            if not await self.uninstallPkg(name):
                ok = False
        links = self.store.linkTable
        for name in list(links.data or {}):
            links.deleteValue(name)
        return ok

    # ---------- Local links ----------

    def linkLocal(self, sourcePath: Path | str) -> bool:
        source = Path(sourcePath).expanduser()
        if not source.exists():
            logger.warning("Cannot link '%s': path does not exist", source)
            return False
        name = source.resolve().name
        pkg = self._packages.get(name)
        if pkg is not None:
            return pkg.link(source)
        self.store.linkTable.setValue(name, str(source.resolve()))
        try:
            self._packages[name] = ModPackage.load(self.store, name)
        except ModHostError as err:
            logger.warning("Linked '%s' but it is not a loadable package: %s", name, err)
        return True

    def unlinkLocal(self, name: str) -> bool:
        pkg = self._packages.get(name)
        if pkg is not None:
            pkg.unlink()
            if not pkg.isInstalled:
                del self._packages[name]
            return True
        self.store.linkTable.deleteValue(name)
        return True

    def getLocalPackages(self) -> dict[str, str]:
        return dict(self.store.linkTable.data or {})

    async def installSharedDependencies(self) -> dict[str, bool]:
        return await self.sharedDeps.installSharedDependencies()
