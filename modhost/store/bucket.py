# modhost/store/bucket.py
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Literal, overload

from modhost.core.errors import BucketNotFound, CloneFailed, DuplicateBucket, InvalidManifestError, InvalidSourceURL
from modhost.store.layout import RepositoryStore, isSkippedEntry
from modhost.store.manifest import (
    BUCKET_INDEX, PACKAGE_MANIFEST, BucketIndexEntry, PackageManifest, RemotePointer,
    readBucketIndex, readPackageManifest,
)
from modhost.store.package import ModPackage
from modhost.store import git

logger = logging.getLogger(__name__)

__all__ = ["BucketKind", "bucketFolderName", "ModBucket"]



BucketKind = Literal["bucket", "package"]



def bucketFolderName(owner: str, repo: str) -> str:
    return f"{owner}_{repo}"



def _entryName(entry: BucketIndexEntry) -> str:
    return entry.name if isinstance(entry, RemotePointer) else entry



class ModBucket:
    """
    A cloned repository that provides packages.

    kind "package": the repository root is itself one package (mod.json at
    the root, or legacy .py files without mods.json).
    kind "bucket": packages are listed in mods.json (bare names or remote
    pointers) or, when no index exists, are the visible subdirectories.
    """

    def __init__(
        self,
        store: RepositoryStore,
        name: str,
        kind: BucketKind,
        entries: list[BucketIndexEntry],
        sourceUrl: str | None = None,
    ):
        self.store = store
        self.name = name
        self.kind: BucketKind = kind
        self.entries = entries
        self.sourceUrl = sourceUrl

    def __repr__(self) -> str:
        return f"ModBucket({self.name!r}, kind={self.kind!r}, packages={self.packageNames!r})"

    @property
    def path(self) -> Path:
        return self.store.bucketPath(self.name)

    @property
    def packageNames(self) -> list[str]:
        return [_entryName(entry) for entry in self.entries]

    # ---------- Construction ----------

    @classmethod
    async def addFromSourceURL(cls, store: RepositoryStore, url: str) -> ModBucket:
        parsed = git.parseGitUrl(url)
        if parsed is None:
            raise InvalidSourceURL(url)
        folderName = bucketFolderName(*parsed)
        target = store.bucketPath(folderName)
        if target.exists():
            raise DuplicateBucket(folderName)

        result = await git.cloneRepository(url, target)
        if not result.success:
            shutil.rmtree(target, ignore_errors=True)
            raise CloneFailed(url, result.output)

        kind, entries = cls._classify(target, folderName)
        logger.info("Added %s '%s' (%d package(s)) from %s", kind, folderName, len(entries), url)
        return cls(store, folderName, kind, entries, url)

    @classmethod
    def loadExisting(cls, store: RepositoryStore, folderName: str) -> ModBucket:
        path = store.bucketPath(folderName)
        if not path.is_dir():
            raise BucketNotFound(folderName)
        kind, entries = cls._classify(path, folderName, legacyRoot=True)
        return cls(store, folderName, kind, entries, git.readOriginUrl(path))

    @staticmethod
    def _classify(path: Path, folderName: str, *, legacyRoot: bool = False) -> tuple[BucketKind, list[BucketIndexEntry]]:
        """
        A root mod.json makes a package-kind bucket; otherwise mods.json, or
        failing that the subdirectories, list the packages. With `legacyRoot`
        a folder that has no subdirectory packages but root .py files is read
        back as a single legacy package.
        """
        if (path / PACKAGE_MANIFEST).exists():
            return "package", [folderName]
        indexPath = path / BUCKET_INDEX
        if indexPath.exists():
            return "bucket", readBucketIndex(indexPath)
        subdirs = sorted(
            child.name for child in path.iterdir()
            if child.is_dir() and not isSkippedEntry(child.name)
        )
        if legacyRoot and not subdirs and any(path.glob("*.py")):
            return "package", [folderName]
        return "bucket", list(subdirs)

    # ---------- Maintenance ----------

    async def update(self) -> bool:
        if not await git.isGitRepository(self.path):
            logger.warning("Bucket '%s' is not a git repository", self.name)
            return False
        result = await git.updateRepository(self.path)
        if not result.success:
            return False
        kind, entries = self._classify(self.path, self.name, legacyRoot=True)
        self.kind, self.entries = kind, entries
        return True

    def remove(self) -> bool:
        if not self.path.exists():
            return False
        shutil.rmtree(self.path)
        logger.info("Removed bucket '%s'", self.name)
        return True

    # ---------- Package lookup ----------

    def _aliases(self) -> set[str]:
        """Names a package-kind bucket answers to: folder, repository, manifest name."""
        aliases = {self.name}
        parsed = git.parseGitUrl(self.sourceUrl) if self.sourceUrl else None
        if parsed is not None:
            aliases.add(parsed[1])
        elif "_" in self.name:
            aliases.add(self.name.split("_", 1)[1])
        manifest = readPackageManifest(self.path)
        if manifest is not None:
            aliases.add(manifest.name)
        return aliases

    def hasPackage(self, name: str) -> bool:
        if self.kind == "package":
            return name in self._aliases()
        return name in self.packageNames

    def packagePath(self, name: str) -> Path | None:
        """Where the content for `name` lives inside this bucket, or None."""
        if self.kind == "package":
            return self.path if name in self._aliases() and self.path.is_dir() else None
        if name not in self.packageNames or self.getRemoteLink(name):
            return None
        candidate = (self.path / name).resolve()
        if not candidate.is_relative_to(self.path.resolve()) or not candidate.is_dir():
            return None
        return candidate

    def getRemoteLink(self, name: str) -> str | None:
        if self.kind != "bucket":
            return None
        for entry in self.entries:
            if isinstance(entry, RemotePointer) and entry.name == name:
                return entry.remote
        return None

    def getPackageManifest(self, name: str) -> PackageManifest | None:
        path = self.packagePath(name)
        return readPackageManifest(path) if path is not None else None

    def _matchNames(self, name: str) -> list[str]:
        if self.kind == "package":
            aliases = self._aliases()
            if name in aliases or any(name in alias for alias in aliases):
                return [self.name if name not in aliases else name]
            return []
        names = self.packageNames
        if name in names:
            return [name] + [candidate for candidate in names if candidate != name and name in candidate]
        return [candidate for candidate in names if name in candidate]

    @overload
    def getPackage(self, name: str, singleOnly: Literal[True] = ...) -> ModPackage | None: ...
    @overload
    def getPackage(self, name: str, singleOnly: Literal[False]) -> list[ModPackage]: ...

    def getPackage(self, name: str, singleOnly: bool = True):
        """
        Packages whose name equals or contains `name`. Exact matches come first.
        Listed entries missing on disk (and remote pointers) are skipped.
        """
        found: list[ModPackage] = []
        for candidate in self._matchNames(name):
            if self.getRemoteLink(candidate):
                logger.debug("'%s' in bucket '%s' is a remote pointer; no local content", candidate, self.name)
                continue
            path = self.packagePath(candidate)
            if path is None:
                logger.warning("Bucket '%s' lists '%s' but it is missing on disk", self.name, candidate)
                continue
            try:
                pkg = ModPackage.fromDirectory(path, candidate, self.store)
            except InvalidManifestError as err:
                logger.warning("Skipping '%s' in bucket '%s': %s", candidate, self.name, err)
                continue
            if singleOnly:
                return pkg
            found.append(pkg)
        return None if singleOnly else found
