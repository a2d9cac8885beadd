# modhost/store/layout.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import ClassVar

from modhost.app.paths import (
    getBaseDir, BUCKETS_DIRNAME, PKGS_DIRNAME, SHARED_DEPS_DIRNAME, DOWNLOAD_DIRNAME,
    EXTENSIONS_DIRNAME, LINK_TABLE_FILENAME, STORAGE_FILENAME, HIDDEN_PLUGINS_FILENAME,
)
from modhost.core.jsonfile import JsonFile

logger = logging.getLogger(__name__)

__all__ = ["RepositoryStore", "isSkippedEntry"]



def isSkippedEntry(name: str) -> bool:
    """Dotfiles, underscore-prefixed names and the shared dependency folder are never packages."""
    return name.startswith(".") or name.startswith("_") or name == SHARED_DEPS_DIRNAME or name == "node_modules"



class RepositoryStore:
    """
    Owns the on-disk root:

        <baseDir>/
            buckets/<owner>_<repo>/...
            pkgs/<name>/...
            pkgs/site-packages/        shared third-party dependencies
            pkgs/localLinks.json       link table (name -> absolute source dir)
            download/                  staging area for archives
            extensions/<pluginId>/     downloaded plugins
    """

    # Base dirs whose layout was already created in this process
    _ensured: ClassVar[set[Path]] = set()

    def __init__(self, baseDir: Path | str | None = None):
        self.baseDir = Path(baseDir).expanduser() if baseDir is not None else getBaseDir()
        self.bucketsDir = self.baseDir / BUCKETS_DIRNAME
        self.pkgsDir = self.baseDir / PKGS_DIRNAME
        self.sharedDepsDir = self.pkgsDir / SHARED_DEPS_DIRNAME
        self.downloadDir = self.baseDir / DOWNLOAD_DIRNAME
        self.extensionsDir = self.baseDir / EXTENSIONS_DIRNAME
        self._linkTable: JsonFile | None = None
        self.ensureDirectories()

    def __repr__(self) -> str:
        return f"RepositoryStore({str(self.baseDir)!r})"

    def ensureDirectories(self, *, force: bool = False) -> None:
        key = self.baseDir.resolve()
        if key in RepositoryStore._ensured and not force:
            return
        for directory in (self.bucketsDir, self.pkgsDir, self.sharedDepsDir, self.downloadDir, self.extensionsDir):
            directory.mkdir(parents=True, exist_ok=True)
        RepositoryStore._ensured.add(key)
        logger.debug("Repository store ready at '%s'", self.baseDir)

    # ---------- Well-known files ----------

    @property
    def linkTable(self) -> JsonFile:
        if self._linkTable is None:
            self._linkTable = JsonFile(self.pkgsDir / LINK_TABLE_FILENAME, {})
        return self._linkTable

    def storageFile(self) -> JsonFile:
        return JsonFile(self.baseDir / STORAGE_FILENAME, {})

    def hiddenPluginsFile(self) -> JsonFile:
        return JsonFile(self.baseDir / HIDDEN_PLUGINS_FILENAME, [])

    # ---------- Paths ----------

    def bucketPath(self, name: str) -> Path:
        return self.bucketsDir / name

    def packagePath(self, name: str) -> Path:
        return self.pkgsDir / name

    def isReservedName(self, name: str) -> bool:
        return name == SHARED_DEPS_DIRNAME

    def listBucketFolders(self) -> list[str]:
        return self._listFolders(self.bucketsDir)

    def listPackageFolders(self) -> list[str]:
        return self._listFolders(self.pkgsDir)

    @staticmethod
    def _listFolders(root: Path) -> list[str]:
        if not root.is_dir():
            return []
        return sorted(entry.name for entry in root.iterdir() if entry.is_dir() and not isSkippedEntry(entry.name))
