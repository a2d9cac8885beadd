# modhost/plugins/download.py
from __future__ import annotations

import logging
import shutil
import tempfile
import zipfile
from pathlib import Path, PurePosixPath

import httpx

from modhost.app.settings import settings
from modhost.core.errors import DownloadFailed, InvalidManifestError, InvalidPluginArchive, InvalidSourceURL
from modhost.plugins.sdk import FileUtils
from modhost.plugins.types import PLUGIN_ENTRY
from modhost.store.layout import RepositoryStore
from modhost.store.manifest import PLUGIN_MANIFEST, loadPluginManifest

logger = logging.getLogger(__name__)

__all__ = ["ARCHIVE_NAME", "PluginDownload", "findPluginRoot"]



ARCHIVE_NAME = "new.zip"
_REQUIRED = (PLUGIN_MANIFEST, PLUGIN_ENTRY)



def findPluginRoot(names: list[str]) -> str | None:
    """
    Return the archive prefix holding plugin.json and main.py: "" when they
    sit at the root, "<dir>/" when they sit one level down. None otherwise.
    """
    files = {name for name in names if not name.endswith("/")}
    if all(required in files for required in _REQUIRED):
        return ""
    tops = {PurePosixPath(name).parts[0] for name in files if len(PurePosixPath(name).parts) > 1}
    for top in sorted(tops):
        if all(f"{top}/{required}" in files for required in _REQUIRED):
            return f"{top}/"
    return None



class PluginDownload:
    def __init__(self, store: RepositoryStore, *, transport: httpx.AsyncBaseTransport | None = None, timeoutMs: int | None = None):
        self.store = store
        self._transport = transport
        self.timeoutMs = int(timeoutMs if timeoutMs is not None else settings("host.timeoutMs", 10_000))

    async def downloadPlugin(self, url: str) -> Path:
        """Download a .zip plugin and install it under extensions/. Returns the installed directory."""
        if not url.lower().endswith(".zip"):
            raise InvalidSourceURL(url, "plugins must be downloaded as a .zip archive")

        self.store.ensureDirectories()
        archive = self.store.downloadDir / ARCHIVE_NAME
        await self._fetch(url, archive)
        try:
            return self.validateAndExtractPlugin(archive, self.store.extensionsDir)
        finally:
            archive.unlink(missing_ok=True)

    async def _fetch(self, url: str, target: Path) -> None:
        timeout = httpx.Timeout(max(self.timeoutMs, 1) / 1_000)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport, follow_redirects=True) as client:
                async with client.stream("GET", url) as resp:
                    if resp.status_code >= 400:
                        raise DownloadFailed(url, f"HTTP {resp.status_code}")
                    with target.open("wb") as fh:
                        async for chunk in resp.aiter_bytes():
                            fh.write(chunk)
        except httpx.HTTPError as err:
            target.unlink(missing_ok=True)
            raise DownloadFailed(url, str(err)) from err
        logger.info("Downloaded '%s' to '%s'", url, target)

    def validateAndExtractPlugin(self, archive: Path, extensionsDir: Path) -> Path:
        """
        Check the archive listing before touching the disk, extract into a
        scratch directory, then move the plugin folder to extensions/<id>,
        replacing an older copy. Invalid archives are deleted.
        """
        try:
            names = FileUtils.listZipContents(archive)
        except zipfile.BadZipFile as err:
            archive.unlink(missing_ok=True)
            raise InvalidPluginArchive(archive, "not a zip file") from err

        prefix = findPluginRoot(names)
        if prefix is None:
            archive.unlink(missing_ok=True)
            raise InvalidPluginArchive(archive, f"must contain {PLUGIN_MANIFEST} and {PLUGIN_ENTRY}")

        extensionsDir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(dir=extensionsDir, prefix=".extract-") as scratch:
            try:
                FileUtils.extractZip(archive, Path(scratch))
            except ValueError as err:
                archive.unlink(missing_ok=True)
                raise InvalidPluginArchive(archive, str(err)) from err

            source = Path(scratch) / prefix if prefix else Path(scratch)
            try:
                manifest = loadPluginManifest(source)
            except InvalidManifestError as err:
                archive.unlink(missing_ok=True)
                raise InvalidPluginArchive(archive, err.reason) from err

            target = extensionsDir / manifest.id
            if not target.resolve().is_relative_to(extensionsDir.resolve()) or target.resolve() == extensionsDir.resolve():
                archive.unlink(missing_ok=True)
                raise InvalidPluginArchive(archive, f"unusable plugin id '{manifest.id}'")
            if target.exists():
                shutil.rmtree(target)
            shutil.copytree(source, target)

        logger.info("Installed plugin '%s' into '%s'", manifest.id, target)
        return target
