# modhost/store/shared_deps.py
from __future__ import annotations

import asyncio
import logging
import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from modhost.core.errors import RequirementsInstallError
from modhost.core.jsonfile import JsonFile
from modhost.semver.dotted import compareVersions

if TYPE_CHECKING:
    from modhost.store.layout import RepositoryStore

logger = logging.getLogger(__name__)

__all__ = [
    "REQUIREMENTS_INDEX", "readRequirementsFile", "parseRequirement",
    "pipInstall", "SharedDependencies",
]



REQUIREMENTS_INDEX = "requirements.json"
_PINNED_RE = re.compile(r"^\s*(?P<name>[A-Za-z0-9][A-Za-z0-9._\-\[\]]*)\s*(?:==\s*(?P<version>[0-9][0-9.]*))?\s*$")



def readRequirementsFile(path: Path) -> list[str]:
    """Non-empty, non-comment lines of a requirements file."""
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return []
    return [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]



def parseRequirement(line: str) -> tuple[str, str | None] | None:
    """`name` or `name==1.2.3`; anything fancier is not tracked in the shared index."""
    match = _PINNED_RE.match(line)
    if not match:
        return None
    return match.group("name").lower(), match.group("version")



async def pipInstall(requirements: list[str], target: Path) -> str:
    """pip-install into `target` with the running interpreter. Raises RequirementsInstallError."""
    if not requirements:
        return ""
    target.mkdir(parents=True, exist_ok=True)
    args = [sys.executable, "-m", "pip", "install", "--disable-pip-version-check", "--target", str(target), *requirements]
    logger.info("Installing %s into '%s'", ", ".join(requirements), target)
    try:
        proc = await asyncio.create_subprocess_exec(
            *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as err:
        raise RequirementsInstallError(f"Failed to spawn pip: {err}") from err
    outBytes, _ = await proc.communicate()
    output = outBytes.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        raise RequirementsInstallError(f"pip exited with {proc.returncode}", output)
    return output



class SharedDependencies:
    """
    Third-party requirements shared by all installed packages, kept in
    `pkgs/site-packages`. The index maps a requirement name to the highest
    version any package asked for, plus who asked.
    """

    def __init__(self, store: RepositoryStore):
        self.store = store
        self.index = JsonFile(store.sharedDepsDir / REQUIREMENTS_INDEX, {})

    def getSharedDependencies(self) -> dict[str, str | None]:
        data = self.index.data or {}
        return {name: (entry or {}).get("version") for name, entry in data.items()}

    def updateSharedDependencies(self, pkgName: str, requirements: list[str]) -> dict[str, str | None]:
        """Merge a package's requirements; the higher version wins. Returns entries that changed."""
        data = dict(self.index.data or {})
        changed: dict[str, str | None] = {}
        for line in requirements:
            parsed = parseRequirement(line)
            if parsed is None:
                logger.warning("Package '%s': requirement '%s' is not name[==version]; not shared", pkgName, line)
                continue
            name, version = parsed
            entry = dict(data.get(name) or {"version": None, "requiredBy": []})
            current = entry.get("version")
            if version and (current is None or compareVersions(version, current) > 0):
                entry["version"] = version
                changed[name] = version
            elif name not in data:
                changed[name] = current
            requiredBy = set(entry.get("requiredBy") or [])
            requiredBy.add(pkgName)
            entry["requiredBy"] = sorted(requiredBy)
            data[name] = entry
        self.index.data = data
        return changed

    async def installSharedDependencies(self) -> dict[str, bool]:
        results: dict[str, bool] = {}
        for name, version in self.getSharedDependencies().items():
            spec = f"{name}=={version}" if version else name
            try:
                await pipInstall([spec], self.store.sharedDepsDir)
                results[name] = True
            except RequirementsInstallError as err:
                logger.error("Shared dependency '%s' failed to install: %s", spec, err)
                results[name] = False
        return results
