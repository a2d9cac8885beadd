# modhost/store/manifest.py
from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from modhost.core.errors import InvalidManifestError
from modhost.semver.dotted import parseDottedVersion

logger = logging.getLogger(__name__)

__all__ = [
    "PACKAGE_MANIFEST", "BUCKET_INDEX", "PLUGIN_MANIFEST", "LEGACY_TYPE", "PLUGIN_EVENTS",
    "PackageManifest", "RemotePointer", "BucketIndexEntry", "PluginManifest",
    "loadPackageManifest", "readPackageManifest", "readBucketIndex", "loadPluginManifest",
]



PACKAGE_MANIFEST = "mod.json"
BUCKET_INDEX = "mods.json"
PLUGIN_MANIFEST = "plugin.json"
LEGACY_TYPE = "v1"

PLUGIN_EVENTS = ("onStart", "itemChange", "folderChange", "libraryChange")



class PackageManifest(BaseModel):
    """Validated mod.json. Unknown keys are tolerated and dropped."""
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    version: str
    entryPoint: str | None = None
    description: str | None = None

    @field_validator("type")
    @classmethod
    def _noLegacyManifest(cls, value: str) -> str:
        if value == LEGACY_TYPE:
            raise ValueError("legacy (v1) packages must not ship a manifest")
        return value

    @field_validator("version")
    @classmethod
    def _dottedVersion(cls, value: str) -> str:
        parseDottedVersion(value)
        return value.strip()



class RemotePointer(BaseModel):
    """mods.json entry whose content lives in another repository."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    remote: str = Field(min_length=1)



BucketIndexEntry = str | RemotePointer



class PluginManifest(BaseModel):
    """plugin.json of a downloadable plugin."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str | None = None
    type: str = "standard"
    pythonEnv: str | None = None
    on: list[str] = Field(default_factory=list)

    @field_validator("on", mode="before")
    @classmethod
    def _singleEvent(cls, value):
        if isinstance(value, str):
            return [value]
        return value



def _readJson(path: Path):
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise
    except (OSError, ValueError) as err:
        raise InvalidManifestError(path, f"not valid JSON: {err}") from err



def loadPackageManifest(path: Path) -> PackageManifest:
    """Parse a mod.json (file or containing directory). Raises InvalidManifestError."""
    path = path / PACKAGE_MANIFEST if path.is_dir() else path
    raw = _readJson(path)
    try:
        return PackageManifest.model_validate(raw)
    except ValidationError as err:
        raise InvalidManifestError(path, str(err)) from err



def readPackageManifest(path: Path) -> PackageManifest | None:
    """Lenient variant: absent or broken manifests yield None (broken ones are logged)."""
    try:
        return loadPackageManifest(path)
    except FileNotFoundError:
        return None
    except InvalidManifestError as err:
        logger.warning("%s", err)
        return None



def readBucketIndex(path: Path) -> list[BucketIndexEntry]:
    """
    Parse mods.json into bare names and RemotePointers. A malformed index
    degrades to an empty list; individual malformed entries are skipped.
    """
    try:
        raw = _readJson(path)
    except (FileNotFoundError, InvalidManifestError) as err:
        logger.warning("Cannot read bucket index '%s': %s", path, err)
        return []
    if not isinstance(raw, list):
        logger.warning("Bucket index '%s' is not a JSON array; treating as empty", path)
        return []

    entries: list[BucketIndexEntry] = []
    for item in raw:
        if isinstance(item, str) and item.strip():
            entries.append(item.strip())
            continue
        try:
            entries.append(RemotePointer.model_validate(item))
        except ValidationError:
            logger.warning("Skipping malformed entry in '%s': %r", path, item)
    return entries



def loadPluginManifest(path: Path) -> PluginManifest:
    path = path / PLUGIN_MANIFEST if path.is_dir() else path
    raw = _readJson(path)
    try:
        return PluginManifest.model_validate(raw)
    except ValidationError as err:
        raise InvalidManifestError(path, str(err)) from err
