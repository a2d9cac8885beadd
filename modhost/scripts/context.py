# modhost/scripts/context.py
from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from modhost.app.settings import settings
from modhost.core.errors import InvalidManifestError
from modhost.core.jsonutils import safeJsonDumps
from modhost.host.types import HostSelection
from modhost.store.manifest import PLUGIN_MANIFEST, loadPluginManifest

logger = logging.getLogger(__name__)

__all__ = [
    "contextEnvVar", "buildScriptContext", "serializeScriptContext",
    "readScriptContext", "resolveScriptPluginId",
]



def contextEnvVar() -> str:
    return str(settings("scripts.contextEnvVar", "MODHOST_CONTEXT"))



def buildScriptContext(selection: HostSelection, token: str | None) -> dict[str, Any]:
    """The single blob a script receives: `{selected:{folders, items}, apiToken}`."""
    return {"selected": selection.serialize(), "apiToken": token or ""}



def serializeScriptContext(context: Mapping[str, Any]) -> str:
    return safeJsonDumps(dict(context))



def readScriptContext(env: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Script-side counterpart: decode the blob from the environment (empty dict when absent)."""
    raw = (env if env is not None else os.environ).get(contextEnvVar())
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError as err:
        logger.warning("Script context is not valid JSON: %s", err)
        return {}
    return value if isinstance(value, dict) else {}



def resolveScriptPluginId(scriptPath: Path, explicit: str | None = None) -> str:
    """
    Plugin id for a script: explicit value, else plugin.json beside the
    script, else the directory after an `extensions` path segment, else the
    script's stem.
    """
    if explicit:
        return explicit
    manifestPath = scriptPath.parent / PLUGIN_MANIFEST
    if manifestPath.is_file():
        try:
            return loadPluginManifest(manifestPath).id
        except (InvalidManifestError, ValidationError) as err:
            logger.warning("Ignoring unreadable '%s': %s", manifestPath, err)
    parts = scriptPath.parts
    if "extensions" in parts:
        idx = parts.index("extensions")
        if idx + 1 < len(parts) - 1:
            return parts[idx + 1]
    return scriptPath.stem
