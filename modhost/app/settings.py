# modhost/app/settings.py
from __future__ import annotations
import json5
from pydantic import JsonValue
from typing import Any, cast
from functools import lru_cache

from modhost.app.paths import getBaseDir
from modhost.core.dictpath import getByPath

import logging
logger = logging.getLogger(__name__)

__all__ = [
    "SETTINGS_FILENAME", "SETTINGS", "loadUserSettings", "loadSettings",
    "reloadSettings", "deepMerge", "settings", "settingsBool",
]



SETTINGS_FILENAME = "modhost.json5"
SETTINGS: JsonValue = {
    "__source": "MODHOST_DEFAULTS",
    "host": {"apiBaseUrl": "http://localhost:41595/api", "timeoutMs": 10000},
    "events": {"pollIntervalMs": 1000},
    "scripts": {"interpreter": "python", "contextEnvVar": "MODHOST_CONTEXT", "timeoutMs": None},
    "git": {"executable": "git"},
    "debug": {"devModeEnabled": True},
    "logging": {"level": None, "file": "modhost.log", "maxBytes": 10 * 1024 * 1024, "backupCount": 5},
}



def loadUserSettings() -> JsonValue:
    """`<baseDir>/modhost.json5`, or {} when it is missing, unreadable or not an object."""
    filePath = getBaseDir() / SETTINGS_FILENAME
    if not filePath.is_file():
        return {}
    try:
        data = json5.loads(filePath.read_text(encoding="utf-8"))
    except (OSError, ValueError) as err:
        logger.error("Failed to parse '%s': %s", filePath, err)
        return {}
    if not isinstance(data, dict):
        logger.error("Ignoring '%s': top level must be an object, got %s", filePath, type(data).__name__)
        return {}
    return cast(JsonValue, data)



@lru_cache(maxsize=1)
def loadSettings():
    return deepMerge(SETTINGS, loadUserSettings())



def reloadSettings() -> None:
    """Forget the merged settings so the next read picks up file/env changes."""
    loadSettings.cache_clear()



def deepMerge(first: JsonValue, second: JsonValue) -> JsonValue:
    """
    Returns a new JsonValue where keys from `second` override/extend `first`.
    Only merges recursively when BOTH sides are JSON objects (dicts).
    Any other right-hand value replaces the left one.
    """
    if isinstance(first, dict) and isinstance(second, dict):
        out: dict[str, JsonValue] = dict(first)
        for key, value in second.items():
            out[key] = deepMerge(out[key], cast(JsonValue, value)) if key in out else cast(JsonValue, value)
        return cast(JsonValue, out)
    return cast(JsonValue, second)

# ---------- Ergonomic accessors over merged settings ----------

def settings(path: str, default: Any = None) -> Any:
    """Returns value at `path` from merged settings, or `default` if missing."""
    val = getByPath(loadSettings(), path)
    return default if val is None else val



def settingsBool(path: str, default: bool = False) -> bool:
    val = getByPath(loadSettings(), path)
    if isinstance(val, bool):
        return val
    if val is None:
        return default
    return bool(val)
