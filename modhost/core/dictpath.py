# modhost/core/dictpath.py
from __future__ import annotations
from typing import Any
from collections.abc import Mapping

__all__ = ["getByPath"]



def getByPath(obj: Any, path: str, default: Any | None = None) -> Any:
    """
    Returns the value at dotted `path` inside nested mappings, or `default`
    when any hop is missing. Empty segments ("a..b") are treated as missing.
    """
    if not isinstance(path, str) or not path:
        return default
    current: Any = obj
    for part in path.split("."):
        if not part or not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current
