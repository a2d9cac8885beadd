# modhost/core/jsonutils.py
from __future__ import annotations

import json
from collections.abc import Mapping, Iterable
from dataclasses import is_dataclass, asdict
from enum import Enum
from pathlib import Path
from typing import Any

__all__ = ["safeJsonDumps", "prettyJsonDumps", "tryJSONify"]



def safeJsonDumps(obj: Any) -> str:
    """
    Compact JSON (",", ":" separators, no NaN). Non-ASCII characters are kept as-is.
    Falls back to tryJSONify when the payload holds values json cannot encode.
    """
    if hasattr(obj, "model_dump"):
        obj = obj.model_dump(exclude_none=True)
    try:
        return json.dumps(obj, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return json.dumps(tryJSONify(obj), ensure_ascii=False, allow_nan=False, separators=(",", ":"))



def prettyJsonDumps(obj: Any) -> str:
    """Indented JSON used for files users may open by hand (link table, storage)."""
    try:
        return json.dumps(obj, ensure_ascii=False, indent=2)
    except (TypeError, ValueError):
        return json.dumps(tryJSONify(obj), ensure_ascii=False, indent=2)



def tryJSONify(obj: Any, *, _seen: set[int] | None = None, _depth: int = 0, _maxDepth: int = 10) -> Any:
    """
    Best-effort conversion into JSON-friendly values.

    Scalars pass through, Path becomes str, Enum its value, dataclasses and
    pydantic models become dicts, other iterables become lists and anything
    else falls back to repr(). Cycles and excessive depth are cut off.
    """
    if _seen is None:
        _seen = set()

    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj

    oid = id(obj)
    if oid in _seen:
        return f"<circular_ref {type(obj).__name__}>"
    if _depth > _maxDepth:
        return f"<max_depth_exceeded {type(obj).__name__}>"
    _seen.add(oid)

    nxt = {"_seen": _seen, "_depth": _depth + 1, "_maxDepth": _maxDepth}

    if isinstance(obj, BaseException):
        return {"type": type(obj).__name__, "message": str(obj)}
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, Enum):
        return tryJSONify(obj.value, **nxt)
    if is_dataclass(obj) and not isinstance(obj, type):
        return tryJSONify(asdict(obj), **nxt)
    if hasattr(obj, "model_dump"):
        try:
            return tryJSONify(obj.model_dump(), **nxt)
        except Exception:
            return repr(obj)
    if isinstance(obj, Mapping):
        return {str(key): tryJSONify(value, **nxt) for key, value in obj.items()}
    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).decode("utf-8", errors="replace")
    if isinstance(obj, Iterable):
        return [tryJSONify(value, **nxt) for value in obj]

    return repr(obj)
