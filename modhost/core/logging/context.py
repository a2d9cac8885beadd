# modhost/core/logging/context.py
from __future__ import annotations
import contextlib
import contextvars

# Per-task log context (pluginId, packageName, bucket, ...)
_logContextVar: contextvars.ContextVar[dict[str, object] | None] = contextvars.ContextVar("modhost.logctx", default=None)

def setLogContext(**kvs):
    """Set or update per-log context values. None values are ignored."""
    current = dict(_logContextVar.get() or {})
    for key, value in kvs.items():
        if value is not None:
            current[key] = value
    _logContextVar.set(current)

def clearLogContext():
    _logContextVar.set(None)

def getLogContext():
    """Return current context dict or None."""
    return _logContextVar.get()

@contextlib.contextmanager
def logContext(**kvs):
    """Scoped variant of setLogContext; restores the previous context on exit."""
    token = _logContextVar.set(dict(_logContextVar.get() or {}))
    try:
        setLogContext(**kvs)
        yield
    finally:
        _logContextVar.reset(token)
