# modhost/core/logging/formatters.py
from __future__ import annotations

import logging

from modhost.core.jsonutils import safeJsonDumps
from modhost.core.redaction import redactText
from .context import getLogContext

__all__ = ["RedactingFormatter", "JsonFormatter", "DevFormatter", "CONTEXT_KEYS"]

# Context values shown on console lines, in this order
CONTEXT_KEYS = ("pluginId", "packageName", "bucket")



class RedactingFormatter(logging.Formatter):
    """Runs another formatter, then masks session tokens in its output."""
    def __init__(self, inner: logging.Formatter):
        super().__init__()
        self._inner = inner

    def format(self, record: logging.LogRecord) -> str:
        rendered = self._inner.format(record)
        try:
            return redactText(rendered)
        except Exception:
            return rendered



class JsonFormatter(logging.Formatter):
    """
    One JSON object per line for the rotating log file. Plugin and package
    ids from the log context are lifted to top-level fields so the file can
    be filtered per mod.
    """
    def format(self, record: logging.LogRecord) -> str:
        ctx = dict(getLogContext() or {})
        entry: dict[str, object] = {
            "ts": int(record.created * 1000),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in ("pluginId", "packageName"):
            if key in ctx:
                entry[key] = ctx.pop(key)
        if ctx:
            entry["ctx"] = ctx

        if record.exc_info:
            excType, excValue, _tb = record.exc_info
            entry["exc"] = {
                "type": getattr(excType, "__name__", "Error"),
                "message": str(excValue),
                "stack": self.formatException(record.exc_info),
            }
        return safeJsonDumps(entry)



class DevFormatter(logging.Formatter):
    """`LEVEL: [logger] message [pluginId/packageName]` for the console."""
    def format(self, record: logging.LogRecord) -> str:
        ctx = getLogContext() or {}
        tags = [str(ctx[key]) for key in CONTEXT_KEYS if ctx.get(key)]
        suffix = f" [{'/'.join(tags)}]" if tags else ""

        msg = record.getMessage()
        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)
        if record.stack_info:
            msg += "\n" + str(record.stack_info)
        return f"{record.levelname}: [{record.name}] {msg}{suffix}"
