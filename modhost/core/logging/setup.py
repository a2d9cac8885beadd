# modhost/core/logging/setup.py
from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from modhost.app.paths import getBaseDir
from modhost.app.settings import settings, settingsBool
from .formatters import DevFormatter, JsonFormatter, RedactingFormatter

__all__ = ["QUIET_LOGGERS", "configureLogging"]



# Client libraries whose request chatter stays out of the mod logs
QUIET_LOGGERS = ("httpx", "httpcore")



def _resolveLevel() -> int:
    configured = settings("logging.level", None)
    if configured:
        level = logging.getLevelName(str(configured).upper())
        if isinstance(level, int):
            return level
    return logging.DEBUG if settingsBool("debug.devModeEnabled", True) else logging.INFO



def configureLogging(logDir: Path | None = None) -> logging.Logger:
    """
    Install the console and file handlers on the root logger.

    Console lines use DevFormatter; the file under the base directory (or
    `logDir`) gets one JSON record per line and rotates by size. Both pass
    through RedactingFormatter, so a host API token never lands in a sink.
    Calling it again replaces the handlers instead of stacking them.
    """
    level = _resolveLevel()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(RedactingFormatter(DevFormatter()))
    root.addHandler(console)

    fileName = settings("logging.file", "modhost.log")
    if fileName:
        targetDir = Path(logDir) if logDir is not None else getBaseDir()
        targetDir.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            targetDir / str(fileName),
            maxBytes=int(settings("logging.maxBytes", 10 * 1024 * 1024)),
            backupCount=int(settings("logging.backupCount", 5)),
            encoding="utf-8",
        )
        rotating.setLevel(level)
        rotating.setFormatter(RedactingFormatter(JsonFormatter()))
        root.addHandler(rotating)

    for name in QUIET_LOGGERS:
        quiet = logging.getLogger(name)
        quiet.setLevel(logging.WARNING)
        quiet.propagate = False

    return root
