# modhost/core/logging/__init__.py
from __future__ import annotations

from .context import setLogContext, clearLogContext, getLogContext, logContext
from .setup import configureLogging
from .util import getModLogger

__all__ = [
    "configureLogging",
    "getModLogger",
    "setLogContext",
    "clearLogContext",
    "getLogContext",
    "logContext",
]
