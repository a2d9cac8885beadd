# modhost/core/logging/util.py
from __future__ import annotations

import logging

__all__ = ["MOD_LOGGER_PREFIX", "getModLogger"]

MOD_LOGGER_PREFIX = "mods"



def getModLogger(modId: str) -> logging.Logger:
    """Logger handed to mods and plugins; everything they log lands under `mods.`."""
    return logging.getLogger(f"{MOD_LOGGER_PREFIX}.{str(modId).strip()}")
