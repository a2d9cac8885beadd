# modhost/runner/loader.py
from __future__ import annotations

import hashlib
import importlib.util
import inspect
import logging
from pathlib import Path
from types import ModuleType

from modhost.runner.base import DirectExport, FactoryExport, ModExport

logger = logging.getLogger(__name__)

__all__ = ["FACTORY_ATTR", "EXPORT_ATTR", "quickImport", "loadModule", "clearModuleCache", "resolveExport"]



FACTORY_ATTR = "createMod"
EXPORT_ATTR = "mod"

_moduleCache: dict[Path, ModuleType] = {}



def quickImport(path: Path) -> ModuleType:
    # Unique module name per file so two mods with the same stem never clash
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    spec = importlib.util.spec_from_file_location(f"modhost_mod_{path.stem}_{digest}", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Could not load module from {path}")
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod



def loadModule(path: Path, *, useCache: bool = True) -> ModuleType:
    key = path.resolve()
    if useCache and key in _moduleCache:
        return _moduleCache[key]
    module = quickImport(key)
    _moduleCache[key] = module
    logger.debug("Loaded mod module '%s'", key)
    return module



def clearModuleCache(path: Path | None = None) -> None:
    if path is None:
        _moduleCache.clear()
    else:
        _moduleCache.pop(path.resolve(), None)



def resolveExport(module: ModuleType) -> ModExport:
    """
    Decide once, at load time, how a module exposes its mod:
      - `createMod` callable           -> FactoryExport
      - `mod` function or class         -> FactoryExport
      - `mod` any other object          -> DirectExport
      - neither                         -> DirectExport(module)
    """
    factory = getattr(module, FACTORY_ATTR, None)
    if callable(factory):
        return FactoryExport(factory)

    exported = getattr(module, EXPORT_ATTR, None)
    if exported is None:
        return DirectExport(module)
    if inspect.isfunction(exported) or inspect.isclass(exported):
        return FactoryExport(exported)
    return DirectExport(exported)
