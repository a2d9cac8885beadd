# modhost/runner/base.py
from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, TYPE_CHECKING
from collections.abc import Callable

if TYPE_CHECKING:
    from modhost.host.dom import Element
    from modhost.runner.events import HostEventDispatcher

__all__ = [
    "ModLifecycleHooks", "ModType", "ModRunner", "ModContext",
    "FactoryExport", "DirectExport", "ModExport", "instantiateExport",
]



class ModLifecycleHooks:
    """
    Install-time hooks invoked by the Package component around copy/delete.

    Implementations may override any subset of methods. All methods have
    safe no-op defaults. `targetPath` is always the installed location.
    """

    async def preInstall(self, targetPath: Path) -> None:
        return

    async def postInstall(self, targetPath: Path) -> None:
        return

    async def preUninstall(self, targetPath: Path) -> None:
        return

    async def postUninstall(self, targetPath: Path) -> None:
        return



@dataclass
class ModContext:
    """Capabilities handed to a mod instance. Nothing else is injected."""
    name: str
    path: Path
    logger: logging.Logger
    host: Any = None
    storage: Any = None
    webapi: Any = None
    dispatcher: HostEventDispatcher | None = None
    extras: dict[str, Any] = field(default_factory=dict)



@dataclass(frozen=True)
class FactoryExport:
    """Module exported a callable; it is called once with the ModContext."""
    factory: Callable[[ModContext], Any]



@dataclass(frozen=True)
class DirectExport:
    """Module exported a ready object (or is the object itself)."""
    value: Any



ModExport = FactoryExport | DirectExport



async def instantiateExport(export: ModExport, context: ModContext) -> Any:
    if isinstance(export, FactoryExport):
        instance = export.factory(context)
        if inspect.isawaitable(instance):
            instance = await instance
        return instance
    return export.value



class ModRunner(ABC):
    """A loaded mod that can be mounted into (and removed from) a container."""

    @property
    @abstractmethod
    def isMounted(self) -> bool: ...

    @abstractmethod
    async def load(self) -> None: ...

    @abstractmethod
    async def mount(self, container: Element) -> None: ...

    @abstractmethod
    async def unmount(self) -> None: ...



class ModType(ModLifecycleHooks, ABC):
    """One implementation per package `type` tag."""

    typeName: ClassVar[str]

    @abstractmethod
    def isType(self, path: Path) -> bool:
        """Structural detection predicate for an on-disk package directory."""

    @abstractmethod
    def findEntryPoint(self, path: Path) -> Path | None: ...

    @abstractmethod
    def createRunner(self, path: Path, context: ModContext) -> ModRunner: ...
