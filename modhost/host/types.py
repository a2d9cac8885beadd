# modhost/host/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

__all__ = ["HostState", "HostSelection", "readSelection"]



@runtime_checkable
class HostState(Protocol):
    """
    What modhost needs to read from the host application. The host API
    namespaces (`folder`, `item`, ...) live as attributes on the same object
    and are looked up dynamically by the script callback evaluator.
    """

    async def getSelectedItemIds(self) -> list[str]: ...

    async def getSelectedFolderIds(self) -> list[str]: ...

    async def getLibraryPath(self) -> str | None: ...



@dataclass(frozen=True)
class HostSelection:
    items: list[str] = field(default_factory=list)
    folders: list[str] = field(default_factory=list)

    def serialize(self) -> dict[str, Any]:
        return {"folders": list(self.folders), "items": list(self.items)}



async def readSelection(host: HostState | None) -> HostSelection:
    """Snapshot of the host's current selection; empty when no host is attached."""
    if host is None:
        return HostSelection()
    items = await host.getSelectedItemIds()
    folders = await host.getSelectedFolderIds()
    return HostSelection(items=[str(item) for item in items or []], folders=[str(folder) for folder in folders or []])
