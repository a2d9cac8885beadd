# modhost/runner/events.py
from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from modhost.app.settings import settings
from modhost.host.types import HostState

logger = logging.getLogger(__name__)

__all__ = ["HOST_EVENTS", "HostEventDispatcher"]



HOST_EVENTS = ("itemChange", "folderChange", "libraryChange")

EventCallback = Callable[[Any, Any], Any]



class HostEventDispatcher:
    """
    One polling loop shared by every mod that wants host events.

    The host offers no push notifications for selection or library switches,
    so state is sampled on an interval and compared after sorting. Callbacks
    receive `(newValue, oldValue)`. A callback that raises is dropped.
    """

    def __init__(self, host: HostState | None, *, intervalMs: int | None = None):
        self.host = host
        self.intervalMs = int(intervalMs if intervalMs is not None else settings("events.pollIntervalMs", 1000))
        self._callbacks: dict[str, list[EventCallback]] = {event: [] for event in HOST_EVENTS}
        self._lastState: dict[str, Any] = {}
        self._task: asyncio.Task | None = None

    @property
    def isPolling(self) -> bool:
        return self._task is not None and not self._task.done()

    # ---------- Registration ----------

    def registerCallback(self, eventType: str, callback: EventCallback) -> None:
        if eventType not in self._callbacks:
            raise ValueError(f"Unknown host event '{eventType}'")
        if callback not in self._callbacks[eventType]:
            self._callbacks[eventType].append(callback)
        logger.debug("Registered %s callback (%d total)", eventType, len(self._callbacks[eventType]))

    def unregisterCallback(self, eventType: str, callback: EventCallback) -> bool:
        callbacks = self._callbacks.get(eventType, [])
        if callback in callbacks:
            callbacks.remove(callback)
            return True
        return False

    def hasCallbacks(self) -> bool:
        return any(self._callbacks.values())

    def getCallbackStats(self) -> dict[str, int]:
        return {event: len(callbacks) for event, callbacks in self._callbacks.items()}

    # ---------- Polling ----------

    async def _snapshot(self) -> dict[str, Any]:
        if self.host is None:
            return {}
        items = await self.host.getSelectedItemIds()
        folders = await self.host.getSelectedFolderIds()
        library = await self.host.getLibraryPath()
        return {
            "itemChange": sorted(str(item) for item in items or []),
            "folderChange": sorted(str(folder) for folder in folders or []),
            "libraryChange": library,
        }

    async def captureState(self) -> None:
        try:
            self._lastState = await self._snapshot()
        except Exception:
            logger.exception("Failed to capture host state")

    async def checkForChanges(self) -> list[str]:
        """Sample host state once; returns the event types that fired."""
        try:
            current = await self._snapshot()
        except Exception:
            logger.exception("Failed to read host state")
            return []

        fired: list[str] = []
        for eventType in HOST_EVENTS:
            if eventType not in current:
                continue
            old = self._lastState.get(eventType)
            new = current[eventType]
            if old == new:
                continue
            self._lastState[eventType] = new
            fired.append(eventType)
            await self._trigger(eventType, new, old)
        return fired

    async def _trigger(self, eventType: str, new: Any, old: Any) -> None:
        for callback in list(self._callbacks[eventType]):
            try:
                result = callback(new, old)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("%s callback failed; removing it", eventType)
                self.unregisterCallback(eventType, callback)

    async def startPolling(self, intervalMs: int | None = None) -> None:
        if intervalMs is not None:
            self.intervalMs = int(intervalMs)
        if self.isPolling:
            self.stopPolling()
        await self.captureState()
        self._task = asyncio.get_running_loop().create_task(self._pollLoop())
        logger.debug("Host event polling started (%dms)", self.intervalMs)

    async def ensurePolling(self) -> None:
        if not self.isPolling:
            await self.startPolling()

    def stopPolling(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("Host event polling stopped")

    def stopIfIdle(self) -> None:
        if not self.hasCallbacks():
            self.stopPolling()

    async def _pollLoop(self) -> None:
        while True:
            await asyncio.sleep(self.intervalMs / 1000.0)
            await self.checkForChanges()
