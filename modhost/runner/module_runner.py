# modhost/runner/module_runner.py
from __future__ import annotations

import inspect
import logging
from pathlib import Path
from typing import Any

from modhost.host.dom import Element
from modhost.runner.base import ModContext, ModRunner, instantiateExport
from modhost.runner.loader import loadModule, resolveExport

logger = logging.getLogger(__name__)

__all__ = ["STYLESHEET_NAME", "EVENT_HANDLERS", "ModuleModRunner"]



STYLESHEET_NAME = "styles.css"

# mod attribute -> host event
EVENT_HANDLERS = {
    "onLibraryChanged": "libraryChange",
    "onItemSelected": "itemChange",
    "onFolderSelected": "folderChange",
}



async def _maybeAwait(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value



class ModuleModRunner(ModRunner):
    """
    Runs a mod whose implementation is a Python module on disk.

    load()    imports the entry file, resolves the export and builds the instance
    mount()   renders markup into the container, calls mod.mount(container, ctx)
              and subscribes the mod's event handlers
    unmount() calls mod.unmount(), clears the container and releases
              subscriptions and the stylesheet
    """

    def __init__(self, entryPath: Path, context: ModContext):
        self.entryPath = entryPath
        self.context = context
        self.instance: Any = None
        self.stylesheet: str | None = None
        self._container: Element | None = None
        self._styleElement: Element | None = None
        self._subscriptions: list[tuple[str, Any]] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.context.name!r})"

    @property
    def isMounted(self) -> bool:
        return self._container is not None

    async def load(self) -> None:
        if self.instance is not None:
            return
        module = loadModule(self.entryPath)
        self.instance = await instantiateExport(resolveExport(module), self.context)

        cssPath = self.entryPath.parent / STYLESHEET_NAME
        if cssPath.is_file():
            self.stylesheet = cssPath.read_text(encoding="utf-8")
        logger.debug("Mod '%s' loaded from '%s'", self.context.name, self.entryPath)

    async def mount(self, container: Element) -> None:
        if self.isMounted:
            await self.unmount()
        await self.load()

        self._container = container
        self._attachStylesheet(container)

        render = getattr(self.instance, "render", None)
        if callable(render):
            container.innerHTML = await _maybeAwait(render()) or ""

        mountFn = getattr(self.instance, "mount", None)
        if callable(mountFn):
            await _maybeAwait(mountFn(container, self.context))

        await self._subscribe()
        logger.info("Mounted mod '%s'", self.context.name)

    async def unmount(self) -> None:
        if not self.isMounted:
            return
        unmountFn = getattr(self.instance, "unmount", None)
        try:
            if callable(unmountFn):
                await _maybeAwait(unmountFn())
        finally:
            self._unsubscribe()
            if self._container is not None:
                self._container.innerHTML = ""
            if self._styleElement is not None:
                self._styleElement.remove()
                self._styleElement = None
            self._container = None
        logger.info("Unmounted mod '%s'", self.context.name)

    # ---------- internals ----------

    def _attachStylesheet(self, container: Element) -> None:
        if not self.stylesheet:
            return
        doc = container.ownerDocument
        style = Element("style", id=f"mod-style-{self.context.name}", ownerDocument=doc)
        style.textContent = self.stylesheet
        (doc.head if doc is not None else container).appendChild(style)
        self._styleElement = style

    async def _subscribe(self) -> None:
        dispatcher = self.context.dispatcher
        if dispatcher is None:
            return
        for attr, eventType in EVENT_HANDLERS.items():
            handler = getattr(self.instance, attr, None)
            if callable(handler):
                dispatcher.registerCallback(eventType, handler)
                self._subscriptions.append((eventType, handler))
        if self._subscriptions:
            await dispatcher.ensurePolling()

    def _unsubscribe(self) -> None:
        dispatcher = self.context.dispatcher
        if dispatcher is None:
            self._subscriptions.clear()
            return
        for eventType, handler in self._subscriptions:
            dispatcher.unregisterCallback(eventType, handler)
        self._subscriptions.clear()
        dispatcher.stopIfIdle()
