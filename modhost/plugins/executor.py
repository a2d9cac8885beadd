# modhost/plugins/executor.py
from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any

from modhost.core.jsonfile import JsonFile
from modhost.core.logging import getModLogger, logContext
from modhost.host.dom import Document, Element
from modhost.plugins.sdk import (
    Button, CardManager, FileUtils, ListenerTracker, PathUtils,
    PluginContext, PluginSDK, PluginStorage, PluginUtils,
)
from modhost.plugins.types import ExtensionInfo, PluginCode
from modhost.store.layout import RepositoryStore

logger = logging.getLogger(__name__)

__all__ = ["CONTAINER_PREFIX", "BUTTONS_ID", "SHELL_SELECTOR", "PluginExecutor"]



CONTAINER_PREFIX = "plugin-container-"
BUTTONS_ID = "plugin-buttons"
SHELL_SELECTOR = "[data-theme]"
ENTRY_FUNCTION = "main"



class PluginExecutor:
    """
    Builds one isolated context per plugin and runs the plugin's code in it.

    Isolation is cooperative: a plugin gets its own storage namespace, its
    own container node and its own listener tracker, nothing more. Anything
    a plugin raises is logged here and never reaches the caller.
    """

    def __init__(self, document: Document, store: RepositoryStore, *, webapi: Any = None, host: Any = None):
        self.document = document
        self.store = store
        self.webapi = webapi
        self.host = host
        self._storageFile: JsonFile | None = None
        self._containers: dict[str, Element] = {}
        self._trackers: dict[str, ListenerTracker] = {}

    @property
    def activePluginIds(self) -> list[str]:
        return list(self._containers)

    # ---------- Context ----------

    def createPluginStorage(self, pluginId: str) -> PluginStorage:
        if self._storageFile is None:
            self._storageFile = self.store.storageFile()
        return PluginStorage(self._storageFile, pluginId)

    def createPluginContainer(self, pluginId: str) -> Element:
        container = self.document.createElement("div")
        container.id = f"{CONTAINER_PREFIX}{pluginId}"
        container.className = "plugin-container"
        container.setAttribute("data-plugin-id", pluginId)
        self.document.body.appendChild(container)
        self._containers[pluginId] = container
        return container

    def createIsolatedContext(self, extension: ExtensionInfo) -> PluginContext:
        tracker = self._trackers.setdefault(extension.id, ListenerTracker())
        container = self.createPluginContainer(extension.id)
        sdk = PluginSDK(
            button=Button(tracker, self.document),
            cards=CardManager(container, self.document),
            utils=PluginUtils(files=FileUtils(), paths=PathUtils(self.store)),
            webapi=self.webapi,
        )
        return PluginContext(
            pluginId=extension.id,
            container=container,
            storage=self.createPluginStorage(extension.id),
            sdk=sdk,
            logger=getModLogger(extension.id),
            listeners=tracker,
            host=self.host,
        )

    def registerCleanup(self, pluginId: str, callback: Callable[[], Any]) -> None:
        self._trackers.setdefault(pluginId, ListenerTracker()).onCleanup(callback)

    # ---------- Execution ----------

    def compilePlugin(self, code: PluginCode, pluginId: str) -> Callable[[PluginContext], Any]:
        """
        Turn plugin code into a callable taking the context.

        Source text runs once with `context` bound as a global; if it defines
        `main`, that is called with the context as well.
        """
        if callable(code):
            return code

        compiled = compile(code, f"<plugin {pluginId}>", "exec")

        def run(context: PluginContext) -> Any:
            namespace: dict[str, Any] = {"__name__": f"modhost_plugin_{pluginId}", "context": context}
            exec(compiled, namespace)
            entry = namespace.get(ENTRY_FUNCTION)
            if callable(entry):
                return entry(context)
            return None

        return run

    async def executePlugin(self, extension: ExtensionInfo, context: PluginContext, code: PluginCode) -> bool:
        with logContext(pluginId=extension.id):
            try:
                logger.debug("Executing plugin '%s'", extension.name)
                result = self.compilePlugin(code, extension.id)(context)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Plugin '%s' failed", extension.name)
                self.discardPlugin(extension.id)
                return False
            logger.info("Plugin '%s' loaded", extension.name)
            return True

    # ---------- Teardown ----------

    def discardPlugin(self, pluginId: str) -> None:
        """Take one plugin off the page: cleanups run and its container is removed."""
        container = self._containers.pop(pluginId, None)
        if container is None:
            tracker = self._trackers.pop(pluginId, None)
            if tracker is not None:
                tracker.cleanup()
            return
        self.removeAllEventListeners(container).remove()

    def _pluginIdFor(self, element: Element) -> str | None:
        pluginId = element.getAttribute("data-plugin-id")
        if pluginId:
            return pluginId
        if element.id.startswith(CONTAINER_PREFIX):
            return element.id[len(CONTAINER_PREFIX):]
        return None

    def removeAllEventListeners(self, element: Element) -> Element:
        """Run the plugin's cleanups, then swap the node for a listener-free clone. Returns the clone."""
        pluginId = self._pluginIdFor(element)
        if pluginId is not None:
            tracker = self._trackers.pop(pluginId, None)
            if tracker is not None:
                tracker.cleanup()
        clone = element.cloneNode(True)
        if element.parent is not None:
            element.parent.replaceChild(clone, element)
        return clone

    def clearHomeContent(self) -> None:
        for container in self.document.querySelectorAll(f"[id^={CONTAINER_PREFIX}]"):
            self.removeAllEventListeners(container).remove()
        self._containers.clear()

        buttons = self.document.getElementById(BUTTONS_ID)
        if buttons is not None:
            buttons = self.removeAllEventListeners(buttons)
            buttons.innerHTML = ""

        shell = self.document.querySelector(SHELL_SELECTOR)
        if shell is not None:
            shell.style["display"] = "none"
