# modhost/plugins/manager.py
from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable
from typing import Any

import httpx

from modhost.core.errors import ModHostError, PackageNotFound
from modhost.core.logging import logContext
from modhost.host.dom import Document, Element
from modhost.plugins.discovery import PluginDiscovery
from modhost.plugins.download import PluginDownload
from modhost.plugins.executor import PluginExecutor
from modhost.plugins.loader import PluginLoader
from modhost.plugins.management import PluginManagement
from modhost.plugins.types import BuiltinPlugin, ExtensionInfo, PluginType
from modhost.runner.events import HOST_EVENTS, HostEventDispatcher
from modhost.scripts.evaluator import CallbackEvaluator
from modhost.scripts.runner import ScriptResult, ScriptRunner, ScriptRunOptions
from modhost.store.layout import RepositoryStore

logger = logging.getLogger(__name__)

__all__ = ["ON_START", "Notifier", "ExtensionManager"]



ON_START = "onStart"

Notifier = Callable[[str, str], Any]



class ExtensionManager:
    """
    Orchestrates plugins: discovery, download, removal and opening a plugin
    into the page. This is the action layer, so it is the only place that
    reports failures to the user through `notifier`.

    `host` serves both as the selection source for script contexts and as
    the target of script callback signals. `webapi` supplies the session
    token and is handed to in-process plugins through their SDK.
    """

    def __init__(
        self,
        document: Document,
        store: RepositoryStore | None = None,
        *,
        host: Any = None,
        webapi: Any = None,
        builtins: Iterable[BuiltinPlugin] = (),
        dispatcher: HostEventDispatcher | None = None,
        notifier: Notifier | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.document = document
        self.store = store or RepositoryStore()
        self.host = host
        self.webapi = webapi
        self.notifier = notifier
        self.dispatcher = dispatcher or HostEventDispatcher(host)

        self.discovery = PluginDiscovery(self.store, builtins)
        self.loader = PluginLoader(self.discovery)
        self.executor = PluginExecutor(document, self.store, webapi=webapi, host=host)
        self.management = PluginManagement(self.store)
        self.download = PluginDownload(self.store, transport=transport)

        self._extensions: dict[str, ExtensionInfo] = {}
        self._eventCallbacks: dict[str, list[tuple[str, Callable]]] = {}

    async def _notify(self, title: str, description: str) -> None:
        if self.notifier is None:
            return
        try:
            result = self.notifier(title, description)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Notifier failed for '%s'", title)

    async def _token(self) -> str | None:
        if self.webapi is None:
            return None
        try:
            return await self.webapi.getToken()
        except (ModHostError, httpx.HTTPError) as err:
            logger.warning("Cannot fetch host API token: %s", err)
            return None

    # ---------- Catalog ----------

    def scanExtensions(self) -> list[ExtensionInfo]:
        found = [ext for ext in self.discovery.discoverExtensions() if not self.management.isPluginHidden(ext.id)]
        self._extensions = {ext.id: ext for ext in found}
        logger.info("Found %d extensions", len(found))
        return found

    def getExtensions(self) -> list[ExtensionInfo]:
        return list(self._extensions.values())

    def getExtension(self, extensionId: str) -> ExtensionInfo | None:
        return self._extensions.get(extensionId)

    def _require(self, extensionId: str) -> ExtensionInfo:
        extension = self._extensions.get(extensionId)
        if extension is None:
            raise PackageNotFound(extensionId, "extensions")
        return extension

    # ---------- Actions ----------

    async def downloadExtension(self, url: str) -> ExtensionInfo | None:
        try:
            installed = await self.download.downloadPlugin(url)
        except ModHostError as err:
            logger.warning("Plugin download from '%s' failed: %s", url, err)
            await self._notify("Download Failed", str(err))
            return None

        self.scanExtensions()
        extension = next((ext for ext in self._extensions.values() if ext.path == installed), None)
        await self._notify("Plugin Downloaded", f"Installed {extension.name if extension else installed.name}")
        return extension

    async def removeExtension(self, extensionId: str) -> None:
        extension = self._require(extensionId)
        try:
            self.management.removeExtension(extension)
        except ModHostError as err:
            await self._notify("Remove Failed", str(err))
            raise
        self.stopScriptPlugin(extensionId)
        del self._extensions[extensionId]

    def isPluginHidden(self, pluginId: str) -> bool:
        return self.management.isPluginHidden(pluginId)

    def showHiddenPlugins(self) -> list[ExtensionInfo]:
        self.management.showHiddenPlugins()
        return self.scanExtensions()

    async def openPluginPage(self, extensionId: str) -> bool:
        """Tear down whatever is on the page and load one plugin. False when the plugin failed to load."""
        extension = self._require(extensionId)
        for pluginId in list(self._eventCallbacks):
            self.stopScriptPlugin(pluginId)
        self.executor.clearHomeContent()

        if extension.type is PluginType.EXTERNAL_SCRIPT:
            await self.runScriptPlugin(extensionId)
            return True

        context = self.executor.createIsolatedContext(extension)
        try:
            code = self.loader.getPluginCode(extension)
        except (ModHostError, OSError) as err:
            logger.error("Cannot load code for plugin '%s': %s", extension.id, err)
            self.executor.discardPlugin(extension.id)
            return False
        return await self.executor.executePlugin(extension, context, code)

    # ---------- Script plugins ----------

    def _scriptRunner(self) -> ScriptRunner:
        evaluator = CallbackEvaluator(self.host, self._token)
        return ScriptRunner(host=self.host, tokenProvider=self._token, evaluator=evaluator)

    async def executeScript(self, extension: ExtensionInfo, output: Element | None = None) -> ScriptResult | None:
        """One run of a script plugin. Failures are logged and yield None."""
        entry = extension.entryPath
        if entry is None or not entry.is_file():
            logger.error("Script plugin '%s' has no entry file", extension.id)
            return None

        options = ScriptRunOptions(interpreter=extension.manifest.pythonEnv, pluginId=extension.id)
        with logContext(pluginId=extension.id):
            try:
                result = await self._scriptRunner().run(entry, options)
            except ModHostError as err:
                logger.error("Script plugin '%s' failed: %s", extension.id, err)
                return None
            except Exception:
                logger.exception("Script plugin '%s' crashed the script bridge", extension.id)
                return None
        if output is not None:
            output.textContent += result.stdout + result.stderr
        return result

    async def runScriptPlugin(self, extensionId: str) -> ScriptResult | None:
        """
        Wire an external-script plugin to the host events its manifest lists
        and run it once when `onStart` is among them.
        """
        extension = self._require(extensionId)
        context = self.executor.createIsolatedContext(extension)
        output = self.document.createElement("pre")
        output.className = "plugin-output"
        context.container.appendChild(output)

        events = extension.manifest.on
        for eventType in events:
            if eventType not in HOST_EVENTS:
                continue

            async def onEvent(new, old, *, _eventType=eventType):
                logger.debug("Event %s re-runs '%s'", _eventType, extension.id)
                await self.executeScript(extension, output)

            self.dispatcher.registerCallback(eventType, onEvent)
            self._eventCallbacks.setdefault(extension.id, []).append((eventType, onEvent))

        if extension.id in self._eventCallbacks:
            await self.dispatcher.ensurePolling()
            self.executor.registerCleanup(extension.id, lambda: self.stopScriptPlugin(extension.id))

        if ON_START in events:
            return await self.executeScript(extension, output)
        return None

    def stopScriptPlugin(self, extensionId: str) -> None:
        for eventType, callback in self._eventCallbacks.pop(extensionId, []):
            self.dispatcher.unregisterCallback(eventType, callback)
        self.dispatcher.stopIfIdle()
