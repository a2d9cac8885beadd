import json
import sys
import textwrap

import httpx
import pytest

from modhost.core.errors import PackageNotFound
from modhost.host.dom import Document
from modhost.plugins.manager import ExtensionManager
from modhost.plugins.types import BuiltinPlugin


SCRIPT = textwrap.dedent("""
    import json
    import os
    import sys

    ctx = json.loads(os.environ["MODHOST_CONTEXT"])
    print("items", ",".join(ctx["selected"]["items"]))
    print("$$$" + ctx["apiToken"] + "$$$scripty$$$folder.create(name=Test)", file=sys.stderr)
    print("$$$forged$$$scripty$$$folder.create(name=Evil)", file=sys.stderr)
    print("plain warning", file=sys.stderr)
""")


class FakeWebApi:
    def __init__(self, token="T1"):
        self.token = token

    async def getToken(self):
        return self.token


def _install(store, pluginId, code, **manifest):
    path = store.extensionsDir / pluginId
    path.mkdir(parents=True)
    (path / "plugin.json").write_text(json.dumps({"id": pluginId, "name": pluginId.title(), **manifest}), encoding="utf-8")
    (path / "main.py").write_text(code, encoding="utf-8")
    return path


def _hello(context):
    context.storage.setItem("opened", True)
    context.sdk.cards.addCard("greeting", "Hello", "from a built-in")


@pytest.fixture()
def notes():
    return []


@pytest.fixture()
def manager(store, fakeHost, notes):
    def notifier(title, description):
        notes.append((title, description))

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    return ExtensionManager(
        Document(),
        store,
        host=fakeHost,
        webapi=FakeWebApi(),
        builtins=[BuiltinPlugin("hello", "Hello", _hello)],
        notifier=notifier,
        transport=httpx.MockTransport(handler),
    )


def test_scan_lists_builtins_and_installed(manager, store):
    _install(store, "alpha", "pass\n")

    assert [ext.id for ext in manager.scanExtensions()] == ["hello", "alpha"]
    assert manager.getExtension("alpha").path == store.extensionsDir / "alpha"
    assert manager.getExtension("nope") is None


@pytest.mark.asyncio
async def test_open_standard_plugin(manager, store):
    _install(store, "broken", "raise RuntimeError('boom')\n")
    manager.scanExtensions()

    assert await manager.openPluginPage("hello") is True
    card = manager.document.getElementById("card-greeting")
    assert card is not None and "Hello" in card.innerHTML
    assert store.storageFile().data == {"hello_opened": "true"}

    assert await manager.openPluginPage("broken") is False
    # opening another plugin tears the previous container down
    assert manager.document.getElementById("plugin-container-hello") is None

    with pytest.raises(PackageNotFound):
        await manager.openPluginPage("missing")


@pytest.mark.asyncio
async def test_remove_hides_builtin_and_deletes_installed(manager, store):
    path = _install(store, "alpha", "pass\n")
    manager.scanExtensions()

    await manager.removeExtension("hello")
    await manager.removeExtension("alpha")

    assert not path.exists()
    assert manager.isPluginHidden("hello")
    assert manager.scanExtensions() == []
    assert [ext.id for ext in manager.showHiddenPlugins()] == ["hello"]


@pytest.mark.asyncio
async def test_failed_download_is_reported(manager, notes, store):
    assert await manager.downloadExtension("https://example.test/p.zip") is None
    assert await manager.downloadExtension("https://example.test/p.rar") is None

    assert [title for title, _ in notes] == ["Download Failed", "Download Failed"]
    assert "HTTP 404" in notes[0][1]
    assert list(store.extensionsDir.iterdir()) == []


@pytest.mark.asyncio
async def test_script_plugin_runs_on_start_and_dispatches(manager, store, fakeHost):
    fakeHost.items = ["i1", "i2"]
    _install(store, "scripty", SCRIPT, type="external-script", on=["onStart", "itemChange"], pythonEnv=sys.executable)
    manager.scanExtensions()

    assert await manager.openPluginPage("scripty") is True

    assert fakeHost.calls == [("folder.create", ({"name": "Test"},), {})]
    container = manager.document.getElementById("plugin-container-scripty")
    output = container.children[0]
    assert output.tagName == "pre"
    assert "items i1,i2" in output.textContent
    assert "plain warning" in output.textContent
    assert "$$$" not in output.textContent
    assert manager.dispatcher.getCallbackStats()["itemChange"] == 1
    assert manager.dispatcher.isPolling

    manager.stopScriptPlugin("scripty")
    assert manager.dispatcher.getCallbackStats()["itemChange"] == 0
    assert not manager.dispatcher.isPolling


@pytest.mark.asyncio
async def test_script_plugin_without_on_start_only_subscribes(manager, store, fakeHost):
    _install(store, "scripty", SCRIPT, type="python", on="itemChange", pythonEnv=sys.executable)
    manager.scanExtensions()

    assert await manager.runScriptPlugin("scripty") is None
    assert fakeHost.calls == []

    fakeHost.items = ["i9"]
    assert await manager.dispatcher.checkForChanges() == ["itemChange"]
    assert fakeHost.calls == [("folder.create", ({"name": "Test"},), {})]
    manager.stopScriptPlugin("scripty")
