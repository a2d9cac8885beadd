import pytest

from modhost.host.dom import Document
from modhost.plugins.executor import PluginExecutor
from modhost.plugins.types import ExtensionInfo
from modhost.store.manifest import PluginManifest


def _extension(pluginId="demo", name="Demo"):
    return ExtensionInfo.fromManifest(PluginManifest(id=pluginId, name=name), None)


@pytest.fixture()
def executor(store):
    return PluginExecutor(Document(), store, webapi="api")


def test_storage_is_namespaced_per_plugin(executor, store):
    first = executor.createPluginStorage("a")
    second = executor.createPluginStorage("b")

    first.setItem("count", {"n": 1})
    second.setItem("count", 2)

    assert first.getItem("count") == {"n": 1}
    assert second.getItem("count") == 2
    assert first.getItem("missing", "dflt") == "dflt"
    assert store.storageFile().data == {"a_count": '{"n": 1}', "b_count": "2"}
    assert first.keys() == ["count"]
    first.clear()
    assert first.getItem("count") is None and second.getItem("count") == 2


def test_isolated_context_has_container_and_sdk(executor):
    context = executor.createIsolatedContext(_extension())

    assert context.pluginId == "demo"
    assert context.container.id == "plugin-container-demo"
    assert context.container.parent is executor.document.body
    assert context.webapi == "api"
    assert context.logger.name == "mods.demo"
    assert executor.activePluginIds == ["demo"]


@pytest.mark.asyncio
async def test_source_code_runs_with_context_and_main(executor):
    ext = _extension()
    context = executor.createIsolatedContext(ext)
    code = (
        "context.storage.setItem('ran', True)\n"
        "async def main(ctx):\n"
        "    ctx.sdk.cards.addCard('hello', 'Hello', '<p>hi</p>')\n"
    )

    assert await executor.executePlugin(ext, context, code) is True
    assert context.storage.getItem("ran") is True
    assert executor.document.getElementById("card-hello").parent is context.container


@pytest.mark.asyncio
async def test_callable_plugins_are_supported(executor):
    ext = _extension("fn")
    context = executor.createIsolatedContext(ext)
    seen = []

    assert await executor.executePlugin(ext, context, lambda ctx: seen.append(ctx.pluginId)) is True
    assert seen == ["fn"]


@pytest.mark.asyncio
async def test_plugin_errors_are_contained(executor):
    ext = _extension("bad")

    syntax = executor.createIsolatedContext(ext)
    assert await executor.executePlugin(ext, syntax, "def broken(:\n") is False

    async def explode(ctx):
        raise RuntimeError("plugin bug")

    runtime = executor.createIsolatedContext(_extension("worse"))
    assert await executor.executePlugin(ext, runtime, explode) is False


@pytest.mark.asyncio
async def test_clearHomeContent_tears_everything_down(executor):
    doc = executor.document
    shell = doc.body.appendChild(doc.createElement("main"))
    shell.setAttribute("data-theme", "light")
    buttons = doc.body.appendChild(doc.createElement("div"))
    buttons.id = "plugin-buttons"
    buttons.appendChild(doc.createElement("button"))

    ext = _extension()
    context = executor.createIsolatedContext(ext)
    clicks, cleaned = [], []
    button = context.sdk.button.create(context.container, "Go", clicks.append)
    executor.registerCleanup("demo", lambda: cleaned.append(True))
    button.dispatchEvent("click", "e")

    executor.clearHomeContent()

    assert doc.querySelectorAll("[id^=plugin-container-]") == []
    assert button.listenerCount() == 0
    assert cleaned == [True]
    assert clicks == ["e"]
    remaining = doc.getElementById("plugin-buttons")
    assert remaining is not None and remaining.children == []
    assert shell.style["display"] == "none"
    assert executor.activePluginIds == []


@pytest.mark.asyncio
async def test_failed_plugin_leaves_no_container_behind(executor):
    ext = _extension("broken")
    context = executor.createIsolatedContext(ext)
    cleaned = []

    async def explode(ctx):
        executor.registerCleanup(ctx.pluginId, lambda: cleaned.append(ctx.pluginId))
        raise RuntimeError("half started")

    assert await executor.executePlugin(ext, context, explode) is False
    assert executor.document.getElementById("plugin-container-broken") is None
    assert context.container.parent is None
    assert executor.activePluginIds == []
    assert cleaned == ["broken"]
