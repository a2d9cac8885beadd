import pytest

from modhost.core.logging import getModLogger
from modhost.host.dom import Document
from modhost.runner.base import ModContext
from modhost.runner.events import HostEventDispatcher
from modhost.runner.loader import clearModuleCache
from modhost.runner.module_runner import ModuleModRunner

MOD_SOURCE = '''
class Clock:
    def __init__(self, ctx):
        self.ctx = ctx
        self.events = []
        self.unmounted = False

    def render(self):
        return "<p>clock</p>"

    async def mount(self, container, ctx):
        container.setAttribute("data-mounted", ctx.name)

    def unmount(self):
        self.unmounted = True

    def onItemSelected(self, new, old):
        self.events.append(("items", new, old))


def createMod(ctx):
    return Clock(ctx)
'''


@pytest.fixture()
def modDir(tmp_path):
    path = tmp_path / "clock"
    path.mkdir()
    (path / "main.py").write_text(MOD_SOURCE, encoding="utf-8")
    (path / "styles.css").write_text("p { color: red; }", encoding="utf-8")
    yield path
    clearModuleCache()


@pytest.mark.asyncio
async def test_mount_and_unmount(modDir, fakeHost):
    doc = Document()
    container = doc.body.appendChild(doc.createElement("div"))
    dispatcher = HostEventDispatcher(fakeHost, intervalMs=10_000)
    ctx = ModContext(name="clock", path=modDir, logger=getModLogger("clock"), dispatcher=dispatcher)
    runner = ModuleModRunner(modDir / "main.py", ctx)

    await runner.mount(container)

    assert runner.isMounted
    assert container.innerHTML == "<p>clock</p>"
    assert container.getAttribute("data-mounted") == "clock"
    style = doc.getElementById("mod-style-clock")
    assert style is not None and style.parent is doc.head
    assert dispatcher.getCallbackStats()["itemChange"] == 1
    assert dispatcher.isPolling

    fakeHost.items = ["b", "a"]
    assert await dispatcher.checkForChanges() == ["itemChange"]
    assert runner.instance.events == [("items", ["a", "b"], [])]

    await runner.unmount()

    assert not runner.isMounted
    assert runner.instance.unmounted
    assert container.innerHTML == ""
    assert doc.getElementById("mod-style-clock") is None
    assert not dispatcher.hasCallbacks()
    assert not dispatcher.isPolling


@pytest.mark.asyncio
async def test_remount_unmounts_first(modDir):
    doc = Document()
    first = doc.body.appendChild(doc.createElement("div"))
    second = doc.body.appendChild(doc.createElement("div"))
    runner = ModuleModRunner(modDir / "main.py", ModContext(name="clock", path=modDir, logger=getModLogger("clock")))

    await runner.mount(first)
    await runner.mount(second)

    assert first.innerHTML == ""
    assert second.innerHTML == "<p>clock</p>"
    assert len(doc.head.querySelectorAll("style")) == 1


@pytest.mark.asyncio
async def test_render_without_markup_leaves_container_empty(tmp_path):
    path = tmp_path / "quiet"
    path.mkdir()
    (path / "main.py").write_text(
        "class Quiet:\n"
        "    def render(self):\n"
        "        pass\n"
        "\n"
        "\n"
        "def createMod(ctx):\n"
        "    return Quiet()\n",
        encoding="utf-8",
    )
    doc = Document()
    container = doc.body.appendChild(doc.createElement("div"))
    container.innerHTML = "<p>stale</p>"
    runner = ModuleModRunner(path / "main.py", ModContext(name="quiet", path=path, logger=getModLogger("quiet")))

    try:
        await runner.mount(container)
    finally:
        clearModuleCache()

    assert runner.isMounted
    assert container.innerHTML == ""
