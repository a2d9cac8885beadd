import asyncio
import inspect
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from modhost.app.settings import reloadSettings
from modhost.store.layout import RepositoryStore



def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addini(
        "asyncio_mode",
        "Execution mode for @pytest.mark.asyncio tests (only 'strict' is supported without pytest-asyncio).",
        default="strict",
    )
    parser.addini(
        "asyncio_default_fixture_loop_scope",
        "Scope for the event loop fixture (only 'function' is supported without pytest-asyncio).",
        default="function",
    )



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")

    mode = config.getini("asyncio_mode")
    if mode != "strict":
        raise pytest.UsageError(
            "tests/conftest.py only supports asyncio_mode='strict' without pytest-asyncio installed"
        )

    loop_scope = config.getini("asyncio_default_fixture_loop_scope")
    if loop_scope != "function":
        raise pytest.UsageError(
            "tests/conftest.py only supports asyncio_default_fixture_loop_scope='function'"
        )

    config.addinivalue_line("markers", "asyncio: mark a test to run inside an event loop")



@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function):
    """Run `@pytest.mark.asyncio` coroutine tests on a fresh event loop."""
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None
    if not inspect.iscoroutinefunction(pyfuncitem.obj):
        return None
    argnames = pyfuncitem._fixtureinfo.argnames
    kwargs = {name: pyfuncitem.funcargs[name] for name in argnames}
    asyncio.run(pyfuncitem.obj(**kwargs))
    return True



@pytest.fixture()
def baseDir(monkeypatch, tmp_path) -> Path:
    base = tmp_path / "modhost-home"
    monkeypatch.setenv("MODHOST_HOME", str(base))
    reloadSettings()
    yield base
    reloadSettings()



@pytest.fixture()
def store(baseDir) -> RepositoryStore:
    return RepositoryStore(baseDir)



class _Namespace:
    def __init__(self, owner: "FakeHost", name: str):
        self._owner = owner
        self._name = name

    def __getattr__(self, method: str):
        if method.startswith("_"):
            raise AttributeError(method)
        if method not in self._owner.methods.get(self._name, ()):
            raise AttributeError(method)

        async def call(*args, **kwargs):
            self._owner.calls.append((f"{self._name}.{method}", args, kwargs))
            return None

        return call



class FakeHost:
    """Selection source and callback target in one object, like the real host API."""

    def __init__(self, items=None, folders=None, library="/library/a"):
        self.items = list(items or [])
        self.folders = list(folders or [])
        self.library = library
        self.calls: list[tuple[str, tuple, dict]] = []
        self.methods = {
            "folder": {"create", "rename", "update"},
            "item": {"addBookmark", "moveToTrash"},
            "notification": {"show"},
        }

    async def getSelectedItemIds(self):
        return list(self.items)

    async def getSelectedFolderIds(self):
        return list(self.folders)

    async def getLibraryPath(self):
        return self.library

    def __getattr__(self, name: str):
        if name.startswith("_") or name not in self.__dict__.get("methods", {}):
            raise AttributeError(name)
        return _Namespace(self, name)



@pytest.fixture()
def fakeHost() -> FakeHost:
    return FakeHost()
