import json

import pytest

from modhost.core.errors import InvalidManifestError, NotFoundError
from modhost.runner.legacy import LegacyModType
from modhost.runner.manifest_type import ManifestModType
from modhost.runner.module_runner import ModuleModRunner
from modhost.runner.types import createModRunner, createModRunnerByPath, getModType, getModTypeByName
from modhost.store.package import ModPackage


def _manifest(path, **fields):
    path.mkdir(parents=True, exist_ok=True)
    (path / "mod.json").write_text(json.dumps({"name": path.name, "version": "1.0.0", **fields}), encoding="utf-8")
    return path


def test_legacy_detected_without_manifest(tmp_path):
    pkg = tmp_path / "old"
    pkg.mkdir()
    (pkg / "main.py").write_text("mod = None\n", encoding="utf-8")

    assert isinstance(getModType(pkg), LegacyModType)
    assert getModType(pkg).findEntryPoint(pkg) == pkg / "main.py"


def test_index_py_preferred_over_main_py(tmp_path):
    pkg = tmp_path / "old"
    pkg.mkdir()
    (pkg / "main.py").write_text("", encoding="utf-8")
    (pkg / "index.py").write_text("", encoding="utf-8")

    assert LegacyModType().findEntryPoint(pkg) == pkg / "index.py"


def test_manifest_package_is_never_legacy(tmp_path):
    pkg = _manifest(tmp_path / "modern", type="v2")
    (pkg / "main.py").write_text("", encoding="utf-8")

    assert isinstance(getModType(pkg), ManifestModType)
    assert not LegacyModType().isType(pkg)


def test_manifest_declaring_v1_is_rejected(tmp_path):
    pkg = _manifest(tmp_path / "confused", type="v1")
    (pkg / "main.py").write_text("", encoding="utf-8")

    assert getModType(pkg) is None
    with pytest.raises(InvalidManifestError):
        LegacyModType().validateStructure(pkg)


def test_unknown_type_and_empty_dir(tmp_path):
    assert getModType(_manifest(tmp_path / "future", type="v7")) is None
    empty = tmp_path / "empty"
    empty.mkdir()
    assert getModType(empty) is None
    with pytest.raises(NotFoundError):
        createModRunnerByPath(empty)


def test_v2_entry_must_stay_inside_package(tmp_path):
    pkg = _manifest(tmp_path / "sneaky", type="v2", entryPoint="../evil.py")
    (tmp_path / "evil.py").write_text("", encoding="utf-8")

    assert ManifestModType().findEntryPoint(pkg) is None
    with pytest.raises(InvalidManifestError):
        createModRunnerByPath(pkg)


def test_createModRunnerByPath_builds_module_runner(tmp_path):
    pkg = _manifest(tmp_path / "modern", type="v2", entryPoint="app.py")
    (pkg / "app.py").write_text("", encoding="utf-8")

    runner = createModRunnerByPath(pkg)

    assert isinstance(runner, ModuleModRunner)
    assert runner.entryPath == (pkg / "app.py").resolve()
    assert runner.context.name == "modern"
    assert getModTypeByName("v2") is not None


def test_createModRunner_prefers_linked_source(store, tmp_path):
    installed = _manifest(store.packagePath("clock"), type="v2")
    (installed / "main.py").write_text("", encoding="utf-8")
    workTree = _manifest(tmp_path / "work" / "clock", type="v2")
    (workTree / "main.py").write_text("", encoding="utf-8")

    pkg = ModPackage(name="clock", type="v2", version="1.0.0", store=store)
    assert createModRunner(pkg, store).entryPath == (installed / "main.py").resolve()

    assert pkg.link(workTree)
    runner = createModRunner(pkg, store)
    assert runner.entryPath == (workTree / "main.py").resolve()
    assert runner.context.logger.name == "mods.clock"
