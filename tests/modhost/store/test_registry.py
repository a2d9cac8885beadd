import json

import pytest

from modhost.store.registry import ModRegistry

ACME = "https://github.com/acme/tools.git"
BAR = "https://github.com/x/bar.git"


@pytest.fixture()
def acmeWithRemoteBar(remotes, modTree):
    acme = remotes.add(ACME)
    modTree(acme / "foo", "foo")
    (acme / "mods.json").write_text(json.dumps(["foo", {"name": "bar", "remote": BAR}]), encoding="utf-8")
    bar = remotes.add(BAR)
    modTree(bar, "bar", "3.0.0")
    return remotes


@pytest.mark.asyncio
async def test_install_follows_remote_pointer(store, acmeWithRemoteBar):
    registry = ModRegistry(store)
    acme = await registry.addBucket(ACME)
    assert acme is not None and acme.name == "acme_tools" and acme.kind == "bucket"

    pkg = await registry.installPkg("bar")

    assert pkg is not None and pkg.version == "3.0.0"
    assert acmeWithRemoteBar.cloned == [ACME, BAR]
    remoteBucket = registry.getBucket("x_bar")
    assert remoteBucket is not None and remoteBucket.kind == "package"
    assert store.packagePath("bar").is_dir()
    assert registry.getPackage("bar") is pkg


@pytest.mark.asyncio
async def test_remote_bucket_is_reused(store, acmeWithRemoteBar):
    registry = ModRegistry(store)
    await registry.addBucket(ACME)
    await registry.installPkg("bar", "acme_tools")
    await registry.uninstallPkg("bar")
    await registry.installPkg("bar", "acme_tools")

    assert acmeWithRemoteBar.cloned.count(BAR) == 1


@pytest.mark.asyncio
async def test_registry_reloads_from_disk(store, acmeWithRemoteBar):
    registry = ModRegistry(store)
    await registry.addBucket(ACME)
    await registry.installPkg("foo")

    fresh = ModRegistry(store)

    assert [bucket.name for bucket in fresh.listBuckets()] == ["acme_tools"]
    assert fresh.getBucket("acme_tools").sourceUrl == ACME
    assert [pkg.name for pkg in fresh.listPackages()] == ["foo"]
    assert fresh.bucketExists("git@github.com:acme/tools.git")
    assert not fresh.bucketExists("https://github.com/acme/other")


@pytest.mark.asyncio
async def test_failures_return_falsy(store, remotes):
    registry = ModRegistry(store)

    assert await registry.addBucket("not-a-url") is None
    assert await registry.addBucket("https://github.com/nobody/nothing") is None
    assert await registry.installPkg("ghost") is None
    assert await registry.installPkg("ghost", "no_such_bucket") is None
    assert await registry.uninstallPkg("ghost") is False
    assert await registry.resetPkg("ghost") is None
    assert registry.removeBucket("no_such_bucket") is False
    assert await registry.updateBucket("no_such_bucket") is False


@pytest.mark.asyncio
async def test_catalog_is_read_only(store):
    registry = ModRegistry(store)
    with pytest.raises(TypeError):
        registry.packages["x"] = None  # type: ignore[index]
    with pytest.raises(TypeError):
        registry.buckets["x"] = None  # type: ignore[index]


@pytest.mark.asyncio
async def test_reset_and_upgrade(store, remotes, modTree):
    url = "https://github.com/acme/solo.git"
    source = remotes.add(url)
    modTree(source / "foo", "foo", "1.0.0")
    registry = ModRegistry(store)
    await registry.addBucket(url)
    await registry.installPkg("foo")

    modTree(source / "foo", "foo", "1.1.0")
    assert await registry.updateAllBuckets() == {"acme_solo": True}

    assert await registry.upgradePkg("foo") is True
    assert registry.getPackage("foo").version == "1.1.0"
    assert await registry.upgradePkg("foo") is False

    modTree(source / "foo", "foo", "1.2.0")
    await registry.updateBucket("acme_solo")
    reset = await registry.resetPkg("foo")
    assert reset is not None and reset.version == "1.2.0"
    assert registry.getPackage("foo") is reset


@pytest.mark.asyncio
async def test_reset_aborts_when_uninstall_fails(store, remotes, modTree, monkeypatch):
    url = "https://github.com/acme/stuck.git"
    modTree(remotes.add(url) / "foo", "foo")
    registry = ModRegistry(store)
    await registry.addBucket(url)
    pkg = await registry.installPkg("foo")

    async def refuse():
        return False

    monkeypatch.setattr(pkg, "uninstall", refuse)

    assert await registry.resetPkg("foo") is None
    assert registry.getPackage("foo") is pkg


@pytest.mark.asyncio
async def test_shared_requirements_are_merged(store, remotes, modTree):
    url = "https://github.com/acme/deps.git"
    source = remotes.add(url)
    modTree(source / "a", "a")
    (source / "a" / "requirements.txt").write_text("six==1.15.0\nattrs\n", encoding="utf-8")
    modTree(source / "b", "b")
    (source / "b" / "requirements.txt").write_text("six==1.16.0\n", encoding="utf-8")
    registry = ModRegistry(store)
    await registry.addBucket(url)

    await registry.installPkg("a")
    await registry.installPkg("b")

    assert registry.sharedDeps.getSharedDependencies() == {"six": "1.16.0", "attrs": None}
    index = registry.sharedDeps.index.data
    assert index["six"]["requiredBy"] == ["a", "b"]


def test_link_local_and_unlink(store, modTree, tmp_path):
    source = modTree(tmp_path / "dev" / "devmod", "Dev Mod")
    registry = ModRegistry(store)

    assert registry.linkLocal(source) is True
    assert registry.getLocalPackages() == {"devmod": str(source.resolve())}
    assert registry.getPackage("devmod").sourcePath == str(source.resolve())
    assert registry.getModName("devmod") == "Dev Mod"

    assert "devmod" in ModRegistry(store).packages

    assert registry.unlinkLocal("devmod") is True
    assert registry.getPackage("devmod") is None
    assert registry.getLocalPackages() == {}
    assert registry.linkLocal(tmp_path / "missing") is False


@pytest.mark.asyncio
async def test_reset_removes_everything(store, acmeWithRemoteBar):
    registry = ModRegistry(store)
    await registry.addBucket(ACME)
    await registry.installPkg("foo")

    assert await registry.reset() is True
    assert registry.listBuckets() == [] and registry.listPackages() == []
    assert store.listBucketFolders() == [] and store.listPackageFolders() == []


@pytest.mark.asyncio
async def test_reset_forgets_linked_packages(store, acmeWithRemoteBar, modTree, tmp_path):
    source = modTree(tmp_path / "work" / "devmod", "Dev Mod")
    registry = ModRegistry(store)
    await registry.addBucket(ACME)
    await registry.installPkg("foo")
    assert registry.linkLocal(source) is True

    assert await registry.reset() is True

    assert registry.listPackages() == []
    assert registry.getLocalPackages() == {}
    assert (source / "mod.json").is_file()
    assert ModRegistry(store).listPackages() == []
