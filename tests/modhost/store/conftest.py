import json
import shutil
from pathlib import Path

import pytest

from modhost.store import git
from modhost.store.git import GitResult


def writeModPackage(path: Path, name: str, version: str = "1.0.0", *, modType: str = "v2", entry: str = "main.py") -> Path:
    path.mkdir(parents=True, exist_ok=True)
    (path / "mod.json").write_text(
        json.dumps({"name": name, "type": modType, "version": version, "entryPoint": entry}),
        encoding="utf-8",
    )
    (path / entry).write_text("def createMod(ctx):\n    return {'name': ctx.name}\n", encoding="utf-8")
    return path


def writeLegacyPackage(path: Path, entry: str = "index.py") -> Path:
    path.mkdir(parents=True, exist_ok=True)
    (path / entry).write_text("mod = None\n", encoding="utf-8")
    return path


class FakeRemotes:
    """Maps source URLs to local fixture trees; stands in for git."""

    def __init__(self, root: Path):
        self.root = root
        self.sources: dict[str, Path] = {}
        self.cloned: list[str] = []
        self.pulled: list[Path] = []

    def add(self, url: str) -> Path:
        source = self.root / f"remote-{len(self.sources)}"
        source.mkdir(parents=True)
        self.sources[url] = source
        return source

    async def clone(self, url: str, target: Path) -> GitResult:
        self.cloned.append(url)
        source = self.sources.get(url)
        if source is None:
            return GitResult(False, f"fatal: repository '{url}' not found")
        shutil.copytree(source, target)
        (target / ".git").mkdir()
        (target / ".git" / "config").write_text(f'[remote "origin"]\n\turl = {url}\n', encoding="utf-8")
        return GitResult(True, "")

    async def pull(self, repoPath: Path) -> GitResult:
        self.pulled.append(repoPath)
        url = git.readOriginUrl(repoPath)
        source = self.sources.get(url or "")
        if source is None:
            return GitResult(False, "no origin")
        shutil.copytree(source, repoPath, dirs_exist_ok=True)
        return GitResult(True, "")

    async def isRepo(self, path: Path) -> bool:
        return (path / ".git").is_dir()


@pytest.fixture()
def remotes(monkeypatch, tmp_path) -> FakeRemotes:
    fake = FakeRemotes(tmp_path / "remotes")
    monkeypatch.setattr(git, "cloneRepository", fake.clone)
    monkeypatch.setattr(git, "updateRepository", fake.pull)
    monkeypatch.setattr(git, "isGitRepository", fake.isRepo)
    return fake


@pytest.fixture()
def modTree():
    return writeModPackage


@pytest.fixture()
def legacyTree():
    return writeLegacyPackage
