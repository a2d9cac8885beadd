# modhost/store/git.py
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from modhost.app.settings import settings

logger = logging.getLogger(__name__)

__all__ = [
    "GitResult", "parseGitUrl", "executeGitCommand", "cloneRepository",
    "updateRepository", "isGitRepository", "readOriginUrl",
]



# https://github.com/o/r(.git), git@github.com:o/r(.git), ssh://git@github.com/o/r
GIT_URL_RE = re.compile(r"github\.com[:/](?P<owner>[^/:\s]+)/(?P<repo>[^/\s]+?)(?:\.git)?/?$")
ORIGIN_URL_RE = re.compile(r"^\s*url\s*=\s*(.+?)\s*$", re.MULTILINE)



@dataclass(frozen=True)
class GitResult:
    success: bool
    output: str



def parseGitUrl(url: str) -> tuple[str, str] | None:
    """Returns (owner, repo) for a GitHub URL, or None when unparseable."""
    if not isinstance(url, str):
        return None
    match = GIT_URL_RE.search(url.strip())
    if not match:
        return None
    owner, repo = match.group("owner"), match.group("repo")
    if not owner or not repo or repo == ".git":
        return None
    return owner, repo



async def executeGitCommand(args: list[str], cwd: Path | None = None) -> GitResult:
    gitExe = str(settings("git.executable", "git"))
    logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
    try:
        proc = await asyncio.create_subprocess_exec(
            gitExe, *args,
            cwd=str(cwd) if cwd is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except (FileNotFoundError, NotADirectoryError, PermissionError) as err:
        logger.error("Failed to spawn git: %s", err)
        return GitResult(False, str(err))

    outBytes, _ = await proc.communicate()
    output = outBytes.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        logger.warning("git %s exited with %s: %s", args[0] if args else "", proc.returncode, output.strip()[:500])
    return GitResult(proc.returncode == 0, output)



async def cloneRepository(url: str, target: Path) -> GitResult:
    return await executeGitCommand(["clone", url, str(target)])



async def updateRepository(repoPath: Path) -> GitResult:
    return await executeGitCommand(["pull"], cwd=repoPath)



async def isGitRepository(path: Path) -> bool:
    if not path.is_dir():
        return False
    result = await executeGitCommand(["status"], cwd=path)
    return result.success



def readOriginUrl(repoPath: Path) -> str | None:
    """Reads the first `url = ...` line from .git/config without spawning git."""
    configPath = repoPath / ".git" / "config"
    try:
        text = configPath.read_text(encoding="utf-8")
    except OSError:
        return None
    match = ORIGIN_URL_RE.search(text)
    return match.group(1) if match else None
