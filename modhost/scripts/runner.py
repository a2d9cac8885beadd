# modhost/scripts/runner.py
from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from modhost.app.settings import settings
from modhost.core.errors import ExternalToolError, ScriptTimeoutError
from modhost.core.logging import logContext
from modhost.host.types import HostState, readSelection
from modhost.scripts.context import buildScriptContext, contextEnvVar, resolveScriptPluginId, serializeScriptContext
from modhost.scripts.evaluator import CallbackEvaluator, TokenProvider

logger = logging.getLogger(__name__)

__all__ = ["OutputSink", "STREAM_LIMIT", "ScriptRunOptions", "ScriptResult", "ScriptRunner"]



OutputSink = Callable[[str], Any]

# Longest single output line; longer lines are split
STREAM_LIMIT = 1024 * 1024
READ_CHUNK = 64 * 1024



@dataclass
class ScriptRunOptions:
    interpreter: str | None = None
    workingDir: Path | None = None
    timeoutMs: int | None = None
    onStdout: OutputSink | None = None
    onStderr: OutputSink | None = None
    pluginId: str | None = None
    env: dict[str, str] = field(default_factory=dict)



@dataclass(frozen=True)
class ScriptResult:
    exitCode: int
    stdout: str
    stderr: str



async def _emit(sink: OutputSink | None, text: str) -> None:
    if sink is None:
        return
    try:
        result = sink(text)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("Output sink raised; continuing")



class ScriptRunner:
    """
    Spawns an external script with the host context in one environment
    variable and streams its output line by line.

    With `filterCallbacks` on, every stderr line passes through the
    CallbackEvaluator first: signals are acted on (or rejected) and never
    reach the sink or the returned stderr. With it off, the runner is a
    plain process runner.
    """

    def __init__(
        self,
        *,
        host: HostState | None = None,
        tokenProvider: TokenProvider | None = None,
        evaluator: CallbackEvaluator | None = None,
        filterCallbacks: bool | None = None,
    ):
        self.host = host
        self.tokenProvider = tokenProvider
        self.evaluator = evaluator
        self.filterCallbacks = (evaluator is not None) if filterCallbacks is None else filterCallbacks
        if self.filterCallbacks and self.evaluator is None:
            if tokenProvider is None:
                raise ValueError("Callback filtering needs an evaluator or a token provider")
            self.evaluator = CallbackEvaluator(host, tokenProvider)

    async def _token(self) -> str | None:
        provider = self.tokenProvider
        if provider is None and self.evaluator is not None:
            return await self.evaluator.currentToken()
        if provider is None:
            return None
        token = provider()
        if inspect.isawaitable(token):
            token = await token
        return token

    async def run(self, scriptPath: Path | str, options: ScriptRunOptions | None = None) -> ScriptResult:
        options = options or ScriptRunOptions()
        scriptPath = Path(scriptPath).resolve()
        interpreter = options.interpreter or str(settings("scripts.interpreter", "python"))
        workingDir = Path(options.workingDir) if options.workingDir else scriptPath.parent
        timeoutMs = options.timeoutMs if options.timeoutMs is not None else settings("scripts.timeoutMs", None)
        pluginId = resolveScriptPluginId(scriptPath, options.pluginId)

        context = buildScriptContext(await readSelection(self.host), await self._token())
        env = {**os.environ, **options.env, contextEnvVar(): serializeScriptContext(context)}

        with logContext(pluginId=pluginId):
            logger.info("Running script '%s' with '%s' (cwd=%s)", scriptPath, interpreter, workingDir)
            try:
                proc = await asyncio.create_subprocess_exec(
                    interpreter, str(scriptPath),
                    cwd=str(workingDir),
                    env=env,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as err:
                raise ExternalToolError(f"Cannot start '{interpreter}': {err}") from err

            stdoutParts: list[str] = []
            stderrParts: list[str] = []
            work = asyncio.gather(
                self._pump(proc.stdout, stdoutParts, options.onStdout, None),
                self._pump(proc.stderr, stderrParts, options.onStderr, pluginId if self.filterCallbacks else None),
                proc.wait(),
            )
            try:
                if timeoutMs:
                    await asyncio.wait_for(work, timeout=int(timeoutMs) / 1000.0)
                else:
                    await work
            except asyncio.TimeoutError:
                logger.warning("Script '%s' killed after %sms", scriptPath, timeoutMs)
                raise ScriptTimeoutError(scriptPath, int(timeoutMs)) from None
            finally:
                if proc.returncode is None:
                    with contextlib.suppress(ProcessLookupError):
                        proc.kill()
                    work.cancel()
                    await proc.wait()

            result = ScriptResult(proc.returncode if proc.returncode is not None else -1, "".join(stdoutParts), "".join(stderrParts))
            logger.info("Script '%s' exited with %d", scriptPath.name, result.exitCode)
            return result

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        parts: list[str],
        sink: OutputSink | None,
        filterForPlugin: str | None,
    ) -> None:
        """
        Read in chunks and split lines here, so a line of any length is
        delivered. A line longer than STREAM_LIMIT is passed on in
        STREAM_LIMIT-sized pieces.
        """
        if stream is None:
            return
        pending = b""
        while True:
            chunk = await stream.read(READ_CHUNK)
            if not chunk:
                break
            pending += chunk
            while True:
                cut = pending.find(b"\n")
                if cut < 0:
                    if len(pending) < STREAM_LIMIT:
                        break
                    cut = STREAM_LIMIT - 1
                raw, pending = pending[:cut + 1], pending[cut + 1:]
                await self._handleLine(raw, parts, sink, filterForPlugin)
        if pending:
            await self._handleLine(pending, parts, sink, filterForPlugin)

    async def _handleLine(self, raw: bytes, parts: list[str], sink: OutputSink | None, filterForPlugin: str | None) -> None:
        line = raw.decode("utf-8", errors="replace")
        if filterForPlugin is not None and self.evaluator is not None:
            kept = await self.evaluator.handleLine(line, filterForPlugin)
            if kept is None:
                return
        parts.append(line)
        await _emit(sink, line)
