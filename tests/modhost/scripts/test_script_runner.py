import json
import os
import sys
import textwrap

import pytest

from modhost.core.errors import ExternalToolError, ScriptTimeoutError
from modhost.scripts.evaluator import CallbackEvaluator
from modhost.scripts.runner import STREAM_LIMIT, ScriptRunner, ScriptRunOptions


@pytest.fixture()
def writeScript(tmp_path):
    def write(body: str, name="main.py"):
        path = tmp_path / "plugin42" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        return path

    return write


def _options(**kwargs):
    return ScriptRunOptions(interpreter=sys.executable, **kwargs)


@pytest.mark.asyncio
async def test_signal_is_dispatched_and_hidden(writeScript, fakeHost):
    script = writeScript("""
        import json, os, sys
        ctx = json.loads(os.environ["MODHOST_CONTEXT"])
        print("before", file=sys.stderr)
        print("$$$" + ctx["apiToken"] + "$$$plugin42$$$folder.create(name=Test)", file=sys.stderr)
        print("after", file=sys.stderr)
    """)
    runner = ScriptRunner(host=fakeHost, tokenProvider=lambda: "T1", filterCallbacks=True)

    result = await runner.run(script, _options(pluginId="plugin42"))

    assert result.exitCode == 0
    assert fakeHost.calls == [("folder.create", ({"name": "Test"},), {})]
    assert result.stderr == "before\nafter\n"
    assert runner.evaluator.stats["dispatched"] == 1


@pytest.mark.asyncio
async def test_plugin_id_defaults_to_script_folder(writeScript, fakeHost):
    script = writeScript("""
        import sys
        print("$$$T1$$$plugin42$$$folder.rename(name=x)", file=sys.stderr)
        print("$$$T1$$$someone-else$$$folder.rename(name=y)", file=sys.stderr)
    """)
    (script.parent / "plugin.json").write_text(json.dumps({"id": "plugin42", "name": "P"}), encoding="utf-8")

    result = await ScriptRunner(host=fakeHost, tokenProvider=lambda: "T1", filterCallbacks=True).run(script, _options())

    assert fakeHost.calls == [("folder.rename", ({"name": "x"},), {})]
    assert result.stderr == ""


@pytest.mark.asyncio
async def test_context_blob(writeScript, fakeHost):
    fakeHost.items = ["i1"]
    fakeHost.folders = ["f2", "f1"]
    script = writeScript("""
        import os
        print(os.environ["MODHOST_CONTEXT"])
    """)

    result = await ScriptRunner(host=fakeHost, tokenProvider=lambda: "T1").run(script, _options())

    assert json.loads(result.stdout) == {"selected": {"folders": ["f2", "f1"], "items": ["i1"]}, "apiToken": "T1"}


@pytest.mark.asyncio
async def test_output_streams_to_sinks(writeScript):
    script = writeScript("""
        import os, sys
        print("out-1")
        print("err-1", file=sys.stderr)
        print(os.getcwd())
        sys.exit(3)
    """)
    seenOut, seenErr = [], []

    result = await ScriptRunner().run(script, _options(onStdout=seenOut.append, onStderr=seenErr.append))

    assert result.exitCode == 3
    assert seenOut[0] == "out-1\n"
    assert os.path.samefile(seenOut[1].strip(), script.parent)
    assert seenErr == ["err-1\n"]
    assert result.stdout == "".join(seenOut)


@pytest.mark.asyncio
async def test_without_filtering_signals_are_plain_output(writeScript, fakeHost):
    script = writeScript("""
        import sys
        print("$$$T1$$$plugin42$$$folder.create(name=Test)", file=sys.stderr)
    """)
    runner = ScriptRunner(host=fakeHost, tokenProvider=lambda: "T1")

    result = await runner.run(script, _options(pluginId="plugin42"))

    assert runner.filterCallbacks is False
    assert fakeHost.calls == []
    assert result.stderr.startswith("$$$T1$$$plugin42$$$")


@pytest.mark.asyncio
async def test_timeout_kills_script(writeScript):
    script = writeScript("""
        import time
        time.sleep(30)
    """)

    with pytest.raises(ScriptTimeoutError):
        await ScriptRunner().run(script, _options(timeoutMs=300))


@pytest.mark.asyncio
async def test_missing_interpreter(writeScript, tmp_path):
    script = writeScript("print('x')\n")

    with pytest.raises(ExternalToolError):
        await ScriptRunner().run(script, ScriptRunOptions(interpreter=str(tmp_path / "no-such-python")))


def test_filtering_needs_a_token_source():
    with pytest.raises(ValueError):
        ScriptRunner(filterCallbacks=True)


@pytest.mark.asyncio
async def test_oversized_line_is_split_not_fatal(writeScript, fakeHost):
    script = writeScript("""
        import sys
        sys.stdout.write("x" * (2 * 1024 * 1024))
        sys.stdout.flush()
        print("$$$T1$$$plugin42$$$folder.create(name=Big)", file=sys.stderr)
    """)
    pieces = []
    runner = ScriptRunner(host=fakeHost, tokenProvider=lambda: "T1", filterCallbacks=True)

    result = await runner.run(script, _options(pluginId="plugin42", onStdout=pieces.append))

    assert result.exitCode == 0
    assert result.stdout == "x" * (2 * 1024 * 1024)
    assert len(pieces) == 2 and all(len(piece) <= STREAM_LIMIT for piece in pieces)
    assert fakeHost.calls == [("folder.create", ({"name": "Big"},), {})]
    assert result.stderr == ""


class ExplodingEvaluator(CallbackEvaluator):
    async def handleLine(self, line, pluginId):
        raise RuntimeError("evaluator broke")


@pytest.mark.asyncio
async def test_child_is_killed_when_reading_fails(writeScript, fakeHost):
    script = writeScript("""
        import os, sys, time
        print(os.getpid(), flush=True)
        time.sleep(0.5)
        print("$$$T1$$$plugin42$$$folder.create(name=x)", file=sys.stderr, flush=True)
        time.sleep(30)
    """)
    seen = []
    runner = ScriptRunner(host=fakeHost, evaluator=ExplodingEvaluator(fakeHost, lambda: "T1"))

    with pytest.raises(RuntimeError):
        await runner.run(script, _options(pluginId="plugin42", onStdout=seen.append))

    pid = int(seen[0])
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)
