# modhost/scripts/signals.py
"""
Callback signal grammar.

A script asks the host to do something by writing one line to stderr:

    $$$<token>$$$<pluginId>$$$<namespace>.<method>(<key>=<value>, ...)

The argument list may be followed by further parenthesized groups. Every
group contributes its key=value pairs; a group that only says `options`
(e.g. `((options))`) is a marker and carries no data. Values are coerced
in this order: quoted string, number, boolean (True/False/true/false),
None/null, raw text.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from modhost.core.errors import InvalidInputError

__all__ = [
    "SIGNAL_MARKER", "OPTIONS_MARKER", "SignalSyntaxError", "CallbackSignal",
    "looksLikeSignal", "signalPrefix", "parseSignal", "parseArguments", "parseValue", "stripSignals",
]



SIGNAL_MARKER = "$$$"
OPTIONS_MARKER = "options"

_SHAPE_RE = re.compile(r"^\$\$\$[^$\r\n]*\$\$\$[^$\r\n]*\$\$\$")
_METHOD_RE = re.compile(r"[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)+")
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_INT_RE = re.compile(r"^[+-]?\d+$")



class SignalSyntaxError(InvalidInputError):
    pass



@dataclass(frozen=True)
class CallbackSignal:
    token: str
    pluginId: str
    method: str
    args: dict[str, Any] = field(default_factory=dict)

    @property
    def namespace(self) -> str:
        return self.method.split(".", 1)[0]

    @property
    def methodName(self) -> str:
        return self.method.split(".", 1)[1]



def looksLikeSignal(line: str) -> bool:
    """True for any line shaped like a signal header, valid token or not."""
    return bool(_SHAPE_RE.match(line.strip()))



def signalPrefix(token: str, pluginId: str) -> str:
    return f"{SIGNAL_MARKER}{token}{SIGNAL_MARKER}{pluginId}{SIGNAL_MARKER}"



def stripSignals(text: str) -> str:
    """Remove every signal-shaped line from a block of output."""
    if not text:
        return text
    return "".join(line for line in text.splitlines(keepends=True) if not looksLikeSignal(line))

# ---------- Parser ----------

def parseSignal(line: str) -> CallbackSignal:
    text = line.strip()
    if not text.startswith(SIGNAL_MARKER):
        raise SignalSyntaxError(f"Signal must start with '{SIGNAL_MARKER}'")

    pos = len(SIGNAL_MARKER)
    fields: list[str] = []
    for _ in range(2):
        end = text.find(SIGNAL_MARKER, pos)
        if end < 0:
            raise SignalSyntaxError("Signal header is incomplete")
        fields.append(text[pos:end])
        pos = end + len(SIGNAL_MARKER)
    token, pluginId = fields
    if not token or not pluginId:
        raise SignalSyntaxError("Signal token and plugin id must be non-empty")

    match = _METHOD_RE.match(text, pos)
    if not match:
        raise SignalSyntaxError(f"Expected '<namespace>.<method>' at column {pos}")
    method = match.group(0)
    pos = match.end()

    args: dict[str, Any] = {}
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        if text[pos] != "(":
            raise SignalSyntaxError(f"Unexpected '{text[pos]}' at column {pos}")
        content, pos = _readGroup(text, pos)
        _collectGroup(content, args)

    return CallbackSignal(token=token, pluginId=pluginId, method=method, args=args)



def parseArguments(text: str) -> dict[str, Any]:
    """Parse one or more `(k=v, ...)` groups."""
    args: dict[str, Any] = {}
    pos = 0
    text = text.strip()
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        content, pos = _readGroup(text, pos)
        _collectGroup(content, args)
    return args



def _readGroup(text: str, start: int) -> tuple[str, int]:
    """`text[start]` is '('. Returns (inner content, index after the matching ')')."""
    if text[start] != "(":
        raise SignalSyntaxError(f"Expected '(' at column {start}")
    depth = 0
    quote: str | None = None
    idx = start
    while idx < len(text):
        ch = text[idx]
        if quote:
            if ch == "\\":
                idx += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return text[start + 1:idx], idx + 1
        idx += 1
    raise SignalSyntaxError("Unbalanced parentheses in signal arguments")



def _unwrap(content: str) -> str:
    inner = content.strip()
    while inner.startswith("(") and inner.endswith(")"):
        group, end = _readGroup(inner, 0)
        if end != len(inner):
            break
        inner = group.strip()
    return inner



def _collectGroup(content: str, args: dict[str, Any]) -> None:
    inner = _unwrap(content)
    if not inner or inner == OPTIONS_MARKER:
        return
    if inner.startswith("("):
        # Several nested groups side by side: ((a=1)(b=2))
        args.update(parseArguments(inner))
        return
    for pair in _splitTopLevel(inner):
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        args[key] = parseValue(value)



def _splitTopLevel(text: str) -> list[str]:
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None
    escaped = False
    for ch in text:
        if quote:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in ("'", '"'):
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    if current:
        parts.append("".join(current))
    return parts



def parseValue(raw: str) -> Any:
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return re.sub(r"\\(.)", r"\1", value[1:-1])
    if _NUMBER_RE.match(value):
        return int(value) if _INT_RE.match(value) else float(value)
    if value in ("True", "true"):
        return True
    if value in ("False", "false"):
        return False
    if value in ("None", "null"):
        return None
    return value
