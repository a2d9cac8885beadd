# modhost/core/redaction.py
from __future__ import annotations

import re

__all__ = ["redactText", "redactSignalToken"]



# Session tokens must never reach a log sink.
_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(?iu)(Bearer\s+)[A-Za-z0-9._\-]+"), r"\1***"),
    (re.compile(r"(?iu)(Authorization\s*[:=]\s*)[A-Za-z0-9._\-]+"), r"\1***"),

    (re.compile(r'(?iu)("api[_\-]?token"\s*:\s*")[^"]+(")'), r"\1***\2"),
    (re.compile(r'(?iu)("token"\s*:\s*")[^"]+(")'), r"\1***\2"),
    (re.compile(r"(?iu)('api[_\-]?token'\s*:\s*')[^']+(')"), r"\1***\2"),

    (re.compile(r"(?iu)([?&]token=)[^&\s\"']+"), r"\1***"),
]

_SIGNAL_TOKEN_RE = re.compile(r"^(\s*\$\$\$)[^$]*(\$\$\$)")



def redactText(text: str) -> str:
    """Return text with sensitive substrings replaced by ***."""
    if not text:
        return text
    out = text
    for pattern, repl in _SENSITIVE_PATTERNS:
        try:
            out = pattern.sub(repl, out)
        except re.error:
            continue
    return out



def redactSignalToken(line: str) -> str:
    """Mask the token segment of a callback signal line before it is logged."""
    return _SIGNAL_TOKEN_RE.sub(r"\1***\2", line, count=1)
