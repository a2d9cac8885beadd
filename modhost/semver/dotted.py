# modhost/semver/dotted.py
from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering
from itertools import zip_longest

__all__ = [
    "DottedVersion", "parseDottedVersion", "compareVersions", "versionDiff", "getHigherVersion",
]



@total_ordering
@dataclass(frozen=True)
class DottedVersion:
    """
    Dot-separated integer version ("1", "1.2", "1.2.10").

    Ordering is per-segment numeric; missing trailing segments count as zero,
    so "1.2" == "1.2.0".
    """
    parts: tuple[int, ...]

    def __str__(self) -> str:
        return ".".join(str(part) for part in self.parts)

    def _cmp(self, other: DottedVersion) -> int:
        for left, right in zip_longest(self.parts, other.parts, fillvalue=0):
            if left != right:
                return 1 if left > right else -1
        return 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DottedVersion):
            return NotImplemented
        return self._cmp(other) == 0

    def __hash__(self) -> int:
        trimmed = list(self.parts)
        while trimmed and trimmed[-1] == 0:
            trimmed.pop()
        return hash(tuple(trimmed))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, DottedVersion):
            return NotImplemented
        return self._cmp(other) < 0



def parseDottedVersion(raw: str) -> DottedVersion:
    """
    Parse "1.2.3" style strings. A leading "v" is accepted.

    Non-numeric segments are rejected, so "1.2.x" and "1..2" raise ValueError.
    """
    if raw is None:
        raise ValueError("Version string cannot be None")
    if not isinstance(raw, str):
        raise TypeError(f"Version string must be a string type, got {type(raw).__name__}")

    raw = raw.strip()
    if raw.startswith("v") and len(raw) > 1 and raw[1].isdigit():
        raw = raw[1:]
    if not raw:
        raise ValueError("Version string cannot be empty or whitespace only")

    parts: list[int] = []
    for segment in raw.split("."):
        if not segment.isdigit():
            raise ValueError(f"Invalid version segment '{segment}' in '{raw}'")
        parts.append(int(segment))
    return DottedVersion(tuple(parts))



def compareVersions(first: str, second: str) -> int:
    """Returns 1 when `first` is newer, -1 when older and 0 when equal."""
    return parseDottedVersion(first)._cmp(parseDottedVersion(second))



def versionDiff(installed: str, upstream: str) -> int:
    """
    Positive when `upstream` is newer than `installed`, negative when older,
    zero when they are equal.
    """
    return compareVersions(upstream, installed)



def getHigherVersion(first: str, second: str) -> str:
    return first if compareVersions(first, second) >= 0 else second
