# modhost/core/jsonfile.py
from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any

from modhost.core.jsonutils import prettyJsonDumps

logger = logging.getLogger(__name__)

__all__ = ["JsonFile"]



class JsonFile:
    """
    Small persistent key-value document backed by one JSON file.

    Reads are cached and re-read only when the file's modification time is
    newer than the cached one. Every mutation is written through immediately.
    """

    def __init__(self, path: Path | str, initialData: Any = None):
        self.path = Path(path)
        self._initialData = {} if initialData is None else initialData
        self._data: Any = None
        self._mtime: float | None = None

        if not self.path.exists():
            self._write(copy.deepcopy(self._initialData))
        self.refresh()

    def __repr__(self) -> str:
        return f"JsonFile({str(self.path)!r})"

    def _currentMtime(self) -> float | None:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def _write(self, data: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(prettyJsonDumps(data), encoding="utf-8")
        self._data = data
        self._mtime = self._currentMtime()

    def refresh(self) -> None:
        """Unconditionally re-read the file (recreating it when it has vanished)."""
        mtime = self._currentMtime()
        if mtime is None:
            self._write(copy.deepcopy(self._initialData))
            return
        try:
            self._data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as err:
            logger.warning("Malformed JSON in '%s', resetting to initial value: %s", self.path, err)
            self._write(copy.deepcopy(self._initialData))
            return
        self._mtime = mtime

    @property
    def data(self) -> Any:
        mtime = self._currentMtime()
        if mtime is None or self._mtime is None or mtime > self._mtime:
            self.refresh()
        return self._data

    @data.setter
    def data(self, value: Any) -> None:
        self._write(value)

    def getValue(self, key: str, default: Any = None) -> Any:
        data = self.data
        if isinstance(data, dict):
            return data.get(key, default)
        return default

    def setValue(self, key: str, value: Any) -> None:
        data = self.data
        if not isinstance(data, dict):
            data = {}
        data[key] = value
        self._write(data)

    def deleteValue(self, key: str) -> bool:
        data = self.data
        if not isinstance(data, dict) or key not in data:
            return False
        del data[key]
        self._write(data)
        return True
