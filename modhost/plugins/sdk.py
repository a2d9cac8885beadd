# modhost/plugins/sdk.py
from __future__ import annotations

import json
import logging
import zipfile
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from modhost.core.jsonfile import JsonFile
from modhost.host.dom import Document, Element
from modhost.store.layout import RepositoryStore

logger = logging.getLogger(__name__)

__all__ = [
    "PluginStorage", "ListenerTracker", "Button", "CardManager",
    "FileUtils", "PathUtils", "PluginUtils", "PluginSDK", "PluginContext",
]



class PluginStorage:
    """Persistent storage scoped to one plugin: every key lives under `{pluginId}_{key}`."""

    def __init__(self, backing: JsonFile, pluginId: str):
        self._backing = backing
        self.pluginId = pluginId

    def _key(self, key: str) -> str:
        return f"{self.pluginId}_{key}"

    def getItem(self, key: str, default: Any = None) -> Any:
        raw = self._backing.getValue(self._key(key))
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return raw

    def setItem(self, key: str, value: Any) -> None:
        self._backing.setValue(self._key(key), json.dumps(value))

    def removeItem(self, key: str) -> bool:
        return self._backing.deleteValue(self._key(key))

    def keys(self) -> list[str]:
        prefix = f"{self.pluginId}_"
        data = self._backing.data or {}
        return [key[len(prefix):] for key in data if key.startswith(prefix)]

    def clear(self) -> None:
        for key in self.keys():
            self.removeItem(key)



class ListenerTracker:
    """Remembers listeners a plugin attached so teardown can detach them."""

    def __init__(self):
        self._entries: list[tuple[Element, str, Callable]] = []
        self._cleanups: list[Callable[[], Any]] = []

    def listen(self, element: Element, eventType: str, listener: Callable) -> None:
        element.addEventListener(eventType, listener)
        self._entries.append((element, eventType, listener))

    def onCleanup(self, callback: Callable[[], Any]) -> None:
        self._cleanups.append(callback)

    def __len__(self) -> int:
        return len(self._entries) + len(self._cleanups)

    def cleanup(self) -> None:
        for element, eventType, listener in self._entries:
            element.removeEventListener(eventType, listener)
        self._entries.clear()
        callbacks, self._cleanups = self._cleanups, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Plugin cleanup callback failed")

# ---------- visual ----------

class Button:
    def __init__(self, tracker: ListenerTracker, document: Document):
        self._tracker = tracker
        self._document = document

    def create(self, container: Element, text: str, onClick: Callable[[Any], Any], *, id: str | None = None, className: str = "btn") -> Element:
        button = self._document.createElement("button")
        if id:
            button.id = id
        button.className = className
        button.textContent = text
        self._tracker.listen(button, "click", onClick)
        container.appendChild(button)
        return button



class CardManager:
    def __init__(self, container: Element, document: Document):
        self._container = container
        self._document = document
        self._cards: dict[str, Element] = {}

    def addCard(self, cardId: str, title: str, content: str = "") -> Element:
        self.removeCard(cardId)
        card = self._document.createElement("div")
        card.id = f"card-{cardId}"
        card.className = "card"
        card.innerHTML = f"<h3>{title}</h3>{content}"
        self._container.appendChild(card)
        self._cards[cardId] = card
        return card

    def removeCard(self, cardId: str) -> bool:
        card = self._cards.pop(cardId, None)
        if card is None:
            return False
        card.remove()
        return True

    def clear(self) -> None:
        for cardId in list(self._cards):
            self.removeCard(cardId)

    def __len__(self) -> int:
        return len(self._cards)

# ---------- utils ----------

class FileUtils:
    @staticmethod
    def formatBytes(size: int, decimals: int = 2) -> str:
        if size <= 0:
            return "0 Bytes"
        units = ["Bytes", "KB", "MB", "GB", "TB"]
        idx = 0
        value = float(size)
        while value >= 1024 and idx < len(units) - 1:
            value /= 1024
            idx += 1
        return f"{round(value, decimals):g} {units[idx]}"

    @staticmethod
    def listZipContents(zipPath: Path) -> list[str]:
        with zipfile.ZipFile(zipPath) as archive:
            return archive.namelist()

    @staticmethod
    def extractZip(zipPath: Path, targetDir: Path) -> list[Path]:
        """Extract, refusing members that would land outside `targetDir`."""
        targetDir.mkdir(parents=True, exist_ok=True)
        root = targetDir.resolve()
        written: list[Path] = []
        with zipfile.ZipFile(zipPath) as archive:
            for member in archive.infolist():
                dest = (root / member.filename).resolve()
                if not dest.is_relative_to(root):
                    raise ValueError(f"Archive member escapes target: {member.filename}")
                archive.extract(member, root)
                written.append(dest)
        return written

    @staticmethod
    def createFile(path: Path, content: str | bytes = "") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path



class PathUtils:
    def __init__(self, store: RepositoryStore):
        self._store = store

    def baseDir(self) -> Path:
        return self._store.baseDir

    def extensionsDir(self) -> Path:
        return self._store.extensionsDir

    def downloadDir(self) -> Path:
        return self._store.downloadDir

    def pluginDir(self, pluginId: str) -> Path:
        return self._store.extensionsDir / pluginId



@dataclass
class PluginUtils:
    files: FileUtils
    paths: PathUtils



@dataclass
class PluginSDK:
    button: Button
    cards: CardManager
    utils: PluginUtils
    webapi: Any = None



@dataclass
class PluginContext:
    """The single argument plugin code receives."""
    pluginId: str
    container: Element
    storage: PluginStorage
    sdk: PluginSDK
    logger: logging.Logger
    listeners: ListenerTracker
    host: Any = None
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def webapi(self) -> Any:
        return self.sdk.webapi
