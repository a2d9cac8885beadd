# modhost/host/dom.py
from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from typing import Any

logger = logging.getLogger(__name__)

__all__ = ["Element", "Document", "matchesSelector"]

Listener = Callable[[Any], Any]

_SELECTOR_RE = re.compile(
    r"^(?:#(?P<id>[\w\-]+)"
    r"|\.(?P<cls>[\w\-]+)"
    r"|\[(?P<attr>[\w\-]+)(?:(?P<op>\^?=)[\"']?(?P<value>[^\"'\]]*)[\"']?)?\]"
    r"|(?P<tag>[A-Za-z][\w\-]*))$"
)



class Element:
    """
    Minimal in-memory DOM node. Host integrations mirror it onto the real
    UI; plugins and mods only ever see this model.
    """

    def __init__(self, tagName: str = "div", *, id: str | None = None, ownerDocument: Document | None = None):
        self.tagName = tagName.lower()
        self.attributes: dict[str, str] = {}
        self.style: dict[str, str] = {}
        self.children: list[Element] = []
        self.parent: Element | None = None
        self.ownerDocument = ownerDocument
        self.textContent = ""
        self._markup = ""
        self._listeners: dict[str, list[Listener]] = {}
        if id:
            self.id = id

    def __repr__(self) -> str:
        ident = f"#{self.id}" if self.id else ""
        return f"<{self.tagName}{ident}>"

    # ---------- Attributes ----------

    @property
    def id(self) -> str:
        return self.attributes.get("id", "")

    @id.setter
    def id(self, value: str) -> None:
        self.attributes["id"] = str(value)

    @property
    def className(self) -> str:
        return self.attributes.get("class", "")

    @className.setter
    def className(self, value: str) -> None:
        self.attributes["class"] = str(value)

    @property
    def classList(self) -> list[str]:
        return self.className.split()

    def setAttribute(self, name: str, value: Any) -> None:
        self.attributes[name] = str(value)

    def getAttribute(self, name: str) -> str | None:
        return self.attributes.get(name)

    def hasAttribute(self, name: str) -> bool:
        return name in self.attributes

    def removeAttribute(self, name: str) -> None:
        self.attributes.pop(name, None)

    # ---------- Content ----------

    @property
    def innerHTML(self) -> str:
        return self._markup + "".join(child.outerHTML for child in self.children)

    @innerHTML.setter
    def innerHTML(self, markup: str) -> None:
        for child in list(self.children):
            child.parent = None
        self.children = []
        self._markup = "" if markup is None else str(markup)

    @property
    def outerHTML(self) -> str:
        attrs = "".join(f' {key}="{value}"' for key, value in self.attributes.items())
        return f"<{self.tagName}{attrs}>{self.textContent}{self.innerHTML}</{self.tagName}>"

    # ---------- Tree ----------

    def appendChild(self, child: Element) -> Element:
        if child.parent is not None:
            child.parent.removeChild(child)
        child.parent = self
        if child.ownerDocument is None:
            child.ownerDocument = self.ownerDocument
        self.children.append(child)
        return child

    def removeChild(self, child: Element) -> Element:
        self.children.remove(child)
        child.parent = None
        return child

    def replaceChild(self, newChild: Element, oldChild: Element) -> Element:
        idx = self.children.index(oldChild)
        if newChild.parent is not None:
            newChild.parent.removeChild(newChild)
        self.children[idx] = newChild
        newChild.parent = self
        oldChild.parent = None
        return oldChild

    def remove(self) -> None:
        if self.parent is not None:
            self.parent.removeChild(self)

    def cloneNode(self, deep: bool = True) -> Element:
        """Copy attributes, style and content. Event listeners are never copied."""
        clone = Element(self.tagName, ownerDocument=self.ownerDocument)
        clone.attributes = dict(self.attributes)
        clone.style = dict(self.style)
        clone.textContent = self.textContent
        if deep:
            clone._markup = self._markup
            for child in self.children:
                clone.appendChild(child.cloneNode(True))
        return clone

    def iterDescendants(self) -> Iterator[Element]:
        for child in self.children:
            yield child
            yield from child.iterDescendants()

    def contains(self, other: Element) -> bool:
        node: Element | None = other
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    # ---------- Queries ----------

    def querySelectorAll(self, selector: str) -> list[Element]:
        return [el for el in self.iterDescendants() if matchesSelector(el, selector)]

    def querySelector(self, selector: str) -> Element | None:
        return next((el for el in self.iterDescendants() if matchesSelector(el, selector)), None)

    def getElementById(self, elementId: str) -> Element | None:
        return next((el for el in self.iterDescendants() if el.id == elementId), None)

    # ---------- Events ----------

    def addEventListener(self, eventType: str, listener: Listener) -> None:
        self._listeners.setdefault(eventType, []).append(listener)

    def removeEventListener(self, eventType: str, listener: Listener) -> None:
        listeners = self._listeners.get(eventType)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listenerCount(self, eventType: str | None = None) -> int:
        if eventType is not None:
            return len(self._listeners.get(eventType, []))
        return sum(len(items) for items in self._listeners.values())

    def dispatchEvent(self, eventType: str, event: Any = None) -> int:
        """Invoke listeners synchronously; returns how many ran. Listener errors are logged."""
        ran = 0
        for listener in list(self._listeners.get(eventType, [])):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener for '%s' on %r failed", eventType, self)
            ran += 1
        return ran



def matchesSelector(el: Element, selector: str) -> bool:
    """Supports `#id`, `.class`, `tag`, `[attr]`, `[attr=value]` and `[attr^=prefix]`."""
    match = _SELECTOR_RE.match(selector.strip())
    if not match:
        raise ValueError(f"Unsupported selector '{selector}'")
    if match.group("id"):
        return el.id == match.group("id")
    if match.group("cls"):
        return match.group("cls") in el.classList
    if match.group("tag"):
        return el.tagName == match.group("tag").lower()

    attr = match.group("attr")
    if attr not in el.attributes:
        return False
    op = match.group("op")
    if op is None:
        return True
    value = match.group("value") or ""
    if op == "^=":
        return el.attributes[attr].startswith(value)
    return el.attributes[attr] == value



class Document:
    def __init__(self):
        self.documentElement = Element("html", ownerDocument=self)
        self.head = self.documentElement.appendChild(Element("head", ownerDocument=self))
        self.body = self.documentElement.appendChild(Element("body", ownerDocument=self))

    def createElement(self, tagName: str) -> Element:
        return Element(tagName, ownerDocument=self)

    def getElementById(self, elementId: str) -> Element | None:
        return self.documentElement.getElementById(elementId)

    def querySelector(self, selector: str) -> Element | None:
        return self.documentElement.querySelector(selector)

    def querySelectorAll(self, selector: str) -> list[Element]:
        return self.documentElement.querySelectorAll(selector)
