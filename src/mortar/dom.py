"""Document tree and host adapter for Mortar output.

The renderer builds output as a small in-memory document tree (``Element``,
``Text`` and ``Fragment`` nodes) and talks to its embedder through the
``Host`` protocol for the things a tree cannot do by itself: scheduling
delayed callbacks, finding nodes in the live document, and telling whether a
node is still part of it.

``MemoryHost`` implements the protocol with a virtual clock. It is what the
test suite uses, and what embedders without a real UI can use to render
passages to HTML:

    >>> host = MemoryHost()
    >>> host.document.append(Element("p", {"class": "intro"}, ["Hello"]))
    >>> host.document.inner_html
    '<p class="intro">Hello</p>'

Adjacent text nodes are merged on insertion, so a sequence of appended
strings always reads back as one text node.
"""

from __future__ import annotations

import heapq
import html
import itertools
import re
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from mortar.utils.constants import VOID_TAGS

Listener = Callable[["Event"], Any]

_SELECTOR = re.compile(r"([-\w]+|\*)?((?:#[-\w]+|\.[-\w]+)*)$")
_SELECTOR_PART = re.compile(r"([#.])([-\w]+)")


@dataclass(slots=True)
class Event:
    """An event delivered to listeners by ``Element.dispatch_event``."""

    type: str
    target: Element
    detail: Any = None


class Node:
    """Base class for document nodes."""

    __slots__ = ("parent",)

    def __init__(self) -> None:
        self.parent: Element | Fragment | None = None

    @property
    def root(self) -> Node:
        node: Node = self
        while node.parent is not None:
            node = node.parent
        return node

    def detach(self) -> None:
        """Remove this node from its parent, if any."""
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None

    def replace_with(self, *items: Node | str) -> None:
        """Put ``items`` where this node is, and detach it."""
        parent = self.parent
        if parent is None:
            raise ValueError("Cannot replace a node that has no parent")
        index = parent.children.index(self)
        self.detach()
        parent.insert(index, *items)

    @property
    def text_content(self) -> str:
        raise NotImplementedError

    def to_html(self) -> str:
        raise NotImplementedError


class Text(Node):
    """A run of text."""

    __slots__ = ("data",)

    def __init__(self, data: str):
        super().__init__()
        self.data = data

    @property
    def text_content(self) -> str:
        return self.data

    def to_html(self) -> str:
        return html.escape(self.data, quote=False)

    def __repr__(self) -> str:
        return f"Text({self.data!r})"


class _ParentNode(Node):
    """Shared child management for elements and fragments."""

    __slots__ = ("children",)

    def __init__(self, children: Iterable[Node | str] = ()):
        super().__init__()
        self.children: list[Node] = []
        self.append(*children)

    def _adopt(self, items: Iterable[Node | str]) -> list[Node]:
        """Normalize ``items`` into detached nodes ready to insert."""
        nodes: list[Node] = []
        for item in items:
            if isinstance(item, str):
                if item:
                    nodes.append(Text(item))
            elif isinstance(item, Fragment):
                moved = list(item.children)
                item.children.clear()
                for child in moved:
                    child.parent = None
                nodes.extend(moved)
            else:
                if item is self or (isinstance(item, _ParentNode) and item.contains(self)):
                    raise ValueError("Cannot insert a node into itself")
                item.detach()
                nodes.append(item)
        return nodes

    def insert(self, index: int, *items: Node | str) -> None:
        """Insert ``items`` before position ``index``, merging adjacent text."""
        for node in self._adopt(items):
            prev = self.children[index - 1] if index > 0 else None
            if isinstance(node, Text) and isinstance(prev, Text):
                prev.data += node.data
                continue
            node.parent = self
            self.children.insert(index, node)
            index += 1
        if 0 < index < len(self.children):
            self._merge_at(index)

    def _merge_at(self, index: int) -> None:
        prev, node = self.children[index - 1], self.children[index]
        if isinstance(prev, Text) and isinstance(node, Text):
            prev.data += node.data
            node.parent = None
            del self.children[index]

    def append(self, *items: Node | str) -> None:
        self.insert(len(self.children), *items)

    def prepend(self, *items: Node | str) -> None:
        self.insert(0, *items)

    def clear(self) -> None:
        for child in self.children:
            child.parent = None
        self.children.clear()

    def contains(self, node: Node) -> bool:
        current: Node | None = node
        while current is not None:
            if current is self:
                return True
            current = current.parent
        return False

    def iter_elements(self) -> Iterator[Element]:
        """Yield descendant elements in document order."""
        for child in self.children:
            if isinstance(child, Element):
                yield child
            if isinstance(child, _ParentNode):
                yield from child.iter_elements()

    def query_selector_all(self, selector: str) -> list[Element]:
        """Descendants matching a simple selector: ``tag``, ``#id``, ``.class``
        or a compound of those such as ``span.note``."""
        match = _SELECTOR.match(selector.strip())
        if not match or not selector.strip():
            raise ValueError(f"Unsupported selector: {selector!r}")
        tag, rest = match.groups()
        ids = [name for kind, name in _SELECTOR_PART.findall(rest) if kind == "#"]
        classes = [name for kind, name in _SELECTOR_PART.findall(rest) if kind == "."]
        found = []
        for element in self.iter_elements():
            if tag and tag != "*" and element.tag != tag.lower():
                continue
            if any(element.get_attribute("id") != i for i in ids):
                continue
            if not all(element.has_class(c) for c in classes):
                continue
            found.append(element)
        return found

    def query_selector(self, selector: str) -> Element | None:
        matches = self.query_selector_all(selector)
        return matches[0] if matches else None

    @property
    def text_content(self) -> str:
        return "".join(child.text_content for child in self.children)

    @property
    def inner_html(self) -> str:
        return "".join(child.to_html() for child in self.children)


class Fragment(_ParentNode):
    """A parentless group of nodes; appending it moves its children."""

    __slots__ = ()

    def to_html(self) -> str:
        return self.inner_html

    def __repr__(self) -> str:
        return f"Fragment({self.children!r})"


class Element(_ParentNode):
    """A tagged node with attributes, children and event listeners."""

    __slots__ = ("_listeners", "attributes", "tag")

    def __init__(
        self,
        tag: str,
        attributes: dict[str, str] | None = None,
        children: Iterable[Node | str] = (),
    ):
        self.tag = tag.lower()
        self.attributes: dict[str, str] = dict(attributes or {})
        self._listeners: dict[str, list[Listener]] = {}
        super().__init__(children)

    def get_attribute(self, name: str) -> str | None:
        return self.attributes.get(name)

    def set_attribute(self, name: str, value: str) -> None:
        self.attributes[name] = value

    def remove_attribute(self, name: str) -> None:
        self.attributes.pop(name, None)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    @property
    def class_list(self) -> list[str]:
        return self.attributes.get("class", "").split()

    def has_class(self, name: str) -> bool:
        return name in self.class_list

    def add_class(self, name: str) -> None:
        classes = self.class_list
        if name not in classes:
            self.attributes["class"] = " ".join([*classes, name])

    def remove_class(self, name: str) -> None:
        classes = [c for c in self.class_list if c != name]
        if classes:
            self.attributes["class"] = " ".join(classes)
        else:
            self.attributes.pop("class", None)

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        self._listeners.setdefault(event_type, []).append(listener)

    def listeners(self, event_type: str) -> list[Listener]:
        return list(self._listeners.get(event_type, ()))

    def dispatch_event(self, event_type: str, detail: Any = None) -> Event:
        """Call this element's listeners for ``event_type`` in order.

        Exceptions raised by a listener propagate to the caller.
        """
        event = Event(event_type, self, detail)
        for listener in self.listeners(event_type):
            listener(event)
        return event

    def click(self) -> Event:
        return self.dispatch_event("click")

    def to_html(self) -> str:
        attrs = "".join(
            f' {name}="{html.escape(value, quote=True)}"' for name, value in self.attributes.items()
        )
        if self.tag in VOID_TAGS and not self.children:
            return f"<{self.tag}{attrs}>"
        return f"<{self.tag}{attrs}>{self.inner_html}</{self.tag}>"

    @property
    def outer_html(self) -> str:
        return self.to_html()

    def __repr__(self) -> str:
        return f"<Element {self.tag} {self.attributes!r} children={len(self.children)}>"


class Host(Protocol):
    """What the renderer needs from the environment it is embedded in."""

    @property
    def document(self) -> Element:
        """Root of the live document."""
        ...

    def set_timeout(self, callback: Callable[[], Any], delay_ms: float) -> None:
        """Run ``callback`` once, ``delay_ms`` milliseconds from now."""
        ...

    def is_attached(self, node: Node) -> bool:
        """True if ``node`` is part of the live document."""
        ...

    def query_selector(self, selector: str) -> Element | None:
        """First element of the live document matching ``selector``."""
        ...


@dataclass(order=True)
class _Timer:
    due: float
    seq: int
    callback: Callable[[], Any] = field(compare=False)


class MemoryHost:
    """In-memory Host with a virtual clock.

    Delayed callbacks only run when the clock is moved with ``advance()``.

    Example:
        >>> host = MemoryHost()
        >>> fired = []
        >>> host.set_timeout(lambda: fired.append(host.now), 40)
        >>> host.advance(39); fired
        []
        >>> host.advance(1); fired
        [40]
    """

    def __init__(self, document: Element | None = None):
        self._document = document if document is not None else Element("body")
        self._timers: list[_Timer] = []
        self._seq = itertools.count()
        self.now: float = 0

    @property
    def document(self) -> Element:
        return self._document

    def set_timeout(self, callback: Callable[[], Any], delay_ms: float) -> None:
        heapq.heappush(self._timers, _Timer(self.now + max(delay_ms, 0), next(self._seq), callback))

    @property
    def pending(self) -> int:
        """Number of callbacks waiting for the clock."""
        return len(self._timers)

    def advance(self, ms: float) -> None:
        """Move the clock forward, running callbacks as they come due.

        Callbacks scheduled by other callbacks run too if they fall due
        within the window.
        """
        target = self.now + ms
        while self._timers and self._timers[0].due <= target:
            timer = heapq.heappop(self._timers)
            self.now = timer.due
            timer.callback()
        self.now = target

    def run_all(self) -> None:
        """Advance until no callbacks are pending."""
        while self._timers:
            self.advance(self._timers[0].due - self.now)

    def is_attached(self, node: Node) -> bool:
        return node is self._document or self._document.contains(node)

    def query_selector(self, selector: str) -> Element | None:
        return self._document.query_selector(selector)
