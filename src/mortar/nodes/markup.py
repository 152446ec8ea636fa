"""Markup nodes for Mortar template trees."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from mortar.nodes.base import Node


@dataclass(frozen=True, slots=True)
class Text(Node):
    """Literal text between markup constructs."""

    value: str


@dataclass(frozen=True, slots=True)
class ParagraphBreak(Node):
    """Whitespace run holding two or more line breaks."""

    raw: str


@dataclass(frozen=True, slots=True)
class Element(Node):
    """HTML-like element: <name key="value" key=(expr)>...</name>

    ``attributes`` and ``eval_attributes`` are ordered ``(key, value)`` pairs.
    Values in ``eval_attributes`` are rewritten expression source, evaluated
    once per render.
    """

    name: str
    attributes: Sequence[tuple[str, str]] = ()
    eval_attributes: Sequence[tuple[str, str]] = ()
    content: Sequence[Node] = ()

    def get_attribute(self, key: str) -> str | None:
        for name, value in self.attributes:
            if name == key:
                return value
        return None


@dataclass(frozen=True, slots=True)
class LinkBox(Node):
    """Wiki-style link: [[text->link]]"""

    link: str
    text: str


@dataclass(frozen=True, slots=True)
class ErrorNode(Node):
    """A diagnostic shown in place of content that failed to parse."""

    message: str
    location_sample: str = ""
