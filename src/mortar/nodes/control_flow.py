"""Control flow nodes for Mortar template trees."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from mortar.nodes.base import Node


@dataclass(frozen=True, slots=True)
class ChainSegment:
    """One macro of a chain: @else if(cond) {...}"""

    name: str
    args: Sequence[str]
    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class MacroChain(Node):
    """Sibling macros forming one construct: @if(a) {...} @else {...}"""

    segments: Sequence[ChainSegment]

    @property
    def name(self) -> str:
        return self.segments[0].name
