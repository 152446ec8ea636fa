"""Expression nodes for Mortar template trees."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from mortar.nodes.base import Node


class Scope(Enum):
    """Variable scope selected by a sigil."""

    CONSTANTS = "@"
    STORY = "$"
    TEMP = "_"

    @property
    def sigil(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Index:
    """Property read: ``.field`` or ``[expr]``.

    ``key`` is the literal field name when ``needs_eval`` is false, otherwise
    rewritten expression source. ``raw`` is the text as written.
    """

    key: str
    needs_eval: bool
    raw: str


@dataclass(frozen=True, slots=True)
class Call:
    """Call with expression arguments: ``(a, b)``"""

    args: Sequence[str]
    raw: str


PostscriptOp = Index | Call


@dataclass(frozen=True, slots=True)
class Expr(Node):
    """Variable reference, call or macro invocation: $name, _name.x, @macro(a) {...}

    ``content`` is ``None`` when no body was written and an empty tuple for an
    explicit ``{}`` body.
    """

    scope: Scope
    base: str
    ops: Sequence[PostscriptOp] = ()
    content: Sequence[Node] | None = None

    @property
    def source(self) -> str:
        """Sigil, base name and ops as written."""
        return self.scope.sigil + self.base + "".join(op.raw for op in self.ops)

    @property
    def trailing_call(self) -> Call | None:
        if self.ops and isinstance(self.ops[-1], Call):
            return self.ops[-1]
        return None
