"""Mortar template tree.

Every node is a frozen dataclass carrying ``passage_name`` and
``line_number``. The parser produces these trees once; the renderer only
reads them.

Node kinds:
    Text, ParagraphBreak, Element, LinkBox, ErrorNode: markup
    Expr (with Index / Call postscript ops): variable and macro references
    MacroChain (of ChainSegment): chained macros such as @if / @else
"""

from mortar.nodes.base import Node
from mortar.nodes.control_flow import ChainSegment, MacroChain
from mortar.nodes.expressions import Call, Expr, Index, PostscriptOp, Scope
from mortar.nodes.markup import Element, ErrorNode, LinkBox, ParagraphBreak, Text

__all__ = [
    "Call",
    "ChainSegment",
    "Element",
    "ErrorNode",
    "Expr",
    "Index",
    "LinkBox",
    "MacroChain",
    "Node",
    "ParagraphBreak",
    "PostscriptOp",
    "Scope",
    "Text",
]
