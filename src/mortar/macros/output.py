"""Output macros: @print, @render, @include and the unnamed macro."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mortar.dom import Element, Fragment, Node
from mortar.template.helpers import str_safe

if TYPE_CHECKING:
    from mortar.macros.context import MacroContext


def print_(context: MacroContext, *args: Any) -> str | Node:
    """``@print(value)`` / ``@-(value)``: show a value as text."""
    if len(args) != 1:
        raise TypeError(f"requires 1 argument (got {len(args)})")
    value = args[0]
    if isinstance(value, Node):
        return value
    return str_safe(value)


def render(context: MacroContext, *args: Any) -> Fragment:
    """``@render(markup)`` / ``@=(markup)``: render a string as passage markup."""
    if len(args) != 1:
        raise TypeError(f"requires 1 argument (got {len(args)})")
    source = args[0]
    if not isinstance(source, str):
        raise TypeError("argument must be a string. Use str() to convert a value to a string.")
    nodes = context.env.parse_source(source, context.passage_name, context.line_number)
    fragment = Fragment()
    context.render(fragment, nodes)
    return fragment


def unnamed(context: MacroContext, *args: str) -> None:
    """``@(statement, ...)``: run statements for their side effects."""
    context.execute("\n".join(arg.strip() for arg in args))


def include(context: MacroContext, *args: Any) -> Element:
    """``@include(passage, tag="div")``: render another passage into an element."""
    if not 1 <= len(args) <= 2:
        raise TypeError(f"requires 1 or 2 arguments (got {len(args)})")
    name = args[0]
    tag = args[1] if len(args) == 2 else "div"
    if not isinstance(name, str):
        raise TypeError("first argument (passage name) must be a string")
    if not isinstance(tag, str):
        raise TypeError("second argument (element name) must be a string")

    passage = context.env.get_passage_required(name)
    element = Element(tag)
    context.renderer.render(
        element, context.temp, passage, context.newline_mode, parent_context=context.detached()
    )
    return element
