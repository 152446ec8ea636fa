"""Control flow macros: @if, @switch, @for, @while, @break, @continue, @macro.

Loops never catch anything. ``@break`` and ``@continue`` set a pending
LoopSignal on their own context; the renderer returns it from every render
call on the way up, and the loop macro reads it as the result of rendering
its body for one iteration.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from mortar.dom import Fragment
from mortar.environment.exceptions import ErrorCode, MacroError
from mortar.environment.registry import MacroSpec
from mortar.macros.context import Capture
from mortar.nodes import ChainSegment, Expr, ParagraphBreak, Scope, Text
from mortar.parser.scripting import IDENTIFIER
from mortar.render_context import LoopSignal

if TYPE_CHECKING:
    from mortar.macros.context import MacroContext

IF_CHAIN = r"else(?:\s+if)?\s*"

_TEMP_PLACE = re.compile(rf"temp\.({IDENTIFIER.pattern})")


def _check_iterations(context: MacroContext, iterations: int) -> None:
    limit = context.env.max_loop_iterations
    if iterations > limit:
        raise RuntimeError(f"Too many iterations (max_loop_iterations = {limit})")


# ─────────────────────────────────────────────────────────────────────────────
# Conditionals
# ─────────────────────────────────────────────────────────────────────────────


def if_(context: MacroContext, *segments: ChainSegment) -> Fragment | None:
    """``@if(cond) {...} @else if(cond) {...} @else {...}``"""
    for i, segment in enumerate(segments):
        if segment.name == "else":
            if segment.args:
                raise ValueError("@else does not take arguments; did you mean @else if(...)?")
            if i != len(segments) - 1:
                raise ValueError("@else must be the last part of an @if chain")
        elif not segment.args:
            raise ValueError(f"@{segment.name} requires a condition")

    for segment in segments:
        if segment.name == "else" or context.evaluate(", ".join(segment.args)):
            fragment = Fragment()
            context.render(fragment, segment.body)
            return fragment
    return None


def _is_case(node: Expr) -> bool:
    return (
        node.scope is Scope.CONSTANTS
        and node.content is not None
        and (
            (node.base == "case" and len(node.ops) == 1 and node.trailing_call is not None)
            or (node.base == "default" and not node.ops)
        )
    )


def switch(context: MacroContext, *args: Any) -> Fragment:
    """``@switch(value) { @case(a, b) {...} @default {...} }``

    Cases are tried in order and compared with ``==``; the first matching
    case renders. Only whitespace may appear between the cases.
    """
    if len(args) != 1:
        raise TypeError(f"requires 1 argument (got {len(args)})")
    if context.content is None:
        raise ValueError("requires a body")
    value = args[0]

    cases: list[Expr] = []
    for node in context.content:
        if isinstance(node, (Text, ParagraphBreak)):
            text = node.value if isinstance(node, Text) else node.raw
            if text.strip():
                raise ValueError("all children must be @case or @default macros")
        elif isinstance(node, Expr) and _is_case(node):
            cases.append(node)
        else:
            raise ValueError("all children must be @case or @default macros")

    for i, case in enumerate(cases):
        if case.base == "default":
            if i != len(cases) - 1:
                raise ValueError("@default must be the last macro")
        else:
            call = case.trailing_call
            if call is None or not call.args:
                raise ValueError("@case requires at least one argument")

    fragment = Fragment()
    for case in cases:
        call = case.trailing_call
        if call is None or any(value == context.evaluate(arg) for arg in call.args):
            context.render(fragment, case.content)
            break
    return fragment


# ─────────────────────────────────────────────────────────────────────────────
# Loops
# ─────────────────────────────────────────────────────────────────────────────


def for_(context: MacroContext, *args: str) -> Fragment:
    """``@for(_item of iterable) {...}``

    Each iteration binds the loop variable in the temp scope and adds it to
    the capture list, so callbacks created in the body keep their own value.
    """
    if len(args) != 2:
        raise TypeError(f"requires exactly 2 arguments (got {len(args)})")
    if context.content is None:
        raise ValueError("requires a body")
    var, iterable_source = (arg.strip() for arg in args)
    if not var.startswith("_"):
        raise ValueError("loop variable must be a temp variable")
    name = var[1:]
    if not IDENTIFIER.fullmatch(name):
        raise ValueError(f'"{var}" is not a valid variable name')

    iterable = context.evaluate(iterable_source)
    try:
        iterator = iter(iterable)
    except TypeError:
        raise TypeError(
            "Right-hand side must be an iterable value, such as a list"
        ) from None

    fragment = Fragment()
    for iterations, value in enumerate(iterator, 1):
        _check_iterations(context, iterations)
        context.temp[name] = value
        signal = context.render_loop_body(fragment, Capture(name, value))
        if signal is LoopSignal.BREAK:
            break
    return fragment


def while_(context: MacroContext, *args: str) -> Fragment:
    """``@while(condition) {...}``"""
    if not args:
        raise TypeError("requires a condition")
    if context.content is None:
        raise ValueError("requires a body")
    condition = ",".join(args)

    fragment = Fragment()
    iterations = 0
    while context.evaluate(condition):
        iterations += 1
        _check_iterations(context, iterations)
        signal = context.render_loop_body(fragment)
        if signal is LoopSignal.BREAK:
            break
    return fragment


def _signal(context: MacroContext, signal: LoopSignal, args: tuple[Any, ...]) -> None:
    if args:
        raise TypeError("does not take arguments")
    if context.loop_depth == 0:
        raise MacroError(
            context,
            f"stray {context.display_name} outside of a loop",
            code=ErrorCode.STRAY_SIGNAL,
        )
    context.pending_signal = signal


def break_(context: MacroContext, *args: Any) -> None:
    _signal(context, LoopSignal.BREAK, args)


def continue_(context: MacroContext, *args: Any) -> None:
    _signal(context, LoopSignal.CONTINUE, args)


# ─────────────────────────────────────────────────────────────────────────────
# Author-defined macros
# ─────────────────────────────────────────────────────────────────────────────


def macro(outer: MacroContext, *args: str) -> None:
    """``@macro($name, _param, ...) {body}``: define a macro in markup.

    The new macro is stored at ``$name`` (or ``_name``). When called, its
    arguments are bound to the ``_param`` temp variables while the body
    renders; missing arguments are None.
    """
    if not args:
        raise TypeError("macro name required")
    if outer.content is None:
        raise ValueError("children (body) required")
    place, *raw_params = (arg.strip() for arg in args)
    params: list[str] = []
    for raw in raw_params:
        match = _TEMP_PLACE.fullmatch(raw)
        if not match:
            if not raw.startswith("temp."):
                raise ValueError("Parameter names must start with '_'")
            raise ValueError(f'"_{raw[5:]}" is an invalid parameter name')
        params.append(match[1])
    body = outer.content

    def invoke(context: MacroContext, *call_args: Any) -> Fragment:
        if len(call_args) > len(params):
            raise TypeError(
                f"takes at most {len(params)} argument(s) (got {len(call_args)})"
            )
        bindings = [
            Capture(param, call_args[i] if i < len(call_args) else None)
            for i, param in enumerate(params)
        ]
        scoped = context.with_captures(*bindings)
        fragment = Fragment()
        with scoped.bind(bindings):
            signal = scoped.render(fragment, body)
        if signal is not LoopSignal.NORMAL:
            context.pending_signal = signal
        return fragment

    outer.assign(place, MacroSpec(place, invoke))
