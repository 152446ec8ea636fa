"""Built-in macros.

Every macro is a plain function ``handler(context, *args)`` returning None,
a string or a ``mortar.dom`` node. ``install_builtins`` registers them with
the capability flags the parser and renderer consult.

Categories:
    output: print / -, render / =, include, the unnamed macro @(...)
    control_flow: if, switch, for, while, break, continue, macro
    interactive: link, linkReplace, checkBox, textBox, redoable,
        append, prepend, replace, punt
    timing: later
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mortar.environment.registry import MacroFlag
from mortar.macros import control_flow, interactive, output, timing
from mortar.macros.context import Capture, MacroContext

if TYPE_CHECKING:
    from mortar.environment.registry import MacroRegistry

_RAW = MacroFlag.RAW_ARGS
_BODY = MacroFlag.BODY


def install_builtins(registry: MacroRegistry) -> None:
    """Register every built-in macro on ``registry``."""
    registry.register("", output.unnamed, _RAW)
    registry.register("print", output.print_)
    registry.alias("print", "-")
    registry.register("render", output.render)
    registry.alias("render", "=")
    registry.register("include", output.include)

    registry.register("if", control_flow.if_, _RAW | MacroFlag.CHAIN, control_flow.IF_CHAIN)
    registry.register("switch", control_flow.switch, _BODY)
    registry.register("for", control_flow.for_, _RAW | _BODY | MacroFlag.FOR_ARGS)
    registry.register("while", control_flow.while_, _RAW | _BODY)
    registry.register("break", control_flow.break_)
    registry.register("continue", control_flow.continue_)
    registry.register("macro", control_flow.macro, _RAW | _BODY)

    registry.register("link", interactive.link, _BODY)
    registry.register("linkReplace", interactive.link_replace, _BODY)
    registry.register("checkBox", interactive.check_box, _RAW)
    registry.register("textBox", interactive.text_box, _RAW)
    registry.register("redoable", interactive.redoable, _BODY)
    registry.register("append", interactive.append, _BODY)
    registry.register("prepend", interactive.prepend, _BODY)
    registry.register("replace", interactive.replace, _BODY)
    registry.register("punt", interactive.punt, _RAW)

    registry.register("later", timing.later, _BODY)


__all__ = ["Capture", "MacroContext", "install_builtins"]
