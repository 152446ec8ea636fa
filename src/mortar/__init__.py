"""Mortar: an embeddable interpreter for interactive-fiction passages.

Passages mix markup and scripting: paragraphs, HTML-like elements, links
written as ``[[text->Passage]]``, emphasis with ``*`` and ``**``, variable
references (``$gold``, ``_i``, ``@name``) and macro calls with bodies
(``@if(_x > 1) { ... } @else { ... }``).

Quickstart:
    >>> from mortar import DictLoader, Engine, Environment, MemoryHost
    >>> env = Environment(DictLoader({"Start": "@($gold = 3)You have $gold coins."}))
    >>> host = MemoryHost()
    >>> Engine(env, host).start()
    >>> host.document.text_content
    'You have 3 coins.'

Rendering without an engine:
    >>> from mortar import Element, Renderer
    >>> out = Element("div")
    >>> Renderer(env, host).render(out, {}, "Start")

Architecture:
Passage text → Parser → immutable template tree → Renderer → document tree

Pipeline stages:
1. **Parser**: Builds frozen nodes (``mortar.nodes``), rewriting passage
   expressions (``$x``, ``_x``, ``@x``, regex and template literals) into
   Python source once, at parse time
2. **Renderer**: Walks the tree, evaluates expressions against the story,
   temp and constants scopes, and invokes macros
3. **Macros**: Built-ins (``@if``, ``@for``, ``@link``, ``@later``, ...)
   and author macros defined with ``@macro``
4. **Engine**: History, navigation and temp variable lifetime

Errors in a passage never abort a render: each one is shown inline as a
``<span class="mortar-error">`` and logged, and rendering continues.

"""

from mortar.dom import Element, Event, Fragment, Host, MemoryHost, Text
from mortar.engine import Engine, Moment
from mortar.environment import (
    ChoiceLoader,
    DictLoader,
    DynamicAttributeError,
    Environment,
    ErrorCode,
    ExpressionError,
    FunctionLoader,
    MacroError,
    MacroFlag,
    MacroRegistry,
    MacroSpec,
    MortarError,
    Passage,
    PassageNotFoundError,
    RegistryFrozenError,
    RenderError,
)
from mortar.macros import Capture, MacroContext
from mortar.parser import ParseError, parse
from mortar.render_context import (
    LoopSignal,
    NewlineMode,
    RenderContext,
    get_render_context,
    render_context,
)
from mortar.template import Renderer

__version__ = "0.1.0"

__all__ = [
    "Capture",
    "ChoiceLoader",
    "DictLoader",
    "DynamicAttributeError",
    "Element",
    "Engine",
    "Environment",
    "ErrorCode",
    "Event",
    "ExpressionError",
    "Fragment",
    "FunctionLoader",
    "Host",
    "LoopSignal",
    "MacroContext",
    "MacroError",
    "MacroFlag",
    "MacroRegistry",
    "MacroSpec",
    "MemoryHost",
    "Moment",
    "MortarError",
    "NewlineMode",
    "ParseError",
    "Passage",
    "PassageNotFoundError",
    "RegistryFrozenError",
    "RenderContext",
    "RenderError",
    "Renderer",
    "Text",
    "__version__",
    "get_render_context",
    "parse",
    "render_context",
]
