"""Mortar Renderer: walks template trees into document nodes.

Architecture:
    ```
    Renderer
    ├── env: Environment          # macro registry, constants, parse cache
    ├── host: Host                # timers, live document, attachment checks
    ├── scripts: ScriptRunner     # evaluates rewritten expressions
    └── engine: Engine | None     # navigation and punting, when present
    ```

Every call returns a LoopSignal. NORMAL means the list rendered to the end;
BREAK and CONTINUE stop the list and travel back up through element bodies
and macro bodies until a loop macro consumes them. A signal that reaches a
top-level render (a passage, or a render without a parent macro) is shown
as an error.

Errors never escape ``render()``. Each failing node is replaced by a
``<span class="mortar-error">`` diagnostic and logged, and rendering moves
on to the next node. A RenderError is shown once, however many frames it
passes through.

Recursion:
Nested renders spend from the budget held by the active RenderContext
(``Environment.max_render_depth``). When it runs out, one "Infinite
recursion detected" diagnostic is shown and all output is suppressed until
the stack unwinds to a full budget.

"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping, Sequence
from typing import TYPE_CHECKING, Any

from mortar import dom
from mortar.environment.exceptions import (
    DynamicAttributeError,
    ErrorCode,
    ExpressionError,
    MacroError,
    MortarError,
    PassageNotFoundError,
    RenderError,
    describe_cause,
)
from mortar.environment.loaders import Passage
from mortar.environment.registry import MacroSpec, is_macro
from mortar.macros.context import MacroContext
from mortar.nodes import (
    Call,
    Element,
    ErrorNode,
    Expr,
    Index,
    LinkBox,
    MacroChain,
    ParagraphBreak,
    Scope,
    Text,
)
from mortar.parser.errors import ParseError
from mortar.render_context import (
    LoopSignal,
    NewlineMode,
    get_render_context,
    get_render_context_required,
    render_context,
)
from mortar.scripting import ConstantsView, ScopeView, ScriptRunner
from mortar.template.helpers import get_property, str_safe
from mortar.template.paragraphs import (
    ParagraphBuilder,
    append_paragraph_break,
    append_text,
)
from mortar.utils.constants import ERROR_CLASS, EVENT_ATTR_PREFIX

if TYPE_CHECKING:
    from mortar.engine import Engine
    from mortar.environment.core import Environment
    from mortar.nodes import Node

logger = logging.getLogger(__name__)

Container = dom.Element | dom.Fragment
Temp = MutableMapping[str, Any]


class Renderer:
    """Renders template trees and passages into a container node.

    Args:
        env: Environment supplying macros, constants and passages
        host: Host adapter for timers and the live document
        story: Story variables (a new dict when omitted)
        engine: Story engine for navigation and punting

    Example:
        >>> env = Environment(DictLoader({"Start": "Hello *world*"}))
        >>> renderer = Renderer(env, MemoryHost())
        >>> body = dom.Element("body")
        >>> renderer.render(body, {}, "Start")
        <LoopSignal.NORMAL: 'normal'>
        >>> body.inner_html
        '<p>Hello <em>world</em></p>'
    """

    __slots__ = ("engine", "env", "host", "scripts")

    def __init__(
        self,
        env: Environment,
        host: dom.Host,
        *,
        story: MutableMapping[str, Any] | None = None,
        engine: Engine | None = None,
    ):
        self.env = env
        self.host = host
        self.engine = engine
        self.scripts = ScriptRunner(
            story if story is not None else {}, env.constants, env.globals
        )

    @property
    def story(self) -> MutableMapping[str, Any]:
        return self.scripts.story

    # ─────────────────────────────────────────────────────────────────────────
    # Engine hooks
    # ─────────────────────────────────────────────────────────────────────────

    def navigate(self, passage_name: str) -> None:
        if self.engine is None:
            raise MortarError(f'Cannot go to "{passage_name}": no story engine is running')
        self.engine.navigate(passage_name)

    def punt(self, name: str) -> None:
        if self.engine is None:
            raise MortarError("Punting requires a story engine")
        self.engine.punt(name)

    # ─────────────────────────────────────────────────────────────────────────
    # Entry point
    # ─────────────────────────────────────────────────────────────────────────

    def render(
        self,
        container: Container,
        temp: Temp,
        source: Sequence[Node] | Passage | str,
        newline_mode: NewlineMode | None = None,
        parent_context: MacroContext | None = None,
    ) -> LoopSignal:
        """Render templates, or a passage, and append the output to ``container``.

        Args:
            container: Node receiving the output
            temp: Temp scope for this render
            source: Template nodes, a Passage, or a passage name
            newline_mode: Defaults to ``Environment.newline_mode``
            parent_context: Context of the macro whose body is being rendered

        Returns:
            LoopSignal.NORMAL, or the BREAK/CONTINUE an enclosing loop must
            act on. Never raises for authoring errors.
        """
        mode = newline_mode or self.env.newline_mode
        top_level = parent_context is None or isinstance(source, (str, Passage))

        if get_render_context() is None:
            meta = parent_context.meta if parent_context is not None else None
            with render_context(max_depth=self.env.max_render_depth, parent_meta=meta):
                return self._render_guarded(
                    container, temp, source, mode, parent_context, top_level
                )
        return self._render_guarded(container, temp, source, mode, parent_context, top_level)

    def _render_guarded(
        self,
        container: Container,
        temp: Temp,
        source: Sequence[Node] | Passage | str,
        mode: NewlineMode,
        parent: MacroContext | None,
        top_level: bool,
    ) -> LoopSignal:
        ctx = get_render_context_required()
        if ctx.recovering:
            return LoopSignal.NORMAL
        if not ctx.enter():
            passage_name, line_number = self._location(source, parent)
            self._display(
                container,
                RenderError(
                    "Infinite recursion detected",
                    passage_name,
                    line_number,
                    code=ErrorCode.RECURSION_LIMIT,
                ),
            )
            ctx.recovering = True
            return LoopSignal.NORMAL

        try:
            templates = self._load(source, parent)
            signal = self._render_list(container, temp, templates, mode, parent, top_level)
        finally:
            ctx.leave()

        if top_level and signal is not LoopSignal.NORMAL:
            passage_name, line_number = self._location(source, parent)
            self._display(
                container,
                RenderError(
                    f"@{signal.value} was not inside a loop",
                    passage_name,
                    line_number,
                    code=ErrorCode.STRAY_SIGNAL,
                ),
            )
            return LoopSignal.NORMAL
        return signal

    def _location(
        self, source: Sequence[Node] | Passage | str, parent: MacroContext | None
    ) -> tuple[str, int]:
        if parent is not None:
            return parent.passage_name, parent.line_number
        if isinstance(source, Passage):
            return source.name, 0
        if isinstance(source, str):
            return source, 0
        if source:
            return source[0].passage_name, source[0].line_number
        return "unknown", 0

    def _load(
        self, source: Sequence[Node] | Passage | str, parent: MacroContext | None
    ) -> Sequence[Node]:
        """Resolve a passage reference into template nodes.

        Lookup and parse failures become a single ErrorNode.
        """
        if not isinstance(source, (str, Passage)):
            return source
        passage_name, line_number = self._location(source, parent)
        if isinstance(source, str):
            try:
                source = self.env.get_passage_required(source)
            except PassageNotFoundError as e:
                return [ErrorNode(passage_name, line_number, str(e))]
        try:
            return self.env.parse_passage(source)
        except ParseError as e:
            return [ErrorNode(e.passage_name, e.line_number, e.message, e.location_sample)]
        except Exception as e:
            # pre_process_text is embedder code and may fail in any way
            return [ErrorNode(passage_name, line_number, describe_cause(e))]

    # ─────────────────────────────────────────────────────────────────────────
    # Lists and newline modes
    # ─────────────────────────────────────────────────────────────────────────

    def _render_list(
        self,
        container: Container,
        temp: Temp,
        templates: Sequence[Node],
        mode: NewlineMode,
        parent: MacroContext | None,
        top_level: bool,
    ) -> LoopSignal:
        # A body with no paragraph break of its own flows into the
        # surrounding paragraph instead of opening new ones.
        paragraphs: ParagraphBuilder | None = None
        if mode is NewlineMode.BLOCK and (
            top_level or any(isinstance(node, ParagraphBreak) for node in templates)
        ):
            paragraphs = ParagraphBuilder(container)
        text_mode = NewlineMode.INLINE if mode is NewlineMode.BLOCK else mode

        signal = LoopSignal.NORMAL
        for node in templates:
            if isinstance(node, Text):
                if paragraphs is not None:
                    paragraphs.add_text(node.value)
                else:
                    append_text(container, node.value, text_mode)
                continue
            if isinstance(node, ParagraphBreak):
                if paragraphs is not None:
                    paragraphs.paragraph_break()
                else:
                    append_paragraph_break(container, node.raw, text_mode)
                continue

            if paragraphs is None:
                signal = self._render_node(container, node, temp, mode, parent)
            else:
                output = dom.Fragment()
                signal = self._render_node(output, node, temp, mode, parent)
                paragraphs.add(output, prose=isinstance(node, (Element, LinkBox)))
            if signal is not LoopSignal.NORMAL:
                break

        if paragraphs is not None:
            paragraphs.flush()
        return signal

    def _render_node(
        self,
        out: Container,
        node: Node,
        temp: Temp,
        mode: NewlineMode,
        parent: MacroContext | None,
    ) -> LoopSignal:
        if isinstance(node, Expr):
            return self._render_expr(out, node, temp, mode, parent)
        if isinstance(node, Element):
            return self._render_element(out, node, temp, mode, parent)
        if isinstance(node, MacroChain):
            return self._render_chain(out, node, temp, mode, parent)
        if isinstance(node, LinkBox):
            return self._render_link_box(out, node, temp, mode, parent)
        if isinstance(node, ErrorNode):
            self._display(out, RenderError(node.message, node.passage_name, node.line_number))
            return LoopSignal.NORMAL
        raise TypeError(f"Unknown template node: {type(node).__name__}")

    # ─────────────────────────────────────────────────────────────────────────
    # Diagnostics
    # ─────────────────────────────────────────────────────────────────────────

    def _display(self, out: Container, error: MortarError) -> LoopSignal:
        """Show ``error`` in place, unless this RenderError was shown already."""
        if isinstance(error, RenderError) and not error.mark_displayed():
            return LoopSignal.NORMAL
        logger.error("%s", error)
        out.append(dom.Element("span", {"class": ERROR_CLASS}, [str(error)]))
        return LoopSignal.NORMAL

    # ─────────────────────────────────────────────────────────────────────────
    # Expressions
    # ─────────────────────────────────────────────────────────────────────────

    def _lookup(self, expr: Expr, temp: Temp) -> Any:
        if expr.scope is Scope.CONSTANTS:
            return getattr(ConstantsView(self.env.constants), expr.base)
        if expr.scope is Scope.STORY:
            return getattr(ScopeView(self.scripts.story, "$", "story variable"), expr.base)
        return getattr(ScopeView(temp, "_", "temporary variable"), expr.base)

    def _render_expr(
        self,
        out: Container,
        expr: Expr,
        temp: Temp,
        mode: NewlineMode,
        parent: MacroContext | None,
    ) -> LoopSignal:
        where = (expr.passage_name, expr.line_number)
        shown = expr.scope.sigil + expr.base
        try:
            value = self._lookup(expr, temp)
        except Exception as e:
            return self._display(out, ExpressionError(e, shown, *where))

        call = expr.trailing_call
        ops = expr.ops[:-1] if call is not None else expr.ops
        for op in ops:
            if isinstance(op, Index):
                try:
                    key = self.scripts.evaluate(op.key, temp) if op.needs_eval else op.key
                except Exception as e:
                    return self._display(out, ExpressionError(e, op.raw[1:-1], *where))
                try:
                    value = get_property(value, key, literal=not op.needs_eval)
                except Exception as e:
                    return self._display(out, ExpressionError(e, shown + op.raw, *where))
            else:
                if is_macro(value):
                    return self._display(
                        out,
                        RenderError(
                            f"{shown}{op.raw}: a macro call must be the last operation",
                            *where,
                            suggestion="Nothing may follow a macro's arguments except its body",
                        ),
                    )
                try:
                    value = self._call(value, op, temp, shown, where)
                except RenderError as e:
                    return self._display(out, e)
                except Exception as e:
                    return self._display(out, ExpressionError(e, shown + op.raw, *where))
            shown += op.raw

        if isinstance(value, MacroSpec):
            if expr.content is not None and not value.accepts_body:
                return self._display(out, RenderError(f"{shown} does not accept a body", *where))
            raw_args = call.args if call is not None else ()
            if value.raw_args:
                args = list(raw_args)
            else:
                args = []
                for arg in raw_args:
                    try:
                        args.append(self.scripts.evaluate(arg, temp))
                    except Exception as e:
                        return self._display(out, ExpressionError(e, arg, *where))
            name = expr.base if expr.scope is Scope.CONSTANTS and not ops else shown
            context = MacroContext(
                self, name, *where, temp, mode, content=expr.content, parent=parent
            )
            return self._invoke_macro(out, value, context, args)

        if expr.content is not None:
            return self._display(out, RenderError(f"{shown} is not a macro", *where))
        if call is not None:
            try:
                value = self._call(value, call, temp, shown, where)
            except RenderError as e:
                return self._display(out, e)
            except Exception as e:
                return self._display(out, ExpressionError(e, shown + call.raw, *where))

        if isinstance(value, dom.Node):
            out.append(value)
        else:
            out.append(str_safe(value))
        return LoopSignal.NORMAL

    def _call(
        self, func: Any, call: Call, temp: Temp, shown: str, where: tuple[str, int]
    ) -> Any:
        args = []
        for arg in call.args:
            try:
                args.append(self.scripts.evaluate(arg, temp))
            except Exception as e:
                raise ExpressionError(e, arg, *where) from e
        if not callable(func):
            raise TypeError(f'"{shown}" is not a function')
        return func(*args)

    # ─────────────────────────────────────────────────────────────────────────
    # Macros
    # ─────────────────────────────────────────────────────────────────────────

    def _invoke_macro(
        self, out: Container, spec: MacroSpec, context: MacroContext, args: Sequence[Any]
    ) -> LoopSignal:
        try:
            result = spec(context, *args)
        except RenderError as e:
            return self._display(out, e)
        except Exception as e:
            return self._display(out, MacroError(context, e))

        if isinstance(result, (str, dom.Node)):
            out.append(result)
        elif result is not None:
            return self._display(
                out,
                MacroError(
                    context,
                    TypeError(
                        f"returned a {type(result).__name__}; a macro must return "
                        "None, a string or a node"
                    ),
                ),
            )
        return context.pending_signal

    def _render_chain(
        self,
        out: Container,
        chain: MacroChain,
        temp: Temp,
        mode: NewlineMode,
        parent: MacroContext | None,
    ) -> LoopSignal:
        spec = self.env.macros.get(chain.name)
        if spec is None:
            return self._display(
                out,
                RenderError(f"@{chain.name} is not a macro", chain.passage_name, chain.line_number),
            )
        context = MacroContext(
            self, chain.name, chain.passage_name, chain.line_number, temp, mode, parent=parent
        )
        return self._invoke_macro(out, spec, context, chain.segments)

    def _render_link_box(
        self,
        out: Container,
        link: LinkBox,
        temp: Temp,
        mode: NewlineMode,
        parent: MacroContext | None,
    ) -> LoopSignal:
        spec = self.env.macros.get("link")
        if spec is None:
            return self._display(
                out, RenderError("@link is not a macro", link.passage_name, link.line_number)
            )
        context = MacroContext(
            self, "link", link.passage_name, link.line_number, temp, mode, parent=parent
        )
        return self._invoke_macro(out, spec, context, [link.text, link.link])

    # ─────────────────────────────────────────────────────────────────────────
    # Elements
    # ─────────────────────────────────────────────────────────────────────────

    def _render_element(
        self,
        out: Container,
        template: Element,
        temp: Temp,
        mode: NewlineMode,
        parent: MacroContext | None,
    ) -> LoopSignal:
        element = dom.Element(template.name, dict(template.attributes))
        for key, source in template.eval_attributes:
            try:
                value = self.scripts.evaluate(source, temp)
            except Exception as e:
                # The first failure skips the element's remaining attributes
                self._display(out, DynamicAttributeError(e, key, template))
                break
            if key.startswith(EVENT_ATTR_PREFIX) and len(key) >= 3 and callable(value):
                listener = parent.create_callback(value) if parent is not None else value
                element.add_event_listener(key[len(EVENT_ATTR_PREFIX) :], listener)
            else:
                element.set_attribute(key, str_safe(value))

        # Element children never get paragraphs of their own
        child_mode = NewlineMode.INLINE if mode is NewlineMode.BLOCK else mode
        signal = self._render_guarded(
            element, temp, template.content, child_mode, parent, top_level=False
        )
        out.append(element)
        return signal
