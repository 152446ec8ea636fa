"""Per-invocation macro context.

A ``MacroContext`` is built by the renderer immediately before a macro
handler runs and handed to it as the first argument. It carries the call
site, the unevaluated body, the temp scope and newline mode in effect, and
the capture list that makes deferred callbacks see loop variables as they
were when the callback was created.

Captures:
    Loop macros extend the capture list with one ``Capture`` per iteration.
    The list is a tuple, so extending it always makes a new list and a
    callback holding the old one is unaffected. ``create_callback`` wraps a
    function so that, while it runs, its captures are installed into the
    temp scope and the previous bindings are restored afterwards.

Loop signals:
    ``render()`` returns the LoopSignal produced by the body and remembers a
    BREAK or CONTINUE in ``pending_signal``; the renderer hands that back to
    whoever rendered the macro, so the signal travels up to the nearest loop.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterator, MutableMapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from mortar.render_context import LoopSignal, NewlineMode, get_render_context

if TYPE_CHECKING:
    from mortar.dom import Element, Fragment, Host
    from mortar.environment.core import Environment
    from mortar.nodes import Node
    from mortar.template.core import Renderer

_MISSING = object()


@dataclass(frozen=True, slots=True)
class Capture:
    """A loop variable binding snapshotted for one iteration."""

    name: str
    value: Any


class MacroContext:
    """Everything a macro handler knows about its invocation.

    Attributes:
        name: Name the macro was called by (``if``, ``$myMacro``)
        content: The ``{}`` body, or None when the call had no body
        captures: Loop bindings in effect at the call site
        passage_name: Passage containing the call
        line_number: Line of the call
        temp: Temp scope of the render the call belongs to
        newline_mode: Newline mode the call was rendered in
        parent: Context of the enclosing macro, if any
        loop_depth: Number of enclosing loop bodies
        pending_signal: BREAK or CONTINUE raised by the body, else NORMAL
    """

    __slots__ = (
        "captures",
        "content",
        "line_number",
        "loop_depth",
        "meta",
        "name",
        "newline_mode",
        "parent",
        "passage_name",
        "pending_signal",
        "renderer",
        "temp",
    )

    def __init__(
        self,
        renderer: Renderer,
        name: str,
        passage_name: str,
        line_number: int,
        temp: MutableMapping[str, Any],
        newline_mode: NewlineMode,
        *,
        content: Sequence[Node] | None = None,
        parent: MacroContext | None = None,
        captures: tuple[Capture, ...] | None = None,
        loop_depth: int | None = None,
    ):
        self.renderer = renderer
        self.name = name
        self.passage_name = passage_name
        self.line_number = line_number
        self.temp = temp
        self.newline_mode = newline_mode
        self.content = tuple(content) if content is not None else None
        self.parent = parent
        if captures is None:
            captures = parent.captures if parent is not None else ()
        self.captures = captures
        if loop_depth is None:
            loop_depth = parent.loop_depth if parent is not None else 0
        self.loop_depth = loop_depth
        self.pending_signal = LoopSignal.NORMAL
        ctx = get_render_context()
        if ctx is not None:
            self.meta = ctx.snapshot_meta()
        elif parent is not None:
            self.meta = parent.meta
        else:
            self.meta = {}

    @property
    def display_name(self) -> str:
        """Name as written at the call site: ``@if``, ``$myMacro``."""
        if self.name[:1] in ("$", "_", "@"):
            return self.name
        return "@" + self.name

    @property
    def env(self) -> Environment:
        return self.renderer.env

    @property
    def host(self) -> Host:
        return self.renderer.host

    def _copy(self, **changes: Any) -> MacroContext:
        new = MacroContext.__new__(MacroContext)
        for slot in MacroContext.__slots__:
            object.__setattr__(new, slot, changes.get(slot, getattr(self, slot)))
        new.pending_signal = LoopSignal.NORMAL
        return new

    def detached(self) -> MacroContext:
        """Copy for renders that happen outside any enclosing loop.

        Used for bodies rendered later (timers, clicks, redo) and for other
        passages, where ``@break`` has no loop to leave.
        """
        return self._copy(loop_depth=0, parent=self)

    def with_captures(self, *captures: Capture) -> MacroContext:
        """Copy whose renders, and the callbacks they create, see ``captures``."""
        return self._copy(captures=(*self.captures, *captures), parent=self)

    # ─────────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────────

    def render(
        self,
        container: Element | Fragment,
        templates: Sequence[Node] | None = None,
        *,
        newline_mode: NewlineMode | None = None,
    ) -> LoopSignal:
        """Render ``templates`` (default: the body) into ``container``."""
        if templates is None:
            templates = self.content or ()
        signal = self.renderer.render(
            container,
            self.temp,
            templates,
            newline_mode or self.newline_mode,
            parent_context=self,
        )
        if signal is not LoopSignal.NORMAL:
            self.pending_signal = signal
        return signal

    def render_loop_body(
        self, container: Element | Fragment, capture: Capture | None = None
    ) -> LoopSignal:
        """Render the body as one loop iteration.

        The returned signal is for the loop to act on and is not recorded as
        pending on this context.
        """
        captures = self.captures if capture is None else (*self.captures, capture)
        body = self._copy(captures=captures, loop_depth=self.loop_depth + 1, parent=self)
        return self.renderer.render(
            container, self.temp, self.content or (), self.newline_mode, parent_context=body
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Captures
    # ─────────────────────────────────────────────────────────────────────────

    @contextmanager
    def bind(self, captures: Sequence[Capture] | None = None) -> Iterator[None]:
        """Install ``captures`` (default: this context's) into the temp scope.

        Every name is restored to its previous binding, or removed, on exit.
        """
        if captures is None:
            captures = self.captures
        saved: dict[str, Any] = {}
        for capture in captures:
            if capture.name not in saved:
                saved[capture.name] = self.temp.get(capture.name, _MISSING)
            self.temp[capture.name] = capture.value
        try:
            yield
        finally:
            for name, value in saved.items():
                if value is _MISSING:
                    self.temp.pop(name, None)
                else:
                    self.temp[name] = value

    def create_callback(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Wrap ``func`` so it runs with this context's captures installed."""
        captures = self.captures

        @functools.wraps(func)
        def callback(*args: Any, **kwargs: Any) -> Any:
            with self.bind(captures):
                return func(*args, **kwargs)

        return callback

    # ─────────────────────────────────────────────────────────────────────────
    # Scripts
    # ─────────────────────────────────────────────────────────────────────────

    def evaluate(self, source: str) -> Any:
        return self.renderer.scripts.evaluate(source, self.temp)

    def execute(self, source: str) -> None:
        self.renderer.scripts.execute(source, self.temp)

    def assign(self, place: str, value: Any) -> None:
        self.renderer.scripts.assign(place, value, self.temp)

    def __repr__(self) -> str:
        return f"<MacroContext {self.display_name} at {self.passage_name}:{self.line_number}>"
