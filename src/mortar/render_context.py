"""Mortar RenderContext: per-render state kept out of the story scopes.

The renderer re-enters itself for every element body, macro body and
included passage. State shared by all of those nested calls (the recursion
budget, the recovery flag and metadata such as the passage being rendered)
lives in a RenderContext held by a ContextVar, so that it is per call stack
and never leaks into the author-visible story or temp scopes.

A render started outside any other render (a top-level passage, or a
deferred callback firing later) gets a fresh RenderContext.

Also defines the two small value types that every render call deals in:
``NewlineMode`` and ``LoopSignal``.

"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from enum import Enum


class NewlineMode(Enum):
    """How the renderer treats line breaks in passage text.

    BLOCK: runs of inline content become ``<p>`` paragraphs
    INLINE: no paragraphs; a paragraph break becomes two ``<br>``
    ALL_BREAKS: every line break becomes a ``<br>``
    NO_BREAKS: line breaks stay as literal text
    """

    BLOCK = "block"
    INLINE = "inline"
    ALL_BREAKS = "all-breaks"
    NO_BREAKS = "no-breaks"


class LoopSignal(Enum):
    """Result of every render call.

    BREAK and CONTINUE travel back up through enclosing renders until a loop
    macro consumes them.
    """

    NORMAL = "normal"
    BREAK = "break"
    CONTINUE = "continue"


@dataclass
class RenderContext:
    """Per-render state isolated from the story scopes.

    Attributes:
        max_depth: Recursion budget for nested renders
        depth_remaining: Budget left; decremented by every nested render
        recovering: Set once the budget runs out; suppresses output until
            the stack unwinds back to a full budget
    """

    max_depth: int = 50
    depth_remaining: int = 50
    recovering: bool = False

    _meta: dict[str, object] = field(default_factory=dict)

    def get_meta(self, key: str, default: object = None) -> object:
        """Get embedder or engine metadata, such as the current passage."""
        return self._meta.get(key, default)

    def set_meta(self, key: str, value: object) -> None:
        self._meta[key] = value

    def snapshot_meta(self) -> dict[str, object]:
        """Copy of the metadata, for renders that start later from a callback."""
        return self._meta.copy()

    def enter(self) -> bool:
        """Spend one unit of the recursion budget.

        Returns:
            False if the budget is exhausted (nothing was spent)
        """
        if self.depth_remaining <= 0:
            return False
        self.depth_remaining -= 1
        return True

    def leave(self) -> None:
        """Return one unit of budget; leave recovery at full budget."""
        self.depth_remaining += 1
        if self.depth_remaining >= self.max_depth:
            self.recovering = False


# Module-level ContextVar
_render_context: ContextVar[RenderContext | None] = ContextVar(
    "mortar_render_context",
    default=None,
)


def get_render_context() -> RenderContext | None:
    """Get current render context (None if not in render)."""
    return _render_context.get()


def get_render_context_required() -> RenderContext:
    """Get current render context, raise if not in render.

    Raises:
        RuntimeError: If not in a render context
    """
    ctx = _render_context.get()
    if ctx is None:
        raise RuntimeError("Not in a render context")
    return ctx


@contextmanager
def render_context(
    max_depth: int = 50,
    parent_meta: dict[str, object] | None = None,
) -> Iterator[RenderContext]:
    """Context manager for render-scoped state.

    Creates a new RenderContext and sets it as the current context for the
    duration of the with block, restoring the previous one on exit.

    Example:
        with render_context(max_depth=env.max_render_depth) as ctx:
            ctx.set_meta("passage", passage)
            renderer.render(container, temp, passage.name)
    """
    ctx = RenderContext(
        max_depth=max_depth,
        depth_remaining=max_depth,
        _meta=parent_meta.copy() if parent_meta else {},
    )
    token: Token[RenderContext | None] = _render_context.set(ctx)
    try:
        yield ctx
    finally:
        _render_context.reset(token)
