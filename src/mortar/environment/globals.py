"""Default global functions for passage scripts.

These functions are available in every script through the constants scope
(``@either([1, 2])``) and as bare names inside expressions
(``$coins + random_int(6)``).

Passage Helpers:
    ``passage_name()`` and ``tags()`` read the passage being rendered from
    RenderContext metadata. The engine sets it for every passage render;
    embedders rendering passages themselves can set it too:

        from mortar.render_context import render_context

        with render_context() as ctx:
            ctx.set_meta("passage", passage)
            renderer.render(article, {}, passage)

Value Helpers:
    ``either``, ``random_int``, ``number_range``, ``clone`` and ``slugify``
    from ``mortar.utils.values``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mortar.utils.values import clone, either, number_range, random_int, slugify

if TYPE_CHECKING:
    from mortar.environment.loaders import Passage


def _active_passage() -> Passage | None:
    from mortar.render_context import get_render_context

    ctx = get_render_context()
    if ctx is None:
        return None
    return ctx.get_meta("passage")  # type: ignore[return-value]


def passage_name() -> str:
    """Name of the passage being rendered.

    Usage:
        You are in @passage_name().

    Returns:
        str: The passage name, or "" outside a passage render
    """
    passage = _active_passage()
    return passage.name if passage is not None else ""


def tags() -> tuple[str, ...]:
    """Tags of the passage being rendered.

    Usage:
        @if("dark" in tags()) {It is too dark to read.}

    Returns:
        tuple[str, ...]: Sorted tag names, empty outside a passage render
    """
    passage = _active_passage()
    return passage.tags if passage is not None else ()


DEFAULT_GLOBALS: dict[str, Any] = {
    "clone": clone,
    "either": either,
    "number_range": number_range,
    "passage_name": passage_name,
    "random_int": random_int,
    "slugify": slugify,
    "tags": tags,
}
