"""Timing macros: @later."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from mortar.dom import Element, Fragment

if TYPE_CHECKING:
    from mortar.macros.context import MacroContext

logger = logging.getLogger(__name__)

# Default @later delay, in milliseconds
DEFAULT_DELAY_MS = 40


def later(context: MacroContext, *args: Any) -> Element:
    """``@later(ms?) {body}``: render the body after a delay.

    A hidden placeholder marks the spot. When the timer fires, the body is
    rendered with the captures in effect at the call and replaces the
    placeholder. If the placeholder has left the document by then (the
    reader navigated away), nothing happens.
    """
    if len(args) > 1:
        raise TypeError(f"takes at most 1 argument (got {len(args)})")
    delay = DEFAULT_DELAY_MS
    if args:
        if isinstance(args[0], bool) or not isinstance(args[0], (int, float)):
            raise TypeError("first argument must be a number")
        delay = args[0]
    if context.content is None:
        raise ValueError("requires a body")

    placeholder = Element("span", {"class": "mortar-macro-later", "hidden": ""})
    body = context.detached()

    def reveal() -> None:
        if placeholder.parent is None or not context.host.is_attached(placeholder):
            logger.debug(
                "Skipping %s from “%s”: its placeholder is gone",
                context.display_name,
                context.passage_name,
            )
            return
        fragment = Fragment()
        body.render(fragment)
        placeholder.replace_with(fragment)

    context.host.set_timeout(context.create_callback(reveal), delay)
    return placeholder
