"""Interactive macros: links, inputs, redoable regions, DOM insertion, punting.

Listeners attached here are wrapped with ``MacroContext.create_callback``
so that loop variables captured at render time are back in the temp scope
when the host fires the event.

Inputs follow the host's attributes: before dispatching ``change`` to a
checkbox the host sets or removes its ``checked`` attribute, and before
dispatching ``input`` to a text box it updates its ``value`` attribute.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from mortar.dom import Element, Event, Fragment, Node
from mortar.template.helpers import str_safe
from mortar.utils.constants import LINK_CLASS
from mortar.utils.values import unique_id

if TYPE_CHECKING:
    from mortar.macros.context import MacroContext

logger = logging.getLogger(__name__)

REDO_EVENT = "mortar-redo"
REDOABLE_CLASS = "mortar-macro-redoable"
TRANSPARENT_CLASS = "mortar-transparent"
# Delay before a revealed element fades in
FADE_IN_MS = 40


def _link_button(text: str) -> Element:
    return Element("button", {"class": LINK_CLASS, "type": "button"}, [text])


def link(context: MacroContext, *args: Any) -> Element:
    """``@link(text, passage?, handler?) {body}``

    On click: calls ``handler``, renders the body for its side effects,
    then navigates to ``passage``.
    """
    if not 1 <= len(args) <= 3:
        raise TypeError("requires 1, 2 or 3 arguments")
    text = args[0]
    if not isinstance(text, str):
        raise TypeError("first argument (link text) must be a string")

    destination: str | None = None
    handler: Callable[..., Any] | None = None
    if len(args) == 2:
        if isinstance(args[1], str):
            destination = args[1]
        elif callable(args[1]):
            handler = args[1]
        else:
            raise TypeError("second argument must be a string or function")
    elif len(args) == 3:
        if callable(args[1]) and isinstance(args[2], str):
            raise TypeError(
                "second argument must be a string and third argument must be a function"
            )
        if not isinstance(args[1], str):
            raise TypeError("second argument must be a string")
        if not callable(args[2]):
            raise TypeError("third argument must be a function")
        destination, handler = args[1], args[2]
    elif context.content is None:
        logger.warning(
            "%s received only 1 argument. This link will do nothing when clicked.",
            context.display_name,
        )

    button = _link_button(text)
    if destination:
        button.set_attribute("data-link-destination", destination)
    body = context.detached()

    def on_click(event: Event) -> None:
        if handler is not None:
            handler(event)
        if context.content is not None:
            scratch = Element("div")
            body.render(scratch)
            output = scratch.inner_html.strip()
            if output:
                logger.warning(
                    "The body of %s in “%s” produced visible output, which is likely an "
                    "error. Its contents:\n%s",
                    context.display_name,
                    context.passage_name,
                    output,
                )
        target = button.get_attribute("data-link-destination")
        if target:
            context.renderer.navigate(target)

    button.add_event_listener("click", context.create_callback(on_click))
    return button


def link_replace(context: MacroContext, *args: Any) -> Element:
    """``@linkReplace(text) {body}``: a link that turns into its body."""
    if len(args) != 1:
        raise TypeError("requires exactly 1 argument")
    text = args[0]
    if not isinstance(text, str):
        raise TypeError("first argument (link text) must be a string")

    button = _link_button(text)
    body = context.detached()

    def on_click(event: Event) -> None:
        if button.parent is None:
            return
        span = Element("span", {"class": f"mortar-link-replace {TRANSPARENT_CLASS}"})
        body.render(span)
        button.replace_with(span)
        context.host.set_timeout(lambda: span.remove_class(TRANSPARENT_CLASS), FADE_IN_MS)

    button.add_event_listener("click", context.create_callback(on_click))
    return button


def _label(context: MacroContext, source: str) -> str | Node:
    label = context.evaluate(source)
    if not isinstance(label, (str, Node)):
        raise TypeError("label must be a string or node")
    return label


def check_box(context: MacroContext, *args: str) -> Fragment:
    """``@checkBox($place, "label")``: a checkbox bound to a variable."""
    if len(args) != 2:
        raise TypeError("requires 2 arguments")
    place, label_source = args
    label = _label(context, label_source)

    box = Element("input", {"type": "checkbox", "id": unique_id()})
    if context.evaluate(place):
        box.set_attribute("checked", "")

    def on_change(event: Event) -> None:
        context.assign(place, box.has_attribute("checked"))

    box.add_event_listener("change", context.create_callback(on_change))
    label_element = Element("label", {"for": box.attributes["id"]}, [label])
    return Fragment([box, " ", label_element])


def text_box(context: MacroContext, *args: str) -> Element:
    """``@textBox($place, "label")``: a text input bound to a variable."""
    if len(args) != 2:
        raise TypeError("requires 2 arguments")
    place, label_source = args
    label = _label(context, label_source)

    initial = str_safe(context.evaluate(place))
    field = Element("input", {"id": unique_id(), "type": "text", "value": initial})

    def on_input(event: Event) -> None:
        context.assign(place, field.get_attribute("value") or "")

    field.add_event_listener("input", context.create_callback(on_input))
    label_element = Element("label", {"for": field.attributes["id"]}, [label])
    return Element("div", {}, [field, " ", label_element])


def redoable(context: MacroContext, *args: Any) -> Element:
    """``@redoable {body}``: a region re-rendered on every redo."""
    if args:
        raise TypeError("does not take arguments")
    if context.content is None:
        raise ValueError("must be called with a body")

    span = Element("span", {"class": REDOABLE_CLASS})
    body = context.detached()
    body.render(span)

    def on_redo(event: Event) -> None:
        span.clear()
        body.render(span)

    span.add_event_listener(REDO_EVENT, context.create_callback(on_redo))
    return span


def _make_insertion_macro(mode: str) -> Callable[..., None]:
    def insert(context: MacroContext, *args: Any) -> None:
        if len(args) != 1:
            raise TypeError("requires exactly one argument")
        selector = args[0]
        if not isinstance(selector, str):
            raise TypeError("first argument must be a string")

        target = context.host.query_selector(selector)
        if target is None:
            raise LookupError(f"The selector '{selector}' did not match any elements")

        fragment = Fragment()
        if context.content is not None:
            context.render(fragment)
        elif mode != "replace":
            raise ValueError('no content provided. Use "{}" to provide content.')

        if mode == "append":
            target.append(fragment)
        elif mode == "prepend":
            target.prepend(fragment)
        else:
            target.clear()
            target.append(fragment)

    insert.__name__ = mode
    insert.__doc__ = f"``@{mode}(selector) {{body}}``: {mode} the body at ``selector``."
    return insert


append = _make_insertion_macro("append")
prepend = _make_insertion_macro("prepend")
replace = _make_insertion_macro("replace")


def punt(context: MacroContext, *args: str) -> None:
    """``@punt(_name, ...)``: keep temp variables for the next render."""
    if not args:
        raise TypeError("requires at least one argument")
    names = []
    for raw in (arg.strip() for arg in args):
        if not raw.startswith("temp."):
            raise ValueError("only temp variables can be punted")
        names.append(raw[5:])
    for name in names:
        context.renderer.punt(name)
