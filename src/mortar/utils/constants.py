"""Shared constants for Mortar.

Tag classifications used by the parser (void and banned tags) and by the
renderer's paragraph policy (phrasing tags).
"""

from __future__ import annotations

# Tags which cannot have child nodes
VOID_TAGS: frozenset[str] = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

# Tags which are not allowed inside a passage
BANNED_TAGS: frozenset[str] = frozenset(
    {"base", "body", "head", "html", "link", "meta", "script", "title"}
)

# Phrasing content: may sit inside a paragraph
# Source: WHATWG HTML Living Standard, "phrasing content"
PHRASING_TAGS: frozenset[str] = frozenset(
    {
        "abbr",
        "audio",
        "b",
        "bdi",
        "bdo",
        "br",
        "button",
        "canvas",
        "cite",
        "code",
        "data",
        "datalist",
        "dfn",
        "em",
        "embed",
        "i",
        "iframe",
        "img",
        "input",
        "kbd",
        "label",
        "mark",
        "math",
        "meter",
        "noscript",
        "object",
        "output",
        "picture",
        "progress",
        "q",
        "ruby",
        "s",
        "samp",
        "select",
        "slot",
        "small",
        "span",
        "strong",
        "sub",
        "sup",
        "svg",
        "template",
        "textarea",
        "time",
        "u",
        "var",
        "video",
        "wbr",
    }
)

# Phrasing only when every child is phrasing content
SOMETIMES_PHRASING_TAGS: frozenset[str] = frozenset({"a", "del", "ins", "map"})

# Dynamic attributes with this prefix and a callable value become listeners
EVENT_ATTR_PREFIX = "on"

# CSS class names used on generated nodes
ERROR_CLASS = "mortar-error"
LINK_CLASS = "mortar-link"
