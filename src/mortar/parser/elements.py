"""HTML element and wiki link parsing for Mortar.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from mortar.environment.exceptions import ErrorCode
from mortar.nodes import Element, LinkBox, Text
from mortar.utils.constants import BANNED_TAGS, VOID_TAGS

if TYPE_CHECKING:
    from mortar.nodes import Node
    from mortar.parser.errors import ParseError

_ELEMENT_NAME = re.compile(r"([-\w]+)(#[-\w]+)?((?:\.[-\w]+)*)")
_MAYBE_CLOSE_TAG = re.compile(r"/[-\w]+(?: *>)?")
_ATTR = re.compile(r'\s*((?:[-_]|[^\W\d])[-\w]*)="([^"]*)"')
_EVAL_ATTR = re.compile(r"\s*((?:[-_]|[^\W\d])[-\w]*)=\(")
_TAG_END = re.compile(r"\s*(/?)>")
_WHITESPACE = re.compile(r"\s*")
_STYLE_CONTENT = re.compile(r"(.*?)</style>", re.DOTALL | re.IGNORECASE)
_WIKI_LINK = re.compile(r"((?:[^\\\]\n]|\\.)*)\]\]")
_LINK_SEPARATORS = ("->", "<-", "|")
_LINK_ESCAPE = re.compile(r"\\(.)")


class ElementParsingMixin:
    """Mixin for parsing ``<tag ...>`` elements and ``[[...]]`` links."""

    if TYPE_CHECKING:
        # Host attributes (from Parser.__init__)
        _source: str
        _pos: int
        _line: int
        passage_name: str

        # From Parser
        def _consume(self, pattern: re.Pattern[str]) -> re.Match[str] | None: ...
        def _lookahead(self) -> str | None: ...
        def _error(
            self,
            message: str,
            *,
            suggestion: str | None = None,
            code: ErrorCode = ErrorCode.SYNTAX_ERROR,
        ) -> ParseError: ...
        def _warn(self, message: str) -> None: ...
        def _parse_body(
            self, closer: re.Pattern[str] | None = None, closer_error: str | None = None
        ) -> list[Node]: ...

        # From ScriptLexingMixin
        def _parse_script(self) -> str: ...

    def _parse_element(self) -> Element:
        """Parse an element whose ``<`` has been consumed."""
        line = self._line
        long_name = self._consume(_ELEMENT_NAME)
        if not long_name:
            close_tag = self._consume(_MAYBE_CLOSE_TAG)
            if close_tag:
                raise self._error(
                    f'Unexpected closing tag "<{close_tag[0]}"', code=ErrorCode.INVALID_ELEMENT
                )
            raise self._error(
                "Element names can contain only hyphens, underscores, letters and numbers",
                suggestion='Write "\\<" if the "<" is not the start of an element',
                code=ErrorCode.INVALID_ELEMENT,
            )

        cased_name, element_id, class_names = long_name.groups()
        name = cased_name.lower()
        if name in BANNED_TAGS:
            raise self._error(
                f'Passages cannot contain "<{name}>" elements', code=ErrorCode.INVALID_ELEMENT
            )

        attributes: dict[str, str] = {}
        eval_attributes: dict[str, str] = {}
        if element_id:
            attributes["id"] = element_id[1:]
        if class_names:
            attributes["class"] = " ".join(class_names[1:].split("."))

        self._consume(_WHITESPACE)
        while not (tag_end := self._consume(_TAG_END)):
            match = self._consume(_ATTR)
            if match:
                key, value = match.groups()
                if key in attributes or key in eval_attributes:
                    self._warn(f"Ignoring duplicate attribute '{key}' on <{name}>")
                else:
                    attributes[key] = value
                continue

            match = self._consume(_EVAL_ATTR)
            if not match:
                raise self._error(
                    "Missing trailing `>` to close the HTML tag", code=ErrorCode.INVALID_ELEMENT
                )
            key = match[1]
            value = self._parse_script()
            if not value.strip():
                raise self._error(f'Empty dynamic attribute "{key}"', code=ErrorCode.INVALID_ELEMENT)
            if self._lookahead() != ")":
                raise self._error(
                    f'No closing paren on dynamic attribute "{key}"', code=ErrorCode.INVALID_ELEMENT
                )
            self._pos += 1
            if key in attributes or key in eval_attributes:
                self._warn(f"Ignoring duplicate attribute '{key}' on <{name}>")
            else:
                eval_attributes[key] = value

        content: tuple[Node, ...]
        if tag_end[1] or name in VOID_TAGS:
            content = ()
        elif name == "style":
            style_line = self._line
            match = self._consume(_STYLE_CONTENT)
            if not match:
                raise self._error("No closing </style> found", code=ErrorCode.INVALID_ELEMENT)
            content = (Text(self.passage_name, style_line, match[1]),)
        else:
            closer = re.compile(f"</{re.escape(name)}\\s*>", re.IGNORECASE)
            content = tuple(self._parse_body(closer, f"Missing closing tag </{name}>"))

        return Element(
            passage_name=self.passage_name,
            line_number=line,
            name=name,
            attributes=tuple(attributes.items()),
            eval_attributes=tuple(eval_attributes.items()),
            content=content,
        )

    def _parse_link_box(self) -> LinkBox:
        """Parse a wiki link whose ``[[`` has been consumed.

        [[a->b]] and [[a|b]] show a and lead to b; [[a<-b]] shows b and
        leads to a; [[a]] shows and leads to a.
        """
        line = self._line
        match = self._consume(_WIKI_LINK)
        if not match:
            raise self._error("Unmatched `[[`", code=ErrorCode.INVALID_LINK)
        full = match[1]

        found = [sep for sep in _LINK_SEPARATORS if sep in full]
        if len(found) > 1:
            raise self._error(
                "Links can only have one of '->', '<-', or '|'", code=ErrorCode.INVALID_LINK
            )
        if not found:
            full = _unescape(full)
            return LinkBox(self.passage_name, line, link=full, text=full)

        separator = found[0]
        parts = full.split(separator)
        if len(parts) != 2:
            raise self._error(
                f'Links in [[...]] can only contain "{separator}" once', code=ErrorCode.INVALID_LINK
            )
        left, right = (_unescape(part.strip()) for part in parts)
        if separator == "<-":
            return LinkBox(self.passage_name, line, link=left, text=right)
        return LinkBox(self.passage_name, line, link=right, text=left)


def _unescape(text: str) -> str:
    return _LINK_ESCAPE.sub(r"\1", text)
