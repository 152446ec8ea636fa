"""Mortar parser core.

Recursive-descent scanner that turns passage text into a template tree in a
single pass. The main loop copies runs of ordinary characters as text and
dispatches on reserved characters:

    \\        escape the next character
    <         element (ElementParsingMixin)
    @ $ _     constant, story and temp references (ExpressionParsingMixin)
    [[        wiki link
    // /* */  comments
    *         emphasis delimiter (EmphasisMixin)
    newline   line break, or a ParagraphBreak for two or more

Bodies (``{...}`` and element content) are parsed by re-entering the same
loop with a closing pattern, sharing the position and line counter.

Example:
    >>> parse("Hello $name", "Start")
    [Text(passage_name='Start', line_number=1, value='Hello '), Expr(...)]

"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING

from mortar.environment.exceptions import ErrorCode
from mortar.nodes import ParagraphBreak, Scope, Text
from mortar.parser.elements import ElementParsingMixin
from mortar.parser.emphasis import Delimiter, EmphasisMixin, merge_text
from mortar.parser.errors import ParseError, ParseWarning
from mortar.parser.expressions import ExpressionParsingMixin
from mortar.parser.scripting import ScriptLexingMixin

if TYPE_CHECKING:
    from mortar.environment.registry import MacroSpec
    from mortar.nodes import Node

logger = logging.getLogger(__name__)

_TRAILING_SPACE = re.compile(r"[\t\v\f\ufeff\u0020\u00a0\u1680\u2000-\u200a\u202f\u205f\u3000]+\n")
_NORMAL_CHARS = re.compile(r"[^\[\\$_<@/}\n*]+")
_ANY_CHAR = re.compile(r".", re.DOTALL)
_COMMENT_LINE = re.compile(r"/.*\n?")
_COMMENT_BLOCK = re.compile(r"\*.*?\*/", re.DOTALL)
_NEWLINES = re.compile(r"\s*\n\s*")

_SIGIL_SCOPES = {"@": Scope.CONSTANTS, "$": Scope.STORY, "_": Scope.TEMP}


def normalize_source(source: str) -> str:
    """Convert line breaks to ``\\n`` and strip whitespace before them."""
    source = source.replace("\r\n", "\n").replace("\r", "\n")
    return _TRAILING_SPACE.sub("\n", source)


class Parser(
    ScriptLexingMixin,
    ExpressionParsingMixin,
    ElementParsingMixin,
    EmphasisMixin,
):
    """Passage parser producing a list of template nodes.

    Args:
        source: Passage text
        passage_name: Name used in node locations and diagnostics
        start_line: Line number of the first line of ``source``
        macros: Macro registry consulted for chain and ``for`` grammars

    Attributes:
        warnings: ParseWarnings collected during ``parse()``
    """

    def __init__(
        self,
        source: str,
        passage_name: str,
        start_line: int = 1,
        macros: Mapping[str, MacroSpec] | None = None,
    ):
        self._source = normalize_source(source)
        self._pos = 0
        self._line = start_line
        self._start_line = start_line
        self._macros = macros
        self.passage_name = passage_name
        self.warnings: list[ParseWarning] = []

    def parse(self) -> list[Node]:
        """Parse the whole source.

        Raises:
            ParseError: On the first structural problem
        """
        return self._parse_body()

    # ─────────────────────────────────────────────────────────────────────────
    # Scanning primitives
    # ─────────────────────────────────────────────────────────────────────────

    def _consume(self, pattern: re.Pattern[str]) -> re.Match[str] | None:
        """Match ``pattern`` at the current position and advance past it."""
        match = pattern.match(self._source, self._pos)
        if match:
            self._line += match[0].count("\n")
            self._pos = match.end()
        return match

    def _lookahead(self) -> str | None:
        if self._pos < len(self._source):
            return self._source[self._pos]
        return None

    def _location_sample(self) -> str:
        """The source line the parser is on."""
        source, pos = self._source, self._pos
        start = source.rfind("\n", 0, pos) + 1
        if pos < len(source) and source[pos] == "\n":
            return source[start:pos]
        end = source.find("\n", pos + 1)
        return source[start:] if end == -1 else source[start:end]

    def _error(
        self,
        message: str,
        *,
        suggestion: str | None = None,
        code: ErrorCode = ErrorCode.SYNTAX_ERROR,
    ) -> ParseError:
        """Create a ParseError at the current position (caller raises it)."""
        return ParseError(
            message,
            self.passage_name,
            self._line,
            self._location_sample(),
            source=self._source,
            start_line=self._start_line,
            suggestion=suggestion,
            code=code,
        )

    def _warn(self, message: str) -> None:
        warning = ParseWarning(message, self.passage_name, self._line)
        self.warnings.append(warning)
        logger.warning("%s", warning)

    # ─────────────────────────────────────────────────────────────────────────
    # Main loop
    # ─────────────────────────────────────────────────────────────────────────

    def _parse_body(
        self, closer: re.Pattern[str] | None = None, closer_error: str | None = None
    ) -> list[Node]:
        """Parse nodes until ``closer`` matches, or to the end of input.

        Raises:
            ParseError: If ``closer`` is given and never matches
        """
        output: list[Node] = []
        delimiters: list[Delimiter] = []
        name = self.passage_name
        closed = False
        prev_pos = -1

        while self._pos < len(self._source):
            if self._pos == prev_pos:
                raise self._error("Parser stuck in an infinite loop")
            prev_pos = self._pos

            line = self._line
            match = self._consume(_NORMAL_CHARS)
            if match:
                output.append(Text(name, line, match[0]))

            if closer is not None and self._consume(closer):
                closed = True
                break

            line = self._line
            match = self._consume(_ANY_CHAR)
            if not match:
                break
            c = match[0]

            if c == "\\":
                escaped = self._consume(_ANY_CHAR)
                # A trailing backslash escapes the line break that was trimmed
                output.append(Text(name, line, escaped[0] if escaped else "\n"))

            elif c == "<":
                output.append(self._parse_element())

            elif c in _SIGIL_SCOPES:
                output.append(self._parse_expr(_SIGIL_SCOPES[c]))

            elif c == "/":
                following = self._lookahead()
                if following == "/":
                    self._consume(_COMMENT_LINE)
                elif following == "*":
                    if not self._consume(_COMMENT_BLOCK):
                        raise self._error("Missing trailing `*/` to close the block comment")
                else:
                    output.append(Text(name, line, c))

            elif c == "[":
                if self._lookahead() == "[":
                    self._pos += 1
                    output.append(self._parse_link_box())
                else:
                    output.append(Text(name, line, c))

            elif c == "}":
                output.append(Text(name, line, c))

            elif c == "*":
                delimiter = self._create_delimiter(len(output))
                delimiters.append(delimiter)
                output.append(Text(name, line, "*" * delimiter.length))

            elif c == "\n":
                match = self._consume(_NEWLINES)
                if match:
                    output.append(ParagraphBreak(name, line, c + match[0]))
                else:
                    output.append(Text(name, line, c))

            else:
                raise AssertionError(f"Unhandled reserved character {c!r}")

        if closer is not None and not closed:
            raise self._error(
                closer_error or f"Missing {closer.pattern!r}", code=ErrorCode.UNCLOSED_BODY
            )

        return merge_text(self._resolve_emphasis(output, delimiters))


def parse(
    source: str,
    passage_name: str,
    start_line: int = 1,
    macros: Mapping[str, MacroSpec] | None = None,
) -> list[Node]:
    """Parse passage text into a template tree.

    Args:
        source: Passage text
        passage_name: Name recorded on every node
        start_line: Line number of the first line of ``source``
        macros: Registry consulted for macro-specific grammars; without one,
            every reference parses with the generic grammar

    Raises:
        ParseError: On the first structural problem
    """
    return Parser(source, passage_name, start_line, macros).parse()
