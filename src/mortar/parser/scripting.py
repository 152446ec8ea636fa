"""Expression sub-lexer for the Mortar parser.

Embedded expressions (macro arguments, ``[key]`` indexes and ``key=(expr)``
attributes) are Python expression syntax. They are re-lexed character by
character rather than tokenized up front, because where an expression ends
depends on bracket nesting and on whether a ``/`` starts a regex literal or
divides.

While lexing, the source is rewritten:

    $name          -> story.name
    _name          -> temp.name
    @name          -> constants.name
    ===, !==       -> ==, !=
    &&, ||, !      -> and, or, not
    true, false    -> True, False
    null, undefined-> None
    /re/flags      -> __regexp__('re', 'flags')
    `a ${b} c`     -> __template__('a ', (b), ' c')
    // and /* */   -> comments (a newline is kept where one was consumed)

Because ``//`` always starts a comment, floor division is not available in
passage expressions.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import keyword
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mortar.parser.errors import ParseError

IDENTIFIER = re.compile(r"[^\W\d_]\w*")
_WHITESPACE = re.compile(r"\s*")
_NUMBER = re.compile(r"[0-9][0-9_]*")
_BINARY_OPERATOR = re.compile(r"[%&*<=>^|]+")
_STRING_DOUBLE = re.compile(r'"(?:[^\\"\n]|\\.)*"', re.DOTALL)
_STRING_SINGLE = re.compile(r"'(?:[^\\'\n]|\\.)*'", re.DOTALL)
_COMMENT_LINE = re.compile(r"/.*\n?")
_COMMENT_BLOCK = re.compile(r"\*.*?\*/", re.DOTALL)
_REGEXP = re.compile(r"((?:[^\\\[/\n]|\\.|\[(?:[^\\\]\n]|\\.)*\])*)/(\w*)")
_TEMPLATE_TEXT = re.compile(r"(?:[^`$\\]|\\.|\$(?!\{))*", re.DOTALL)
_TEMPLATE_ESCAPE = re.compile(r"\\(.)", re.DOTALL)
_ARG_SEPARATOR = re.compile(r"\s*,")

_SIGIL_TARGETS = {"$": "story.", "_": "temp.", "@": "constants."}
_OPERATOR_SPELLINGS = {"===": "==", "&&": " and ", "||": " or "}
_WORD_SPELLINGS = {"true": "True", "false": "False", "null": "None", "undefined": "None"}
_CLOSING = {"(": ")", "[": "]", "{": "}"}
_KEYWORDS = frozenset(keyword.kwlist) - {"True", "False", "None"}
_TEMPLATE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
    "\n": "",
}


def _template_literal(chunk: str) -> str:
    """Python literal for a run of template-string text."""
    value = _TEMPLATE_ESCAPE.sub(lambda m: _TEMPLATE_ESCAPES.get(m[1], m[1]), chunk)
    return repr(value)


class ScriptLexingMixin:
    """Mixin that re-lexes embedded expressions into Python source.

    ``_regexp_allowed`` is tri-state: True after operators, keywords and
    opening brackets, False after operands, and None after a closing ``}``
    (where a following ``/`` is ambiguous and rejected).
    """

    if TYPE_CHECKING:
        # Host attributes (from Parser.__init__)
        _source: str
        _pos: int

        # From Parser
        def _consume(self, pattern: re.Pattern[str]) -> re.Match[str] | None: ...
        def _lookahead(self) -> str | None: ...
        def _error(self, message: str, *, suggestion: str | None = None) -> ParseError: ...

    def _parse_script(self) -> str:
        """Lex one expression up to a top-level comma or unmatched closer.

        Returns:
            Rewritten Python source (may be empty or whitespace)

        Raises:
            ParseError: Unterminated string, template, regex or bracket
        """
        nesting: list[str] = []
        output: list[str] = []
        regexp_allowed: bool | None = True
        last_pos = -1

        while self._pos < len(self._source):
            if self._pos == last_pos:
                raise self._error(f"Expression lexer stuck at {self._source[self._pos]!r}")
            last_pos = self._pos

            match = self._consume(_WHITESPACE)
            if match and match[0]:
                output.append(match[0])

            match = self._consume(IDENTIFIER)
            if match:
                word = match[0]
                output.append(_WORD_SPELLINGS.get(word, word))
                regexp_allowed = word in _KEYWORDS
                continue

            match = self._consume(_NUMBER)
            if match:
                output.append(match[0])
                regexp_allowed = False
                continue

            # "!", "+", "-" and "~" are handled below
            match = self._consume(_BINARY_OPERATOR)
            if match:
                output.append(_OPERATOR_SPELLINGS.get(match[0], match[0]))
                regexp_allowed = True
                continue

            c = self._lookahead()
            if c is None:
                break

            if c == '"' or c == "'":
                match = self._consume(_STRING_DOUBLE if c == '"' else _STRING_SINGLE)
                if not match:
                    kind = "double" if c == '"' else "single"
                    raise self._error(f"Unclosed {kind}-quoted string")
                output.append(match[0])
                regexp_allowed = False

            elif c == "`":
                self._pos += 1
                output.append(self._parse_template_string())
                regexp_allowed = False

            elif c in _CLOSING:
                nesting.append(_CLOSING[c])
                output.append(c)
                self._pos += 1
                regexp_allowed = c != "{"

            elif c in _SIGIL_TARGETS:
                self._pos += 1
                match = self._consume(IDENTIFIER)
                if not match:
                    raise self._error(
                        f'Illegal identifier after "{c}"',
                        suggestion="Variable names start with a letter: $name, _name, @name",
                    )
                output.append(_SIGIL_TARGETS[c] + match[0])
                regexp_allowed = False

            elif c == ",":
                if not nesting:
                    break
                output.append(c)
                self._pos += 1
                regexp_allowed = True

            elif c in "#:;?.":
                output.append(c)
                self._pos += 1
                regexp_allowed = True

            elif c == "!":
                self._pos += 1
                if self._lookahead() == "=":
                    self._pos += 1
                    if self._lookahead() == "=":
                        self._pos += 1
                    output.append("!=")
                else:
                    output.append(" not ")
                regexp_allowed = True

            elif c == "+" or c == "-":
                output.append(c)
                self._pos += 1
                following = self._lookahead()
                if following == c:
                    output.append(c)
                    self._pos += 1
                    regexp_allowed = False
                else:
                    if following == "=":
                        output.append("=")
                        self._pos += 1
                    regexp_allowed = True

            elif c == "~":
                output.append(c)
                self._pos += 1
                regexp_allowed = True

            elif c == "/":
                self._pos += 1
                following = self._lookahead()
                if following == "/":
                    self._consume(_COMMENT_LINE)
                    output.append("\n")
                elif following == "*":
                    match = self._consume(_COMMENT_BLOCK)
                    if not match:
                        raise self._error("Missing trailing `*/` to close the block comment")
                    if "\n" in match[0]:
                        output.append("\n")
                elif regexp_allowed is None:
                    raise self._error(
                        '"/" is not allowed after "}"',
                        suggestion="Wrap the braces in parentheses: ({...}) / 2",
                    )
                elif regexp_allowed:
                    match = self._consume(_REGEXP)
                    if not match:
                        raise self._error("Invalid regular expression literal")
                    output.append(f"__regexp__({match[1]!r}, {match[2]!r})")
                    regexp_allowed = False
                else:
                    output.append(c)
                    regexp_allowed = True

            elif nesting and c == nesting[-1]:
                nesting.pop()
                output.append(c)
                self._pos += 1
                regexp_allowed = None if c == "}" else False

            elif c in ")]}":
                break

            else:
                raise self._error(
                    f"Unexpected {c!r} in expression",
                    suggestion="Escape the character with a backslash if it is part of the text",
                )

        if nesting:
            raise self._error(f'Expected a "{nesting.pop()}"')

        return "".join(output)

    def _parse_template_string(self) -> str:
        """Lex a backtick string whose opening ` has been consumed."""
        parts: list[str] = []
        while True:
            match = self._consume(_TEMPLATE_TEXT)
            if match and match[0]:
                parts.append(_template_literal(match[0]))
            c = self._lookahead()
            if c is None:
                raise self._error("Unclosed template string")
            if c == "`":
                self._pos += 1
                return f"__template__({', '.join(parts)})"
            # "${" is the only other way out of the text pattern
            self._pos += 2
            expr = self._parse_script()
            if self._lookahead() != "}":
                raise self._error('Missing "}" inside template string')
            self._pos += 1
            parts.append(f"({expr}\n)")

    def _parse_script_args(self, closer: str) -> list[str]:
        """Lex comma-separated expressions up to ``closer`` (``)`` or ``]``).

        The opening bracket must already be consumed; the closer is consumed.
        """
        args: list[str] = []
        while arg := self._parse_script():
            args.append(arg)
            if not self._consume(_ARG_SEPARATOR):
                break

        self._consume(_WHITESPACE)
        if self._lookahead() != closer:
            raise self._error(f"Missing a closing `{closer}`")
        self._pos += 1
        return args
