"""Variable and macro reference parsing for Mortar.

Handles ``$story``, ``_temp`` and ``@constant`` references with their
postscript ops, ``{}`` bodies, and the registry-directed grammars: macro
chains (``@if(...) {} @else {}``) and the ``@for(_VAR of ITERABLE)`` head.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING

from mortar.environment.exceptions import ErrorCode
from mortar.environment.registry import MacroFlag
from mortar.nodes import Call, ChainSegment, Expr, Index, MacroChain, Scope
from mortar.parser.scripting import IDENTIFIER

if TYPE_CHECKING:
    from mortar.environment.registry import MacroSpec
    from mortar.nodes import Node
    from mortar.parser.errors import ParseError

MACRO_NAME = re.compile(r"(?:-|[^\W\d])[-\w]*|=")
_ARGS_START = re.compile(r" *\(")
_SPACES_BEFORE_ARGS = re.compile(r" +(?=\()")
_BODY_START = re.compile(r"\s*\{")
_BODY_END = re.compile(r"\}")
_CHAIN_SIBLING = re.compile(r"\s*@")
_FOR_HEAD = re.compile(r"\s*(.*?)\s+of\b", re.DOTALL)
_CLOSING_PAREN = re.compile(r"\s*\)")

_FOR_SYNTAX = "Syntax: @for(_VAR of EXPRESSION)"


class ExpressionParsingMixin:
    """Mixin for parsing sigil references and macro invocations."""

    if TYPE_CHECKING:
        # Host attributes (from Parser.__init__)
        _source: str
        _pos: int
        _line: int
        passage_name: str
        _macros: Mapping[str, MacroSpec] | None

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
        def _parse_body(
            self, closer: re.Pattern[str] | None = None, closer_error: str | None = None
        ) -> list[Node]: ...

        # From ScriptLexingMixin
        def _parse_script(self) -> str: ...
        def _parse_script_args(self, closer: str) -> list[str]: ...

    def _parse_expr(self, scope: Scope) -> Expr | MacroChain:
        """Parse a reference whose sigil has been consumed."""
        line = self._line
        base = ""
        if scope is not Scope.CONSTANTS or self._lookahead() != "(":
            match = self._consume(MACRO_NAME)
            if not match:
                raise self._error(
                    f'Unescaped "{scope.sigil}"',
                    suggestion=f'Write "\\{scope.sigil}" to show the character itself',
                )
            base = match[0]

        if scope is Scope.CONSTANTS and self._macros is not None:
            spec = self._macros.get(base)
            if spec is not None:
                if MacroFlag.CHAIN in spec.flags and spec.chain_pattern is not None:
                    return self._parse_macro_chain(base, spec.chain_pattern, line)
                if MacroFlag.FOR_ARGS in spec.flags:
                    return self._parse_for_macro(base, line)

        ops: list[Index | Call] = []
        while True:
            op_start = self._pos
            c = self._lookahead()
            if c == "(":
                self._pos += 1
                args = self._parse_script_args(")")
                ops.append(Call(tuple(args), self._source[op_start : self._pos]))
            elif c == "[" and not self._source.startswith("[[", self._pos):
                self._pos += 1
                args = self._parse_script_args("]")
                ops.append(Index(",".join(args), True, self._source[op_start : self._pos]))
            elif c == ".":
                self._pos += 1
                match = self._consume(IDENTIFIER)
                if not match:
                    # A full stop ending a sentence
                    self._pos -= 1
                    break
                ops.append(Index(match[0], False, self._source[op_start : self._pos]))
            elif c == " " and scope is Scope.CONSTANTS and not ops:
                if not self._consume(_SPACES_BEFORE_ARGS):
                    break
            else:
                break

        content = None
        if self._consume(_BODY_START):
            content = self._parse_macro_body(scope.sigil + base)

        return Expr(
            passage_name=self.passage_name,
            line_number=line,
            scope=scope,
            base=base,
            ops=tuple(ops),
            content=content,
        )

    def _parse_macro_body(self, name: str) -> tuple[Node, ...]:
        """Parse a ``{...}`` body whose opening brace has been consumed."""
        return tuple(self._parse_body(_BODY_END, f"Missing closing `}}` for the body of {name}"))

    def _parse_macro_chain(self, first_name: str, pattern: re.Pattern[str], line: int) -> MacroChain:
        """Parse ``@first(args) {body}`` and every sibling matching ``pattern``.

        Siblings are consumed greedily. When ``@`` is not followed by a
        sibling name, parsing rewinds to just after the last body.
        """
        if not self._consume(_ARGS_START):
            raise self._error(f"@{first_name} requires arguments: @{first_name}(...)")
        first_args = self._parse_script_args(")")
        if not self._consume(_BODY_START):
            raise self._error(f"@{first_name} requires a body: @{first_name}(...) {{ ... }}")
        segments = [ChainSegment(first_name, tuple(first_args), self._parse_macro_body("@" + first_name))]
        resume = (self._pos, self._line)

        while self._consume(_CHAIN_SIBLING):
            match = self._consume(pattern)
            if not match:
                self._pos, self._line = resume
                break
            name = match[0]

            args: list[str] = []
            if self._lookahead() == "(":
                self._pos += 1
                args = self._parse_script_args(")")

            body: tuple[Node, ...] = ()
            if self._consume(_BODY_START):
                body = self._parse_macro_body("@" + name.strip())

            segments.append(ChainSegment(name.strip(), tuple(args), body))
            resume = (self._pos, self._line)

        return MacroChain(passage_name=self.passage_name, line_number=line, segments=tuple(segments))

    def _parse_for_macro(self, name: str, line: int) -> Expr:
        """Parse ``(_VAR of ITERABLE) {body}`` into a single-Call Expr."""
        if not self._consume(_ARGS_START):
            raise self._error(_FOR_SYNTAX)
        args_start = self._pos - 1
        match = self._consume(_FOR_HEAD)
        if not match:
            raise self._error(_FOR_SYNTAX)
        loop_var = match[1]

        iterable = self._parse_script()
        if not iterable.strip():
            raise self._error(_FOR_SYNTAX)
        if not self._consume(_CLOSING_PAREN):
            raise self._error(f"@{name}: missing closing ')'")
        raw = self._source[args_start : self._pos]

        content = None
        if self._consume(_BODY_START):
            content = self._parse_macro_body("@" + name)

        return Expr(
            passage_name=self.passage_name,
            line_number=line,
            scope=Scope.CONSTANTS,
            base=name,
            ops=(Call((loop_var, iterable), raw),),
            content=content,
        )
