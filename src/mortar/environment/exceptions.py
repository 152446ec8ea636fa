"""Exceptions for the Mortar passage interpreter.

Exception Hierarchy:
MortarError (base)
├── ParseError                # Structural parse failure (mortar.parser.errors)
├── RenderError               # Render-time error with passage + line
│   ├── ExpressionError       # Evaluating an embedded expression failed
│   ├── MacroError            # A macro handler failed
│   └── DynamicAttributeError # Evaluating an element's ``key=(expr)`` failed
├── PassageNotFoundError      # No passage with the requested name
└── RegistryFrozenError       # Macro registration after startup

ParseWarning (a UserWarning, mortar.parser.errors) covers non-fatal parse
issues such as duplicate attributes.

Display:
A RenderError is shown inline at most once. The renderer calls
``mark_displayed()`` before rendering it; a second call returns False, so an
error re-raised through enclosing macro frames never shows up twice.

Example:
    ```
    M-RUN-002: @print: requires 1 argument (got 2)
      Location: Kitchen:3
       |
    >  3 | @print(1, 2)
       |
    ```

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from mortar.environment import terminal

if TYPE_CHECKING:
    from mortar.macros.context import MacroContext
    from mortar.nodes import Element


class ErrorCode(Enum):
    """Searchable error codes for Mortar diagnostics.

    Format: M-{CATEGORY}-{NUMBER}
    Categories: PAR (parser), RUN (runtime), REG (registry), PSG (passages)
    """

    # Parser errors (M-PAR-xxx)
    SYNTAX_ERROR = "M-PAR-001"
    UNCLOSED_BODY = "M-PAR-002"
    UNCLOSED_SCRIPT = "M-PAR-003"
    INVALID_LINK = "M-PAR-004"
    INVALID_ELEMENT = "M-PAR-005"

    # Runtime errors (M-RUN-xxx)
    RUNTIME_ERROR = "M-RUN-001"
    MACRO_ERROR = "M-RUN-002"
    EXPRESSION_ERROR = "M-RUN-003"
    ATTRIBUTE_ERROR = "M-RUN-004"
    RECURSION_LIMIT = "M-RUN-005"
    STRAY_SIGNAL = "M-RUN-006"

    # Registry and passage errors
    REGISTRY_FROZEN = "M-REG-001"
    PASSAGE_NOT_FOUND = "M-PSG-001"

    @property
    def category(self) -> str:
        """Error category (e.g., 'parser', 'runtime')."""
        prefix = self.value.split("-")[1]
        return {
            "PAR": "parser",
            "RUN": "runtime",
            "REG": "registry",
            "PSG": "passage",
        }.get(prefix, "unknown")


def describe_cause(cause: object) -> str:
    """Turn an arbitrary exception (or thrown value) into message text.

    Authors can raise anything from scripts, including objects whose
    ``__str__`` fails, so this never raises.
    """
    try:
        text = str(cause)
    except Exception:
        return "(error could not be converted to string)"
    if isinstance(cause, BaseException):
        name = type(cause).__name__
        if not text:
            return name
        if isinstance(cause, (NameError, SyntaxError, TypeError, KeyError, IndexError)):
            return f"{name}: {text}"
    return text


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Passage source context around an error line.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int

    def format(self) -> str:
        parts: list[str] = [terminal.excerpt_border()]
        for lineno, content in self.lines:
            parts.append(
                terminal.format_source_line(lineno, content, is_error=lineno == self.error_line)
            )
        parts.append(terminal.excerpt_border())
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    start_line: int = 1,
    context_lines: int = 1,
) -> SourceSnippet:
    """Build a SourceSnippet from passage source.

    ``start_line`` is the line number of the first line of ``source``, for
    fragments parsed out of a larger passage.
    """
    all_lines = source.splitlines()
    offset = error_line - start_line
    start = max(0, offset - context_lines)
    end = min(len(all_lines), offset + context_lines + 1)
    lines = tuple((start_line + i, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line)


class MortarError(Exception):
    """Base exception for all Mortar errors.

    Attributes:
        code: Optional ErrorCode for searchable error identification.
    """

    code: ErrorCode | None = None

    def format_compact(self) -> str:
        """Format the error as a human-readable terminal summary."""
        return terminal.format_error_header(self.code.value if self.code else None, str(self))


class RenderError(MortarError):
    """Render-time error attributed to a passage and line.

    Attributes:
        message: Error description without location
        passage_name: Passage containing the failing construct
        line_number: Line of the failing construct
        suggestion: Optional actionable hint
        displayed: True once the error has been rendered inline
    """

    code: ErrorCode | None = ErrorCode.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        passage_name: str,
        line_number: int,
        *,
        suggestion: str | None = None,
        source_snippet: SourceSnippet | None = None,
        code: ErrorCode | None = None,
    ):
        if code is not None:
            self.code = code
        self.message = message
        self.passage_name = passage_name
        self.line_number = line_number
        self.suggestion = suggestion
        self.source_snippet = source_snippet
        self.displayed = False
        super().__init__(f"in “{passage_name}” at line {line_number}: {message}")

    def mark_displayed(self) -> bool:
        """Record that the error is being shown.

        Returns:
            True the first time, False on every later call.
        """
        if self.displayed:
            return False
        self.displayed = True
        return True

    def format_compact(self) -> str:
        parts = [
            terminal.format_error_header(self.code.value if self.code else None, self.message),
            f"  Location: {terminal.location(self.passage_name, self.line_number)}",
        ]
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        return "\n".join(parts)


class ExpressionError(RenderError):
    """Evaluating an embedded expression failed.

    Carries the offending source text as written (``raw``) and the
    underlying exception as ``__cause__``.
    """

    code: ErrorCode | None = ErrorCode.EXPRESSION_ERROR

    def __init__(self, cause: object, raw: str, passage_name: str, line_number: int):
        self.raw = raw
        self.cause = cause
        super().__init__(
            f'while evaluating "{raw}": {describe_cause(cause)}', passage_name, line_number
        )
        if isinstance(cause, BaseException):
            self.__cause__ = cause


class MacroError(RenderError):
    """A macro handler raised while running.

    The error site is the macro call (name, passage and line from the
    MacroContext); the underlying failure is kept as ``cause``.
    """

    code: ErrorCode | None = ErrorCode.MACRO_ERROR

    def __init__(
        self, context: MacroContext, cause: object, *, code: ErrorCode | None = None
    ):
        self.macro_name = context.name
        self.cause = cause
        super().__init__(
            f"{context.display_name}: {describe_cause(cause)}",
            context.passage_name,
            context.line_number,
            code=code,
        )
        if isinstance(cause, BaseException):
            self.__cause__ = cause


class DynamicAttributeError(RenderError):
    """Evaluating a dynamic ``key=(expr)`` attribute failed."""

    code: ErrorCode | None = ErrorCode.ATTRIBUTE_ERROR

    def __init__(self, cause: object, attribute: str, element: Element):
        self.attribute = attribute
        self.element_name = element.name
        self.cause = cause
        super().__init__(
            f'while evaluating the attribute "{attribute}": {describe_cause(cause)}',
            element.passage_name,
            element.line_number,
        )
        if isinstance(cause, BaseException):
            self.__cause__ = cause


class PassageNotFoundError(MortarError):
    """No passage with the requested name exists."""

    code: ErrorCode | None = ErrorCode.PASSAGE_NOT_FOUND

    def __init__(self, name: str, available_names: frozenset[str] | None = None):
        self.name = name
        msg = f'No passage named "{name}" found'
        if available_names:
            from difflib import get_close_matches

            matches = get_close_matches(name, sorted(available_names), n=1, cutoff=0.6)
            if matches:
                msg += f'. Did you mean "{matches[0]}"?'
        super().__init__(msg)


class RegistryFrozenError(MortarError):
    """The macro registry was modified after it was frozen."""

    code: ErrorCode | None = ErrorCode.REGISTRY_FROZEN
