"""Parser error handling for Mortar.

Provides ParseError with a location sample and optional source context, and
ParseWarning for problems that do not stop the parse.
"""

from __future__ import annotations

from mortar.environment import terminal
from mortar.environment.exceptions import (
    ErrorCode,
    MortarError,
    SourceSnippet,
    build_source_snippet,
)


class ParseError(MortarError):
    """Structural parse failure.

    Parsing is all-or-nothing: the first structural problem aborts the whole
    passage with one of these. The renderer shows it in place of the passage.

    Attributes:
        message: Error description without location
        passage_name: Passage being parsed
        line_number: Line the parser had reached
        location_sample: The source line around the failure
        suggestion: Optional actionable hint
    """

    def __init__(
        self,
        message: str,
        passage_name: str,
        line_number: int,
        location_sample: str = "",
        *,
        source: str | None = None,
        start_line: int = 1,
        suggestion: str | None = None,
        code: ErrorCode = ErrorCode.SYNTAX_ERROR,
    ):
        self.message = message
        self.passage_name = passage_name
        self.line_number = line_number
        self.location_sample = location_sample
        self.suggestion = suggestion
        self.code = code
        self.source_snippet: SourceSnippet | None = None
        if source is not None:
            self.source_snippet = build_source_snippet(
                source, line_number, start_line=start_line
            )
        super().__init__(f"in “{passage_name}” at line {line_number}: {message}")

    def format_compact(self) -> str:
        parts = [
            terminal.format_error_header(self.code.value, self.message),
            f"  Location: {terminal.location(self.passage_name, self.line_number)}",
        ]
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        elif self.location_sample:
            parts.append(terminal.format_source_line(self.line_number, self.location_sample, is_error=True))
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        return "\n".join(parts)


class ParseWarning(UserWarning):
    """Non-fatal parse problem, such as a duplicate attribute."""

    def __init__(self, message: str, passage_name: str, line_number: int):
        self.message = message
        self.passage_name = passage_name
        self.line_number = line_number
        super().__init__(f"in “{passage_name}” at line {line_number}: {message}")
