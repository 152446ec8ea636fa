"""Terminal styling for Mortar diagnostics.

``format_compact()`` prints an error as a header line (``M-RUN-002:
message``), the passage location, an optional hint, and a numbered excerpt
of the passage source. This module colors those parts by role when stderr
is a terminal. The diagnostic shown inside a rendered passage is plain text
and never goes through here.

Colors are on when ``FORCE_COLOR`` is set, off when ``NO_COLOR`` is set
(https://no-color.org/), and otherwise follow ``sys.stderr.isatty()``.
"""

from __future__ import annotations

import os
import re
import sys
from typing import Literal

Role = Literal["code", "location", "gutter", "error_line", "context_line", "hint"]

# ANSI sequences per diagnostic part
_ROLES: dict[Role, str] = {
    "code": "\033[91m\033[1m",
    "location": "\033[36m",
    "gutter": "\033[33m",
    "error_line": "\033[91m",
    "context_line": "\033[2m",
    "hint": "\033[32m",
}
_RESET = "\033[0m"

_ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def _colors_enabled() -> bool:
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stderr.isatty()


_USE_COLORS = _colors_enabled()


def style(text: str, role: Role) -> str:
    """Wrap ``text`` in the ANSI sequence for ``role`` when colors are on."""
    if not _USE_COLORS:
        return text
    return f"{_ROLES[role]}{text}{_RESET}"


def strip_colors(text: str) -> str:
    """Remove ANSI sequences, e.g. before comparing ``format_compact()`` output."""
    return _ANSI_ESCAPE.sub("", text)


def location(passage_name: str, line_number: int) -> str:
    return style(f"{passage_name}:{line_number}", "location")


def hint(text: str) -> str:
    return style(text, "hint")


def excerpt_border() -> str:
    return style("   |", "context_line")


def format_error_header(code: str | None, message: str) -> str:
    """Format the first line of a diagnostic.

    Example:
        >>> format_error_header("M-RUN-002", "@print: requires 1 argument")
        'M-RUN-002: @print: requires 1 argument'  # without colors
    """
    if code:
        return f"{style(code, 'code')}: {message}"
    return message


def format_source_line(lineno: int, content: str, is_error: bool = False) -> str:
    """Format one passage line of an excerpt, marking the failing line with ``>``."""
    marker = ">" if is_error else " "
    gutter = style(f"{marker}{lineno:>3}", "gutter")
    body = style(content, "error_line" if is_error else "context_line")
    return f"{gutter} | {body}"
