"""Mortar parser: passage text to template tree.

Example:
    >>> from mortar.parser import parse
    >>> nodes = parse("Hello [[World]]", "Start")

"""

from mortar.parser.core import Parser, normalize_source, parse
from mortar.parser.errors import ParseError, ParseWarning

__all__ = ["ParseError", "ParseWarning", "Parser", "normalize_source", "parse"]
