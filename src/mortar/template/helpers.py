"""Pure runtime helper functions injected into the script namespace.

These functions are called by rewritten passage expressions at render time.
None of them close over Environment state.

"""

from __future__ import annotations

import builtins
import re
from collections.abc import Iterable, Mapping
from difflib import get_close_matches
from typing import Any

# =============================================================================
# Restricted builtins
# =============================================================================
# Passage scripts see only these builtins. No import, no open, no exec/eval,
# no attribute reflection.
# =============================================================================

_SAFE_BUILTIN_NAMES = (
    "abs",
    "all",
    "any",
    "bool",
    "callable",
    "chr",
    "dict",
    "divmod",
    "enumerate",
    "filter",
    "float",
    "format",
    "frozenset",
    "int",
    "isinstance",
    "iter",
    "len",
    "list",
    "map",
    "max",
    "min",
    "next",
    "ord",
    "pow",
    "range",
    "repr",
    "reversed",
    "round",
    "set",
    "slice",
    "sorted",
    "str",
    "sum",
    "tuple",
    "zip",
    "ArithmeticError",
    "Exception",
    "IndexError",
    "KeyError",
    "LookupError",
    "RuntimeError",
    "TypeError",
    "ValueError",
    "ZeroDivisionError",
)

SAFE_BUILTINS: dict[str, Any] = {name: getattr(builtins, name) for name in _SAFE_BUILTIN_NAMES}

_JS_REGEXP_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "u": 0, "g": 0, "y": 0}
_NAMED_GROUP = re.compile(r"\(\?<(?![=!])")


def str_safe(value: Any) -> str:
    """Convert value to string, treating None as empty string."""
    if value is None:
        return ""
    return str(value)


def regexp(pattern: str, flags: str = "") -> re.Pattern[str]:
    """Compile a ``/pattern/flags`` literal.

    ``(?<name>...)`` groups are accepted and mean ``(?P<name>...)``. The
    ``g``, ``y`` and ``u`` flags have no Python counterpart and are ignored.

    Raises:
        ValueError: Unknown flag
        re.error: Invalid pattern
    """
    value = 0
    for flag in flags:
        if flag not in _JS_REGEXP_FLAGS:
            raise ValueError(f"Invalid regular expression flag {flag!r}")
        value |= _JS_REGEXP_FLAGS[flag]
    return re.compile(_NAMED_GROUP.sub("(?P<", pattern), value)


def template_string(*parts: Any) -> str:
    """Join the literal and interpolated parts of a backtick string."""
    return "".join(str_safe(part) for part in parts)


def nearest_name(name: str, candidates: Iterable[str]) -> str | None:
    """Closest known name to ``name`` by edit similarity, if any is close."""
    matches = get_close_matches(name, list(candidates), n=1, cutoff=0.6)
    return matches[0] if matches else None


def get_property(obj: Any, key: Any, *, literal: bool = False) -> Any:
    """Read ``obj.key`` (``literal``) or ``obj[key]``.

    A literal ``.field`` on a mapping reads the key when present and falls
    back to the attribute, so ``$inventory.sword`` and
    ``$inventory.items()`` both work.

    Raises:
        AttributeError, KeyError, IndexError, TypeError: as Python would
    """
    if not literal:
        return obj[key]
    if isinstance(obj, Mapping) and key in obj:
        return obj[key]
    return getattr(obj, key)
