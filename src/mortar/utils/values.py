"""Value helpers shared by scripts and macros.

``clone`` produces the snapshots that history and persistence consume;
the rest are exposed to passage scripts through the constants scope.
"""

from __future__ import annotations

import copy
import datetime
import itertools
import random
import re
from collections.abc import Iterator, Sequence
from typing import Any

_DELETED_CHARS = frozenset("'\",()[]{}.!`?")
_DASH_RUN = re.compile(r"-+")

_ids = itertools.count()


def slugify(text: str) -> str:
    """Convert text into a CSS-friendly slug.

    Example:
        >>> slugify("The Iron Giant")
        'the-iron-giant'
    """
    out: list[str] = []
    for c in text:
        if c.isascii() and c.isalnum():
            out.append(c.lower())
        elif not c.isascii():
            out.append(c.lower())
        elif c in _DELETED_CHARS:
            continue
        else:
            out.append("-")
    return _DASH_RUN.sub("-", "".join(out))


def clone(original: Any) -> Any:
    """Deep-copy a story value.

    Objects with a ``clone()`` method are asked to copy themselves.
    Functions and other values that cannot be snapshotted raise TypeError.
    """
    if original is None or isinstance(original, (bool, int, float, complex, str, bytes)):
        return original
    clone_method = getattr(original, "clone", None)
    if callable(clone_method):
        return clone_method()
    if isinstance(original, list):
        return [clone(v) for v in original]
    if isinstance(original, tuple):
        return tuple(clone(v) for v in original)
    if isinstance(original, dict):
        return {clone(k): clone(v) for k, v in original.items()}
    if isinstance(original, set):
        return {clone(v) for v in original}
    if isinstance(original, frozenset):
        return original
    if isinstance(original, (datetime.date, datetime.time, re.Pattern)):
        return original
    if callable(original):
        raise TypeError("Functions cannot be cloned")
    if hasattr(original, "__dict__") and type(original).__module__ != "builtins":
        raise TypeError(
            f"Can't clone a {type(original).__name__} object without a clone() method"
        )
    return copy.deepcopy(original)


def either(values: Sequence[Any]) -> Any:
    """Return a random element of a sequence."""
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise TypeError("either(): argument must be a sequence")
    if not values:
        raise ValueError("either(): sequence is empty")
    return random.choice(values)


def random_int(maximum: int) -> int:
    """Return a random integer in ``[0, maximum)``."""
    if not isinstance(maximum, int) or isinstance(maximum, bool):
        raise TypeError("random_int(): argument must be an integer")
    return random.randrange(maximum)


def number_range(start_or_stop: float, stop: float | None = None, step: float = 1) -> Iterator[float]:
    """Like ``range()``, but also accepts floats."""
    if step == 0:
        raise ValueError("number_range(): step must not be zero")
    if stop is None:
        value, stop = 0, start_or_stop
    else:
        value = start_or_stop
    if step > 0:
        while value < stop:
            yield value
            value += step
    else:
        while value > stop:
            yield value
            value += step


def unique_id() -> str:
    """Return an id unique within this process."""
    return f"mortar-unique-id-{next(_ids)}"
