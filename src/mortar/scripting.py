"""Evaluation of rewritten passage expressions.

The parser rewrites every embedded expression into plain Python source in
which variables are attribute reads on three scope objects::

    $gold + _bonus      ->  story.gold + temp.bonus
    @either(["a", "b"]) ->  constants.either(["a", "b"])

``ScriptRunner`` compiles that source (cached by text) and runs it in a
namespace holding the scope views, the default globals and a restricted
builtins table.

Reading a story or temp variable that does not exist yields None and logs a
warning with the closest existing name. Reading an unknown constant is an
error.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, MutableMapping
from functools import lru_cache
from types import CodeType
from typing import Any

from mortar.template.helpers import SAFE_BUILTINS, nearest_name, regexp, template_string

logger = logging.getLogger(__name__)

_FILENAME = "<passage script>"


@lru_cache(maxsize=1024)
def _compile(source: str, mode: str) -> CodeType:
    return compile(source, _FILENAME, mode)


def compile_expression(source: str) -> CodeType:
    """Compile one expression; surrounding parentheses allow line breaks."""
    return _compile(f"({source}\n)", "eval")


def compile_statements(source: str) -> CodeType:
    return _compile(source.strip(), "exec")


class ScopeView:
    """Attribute access to a variable dict: ``story.gold`` reads ``data["gold"]``.

    Missing names read as None, with a typo hint in the log.
    """

    __slots__ = ("_data", "_kind", "_sigil")

    def __init__(self, data: MutableMapping[str, Any], sigil: str, kind: str):
        object.__setattr__(self, "_data", data)
        object.__setattr__(self, "_sigil", sigil)
        object.__setattr__(self, "_kind", kind)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        try:
            return self._data[name]
        except KeyError:
            self._warn_unknown(name)
            return None

    def __setattr__(self, name: str, value: Any) -> None:
        self._data[name] = value

    def __delattr__(self, name: str) -> None:
        self._data.pop(name, None)

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def _warn_unknown(self, name: str) -> None:
        guess = nearest_name(name, self._data)
        if guess is None:
            logger.warning('Unknown %s "%s%s".', self._kind, self._sigil, name)
        else:
            logger.warning(
                'Unknown %s "%s%s". Did you mean "%s%s"?',
                self._kind,
                self._sigil,
                name,
                self._sigil,
                guess,
            )

    def __repr__(self) -> str:
        return f"<{self._kind} scope {sorted(self._data)!r}>"


class ConstantsView:
    """Read-only attribute access to the constants scope."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any]):
        object.__setattr__(self, "_data", data)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(unknown_constant_message(name, self._data)) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise TypeError(f'Cannot assign to the constant "@{name}"')

    def __delattr__(self, name: str) -> None:
        raise TypeError(f'Cannot delete the constant "@{name}"')

    def __contains__(self, name: object) -> bool:
        return name in self._data


def unknown_constant_message(name: str, known: Mapping[str, Any]) -> str:
    guess = nearest_name(name, known)
    if guess is None:
        return f'Unknown constant "@{name}"'
    return f'Unknown constant "@{name}". Did you mean "@{guess}"?'


class ScriptRunner:
    """Runs rewritten expression source against the three scopes.

    Args:
        story: Story variables; mutated in place by assignments
        constants: Constants scope (macros and globals)
        globals: Names available bare inside expressions

    Example:
        >>> runner = ScriptRunner({"gold": 3}, {})
        >>> temp = {}
        >>> runner.execute("temp.total = story.gold * 2", temp)
        >>> runner.evaluate("temp.total + 1", temp)
        7
    """

    __slots__ = ("_constants", "_globals", "story")

    def __init__(
        self,
        story: MutableMapping[str, Any],
        constants: Mapping[str, Any],
        globals: Mapping[str, Any] | None = None,
    ):
        self.story = story
        self._constants = constants
        self._globals = globals if globals is not None else {}

    def namespace(self, temp: MutableMapping[str, Any]) -> dict[str, Any]:
        namespace: dict[str, Any] = dict(self._globals)
        namespace.update(
            {
                "__builtins__": SAFE_BUILTINS,
                "__regexp__": regexp,
                "__template__": template_string,
                "story": ScopeView(self.story, "$", "story variable"),
                "temp": ScopeView(temp, "_", "temporary variable"),
                "constants": ConstantsView(self._constants),
            }
        )
        return namespace

    def evaluate(self, source: str, temp: MutableMapping[str, Any]) -> Any:
        """Evaluate one expression and return its value.

        Raises:
            SyntaxError: If the source is not a valid expression
            Exception: Whatever the expression raises
        """
        return eval(compile_expression(source), self.namespace(temp))  # noqa: S307

    def execute(self, source: str, temp: MutableMapping[str, Any]) -> None:
        """Run statements for their side effects."""
        exec(compile_statements(source), self.namespace(temp))  # noqa: S102

    def assign(self, place: str, value: Any, temp: MutableMapping[str, Any]) -> None:
        """Store ``value`` into an assignable expression such as ``story.name``."""
        namespace = self.namespace(temp)
        namespace["__value__"] = value
        exec(compile_statements(f"{place.strip()} = __value__"), namespace)  # noqa: S102
