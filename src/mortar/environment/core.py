"""Core Environment class for Mortar.

The Environment is the central configuration object. It owns:
- the macro registry (built-in macros installed at construction)
- the global functions available to passage scripts
- the passage loader and the parse cache
- the limits and defaults every render uses

Configuration is validated on assignment; an invalid value raises TypeError.
After startup, ``freeze()`` makes the constants scope read-only.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Callable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from mortar.environment.exceptions import PassageNotFoundError, RegistryFrozenError
from mortar.environment.globals import DEFAULT_GLOBALS
from mortar.environment.registry import MacroRegistry
from mortar.macros import install_builtins
from mortar.parser import Parser
from mortar.render_context import NewlineMode

if TYPE_CHECKING:
    from mortar.environment.loaders import Loader, Passage
    from mortar.nodes import Node

logger = logging.getLogger(__name__)

PreProcessor = Callable[["Passage"], str]


class Constants(Mapping[str, Any]):
    """The ``@`` scope: registered macros, then globals.

    A live view; registering a macro or adding a global shows up at once.
    """

    __slots__ = ("_env",)

    def __init__(self, env: Environment):
        self._env = env

    def __getitem__(self, name: str) -> Any:
        spec = self._env.macros.get(name)
        if spec is not None:
            return spec
        return self._env.globals[name]

    def __contains__(self, name: object) -> bool:
        return name in self._env.macros or name in self._env.globals

    def __iter__(self) -> Iterator[str]:
        yield from self._env.macros
        for name in self._env.globals:
            if name not in self._env.macros:
                yield name

    def __len__(self) -> int:
        return sum(1 for _ in self)


def _positive_int(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise TypeError(f"{name} must be a positive integer, got {value!r}")
    return value


class Environment:
    """Central configuration for parsing and rendering passages.

    Args:
        loader: Passage source (DictLoader, FunctionLoader, ChoiceLoader, ...)
        max_loop_iterations: Iterations allowed per @for / @while call
        max_render_depth: Nested renders allowed before recursion is reported
        newline_mode: Default NewlineMode for passage renders
        pre_process_text: Optional ``f(passage) -> str`` applied to passage
            text before parsing
        globals: Extra names for passage scripts
        cache_size: Parsed passages kept in the LRU parse cache

    Attributes:
        macros: MacroRegistry with the built-in macros
        globals: Names available to scripts and through ``@name``
        constants: Read-only view of macros and globals

    Example:
        >>> env = Environment(DictLoader({"Start": "Hi!"}), max_loop_iterations=100)
        >>> _ = env.macros.register("shout", lambda ctx, text: text.upper())
        >>> env.freeze()
    """

    def __init__(
        self,
        loader: Loader | None = None,
        *,
        max_loop_iterations: int = 1000,
        max_render_depth: int = 50,
        newline_mode: NewlineMode = NewlineMode.BLOCK,
        pre_process_text: PreProcessor | None = None,
        globals: Mapping[str, Any] | None = None,
        cache_size: int = 400,
    ):
        self.loader = loader
        self.max_loop_iterations = max_loop_iterations
        self.max_render_depth = max_render_depth
        self.newline_mode = newline_mode
        self.pre_process_text = pre_process_text
        self._cache_size = _positive_int("cache_size", cache_size)
        self._parse_cache: OrderedDict[tuple[Any, ...], tuple[Node, ...]] = OrderedDict()
        self._frozen = False

        self.macros = MacroRegistry()
        install_builtins(self.macros)
        self.globals: dict[str, Any] = dict(DEFAULT_GLOBALS)
        if globals:
            self.globals.update(globals)
        self.constants = Constants(self)

    # ─────────────────────────────────────────────────────────────────────────
    # Validated configuration
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def max_loop_iterations(self) -> int:
        return self._max_loop_iterations

    @max_loop_iterations.setter
    def max_loop_iterations(self, value: int) -> None:
        self._max_loop_iterations = _positive_int("max_loop_iterations", value)

    @property
    def max_render_depth(self) -> int:
        return self._max_render_depth

    @max_render_depth.setter
    def max_render_depth(self, value: int) -> None:
        self._max_render_depth = _positive_int("max_render_depth", value)

    @property
    def newline_mode(self) -> NewlineMode:
        return self._newline_mode

    @newline_mode.setter
    def newline_mode(self, value: NewlineMode) -> None:
        if not isinstance(value, NewlineMode):
            raise TypeError(f"newline_mode must be a NewlineMode, got {value!r}")
        self._newline_mode = value

    @property
    def pre_process_text(self) -> PreProcessor | None:
        return self._pre_process_text

    @pre_process_text.setter
    def pre_process_text(self, value: PreProcessor | None) -> None:
        if value is not None and not callable(value):
            raise TypeError(f"pre_process_text must be callable or None, got {value!r}")
        self._pre_process_text = value
        if hasattr(self, "_parse_cache"):
            self._parse_cache.clear()

    # ─────────────────────────────────────────────────────────────────────────
    # Globals and freezing
    # ─────────────────────────────────────────────────────────────────────────

    def add_global(self, name: str, value: Any) -> None:
        """Make ``value`` available to scripts as ``name`` and ``@name``."""
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot add global '{name}': the environment is frozen after startup"
            )
        if name in self.macros:
            logger.warning("Global %r is hidden by the macro of the same name", name)
        self.globals[name] = value

    def freeze(self) -> None:
        """Make the constants scope read-only for the rest of the session."""
        self.macros.freeze()
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ─────────────────────────────────────────────────────────────────────────
    # Passages
    # ─────────────────────────────────────────────────────────────────────────

    def get_passage(self, name: str) -> Passage | None:
        if self.loader is None:
            return None
        return self.loader.get_passage(name)

    def get_passage_required(self, name: str) -> Passage:
        """Like ``get_passage``, but raise with a suggestion when missing.

        Raises:
            PassageNotFoundError: No passage has that name
        """
        passage = self.get_passage(name)
        if passage is None:
            raise PassageNotFoundError(name, frozenset(self.list_passages()))
        return passage

    def list_passages(self) -> list[str]:
        if self.loader is None:
            return []
        return self.loader.list_passages()

    # ─────────────────────────────────────────────────────────────────────────
    # Parsing
    # ─────────────────────────────────────────────────────────────────────────

    def parse_source(
        self, source: str, passage_name: str, start_line: int = 1
    ) -> tuple[Node, ...]:
        """Parse markup with this environment's macros (cached).

        Raises:
            ParseError: On the first structural problem
        """
        key = (source, passage_name, start_line, self.macros.version)
        cached = self._parse_cache.get(key)
        if cached is not None:
            self._parse_cache.move_to_end(key)
            return cached
        nodes = tuple(Parser(source, passage_name, start_line, self.macros).parse())
        self._parse_cache[key] = nodes
        if len(self._parse_cache) > self._cache_size:
            self._parse_cache.popitem(last=False)
        return nodes

    def parse_passage(self, passage: Passage) -> tuple[Node, ...]:
        """Parse a passage, applying ``pre_process_text`` first.

        Raises:
            ParseError: On the first structural problem
            TypeError: If ``pre_process_text`` does not return a string
        """
        text = passage.text
        if self._pre_process_text is not None:
            text = self._pre_process_text(passage)
            if not isinstance(text, str):
                raise TypeError(
                    f"pre_process_text returned a {type(text).__name__}, expected a string"
                )
        return self.parse_source(text, passage.name)

    def clear_cache(self) -> None:
        self._parse_cache.clear()

    def __repr__(self) -> str:
        return (
            f"<Environment loader={type(self.loader).__name__} "
            f"macros={len(self.macros)} globals={len(self.globals)}>"
        )
