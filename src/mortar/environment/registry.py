"""Macro registry for the Mortar environment.

Maps macro names to ``MacroSpec`` records: the handler plus capability flags
that the parser and renderer consult instead of probing the handler.

Supports:
    - registry.register("name", handler, MacroFlag.BODY)
    - registry["name"] -> MacroSpec
    - "name" in registry
    - registry.alias("print", "-")
    - registry.freeze()  # after startup; later changes raise

All mutations use copy-on-write, so a reader holding the previous mapping
never observes a half-applied change.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Flag, auto
from typing import TYPE_CHECKING, Any

from mortar.environment.exceptions import RegistryFrozenError

if TYPE_CHECKING:
    from mortar.macros.context import MacroContext

logger = logging.getLogger(__name__)

MacroHandler = Callable[..., Any]


class MacroFlag(Flag):
    """Capabilities declared by a macro.

    RAW_ARGS: arguments are passed as rewritten source strings, unevaluated
    BODY: the macro accepts a ``{}`` body
    CHAIN: following ``@sibling(...) {}`` blocks are absorbed into one chain
    FOR_ARGS: arguments use the ``_VAR of ITERABLE`` grammar
    """

    NONE = 0
    RAW_ARGS = auto()
    BODY = auto()
    CHAIN = auto()
    FOR_ARGS = auto()


@dataclass(frozen=True, slots=True)
class MacroSpec:
    """A registered macro.

    Attributes:
        name: Name the macro was registered under
        handler: ``handler(context, *args)`` returning None, text, or a node
        flags: Capability flags
        chain_pattern: Sibling-name pattern, required when CHAIN is set
    """

    name: str
    handler: MacroHandler
    flags: MacroFlag = MacroFlag.NONE
    chain_pattern: re.Pattern[str] | None = None

    def __post_init__(self) -> None:
        if MacroFlag.CHAIN in self.flags and self.chain_pattern is None:
            raise ValueError(f"Macro '{self.name}' is a chain macro but has no chain pattern")

    @property
    def raw_args(self) -> bool:
        return MacroFlag.RAW_ARGS in self.flags

    @property
    def accepts_body(self) -> bool:
        return MacroFlag.BODY in self.flags or MacroFlag.CHAIN in self.flags

    def __call__(self, context: MacroContext, *args: Any) -> Any:
        return self.handler(context, *args)

    def clone(self) -> MacroSpec:
        """Macros are immutable; story snapshots share them."""
        return self


def is_macro(value: object) -> bool:
    """Return True if ``value`` is a registered macro record."""
    return isinstance(value, MacroSpec)


class MacroRegistry:
    """Dict-like, copy-on-write mapping of macro names to MacroSpec records."""

    __slots__ = ("_frozen", "_macros", "_version")

    def __init__(self, macros: dict[str, MacroSpec] | None = None):
        self._macros: dict[str, MacroSpec] = dict(macros or {})
        self._frozen = False
        self._version = 0

    def _check_frozen(self, name: str) -> None:
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot modify macro '{name}': the registry is frozen after startup"
            )

    def register(
        self,
        name: str,
        handler: MacroHandler,
        flags: MacroFlag = MacroFlag.NONE,
        chain_pattern: str | re.Pattern[str] | None = None,
    ) -> MacroSpec:
        """Add a macro, replacing (with a warning) any macro of the same name."""
        self._check_frozen(name)
        if isinstance(chain_pattern, str):
            chain_pattern = re.compile(chain_pattern)
        spec = MacroSpec(name, handler, flags, chain_pattern)
        if name in self._macros:
            logger.warning("Replacing an existing macro: %r", name)
        new = self._macros.copy()
        new[name] = spec
        self._macros = new
        self._version += 1
        return spec

    def macro(
        self,
        name: str,
        flags: MacroFlag = MacroFlag.NONE,
        chain_pattern: str | None = None,
    ) -> Callable[[MacroHandler], MacroHandler]:
        """Decorator form of ``register``."""

        def decorator(handler: MacroHandler) -> MacroHandler:
            self.register(name, handler, flags, chain_pattern)
            return handler

        return decorator

    def alias(self, old_name: str, new_name: str) -> None:
        """Register ``new_name`` as a copy of ``old_name``.

        Removing the older macro later leaves the alias intact.
        """
        self._check_frozen(new_name)
        spec = self._macros.get(old_name)
        if spec is None:
            raise KeyError(f"No macro '{old_name}' found")
        new = self._macros.copy()
        new[new_name] = spec
        self._macros = new
        self._version += 1

    def remove(self, name: str) -> bool:
        self._check_frozen(name)
        if name not in self._macros:
            return False
        new = self._macros.copy()
        del new[name]
        self._macros = new
        self._version += 1
        return True

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def version(self) -> int:
        """Incremented by every change; parse caches key on it."""
        return self._version

    def get(self, name: str, default: MacroSpec | None = None) -> MacroSpec | None:
        return self._macros.get(name, default)

    def __getitem__(self, name: str) -> MacroSpec:
        return self._macros[name]

    def __contains__(self, name: object) -> bool:
        return name in self._macros

    def __iter__(self) -> Iterator[str]:
        return iter(self._macros)

    def __len__(self) -> int:
        return len(self._macros)

    def keys(self):
        return self._macros.keys()

    def items(self):
        return self._macros.items()

    def copy(self) -> dict[str, MacroSpec]:
        return self._macros.copy()
